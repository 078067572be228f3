from django.urls import path
from .views import (
    LoginView,
    MeView,
    ClassDetailView,
    GradeSubjectListView,
    ExamTypeListView,
    MyClassesView,
)

urlpatterns = [
    # Authentication
    path('auth/login/', LoginView.as_view(), name='login'),
    path('auth/me/', MeView.as_view(), name='me'),

    # Reference data
    path('directory/classes/<int:pk>/', ClassDetailView.as_view(), name='class-detail'),
    path('directory/grades/<int:grade_id>/subjects/', GradeSubjectListView.as_view(), name='grade-subjects'),
    path('directory/exam-types/', ExamTypeListView.as_view(), name='exam-types'),
    path('directory/my-classes/', MyClassesView.as_view(), name='my-classes'),
]
