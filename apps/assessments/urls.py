from django.urls import path
from .views import (
    TeacherTestListView,
    TeacherTestDetailView,
    TestPublishView,
    TestSubmissionListView,
    TeacherSubmissionDetailView,
    GradeAnswerView,
    GradeSubmissionView,
    FinalizeGradingView,
    AutoMarkView,
    StudentTestListView,
    AttemptView,
    SubmitView,
    StudentResultView,
    StudentOverviewView,
    ClassAnalyticsView,
    StudentAnalyticsForTeacherView,
)

urlpatterns = [
    # Authoring
    path('teacher/tests/', TeacherTestListView.as_view(), name='teacher-test-list'),
    path('teacher/tests/<uuid:pk>/', TeacherTestDetailView.as_view(), name='teacher-test-detail'),
    path('teacher/tests/<uuid:pk>/publish/', TestPublishView.as_view(), name='teacher-test-publish'),

    # Grading
    path('teacher/tests/<uuid:pk>/submissions/', TestSubmissionListView.as_view(), name='teacher-test-submissions'),
    path('teacher/submissions/<uuid:pk>/', TeacherSubmissionDetailView.as_view(), name='teacher-submission-detail'),
    path('teacher/submissions/<uuid:pk>/grade/', GradeSubmissionView.as_view(), name='teacher-submission-grade'),
    path('teacher/submissions/<uuid:pk>/answers/<uuid:question_id>/', GradeAnswerView.as_view(), name='teacher-answer-grade'),
    path('teacher/submissions/<uuid:pk>/finalize/', FinalizeGradingView.as_view(), name='teacher-submission-finalize'),
    path('teacher/submissions/<uuid:pk>/auto-mark/', AutoMarkView.as_view(), name='teacher-submission-auto-mark'),

    # Attempts
    path('student/tests/', StudentTestListView.as_view(), name='student-test-list'),
    path('student/tests/<uuid:pk>/attempt/', AttemptView.as_view(), name='student-attempt'),
    path('student/tests/<uuid:pk>/submit/', SubmitView.as_view(), name='student-submit'),
    path('student/submissions/<uuid:pk>/', StudentResultView.as_view(), name='student-result'),

    # Analytics
    path('analytics/me/', StudentOverviewView.as_view(), name='analytics-me'),
    path('analytics/classes/<int:class_id>/students/<int:student_id>/', StudentAnalyticsForTeacherView.as_view(), name='analytics-class-student'),
    path('analytics/classes/<int:class_id>/<slug:section>/', ClassAnalyticsView.as_view(), name='analytics-class'),
]
