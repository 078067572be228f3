from django.contrib.auth import authenticate
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from . import adapter


@extend_schema(tags=['Authentication'])
class LoginView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        username = request.data.get('username')
        password = request.data.get('password')

        if not username or not password:
            return Response(
                {'error': 'Username and password required'},
                status=status.HTTP_400_BAD_REQUEST
            )

        user = authenticate(username=username, password=password)

        if user:
            token, _ = Token.objects.get_or_create(user=user)
            return Response({
                'token': token.key,
                **adapter.current_identity(user),
            })

        return Response(
            {'error': 'Invalid credentials'},
            status=status.HTTP_401_UNAUTHORIZED
        )


@extend_schema(tags=['Authentication'])
class MeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(adapter.current_identity(request.user))


@extend_schema(tags=['Directory'])
class ClassDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        return Response(adapter.resolve_class(pk))


@extend_schema(tags=['Directory'])
class GradeSubjectListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, grade_id):
        return Response(adapter.resolve_subjects_for_grade(grade_id))


@extend_schema(tags=['Directory'])
class ExamTypeListView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(adapter.resolve_exam_types())


@extend_schema(tags=['Directory'])
class MyClassesView(APIView):
    """Classes assigned to the requesting teacher."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(adapter.get_teacher_classes(request.user))
