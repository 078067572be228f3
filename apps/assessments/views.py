from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from . import analytics, authoring, delivery, submissions
from .grading_service import GradingService
from .permissions import IsStudent, IsTeacher
from .serializers import (
    GradeAnswerSerializer,
    GradeSubmissionSerializer,
    PublishSerializer,
    SubmissionSummarySerializer,
    TeacherAnswerSerializer,
    TeacherSubmissionDetailSerializer,
    TeacherSubmissionListSerializer,
    TeacherTestDetailSerializer,
    TeacherTestListSerializer,
    validate_payload,
)


# ==============================================
# AUTHORING
# ==============================================
@extend_schema(tags=['Authoring'])
class TeacherTestListView(APIView):
    permission_classes = [IsAuthenticated, IsTeacher]

    def get(self, request):
        tests = authoring.list_teacher_tests(request.user)
        return Response(TeacherTestListSerializer(tests, many=True).data)

    def post(self, request):
        test = authoring.create_test(request.user, request.data)
        return Response(
            TeacherTestDetailSerializer(test).data,
            status=status.HTTP_201_CREATED
        )


@extend_schema(tags=['Authoring'])
class TeacherTestDetailView(APIView):
    permission_classes = [IsAuthenticated, IsTeacher]

    def get(self, request, pk):
        test = authoring.get_test_for_teacher(pk, request.user)
        return Response(TeacherTestDetailSerializer(test).data)

    def put(self, request, pk):
        test = authoring.update_test(pk, request.user, request.data)
        return Response(TeacherTestDetailSerializer(test).data)

    def delete(self, request, pk):
        authoring.delete_test(pk, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(tags=['Authoring'])
class TestPublishView(APIView):
    permission_classes = [IsAuthenticated, IsTeacher]

    def post(self, request, pk):
        data = validate_payload(PublishSerializer, request.data)
        test = authoring.set_published(pk, request.user, data['is_published'])
        return Response(TeacherTestDetailSerializer(test).data)


# ==============================================
# GRADING
# ==============================================
@extend_schema(tags=['Grading'])
class TestSubmissionListView(APIView):
    permission_classes = [IsAuthenticated, IsTeacher]

    def get(self, request, pk):
        rows = GradingService().list_submissions(pk, request.user)
        return Response(TeacherSubmissionListSerializer(rows, many=True).data)


@extend_schema(tags=['Grading'])
class TeacherSubmissionDetailView(APIView):
    permission_classes = [IsAuthenticated, IsTeacher]

    def get(self, request, pk):
        submission = GradingService().get_submission(pk, request.user)
        return Response(TeacherSubmissionDetailSerializer(submission).data)


@extend_schema(tags=['Grading'])
class GradeAnswerView(APIView):
    permission_classes = [IsAuthenticated, IsTeacher]

    def put(self, request, pk, question_id):
        data = validate_payload(GradeAnswerSerializer, request.data)
        answer = GradingService().grade_answer(
            pk, question_id, data['marks'], request.user, feedback=data['feedback']
        )
        return Response(TeacherAnswerSerializer(answer).data)


@extend_schema(tags=['Grading'])
class GradeSubmissionView(APIView):
    permission_classes = [IsAuthenticated, IsTeacher]

    def post(self, request, pk):
        data = validate_payload(GradeSubmissionSerializer, request.data)
        service = GradingService()
        service.grade_submission(pk, data['grades'], request.user, finalize=data['finalize'])
        submission = service.get_submission(pk, request.user)
        return Response(TeacherSubmissionDetailSerializer(submission).data)


@extend_schema(tags=['Grading'])
class FinalizeGradingView(APIView):
    permission_classes = [IsAuthenticated, IsTeacher]

    def post(self, request, pk):
        service = GradingService()
        service.finalize_grading(pk, request.user)
        submission = service.get_submission(pk, request.user)
        return Response(TeacherSubmissionDetailSerializer(submission).data)


@extend_schema(tags=['Grading'])
class AutoMarkView(APIView):
    permission_classes = [IsAuthenticated, IsTeacher]

    def post(self, request, pk):
        service = GradingService()
        service.auto_mark_objective(pk, request.user)
        submission = service.get_submission(pk, request.user)
        return Response(TeacherSubmissionDetailSerializer(submission).data)


# ==============================================
# STUDENT
# ==============================================
@extend_schema(tags=['Attempts'])
class StudentTestListView(APIView):
    permission_classes = [IsAuthenticated, IsStudent]

    def get(self, request):
        return Response(delivery.list_student_tests(request.user))


@extend_schema(tags=['Attempts'])
class AttemptView(APIView):
    """
    Sanitized test for the requesting student.

    Authorization is enforced by the delivery service, not by a role
    permission, so a student of another class gets a 403 with a reason.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        return Response(delivery.get_attempt(pk, request.user))


@extend_schema(tags=['Attempts'])
class SubmitView(APIView):
    """
    Identity is inferred from request.user; the payload carries only
    answers and time taken.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        submission = submissions.submit(pk, request.user, request.data)
        return Response({
            **SubmissionSummarySerializer(submission).data,
            'message': 'Submission received and awaiting grading'
        }, status=status.HTTP_201_CREATED)


@extend_schema(tags=['Attempts'])
class StudentResultView(APIView):
    permission_classes = [IsAuthenticated, IsStudent]

    def get(self, request, pk):
        return Response(delivery.get_result(pk, request.user))


# ==============================================
# ANALYTICS
# ==============================================
@extend_schema(tags=['Analytics'])
class StudentOverviewView(APIView):
    permission_classes = [IsAuthenticated, IsStudent]

    def get(self, request):
        return Response(analytics.student_overview(request.user))


@extend_schema(tags=['Analytics'])
class ClassAnalyticsView(APIView):
    """All class-level views for one class, keyed by section."""
    permission_classes = [IsAuthenticated, IsTeacher]

    SECTIONS = {
        'subject-averages': analytics.class_subject_averages,
        'trend': analytics.class_performance_trend,
        'students': analytics.class_student_scores,
        'recent-tests': analytics.recent_tests_metrics,
        'question-types': analytics.question_type_distribution,
    }

    def get(self, request, class_id, section):
        if section == 'chapters':
            data = analytics.class_chapter_topic_analytics(
                class_id, request.user, subject=request.query_params.get('subject')
            )
            return Response(data)
        handler = self.SECTIONS.get(section)
        if handler is None:
            return Response(
                {'error': f'Unknown analytics section: {section}'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(handler(class_id, request.user))


@extend_schema(tags=['Analytics'])
class StudentAnalyticsForTeacherView(APIView):
    permission_classes = [IsAuthenticated, IsTeacher]

    def get(self, request, class_id, student_id):
        return Response(
            analytics.student_analytics_for_teacher(student_id, class_id, request.user)
        )
