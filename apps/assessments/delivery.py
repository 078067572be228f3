"""
Attempt delivery: what a student may see of a test, before and after
attempting it.

The student projection of a question (StudentQuestionSerializer) is a
separate view from the teacher one and never carries the answer key.
"""
import logging

from core.exceptions import AuthorizationError
from .lookups import get_or_not_found
from .models import Submission, Test
from .serializers import (
    StudentResultSerializer,
    StudentTestListSerializer,
    StudentTestSerializer,
    SubmissionSummarySerializer,
)

logger = logging.getLogger(__name__)


def _student_tests():
    return Test.objects.select_related(
        'school_class', 'grade_subject__subject', 'exam_type'
    ).prefetch_related('questions__options')


def authorize_attempt(test_id, student, queryset=None):
    """
    Return the published test `student` may attempt.

    Unpublished tests look exactly like missing ones to students.
    """
    queryset = queryset if queryset is not None else Test.objects.all()
    test = get_or_not_found(queryset.filter(is_published=True), test_id, 'Test')
    if not getattr(student, 'is_student', False) or student.school_class_id != test.school_class_id:
        logger.warning("User %s denied attempt on test %s: not enrolled", student.pk, test_id)
        raise AuthorizationError('You are not enrolled in the class this test belongs to')
    return test


def get_attempt(test_id, student):
    """Sanitized test plus the student's prior submission, if any."""
    test = authorize_attempt(test_id, student, queryset=_student_tests())
    prior = Submission.objects.filter(test=test, student=student).first()
    return {
        'test': StudentTestSerializer(test).data,
        'submission': SubmissionSummarySerializer(prior).data if prior else None,
    }


def list_student_tests(student):
    if not getattr(student, 'is_student', False):
        raise AuthorizationError('Only students have a test list')
    if student.school_class_id is None:
        return []

    tests = _student_tests().filter(school_class_id=student.school_class_id, is_published=True)
    states = {
        row.test_id: row.status
        for row in Submission.objects.filter(student=student, test__in=tests)
    }
    return StudentTestListSerializer(
        tests, many=True, context={'attempt_states': states}
    ).data


def get_result(submission_id, student):
    submission = get_or_not_found(
        Submission.objects.select_related('test').prefetch_related('answers__question'),
        submission_id,
        'Submission'
    )
    if submission.student_id != student.pk:
        raise AuthorizationError('This submission belongs to another student')
    return StudentResultSerializer(submission).data
