"""
Grading workflow.

Architecture:
- BaseGrader: interface for marking suggestions
- ObjectiveGrader: exact match of MCQ selections against the answer key
- GradingService: teacher-driven grading with transaction safety

Marks are always assigned on behalf of the owning teacher. A submission
moves pending -> graded on finalize; there is no way back to pending.
Re-grading an answer of a graded submission recomputes its total in the
same transaction so the stored total never drifts from its answers.
"""
import logging
from abc import ABC, abstractmethod

from django.db import DatabaseError, transaction
from django.db.models import Sum
from django.utils import timezone

from core.exceptions import (
    AuthorizationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from .authoring import get_owned_test
from .lookups import as_uuid, get_or_not_found
from .models import Answer, Submission

logger = logging.getLogger(__name__)


class BaseGrader(ABC):
    """
    Strategy interface for marking suggestions.
    Returns the marks to award, or None when the answer needs a human.
    """
    @abstractmethod
    def suggest_marks(self, question, answer):
        pass


class ObjectiveGrader(BaseGrader):
    """Full marks for the correct MCQ option, 0 otherwise (unanswered included)."""

    def suggest_marks(self, question, answer):
        if not question.is_mcq:
            return None
        is_correct = (
            answer.selected_option_index is not None
            and answer.selected_option_index == question.correct_option_index
        )
        return question.marks if is_correct else 0


class GradingService:
    """Orchestrates teacher grading of one submission at a time."""

    def __init__(self, grader=None):
        self.grader = grader or ObjectiveGrader()

    def _owned_submission(self, submission_id, teacher):
        submission = get_or_not_found(
            Submission.objects.select_related('test'), submission_id, 'Submission'
        )
        if submission.test.teacher_id != getattr(teacher, 'pk', None):
            logger.warning(
                "User %s denied grading of submission %s",
                getattr(teacher, 'pk', None), submission_id
            )
            raise AuthorizationError('You do not own the test this submission belongs to')
        return submission

    @staticmethod
    def _recompute_total(submission):
        total = submission.answers.aggregate(total=Sum('marks_awarded'))['total'] or 0
        submission.total_marks_obtained = total
        return total

    @staticmethod
    def _apply(answer, marks, feedback):
        if not 0 <= marks <= answer.question.marks:
            raise ValidationError(
                f'Marks must be between 0 and {answer.question.marks}',
                detail={str(answer.question_id): marks}
            )
        answer.marks_awarded = marks
        if feedback is not None:
            answer.feedback = feedback
        answer.graded_at = timezone.now()
        answer.save(update_fields=['marks_awarded', 'feedback', 'graded_at'])

    def _locked_answers(self, submission):
        answers = (
            Answer.objects.select_for_update()
            .filter(submission=submission)
            .select_related('question')
        )
        return {answer.question_id: answer for answer in answers}

    def _write(self, operation, description):
        try:
            with transaction.atomic():
                return operation()
        except DatabaseError as exc:
            logger.exception("Failed to %s", description)
            raise PersistenceError(f'Failed to {description}') from exc

    def grade_answer(self, submission_id, question_id, marks, teacher, feedback=None):
        submission = self._owned_submission(submission_id, teacher)

        def write():
            answers = self._locked_answers(submission)
            answer = answers.get(as_uuid(question_id))
            if answer is None:
                raise NotFoundError(f'Question {question_id} is not part of this submission')
            self._apply(answer, marks, feedback)
            if submission.is_graded:
                self._recompute_total(submission)
                submission.save(update_fields=['total_marks_obtained'])
            return answer

        answer = self._write(write, 'grade answer')
        logger.info(
            "Teacher %s awarded %d marks on submission %s question %s",
            teacher.pk, marks, submission.pk, question_id
        )
        return answer

    def grade_submission(self, submission_id, grades, teacher, finalize=True):
        """
        Apply several grades in one transaction, optionally finalizing.
        `grades` items carry question_id, marks and optional feedback.
        """
        submission = self._owned_submission(submission_id, teacher)

        def write():
            answers = self._locked_answers(submission)
            for grade in grades:
                answer = answers.get(as_uuid(grade['question_id']))
                if answer is None:
                    raise NotFoundError(
                        f"Question {grade['question_id']} is not part of this submission"
                    )
                self._apply(answer, grade['marks'], grade.get('feedback'))
            if finalize:
                self._finalize(submission)
            elif submission.is_graded:
                self._recompute_total(submission)
                submission.save(update_fields=['total_marks_obtained'])
            return submission

        self._write(write, 'grade submission')
        logger.info(
            "Teacher %s graded %d answers on submission %s (finalize=%s)",
            teacher.pk, len(grades), submission.pk, finalize
        )
        return submission

    def _finalize(self, submission):
        self._recompute_total(submission)
        submission.is_graded = True
        submission.graded_at = timezone.now()
        submission.save(update_fields=['total_marks_obtained', 'is_graded', 'graded_at'])

    def finalize_grading(self, submission_id, teacher):
        """Recompute the total from current answers and mark graded. Idempotent."""
        submission = self._owned_submission(submission_id, teacher)

        def write():
            Submission.objects.select_for_update().filter(pk=submission.pk).first()
            self._finalize(submission)
            return submission

        self._write(write, 'finalize grading')
        logger.info(
            "Teacher %s finalized submission %s: %d marks",
            teacher.pk, submission.pk, submission.total_marks_obtained
        )
        return submission

    def auto_mark_objective(self, submission_id, teacher):
        """
        Write the grader's suggestions for every answer it can mark.
        Does not finalize; free-text answers are left untouched.
        """
        submission = self._owned_submission(submission_id, teacher)

        def write():
            marked = 0
            for answer in self._locked_answers(submission).values():
                marks = self.grader.suggest_marks(answer.question, answer)
                if marks is None:
                    continue
                self._apply(answer, marks, None)
                marked += 1
            if submission.is_graded:
                self._recompute_total(submission)
                submission.save(update_fields=['total_marks_obtained'])
            return marked

        marked = self._write(write, 'auto-mark submission')
        logger.info("Teacher %s auto-marked %d answers on submission %s", teacher.pk, marked, submission.pk)
        return submission

    def list_submissions(self, test_id, teacher):
        test = get_owned_test(test_id, teacher)
        return test.submissions.select_related('student').order_by('submitted_at')

    def get_submission(self, submission_id, teacher):
        self._owned_submission(submission_id, teacher)
        return (
            Submission.objects.select_related('student', 'test')
            .prefetch_related('answers__question__options')
            .get(pk=submission_id)
        )
