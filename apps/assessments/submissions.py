"""
Submission recorder.

Answers are stored unscored: every question of the test gets exactly one
Answer row with marks_awarded=0, and the submission starts pending.
Scoring belongs to the grading workflow alone.
"""
import logging

from django.db import DatabaseError, IntegrityError, transaction

from core.exceptions import ConflictError, PersistenceError, ValidationError
from .delivery import authorize_attempt
from .models import Answer, Submission
from .serializers import SubmissionCreateSerializer, validate_payload

logger = logging.getLogger(__name__)


def _answer_for(question, payload, submission):
    answer = Answer(submission=submission, question=question)
    if payload is None:
        return answer

    if question.is_mcq:
        selected = payload.get('selected_option_index')
        option_count = len(question.options.all())
        if selected is not None and selected >= option_count:
            raise ValidationError(
                'Invalid input',
                detail={str(question.pk): f'selected_option_index must be below {option_count}'}
            )
        answer.selected_option_index = selected
    else:
        text = payload.get('free_text_answer')
        answer.free_text_answer = text.strip() if text and text.strip() else None
    return answer


def submit(test_id, student, payload):
    data = validate_payload(SubmissionCreateSerializer, payload)
    test = authorize_attempt(test_id, student)

    # Fast path only; the unique constraint below is the real guard
    if Submission.objects.filter(test=test, student=student).exists():
        raise ConflictError('You have already submitted this test')

    questions = list(test.questions.prefetch_related('options').order_by('order'))
    # Unknown question ids are ignored
    by_question = {a['question_id']: a for a in data['answers']}

    try:
        with transaction.atomic():
            submission = Submission(
                test=test,
                student=student,
                time_taken_seconds=data['time_taken_seconds'],
            )
            answers = [
                _answer_for(question, by_question.get(question.pk), submission)
                for question in questions
            ]
            submission.save()
            Answer.objects.bulk_create(answers)
    except IntegrityError as exc:
        logger.warning("Duplicate submission for test %s by student %s", test.pk, student.pk)
        raise ConflictError('You have already submitted this test') from exc
    except DatabaseError as exc:
        logger.exception("Failed to record submission for test %s", test.pk)
        raise PersistenceError('Failed to record submission') from exc

    logger.info(
        "Student %s submitted test %s (%d answers)",
        student.pk, test.pk, len(answers)
    )
    return submission
