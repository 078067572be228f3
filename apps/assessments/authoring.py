"""
Test authoring: create, revise, publish and delete tests.

Every write runs inside one transaction, so a failure part way through a
test's questions leaves nothing behind. Edits diff the incoming question
set against the stored one by each question's stable key: kept questions
are updated in place (their row ids, and so any Answer linkage, survive),
new keys are inserted and missing keys are deleted.

Once a test has submissions its question set is frozen: questions can be
reworded but not added, removed, retyped or have their marks dropped below
what has already been awarded.
"""
import logging

from django.db import DatabaseError, transaction
from django.db.models import Count, Max, Q

from core.exceptions import (
    AuthorizationError,
    ConflictError,
    PersistenceError,
    ValidationError,
)
from .lookups import get_or_not_found
from .models import Test, Question, Option
from .serializers import TestSpecSerializer, validate_payload

logger = logging.getLogger(__name__)


def _require_teacher(user):
    if not getattr(user, 'is_teacher', False):
        raise AuthorizationError('Only teachers can author tests')


def hydrated_tests():
    return Test.objects.select_related(
        'school_class', 'grade_subject__subject', 'exam_type'
    ).prefetch_related('questions__options')


def get_owned_test(test_id, teacher, queryset=None):
    """Fetch a test and check that `teacher` owns it."""
    queryset = queryset if queryset is not None else Test.objects.all()
    test = get_or_not_found(queryset, test_id, 'Test')
    if test.teacher_id != getattr(teacher, 'pk', None):
        logger.warning("User %s denied access to test %s", getattr(teacher, 'pk', None), test_id)
        raise AuthorizationError('You do not own this test')
    return test


def _create_question(test, spec, order):
    question = Question(
        test=test,
        text=spec['text'],
        question_type=spec['question_type'],
        marks=spec['marks'],
        chapter=spec['chapter'],
        topic=spec['topic'],
        correct_option_index=spec['correct_option_index'],
        expected_answer=spec['expected_answer'],
        order=order,
    )
    if spec.get('key'):
        question.key = spec['key']
    question.save()
    return question


def _write_options(questions_with_specs):
    """Bulk insert the options of every MCQ question in one round trip."""
    options = [
        Option(question=question, index=index, text=text)
        for question, spec in questions_with_specs
        if spec['question_type'] == Question.MCQ
        for index, text in enumerate(spec['options'])
    ]
    Option.objects.bulk_create(options)


def _run_atomically(operation, description):
    try:
        with transaction.atomic():
            return operation()
    except DatabaseError as exc:
        logger.exception("Failed to %s", description)
        raise PersistenceError(f'Failed to {description}') from exc


def create_test(teacher, payload):
    _require_teacher(teacher)
    spec = validate_payload(TestSpecSerializer, payload)

    def write():
        test = Test.objects.create(
            title=spec['title'],
            description=spec['description'],
            duration_minutes=spec['duration_minutes'],
            is_published=spec['is_published'],
            school_class_id=spec['class_id'],
            grade_subject_id=spec['grade_subject_id'],
            exam_type_id=spec['exam_type_id'],
            due_date=spec['due_date'],
            teacher=teacher,
        )
        created = [
            (_create_question(test, question_spec, order), question_spec)
            for order, question_spec in enumerate(spec['questions'], start=1)
        ]
        _write_options(created)
        return test

    test = _run_atomically(write, 'create test')
    logger.info(
        "Teacher %s created test %s with %d questions",
        teacher.pk, test.pk, len(spec['questions'])
    )
    return hydrated_tests().get(pk=test.pk)


def _check_frozen_question_set(test, existing, incoming_keys, spec):
    """Edits a test with submissions may not make."""
    problems = []
    if spec['class_id'] != test.school_class_id:
        problems.append('class cannot change once students have submitted')

    existing_keys = set(existing)
    if existing_keys - incoming_keys:
        problems.append('questions cannot be removed once students have submitted')
    # Keyless or unmatched questions would be inserted without Answer rows
    if any(existing.get(q.get('key')) is None for q in spec['questions']):
        problems.append('questions cannot be added once students have submitted')

    awarded = dict(
        Question.objects.filter(test=test)
        .annotate(max_awarded=Max('student_answers__marks_awarded'))
        .values_list('key', 'max_awarded')
    )
    for question_spec in spec['questions']:
        question = existing.get(question_spec.get('key'))
        if question is None:
            continue
        if question.question_type != question_spec['question_type']:
            problems.append(f'question {question.key} cannot change type')
        if question_spec['marks'] < (awarded.get(question.key) or 0):
            problems.append(f'question {question.key} marks fall below marks already awarded')

    if problems:
        logger.warning("Rejected edit of test %s: %s", test.pk, '; '.join(problems))
        raise ConflictError('Test already has submissions', detail=problems)


def update_test(test_id, teacher, payload):
    _require_teacher(teacher)
    spec = validate_payload(TestSpecSerializer, payload)
    test = get_owned_test(test_id, teacher)

    def write():
        locked = Test.objects.select_for_update().get(pk=test.pk)
        existing = {q.key: q for q in locked.questions.all()}
        # Keys that match nothing stored are treated as new questions
        incoming_keys = {q['key'] for q in spec['questions'] if q.get('key')}
        if locked.submissions.exists():
            _check_frozen_question_set(locked, existing, incoming_keys, spec)

        locked.title = spec['title']
        locked.description = spec['description']
        locked.duration_minutes = spec['duration_minutes']
        locked.is_published = spec['is_published']
        locked.school_class_id = spec['class_id']
        locked.grade_subject_id = spec['grade_subject_id']
        locked.exam_type_id = spec['exam_type_id']
        locked.due_date = spec['due_date']
        locked.save()

        removed = [q.pk for key, q in existing.items() if key not in incoming_keys]
        if removed:
            Question.objects.filter(pk__in=removed).delete()

        kept, created = [], []
        for order, question_spec in enumerate(spec['questions'], start=1):
            question = existing.get(question_spec.get('key'))
            if question is None:
                created.append((_create_question(locked, question_spec, order), question_spec))
                continue
            question.text = question_spec['text']
            question.question_type = question_spec['question_type']
            question.marks = question_spec['marks']
            question.chapter = question_spec['chapter']
            question.topic = question_spec['topic']
            question.correct_option_index = question_spec['correct_option_index']
            question.expected_answer = question_spec['expected_answer']
            question.order = order
            question.save()
            kept.append((question, question_spec))

        Option.objects.filter(question__in=[q for q, _ in kept]).delete()
        _write_options(kept + created)
        return len(kept), len(created), len(removed)

    kept, created, removed = _run_atomically(write, 'update test')
    logger.info(
        "Teacher %s updated test %s (kept %d, added %d, removed %d questions)",
        teacher.pk, test.pk, kept, created, removed
    )
    return hydrated_tests().get(pk=test.pk)


def set_published(test_id, teacher, is_published):
    _require_teacher(teacher)
    test = get_owned_test(test_id, teacher)
    if is_published and not test.questions.exists():
        raise ValidationError('A test needs at least one question to be published.')

    def write():
        Test.objects.filter(pk=test.pk, teacher=teacher).update(is_published=is_published)

    _run_atomically(write, 'change publication')
    logger.info("Teacher %s set test %s published=%s", teacher.pk, test.pk, is_published)
    return hydrated_tests().get(pk=test.pk)


def delete_test(test_id, teacher):
    _require_teacher(teacher)
    test = get_owned_test(test_id, teacher)
    _run_atomically(test.delete, 'delete test')
    logger.info("Teacher %s deleted test %s", teacher.pk, test_id)


def get_test_for_teacher(test_id, teacher):
    _require_teacher(teacher)
    return get_owned_test(test_id, teacher, queryset=hydrated_tests())


def list_teacher_tests(teacher):
    _require_teacher(teacher)
    return (
        hydrated_tests()
        .filter(teacher=teacher)
        .annotate(
            submission_count=Count('submissions', distinct=True),
            pending_count=Count(
                'submissions',
                filter=Q(submissions__is_graded=False),
                distinct=True
            ),
        )
    )
