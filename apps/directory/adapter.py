"""
Directory Adapter: read-only lookups of classes, curriculum subjects and
exam types, plus the identity seam used by the assessment services.

Every relation that crosses into the engine goes through one_or_none(),
so callers never care whether a related record arrived as an instance, a
dict, a one-element list or a related manager.
"""
import logging

from django.db.models import Manager, QuerySet

from core.exceptions import NotFoundError
from .models import ExamType, GradeLevel, GradeSubject, SchoolClass, TeacherClass

logger = logging.getLogger(__name__)

UNKNOWN_CLASS = 'Unknown Class'
UNKNOWN_GRADE = 'Unknown Grade'
UNKNOWN_SUBJECT = 'Unknown Subject'
UNKNOWN_EXAM_TYPE = 'Unknown Exam Type'


def one_or_none(value):
    """
    Normalize a related record to a single record or None.

    Accepts None, a record (model instance or dict), a list/tuple of
    records, or a related manager/queryset. Only the first element of a
    collection is taken.
    """
    if value is None:
        return None
    if isinstance(value, (Manager, QuerySet)):
        return value.all().first()
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _field(record, name, default=None):
    if record is None:
        return default
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def name_of(value, sentinel):
    """Name of a possibly absent related record, or the sentinel."""
    record = one_or_none(value)
    return _field(record, 'name') or sentinel


def _class_record(school_class):
    grade = one_or_none(_field(school_class, 'grade_level'))
    return {
        'id': _field(school_class, 'id'),
        'name': _field(school_class, 'name') or UNKNOWN_CLASS,
        'grade_id': _field(grade, 'id'),
        'grade_name': _field(grade, 'name') or UNKNOWN_GRADE,
    }


def _subject_record(grade_subject):
    return {
        'id': _field(grade_subject, 'id'),
        'name': name_of(_field(grade_subject, 'subject'), UNKNOWN_SUBJECT),
    }


def resolve_class(class_id):
    school_class = (
        SchoolClass.objects.select_related('grade_level')
        .filter(pk=class_id)
        .first()
    )
    if school_class is None:
        raise NotFoundError(f'Class {class_id} does not exist')
    return _class_record(school_class)


def resolve_subjects_for_grade(grade_id):
    if not GradeLevel.objects.filter(pk=grade_id).exists():
        raise NotFoundError(f'Grade {grade_id} does not exist')
    rows = GradeSubject.objects.filter(grade_level_id=grade_id).select_related('subject')
    subjects = [_subject_record(row) for row in rows]
    return sorted(subjects, key=lambda s: s['name'])


def resolve_grade_subject(grade_subject_id):
    row = (
        GradeSubject.objects.select_related('subject', 'grade_level')
        .filter(pk=grade_subject_id)
        .first()
    )
    if row is None:
        raise NotFoundError(f'Subject {grade_subject_id} does not exist')
    record = _subject_record(row)
    record['grade_id'] = row.grade_level_id
    return record


def resolve_exam_types():
    return [{'id': et.id, 'name': et.name} for et in ExamType.objects.all()]


def resolve_exam_type(exam_type_id):
    exam_type = ExamType.objects.filter(pk=exam_type_id).first()
    if exam_type is None:
        raise NotFoundError(f'Exam type {exam_type_id} does not exist')
    return {'id': exam_type.id, 'name': exam_type.name}


def describe_test(test):
    """Resolved display names for a test's class, subject and exam type."""
    grade_subject = one_or_none(test.grade_subject)
    return {
        'class_name': name_of(test.school_class, UNKNOWN_CLASS),
        'subject_name': name_of(_field(grade_subject, 'subject'), UNKNOWN_SUBJECT),
        'exam_type_name': name_of(test.exam_type, UNKNOWN_EXAM_TYPE),
    }


def get_teacher_classes(teacher):
    assignments = (
        TeacherClass.objects.filter(teacher=teacher)
        .select_related('school_class__grade_level')
    )
    classes = []
    for assignment in assignments:
        school_class = one_or_none(assignment.school_class)
        if school_class is None:
            continue
        record = _class_record(school_class)
        classes.append({
            'class_id': record['id'],
            'class_name': record['name'],
            'grade_id': record['grade_id'],
            'grade_name': record['grade_name'],
        })
    return classes


def teaches_class(teacher, class_id):
    return TeacherClass.objects.filter(teacher=teacher, school_class_id=class_id).exists()


def current_identity(user):
    """The identity record the engine authorizes against."""
    return {
        'id': user.id,
        'role': user.role,
        'class_id': user.school_class_id,
        'school_id': user.school_id,
    }
