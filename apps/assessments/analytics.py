"""
Score aggregation and analytics.

Everything here is recomputed from graded Submission/Answer rows on every
call. A submission only contributes once is_graded is set, so answers that
are mid-grade are never read as final.

The loaders batch their queries (one for submissions, one for per-test
totals, one for answers); the aggregation helpers below them are pure
functions over plain records.
"""
import logging
from collections import defaultdict, namedtuple

from django.conf import settings
from django.db.models import Count, Sum

from apps.directory import adapter
from apps.directory.models import User
from core.exceptions import AuthorizationError, NotFoundError
from .models import Answer, Question, Submission, Test

logger = logging.getLogger(__name__)


GradedResult = namedtuple('GradedResult', [
    'submission_id', 'student_id', 'test_id', 'test_title', 'subject',
    'exam_type', 'test_created_at', 'marks_obtained', 'total_marks',
])

AnswerFact = namedtuple('AnswerFact', [
    'student_id', 'subject', 'chapter', 'topic', 'marks_awarded', 'marks_max',
])


def _setting(name, default):
    return getattr(settings, name, default)


def percentage(obtained, total):
    """
    Whole-number percentage, rounded half up, clamped to [0, 100].
    Returns 0 when there is nothing to score against.
    """
    if not total or total <= 0:
        return 0
    value = (200 * obtained + total) // (2 * total)
    return max(0, min(100, value))


# ==============================================
# LOADERS
# ==============================================
def load_graded_results(submissions):
    """GradedResult per graded submission in the given queryset."""
    rows = list(
        submissions.filter(is_graded=True)
        .select_related('test__grade_subject__subject', 'test__exam_type', 'test__school_class')
        .order_by('submitted_at')
    )
    test_ids = {row.test_id for row in rows}
    totals = dict(
        Question.objects.filter(test_id__in=test_ids)
        .values('test_id')
        .annotate(total=Sum('marks'))
        .values_list('test_id', 'total')
    )

    results = []
    for row in rows:
        names = adapter.describe_test(row.test)
        results.append(GradedResult(
            submission_id=row.id,
            student_id=row.student_id,
            test_id=row.test_id,
            test_title=row.test.title,
            subject=names['subject_name'],
            exam_type=names['exam_type_name'],
            test_created_at=row.test.created_at,
            marks_obtained=row.total_marks_obtained,
            total_marks=totals.get(row.test_id) or 0,
        ))
    return results


def load_graded_answers(submissions):
    """AnswerFact per answer row of the graded submissions in the queryset."""
    rows = (
        Answer.objects.filter(submission__in=submissions.filter(is_graded=True))
        .values_list(
            'submission__student_id',
            'question__test__grade_subject__subject__name',
            'question__chapter',
            'question__topic',
            'marks_awarded',
            'question__marks',
        )
    )
    return [
        AnswerFact(
            student_id=student_id,
            subject=subject or adapter.UNKNOWN_SUBJECT,
            chapter=chapter,
            topic=topic,
            marks_awarded=awarded,
            marks_max=marks_max,
        )
        for student_id, subject, chapter, topic, awarded, marks_max in rows
    ]


# ==============================================
# AGGREGATION
# ==============================================
def overall_percentage(results):
    obtained = sum(r.marks_obtained for r in results)
    total = sum(r.total_marks for r in results)
    return percentage(obtained, total)


def subject_averages(results):
    sums = defaultdict(lambda: [0, 0, 0])
    for r in results:
        bucket = sums[r.subject]
        bucket[0] += r.marks_obtained
        bucket[1] += r.total_marks
        bucket[2] += 1
    return [
        {'subject': subject, 'percentage': percentage(obtained, total), 'tests': count}
        for subject, (obtained, total, count) in sorted(sums.items())
    ]


def performance_trend(results):
    """
    One point per exam type, ordered by when that exam type first appears.
    A subject with no graded test under an exam type is simply absent from
    that point's scores.
    """
    first_seen = {}
    per_subject = defaultdict(lambda: defaultdict(lambda: [0, 0]))
    per_type = defaultdict(lambda: [0, 0])
    for r in results:
        if r.exam_type not in first_seen or r.test_created_at < first_seen[r.exam_type]:
            first_seen[r.exam_type] = r.test_created_at
        per_subject[r.exam_type][r.subject][0] += r.marks_obtained
        per_subject[r.exam_type][r.subject][1] += r.total_marks
        per_type[r.exam_type][0] += r.marks_obtained
        per_type[r.exam_type][1] += r.total_marks

    points = []
    for exam_type in sorted(first_seen, key=lambda name: (first_seen[name], name)):
        scores = {
            subject: percentage(obtained, total)
            for subject, (obtained, total) in sorted(per_subject[exam_type].items())
        }
        obtained, total = per_type[exam_type]
        points.append({
            'exam_type': exam_type,
            'percentage': percentage(obtained, total),
            'scores': scores,
        })
    return points


def _weakest(entries, threshold, limit):
    weak = [e for e in entries if e['avg_score'] < threshold]
    weak.sort(key=lambda e: (e['avg_score'], e['name']))
    return weak[:limit]


def chapter_topic_breakdown(facts, threshold=None, limit=None):
    """
    Per chapter and per topic: avg_score over marks awarded vs marks
    available, and the number of answers counted. Entries strictly below
    the threshold are repeated, lowest first, under weak_chapters /
    weak_topics.
    """
    if threshold is None:
        threshold = _setting('WEAK_AREA_THRESHOLD', 60)
    if limit is None:
        limit = _setting('WEAK_AREA_LIMIT', 3)

    chapters = defaultdict(lambda: [0, 0, 0])
    topics = defaultdict(lambda: [0, 0, 0])
    topic_chapters = defaultdict(set)
    for fact in facts:
        for bucket in (chapters[fact.chapter], topics[fact.topic]):
            bucket[0] += fact.marks_awarded
            bucket[1] += fact.marks_max
            bucket[2] += 1
        topic_chapters[fact.topic].add(fact.chapter)

    chapter_entries = [
        {'name': name, 'avg_score': percentage(awarded, maximum), 'total_questions': count}
        for name, (awarded, maximum, count) in sorted(chapters.items())
    ]
    topic_entries = [
        {
            'name': name,
            'avg_score': percentage(awarded, maximum),
            'total_questions': count,
            'chapters': sorted(topic_chapters[name]),
        }
        for name, (awarded, maximum, count) in sorted(topics.items())
    ]
    return {
        'chapters': chapter_entries,
        'topics': topic_entries,
        'weak_chapters': _weakest(chapter_entries, threshold, limit),
        'weak_topics': _weakest(topic_entries, threshold, limit),
    }


# ==============================================
# STUDENT VIEWS
# ==============================================
def student_overview(student):
    submissions = Submission.objects.filter(student=student)
    results = load_graded_results(submissions)
    averages = subject_averages(results)
    best = max(averages, key=lambda a: (a['percentage'], a['subject']), default=None)
    return {
        'overall_percentage': overall_percentage(results),
        'tests_graded': len(results),
        'tests_pending': submissions.filter(is_graded=False).count(),
        'best_subject': best,
        'subject_averages': averages,
        'trend': performance_trend(results),
        'breakdown': chapter_topic_breakdown(load_graded_answers(submissions)),
    }


# ==============================================
# CLASS VIEWS (teacher-facing)
# ==============================================
def authorize_class_access(teacher, class_id):
    adapter.resolve_class(class_id)
    if not getattr(teacher, 'is_teacher', False):
        raise AuthorizationError('Only teachers can view class analytics')
    if adapter.teaches_class(teacher, class_id):
        return
    if Test.objects.filter(school_class_id=class_id, teacher=teacher).exists():
        return
    logger.warning("Teacher %s denied analytics for class %s", teacher.pk, class_id)
    raise AuthorizationError('You are not assigned to this class')


def _class_submissions(class_id):
    return Submission.objects.filter(test__school_class_id=class_id)


def class_subject_averages(class_id, teacher):
    authorize_class_access(teacher, class_id)
    return subject_averages(load_graded_results(_class_submissions(class_id)))


def class_performance_trend(class_id, teacher):
    authorize_class_access(teacher, class_id)
    return performance_trend(load_graded_results(_class_submissions(class_id)))


def class_chapter_topic_analytics(class_id, teacher, subject=None):
    authorize_class_access(teacher, class_id)
    facts = load_graded_answers(_class_submissions(class_id))
    if subject:
        facts = [f for f in facts if f.subject == subject]
    return chapter_topic_breakdown(facts)


def class_student_scores(class_id, teacher):
    authorize_class_access(teacher, class_id)
    results = load_graded_results(_class_submissions(class_id))
    by_student = defaultdict(list)
    for r in results:
        by_student[r.student_id].append(r)

    students = User.objects.filter(role=User.ROLE_STUDENT, school_class_id=class_id)
    scores = [
        {
            'id': student.id,
            'name': student.get_full_name() or student.username,
            'avg_score': overall_percentage(by_student[student.id]),
            'tests_graded': len(by_student[student.id]),
        }
        for student in students
    ]
    scores.sort(key=lambda s: (-s['avg_score'], s['name']))
    return scores


def recent_tests_metrics(class_id, teacher, limit=None):
    authorize_class_access(teacher, class_id)
    if limit is None:
        limit = _setting('RECENT_TESTS_LIMIT', 5)

    tests = list(
        Test.objects.filter(school_class_id=class_id)
        .select_related('grade_subject__subject', 'exam_type', 'school_class')
        .prefetch_related('questions')
        .annotate(
            submission_count=Count('submissions', distinct=True),
        )
        .order_by('-created_at')[:limit]
    )
    results = load_graded_results(
        Submission.objects.filter(test__in=[t.pk for t in tests])
    )
    graded = defaultdict(list)
    for r in results:
        graded[r.test_id].append(r)

    metrics = []
    for test in tests:
        names = adapter.describe_test(test)
        metrics.append({
            'test_id': test.pk,
            'title': test.title,
            'subject': names['subject_name'],
            'exam_type': names['exam_type_name'],
            'total_marks': sum(q.marks for q in test.questions.all()),
            'submissions': test.submission_count,
            'graded': len(graded[test.pk]),
            'average_percentage': overall_percentage(graded[test.pk]),
            'created_at': test.created_at,
        })
    return metrics


def question_type_distribution(class_id, teacher):
    authorize_class_access(teacher, class_id)
    counts = dict(
        Question.objects.filter(test__school_class_id=class_id)
        .values('question_type')
        .annotate(count=Count('id'))
        .values_list('question_type', 'count')
    )
    return [
        {'type': value, 'label': label, 'count': counts[value]}
        for value, label in Question.QUESTION_TYPES
        if counts.get(value)
    ]


def student_analytics_for_teacher(student_id, class_id, teacher):
    authorize_class_access(teacher, class_id)
    student = User.objects.filter(
        pk=student_id, role=User.ROLE_STUDENT, school_class_id=class_id
    ).first()
    if student is None:
        raise NotFoundError(f'Student {student_id} is not in class {class_id}')

    class_results = load_graded_results(_class_submissions(class_id))
    student_results = [r for r in class_results if r.student_id == student.id]
    class_avgs = {a['subject']: a['percentage'] for a in subject_averages(class_results)}
    student_avgs = subject_averages(student_results)

    radar = [
        {
            'subject': a['subject'],
            'student': a['percentage'],
            'class_average': class_avgs.get(a['subject'], 0),
        }
        for a in student_avgs
    ]

    strong_at = _setting('STRENGTH_THRESHOLD', 75)
    weak_below = _setting('WEAK_AREA_THRESHOLD', 60)
    limit = _setting('WEAK_AREA_LIMIT', 3)
    strengths = sorted(
        (a for a in student_avgs if a['percentage'] >= strong_at),
        key=lambda a: (-a['percentage'], a['subject'])
    )[:limit]
    weaknesses = sorted(
        (a for a in student_avgs if a['percentage'] < weak_below),
        key=lambda a: (a['percentage'], a['subject'])
    )[:limit]

    facts = load_graded_answers(_class_submissions(class_id).filter(student=student))
    return {
        'student_id': student.id,
        'name': student.get_full_name() or student.username,
        'overall_percentage': overall_percentage(student_results),
        'radar': radar,
        'strengths': [
            {'subject': a['subject'], 'desc': f"Averages {a['percentage']}%"} for a in strengths
        ],
        'weaknesses': [
            {'subject': a['subject'], 'desc': f"Averages {a['percentage']}%"} for a in weaknesses
        ],
        'breakdown': chapter_topic_breakdown(facts),
    }
