"""
Teacher grading workflow and the objective grader.
"""
from django.test import TestCase

from apps.assessments import authoring, delivery, submissions
from apps.assessments.grading_service import GradingService, ObjectiveGrader
from apps.assessments.models import Answer, Question
from apps.assessments.serializers import TeacherSubmissionDetailSerializer
from core.exceptions import AuthorizationError, NotFoundError, ValidationError
from .fixtures import AssessmentFixtures, free_text, mcq


class ObjectiveGraderTestCase(TestCase):
    """Test grading algorithms."""

    def setUp(self):
        self.grader = ObjectiveGrader()
        self.question = Question(
            question_type=Question.MCQ, marks=4, correct_option_index=2
        )

    def _answer(self, selected):
        return Answer(question=self.question, selected_option_index=selected)

    def test_exact_match_earns_full_marks(self):
        self.assertEqual(self.grader.suggest_marks(self.question, self._answer(2)), 4)

    def test_wrong_or_missing_selection_earns_nothing(self):
        self.assertEqual(self.grader.suggest_marks(self.question, self._answer(0)), 0)
        self.assertEqual(self.grader.suggest_marks(self.question, self._answer(None)), 0)

    def test_free_text_needs_a_teacher(self):
        essay = Question(question_type=Question.ESSAY, marks=10)
        self.assertIsNone(self.grader.suggest_marks(essay, self._answer(None)))


class GradingServiceTestCase(AssessmentFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.service = GradingService()
        self.test = self.make_test([
            mcq('Q1', marks=5), free_text('Q2', marks=5), free_text('Q3', marks=5),
        ])
        self.q1, self.q2, self.q3 = self.test.questions.all()
        self.submission = submissions.submit(self.test.id, self.student, {'answers': [
            {'question_id': str(self.q1.id), 'selected_option_index': 1},
            {'question_id': str(self.q2.id), 'free_text_answer': 'Something'},
        ]})

    def _grades(self, *marks):
        return [
            {'question_id': q.id, 'marks': m, 'feedback': ''}
            for q, m in zip((self.q1, self.q2, self.q3), marks)
        ]

    def test_partial_score_rounds_to_whole_percent(self):
        self.service.grade_submission(self.submission.id, self._grades(5, 0, 0), self.teacher)

        result = delivery.get_result(self.submission.id, self.student)
        self.assertEqual(result['status'], 'graded')
        self.assertEqual(result['total_marks'], 15)
        self.assertEqual(result['score'], {'marks_obtained': 5, 'percentage': 33})
        self.assertEqual(result['answers'][0]['correct_option_index'], 1)
        self.assertEqual([a['is_answered'] for a in result['answers']], [True, True, False])

    def test_marks_outside_bounds_are_rejected(self):
        with self.assertRaises(ValidationError):
            self.service.grade_answer(self.submission.id, self.q2.id, 6, self.teacher)
        with self.assertRaises(ValidationError):
            self.service.grade_answer(self.submission.id, self.q2.id, -1, self.teacher)
        self.assertEqual(self.submission.answers.get(question=self.q2).marks_awarded, 0)

    def test_bulk_grade_is_all_or_nothing(self):
        with self.assertRaises(ValidationError):
            self.service.grade_submission(self.submission.id, self._grades(5, 9, 0), self.teacher)

        self.submission.refresh_from_db()
        self.assertFalse(self.submission.is_graded)
        self.assertEqual(self.submission.answers.get(question=self.q1).marks_awarded, 0)

    def test_grading_without_finalize_stays_pending(self):
        self.service.grade_submission(
            self.submission.id, self._grades(5, 3), self.teacher, finalize=False
        )
        self.submission.refresh_from_db()
        self.assertFalse(self.submission.is_graded)
        self.assertEqual(self.submission.total_marks_obtained, 0)

    def test_finalize_is_idempotent(self):
        self.service.grade_answer(self.submission.id, self.q2.id, 4, self.teacher, feedback='Good')
        self.service.finalize_grading(self.submission.id, self.teacher)
        self.service.finalize_grading(self.submission.id, self.teacher)

        self.submission.refresh_from_db()
        self.assertTrue(self.submission.is_graded)
        self.assertEqual(self.submission.total_marks_obtained, 4)
        self.assertEqual(self.submission.answers.get(question=self.q2).feedback, 'Good')

    def test_regrade_after_finalize_updates_total(self):
        self.service.grade_submission(self.submission.id, self._grades(5, 2, 0), self.teacher)
        self.service.grade_answer(self.submission.id, self.q3.id, 3, self.teacher)

        self.submission.refresh_from_db()
        self.assertTrue(self.submission.is_graded)
        self.assertEqual(self.submission.total_marks_obtained, 10)

    def test_auto_mark_scores_only_objective_answers(self):
        self.service.auto_mark_objective(self.submission.id, self.teacher)

        marks = {a.question_id: a.marks_awarded for a in self.submission.answers.all()}
        self.assertEqual(marks[self.q1.id], 5)
        self.assertEqual(marks[self.q2.id], 0)
        self.submission.refresh_from_db()
        self.assertFalse(self.submission.is_graded)

    def test_only_owning_teacher_grades(self):
        with self.assertRaises(AuthorizationError):
            self.service.grade_answer(self.submission.id, self.q2.id, 1, self.other_teacher)
        with self.assertRaises(AuthorizationError):
            self.service.finalize_grading(self.submission.id, self.other_teacher)

    def test_question_outside_submission_is_not_found(self):
        other = self.make_test([mcq('Elsewhere')])
        with self.assertRaises(NotFoundError):
            self.service.grade_answer(
                self.submission.id, other.questions.get().id, 1, self.teacher
            )

    def test_grading_survives_unpublishing(self):
        authoring.set_published(self.test.id, self.teacher, False)
        self.service.grade_submission(self.submission.id, self._grades(5, 5, 5), self.teacher)
        self.submission.refresh_from_db()
        self.assertEqual(self.submission.total_marks_obtained, 15)

    def test_grading_deleted_test_is_not_found(self):
        submission_id = self.submission.id
        authoring.delete_test(self.test.id, self.teacher)
        with self.assertRaises(NotFoundError):
            self.service.finalize_grading(submission_id, self.teacher)

    def test_teacher_view_flags_unanswered_questions(self):
        submission = self.service.get_submission(self.submission.id, self.teacher)
        data = TeacherSubmissionDetailSerializer(submission).data

        self.assertEqual([a['is_answered'] for a in data['answers']], [True, True, False])
        self.assertEqual(data['total_marks'], 15)

    def test_list_submissions_for_test(self):
        submissions.submit(self.test.id, self.classmate, {'answers': []})
        rows = list(self.service.list_submissions(self.test.id, self.teacher))
        self.assertEqual({r.student_id for r in rows}, {self.student.id, self.classmate.id})
        with self.assertRaises(AuthorizationError):
            self.service.list_submissions(self.test.id, self.other_teacher)


class ObjectiveTestScoringTestCase(AssessmentFixtures, TestCase):
    """Three MCQ worth 5 each, answered correct / incorrect / unanswered."""

    def setUp(self):
        super().setUp()
        self.service = GradingService()
        self.test = self.make_test([mcq('Q1'), mcq('Q2'), mcq('Q3')])
        q1, q2, _ = self.test.questions.all()
        self.submission = submissions.submit(self.test.id, self.student, {'answers': [
            {'question_id': str(q1.id), 'selected_option_index': 1},
            {'question_id': str(q2.id), 'selected_option_index': 0},
        ]})

    def test_auto_mark_then_finalize(self):
        self.service.auto_mark_objective(self.submission.id, self.teacher)
        self.service.finalize_grading(self.submission.id, self.teacher)

        answers = sorted(self.submission.answers.select_related('question'),
                         key=lambda a: a.question.order)
        self.assertEqual([a.marks_awarded for a in answers], [5, 0, 0])

        result = delivery.get_result(self.submission.id, self.student)
        self.assertEqual(result['total_marks'], 15)
        self.assertEqual(result['score'], {'marks_obtained': 5, 'percentage': 33})
