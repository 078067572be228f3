"""
Attempt delivery and submission recording.
"""
import uuid
from unittest import mock

from django.db import IntegrityError, transaction
from django.test import TestCase

from apps.assessments import authoring, delivery, submissions
from apps.assessments.models import Answer, Submission
from core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from .fixtures import AssessmentFixtures, free_text, mcq


class AttemptDeliveryTestCase(AssessmentFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.test = self.make_test([mcq('Pick one'), free_text('Explain')])

    def test_student_view_hides_answer_key(self):
        attempt = delivery.get_attempt(self.test.id, self.student)

        self.assertIsNone(attempt['submission'])
        self.assertEqual(attempt['test']['subject_name'], 'Mathematics')
        self.assertEqual(attempt['test']['total_marks'], 10)
        for question in attempt['test']['questions']:
            self.assertNotIn('correct_option_index', question)
            self.assertNotIn('expected_answer', question)
        self.assertEqual(
            [o['text'] for o in attempt['test']['questions'][0]['options']],
            ['3', '4', '5']
        )

    def test_unpublished_test_is_not_found(self):
        authoring.set_published(self.test.id, self.teacher, False)
        with self.assertRaises(NotFoundError):
            delivery.get_attempt(self.test.id, self.student)

    def test_student_of_other_class_is_refused(self):
        with self.assertRaises(AuthorizationError):
            delivery.get_attempt(self.test.id, self.outsider)

    def test_teacher_cannot_attempt(self):
        with self.assertRaises(AuthorizationError):
            delivery.get_attempt(self.test.id, self.teacher)

    def test_attempt_reports_prior_submission(self):
        submissions.submit(self.test.id, self.student, {'answers': []})
        attempt = delivery.get_attempt(self.test.id, self.student)
        self.assertEqual(attempt['submission']['status'], 'pending')

    def test_list_student_tests_shows_attempt_state(self):
        self.make_test(title='Draft', is_published=False)
        other = self.make_test(title='Other class', class_id=self.class_b.id)
        submissions.submit(self.test.id, self.student, {'answers': []})

        rows = delivery.list_student_tests(self.student)
        self.assertEqual([r['title'] for r in rows], ['Arithmetic Quiz'])
        self.assertEqual(rows[0]['attempt_state'], 'pending')

        outsider_rows = delivery.list_student_tests(self.outsider)
        self.assertEqual([r['id'] for r in outsider_rows], [str(other.id)])
        self.assertEqual(outsider_rows[0]['attempt_state'], 'not_started')


class SubmitTestCase(AssessmentFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.test = self.make_test([mcq('Pick one'), free_text('Explain'), mcq('Another')])
        self.q1, self.q2, self.q3 = self.test.questions.all()

    def test_every_question_gets_one_unscored_answer(self):
        submission = submissions.submit(self.test.id, self.student, {
            'answers': [
                {'question_id': str(self.q1.id), 'selected_option_index': 2},
                {'question_id': str(self.q2.id), 'free_text_answer': '  Carry the one.  '},
            ],
            'time_taken_seconds': 540,
        })

        self.assertFalse(submission.is_graded)
        self.assertEqual(submission.total_marks_obtained, 0)
        self.assertEqual(submission.time_taken_seconds, 540)

        answers = {a.question_id: a for a in submission.answers.all()}
        self.assertEqual(len(answers), 3)
        self.assertEqual(answers[self.q1.id].selected_option_index, 2)
        self.assertEqual(answers[self.q2.id].free_text_answer, 'Carry the one.')
        self.assertIsNone(answers[self.q3.id].selected_option_index)
        self.assertTrue(all(a.marks_awarded == 0 for a in answers.values()))

    def test_blank_free_text_is_unanswered(self):
        submission = submissions.submit(self.test.id, self.student, {'answers': [
            {'question_id': str(self.q2.id), 'free_text_answer': '   '},
        ]})
        answer = submission.answers.get(question=self.q2)
        self.assertIsNone(answer.free_text_answer)
        self.assertFalse(answer.is_answered)

    def test_unknown_question_ids_are_ignored(self):
        submission = submissions.submit(self.test.id, self.student, {'answers': [
            {'question_id': str(uuid.uuid4()), 'selected_option_index': 0},
        ]})
        self.assertEqual(submission.answers.count(), 3)

    def test_out_of_range_option_is_rejected(self):
        with self.assertRaises(ValidationError):
            submissions.submit(self.test.id, self.student, {'answers': [
                {'question_id': str(self.q1.id), 'selected_option_index': 3},
            ]})
        self.assertFalse(Submission.objects.exists())
        self.assertFalse(Answer.objects.exists())

    def test_duplicate_question_ids_are_rejected(self):
        with self.assertRaises(ValidationError):
            submissions.submit(self.test.id, self.student, {'answers': [
                {'question_id': str(self.q1.id), 'selected_option_index': 0},
                {'question_id': str(self.q1.id), 'selected_option_index': 1},
            ]})

    def test_second_submission_conflicts(self):
        submissions.submit(self.test.id, self.student, {'answers': []})
        with self.assertRaises(ConflictError):
            submissions.submit(self.test.id, self.student, {'answers': []})
        self.assertEqual(
            Submission.objects.filter(test=self.test, student=self.student).count(), 1
        )

    def test_database_enforces_one_submission(self):
        Submission.objects.create(test=self.test, student=self.student)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Submission.objects.create(test=self.test, student=self.student)

    def test_concurrent_duplicate_submission_conflicts(self):
        # A competing request lands between the existence check and the insert
        Submission.objects.create(test=self.test, student=self.student)
        with mock.patch('django.db.models.query.QuerySet.exists', return_value=False):
            with self.assertRaises(ConflictError):
                submissions.submit(self.test.id, self.student, {'answers': [
                    {'question_id': str(self.q1.id), 'selected_option_index': 0},
                ]})

        self.assertEqual(
            Submission.objects.filter(test=self.test, student=self.student).count(), 1
        )
        self.assertFalse(Answer.objects.filter(question=self.q1).exists())

    def test_outsider_cannot_submit(self):
        with self.assertRaises(AuthorizationError):
            submissions.submit(self.test.id, self.outsider, {'answers': []})

    def test_unpublished_test_cannot_be_submitted(self):
        authoring.set_published(self.test.id, self.teacher, False)
        with self.assertRaises(NotFoundError):
            submissions.submit(self.test.id, self.student, {'answers': []})


class ResultTestCase(AssessmentFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.test = self.make_test([mcq('Pick one')])
        self.submission = submissions.submit(self.test.id, self.student, {'answers': []})

    def test_pending_result_has_no_score_or_key(self):
        result = delivery.get_result(self.submission.id, self.student)
        self.assertEqual(result['status'], 'pending')
        self.assertIsNone(result['score'])
        self.assertNotIn('correct_option_index', result['answers'][0])
        self.assertFalse(result['answers'][0]['is_answered'])

    def test_other_student_cannot_read_result(self):
        with self.assertRaises(AuthorizationError):
            delivery.get_result(self.submission.id, self.classmate)
