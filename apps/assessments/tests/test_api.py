"""
HTTP surface: status codes, role gates and response shapes.
"""
import uuid

from rest_framework import status
from rest_framework.test import APITestCase

from apps.assessments import submissions
from apps.assessments.models import Submission
from .fixtures import AssessmentFixtures, free_text, mcq


class AuthoringAPITestCase(AssessmentFixtures, APITestCase):

    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.teacher)

    def test_create_and_fetch_test(self):
        response = self.client.post('/api/teacher/tests/', self.payload([mcq(), free_text()]), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['class_name'], 'Grade 8 - A')
        self.assertEqual(response.data['question_count'], 2)
        self.assertEqual(response.data['questions'][0]['correct_option_index'], 1)

        detail = self.client.get(f"/api/teacher/tests/{response.data['id']}/")
        self.assertEqual(detail.status_code, status.HTTP_200_OK)
        self.assertEqual(detail.data['total_marks'], 10)

    def test_invalid_payload_is_400(self):
        response = self.client.post(
            '/api/teacher/tests/', self.payload([mcq(options=['only'], correct=0)]), format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['kind'], 'validation')
        self.assertIn('detail', response.data)

    def test_students_are_forbidden(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.post('/api/teacher/tests/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_other_teachers_test_is_403(self):
        test = self.make_test(teacher=self.other_teacher)
        response = self.client.get(f'/api/teacher/tests/{test.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['kind'], 'authorization')

    def test_missing_test_is_404(self):
        response = self.client.get(f'/api/teacher/tests/{uuid.uuid4()}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_frozen_edit_is_409(self):
        test = self.make_test([mcq(), mcq('Second')])
        submissions.submit(test.id, self.student, {'answers': []})

        response = self.client.put(
            f'/api/teacher/tests/{test.id}/', self.payload([mcq('Replacement')]), format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['kind'], 'conflict')

    def test_publish_toggle_and_delete(self):
        test = self.make_test(is_published=False)
        response = self.client.post(
            f'/api/teacher/tests/{test.id}/publish/', {'is_published': True}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_published'])

        response = self.client.delete(f'/api/teacher/tests/{test.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_list_includes_submission_counts(self):
        test = self.make_test()
        submissions.submit(test.id, self.student, {'answers': []})
        response = self.client.get('/api/teacher/tests/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['submission_count'], 1)
        self.assertEqual(response.data[0]['pending_count'], 1)


class StudentFlowAPITestCase(AssessmentFixtures, APITestCase):

    def setUp(self):
        super().setUp()
        self.test = self.make_test([mcq('Pick', marks=5), free_text('Explain', marks=10)])
        self.mcq_question, self.essay = self.test.questions.all()

    def _submit(self, user):
        self.client.force_authenticate(user=user)
        return self.client.post(f'/api/student/tests/{self.test.id}/submit/', {
            'answers': [
                {'question_id': str(self.mcq_question.id), 'selected_option_index': 1},
                {'question_id': str(self.essay.id), 'free_text_answer': 'Because.'},
            ],
            'time_taken_seconds': 300,
        }, format='json')

    def test_unauthenticated_is_rejected(self):
        response = self.client.get(f'/api/student/tests/{self.test.id}/attempt/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_attempt_hides_answer_key(self):
        self.client.force_authenticate(user=self.student)
        response = self.client.get(f'/api/student/tests/{self.test.id}/attempt/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn('correct_option_index', str(response.data))
        self.assertNotIn('expected_answer', str(response.data))

    def test_outsider_attempt_is_403(self):
        self.client.force_authenticate(user=self.outsider)
        response = self.client.get(f'/api/student/tests/{self.test.id}/attempt/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_submit_then_duplicate_is_409(self):
        first = self._submit(self.student)
        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(first.data['status'], 'pending')

        second = self._submit(self.student)
        self.assertEqual(second.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('already submitted', second.data['error'].lower())
        self.assertEqual(Submission.objects.filter(student=self.student).count(), 1)

    def test_full_grading_round_trip(self):
        submission_id = self._submit(self.student).data['id']

        self.client.force_authenticate(user=self.teacher)
        response = self.client.post(f'/api/teacher/submissions/{submission_id}/auto-mark/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.put(
            f'/api/teacher/submissions/{submission_id}/answers/{self.essay.id}/',
            {'marks': 7, 'feedback': 'Needs an example.'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['marks_awarded'], 7)

        response = self.client.post(f'/api/teacher/submissions/{submission_id}/finalize/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'graded')
        self.assertEqual(response.data['total_marks_obtained'], 12)

        self.client.force_authenticate(user=self.student)
        response = self.client.get(f'/api/student/submissions/{submission_id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['score'], {'marks_obtained': 12, 'percentage': 80})

        response = self.client.get('/api/analytics/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['overall_percentage'], 80)

    def test_marks_above_maximum_is_400(self):
        submission_id = self._submit(self.student).data['id']
        self.client.force_authenticate(user=self.teacher)
        response = self.client.put(
            f'/api/teacher/submissions/{submission_id}/answers/{self.essay.id}/',
            {'marks': 11}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_student_result_is_403(self):
        submission_id = self._submit(self.student).data['id']
        self.client.force_authenticate(user=self.classmate)
        response = self.client.get(f'/api/student/submissions/{submission_id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AnalyticsAPITestCase(AssessmentFixtures, APITestCase):

    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.teacher)

    def test_class_sections(self):
        for section in ['subject-averages', 'trend', 'students', 'recent-tests',
                        'question-types', 'chapters']:
            response = self.client.get(f'/api/analytics/classes/{self.class_a.id}/{section}/')
            self.assertEqual(response.status_code, status.HTTP_200_OK, section)

    def test_unknown_section_is_404(self):
        response = self.client.get(f'/api/analytics/classes/{self.class_a.id}/nonsense/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_unassigned_class_is_403(self):
        response = self.client.get(f'/api/analytics/classes/{self.class_b.id}/trend/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_student_drilldown(self):
        response = self.client.get(
            f'/api/analytics/classes/{self.class_a.id}/students/{self.student.id}/'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['overall_percentage'], 0)

        response = self.client.get(
            f'/api/analytics/classes/{self.class_a.id}/students/{self.outsider.id}/'
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
