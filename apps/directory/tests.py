"""
Directory adapter and authentication endpoints.
"""
from django.contrib.auth import get_user_model
from django.test import TestCase, SimpleTestCase
from rest_framework import status
from rest_framework.test import APITestCase

from core.exceptions import NotFoundError
from . import adapter
from .models import (
    ExamType,
    GradeLevel,
    GradeSubject,
    SchoolClass,
    SubjectMaster,
    TeacherClass,
)

User = get_user_model()


class OneOrNoneTestCase(SimpleTestCase):

    def test_accepts_every_relation_shape(self):
        record = {'id': 1, 'name': 'Algebra'}
        self.assertIsNone(adapter.one_or_none(None))
        self.assertIs(adapter.one_or_none(record), record)
        self.assertIs(adapter.one_or_none([record, {'id': 2}]), record)
        self.assertIsNone(adapter.one_or_none([]))
        self.assertIs(adapter.one_or_none((record,)), record)

    def test_name_of_falls_back_to_sentinel(self):
        self.assertEqual(adapter.name_of(None, adapter.UNKNOWN_SUBJECT), 'Unknown Subject')
        self.assertEqual(adapter.name_of([], adapter.UNKNOWN_CLASS), 'Unknown Class')
        self.assertEqual(adapter.name_of([{'name': ''}], adapter.UNKNOWN_CLASS), 'Unknown Class')
        self.assertEqual(adapter.name_of([{'name': 'Physics'}], adapter.UNKNOWN_SUBJECT), 'Physics')


class AdapterTestCase(TestCase):

    def setUp(self):
        self.grade = GradeLevel.objects.create(name='Grade 8')
        self.section = SchoolClass.objects.create(grade_level=self.grade, name='Grade 8 - A')
        self.orphan = SchoolClass.objects.create(name='Detached')
        self.physics = GradeSubject.objects.create(
            grade_level=self.grade, subject=SubjectMaster.objects.create(name='Physics')
        )
        self.algebra = GradeSubject.objects.create(
            grade_level=self.grade, subject=SubjectMaster.objects.create(name='Algebra')
        )
        self.teacher = User.objects.create_user(
            username='teacher1', password='testpass123', role=User.ROLE_TEACHER
        )

    def test_resolve_class(self):
        self.assertEqual(adapter.resolve_class(self.section.id), {
            'id': self.section.id,
            'name': 'Grade 8 - A',
            'grade_id': self.grade.id,
            'grade_name': 'Grade 8',
        })

    def test_class_without_grade_uses_sentinel(self):
        record = adapter.resolve_class(self.orphan.id)
        self.assertIsNone(record['grade_id'])
        self.assertEqual(record['grade_name'], adapter.UNKNOWN_GRADE)

    def test_missing_records_are_not_found(self):
        with self.assertRaises(NotFoundError):
            adapter.resolve_class(9999)
        with self.assertRaises(NotFoundError):
            adapter.resolve_subjects_for_grade(9999)
        with self.assertRaises(NotFoundError):
            adapter.resolve_exam_type(9999)

    def test_subjects_sorted_by_name(self):
        subjects = adapter.resolve_subjects_for_grade(self.grade.id)
        self.assertEqual([s['name'] for s in subjects], ['Algebra', 'Physics'])

    def test_subject_with_deleted_master(self):
        SubjectMaster.objects.filter(name='Physics').delete()
        record = adapter.resolve_grade_subject(self.physics.id)
        self.assertEqual(record['name'], adapter.UNKNOWN_SUBJECT)
        self.assertEqual(record['grade_id'], self.grade.id)

    def test_exam_types(self):
        ExamType.objects.create(name='Midterm')
        self.assertEqual([e['name'] for e in adapter.resolve_exam_types()], ['Midterm'])

    def test_teacher_classes(self):
        TeacherClass.objects.create(teacher=self.teacher, school_class=self.section)
        self.assertEqual(adapter.get_teacher_classes(self.teacher), [{
            'class_id': self.section.id,
            'class_name': 'Grade 8 - A',
            'grade_id': self.grade.id,
            'grade_name': 'Grade 8',
        }])
        self.assertTrue(adapter.teaches_class(self.teacher, self.section.id))
        self.assertFalse(adapter.teaches_class(self.teacher, self.orphan.id))


class AuthenticationTestCase(APITestCase):
    """Test authentication flows."""

    def setUp(self):
        self.section = SchoolClass.objects.create(name='Grade 8 - A')
        self.user = User.objects.create_user(
            username='student1',
            email='s1@test.com',
            password='testpass123',
            role=User.ROLE_STUDENT,
            school_class=self.section
        )

    def test_user_login(self):
        """Test student can login with valid credentials."""
        data = {'username': 'student1', 'password': 'testpass123'}
        response = self.client.post('/api/auth/login/', data)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('token', response.data)
        self.assertEqual(response.data['role'], 'student')
        self.assertEqual(response.data['class_id'], self.section.id)

    def test_invalid_credentials(self):
        data = {'username': 'student1', 'password': 'wrong'}
        response = self.client.post('/api/auth/login/', data)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_with_token(self):
        token = self.client.post(
            '/api/auth/login/', {'username': 'student1', 'password': 'testpass123'}
        ).data['token']
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token}')
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.user.id)

    def test_missing_class_is_404(self):
        self.client.force_authenticate(user=self.user)
        response = self.client.get('/api/directory/classes/9999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['kind'], 'not_found')
