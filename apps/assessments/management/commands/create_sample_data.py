from django.core.management.base import BaseCommand
from django.contrib.auth import get_user_model

from apps.assessments import authoring
from apps.assessments.models import Question
from apps.directory.models import (
    ExamType,
    GradeLevel,
    GradeSubject,
    School,
    SchoolClass,
    SubjectMaster,
    TeacherClass,
)

User = get_user_model()


class Command(BaseCommand):
    help = 'Creates sample school, class, users and a published test for trying the API'

    def _user(self, username, role, school, school_class=None, **names):
        user = User.objects.filter(username=username).first()
        if user is None:
            user = User.objects.create_user(
                username=username,
                email=f'{username}@test.com',
                password='testpass123',
                role=role,
                school=school,
                school_class=school_class,
                **names
            )
            self.stdout.write(self.style.SUCCESS(f'Created {role}: {username}'))
        return user

    def handle(self, *args, **kwargs):
        self.stdout.write('Creating sample data...')

        school, _ = School.objects.get_or_create(name='Springfield High')
        grade, _ = GradeLevel.objects.get_or_create(school=school, name='Grade 8')
        section, _ = SchoolClass.objects.get_or_create(grade_level=grade, name='Grade 8 - A')

        subjects = {}
        for name in ['Mathematics', 'Science', 'English']:
            master, _ = SubjectMaster.objects.get_or_create(name=name)
            subjects[name], _ = GradeSubject.objects.get_or_create(grade_level=grade, subject=master)

        exam_types = {}
        for name in ['Unit Test', 'Midterm', 'Final']:
            exam_types[name], _ = ExamType.objects.get_or_create(name=name)

        teacher = self._user('teacher1', User.ROLE_TEACHER, school,
                             first_name='Maria', last_name='Lopez')
        TeacherClass.objects.get_or_create(teacher=teacher, school_class=section)

        self._user('student1', User.ROLE_STUDENT, school, section,
                   first_name='Alice', last_name='Johnson')
        self._user('student2', User.ROLE_STUDENT, school, section,
                   first_name='Bob', last_name='Smith')

        test = authoring.create_test(teacher, {
            'title': 'Algebra Basics',
            'description': 'Linear equations and expressions.',
            'duration_minutes': 30,
            'is_published': True,
            'class_id': section.id,
            'grade_subject_id': subjects['Mathematics'].id,
            'exam_type_id': exam_types['Unit Test'].id,
            'questions': [
                {
                    'text': 'Solve for x: 2x + 3 = 11',
                    'question_type': Question.MCQ,
                    'marks': 5,
                    'chapter': 'Algebra',
                    'topic': 'Linear Equations',
                    'options': ['3', '4', '5', '7'],
                    'correct_option_index': 1,
                },
                {
                    'text': 'Which expression is equivalent to 3(a + 2)?',
                    'question_type': Question.MCQ,
                    'marks': 5,
                    'chapter': 'Algebra',
                    'topic': 'Expressions',
                    'options': ['3a + 2', '3a + 6', 'a + 6', ''],
                    'correct_option_index': 1,
                },
                {
                    'text': 'Explain in one sentence what a variable is.',
                    'question_type': Question.VERY_SHORT_ANSWER,
                    'marks': 2,
                    'chapter': 'Algebra',
                    'topic': 'Expressions',
                    'expected_answer': 'A symbol that stands for an unknown or changing value.',
                },
                {
                    'text': 'Describe two different methods for solving a pair of simultaneous equations.',
                    'question_type': Question.ESSAY,
                    'marks': 10,
                    'chapter': 'Simultaneous Equations',
                    'topic': 'Methods',
                },
            ],
        })

        self.stdout.write(self.style.SUCCESS(
            f'Created "{test.title}" with {test.questions.count()} questions'
        ))
        self.stdout.write(self.style.SUCCESS('Sample data created successfully!'))
        self.stdout.write('Test credentials: teacher1 / student1, password=testpass123')
