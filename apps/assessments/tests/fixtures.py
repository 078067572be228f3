"""
Shared setup for the assessment test modules.

AssessmentFixtures builds one school with two classes in the same grade,
two subjects, three exam types, two teachers and three students.
"""
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


def mcq(text='What is 2+2?', marks=5, options=None, correct=1, chapter='Arithmetic',
        topic='Addition', key=None):
    spec = {
        'text': text,
        'question_type': Question.MCQ,
        'marks': marks,
        'chapter': chapter,
        'topic': topic,
        'options': options if options is not None else ['3', '4', '5'],
        'correct_option_index': correct,
    }
    if key is not None:
        spec['key'] = str(key)
    return spec


def free_text(text='Explain addition.', marks=5, question_type=Question.ESSAY,
              chapter='Arithmetic', topic='Addition', key=None):
    spec = {
        'text': text,
        'question_type': question_type,
        'marks': marks,
        'chapter': chapter,
        'topic': topic,
        'expected_answer': 'Combining quantities.',
    }
    if key is not None:
        spec['key'] = str(key)
    return spec


def question_as_spec(question):
    """The authoring payload that reproduces a stored question, key included."""
    options = [option.text for option in question.options.all()]
    if question.is_mcq:
        return mcq(question.text, question.marks, options, question.correct_option_index,
                   question.chapter, question.topic, key=question.key)
    return free_text(question.text, question.marks, question.question_type,
                     question.chapter, question.topic, key=question.key)


class AssessmentFixtures:
    """Mixin for TestCase classes; call super().setUp() when overriding."""

    def setUp(self):
        self.school = School.objects.create(name='Springfield High')
        self.grade = GradeLevel.objects.create(school=self.school, name='Grade 8')
        self.other_grade = GradeLevel.objects.create(school=self.school, name='Grade 9')
        self.class_a = SchoolClass.objects.create(grade_level=self.grade, name='Grade 8 - A')
        self.class_b = SchoolClass.objects.create(grade_level=self.grade, name='Grade 8 - B')

        math = SubjectMaster.objects.create(name='Mathematics')
        science = SubjectMaster.objects.create(name='Science')
        self.math = GradeSubject.objects.create(grade_level=self.grade, subject=math)
        self.science = GradeSubject.objects.create(grade_level=self.grade, subject=science)
        self.grade9_math = GradeSubject.objects.create(grade_level=self.other_grade, subject=math)

        self.unit_test = ExamType.objects.create(name='Unit Test')
        self.midterm = ExamType.objects.create(name='Midterm')
        self.final = ExamType.objects.create(name='Final')

        self.teacher = User.objects.create_user(
            username='teacher1', password='testpass123', role=User.ROLE_TEACHER,
            school=self.school, first_name='Maria', last_name='Lopez'
        )
        self.other_teacher = User.objects.create_user(
            username='teacher2', password='testpass123', role=User.ROLE_TEACHER,
            school=self.school
        )
        TeacherClass.objects.create(teacher=self.teacher, school_class=self.class_a)

        self.student = User.objects.create_user(
            username='student1', password='testpass123', role=User.ROLE_STUDENT,
            school=self.school, school_class=self.class_a,
            first_name='Alice', last_name='Johnson'
        )
        self.classmate = User.objects.create_user(
            username='student2', password='testpass123', role=User.ROLE_STUDENT,
            school=self.school, school_class=self.class_a,
            first_name='Bob', last_name='Smith'
        )
        self.outsider = User.objects.create_user(
            username='student3', password='testpass123', role=User.ROLE_STUDENT,
            school=self.school, school_class=self.class_b
        )

    def payload(self, questions=None, **overrides):
        data = {
            'title': 'Arithmetic Quiz',
            'description': 'Basic sums.',
            'duration_minutes': 30,
            'is_published': True,
            'class_id': self.class_a.id,
            'grade_subject_id': self.math.id,
            'exam_type_id': self.unit_test.id,
            'questions': questions if questions is not None else [mcq()],
        }
        data.update(overrides)
        return data

    def make_test(self, questions=None, teacher=None, **overrides):
        return authoring.create_test(teacher or self.teacher, self.payload(questions, **overrides))
