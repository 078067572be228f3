from django.db import models
from django.contrib.auth.models import AbstractUser


class School(models.Model):
    name = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'schools'
        ordering = ['name']

    def __str__(self):
        return self.name


class GradeLevel(models.Model):
    school = models.ForeignKey(
        School,
        on_delete=models.CASCADE,
        related_name='grade_levels',
        null=True,
        blank=True
    )
    name = models.CharField(max_length=100)

    class Meta:
        db_table = 'grade_levels'
        ordering = ['name']

    def __str__(self):
        return self.name


class SchoolClass(models.Model):
    """A section of students within a grade (e.g. "Grade 8 - B")."""
    grade_level = models.ForeignKey(
        GradeLevel,
        on_delete=models.SET_NULL,
        related_name='classes',
        null=True,
        blank=True
    )
    name = models.CharField(max_length=100)

    class Meta:
        db_table = 'classes'
        ordering = ['name']

    def __str__(self):
        return self.name


class SubjectMaster(models.Model):
    name = models.CharField(max_length=100, unique=True)

    class Meta:
        db_table = 'subjects_master'
        ordering = ['name']

    def __str__(self):
        return self.name


class GradeSubject(models.Model):
    """
    Curriculum mapping: a subject as taught in one grade.
    Tests point here rather than at SubjectMaster so the same subject
    can carry a different syllabus per grade.
    """
    grade_level = models.ForeignKey(
        GradeLevel,
        on_delete=models.CASCADE,
        related_name='grade_subjects'
    )
    subject = models.ForeignKey(
        SubjectMaster,
        on_delete=models.SET_NULL,
        related_name='grade_subjects',
        null=True,
        blank=True
    )

    class Meta:
        db_table = 'grade_subjects'
        constraints = [
            models.UniqueConstraint(
                fields=['grade_level', 'subject'],
                name='unique_grade_subject'
            )
        ]

    def __str__(self):
        return f"{self.grade_level} - {self.subject}"


class ExamType(models.Model):
    name = models.CharField(max_length=100, unique=True)

    class Meta:
        db_table = 'exam_types'
        ordering = ['name']

    def __str__(self):
        return self.name


class User(AbstractUser):
    ROLE_STUDENT = 'student'
    ROLE_TEACHER = 'teacher'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_STUDENT, 'Student'),
        (ROLE_TEACHER, 'Teacher'),
        (ROLE_ADMIN, 'Admin'),
    ]

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_STUDENT)
    school = models.ForeignKey(
        School,
        on_delete=models.SET_NULL,
        related_name='members',
        null=True,
        blank=True
    )
    # Only meaningful for students
    school_class = models.ForeignKey(
        SchoolClass,
        on_delete=models.SET_NULL,
        related_name='students',
        null=True,
        blank=True
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'users'
        indexes = [
            models.Index(fields=['email'], name='users_email_idx'),
            models.Index(fields=['role', 'school_class'], name='users_role_class_idx'),
        ]

    @property
    def is_student(self):
        return self.role == self.ROLE_STUDENT

    @property
    def is_teacher(self):
        return self.role == self.ROLE_TEACHER


class TeacherClass(models.Model):
    teacher = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='teacher_classes'
    )
    school_class = models.ForeignKey(
        SchoolClass,
        on_delete=models.CASCADE,
        related_name='teacher_assignments'
    )

    class Meta:
        db_table = 'teacher_classes'
        constraints = [
            models.UniqueConstraint(
                fields=['teacher', 'school_class'],
                name='unique_teacher_class'
            )
        ]
