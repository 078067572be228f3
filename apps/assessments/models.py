import uuid
from django.conf import settings
from django.db import models
from django.core.validators import MinValueValidator
from django.utils import timezone


class Test(models.Model):
    # Keep pytest from treating the model as a test class
    __test__ = False

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    duration_minutes = models.IntegerField(validators=[MinValueValidator(1)])
    is_published = models.BooleanField(default=False)
    school_class = models.ForeignKey(
        'directory.SchoolClass',
        on_delete=models.PROTECT,
        related_name='tests'
    )
    grade_subject = models.ForeignKey(
        'directory.GradeSubject',
        on_delete=models.PROTECT,
        related_name='tests'
    )
    exam_type = models.ForeignKey(
        'directory.ExamType',
        on_delete=models.PROTECT,
        related_name='tests'
    )
    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='authored_tests'
    )
    due_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'tests'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['school_class', 'is_published'], name='tests_class_published_idx'),
            models.Index(fields=['teacher', '-created_at'], name='tests_teacher_created_idx'),
        ]

    def __str__(self):
        return self.title


class Question(models.Model):
    MCQ = 'mcq'
    ESSAY = 'essay'
    SHORT_ANSWER = 'short_answer'
    VERY_SHORT_ANSWER = 'very_short_answer'
    QUESTION_TYPES = [
        (MCQ, 'MCQ'),
        (ESSAY, 'Essay'),
        (SHORT_ANSWER, 'Short Answer'),
        (VERY_SHORT_ANSWER, 'Very Short Answer'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    # Stable identity across edits; row ids are never reassigned for a kept key
    key = models.UUIDField(default=uuid.uuid4, editable=False)
    test = models.ForeignKey(
        Test,
        on_delete=models.CASCADE,
        related_name='questions'
    )
    text = models.TextField()
    question_type = models.CharField(max_length=20, choices=QUESTION_TYPES)
    marks = models.IntegerField(validators=[MinValueValidator(1)])
    chapter = models.CharField(max_length=255)
    topic = models.CharField(max_length=255)
    correct_option_index = models.IntegerField(null=True, blank=True)
    expected_answer = models.TextField(blank=True)
    order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'questions'
        ordering = ['test', 'order']
        indexes = [
            models.Index(fields=['test', 'order'], name='questions_test_order_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['test', 'key'],
                name='unique_test_question_key'
            )
        ]

    def __str__(self):
        return f"Q{self.order}: {self.text[:50]}"

    @property
    def is_mcq(self):
        return self.question_type == self.MCQ


class Option(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    question = models.ForeignKey(
        Question,
        on_delete=models.CASCADE,
        related_name='options'
    )
    index = models.IntegerField(validators=[MinValueValidator(0)])
    text = models.TextField()

    class Meta:
        db_table = 'question_options'
        ordering = ['question', 'index']
        constraints = [
            models.UniqueConstraint(
                fields=['question', 'index'],
                name='unique_question_option_index'
            )
        ]

    def __str__(self):
        return f"{self.index}: {self.text[:30]}"


class Submission(models.Model):
    """
    A student's single attempt at a test.

    Rows start pending (is_graded=False, total 0) and only the grading
    workflow moves them to graded. The unique constraint is what actually
    enforces one submission per student per test; the service-level
    existence check is only a fast path.
    """
    STATUS_PENDING = 'pending'
    STATUS_GRADED = 'graded'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    test = models.ForeignKey(
        Test,
        on_delete=models.CASCADE,
        related_name='submissions'
    )
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='submissions'
    )
    submitted_at = models.DateTimeField(default=timezone.now)
    time_taken_seconds = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    is_graded = models.BooleanField(default=False)
    total_marks_obtained = models.IntegerField(default=0)
    graded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'submissions'
        ordering = ['-submitted_at']
        # One submission per student per test
        constraints = [
            models.UniqueConstraint(
                fields=['test', 'student'],
                name='unique_test_student_submission'
            )
        ]
        indexes = [
            models.Index(fields=['student', '-submitted_at'], name='subs_student_submitted_idx'),
            models.Index(fields=['test', 'is_graded'], name='subs_test_graded_idx'),
        ]

    def __str__(self):
        return f"{self.student.username} - {self.test.title}"

    @property
    def status(self):
        return self.STATUS_GRADED if self.is_graded else self.STATUS_PENDING


class Answer(models.Model):
    """
    One question's recorded response within a submission.
    marks_awarded stays 0 until a teacher grades it.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    submission = models.ForeignKey(
        Submission,
        on_delete=models.CASCADE,
        related_name='answers'
    )
    question = models.ForeignKey(
        Question,
        on_delete=models.CASCADE,
        related_name='student_answers'
    )
    selected_option_index = models.IntegerField(null=True, blank=True)
    free_text_answer = models.TextField(null=True, blank=True)
    marks_awarded = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    feedback = models.TextField(blank=True)
    graded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'answers'
        indexes = [
            models.Index(fields=['submission'], name='answers_submission_idx'),
            models.Index(fields=['question'], name='answers_question_idx'),
        ]
        # One answer per question per submission
        constraints = [
            models.UniqueConstraint(
                fields=['submission', 'question'],
                name='unique_submission_question_answer'
            )
        ]

    def __str__(self):
        return f"Answer to Q{self.question.order} in {self.submission_id}"

    @property
    def is_answered(self):
        if self.question.is_mcq:
            return self.selected_option_index is not None
        return bool(self.free_text_answer)
