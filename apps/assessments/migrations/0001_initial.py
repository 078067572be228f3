import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('directory', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Test',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('duration_minutes', models.IntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('is_published', models.BooleanField(default=False)),
                ('due_date', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('exam_type', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='tests', to='directory.examtype')),
                ('grade_subject', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='tests', to='directory.gradesubject')),
                ('school_class', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='tests', to='directory.schoolclass')),
                ('teacher', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='authored_tests', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'tests',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['school_class', 'is_published'], name='tests_class_published_idx'),
                    models.Index(fields=['teacher', '-created_at'], name='tests_teacher_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Question',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('key', models.UUIDField(default=uuid.uuid4, editable=False)),
                ('text', models.TextField()),
                ('question_type', models.CharField(choices=[('mcq', 'MCQ'), ('essay', 'Essay'), ('short_answer', 'Short Answer'), ('very_short_answer', 'Very Short Answer')], max_length=20)),
                ('marks', models.IntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('chapter', models.CharField(max_length=255)),
                ('topic', models.CharField(max_length=255)),
                ('correct_option_index', models.IntegerField(blank=True, null=True)),
                ('expected_answer', models.TextField(blank=True)),
                ('order', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('test', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='questions', to='assessments.test')),
            ],
            options={
                'db_table': 'questions',
                'ordering': ['test', 'order'],
                'indexes': [
                    models.Index(fields=['test', 'order'], name='questions_test_order_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('test', 'key'), name='unique_test_question_key'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Option',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('index', models.IntegerField(validators=[django.core.validators.MinValueValidator(0)])),
                ('text', models.TextField()),
                ('question', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='options', to='assessments.question')),
            ],
            options={
                'db_table': 'question_options',
                'ordering': ['question', 'index'],
                'constraints': [
                    models.UniqueConstraint(fields=('question', 'index'), name='unique_question_option_index'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Submission',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('submitted_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('time_taken_seconds', models.IntegerField(default=0, validators=[django.core.validators.MinValueValidator(0)])),
                ('is_graded', models.BooleanField(default=False)),
                ('total_marks_obtained', models.IntegerField(default=0)),
                ('graded_at', models.DateTimeField(blank=True, null=True)),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='submissions', to=settings.AUTH_USER_MODEL)),
                ('test', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='submissions', to='assessments.test')),
            ],
            options={
                'db_table': 'submissions',
                'ordering': ['-submitted_at'],
                'indexes': [
                    models.Index(fields=['student', '-submitted_at'], name='subs_student_submitted_idx'),
                    models.Index(fields=['test', 'is_graded'], name='subs_test_graded_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('test', 'student'), name='unique_test_student_submission'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Answer',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('selected_option_index', models.IntegerField(blank=True, null=True)),
                ('free_text_answer', models.TextField(blank=True, null=True)),
                ('marks_awarded', models.IntegerField(default=0, validators=[django.core.validators.MinValueValidator(0)])),
                ('feedback', models.TextField(blank=True)),
                ('graded_at', models.DateTimeField(blank=True, null=True)),
                ('question', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='student_answers', to='assessments.question')),
                ('submission', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='answers', to='assessments.submission')),
            ],
            options={
                'db_table': 'answers',
                'indexes': [
                    models.Index(fields=['submission'], name='answers_submission_idx'),
                    models.Index(fields=['question'], name='answers_question_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('submission', 'question'), name='unique_submission_question_answer'),
                ],
            },
        ),
    ]
