from rest_framework import serializers

from apps.directory import adapter
from core.exceptions import NotFoundError, ValidationError
from .analytics import percentage
from .models import Test, Question, Option, Submission, Answer


def validate_payload(serializer_class, data, **kwargs):
    """Run a DRF serializer and raise the engine's ValidationError on failure."""
    serializer = serializer_class(data=data, **kwargs)
    if not serializer.is_valid():
        raise ValidationError('Invalid input', detail=serializer.errors)
    return serializer.validated_data


# ==============================================
# AUTHORING INPUT
# ==============================================
class QuestionSpecSerializer(serializers.Serializer):
    """
    One question as authored by a teacher.

    `key` is the stable identity echoed back on edit; leave it out for a
    new question. For MCQ, correct_option_index points into `options` as
    submitted; blank options are dropped and the index is remapped.
    """
    key = serializers.UUIDField(required=False, allow_null=True)
    text = serializers.CharField()
    question_type = serializers.ChoiceField(choices=Question.QUESTION_TYPES)
    marks = serializers.IntegerField(min_value=1)
    chapter = serializers.CharField(max_length=255)
    topic = serializers.CharField(max_length=255)
    options = serializers.ListField(
        child=serializers.CharField(allow_blank=True),
        required=False,
        default=list
    )
    correct_option_index = serializers.IntegerField(required=False, allow_null=True)
    expected_answer = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['question_type'] != Question.MCQ:
            attrs['options'] = []
            attrs['correct_option_index'] = None
            return attrs

        submitted = attrs.get('options') or []
        kept = [(position, text) for position, text in enumerate(submitted) if text]
        if len(kept) < 2:
            raise serializers.ValidationError(
                {'options': 'MCQ questions need at least 2 non-empty options.'}
            )

        correct = attrs.get('correct_option_index')
        if correct is None or not 0 <= correct < len(submitted) or not submitted[correct]:
            raise serializers.ValidationError(
                {'correct_option_index': 'Must point at one of the non-empty options.'}
            )

        positions = [position for position, _ in kept]
        attrs['options'] = [text for _, text in kept]
        attrs['correct_option_index'] = positions.index(correct)
        attrs['expected_answer'] = ''
        return attrs


class TestSpecSerializer(serializers.Serializer):
    __test__ = False

    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    duration_minutes = serializers.IntegerField(min_value=1)
    is_published = serializers.BooleanField(required=False, default=False)
    class_id = serializers.IntegerField()
    grade_subject_id = serializers.IntegerField()
    exam_type_id = serializers.IntegerField()
    due_date = serializers.DateTimeField(required=False, allow_null=True, default=None)
    questions = QuestionSpecSerializer(many=True)

    def validate_questions(self, value):
        keys = [q['key'] for q in value if q.get('key')]
        if len(keys) != len(set(keys)):
            raise serializers.ValidationError("Question keys must be unique within a test.")
        return value

    def validate(self, attrs):
        errors = {}
        school_class = subject = None
        try:
            school_class = adapter.resolve_class(attrs['class_id'])
        except NotFoundError as exc:
            errors['class_id'] = exc.message
        try:
            subject = adapter.resolve_grade_subject(attrs['grade_subject_id'])
        except NotFoundError as exc:
            errors['grade_subject_id'] = exc.message
        try:
            adapter.resolve_exam_type(attrs['exam_type_id'])
        except NotFoundError as exc:
            errors['exam_type_id'] = exc.message

        if school_class and subject and subject['grade_id'] != school_class['grade_id']:
            errors['grade_subject_id'] = "Subject is not taught in this class's grade."

        if attrs.get('is_published') and not attrs['questions']:
            errors['is_published'] = 'A test needs at least one question to be published.'

        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class PublishSerializer(serializers.Serializer):
    is_published = serializers.BooleanField()


# ==============================================
# SUBMISSION / GRADING INPUT
# ==============================================
class AnswerSubmissionSerializer(serializers.Serializer):
    question_id = serializers.UUIDField()
    selected_option_index = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    free_text_answer = serializers.CharField(required=False, allow_null=True, allow_blank=True)


class SubmissionCreateSerializer(serializers.Serializer):
    answers = AnswerSubmissionSerializer(many=True, required=False, default=list)
    time_taken_seconds = serializers.IntegerField(min_value=0, required=False, default=0)

    def validate_answers(self, value):
        """Ensure no duplicate question_ids in submission."""
        question_ids = [a['question_id'] for a in value]
        if len(question_ids) != len(set(question_ids)):
            raise serializers.ValidationError(
                "Each question may be answered only once."
            )
        return value


class GradeAnswerSerializer(serializers.Serializer):
    marks = serializers.IntegerField()
    feedback = serializers.CharField(required=False, allow_blank=True, default='')


class GradeItemSerializer(GradeAnswerSerializer):
    question_id = serializers.UUIDField()


class GradeSubmissionSerializer(serializers.Serializer):
    grades = GradeItemSerializer(many=True)
    finalize = serializers.BooleanField(required=False, default=True)

    def validate_grades(self, value):
        question_ids = [g['question_id'] for g in value]
        if len(question_ids) != len(set(question_ids)):
            raise serializers.ValidationError("Each question may be graded only once per request.")
        return value


# ==============================================
# QUESTION PROJECTIONS
# ==============================================
class OptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Option
        fields = ['index', 'text']


class TeacherQuestionSerializer(serializers.ModelSerializer):
    """Owner view - includes the answer key."""
    options = OptionSerializer(many=True, read_only=True)

    class Meta:
        model = Question
        fields = ['id', 'key', 'order', 'text', 'question_type', 'marks',
                  'chapter', 'topic', 'options', 'correct_option_index',
                  'expected_answer']


class StudentQuestionSerializer(serializers.ModelSerializer):
    """
    Attempt view - never carries correct_option_index or expected_answer.
    Students must never see answers before submission.
    """
    options = OptionSerializer(many=True, read_only=True)

    class Meta:
        model = Question
        fields = ['id', 'order', 'text', 'question_type', 'marks',
                  'chapter', 'topic', 'options']


# ==============================================
# TEST VIEWS
# ==============================================
class TestNamesMixin(serializers.Serializer):
    """Directory-resolved names plus totals computed from prefetched questions."""
    __test__ = False

    class_name = serializers.SerializerMethodField()
    subject_name = serializers.SerializerMethodField()
    exam_type_name = serializers.SerializerMethodField()
    total_marks = serializers.SerializerMethodField()
    question_count = serializers.SerializerMethodField()

    def _names(self, obj):
        cache = self.context.setdefault('_names', {})
        if obj.pk not in cache:
            cache[obj.pk] = adapter.describe_test(obj)
        return cache[obj.pk]

    def get_class_name(self, obj):
        return self._names(obj)['class_name']

    def get_subject_name(self, obj):
        return self._names(obj)['subject_name']

    def get_exam_type_name(self, obj):
        return self._names(obj)['exam_type_name']

    def get_total_marks(self, obj):
        return sum(q.marks for q in obj.questions.all())

    def get_question_count(self, obj):
        return len(obj.questions.all())


class TeacherTestListSerializer(TestNamesMixin, serializers.ModelSerializer):
    submission_count = serializers.IntegerField(read_only=True)
    pending_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Test
        fields = ['id', 'title', 'is_published', 'duration_minutes', 'due_date',
                  'class_name', 'subject_name', 'exam_type_name', 'question_count',
                  'total_marks', 'submission_count', 'pending_count', 'created_at']


class TeacherTestDetailSerializer(TestNamesMixin, serializers.ModelSerializer):
    class_id = serializers.IntegerField(source='school_class_id', read_only=True)
    grade_subject_id = serializers.IntegerField(read_only=True)
    exam_type_id = serializers.IntegerField(read_only=True)
    questions = TeacherQuestionSerializer(many=True, read_only=True)

    class Meta:
        model = Test
        fields = ['id', 'title', 'description', 'duration_minutes', 'is_published',
                  'class_id', 'grade_subject_id', 'exam_type_id', 'class_name',
                  'subject_name', 'exam_type_name', 'due_date', 'question_count',
                  'total_marks', 'questions', 'created_at', 'updated_at']


class StudentTestSerializer(TestNamesMixin, serializers.ModelSerializer):
    questions = StudentQuestionSerializer(many=True, read_only=True)

    class Meta:
        model = Test
        fields = ['id', 'title', 'description', 'duration_minutes', 'due_date',
                  'class_name', 'subject_name', 'exam_type_name', 'question_count',
                  'total_marks', 'questions']


class StudentTestListSerializer(TestNamesMixin, serializers.ModelSerializer):
    attempt_state = serializers.SerializerMethodField()

    class Meta:
        model = Test
        fields = ['id', 'title', 'duration_minutes', 'due_date', 'class_name',
                  'subject_name', 'exam_type_name', 'question_count', 'total_marks',
                  'attempt_state']

    def get_attempt_state(self, obj):
        return self.context.get('attempt_states', {}).get(obj.pk, 'not_started')


# ==============================================
# SUBMISSION VIEWS
# ==============================================
class SubmissionSummarySerializer(serializers.ModelSerializer):
    test_id = serializers.UUIDField(read_only=True)
    status = serializers.CharField(read_only=True)

    class Meta:
        model = Submission
        fields = ['id', 'test_id', 'submitted_at', 'time_taken_seconds', 'status']


class TeacherAnswerSerializer(serializers.ModelSerializer):
    question = TeacherQuestionSerializer(read_only=True)
    is_answered = serializers.BooleanField(read_only=True)

    class Meta:
        model = Answer
        fields = ['id', 'question', 'selected_option_index', 'free_text_answer', 'is_answered',
                  'marks_awarded', 'feedback', 'graded_at']


class TeacherSubmissionListSerializer(serializers.ModelSerializer):
    student_id = serializers.IntegerField(read_only=True)
    student_name = serializers.SerializerMethodField()
    status = serializers.CharField(read_only=True)

    class Meta:
        model = Submission
        fields = ['id', 'student_id', 'student_name', 'submitted_at',
                  'time_taken_seconds', 'status', 'total_marks_obtained', 'graded_at']

    def get_student_name(self, obj):
        return obj.student.get_full_name() or obj.student.username


class TeacherSubmissionDetailSerializer(TeacherSubmissionListSerializer):
    test_id = serializers.UUIDField(read_only=True)
    total_marks = serializers.SerializerMethodField()
    answers = serializers.SerializerMethodField()

    class Meta(TeacherSubmissionListSerializer.Meta):
        fields = TeacherSubmissionListSerializer.Meta.fields + ['test_id', 'total_marks', 'answers']

    def get_total_marks(self, obj):
        return sum(a.question.marks for a in obj.answers.all())

    def get_answers(self, obj):
        answers = sorted(obj.answers.all(), key=lambda a: a.question.order)
        return TeacherAnswerSerializer(answers, many=True).data


class PendingAnswerSerializer(serializers.ModelSerializer):
    question_id = serializers.UUIDField(read_only=True)
    is_answered = serializers.BooleanField(read_only=True)

    class Meta:
        model = Answer
        fields = ['question_id', 'selected_option_index', 'free_text_answer', 'is_answered']


class GradedAnswerSerializer(serializers.ModelSerializer):
    """Post-grading view - the answer key is revealed only here."""
    question_id = serializers.UUIDField(read_only=True)
    text = serializers.CharField(source='question.text', read_only=True)
    question_type = serializers.CharField(source='question.question_type', read_only=True)
    marks = serializers.IntegerField(source='question.marks', read_only=True)
    correct_option_index = serializers.IntegerField(source='question.correct_option_index', read_only=True)
    is_answered = serializers.BooleanField(read_only=True)

    class Meta:
        model = Answer
        fields = ['question_id', 'text', 'question_type', 'marks', 'selected_option_index',
                  'free_text_answer', 'is_answered', 'correct_option_index', 'marks_awarded', 'feedback']


class StudentResultSerializer(serializers.ModelSerializer):
    test_id = serializers.UUIDField(read_only=True)
    test_title = serializers.CharField(source='test.title', read_only=True)
    status = serializers.CharField(read_only=True)
    total_marks = serializers.SerializerMethodField()
    score = serializers.SerializerMethodField()
    answers = serializers.SerializerMethodField()

    class Meta:
        model = Submission
        fields = ['id', 'test_id', 'test_title', 'submitted_at', 'time_taken_seconds',
                  'status', 'graded_at', 'total_marks', 'score', 'answers']

    def get_total_marks(self, obj):
        return sum(a.question.marks for a in obj.answers.all())

    def get_score(self, obj):
        if not obj.is_graded:
            return None
        return {
            'marks_obtained': obj.total_marks_obtained,
            'percentage': percentage(obj.total_marks_obtained, self.get_total_marks(obj)),
        }

    def get_answers(self, obj):
        answers = sorted(obj.answers.all(), key=lambda a: a.question.order)
        serializer_class = GradedAnswerSerializer if obj.is_graded else PendingAnswerSerializer
        return serializer_class(answers, many=True).data
