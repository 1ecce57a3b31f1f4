from rest_framework import serializers

from exams.models import Exam
from .models import ExamAttempt, ExamResponse
from . import store

# --- Student-facing exam content (answer key hidden) ---

class StudentOptionSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    text = serializers.CharField()

class StudentQuestionSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    question_text = serializers.CharField(source='text')
    question_type = serializers.CharField()
    marks = serializers.DecimalField(max_digits=6, decimal_places=2)
    negative_marks = serializers.DecimalField(max_digits=6, decimal_places=2)
    options = serializers.SerializerMethodField()

    def get_options(self, obj):
        options = getattr(obj, 'ordered_options', None)
        if options is None:
            options = obj.options.all()
        return StudentOptionSerializer(options, many=True).data

class ExamSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Exam
        fields = [
            'id', 'title', 'subject', 'class_grade', 'duration_minutes',
            'total_marks', 'passing_marks', 'starts_at', 'ends_at',
        ]

# --- Attempts ---

class SavedAnswerSerializer(serializers.ModelSerializer):
    """The student's own saved answer, used to restore state on resume."""
    question_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = ExamResponse
        fields = ['question_id', 'selected_option_ids', 'numerical_answer', 'text_answer', 'is_marked_for_review']

class ExamAttemptSerializer(serializers.ModelSerializer):
    exam_id = serializers.IntegerField(read_only=True)
    exam_title = serializers.CharField(source='exam.title', read_only=True)
    deadline = serializers.DateTimeField(read_only=True)
    remaining_seconds = serializers.SerializerMethodField()

    class Meta:
        model = ExamAttempt
        fields = [
            'id', 'exam_id', 'exam_title', 'attempt_number', 'status',
            'started_at', 'deadline', 'remaining_seconds', 'submitted_at', 'time_taken_seconds',
            'tab_switch_count', 'correct_answers', 'wrong_answers', 'skipped_questions',
            'marks_obtained', 'percentage', 'is_passed', 'is_graded',
        ]
        read_only_fields = fields

    def get_remaining_seconds(self, obj):
        return obj.remaining_seconds()

class ActiveAttemptSerializer(ExamAttemptSerializer):
    """Attempt plus the answers saved so far."""
    responses = SavedAnswerSerializer(many=True, read_only=True)

    class Meta(ExamAttemptSerializer.Meta):
        fields = ExamAttemptSerializer.Meta.fields + ['responses']
        read_only_fields = fields

class ExamResultSerializer(serializers.Serializer):
    attempt = ExamAttemptSerializer()
    total_attempts = serializers.IntegerField()
    best_marks = serializers.DecimalField(max_digits=8, decimal_places=2, allow_null=True)

class LeaderboardEntrySerializer(serializers.Serializer):
    rank = serializers.IntegerField()
    percentile = serializers.DecimalField(max_digits=5, decimal_places=2)
    attempt_id = serializers.IntegerField()
    student_id = serializers.IntegerField()
    student_name = serializers.CharField()
    marks_obtained = serializers.DecimalField(max_digits=8, decimal_places=2)
    percentage = serializers.DecimalField(max_digits=6, decimal_places=2, allow_null=True)
    is_passed = serializers.BooleanField(allow_null=True)
    time_taken_seconds = serializers.IntegerField(allow_null=True)

class LeaderboardQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=100, default=10)

# --- Requests ---

class SaveResponseSerializer(serializers.Serializer):
    # Map frontend camelCase names to model fields
    questionId = serializers.IntegerField(source='question_id')
    selectedOptionIds = serializers.ListField(
        child=serializers.IntegerField(), source='selected_option_ids', required=False, allow_null=True
    )
    numericalAnswer = serializers.DecimalField(
        max_digits=16, decimal_places=6, source='numerical_answer', required=False, allow_null=True
    )
    textAnswer = serializers.CharField(
        source='text_answer', required=False, allow_null=True, allow_blank=True, trim_whitespace=False
    )
    isMarkedForReview = serializers.BooleanField(source='is_marked_for_review', required=False)

    def payload(self):
        """Answer fields that were actually sent, keyed by model name."""
        data = dict(self.validated_data)
        data.pop('question_id')
        if 'selected_option_ids' in data and data['selected_option_ids'] is None:
            data['selected_option_ids'] = []
        return data

class SubmitAttemptSerializer(serializers.Serializer):
    reason = serializers.ChoiceField(choices=[store.MANUAL, store.TIMEOUT], default=store.MANUAL)

# --- Review ---

class ReviewResponseSerializer(serializers.ModelSerializer):
    """
    One answered question for post-exam review.

    The answer key (correct options, expected value, model answer,
    explanation) is only included once the response has been graded.
    """
    question = serializers.SerializerMethodField()

    class Meta:
        model = ExamResponse
        fields = [
            'question', 'selected_option_ids', 'numerical_answer', 'text_answer',
            'is_marked_for_review', 'is_correct', 'marks_awarded', 'grader_feedback',
        ]

    def get_question(self, obj):
        question = obj.question
        graded = obj.is_graded
        options = getattr(question, 'ordered_options', None)
        if options is None:
            options = question.options.all()

        data = {
            'id': question.pk,
            'question_text': question.text,
            'question_type': question.question_type,
            'marks': str(question.marks),
            'negative_marks': str(question.negative_marks),
            'options': [
                {'id': o.pk, 'text': o.text, **({'is_correct': o.is_correct} if graded else {})}
                for o in options
            ],
        }
        if graded:
            if question.numerical_answer is not None:
                data['correct_numerical_answer'] = str(question.numerical_answer)
                data['numerical_tolerance'] = str(question.numerical_tolerance)
            data['model_answer'] = question.model_answer
            data['explanation'] = question.explanation
        return data

# --- Grading ---

class GradeEntrySerializer(serializers.Serializer):
    question_id = serializers.IntegerField()
    marks = serializers.DecimalField(max_digits=6, decimal_places=2)
    feedback = serializers.CharField(required=False, allow_blank=True, default='')

class GradeAttemptSerializer(serializers.Serializer):
    grades = GradeEntrySerializer(many=True, allow_empty=False)

class PendingGradingSerializer(ExamAttemptSerializer):
    student_email = serializers.CharField(source='student.email', read_only=True)

    class Meta(ExamAttemptSerializer.Meta):
        fields = ExamAttemptSerializer.Meta.fields + ['student_email']
        read_only_fields = fields
