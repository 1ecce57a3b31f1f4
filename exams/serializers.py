# institute_platform/exams/serializers.py
from django.db import transaction
from rest_framework import serializers
from .models import Exam, Question, Option

# --- Helper Serializers ---

class OptionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Option
        fields = ['id', 'text', 'is_correct', 'sequence_order']
        read_only_fields = ['id']

# --- Question Serializers ---

class QuestionSerializer(serializers.ModelSerializer):
    """Staff view of a question, answer key included."""
    # Map frontend 'question_text' to backend 'text'
    question_text = serializers.CharField(source='text')
    options = OptionSerializer(many=True, required=False)

    # Read-only field to show exam title
    exam_title = serializers.CharField(source='exam.title', read_only=True)

    class Meta:
        model = Question
        fields = [
            'id', 'exam', 'exam_title', 'question_text', 'question_type',
            'marks', 'negative_marks', 'partial_marks_allowed',
            'numerical_answer', 'numerical_tolerance',
            'model_answer', 'explanation', 'sequence_order', 'options',
        ]

    def validate(self, attrs):
        q_type = attrs.get('question_type', getattr(self.instance, 'question_type', Question.QuestionType.SINGLE_CHOICE))
        options = attrs.get('options')
        if options is None and self.instance is not None:
            options = [{'is_correct': o.is_correct} for o in self.instance.options.all()]
        options = options or []
        correct = sum(1 for o in options if o.get('is_correct'))

        if q_type in Question.CHOICE_TYPES:
            if len(options) < 2:
                raise serializers.ValidationError({"options": "Choice questions need at least two options."})
            if correct == 0:
                raise serializers.ValidationError({"options": "Mark at least one option as correct."})
            if q_type != Question.QuestionType.MULTIPLE_CHOICE and correct != 1:
                raise serializers.ValidationError({"options": "Exactly one option must be correct."})
            if q_type == Question.QuestionType.TRUE_FALSE and len(options) != 2:
                raise serializers.ValidationError({"options": "True/false questions have exactly two options."})
        elif options:
            raise serializers.ValidationError({"options": f"A {q_type} question does not take options."})

        if attrs.get('partial_marks_allowed') and q_type != Question.QuestionType.MULTIPLE_CHOICE:
            raise serializers.ValidationError({"partial_marks_allowed": "Only multiple choice questions award partial marks."})
        return attrs

    @transaction.atomic
    def create(self, validated_data):
        options_data = validated_data.pop('options', [])
        question = Question.objects.create(**validated_data)
        for opt in options_data:
            Option.objects.create(question=question, **opt)
        return question

    @transaction.atomic
    def update(self, instance, validated_data):
        options_data = validated_data.pop('options', None)
        instance = super().update(instance, validated_data)

        # Options are replaced wholesale when sent
        if options_data is not None:
            instance.options.all().delete()
            for opt in options_data:
                Option.objects.create(question=instance, **opt)
        return instance

# --- Exam Serializers ---

class ExamSerializer(serializers.ModelSerializer):
    # Read-only counts
    total_questions = serializers.IntegerField(source='questions.count', read_only=True)
    is_locked = serializers.BooleanField(read_only=True)

    class Meta:
        model = Exam
        fields = [
            'id', 'title', 'description', 'subject', 'class_grade',
            'duration_minutes', 'total_marks', 'passing_marks',
            'starts_at', 'ends_at', 'randomize_questions', 'randomize_options',
            'max_attempts', 'allow_review', 'enable_tab_switch_detection', 'max_tab_switches',
            'is_active', 'total_questions', 'is_locked',
        ]

    def validate(self, attrs):
        def current(name):
            return attrs.get(name, getattr(self.instance, name, None))

        total, passing = current('total_marks'), current('passing_marks')
        if total is not None and passing is not None and passing > total:
            raise serializers.ValidationError({"passing_marks": "Passing marks cannot exceed total marks."})

        starts, ends = current('starts_at'), current('ends_at')
        if starts and ends and ends <= starts:
            raise serializers.ValidationError({"ends_at": "End time must be after the start time."})
        return attrs

class ExamListSerializer(serializers.ModelSerializer):
    """What students see before starting: no questions, no answer key."""
    total_questions = serializers.IntegerField(source='questions.count', read_only=True)

    class Meta:
        model = Exam
        fields = [
            'id', 'title', 'description', 'subject', 'class_grade',
            'duration_minutes', 'total_marks', 'passing_marks',
            'starts_at', 'ends_at', 'max_attempts', 'enable_tab_switch_detection', 'max_tab_switches',
            'total_questions',
        ]

class ExamDetailSerializer(ExamSerializer):
    """Detailed view for staff"""
    questions = QuestionSerializer(many=True, read_only=True)

    class Meta(ExamSerializer.Meta):
        fields = ExamSerializer.Meta.fields + ['questions']
