# institute_platform/exams/models.py
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

class Exam(models.Model):
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)

    # Scope
    subject = models.CharField(max_length=100, blank=True)
    class_grade = models.CharField(max_length=50, blank=True)

    duration_minutes = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    total_marks = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal('0'))
    passing_marks = models.DecimalField(max_digits=8, decimal_places=2, default=Decimal('0'))

    # Scheduling window, both ends optional
    starts_at = models.DateTimeField(null=True, blank=True)
    ends_at = models.DateTimeField(null=True, blank=True)

    randomize_questions = models.BooleanField(default=False)
    randomize_options = models.BooleanField(default=False)
    max_attempts = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    allow_review = models.BooleanField(default=True)

    # Leaving the exam tab too often ends the attempt
    enable_tab_switch_detection = models.BooleanField(default=False)
    max_tab_switches = models.PositiveIntegerField(default=3, validators=[MinValueValidator(1)])

    is_active = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    @property
    def is_locked(self):
        """An exam with attempts against it can no longer be edited."""
        return self.attempts.exists()

    def is_open_at(self, moment, early_entry=None):
        opens = self.starts_at
        if opens is not None and early_entry:
            opens = opens - early_entry
        if opens is not None and moment < opens:
            return False
        if self.ends_at is not None and moment > self.ends_at:
            return False
        return True

class Question(models.Model):
    class QuestionType(models.TextChoices):
        SINGLE_CHOICE = "single_choice", "Single Choice"
        MULTIPLE_CHOICE = "multiple_choice", "Multiple Choice"
        TRUE_FALSE = "true_false", "True / False"
        NUMERICAL = "numerical", "Numerical"
        SUBJECTIVE = "subjective", "Subjective"

    CHOICE_TYPES = (QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE)

    exam = models.ForeignKey(Exam, related_name='questions', on_delete=models.CASCADE)

    text = models.TextField()  # Frontend sends 'question_text'
    question_type = models.CharField(max_length=20, choices=QuestionType.choices, default=QuestionType.SINGLE_CHOICE)

    marks = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal('1'),
                                validators=[MinValueValidator(Decimal('0.01'))])
    negative_marks = models.DecimalField(max_digits=6, decimal_places=2, default=Decimal('0'),
                                         validators=[MinValueValidator(Decimal('0'))])
    partial_marks_allowed = models.BooleanField(default=False, help_text="Multiple choice only")

    # Numerical answer key
    numerical_answer = models.DecimalField(max_digits=16, decimal_places=6, null=True, blank=True)
    numerical_tolerance = models.DecimalField(max_digits=16, decimal_places=6, default=Decimal('0'),
                                              validators=[MinValueValidator(Decimal('0'))])

    model_answer = models.TextField(blank=True)
    explanation = models.TextField(blank=True)
    sequence_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['sequence_order', 'id']

    def __str__(self):
        return f"{self.text[:50]}..."

    @property
    def is_choice(self):
        return self.question_type in self.CHOICE_TYPES

class Option(models.Model):
    question = models.ForeignKey(Question, related_name='options', on_delete=models.CASCADE)
    text = models.CharField(max_length=255)
    is_correct = models.BooleanField(default=False)
    sequence_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['sequence_order', 'id']

    def __str__(self):
        return self.text
