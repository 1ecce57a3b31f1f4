# assessments/models.py
from django.conf import settings
from django.db import models
from django.db.models import Q

from exams.models import Exam, Question
from . import timer

class ExamAttempt(models.Model):
    """Tracks a student's specific attempt at an exam."""

    class Status(models.TextChoices):
        IN_PROGRESS = "in_progress", "In Progress"
        SUBMITTED = "submitted", "Submitted"
        EXPIRED = "expired", "Expired"

    TERMINAL_STATUSES = (Status.SUBMITTED, Status.EXPIRED)

    student = models.ForeignKey(settings.AUTH_USER_MODEL, related_name='exam_attempts', on_delete=models.CASCADE)
    exam = models.ForeignKey(Exam, related_name='attempts', on_delete=models.PROTECT)
    attempt_number = models.PositiveIntegerField(default=1)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.IN_PROGRESS)
    started_at = models.DateTimeField()
    shuffle_seed = models.BigIntegerField()
    submitted_at = models.DateTimeField(null=True, blank=True)
    time_taken_seconds = models.PositiveIntegerField(null=True, blank=True)
    tab_switch_count = models.PositiveIntegerField(default=0)

    # Results, written by the scoring engine
    correct_answers = models.PositiveIntegerField(null=True, blank=True)
    wrong_answers = models.PositiveIntegerField(null=True, blank=True)
    skipped_questions = models.PositiveIntegerField(null=True, blank=True)
    marks_obtained = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    percentage = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)
    is_passed = models.BooleanField(null=True)

    # Status for grading workflow
    is_graded = models.BooleanField(default=False)  # False if subjective answers need manual review
    graded_at = models.DateTimeField(null=True, blank=True)
    graded_by = models.ForeignKey(settings.AUTH_USER_MODEL, related_name='graded_attempts',
                                  null=True, blank=True, on_delete=models.SET_NULL)

    class Meta:
        ordering = ['-started_at']
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'exam'],
                condition=Q(status='in_progress'),
                name='unique_in_progress_attempt',
            ),
        ]

    def __str__(self):
        return f"{self.student} - {self.exam.title} #{self.attempt_number}"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    @property
    def deadline(self):
        return timer.deadline(self.exam.duration_minutes, self.started_at)

    def remaining_seconds(self, now=None):
        if self.is_terminal:
            return 0
        return timer.remaining(self.exam.duration_minutes, self.started_at, now)

class ExamResponse(models.Model):
    attempt = models.ForeignKey(ExamAttempt, related_name='responses', on_delete=models.CASCADE)
    question = models.ForeignKey(Question, related_name='responses', on_delete=models.CASCADE)

    # Choice types: ordered list of option ids
    selected_option_ids = models.JSONField(default=list, blank=True)
    numerical_answer = models.DecimalField(max_digits=16, decimal_places=6, null=True, blank=True)
    text_answer = models.TextField(null=True, blank=True)
    is_marked_for_review = models.BooleanField(default=False)

    # Grading
    is_correct = models.BooleanField(null=True)
    marks_awarded = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)
    grader_feedback = models.TextField(blank=True)  # Feedback from teacher

    answered_at = models.DateTimeField(null=True, blank=True)
    last_modified_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('attempt', 'question')

    def __str__(self):
        return f"{self.attempt_id} / {self.question_id}"

    @property
    def is_attempted(self):
        return bool(
            self.selected_option_ids
            or self.numerical_answer is not None
            or (self.text_answer and self.text_answer.strip())
        )

    @property
    def is_graded(self):
        return self.marks_awarded is not None
