"""
Exam leaderboard.

Each student appears once, with their best finished attempt. Tied marks
share a rank and the next distinct score skips ahead (1, 2, 2, 4).
Percentile is the share of ranked students placed below the entry.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import List

from exams.models import Exam
from .exceptions import NotFound
from .models import ExamAttempt

HUNDRED = Decimal('100')
TWO_PLACES = Decimal('0.01')


def best_attempts(exam_id) -> List[ExamAttempt]:
    """One attempt per student: highest marks, then fastest, then earliest."""
    attempts = (ExamAttempt.objects.select_related('student')
                .filter(exam_id=exam_id, marks_obtained__isnull=False)
                .exclude(status=ExamAttempt.Status.IN_PROGRESS)
                .order_by('-marks_obtained', 'time_taken_seconds', 'submitted_at', 'pk'))

    seen = set()
    best = []
    for attempt in attempts:
        if attempt.student_id in seen:
            continue
        seen.add(attempt.student_id)
        best.append(attempt)
    return best


def rank(attempts: List[ExamAttempt]) -> List[dict]:
    total = len(attempts)
    entries = []
    for position, attempt in enumerate(attempts):
        if position and attempt.marks_obtained == attempts[position - 1].marks_obtained:
            place = entries[-1]['rank']
        else:
            place = position + 1

        student = attempt.student
        entries.append({
            'rank': place,
            'percentile': (Decimal(total - place) / total * HUNDRED).quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
            'attempt_id': attempt.pk,
            'student_id': student.pk,
            'student_name': student.get_full_name() or student.username,
            'marks_obtained': attempt.marks_obtained,
            'percentage': attempt.percentage,
            'is_passed': attempt.is_passed,
            'time_taken_seconds': attempt.time_taken_seconds,
        })
    return entries


def leaderboard(exam_id, limit=10) -> List[dict]:
    if not Exam.objects.filter(pk=exam_id).exists():
        raise NotFound("Exam not found.")
    return rank(best_attempts(exam_id))[:limit]
