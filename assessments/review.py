"""Read-only, student-facing reconstruction of a finished attempt."""

from exams.question_bank import ordered_questions
from .exceptions import Forbidden
from .serializers import ExamAttemptSerializer, ExamSummarySerializer, ReviewResponseSerializer
from .store import get_attempt


def compose_review(attempt_id, viewer) -> dict:
    """
    Build ``{attempt, exam, responses}`` for a submitted or expired attempt.

    Students may only review their own attempts, only after they end, and
    only when the exam allows review. Teachers and admins may review any
    finished attempt.
    """
    attempt = get_attempt(attempt_id)
    is_grader = getattr(viewer, 'can_grade', False)

    if attempt.student_id != viewer.pk and not is_grader:
        raise Forbidden("Not authorized to review this attempt.")
    if not attempt.is_terminal:
        raise Forbidden("Review is available once the attempt has been submitted.")

    exam = attempt.exam
    if not exam.allow_review and not is_grader:
        raise Forbidden("Review is not allowed for this exam.")

    by_question = {r.question_id: r for r in attempt.responses.all()}
    responses = []
    for question in ordered_questions(exam, attempt.shuffle_seed):
        response = by_question.get(question.pk)
        if response is None:
            continue
        # Reuse the attempt-ordered question, options included
        response.question = question
        responses.append(response)

    return {
        'attempt': ExamAttemptSerializer(attempt).data,
        'exam': ExamSummarySerializer(exam).data,
        'responses': ReviewResponseSerializer(responses, many=True).data,
    }
