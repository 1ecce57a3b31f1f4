"""
Attempt state store.

The only place that creates attempts, writes responses and moves an attempt
out of ``in_progress``. Every mutation runs in its own transaction so any
worker process can serve any request for a given attempt.
"""
import logging
import secrets
from decimal import Decimal, InvalidOperation
from typing import Tuple

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from exams import question_bank
from exams.models import Question
from . import scoring, timer
from .conf import engine_setting
from .exceptions import Conflict, Forbidden, NotFound, ValidationError
from .models import ExamAttempt, ExamResponse

logger = logging.getLogger(__name__)

MANUAL = "manual"
TIMEOUT = "timeout"
TAB_SWITCH = "tab_switch"

# The system ends an attempt on timeout or too many tab switches
REASON_STATUS = {
    MANUAL: ExamAttempt.Status.SUBMITTED,
    TIMEOUT: ExamAttempt.Status.EXPIRED,
    TAB_SWITCH: ExamAttempt.Status.EXPIRED,
}

PAYLOAD_FIELDS = ('selected_option_ids', 'numerical_answer', 'text_answer', 'is_marked_for_review')

NUMERICAL_LIMIT = Decimal('1e10')
SIX_PLACES = Decimal('0.000001')

IN_PROGRESS = ExamAttempt.Status.IN_PROGRESS


# --- Lookups ---

def _in_progress_attempt(student, exam_id):
    return (ExamAttempt.objects.select_related('exam')
            .filter(student=student, exam_id=exam_id, status=IN_PROGRESS)
            .first())


def get_attempt(attempt_id) -> ExamAttempt:
    try:
        return ExamAttempt.objects.select_related('exam').get(pk=attempt_id)
    except ExamAttempt.DoesNotExist:
        raise NotFound("Attempt not found.")


def get_owned_attempt(user, attempt_id) -> ExamAttempt:
    attempt = get_attempt(attempt_id)
    if attempt.student_id != user.pk:
        raise Forbidden("Not authorized to access this attempt.")
    return attempt


def finished_attempts(student, exam_id):
    return (ExamAttempt.objects.select_related('exam')
            .filter(student=student, exam_id=exam_id)
            .exclude(status=IN_PROGRESS)
            .order_by('-submitted_at'))


# --- Start / resume ---

def start_or_resume(student, exam_id, now=None) -> Tuple[ExamAttempt, bool]:
    """
    Return ``(attempt, created)`` for the student's in-progress attempt, creating it if needed.

    A second call returns the same attempt with its original ``started_at``.
    Two concurrent first calls are settled by the partial unique constraint
    on in-progress attempts: the loser re-reads the winner's row.
    """
    existing = _in_progress_attempt(student, exam_id)
    if existing is not None:
        logger.info(f"Resuming attempt {existing.pk} for student {student.pk} on exam {exam_id}")
        return existing, False

    now = now or timezone.now()
    bundle = question_bank.load_exam_for_attempt(exam_id, now=now)
    exam = bundle.exam

    try:
        with transaction.atomic():
            finished = (ExamAttempt.objects.filter(student=student, exam=exam)
                        .exclude(status=IN_PROGRESS).count())
            if finished >= exam.max_attempts:
                raise Conflict(f"Maximum attempts ({exam.max_attempts}) reached.")

            attempt = ExamAttempt.objects.create(
                student=student,
                exam=exam,
                attempt_number=finished + 1,
                started_at=now,
                shuffle_seed=secrets.randbits(62),
            )
            # Empty rows up front so skipped questions are visible at grading
            ExamResponse.objects.bulk_create(
                [ExamResponse(attempt=attempt, question=question) for question in bundle.questions]
            )
    except IntegrityError:
        winner = _in_progress_attempt(student, exam_id)
        if winner is None:
            raise
        logger.info(f"Concurrent start for student {student.pk} on exam {exam_id}; using attempt {winner.pk}")
        return winner, False

    logger.info(f"Created attempt {attempt.pk} (#{attempt.attempt_number}) for student {student.pk} on exam {exam_id}")
    return attempt, True


# --- Responses ---

def _ensure_writable(attempt: ExamAttempt, now=None):
    if attempt.status != IN_PROGRESS:
        raise Conflict("Attempt is not in progress.")
    if timer.is_past_deadline(attempt.exam.duration_minutes, attempt.started_at, now):
        raise Conflict("Time is up for this attempt.")


def _get_question(attempt: ExamAttempt, question_id) -> Question:
    try:
        return (Question.objects.prefetch_related('options')
                .get(pk=question_id, exam_id=attempt.exam_id))
    except (Question.DoesNotExist, ValueError, TypeError):
        raise NotFound("Question not found in this exam.")


def _clean_option_ids(question: Question, ids):
    if not isinstance(ids, (list, tuple)):
        raise ValidationError("selected_option_ids must be a list.")
    if ids and not question.is_choice:
        raise ValidationError(f"A {question.question_type} question does not take selected options.")
    if any(isinstance(i, bool) or not isinstance(i, int) for i in ids):
        raise ValidationError("Option ids must be integers.")

    ordered = list(dict.fromkeys(ids))
    valid = {option.pk for option in question.options.all()}
    if not set(ordered) <= valid:
        raise ValidationError("Selected options do not belong to this question.")
    if len(ordered) > 1 and question.question_type != Question.QuestionType.MULTIPLE_CHOICE:
        raise ValidationError("Only one option may be selected for this question.")
    return ordered


def _clean_numerical(question: Question, value):
    if value is None:
        return None
    if question.question_type != Question.QuestionType.NUMERICAL:
        raise ValidationError(f"A {question.question_type} question does not take a numerical answer.")
    if isinstance(value, bool):
        raise ValidationError("Numerical answer must be a number.")
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError("Numerical answer must be a number.")
    if not number.is_finite() or abs(number) >= NUMERICAL_LIMIT:
        raise ValidationError("Numerical answer is out of range.")
    return number.quantize(SIX_PLACES)


def _clean_text(question: Question, value):
    if value in (None, ''):
        return value
    if question.question_type != Question.QuestionType.SUBJECTIVE:
        raise ValidationError(f"A {question.question_type} question does not take a text answer.")
    if not isinstance(value, str):
        raise ValidationError("Text answer must be a string.")
    if len(value) > engine_setting("MAX_TEXT_ANSWER_LENGTH"):
        raise ValidationError("Text answer is too long.")
    return value


def validate_payload(question: Question, payload: dict) -> dict:
    """Check an answer payload against the question type; returns the cleaned fields."""
    unknown = set(payload) - set(PAYLOAD_FIELDS)
    if unknown:
        raise ValidationError(f"Unexpected fields: {', '.join(sorted(unknown))}.")

    cleaned = {}
    if 'selected_option_ids' in payload:
        cleaned['selected_option_ids'] = _clean_option_ids(question, payload['selected_option_ids'] or [])
    if 'numerical_answer' in payload:
        cleaned['numerical_answer'] = _clean_numerical(question, payload['numerical_answer'])
    if 'text_answer' in payload:
        cleaned['text_answer'] = _clean_text(question, payload['text_answer'])
    if 'is_marked_for_review' in payload:
        cleaned['is_marked_for_review'] = bool(payload['is_marked_for_review'])
    return cleaned


def check_response(attempt: ExamAttempt, question_id, payload: dict, now=None):
    """
    Validate a save request without writing it.

    Returns ``(question, cleaned_payload)``. Used by the HTTP layer so that a
    save which can never succeed is rejected before it reaches the autosave queue.
    """
    _ensure_writable(attempt, now)
    question = _get_question(attempt, question_id)
    return question, validate_payload(question, payload)


def record_response(attempt_id, question_id, payload: dict, now=None) -> ExamResponse:
    """
    Upsert the response for (attempt, question).

    Only fields present in ``payload`` change. The attempt row is locked for
    the duration so a write can never land after the submit that ends it.
    ``now`` is when the answer reached the server; the deadline is checked
    against it, while the status is always checked under the lock.
    """
    with transaction.atomic():
        try:
            attempt = (ExamAttempt.objects.select_for_update(of=('self',))
                       .select_related('exam').get(pk=attempt_id))
        except ExamAttempt.DoesNotExist:
            raise NotFound("Attempt not found.")

        question, cleaned = check_response(attempt, question_id, payload, now)

        response, _ = ExamResponse.objects.get_or_create(attempt=attempt, question=question)
        for field, value in cleaned.items():
            setattr(response, field, value)
        response.answered_at = (now or timezone.now()) if response.is_attempted else None
        response.save()

    return response


# --- Submit ---

def submit(attempt_id, reason=MANUAL, now=None) -> ExamAttempt:
    """
    End an attempt and score it.

    The transition is claimed with a conditional update, so when a timeout and
    a manual submit race only one of them grades; the other (and any later
    call) gets the stored result back. Late submits are still accepted.
    """
    status = REASON_STATUS.get(reason)
    if status is None:
        raise ValidationError(f"Unknown submit reason: {reason}.")

    with transaction.atomic():
        attempt = get_attempt(attempt_id)
        if attempt.is_terminal:
            logger.info(f"Attempt {attempt.pk} already {attempt.status}; returning stored result")
            return attempt

        now = now or timezone.now()
        time_taken = max(0, int((now - attempt.started_at).total_seconds()))
        claimed = (ExamAttempt.objects
                   .filter(pk=attempt.pk, status=IN_PROGRESS)
                   .update(status=status, submitted_at=now, time_taken_seconds=time_taken))
        attempt.refresh_from_db()

        if not claimed:
            logger.info(f"Attempt {attempt.pk} was submitted concurrently; returning stored result")
            return attempt

        scoring.score_attempt(attempt)
        attempt.save()

    logger.info(f"Attempt {attempt.pk} {attempt.status} ({reason}) with {attempt.marks_obtained} marks")
    return attempt


# --- Proctoring ---

def record_tab_switch(attempt_id, now=None) -> Tuple[ExamAttempt, bool]:
    """
    Count one tab switch reported by the client.

    Returns ``(attempt, exceeded)``. When the exam has detection enabled and
    the count reaches ``max_tab_switches`` the attempt is submitted on the
    student's behalf and comes back expired.
    """
    with transaction.atomic():
        try:
            attempt = (ExamAttempt.objects.select_for_update(of=('self',))
                       .select_related('exam').get(pk=attempt_id))
        except ExamAttempt.DoesNotExist:
            raise NotFound("Attempt not found.")
        if attempt.is_terminal:
            raise Conflict("Attempt is not in progress.")

        ExamAttempt.objects.filter(pk=attempt.pk).update(tab_switch_count=F('tab_switch_count') + 1)
        attempt.refresh_from_db(fields=['tab_switch_count'])

        exam = attempt.exam
        exceeded = exam.enable_tab_switch_detection and attempt.tab_switch_count >= exam.max_tab_switches
        logger.info(f"Attempt {attempt.pk} tab switch {attempt.tab_switch_count}/{exam.max_tab_switches}")
        if exceeded:
            attempt = submit(attempt.pk, reason=TAB_SWITCH, now=now)

    return attempt, exceeded
