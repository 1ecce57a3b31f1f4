"""
Scoring engine.

Runs once per attempt, inside the submit transaction, and grades every
persisted response against the answer key. Subjective answers (and numerical
questions without a key) are left pending for a teacher.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from exams.models import Question
from .models import ExamAttempt, ExamResponse

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')
TWO_PLACES = Decimal('0.01')


def _quantize(value) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class GradeOutcome:
    is_correct: Optional[bool]
    marks_awarded: Optional[Decimal]

    @property
    def is_pending(self):
        return self.marks_awarded is None


SKIPPED = GradeOutcome(is_correct=None, marks_awarded=ZERO)
PENDING = GradeOutcome(is_correct=None, marks_awarded=None)


@dataclass
class ScoreSummary:
    correct: int = 0
    wrong: int = 0
    skipped: int = 0
    pending: int = 0
    marks: Decimal = ZERO

    def add(self, response: Optional[ExamResponse]):
        if response is None or not response.is_attempted:
            self.skipped += 1
        elif response.marks_awarded is None:
            self.pending += 1
        elif response.is_correct:
            self.correct += 1
        else:
            self.wrong += 1
        if response is not None and response.marks_awarded is not None:
            self.marks += response.marks_awarded


def _wrong(question: Question) -> GradeOutcome:
    if question.negative_marks:
        return GradeOutcome(is_correct=False, marks_awarded=-_quantize(question.negative_marks))
    return GradeOutcome(is_correct=False, marks_awarded=ZERO)


def _right(question: Question) -> GradeOutcome:
    return GradeOutcome(is_correct=True, marks_awarded=_quantize(question.marks))


def grade_response(question: Question, response: Optional[ExamResponse],
                   correct_option_ids: Iterable[int]) -> GradeOutcome:
    """Grade a single response. Unattempted answers are never penalised."""
    if response is None or not response.is_attempted:
        return SKIPPED

    qtype = question.question_type
    if qtype == Question.QuestionType.SUBJECTIVE:
        return PENDING

    if qtype == Question.QuestionType.NUMERICAL:
        if question.numerical_answer is None:
            # No key to grade against; leave it for a teacher
            return PENDING
        if response.numerical_answer is None:
            return _wrong(question)
        delta = abs(Decimal(str(response.numerical_answer)) - question.numerical_answer)
        return _right(question) if delta <= question.numerical_tolerance else _wrong(question)

    selected = list(dict.fromkeys(response.selected_option_ids or []))
    correct_ids = set(correct_option_ids)

    if qtype in (Question.QuestionType.SINGLE_CHOICE, Question.QuestionType.TRUE_FALSE):
        if len(selected) == 1 and selected[0] in correct_ids:
            return _right(question)
        return _wrong(question)

    # multiple_choice: exact set match, partial credit only when enabled
    if correct_ids and set(selected) == correct_ids:
        return _right(question)
    if question.partial_marks_allowed and selected and set(selected) <= correct_ids:
        partial = question.marks * len(selected) / len(correct_ids)
        return GradeOutcome(is_correct=False, marks_awarded=_quantize(partial))
    return _wrong(question)


def apply_summary(attempt: ExamAttempt, summary: ScoreSummary):
    """Copy aggregate results onto the attempt. The caller saves it."""
    exam = attempt.exam
    attempt.correct_answers = summary.correct
    attempt.wrong_answers = summary.wrong
    attempt.skipped_questions = summary.skipped
    attempt.marks_obtained = _quantize(summary.marks)
    if exam.total_marks and exam.total_marks > 0:
        attempt.percentage = _quantize(summary.marks / exam.total_marks * 100)
    else:
        attempt.percentage = ZERO
    attempt.is_passed = attempt.marks_obtained >= exam.passing_marks
    attempt.is_graded = summary.pending == 0


def summarise(attempt: ExamAttempt, responses=None) -> ScoreSummary:
    """Aggregate persisted response outcomes over every question of the exam."""
    if responses is None:
        responses = {r.question_id: r for r in attempt.responses.all()}
    summary = ScoreSummary()
    for question_id in attempt.exam.questions.values_list('id', flat=True):
        summary.add(responses.get(question_id))
    return summary


def score_attempt(attempt: ExamAttempt) -> ScoreSummary:
    """
    Grade every response of ``attempt`` and fill in its aggregates.

    Only what was actually persisted is scored; answers that never reached
    the store count as skipped.
    """
    questions = attempt.exam.questions.prefetch_related('options')
    responses = {r.question_id: r for r in attempt.responses.all()}

    graded = []
    for question in questions:
        response = responses.get(question.pk)
        if response is None:
            continue
        correct_ids = [option.pk for option in question.options.all() if option.is_correct]
        outcome = grade_response(question, response, correct_ids)
        response.is_correct = outcome.is_correct
        response.marks_awarded = outcome.marks_awarded
        graded.append(response)

    ExamResponse.objects.bulk_update(graded, ['is_correct', 'marks_awarded'])

    summary = summarise(attempt, responses)
    apply_summary(attempt, summary)
    logger.info(
        f"Scored attempt {attempt.pk}: marks={summary.marks} correct={summary.correct} "
        f"wrong={summary.wrong} skipped={summary.skipped} pending={summary.pending}"
    )
    return summary
