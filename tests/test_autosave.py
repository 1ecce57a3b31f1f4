import threading
from datetime import datetime, timedelta, timezone

import pytest

from assessments import store
from assessments.autosave import AutosavePipeline, AutosaveWarning, get_pipeline, persist_response
from assessments.exceptions import Conflict
from assessments.models import ExamResponse
from exams.models import Question
from .factories import question_of


class RecordingWriter:
    """Stands in for the store; remembers every write it receives."""

    def __init__(self, failures=0, exc=RuntimeError("database unavailable")):
        self.calls = []
        self.failures = failures
        self.exc = exc
        self.lock = threading.Lock()

    def __call__(self, attempt_id, question_id, payload, received_at):
        with self.lock:
            self.calls.append((attempt_id, question_id, payload))
            if self.failures:
                self.failures -= 1
                raise self.exc


@pytest.fixture
def pipelines():
    created = []

    def build(writer, **kwargs):
        kwargs.setdefault("debounce_seconds", 10)
        kwargs.setdefault("backoff_seconds", 0)
        pipeline = AutosavePipeline(writer, **kwargs)
        created.append(pipeline)
        return pipeline

    yield build
    for pipeline in created:
        pipeline.shutdown()


def test_burst_collapses_to_latest_value(pipelines):
    writer = RecordingWriter()
    pipeline = pipelines(writer)

    for value in ("a", "ab", "abc"):
        pipeline.push(1, 7, {"text_answer": value})
    assert writer.calls == []

    pipeline.flush()
    assert writer.calls == [(1, 7, {"text_answer": "abc"})]


def test_write_happens_after_quiet_period(pipelines):
    written = threading.Event()

    def writer(attempt_id, question_id, payload, received_at):
        written.set()

    pipeline = pipelines(writer, debounce_seconds=0.01)
    pipeline.push(1, 7, {"is_marked_for_review": True})

    assert written.wait(timeout=5)


def test_questions_are_written_independently(pipelines):
    release = threading.Event()
    b_written = threading.Event()

    def writer(attempt_id, question_id, payload, received_at):
        if question_id == 1:
            release.wait(timeout=5)
        else:
            b_written.set()

    pipeline = pipelines(writer, debounce_seconds=0)
    pipeline.push(1, 1, {"text_answer": "slow"})
    pipeline.push(1, 2, {"text_answer": "fast"})

    try:
        assert b_written.wait(timeout=5)
    finally:
        release.set()


def test_edit_during_write_is_applied_after_it(pipelines):
    started = threading.Event()
    release = threading.Event()
    seen = []

    def writer(attempt_id, question_id, payload, received_at):
        seen.append(payload["text_answer"])
        if len(seen) == 1:
            started.set()
            release.wait(timeout=5)

    pipeline = pipelines(writer)
    pipeline.push(1, 1, {"text_answer": "first"})
    flusher = threading.Thread(target=pipeline.flush)
    flusher.start()
    assert started.wait(timeout=5)

    pipeline.push(1, 1, {"text_answer": "second"})
    release.set()
    flusher.join(timeout=5)
    pipeline.flush(timeout=5)

    assert seen == ["first", "second"]


def test_flush_one_attempt_leaves_others_queued(pipelines):
    writer = RecordingWriter()
    pipeline = pipelines(writer)
    pipeline.push(1, 1, {"text_answer": "mine"})
    pipeline.push(2, 1, {"text_answer": "theirs"})

    pipeline.flush(attempt_id=1)

    assert writer.calls == [(1, 1, {"text_answer": "mine"})]
    assert pipeline.pending_count() == 1


def test_transient_failure_is_retried(pipelines):
    writer = RecordingWriter(failures=2)
    pipeline = pipelines(writer, synchronous=True, max_retries=3)

    pipeline.push(1, 1, {"text_answer": "x"})

    assert len(writer.calls) == 3
    assert pipeline.drain_warnings(1) == []


def test_gives_up_with_a_warning(pipelines):
    writer = RecordingWriter(failures=100)
    pipeline = pipelines(writer, synchronous=True, max_retries=2)

    pipeline.push(1, 4, {"text_answer": "x"})

    assert len(writer.calls) == 3
    warnings = pipeline.drain_warnings(1)
    assert warnings == [AutosaveWarning(1, 4, "Your answer could not be saved. Please try again.")]
    assert pipeline.drain_warnings(1) == []


def test_rejected_write_is_not_retried(pipelines):
    writer = RecordingWriter(failures=1, exc=Conflict("Time is up for this attempt."))
    pipeline = pipelines(writer, synchronous=True, max_retries=3)

    pipeline.push(1, 4, {"text_answer": "x"})

    assert len(writer.calls) == 1
    assert [w.as_dict() for w in pipeline.drain_warnings(1)] == [
        {"question_id": 4, "message": "Time is up for this attempt."}
    ]


def test_warnings_are_per_attempt(pipelines):
    pipeline = pipelines(RecordingWriter(failures=100), synchronous=True, max_retries=0)
    pipeline.push(1, 1, {})
    pipeline.push(2, 1, {})

    assert len(pipeline.drain_warnings(2)) == 1
    assert len(pipeline.drain_warnings(1)) == 1


def test_synchronous_mode_writes_inline(pipelines):
    writer = RecordingWriter()
    pipeline = pipelines(writer, synchronous=True)

    pipeline.push(1, 1, {"text_answer": "now"})

    assert writer.calls == [(1, 1, {"text_answer": "now"})]
    assert pipeline.is_synchronous
    assert pipeline.flush() == 0


def test_pipeline_follows_settings(settings):
    settings.EXAM_ENGINE = {"AUTOSAVE_ASYNC": False}
    get_pipeline.cache_clear()
    assert get_pipeline().is_synchronous
    assert get_pipeline() is get_pipeline()


def test_arrival_time_travels_with_the_write(pipelines):
    seen = []

    def writer(attempt_id, question_id, payload, received_at):
        seen.append((payload["text_answer"], received_at))

    first = datetime(2026, 3, 1, 9, 59, 58, tzinfo=timezone.utc)
    last = first + timedelta(seconds=1)
    pipeline = pipelines(writer)
    pipeline.push(1, 1, {"text_answer": "draft"}, first)
    pipeline.push(1, 1, {"text_answer": "final"}, last)
    pipeline.flush()

    assert seen == [("final", last)]


def test_forget_drops_queued_writes_and_warnings(pipelines):
    writer = RecordingWriter()
    pipeline = pipelines(writer)
    pipeline._warn((1, 2), "Your answer could not be saved. Please try again.")
    pipeline.push(1, 1, {"text_answer": "after submit"})
    pipeline.push(2, 1, {"text_answer": "someone else"})

    warnings = pipeline.forget(1)

    assert [w.question_id for w in warnings] == [2]
    assert pipeline.drain_warnings(1) == []
    assert pipeline.pending_count() == 1
    pipeline.flush()
    assert writer.calls == [(2, 1, {"text_answer": "someone else"})]


@pytest.mark.django_db(transaction=True)
def test_answer_received_before_deadline_survives_the_debounce(student, exam, pipelines):
    started = datetime.now(timezone.utc) - timedelta(minutes=exam.duration_minutes, seconds=5)
    attempt, _ = store.start_or_resume(student, exam.pk, now=started)
    question = question_of(exam, Question.QuestionType.SUBJECTIVE)

    # Arrived a second before time ran out; written after it
    pipeline = pipelines(persist_response, debounce_seconds=0.05)
    pipeline.push(attempt.pk, question.pk, {"text_answer": "my answer"}, attempt.deadline - timedelta(seconds=1))
    pipeline.flush(timeout=5)

    assert pipeline.drain_warnings(attempt.pk) == []
    assert ExamResponse.objects.get(attempt=attempt, question=question).text_answer == "my answer"


@pytest.mark.django_db(transaction=True)
def test_answer_received_after_deadline_is_rejected(student, exam, pipelines):
    started = datetime.now(timezone.utc) - timedelta(minutes=exam.duration_minutes, seconds=5)
    attempt, _ = store.start_or_resume(student, exam.pk, now=started)
    question = question_of(exam, Question.QuestionType.SUBJECTIVE)

    pipeline = pipelines(persist_response, debounce_seconds=0.05)
    pipeline.push(attempt.pk, question.pk, {"text_answer": "late"}, attempt.deadline + timedelta(seconds=1))
    pipeline.flush(timeout=5)

    assert [w.message for w in pipeline.drain_warnings(attempt.pk)] == ["Time is up for this attempt."]
    assert ExamResponse.objects.get(attempt=attempt, question=question).text_answer is None
