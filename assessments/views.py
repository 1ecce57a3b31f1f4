from django.db.models import Max
from django.utils import timezone
from rest_framework import generics, permissions, status, views
from rest_framework.response import Response

from exams import question_bank
from . import grading, leaderboard, store
from .autosave import get_pipeline
from .conf import engine_setting
from .exceptions import NotFound
from .models import ExamAttempt
from .permissions import IsGraderOrAdmin, IsStudent
from .review import compose_review
from .serializers import (
    ActiveAttemptSerializer, ExamAttemptSerializer, ExamResultSerializer,
    GradeAttemptSerializer, LeaderboardEntrySerializer, LeaderboardQuerySerializer,
    PendingGradingSerializer, SaveResponseSerializer, StudentQuestionSerializer,
    SubmitAttemptSerializer,
)


# --- TEACHER VIEWS ---

class PendingGradingListView(generics.ListAPIView):
    """List all submitted attempts that still have answers to grade by hand."""
    permission_classes = [IsGraderOrAdmin]
    serializer_class = PendingGradingSerializer

    def get_queryset(self):
        return grading.pending_grading_queryset()

class GradeAttemptView(views.APIView):
    """Teacher submits marks for subjective answers of an attempt."""
    permission_classes = [IsGraderOrAdmin]

    def post(self, request, attempt_id):
        # Expects { "grades": [ { "question_id": 1, "marks": 5, "feedback": "" } ] }
        serializer = GradeAttemptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        attempt = grading.grade_attempt(attempt_id, request.user, serializer.validated_data['grades'])
        return Response({
            "status": "Graded successfully",
            "attempt": ExamAttemptSerializer(attempt).data,
        })


# --- STUDENT VIEWS ---

class StartExamView(views.APIView):
    """
    Student starts an exam, or resumes the one already in progress.
    Returns the attempt WITH its questions, in attempt order.
    """
    permission_classes = [IsStudent]

    def post(self, request, exam_id):
        attempt, created = store.start_or_resume(request.user, exam_id)
        bundle = question_bank.load_exam_for_attempt(exam_id, attempt=attempt)

        data = {
            'attempt': ActiveAttemptSerializer(attempt).data,
            'questions': StudentQuestionSerializer(bundle.questions, many=True).data,
        }
        return Response(data, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)

class SaveResponseView(views.APIView):
    """
    Autosave one answer.
    The request is validated now; the write itself goes through the debounced pipeline.
    """
    permission_classes = [IsStudent]

    def post(self, request, attempt_id):
        received_at = timezone.now()
        attempt = store.get_owned_attempt(request.user, attempt_id)

        serializer = SaveResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        question_id = serializer.validated_data['question_id']

        question, payload = store.check_response(attempt, question_id, serializer.payload(), now=received_at)

        # The deadline is judged on arrival, not when the debounced write runs
        pipeline = get_pipeline()
        pipeline.push(attempt.pk, question.pk, payload, received_at)
        warnings = pipeline.drain_warnings(attempt.pk)

        return Response({
            "status": "saved" if pipeline.is_synchronous else "queued",
            "warnings": [w.as_dict() for w in warnings],
        }, status=status.HTTP_202_ACCEPTED)

class SubmitExamView(views.APIView):
    """
    Student submits (or the client reports a timeout).
    Grades objective questions immediately; repeat calls return the stored result.
    """
    permission_classes = [IsStudent]

    def post(self, request, attempt_id):
        attempt = store.get_owned_attempt(request.user, attempt_id)

        serializer = SubmitAttemptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        # Best effort: answers still queued on this worker get a chance to land
        pipeline = get_pipeline()
        pipeline.flush(attempt.pk, timeout=engine_setting("AUTOSAVE_FLUSH_TIMEOUT_SECONDS"))

        attempt = store.submit(attempt.pk, serializer.validated_data['reason'])
        warnings = pipeline.forget(attempt.pk)

        data = ExamAttemptSerializer(attempt).data
        data['warnings'] = [w.as_dict() for w in warnings]
        return Response(data)

class TabSwitchView(views.APIView):
    """
    Client reports that the student left the exam tab.
    Past the exam's limit the attempt is submitted for them.
    """
    permission_classes = [IsStudent]

    def post(self, request, attempt_id):
        attempt = store.get_owned_attempt(request.user, attempt_id)
        attempt, exceeded = store.record_tab_switch(attempt.pk)
        if exceeded:
            get_pipeline().forget(attempt.pk)

        return Response({
            "count": attempt.tab_switch_count,
            "exceeded": exceeded,
            "attempt": ExamAttemptSerializer(attempt).data,
        })

class ExamResultView(views.APIView):
    """Latest finished attempt of the caller for an exam."""
    permission_classes = [IsStudent]

    def get(self, request, exam_id):
        finished = store.finished_attempts(request.user, exam_id)
        latest = finished.first()
        if latest is None:
            raise NotFound("Result not found.")

        result = {
            'attempt': latest,
            'total_attempts': finished.count(),
            'best_marks': finished.aggregate(best=Max('marks_obtained'))['best'],
        }
        return Response(ExamResultSerializer(result).data)

class ExamReviewView(views.APIView):
    """Read-only review of a finished attempt (owner, or any teacher)."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, attempt_id):
        return Response(compose_review(attempt_id, request.user))

class StudentExamAttemptsView(generics.ListAPIView):
    """List all exam attempts for the logged-in student."""
    permission_classes = [IsStudent]
    serializer_class = ExamAttemptSerializer

    def get_queryset(self):
        return ExamAttempt.objects.select_related('exam').filter(student=self.request.user).order_by('-started_at')

class LeaderboardView(views.APIView):
    """Best finished attempt per student, ranked by marks."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, exam_id):
        query = LeaderboardQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        entries = leaderboard.leaderboard(exam_id, limit=query.validated_data['limit'])
        return Response(LeaderboardEntrySerializer(entries, many=True).data)
