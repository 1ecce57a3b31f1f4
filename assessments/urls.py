from django.urls import path
from .views import (
    ExamResultView, ExamReviewView, GradeAttemptView, LeaderboardView, PendingGradingListView,
    SaveResponseView, StartExamView, StudentExamAttemptsView, SubmitExamView, TabSwitchView,
)

urlpatterns = [
    # --- Grading Module (Teachers / Admin) ---
    path('grading/pending/', PendingGradingListView.as_view(), name='grading-pending'),
    path('grading/attempts/<int:attempt_id>/grade/', GradeAttemptView.as_view(), name='grading-grade'),

    # Student Exam Flow
    path('exams/attempts/', StudentExamAttemptsView.as_view(), name='student-attempts'),
    path('exams/<int:exam_id>/start/', StartExamView.as_view(), name='start-exam'),
    path('exams/<int:exam_id>/result/', ExamResultView.as_view(), name='exam-result'),
    path('exams/attempts/<int:attempt_id>/save/', SaveResponseView.as_view(), name='save-response'),
    path('exams/attempts/<int:attempt_id>/submit/', SubmitExamView.as_view(), name='submit-exam'),
    path('exams/attempts/<int:attempt_id>/review/', ExamReviewView.as_view(), name='review-attempt'),
    path('exams/attempts/<int:attempt_id>/tab-switch/', TabSwitchView.as_view(), name='tab-switch'),
    path('exams/<int:exam_id>/leaderboard/', LeaderboardView.as_view(), name='exam-leaderboard'),
]
