from django.contrib import admin

from .models import ExamAttempt, ExamResponse

class ExamResponseInline(admin.TabularInline):
    model = ExamResponse
    extra = 0
    can_delete = False
    readonly_fields = ('question', 'selected_option_ids', 'numerical_answer', 'text_answer',
                       'is_correct', 'marks_awarded', 'answered_at')

@admin.register(ExamAttempt)
class ExamAttemptAdmin(admin.ModelAdmin):
    list_display = ('student', 'exam', 'attempt_number', 'status', 'marks_obtained', 'is_passed', 'is_graded')
    list_filter = ('status', 'is_graded', 'exam')
    # Attempts change only through the engine
    readonly_fields = ('started_at', 'shuffle_seed', 'submitted_at', 'time_taken_seconds', 'tab_switch_count')
    inlines = [ExamResponseInline]
