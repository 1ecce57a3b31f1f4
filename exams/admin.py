from django.contrib import admin

# Register your models here.
from .models import Exam, Question, Option

class OptionInline(admin.TabularInline):
    model = Option
    extra = 0

@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ('text', 'exam', 'question_type', 'marks')
    list_filter = ('question_type',)
    inlines = [OptionInline]

admin.site.register(Exam)
admin.site.register(Option)
