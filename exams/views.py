import csv
import io
import logging

from django.db import transaction
from rest_framework import viewsets, permissions, status, filters
from rest_framework.decorators import action
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.response import Response

from assessments.exceptions import Conflict, NotFound, ValidationError
from assessments.permissions import IsGraderOrAdmin
from .models import Exam, Question
from .serializers import (
    ExamSerializer, ExamDetailSerializer, ExamListSerializer, QuestionSerializer,
)

logger = logging.getLogger(__name__)


def ensure_unlocked(exam):
    if exam.is_locked:
        raise Conflict(f"Exam '{exam.title}' already has attempts and can no longer be edited.")


class ExamViewSet(viewsets.ModelViewSet):
    queryset = Exam.objects.all().order_by('-created_at')

    # Enable search on title and subject
    filter_backends = [filters.SearchFilter]
    search_fields = ['title', 'subject', 'class_grade']

    def _is_staff(self):
        return getattr(self.request.user, 'can_grade', False)

    def get_queryset(self):
        queryset = super().get_queryset()
        if not self._is_staff():
            # Students only ever see published exams
            queryset = queryset.filter(is_active=True)
        return queryset

    def get_serializer_class(self):
        if not self._is_staff():
            return ExamListSerializer
        if self.action == 'retrieve':
            return ExamDetailSerializer
        return ExamSerializer

    def get_permissions(self):
        if self.action in ['list', 'retrieve']:
            return [permissions.IsAuthenticated()]
        return [IsGraderOrAdmin()]

    def perform_update(self, serializer):
        ensure_unlocked(serializer.instance)
        serializer.save()
        logger.info(f"Exam {serializer.instance.pk} updated by {self.request.user.pk}")

    def perform_destroy(self, instance):
        ensure_unlocked(instance)
        logger.info(f"Exam {instance.pk} deleted by {self.request.user.pk}")
        instance.delete()


class QuestionViewSet(viewsets.ModelViewSet):
    queryset = Question.objects.select_related('exam').prefetch_related('options').order_by('exam_id', 'sequence_order', 'id')
    serializer_class = QuestionSerializer
    permission_classes = [IsGraderOrAdmin]

    # Enable Search and Filtering for the Question Bank
    filter_backends = [filters.SearchFilter]
    search_fields = ['text']

    def get_queryset(self):
        queryset = super().get_queryset()
        # Filter by Exam if provided ?exam_id=1
        exam_id = self.request.query_params.get('exam_id')
        if exam_id:
            queryset = queryset.filter(exam_id=exam_id)
        return queryset

    def perform_create(self, serializer):
        ensure_unlocked(serializer.validated_data['exam'])
        serializer.save()

    def perform_update(self, serializer):
        ensure_unlocked(serializer.instance.exam)
        target = serializer.validated_data.get('exam')
        if target is not None and target.pk != serializer.instance.exam_id:
            ensure_unlocked(target)
        serializer.save()

    def perform_destroy(self, instance):
        ensure_unlocked(instance.exam)
        instance.delete()

    @action(detail=False, methods=['post'], url_path='bulk-upload', parser_classes=[MultiPartParser, FormParser])
    def bulk_upload(self, request):
        """
        Upload questions for one exam via CSV.
        Form fields: exam (id), file.
        Expected CSV Header: question_text, question_type, marks, negative_marks, options,
        correct_answer, numerical_answer, numerical_tolerance, model_answer, explanation
        Options and multiple correct answers are separated by '|'.
        """
        file_obj = request.FILES.get('file')
        if not file_obj:
            return Response({"error": "No file uploaded"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            exam = Exam.objects.get(pk=request.data.get('exam'))
        except (Exam.DoesNotExist, ValueError, TypeError):
            raise NotFound("Exam not found.")
        ensure_unlocked(exam)

        try:
            decoded_file = file_obj.read().decode('utf-8-sig')
        except UnicodeDecodeError:
            raise ValidationError("File must be UTF-8 encoded CSV.")
        reader = csv.DictReader(io.StringIO(decoded_file))

        created_count = 0
        with transaction.atomic():
            # Row 1 is the header
            for row_no, row in enumerate(reader, start=2):
                serializer = QuestionSerializer(data=self._row_to_question(exam, row, created_count))
                if not serializer.is_valid():
                    raise ValidationError(f"Row {row_no}: {serializer.errors}")
                serializer.save()
                created_count += 1

        logger.info(f"Bulk upload added {created_count} questions to exam {exam.pk}")
        return Response({"status": f"Successfully uploaded {created_count} questions"}, status=status.HTTP_201_CREATED)

    @staticmethod
    def _row_to_question(exam, row, position):
        def cell(name, default=''):
            return (row.get(name) or default).strip()

        q_type = cell('question_type', Question.QuestionType.SINGLE_CHOICE).lower()
        data = {
            'exam': exam.pk,
            'question_text': cell('question_text'),
            'question_type': q_type,
            'marks': cell('marks', '1'),
            'negative_marks': cell('negative_marks', '0'),
            'model_answer': cell('model_answer'),
            'explanation': cell('explanation'),
            'sequence_order': position,
        }
        if cell('numerical_answer'):
            data['numerical_answer'] = cell('numerical_answer')
        if cell('numerical_tolerance'):
            data['numerical_tolerance'] = cell('numerical_tolerance')

        # Handle Options (choice questions)
        raw_options = [o.strip() for o in cell('options').split('|') if o.strip()]
        if q_type == Question.QuestionType.TRUE_FALSE and not raw_options:
            raw_options = ['True', 'False']
        correct = {c.strip().lower() for c in cell('correct_answer').split('|') if c.strip()}
        data['options'] = [
            {'text': text, 'is_correct': text.lower() in correct, 'sequence_order': i}
            for i, text in enumerate(raw_options)
        ]
        return data
