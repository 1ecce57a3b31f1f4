import decimal

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Exam',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('subject', models.CharField(blank=True, max_length=100)),
                ('class_grade', models.CharField(blank=True, max_length=50)),
                ('duration_minutes', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('total_marks', models.DecimalField(decimal_places=2, default=decimal.Decimal('0'), max_digits=8)),
                ('passing_marks', models.DecimalField(decimal_places=2, default=decimal.Decimal('0'), max_digits=8)),
                ('starts_at', models.DateTimeField(blank=True, null=True)),
                ('ends_at', models.DateTimeField(blank=True, null=True)),
                ('randomize_questions', models.BooleanField(default=False)),
                ('randomize_options', models.BooleanField(default=False)),
                ('max_attempts', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('allow_review', models.BooleanField(default=True)),
                ('is_active', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='Question',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('text', models.TextField()),
                ('question_type', models.CharField(choices=[('single_choice', 'Single Choice'), ('multiple_choice', 'Multiple Choice'), ('true_false', 'True / False'), ('numerical', 'Numerical'), ('subjective', 'Subjective')], default='single_choice', max_length=20)),
                ('marks', models.DecimalField(decimal_places=2, default=decimal.Decimal('1'), max_digits=6, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.01'))])),
                ('negative_marks', models.DecimalField(decimal_places=2, default=decimal.Decimal('0'), max_digits=6, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0'))])),
                ('partial_marks_allowed', models.BooleanField(default=False, help_text='Multiple choice only')),
                ('numerical_answer', models.DecimalField(blank=True, decimal_places=6, max_digits=16, null=True)),
                ('numerical_tolerance', models.DecimalField(decimal_places=6, default=decimal.Decimal('0'), max_digits=16, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0'))])),
                ('model_answer', models.TextField(blank=True)),
                ('explanation', models.TextField(blank=True)),
                ('sequence_order', models.PositiveIntegerField(default=0)),
                ('exam', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='questions', to='exams.exam')),
            ],
            options={
                'ordering': ['sequence_order', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Option',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('text', models.CharField(max_length=255)),
                ('is_correct', models.BooleanField(default=False)),
                ('sequence_order', models.PositiveIntegerField(default=0)),
                ('question', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='options', to='exams.question')),
            ],
            options={
                'ordering': ['sequence_order', 'id'],
            },
        ),
    ]
