from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('assessments', '0001_initial'),
        ('exams', '0002_tab_switch_detection'),
    ]

    operations = [
        migrations.AddField(
            model_name='examattempt',
            name='tab_switch_count',
            field=models.PositiveIntegerField(default=0),
        ),
    ]
