import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Move',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('move_san', models.CharField(help_text='Move in SAN, e.g. Nf3', max_length=16)),
                ('is_own_move', models.BooleanField(default=True, help_text='Played by the learner (opponent replies are not studied)')),
                ('learning_due_time', models.DateTimeField(blank=True, default=django.utils.timezone.now, null=True)),
                ('learning_step', models.IntegerField(blank=True, default=0, null=True)),
                ('review_due_date', models.DateTimeField(blank=True, null=True)),
                ('review_interval', models.FloatField(blank=True, null=True)),
                ('review_ease', models.FloatField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='moves', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['learning_due_time', 'review_due_date'],
                'indexes': [
                    models.Index(fields=['owner', 'learning_due_time'], name='moves_owner_learning_idx'),
                    models.Index(fields=['owner', 'review_due_date'], name='moves_owner_review_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StudyHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('incorrect_guess_san', models.CharField(blank=True, max_length=16, null=True)),
                ('studied_at', models.DateTimeField(auto_now_add=True)),
                ('move', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='study_history', to='moves.move')),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='study_history', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name_plural': 'Study history',
                'ordering': ['-studied_at'],
            },
        ),
        migrations.CreateModel(
            name='LearnerProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('lichess_username', models.CharField(max_length=64, unique=True)),
                ('lichess_access_token', models.CharField(blank=True, max_length=255)),
                ('lichess_access_token_fetched_at', models.DateTimeField(blank=True, null=True)),
                ('lichess_access_token_expires_in', models.IntegerField(default=0)),
                ('last_repertoire_update_check', models.DateTimeField(blank=True, null=True)),
                ('study_display_line_source', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='learner_profile', to=settings.AUTH_USER_MODEL)),
            ],
        ),
    ]
