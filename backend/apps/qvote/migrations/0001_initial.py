# Generated manually
import apps.qvote.models
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


PHASE_CHOICES = [
    ('registration', 'Registration'),
    ('preparation', 'Preparation'),
    ('voting', 'Voting'),
    ('finals', 'Finals'),
    ('calculating', 'Calculating'),
    ('results', 'Results'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Code',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('short_id', models.CharField(default=apps.qvote.models.generate_short_id, max_length=16, unique=True)),
                ('title', models.CharField(blank=True, max_length=200)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='codes', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='QVoteConfig',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('current_phase', models.CharField(choices=PHASE_CHOICES, default='registration', max_length=20)),
                ('previous_phase', models.CharField(blank=True, choices=PHASE_CHOICES, max_length=20)),
                ('phase_changed_at', models.DateTimeField(blank=True, null=True)),
                ('schedule', models.JSONField(blank=True, default=dict, help_text='Mapping of phase to ISO timestamp')),
                ('schedule_mode', models.CharField(choices=[('manual', 'Manual'), ('scheduled', 'Scheduled'), ('hybrid', 'Hybrid')], default='manual', max_length=20)),
                ('enable_finals', models.BooleanField(default=False)),
                ('max_selections_per_voter', models.PositiveIntegerField(default=3)),
                ('min_selections_per_voter', models.PositiveIntegerField(default=1)),
                ('max_vote_changes', models.PositiveIntegerField(default=0, help_text='0 disables vote changes')),
                ('allow_self_registration', models.BooleanField(default=True)),
                ('categories', models.JSONField(blank=True, default=list, help_text='[{id, name, is_active}]')),
                ('form_fields', models.JSONField(blank=True, default=list, help_text='[{id, label, type, required}]')),
                ('verification', models.JSONField(blank=True, default=dict)),
                ('tablet_mode', models.JSONField(blank=True, default=dict)),
                ('message_quota_limit', models.PositiveIntegerField(default=25)),
                ('message_quota_used', models.PositiveIntegerField(default=0)),
                ('total_candidates', models.IntegerField(default=0)),
                ('approved_candidates', models.IntegerField(default=0)),
                ('total_voters', models.IntegerField(default=0)),
                ('total_votes', models.IntegerField(default=0)),
                ('finals_voters', models.IntegerField(default=0)),
                ('finals_votes', models.IntegerField(default=0)),
                ('stats_updated_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('code', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='qvote_config', to='qvote.code')),
            ],
            options={
                'verbose_name': 'Q.Vote config',
                'indexes': [models.Index(fields=['schedule_mode', 'current_phase'], name='qvote_cfg_sched_phase_idx')],
            },
        ),
        migrations.CreateModel(
            name='PhaseTransition',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('from_phase', models.CharField(choices=PHASE_CHOICES, max_length=20)),
                ('to_phase', models.CharField(choices=PHASE_CHOICES, max_length=20)),
                ('trigger', models.CharField(choices=[('manual', 'Manual'), ('scheduled', 'Scheduled')], default='manual', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('config', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transitions', to='qvote.qvoteconfig')),
                ('triggered_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='phase_transitions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['config', 'created_at'], name='qvote_trans_cfg_created_idx')],
            },
        ),
    ]
