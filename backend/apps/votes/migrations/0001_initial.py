# Generated manually
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('qvote', '0001_initial'),
        ('candidates', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Vote',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('voter_id', models.CharField(db_index=True, help_text='Anonymous device/voter identity', max_length=128)),
                ('round', models.PositiveSmallIntegerField(choices=[(1, 'Voting'), (2, 'Finals')], default=1)),
                ('category_key', models.CharField(blank=True, default='', max_length=64)),
                ('phone', models.CharField(blank=True, db_index=True, max_length=20)),
                ('ip_address', models.GenericIPAddressField(blank=True, help_text='IP address of voter', null=True)),
                ('user_agent', models.TextField(blank=True, help_text='User agent string')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('code', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='votes', to='qvote.code')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['code', 'round'], name='votes_code_round_idx'),
                    models.Index(fields=['code', 'phone', 'round'], name='votes_code_phone_round_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('code', 'voter_id', 'round', 'category_key'), name='unique_vote_per_voter_round_category'),
                ],
            },
        ),
        migrations.CreateModel(
            name='VoteSelection',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('candidate', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='selections', to='candidates.candidate')),
                ('vote', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='selections', to='votes.vote')),
            ],
            options={
                'constraints': [
                    models.UniqueConstraint(fields=('vote', 'candidate'), name='unique_candidate_per_vote'),
                ],
            },
        ),
        migrations.CreateModel(
            name='VoteReset',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('voter_id', models.CharField(db_index=True, max_length=128)),
                ('round', models.PositiveSmallIntegerField(default=1)),
                ('category_key', models.CharField(blank=True, default='', max_length=64)),
                ('removed_votes', models.PositiveIntegerField(default=0)),
                ('candidate_ids', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('code', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='vote_resets', to='qvote.code')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['code', 'voter_id'], name='votes_reset_code_voter_idx')],
            },
        ),
        migrations.CreateModel(
            name='VoteAttempt',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('voter_id', models.CharField(blank=True, db_index=True, max_length=128)),
                ('round', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('category_key', models.CharField(blank=True, default='', max_length=64)),
                ('candidate_ids', models.JSONField(blank=True, default=list)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.TextField(blank=True)),
                ('success', models.BooleanField(default=False, help_text='Whether the vote attempt was successful')),
                ('error_code', models.CharField(blank=True, max_length=40)),
                ('error_message', models.TextField(blank=True, help_text='Error message if attempt failed')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('code', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='vote_attempts', to='qvote.code')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['code', 'voter_id'], name='votes_att_code_voter_idx'),
                    models.Index(fields=['success', 'created_at'], name='votes_att_success_idx'),
                ],
            },
        ),
    ]
