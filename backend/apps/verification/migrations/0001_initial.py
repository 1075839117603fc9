# Generated manually
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('qvote', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='VerificationCode',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('phone', models.CharField(db_index=True, max_length=20)),
                ('code_hash', models.CharField(max_length=64)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('verified', 'Verified'), ('expired', 'Expired'), ('blocked', 'Blocked')], default='pending', max_length=20)),
                ('method', models.CharField(choices=[('whatsapp', 'WhatsApp'), ('sms', 'SMS')], default='whatsapp', max_length=20)),
                ('attempts', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('expires_at', models.DateTimeField()),
                ('verified_at', models.DateTimeField(blank=True, null=True)),
                ('blocked_until', models.DateTimeField(blank=True, null=True)),
                ('code', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='verification_codes', to='qvote.code')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['code', 'phone', 'created_at'], name='verif_code_phone_idx'),
                    models.Index(fields=['status', 'expires_at'], name='verif_status_expires_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='VerifiedVoter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('phone', models.CharField(max_length=20)),
                ('name', models.CharField(blank=True, max_length=200)),
                ('votes_used', models.PositiveIntegerField(default=0)),
                ('max_votes', models.PositiveIntegerField(default=1)),
                ('session_token', models.CharField(db_index=True, max_length=64)),
                ('session_expires_at', models.DateTimeField()),
                ('verified_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('last_verified_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('code', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='verified_voters', to='qvote.code')),
            ],
            options={
                'constraints': [
                    models.UniqueConstraint(fields=('code', 'phone'), name='unique_verified_phone_per_code'),
                ],
            },
        ),
        migrations.CreateModel(
            name='MessageLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('phone', models.CharField(max_length=20)),
                ('method', models.CharField(max_length=20)),
                ('status', models.CharField(choices=[('sent', 'Sent'), ('failed', 'Failed')], max_length=20)),
                ('message_id', models.CharField(blank=True, max_length=128)),
                ('error', models.TextField(blank=True)),
                ('locale', models.CharField(default='he', max_length=8)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('code', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='message_logs', to='qvote.code')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['code', 'created_at'], name='verif_msglog_code_idx')],
            },
        ),
    ]
