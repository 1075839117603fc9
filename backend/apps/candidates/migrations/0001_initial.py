# Generated manually
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('qvote', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Candidate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(blank=True, max_length=200)),
                ('form_data', models.JSONField(blank=True, default=dict, help_text='Form field id -> value')),
                ('category_id', models.CharField(blank=True, max_length=64)),
                ('category_ids', models.JSONField(blank=True, default=list)),
                ('is_approved', models.BooleanField(default=False)),
                ('is_finalist', models.BooleanField(default=False)),
                ('is_hidden', models.BooleanField(default=False)),
                ('vote_count', models.IntegerField(default=0)),
                ('finals_vote_count', models.IntegerField(default=0)),
                ('source', models.CharField(choices=[('self', 'Self-registered'), ('producer', 'Added by operator')], default='producer', max_length=20)),
                ('visitor_id', models.CharField(blank=True, max_length=128)),
                ('display_order', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('code', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='candidates', to='qvote.code')),
            ],
            options={
                'ordering': ['display_order', 'created_at', 'id'],
                'indexes': [
                    models.Index(fields=['code', 'display_order'], name='cand_code_order_idx'),
                    models.Index(fields=['code', 'is_approved', 'is_hidden'], name='cand_code_visible_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('source', 'self'), models.Q(('visitor_id', ''), _negated=True)), fields=('code', 'visitor_id'), name='unique_self_registration_per_visitor'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CandidatePhoto',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('url', models.CharField(max_length=500)),
                ('thumbnail_url', models.CharField(blank=True, max_length=500)),
                ('storage_path', models.CharField(blank=True, max_length=500)),
                ('size', models.PositiveIntegerField(default=0)),
                ('order', models.PositiveSmallIntegerField(default=0)),
                ('uploaded_at', models.DateTimeField(auto_now_add=True)),
                ('candidate', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='photos', to='candidates.candidate')),
            ],
            options={
                'ordering': ['order', 'uploaded_at'],
            },
        ),
    ]
