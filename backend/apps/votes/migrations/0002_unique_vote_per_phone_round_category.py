# Generated manually
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('votes', '0001_initial'),
    ]

    operations = [
        migrations.AddConstraint(
            model_name='vote',
            constraint=models.UniqueConstraint(
                condition=~models.Q(phone='') & ~models.Q(category_key=''),
                fields=('code', 'phone', 'round', 'category_key'),
                name='unique_vote_per_phone_round_category',
            ),
        ),
    ]
