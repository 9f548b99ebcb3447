from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('payments', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='payment',
            name='is_provisional_number',
            field=models.BooleanField(default=False, help_text='Number was issued by the fallback path and needs review'),
        ),
    ]
