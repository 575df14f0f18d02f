from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("lms", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="coursebatch",
            name="rolled_back_at",
            field=models.DateTimeField(
                blank=True,
                editable=False,
                help_text="When the last status change was rolled back; cleared by the next transition",
                null=True,
            ),
        ),
    ]
