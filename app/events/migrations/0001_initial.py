from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("organizations", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=255)),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("PRACTICE", "Practice"),
                            ("EVENT", "Event"),
                            ("MEETING", "Meeting"),
                            ("REST", "Rest"),
                        ],
                        default="PRACTICE",
                        max_length=16,
                    ),
                ),
                ("date", models.DateField()),
                ("start_time", models.CharField(max_length=16)),
                ("end_time", models.CharField(max_length=16)),
                ("location", models.CharField(blank=True, default="", max_length=255)),
                ("is_ad_hoc", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="events",
                        to="organizations.organization",
                    ),
                ),
                (
                    "team",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="events",
                        to="organizations.team",
                    ),
                ),
                (
                    "participating_teams",
                    models.ManyToManyField(blank=True, related_name="participating_events", to="organizations.team"),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["organization", "date"], name="event_org_date_idx"),
                    models.Index(fields=["is_ad_hoc", "date"], name="event_adhoc_date_idx"),
                ],
            },
        ),
    ]
