"""
Add celery-beat schedule for releasing stale refunds.

- Release refunds stuck in requested every 15 minutes
"""

from django.db import migrations

TASK_NAME = "Release Stale Refunds"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for the stale refund sweep."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=15,
        period="minutes",
    )
    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "payments.tasks.release_stale_refunds",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Marks refunds still requested after "
                "PAYMENTS_REFUND_STALE_AFTER_MINUTES as failed so they can be "
                "retried, reversing any wallet debit of the attempt."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0002_add_payment_sweep_schedules"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
