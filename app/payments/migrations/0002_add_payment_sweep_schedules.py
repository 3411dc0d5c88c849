"""
Add celery-beat schedules for the payment sweeps.

- Re-verify processing payments every 10 minutes
- Expire abandoned checkouts every hour
- Reconcile wallet balances every 6 hours
"""

from django.db import migrations

SCHEDULES = [
    {
        "name": "Re-verify Processing Payments",
        "task": "payments.tasks.reverify_processing_payments",
        "every": 10,
        "period": "minutes",
        "description": (
            "Queues gateway verification for payments stuck in processing, "
            "covering lost webhooks and abandoned callback pages."
        ),
    },
    {
        "name": "Expire Abandoned Payments",
        "task": "payments.tasks.expire_abandoned_payments",
        "every": 1,
        "period": "hours",
        "description": (
            "Verifies once more, then cancels open payments older than "
            "PAYMENTS_ABANDONED_AFTER_HOURS."
        ),
    },
    {
        "name": "Reconcile Wallet Balances",
        "task": "payments.tasks.reconcile_wallet_balances",
        "every": 6,
        "period": "hours",
        "description": (
            "Compares each stored wallet balance with the balance recomputed "
            "from its transaction log and logs any drift."
        ),
    },
]


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for the payment sweeps."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in SCHEDULES:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period=entry["period"],
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name__in=[entry["name"] for entry in SCHEDULES],
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
