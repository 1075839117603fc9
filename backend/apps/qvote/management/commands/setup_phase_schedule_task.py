"""
Management command to set up the periodic Q.Vote beat tasks.
"""

from django.conf import settings
from django.core.management.base import BaseCommand
from django_celery_beat.models import IntervalSchedule, PeriodicTask

PERIODIC_TASKS = [
    {
        "name": "Process Scheduled Phase Transitions",
        "task": "apps.qvote.tasks.process_scheduled_transitions",
        "every_setting": "SCHEDULE_POLL_SECONDS",
        "default_every": 10,
        "period": IntervalSchedule.SECONDS,
        "description": "Move codes to their scheduled phase when its time arrives",
    },
    {
        "name": "Expire Verification Codes",
        "task": "apps.verification.tasks.expire_verification_codes",
        "every_setting": None,
        "default_every": 5,
        "period": IntervalSchedule.MINUTES,
        "description": "Mark pending verification codes past their expiry as expired",
    },
]


class Command(BaseCommand):
    help = "Set up periodic tasks for scheduled phase transitions and verification code expiry"

    def add_arguments(self, parser):
        parser.add_argument(
            "--disable",
            action="store_true",
            help="Disable the periodic tasks instead of enabling them",
        )

    def handle(self, *args, **options):
        enabled = not options["disable"]
        qvote_settings = getattr(settings, "QVOTE", {})

        for entry in PERIODIC_TASKS:
            every = entry["default_every"]
            if entry["every_setting"]:
                every = qvote_settings.get(entry["every_setting"], every)

            schedule, created = IntervalSchedule.objects.get_or_create(
                every=every,
                period=entry["period"],
            )
            if created:
                self.stdout.write(
                    self.style.SUCCESS(f"Created interval schedule: every {schedule.every} {schedule.period}")
                )

            task, created = PeriodicTask.objects.get_or_create(
                name=entry["name"],
                defaults={
                    "task": entry["task"],
                    "interval": schedule,
                    "enabled": enabled,
                    "description": entry["description"],
                },
            )
            if not created:
                task.task = entry["task"]
                task.interval = schedule
                task.enabled = enabled
                task.save()

            verb = "Created" if created else "Updated"
            state = "enabled" if task.enabled else "disabled"
            self.stdout.write(
                self.style.SUCCESS(
                    f"{verb} periodic task: {task.name} ({state}, every {schedule.every} {schedule.period})"
                )
            )
