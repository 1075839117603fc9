import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class QVoteAppConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.qvote"
    label = "qvote"
    verbose_name = "Q.Vote"

    def ready(self):
        """
        Start the Redis Pub/Sub subscriber that replays Q.Vote changes made
        by other processes into this process's live sync hub.
        """
        import sys

        from django.conf import settings

        # Skip if running tests, migrations, or in test settings
        if (
            "test" in sys.argv
            or "migrate" in sys.argv
            or "makemigrations" in sys.argv
            or "pytest" in sys.modules
            or getattr(settings, "TESTING", False)
        ):
            return

        try:
            from core.utils.redis_pubsub import get_subscriber, setup_signal_handlers

            setup_signal_handlers()

            subscriber = get_subscriber()
            if not subscriber.is_running():
                subscriber.start()
                logger.info("QVoteAppConfig: Redis Pub/Sub subscriber started")
        except Exception as e:
            logger.error(f"QVoteAppConfig: Failed to start Redis Pub/Sub subscriber: {e}")
