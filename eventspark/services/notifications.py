import logging
from typing import Any, List

from kombu.exceptions import KombuError

logger = logging.getLogger(__name__)


class Notifier:
    """
    Hands notification work to the Celery workers.

    Dispatch is fire-and-forget: a broker outage is logged and swallowed so
    the caller's state change (a settled payment, a role update) stands.
    """

    def _send(self, task_name: str, args: List[Any]) -> bool:
        from eventspark.celery_app import celery_app

        try:
            celery_app.send_task(task_name, args=args)
        except (KombuError, OSError) as e:
            logger.warning(f"Could not enqueue {task_name}: {e}")
            return False
        return True

    def booking_confirmed(self, user_id: int, booking_id: int) -> bool:
        return self._send(
            "eventspark.tasks.send_booking_confirmation_email", [user_id, booking_id]
        )

    def user_invited(self, user_id: int, temporary_password: str) -> bool:
        return self._send(
            "eventspark.tasks.send_user_invite_email", [user_id, temporary_password]
        )

    def role_changed(self, user_id: int, old_role: str, new_role: str) -> bool:
        return self._send(
            "eventspark.tasks.send_role_change_email", [user_id, old_role, new_role]
        )

    def otp_issued(self, user_id: int, otp: str, purpose: str) -> bool:
        return self._send("eventspark.tasks.send_otp_email", [user_id, otp, purpose])


notifier = Notifier()
