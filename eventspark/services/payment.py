import abc
import logging
import random
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from eventspark.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class PaymentOutcome:
    success: bool
    transaction_id: Optional[str] = None
    reason: Optional[str] = None


class PaymentGateway(abc.ABC):
    """Charges a single booking."""

    @abc.abstractmethod
    async def charge(
        self, booking_id: int, amount: Decimal, payment_method: str
    ) -> PaymentOutcome:
        ...


@dataclass
class SimulatedPaymentGateway(PaymentGateway):
    """
    Stand-in for a real processor: approves a charge with probability
    ``success_rate``. Pass a seeded ``random.Random`` for deterministic runs.
    """

    success_rate: float = field(
        default_factory=lambda: settings.booking.PAYMENT_SUCCESS_RATE
    )
    rng: random.Random = field(default_factory=random.Random)

    async def charge(
        self, booking_id: int, amount: Decimal, payment_method: str
    ) -> PaymentOutcome:
        if self.rng.random() < self.success_rate:
            transaction_id = uuid.uuid4().hex
            logger.info(
                f"Charged {amount} via {payment_method} for booking {booking_id} "
                f"(transaction {transaction_id})"
            )
            return PaymentOutcome(success=True, transaction_id=transaction_id)
        logger.warning(f"Payment declined for booking {booking_id}")
        return PaymentOutcome(success=False, reason="declined")
