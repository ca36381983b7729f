"""Reminders for packages waiting too long at the front desk."""

from datetime import datetime
from typing import List, Optional, Tuple
from loguru import logger

from ..config import settings
from ..messaging.dispatcher import NotificationDispatcher
from ..messaging.templates import build_reminder_message
from ..models.delivery import Delivery, utcnow
from ..models.notification import DispatchOutcome
from ..storage.delivery_store import DeliveryStore


async def send_reminders(
    store: DeliveryStore,
    dispatcher: NotificationDispatcher,
    scope_id: Optional[str] = None,
    min_days: Optional[int] = None,
    condominium: Optional[str] = None,
    now: Optional[datetime] = None
) -> List[Tuple[Delivery, DispatchOutcome]]:
    """Remind every resident whose package is pending for `min_days` or more."""
    min_days = settings.reminder_min_days if min_days is None else min_days
    now = now or utcnow()

    pending = await store.list_pending(scope_id)
    overdue = [d for d in pending if d.days_pending(now) >= min_days]
    logger.info(
        f"{len(overdue)} of {len(pending)} pending deliveries are "
        f"{min_days}+ days old"
    )

    results = []
    for delivery in overdue:
        message = build_reminder_message(
            delivery, delivery.days_pending(now), condominium
        )
        results.append((delivery, await dispatcher.dispatch(message)))

    sent = sum(1 for _, outcome in results if outcome.success)
    logger.info(f"Reminders sent: {sent}/{len(results)}")
    return results
