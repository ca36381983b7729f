"""Merge remote and locally cached pending deliveries into one view."""

from typing import Iterable, List
from loguru import logger

from ..models.delivery import Delivery


def reconcile(
    remote: Iterable[Delivery],
    local: Iterable[Delivery]
) -> List[Delivery]:
    """
    Union of both lists keyed by pickup code, remote first.

    Remote entries keep their queried order. Local entries whose code is
    not already present are appended in stored order.
    """
    merged = list(remote)
    seen = {delivery.pickup_code for delivery in merged}

    local_only = 0
    for delivery in local:
        if delivery.pickup_code in seen:
            continue
        seen.add(delivery.pickup_code)
        merged.append(delivery)
        local_only += 1

    if local_only:
        logger.info(f"Reconciler appended {local_only} cache-only deliveries")
    return merged
