"""
Delivery store adapter.

Hides the remote store (authoritative) and the local cache (fallback)
behind one async interface:

- Remote failure falls back to the cache; a remote empty result is trusted.
- The remote record wins over a cached copy with the same pickup code.
- Withdrawals are applied remotely first and mirrored into the cache only
  after the remote write succeeded.
"""

import asyncio
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Set
from loguru import logger
from pydantic import ValidationError as ModelValidationError

from ..config import settings
from ..exceptions import (
    AlreadyWithdrawn,
    AmbiguousPickupCode,
    DeliveryNotFound,
    LocalCacheError,
    RemoteStoreError,
    StoreUnavailable,
)
from ..models.delivery import Delivery, DeliveryStatus, utcnow
from .base import DeliveryCache, RemoteStore
from .reconciler import reconcile


class DeliveryStore:
    """Uniform read/write access to deliveries across both stores."""

    def __init__(
        self,
        remote: RemoteStore,
        cache: DeliveryCache,
        table: Optional[str] = None
    ):
        self.remote = remote
        self.cache = cache
        self.table = table or settings.deliveries_sheet_name
        # Mirrors run in worker threads; each is a read-modify-write of the cache
        self._mirror_lock = threading.Lock()

    async def _call_remote(self, method: Callable, *args, **kwargs) -> Any:
        """Run a blocking remote call off the event loop."""
        return await asyncio.to_thread(method, *args, **kwargs)

    @staticmethod
    def _parse_records(rows: Iterable[Dict[str, Any]]) -> List[Delivery]:
        deliveries = []
        for row in rows:
            try:
                deliveries.append(Delivery.from_record(row))
            except (KeyError, ValueError, ModelValidationError) as e:
                logger.warning(f"Skipping malformed remote row {row.get('id')}: {e}")
        return deliveries

    def _load_cache(self) -> List[Delivery]:
        deliveries = []
        for entry in self.cache.read_all():
            try:
                deliveries.append(Delivery.from_cache_entry(entry))
            except (ValueError, ModelValidationError) as e:
                logger.warning(f"Skipping malformed cache entry: {e}")
        return deliveries

    def _mirror(self, delivery: Delivery) -> None:
        """
        Upsert a delivery into the cache, keyed by pickup code.

        Replaces the entry with the same id, or a pending entry with the
        same code. Cache failures are logged, never raised: the remote store
        already holds the truth.
        """
        try:
            with self._mirror_lock:
                mirrored = []
                replaced = False
                for entry in self._load_cache():
                    same = entry.id == delivery.id or (
                        entry.pickup_code == delivery.pickup_code and entry.is_pending
                    )
                    if not same:
                        mirrored.append(entry)
                    elif not replaced:
                        mirrored.append(delivery)
                        replaced = True
                if not replaced:
                    mirrored.append(delivery)

                self.cache.write_all([d.to_cache_entry() for d in mirrored])
        except LocalCacheError as e:
            logger.warning(f"Cache mirror failed for {delivery.pickup_code}: {e}")

    @staticmethod
    def _pick(code: str, matches: List[Delivery]) -> Delivery:
        """Choose among records sharing a code: the pending one, else the latest."""
        pending = [d for d in matches if d.is_pending]
        if len(pending) > 1:
            raise AmbiguousPickupCode(
                f"{len(pending)} pending deliveries share code {code}"
            )
        if pending:
            return pending[0]
        return max(matches, key=lambda d: d.registered_at)

    async def _select_by_code(self, code: str) -> List[Delivery]:
        rows = await self._call_remote(
            self.remote.select,
            self.table,
            {"codigo_retirada": code},
            order_by="data_entrega",
            descending=True
        )
        return self._parse_records(rows)

    async def list_pending(self, scope_id: Optional[str] = None) -> List[Delivery]:
        """
        Pending deliveries of a scope, remote first, de-duplicated by code.

        Raises:
            StoreUnavailable: If both the remote query and the cache read fail
        """
        filters = {"status": DeliveryStatus.PENDING.remote_value}
        if scope_id:
            filters["condominio_id"] = scope_id

        remote_pending: Optional[List[Delivery]] = None
        try:
            rows = await self._call_remote(
                self.remote.select,
                self.table,
                filters,
                order_by="data_entrega",
                descending=True
            )
            remote_pending = self._parse_records(rows)
            logger.info(f"Loaded {len(remote_pending)} pending deliveries from remote")
        except RemoteStoreError as e:
            logger.warning(f"Remote pending query failed, using local cache: {e}")

        local_pending: Optional[List[Delivery]] = None
        try:
            local_pending = [
                d for d in await asyncio.to_thread(self._load_cache)
                if d.is_pending and (not scope_id or d.scope_id in (None, scope_id))
            ]
        except LocalCacheError as e:
            logger.warning(f"Local cache read failed: {e}")

        if remote_pending is None and local_pending is None:
            raise StoreUnavailable("Remote store and local cache both failed")

        merged = reconcile(remote_pending or [], local_pending or [])
        logger.info(f"Total pending deliveries: {len(merged)}")
        return merged

    async def find_by_code(self, code: str) -> Delivery:
        """
        Look up a delivery by exact pickup code.

        Raises:
            DeliveryNotFound: If the remote has no rows, or the remote failed
                and the cache has no match
            AmbiguousPickupCode: If two pending deliveries share the code
            StoreUnavailable: If both the remote and the cache failed
        """
        try:
            matches = await self._select_by_code(code)
        except RemoteStoreError as e:
            logger.warning(f"Remote lookup for {code} failed, trying local cache: {e}")
            try:
                cached = await asyncio.to_thread(self._load_cache)
                matches = [d for d in cached if d.pickup_code == code]
            except LocalCacheError as cache_error:
                raise StoreUnavailable(
                    f"Lookup for {code} failed on remote and cache"
                ) from cache_error

            if not matches:
                raise DeliveryNotFound(code)
            delivery = self._pick(code, matches)
            logger.info(f"Delivery {code} found in local cache")
            return delivery

        if not matches:
            logger.info(f"Delivery {code} not found in remote store")
            raise DeliveryNotFound(code)

        delivery = self._pick(code, matches)
        logger.info(f"Delivery {code} found in remote store")
        await asyncio.to_thread(self._mirror, delivery)
        return delivery

    async def mark_withdrawn(
        self,
        delivery_id: str,
        code: str,
        withdrawal_notes: Optional[str] = None
    ) -> Delivery:
        """
        Move a delivery to WITHDRAWN in the remote store, then in the cache.

        The remote record is re-read by code. When one of the rows carries
        `delivery_id` it is the one withdrawn, so a reused code cannot
        redirect the withdrawal to a newer package.

        Raises:
            AlreadyWithdrawn: If the record is not pending, including when a
                concurrent confirmation won the conditional update
            DeliveryNotFound: If the remote holds no record for the code
            StoreUnavailable: If the remote re-read or update fails; the
                cache is left untouched
        """
        try:
            matches = await self._select_by_code(code)
        except RemoteStoreError as e:
            raise StoreUnavailable(f"Could not re-read delivery {code}: {e}") from e

        if not matches:
            raise DeliveryNotFound(code)

        current = next((d for d in matches if d.id == delivery_id), None)
        if current is None:
            current = self._pick(code, matches)

        if not current.is_pending:
            logger.info(f"Delivery {code} already withdrawn at {current.withdrawn_at}")
            raise AlreadyWithdrawn(code)

        withdrawn = current.withdrawn(utcnow(), withdrawal_notes or None)
        record = withdrawn.to_record()
        try:
            written = await self._call_remote(
                self.remote.update,
                self.table,
                {"id": current.id},
                {
                    "status": record["status"],
                    "data_retirada": record["data_retirada"],
                    "descricao_retirada": record["descricao_retirada"],
                },
                expected={"status": DeliveryStatus.PENDING.remote_value}
            )
        except RemoteStoreError as e:
            raise StoreUnavailable(f"Could not update delivery {code}: {e}") from e

        if not written:
            logger.warning(f"Delivery {code} was withdrawn concurrently")
            raise AlreadyWithdrawn(code)

        logger.info(f"Delivery {code} marked as withdrawn")
        await asyncio.to_thread(self._mirror, withdrawn)
        return withdrawn

    async def register(self, delivery: Delivery) -> Delivery:
        """
        Insert a new delivery remotely and mirror it into the cache.

        Raises:
            StoreUnavailable: If the remote insert fails
        """
        try:
            row = await self._call_remote(
                self.remote.insert, self.table, delivery.to_record()
            )
        except RemoteStoreError as e:
            raise StoreUnavailable(f"Could not register delivery: {e}") from e

        stored = Delivery.from_record(row) if row else delivery
        logger.info(
            f"Registered delivery {stored.pickup_code} for unit {stored.location.label}"
        )
        await asyncio.to_thread(self._mirror, stored)
        return stored

    async def pending_codes(self, scope_id: Optional[str] = None) -> Set[str]:
        """Codes currently pending in a scope."""
        return {d.pickup_code for d in await self.list_pending(scope_id)}
