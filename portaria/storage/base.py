"""Interfaces of the two physical delivery stores."""

from typing import Any, Dict, List, Optional, Protocol


Row = Dict[str, Any]


class RemoteStore(Protocol):
    """Authoritative store reached through a query/update interface.

    Implementations raise RemoteStoreError on backend failure and return an
    empty list when nothing matches.
    """

    def select(
        self,
        table: str,
        filters: Dict[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Row]:
        """Rows whose fields equal every filter value."""
        ...

    def insert(self, table: str, values: Row) -> Row:
        ...

    def update(
        self,
        table: str,
        filters: Dict[str, Any],
        values: Row,
        expected: Optional[Dict[str, Any]] = None
    ) -> List[Row]:
        """
        Update matching rows and return them as written.

        When `expected` is given the check and the write form one
        conditional operation: rows not matching `expected` at write time
        are left untouched and omitted from the result.
        """
        ...


class DeliveryCache(Protocol):
    """Client-local blob of delivery-shaped records."""

    def read_all(self) -> List[Row]:
        ...

    def write_all(self, entries: List[Row]) -> None:
        ...
