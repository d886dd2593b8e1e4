"""
Persistence gateway interface.

The lifecycle services never talk to a session or a client SDK directly;
they go through this narrow surface so the same transition code runs against
any store that offers atomic writes. Row-level authorization, where the
backing store has it, stays inside the implementation.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Iterable, Optional, Sequence


class PersistenceGateway(ABC):

    @abstractmethod
    async def get(self, model: type, record_id: str) -> Optional[Any]:
        """Fetch one record by primary key, or None. Always re-reads the row."""

    @abstractmethod
    async def query(
        self,
        model: type,
        *criteria,
        order_by: Sequence = (),
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list:
        """Fetch records matching all criteria."""

    @abstractmethod
    async def insert(self, record: Any) -> Any:
        """
        Persist a new record; the store assigns id/created_at.

        Raises DuplicateKeyError when a uniqueness rule rejects the row.
        """

    @abstractmethod
    async def update(
        self,
        model: type,
        record_id: str,
        patch: dict,
        expected: Optional[dict] = None,
    ) -> bool:
        """
        Apply ``patch`` to one record.

        With ``expected`` the write is a compare-and-swap: it only happens if
        every expected column still holds the given value (a tuple/list means
        "any of"). Returns whether a row was written.
        """

    @abstractmethod
    async def update_where(self, model: type, criteria: Iterable, patch: dict) -> int:
        """Apply ``patch`` to every record matching ``criteria``; returns the count."""

    @abstractmethod
    def transaction(self) -> AsyncContextManager["PersistenceGateway"]:
        """
        Atomic unit of work. Commits when the block exits cleanly; on any
        exception every write made inside the block is rolled back and the
        exception propagates.
        """
