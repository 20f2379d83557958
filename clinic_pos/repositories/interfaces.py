# ==============================================================================
# REPOSITORY INTERFACES
# ==============================================================================
#
# Protocols every repository must satisfy. The services depend on these
# contracts, not on the JSON implementation, so the collections can be moved
# to a hosted document database by writing new classes that implement them
# and changing the instantiation in app_container.py.
#
# What the services rely on from the store:
#   - unique id generation on create
#   - server timestamps (the client never supplies them)
#   - range queries on a timestamp field
#   - live queries: watch(...) -> subscription with cancel()
#
# ==============================================================================

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class ISubscription(Protocol):
    """Handle returned by watch()."""

    active: bool

    def cancel(self) -> None:
        """Stops delivery of snapshots."""
        ...


@runtime_checkable
class ICollectionRepository(Protocol):
    """
    Interface of a document collection.
    Used by: services, transactions, expenses.
    """

    def get_all(self) -> List[Dict[str, Any]]:
        """All documents in insertion order."""
        ...

    def get_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        """One document by id."""
        ...

    def find_in_range(
        self,
        field: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """Documents whose timestamp field lies in [start, end]."""
        ...

    def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Inserts a document, returns it with id and server timestamps."""
        ...

    def delete(self, record_id: str) -> Optional[Dict[str, Any]]:
        """Removes a document."""
        ...

    def now_iso(self) -> str:
        """Server timestamp."""
        ...

    def watch(
        self,
        callback: Callable[[List[Dict[str, Any]]], None],
        field: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> ISubscription:
        """Live query over the collection."""
        ...


@runtime_checkable
class ITransactionRepository(ICollectionRepository, Protocol):
    """Interface of the transaction collection."""

    def get_by_submission_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Transaction created by a checkout submission."""
        ...
