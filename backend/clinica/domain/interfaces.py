"""
Abstract interfaces for repositories and the unit of work.

These interfaces define the persistence contract (get, list, create, update,
delete per collection) without implementation details, so services can be
tested against any backend. Implementations must treat a failed write as
"no mutation occurred".
"""

import datetime as dt
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import List, Optional

from .entities import (
    Appointment,
    ChangeEntry,
    Client,
    ClientDocument,
    ClientNote,
    DailyNote,
    GeneralDocument,
    Schedule,
    StockItem,
    StockMovement,
    User,
)


class IUserRepository(ABC):
    """Interface for user persistence."""

    @abstractmethod
    def get_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        pass

    @abstractmethod
    def get_by_username(self, username: str) -> Optional[User]:
        """Get user by login name."""
        pass

    @abstractmethod
    def list_all(self, roles: Optional[List[str]] = None) -> List[User]:
        """List users, optionally restricted to the given roles."""
        pass

    @abstractmethod
    def create(self, user: User) -> User:
        pass

    @abstractmethod
    def update(self, user: User) -> User:
        """Persist name and profile changes; username and role are kept."""
        pass

    @abstractmethod
    def delete(self, user_id: int) -> bool:
        pass


class IClientRepository(ABC):
    """Interface for clients and the records they own."""

    @abstractmethod
    def get_by_id(self, client_id: int, lock: bool = False) -> Optional[Client]:
        """Get a client with appointments, notes, documents and history loaded."""
        pass

    @abstractmethod
    def list_all(self) -> List[Client]:
        pass

    @abstractmethod
    def list_by_assigned_intern(self, intern_id: int) -> List[Client]:
        pass

    @abstractmethod
    def create(self, client: Client) -> Client:
        pass

    @abstractmethod
    def update(self, client: Client) -> Client:
        """Persist scalar fields (identity, contact, intern assignment)."""
        pass

    @abstractmethod
    def delete(self, client_id: int) -> bool:
        """Delete the client and every record it owns."""
        pass

    @abstractmethod
    def add_appointment(self, client_id: int, appointment: Appointment) -> Appointment:
        pass

    @abstractmethod
    def append_change(self, client_id: int, entry: ChangeEntry) -> ChangeEntry:
        pass

    @abstractmethod
    def add_note(self, client_id: int, note: ClientNote) -> ClientNote:
        pass

    @abstractmethod
    def add_document(self, client_id: int, document: ClientDocument) -> ClientDocument:
        pass

    @abstractmethod
    def delete_document(self, document_id: int) -> bool:
        pass


class IScheduleRepository(ABC):
    """Interface for schedule persistence."""

    @abstractmethod
    def get_by_id(self, schedule_id: int, lock: bool = False) -> Optional[Schedule]:
        pass

    @abstractmethod
    def list_by_date(self, day: dt.date) -> List[Schedule]:
        pass

    @abstractmethod
    def list_by_date_range(self, start: dt.date, end: dt.date) -> List[Schedule]:
        pass

    @abstractmethod
    def list_by_client(self, client_id: int) -> List[Schedule]:
        pass

    @abstractmethod
    def list_by_assignee(self, user_id: int) -> List[Schedule]:
        pass

    @abstractmethod
    def create(self, schedule: Schedule) -> Schedule:
        pass

    @abstractmethod
    def update(self, schedule: Schedule) -> Schedule:
        """Persist the schedule, failing with ConflictError on a stale version."""
        pass

    @abstractmethod
    def delete_by_client(self, client_id: int) -> int:
        """Remove every schedule of a client, returning how many were removed."""
        pass


class IStockRepository(ABC):
    """Interface for stock items and the append-only movement log."""

    @abstractmethod
    def get_item(self, item_id: int, lock: bool = False) -> Optional[StockItem]:
        pass

    @abstractmethod
    def list_items(self, category: Optional[str] = None) -> List[StockItem]:
        pass

    @abstractmethod
    def create_item(self, item: StockItem) -> StockItem:
        pass

    @abstractmethod
    def update_item(self, item: StockItem) -> StockItem:
        """Persist the item, failing with ConflictError on a stale version."""
        pass

    @abstractmethod
    def delete_item(self, item_id: int) -> bool:
        pass

    @abstractmethod
    def append_movement(self, movement: StockMovement) -> StockMovement:
        pass

    @abstractmethod
    def list_movements(
        self,
        start: Optional[dt.datetime] = None,
        end: Optional[dt.datetime] = None,
        item_id: Optional[int] = None,
    ) -> List[StockMovement]:
        """List movements newest first, optionally filtered."""
        pass


class IDailyNoteRepository(ABC):
    @abstractmethod
    def get_by_id(self, note_id: int) -> Optional[DailyNote]:
        pass

    @abstractmethod
    def list_between(
        self, start: Optional[dt.date] = None, end: Optional[dt.date] = None
    ) -> List[DailyNote]:
        pass

    @abstractmethod
    def create(self, note: DailyNote) -> DailyNote:
        pass

    @abstractmethod
    def delete(self, note_id: int) -> bool:
        pass


class IGeneralDocumentRepository(ABC):
    """Interface for the clinic-wide document and note library."""

    @abstractmethod
    def get_by_id(self, document_id: int) -> Optional[GeneralDocument]:
        pass

    @abstractmethod
    def list_all(self, doc_type: Optional[str] = None) -> List[GeneralDocument]:
        """Newest first, optionally restricted to one type."""
        pass

    @abstractmethod
    def create(self, document: GeneralDocument) -> GeneralDocument:
        pass

    @abstractmethod
    def delete(self, document_id: int) -> bool:
        pass

class IUnitOfWork(ABC):
    """Groups the repositories over one transaction.

    ``transaction()`` may be nested; only the outermost block commits and any
    exception rolls back every write made inside it.
    """

    users: IUserRepository
    clients: IClientRepository
    schedules: IScheduleRepository
    stock: IStockRepository
    daily_notes: IDailyNoteRepository
    general_documents: IGeneralDocumentRepository

    @property
    @abstractmethod
    def in_transaction(self) -> bool:
        """True while inside a ``transaction()`` block."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

