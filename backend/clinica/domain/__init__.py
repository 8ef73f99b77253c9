"""
Domain package - Pure business logic layer.

This package contains:
- entities.py: Domain entities and the schedule state variants
- interfaces.py: Repository and unit-of-work contracts
"""

from .entities import (
    Appointment,
    Cancelled,
    ChangeEntry,
    Client,
    Completed,
    DailyNote,
    Schedule,
    Scheduled,
    StockItem,
    StockMovement,
    User,
)
from .interfaces import (
    IClientRepository,
    IDailyNoteRepository,
    IScheduleRepository,
    IStockRepository,
    IUnitOfWork,
    IUserRepository,
)

__all__ = [
    # Domain entities
    "User",
    "Client",
    "Appointment",
    "ChangeEntry",
    "Schedule",
    "Scheduled",
    "Completed",
    "Cancelled",
    "StockItem",
    "StockMovement",
    "DailyNote",
    # Repository interfaces
    "IUserRepository",
    "IClientRepository",
    "IScheduleRepository",
    "IStockRepository",
    "IDailyNoteRepository",
    "IUnitOfWork",
]
