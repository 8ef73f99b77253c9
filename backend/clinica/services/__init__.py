"""Application services. Each takes a unit of work and raises ``ClinicError``
subclasses for rejected operations."""

from .assignment_service import AssignmentService
from .client_service import ClientService
from .report_service import ReportService
from .schedule_service import ScheduleService, resolve_assignee
from .stock_service import StockLedgerService
from .user_service import UserService

__all__ = [
    "AssignmentService",
    "ClientService",
    "ReportService",
    "ScheduleService",
    "StockLedgerService",
    "UserService",
    "resolve_assignee",
]
