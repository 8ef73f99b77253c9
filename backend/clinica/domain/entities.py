"""
Domain entities - Pure business logic, no framework dependencies.

Snapshot fields (``Client.assigned_intern_name``,
``Schedule.assigned_to_user_name``, ``StockMovement.item_name`` and
``StockMovement.item_unit_value``) are copied at write time and are never
re-synced when the referenced record changes later.
"""

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from typing import ClassVar, List, Optional, Union

from clinica.utils.money import line_total, to_money

# Roles
ROLE_COORDINATOR = "coordinator"
ROLE_STAFF = "staff"
ROLE_INTERN = "intern"
ROLES = (ROLE_COORDINATOR, ROLE_STAFF, ROLE_INTERN)
USER_PROFILE_FIELDS = (
    "email",
    "phone",
    "cpf",
    "institution",
    "graduation_period",
    "education",
    "discipline",
)
ASSIGNABLE_ROLES = (ROLE_STAFF, ROLE_INTERN)

# Client types
CLIENT_ADULT = "adult"
CLIENT_MINOR = "minor"
CLIENT_TYPES = (CLIENT_ADULT, CLIENT_MINOR)

# Schedule statuses
STATUS_AGENDADO = "agendado"
STATUS_CONFIRMADO = "confirmado"  # reserved, no transition produces it
STATUS_CONCLUIDO = "concluido"
STATUS_CANCELADO = "cancelado"
SCHEDULE_STATUSES = (STATUS_AGENDADO, STATUS_CONFIRMADO, STATUS_CONCLUIDO, STATUS_CANCELADO)
TERMINAL_STATUSES = (STATUS_CONCLUIDO, STATUS_CANCELADO)

# Stock movement types
MOVEMENT_ENTRADA = "entrada"
MOVEMENT_SAIDA = "saida"
MOVEMENT_EXCLUSAO = "exclusao"
MOVEMENT_TYPES = (MOVEMENT_ENTRADA, MOVEMENT_SAIDA, MOVEMENT_EXCLUSAO)

# Stock status
STOCK_NORMAL = "normal"
STOCK_LOW = "low"
STOCK_OUT = "out"

# Daily note types
NOTE_RECEITA = "receita"
NOTE_DESPESA = "despesa"
NOTE_OBSERVACAO = "observacao"
DAILY_NOTE_TYPES = (NOTE_RECEITA, NOTE_DESPESA, NOTE_OBSERVACAO)

# Clinic-wide library entries (not tied to a client)
LIBRARY_TYPES = (
    "documento",
    "nota",
    "relatorio",
    "comprovante",
    "contrato",
    "lembrete",
    "procedimento",
    "observacao",
    "outros",
)
LIBRARY_KIND_FILE = "file"
LIBRARY_KIND_NOTE = "note"

# Change history labels
INTERN_FIELD_LABEL = "Estagiário Vinculado"
NO_INTERN_LABEL = "Nenhum"

DEFAULT_UNIT = "unidade"


@dataclass
class User:
    """Domain entity representing a clinic user (coordinator, staff or intern)."""

    id: Optional[int] = None
    username: str = ""
    name: str = ""
    role: str = ROLE_STAFF
    password_hash: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    cpf: Optional[str] = None
    institution: Optional[str] = None
    graduation_period: Optional[str] = None
    education: Optional[str] = None
    discipline: Optional[str] = None
    created_at: Optional[dt.datetime] = None

    def __post_init__(self):
        """Validate domain rules."""
        if not self.name:
            raise ValueError("Name is required")
        if self.role not in ROLES:
            raise ValueError(f"Invalid role: {self.role}")

    @property
    def is_coordinator(self) -> bool:
        return self.role == ROLE_COORDINATOR

    @property
    def is_staff(self) -> bool:
        return self.role == ROLE_STAFF

    @property
    def is_intern(self) -> bool:
        return self.role == ROLE_INTERN


@dataclass
class MaterialUsage:
    """One stock item consumed by an appointment."""

    item_id: int
    item_name: str
    quantity_used: int
    unit: str = DEFAULT_UNIT


@dataclass
class Attachment:
    file_name: str
    file_data: str
    upload_date: Optional[dt.datetime] = None


@dataclass
class Appointment:
    """A completed session, owned by exactly one client."""

    id: Optional[int] = None
    client_id: Optional[int] = None
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    service_type: str = ""
    notes: Optional[str] = None
    value: Decimal = Decimal("0.00")
    duration_hours: Decimal = Decimal("0.00")
    attended_by: str = ""
    intern_id: Optional[int] = None
    materials_used: List[MaterialUsage] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)
    status: str = STATUS_CONCLUIDO
    schedule_id: Optional[int] = None
    confirmed_at: Optional[dt.datetime] = None
    created_at: Optional[dt.datetime] = None

    def __post_init__(self):
        self.value = to_money(self.value)
        if self.value < 0:
            raise ValueError("Value cannot be negative")


@dataclass
class FieldChange:
    field: str
    old_value: Optional[str]
    new_value: Optional[str]


@dataclass
class ChangeEntry:
    """Append-only audit record on a client."""

    id: Optional[int] = None
    client_id: Optional[int] = None
    date: Optional[dt.datetime] = None
    changed_by: str = ""
    changes: List[FieldChange] = field(default_factory=list)


@dataclass
class ClientNote:
    id: Optional[int] = None
    client_id: Optional[int] = None
    title: str = ""
    content: str = ""
    author: str = ""
    date: Optional[dt.datetime] = None


@dataclass
class ClientDocument:
    id: Optional[int] = None
    client_id: Optional[int] = None
    title: str = ""
    file_name: str = ""
    file_data: str = ""
    uploaded_by: str = ""
    date: Optional[dt.datetime] = None


@dataclass
class Client:
    """Domain entity representing a clinic client (adult or minor)."""

    EDITABLE_FIELDS: ClassVar[tuple] = (
        "name",
        "email",
        "phone",
        "cpf",
        "rg",
        "birth_date",
        "profissao",
        "contato_emergencia",
        "escola",
        "ano_escolar",
        "nome_pai",
        "telefone_pai",
        "nome_mae",
        "telefone_mae",
        "cep",
        "address",
        "number",
        "neighborhood",
        "city",
        "observations",
    )

    id: Optional[int] = None
    type: str = CLIENT_ADULT
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    cpf: Optional[str] = None
    rg: Optional[str] = None
    birth_date: Optional[dt.date] = None
    profissao: Optional[str] = None
    contato_emergencia: Optional[str] = None
    escola: Optional[str] = None
    ano_escolar: Optional[str] = None
    nome_pai: Optional[str] = None
    telefone_pai: Optional[str] = None
    nome_mae: Optional[str] = None
    telefone_mae: Optional[str] = None
    cep: Optional[str] = None
    address: Optional[str] = None
    number: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    observations: Optional[str] = None
    assigned_intern_id: Optional[int] = None
    assigned_intern_name: Optional[str] = None
    appointments: List[Appointment] = field(default_factory=list)
    notes: List[ClientNote] = field(default_factory=list)
    documents: List[ClientDocument] = field(default_factory=list)
    change_history: List[ChangeEntry] = field(default_factory=list)
    created_at: Optional[dt.datetime] = None
    version: int = 1

    def __post_init__(self):
        """Validate business rules."""
        if not self.name:
            raise ValueError("Name is required")
        if self.type not in CLIENT_TYPES:
            raise ValueError(f"Invalid client type: {self.type}")


# ------------------- SCHEDULE STATE VARIANTS -------------------


@dataclass(frozen=True)
class Scheduled:
    """Booked and waiting for attendance."""

    status: ClassVar[str] = STATUS_AGENDADO


@dataclass(frozen=True)
class Completed:
    """Attended; ``attendance_id`` points at the appointment it produced."""

    attendance_id: int
    confirmed_at: dt.datetime
    status: ClassVar[str] = STATUS_CONCLUIDO


@dataclass(frozen=True)
class Cancelled:
    reason: str
    cancelled_at: dt.datetime
    canceled_by: str
    image: Optional[str] = None
    image_name: Optional[str] = None
    status: ClassVar[str] = STATUS_CANCELADO


ScheduleState = Union[Scheduled, Completed, Cancelled]


@dataclass
class Schedule:
    """An appointment slot before attendance.

    Status-specific data lives in ``state``; the flat accessors below are
    derived from it, so a completed schedule always has an attendance id and
    never cancellation data (and vice versa).
    """

    id: Optional[int] = None
    client_id: int = 0
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    service_type: str = ""
    observations: Optional[str] = None
    assigned_to_user_id: Optional[int] = None
    assigned_to_user_name: Optional[str] = None
    state: ScheduleState = field(default_factory=Scheduled)
    created_at: Optional[dt.datetime] = None
    version: int = 1

    @property
    def status(self) -> str:
        return self.state.status

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def attendance_id(self) -> Optional[int]:
        return self.state.attendance_id if isinstance(self.state, Completed) else None

    @property
    def confirmed_at(self) -> Optional[dt.datetime]:
        return self.state.confirmed_at if isinstance(self.state, Completed) else None

    @property
    def cancellation(self) -> Optional[Cancelled]:
        return self.state if isinstance(self.state, Cancelled) else None

    def mark_completed(self, attendance_id: int, confirmed_at: dt.datetime) -> None:
        if not isinstance(self.state, Scheduled):
            raise ValueError(f"Schedule {self.id} is already {self.status}")
        self.state = Completed(attendance_id=attendance_id, confirmed_at=confirmed_at)

    def mark_cancelled(
        self,
        reason: str,
        cancelled_at: dt.datetime,
        canceled_by: str,
        image: Optional[str] = None,
        image_name: Optional[str] = None,
    ) -> None:
        if not isinstance(self.state, Scheduled):
            raise ValueError(f"Schedule {self.id} is already {self.status}")
        self.state = Cancelled(
            reason=reason,
            cancelled_at=cancelled_at,
            canceled_by=canceled_by,
            image=image,
            image_name=image_name,
        )


# ------------------- ESTOQUE (STOCK) -------------------


@dataclass
class StockItem:
    """Domain entity for stock control. ``quantity`` changes only through the ledger."""

    id: Optional[int] = None
    name: str = ""
    category: str = ""
    quantity: int = 0
    min_stock: int = 0
    unit_value: Decimal = Decimal("0.00")
    description: Optional[str] = None
    unit: str = DEFAULT_UNIT
    created_at: Optional[dt.datetime] = None
    created_by: Optional[str] = None
    version: int = 1

    def __post_init__(self):
        """Validate business rules."""
        self.unit_value = to_money(self.unit_value)
        if self.quantity < 0:
            raise ValueError("Quantidade não pode ser negativa")
        if self.min_stock < 0:
            raise ValueError("Estoque mínimo não pode ser negativo")
        if self.unit_value < 0:
            raise ValueError("Valor unitário não pode ser negativo")

    @property
    def stock_status(self) -> str:
        if self.quantity == 0:
            return STOCK_OUT
        if self.quantity <= self.min_stock:
            return STOCK_LOW
        return STOCK_NORMAL

    @property
    def total_value(self) -> Decimal:
        return line_total(self.quantity, self.unit_value)


@dataclass
class StockMovement:
    """Immutable audit record of a quantity change."""

    id: Optional[int] = None
    item_id: Optional[int] = None
    item_name: str = ""
    type: str = MOVEMENT_ENTRADA
    quantity: int = 0
    reason: str = ""
    date: Optional[dt.datetime] = None
    user: str = ""
    item_unit_value: Decimal = Decimal("0.00")
    schedule_id: Optional[int] = None

    def __post_init__(self):
        self.item_unit_value = to_money(self.item_unit_value)
        if self.type not in MOVEMENT_TYPES:
            raise ValueError(f"Invalid movement type: {self.type}")

    @property
    def total_value(self) -> Decimal:
        return line_total(self.quantity, self.item_unit_value)


@dataclass
class DailyNote:
    """Free financial note (extra revenue, expense or plain observation)."""

    id: Optional[int] = None
    type: str = NOTE_OBSERVACAO
    title: str = ""
    value: Decimal = Decimal("0.00")
    date: Optional[dt.date] = None
    author: str = ""
    created_at: Optional[dt.datetime] = None

    def __post_init__(self):
        self.value = to_money(self.value)
        if self.type not in DAILY_NOTE_TYPES:
            raise ValueError(f"Invalid note type: {self.type}")


@dataclass
class GeneralDocument:
    """Clinic-wide document or note. Entries with ``file_data`` are files,
    the rest are text notes carrying ``content``."""

    id: Optional[int] = None
    type: str = "outros"
    title: str = ""
    description: Optional[str] = None
    content: Optional[str] = None
    file_name: Optional[str] = None
    file_data: Optional[str] = None
    created_by: str = ""
    created_at: Optional[dt.datetime] = None

    def __post_init__(self):
        if self.type not in LIBRARY_TYPES:
            raise ValueError(f"Invalid library type: {self.type}")

    @property
    def kind(self) -> str:
        return LIBRARY_KIND_FILE if self.file_data else LIBRARY_KIND_NOTE
