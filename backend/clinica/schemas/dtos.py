"""
Data Transfer Objects (DTOs) and validation schemas.

Request DTOs are built from JSON payloads with ``from_dict`` (type parsing)
and checked with ``validate()`` (business-required fields). Response DTOs are
built from domain entities with ``from_domain`` and serialized with
``to_dict``.
"""

import base64
import binascii
import datetime as dt
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from clinica.core.config import MAX_ATTACHMENT_BYTES
from clinica.core.exceptions import ClinicError, ValidationError
from clinica.core.validation import (
    optional_text,
    parse_date,
    parse_duration_hours,
    parse_int,
    parse_positive_int,
    parse_time,
    require_text,
)
from clinica.domain.entities import CLIENT_TYPES, DEFAULT_UNIT, LIBRARY_TYPES, Client
from clinica.utils.money import to_stored_money


def _money(value: Any, field_name: str) -> Decimal:
    try:
        amount = to_stored_money(value)
    except ValueError:
        raise ValidationError(f"Valor inválido: {value}", {"field": field_name})
    if amount < 0:
        raise ValidationError("Valor não pode ser negativo", {"field": field_name})
    return amount


def _optional_id(value: Any, field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    return parse_positive_int(value, field_name)


def _object_list(value: Any, field_name: str) -> List[Dict[str, Any]]:
    """Entries of a JSON array of objects; a missing array is empty."""
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise ValidationError(
            f"{field_name} deve ser uma lista de objetos", {"field": field_name}
        )
    return value


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _time_str(value: Optional[dt.time]) -> Optional[str]:
    return value.strftime("%H:%M") if value is not None else None


# ------------------- SCHEDULES -------------------


@dataclass
class ScheduleCreateRequest:
    """DTO for schedule creation requests."""

    client_id: int
    date: dt.date
    time: dt.time
    service_type: str
    observations: Optional[str] = None
    assigned_to_user_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduleCreateRequest":
        return cls(
            client_id=parse_positive_int(data.get("client_id"), "client_id"),
            date=parse_date(data.get("date")),
            time=parse_time(data.get("time")),
            service_type=require_text(data.get("service_type"), "service_type", "Serviço"),
            observations=optional_text(data.get("observations")),
            assigned_to_user_id=_optional_id(
                data.get("assigned_to_user_id"), "assigned_to_user_id"
            ),
        )

    def validate(self) -> None:
        """Validate the request data."""
        if not self.client_id or self.client_id <= 0:
            raise ValidationError("Cliente é obrigatório", {"field": "client_id"})
        if not self.date:
            raise ValidationError("Data é obrigatória", {"field": "date"})
        if not self.time:
            raise ValidationError("Horário é obrigatório", {"field": "time"})
        self.service_type = require_text(self.service_type, "service_type", "Serviço")


@dataclass
class ScheduleEditRequest:
    """DTO for schedule edits. ``None`` leaves the field unchanged."""

    client_id: Optional[int] = None
    date: Optional[dt.date] = None
    time: Optional[dt.time] = None
    service_type: Optional[str] = None
    observations: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduleEditRequest":
        observations = data.get("observations")
        if observations is not None:
            # A blank value clears the field
            observations = optional_text(observations) or ""
        return cls(
            client_id=parse_positive_int(data["client_id"], "client_id")
            if "client_id" in data
            else None,
            date=parse_date(data["date"]) if "date" in data else None,
            time=parse_time(data["time"]) if "time" in data else None,
            service_type=require_text(data["service_type"], "service_type", "Serviço")
            if "service_type" in data
            else None,
            observations=observations,
        )

    def validate(self) -> None:
        if self.service_type is not None:
            self.service_type = require_text(self.service_type, "service_type", "Serviço")
        if self.client_id is not None and self.client_id <= 0:
            raise ValidationError("Cliente é obrigatório", {"field": "client_id"})


@dataclass
class ScheduleCancelRequest:
    reason: str
    image: Optional[str] = None
    image_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduleCancelRequest":
        return cls(
            reason=data.get("reason") or "",
            image=optional_text(data.get("image")),
            image_name=optional_text(data.get("image_name")),
        )

    def validate(self) -> None:
        self.reason = require_text(self.reason, "reason", "Motivo do cancelamento")
        if self.image:
            check_attachment_size(self.image, self.image_name or "imagem")


@dataclass
class MaterialLine:
    """One requested stock consumption on confirmation."""

    item_id: int
    quantity: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MaterialLine":
        return cls(
            item_id=parse_positive_int(data.get("item_id"), "item_id"),
            quantity=parse_positive_int(data.get("quantity"), "quantity"),
        )


@dataclass
class AttachmentUpload:
    file_name: str
    file_data: str
    upload_date: Optional[dt.datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttachmentUpload":
        upload_date = data.get("upload_date")
        try:
            parsed = dt.datetime.fromisoformat(upload_date) if upload_date else None
        except (TypeError, ValueError):
            raise ValidationError(
                f"Data de upload inválida: {upload_date}", {"field": "upload_date"}
            )
        return cls(
            file_name=require_text(data.get("file_name"), "file_name", "Nome do arquivo"),
            file_data=require_text(data.get("file_data"), "file_data", "Arquivo"),
            upload_date=parsed,
        )

    def validate(self) -> None:
        check_attachment_size(self.file_data, self.file_name)


def check_attachment_size(file_data: str, file_name: str) -> None:
    """Reject attachments whose decoded payload exceeds the configured limit.

    ``file_data`` may be a bare base64 string or a ``data:`` URL.
    """
    payload = file_data.split(",", 1)[1] if file_data.startswith("data:") else file_data
    try:
        size = len(base64.b64decode(payload, validate=True))
    except (binascii.Error, ValueError):
        raise ValidationError(
            f"Arquivo {file_name} não está codificado corretamente",
            {"field": "file_data", "file_name": file_name},
        )
    if size > MAX_ATTACHMENT_BYTES:
        raise ValidationError(
            f"Arquivo {file_name} excede o tamanho máximo de "
            f"{MAX_ATTACHMENT_BYTES // (1024 * 1024)} MB",
            {"field": "file_data", "file_name": file_name, "size": size},
        )


@dataclass
class ScheduleConfirmRequest:
    """DTO for confirming attendance of a schedule."""

    professional_name: str
    observations: Optional[str] = None
    value: Decimal = Decimal("0.00")
    duration_hours: Decimal = Decimal("0.00")
    materials: List[MaterialLine] = field(default_factory=list)
    attachments: List[AttachmentUpload] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduleConfirmRequest":
        return cls(
            professional_name=data.get("professional_name") or "",
            observations=optional_text(data.get("observations")),
            value=_money(data.get("value"), "value"),
            duration_hours=parse_duration_hours(data.get("duration_hours")),
            materials=[
                MaterialLine.from_dict(m)
                for m in _object_list(data.get("materials"), "materials")
            ],
            attachments=[
                AttachmentUpload.from_dict(a)
                for a in _object_list(data.get("attachments"), "attachments")
            ],
        )

    def validate(self) -> None:
        """Validate the request data."""
        self.professional_name = require_text(
            self.professional_name, "professional_name", "Profissional"
        )
        self.value = _money(self.value, "value")
        if self.duration_hours < 0:
            raise ValidationError("Duração não pode ser negativa", {"field": "duration_hours"})
        for line in self.materials:
            parse_positive_int(line.item_id, "item_id")
            parse_positive_int(line.quantity, "quantity")
        for attachment in self.attachments:
            attachment.validate()

    def quantities_by_item(self) -> Dict[int, int]:
        """Sum duplicate lines so availability is checked per item."""
        totals: Dict[int, int] = {}
        for line in self.materials:
            totals[line.item_id] = totals.get(line.item_id, 0) + line.quantity
        return totals


@dataclass
class ScheduleResponse:
    """DTO for schedule API responses."""

    id: int
    client_id: int
    date: Optional[str]
    time: Optional[str]
    service_type: str
    observations: Optional[str]
    status: str
    assigned_to_user_id: Optional[int]
    assigned_to_user_name: Optional[str]
    attendance_id: Optional[int] = None
    confirmed_at: Optional[str] = None
    cancel_reason: Optional[str] = None
    cancel_image_name: Optional[str] = None
    cancelled_at: Optional[str] = None
    canceled_by: Optional[str] = None
    version: int = 1

    @classmethod
    def from_domain(cls, schedule) -> "ScheduleResponse":
        """Create response from domain entity."""
        cancellation = schedule.cancellation
        return cls(
            id=schedule.id,
            client_id=schedule.client_id,
            date=_iso(schedule.date),
            time=_time_str(schedule.time),
            service_type=schedule.service_type,
            observations=schedule.observations,
            status=schedule.status,
            assigned_to_user_id=schedule.assigned_to_user_id,
            assigned_to_user_name=schedule.assigned_to_user_name,
            attendance_id=schedule.attendance_id,
            confirmed_at=_iso(schedule.confirmed_at),
            cancel_reason=cancellation.reason if cancellation else None,
            cancel_image_name=cancellation.image_name if cancellation else None,
            cancelled_at=_iso(cancellation.cancelled_at) if cancellation else None,
            canceled_by=cancellation.canceled_by if cancellation else None,
            version=schedule.version,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ------------------- STOCK -------------------


@dataclass
class StockItemCreateRequest:
    """DTO for stock item creation requests."""

    name: str
    category: str
    quantity: int = 0
    min_stock: int = 0
    unit_value: Decimal = Decimal("0.00")
    description: Optional[str] = None
    unit: str = DEFAULT_UNIT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StockItemCreateRequest":
        return cls(
            name=data.get("name") or "",
            category=data.get("category") or "",
            quantity=parse_int(data.get("quantity", 0), "quantity", minimum=0),
            min_stock=parse_int(data.get("min_stock", 0), "min_stock", minimum=0),
            unit_value=_money(data.get("unit_value"), "unit_value"),
            description=optional_text(data.get("description")),
            unit=optional_text(data.get("unit")) or DEFAULT_UNIT,
        )

    def validate(self) -> None:
        """Validate the request data."""
        self.name = require_text(self.name, "name", "Nome")
        self.category = require_text(self.category, "category", "Categoria")
        parse_int(self.quantity, "quantity", minimum=0)
        parse_int(self.min_stock, "min_stock", minimum=0)
        self.unit_value = _money(self.unit_value, "unit_value")


@dataclass
class StockItemUpdateRequest:
    """Descriptive fields only; quantity changes go through the ledger."""

    EDITABLE = ("name", "category", "min_stock", "unit_value", "description", "unit")

    name: Optional[str] = None
    category: Optional[str] = None
    min_stock: Optional[int] = None
    unit_value: Optional[Decimal] = None
    description: Optional[str] = None
    unit: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StockItemUpdateRequest":
        if "quantity" in data:
            raise ValidationError(
                "A quantidade só pode ser alterada por entrada ou saída de estoque",
                {"field": "quantity"},
            )
        unknown = set(data) - set(cls.EDITABLE) - {"version"}
        if unknown:
            raise ValidationError(
                f"Campos não editáveis: {', '.join(sorted(unknown))}",
                {"fields": sorted(unknown)},
            )
        return cls(
            name=data.get("name"),
            category=data.get("category"),
            min_stock=parse_int(data["min_stock"], "min_stock", minimum=0)
            if "min_stock" in data
            else None,
            unit_value=_money(data["unit_value"], "unit_value")
            if "unit_value" in data
            else None,
            description=data.get("description"),
            unit=data.get("unit"),
        )

    def validate(self) -> None:
        if self.name is not None:
            self.name = require_text(self.name, "name", "Nome")
        if self.category is not None:
            self.category = require_text(self.category, "category", "Categoria")
        if self.min_stock is not None:
            parse_int(self.min_stock, "min_stock", minimum=0)
        if self.unit_value is not None:
            self.unit_value = _money(self.unit_value, "unit_value")

    def changes(self) -> Dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in self.EDITABLE
            if getattr(self, name) is not None
        }


@dataclass
class StockItemResponse:
    id: int
    name: str
    category: str
    quantity: int
    min_stock: int
    unit_value: str
    total_value: str
    unit: str
    description: Optional[str]
    stock_status: str
    version: int

    @classmethod
    def from_domain(cls, item) -> "StockItemResponse":
        return cls(
            id=item.id,
            name=item.name,
            category=item.category,
            quantity=item.quantity,
            min_stock=item.min_stock,
            unit_value=str(item.unit_value),
            total_value=str(item.total_value),
            unit=item.unit,
            description=item.description,
            stock_status=item.stock_status,
            version=item.version,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StockMovementResponse:
    id: int
    item_id: Optional[int]
    item_name: str
    type: str
    quantity: int
    reason: str
    date: Optional[str]
    user: str
    item_unit_value: str
    total_value: str
    schedule_id: Optional[int]

    @classmethod
    def from_domain(cls, movement) -> "StockMovementResponse":
        return cls(
            id=movement.id,
            item_id=movement.item_id,
            item_name=movement.item_name,
            type=movement.type,
            quantity=movement.quantity,
            reason=movement.reason,
            date=_iso(movement.date),
            user=movement.user,
            item_unit_value=str(movement.item_unit_value),
            total_value=str(movement.total_value),
            schedule_id=movement.schedule_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ------------------- CLIENTS -------------------


@dataclass
class ClientCreateRequest:
    """DTO for client registration."""

    type: str
    name: str
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientCreateRequest":
        fields = {}
        for name in Client.EDITABLE_FIELDS:
            if name == "name":
                continue
            if name == "birth_date":
                value = data.get("birth_date")
                fields[name] = parse_date(value, "birth_date") if value else None
            else:
                fields[name] = optional_text(data.get(name))
        return cls(
            type=data.get("type") or "",
            name=data.get("name") or "",
            fields=fields,
        )

    def validate(self) -> None:
        """Validate the request data."""
        if self.type not in CLIENT_TYPES:
            raise ValidationError(
                "Tipo de cliente deve ser 'adult' ou 'minor'", {"field": "type"}
            )
        self.name = require_text(self.name, "name", "Nome")
        if not self.fields.get("birth_date"):
            raise ValidationError(
                "Por favor, preencha pelo menos o nome e data de nascimento",
                {"field": "birth_date"},
            )
        email = self.fields.get("email")
        if email and "@" not in email:
            raise ValidationError("E-mail inválido", {"field": "email"})
        if self.type == "minor" and not (
            self.fields.get("nome_mae") or self.fields.get("nome_pai")
        ):
            raise ValidationError(
                "Informe o nome da mãe ou do pai para clientes menores",
                {"field": "nome_mae"},
            )


@dataclass
class AppointmentCreateRequest:
    """DTO for historical appointments added straight to a client."""

    date: dt.date
    service_type: str
    time: Optional[dt.time] = None
    notes: Optional[str] = None
    value: Decimal = Decimal("0.00")
    duration_hours: Decimal = Decimal("0.00")
    attachments: List[AttachmentUpload] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppointmentCreateRequest":
        return cls(
            date=parse_date(data.get("date")),
            service_type=require_text(data.get("service_type"), "service_type", "Serviço"),
            time=parse_time(data["time"]) if data.get("time") else None,
            notes=optional_text(data.get("notes")),
            value=_money(data.get("value"), "value"),
            duration_hours=parse_duration_hours(data.get("duration_hours")),
            attachments=[
                AttachmentUpload.from_dict(a)
                for a in _object_list(data.get("attachments"), "attachments")
            ],
        )

    def validate(self) -> None:
        if not self.date:
            raise ValidationError("Data é obrigatória", {"field": "date"})
        self.service_type = require_text(self.service_type, "service_type", "Serviço")
        self.value = _money(self.value, "value")
        if self.duration_hours < 0:
            raise ValidationError("Duração não pode ser negativa", {"field": "duration_hours"})
        for attachment in self.attachments:
            attachment.validate()


@dataclass
class AppointmentResponse:
    id: int
    client_id: int
    date: Optional[str]
    time: Optional[str]
    service_type: str
    notes: Optional[str]
    value: str
    duration_hours: str
    attended_by: str
    intern_id: Optional[int]
    materials_used: List[Dict[str, Any]]
    attachments: List[Dict[str, Any]]
    status: str
    schedule_id: Optional[int]

    @classmethod
    def from_domain(cls, appointment) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            client_id=appointment.client_id,
            date=_iso(appointment.date),
            time=_time_str(appointment.time),
            service_type=appointment.service_type,
            notes=appointment.notes,
            value=str(appointment.value),
            duration_hours=str(appointment.duration_hours),
            attended_by=appointment.attended_by,
            intern_id=appointment.intern_id,
            materials_used=[asdict(m) for m in appointment.materials_used],
            attachments=[
                {"file_name": a.file_name, "upload_date": _iso(a.upload_date)}
                for a in appointment.attachments
            ],
            status=appointment.status,
            schedule_id=appointment.schedule_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ClientResponse:
    id: int
    type: str
    name: str
    fields: Dict[str, Any]
    assigned_intern_id: Optional[int]
    assigned_intern_name: Optional[str]
    appointments: List[Dict[str, Any]]
    change_history: List[Dict[str, Any]]
    notes: List[Dict[str, Any]]
    documents: List[Dict[str, Any]]
    version: int

    @classmethod
    def from_domain(cls, client) -> "ClientResponse":
        fields = {}
        for name in Client.EDITABLE_FIELDS:
            if name == "name":
                continue
            value = getattr(client, name)
            fields[name] = _iso(value) if isinstance(value, dt.date) else value
        return cls(
            id=client.id,
            type=client.type,
            name=client.name,
            fields=fields,
            assigned_intern_id=client.assigned_intern_id,
            assigned_intern_name=client.assigned_intern_name,
            appointments=[
                AppointmentResponse.from_domain(a).to_dict() for a in client.appointments
            ],
            change_history=[
                {
                    "id": entry.id,
                    "date": _iso(entry.date),
                    "changed_by": entry.changed_by,
                    "changes": [asdict(c) for c in entry.changes],
                }
                for entry in client.change_history
            ],
            notes=[
                {
                    "id": note.id,
                    "title": note.title,
                    "content": note.content,
                    "author": note.author,
                    "date": _iso(note.date),
                }
                for note in client.notes
            ],
            documents=[
                {
                    "id": doc.id,
                    "title": doc.title,
                    "file_name": doc.file_name,
                    "uploaded_by": doc.uploaded_by,
                    "date": _iso(doc.date),
                }
                for doc in client.documents
            ],
            version=client.version,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.update(data.pop("fields"))
        return data


# ------------------- USERS -------------------


@dataclass
class UserResponse:
    """DTO for user API responses."""

    id: int
    username: str
    name: str
    role: str
    email: Optional[str]

    @classmethod
    def from_domain(cls, user) -> "UserResponse":
        """Create response from domain entity."""
        return cls(
            id=user.id,
            username=user.username,
            name=user.name,
            role=user.role,
            email=user.email,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ------------------- LIBRARY -------------------


@dataclass
class GeneralDocumentCreateRequest:
    """DTO for a library entry: a file (with optional description) or a
    text note (with content)."""

    title: str
    type: str
    description: Optional[str] = None
    content: Optional[str] = None
    file_name: Optional[str] = None
    file_data: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeneralDocumentCreateRequest":
        return cls(
            title=require_text(data.get("title"), "title", "Título"),
            type=require_text(data.get("type"), "type", "Tipo"),
            description=optional_text(data.get("description")),
            content=optional_text(data.get("content")),
            file_name=optional_text(data.get("file_name")),
            file_data=optional_text(data.get("file_data")),
        )

    def validate(self) -> None:
        self.title = require_text(self.title, "title", "Título")
        if self.type not in LIBRARY_TYPES:
            raise ValidationError(f"Tipo inválido: {self.type}", {"field": "type"})
        if self.file_data:
            self.file_name = require_text(self.file_name, "file_name", "Nome do arquivo")
            check_attachment_size(self.file_data, self.file_name)
        elif not self.content:
            raise ValidationError(
                "Informe um arquivo ou o conteúdo da nota", {"field": "content"}
            )


@dataclass
class GeneralDocumentResponse:
    """DTO for library entries; the file payload is only sent on request."""

    id: int
    kind: str
    type: str
    title: str
    description: Optional[str]
    content: Optional[str]
    file_name: Optional[str]
    created_by: str
    created_at: Optional[str]
    file_data: Optional[str] = None

    @classmethod
    def from_domain(cls, document, include_file: bool = False) -> "GeneralDocumentResponse":
        return cls(
            id=document.id,
            kind=document.kind,
            type=document.type,
            title=document.title,
            description=document.description,
            content=document.content,
            file_name=document.file_name,
            created_by=document.created_by,
            created_at=document.created_at.isoformat() if document.created_at else None,
            file_data=document.file_data if include_file else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ------------------- RESULTS -------------------


@dataclass
class OperationResult:
    """Structured outcome of an operation: success or error kind plus message."""

    success: bool
    message: str
    kind: Optional[str] = None
    data: Any = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def from_error(cls, error: ClinicError) -> "OperationResult":
        return cls(
            success=False,
            message=error.message,
            kind=error.kind,
            details=dict(error.details),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
