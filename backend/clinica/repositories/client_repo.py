"""Client repository implementation.

Loads a client together with the records it owns (appointments, notes,
documents and change history) and keeps display names normalized before
storage so search and the client list stay consistent.
"""

import datetime as dt
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import selectinload

from clinica.core.exceptions import ConflictError, NotFoundError
from clinica.db.base import Appointment as DbAppointment
from clinica.db.base import Client as DbClient
from clinica.db.base import ClientChange as DbClientChange
from clinica.db.base import ClientDocument as DbClientDocument
from clinica.db.base import ClientNote as DbClientNote
from clinica.domain.entities import (
    Appointment,
    Attachment,
    ChangeEntry,
    Client,
    ClientDocument,
    ClientNote,
    FieldChange,
    MaterialUsage,
)
from clinica.domain.interfaces import IClientRepository
from clinica.utils.client_utils import normalize_display_name


class ClientRepository(IClientRepository):
    """Repository for Client persistence operations."""

    def __init__(self, db_session) -> None:
        self.db = db_session

    def _query(self):
        return (
            self.db.query(DbClient)
            .options(
                selectinload(DbClient.appointments),
                selectinload(DbClient.notes),
                selectinload(DbClient.documents),
                selectinload(DbClient.changes),
            )
            .populate_existing()
        )

    def _get_db(self, client_id: int, lock: bool = False) -> Optional[DbClient]:
        query = self.db.query(DbClient).filter_by(id=client_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def _require_db(self, client_id: int) -> DbClient:
        db_client = self._get_db(client_id)
        if not db_client:
            raise NotFoundError("Cliente", client_id)
        return db_client

    def get_by_id(self, client_id: int, lock: bool = False) -> Optional[Client]:
        if lock:
            # Take the row lock first, then load the owned collections
            if not self._get_db(client_id, lock=True):
                return None
        db_client = self._query().filter(DbClient.id == client_id).first()
        return self._to_domain(db_client) if db_client else None

    def list_all(self) -> List[Client]:
        db_clients = self._query().order_by(DbClient.name).all()
        return [self._to_domain(c) for c in db_clients]

    def list_by_assigned_intern(self, intern_id: int) -> List[Client]:
        db_clients = (
            self._query()
            .filter(DbClient.assigned_intern_id == intern_id)
            .order_by(DbClient.name)
            .all()
        )
        return [self._to_domain(c) for c in db_clients]

    def create(self, client: Client) -> Client:
        db_client = DbClient(type=client.type)
        self._apply_fields(db_client, client)
        self.db.add(db_client)
        self.db.flush()
        return self._to_domain(db_client)

    def update(self, client: Client) -> Client:
        if not client.id:
            raise ValueError("Client ID is required for update")
        db_client = self._require_db(client.id)
        if db_client.version != client.version:
            raise ConflictError(
                "O cliente foi alterado por outro usuário. Recarregue e tente novamente.",
                {"entity": "Cliente", "id": client.id},
            )
        db_client.type = client.type
        self._apply_fields(db_client, client)
        self.db.flush()
        client.version = db_client.version
        return client

    def delete(self, client_id: int) -> bool:
        db_client = self._get_db(client_id)
        if not db_client:
            return False
        self.db.delete(db_client)
        self.db.flush()
        return True

    def add_appointment(self, client_id: int, appointment: Appointment) -> Appointment:
        self._require_db(client_id)
        db_appointment = DbAppointment(
            client_id=client_id,
            schedule_id=appointment.schedule_id,
            date=appointment.date,
            time=appointment.time,
            service_type=appointment.service_type,
            notes=appointment.notes,
            value=appointment.value,
            duration_hours=appointment.duration_hours,
            attended_by=appointment.attended_by,
            intern_id=appointment.intern_id,
            materials_used=[_material_to_json(m) for m in appointment.materials_used],
            attachments=[_attachment_to_json(a) for a in appointment.attachments],
            status=appointment.status,
            confirmed_at=appointment.confirmed_at,
        )
        self.db.add(db_appointment)
        self.db.flush()
        return _appointment_to_domain(db_appointment)

    def append_change(self, client_id: int, entry: ChangeEntry) -> ChangeEntry:
        self._require_db(client_id)
        db_change = DbClientChange(
            client_id=client_id,
            date=entry.date,
            changed_by=entry.changed_by,
            changes=[
                {"field": c.field, "old_value": c.old_value, "new_value": c.new_value}
                for c in entry.changes
            ],
        )
        self.db.add(db_change)
        self.db.flush()
        return _change_to_domain(db_change)

    def add_note(self, client_id: int, note: ClientNote) -> ClientNote:
        self._require_db(client_id)
        db_note = DbClientNote(
            client_id=client_id,
            title=note.title,
            content=note.content,
            author=note.author,
            date=note.date,
        )
        self.db.add(db_note)
        self.db.flush()
        return _note_to_domain(db_note)

    def add_document(self, client_id: int, document: ClientDocument) -> ClientDocument:
        self._require_db(client_id)
        db_document = DbClientDocument(
            client_id=client_id,
            title=document.title,
            file_name=document.file_name,
            file_data=document.file_data,
            uploaded_by=document.uploaded_by,
            date=document.date,
        )
        self.db.add(db_document)
        self.db.flush()
        return _document_to_domain(db_document)

    def delete_document(self, document_id: int) -> bool:
        db_document = self.db.query(DbClientDocument).filter_by(id=document_id).first()
        if not db_document:
            return False
        self.db.delete(db_document)
        self.db.flush()
        return True

    def _apply_fields(self, db_client: DbClient, client: Client) -> None:
        for name in Client.EDITABLE_FIELDS:
            setattr(db_client, name, getattr(client, name))
        db_client.name = normalize_display_name(client.name)
        db_client.assigned_intern_id = client.assigned_intern_id
        db_client.assigned_intern_name = client.assigned_intern_name

    def _to_domain(self, db_client: DbClient) -> Client:
        """Convert database model to domain entity."""
        fields = {name: getattr(db_client, name) for name in Client.EDITABLE_FIELDS}
        return Client(
            id=db_client.id,
            type=db_client.type,
            assigned_intern_id=db_client.assigned_intern_id,
            assigned_intern_name=db_client.assigned_intern_name,
            appointments=[_appointment_to_domain(a) for a in db_client.appointments],
            notes=[_note_to_domain(n) for n in db_client.notes],
            documents=[_document_to_domain(d) for d in db_client.documents],
            change_history=[_change_to_domain(c) for c in db_client.changes],
            created_at=db_client.created_at,
            version=db_client.version,
            **fields,
        )


def _material_to_json(material: MaterialUsage) -> Dict[str, Any]:
    return {
        "item_id": material.item_id,
        "item_name": material.item_name,
        "quantity_used": material.quantity_used,
        "unit": material.unit,
    }


def _attachment_to_json(attachment: Attachment) -> Dict[str, Any]:
    return {
        "file_name": attachment.file_name,
        "file_data": attachment.file_data,
        "upload_date": (
            attachment.upload_date.isoformat() if attachment.upload_date else None
        ),
    }


def _attachment_from_json(data: Dict[str, Any]) -> Attachment:
    upload_date = data.get("upload_date")
    return Attachment(
        file_name=data.get("file_name", ""),
        file_data=data.get("file_data", ""),
        upload_date=dt.datetime.fromisoformat(upload_date) if upload_date else None,
    )


def _appointment_to_domain(db_appointment: DbAppointment) -> Appointment:
    return Appointment(
        id=db_appointment.id,
        client_id=db_appointment.client_id,
        date=db_appointment.date,
        time=db_appointment.time,
        service_type=db_appointment.service_type,
        notes=db_appointment.notes,
        value=db_appointment.value,
        duration_hours=db_appointment.duration_hours,
        attended_by=db_appointment.attended_by,
        intern_id=db_appointment.intern_id,
        materials_used=[MaterialUsage(**m) for m in db_appointment.materials_used or []],
        attachments=[_attachment_from_json(a) for a in db_appointment.attachments or []],
        status=db_appointment.status,
        schedule_id=db_appointment.schedule_id,
        confirmed_at=db_appointment.confirmed_at,
        created_at=db_appointment.created_at,
    )


def _change_to_domain(db_change: DbClientChange) -> ChangeEntry:
    return ChangeEntry(
        id=db_change.id,
        client_id=db_change.client_id,
        date=db_change.date,
        changed_by=db_change.changed_by,
        changes=[FieldChange(**c) for c in db_change.changes or []],
    )


def _note_to_domain(db_note: DbClientNote) -> ClientNote:
    return ClientNote(
        id=db_note.id,
        client_id=db_note.client_id,
        title=db_note.title,
        content=db_note.content,
        author=db_note.author,
        date=db_note.date,
    )


def _document_to_domain(db_document: DbClientDocument) -> ClientDocument:
    return ClientDocument(
        id=db_document.id,
        client_id=db_document.client_id,
        title=db_document.title,
        file_name=db_document.file_name,
        file_data=db_document.file_data,
        uploaded_by=db_document.uploaded_by,
        date=db_document.date,
    )
