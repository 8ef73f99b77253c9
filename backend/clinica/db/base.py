from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .session import Base


class User(Base):
    """Clinic user (coordinator, staff or intern)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    username: Mapped[str] = mapped_column(String(80), unique=True, nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="staff"
    )  # 'coordinator', 'staff', 'intern'
    email: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    cpf: Mapped[Optional[str]] = mapped_column(String(14), nullable=True)
    institution: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    graduation_period: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    education: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    discipline: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    created_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Flask-Login required methods/properties
    def get_id(self):
        """Return user identifier for Flask-Login"""
        return str(self.id)

    @property
    def is_active(self) -> bool:
        return True

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"


# ------------------- CLIENTES -------------------
class Client(Base):
    """Client record; owns appointments, notes, documents and change history."""

    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    type: Mapped[str] = mapped_column(String(10), nullable=False, default="adult")
    name: Mapped[str] = mapped_column(String(150), nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    cpf: Mapped[Optional[str]] = mapped_column(String(14), nullable=True, index=True)
    rg: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    birth_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    profissao: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    contato_emergencia: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    escola: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    ano_escolar: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    nome_pai: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    telefone_pai: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    nome_mae: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    telefone_mae: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    cep: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    neighborhood: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    observations: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Snapshot of the intern's name at assignment time, never live-synced
    assigned_intern_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    assigned_intern_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now()
    )

    appointments: Mapped[List["Appointment"]] = relationship(
        "Appointment",
        back_populates="client",
        cascade="all, delete-orphan",
        order_by="Appointment.id",
    )
    notes: Mapped[List["ClientNote"]] = relationship(
        "ClientNote", cascade="all, delete-orphan", order_by="ClientNote.id"
    )
    documents: Mapped[List["ClientDocument"]] = relationship(
        "ClientDocument", cascade="all, delete-orphan", order_by="ClientDocument.id"
    )
    changes: Mapped[List["ClientChange"]] = relationship(
        "ClientChange", cascade="all, delete-orphan", order_by="ClientChange.id"
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Client(id={self.id}, name='{self.name}')>"


class Appointment(Base):
    """Completed session embedded in a client."""

    __tablename__ = "appointments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    client_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    schedule_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True, index=True)
    time: Mapped[Optional[dt.time]] = mapped_column(Time, nullable=True)
    service_type: Mapped[str] = mapped_column(String(100), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    duration_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=0)
    attended_by: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    intern_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    materials_used: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    attachments: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="concluido")
    confirmed_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    client = relationship("Client", back_populates="appointments")


class ClientChange(Base):
    """Append-only change history entry of a client."""

    __tablename__ = "client_changes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    client_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    changed_by: Mapped[str] = mapped_column(String(120), nullable=False)
    changes: Mapped[Any] = mapped_column(JSON, nullable=False)


class ClientNote(Base):
    __tablename__ = "client_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    client_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(150), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str] = mapped_column(String(120), nullable=False)
    date: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ClientDocument(Base):
    __tablename__ = "client_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    client_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(150), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_data: Mapped[str] = mapped_column(Text, nullable=False)
    uploaded_by: Mapped[str] = mapped_column(String(120), nullable=False)
    date: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ------------------- AGENDA -------------------
class Schedule(Base):
    """Appointment slot. Status-specific columns are guarded by CHECK constraints."""

    __tablename__ = "schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    client_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    service_type: Mapped[str] = mapped_column(String(100), nullable=False)
    observations: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="agendado")
    assigned_to_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    assigned_to_user_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    attendance_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    confirmed_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))
    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancel_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancel_image_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    cancelled_at: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True))
    canceled_by: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "(status = 'concluido') = (attendance_id IS NOT NULL)",
            name="ck_schedules_attendance_iff_concluido",
        ),
        CheckConstraint(
            "(status = 'cancelado') = (cancel_reason IS NOT NULL)",
            name="ck_schedules_cancellation_iff_cancelado",
        ),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Schedule(id={self.id}, client_id={self.client_id}, status='{self.status}')>"


# ------------------- ESTOQUE (STOCK) -------------------
class StockItem(Base):
    """Stock item. ``quantity`` is written only by the stock ledger."""

    __tablename__ = "stock_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="unidade")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_items_quantity_non_negative"),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<StockItem(id={self.id}, name='{self.name}', quantity={self.quantity})>"


class StockMovement(Base):
    """Append-only movement log. ``item_id`` is a weak reference: no FK, so
    movements survive deletion of the item."""

    __tablename__ = "stock_movements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    item_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False)  # entrada, saida, exclusao
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    date: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    user_name: Mapped[str] = mapped_column(String(120), nullable=False)
    item_unit_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    schedule_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


# ------------------- FINANCEIRO -------------------
class DailyNote(Base):
    __tablename__ = "daily_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    type: Mapped[str] = mapped_column(String(12), nullable=False)  # receita, despesa, observacao
    title: Mapped[str] = mapped_column(String(150), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    author: Mapped[str] = mapped_column(String(120), nullable=False)
    created_at: Mapped[Optional[dt.datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


# ------------------- BIBLIOTECA -------------------
class GeneralDocument(Base):
    """Clinic-wide file or note, independent of any client."""

    __tablename__ = "general_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(120), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
