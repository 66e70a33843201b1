"""
SQLAlchemy-backed booking store.

Double-booking is prevented at two levels:
- the technician's row is locked with ``SELECT ... FOR UPDATE`` for the
  duration of the transaction (a no-op on SQLite, which serializes writers)
- a partial unique index rejects two active bookings for the same
  technician at the same start time

Times are stored as naive UTC and returned timezone-aware.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    and_,
    create_engine,
    or_,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from booking_core.exceptions import (
    BookingConflictError,
    ConfirmationCodeCollisionError,
    StoreError,
)
from booking_core.schemas.scheduling_schema import Booking, BookingStatus, CustomerInfo
from booking_core.store.base import BookingStore, BookingTransaction, lock_key

logger = logging.getLogger(__name__)

Base = declarative_base()

_ACTIVE_SQL = "status IN ('pending', 'confirmed')"


class TechnicianRow(Base):
    __tablename__ = "technicians"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False, default="")
    # available | on_leave | suspended
    status = Column(String(32), nullable=False, default="available")
    # comma-separated service types; empty means the technician takes any job
    skills = Column(Text, nullable=False, default="")


class BookingRow(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index(
            "uq_active_technician_start",
            "technician_id",
            "start_time",
            unique=True,
            sqlite_where=text(_ACTIVE_SQL),
            postgresql_where=text(_ACTIVE_SQL),
        ),
    )

    id = Column(String(36), primary_key=True)
    technician_id = Column(String(64), ForeignKey("technicians.id"), nullable=True, index=True)
    service_type = Column(String(64), nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)
    status = Column(String(32), nullable=False, default=BookingStatus.PENDING.value, index=True)
    confirmation_code = Column(String(8), nullable=False, unique=True)

    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(64), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_address = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)


def _to_db(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _row_to_booking(row: BookingRow) -> Booking:
    customer = None
    if row.customer_name is not None:
        customer = CustomerInfo(
            name=row.customer_name,
            phone=row.customer_phone or "",
            email=row.customer_email or "",
            address=row.customer_address or "",
        )
    return Booking(
        id=row.id,
        technician_id=row.technician_id,
        service_type=row.service_type,
        start_time=_from_db(row.start_time),
        end_time=_from_db(row.end_time),
        status=BookingStatus(row.status),
        confirmation_code=row.confirmation_code,
        customer=customer,
        notes=row.notes,
        created_at=_from_db(row.created_at),
        updated_at=_from_db(row.updated_at),
    )


def _apply(row: BookingRow, booking: Booking) -> BookingRow:
    row.id = booking.id
    row.technician_id = booking.technician_id
    row.service_type = booking.service_type
    row.start_time = _to_db(booking.start_time)
    row.end_time = _to_db(booking.end_time)
    row.status = booking.status.value
    row.confirmation_code = booking.confirmation_code
    row.customer_name = booking.customer.name if booking.customer else None
    row.customer_phone = booking.customer.phone if booking.customer else None
    row.customer_email = booking.customer.email if booking.customer else None
    row.customer_address = booking.customer.address if booking.customer else None
    row.notes = booking.notes
    row.created_at = _to_db(booking.created_at)
    row.updated_at = _to_db(booking.updated_at)
    return row


def _window_query(technician_id: Optional[str], start: datetime, end: datetime):
    stmt = select(BookingRow).where(
        and_(BookingRow.start_time < _to_db(end), BookingRow.end_time > _to_db(start))
    )
    if technician_id is not None:
        stmt = stmt.where(
            or_(BookingRow.technician_id == technician_id, BookingRow.technician_id.is_(None))
        )
    return stmt.order_by(BookingRow.start_time)


def _translate_integrity_error(exc: IntegrityError, booking: Booking) -> Exception:
    """Name the constraint a flush violated."""
    message = str(exc.orig).lower()
    if "confirmation_code" in message:
        return ConfirmationCodeCollisionError(
            f"Confirmation code {booking.confirmation_code} already issued"
        )
    if "foreign key" in message:
        return StoreError(f"Unknown technician {booking.technician_id}")
    return BookingConflictError("Technician already has an active booking at this start time")


class _SqlTransaction(BookingTransaction):
    def __init__(self, session: Session) -> None:
        self._session = session

    def find_bookings(
        self, technician_id: Optional[str], start: datetime, end: datetime
    ) -> list[Booking]:
        rows = self._session.execute(_window_query(technician_id, start, end)).scalars()
        return [_row_to_booking(r) for r in rows]

    def get(self, booking_id: str) -> Optional[Booking]:
        row = self._session.get(BookingRow, booking_id)
        return _row_to_booking(row) if row is not None else None

    def add(self, booking: Booking) -> Booking:
        self._session.add(_apply(BookingRow(), booking))
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise _translate_integrity_error(exc, booking) from exc
        return booking

    def update(self, booking: Booking) -> Booking:
        row = self._session.get(BookingRow, booking.id)
        if row is None:
            raise StoreError(f"Booking {booking.id} disappeared during update")
        _apply(row, booking)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise _translate_integrity_error(exc, booking) from exc
        return booking


class SqlBookingStore(BookingStore):
    """Relational store for bookings and technician status."""

    def __init__(self, url_or_engine: Union[str, Engine], create_schema: bool = True) -> None:
        if isinstance(url_or_engine, Engine):
            self.engine = url_or_engine
        else:
            self.engine = create_engine(url_or_engine, pool_pre_ping=True)
        self.SessionLocal = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        if create_schema:
            Base.metadata.create_all(self.engine)

    def _lock_for(self, technician_id: Optional[str]) -> threading.Lock:
        key = lock_key(technician_id)
        with self._locks_guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    @contextmanager
    def transaction(self, technician_id: Optional[str]) -> Iterator[BookingTransaction]:
        with self._lock_for(technician_id):
            session = self.SessionLocal()
            try:
                if technician_id is not None:
                    session.execute(
                        select(TechnicianRow)
                        .where(TechnicianRow.id == technician_id)
                        .with_for_update()
                    )
                yield _SqlTransaction(session)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error("Booking transaction failed for %s: %s", technician_id, exc)
                raise StoreError(f"Booking transaction failed: {exc}") from exc
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        with self.SessionLocal() as session:
            row = session.get(BookingRow, booking_id)
            return _row_to_booking(row) if row is not None else None

    def find_bookings_for_technician(
        self, technician_id: Optional[str], start: datetime, end: datetime
    ) -> list[Booking]:
        with self.SessionLocal() as session:
            rows = session.execute(_window_query(technician_id, start, end)).scalars().all()
            return [_row_to_booking(r) for r in rows]

    def list_bookings(self) -> list[Booking]:
        with self.SessionLocal() as session:
            rows = session.execute(select(BookingRow).order_by(BookingRow.start_time)).scalars()
            return [_row_to_booking(r) for r in rows]

    # ------------------------------------------------------------------ #
    # Technician directory
    # ------------------------------------------------------------------ #

    def add_technician(
        self,
        technician_id: str,
        name: str = "",
        status: str = "available",
        skills: Optional[list[str]] = None,
    ) -> None:
        with self.SessionLocal() as session:
            row = session.get(TechnicianRow, technician_id) or TechnicianRow(id=technician_id)
            row.name = name
            row.status = status
            row.skills = ",".join(skills or [])
            session.add(row)
            session.commit()

    def get_status(self, technician_id: str) -> Optional[str]:
        with self.SessionLocal() as session:
            row = session.get(TechnicianRow, technician_id)
            return row.status if row is not None else None

    def list_available(self, skill: Optional[str] = None) -> list[str]:
        with self.SessionLocal() as session:
            rows = session.execute(
                select(TechnicianRow)
                .where(TechnicianRow.status == "available")
                .order_by(TechnicianRow.id)
            ).scalars()
            return [
                row.id
                for row in rows
                if skill is None or not row.skills or skill in row.skills.split(",")
            ]
