"""
SQLite-backed availability store and booking ledger.

One database file holds both collections, mapped with SQLAlchemy. Every
transaction starts with ``BEGIN IMMEDIATE`` so SQLite serialises writers
across connections and processes. The partial unique index on
``bookings`` additionally rejects two active bookings starting at the same
time.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Iterator, List, Optional

import pendulum
from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from ..domain.exceptions import ConflictCode, ConflictError, NotFoundError
from ..domain.models import (
    ACTIVE_STATUSES,
    AvailabilityProfile,
    Booking,
    BookingStatus,
    VacationPeriod,
    WeeklySchedule,
    format_time,
    parse_date,
)
from .orm import Base, BookingRecord, ProfessionalRecord

logger = logging.getLogger(__name__)


def _disable_driver_begin(dbapi_connection, connection_record):
    # pysqlite would otherwise emit its own deferred BEGIN
    dbapi_connection.isolation_level = None


def _begin_immediate(connection):
    connection.exec_driver_sql("BEGIN IMMEDIATE")


class SQLiteStore:
    """
    Implements both AvailabilityStore and BookingLedger on one SQLite file.
    """

    def __init__(self, database_path: Path | str, timeout: float = 30.0):
        """
        Initialize the store and create the schema if needed.

        Args:
            database_path: Path to the database file (created if missing)
            timeout: Seconds to wait for another writer's lock
        """
        self.database_path = Path(database_path)
        self.timeout = timeout

        if self.database_path.parent and not self.database_path.parent.exists():
            self.database_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_engine(
            f"sqlite:///{self.database_path}",
            connect_args={"timeout": timeout, "check_same_thread": False},
        )
        event.listen(self.engine, "connect", _disable_driver_begin)
        event.listen(self.engine, "begin", _begin_immediate)

        Base.metadata.create_all(bind=self.engine)

        # One session per thread, released when its outermost scope ends
        self.SessionLocal = scoped_session(
            sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        )

    def close(self) -> None:
        """Release every pooled connection."""
        self.SessionLocal.remove()
        self.engine.dispose()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self.SessionLocal()

        if session.in_transaction():
            yield session
            return

        try:
            with session.begin():
                yield session
        finally:
            self.SessionLocal.remove()

    @contextmanager
    def transaction(self, professional_id: str) -> Iterator[None]:
        """
        Run the block inside one write transaction.

        SQLite locks the whole database, so ``professional_id`` only shows up
        in the logs. Nested use on the same thread joins the outer transaction.
        """
        try:
            with self._session():
                yield
        except Exception:
            logger.debug("Rolled back transaction for %s", professional_id)
            raise

    # Availability store

    def get_profile(self, professional_id: str) -> AvailabilityProfile:
        with self._session() as session:
            record = session.get(ProfessionalRecord, professional_id)

            if record is None:
                raise NotFoundError(f"Unknown professional: {professional_id}")

            return _profile_from_record(record)

    def save_profile(self, profile: AvailabilityProfile) -> None:
        with self._session() as session:
            record = session.get(ProfessionalRecord, profile.professional_id)
            if record is None:
                record = ProfessionalRecord(professional_id=profile.professional_id)
                session.add(record)

            _fill_professional(record, profile)
            session.flush()

    def list_professionals(self) -> List[str]:
        with self._session() as session:
            rows = (
                session.query(ProfessionalRecord.professional_id)
                .order_by(ProfessionalRecord.professional_id)
                .all()
            )
            return [row.professional_id for row in rows]

    # Booking ledger

    def get(self, booking_id: str) -> Booking:
        with self._session() as session:
            record = session.get(BookingRecord, booking_id)

            if record is None:
                raise NotFoundError(f"Unknown booking: {booking_id}")

            return _booking_from_record(record)

    def list_active(
        self,
        professional_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Booking]:
        with self._session() as session:
            query = session.query(BookingRecord).filter(
                BookingRecord.professional_id == professional_id,
                BookingRecord.status.in_([status.value for status in ACTIVE_STATUSES]),
            )

            if start_date is not None:
                query = query.filter(BookingRecord.date >= _plain_date(start_date))
            if end_date is not None:
                query = query.filter(BookingRecord.date <= _plain_date(end_date))

            records = query.order_by(
                BookingRecord.date, BookingRecord.start_time, BookingRecord.id
            ).all()
            return [_booking_from_record(record) for record in records]

    def list_for_professional(self, professional_id: str) -> List[Booking]:
        with self._session() as session:
            records = (
                session.query(BookingRecord)
                .filter(BookingRecord.professional_id == professional_id)
                .order_by(BookingRecord.date, BookingRecord.start_time, BookingRecord.id)
                .all()
            )
            return [_booking_from_record(record) for record in records]

    def add(self, booking: Booking) -> None:
        with self._session() as session:
            if session.get(BookingRecord, booking.id) is not None:
                raise ValueError(f"Booking {booking.id} already exists")

            record = BookingRecord(id=booking.id)
            _fill_booking(record, booking)
            session.add(record)
            self._flush(session, booking)

    def update(self, booking: Booking) -> None:
        with self._session() as session:
            record = session.get(BookingRecord, booking.id)

            if record is None:
                raise NotFoundError(f"Unknown booking: {booking.id}")

            _fill_booking(record, booking)
            self._flush(session, booking)

    @staticmethod
    def _flush(session: Session, booking: Booking) -> None:
        # The primary key is checked beforehand, so only the active start index can fail
        try:
            session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                ConflictCode.SLOT_ALREADY_TAKEN,
                f"Another active booking already starts at {format_time(booking.start_time)}",
            ) from exc


def _plain_date(value: date) -> date:
    return date(value.year, value.month, value.day)


def _fill_professional(record: ProfessionalRecord, profile: AvailabilityProfile) -> None:
    record.timezone = profile.timezone
    record.weekly_schedule = profile.weekly_schedule.to_dict()
    record.vacation_mode = profile.vacation_mode
    record.vacation_start_date = _plain_date(profile.vacation.start_date) if profile.vacation else None
    record.vacation_end_date = _plain_date(profile.vacation.end_date) if profile.vacation else None
    record.blocked_dates = sorted(day.isoformat() for day in profile.blocked_dates)
    record.buffer_minutes = profile.buffer_minutes
    record.auto_decline = profile.auto_decline
    record.interval_minutes = profile.interval_minutes
    record.service_duration_minutes = profile.service_duration_minutes


def _profile_from_record(record: ProfessionalRecord) -> AvailabilityProfile:
    vacation = None
    if record.vacation_start_date and record.vacation_end_date:
        vacation = VacationPeriod(
            start_date=record.vacation_start_date,
            end_date=record.vacation_end_date,
        )

    return AvailabilityProfile(
        professional_id=record.professional_id,
        weekly_schedule=WeeklySchedule.from_dict(record.weekly_schedule),
        timezone=record.timezone,
        vacation=vacation,
        vacation_mode=record.vacation_mode,
        blocked_dates=frozenset(parse_date(day) for day in record.blocked_dates),
        buffer_minutes=record.buffer_minutes,
        auto_decline=record.auto_decline,
        interval_minutes=record.interval_minutes,
        service_duration_minutes=record.service_duration_minutes,
    )


def _fill_booking(record: BookingRecord, booking: Booking) -> None:
    record.professional_id = booking.professional_id
    record.customer_id = booking.customer_id
    record.date = _plain_date(booking.date)
    record.start_time = booking.start_time
    record.end_time = booking.end_time
    record.status = booking.status.value
    record.created_at = booking.created_at.to_iso8601_string() if booking.created_at else None
    record.updated_at = booking.updated_at.to_iso8601_string() if booking.updated_at else None
    record.cancellation_reason = booking.cancellation_reason


def _booking_from_record(record: BookingRecord) -> Booking:
    return Booking(
        id=record.id,
        professional_id=record.professional_id,
        customer_id=record.customer_id,
        date=record.date,
        start_time=record.start_time,
        end_time=record.end_time,
        status=BookingStatus(record.status),
        created_at=pendulum.parse(record.created_at) if record.created_at else None,
        updated_at=pendulum.parse(record.updated_at) if record.updated_at else None,
        cancellation_reason=record.cancellation_reason,
    )
