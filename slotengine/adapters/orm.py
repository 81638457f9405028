"""
SQLAlchemy table models for the SQLite store.
"""

from sqlalchemy import JSON, Boolean, Column, Date, Index, Integer, String, Text, Time, text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ProfessionalRecord(Base):
    """Availability profile of one professional"""

    __tablename__ = "professionals"

    professional_id = Column(String(64), primary_key=True)
    timezone = Column(String(64), nullable=False, default="Europe/Berlin")
    weekly_schedule = Column(JSON, nullable=False)  # {"monday": {"enabled": ..., "startTime": ...}}
    vacation_mode = Column(Boolean, nullable=False, default=False)
    vacation_start_date = Column(Date, nullable=True)
    vacation_end_date = Column(Date, nullable=True)
    blocked_dates = Column(JSON, nullable=False, default=list)  # ISO dates
    buffer_minutes = Column(Integer, nullable=False, default=0)
    auto_decline = Column(Boolean, nullable=False, default=False)
    interval_minutes = Column(Integer, nullable=False, default=30)
    service_duration_minutes = Column(Integer, nullable=True)


class BookingRecord(Base):
    """A reservation held by a customer"""

    __tablename__ = "bookings"

    id = Column(String(64), primary_key=True)
    professional_id = Column(String(64), nullable=False)
    customer_id = Column(String(255), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(String(16), nullable=False)  # Pending, Confirmed, Completed, Cancelled
    created_at = Column(String(40), nullable=True)  # ISO 8601 with offset
    updated_at = Column(String(40), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_bookings_professional_date", "professional_id", "date"),
        # One active booking per professional and start
        Index(
            "idx_bookings_active_start",
            "professional_id",
            "date",
            "start_time",
            unique=True,
            sqlite_where=text("status IN ('Pending', 'Confirmed')"),
        ),
    )
