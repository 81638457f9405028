"""
Service layer helpers that orchestrate stores and domain logic.
"""

from .booking_service import BookingService
from .conflict_guard import ConflictGuard
from .reschedule import RescheduleCoordinator

__all__ = ["BookingService", "ConflictGuard", "RescheduleCoordinator"]
