"""Reservation orchestration services."""

from .reservation_service import MutationOutcome, ReservationService

__all__ = ["MutationOutcome", "ReservationService"]
