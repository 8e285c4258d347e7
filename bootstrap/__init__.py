"""Bootstrap helpers for wiring the reservation core."""

from .container import ReservationContainer, ReservationDependencies

__all__ = [
    'ReservationContainer',
    'ReservationDependencies',
]
