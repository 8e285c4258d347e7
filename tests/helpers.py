"""Shared fakes and utilities for unit tests."""

from __future__ import annotations
from tracking import t

import asyncio
from collections import defaultdict, deque
from datetime import date, datetime, time
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Tuple

from reservations.errors import MutationConflictError
from reservations.interfaces import MutationAPI
from reservations.models import (
    Reservation,
    ReservationStatus,
    ReservationType,
    build_reservation,
)

FIXED_NOW = datetime(2025, 6, 1, 9, 0, 0)


class DummyLogger:
    """Lightweight stand-in for ``logging.Logger`` that records calls."""

    def __init__(self) -> None:
        t('tests.helpers.DummyLogger.__init__')
        self.records: List[Tuple[str, Tuple[Any, ...], Dict[str, Any]]] = []

    def _record(self, level: str, *args: Any, **kwargs: Any) -> None:
        t('tests.helpers.DummyLogger._record')
        self.records.append((level, args, kwargs))

    def debug(self, *args: Any, **kwargs: Any) -> None:
        self._record("debug", *args, **kwargs)

    def info(self, *args: Any, **kwargs: Any) -> None:
        self._record("info", *args, **kwargs)

    def warning(self, *args: Any, **kwargs: Any) -> None:
        self._record("warning", *args, **kwargs)

    def error(self, *args: Any, **kwargs: Any) -> None:
        self._record("error", *args, **kwargs)

    def critical(self, *args: Any, **kwargs: Any) -> None:
        self._record("critical", *args, **kwargs)

    def exception(self, *args: Any, **kwargs: Any) -> None:
        self._record("exception", *args, **kwargs)

    @property
    def messages(self) -> List[Tuple[str, Any]]:
        """Return formatted messages for quick assertions."""
        t('tests.helpers.DummyLogger.messages')

        formatted: List[Tuple[str, Any]] = []
        for level, args, kwargs in self.records:
            message: Any = kwargs.get("msg")
            if args:
                template = args[0]
                if isinstance(template, str) and len(args) > 1:
                    try:
                        message = template % args[1:]
                    except (TypeError, ValueError):
                        message = template
                else:
                    message = template
            formatted.append((level, message))
        return formatted

    def levels(self) -> List[str]:
        return [level for level, _, _ in self.records]

    def clear(self) -> None:
        self.records.clear()


def at(day: date, hour: int = 0) -> datetime:
    return datetime.combine(day, time(hour=hour))


def make_reservation(
    reservation_id: str,
    start: date,
    end: date,
    *,
    resource_id: str = "spectre",
    status: ReservationStatus = ReservationStatus.CONFIRMED,
    type: ReservationType = ReservationType.CHARTER,
    **extra: Any,
) -> Reservation:
    """Reservation starting at 09:00 on ``start`` and ending 17:00 on ``end``."""
    return Reservation(
        id=reservation_id,
        resource_id=resource_id,
        start=at(start, 9),
        end=at(end, 17),
        status=status,
        type=type,
        created_at=FIXED_NOW,
        updated_at=FIXED_NOW,
        **extra,
    )


class FakeMutationAPI(MutationAPI):
    """In-memory backend with scripted failures.

    ``fail_next(method, error, times)`` makes the next ``times`` calls to
    ``method`` raise ``error``. Setting ``gate`` to an ``asyncio.Event``
    holds every call until the event is set. ``hold_next(method)`` returns an
    event that delays the reply of the next call: the backend applies the
    change at once but the caller only hears back once the event is set.
    """

    def __init__(self, reservations: Optional[List[Reservation]] = None) -> None:
        self.reservations: Dict[str, Reservation] = {r.id: r for r in reservations or []}
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.delete_result = True
        self.gate: Optional[asyncio.Event] = None
        self._failures: Dict[str, Deque[BaseException]] = defaultdict(deque)
        self._holds: Dict[str, Deque[asyncio.Event]] = defaultdict(deque)

    def fail_next(self, method: str, error: BaseException, times: int = 1) -> None:
        for _ in range(times):
            self._failures[method].append(error)

    def hold_next(self, method: str) -> asyncio.Event:
        event = asyncio.Event()
        self._holds[method].append(event)
        return event

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    async def _call(self, method: str, args: Tuple[Any, ...], action: Callable[[], Any]) -> Any:
        # Failures and holds bind to calls in the order they are made.
        self.calls.append((method, args))
        failure = self._failures[method].popleft() if self._failures[method] else None
        hold = self._holds[method].popleft() if self._holds[method] else None
        if self.gate is not None:
            await self.gate.wait()
        result = action() if failure is None else None
        if hold is not None:
            await hold.wait()
        if failure is not None:
            raise failure
        return result

    def _existing(self, reservation_id: str) -> Reservation:
        current = self.reservations.get(reservation_id)
        if current is None:
            raise MutationConflictError(f"{reservation_id} does not exist")
        return current

    async def create(self, data: Mapping[str, Any]) -> Reservation:
        def action() -> Reservation:
            reservation = build_reservation(data, now=FIXED_NOW)
            self.reservations[reservation.id] = reservation
            return reservation

        return await self._call("create", (dict(data),), action)

    async def update(self, reservation_id: str, patch: Mapping[str, Any]) -> Reservation:
        def action() -> Reservation:
            updated = self._existing(reservation_id).apply_patch(patch, now=FIXED_NOW)
            self.reservations[reservation_id] = updated
            return updated

        return await self._call("update", (reservation_id, dict(patch)), action)

    async def delete(self, reservation_id: str) -> bool:
        def action() -> bool:
            if self.delete_result:
                self.reservations.pop(reservation_id, None)
            return self.delete_result

        return await self._call("delete", (reservation_id,), action)

    async def toggle_field(self, reservation_id: str, field: str) -> Reservation:
        def action() -> Reservation:
            current = self._existing(reservation_id)
            updated = current.apply_patch({field: not getattr(current, field)}, now=FIXED_NOW)
            self.reservations[reservation_id] = updated
            return updated

        return await self._call("toggle_field", (reservation_id, field), action)


class EventRecorder:
    """Subscriber collecting every event or status snapshot it receives."""

    def __init__(self) -> None:
        self.events: List[Any] = []

    def __call__(self, event: Any) -> None:
        self.events.append(event)

    def kinds(self) -> List[str]:
        return [event.kind.value for event in self.events]
