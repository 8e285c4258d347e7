"""
Optimistic reservation state management
Holds the in-memory reservation collection, applies mutations speculatively
and reconciles them with the backend.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from tracking import t

from infrastructure.constants import CHANGE_HISTORY_LIMIT, DEFAULT_ACTOR, OPERATION_HISTORY_LIMIT
from reservations.availability import (
    AvailabilityResult,
    ConflictCheckOptions,
    check_conflicts,
    check_resource_rules,
    date_availability,
    overlaps,
)
from reservations.errors import (
    ConflictError,
    MutationFailure,
    ReservationNotFoundError,
    ValidationError,
)
from reservations.interfaces import MutationAPI
from reservations.models import MUTABLE_FIELDS, Reservation, build_reservation
from .events import (
    BatchComplete,
    BatchResult,
    BulkUpdate,
    Cleared,
    Created,
    Deleted,
    MutationType,
    OperationUndone,
    OptimisticApply,
    OptimisticRollback,
    StateEvent,
    Updated,
)
from .history import OperationHistory, OperationRecord, OptimisticUpdate

StateListener = Callable[[StateEvent], None]

CREATE_FIELDS = MUTABLE_FIELDS | {"id"}
MOVE_FIELDS = ("resource_id", "start", "end")


@dataclass(frozen=True)
class BatchOperation:
    """One entry of :meth:`ReservationStateManager.batch_update`.

    ``data`` is the creation payload, the update patch or, for moves, a
    mapping with ``resource_id``, ``start`` and ``end``.
    """

    mutation: MutationType
    reservation_id: Optional[str] = None
    data: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class StateStats:
    """Counters describing how mutations have resolved."""

    committed: int = 0
    rolled_back: int = 0
    undone: int = 0
    batches: int = 0

    def record_commit(self) -> None:
        self.committed += 1

    def record_rollback(self) -> None:
        self.rolled_back += 1


class ReservationStateManager:
    """Own the reservation collection and reconcile it with the backend."""

    def __init__(
        self,
        mutation_api: MutationAPI,
        *,
        registry: Any = None,
        history_limit: int = OPERATION_HISTORY_LIMIT,
        actor: str = DEFAULT_ACTOR,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Any = None,
        conflict_options: Optional[ConflictCheckOptions] = None,
    ) -> None:
        t('reservations.state.state_manager.ReservationStateManager.__init__')
        self.api = mutation_api
        self.registry = registry
        self.actor = actor
        self.clock = clock or datetime.now
        self.logger = logger or logging.getLogger('ReservationStateManager')
        self.conflict_options = conflict_options or ConflictCheckOptions()

        # Visible collection: confirmed snapshots with pending operations replayed on top.
        self._reservations: Dict[str, Reservation] = {}
        self._confirmed: Dict[str, Reservation] = {}
        self._confirmed_sequence: Dict[str, int] = {}
        self._pending: Dict[str, OptimisticUpdate] = {}
        self._sequence = 0
        self._history = OperationHistory(history_limit)
        self._listeners: List[StateListener] = []
        self.stats = StateStats()

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------
    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register ``listener`` for every event; returns an unsubscribe callable."""
        t('reservations.state.state_manager.ReservationStateManager.subscribe')
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: StateEvent) -> None:
        t('reservations.state.state_manager.ReservationStateManager._emit')
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:
                self.logger.error(
                    "Subscriber %r failed handling %s: %s",
                    listener,
                    event.kind.value,
                    exc,
                    exc_info=True,
                )

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------
    def set_all(self, reservations: Iterable[Reservation]) -> None:
        """Replace the collection wholesale and drop pending optimistic records."""
        t('reservations.state.state_manager.ReservationStateManager.set_all')
        self._confirmed = {reservation.id: reservation for reservation in reservations}
        self._reservations = dict(self._confirmed)
        self._confirmed_sequence.clear()
        self._pending.clear()
        self.logger.debug("Loaded %s reservations", len(self._reservations))
        self._emit(BulkUpdate(reservations=tuple(self._reservations.values())))

    def clear(self) -> None:
        t('reservations.state.state_manager.ReservationStateManager.clear')
        self._reservations.clear()
        self._confirmed.clear()
        self._confirmed_sequence.clear()
        self._pending.clear()
        self._history.clear()
        self.logger.info("Reservation state cleared")
        self._emit(Cleared())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def create(
        self,
        data: Mapping[str, Any],
        *,
        optimistic: bool = True,
        validate_conflicts: bool = True,
    ) -> Reservation:
        """Create a reservation from ``data`` and return the confirmed snapshot."""
        t('reservations.state.state_manager.ReservationStateManager.create')
        now = self.clock()
        try:
            candidate = build_reservation(data, now=now)
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError({"data": str(exc)}) from exc

        if candidate.id in self._reservations:
            raise ValidationError({"id": f"Reservation {candidate.id} already exists"})
        self._validate(candidate, validate_conflicts)

        operation = self._begin(MutationType.CREATE, candidate.id, candidate, None, optimistic)
        operation_id = operation.operation_id
        try:
            confirmed = await self.api.create(candidate.field_values(CREATE_FIELDS))
        except Exception as exc:
            self._rollback(operation, exc)
            raise

        self._commit(operation, confirmed)
        self._record(operation_id, MutationType.CREATE, confirmed.id, None, confirmed)

        self.logger.info(f"""RESERVATION CREATED
        Reservation ID: {confirmed.id}
        Resource: {confirmed.resource_id}
        Dates: {confirmed.start_date} -> {confirmed.end_date}
        Status: {confirmed.status.value}
        """)
        self._emit(Created(reservation=confirmed, operation_id=operation_id))
        return confirmed

    async def update(
        self,
        reservation_id: str,
        patch: Mapping[str, Any],
        *,
        optimistic: bool = True,
        validate_conflicts: bool = True,
    ) -> Reservation:
        """Apply ``patch`` to an existing reservation."""
        t('reservations.state.state_manager.ReservationStateManager.update')
        return await self._mutate_existing(
            MutationType.UPDATE, reservation_id, patch, optimistic, validate_conflicts
        )

    async def move(
        self,
        reservation_id: str,
        resource_id: str,
        start: datetime,
        end: datetime,
        *,
        optimistic: bool = True,
        validate_conflicts: bool = True,
    ) -> Reservation:
        """Move a reservation to another resource and/or date range."""
        t('reservations.state.state_manager.ReservationStateManager.move')
        patch = {"resource_id": resource_id, "start": start, "end": end}
        return await self._mutate_existing(
            MutationType.MOVE, reservation_id, patch, optimistic, validate_conflicts
        )

    async def delete(self, reservation_id: str, *, optimistic: bool = True) -> bool:
        """Remove a reservation from the collection once the backend confirms."""
        t('reservations.state.state_manager.ReservationStateManager.delete')
        current = self._require(reservation_id)

        operation = self._begin(MutationType.DELETE, reservation_id, None, current, optimistic)
        operation_id = operation.operation_id
        try:
            deleted = await self.api.delete(reservation_id)
            if not deleted:
                raise MutationFailure(f"Backend refused to delete reservation {reservation_id}")
        except Exception as exc:
            self._rollback(operation, exc)
            raise

        self._commit(operation, None)
        self._record(operation_id, MutationType.DELETE, reservation_id, current, None)

        self.logger.info(f"""RESERVATION DELETED
        Reservation ID: {reservation_id}
        Resource: {current.resource_id}
        Dates: {current.start_date} -> {current.end_date}
        """)
        self._emit(Deleted(reservation_id=reservation_id, previous=current, operation_id=operation_id))
        return True

    async def _mutate_existing(
        self,
        mutation: MutationType,
        reservation_id: str,
        patch: Mapping[str, Any],
        optimistic: bool,
        validate_conflicts: bool,
    ) -> Reservation:
        t('reservations.state.state_manager.ReservationStateManager._mutate_existing')
        current = self._require(reservation_id)
        try:
            updated = current.apply_patch(
                patch,
                actor=self.actor,
                now=self.clock(),
                history_limit=CHANGE_HISTORY_LIMIT,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError({"patch": str(exc)}) from exc

        if updated is current:
            self.logger.debug("Patch for %s changes nothing; skipping backend call", reservation_id)
            return current

        self._validate(updated, validate_conflicts)
        changed = updated.change_history[-1].changes

        patch_values = updated.field_values(changed)
        operation = self._begin(mutation, reservation_id, updated, current, optimistic, patch_values)
        operation_id = operation.operation_id
        try:
            confirmed = await self.api.update(reservation_id, patch_values)
        except Exception as exc:
            self._rollback(operation, exc)
            raise

        self._commit(operation, confirmed)
        self._record(operation_id, mutation, reservation_id, current, confirmed)

        self.logger.info(f"""RESERVATION {mutation.value.upper()} COMMITTED
        Reservation ID: {reservation_id}
        Changed fields: {', '.join(changed)}
        Resource: {confirmed.resource_id}
        Dates: {confirmed.start_date} -> {confirmed.end_date}
        """)
        self._emit(Updated(
            reservation=confirmed,
            previous=current,
            operation_id=operation_id,
            mutation=mutation,
        ))
        return confirmed

    async def batch_update(
        self,
        operations: Sequence[BatchOperation],
        *,
        optimistic: bool = True,
        validate_conflicts: bool = True,
    ) -> List[BatchResult]:
        """Run ``operations`` one after another; a failure never stops the rest."""
        t('reservations.state.state_manager.ReservationStateManager.batch_update')
        results: List[BatchResult] = []
        flags = {"optimistic": optimistic, "validate_conflicts": validate_conflicts}

        for operation in operations:
            try:
                if operation.mutation is MutationType.CREATE:
                    data = await self.create(operation.data, **flags)
                elif operation.mutation is MutationType.UPDATE:
                    data = await self.update(operation.reservation_id, operation.data, **flags)
                elif operation.mutation is MutationType.MOVE:
                    data = await self.move(
                        operation.reservation_id,
                        operation.data["resource_id"],
                        operation.data["start"],
                        operation.data["end"],
                        **flags,
                    )
                else:
                    data = await self.delete(operation.reservation_id, optimistic=optimistic)
                results.append(BatchResult(success=True, data=data))
            except Exception as exc:
                self.logger.warning(
                    "Batch %s for %s failed: %s",
                    operation.mutation.value,
                    operation.reservation_id or "new reservation",
                    exc,
                )
                results.append(BatchResult(success=False, error=exc))

        self.stats.batches += 1
        succeeded = sum(1 for result in results if result.success)
        self.logger.info("Batch complete: %s/%s operations succeeded", succeeded, len(results))
        self._emit(BatchComplete(results=tuple(results)))
        return results

    async def undo_last_operation(self) -> bool:
        """Revert the most recent committed operation.

        Returns False when there is nothing to undo. Conflict checks are
        skipped and no new history is recorded. If the backend call fails the
        entry goes back on the history and the error is raised.
        """
        t('reservations.state.state_manager.ReservationStateManager.undo_last_operation')
        entry = self._history.pop()
        if entry is None:
            return False

        try:
            restored = await self._apply_inverse(entry)
        except Exception:
            self._history.restore(entry)
            self.logger.error("Undo of %s %s failed", entry.mutation.value, entry.reservation_id)
            raise

        self.stats.undone += 1
        self.logger.info(f"""OPERATION UNDONE
        Operation ID: {entry.operation_id}
        Mutation: {entry.mutation.value}
        Reservation ID: {entry.reservation_id}
        """)
        self._emit(OperationUndone(
            operation_id=entry.operation_id,
            mutation=entry.mutation,
            reservation_id=entry.reservation_id,
            reservation=restored,
        ))
        return True

    async def _apply_inverse(self, entry: OperationRecord) -> Optional[Reservation]:
        t('reservations.state.state_manager.ReservationStateManager._apply_inverse')
        if entry.mutation is MutationType.CREATE:
            deleted = await self.api.delete(entry.reservation_id)
            if not deleted:
                raise MutationFailure(f"Backend refused to delete reservation {entry.reservation_id}")
            self._confirm(entry.reservation_id, None)
            return None

        if entry.mutation is MutationType.DELETE:
            restored = await self.api.create(entry.before.field_values(CREATE_FIELDS))
            self._confirm(restored.id, restored)
            return restored

        changed = entry.changed_fields()
        if not changed:
            return self._reservations.get(entry.reservation_id)
        restored = await self.api.update(entry.reservation_id, entry.before.field_values(changed))
        self._confirm(entry.reservation_id, restored)
        return restored

    # ------------------------------------------------------------------
    # Optimistic bookkeeping
    # ------------------------------------------------------------------
    def _begin(
        self,
        mutation: MutationType,
        reservation_id: str,
        snapshot: Optional[Reservation],
        previous: Optional[Reservation],
        optimistic: bool,
        patch: Optional[Mapping[str, Any]] = None,
    ) -> OptimisticUpdate:
        """Allocate a sequenced operation and, when optimistic, apply ``snapshot`` now."""
        self._sequence += 1
        operation = OptimisticUpdate(
            operation_id=uuid.uuid4().hex,
            mutation=mutation,
            reservation_id=reservation_id,
            snapshot=snapshot,
            previous=previous,
            applied_at=self.clock(),
            sequence=self._sequence,
            patch=dict(patch or {}),
        )
        if not optimistic:
            return operation

        self._pending[operation.operation_id] = operation
        self._set_visible(reservation_id, snapshot)
        self.logger.debug(
            "Optimistic %s applied to %s (%s)", mutation.value, reservation_id, operation.operation_id
        )
        self._emit(OptimisticApply(
            operation_id=operation.operation_id,
            mutation=mutation,
            reservation_id=reservation_id,
            reservation=snapshot,
            previous=previous,
        ))
        return operation

    def _commit(self, operation: OptimisticUpdate, confirmed: Optional[Reservation]) -> bool:
        """Fold a backend confirmation into the confirmed state.

        A confirmation older than the last one applied to the same reservation
        is stale: it only retires its pending record. Returns whether the
        confirmed snapshot changed.
        """
        t('reservations.state.state_manager.ReservationStateManager._commit')
        self._pending.pop(operation.operation_id, None)
        reservation_id = operation.reservation_id

        if operation.sequence < self._confirmed_sequence.get(reservation_id, 0):
            self.logger.info(
                "Ignoring stale %s confirmation for %s (%s)",
                operation.mutation.value,
                reservation_id,
                operation.operation_id,
            )
            self._refresh(reservation_id)
            return False

        self._confirmed_sequence[reservation_id] = operation.sequence
        if confirmed is None:
            self._confirmed.pop(reservation_id, None)
        else:
            if confirmed.id != reservation_id:
                self._confirmed_sequence[confirmed.id] = operation.sequence
            self._confirmed[confirmed.id] = confirmed
            self._refresh(confirmed.id)
        self._refresh(reservation_id)
        return True

    def _confirm(self, reservation_id: str, confirmed: Optional[Reservation]) -> None:
        """Record a confirmation that bypassed the optimistic path (undo)."""
        self._sequence += 1
        self._confirmed_sequence[reservation_id] = self._sequence
        if confirmed is None:
            self._confirmed.pop(reservation_id, None)
        else:
            self._confirmed[reservation_id] = confirmed
        self._refresh(reservation_id)

    def _rollback(self, operation: OptimisticUpdate, error: BaseException) -> None:
        """Drop ``operation`` and rebuild the reservation from what remains."""
        t('reservations.state.state_manager.ReservationStateManager._rollback')
        pending = self._pending.pop(operation.operation_id, None)
        if pending is None:
            self.logger.warning("Mutation failed before any optimistic apply: %s", error)
            return

        restored = self._refresh(pending.reservation_id)
        self.stats.record_rollback()

        self.logger.warning(f"""OPTIMISTIC UPDATE ROLLED BACK
        Operation ID: {pending.operation_id}
        Mutation: {pending.mutation.value}
        Reservation ID: {pending.reservation_id}
        Still pending: {len(self._pending_for(pending.reservation_id))}
        Error: {type(error).__name__}: {error}
        """)
        self._emit(OptimisticRollback(
            operation_id=pending.operation_id,
            mutation=pending.mutation,
            reservation_id=pending.reservation_id,
            restored=restored,
            error=error,
        ))

    def _pending_for(self, reservation_id: str) -> List[OptimisticUpdate]:
        return [p for p in self._pending.values() if p.reservation_id == reservation_id]

    def _refresh(self, reservation_id: str) -> Optional[Reservation]:
        """Rebuild the visible snapshot: confirmed state plus pending operations in order."""
        t('reservations.state.state_manager.ReservationStateManager._refresh')
        current = self._confirmed.get(reservation_id)
        for pending in self._pending_for(reservation_id):
            if pending.mutation is MutationType.DELETE:
                current = None
            elif pending.mutation is MutationType.CREATE:
                current = pending.snapshot
            elif current is None:
                continue
            elif current is pending.previous:
                current = pending.snapshot
            else:
                current = current.apply_patch(
                    pending.patch,
                    actor=self.actor,
                    now=pending.applied_at,
                    history_limit=CHANGE_HISTORY_LIMIT,
                )
        self._set_visible(reservation_id, current)
        return current

    def _set_visible(self, reservation_id: str, reservation: Optional[Reservation]) -> None:
        if reservation is None:
            self._reservations.pop(reservation_id, None)
        else:
            self._reservations[reservation_id] = reservation

    def _record(
        self,
        operation_id: str,
        mutation: MutationType,
        reservation_id: str,
        before: Optional[Reservation],
        after: Optional[Reservation],
    ) -> None:
        self.stats.record_commit()
        self._history.record(OperationRecord(
            operation_id=operation_id,
            mutation=mutation,
            reservation_id=reservation_id,
            before=before,
            after=after,
            timestamp=self.clock(),
            actor=self.actor,
        ))

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def _require(self, reservation_id: str) -> Reservation:
        reservation = self._reservations.get(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(reservation_id)
        return reservation

    def _validate(self, candidate: Reservation, validate_conflicts: bool) -> None:
        """Raise ``ValidationError`` or ``ConflictError`` for ``candidate``."""
        t('reservations.state.state_manager.ReservationStateManager._validate')
        errors = candidate.validate()

        if not errors and self.registry is not None:
            resource = self.registry.get(candidate.resource_id)
            if resource is None:
                errors["resource_id"] = f"Unknown resource: {candidate.resource_id}"
            elif candidate.is_active:
                errors.update(check_resource_rules(candidate, resource).errors)

        if errors:
            self.logger.info("Validation failed for %s: %s", candidate.id, errors)
            raise ValidationError(errors)

        if not validate_conflicts or not candidate.is_active:
            return
        result = check_conflicts(candidate, self._reservations.values(), self.conflict_options)
        if result.has_conflicts:
            self.logger.info(
                "Conflicts for %s on %s: %s",
                candidate.id,
                candidate.resource_id,
                [conflict.reservation.id for conflict in result.conflicts],
            )
            raise ConflictError(result.conflicts)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_all(self) -> List[Reservation]:
        t('reservations.state.state_manager.ReservationStateManager.get_all')
        return list(self._reservations.values())

    def get_by_id(self, reservation_id: str) -> Optional[Reservation]:
        t('reservations.state.state_manager.ReservationStateManager.get_by_id')
        return self._reservations.get(reservation_id)

    def get_for_resource(self, resource_id: str) -> List[Reservation]:
        t('reservations.state.state_manager.ReservationStateManager.get_for_resource')
        return [r for r in self._reservations.values() if r.resource_id == resource_id]

    def get_in_range(
        self,
        start: date,
        end: date,
        resource_id: Optional[str] = None,
    ) -> List[Reservation]:
        """Reservations sharing at least one day with ``[start, end]``."""
        t('reservations.state.state_manager.ReservationStateManager.get_in_range')
        return [
            r for r in self._reservations.values()
            if (resource_id is None or r.resource_id == resource_id)
            and overlaps(start, end, r.start, r.end)
        ]

    def get_date_availability(self, day: date, resource_id: str) -> AvailabilityResult:
        t('reservations.state.state_manager.ReservationStateManager.get_date_availability')
        return date_availability(day, resource_id, self._reservations.values())

    def get_operation_history(self) -> List[OperationRecord]:
        return self._history.entries()

    def get_pending_operations(self) -> List[OptimisticUpdate]:
        return list(self._pending.values())

    def get_stats(self) -> Dict[str, Any]:
        t('reservations.state.state_manager.ReservationStateManager.get_stats')
        by_status: Dict[str, int] = {}
        for reservation in self._reservations.values():
            by_status[reservation.status.value] = by_status.get(reservation.status.value, 0) + 1
        return {
            "total": len(self._reservations),
            "active": sum(1 for r in self._reservations.values() if r.is_active),
            "by_status": by_status,
            "pending_operations": len(self._pending),
            "history_size": len(self._history),
            "committed": self.stats.committed,
            "rolled_back": self.stats.rolled_back,
            "undone": self.stats.undone,
            "batches": self.stats.batches,
        }
