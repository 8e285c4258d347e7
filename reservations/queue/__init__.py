"""Offline mutation queue and its durable stores."""

from __future__ import annotations

from .operations import (
    QueueItemStatus,
    QueueOperation,
    QueueOperationKind,
    QueuePassSummary,
    QueueStats,
    QueueStatus,
    QueuedMutation,
)
from .stores import JsonFileStore, MemoryStore
from .offline_queue import OfflineMutationQueue

__all__ = [
    "JsonFileStore",
    "MemoryStore",
    "OfflineMutationQueue",
    "QueueItemStatus",
    "QueueOperation",
    "QueueOperationKind",
    "QueuePassSummary",
    "QueueStats",
    "QueueStatus",
    "QueuedMutation",
]
