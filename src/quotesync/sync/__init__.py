"""Synchronization between the local quote store and a remote source."""

from .notifications import Notification, NotificationKind, CollectingSink
from .reconciler import ReconcileResult, reconcile
from .remote import HttpRemoteSource, PushReport, PushResult, RemoteSource
from .scheduler import CycleReport, SyncPhase, SyncScheduler

__all__ = [
    "Notification",
    "NotificationKind",
    "CollectingSink",
    "ReconcileResult",
    "reconcile",
    "HttpRemoteSource",
    "PushReport",
    "PushResult",
    "RemoteSource",
    "CycleReport",
    "SyncPhase",
    "SyncScheduler",
]
