"""
Change tracking package for active-orm: snapshots and lifecycle callbacks.
"""

from active_orm.tracking.callbacks import CallbackRegistry, Hook
from active_orm.tracking.snapshots import SnapshotStore, diff

__all__ = ["CallbackRegistry", "Hook", "SnapshotStore", "diff"]
