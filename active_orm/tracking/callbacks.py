"""
Lifecycle callback registry.

Hooks are keyed by (record type, phase, action) and dispatched in the order
they were registered. A hook that raises propagates to the caller of the
persistence operation that dispatched it.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Callable, DefaultDict, List, Tuple, Type

from active_orm.domain.models import Action, Phase, Record
from active_orm.utils.logging import get_logger

log = get_logger(__name__)

Hook = Callable[[Record], None]
HookKey = Tuple[Type[Record], Phase, Action]


class CallbackRegistry:
    def __init__(self) -> None:
        self._hooks: DefaultDict[HookKey, List[Hook]] = defaultdict(list)
        self._lock = threading.Lock()

    def register(
        self, record_type: Type[Record], phase: Phase, action: Action, hook: Hook
    ) -> Hook:
        """Append `hook` for (record_type, phase, action). Returns the hook for decorator use."""
        with self._lock:
            self._hooks[(record_type, phase, action)].append(hook)
        return hook

    def before(self, record_type: Type[Record], action: Action, hook: Hook) -> Hook:
        return self.register(record_type, Phase.BEFORE, action, hook)

    def after(self, record_type: Type[Record], action: Action, hook: Hook) -> Hook:
        return self.register(record_type, Phase.AFTER, action, hook)

    def hooks(self, record_type: Type[Record], phase: Phase, action: Action) -> List[Hook]:
        with self._lock:
            return list(self._hooks.get((record_type, phase, action), ()))

    def dispatch(
        self, record_type: Type[Record], phase: Phase, action: Action, record: Record
    ) -> None:
        """Invoke every hook for exactly this key, in registration order."""
        hooks = self.hooks(record_type, phase, action)
        if hooks:
            log.debug(
                "Dispatching callbacks",
                extra={
                    "record_type": record_type.__name__,
                    "phase": phase.value,
                    "action": action.value,
                    "hooks": len(hooks),
                },
            )
        for hook in hooks:
            hook(record)


__all__ = ["CallbackRegistry", "Hook"]
