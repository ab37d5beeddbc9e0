"""
Post-commit side effects.

Notifications and audit entries are queued while an operation runs and executed
only after its writes have succeeded. A failing hook is logged and the
remaining hooks still run; nothing here raises into the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Tuple

logger = logging.getLogger(__name__)


class PostCommitHooks:
    def __init__(self) -> None:
        self._pending: List[Tuple[str, Callable[..., Any], tuple, dict]] = []

    def __len__(self) -> int:
        return len(self._pending)

    def add(self, name: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self._pending.append((name, func, args, kwargs))

    def run(self) -> int:
        """Execute and clear queued hooks. Returns the number that failed."""

        pending, self._pending = self._pending, []
        failures = 0
        for name, func, args, kwargs in pending:
            try:
                func(*args, **kwargs)
            except Exception:
                failures += 1
                logger.exception("Post-commit hook failed", extra={"hook": name})
        return failures

    def discard(self) -> None:
        self._pending = []


__all__ = ["PostCommitHooks"]
