"""
Hook Registry

HookRegistry: in-process registry of filter and action callbacks.

Filters transform a value: each callback receives the current value and
returns the next one. Actions are fire-and-forget notifications. In both
cases exceptions raised by a subscriber are caught, logged, and dispatch
continues with the remaining subscribers.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 10


class HookRegistry:
    """
    In-process registry for consent engine extension callbacks.

    Callbacks run in ascending priority order; callbacks with equal priority
    run in registration order.
    """

    def __init__(self) -> None:
        self._filters: dict[str, list[tuple[int, Callable[..., Any]]]] = defaultdict(list)
        self._actions: dict[str, list[tuple[int, Callable[..., Any]]]] = defaultdict(list)

    # ── Registration ──────────────────────────────────────────────────────────

    def add_filter(self, hook_name: str, callback: Callable[..., Any], priority: int = DEFAULT_PRIORITY) -> None:
        """Subscribe a value-transforming callback to a filter hook."""
        self._add(self._filters, hook_name, callback, priority)

    def add_action(self, hook_name: str, callback: Callable[..., Any], priority: int = DEFAULT_PRIORITY) -> None:
        """Subscribe a notification callback to an action hook."""
        self._add(self._actions, hook_name, callback, priority)

    def remove(self, hook_name: str, callback: Callable[..., Any]) -> bool:
        """Unsubscribe a callback from a filter or action hook."""
        removed = False
        for table in (self._filters, self._actions):
            before = len(table.get(hook_name, []))
            if before:
                table[hook_name] = [entry for entry in table[hook_name] if entry[1] is not callback]
                removed = removed or len(table[hook_name]) < before
        return removed

    def has_subscribers(self, hook_name: str) -> bool:
        return bool(self._filters.get(hook_name) or self._actions.get(hook_name))

    def clear(self) -> None:
        self._filters.clear()
        self._actions.clear()

    @staticmethod
    def _add(table: dict, hook_name: str, callback: Callable[..., Any], priority: int) -> None:
        table[hook_name].append((priority, callback))
        # sort is stable, so equal priorities keep registration order
        table[hook_name].sort(key=lambda entry: entry[0])

    # ── Dispatch ──────────────────────────────────────────────────────────────

    def apply_filters(self, hook_name: str, value: Any, *args: Any) -> Any:
        """
        Pass a value through every filter subscribed to a hook.

        Args:
            hook_name: Filter constant from consent_engine.plugins.hooks.
            value:     Initial value.
            *args:     Extra context passed to each callback after the value.

        Returns:
            The value returned by the last successful callback, or the
            original value if there are no subscribers.
        """
        for _, callback in list(self._filters.get(hook_name, [])):
            try:
                value = callback(value, *args)
            except Exception as exc:
                logger.warning("Filter %s callback %r raised: %s", hook_name, callback, exc)
        return value

    def do_action(self, hook_name: str, payload: dict[str, Any]) -> int:
        """
        Notify every action subscribed to a hook.

        Returns:
            Number of callbacks that completed without raising.
        """
        completed = 0
        for _, callback in list(self._actions.get(hook_name, [])):
            try:
                callback(payload)
                completed += 1
            except Exception as exc:
                logger.warning("Action %s callback %r raised: %s", hook_name, callback, exc)
        return completed


# ── Global instance ───────────────────────────────────────────────────────────
# Default registry used when a component is not given one explicitly.
hook_registry = HookRegistry()
