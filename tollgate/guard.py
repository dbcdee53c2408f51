"""
Plugs the clipboard into a gate.

The guard registers itself as both a ``before`` and an ``after`` hook but
only the active slot answers:

- ``before``: stored permissions are consulted before the gate's own
  callbacks and policies. A grant or forbiddance decides; otherwise the
  guard abstains.
- ``after`` (default): stored permissions only answer when no callback or
  policy did.

Checks with more than one argument are left to the gate's own rules.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from tollgate.exceptions import ConfigurationError
from tollgate.types import AuthorizationResult

if TYPE_CHECKING:
    from tollgate.clipboard import BaseClipboard
    from tollgate.gate import Gate, GateCall

logger = logging.getLogger(__name__)

SLOTS = ("before", "after")


class Guard:
    """
    Gate hooks backed by a clipboard.

    Example:
        >>> guard = Guard(CachedClipboard(store)).register_at(gate)
        >>> guard.slot("before")
    """

    def __init__(self, clipboard: BaseClipboard, slot: str = "after") -> None:
        self.clipboard = clipboard
        self._slot = _check_slot(slot)
        self._lock = threading.RLock()

    def get_clipboard(self) -> BaseClipboard:
        return self.clipboard

    def set_clipboard(self, clipboard: BaseClipboard) -> Guard:
        with self._lock:
            self.clipboard = clipboard
        return self

    def slot(self, slot: str | None = None) -> str | Guard:
        """Get the active slot, or set it and return the guard."""
        if slot is None:
            return self._slot

        with self._lock:
            self._slot = _check_slot(slot)
        logger.info(f"Tollgate guard now runs in the {slot} slot")
        return self

    def register_at(self, gate: Gate) -> Guard:
        gate.before(self.run_before_policies)
        gate.after(self.run_after_policies)
        return self

    def run_before_policies(self, call: GateCall) -> AuthorizationResult | None:
        if self._slot != "before":
            return None
        return self._check(call)

    def run_after_policies(self, call: GateCall) -> AuthorizationResult | None:
        if self._slot != "after" or call.result is not None:
            return None
        return self._check(call)

    def _check(self, call: GateCall) -> AuthorizationResult | None:
        if len(call.arguments) > 1:
            return None

        result = self.clipboard.check_get_id(call.user, call.ability, call.subject, call.context)

        if result is False:
            return AuthorizationResult.deny(metadata={"forbidden": True})
        if result is None:
            return None
        return AuthorizationResult.allow(
            reason=f"Tollgate granted permission via ability #{result}",
            metadata={"ability_id": result},
        )


def _check_slot(slot: str) -> str:
    if slot not in SLOTS:
        raise ConfigurationError(
            config_key="slot",
            expected=f"one of {list(SLOTS)}",
            received=slot,
        )
    return slot
