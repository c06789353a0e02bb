"""Re-confirmation checks for sensitive actions.

Sensitive actions (bank linking, cloud account auth, arbitrary service
calls) must be confirmed out-of-band, e.g. by a biometric prompt on the
device, immediately before dispatch. The check itself is external; this
module only defines the seam.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class ReconfirmationCheck(Protocol):
    async def confirm(self, action_type: str, payload: dict[str, Any]) -> bool:
        """Return True only if the user re-confirmed this exact action."""
        ...


class DenyReconfirmation:
    """Refuses every request. Used when no confirmation provider is wired in."""

    async def confirm(self, action_type: str, payload: dict[str, Any]) -> bool:
        logger.warning("No re-confirmation provider configured; denying %s", action_type)
        return False


class StaticReconfirmation:
    """Answers every request with a fixed value."""

    def __init__(self, allow: bool):
        self.allow = allow
        self.requests: list[tuple[str, dict[str, Any]]] = []

    async def confirm(self, action_type: str, payload: dict[str, Any]) -> bool:
        self.requests.append((action_type, payload))
        return self.allow


__all__ = ["DenyReconfirmation", "ReconfirmationCheck", "StaticReconfirmation"]
