"""Exception hierarchy for the agent core."""

from __future__ import annotations


class AgentError(Exception):
    """Base class for errors raised by the agent core."""


class ProtectedConfigLockedError(AgentError):
    """Raised when a tier change is attempted while protected config is locked."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Autonomy configuration is locked: {reason}")


class PendingActionNotFoundError(AgentError):
    """Raised when an action id is unknown or no longer awaiting approval."""

    def __init__(self, action_id: str):
        self.action_id = action_id
        super().__init__(f"Action {action_id} not found or not pending approval")


class AuthorizationRequiredError(AgentError):
    """Raised when a sensitive action lacks a fresh re-confirmation."""

    def __init__(self, action_type: str, action_id: str | None = None):
        self.action_type = action_type
        self.action_id = action_id
        super().__init__(f"Re-confirmation required before dispatching '{action_type}'")


class EscalationPromptNotFoundError(AgentError):
    """Raised when an escalation prompt id is unknown or already resolved."""

    def __init__(self, prompt_id: str):
        self.prompt_id = prompt_id
        super().__init__(f"Escalation prompt {prompt_id} not found or not pending")


class ReasoningModelError(AgentError):
    """Raised when the reasoning model cannot produce a response."""
