"""Declarative action tables for the autonomy policy.

Every ActionType resolves through two independent lookups: one to its
Domain, one to its RiskLevel. Lookups go through ``resolve`` with a
mandatory default so that an action type added elsewhere without being
classified here lands on the most restrictive values.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, TypeVar

from packages.core.schemas.models import AutonomyTier, Decision, Domain, RiskLevel

T = TypeVar("T")

D = Domain
R = RiskLevel

ACTION_DOMAINS: Mapping[str, Domain] = MappingProxyType({
    # Communication (email)
    "email.fetch": D.COMMUNICATION,
    "email.send": D.COMMUNICATION,
    "email.draft": D.COMMUNICATION,
    "email.archive": D.COMMUNICATION,
    "email.move": D.COMMUNICATION,
    "email.markRead": D.COMMUNICATION,
    # Calendar
    "calendar.fetch": D.CALENDAR,
    "calendar.create": D.CALENDAR,
    "calendar.update": D.CALENDAR,
    "calendar.delete": D.CALENDAR,
    # Finance
    "finance.fetch_transactions": D.FINANCE,
    "finance.plaid_link": D.FINANCE,
    "finance.plaid_exchange": D.FINANCE,
    "finance.plaid_sync": D.FINANCE,
    "finance.plaid_balances": D.FINANCE,
    "finance.plaid_status": D.FINANCE,
    "finance.plaid_disconnect": D.FINANCE,
    # Health
    "health.fetch": D.HEALTH,
    # Web
    "web.search": D.WEB,
    "web.fetch": D.WEB,
    # Reminders
    "reminder.create": D.REMINDERS,
    "reminder.update": D.REMINDERS,
    "reminder.list": D.REMINDERS,
    "reminder.delete": D.REMINDERS,
    # Contacts
    "contacts.import": D.CONTACTS,
    "contacts.list": D.CONTACTS,
    "contacts.get": D.CONTACTS,
    "contacts.search": D.CONTACTS,
    # Messaging
    "messaging.draft": D.MESSAGING,
    "messaging.send": D.MESSAGING,
    "messaging.read": D.MESSAGING,
    # Clipboard
    "clipboard.analyze": D.CLIPBOARD,
    "clipboard.act": D.CLIPBOARD,
    "clipboard.web_action": D.CLIPBOARD,
    # Location
    "location.reminder_fire": D.LOCATION,
    "location.commute_alert": D.LOCATION,
    "location.weather_query": D.LOCATION,
    # Voice
    "voice.transcribe": D.VOICE,
    "voice.speak": D.VOICE,
    "voice.conversation": D.VOICE,
    # Cloud storage
    "cloud.auth": D.CLOUD_STORAGE,
    "cloud.auth_status": D.CLOUD_STORAGE,
    "cloud.disconnect": D.CLOUD_STORAGE,
    "cloud.list_files": D.CLOUD_STORAGE,
    "cloud.file_metadata": D.CLOUD_STORAGE,
    "cloud.download_file": D.CLOUD_STORAGE,
    "cloud.check_changed": D.CLOUD_STORAGE,
    # External services
    "service.api_call": D.SERVICES,
    # System
    "model.download": D.SYSTEM,
    "model.download_cancel": D.SYSTEM,
    "model.verify": D.SYSTEM,
})

ACTION_RISKS: Mapping[str, RiskLevel] = MappingProxyType({
    "email.fetch": R.READ,
    "email.send": R.EXECUTE,
    "email.draft": R.WRITE,
    "email.archive": R.WRITE,
    "email.move": R.WRITE,
    "email.markRead": R.WRITE,
    "calendar.fetch": R.READ,
    "calendar.create": R.WRITE,
    "calendar.update": R.WRITE,
    "calendar.delete": R.EXECUTE,
    "finance.fetch_transactions": R.READ,
    "finance.plaid_link": R.EXECUTE,
    "finance.plaid_exchange": R.EXECUTE,
    "finance.plaid_sync": R.WRITE,
    "finance.plaid_balances": R.READ,
    "finance.plaid_status": R.READ,
    "finance.plaid_disconnect": R.EXECUTE,
    "health.fetch": R.READ,
    "web.search": R.READ,
    "web.fetch": R.READ,
    "reminder.create": R.WRITE,
    "reminder.update": R.WRITE,
    "reminder.list": R.READ,
    "reminder.delete": R.EXECUTE,
    "contacts.import": R.WRITE,
    "contacts.list": R.READ,
    "contacts.get": R.READ,
    "contacts.search": R.READ,
    "messaging.draft": R.WRITE,
    "messaging.send": R.EXECUTE,
    "messaging.read": R.READ,
    "clipboard.analyze": R.READ,
    "clipboard.act": R.WRITE,
    "clipboard.web_action": R.EXECUTE,
    "location.reminder_fire": R.WRITE,
    "location.commute_alert": R.WRITE,
    "location.weather_query": R.READ,
    "voice.transcribe": R.READ,
    "voice.speak": R.WRITE,
    "voice.conversation": R.WRITE,
    "cloud.auth": R.EXECUTE,
    "cloud.auth_status": R.READ,
    "cloud.disconnect": R.EXECUTE,
    "cloud.list_files": R.READ,
    "cloud.file_metadata": R.READ,
    "cloud.download_file": R.WRITE,
    "cloud.check_changed": R.READ,
    "service.api_call": R.EXECUTE,
    "model.download": R.WRITE,
    "model.download_cancel": R.WRITE,
    "model.verify": R.READ,
})

# Irreversible outbound communication on the user's behalf. Not configurable.
SAFETY_OVERRIDE_ACTIONS: frozenset[str] = frozenset({
    "email.send",
    "messaging.send",
})

# Dispatch requires an external re-confirmation (e.g. biometric) first.
SENSITIVE_ACTIONS: frozenset[str] = frozenset({
    "finance.plaid_link",
    "finance.plaid_exchange",
    "finance.plaid_disconnect",
    "cloud.auth",
    "cloud.disconnect",
    "service.api_call",
})

TIER_RISK_MATRIX: Mapping[AutonomyTier, Mapping[RiskLevel, Decision]] = MappingProxyType({
    AutonomyTier.GUARDIAN: MappingProxyType({
        R.READ: Decision.REQUIRES_APPROVAL,
        R.WRITE: Decision.REQUIRES_APPROVAL,
        R.EXECUTE: Decision.REQUIRES_APPROVAL,
    }),
    AutonomyTier.PARTNER: MappingProxyType({
        R.READ: Decision.AUTO_APPROVE,
        R.WRITE: Decision.AUTO_APPROVE,
        R.EXECUTE: Decision.REQUIRES_APPROVAL,
    }),
    AutonomyTier.ALTER_EGO: MappingProxyType({
        R.READ: Decision.AUTO_APPROVE,
        R.WRITE: Decision.AUTO_APPROVE,
        R.EXECUTE: Decision.AUTO_APPROVE,
    }),
})

UNMAPPED_DOMAIN = Domain.SYSTEM
UNMAPPED_RISK = RiskLevel.EXECUTE


def resolve(table: Mapping[str, T], key: str, default: T) -> T:
    """Table lookup with a required default branch."""
    return table.get(key, default)


def is_mapped(action_type: str) -> bool:
    """True only when the action is classified in both tables."""
    return action_type in ACTION_DOMAINS and action_type in ACTION_RISKS


def matrix_decision(tier: AutonomyTier, risk: RiskLevel) -> Decision:
    row = resolve(TIER_RISK_MATRIX, tier, TIER_RISK_MATRIX[AutonomyTier.GUARDIAN])
    return resolve(row, risk, Decision.REQUIRES_APPROVAL)


def _check_tables() -> None:
    """Fail at import time if the tables drift apart."""
    if set(ACTION_DOMAINS) != set(ACTION_RISKS):
        missing = set(ACTION_DOMAINS) ^ set(ACTION_RISKS)
        raise RuntimeError(f"Action tables out of sync: {sorted(missing)}")
    for tier in AutonomyTier:
        if set(TIER_RISK_MATRIX[tier]) != set(RiskLevel):
            raise RuntimeError(f"Tier matrix incomplete for {tier.value}")
    unknown = (SAFETY_OVERRIDE_ACTIONS | SENSITIVE_ACTIONS) - set(ACTION_DOMAINS)
    if unknown:
        raise RuntimeError(f"Override lists reference unknown actions: {sorted(unknown)}")


_check_tables()
