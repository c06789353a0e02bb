"""Default estimates of user time saved per automated action, in seconds."""

from __future__ import annotations

DEFAULT_TIME_SAVED_SECONDS = 60

TIME_SAVED_DEFAULTS: dict[str, int] = {
    "email.fetch": 30,
    "email.send": 120,
    "email.draft": 90,
    "email.archive": 15,
    "email.move": 15,
    "email.markRead": 5,
    "calendar.fetch": 30,
    "calendar.create": 180,
    "calendar.update": 120,
    "calendar.delete": 60,
    "finance.fetch_transactions": 120,
    "finance.plaid_sync": 120,
    "health.fetch": 30,
    "web.search": 60,
    "web.fetch": 120,
    "reminder.create": 30,
    "reminder.update": 15,
    "reminder.list": 15,
    "reminder.delete": 10,
    "contacts.import": 300,
    "messaging.draft": 60,
    "messaging.send": 60,
    "location.weather_query": 20,
    "location.commute_alert": 60,
    "cloud.download_file": 60,
}


def get_default_time_saved(action_type: str) -> int:
    return TIME_SAVED_DEFAULTS.get(action_type, DEFAULT_TIME_SAVED_SECONDS)
