"""Tool catalog offered to the reasoning model.

Each tool has a pydantic argument model; the JSON schema sent to the model
is generated from it and every model-emitted call is validated against it
before anything else happens. Tools fall into three groups:
- boundary tools, mapped to an ActionType and subject to the autonomy policy
- local tools, answered from the knowledge store without crossing the boundary
- extension tools, registered at runtime with their own handler or ActionType
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Literal

from pydantic import BaseModel, ConfigDict, Field

from packages.core.llm.types import ToolDefinition


class ToolArgs(BaseModel):
    """Base for tool argument models. Unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# Argument models
# =============================================================================


class SearchFilesArgs(ToolArgs):
    query: str = Field(min_length=1, description="The search query")


class FetchInboxArgs(ToolArgs):
    limit: int = Field(default=20, ge=1, le=200, description="Max messages to return")
    unread_only: bool = Field(default=False, description="Only return unread messages")
    folder: str = Field(default="INBOX", description="IMAP folder")


class SearchEmailsArgs(ToolArgs):
    query: str = Field(min_length=1, description="Search query (natural language or keyword)")
    sender: str | None = Field(default=None, description="Filter by sender email or name")
    date_after: str | None = Field(default=None, description="ISO date, only emails after this date")
    date_before: str | None = Field(default=None, description="ISO date, only emails before this date")


class SendEmailArgs(ToolArgs):
    to: list[str] = Field(min_length=1, description="Recipient email addresses")
    cc: list[str] = Field(default_factory=list, description="CC recipients")
    subject: str
    body: str = Field(description="Email body (plain text)")
    reply_to_message_id: str | None = Field(default=None, description="Message-ID to reply to")


class DraftEmailArgs(SendEmailArgs):
    pass


class ArchiveEmailArgs(ToolArgs):
    message_ids: list[str] = Field(min_length=1, description="Message IDs to archive")


class CategorizeEmailArgs(ToolArgs):
    message_id: str
    categories: list[str] = Field(description="Category labels")
    priority: Literal["high", "normal", "low"]


class FetchCalendarArgs(ToolArgs):
    days_ahead: int = Field(default=7, ge=1, le=90, description="Number of days ahead to retrieve")
    include_all_day: bool = Field(default=True, description="Include all-day events")


class CreateCalendarEventArgs(ToolArgs):
    title: str
    start_time: str = Field(description="ISO 8601 start time")
    end_time: str = Field(description="ISO 8601 end time")
    description: str | None = None
    location: str | None = None
    attendees: list[str] = Field(default_factory=list, description="Attendee email addresses")


class DetectCalendarConflictsArgs(ToolArgs):
    start_time: str
    end_time: str


class CreateReminderArgs(ToolArgs):
    text: str = Field(min_length=1, description="Reminder text")
    due_at: str | None = Field(default=None, description="ISO 8601 due date/time")
    recurrence: Literal["none", "daily", "weekly", "monthly"] = "none"


class ListRemindersArgs(ToolArgs):
    status: Literal["pending", "fired", "dismissed", "snoozed", "all"] = "all"


class SnoozeReminderArgs(ToolArgs):
    id: str = Field(description="Reminder ID")
    duration: Literal["15min", "1hr", "3hr", "tomorrow"]


class DismissReminderArgs(ToolArgs):
    id: str = Field(description="Reminder ID")


class SearchWebArgs(ToolArgs):
    query: str = Field(min_length=1)
    count: int = Field(default=5, ge=1, le=20, description="Number of results")
    freshness: Literal["day", "week", "month"] | None = None


class FetchUrlArgs(ToolArgs):
    url: str = Field(description="The URL to fetch")
    max_content_length: int = Field(default=50000, ge=1, description="Max characters to return")


class SendTextArgs(ToolArgs):
    recipient_name: str = Field(description="Name of the person to text")
    body: str = Field(min_length=1, description="Message text")
    phone: str | None = Field(default=None, description="Recipient phone number if known")


class GetWeatherArgs(ToolArgs):
    location: str | None = Field(default=None, description="City or location name")
    hours: int = Field(default=24, ge=1, le=48, description="Forecast hours ahead")


class SearchCloudFilesArgs(ToolArgs):
    query: str = Field(min_length=1)
    provider: str | None = Field(default=None, description="Filter by cloud provider")


# =============================================================================
# Catalog
# =============================================================================


class ToolSpec(BaseModel):
    """A catalog entry: definition shown to the model plus its argument model."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    args_model: type[BaseModel] | None = None
    action_type: str | None = None
    local: bool = False

    def definition(self) -> ToolDefinition:
        if self.args_model is None:
            parameters: dict[str, Any] = {"type": "object", "properties": {}}
        else:
            parameters = self.args_model.model_json_schema()
            parameters.pop("title", None)
        return ToolDefinition(name=self.name, description=self.description, parameters=parameters)

    def validate_args(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Validate and normalise arguments into a JSON-safe payload.

        Raises:
            pydantic.ValidationError: If the arguments do not match the schema.
        """
        if self.args_model is None:
            return dict(arguments)
        return self.args_model.model_validate(arguments).model_dump(mode="json", exclude_none=True)


BASE_TOOLS: list[ToolSpec] = [
    ToolSpec(
        name="search_files",
        description="Search the user's local files and documents for relevant information",
        args_model=SearchFilesArgs,
        local=True,
    ),
    ToolSpec(
        name="fetch_inbox",
        description="Fetch recent emails from the user's inbox with sender, subject, date and priority.",
        args_model=FetchInboxArgs,
        action_type="email.fetch",
    ),
    ToolSpec(
        name="search_emails",
        description="Search the user's indexed emails by keyword, sender, date range, or meaning.",
        args_model=SearchEmailsArgs,
        local=True,
    ),
    ToolSpec(
        name="send_email",
        description="Send an email on behalf of the user. Always requires the user's approval.",
        args_model=SendEmailArgs,
        action_type="email.send",
    ),
    ToolSpec(
        name="draft_email",
        description="Save an email draft without sending.",
        args_model=DraftEmailArgs,
        action_type="email.draft",
    ),
    ToolSpec(
        name="archive_email",
        description="Archive one or more emails (move from INBOX to Archive).",
        args_model=ArchiveEmailArgs,
        action_type="email.archive",
    ),
    ToolSpec(
        name="categorize_email",
        description="Apply categories and priority to an email. Informational, never an action.",
        args_model=CategorizeEmailArgs,
        local=True,
    ),
    ToolSpec(
        name="fetch_calendar",
        description="Fetch upcoming calendar events.",
        args_model=FetchCalendarArgs,
        action_type="calendar.fetch",
    ),
    ToolSpec(
        name="create_calendar_event",
        description="Create a new calendar event.",
        args_model=CreateCalendarEventArgs,
        action_type="calendar.create",
    ),
    ToolSpec(
        name="detect_calendar_conflicts",
        description="Check for scheduling conflicts with existing events.",
        args_model=DetectCalendarConflictsArgs,
        local=True,
    ),
    ToolSpec(
        name="create_reminder",
        description="Create a reminder from natural language or structured input.",
        args_model=CreateReminderArgs,
        action_type="reminder.create",
    ),
    ToolSpec(
        name="list_reminders",
        description="List the user's reminders.",
        args_model=ListRemindersArgs,
        action_type="reminder.list",
    ),
    ToolSpec(
        name="snooze_reminder",
        description="Snooze a reminder for a specified duration.",
        args_model=SnoozeReminderArgs,
        action_type="reminder.update",
    ),
    ToolSpec(
        name="dismiss_reminder",
        description="Dismiss a reminder.",
        args_model=DismissReminderArgs,
        action_type="reminder.update",
    ),
    ToolSpec(
        name="search_web",
        description="Search the web for current information the user's local data cannot answer.",
        args_model=SearchWebArgs,
        action_type="web.search",
    ),
    ToolSpec(
        name="fetch_url",
        description="Fetch and extract content from a URL.",
        args_model=FetchUrlArgs,
        action_type="web.fetch",
    ),
    ToolSpec(
        name="send_text",
        description="Send a text message on behalf of the user. Always requires the user's approval.",
        args_model=SendTextArgs,
        action_type="messaging.send",
    ),
    ToolSpec(
        name="get_weather",
        description="Get current weather conditions and forecast.",
        args_model=GetWeatherArgs,
        action_type="location.weather_query",
    ),
    ToolSpec(
        name="search_cloud_files",
        description="Search cloud-synced files that have been indexed locally.",
        args_model=SearchCloudFilesArgs,
        local=True,
    ),
]

TOOL_ACTIONS: dict[str, str] = {t.name: t.action_type for t in BASE_TOOLS if t.action_type}
LOCAL_TOOLS: frozenset[str] = frozenset(t.name for t in BASE_TOOLS if t.local)


# =============================================================================
# Extensions
# =============================================================================

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any]]


class ExtensionTool(BaseModel):
    """A tool contributed at runtime.

    Exactly one of ``handler`` (run in-process, like a local tool) or
    ``action_type`` (dispatched through the boundary under the policy)
    must be set; the registry rejects anything else.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    args_model: type[BaseModel] | None = None
    handler: ToolHandler | None = None
    action_type: str | None = None

    def to_spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=self.description,
            args_model=self.args_model,
            action_type=self.action_type,
            local=self.handler is not None,
        )


class ToolRegistry:
    """Mutable catalog: the base tools plus any registered extensions."""

    def __init__(self, tools: list[ToolSpec] | None = None):
        self._specs: dict[str, ToolSpec] = {t.name: t for t in (tools or BASE_TOOLS)}
        self._handlers: dict[str, ToolHandler] = {}

    def register(self, tool: ExtensionTool) -> None:
        if tool.handler is None and tool.action_type is None:
            raise ValueError(f"Extension tool {tool.name} needs a handler or an action type")
        if tool.handler is not None and tool.action_type is not None:
            raise ValueError(f"Extension tool {tool.name} cannot have both a handler and an action type")
        if tool.name in self._specs:
            raise ValueError(f"Tool {tool.name} is already registered")
        self._specs[tool.name] = tool.to_spec()
        if tool.handler is not None:
            self._handlers[tool.name] = tool.handler

    def get(self, name: str) -> ToolSpec | None:
        return self._specs.get(name)

    def handler(self, name: str) -> ToolHandler | None:
        return self._handlers.get(name)

    def definitions(self) -> list[ToolDefinition]:
        return [spec.definition() for spec in self._specs.values()]


__all__ = [
    "BASE_TOOLS",
    "ExtensionTool",
    "LOCAL_TOOLS",
    "TOOL_ACTIONS",
    "ToolArgs",
    "ToolHandler",
    "ToolRegistry",
    "ToolSpec",
]
