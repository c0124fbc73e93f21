# src/botsbrain/store/models.py
"""
Record models for bot conversation state.

These are the shapes BotsStore writes into the tiered cache. Each model is
stored as ``model_dump(mode="json")`` so every tier holds plain JSON and
timestamps round-trip as ISO-8601 strings.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


SetupStep = Literal[
    "bot_admin_check",
    "customer_selection",
    "customer_creation",
    "customer_linking",
    "complete",
]


class TicketData(BaseModel):
    """
    A support ticket opened from a Telegram message.

    Attributes:
        chat_id: Telegram chat the ticket was opened in.
        message_id: Telegram message that created the ticket.
        conversation_id: Helpdesk conversation identifier.
        ticket_id: Helpdesk ticket identifier; often equal to ``conversation_id``.
        friendly_id: Short human-facing ticket number.
        telegram_user_id: Telegram user who opened the ticket.
    """
    chat_id: int
    message_id: int
    conversation_id: str
    ticket_id: str
    friendly_id: str
    telegram_user_id: int
    created_at: datetime = Field(default_factory=utc_now)
    customer_id: Optional[str] = None
    summary: Optional[str] = None
    status: Optional[str] = None
    platform: Optional[str] = None
    stored_at: Optional[datetime] = None
    version: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TicketInfo(BaseModel):
    """Entry in a chat's ticket index."""
    message_id: int
    conversation_id: str
    friendly_id: str = ""


class UserState(BaseModel):
    """Free-form state of a multi-step user workflow (e.g. ticket creation)."""
    model_config = ConfigDict(extra="allow")

    current_field: Optional[str] = None
    field: Optional[str] = None
    ticket: Optional[Dict[str, Any]] = None
    updated_at: Optional[datetime] = None


class CustomerData(BaseModel):
    """Mapping between a Telegram chat and a helpdesk customer."""
    id: str
    unthread_customer_id: str
    telegram_chat_id: int
    chat_title: Optional[str] = None
    customer_name: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    company: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserData(BaseModel):
    """A Telegram user known to the bot."""
    id: str
    telegram_user_id: int
    telegram_username: Optional[str] = None
    unthread_name: Optional[str] = None
    unthread_email: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AgentMessageData(BaseModel):
    """An agent reply relayed into Telegram, kept so user replies can be threaded."""
    message_id: int
    conversation_id: str
    chat_id: int
    friendly_id: str
    original_ticket_message_id: int
    sent_at: datetime = Field(default_factory=utc_now)
    platform: Optional[str] = None
    type: Optional[str] = None
    stored_at: Optional[datetime] = None
    version: Optional[str] = None


class GroupConfig(BaseModel):
    """Per-group setup result: which customer a group chat is linked to."""
    chat_id: int
    is_configured: bool
    bot_is_admin: bool
    chat_title: Optional[str] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    setup_by: Optional[int] = None
    setup_at: Optional[datetime] = None
    last_admin_check: Optional[datetime] = None
    setup_version: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    last_updated_at: Optional[datetime] = None
    version: Optional[str] = None


class SetupState(BaseModel):
    """Progress of an in-flight group setup conversation."""
    chat_id: int
    step: SetupStep
    initiated_by: int
    started_at: datetime = Field(default_factory=utc_now)
    suggested_customer_name: Optional[str] = None
    temp_customer_id: Optional[str] = None
    user_input: Optional[str] = None
    retry_count: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)
    last_updated_at: Optional[datetime] = None
    version: Optional[str] = None


__all__ = [
    "AgentMessageData",
    "CustomerData",
    "GroupConfig",
    "SetupState",
    "SetupStep",
    "TicketData",
    "TicketInfo",
    "UserData",
    "UserState",
]
