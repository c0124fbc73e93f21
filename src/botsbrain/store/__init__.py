# src/botsbrain/store/__init__.py
"""
Bot record storage built on the tiered cache.
"""

from .bots_store import RECORD_VERSION, SETUP_STATE_TTL_SECONDS, BotsStore
from .models import (
    AgentMessageData,
    CustomerData,
    GroupConfig,
    SetupState,
    SetupStep,
    TicketData,
    TicketInfo,
    UserData,
    UserState,
)

__all__ = [
    "AgentMessageData",
    "BotsStore",
    "CustomerData",
    "GroupConfig",
    "RECORD_VERSION",
    "SETUP_STATE_TTL_SECONDS",
    "SetupState",
    "SetupStep",
    "TicketData",
    "TicketInfo",
    "UserData",
    "UserState",
]
