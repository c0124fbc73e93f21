# src/botsbrain/store/bots_store.py
"""
BotsStore - bot-facing record operations on top of TieredCache.

Every record is written under one or more keys so it can be looked up by
whichever identifier the caller has at hand (Telegram message id,
helpdesk conversation id, friendly ticket number, ...).  Key layout:

    ticket:telegram:{message_id}
    ticket:unthread:{conversation_id}
    ticket:unthread:{ticket_id}          (only when it differs)
    ticket:friendly:{friendly_id}
    chat:tickets:{chat_id}               (list of TicketInfo)
    user:state:{telegram_user_id}
    customer:id:{unthread_customer_id}
    customer:telegram:{chat_id}
    user:telegram:{telegram_user_id}
    agent_message:telegram:{message_id}
    group_config:{chat_id}
    global_config:{key}
    setup_state:{chat_id}                (expires after one hour)

Write operations return True/False and log the failure; the caller decides
what to tell the user.  Reads return the record or None.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..exceptions import StorageError
from ..storage.tiered_cache import TieredCache
from .models import (
    AgentMessageData,
    CustomerData,
    GroupConfig,
    SetupState,
    TicketData,
    TicketInfo,
    UserData,
    UserState,
)

logger = logging.getLogger(__name__)

RECORD_VERSION = "1.0"
SETUP_STATE_TTL_SECONDS = 3600

ModelT = TypeVar("ModelT", bound=BaseModel)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _dump(record: BaseModel) -> Dict[str, Any]:
    return record.model_dump(mode="json")


class BotsStore:
    """
    Ticket, customer, user and setup records for a Telegram support bot.

    Args:
        storage: A connected :class:`TieredCache`. The store does not own it;
            connecting and shutting it down is the caller's job.
    """

    def __init__(self, storage: TieredCache) -> None:
        self.storage = storage
        self._chat_index_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------

    async def store_ticket(self, ticket: TicketData) -> bool:
        """Store *ticket* under all of its lookup keys and index it by chat."""
        enriched = ticket.model_copy(
            update={"platform": "telegram", "stored_at": _now(), "version": RECORD_VERSION}
        )
        payload = _dump(enriched)

        keys = [
            f"ticket:telegram:{ticket.message_id}",
            f"ticket:unthread:{ticket.conversation_id}",
            f"ticket:friendly:{ticket.friendly_id}",
        ]
        if ticket.ticket_id != ticket.conversation_id:
            keys.append(f"ticket:unthread:{ticket.ticket_id}")

        try:
            await _gather_all(
                *(self.storage.set(key, payload) for key in keys),
                self._add_to_chat_tickets(ticket),
            )
        except StorageError as e:
            logger.error("Failed to store ticket %s: %s", ticket.friendly_id, e)
            return False

        logger.info("Ticket stored: %s (%s)", ticket.friendly_id, ticket.conversation_id)
        return True

    async def get_ticket_by_message_id(self, message_id: int) -> Optional[TicketData]:
        return await self._load(f"ticket:telegram:{message_id}", TicketData)

    async def get_ticket_by_conversation_id(self, conversation_id: str) -> Optional[TicketData]:
        return await self._load(f"ticket:unthread:{conversation_id}", TicketData)

    async def get_ticket_by_ticket_id(self, ticket_id: str) -> Optional[TicketData]:
        return await self._load(f"ticket:unthread:{ticket_id}", TicketData)

    async def get_ticket_by_friendly_id(self, friendly_id: str) -> Optional[TicketData]:
        return await self._load(f"ticket:friendly:{friendly_id}", TicketData)

    async def get_tickets_for_chat(self, chat_id: int) -> List[TicketData]:
        """Return the full ticket records indexed for *chat_id*, skipping any that are gone."""
        index = await self._load_chat_index(chat_id)
        tickets = await asyncio.gather(
            *(self.get_ticket_by_conversation_id(info.conversation_id) for info in index)
        )
        return [ticket for ticket in tickets if ticket is not None]

    async def delete_ticket(self, conversation_id: str) -> bool:
        """Remove a ticket's lookup keys and its chat index entry.

        Deleting an unknown ticket succeeds.
        """
        ticket = await self.get_ticket_by_conversation_id(conversation_id)
        if ticket is None:
            return True

        keys = [
            f"ticket:telegram:{ticket.message_id}",
            f"ticket:unthread:{conversation_id}",
            f"ticket:friendly:{ticket.friendly_id}",
        ]
        if ticket.ticket_id and ticket.ticket_id != conversation_id:
            keys.append(f"ticket:unthread:{ticket.ticket_id}")

        try:
            await _gather_all(*(self.storage.delete(key) for key in keys))
            await self._remove_from_chat_tickets(ticket.chat_id, conversation_id)
        except StorageError as e:
            logger.error("Failed to delete ticket %s: %s", ticket.friendly_id, e)
            return False

        logger.info("Ticket deleted: %s", ticket.friendly_id)
        return True

    async def _load_chat_index(self, chat_id: int) -> List[TicketInfo]:
        key = f"chat:tickets:{chat_id}"
        try:
            raw = await self.storage.get(key)
        except StorageError as e:
            logger.error("Failed to read ticket index for chat %s: %s", chat_id, e)
            return []
        if not isinstance(raw, list):
            return []
        index = []
        for entry in raw:
            try:
                index.append(TicketInfo.model_validate(entry))
            except ValidationError:
                logger.warning("Skipping malformed ticket index entry for chat %s: %r", chat_id, entry)
        return index

    async def _add_to_chat_tickets(self, ticket: TicketData) -> None:
        async with self._chat_index_lock:
            index = await self._load_chat_index(ticket.chat_id)
            if any(info.conversation_id == ticket.conversation_id for info in index):
                return
            index.append(
                TicketInfo(
                    message_id=ticket.message_id,
                    conversation_id=ticket.conversation_id,
                    friendly_id=ticket.friendly_id,
                )
            )
            await self.storage.set(f"chat:tickets:{ticket.chat_id}", [_dump(info) for info in index])

    async def _remove_from_chat_tickets(self, chat_id: int, conversation_id: str) -> None:
        async with self._chat_index_lock:
            index = await self._load_chat_index(chat_id)
            remaining = [_dump(info) for info in index if info.conversation_id != conversation_id]
            await self.storage.set(f"chat:tickets:{chat_id}", remaining)

    # ------------------------------------------------------------------
    # User workflow state
    # ------------------------------------------------------------------

    async def store_user_state(self, telegram_user_id: int, state: UserState) -> bool:
        key = f"user:state:{telegram_user_id}"
        stamped = state.model_copy(update={"updated_at": _now()})
        logger.debug("Storing user state for %s", telegram_user_id)
        return await self._save(key, stamped, what="user state")

    async def get_user_state(self, telegram_user_id: int) -> Optional[UserState]:
        return await self._load(f"user:state:{telegram_user_id}", UserState)

    async def clear_user_state(self, telegram_user_id: int) -> bool:
        return await self._remove(f"user:state:{telegram_user_id}", what="user state")

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    async def store_customer(self, customer: CustomerData) -> bool:
        """Store *customer* by helpdesk customer id and by Telegram chat id."""
        now = _now()
        stamped = customer.model_copy(
            update={"created_at": customer.created_at or now, "updated_at": now}
        )
        payload = _dump(stamped)
        try:
            await _gather_all(
                self.storage.set(f"customer:id:{customer.unthread_customer_id}", payload),
                self.storage.set(f"customer:telegram:{customer.telegram_chat_id}", payload),
            )
        except StorageError as e:
            logger.error("Failed to store customer %s: %s", customer.unthread_customer_id, e)
            return False

        logger.info(
            "Customer stored: %s (%s)",
            customer.name or customer.company,
            customer.unthread_customer_id,
        )
        return True

    async def get_customer_by_id(self, customer_id: str) -> Optional[CustomerData]:
        return await self._load(f"customer:id:{customer_id}", CustomerData)

    async def get_customer_by_chat_id(self, chat_id: int) -> Optional[CustomerData]:
        return await self._load(f"customer:telegram:{chat_id}", CustomerData)

    async def get_or_create_customer(
        self,
        chat_id: int,
        chat_title: str,
        create_customer: Callable[[str], Awaitable[Dict[str, Any]]],
    ) -> CustomerData:
        """
        Return the customer linked to *chat_id*, creating one if there is none.

        Args:
            chat_id: Telegram group chat id.
            chat_title: Used as the company name of a new customer.
            create_customer: Coroutine function that creates the customer in the
                helpdesk and returns a mapping with its ``id``.

        Raises:
            Whatever *create_customer* raises; nothing is stored in that case.
        """
        existing = await self.get_customer_by_chat_id(chat_id)
        if existing is not None:
            logger.info("Found existing customer for chat %s: %s", chat_id, existing.unthread_customer_id)
            return existing

        logger.info("Creating new customer for chat %s: %s", chat_id, chat_title)
        try:
            response = await create_customer(chat_title)
        except Exception:
            logger.error("Customer creation failed for chat %s", chat_id, exc_info=True)
            raise

        customer_id = str(response["id"])
        now = _now()
        customer = CustomerData(
            id=customer_id,
            unthread_customer_id=customer_id,
            telegram_chat_id=chat_id,
            chat_title=chat_title,
            company=chat_title,
            created_at=now,
            updated_at=now,
        )
        if not await self.store_customer(customer):
            logger.warning("New customer %s was created but could not be cached", customer_id)
        return customer

    async def has_customer(self, chat_id: int) -> bool:
        return await self.get_customer_by_chat_id(chat_id) is not None

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def store_user(self, user: UserData) -> bool:
        now = _now()
        stamped = user.model_copy(update={"created_at": user.created_at or now, "updated_at": now})
        return await self._save(f"user:telegram:{user.telegram_user_id}", stamped, what="user")

    async def get_user_by_telegram_id(self, telegram_user_id: int) -> Optional[UserData]:
        return await self._load(f"user:telegram:{telegram_user_id}", UserData)

    async def update_user(self, telegram_user_id: int, updates: Dict[str, Any]) -> bool:
        """Merge *updates* into an existing user. Returns False if the user is unknown."""
        existing = await self.get_user_by_telegram_id(telegram_user_id)
        if existing is None:
            logger.warning("Cannot update non-existent user %s", telegram_user_id)
            return False

        safe_updates = _exclude_immutable(updates, ("telegram_user_id",))
        updated = self._merge(existing, safe_updates, updated_at=_now())
        if updated is None:
            return False
        saved = await self._save(f"user:telegram:{telegram_user_id}", updated, what="user")
        if saved:
            logger.info("User %s updated: %s", telegram_user_id, sorted(safe_updates))
        return saved

    # ------------------------------------------------------------------
    # Agent messages
    # ------------------------------------------------------------------

    async def store_agent_message(self, message: AgentMessageData) -> bool:
        enriched = message.model_copy(
            update={
                "platform": "telegram",
                "type": "agent_message",
                "stored_at": _now(),
                "version": RECORD_VERSION,
            }
        )
        saved = await self._save(f"agent_message:telegram:{message.message_id}", enriched, what="agent message")
        if saved:
            logger.info("Agent message stored: %s for conversation %s", message.message_id, message.conversation_id)
        return saved

    async def get_agent_message(self, message_id: int) -> Optional[AgentMessageData]:
        return await self._load(f"agent_message:telegram:{message_id}", AgentMessageData)

    # ------------------------------------------------------------------
    # Group configuration
    # ------------------------------------------------------------------

    async def store_group_config(self, config: GroupConfig) -> bool:
        stamped = config.model_copy(update={"last_updated_at": _now(), "version": RECORD_VERSION})
        saved = await self._save(f"group_config:{config.chat_id}", stamped, what="group configuration")
        if saved:
            logger.info(
                "Group configuration stored for chat %s (configured=%s, customer=%s)",
                config.chat_id,
                config.is_configured,
                config.customer_id,
            )
        return saved

    async def get_group_config(self, chat_id: int) -> Optional[GroupConfig]:
        return await self._load(f"group_config:{chat_id}", GroupConfig)

    async def update_group_config(self, chat_id: int, updates: Dict[str, Any]) -> bool:
        """Merge *updates* into the chat's config. ``chat_id`` and ``customer_id`` are never changed."""
        existing = await self.get_group_config(chat_id)
        if existing is None:
            logger.warning("Cannot update non-existent group configuration for chat %s", chat_id)
            return False

        updated = self._merge(existing, _exclude_immutable(updates, ("chat_id", "customer_id")))
        if updated is None:
            return False
        return await self.store_group_config(updated)

    async def delete_group_config(self, chat_id: int) -> bool:
        return await self._remove(f"group_config:{chat_id}", what="group configuration")

    # ------------------------------------------------------------------
    # Global configuration
    # ------------------------------------------------------------------

    async def get_global_config(self, key: str) -> Any:
        try:
            return await self.storage.get(f"global_config:{key}")
        except StorageError as e:
            logger.error("Failed to get global configuration %s: %s", key, e)
            return None

    async def set_global_config(self, key: str, value: Any) -> bool:
        try:
            await self.storage.set(f"global_config:{key}", value)
        except StorageError as e:
            logger.error("Failed to set global configuration %s: %s", key, e)
            return False
        logger.info("Global configuration saved: %s", key)
        return True

    async def delete_global_config(self, key: str) -> bool:
        return await self._remove(f"global_config:{key}", what="global configuration")

    # ------------------------------------------------------------------
    # Setup state
    # ------------------------------------------------------------------

    async def store_setup_state(self, state: SetupState) -> bool:
        """Store *state*; it expires after SETUP_STATE_TTL_SECONDS."""
        stamped = state.model_copy(update={"last_updated_at": _now(), "version": RECORD_VERSION})
        saved = await self._save(
            f"setup_state:{state.chat_id}",
            stamped,
            what="setup state",
            ttl_seconds=SETUP_STATE_TTL_SECONDS,
        )
        if saved:
            logger.info("Setup state stored for chat %s at step %s", state.chat_id, state.step)
        return saved

    async def get_setup_state(self, chat_id: int) -> Optional[SetupState]:
        return await self._load(f"setup_state:{chat_id}", SetupState)

    async def update_setup_state(self, chat_id: int, updates: Dict[str, Any]) -> bool:
        existing = await self.get_setup_state(chat_id)
        if existing is None:
            logger.warning("Cannot update non-existent setup state for chat %s", chat_id)
            return False

        updated = self._merge(existing, _exclude_immutable(updates, ("chat_id",)))
        if updated is None:
            return False
        return await self.store_setup_state(updated)

    async def clear_setup_state(self, chat_id: int) -> bool:
        return await self._remove(f"setup_state:{chat_id}", what="setup state")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _load(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        try:
            data = await self.storage.get(key)
        except StorageError as e:
            logger.error("Failed to read %s: %s", key, e)
            return None
        if data is None:
            return None
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error("Invalid %s data stored at %s: %s", model.__name__, key, e.errors())
            return None

    async def _save(
        self,
        key: str,
        record: BaseModel,
        *,
        what: str,
        ttl_seconds: Optional[float] = None,
    ) -> bool:
        try:
            await self.storage.set(key, _dump(record), ttl_seconds)
        except StorageError as e:
            logger.error("Failed to store %s at %s: %s", what, key, e)
            return False
        return True

    async def _remove(self, key: str, *, what: str) -> bool:
        try:
            await self.storage.delete(key)
        except StorageError as e:
            logger.error("Failed to delete %s at %s: %s", what, key, e)
            return False
        logger.info("Deleted %s at %s", what, key)
        return True

    @staticmethod
    def _merge(existing: ModelT, updates: Dict[str, Any], **extra: Any) -> Optional[ModelT]:
        merged = {**existing.model_dump(), **updates, **extra}
        try:
            return type(existing).model_validate(merged)
        except ValidationError as e:
            logger.error("Rejected %s update: %s", type(existing).__name__, e.errors())
            return None


async def _gather_all(*aws: Awaitable[Any]) -> List[Any]:
    """Run *aws* concurrently, letting every one finish before re-raising the first failure."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


def _exclude_immutable(updates: Dict[str, Any], immutable: tuple) -> Dict[str, Any]:
    dropped = [name for name in immutable if name in updates]
    if dropped:
        logger.warning("Ignoring updates to immutable fields: %s", dropped)
    return {name: value for name, value in updates.items() if name not in immutable}


__all__ = ["BotsStore", "RECORD_VERSION", "SETUP_STATE_TTL_SECONDS"]
