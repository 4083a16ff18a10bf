# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Human-facing notifications for flagged, awaiting and blocked actions.

This module contains the notifier contract, a Telegram implementation on top
of the Bot HTTP API, the message formatters, and the dispatcher that routes
approve/deny button taps back into the approval registry.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .approval import RESOLVED_BY_EXPIRY, ApprovalRecord, ApprovalRegistry
from .constants import (NOTIFIER_TIMEOUT_SECONDS, POLL_TIMEOUT_SECONDS, ApprovalStatus,
                        Decision)
from .exceptions import ApprovalNotFoundError
from .ledger import LogEntry
from .types import ButtonRow, MessageRef, TelegramUpdate

# Configure logger
logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"
RETRY_DELAY_SECONDS = 5

CALLBACK_APPROVE = "approve"
CALLBACK_DENY = "deny"
_CALLBACK_STATUS = {
    CALLBACK_APPROVE: ApprovalStatus.APPROVED,
    CALLBACK_DENY: ApprovalStatus.DENIED,
}

EXPIRED_TEXT = "This approval has expired."
UNKNOWN_ACTION_TEXT = "Unknown action."


class Notifier:
    """
    Contract for the messaging channel a human watches.

    The base class is the null implementation used when no channel is
    configured: every call is accepted and nothing is sent.
    """

    configured = False
    name = "none"

    def send_message(self, text: str, buttons: Optional[List[ButtonRow]] = None) -> Optional[MessageRef]:
        return None

    def edit_message(self, message_ref: MessageRef, text: str) -> bool:
        return False

    def answer_callback(self, callback_id: str, text: str) -> bool:
        return False


class NullNotifier(Notifier):
    """Local-only mode."""


class TelegramNotifier(Notifier):
    """Notifier backed by the Telegram Bot HTTP API."""

    configured = True
    name = "telegram"

    def __init__(self, token: str, chat_id: str, timeout: int = NOTIFIER_TIMEOUT_SECONDS):
        self._token = token
        self.chat_id = chat_id
        self.timeout = timeout
        self.base_url = f"{TELEGRAM_API_URL}/bot{token}"

    def _redact(self, text: str) -> str:
        return text.replace(self._token, "<token>") if self._token else text

    def _call(self, method: str, payload: Dict[str, Any], timeout: Optional[int] = None) -> Tuple[bool, Any]:
        """
        Call a Bot API method.

        Returns:
            Tuple containing:
            - Boolean indicating success or failure of the call
            - The ``result`` field of the response if successful, None otherwise
        """
        try:
            response = requests.post(
                f"{self.base_url}/{method}",
                json=payload,
                timeout=timeout or self.timeout
            )
            response.raise_for_status()
            body = response.json()

        except requests.exceptions.Timeout:
            logger.error("Request to Telegram %s timed out.", method)
            return False, None

        except requests.exceptions.RequestException as exception:
            logger.error("Error calling Telegram %s: %s", method, self._redact(str(exception)))
            return False, None

        except ValueError:
            logger.error("Telegram %s returned a non-JSON response.", method)
            return False, None

        if not body.get("ok"):
            logger.error("Telegram %s rejected the request: %s", method, body.get("description"))
            return False, None
        return True, body.get("result")

    def send_message(self, text: str, buttons: Optional[List[ButtonRow]] = None) -> Optional[MessageRef]:
        payload: Dict[str, Any] = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "Markdown",
        }
        if buttons:
            payload["reply_markup"] = {
                "inline_keyboard": [
                    [{"text": label, "callback_data": data} for label, data in row]
                    for row in buttons
                ]
            }
        success, result = self._call("sendMessage", payload)
        if not success or not isinstance(result, dict):
            return None
        return {"chat_id": result.get("chat", {}).get("id", self.chat_id), "message_id": result.get("message_id")}

    def edit_message(self, message_ref: MessageRef, text: str) -> bool:
        success, _ = self._call("editMessageText", {
            "chat_id": message_ref["chat_id"],
            "message_id": message_ref["message_id"],
            "text": text,
            "parse_mode": "Markdown",
        })
        return success

    def answer_callback(self, callback_id: str, text: str) -> bool:
        success, _ = self._call("answerCallbackQuery", {"callback_query_id": callback_id, "text": text})
        return success

    def get_updates(self, offset: Optional[int] = None, timeout: int = POLL_TIMEOUT_SECONDS) -> Optional[List[TelegramUpdate]]:
        """Long-poll for button taps. Returns None when the call failed."""
        payload: Dict[str, Any] = {"timeout": timeout, "allowed_updates": ["callback_query"]}
        if offset is not None:
            payload["offset"] = offset
        success, result = self._call("getUpdates", payload, timeout=timeout + self.timeout)
        if not success:
            return None
        return result or []


class TelegramPoller(threading.Thread):
    """Background thread feeding Telegram updates to a handler until stopped."""

    def __init__(
        self,
        notifier: TelegramNotifier,
        handler: Callable[[TelegramUpdate], None],
        poll_timeout: int = POLL_TIMEOUT_SECONDS
    ):
        super().__init__(name="agentguard-telegram-poller", daemon=True)
        self.notifier = notifier
        self.handler = handler
        self.poll_timeout = poll_timeout
        self.offset: Optional[int] = None
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def poll_once(self) -> bool:
        """Fetch one batch of updates and handle each. Returns False on fetch failure."""
        updates = self.notifier.get_updates(self.offset, self.poll_timeout)
        if updates is None:
            return False
        for update in updates:
            self.offset = update["update_id"] + 1
            try:
                self.handler(update)
            except Exception:  #pylint: disable=broad-exception-caught
                logger.exception("Failed to handle Telegram update %s", update.get("update_id"))
        return True

    def run(self) -> None:
        logger.info("Telegram poller started.")
        while not self.stopped:
            if not self.poll_once():
                self._stop_event.wait(RETRY_DELAY_SECONDS)
        logger.info("Telegram poller stopped.")


def escape_markdown(text: str) -> str:
    """Escape the characters legacy Telegram Markdown treats as entities."""
    for char in ("_", "*", "`", "["):
        text = text.replace(char, f"\\{char}")
    return text


def _reversibility_line(entry: LogEntry) -> str:
    return "Cannot be undone ⚠️" if entry.reversible is False else "Reversible ✅"


def format_flag_message(entry: LogEntry) -> str:
    return "\n".join([
        "⚠️ *AgentGuard — Action Flagged*",
        "",
        "Your agent is about to:",
        escape_markdown(entry.description),
        "",
        f"Domain: {escape_markdown(entry.domain or 'other')}",
        f"Risk score: {entry.risk_score}/10",
        _reversibility_line(entry),
        "",
        "Action proceeding automatically.",
    ])


def format_approval_request(entry: LogEntry) -> str:
    return "\n".join([
        "⏳ *AgentGuard — Approval Required*",
        "",
        "Your agent wants to:",
        escape_markdown(entry.description),
        "",
        f"Domain: {escape_markdown(entry.domain or 'other')}",
        f"Risk score: {entry.risk_score}/10",
        _reversibility_line(entry),
        "",
        f"Factors: {', '.join(entry.factors)}",
    ])


def format_block_message(entry: LogEntry) -> str:
    return "\n".join([
        "🚫 *AgentGuard — Action Blocked*",
        "",
        "Your agent tried to:",
        escape_markdown(entry.description),
        "",
        f"Domain: {escape_markdown(entry.domain or 'other')}",
        f"Risk score: {entry.risk_score}/10",
        "",
        "This action was automatically blocked.",
        "If you want to allow it, tell your agent directly.",
    ])


def format_resolution_message(record: ApprovalRecord) -> str:
    """Text that replaces the approval request once it has been resolved."""
    description = escape_markdown(record.description)
    if record.resolved_via == RESOLVED_BY_EXPIRY:
        return f"⌛ *Expired*\n\n{description}\n\nNo decision was made in time. The agent has been stopped."
    if record.status is ApprovalStatus.APPROVED:
        return f"✅ *Approved*\n\n{description}\n\nThe agent will proceed."
    return f"🚫 *Denied*\n\n{description}\n\nThe agent has been stopped."


def approval_buttons(approval_id: str) -> List[ButtonRow]:
    return [[
        ("✅ Approve", f"{CALLBACK_APPROVE}:{approval_id}"),
        ("🚫 Deny", f"{CALLBACK_DENY}:{approval_id}"),
    ]]


def parse_callback_data(data: Optional[str]) -> Tuple[Optional[ApprovalStatus], Optional[str]]:
    """Split ``approve:<id>`` / ``deny:<id>`` into the requested status and the id."""
    if not data or ":" not in data:
        return None, None
    button, approval_id = data.split(":", 1)
    status = _CALLBACK_STATUS.get(button)
    if status is None or not approval_id:
        return None, None
    return status, approval_id


class NotificationDispatcher:
    """
    Sends the message variant matching each decision and handles button taps.

    The message reference of every approval request is kept until the
    approval is resolved, so whichever path resolves it can update the
    original message.
    """

    def __init__(self, notifier: Notifier, registry: ApprovalRegistry):
        self.notifier = notifier
        self.registry = registry
        self._message_refs: Dict[str, MessageRef] = {}
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return self.notifier.configured

    def _remember(self, approval_id: str, message_ref: MessageRef) -> None:
        with self._lock:
            self._message_refs[approval_id] = message_ref

    def _forget(self, approval_id: str) -> Optional[MessageRef]:
        with self._lock:
            return self._message_refs.pop(approval_id, None)

    def notify(self, entry: LogEntry) -> None:
        """Send the message for an evaluated action; pass decisions send nothing."""
        if entry.decision is Decision.FLAG:
            if self.notifier.send_message(format_flag_message(entry)) is None:
                logger.error("Failed to send flag alert (ID: %s).", entry.id)

        elif entry.decision is Decision.AWAIT:
            self.send_approval_request(entry)

        elif entry.decision is Decision.BLOCK:
            if self.notifier.send_message(format_block_message(entry)) is None:
                logger.error("Failed to send block alert (ID: %s).", entry.id)

    def send_approval_request(self, entry: LogEntry) -> Optional[MessageRef]:
        message_ref = self.notifier.send_message(
            format_approval_request(entry),
            buttons=approval_buttons(entry.id)
        )
        if message_ref is None:
            logger.error("Failed to send approval request, approval stays pending (ID: %s).", entry.id)
            return None

        logger.info("Approval request sent to %s for: %s", self.notifier.name, entry.name)
        self._remember(entry.id, message_ref)

        # Resolved through another path while the message was in flight.
        try:
            record = self.registry.get(entry.id)
        except ApprovalNotFoundError:
            return message_ref
        if record.status.is_terminal:
            self.notify_resolution(record)
        return message_ref

    def notify_resolution(self, record: ApprovalRecord) -> None:
        """Replace the approval request with the final status, if one was sent."""
        message_ref = self._forget(record.id)
        if message_ref is None:
            return
        self.notifier.edit_message(message_ref, format_resolution_message(record))

    def handle_update(self, update: TelegramUpdate) -> None:
        """Route a button tap into the approval registry and answer it."""
        callback = update.get("callback_query")
        if not callback:
            return

        callback_id = callback.get("id")
        status, approval_id = parse_callback_data(callback.get("data"))
        if status is None:
            self.notifier.answer_callback(callback_id, UNKNOWN_ACTION_TEXT)
            return

        try:
            result = self.registry.resolve(approval_id, status, via=self.notifier.name)
        except ApprovalNotFoundError:
            self.notifier.answer_callback(callback_id, EXPIRED_TEXT)
            return

        if not result.changed:
            self.notifier.answer_callback(callback_id, f"Already {result.status.value}.")
            return

        message = callback.get("message") or {}
        stored_ref = self._forget(approval_id)
        if message.get("message_id") is not None:
            message_ref = {"chat_id": message.get("chat", {}).get("id"), "message_id": message["message_id"]}
        else:
            message_ref = stored_ref
        if message_ref is not None:
            self.notifier.edit_message(message_ref, format_resolution_message(result.record))

        if result.status is ApprovalStatus.APPROVED:
            self.notifier.answer_callback(callback_id, "✅ Approved")
            logger.info("APPROVED via %s: %s", self.notifier.name, result.record.action)
        else:
            self.notifier.answer_callback(callback_id, "🚫 Denied")
            logger.info("DENIED via %s: %s", self.notifier.name, result.record.action)
