# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Gateway tying scoring, policy, the ledger, approvals and notifications together.

All state is owned by a ``Gateway`` instance and handed to the HTTP layer
explicitly, so every test can build a fresh, isolated gateway.
"""

import logging
import uuid
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Mapping, Optional

from . import config
from .approval import ApprovalRecord, ApprovalRegistry
from .constants import (DECISION_EMOJI, DECISION_MESSAGES, ID_PREFIX, SERVICE_NAME,
                        SUMMARY_WINDOW, VERSION, ApprovalStatus, Decision)
from .ledger import ActionLedger, LogEntry
from .logging_utils import create_action_event, get_current_timestamp, log_action_event
from .notifications import NotificationDispatcher, Notifier, NullNotifier, TelegramNotifier
from .policy import decide
from .scoring import ActionDescriptor, score_risk
from .types import TelegramUpdate

# Configure logger
logger = logging.getLogger(__name__)


def new_action_id() -> str:
    return f"{ID_PREFIX}{uuid.uuid4().hex}"


def decision_message(decision: Decision, action: ActionDescriptor) -> str:
    """Fixed instruction returned to the agent for each decision."""
    return DECISION_MESSAGES[decision].format(description=action.description)


def _log_notification_failure(future: Future) -> None:
    exception = future.exception()
    if exception is not None:
        logger.error("Notification delivery failed: %s", exception)


class Gateway:
    """Evaluates reported actions and tracks their approvals."""

    def __init__(
        self,
        ledger: Optional[ActionLedger] = None,
        registry: Optional[ApprovalRegistry] = None,
        notifier: Optional[Notifier] = None,
        executor: Optional[Executor] = None,
        expiry_seconds: int = 0
    ):
        self.ledger = ledger or ActionLedger()
        self.registry = registry or ApprovalRegistry(self.ledger, expiry_seconds=expiry_seconds)
        self.dispatcher = NotificationDispatcher(notifier or NullNotifier(), self.registry)
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="agentguard-notify")

    @classmethod
    def from_config(cls) -> "Gateway":
        """Build a gateway from the environment; Telegram only when both credentials are set."""
        notifier: Notifier = NullNotifier()
        if config.TELEGRAM_ENABLED:
            notifier = TelegramNotifier(config.TELEGRAM_BOT_TOKEN, config.TELEGRAM_CHAT_ID)
        return cls(notifier=notifier, expiry_seconds=config.APPROVAL_EXPIRY_SECONDS)

    @property
    def notifier(self) -> Notifier:
        return self.dispatcher.notifier

    def _dispatch(self, func: Callable[..., Any], *args: Any) -> None:
        """Run a notification without making the caller wait for it."""
        if not self.dispatcher.configured:
            return
        future = self._executor.submit(func, *args)
        future.add_done_callback(_log_notification_failure)

    def evaluate(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Score, decide, record and notify for a reported action.

        Args:
            payload: The action report as received from the agent

        Returns:
            Dictionary with the id, decision, risk score, factors and a message

        Raises:
            InvalidActionError: If the name or the description is missing
        """
        action = ActionDescriptor.from_payload(payload)
        assessment = score_risk(action)
        decision = decide(assessment.score, action)
        entry = LogEntry.create(new_action_id(), action, assessment, decision, get_current_timestamp())

        with self.ledger.lock:
            self.ledger.append(entry)
            if decision is Decision.AWAIT:
                self.registry.create(entry)

        logger.info("%s %s: %s", DECISION_EMOJI[decision], decision.value.upper(), action.name)
        logger.info("Risk: %s/10 | %s", assessment.score, ", ".join(assessment.factors))
        log_action_event(create_action_event(entry))

        if decision is not Decision.PASS:
            self._dispatch(self.dispatcher.notify, entry)

        return {
            "id": entry.id,
            "decision": decision.value,
            "riskScore": assessment.score,
            "factors": assessment.factor_list(),
            "message": decision_message(decision, action),
        }

    def expire_stale(self) -> List[ApprovalRecord]:
        expired = self.registry.expire_stale()
        for record in expired:
            self._dispatch(self.dispatcher.notify_resolution, record)
        return expired

    def approval_status(self, approval_id: str) -> Dict[str, Any]:
        """
        Current status of an approval, for the polling agent.

        Raises:
            ApprovalNotFoundError: If the id is unknown
        """
        self.expire_stale()
        record = self.registry.get(approval_id)
        return {
            "id": record.id,
            "status": record.status.value,
            "action": record.action,
            "description": record.description,
        }

    def resolve(self, approval_id: str, status: ApprovalStatus, via: str = "api") -> Dict[str, Any]:
        """
        Approve or deny through the fallback path.

        Repeated calls are safe: they report the status already in force.

        Raises:
            ApprovalNotFoundError: If the id is unknown
        """
        self.expire_stale()
        result = self.registry.resolve(approval_id, status, via=via)
        if result.changed:
            logger.info("%s via %s: %s", result.status.value.upper(), via.upper(), result.record.action)
            self._dispatch(self.dispatcher.notify_resolution, result.record)
        return {
            "id": approval_id,
            "status": result.status.value,
            "alreadyResolved": not result.changed,
        }

    def handle_telegram_update(self, update: TelegramUpdate) -> None:
        self.expire_stale()
        self.dispatcher.handle_update(update)

    def log_listing(self) -> Dict[str, Any]:
        return self.ledger.listing()

    def summary(self) -> Dict[str, str]:
        return {"summary": self.ledger.recent_text(SUMMARY_WINDOW)}

    def health(self) -> Dict[str, Any]:
        self.expire_stale()
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": VERSION,
            "telegram": "connected" if self.dispatcher.configured else "not configured",
            "actionsLogged": len(self.ledger),
            "pendingApprovals": self.registry.pending_count(),
        }

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
