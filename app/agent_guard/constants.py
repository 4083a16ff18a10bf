# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""Constants used in the agent guard module."""
from enum import Enum
from typing import Optional


# Request configuration
NOTIFIER_TIMEOUT_SECONDS = 10  # Outbound messaging calls
POLL_TIMEOUT_SECONDS = 30  # Long-poll window for getUpdates
CLIENT_TIMEOUT_SECONDS = 10  # Agent-side calls to the gateway

# Ledger views
SUMMARY_WINDOW = 20
DIGEST_LENGTH = 5
EMPTY_SUMMARY = "No actions logged yet this session."

# Default values
DEFAULT_REFUSAL_VALUE = "Action blocked or denied by AgentGuard."
ID_PREFIX = "ag_"

SERVICE_NAME = "agentguard"
VERSION = "0.1.0"


class Decision(str, Enum):
    """
    Policy verdict for an evaluated action.

    Using string enum for easy JSON serialization while maintaining type safety.
    """
    PASS = "pass"
    FLAG = "flag"
    AWAIT = "await"
    BLOCK = "block"

    @property
    def severity(self) -> int:
        """Rank in the order pass < flag < await < block."""
        return _SEVERITY[self]


_SEVERITY = {
    Decision.PASS: 0,
    Decision.FLAG: 1,
    Decision.AWAIT: 2,
    Decision.BLOCK: 3,
}


class Outcome(str, Enum):
    """Outcome mirrored on every ledger entry."""
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    BLOCKED = "blocked"


class ApprovalStatus(str, Enum):
    """State of an approval request: pending, then approved or denied for good."""
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"

    @property
    def is_terminal(self) -> bool:
        return self is not ApprovalStatus.PENDING


class Domain(str, Enum):
    """Coarse category of an action's real-world effect."""
    FINANCE = "finance"
    HEALTHCARE = "healthcare"
    AUTHENTICATION = "authentication"
    FILESYSTEM = "filesystem"
    COMMUNICATION = "communication"
    WEB = "web"
    OTHER = "other"

    @classmethod
    def resolve(cls, value: Optional[str]) -> "Domain":
        """Map a raw domain string to a member; anything unknown becomes OTHER."""
        if not isinstance(value, str):
            return cls.OTHER
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.OTHER


DECISION_MESSAGES = {
    Decision.PASS: "Action approved. Proceed normally.",
    Decision.FLAG: "Action flagged. You may proceed but the user has been notified.",
    Decision.BLOCK: "Action blocked. Do not proceed with: {description}",
    Decision.AWAIT: "Action requires user approval. Poll the approval endpoint until resolved.",
}

DECISION_EMOJI = {
    Decision.PASS: "✅",
    Decision.FLAG: "⚠️",
    Decision.AWAIT: "⏳",
    Decision.BLOCK: "🚫",
}
