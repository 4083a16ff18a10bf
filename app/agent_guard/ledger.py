# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Append-only ledger of every evaluated action.

Entries are kept in memory for the lifetime of the process and are never
removed. The only field that changes after creation is ``outcome``, which the
approval registry updates when a human resolves a pending request.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .constants import (DECISION_EMOJI, DIGEST_LENGTH, EMPTY_SUMMARY, SUMMARY_WINDOW,
                        Decision, Outcome)
from .scoring import ActionDescriptor, RiskAssessment
from .types import Parameters


@dataclass
class LogEntry:
    """One evaluated action together with its assessment and decision."""
    id: str
    name: str
    description: str
    parameters: Parameters
    reversible: Optional[bool]
    domain: Optional[str]
    risk_score: int
    factors: Tuple[str, ...]
    decision: Decision
    timestamp: str
    outcome: Outcome = Outcome.PENDING

    @classmethod
    def create(
        cls,
        entry_id: str,
        action: ActionDescriptor,
        assessment: RiskAssessment,
        decision: Decision,
        timestamp: str
    ) -> "LogEntry":
        """Build an entry; blocked actions start out as blocked, all others as pending."""
        outcome = Outcome.BLOCKED if decision is Decision.BLOCK else Outcome.PENDING
        return cls(
            id=entry_id,
            name=action.name,
            description=action.description,
            parameters=dict(action.parameters),
            reversible=action.reversible,
            domain=action.domain,
            risk_score=assessment.score,
            factors=assessment.factors,
            decision=decision,
            timestamp=timestamp,
            outcome=outcome,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "action": self.name,
            "description": self.description,
            "parameters": dict(self.parameters),
            "reversible": self.reversible,
            "domain": self.domain,
            "riskScore": self.risk_score,
            "factors": list(self.factors),
            "decision": self.decision.value,
            "timestamp": self.timestamp,
            "outcome": self.outcome.value,
        }


@dataclass
class SummaryView:
    """Aggregate counts over the whole ledger plus its most recent entries."""
    total: int
    blocked: int
    flagged: int
    approved: int
    denied: int
    recent: List[Dict[str, Any]] = field(default_factory=list)


def count_outcomes(entries: List[LogEntry]) -> Dict[str, int]:
    """Full-scan counts used by the listing and summary views."""
    return {
        "total": len(entries),
        "blocked": sum(1 for e in entries if e.outcome is Outcome.BLOCKED),
        "flagged": sum(1 for e in entries if e.decision is Decision.FLAG),
        "approved": sum(1 for e in entries if e.outcome is Outcome.APPROVED),
        "denied": sum(1 for e in entries if e.outcome is Outcome.DENIED),
    }


class ActionLedger:
    """
    Thread-safe, insertion-ordered log of evaluated actions.

    ``lock`` is re-entrant and shared with the approval registry so that an
    approval and its mirrored ledger outcome change together.
    """

    def __init__(self, lock: Optional[threading.RLock] = None):
        self.lock = lock or threading.RLock()
        self._entries: List[LogEntry] = []
        self._index: Dict[str, LogEntry] = {}

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)

    def append(self, entry: LogEntry) -> None:
        with self.lock:
            self._entries.append(entry)
            self._index[entry.id] = entry

    def find(self, entry_id: str) -> Optional[LogEntry]:
        with self.lock:
            return self._index.get(entry_id)

    def entries(self) -> List[LogEntry]:
        """Snapshot of all entries in insertion order."""
        with self.lock:
            return list(self._entries)

    def update_outcome(self, entry_id: str, outcome: Outcome) -> bool:
        """Set the outcome of an entry. Returns False if the id is unknown."""
        with self.lock:
            entry = self._index.get(entry_id)
            if entry is None:
                return False
            entry.outcome = outcome
            return True

    def summary_view(self, n: int = SUMMARY_WINDOW) -> SummaryView:
        with self.lock:
            entries = list(self._entries)
            recent = [e.to_dict() for e in entries[-n:]] if n > 0 else []
        counts = count_outcomes(entries)
        return SummaryView(recent=recent, **counts)

    def listing(self) -> Dict[str, Any]:
        """Counts by outcome category and every entry, oldest first."""
        with self.lock:
            entries = list(self._entries)
            actions = [e.to_dict() for e in entries]
        listing: Dict[str, Any] = count_outcomes(entries)
        listing["actions"] = actions
        return listing

    def recent_text(self, n: int = SUMMARY_WINDOW) -> str:
        """
        Plain-English digest of recent activity.

        Args:
            n: How many of the latest entries the per-decision counts cover

        Returns:
            The digest, or a fixed message when nothing has been logged
        """
        with self.lock:
            total = len(self._entries)
            recent = self._entries[-n:] if n > 0 else []
            recent = [(e.decision, e.outcome, e.description, e.risk_score) for e in recent]

        if total == 0:
            return EMPTY_SUMMARY

        passed = sum(1 for decision, _, _, _ in recent if decision is Decision.PASS)
        flagged = sum(1 for decision, _, _, _ in recent if decision is Decision.FLAG)
        awaited = sum(1 for decision, _, _, _ in recent if decision is Decision.AWAIT)
        blocked = sum(1 for _, outcome, _, _ in recent if outcome is Outcome.BLOCKED)

        header = f"In this session I logged {total} action(s)"
        if total > len(recent):
            header += f" (last {len(recent)} shown)"
        lines = [f"{header}:"]
        if passed:
            lines.append(f"{DECISION_EMOJI[Decision.PASS]} {passed} low-risk action(s) passed automatically")
        if flagged:
            lines.append(f"{DECISION_EMOJI[Decision.FLAG]} {flagged} action(s) were flagged as medium-risk")
        if awaited:
            lines.append(f"{DECISION_EMOJI[Decision.AWAIT]} {awaited} action(s) required approval")
        if blocked:
            lines.append(f"{DECISION_EMOJI[Decision.BLOCK]} {blocked} action(s) were blocked")
        lines.append("")
        lines.append("Recent actions:")
        for decision, _, description, score in recent[-DIGEST_LENGTH:]:
            lines.append(f"• [{decision.value.upper()}] {description} (risk: {score}/10)")
        return "\n".join(lines)
