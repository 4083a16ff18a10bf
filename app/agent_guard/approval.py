# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Registry of approval requests awaiting a human decision.

Each request moves from pending to approved or denied exactly once. The agent
polls the status while the human resolves it, either by tapping a button in
the chat client or through the fallback HTTP endpoints; both paths go through
``ApprovalRegistry.resolve`` which applies a single effective resolution and
reports the existing status to every later caller.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .constants import ApprovalStatus, Outcome
from .exceptions import ApprovalNotFoundError
from .ledger import ActionLedger, LogEntry
from .logging_utils import create_resolution_event, log_action_event, utc_now

# Configure logger
logger = logging.getLogger(__name__)

RESOLVED_BY_EXPIRY = "expiry"


@dataclass
class ApprovalRecord:
    """Mutable tracking object for an action awaiting human resolution."""
    id: str
    action: str
    description: str
    status: ApprovalStatus
    created_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_via: Optional[str] = None

    def snapshot(self) -> "ApprovalRecord":
        return ApprovalRecord(**self.__dict__)


@dataclass(frozen=True)
class ResolveResult:
    """What a resolve call did: the status now in force and whether it changed."""
    record: ApprovalRecord
    changed: bool

    @property
    def status(self) -> ApprovalStatus:
        return self.record.status


_OUTCOME_FOR_STATUS = {
    ApprovalStatus.APPROVED: Outcome.APPROVED,
    ApprovalStatus.DENIED: Outcome.DENIED,
}


class ApprovalRegistry:
    """
    Keyed store of approval records backed by an ``ActionLedger``.

    The registry shares the ledger's lock, so a resolution updates the record
    and the mirrored ledger outcome in one critical section and no reader of
    either can observe one without the other.
    """

    def __init__(self, ledger: ActionLedger, expiry_seconds: int = 0):
        self._ledger = ledger
        self._lock = ledger.lock
        self._records: Dict[str, ApprovalRecord] = {}
        self.expiry = timedelta(seconds=expiry_seconds) if expiry_seconds > 0 else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def create(self, entry: LogEntry, now: Optional[datetime] = None) -> ApprovalRecord:
        """
        Insert a pending record for an entry that needs approval.

        A colliding id replaces the previous record so the registry stays
        consistent; ids are uuid4 based so this is not expected.
        """
        record = ApprovalRecord(
            id=entry.id,
            action=entry.name,
            description=entry.description,
            status=ApprovalStatus.PENDING,
            created_at=now or utc_now(),
        )
        with self._lock:
            if entry.id in self._records:
                logger.warning("Approval id collision, replacing record (ID: %s).", entry.id)
            self._records[entry.id] = record
            return record.snapshot()

    def get(self, approval_id: str) -> ApprovalRecord:
        """
        Return a snapshot of the current record.

        Raises:
            ApprovalNotFoundError: If the id is unknown
        """
        with self._lock:
            record = self._records.get(approval_id)
            if record is None:
                raise ApprovalNotFoundError(approval_id)
            return record.snapshot()

    def resolve(
        self,
        approval_id: str,
        status: ApprovalStatus,
        via: str = "api",
        now: Optional[datetime] = None
    ) -> ResolveResult:
        """
        Resolve a pending approval to approved or denied.

        Args:
            approval_id: Id of the approval (same as the ledger entry id)
            status: APPROVED or DENIED
            via: Which path resolved it, for the audit log
            now: Resolution time, defaults to the current time

        Returns:
            ResolveResult; ``changed`` is False when the record was already
            resolved, in which case the existing status is reported

        Raises:
            ApprovalNotFoundError: If the id is unknown; nothing is created
            ValueError: If status is not a terminal status
        """
        status = ApprovalStatus(status)
        if not status.is_terminal:
            raise ValueError(f"Cannot resolve an approval to {status.value}")

        with self._lock:
            record = self._records.get(approval_id)
            if record is None:
                raise ApprovalNotFoundError(approval_id)
            if record.status.is_terminal:
                return ResolveResult(record=record.snapshot(), changed=False)

            record.status = status
            record.resolved_at = now or utc_now()
            record.resolved_via = via
            if not self._ledger.update_outcome(approval_id, _OUTCOME_FOR_STATUS[status]):
                logger.warning("No ledger entry mirrors approval (ID: %s).", approval_id)
            result = ResolveResult(record=record.snapshot(), changed=True)

        log_action_event(create_resolution_event(approval_id, status.value, via))
        return result

    def pending_count(self) -> int:
        with self._lock:
            return sum(1 for r in self._records.values() if r.status is ApprovalStatus.PENDING)

    def expire_stale(self, now: Optional[datetime] = None) -> List[ApprovalRecord]:
        """
        Deny every pending approval older than the configured expiry.

        Returns:
            Snapshots of the records this call expired; empty when expiry is off
        """
        if self.expiry is None:
            return []

        now = now or utc_now()
        with self._lock:
            stale = [
                r.id for r in self._records.values()
                if r.status is ApprovalStatus.PENDING and now - r.created_at >= self.expiry
            ]
            expired = []
            for approval_id in stale:
                result = self.resolve(approval_id, ApprovalStatus.DENIED, via=RESOLVED_BY_EXPIRY, now=now)
                if result.changed:
                    expired.append(result.record)

        for record in expired:
            logger.info("Approval expired after %s (ID: %s).", self.expiry, record.id)
        return expired
