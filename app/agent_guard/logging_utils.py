# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""Logging utilities for the agent guard module."""

import json
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from .types import LogEvent

if TYPE_CHECKING:
    from .ledger import LogEntry

# Configure logger
logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    """
    Attach a console handler to the package logger.

    Only the server entry point calls this; library users keep control of
    their own logging setup.
    """
    package_logger = logging.getLogger("agent_guard")
    package_logger.setLevel(level)
    if not package_logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(console_handler)


def log_action_event(event_data: LogEvent) -> None:
    """
    Log an action event with standardized format.

    Args:
        event_data: Dictionary containing event information including the action id,
                   decision, risk score, outcome and timestamps.
    """
    logger.info("Action Event: %s", json.dumps(event_data, default=str))


def create_action_event(entry: "LogEntry") -> LogEvent:
    """
    Create the audit event for a freshly evaluated action.

    Args:
        entry: The ledger entry produced by the evaluation

    Returns:
        Dictionary containing structured log event data with standardized fields
    """
    return {
        "Id": entry.id,
        "Action": entry.name,
        "Decision": entry.decision.value,
        "RiskScore": entry.risk_score,
        "Factors": list(entry.factors),
        "Outcome": entry.outcome.value,
        "Timestamp": entry.timestamp,
        "Description": entry.description,
    }


def create_resolution_event(approval_id: str, status: str, via: str) -> LogEvent:
    """Create the audit event for an effective approval resolution."""
    return {
        "Id": approval_id,
        "Status": status,
        "Via": via,
        "Timestamp": get_current_timestamp(),
    }


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def get_current_timestamp() -> str:
    """
    Get the current UTC timestamp in ISO format.

    Returns:
        ISO 8601 formatted timestamp string in UTC timezone
    """
    return utc_now().isoformat()
