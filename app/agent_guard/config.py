# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Configuration module for AgentGuard.

This module loads the environment variables used by the gateway, in particular
the Telegram credentials that enable interactive notifications. Missing
credentials are not an error: the gateway then runs in local-only mode.
"""

import os
import logging
from typing import Optional
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("%s must be an integer, got %r. Using %s.", name, raw, default)
        return default


TELEGRAM_BOT_TOKEN: Optional[str] = os.getenv("TELEGRAM_BOT_TOKEN")
TELEGRAM_CHAT_ID: Optional[str] = os.getenv("TELEGRAM_CHAT_ID")

AGENTGUARD_HOST: str = os.getenv("AGENTGUARD_HOST", "127.0.0.1")
AGENTGUARD_PORT: int = _int_from_env("AGENTGUARD_PORT", 3456)
AGENTGUARD_URL: str = os.getenv("AGENTGUARD_URL", f"http://localhost:{AGENTGUARD_PORT}")

TELEGRAM_WEBHOOK_SECRET: Optional[str] = os.getenv("TELEGRAM_WEBHOOK_SECRET")

# Zero disables expiry: pending approvals then wait until resolved or restart.
APPROVAL_EXPIRY_SECONDS: int = _int_from_env("AGENTGUARD_APPROVAL_EXPIRY_SECONDS", 0)

TELEGRAM_ENABLED: bool = bool(TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID)

if not TELEGRAM_ENABLED:
    logger.warning(
        "TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID environment variable not set. "
        "AgentGuard will run in local-only mode. "
        "Set both variables to enable Telegram alerts."
    )
