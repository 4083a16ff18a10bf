# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Client the agent uses to report actions to a running gateway.

This module contains the HTTP calls for reporting an action, reading the
status of an approval, and polling until a human has resolved it.
"""

import logging
import time
from typing import Any, Dict, Optional

import requests

from . import config
from .constants import CLIENT_TIMEOUT_SECONDS, ApprovalStatus
from .exceptions import ApprovalNotFoundError, GatewayUnavailableError, InvalidActionError
from .types import ActionPayload, Parameters

# Configure logger
logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_WAIT_SECONDS = 300.0


def _parse_response(response: requests.Response, approval_id: Optional[str] = None) -> Dict[str, Any]:
    if response.status_code == 404:
        raise ApprovalNotFoundError(approval_id or "")
    if response.status_code == 400:
        raise InvalidActionError(response.json().get("error", "Missing action or description"))
    response.raise_for_status()
    return response.json()


class GatewayClient:
    """Thin wrapper over the gateway's HTTP endpoints."""

    def __init__(self, base_url: Optional[str] = None, timeout: int = CLIENT_TIMEOUT_SECONDS):
        self.base_url = (base_url or config.AGENTGUARD_URL).rstrip("/")
        self.timeout = timeout

    def evaluate(
        self,
        name: str,
        description: str,
        parameters: Optional[Parameters] = None,
        reversible: Optional[bool] = None,
        domain: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Report an action and return the gateway's decision.

        Raises:
            GatewayUnavailableError: If the gateway cannot be reached
            InvalidActionError: If the gateway rejected the report
        """
        payload: ActionPayload = {
            "action": name,
            "description": description,
            "parameters": parameters or {},
        }
        if reversible is not None:
            payload["reversible"] = reversible
        if domain is not None:
            payload["domain"] = domain

        try:
            response = requests.post(f"{self.base_url}/log", json=payload, timeout=self.timeout)
            return _parse_response(response)
        except requests.exceptions.RequestException as exception:
            raise GatewayUnavailableError(f"Error calling AgentGuard: {exception}") from exception

    def get_approval(self, approval_id: str) -> Dict[str, Any]:
        """
        Read the current status of an approval.

        Raises:
            ApprovalNotFoundError: If the gateway does not know the id
            GatewayUnavailableError: If the gateway cannot be reached
        """
        try:
            response = requests.get(f"{self.base_url}/approval/{approval_id}", timeout=self.timeout)
            return _parse_response(response, approval_id)
        except requests.exceptions.RequestException as exception:
            raise GatewayUnavailableError(f"Error calling AgentGuard: {exception}") from exception

    def wait_for_approval(
        self,
        approval_id: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_wait: float = DEFAULT_MAX_WAIT_SECONDS
    ) -> ApprovalStatus:
        """
        Poll until the approval is resolved or ``max_wait`` seconds have passed.

        Returns:
            The final status, or PENDING if nobody decided in time
        """
        deadline = time.monotonic() + max_wait
        while True:
            status = ApprovalStatus(self.get_approval(approval_id)["status"])
            if status.is_terminal:
                return status
            if time.monotonic() >= deadline:
                logger.warning("Timed out waiting for approval (ID: %s).", approval_id)
                return status
            time.sleep(poll_interval)
