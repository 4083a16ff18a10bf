# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""Exceptions raised by the agent guard module."""


class AgentGuardError(Exception):
    """Base class for agent guard errors."""


class InvalidActionError(AgentGuardError, ValueError):
    """Raised when an action report lacks a name or a description."""

    def __init__(self, message: str = "Missing action or description"):
        super().__init__(message)


class ApprovalNotFoundError(AgentGuardError, KeyError):
    """Raised when an approval id is unknown to the registry."""

    def __init__(self, approval_id: str):
        super().__init__(approval_id)
        self.approval_id = approval_id

    def __str__(self) -> str:
        return f"Approval not found: {self.approval_id}"


class GatewayUnavailableError(AgentGuardError):
    """Raised by the agent-side client when the gateway cannot be reached."""
