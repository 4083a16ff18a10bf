# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.


"""
AgentGuard: a local oversight gateway between an autonomous agent and the
real-world actions it wants to take.

The agent reports an intended action before executing it. The gateway:

1. Scores the risk of the action from 1 to 10 with explainable factors
2. Decides to pass, flag, await human approval, or block it
3. Notifies a human over Telegram, with approve/deny buttons when needed
4. Tracks every action and approval for the lifetime of the process

Usage:
    from agent_guard import guarded_action

    @guarded_action(
        name="delete_user",
        description="Delete a user account",
        domain="authentication",
        reversible=False
    )
    def delete_user(user_id):
        # This function only runs when the gateway allows it
        ...
"""

from .constants import DEFAULT_REFUSAL_VALUE, ApprovalStatus, Decision, Domain
from .decorator import guarded_action
from .gateway import Gateway

__all__ = ['guarded_action', 'Gateway', 'DEFAULT_REFUSAL_VALUE', 'ApprovalStatus', 'Decision', 'Domain']
