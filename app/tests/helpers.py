# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""Shared fixtures for the agent_guard tests."""

from concurrent.futures import Executor, Future

from agent_guard.constants import Decision
from agent_guard.ledger import LogEntry
from agent_guard.scoring import ActionDescriptor, RiskAssessment

TIMESTAMP = "2025-04-13T12:00:00+00:00"


class InlineExecutor(Executor):
    """Runs submitted work immediately in the calling thread."""

    def submit(self, fn, /, *args, **kwargs):  #pylint: disable=arguments-differ
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exception:  #pylint: disable=broad-exception-caught
            future.set_exception(exception)
        return future


def make_entry(entry_id="ag_1", decision=Decision.AWAIT, description="deploy the build",
               score=7, name="deploy", reversible=None, domain=None):
    action = ActionDescriptor(name=name, description=description, reversible=reversible, domain=domain)
    return LogEntry.create(entry_id, action, RiskAssessment(score=score), decision, TIMESTAMP)
