# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Decision policy mapping a risk score to pass, flag, await or block.

PASS:  low risk, proceed normally
FLAG:  medium risk, proceed but notify the user
AWAIT: high risk, require explicit user approval
BLOCK: very high risk or a known catastrophic pattern, stop completely
"""

import re
from typing import Pattern, Tuple

from .constants import Decision
from .scoring import ActionDescriptor

# Known catastrophic actions. Kept small and exact to avoid false positives.
OVERRIDE_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"format.*(disk|drive|volume)"),
    re.compile(r"rm -rf"),
    re.compile(r"wipe.*(disk|drive)"),
)

# Inclusive lower bounds, most severe first.
THRESHOLDS: Tuple[Tuple[int, Decision], ...] = (
    (9, Decision.BLOCK),
    (7, Decision.AWAIT),
    (5, Decision.FLAG),
)


def matches_override(action: ActionDescriptor) -> bool:
    """Check if the action matches a pattern that is always blocked."""
    text = action.searchable_text()
    return any(pattern.search(text) for pattern in OVERRIDE_PATTERNS)


def decide(score: int, action: ActionDescriptor) -> Decision:
    """
    Decide what to do with an action.

    Args:
        score: Risk score from the scorer
        action: The reported action, re-inspected for override patterns

    Returns:
        The decision; overrides win regardless of score
    """
    if matches_override(action):
        return Decision.BLOCK

    for threshold, decision in THRESHOLDS:
        if score >= threshold:
            return decision
    return Decision.PASS
