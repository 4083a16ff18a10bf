# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Risk scoring for reported agent actions.

The scorer is linear and explainable: every point added to the score comes
with a human-readable factor, so an approver can see why a score was given.
Pattern families are kept as a rule table so they can be tested and extended
without touching the scoring loop.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Pattern, Tuple

from .constants import Domain
from .exceptions import InvalidActionError
from .types import Parameters

BASE_SCORE = 1
IRREVERSIBLE_WEIGHT = 3
MIN_SCORE = 1
MAX_SCORE = 10

IRREVERSIBLE_FACTOR = "Action cannot be undone"

DOMAIN_WEIGHTS: Dict[Domain, int] = {
    Domain.FINANCE: 4,
    Domain.HEALTHCARE: 3,
    Domain.AUTHENTICATION: 3,
    Domain.FILESYSTEM: 2,
    Domain.COMMUNICATION: 2,
    Domain.WEB: 1,
    Domain.OTHER: 0,
}


@dataclass(frozen=True)
class RiskRule:
    """A lexical pattern family with its weight and explanation."""
    name: str
    pattern: Pattern[str]
    weight: int
    factor: str

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


# Evaluation order is the order of factors in an assessment.
PATTERN_RULES: Tuple[RiskRule, ...] = (
    RiskRule("destructive", re.compile(r"delete|remove|destroy|wipe|purge"), 2,
             "Destructive action detected"),
    RiskRule("financial", re.compile(r"payment|transfer|charge|pay|invoice|bank"), 2,
             "Financial action detected"),
    RiskRule("communication", re.compile(r"send|publish|post|broadcast|email|message"), 1,
             "External communication detected"),
    RiskRule("credential", re.compile(r"password|secret|token|credential|key"), 2,
             "Credential handling detected"),
)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


@dataclass(frozen=True)
class ActionDescriptor:
    """An action reported by the agent before it runs. Immutable once received."""
    name: str
    description: str
    parameters: Parameters = field(default_factory=dict)
    reversible: Optional[bool] = None
    domain: Optional[str] = None

    @property
    def is_irreversible(self) -> bool:
        # Omitted means reversible; only an explicit False counts.
        return self.reversible is False

    @property
    def resolved_domain(self) -> Domain:
        return Domain.resolve(self.domain)

    def searchable_text(self) -> str:
        """Lowercased name and description; parameters are never scanned."""
        return f"{_as_text(self.name)} {_as_text(self.description)}".lower()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ActionDescriptor":
        """
        Build a descriptor from a JSON request body.

        Accepts ``name`` or the legacy ``action`` key for the action name.

        Raises:
            InvalidActionError: If the name or the description is missing or blank
        """
        name = payload.get("name") or payload.get("action")
        description = payload.get("description")
        if not isinstance(name, str) or not name.strip():
            raise InvalidActionError()
        if not isinstance(description, str) or not description.strip():
            raise InvalidActionError()

        parameters = payload.get("parameters")
        reversible = payload.get("reversible")
        domain = payload.get("domain")
        return cls(
            name=name,
            description=description,
            parameters=dict(parameters) if isinstance(parameters, Mapping) else {},
            reversible=reversible if isinstance(reversible, bool) else None,
            domain=domain if isinstance(domain, str) else None,
        )


@dataclass(frozen=True)
class RiskAssessment:
    """Score in [1, 10] plus the ordered factors that produced it."""
    score: int
    factors: Tuple[str, ...] = ()

    def factor_list(self) -> List[str]:
        return list(self.factors)


def score_risk(action: ActionDescriptor) -> RiskAssessment:
    """
    Score the risk of an action on a scale of 1-10.

    Combines reversibility, domain sensitivity and lexical patterns found in
    the action name and description. Never fails: unknown domains and missing
    fields simply contribute nothing.

    Args:
        action: The reported action

    Returns:
        RiskAssessment with the clamped score and the contributing factors
    """
    score = BASE_SCORE
    factors: List[str] = []

    if action.is_irreversible:
        score += IRREVERSIBLE_WEIGHT
        factors.append(IRREVERSIBLE_FACTOR)

    domain = action.resolved_domain
    domain_weight = DOMAIN_WEIGHTS.get(domain, 0)
    if domain_weight > 0:
        score += domain_weight
        factors.append(f"Sensitive domain: {domain.value}")

    text = action.searchable_text()
    for rule in PATTERN_RULES:
        if rule.matches(text):
            score += rule.weight
            factors.append(rule.factor)

    return RiskAssessment(score=max(MIN_SCORE, min(MAX_SCORE, score)), factors=tuple(factors))
