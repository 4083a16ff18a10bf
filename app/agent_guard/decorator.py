# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Decorator for guarding sensitive agent actions.

This module provides a decorator that reports a function call to the gateway
before it runs and only lets it run when the gateway allows it, waiting for a
human decision when the gateway asks for one.
"""

import functools
import inspect
import json
import logging
from typing import Any, Callable, Dict, Optional, cast

from .client import DEFAULT_MAX_WAIT_SECONDS, DEFAULT_POLL_INTERVAL_SECONDS, GatewayClient
from .constants import DEFAULT_REFUSAL_VALUE, ApprovalStatus, Decision
from .exceptions import AgentGuardError
from .types import F, Parameters

# Configure logger
logger = logging.getLogger(__name__)


def create_serializable_parameters(arguments: Dict[str, Any]) -> Parameters:
    """
    Create a dictionary of serializable parameters from function arguments.

    Converts non-serializable objects to string representations to ensure
    the parameters can be safely serialized to JSON.

    Args:
        arguments: Function arguments keyed by parameter name

    Returns:
        Dictionary with serializable values
    """
    parameters = {}
    for name, value in arguments.items():
        try:
            json.dumps({name: value})
            parameters[name] = value
        except (TypeError, OverflowError, ValueError):
            parameters[name] = f"<unserializable: {type(value).__name__}>"
    return parameters


def bind_parameters(func: Callable, args: Any, kwargs: Any) -> Parameters:
    """Map positional and keyword arguments to their parameter names."""
    param_names = list(inspect.signature(func).parameters.keys())
    arguments: Dict[str, Any] = {}
    for i, arg in enumerate(args):
        if i < len(param_names):
            arguments[param_names[i]] = arg
        else:
            arguments[f"arg{i}"] = arg
    arguments.update(kwargs)
    return create_serializable_parameters(arguments)


def execute_function_with_logging(func: Callable, args: Any, kwargs: Any, action_id: str) -> Any:
    """
    Execute the function and log the result.

    Raises:
        Exception: Any exception raised by the function
    """
    try:
        result = func(*args, **kwargs)
        logger.info("Guarded action executed (ID: %s).", action_id)
        return result

    except Exception as exception:
        logger.error("Error during guarded action execution (ID: %s): %s", action_id, exception)
        raise


def guarded_action(
    name: str,
    description: str,
    domain: Optional[str] = None,
    reversible: Optional[bool] = None,
    client: Optional[GatewayClient] = None,
    refusal_return_value: Any = DEFAULT_REFUSAL_VALUE,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    max_wait: float = DEFAULT_MAX_WAIT_SECONDS
) -> Callable[[F], F]:
    """
    Decorator that reports a call to the gateway before running it.

    Pass and flag decisions run the function. Block returns the refusal value.
    Await polls the gateway until a human approves (run) or denies (refuse);
    an unanswered request is refused once ``max_wait`` has passed. When the
    gateway cannot be reached the call is refused as well.

    Args:
        name: Action name reported to the gateway
        description: Human-readable description of what the call does
        domain: Domain of the action's real-world effect
        reversible: Whether the action can be undone; omitted means reversible
        client: Gateway client; one for the configured URL is used when omitted
        refusal_return_value: Value to return when the action may not run

    Returns:
        Decorated function that only runs when the gateway allows it
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            gateway = client or GatewayClient()
            parameters = bind_parameters(func, args, kwargs)

            try:
                verdict = gateway.evaluate(name, description, parameters, reversible, domain)
                action_id = verdict["id"]
                decision = Decision(verdict["decision"])
                status = None
                if decision is Decision.AWAIT:
                    logger.info("Waiting for human approval (ID: %s)...", action_id)
                    status = gateway.wait_for_approval(action_id, poll_interval, max_wait)

            except AgentGuardError as exception:
                logger.error("AgentGuard check failed for %s, refusing: %s", name, exception)
                return refusal_return_value

            except (KeyError, TypeError, ValueError) as exception:
                logger.error("Malformed AgentGuard reply for %s, refusing: %s", name, exception)
                return refusal_return_value

            if decision in (Decision.PASS, Decision.FLAG):
                return execute_function_with_logging(func, args, kwargs, action_id)

            if decision is Decision.BLOCK:
                logger.warning("Action blocked by AgentGuard (ID: %s): %s", action_id, verdict.get("message"))
                return refusal_return_value

            if status is ApprovalStatus.APPROVED:
                logger.info("Approval received (ID: %s). Executing function...", action_id)
                return execute_function_with_logging(func, args, kwargs, action_id)

            logger.warning("Approval %s (ID: %s).", "denied" if status is ApprovalStatus.DENIED else "timed out", action_id)
            return refusal_return_value

        return cast(F, wrapper)
    return decorator
