# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""Type definitions for the agent guard module."""

from typing import Any, Callable, Dict, List, Tuple, TypeVar

# Function type for the decorator
F = TypeVar('F', bound=Callable[..., Any])

# Type definitions for commonly used structures
ActionPayload = Dict[str, Any]
LogEvent = Dict[str, Any]
Parameters = Dict[str, Any]
MessageRef = Dict[str, Any]
Button = Tuple[str, str]
ButtonRow = List[Button]
TelegramUpdate = Dict[str, Any]
