# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Tests for logging_utils.py module in the agent_guard package.
"""

import json
import logging
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from agent_guard.constants import Decision
from agent_guard.logging_utils import (configure_logging, create_action_event, create_resolution_event,
                                       get_current_timestamp, log_action_event)

from helpers import TIMESTAMP, make_entry


class TestLoggingUtils(unittest.TestCase):
    """Test logging utility functions."""

    @patch('agent_guard.logging_utils.logger')
    def test_log_action_event(self, mock_logger):
        """Test logging of action events."""
        event_data = {"Id": "ag_1", "Decision": "block", "RiskScore": 10}

        log_action_event(event_data)

        mock_logger.info.assert_called_once_with("Action Event: %s", json.dumps(event_data))

    def test_create_action_event(self):
        entry = make_entry(decision=Decision.FLAG, score=5)

        event = create_action_event(entry)

        self.assertEqual(event["Id"], "ag_1")
        self.assertEqual(event["Action"], "deploy")
        self.assertEqual(event["Decision"], "flag")
        self.assertEqual(event["RiskScore"], 5)
        self.assertEqual(event["Outcome"], "pending")
        self.assertEqual(event["Timestamp"], TIMESTAMP)
        self.assertEqual(event["Description"], "deploy the build")

    @patch('agent_guard.logging_utils.get_current_timestamp', return_value=TIMESTAMP)
    def test_create_resolution_event(self, _mock_timestamp):
        event = create_resolution_event("ag_1", "approved", "telegram")
        self.assertEqual(event, {"Id": "ag_1", "Status": "approved", "Via": "telegram", "Timestamp": TIMESTAMP})

    @patch('agent_guard.logging_utils.datetime')
    def test_get_current_timestamp(self, mock_datetime):
        """Test timestamp generation."""
        test_dt = datetime(2025, 4, 13, 12, 0, 0, tzinfo=timezone.utc)
        mock_datetime.now.return_value = test_dt

        timestamp = get_current_timestamp()

        mock_datetime.now.assert_called_once_with(timezone.utc)
        self.assertEqual(timestamp, test_dt.isoformat())

    def test_configure_logging_adds_one_handler(self):
        package_logger = logging.getLogger("agent_guard")
        saved = list(package_logger.handlers)
        package_logger.handlers = []
        try:
            configure_logging()
            configure_logging()
            self.assertEqual(len(package_logger.handlers), 1)
        finally:
            package_logger.handlers = saved


if __name__ == '__main__':
    unittest.main()
