# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for license information.

"""
Tests for notifications.py module in the agent_guard package.
"""

import unittest
from unittest.mock import Mock, patch

import requests

from agent_guard.approval import ApprovalRegistry
from agent_guard.constants import NOTIFIER_TIMEOUT_SECONDS, ApprovalStatus, Decision
from agent_guard.ledger import ActionLedger
from agent_guard.notifications import (
    NotificationDispatcher,
    Notifier,
    NullNotifier,
    TelegramNotifier,
    TelegramPoller,
    approval_buttons,
    escape_markdown,
    format_approval_request,
    format_resolution_message,
    parse_callback_data
)

from helpers import make_entry

MESSAGE_REF = {"chat_id": 99, "message_id": 42}


def telegram_response(result, ok=True):
    response = Mock()
    response.raise_for_status = Mock()
    response.json.return_value = {"ok": ok, "result": result, "description": "Bad Request"}
    return response


def mock_notifier():
    notifier = Mock(spec=Notifier)
    notifier.configured = True
    notifier.name = "telegram"
    notifier.send_message.return_value = dict(MESSAGE_REF)
    return notifier


class TestTelegramNotifier(unittest.TestCase):
    """Test the Telegram Bot API calls."""

    def setUp(self):
        self.notifier = TelegramNotifier("123:secret-token", "99")

    @patch('requests.post')
    def test_send_message_with_buttons(self, mock_post):
        mock_post.return_value = telegram_response({"message_id": 42, "chat": {"id": 99}})

        message_ref = self.notifier.send_message("hello", buttons=approval_buttons("ag_1"))

        self.assertEqual(message_ref, MESSAGE_REF)
        url = mock_post.call_args[0][0]
        payload = mock_post.call_args[1]['json']
        self.assertTrue(url.endswith("/bot123:secret-token/sendMessage"))
        self.assertEqual(mock_post.call_args[1]['timeout'], NOTIFIER_TIMEOUT_SECONDS)
        self.assertEqual(payload["chat_id"], "99")
        self.assertEqual(payload["parse_mode"], "Markdown")
        keyboard = payload["reply_markup"]["inline_keyboard"]
        self.assertEqual([button["callback_data"] for button in keyboard[0]], ["approve:ag_1", "deny:ag_1"])

    @patch('requests.post')
    def test_send_message_without_buttons(self, mock_post):
        mock_post.return_value = telegram_response({"message_id": 7, "chat": {"id": 99}})
        self.notifier.send_message("hello")
        self.assertNotIn("reply_markup", mock_post.call_args[1]['json'])

    @patch('requests.post')
    def test_timeout_is_not_raised(self, mock_post):
        mock_post.side_effect = requests.exceptions.Timeout("Request timed out")
        self.assertIsNone(self.notifier.send_message("hello"))

    @patch('agent_guard.notifications.logger')
    @patch('requests.post')
    def test_request_error_is_logged_without_token(self, mock_post, mock_logger):
        mock_post.side_effect = requests.exceptions.ConnectionError(
            "Max retries exceeded with url: /bot123:secret-token/sendMessage")

        self.assertFalse(self.notifier.answer_callback("cb-1", "done"))

        mock_logger.error.assert_called_once()
        logged = " ".join(str(arg) for arg in mock_logger.error.call_args[0])
        self.assertNotIn("secret-token", logged)
        self.assertIn("<token>", logged)

    @patch('requests.post')
    def test_rejected_call(self, mock_post):
        mock_post.return_value = telegram_response(None, ok=False)
        self.assertFalse(self.notifier.edit_message(MESSAGE_REF, "text"))

    @patch('requests.post')
    def test_edit_and_answer_payloads(self, mock_post):
        mock_post.return_value = telegram_response(True)

        self.assertTrue(self.notifier.edit_message(MESSAGE_REF, "updated"))
        self.assertEqual(mock_post.call_args[1]['json']["message_id"], 42)
        self.assertTrue(mock_post.call_args[0][0].endswith("/editMessageText"))

        self.assertTrue(self.notifier.answer_callback("cb-1", "✅ Approved"))
        self.assertEqual(mock_post.call_args[1]['json'], {"callback_query_id": "cb-1", "text": "✅ Approved"})

    @patch('requests.post')
    def test_get_updates(self, mock_post):
        mock_post.return_value = telegram_response([{"update_id": 1}])
        self.assertEqual(self.notifier.get_updates(offset=1, timeout=5), [{"update_id": 1}])
        self.assertEqual(mock_post.call_args[1]['json']["offset"], 1)
        self.assertEqual(mock_post.call_args[1]['timeout'], 5 + NOTIFIER_TIMEOUT_SECONDS)

        mock_post.side_effect = requests.exceptions.ConnectionError("down")
        self.assertIsNone(self.notifier.get_updates())

    def test_null_notifier(self):
        notifier = NullNotifier()
        self.assertFalse(notifier.configured)
        self.assertIsNone(notifier.send_message("hello"))
        self.assertFalse(notifier.edit_message(MESSAGE_REF, "x"))
        self.assertFalse(notifier.answer_callback("cb", "x"))


class TestFormatting(unittest.TestCase):
    """Test message formatting helpers."""

    def test_parse_callback_data(self):
        self.assertEqual(parse_callback_data("approve:ag_1"), (ApprovalStatus.APPROVED, "ag_1"))
        self.assertEqual(parse_callback_data("deny:ag_1"), (ApprovalStatus.DENIED, "ag_1"))
        for data in (None, "", "approve", "approve:", "launch:ag_1"):
            with self.subTest(data=data):
                self.assertEqual(parse_callback_data(data), (None, None))

    def test_escape_markdown(self):
        self.assertEqual(escape_markdown("rm *_tmp_*"), "rm \\*\\_tmp\\_\\*")

    def test_approval_request_contents(self):
        entry = make_entry(description="send the newsletter", reversible=False, domain="communication")
        text = format_approval_request(entry)
        self.assertIn("Approval Required", text)
        self.assertIn("send the newsletter", text)
        self.assertIn("Domain: communication", text)
        self.assertIn("Risk score: 7/10", text)
        self.assertIn("Cannot be undone", text)


class TestNotificationDispatcher(unittest.TestCase):
    """Test routing of notifications and button taps."""

    def setUp(self):
        self.ledger = ActionLedger()
        self.registry = ApprovalRegistry(self.ledger)
        self.notifier = mock_notifier()
        self.dispatcher = NotificationDispatcher(self.notifier, self.registry)
        self.entry = make_entry()
        self.ledger.append(self.entry)
        self.registry.create(self.entry)

    def tap(self, data, callback_id="cb-1"):
        return {
            "update_id": 1,
            "callback_query": {
                "id": callback_id,
                "data": data,
                "message": {"message_id": 42, "chat": {"id": 99}},
            },
        }

    def test_notify_variants(self):
        self.dispatcher.notify(make_entry("ag_f", Decision.FLAG, score=5))
        self.assertIn("Action Flagged", self.notifier.send_message.call_args[0][0])

        self.dispatcher.notify(make_entry("ag_b", Decision.BLOCK, score=10))
        self.assertIn("Action Blocked", self.notifier.send_message.call_args[0][0])

        self.dispatcher.notify(self.entry)
        self.assertIn("Approval Required", self.notifier.send_message.call_args[0][0])
        self.assertEqual(self.notifier.send_message.call_args[1]["buttons"], approval_buttons("ag_1"))

        self.notifier.send_message.reset_mock()
        self.dispatcher.notify(make_entry("ag_p", Decision.PASS, score=1))
        self.notifier.send_message.assert_not_called()

    def test_approve_tap(self):
        self.dispatcher.notify(self.entry)
        self.dispatcher.handle_update(self.tap("approve:ag_1"))

        self.assertEqual(self.registry.get("ag_1").status, ApprovalStatus.APPROVED)
        self.notifier.answer_callback.assert_called_once_with("cb-1", "✅ Approved")
        ref, text = self.notifier.edit_message.call_args[0]
        self.assertEqual(ref, MESSAGE_REF)
        self.assertIn("Approved", text)

    def test_deny_tap(self):
        self.dispatcher.handle_update(self.tap("deny:ag_1"))
        self.assertEqual(self.registry.get("ag_1").status, ApprovalStatus.DENIED)
        self.notifier.answer_callback.assert_called_once_with("cb-1", "🚫 Denied")
        self.assertIn("Denied", self.notifier.edit_message.call_args[0][1])

    def test_duplicate_tap_reports_existing_status(self):
        self.dispatcher.handle_update(self.tap("approve:ag_1", "cb-1"))
        self.dispatcher.handle_update(self.tap("deny:ag_1", "cb-2"))

        self.assertEqual(self.registry.get("ag_1").status, ApprovalStatus.APPROVED)
        self.notifier.answer_callback.assert_called_with("cb-2", "Already approved.")
        self.assertEqual(self.notifier.edit_message.call_count, 1)

    def test_unknown_id(self):
        self.dispatcher.handle_update(self.tap("approve:ag_missing"))
        self.notifier.answer_callback.assert_called_once_with("cb-1", "This approval has expired.")
        self.assertEqual(len(self.registry), 1)

    def test_malformed_data(self):
        self.dispatcher.handle_update(self.tap("launch:ag_1"))
        self.notifier.answer_callback.assert_called_once_with("cb-1", "Unknown action.")
        self.assertEqual(self.registry.get("ag_1").status, ApprovalStatus.PENDING)

    def test_non_callback_update_is_ignored(self):
        self.dispatcher.handle_update({"update_id": 3, "message": {"text": "hi"}})
        self.notifier.answer_callback.assert_not_called()

    def test_resolution_from_another_path_edits_message(self):
        self.dispatcher.notify(self.entry)
        result = self.registry.resolve("ag_1", ApprovalStatus.DENIED, via="api")

        self.dispatcher.notify_resolution(result.record)
        self.notifier.edit_message.assert_called_once_with(MESSAGE_REF, format_resolution_message(result.record))

        self.dispatcher.notify_resolution(result.record)
        self.assertEqual(self.notifier.edit_message.call_count, 1)

    def test_request_sent_after_resolution_is_edited_at_once(self):
        self.registry.resolve("ag_1", ApprovalStatus.APPROVED)
        self.dispatcher.send_approval_request(self.entry)
        self.notifier.edit_message.assert_called_once()
        self.assertIn("Approved", self.notifier.edit_message.call_args[0][1])

    def test_failed_send_keeps_approval_pending(self):
        self.notifier.send_message.return_value = None
        self.assertIsNone(self.dispatcher.send_approval_request(self.entry))
        self.assertEqual(self.registry.get("ag_1").status, ApprovalStatus.PENDING)


class TestTelegramPoller(unittest.TestCase):
    """Test a single polling round."""

    def test_poll_once_advances_offset(self):
        notifier = Mock(spec=TelegramNotifier)
        notifier.get_updates.return_value = [{"update_id": 5}, {"update_id": 6}]
        handler = Mock(side_effect=[RuntimeError("boom"), None])
        poller = TelegramPoller(notifier, handler)

        self.assertTrue(poller.poll_once())
        self.assertEqual(handler.call_count, 2)
        self.assertEqual(poller.offset, 7)

        notifier.get_updates.return_value = None
        self.assertFalse(poller.poll_once())
        notifier.get_updates.assert_called_with(7, poller.poll_timeout)

    def test_stop(self):
        poller = TelegramPoller(Mock(spec=TelegramNotifier), Mock())
        self.assertFalse(poller.stopped)
        poller.stop()
        self.assertTrue(poller.stopped)


if __name__ == '__main__':
    unittest.main()
