import unittest
from datetime import datetime, timedelta
from unittest.mock import patch

from core.chat_service import chat
from core.conversation_service import create_conversation, find_conversation
from core.errors import CharacterNotFound, QuotaExceeded, Unauthorized, UpstreamGatewayFailure
from core.models.user import User
from tests.fixtures import new_session, make_user, make_character


class ChatFlowTestCase(unittest.TestCase):
    def setUp(self):
        self.session = new_session()
        self.user = make_user(self.session, used=0)
        self.character = make_character(self.session, self.user.id)
        self.conversation = create_conversation(self.session, self.user.id, self.character.id, "Moonlight")

    def tearDown(self):
        self.session.close()

    def _used(self, user_id):
        self.session.expire_all()
        return self.session.query(User).filter(User.id == user_id).first().daily_ai_conversations_used

    def _messages(self, conversation_id):
        self.session.expire_all()
        return list(find_conversation(self.session, conversation_id).messages or [])

    def test_chat_returns_reply_and_records_exchange(self):
        result = chat(self.session, self.user.id, self.conversation.id, self.character.id, "hello", [])

        self.assertEqual(result["response"], "[Luna] hello")
        self.assertEqual(result["conversation_id"], self.conversation.id)
        self.assertEqual(result["daily_ai"]["used"], 1)
        self.assertEqual(self._used(self.user.id), 1)
        messages = self._messages(self.conversation.id)
        self.assertEqual([m["role"] for m in messages], ["user", "assistant"])
        self.assertEqual(messages[0]["content"], "hello")
        self.assertEqual(messages[1]["content"], "[Luna] hello")

    def test_history_is_forwarded_to_gateway(self):
        history = [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hey there"},
        ]
        with patch("core.ai_gateway.generate_text", return_value="ok") as mocked:
            chat(self.session, self.user.id, self.conversation.id, self.character.id, "how are you", history)
        system_prompt, messages = mocked.call_args[0]
        self.assertTrue(system_prompt.startswith("You are Luna."))
        self.assertEqual(messages[-1], {"role": "user", "content": "how are you"})
        self.assertEqual(messages[:2], history)

    def test_gateway_failure_commits_nothing(self):
        with patch("core.ai_gateway.generate_text", side_effect=UpstreamGatewayFailure("boom")):
            with self.assertRaises(UpstreamGatewayFailure):
                chat(self.session, self.user.id, self.conversation.id, self.character.id, "hello", [])
        self.assertEqual(self._used(self.user.id), 0)
        self.assertEqual(self._messages(self.conversation.id), [])

    def test_quota_exceeded_skips_gateway(self):
        user = make_user(self.session, used=5, reset_at=datetime.now() - timedelta(minutes=5))
        conversation = create_conversation(self.session, user.id, self.character.id, "Blocked")
        with patch("core.ai_gateway.generate_text") as mocked:
            with self.assertRaises(QuotaExceeded):
                chat(self.session, user.id, conversation.id, self.character.id, "hello", [])
        mocked.assert_not_called()
        self.assertEqual(self._used(user.id), 5)
        self.assertEqual(self._messages(conversation.id), [])

    def test_expired_window_allows_chat_again(self):
        user = make_user(self.session, used=5, reset_at=datetime.now() - timedelta(hours=25))
        result = chat(self.session, user.id, "no-such-conversation", self.character.id, "hello", [])
        self.assertEqual(result["daily_ai"]["used"], 1)
        self.assertEqual(self._used(user.id), 1)

    def test_premium_user_has_no_limit(self):
        user = make_user(self.session, is_premium=True, used=50)
        chat(self.session, user.id, "no-such-conversation", self.character.id, "hello", [])
        self.assertEqual(self._used(user.id), 50)

    def test_foreign_conversation_is_rejected(self):
        other = make_user(self.session)
        with patch("core.ai_gateway.generate_text") as mocked:
            with self.assertRaises(Unauthorized):
                chat(self.session, other.id, self.conversation.id, self.character.id, "hello", [])
        mocked.assert_not_called()
        self.assertEqual(self._used(other.id), 0)
        self.assertEqual(self._messages(self.conversation.id), [])

    def test_missing_character(self):
        with self.assertRaises(CharacterNotFound):
            chat(self.session, self.user.id, self.conversation.id, "missing", "hello", [])
        self.assertEqual(self._used(self.user.id), 0)

    def test_sixth_chat_in_window_is_denied(self):
        for i in range(5):
            chat(self.session, self.user.id, self.conversation.id, self.character.id, f"msg {i}", [])
        with self.assertRaises(QuotaExceeded):
            chat(self.session, self.user.id, self.conversation.id, self.character.id, "one more", [])
        self.assertEqual(self._used(self.user.id), 5)
        self.assertEqual(len(self._messages(self.conversation.id)), 10)


if __name__ == "__main__":
    unittest.main()
