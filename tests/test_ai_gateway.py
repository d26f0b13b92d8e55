import json
import unittest
from unittest.mock import patch, MagicMock

import requests

from core import ai_gateway
from core.errors import UpstreamGatewayFailure

REAL_RUNTIME = {
    "base_url": "https://llm.example.com/v1",
    "model_name": "demo-model",
    "image_model": "demo-image",
    "api_key": "sk-test-1234567890",
    "temperature": 70,
    "timeout": 5.0,
}


def _response(status_code=200, body=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text or json.dumps(body or {})
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    return resp


class MockProviderTestCase(unittest.TestCase):
    def test_mock_reply_uses_character_name_and_last_user_message(self):
        reply = ai_gateway.generate_text(
            "You are Captain Vale. A weary pilot.",
            [{"role": "user", "content": "first"}, {"role": "assistant", "content": "x"}, {"role": "user", "content": "second"}],
        )
        self.assertEqual(reply, "[Captain Vale] second")

    def test_mock_story_and_image(self):
        story = ai_gateway.generate_story("a lost key", "mystery")
        self.assertEqual(story["title"], "A mystery tale")
        self.assertIn("a lost key", story["content"])
        self.assertTrue(ai_gateway.generate_image("a cat", "anime").startswith("https://"))

    def test_provider_config_masks_key(self):
        with patch("core.ai_gateway.cfg.get", side_effect=lambda key, default=None: {
            "ai.provider.api_key": "sk-abcdefghijkl",
        }.get(key, default)):
            runtime = ai_gateway.provider_config()
        self.assertEqual(runtime["api_key"], "sk-a*******ijkl")


class RealProviderTestCase(unittest.TestCase):
    def setUp(self):
        patcher = patch("core.ai_gateway.provider_config", return_value=dict(REAL_RUNTIME))
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_chat_completion_success(self):
        body = {"choices": [{"message": {"content": "  Hello traveler.  "}}]}
        with patch("core.ai_gateway.requests.post", return_value=_response(body=body)) as post:
            reply = ai_gateway.generate_text("You are Luna.", [{"role": "user", "content": "hi"}])
        self.assertEqual(reply, "Hello traveler.")
        url = post.call_args[0][0]
        self.assertEqual(url, "https://llm.example.com/v1/chat/completions")
        payload = json.loads(post.call_args[1]["data"].decode("utf-8"))
        self.assertEqual(payload["messages"][0], {"role": "system", "content": "You are Luna."})
        self.assertEqual(payload["model"], "demo-model")
        self.assertAlmostEqual(payload["temperature"], 0.7)
        self.assertEqual(post.call_args[1]["headers"]["Authorization"], "Bearer sk-test-1234567890")

    def test_http_error_status(self):
        with patch("core.ai_gateway.requests.post", return_value=_response(status_code=503, body={"error": "busy"})):
            with self.assertRaises(UpstreamGatewayFailure) as ctx:
                ai_gateway.generate_text("You are Luna.", [])
        self.assertEqual(ctx.exception.status_code, 502)

    def test_network_error(self):
        with patch("core.ai_gateway.requests.post", side_effect=requests.ConnectionError("refused")):
            with self.assertRaises(UpstreamGatewayFailure):
                ai_gateway.generate_text("You are Luna.", [])

    def test_empty_choices(self):
        with patch("core.ai_gateway.requests.post", return_value=_response(body={"choices": []})):
            with self.assertRaises(UpstreamGatewayFailure):
                ai_gateway.generate_text("You are Luna.", [])

    def test_invalid_json_body(self):
        with patch("core.ai_gateway.requests.post", return_value=_response(body=None, text="<html>")):
            with self.assertRaises(UpstreamGatewayFailure):
                ai_gateway.generate_text("You are Luna.", [])

    def test_missing_api_key(self):
        runtime = dict(REAL_RUNTIME, api_key="")
        with patch("core.ai_gateway.provider_config", return_value=runtime):
            with patch("core.ai_gateway.requests.post") as post:
                with self.assertRaises(UpstreamGatewayFailure):
                    ai_gateway.generate_text("You are Luna.", [])
        post.assert_not_called()

    def test_story_parses_fenced_json(self):
        content = "Here you go:\n```json\n{\"title\": \"Ember\", \"description\": \"d\", \"content\": \"c\"}\n```"
        with patch("core.ai_gateway.generate_text", return_value=content) as gen:
            story = ai_gateway.generate_story("fire", "fantasy", [{"name": "Luna", "description": "witch"}])
        self.assertEqual(story, {"title": "Ember", "description": "d", "content": "c"})
        prompt = gen.call_args[0][1][0]["content"]
        self.assertIn("fantasy", prompt)
        self.assertIn("- Luna: witch", prompt)

    def test_story_malformed(self):
        with patch("core.ai_gateway.generate_text", return_value="no json here"):
            with self.assertRaises(UpstreamGatewayFailure):
                ai_gateway.generate_story("fire", "fantasy")

    def test_story_incomplete(self):
        with patch("core.ai_gateway.generate_text", return_value='{"title": "", "content": "c"}'):
            with self.assertRaises(UpstreamGatewayFailure):
                ai_gateway.generate_story("fire", "fantasy")

    def test_image_url_and_base64(self):
        with patch("core.ai_gateway.requests.post", return_value=_response(body={"data": [{"url": "https://img/1.png"}]})):
            self.assertEqual(ai_gateway.generate_image("cat", "anime"), "https://img/1.png")
        with patch("core.ai_gateway.requests.post", return_value=_response(body={"data": [{"b64_json": "QUJD"}]})):
            self.assertEqual(ai_gateway.generate_image("cat", "anime"), "data:image/png;base64,QUJD")
        with patch("core.ai_gateway.requests.post", return_value=_response(body={"data": []})):
            self.assertEqual(ai_gateway.generate_image("cat", "anime"), "")


if __name__ == "__main__":
    unittest.main()
