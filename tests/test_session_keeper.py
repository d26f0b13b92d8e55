import asyncio
import unittest
from unittest.mock import MagicMock

from client.api_client import ApiClient
from client.session_keeper import SessionKeeper


class _FakeClient(ApiClient):
    def __init__(self, responses):
        super().__init__("http://localhost:8001", token="initial", session=MagicMock())
        self.responses = list(responses)
        self.calls = 0
        self.last = {"user": None, "session": None}

    def get_session(self):
        self.calls += 1
        # 用完后重复最后一个结果
        value = self.responses.pop(0) if self.responses else self.last
        if not self.responses and not isinstance(value, Exception):
            self.last = value
        if isinstance(value, Exception):
            raise value
        return value


def _session(token, user_id="u1"):
    return {"user": {"id": user_id, "email": "a@example.com"}, "session": {"token": token}}


class SessionKeeperTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_refresh_now_rotates_token(self):
        client = _FakeClient([_session("rotated")])
        seen = []
        keeper = SessionKeeper(client, interval=60, on_user=seen.append)
        user = await keeper.refresh_now()
        self.assertEqual(user["id"], "u1")
        self.assertEqual(client.token, "rotated")
        self.assertEqual(seen, [user])

    async def test_missing_session_clears_token(self):
        client = _FakeClient([{"user": None, "session": None}])
        keeper = SessionKeeper(client, interval=60)
        self.assertIsNone(await keeper.refresh_now())
        self.assertFalse(client.is_authenticated)

    async def test_start_refreshes_immediately_and_stop_cancels(self):
        client = _FakeClient([_session("t1")])
        keeper = SessionKeeper(client, interval=60)
        task = keeper.start()
        self.assertIs(keeper.start(), task)
        await asyncio.sleep(0.05)
        self.assertEqual(client.calls, 1)
        self.assertEqual(client.token, "t1")
        await keeper.stop()
        self.assertFalse(keeper.running)
        self.assertTrue(task.cancelled())

    async def test_periodic_refresh_survives_errors(self):
        client = _FakeClient([_session("t1"), RuntimeError("network down"), _session("t3")])
        keeper = SessionKeeper(client, interval=0.01)
        async with keeper:
            for _ in range(100):
                if client.calls >= 3:
                    break
                await asyncio.sleep(0.01)
        self.assertGreaterEqual(client.calls, 3)
        self.assertEqual(client.token, "t3")
        self.assertFalse(keeper.running)

    async def test_stop_without_start(self):
        keeper = SessionKeeper(_FakeClient([]), interval=60)
        await keeper.stop()
        self.assertFalse(keeper.running)

    def test_default_interval_from_config(self):
        keeper = SessionKeeper(_FakeClient([]))
        self.assertEqual(keeper.interval, 300)


if __name__ == "__main__":
    unittest.main()
