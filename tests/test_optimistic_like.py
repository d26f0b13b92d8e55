import asyncio
import unittest

from client.optimistic import LikeableItem, LikeController, apply_toggle
from core.errors import RemoteToggleFailure


class ApplyToggleTestCase(unittest.TestCase):
    def test_like_and_unlike(self):
        item = LikeableItem(id="p1", likes_count=10, liked=False)
        liked = apply_toggle(item)
        self.assertEqual((liked.liked, liked.likes_count), (True, 11))
        self.assertEqual(apply_toggle(liked), item)

    def test_from_dict(self):
        item = LikeableItem.from_dict({"id": 7, "likes_count": None, "liked": 1})
        self.assertEqual(item, LikeableItem(id="7", likes_count=0, liked=True))


class LikeControllerTestCase(unittest.IsolatedAsyncioTestCase):
    def _controller(self, remote, **kwargs):
        controller = LikeController(remote, **kwargs)
        controller.hydrate([
            {"id": "p1", "likes_count": 10, "liked": False},
            {"id": "p2", "likes_count": 3, "liked": True},
        ])
        return controller

    async def test_local_state_changes_before_remote_completes(self):
        gate = asyncio.Event()

        async def remote(item_id):
            await gate.wait()
            return {"liked": True, "likes_count": 11}

        controller = self._controller(remote)
        task = controller.toggle_like("p1")
        self.assertEqual(controller.get("p1"), LikeableItem("p1", 11, True))
        self.assertTrue(controller.in_flight("p1"))
        gate.set()
        final = await task
        self.assertEqual(final, LikeableItem("p1", 11, True))
        self.assertFalse(controller.in_flight("p1"))

    async def test_failed_like_rolls_back(self):
        failures = []

        async def remote(item_id):
            raise ConnectionError("offline")

        controller = self._controller(remote, on_error=failures.append)
        final = await controller.toggle_like("p1")
        self.assertEqual(final, LikeableItem("p1", 10, False))
        self.assertEqual(len(failures), 1)
        self.assertIsInstance(failures[0], RemoteToggleFailure)
        self.assertEqual(failures[0].item_id, "p1")
        self.assertIsInstance(failures[0].cause, ConnectionError)

    async def test_failed_unlike_rolls_back(self):
        async def remote(item_id):
            raise RuntimeError("500")

        controller = self._controller(remote)
        final = await controller.toggle_like("p2")
        self.assertEqual(final, LikeableItem("p2", 3, True))

    async def test_sync_remote_runs_in_thread(self):
        calls = []

        def remote(item_id):
            calls.append(item_id)
            return {"liked": True, "likes_count": 11}

        controller = self._controller(remote)
        await controller.toggle_like("p1")
        self.assertEqual(calls, ["p1"])
        self.assertEqual(controller.get("p1"), LikeableItem("p1", 11, True))

    async def test_reconcile_adopts_server_state(self):
        async def remote(item_id):
            return {"post_id": item_id, "liked": True, "likes_count": 42}

        plain = self._controller(remote)
        await plain.toggle_like("p1")
        self.assertEqual(plain.get("p1").likes_count, 11)

        reconciled = self._controller(remote, reconcile=True)
        await reconciled.toggle_like("p1")
        self.assertEqual(reconciled.get("p1"), LikeableItem("p1", 42, True))

    async def test_listeners_only_see_consistent_states(self):
        seen = []

        async def remote(item_id):
            raise ConnectionError("offline")

        controller = self._controller(remote)
        unsubscribe = controller.subscribe(lambda item: seen.append((item.liked, item.likes_count)))
        await controller.toggle_like("p1")
        self.assertEqual(seen, [(True, 11), (False, 10)])

        unsubscribe()
        await controller.toggle_like("p1")
        self.assertEqual(len(seen), 2)

    async def test_listener_error_does_not_break_toggle(self):
        async def remote(item_id):
            return None

        controller = self._controller(remote)
        controller.subscribe(lambda item: 1 / 0)
        final = await controller.toggle_like("p1")
        self.assertTrue(final.liked)

    async def test_rapid_double_toggle_without_serialize(self):
        gates = [asyncio.Event(), asyncio.Event()]
        order = []

        async def remote(item_id):
            index = len(order)
            order.append(index)
            await gates[index].wait()
            if index == 0:
                raise ConnectionError("first failed")
            return None

        controller = self._controller(remote)
        first = controller.toggle_like("p1")
        second = controller.toggle_like("p1")
        self.assertEqual(controller.get("p1"), LikeableItem("p1", 10, False))

        gates[1].set()
        await second
        gates[0].set()
        await first
        # 第一次失败的回滚基于它自己应用的状态，不受第二次影响
        self.assertEqual(controller.get("p1"), LikeableItem("p1", 10, False))

    async def test_serialize_waits_for_previous_request(self):
        gate = asyncio.Event()
        calls = []

        async def remote(item_id):
            calls.append(item_id)
            if len(calls) == 1:
                await gate.wait()
            return None

        controller = self._controller(remote, serialize=True)
        first = controller.toggle_like("p1")
        await asyncio.sleep(0)
        second = controller.toggle_like("p1")
        await asyncio.sleep(0)
        self.assertEqual(calls, ["p1"])
        self.assertEqual(controller.get("p1"), LikeableItem("p1", 11, True))

        gate.set()
        await first
        final = await second
        self.assertEqual(calls, ["p1", "p1"])
        self.assertEqual(final, LikeableItem("p1", 10, False))

    async def test_serialize_after_failure_starts_from_rolled_back_state(self):
        calls = []

        async def remote(item_id):
            calls.append(item_id)
            if len(calls) == 1:
                raise ConnectionError("offline")
            return None

        controller = self._controller(remote, serialize=True)
        first = controller.toggle_like("p1")
        second = controller.toggle_like("p1")
        await first
        final = await second
        self.assertEqual(final, LikeableItem("p1", 11, True))

    async def test_items_are_independent(self):
        async def remote(item_id):
            if item_id == "p2":
                raise ConnectionError("offline")
            return None

        controller = self._controller(remote)
        await asyncio.gather(controller.toggle_like("p1"), controller.toggle_like("p2"))
        self.assertEqual(controller.get("p1"), LikeableItem("p1", 11, True))
        self.assertEqual(controller.get("p2"), LikeableItem("p2", 3, True))


if __name__ == "__main__":
    unittest.main()
