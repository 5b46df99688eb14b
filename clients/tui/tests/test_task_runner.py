import queue
import unittest
from datetime import datetime

from helpers.fake_slack import FakeGateway
from slack_tui.catalogs import Presence
from slack_tui.records import Channel, Identity, RawMessage, Session
from slack_tui.slack_gateway import GatewayError
from slack_tui.task_runner import TaskRunner, execute
from slack_tui.tui_model import (
    AuthFailed,
    Authenticate,
    AuthSucceeded,
    FetchFailed,
    FetchMessages,
    MessagePosted,
    MessagesFetched,
    PostFailed,
    PostMessage,
    PresenceFailed,
    PresenceSet,
    SetPresence,
)

SESSION = Session(token="xoxb-test", user_id="U1")


def _channels(count):
    return [Channel(f"C{i}", f"chan{i}") for i in range(1, count + 1)]


def _history(channel_id, count):
    # newest first, like the service returns it
    return [RawMessage("U2", f"{channel_id}-{n}", f"{1700000000 + n}.000100") for n in range(count, 0, -1)]


class ExecuteTests(unittest.IsolatedAsyncioTestCase):
    async def test_authenticate_loads_identity_and_channels(self):
        gateway = FakeGateway(channels=[Channel("C1", "general")])
        event = await execute(gateway, Authenticate("xoxb-test"))

        self.assertIsInstance(event, AuthSucceeded)
        self.assertEqual(event.identity, Identity("U1", "alice"))
        self.assertEqual(event.channels, (Channel("C1", "general"),))
        self.assertEqual([name for name, _ in gateway.calls], ["authenticate", "list_channels"])

    async def test_authenticate_failure_becomes_event(self):
        gateway = FakeGateway(failures={"list_channels": "missing_scope"})
        event = await execute(gateway, Authenticate("xoxb-test"))
        self.assertEqual(event, AuthFailed("missing_scope"))

    async def test_aggregate_fetch_caps_channels_and_keeps_channel_order(self):
        channels = _channels(7)
        history = {ch.id: _history(ch.id, 5) for ch in channels}
        gateway = FakeGateway(channels=channels, history=history, names={"U2": "bob"})

        event = await execute(gateway, FetchMessages(SESSION, tuple(channels)))

        self.assertIsInstance(event, MessagesFetched)
        texts = [m.text for m in event.messages]
        # the service returns the newest three (5, 4, 3); they are shown oldest first
        expected = []
        for ch in channels[:5]:
            expected.extend([f"{ch.id}-3", f"{ch.id}-4", f"{ch.id}-5"])
        self.assertEqual(texts, expected)
        history_calls = [args for name, args in gateway.calls if name == "list_recent_messages"]
        self.assertEqual(history_calls, [(ch.id, 3) for ch in channels[:5]])
        self.assertEqual(event.messages[0].channel_name, "chan1")
        self.assertEqual(event.messages[0].author, "bob")

    async def test_aggregate_fetch_does_not_sort_across_channels(self):
        channels = [Channel("C1", "late"), Channel("C2", "early")]
        history = {
            "C1": [RawMessage("U2", "late", "1700009000.000000")],
            "C2": [RawMessage("U2", "early", "1600000000.000000")],
        }
        gateway = FakeGateway(channels=channels, history=history, names={"U2": "bob"})
        event = await execute(gateway, FetchMessages(SESSION, tuple(channels)))
        self.assertEqual([m.text for m in event.messages], ["late", "early"])

    async def test_selected_channel_fetch(self):
        channels = _channels(2)
        gateway = FakeGateway(channels=channels, history={"C2": _history("C2", 12)}, names={"U2": "bob"})

        event = await execute(gateway, FetchMessages(SESSION, tuple(channels), channel_id="C2"))

        self.assertEqual(len(event.messages), 10)
        self.assertEqual(event.messages[-1].text, "C2-12")
        self.assertEqual({m.channel_name for m in event.messages}, {"chan2"})
        self.assertEqual(event.messages[-1].timestamp, datetime.fromtimestamp(1700000012))

    async def test_unknown_authors(self):
        history = {"C1": [RawMessage("", "bot says hi", "1.0"), RawMessage("U404", "ghost", "2.0")]}
        gateway = FakeGateway(channels=_channels(1), history=history)
        event = await execute(gateway, FetchMessages(SESSION, tuple(_channels(1))))
        self.assertEqual([m.author for m in event.messages], ["Unknown User", "Unknown User"])
        self.assertNotIn(("resolve_display_name", ("",)), gateway.calls)

    async def test_partial_fetch_failure_discards_results(self):
        channels = _channels(3)
        history = {ch.id: _history(ch.id, 1) for ch in channels}
        gateway = FakeGateway(
            channels=channels,
            history=history,
            names={"U2": "bob"},
            failures={"history:C2": "ratelimited"},
        )
        event = await execute(gateway, FetchMessages(SESSION, tuple(channels)))
        self.assertEqual(event, FetchFailed("ratelimited"))

    async def test_fetch_results_carry_request_id(self):
        channels = _channels(2)
        gateway = FakeGateway(channels=channels, failures={"history:C2": "channel_not_found"})

        fetched = await execute(gateway, FetchMessages(SESSION, tuple(channels), channel_id="C1", request_id=7))
        failed = await execute(gateway, FetchMessages(SESSION, tuple(channels), channel_id="C2", request_id=8))

        self.assertEqual(fetched, MessagesFetched((), request_id=7))
        self.assertEqual(failed, FetchFailed("channel_not_found", request_id=8))

    async def test_set_presence(self):
        gateway = FakeGateway()
        self.assertEqual(await execute(gateway, SetPresence(SESSION, Presence.DND)), PresenceSet(Presence.DND))
        gateway.failures["set_presence"] = "invalid_presence"
        self.assertEqual(
            await execute(gateway, SetPresence(SESSION, Presence.AWAY)),
            PresenceFailed("invalid_presence"),
        )

    async def test_post_message(self):
        gateway = FakeGateway()
        event = await execute(gateway, PostMessage(SESSION, "C1", "hello"))
        self.assertEqual(event, MessagePosted("C1", "1700000000.000100"))
        gateway.failures["post_message"] = "rate limited"
        self.assertEqual(await execute(gateway, PostMessage(SESSION, "C1", "hello")), PostFailed("rate limited"))

    async def test_unexpected_exception_is_contained(self):
        class BrokenGateway(FakeGateway):
            async def post_message(self, session, channel_id, text):
                raise RuntimeError("socket exploded")

        with self.assertLogs("slack_tui.task_runner", level="ERROR"):
            event = await execute(BrokenGateway(), PostMessage(SESSION, "C1", "hello"))
        self.assertEqual(event, PostFailed("socket exploded"))


class TaskRunnerTests(unittest.TestCase):
    def test_results_are_delivered_to_sink(self):
        events = queue.Queue()
        gateway = FakeGateway(channels=[Channel("C1", "general")])
        runner = TaskRunner(gateway, events.put)
        try:
            future = runner.submit(Authenticate("xoxb-test"))
            returned = future.result(timeout=5)
            delivered = events.get(timeout=5)
        finally:
            runner.close()

        self.assertIsInstance(delivered, AuthSucceeded)
        self.assertEqual(returned, delivered)
        self.assertTrue(gateway.closed)
        self.assertEqual(runner.pending(), 0)

    def test_failures_are_events_not_exceptions(self):
        events = queue.Queue()
        runner = TaskRunner(FakeGateway(failures={"authenticate": "invalid_auth"}), events.put)
        try:
            runner.submit(Authenticate("xoxb-bad")).result(timeout=5)
            delivered = events.get(timeout=5)
        finally:
            runner.close()
        self.assertEqual(delivered, AuthFailed("invalid_auth"))

    def test_close_without_start(self):
        gateway = FakeGateway()
        runner = TaskRunner(gateway, lambda event: None)
        runner.close()
        self.assertFalse(gateway.closed)


class GatewayErrorTests(unittest.TestCase):
    def test_message_is_user_facing(self):
        self.assertEqual(str(GatewayError("rate limited")), "rate limited")


if __name__ == "__main__":
    unittest.main()
