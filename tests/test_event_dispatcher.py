# tests/test_event_dispatcher.py
import unittest
import sys
import os
import logging

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tumble_engine.domain.events.engine_events import EngineEvent, EngineEventType
from tumble_engine.domain.events.event_dispatcher import EventDispatcher
from tumble_engine.domain.events.event_types import DomainEvent, EventType

logging.basicConfig(level=logging.WARNING)


class TestEventDispatcher(unittest.TestCase):

    def setUp(self):
        self.dispatcher = EventDispatcher()

    def test_handlers_run_in_registration_order(self):
        calls = []
        self.dispatcher.register(EventType.GENERIC, lambda e: calls.append("first"))
        self.dispatcher.register(EventType.GENERIC, lambda e: calls.append("second"))

        self.dispatcher.dispatch(DomainEvent(EventType.GENERIC))

        self.assertEqual(calls, ["first", "second"])

    def test_only_matching_type_dispatched(self):
        calls = []
        self.dispatcher.register(EngineEventType.SPIN_STARTED, calls.append)
        self.dispatcher.dispatch(EngineEvent(EngineEventType.SPIN_COMPLETED))
        self.assertEqual(calls, [])

    def test_failing_handler_is_logged_and_skipped(self):
        calls = []

        def broken(event):
            raise RuntimeError("boom")

        self.dispatcher.register(EventType.GENERIC, broken)
        self.dispatcher.register(EventType.GENERIC, calls.append)

        with self.assertLogs("domain.events.dispatcher", level="ERROR") as captured:
            self.dispatcher.dispatch(DomainEvent(EventType.GENERIC))

        self.assertEqual(len(calls), 1)
        self.assertIn("boom", captured.output[0])

    def test_unregister(self):
        calls = []
        self.dispatcher.register(EventType.GENERIC, calls.append)
        self.assertEqual(self.dispatcher.handler_count(EventType.GENERIC), 1)

        self.assertTrue(self.dispatcher.unregister(EventType.GENERIC, calls.append))
        self.assertFalse(self.dispatcher.unregister(EventType.GENERIC, calls.append))
        self.dispatcher.dispatch(DomainEvent(EventType.GENERIC))
        self.assertEqual(calls, [])

    def test_handler_may_unregister_itself_during_dispatch(self):
        calls = []

        def once(event):
            calls.append("once")
            self.dispatcher.unregister(EventType.GENERIC, once)

        self.dispatcher.register(EventType.GENERIC, once)
        self.dispatcher.register(EventType.GENERIC, lambda e: calls.append("always"))

        self.dispatcher.dispatch(DomainEvent(EventType.GENERIC))
        self.dispatcher.dispatch(DomainEvent(EventType.GENERIC))

        self.assertEqual(calls, ["once", "always", "always"])

    def test_clear(self):
        self.dispatcher.register(EventType.GENERIC, lambda e: None)
        self.dispatcher.clear()
        self.assertEqual(self.dispatcher.handler_count(EventType.GENERIC), 0)


class TestEngineEvent(unittest.TestCase):

    def test_engine_id_added_to_payload(self):
        event = EngineEvent(EngineEventType.BALANCE_UPDATED, data={"balance": 5.0}, engine_id="e1")
        self.assertEqual(event.data, {"balance": 5.0, "engine_id": "e1"})
        self.assertIsNotNone(event.timestamp)
        self.assertIn("BALANCE_UPDATED", str(event))

    def test_to_dict_lists_payload_keys(self):
        event = EngineEvent(EngineEventType.SPIN_STARTED, data={"bet": 1.0, "balance": 9.0}, engine_id="e2")
        header = event.to_dict()
        self.assertEqual(header["type"], "SPIN_STARTED")
        self.assertEqual(header["data_keys"], ["balance", "bet", "engine_id"])
        self.assertEqual(event.name, "SPIN_STARTED")

    def test_default_payload_not_shared(self):
        first = DomainEvent(EventType.GENERIC)
        second = DomainEvent(EventType.GENERIC)
        first.data["x"] = 1
        self.assertEqual(second.data, {})
        self.assertEqual(DomainEvent(EventType.GENERIC, data=None).data, {})


if __name__ == "__main__":
    unittest.main()
