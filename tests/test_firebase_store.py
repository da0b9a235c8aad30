import threading
from types import SimpleNamespace

import pytest

from modules.reports.firebase import FirebaseReportStore, apply_event
from modules.reports.models import Report
from modules.shared.errors import FetchError, SubmissionError


def test_put_at_root_replaces_collection():
    mirror = apply_event({"old": {}}, "put", "/", {"a": {"timestamp": 1}})
    assert mirror == {"a": {"timestamp": 1}}


def test_put_null_at_root_empties_collection():
    assert apply_event({"a": {"timestamp": 1}}, "put", "/", None) == {}


def test_put_child_adds_record_without_touching_others():
    mirror = apply_event({"a": {"timestamp": 1}}, "put", "/b", {"timestamp": 2})
    assert mirror == {"a": {"timestamp": 1}, "b": {"timestamp": 2}}


def test_put_nested_field_and_delete():
    mirror = apply_event({"a": {"type": "x", "location": "y"}}, "put", "/a/location", "z")
    assert mirror == {"a": {"type": "x", "location": "z"}}
    assert apply_event(mirror, "put", "/a", None) == {}


def test_patch_merges_children():
    mirror = apply_event({"a": {"type": "x"}}, "patch", "/", {"b": {"type": "y"}, "a/location": "l"})
    assert mirror == {"a": {"type": "x", "location": "l"}, "b": {"type": "y"}}


def test_apply_event_leaves_input_untouched():
    original = {"a": {"type": "x"}}
    apply_event(original, "put", "/a/type", "y")
    assert original == {"a": {"type": "x"}}


class FakeRegistration:
    def __init__(self):
        self.closed = 0

    def close(self):
        self.closed += 1


class FakeReference:
    def __init__(self, data=None, fail_push=False):
        self.data = dict(data or {})
        self.fail_push = fail_push
        self.callback = None
        self.registration = FakeRegistration()
        self.counter = 0

    def get(self):
        return self.data or None

    def push(self, value):
        if self.fail_push:
            raise RuntimeError("permission denied")
        self.counter += 1
        key = f"-N{self.counter:04d}"
        self.data[key] = value
        return SimpleNamespace(key=key)

    def listen(self, callback):
        self.callback = callback
        return self.registration

    def emit(self, event_type, path, data):
        event = SimpleNamespace(event_type=event_type, path=path, data=data)
        worker = threading.Thread(target=self.callback, args=(event,))
        worker.start()
        worker.join()


async def test_append_uses_push_key():
    reference = FakeReference()
    store = FirebaseReportStore(reference)

    report_id = await store.append(Report(type="Physical", timestamp=10, id="ignored"))

    assert report_id == "-N0001"
    assert "id" not in reference.data["-N0001"]


async def test_append_failure_is_submission_error():
    store = FirebaseReportStore(FakeReference(fail_push=True))
    with pytest.raises(SubmissionError):
        await store.append(Report(type="Physical", timestamp=10))


async def test_fetch_once_of_missing_node_is_empty():
    assert await FirebaseReportStore(FakeReference()).fetch_once() == []


async def test_listener_events_become_ordered_snapshots(next_item):
    reference = FakeReference()
    store = FirebaseReportStore(reference, clock=lambda: 99)
    subscription = await store.subscribe()

    reference.emit("put", "/", {"a": {"type": "x", "timestamp": 100}})
    reference.emit("put", "/b", {"type": "y", "timestamp": 200})
    reference.emit("keep-alive", "/", None)
    reference.emit("put", "/c", {"type": "z"})

    assert [r.id for r in await next_item(subscription)] == ["a"]
    assert [r.id for r in await next_item(subscription)] == ["b", "a"]
    assert [(r.id, r.timestamp) for r in await next_item(subscription)] == [("b", 200), ("a", 100), ("c", 99)]
    await subscription.close()


async def test_cancel_event_fails_subscription_and_release_runs_once(next_item):
    reference = FakeReference()
    subscription = await FirebaseReportStore(reference).subscribe()

    reference.emit("cancel", "/", "Permission denied")

    with pytest.raises(FetchError, match="Permission denied"):
        await next_item(subscription)
    await subscription.close()
    await subscription.close()
    assert reference.registration.closed == 1
