import threading

import pytest

from padsynth.sched import (
    Notifier,
    SchedType,
    Scheduled,
    sync_notify,
    sync_pending,
    sync_reset,
)


class Recorder(Scheduled):
    def __init__(self, instance, stype=SchedType.SAMPLE):
        super().__init__(instance, stype)
        self.seen = []
        self._lock = threading.Lock()

    def process(self, sid):
        with self._lock:
            self.seen.append(sid)


def test_schedule_then_sync_pending_processes_sid():
    inst = object()
    received = []
    with Notifier(inst, lambda stype, sid: received.append(sid)):
        with Recorder(inst) as rec:
            rec.schedule(4)
            sync_pending()
            assert rec.seen == [4]
            assert Scheduled.sync_wait(rec) is False
    assert received == [4]


def test_default_sid_is_zero():
    with Recorder(object()) as rec:
        rec.schedule()
        sync_pending()
        assert rec.seen == [0]
        assert Scheduled.sync_wait(rec) is False


def test_sids_processed_in_order():
    with Recorder(object()) as rec:
        for sid in (1, 2, 3):
            rec.schedule(sid)
        sync_pending()
        assert rec.seen == [1, 2, 3]
        assert Scheduled.sync_wait(rec) is False


def test_notifier_receives_type_and_sid():
    inst = object()
    received = []
    with Notifier(inst, lambda stype, sid: received.append((stype, sid))):
        with Recorder(inst, SchedType.PROGRAMS) as rec:
            rec.schedule(7)
            sync_pending()
    assert received == [(SchedType.PROGRAMS, 7)]


def test_sync_notify_only_reaches_matching_instance():
    inst_a, inst_b = object(), object()
    got_a, got_b = [], []
    with Notifier(inst_a, lambda t, s: got_a.append(s)), Notifier(
        inst_b, lambda t, s: got_b.append(s)
    ):
        sync_notify(inst_a, SchedType.CONTROLS, 5)
    assert got_a == [5]
    assert got_b == []


def test_closed_notifier_is_not_notified():
    inst = object()
    got = []
    notifier = Notifier(inst, lambda t, s: got.append(s))
    notifier.close()
    sync_notify(inst, SchedType.SAMPLE, 1)
    assert got == []


def test_notifier_subclass_override_is_called():
    class Collect(Notifier):
        def __init__(self, instance):
            super().__init__(instance)
            self.items = []

        def notify(self, stype, sid):
            self.items.append((stype, sid))

    inst = object()
    with Collect(inst) as notifier:
        sync_notify(inst, SchedType.MIDI_IN, 2)
        assert notifier.items == [(SchedType.MIDI_IN, 2)]


def test_sync_wait_is_test_and_set():
    with Recorder(object()) as rec:
        assert Scheduled.sync_wait(rec) is False
        assert Scheduled.sync_wait(rec) is True
        Scheduled.sync_process(rec)
        assert Scheduled.sync_wait(rec) is False


def test_scheduling_works_after_sync_reset():
    with Recorder(object()) as rec:
        sync_reset()
        rec.schedule(9)
        sync_pending()
        assert rec.seen == [9]
        assert Scheduled.sync_wait(rec) is False


def test_properties():
    inst = object()
    received = []
    with Notifier(inst, lambda stype, sid: received.append((stype, sid))):
        with Recorder(inst, SchedType.CONTROLLER) as rec:
            assert rec.instance is inst
            assert rec.stype is SchedType.CONTROLLER
            rec.schedule(3)
            sync_pending()
    assert received == [(SchedType.CONTROLLER, 3)]


def test_scheduled_is_abstract():
    with pytest.raises(TypeError):
        Scheduled(object(), SchedType.SAMPLE)