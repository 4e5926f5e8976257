"""Processing-state broadcast."""

from chatlink.broadcast import ProcessingBroadcast


def test_publish_reaches_all_observers_of_the_session():
    broadcast = ProcessingBroadcast()
    seen = []
    broadcast.subscribe("s1", lambda p, m: seen.append(("a", p, m)))
    broadcast.subscribe("s1", lambda p, m: seen.append(("b", p, m)))
    assert broadcast.publish("s1", True, "Running tests") == 2
    assert seen == [("a", True, "Running tests"), ("b", True, "Running tests")]
    assert broadcast.publish("s2", True) == 0


def test_unsubscribe_is_idempotent():
    broadcast = ProcessingBroadcast()
    seen = []
    remove = broadcast.subscribe("s1", lambda p, m: seen.append(p))
    remove()
    remove()
    broadcast.publish("s1", False)
    assert seen == []
    assert broadcast.observer_count("s1") == 0


def test_failing_observer_does_not_stop_others():
    broadcast = ProcessingBroadcast()
    seen = []

    def broken(processing, message):
        raise RuntimeError("tab closed")

    broadcast.subscribe("s1", broken)
    broadcast.subscribe("s1", lambda p, m: seen.append(p))
    broadcast.publish("s1", True)
    assert seen == [True]
