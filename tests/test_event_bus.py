from catgrid.core.event_bus import EventBus


def test_published_events_reach_subscribers_on_idle(bus, scheduler):
    received = []
    bus.subscribe_to_event("installed-changed", received.append)

    bus.publish("installed-changed", {"source": "monitor"})
    assert received == []

    scheduler.run_idle()
    assert received == [{"source": "monitor", "event": "installed-changed"}]


def test_burst_is_drained_by_one_idle_source(bus, scheduler):
    received = []
    bus.subscribe_to_event("item-drag-end", received.append)

    for _ in range(3):
        bus.publish("item-drag-end")

    assert len(scheduler.idles) == 1
    scheduler.run_idle()
    assert len(received) == 3


def test_failing_subscriber_does_not_block_others(bus, scheduler, logger):
    received = []

    def broken(_msg):
        raise RuntimeError("handler failed")

    bus.subscribe_to_event("folders-changed", broken)
    bus.subscribe_to_event("folders-changed", received.append, "recorder")
    bus.publish("folders-changed")
    scheduler.run_idle()

    assert len(received) == 1
    assert any("handler failed" in message for message in logger.messages("error"))


def test_unsubscribe_removes_only_that_callback(bus, scheduler):
    first, second = [], []
    bus.subscribe_to_event("layout-changed", first.append)
    bus.subscribe_to_event("layout-changed", second.append)

    bus.unsubscribe_from_event("layout-changed", first.append)
    bus.publish("layout-changed")
    scheduler.run_idle()

    assert first == []
    assert len(second) == 1


def test_unsubscribe_unknown_event_is_harmless(bus):
    bus.unsubscribe_from_event("never-subscribed", print)


def test_clear_drops_queued_events(scheduler, logger):
    bus = EventBus(scheduler, logger)
    received = []
    bus.subscribe_to_event("layout-changed", received.append)
    bus.publish("layout-changed")

    bus.clear()
    scheduler.run_all()

    assert received == []
    assert len(scheduler.removed) == 1
