from vyapaar.events import (
    DATA_RESET,
    EXPENSE_SUBMITTED,
    EXPENSES_DELETED,
    STATUS_CHANGED,
    TAXONOMY_CHANGED,
    Event,
    EventBus,
    notice_handler,
)


def test_bus_subscribe_publish_unsubscribe():
    bus = EventBus()
    calls = []

    def handler(event):
        calls.append(event.payload)
        return "ok"

    bus.subscribe(EXPENSE_SUBMITTED, handler)
    assert bus.publish(EXPENSE_SUBMITTED, {"id": "a"}) == ["ok"]
    assert calls == [{"id": "a"}]

    bus.unsubscribe(EXPENSE_SUBMITTED, handler)
    assert bus.publish(EXPENSE_SUBMITTED, {"id": "b"}) == []
    assert len(calls) == 1


def test_publish_without_subscribers():
    assert EventBus().publish("NOTHING", {}) == []


def test_handlers_run_in_subscription_order():
    bus = EventBus()
    bus.subscribe(DATA_RESET, lambda e: 1)
    bus.subscribe(DATA_RESET, lambda e: 2)
    assert bus.publish(DATA_RESET, {}) == [1, 2]


def event(name, **payload):
    return Event(name=name, ts="2024-01-01T00:00:00", payload=payload)


def test_notice_messages():
    assert notice_handler(event(EXPENSE_SUBMITTED, source="form")) == "Expense submitted successfully!"
    assert notice_handler(event(EXPENSE_SUBMITTED, source="whatsapp")).startswith("Simulated:")
    assert notice_handler(event(STATUS_CHANGED, ids=["a", "b"], status="Approved")) == "2 expenses marked Approved"
    assert notice_handler(event(EXPENSES_DELETED, ids=["a"])) == "Deleted 1 expense"
    assert notice_handler(event(TAXONOMY_CHANGED, list="Categories")) == "Categories updated"
