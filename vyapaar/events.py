from typing import Callable, Dict, List, NamedTuple
from datetime import datetime

__all__ = [
    'EventBus', 'Event',
    'EXPENSE_SUBMITTED', 'EXPENSE_UPDATED', 'STATUS_CHANGED', 'EXPENSES_DELETED',
    'TAXONOMY_CHANGED', 'DATA_RESET', 'notice_handler',
]


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event], object]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        self._subscribers.setdefault(name, []).append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> None:
        handlers = self._subscribers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, name: str, payload: dict) -> List[object]:
        handlers = self._subscribers.get(name)
        if not handlers:
            return []
        event = Event(name=name, ts=datetime.now().isoformat(), payload=payload)
        return [handler(event) for handler in list(handlers)]


EXPENSE_SUBMITTED = "EXPENSE_SUBMITTED"
EXPENSE_UPDATED = "EXPENSE_UPDATED"
STATUS_CHANGED = "STATUS_CHANGED"
EXPENSES_DELETED = "EXPENSES_DELETED"
TAXONOMY_CHANGED = "TAXONOMY_CHANGED"
DATA_RESET = "DATA_RESET"


def notice_handler(event: Event) -> str:
    """Turn a controller event into a one-line user notice."""
    p = event.payload
    if event.name == EXPENSE_SUBMITTED:
        if p.get("source") == "whatsapp":
            return "Simulated: New WhatsApp expense added to Review Queue!"
        return "Expense submitted successfully!"
    if event.name == STATUS_CHANGED:
        count = len(p.get("ids", ()))
        noun = "expense" if count == 1 else "expenses"
        return f"{count} {noun} marked {p.get('status')}"
    if event.name == EXPENSES_DELETED:
        count = len(p.get("ids", ()))
        noun = "expense" if count == 1 else "expenses"
        return f"Deleted {count} {noun}"
    if event.name == EXPENSE_UPDATED:
        return "Expense updated"
    if event.name == TAXONOMY_CHANGED:
        return f"{p.get('list')} updated"
    if event.name == DATA_RESET:
        return "All data reset to defaults"
    return event.name
