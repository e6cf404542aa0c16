from typing import List


class VyapaarError(Exception):
    """Base class for errors raised by the expense tracker core."""


class ValidationError(VyapaarError):
    """An expense was rejected at the controller boundary."""

    def __init__(self, problems: List[dict]):
        self.problems = list(problems)
        summary = "; ".join(p.get("message", p.get("error", "")) for p in self.problems)
        super().__init__(summary or "invalid expense")

    @property
    def fields(self) -> List[str]:
        return [p["field"] for p in self.problems if "field" in p]


class CorruptStateError(VyapaarError):
    """The stored document exists but cannot be parsed."""


class ClassificationError(VyapaarError):
    """The receipt image could not be analysed."""
