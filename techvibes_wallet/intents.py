"""
Intent Tokens

Single-threaded, cooperative code still completes requests out of
order. Each operation that will later commit state takes a token from
an IntentCounter; before committing it checks the token is still the
newest. Last-issued intent wins, not last-to-complete.
"""


class IntentCounter:
    """Monotonically increasing intent marker."""

    def __init__(self):
        self.current = 0

    def issue(self) -> "RelevanceToken":
        self.current += 1
        return RelevanceToken(self, self.current)

    def latest(self) -> "RelevanceToken":
        """Token for the newest intent already issued, without issuing one."""
        return RelevanceToken(self, self.current)


class RelevanceToken:
    """One issued intent; current until a newer one is issued."""

    __slots__ = ("_counter", "intent")

    def __init__(self, counter: IntentCounter, intent: int):
        self._counter = counter
        self.intent = intent

    def is_current(self) -> bool:
        return self._counter.current == self.intent

    def __repr__(self) -> str:
        return f"RelevanceToken(intent={self.intent}, current={self.is_current()})"
