"""Application-level exceptions.

These are business-logic errors, not transport errors. Callers (an HTTP
layer, the CLI) translate them into their own error responses.
"""


class InvalidMessageError(ValueError):
    """Raised when an incoming message fails validation.

    ``violations`` lists every rule the message broke, in check order.
    """

    def __init__(self, violations: list[str]) -> None:
        self.violations = list(violations)
        super().__init__("; ".join(self.violations))


class EmbeddingDimensionError(ValueError):
    """Raised when a vector's length differs from the store's dimension."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"embedding dimension mismatch: expected {expected}, got {actual}")
