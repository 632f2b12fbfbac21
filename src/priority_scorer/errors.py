"""
Exceptions raised by the priority scorer.
"""


class ScoringError(Exception):
    """Base exception for the priority scorer."""
    pass


class ConfigError(ScoringError):
    """Raised when the scoring configuration is missing, malformed or inconsistent.

    Configuration errors abort the whole run before any target is scored.
    """
    def __init__(self, message: str, issues: list[str] | None = None):
        self.message = message
        self.issues = issues or []
        super().__init__(self.message)


class MissingMetricsError(ScoringError):
    """Raised when a target has no complexity metrics.

    Only the offending target fails; the batch decides whether to continue.
    """
    def __init__(self, key: str):
        self.key = key
        self.message = f"Function-level metrics missing for {key}"
        super().__init__(self.message)


class InputError(ScoringError):
    """Raised when an input document cannot be read or has the wrong shape."""
    pass
