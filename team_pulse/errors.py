"""
Exception types shared across Team Pulse.
"""


class ValidationError(ValueError):
    """Malformed input: out-of-range score, inverted date range, bad config."""


class GitHubError(Exception):
    """Source-control API call failed (transport, auth, HTTP or GraphQL error)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    @property
    def retryable(self) -> bool:
        # 4xx other than rate limiting (auth, not found) will not heal on retry
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class AIServiceError(Exception):
    """Structured-output scoring service failed."""

    retryable = False

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
        if status_code is not None and (status_code == 429 or status_code >= 500):
            self.retryable = True

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class AIResponseError(AIServiceError):
    """Scoring service replied, but the reply did not match the requested schema."""


class AIServiceTimeout(AIServiceError):
    """Scoring service call exceeded its timeout."""

    retryable = True
