"""Base class for the typed errors raised across bounded contexts.

Every error carries a stable ``code`` (used as the failure reason on a
checkout session and in HTTP responses) and a ``retryable`` flag that tells
the UI whether offering "try again" makes sense.
"""


class DomainError(Exception):
    code = "DomainError"
    retryable = False

    def __init__(self, message: str, **context) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
            **{key: value for key, value in self.context.items() if value is not None},
        }
