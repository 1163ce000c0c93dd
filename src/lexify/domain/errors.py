"""Exception hierarchy used inside the Lexify core.

These never cross the public store/controller contracts: the boundaries
convert them into boolean or ``None`` results.
"""


class LexifyError(Exception):
    """Base class for all Lexify errors."""


class ConfigurationError(LexifyError):
    """A collaborator was requested without the settings it needs."""


class MalformedResponseError(LexifyError):
    """The external generation service returned missing or invalid fields."""


class OperationCancelled(LexifyError):
    """A cancellation token fired while an operation was in flight."""

    def __init__(self, reason: str = "cancelled"):
        super().__init__(reason)
        self.reason = reason
