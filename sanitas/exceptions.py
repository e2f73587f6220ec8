"""Error taxonomy for the Sanitas sanitization engine.

Configuration and integration mistakes surface immediately through these
exceptions. Failures of the underlying HTML sanitizer are never raised to the
caller; they are recovered inside the scalar sanitizer instead.
"""


class SanitasError(Exception):
    """Base exception for all Sanitas errors."""
    pass


class UnknownPolicyError(SanitasError, KeyError):
    """Raised when a named sanitization policy is not registered.

    Attributes:
        name (str): The policy name that was requested.
    """
    def __init__(self, name):
        super().__init__(f"Unknown sanitization policy: {name!r}")
        self.name = name

    def __str__(self):
        # KeyError would otherwise repr() the message
        return self.args[0]


class PolicyConfigurationError(SanitasError, ValueError):
    """Raised when a policy definition or override set is invalid."""
    pass


class MalformedInputError(SanitasError, TypeError):
    """Raised when a value is not a recognized scalar or composite shape."""
    pass
