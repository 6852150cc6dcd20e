"""
Error taxonomy shared by every stage and leaf component.

Leaves classify their failures as transient (a later redelivery may succeed)
or permanent (redelivery will fail the same way). Stages only decide whether
a permanent failure is still reported back to the broker.
"""


class PipelineError(Exception):
    """Base class for all pipeline failures."""
    pass


class ConfigurationError(PipelineError):
    """Raised when required configuration is missing or invalid."""
    pass


class TransientError(PipelineError):
    """Raised for failures that may succeed on redelivery (network, throttling)."""
    pass


class PermanentError(PipelineError):
    """Raised for failures that will not succeed on redelivery (auth, not found)."""
    pass


class MalformedInputError(PermanentError):
    """Raised when a webhook body or broker payload cannot be decoded."""
    pass


def is_permanent(error: BaseException) -> bool:
    """Check if an error is classified as permanent."""
    return isinstance(error, PermanentError)
