"""
Exceptions for the Lambda entry point.
"""


class MessageParseError(Exception):
    """Raised when an invocation record cannot be turned into a job event."""
