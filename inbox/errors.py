"""
Inbox Errors
Exceptions raised by the inbox engine and its transport layer.
"""


class InboxError(Exception):
    """Base class for inbox errors."""


class MessageValidationError(InboxError, ValueError):
    """Raised when a message is rejected before it is sent."""
