"""Exceptions raised by the credential collaborators."""


class TokenVerificationError(ValueError):
    """A token failed signature, expiry or payload checks."""


class DuplicateEmailError(Exception):
    """The store rejected a user because the email is already registered."""

    def __init__(self, email: str):
        super().__init__("User with this email already exists")
        self.email = email


class NotificationDeliveryError(RuntimeError):
    """An outbound message could not be delivered."""
