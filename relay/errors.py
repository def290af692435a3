class RelayError(Exception):
    """Base class for errors raised by the relay core."""


class InvalidSignature(RelayError):
    """The presented signature does not match the link fields."""


class Expired(RelayError):
    """The link is authentic but its validity window has passed."""


class NotFound(RelayError):
    """The object id was never issued, was deleted, or has expired."""


class PayloadTooLarge(RelayError):
    def __init__(self, size: int, max_size_bytes: int):
        super().__init__(f"payload of {size} bytes exceeds max upload size of {max_size_bytes} bytes")
        self.size = size
        self.max_size_bytes = max_size_bytes


class StorageFailure(RelayError):
    """The backing medium failed to write, read or remove bytes."""
