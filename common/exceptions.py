"""Custom exception classes for the transfer engine and its clients."""

from typing import Optional


class DistoreError(Exception):
    """
    Base exception class for all Distore errors.
    """
    pass


class NetworkError(DistoreError):
    """
    Raised when a remote service cannot be reached or the request times out.
    Transient; callers may retry.
    """
    pass


class AuthenticationError(DistoreError):
    """
    Raised when a ciphertext blob is malformed or its tag does not verify.
    """
    pass


class UnexpectedRemoteResponse(DistoreError):
    """
    Raised when a remote service answers with a status other than the one required.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RangeNotSatisfiable(DistoreError):
    """
    Raised when a requested byte range falls outside the file.
    """

    def __init__(self, start: int, end: int, size: int):
        super().__init__(f"Range [{start}, {end}) not satisfiable for file of {size} bytes")
        self.start = start
        self.end = end
        self.size = size


class InvariantViolation(DistoreError):
    """
    Raised when stored metadata breaks a structural invariant (e.g. a file without chunks).
    """
    pass


class PayloadTooLargeError(DistoreError):
    """
    Raised when a chunk payload exceeds the blob store attachment ceiling.
    """
    pass


class DuplicatePathError(DistoreError):
    """
    Raised when registering a file whose virtual path is already taken.
    """
    pass


class ConfigurationError(DistoreError):
    """
    Raised when the configuration file is missing required fields or is unreadable.
    """
    pass


class ChunkTransferError(DistoreError):
    """
    Raised when a chunk job fails; identifies the chunk and its remote message.
    The original failure is available as __cause__.
    """

    def __init__(self, direction: str, index: int, remote_id: Optional[str], cause: BaseException):
        remote = remote_id if remote_id else "unassigned"
        super().__init__(
            f"Chunk {direction} failed [index={index}, message_id={remote}]: "
            f"{type(cause).__name__}: {cause}"
        )
        self.direction = direction
        self.index = index
        self.remote_id = remote_id
        self.cause = cause
        # set by a failed upload that left chunks behind
        self.incomplete_file = None
