"""Custom exception classes for the transfer service."""


class TransferServiceError(Exception):
    """
    Base exception class for all transfer-service errors.
    """
    pass


class AuthRequiredError(TransferServiceError):
    """
    Raised when a protected transfer is read without a password.
    """
    pass


class AuthInvalidError(TransferServiceError):
    """
    Raised when the password supplied for a protected transfer is wrong.
    """
    pass


class TransferNotFoundError(TransferServiceError):
    """
    Raised when a transfer does not exist or has no files to archive.
    """
    pass


class ObjectNotFoundError(TransferNotFoundError):
    """
    Raised when a single object is absent from the object store.
    """
    pass


class BadRequestError(TransferServiceError):
    """
    Raised for a malformed transfer id, object path or missing field.
    """
    pass


class StoreUnavailableError(TransferServiceError):
    """
    Raised when the object store or metadata store is unreachable or not configured.
    """
    pass


class StreamAbortedError(TransferServiceError):
    """
    Raised when an archive stream fails after its headers were sent.
    """
    pass


class NotAuthenticatedError(TransferServiceError):
    """
    Raised when a session is required but missing, unknown or expired.
    """
    pass


class ForbiddenError(TransferServiceError):
    """
    Raised when an authenticated session may not act on a transfer.
    """
    pass


class InvalidGrantError(TransferServiceError):
    """
    Raised when a locally signed storage URL is tampered with or expired.
    """
    pass
