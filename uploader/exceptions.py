"""Exceptions raised by the transfer client and the upload orchestrator."""


class TransferClientError(Exception):
    """
    Base exception for failed calls to the transfer service.
    """

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class PasswordRequiredError(TransferClientError):
    """
    Raised when a protected transfer was read without a password.
    """
    pass


class InvalidPasswordError(TransferClientError):
    """
    Raised when the supplied transfer password was rejected.
    """
    pass


class TransferNotFoundError(TransferClientError):
    """
    Raised when a transfer is missing, expired or has nothing to download.
    """
    pass


class UploadFailedError(TransferClientError):
    """
    Raised when any file of a multi-file upload fails; nothing was finalized.
    """
    pass


class UploadCancelledError(TransferClientError):
    """
    Raised when an upload was cancelled before every file completed.
    """
    pass
