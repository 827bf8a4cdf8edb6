from typing import Optional


class WineMintError(Exception):
    """Base class for minting workflow errors."""


class ConfigurationError(WineMintError):
    """Missing credentials or URLs. Fatal, never retried."""


class InvalidImageError(WineMintError):
    pass


class ImageDownloadError(WineMintError):
    pass


class IpfsUploadError(WineMintError):
    pass


class MintError(WineMintError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class StatusCheckError(WineMintError):
    """Chain status lookup failed. The confirmation poll treats this as transient."""


class ConfirmationError(WineMintError):
    def __init__(self, message: str, tx_id: Optional[str] = None, token_ref_id: Optional[str] = None):
        super().__init__(message)
        self.tx_id = tx_id
        self.token_ref_id = token_ref_id


class MintingInProgress(WineMintError):
    pass


class MintingStopped(WineMintError):
    """Stop processing intentionally (not a failure)."""
