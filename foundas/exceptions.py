"""Client-side exception types.

Convention:
- ``UnclaimedError`` is informational: the path has no owner yet (HTTP 404 on
  read). The sync controller folds it into its state instead of reporting it.
- ``UnauthorizedError`` means the signing identity does not own the path
  (any other 4xx). ``NotOwnerError`` is the local gate raised before a write
  or rotation is even attempted.
- ``RequestCancelledError`` marks a request superseded by a newer one. It is
  never shown to users.
- ``TransientError`` covers network failures and 5xx responses. Users may
  retry; nothing is retried automatically.
- ``FatalError`` aborts the operation in progress only (e.g. the key
  derivation primitive failing), never the session.
- ``ValueError`` is used for local input validation, as elsewhere.
"""

from __future__ import annotations


class FoundError(Exception):
    """Base class for protocol-level failures."""


class HttpStatusError(FoundError):
    """A failure carrying the server's HTTP status and textual body."""

    def __init__(self, status_code: int | None, detail: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(detail if status_code is None else f"{status_code} ({detail})")


class UnclaimedError(HttpStatusError):
    """Read of a path that nobody has claimed yet."""


class UnauthorizedError(HttpStatusError):
    """The signature or identity does not match the path's owner."""


class NotOwnerError(UnauthorizedError):
    """Raised locally when a mutating operation is attempted without ownership."""

    def __init__(self, detail: str = "current password does not own this path") -> None:
        super().__init__(None, detail)


class RequestCancelledError(FoundError):
    """The request was superseded by a newer one before its result was used."""


class TransientError(FoundError):
    """Network failure or server-side error; safe for the user to retry."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class MalformedResponseError(TransientError):
    """The server answered 2xx with a payload that does not decode."""


class FatalError(FoundError):
    """Aborts the current operation; the session itself stays usable."""


class DerivationError(FatalError):
    """The password-based key derivation primitive failed."""
