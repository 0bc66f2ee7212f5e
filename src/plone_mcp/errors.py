"""Error hierarchy for plone-mcp.

Every error raised by the package inherits from :class:`PloneMCPError`.
Each carries a machine-readable ``code`` (from :class:`ErrorCode`), a
human-readable ``message``, an optional structured ``context`` dict, and an
optional ``cause`` (chained exception).

The context makes an error actionable without a second round trip: the
offending field, an unknown block id next to the ids that do exist, an
unknown block type next to the known ones.

Subclasses only declare their ``code``; the constructor is shared::

    raise PloneNotFoundError(
        message="Block with ID abc not found. Valid block IDs: t, x",
        context={"block_id": "abc", "valid_ids": ["t", "x"]},
    )
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar


class ErrorCode(str, Enum):
    """Machine-readable error codes for every error the package can raise."""

    PARSE_ERROR = "PARSE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFIG_ERROR = "CONFIG_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    PERMISSION_ERROR = "PERMISSION_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    SERVER_ERROR = "SERVER_ERROR"


class PloneMCPError(Exception):
    """Base exception for all plone-mcp errors.

    Parameters
    ----------
    message:
        A user-facing description of what went wrong.  MCP clients see it
        verbatim, prefixed with the failing operation.
    context:
        Structured diagnostic detail.  Keys are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    default_code: ClassVar[ErrorCode]

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: ErrorCode = self.default_code
        self.message = message
        self.context: dict[str, Any] = dict(context) if context else {}
        self.cause = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Content and block errors
# ---------------------------------------------------------------------------

class PloneParseError(PloneMCPError):
    """Markdown input could not be parsed.

    Raised only when the input is not a string, cannot be encoded as UTF-8,
    or trips the tokenizer.  Unsupported constructs never raise.

    Context keys: ``input_type``, ``reason``, ``position``.
    """

    default_code = ErrorCode.PARSE_ERROR


class PloneValidationError(PloneMCPError):
    """Block data or a request payload failed validation.

    Also raised for 400/422 (and unmapped 4xx) responses from Plone.

    Context keys: ``field``, ``value``, ``block_type``, ``status_code``.
    """

    default_code = ErrorCode.VALIDATION_ERROR


class PloneNotFoundError(PloneMCPError):
    """A block id, block type, or content path does not exist.

    Context keys: ``block_id`` with ``valid_ids``, ``block_type`` with
    ``available_types``, or ``path`` with ``status_code``.
    """

    default_code = ErrorCode.NOT_FOUND


class PloneConfigError(PloneMCPError):
    """Configuration is missing or invalid, or no Plone site is configured.

    Context keys: ``field``, ``env_var``.
    """

    default_code = ErrorCode.CONFIG_ERROR


# ---------------------------------------------------------------------------
# REST API errors
# ---------------------------------------------------------------------------

class PloneAuthError(PloneMCPError):
    """Plone answered 401; credentials are missing, wrong, or expired.

    Context keys: ``status_code``, ``path``.
    """

    default_code = ErrorCode.AUTH_ERROR


class PlonePermissionError(PloneMCPError):
    """Plone answered 403 for the operation.

    Context keys: ``status_code``, ``operation``.
    """

    default_code = ErrorCode.PERMISSION_ERROR


class PloneNetworkError(PloneMCPError):
    """The request never got an HTTP answer (timeout, DNS, refused connection).

    Context keys: ``url``, ``method``.
    """

    default_code = ErrorCode.NETWORK_ERROR


class PloneServerError(PloneMCPError):
    """Plone answered 5xx, or a 2xx whose body is not JSON.

    Context keys: ``status_code``, ``path``, ``body``.
    """

    default_code = ErrorCode.SERVER_ERROR
