"""Exception taxonomy shared by the parser, reconciler, executor and providers."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from boardmd.actions import Action


class BoardmdError(Exception):
    """Base class for every error boardmd raises on purpose."""


# ---------------------------------------------------------------------------
# Parse errors: always fatal to the parse pass, before any remote mutation
# ---------------------------------------------------------------------------


class ParseError(BoardmdError):
    def __init__(self, message: str, line_number: int | None = None, line: str | None = None) -> None:
        self.message = message
        self.line_number = line_number
        self.line = line
        super().__init__(message)

    def __str__(self) -> str:
        if self.line_number is None:
            return self.message
        return f"line {self.line_number}: {self.message}"


class UnresolvedToken(ParseError):
    pass


class UnexpectedContent(ParseError):
    pass


class CardBeforeList(ParseError):
    pass


class InvalidLabelFormat(ParseError):
    pass


class DuplicateLabelName(ParseError):
    pass


class DuplicateToken(ParseError):
    pass


class InvalidDueDate(ParseError):
    pass


class MalformedLine(ParseError):
    pass


class MissingBoardHeading(ParseError):
    pass


class ExtendedFormatError(ParseError):
    pass


class TokenCollisionError(BoardmdError):
    """Two different canonical IDs hashed to the same short token."""

    def __init__(self, token: str, existing: str, incoming: str) -> None:
        self.token = token
        self.existing = existing
        self.incoming = incoming
        super().__init__(f"short token '{token}' already maps to '{existing}', refusing to rebind it to '{incoming}'")


# ---------------------------------------------------------------------------
# Resolution errors: an identifier or value that cannot be tied to anything
# ---------------------------------------------------------------------------


class ResolutionError(BoardmdError):
    pass


class UnknownLabel(ResolutionError):
    def __init__(self, label_name: str, card_name: str) -> None:
        self.label_name = label_name
        self.card_name = card_name
        super().__init__(f"card '{card_name}' references unknown label '{label_name}'")


class UnknownEntity(ResolutionError):
    pass


class UnresolvedPlaceholder(ResolutionError):
    pass


class InvalidFieldValue(ResolutionError):
    pass


# ---------------------------------------------------------------------------
# Remote + execution errors
# ---------------------------------------------------------------------------


class RemoteError(BoardmdError, RuntimeError):
    """The remote API refused or failed a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.message} [HTTP {self.status_code}]"
        return self.message

    @property
    def is_auth_error(self) -> bool:
        return self.status_code == 401

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429


class ExecutionError(BoardmdError):
    """An action failed mid-batch. Earlier actions stay applied; nothing is rolled back."""

    def __init__(self, applied: list[Action], failed: Action, cause: BaseException) -> None:
        self.applied = applied
        self.failed = failed
        self.cause = cause
        super().__init__(f"failed to apply '{failed.describe()}' after {len(applied)} change(s): {cause}")
