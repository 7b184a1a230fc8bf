"""
Dragon Hunt Error Hierarchy

Unified exception hierarchy for the board reader and the outcome search.
All custom exceptions inherit from DragonHuntError for easy catching and
filtering.

Usage:
    from dragonhunt.errors import BoardParseError

    try:
        board = Board.from_text(raw)
    except BoardParseError as e:
        logger.warning(f"Bad board: {e.message}, at: {e.context}")
"""

from typing import Any

__all__ = [
    # Base error
    "DragonHuntError",
    # Validation errors
    "BoardParseError",
    "ConfigurationError",
    "ValidationError",
    # Game state errors
    "InvalidStateError",
]


class DragonHuntError(Exception):
    """Base exception for all Dragon Hunt errors.

    Attributes:
        code: Machine-readable error code for categorization
        message: Human-readable error description
        context: Additional context for debugging
    """
    code: str = "DRAGONHUNT_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.code}] {self.message} ({ctx})"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(DragonHuntError):
    """Base class for validation errors."""
    code: str = "VALIDATION_ERROR"


class BoardParseError(ValidationError):
    """Board text could not be read.

    Raised by the grid reader for empty input, ragged rows, unknown
    characters, or a missing / duplicated dragon.

    Attributes:
        line: 0-indexed line of the offending character, if any
        column: 0-indexed column of the offending character, if any
    """
    code: str = "BOARD_PARSE_ERROR"

    def __init__(
        self,
        message: str,
        line: int | None = None,
        column: int | None = None,
        char: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.line = line
        self.column = column
        if line is not None:
            self.context["line"] = line
        if column is not None:
            self.context["column"] = column
        if char is not None:
            self.context["char"] = repr(char)


class ConfigurationError(ValidationError):
    """Invalid configuration."""
    code: str = "CONFIGURATION_ERROR"


# =============================================================================
# Game State Errors
# =============================================================================


class InvalidStateError(DragonHuntError):
    """Corrupted or unexpected game state.

    Raised when a search is handed a state that cannot exist on its board
    (wrong number of columns, a sheep or the dragon off the board). These
    are programming errors on the caller's side, not user input problems.
    """
    code: str = "INVALID_STATE"
