"""
Package-level exception hierarchy for querylens.

The splitter and the plan parser are total and never raise. These
exceptions belong to the outer surfaces: loading input files, loading
configuration, and the CLI.

Hierarchy:
    QueryLensError
    ├── ParseError          – Input file cannot be read or decoded
    └── ConfigurationError  – Invalid configuration file or value
"""

from __future__ import annotations

from typing import Any


class QueryLensError(Exception):
    """
    Base exception for all querylens errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON error output."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
        }


class ParseError(QueryLensError):
    """
    Failed to load an input document.

    Raised when a SQL buffer or plan payload file cannot be read, or when
    a JSON payload is not valid JSON.

    Attributes:
        source: Description of the input source (file path, "stdin", etc.).
        detail: Technical details for debugging (optional).
    """

    def __init__(
        self,
        message: str,
        source: str | None = None,
        detail: str | None = None,
    ) -> None:
        self.source = source
        self.detail = detail
        super().__init__(message)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}\n\nDetails: {self.detail}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["source"] = self.source
        result["detail"] = self.detail
        return result


class ConfigurationError(QueryLensError):
    """
    Error in querylens configuration.

    Attributes:
        config_key: The configuration key that caused the error (if known).
    """

    def __init__(self, message: str, config_key: str | None = None) -> None:
        self.config_key = config_key
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["config_key"] = self.config_key
        return result
