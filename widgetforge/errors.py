"""Failure taxonomy for the widget generation pipeline.

Every stage raises a subclass of WidgetGenerationError. Each carries a short
``kind`` tag (stable, safe to return to clients) and a ``context`` dict with
the diagnostic fields that were logged at the point of failure.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class WidgetGenerationError(Exception):
    kind = "GenerationError"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class ServiceError(WidgetGenerationError):
    """The completion or image HTTP call failed before returning a payload."""

    kind = "ServiceError"

    def __init__(self, message: str, status_code: Optional[int] = None, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, context)
        self.status_code = status_code


class EmptyResponse(WidgetGenerationError):
    kind = "EmptyResponse"


class NoJsonFound(WidgetGenerationError):
    kind = "NoJsonFound"


class JsonRecoveryError(WidgetGenerationError):
    """Both the strict and the repaired parse attempts failed."""

    kind = "JsonRecoveryError"

    def __init__(
        self,
        message: str,
        *,
        parser_message: str,
        has_fences: bool,
        has_backticks: bool,
        sample: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, context)
        self.parser_message = parser_message
        self.has_fences = has_fences
        self.has_backticks = has_backticks
        self.sample = sample


class ValidationError(WidgetGenerationError):
    """Parsed object is missing required fields; ``errors`` lists all of them."""

    kind = "ValidationError"

    def __init__(self, message: str, errors: List[Dict[str, str]], context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, context)
        self.errors = list(errors)


class ImageGenerationFailed(WidgetGenerationError):
    kind = "ImageGenerationFailed"
