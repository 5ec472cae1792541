# This module defines the error taxonomy shared by the occupancy pricing engine.
# Every error carries an optional details mapping so the API and CLI can render structured payloads.
# Validation warnings are not exceptions; they travel as strings on the import preview.

from __future__ import annotations

from typing import Any


class PricingEngineError(RuntimeError):
    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(PricingEngineError):
    """Room-type occupancy bounds contradict each other."""


class ImportValidationError(PricingEngineError):
    def __init__(self, message: str, *, errors: list[str], details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details={"errors": list(errors), **(details or {})})
        self.errors = list(errors)


class ParseFailure(PricingEngineError):
    def __init__(self, message: str, *, file_name: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(f"{file_name}: {message}", details={"file_name": file_name, **(details or {})})
        self.file_name = file_name


class UnsupportedFileTypeError(ParseFailure):
    pass


class InvalidTransitionError(PricingEngineError):
    pass


class PersistenceError(PricingEngineError):
    pass


class PriceListNotFoundError(PricingEngineError):
    pass
