# pricing_errors.py
"""
Pricing exceptions.

    PricingError (base)
    ├── DataUnavailable - tier tables could not be fetched or parsed after retries
    └── MalformedRow    - one CSV row failed to parse (caught by the parsers, row dropped)

Invalid pricing requests (zero area / quantity) are not errors: the engine
returns an all-zero result for them.
"""
from typing import Any, Dict, Optional


class PricingError(Exception):
    """Base class for pricing errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class DataUnavailable(PricingError):
    """
    Tier tables could not be loaded.

    reason is "network" when the source could not be fetched and
    "malformed" when it was fetched but its content was unusable.
    The root cause is chained as __cause__.
    """

    NETWORK = "network"
    MALFORMED = "malformed"

    def __init__(self, message: str, *, reason: str, attempts: int = 1, source: Optional[str] = None):
        details: Dict[str, Any] = {"reason": reason, "attempts": attempts}
        if source:
            details["source"] = source
        super().__init__(message, details)
        self.reason = reason
        self.attempts = attempts
        self.source = source


class MalformedRow(PricingError):
    """A single table row that could not be parsed."""

    def __init__(self, line_no: int, cells, problem: str):
        super().__init__(
            f"line {line_no}: {problem}",
            {"line_no": line_no, "cells": list(cells)},
        )
        self.line_no = line_no
        self.problem = problem
