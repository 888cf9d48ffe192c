"""Validation result type shared by the pre- and post-conversion validators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass
class ValidationCheck:
    """Result of a validation pass.

    Validators short-circuit on the first failing check, so a single
    ``ValidationCheck`` describes the whole pass.

    Attributes:
        name: Identifier for the check that produced this result.
        severity: "pass" or "fail".
        message: Human-readable description of the failure, empty on pass.
    """

    name: str
    severity: Literal["pass", "fail"]
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.severity == "pass"

    @classmethod
    def passed(cls, name: str) -> ValidationCheck:
        return cls(name=name, severity="pass")

    @classmethod
    def failed(cls, name: str, message: str) -> ValidationCheck:
        return cls(name=name, severity="fail", message=message)
