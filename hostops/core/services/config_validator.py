"""
Config validator: runs a product's built-in syntax check and turns the
output into ``(is_valid, message)``.

On failure the message is never empty: the first line mentioning an
error keyword, else the first non-empty line, else a generic message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from hostops.adapters.base import CommandResult
from hostops.core.services.session import HostSession

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Configuration validation failed"

_ERROR_KEYWORDS = ("emerg", "error", "fail", "invalid")


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    message: str

    def to_dict(self) -> dict:
        return {"valid": self.is_valid, "message": self.message}


def classify_output(
    result: CommandResult,
    success_tokens: tuple[str, ...],
) -> ValidationResult:
    """Classify config-test output.

    Valid when every success token appears (case-insensitive), or when
    the command printed nothing and exited 0. A silent non-zero exit,
    such as a timeout, is a failure.
    """
    text = result.text
    lowered = text.lower()

    if success_tokens and all(tok.lower() in lowered for tok in success_tokens):
        return ValidationResult(True, text.splitlines()[-1].strip() if text else "Syntax OK")

    if not text:
        if result.ok:
            return ValidationResult(True, "Syntax OK")
        return ValidationResult(False, GENERIC_FAILURE)

    lines = [ln.strip() for ln in text.splitlines() if ln.strip()]
    for line in lines:
        if any(kw in line.lower() for kw in _ERROR_KEYWORDS):
            return ValidationResult(False, line)
    return ValidationResult(False, lines[0] if lines else GENERIC_FAILURE)


class ConfigValidator:
    """Runs ``command`` and classifies its output."""

    def __init__(
        self,
        session: HostSession,
        command: str,
        success_tokens: tuple[str, ...],
    ):
        self.session = session
        self.command = command
        self.success_tokens = success_tokens

    def validate(self) -> ValidationResult:
        result = self.session.run(self.command, timeout=self.session.timeouts.control)
        verdict = classify_output(result, self.success_tokens)
        if not verdict.is_valid:
            logger.info("Config test failed: %s", verdict.message)
        return verdict
