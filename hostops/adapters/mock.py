"""
Mock channel: scripted test double for remote hosts.

Responses are registered against a command matcher. Anything that
matches nothing gets the default response, which is a failed command
with empty output (the same thing a missing binary looks like).
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from hostops.adapters.base import DEFAULT_TIMEOUT, CommandChannel, CommandResult

Responder = Callable[[str], CommandResult]


@dataclass
class _Rule:
    kind: str           # "exact", "contains" or "regex"
    pattern: str
    responder: Responder

    def matches(self, command: str) -> bool:
        if self.kind == "exact":
            return command == self.pattern
        if self.kind == "contains":
            return self.pattern in command
        return re.search(self.pattern, command) is not None


class MockChannel(CommandChannel):
    """Scriptable channel for tests.

    Rules are checked newest first, so a later ``on()`` overrides an
    earlier one for the same command.
    """

    def __init__(
        self,
        channel_name: str = "mock",
        default: CommandResult | None = None,
    ):
        self._name = channel_name
        self._default = default or CommandResult.failure(exit_code=1)
        self._rules: list[_Rule] = []
        self._call_log: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[str]:
        """Every command this mock has received, in order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def on(
        self,
        pattern: str,
        output: str = "",
        exit_code: int = 0,
        *,
        match: str = "contains",
    ) -> MockChannel:
        """Respond with fixed output to commands matching ``pattern``."""
        result = CommandResult(output=output, exit_code=exit_code)
        return self.on_call(pattern, lambda _cmd: result, match=match)

    def on_call(
        self,
        pattern: str,
        responder: Responder,
        *,
        match: str = "contains",
    ) -> MockChannel:
        """Respond by calling ``responder(command)`` for matching commands."""
        if match not in ("exact", "contains", "regex"):
            raise ValueError(f"Unknown match kind: {match}")
        self._rules.append(_Rule(kind=match, pattern=pattern, responder=responder))
        return self

    def on_timeout(self, pattern: str, *, match: str = "contains") -> MockChannel:
        """Make matching commands behave as if they timed out."""
        return self.on_call(pattern, lambda _cmd: CommandResult.timeout(), match=match)

    def execute(self, command: str, timeout: float = DEFAULT_TIMEOUT) -> CommandResult:
        self._call_log.append(command)
        for rule in reversed(self._rules):
            if rule.matches(command):
                return rule.responder(command)
        return self._default

    def commands_containing(self, fragment: str) -> list[str]:
        """Logged commands that contain ``fragment``."""
        return [c for c in self._call_log if fragment in c]

    def reset(self) -> None:
        """Clear call log and rules."""
        self._call_log.clear()
        self._rules.clear()
