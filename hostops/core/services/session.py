"""
Host session: one channel plus the per-connection facts derived from it.

Facades never call the channel directly; they go through a HostSession
so that every remote command is logged the same way and gets a
timeout from configuration. The OS classification is computed once
per session since the remote OS does not change mid-connection.
"""

from __future__ import annotations

import logging
import threading

from hostops.adapters.base import CommandChannel, CommandResult
from hostops.core.config.loader import HostOpsConfig
from hostops.core.models.host import OSClassification
from hostops.core.services.os_classifier import classify_remote

logger = logging.getLogger(__name__)


class HostSession:
    """A CommandChannel with configuration and a memoized OS classification."""

    def __init__(self, channel: CommandChannel, config: HostOpsConfig | None = None):
        self.channel = channel
        self.config = config or HostOpsConfig()
        self._classification: OSClassification | None = None
        self._lock = threading.Lock()

    # ── Command execution ───────────────────────────────────────

    def run(self, command: str, timeout: float | None = None) -> CommandResult:
        """Execute ``command`` (default timeout: the query timeout)."""
        effective = timeout if timeout is not None else self.config.timeouts.query
        logger.debug("[%s] $ %s", self.channel.name, command)
        result = self.channel.execute(command, timeout=effective)
        if result.timed_out:
            logger.info("[%s] timed out after %.0fs: %s", self.channel.name, effective, command)
        elif not result.ok:
            logger.debug("[%s] exit %d", self.channel.name, result.exit_code)
        return result

    def output(self, command: str, timeout: float | None = None) -> str:
        """Stripped output of ``command``, whatever its exit status."""
        return self.run(command, timeout=timeout).text

    @property
    def timeouts(self):
        return self.config.timeouts

    # ── Host facts ──────────────────────────────────────────────

    @property
    def classification(self) -> OSClassification:
        """The host's OS classification (computed on first use)."""
        with self._lock:
            if self._classification is None:
                self._classification = classify_remote(
                    self.channel, timeout=self.config.timeouts.query,
                )
                logger.info(
                    "Host %s classified as %s/%s",
                    self.channel.name,
                    self._classification.family.value,
                    self._classification.package_manager.value,
                )
            return self._classification

    def set_classification(self, classification: OSClassification) -> None:
        """Pin the classification (e.g. when the caller already knows the OS)."""
        with self._lock:
            self._classification = classification
