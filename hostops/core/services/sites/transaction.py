"""
Site transaction: write config, enable, validate, then commit or roll back.

Protocol for create/update:

    1. existing file?  -> copy to .bak (this is an update)
    2. write new body  -> failure: restore .bak / remove partial file
    3. enable site     -> failure: roll back file and enabled state
    4. config test     -> failure: roll back file and enabled state
    5. commit          -> drop .bak, reload service

Invariant: when ``apply`` or ``remove`` returns or raises, the config
file and its enabled state are either the new valid ones or exactly
the pre-transaction ones. The service is reloaded only on commit, so
a rolled-back transaction leaves the running service untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from hostops.core.errors import TransactionError
from hostops.core.services.config_validator import ValidationResult
from hostops.core.services.remote_files import RemoteFiles
from hostops.core.services.sites.toggles import SiteToggle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionReport:
    path: str
    updated: bool           # False: the file did not exist before
    reloaded: bool
    message: str = ""


class SiteTransaction:
    """One mutating operation on one site config file.

    Args:
        files: Remote file primitives.
        path: The site config file (in sites-available or conf.d).
        toggle: How this site is enabled/disabled.
        validate: Runs the server's config test.
        reload: Reloads the server; returns success.
    """

    def __init__(
        self,
        files: RemoteFiles,
        path: str,
        toggle: SiteToggle,
        validate: Callable[[], ValidationResult],
        reload: Callable[[], bool],
    ):
        self.files = files
        self.path = path
        self.toggle = toggle
        self.validate = validate
        self.reload = reload

    # ── Create / update ─────────────────────────────────────────

    def apply(self, content: str) -> TransactionReport:
        """Install ``content`` as the site config.

        A renamed-off copy of the same site (``.disabled``) counts as the
        existing config: it is backed up and removed on commit.

        Raises:
            TransactionError: after the host has been rolled back.
        """
        existed = self.files.exists(self.path)
        stale = [p for p in self.toggle.leftovers() if self.files.exists(p)]
        was_enabled = self.toggle.is_enabled()
        updating = existed or bool(stale)
        logger.info(
            "Site transaction on %s (%s)", self.path, "update" if updating else "create",
        )

        backed_up = self._backup_all(([self.path] if existed else []) + stale)

        if not self.files.write(self.path, content):
            problems = self._restore_files(existed, backed_up)
            raise TransactionError.file_write_failed(
                _with_rollback_note(f"Could not write {self.path}", problems),
            )

        if not self.toggle.enable():
            problems = self._rollback(existed, backed_up, was_enabled)
            raise TransactionError.symlink_failed(
                _with_rollback_note(f"Could not enable {self.path}", problems),
            )

        if not all(self.files.remove(p) for p in stale):
            problems = self._rollback(existed, backed_up, was_enabled)
            raise TransactionError.file_write_failed(
                _with_rollback_note(f"Could not remove {', '.join(stale)}", problems),
            )

        verdict = self.validate()
        if not verdict.is_valid:
            problems = self._rollback(existed, backed_up, was_enabled)
            raise TransactionError.validation_failed(
                _with_rollback_note(verdict.message, problems),
            )

        self._discard(backed_up)
        reloaded = self.reload()
        if not reloaded:
            logger.warning("Config committed but reload failed for %s", self.path)
        return TransactionReport(
            path=self.path,
            updated=updating,
            reloaded=reloaded,
            message=verdict.message,
        )

    # ── Delete ──────────────────────────────────────────────────

    def remove(self) -> TransactionReport:
        """Disable and delete the site config, keeping the server valid.

        Every existing copy of the config (including a renamed-off
        ``.disabled`` one) is backed up first and restored on failure.

        Raises:
            TransactionError: after the host has been rolled back.
        """
        targets = [self.path, *self.toggle.leftovers()]
        present = [p for p in targets if self.files.exists(p)]
        was_enabled = self.toggle.is_enabled()
        if not present and not was_enabled:
            raise TransactionError.unknown(f"Site config not found: {self.path}")

        backed_up = self._backup_all(present)

        if was_enabled and not self.toggle.disable():
            problems = self._restore_enabled(True)
            self._discard(backed_up)
            raise TransactionError.symlink_failed(
                _with_rollback_note(f"Could not disable {self.path}", problems),
            )

        if not all(self.files.remove(p) for p in targets):
            problems = self._rollback_delete(backed_up, was_enabled)
            raise TransactionError.file_write_failed(
                _with_rollback_note(f"Could not remove {self.path}", problems),
            )

        verdict = self.validate()
        if not verdict.is_valid:
            problems = self._rollback_delete(backed_up, was_enabled)
            raise TransactionError.validation_failed(
                _with_rollback_note(verdict.message, problems),
            )

        self._discard(backed_up)
        reloaded = self.reload()
        return TransactionReport(path=self.path, updated=bool(backed_up), reloaded=reloaded)

    # ── Rollback ────────────────────────────────────────────────

    def _backup_all(self, paths: list[str]) -> list[str]:
        """Back up every path; on failure drop the copies made so far and raise."""
        backed_up: list[str] = []
        for path in paths:
            if not self.files.backup(path):
                self._discard(backed_up)
                raise TransactionError.unknown(f"Could not back up existing config {path}")
            backed_up.append(path)
        return backed_up

    def _restore_files(self, existed: bool, backed_up: list[str]) -> list[str]:
        """Put the config files back as they were; returns failed steps."""
        problems: list[str] = []
        if not existed and not self.files.remove(self.path):
            logger.error("Rollback step failed (remove new file) for %s", self.path)
            problems.append("remove new file")
        for path in backed_up:
            if not self.files.restore(path):
                logger.error("Rollback step failed (restore backup) for %s", path)
                problems.append("restore backup")
        return problems

    def _restore_enabled(self, was_enabled: bool) -> list[str]:
        if self.toggle.is_enabled() == was_enabled:
            return []
        ok = self.toggle.enable() if was_enabled else self.toggle.disable()
        if ok:
            return []
        step = "re-enable site" if was_enabled else "disable site"
        logger.error("Rollback step failed (%s) for %s", step, self.path)
        return [step]

    def _rollback(self, existed: bool, backed_up: list[str], was_enabled: bool) -> list[str]:
        logger.info("Rolling back %s", self.path)
        return self._restore_files(existed, backed_up) + self._restore_enabled(was_enabled)

    def _rollback_delete(self, backed_up: list[str], was_enabled: bool) -> list[str]:
        logger.info("Rolling back delete of %s", self.path)
        return self._restore_files(True, backed_up) + self._restore_enabled(was_enabled)

    def _discard(self, backed_up: list[str]) -> None:
        for path in backed_up:
            self.files.discard_backup(path)


def _with_rollback_note(message: str, problems: list[str]) -> str:
    if not problems:
        return message
    return f"{message} (rollback incomplete: {', '.join(problems)})"
