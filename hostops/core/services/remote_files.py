"""
Remote file primitives used by transactions.

Every helper issues one command and checks for an explicit marker
echoed after success (``&& echo 'WRITTEN'``), so a command that printed
nothing useful or timed out is always read as a failure.
"""

from __future__ import annotations

import base64
import logging
import re
import shlex

from hostops.core.services.session import HostSession

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".bak"

# Paths that must never be removed recursively
PROTECTED_PATHS = frozenset({"/", "/var", "/var/www", "/etc", "/usr", "/home", "/root"})


def backup_path(path: str) -> str:
    return f"{path}{BACKUP_SUFFIX}"


class RemoteFiles:
    """File operations on the remote host, all run with sudo."""

    def __init__(self, session: HostSession):
        self.session = session

    def _marked(self, command: str, marker: str) -> bool:
        result = self.session.run(f"{command} && echo '{marker}'")
        return result.ok and marker in result.output

    # ── Queries ─────────────────────────────────────────────────

    def exists(self, path: str) -> bool:
        """Whether ``path`` exists (dangling symlinks count)."""
        quoted = shlex.quote(path)
        return self._marked(f"sudo test -e {quoted} -o -L {quoted}", "EXISTS")

    def is_dir(self, path: str) -> bool:
        return self._marked(f"test -d {shlex.quote(path)}", "EXISTS")

    def read(self, path: str) -> str:
        return self.session.output(f"sudo cat {shlex.quote(path)} 2>/dev/null")

    def tail(self, path: str, lines: int = 100) -> str:
        return self.session.output(f"sudo tail -n {int(lines)} {shlex.quote(path)} 2>/dev/null")

    def list_dir(self, path: str) -> list[str]:
        """Entry names of ``path`` (empty when missing)."""
        result = self.session.run(f"ls -1 --color=never {shlex.quote(path)} 2>/dev/null")
        if "cannot access" in result.output:
            return []
        return [_strip_ansi(line) for line in result.lines()]

    # ── Mutations ───────────────────────────────────────────────

    def write(self, path: str, content: str) -> bool:
        """Replace ``path`` with ``content``."""
        encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
        command = (
            f"echo {shlex.quote(encoded)} | base64 -d | sudo tee {shlex.quote(path)} > /dev/null"
        )
        ok = self._marked(command, "WRITTEN")
        if not ok:
            logger.warning("Write failed: %s", path)
        return ok

    def backup(self, path: str) -> bool:
        """Copy ``path`` to its ``.bak`` sibling."""
        return self._marked(
            f"sudo cp -p {shlex.quote(path)} {shlex.quote(backup_path(path))}", "BACKED_UP",
        )

    def restore(self, path: str) -> bool:
        """Move the ``.bak`` sibling back over ``path``."""
        return self._marked(
            f"sudo mv -f {shlex.quote(backup_path(path))} {shlex.quote(path)}", "RESTORED",
        )

    def discard_backup(self, path: str) -> bool:
        return self._marked(f"sudo rm -f {shlex.quote(backup_path(path))}", "REMOVED")

    def remove(self, path: str) -> bool:
        return self._marked(f"sudo rm -f {shlex.quote(path)}", "REMOVED")

    def symlink(self, target: str, link: str) -> bool:
        return self._marked(f"sudo ln -sf {shlex.quote(target)} {shlex.quote(link)}", "LINKED")

    def move(self, source: str, dest: str) -> bool:
        return self._marked(f"sudo mv -f {shlex.quote(source)} {shlex.quote(dest)}", "MOVED")

    def make_dir(self, path: str) -> bool:
        return self._marked(f"sudo mkdir -p {shlex.quote(path)}", "CREATED")

    def remove_empty_dir(self, path: str) -> bool:
        return self._marked(f"sudo rmdir {shlex.quote(path)}", "REMOVED")

    def remove_tree(self, path: str) -> bool:
        """``rm -rf`` a directory, refusing system locations."""
        normalized = "/" + path.strip().strip("/")
        if normalized in PROTECTED_PATHS or normalized.count("/") < 2:
            logger.warning("Refusing to remove protected path: %s", path)
            return False
        return self._marked(f"sudo rm -rf {shlex.quote(normalized)}", "REMOVED")


def _strip_ansi(text: str) -> str:
    return re.sub(r"\x1b\[[0-9;]*[mGKHF]", "", text).strip()
