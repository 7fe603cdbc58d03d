"""
Application lifecycle: one summary state per product, derived from the
facade's read-only queries.

    not_installed  ->  installing  ->  installed | multiple_versions_installed
                                        running | stopped
                   any query failure -> broken
"""

from __future__ import annotations

import logging
import threading
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from hostops.core.models.status import SoftwareState
from hostops.core.models.versions import InstallPhase, InstallProgress
from hostops.core.services.facades.base import ServiceFacade, Versioned

logger = logging.getLogger(__name__)


class LifecycleState(StrEnum):
    NOT_INSTALLED = "not_installed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    MULTIPLE_VERSIONS_INSTALLED = "multiple_versions_installed"
    RUNNING = "running"
    STOPPED = "stopped"
    BROKEN = "broken"


class Lifecycle(BaseModel):
    """Lifecycle state plus the data each state carries."""

    model_config = ConfigDict(frozen=True)

    state: LifecycleState
    version: str = ""
    versions: list[str] = Field(default_factory=list)
    active: str | None = None
    reason: str = ""
    percentage: int = 0
    phase: InstallPhase | None = None

    @property
    def is_actionable(self) -> bool:
        """False while an install is in flight."""
        return self.state != LifecycleState.INSTALLING

    @property
    def display_text(self) -> str:
        if self.state == LifecycleState.NOT_INSTALLED:
            return "Not Installed"
        if self.state == LifecycleState.INSTALLING:
            return f"Installing ({self.percentage}%)"
        if self.state == LifecycleState.INSTALLED:
            return f"Installed: {self.version}"
        if self.state == LifecycleState.MULTIPLE_VERSIONS_INSTALLED:
            text = f"Installed: {len(self.versions)} versions"
            return f"{text} (Active: {self.active})" if self.active else text
        if self.state == LifecycleState.RUNNING:
            return f"Running: {self.version}"
        if self.state == LifecycleState.STOPPED:
            return f"Stopped: {self.version}"
        return f"Error: {self.reason}"

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["display_text"] = self.display_text
        return data


def refresh_state(facade: ServiceFacade) -> Lifecycle:
    """Query ``facade`` and summarize it as a Lifecycle."""
    status = facade.get_status()
    if status.state == SoftwareState.ERROR:
        return Lifecycle(state=LifecycleState.BROKEN, reason=status.message or "status query failed")
    if status.state == SoftwareState.NOT_INSTALLED:
        return Lifecycle(state=LifecycleState.NOT_INSTALLED)

    version = status.version or "unknown"
    if isinstance(facade, Versioned):
        installed = facade.list_installed_versions()
        if len(installed) > 1:
            return Lifecycle(
                state=LifecycleState.MULTIPLE_VERSIONS_INSTALLED,
                versions=installed,
                active=facade.get_active_version(),
            )

    if status.state == SoftwareState.RUNNING:
        return Lifecycle(state=LifecycleState.RUNNING, version=version)
    if status.state == SoftwareState.STOPPED:
        return Lifecycle(state=LifecycleState.STOPPED, version=version)
    return Lifecycle(state=LifecycleState.INSTALLED, version=version)


class LifecycleTracker:
    """Last known Lifecycle per product id."""

    def __init__(self):
        self._states: dict[str, Lifecycle] = {}
        self._lock = threading.Lock()

    def get(self, app_id: str) -> Lifecycle:
        with self._lock:
            return self._states.get(app_id, Lifecycle(state=LifecycleState.NOT_INSTALLED))

    def update(self, app_id: str, lifecycle: Lifecycle) -> None:
        with self._lock:
            self._states[app_id] = lifecycle

    def refresh(self, facade: ServiceFacade) -> Lifecycle:
        lifecycle = refresh_state(facade)
        self.update(facade.id, lifecycle)
        return lifecycle

    def on_progress(self, app_id: str):
        """An InstallFlow progress callback that records ``installing`` states."""

        def _record(progress: InstallProgress) -> None:
            self.update(app_id, Lifecycle(
                state=LifecycleState.INSTALLING,
                percentage=progress.percentage,
                phase=progress.phase,
            ))

        return _record

    def snapshot(self) -> dict[str, Lifecycle]:
        with self._lock:
            return dict(self._states)
