"""
Detector: the ordered probe chain that decides whether a product is
installed, and under which service name.

Each probe yields YES / NO / INCONCLUSIVE. The chain stops at the first
YES; anything else falls through to the next probe. A probe whose
command fails (non-zero exit, empty output, timeout) is inconclusive,
never fatal. Package-manager queries come last because they are the
slowest and are sometimes permission-restricted.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field

from hostops.core.models.service import Probe, ProbeKind, ProbeOutcome, ServiceDescriptor
from hostops.core.services.package_commands import query_installed_command
from hostops.core.services.session import HostSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of one pass through the probe chain."""

    installed: bool
    service_name: str | None = None
    matched_probe: ProbeKind | None = None
    evidence: str = ""
    flags: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "installed": self.installed,
            "service_name": self.service_name,
            "matched_probe": self.matched_probe.value if self.matched_probe else None,
            "evidence": self.evidence,
            "flags": dict(self.flags),
        }


@dataclass(frozen=True)
class _ProbeHit:
    outcome: ProbeOutcome
    evidence: str = ""
    unit: str | None = None
    flags: dict[str, str] = field(default_factory=dict)


_INCONCLUSIVE = _ProbeHit(ProbeOutcome.INCONCLUSIVE)


# ── Individual probes ───────────────────────────────────────────


def _probe_binary(session: HostSession, binaries: tuple[str, ...]) -> _ProbeHit:
    for binary in binaries:
        result = session.run(f"which {shlex.quote(binary)} 2>/dev/null")
        lines = result.lines()
        if result.ok and lines and lines[0].startswith("/"):
            return _ProbeHit(ProbeOutcome.YES, evidence=lines[0], flags={"binary": binary})
    return _INCONCLUSIVE


def unit_query_command(unit: str) -> str:
    """List loaded units and unit files named ``unit`` (glob allowed)."""
    name = unit if unit.endswith(".service") else f"{unit}.service"
    quoted = shlex.quote(name)
    return (
        f"systemctl list-units --type=service --all --no-legend --plain {quoted} 2>/dev/null; "
        f"systemctl list-unit-files --type=service --no-legend {quoted} 2>/dev/null"
    )


def parse_unit_listing(output: str) -> str | None:
    """First unit in systemctl output that is not in "not-found" state."""
    for line in output.splitlines():
        parts = line.replace("●", " ").split()
        if not parts or "not-found" in parts:
            continue
        unit = parts[0]
        if unit.endswith(".service"):
            return unit[: -len(".service")]
    return None


def find_unit(session: HostSession, units: tuple[str, ...]) -> str | None:
    """The first of ``units`` that exists on the host, if any."""
    for unit in units:
        found = parse_unit_listing(session.run(unit_query_command(unit)).output)
        if found:
            return found
    return None


def _probe_unit(session: HostSession, units: tuple[str, ...]) -> _ProbeHit:
    found = find_unit(session, units)
    if found:
        return _ProbeHit(ProbeOutcome.YES, evidence=f"{found}.service", unit=found)
    return _INCONCLUSIVE


def _probe_paths(session: HostSession, paths: tuple[str, ...]) -> _ProbeHit:
    quoted = " ".join(shlex.quote(p) for p in paths)
    result = session.run(f"ls -1 {quoted} 2>/dev/null")
    for line in result.lines():
        if line.startswith("/"):
            return _ProbeHit(ProbeOutcome.YES, evidence=line)
    return _INCONCLUSIVE


def _probe_package(session: HostSession, patterns: tuple[str, ...]) -> _ProbeHit:
    manager = session.classification.package_manager
    saw_zero = False
    for pattern in patterns:
        result = session.run(query_installed_command(pattern, manager), timeout=30)
        try:
            count = int(result.text or "x")
        except ValueError:
            continue
        if count > 0:
            return _ProbeHit(ProbeOutcome.YES, evidence=f"{manager.value}:{pattern}")
        if result.ok:
            saw_zero = True
    return _ProbeHit(ProbeOutcome.NO) if saw_zero else _INCONCLUSIVE


_PROBES = {
    ProbeKind.BINARY: _probe_binary,
    ProbeKind.SERVICE_UNIT: _probe_unit,
    ProbeKind.COMMON_PATH: _probe_paths,
    ProbeKind.PACKAGE: _probe_package,
}


# ── Chain ───────────────────────────────────────────────────────


class Detector:
    """Runs a descriptor's probe chain against a host."""

    def __init__(self, descriptor: ServiceDescriptor, session: HostSession):
        self.descriptor = descriptor
        self.session = session

    def run_probe(self, probe: Probe) -> ProbeOutcome:
        """Run a single probe and return its outcome."""
        return _PROBES[probe.kind](self.session, probe.targets).outcome

    def detect(self) -> DetectionResult:
        """Walk the probe chain; stop at the first confirmed YES."""
        for probe in self.descriptor.probes:
            hit = _PROBES[probe.kind](self.session, probe.targets)
            logger.debug(
                "%s probe %s -> %s %s",
                self.descriptor.id, probe.kind.value, hit.outcome.value, hit.evidence,
            )
            if hit.outcome != ProbeOutcome.YES:
                continue
            return DetectionResult(
                installed=True,
                service_name=hit.unit or self._resolve_service_name(),
                matched_probe=probe.kind,
                evidence=hit.evidence,
                flags=hit.flags,
            )

        return DetectionResult(installed=False)

    def _resolve_service_name(self) -> str | None:
        if self.descriptor.has_dynamic_service_name:
            found = find_unit(self.session, self.descriptor.service_names)
            if found:
                return found
        return self.descriptor.default_service_name
