"""
Service descriptors: static metadata that drives the generic engines.

A product (nginx, mysql, php, ...) is declared once as a
``ServiceDescriptor``. The detector, version resolver and facades read
everything product-specific from it, so adding a product is mostly a
matter of writing a new descriptor.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from hostops.core.models.host import DistroFamily


class ProbeKind(StrEnum):
    """Kinds of detection probes, in their canonical order."""

    BINARY = "binary"               # binary resolvable on PATH
    SERVICE_UNIT = "service_unit"   # systemd unit exists and is not "not-found"
    COMMON_PATH = "common_path"     # binary present at a well-known location
    PACKAGE = "package"             # package manager reports it installed


class ProbeOutcome(StrEnum):
    YES = "yes"
    NO = "no"
    INCONCLUSIVE = "inconclusive"


@dataclass(frozen=True)
class Probe:
    """One detection probe.

    ``targets`` meaning depends on ``kind``: binary names, unit name
    prefixes, absolute paths, or a single package-name regex.
    """

    kind: ProbeKind
    targets: tuple[str, ...]


@dataclass(frozen=True)
class VersionPattern:
    """A version-extraction regex; group 1 is the version."""

    regex: str
    ignore_case: bool = False
    label: str = ""

    def compiled(self) -> re.Pattern[str]:
        return re.compile(self.regex, re.IGNORECASE if self.ignore_case else 0)


@dataclass(frozen=True)
class ServiceDescriptor:
    """Static, per-product metadata.

    Attributes:
        id: Canonical slug (also the catalog slug).
        display_name: Human name.
        service_names: systemd unit candidates, preferred first.
        binary_names: Executables that identify the product.
        probes: Ordered detection chain.
        version_command: Command printing the version.
        version_patterns: Extraction patterns, most specific first.
        package_pattern: Regex of package names for installed-package queries.
        packages: Package names to install/remove, per distro family.
        aliases: Other ids the product is known by.
    """

    id: str
    display_name: str
    service_names: tuple[str, ...] = ()
    binary_names: tuple[str, ...] = ()
    probes: tuple[Probe, ...] = ()
    version_command: str = ""
    version_patterns: tuple[VersionPattern, ...] = ()
    package_pattern: str = ""
    packages: Mapping[DistroFamily, tuple[str, ...]] = field(default_factory=dict)
    aliases: tuple[str, ...] = ()

    @property
    def default_service_name(self) -> str | None:
        return self.service_names[0] if self.service_names else None

    @property
    def has_dynamic_service_name(self) -> bool:
        """Whether the unit name must be discovered on the host."""
        return len(self.service_names) > 1

    def packages_for(self, family: DistroFamily) -> tuple[str, ...]:
        """Package names for ``family``, falling back to the Debian names."""
        return tuple(self.packages.get(family) or self.packages.get(DistroFamily.DEBIAN) or ())


def standard_probes(
    binaries: tuple[str, ...],
    units: tuple[str, ...],
    paths: tuple[str, ...],
    package_pattern: str,
) -> tuple[Probe, ...]:
    """The canonical four-step chain: PATH, unit, common path, package."""
    chain: list[Probe] = []
    if binaries:
        chain.append(Probe(ProbeKind.BINARY, binaries))
    if units:
        chain.append(Probe(ProbeKind.SERVICE_UNIT, units))
    if paths:
        chain.append(Probe(ProbeKind.COMMON_PATH, paths))
    if package_pattern:
        chain.append(Probe(ProbeKind.PACKAGE, (package_pattern,)))
    return tuple(chain)
