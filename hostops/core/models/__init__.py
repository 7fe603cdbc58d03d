"""
Core domain models for hostops.

All models are Pydantic BaseModels or frozen dataclasses.
"""

from hostops.core.models.database import Database, DatabaseUser
from hostops.core.models.host import DistroFamily, OSClassification, PackageManager
from hostops.core.models.service import (
    Probe,
    ProbeKind,
    ProbeOutcome,
    ServiceDescriptor,
    VersionPattern,
)
from hostops.core.models.site import Layout, SiteRequest, SiteStatus, WebServerPaths, Website
from hostops.core.models.status import SoftwareState, SoftwareStatus
from hostops.core.models.versions import (
    Capability,
    CapabilityVersion,
    InstallPhase,
    InstallProgress,
)

__all__ = [
    "Capability",
    "CapabilityVersion",
    "Database",
    "DatabaseUser",
    "DistroFamily",
    "InstallPhase",
    "InstallProgress",
    "Layout",
    "OSClassification",
    "PackageManager",
    "Probe",
    "ProbeKind",
    "ProbeOutcome",
    "ServiceDescriptor",
    "SiteRequest",
    "SiteStatus",
    "SoftwareState",
    "SoftwareStatus",
    "VersionPattern",
    "WebServerPaths",
    "Website",
]
