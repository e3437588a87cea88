"""Extension update subsystem

Decides whether a newer compatible version of an extension is available,
downloads it, validates it and stages it for installation at the next start.

Components:
- versions: version comparison with the known-broken override
- downloader: cancellable HTTP fetcher with file name resolution
- descriptor: descriptor extraction from raw packages and zip archives
- plan: the update plan state machine (prepare / commit)
- stager: commit step scheduling replacement of the superseded version
- registry, installer, action_log, manifest, archive: default collaborators
- models, states: Pydantic models and plan states
- exceptions: Custom exceptions
"""

from extupdate.core.updates.exceptions import (
    UpdateError,
    IOFailure,
    TransportFailure,
    Cancelled,
    ValidationFailure,
    InstallationError,
    ActionLogError,
    ContractViolation,
)
from extupdate.core.updates.models import (
    BuildNumber,
    ExtensionDescriptor,
    PlanStatus,
    RejectionReason,
)
from extupdate.core.updates.states import (
    Fresh,
    Staged,
    Accepted,
    Rejected,
    Failed,
    PlanState,
)
from extupdate.core.updates.versions import VersionArbiter, compare_version_numbers
from extupdate.core.updates.cancellation import CancellationToken
from extupdate.core.updates.downloader import ArtifactFetcher
from extupdate.core.updates.descriptor import DescriptorExtractor
from extupdate.core.updates.manifest import ManifestReader
from extupdate.core.updates.archive import ZipArchiveExtractor
from extupdate.core.updates.registry import ExtensionRegistry
from extupdate.core.updates.action_log import DeferredActionLog
from extupdate.core.updates.installer import ExtensionInstaller
from extupdate.core.updates.stager import InstallStager
from extupdate.core.updates.plan import UpdatePlan, UpdateServices

__all__ = [
    # Exceptions
    "UpdateError",
    "IOFailure",
    "TransportFailure",
    "Cancelled",
    "ValidationFailure",
    "InstallationError",
    "ActionLogError",
    "ContractViolation",
    # Models
    "BuildNumber",
    "ExtensionDescriptor",
    "PlanStatus",
    "RejectionReason",
    # States
    "Fresh",
    "Staged",
    "Accepted",
    "Rejected",
    "Failed",
    "PlanState",
    # Pipeline
    "UpdatePlan",
    "UpdateServices",
    "VersionArbiter",
    "compare_version_numbers",
    "CancellationToken",
    "ArtifactFetcher",
    "DescriptorExtractor",
    "InstallStager",
    # Collaborators
    "ManifestReader",
    "ZipArchiveExtractor",
    "ExtensionRegistry",
    "DeferredActionLog",
    "ExtensionInstaller",
]
