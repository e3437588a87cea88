"""Update plan: download, inspect, compare and stage one extension update

Pipeline driven by ``UpdatePlan.prepare()``:

1. Skip the download if a known candidate version is not newer than the
   installed one (unless the installed release is known to be broken)
2. Fetch the artifact into the staging directory
3. Read the descriptor embedded in the artifact; it replaces every hint
4. Reject extensions already updated in this session
5. Compare the true version with the installed one
6. Check the declared build range against the host build

``UpdatePlan.commit()`` then hands the staged artifact to the installer.
Failures before staging are reported through the ``Failed`` state and never
escape ``prepare()``; rejections are normal outcomes, not errors.
"""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from extupdate.config.update_settings import SettingsManager, UpdateSettings
from extupdate.core.updates.action_log import DeferredActionLog
from extupdate.core.updates.cancellation import CancellationToken
from extupdate.core.updates.descriptor import DescriptorExtractor
from extupdate.core.updates.downloader import ArtifactFetcher
from extupdate.core.updates.exceptions import ContractViolation, UpdateError
from extupdate.core.updates.installer import ExtensionInstaller
from extupdate.core.updates.interfaces import (
    ActionLogProtocol,
    ExtensionRegistryProtocol,
    InstallerProtocol,
)
from extupdate.core.updates.manifest import ManifestReader
from extupdate.core.updates.models import BuildNumber, ExtensionDescriptor, PlanStatus, RejectionReason
from extupdate.core.updates.registry import ExtensionRegistry
from extupdate.core.updates.repository import repository_download_url, resolve_host_url
from extupdate.core.updates.stager import InstallStager
from extupdate.core.updates.states import Accepted, Failed, Fresh, PlanState, Rejected, Staged
from extupdate.core.updates.versions import VersionArbiter

logger = logging.getLogger(__name__)


@dataclass
class UpdateServices:
    """Collaborators shared by the plans of one process"""
    registry: ExtensionRegistryProtocol
    installer: InstallerProtocol
    action_log: ActionLogProtocol
    fetcher: ArtifactFetcher
    extractor: DescriptorExtractor
    temp_dir: Path
    first_launch: bool = False
    force_secure: bool = False
    settings: Optional[UpdateSettings] = None

    @classmethod
    def from_settings(
        cls,
        settings: UpdateSettings,
        registry: Optional[ExtensionRegistryProtocol] = None,
        manager: Optional[SettingsManager] = None
    ) -> "UpdateServices":
        """
        Wire the default collaborators from settings

        When no registry is given, an ExtensionRegistry is created for the
        configured host build, loaded with the installed extensions and the
        broken list. A missing installation id is generated once and persisted
        through manager (the default settings file if omitted).
        """
        if not settings.installation_uid:
            settings.installation_uid = (manager or SettingsManager()).ensure_installation_uid()

        reader = ManifestReader()
        if registry is None:
            default_registry = ExtensionRegistry(
                host_build=BuildNumber.parse(settings.api_build) if settings.api_build else None
            )
            default_registry.load_installed(settings.get_extensions_dir(), reader)
            if settings.broken_list_path:
                default_registry.load_broken_list(Path(settings.broken_list_path))
            registry = default_registry

        action_log = DeferredActionLog(settings.get_action_script_path())
        return cls(
            registry=registry,
            installer=ExtensionInstaller(action_log, settings.get_extensions_dir()),
            action_log=action_log,
            fetcher=ArtifactFetcher(timeout=settings.timeout_seconds),
            extractor=DescriptorExtractor(reader=reader),
            temp_dir=settings.get_temp_dir(),
            first_launch=settings.is_first_launch(),
            force_secure=settings.force_secure,
            settings=settings,
        )

    def get_settings(self) -> UpdateSettings:
        if self.settings is None:
            self.settings = UpdateSettings()
        return self.settings

    def get_installation_uid(self) -> str:
        """Installation id sent to the repository, stable for the lifetime of these services"""
        settings = self.get_settings()
        if not settings.installation_uid:
            settings.installation_uid = str(uuid.uuid4())
        return settings.installation_uid


class UpdatePlan:
    """One update of one extension, from repository URL to staged artifact"""

    def __init__(
        self,
        extension_id: str,
        url: str,
        services: UpdateServices,
        version: Optional[str] = None,
        file_name: Optional[str] = None,
        name: Optional[str] = None,
        build: Optional[BuildNumber] = None,
        force_secure: Optional[bool] = None,
        description: Optional[str] = None,
        depends: Optional[List[str]] = None,
        descriptor: Optional[ExtensionDescriptor] = None
    ):
        """
        Initialize an update plan

        Args:
            extension_id: Extension to update
            url: Download URL of the artifact
            services: Collaborators used by the pipeline
            version: Version advertised by the catalog, if known
            file_name: File name to save the artifact under, if known
            name: Display name, if known
            build: Host build the update must be compatible with
            force_secure: Refuse non-HTTPS downloads and redirects; defaults to the services setting
            description: Description advertised by the catalog
            depends: Dependencies advertised by the catalog
            descriptor: Catalog descriptor the plan was created from
        """
        self.extension_id = extension_id
        self._url = url
        self.services = services
        self.build = build
        self.force_secure = services.force_secure if force_secure is None else force_secure

        self._version = version
        self._file_name = file_name
        self._name = name
        self._description = description
        self._depends = list(depends or [])
        self._descriptor = descriptor

        self._arbiter = VersionArbiter(services.registry)
        self._stager = InstallStager(services.action_log, services.installer, services.registry)
        self._state: PlanState = Fresh()

    @classmethod
    def from_descriptor(
        cls,
        descriptor: ExtensionDescriptor,
        services: UpdateServices,
        host: Optional[str] = None,
        build: Optional[BuildNumber] = None
    ) -> "UpdatePlan":
        """
        Create a plan for a catalog descriptor

        With a host, the descriptor's download URL is resolved against it.
        Without one, the configured repository endpoint is queried for the
        extension id, host build and installation id.

        Raises:
            ValueError: If a host is given but the descriptor has no download URL
        """
        if host is not None:
            if not descriptor.download_url:
                raise ValueError(f"Extension {descriptor.id} has no download URL")
            url = resolve_host_url(host, descriptor.download_url)
        else:
            settings = services.get_settings()
            url = repository_download_url(
                settings.plugins_download_url,
                descriptor.id,
                build,
                services.get_installation_uid(),
                api_build=settings.api_build,
            )

        return cls(
            descriptor.id,
            url,
            services,
            version=descriptor.version,
            name=descriptor.name,
            description=descriptor.description,
            depends=descriptor.depends,
            descriptor=descriptor,
            build=build,
        )

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> PlanState:
        return self._state

    @property
    def status(self) -> PlanStatus:
        return self._state.status

    @property
    def version(self) -> Optional[str]:
        return self._version

    @property
    def file_name(self) -> str:
        if self._file_name is None:
            self._file_name = self._url[self._url.rfind('/') + 1:]
        return self._file_name

    @property
    def display_name(self) -> str:
        if self._name is None:
            self._name = Path(self.file_name).stem
        return self._name

    @property
    def description(self) -> Optional[str]:
        return self._description

    @property
    def depends(self) -> List[str]:
        return list(self._depends)

    @property
    def descriptor(self) -> Optional[ExtensionDescriptor]:
        return self._descriptor

    def prepare(
        self,
        cancellation: Optional[CancellationToken] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None
    ) -> PlanState:
        """
        Download and validate the update

        Calling prepare() again on a staged plan returns the staged state
        without downloading anything. A failed plan may be prepared again.

        Returns:
            Staged, Rejected or Failed

        Raises:
            ContractViolation: If the plan was already committed, rejected or discarded
        """
        if isinstance(self._state, Staged):
            return self._state
        if not isinstance(self._state, (Fresh, Failed)):
            raise ContractViolation(
                f"prepare() called on {self.status.value} plan for {self.extension_id}"
            )

        registry = self.services.registry
        installed = None
        superseded_path = None
        if not self.services.first_launch and registry.is_installed(self.extension_id):
            installed = registry.get_installed(self.extension_id)
            if installed is None:
                raise ContractViolation(f"Registry reports {self.extension_id} installed without a descriptor")
            if self._version is not None and self._arbiter.compare(self._version, installed) <= 0:
                return self._reject(
                    RejectionReason.INCOMPATIBLE_VERSION,
                    f"Extension {self.extension_id}: current version (max) {self._version}",
                )
            superseded_path = installed.path

        try:
            local_file = self.services.fetcher.fetch(
                self._url,
                self.services.temp_dir,
                force_secure=self.force_secure,
                cancellation=cancellation,
                file_name=self._file_name,
                progress_callback=progress_callback,
            )
        except UpdateError as e:
            return self._fail(e)

        self._file_name = local_file.name

        try:
            actual = self.services.extractor.extract(local_file)
        except UpdateError as e:
            self._delete(local_file)
            return self._fail(e)

        if actual is None:
            # accepted on faith: artifacts without a manifest skip version and build checks
            logger.warning(
                f"Extension {self.extension_id}: no descriptor found in {local_file.name}, "
                f"staging it as is"
            )
            self._state = Staged(local_file, superseded_path, self._descriptor)
            return self._state

        if registry.was_updated_this_session(actual.id):
            self._delete(local_file)
            return self._reject(
                RejectionReason.ALREADY_PROCESSED,
                f"Extension {actual.id} was already updated in this session",
            )

        self._apply_descriptor(actual)

        if installed is not None and self._arbiter.compare(actual.version, installed) <= 0:
            self._delete(local_file)
            return self._reject(
                RejectionReason.INCOMPATIBLE_VERSION,
                f"Extension {self.extension_id}: current version (max) {actual.version}",
            )

        if registry.is_incompatible(actual, self.build):
            self._delete(local_file)
            return self._reject(
                RejectionReason.INCOMPATIBLE_PLATFORM,
                f"Extension {self.extension_id} is incompatible with current installation "
                f"({actual.compatibility_range()})",
            )

        self._state = Staged(local_file, superseded_path, actual)
        logger.info(f"Extension {self.extension_id} v{self._version or '?'} staged: {local_file}")
        return self._state

    def commit(self) -> Accepted:
        """
        Install the staged artifact

        Installer and action log errors propagate to the caller.

        Raises:
            ContractViolation: If the plan is not staged
        """
        state = self._state
        if not isinstance(state, Staged):
            raise ContractViolation(
                f"commit() requires a staged plan, plan for {self.extension_id} is {self.status.value}"
            )

        descriptor = state.descriptor or ExtensionDescriptor(
            id=self.extension_id,
            name=self.display_name,
            version=self._version,
            description=self._description,
            depends=self._depends,
        )
        self._stager.stage(state.superseded_path, state.file, self.display_name, descriptor)

        self._state = Accepted(state.file, descriptor)
        return self._state

    def discard(self) -> None:
        """Abandon a staged plan and delete its artifact"""
        state = self._state
        if isinstance(state, Staged):
            self._delete(state.file)
            self._state = Rejected(RejectionReason.DISCARDED, f"Update of {self.extension_id} discarded")
            logger.info(f"Extension {self.extension_id}: staged update discarded")

    def to_catalog_descriptor(self, host: Optional[str] = None) -> ExtensionDescriptor:
        """Return the catalog descriptor, building one from the plan's fields if needed"""
        if self._descriptor is not None and self._descriptor.download_url:
            return self._descriptor
        return ExtensionDescriptor(
            id=self.extension_id,
            name=self.display_name,
            version=self._version,
            repository=host,
            download_url=self._url,
            depends=self._depends,
            description=self._description,
        )

    def _apply_descriptor(self, actual: ExtensionDescriptor) -> None:
        self._descriptor = actual
        self._version = actual.version
        if actual.name:
            self._name = actual.name
        if actual.description is not None:
            self._description = actual.description
        self._depends = list(actual.depends)

    def _reject(self, reason: RejectionReason, message: str) -> Rejected:
        logger.info(message)
        self._state = Rejected(reason, message)
        return self._state

    def _fail(self, error: UpdateError) -> Failed:
        logger.warning(f"Extension {self.extension_id} was not downloaded from {self._url}: {error}")
        self._state = Failed(
            error,
            f"Extension {self.display_name} was not installed: {error}",
        )
        return self._state

    @staticmethod
    def _delete(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to clean up {path}: {e}")
