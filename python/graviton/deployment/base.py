"""
filename: graviton/deployment/base.py

Plugin-independent deployment handling:
 - CloudDeployment: the aggregate every plugin returns. It owns the deployment
   directory and composes a volume set and an instance set.
 - create_deployment / open_deployment: the new=True and new=False loaders.
 - list_deployments / remove_deployment_dir: housekeeping on the config root.

Deployment states, per directory:
    absent -> configured (config.json) -> volumes-up (volumes variables file)
    -> cluster-up (instance variables file), and back down in reverse order.
"""

from __future__ import annotations

import logging
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from pydantic import ValidationError

from graviton.errors import (
    DeploymentAlreadyExistsError,
    DeploymentNotFoundError,
    GravitonError,
    PreconditionError,
)
from graviton.models.deployment import (
    BaseDeployment,
    InstanceStatus,
    StardogDescription,
    VolumeStatus,
    deployment_dir,
    stardog_url,
)
from graviton.models.settings import GravitonSettings
from graviton.utils.json_file import load_model

if TYPE_CHECKING:
    from graviton.context import AppContext
    from graviton.plugins import Plugin, PluginRegistry

logger = logging.getLogger(__name__)


class CloudDeployment(ABC):
    """A deployment aggregate: one directory, one volume set, one instance set."""

    def __init__(self, base: BaseDeployment, ctx: AppContext) -> None:
        self.base = base
        self.ctx = ctx

    @property
    def name(self) -> str:
        return self.base.name

    @property
    def directory(self) -> Path:
        return self.base.directory

    @abstractmethod
    async def create_volume_set(
        self, license_path: str, size_of_each_volume: int, cluster_size: int
    ) -> None: ...

    @abstractmethod
    async def delete_volume_set(self) -> None: ...

    @abstractmethod
    def volume_exists(self) -> bool: ...

    @abstractmethod
    async def status_volume_set(self) -> VolumeStatus: ...

    @abstractmethod
    async def create_instance(
        self, zookeeper_size: int, http_mask: str
    ) -> InstanceStatus: ...

    @abstractmethod
    async def delete_instance(self) -> None: ...

    @abstractmethod
    def instance_exists(self) -> bool: ...

    @abstractmethod
    async def status_instance(self) -> InstanceStatus: ...

    async def full_status(self) -> StardogDescription:
        """Compose the status of both sub-resources.

        Missing or unreadable sub-resources are reported as absent rather than
        raising: URLs and hosts stay empty and the descriptions are None.
        """
        volume_status: Optional[VolumeStatus] = None
        if self.volume_exists():
            try:
                volume_status = await self.status_volume_set()
            except GravitonError as exc:
                logger.warning("Volume status of %s unavailable: %s", self.name, exc)
        if volume_status is None:
            self.ctx.console.log(1, "No volume information found.")

        instance_status: Optional[InstanceStatus] = None
        if self.instance_exists():
            try:
                instance_status = await self.status_instance()
            except GravitonError as exc:
                logger.warning("Instance status of %s unavailable: %s", self.name, exc)
        if instance_status is None:
            self.ctx.console.log(1, "No instance information found.")

        contacts = instance_status or InstanceStatus()
        return StardogDescription(
            ssh_host=contacts.bastion_contact,
            stardog_url=stardog_url(contacts.stardog_contact),
            stardog_internal_url=stardog_url(contacts.stardog_internal_contact),
            volume_description=volume_status,
            instance_description=instance_status,
        )


def new_base_deployment(
    settings: GravitonSettings,
    name: str,
    cloud_type: str,
    version: str,
    private_key: str = "",
    custom_props_file: str = "",
) -> BaseDeployment:
    """Build the record of a deployment that does not exist yet.

    Raises:
        PreconditionError: If the name cannot be used as a directory name.
    """
    try:
        return BaseDeployment(
            name=name,
            type=cloud_type,
            version=version,
            directory=deployment_dir(settings.config_dir, name),
            private_key=private_key,
            custom_props_file=custom_props_file,
        )
    except ValidationError as exc:
        raise PreconditionError(f"Invalid deployment {name!r}: {exc}") from exc


async def read_base_deployment(settings: GravitonSettings, name: str) -> BaseDeployment:
    """Load <config_dir>/deployments/<name>/config.json.

    The directory is re-attached from the current config root, so a config
    root that has been moved keeps working.

    Raises:
        DeploymentNotFoundError: If the deployment has no config.json.
        StatePersistError: If config.json is unreadable or malformed.
    """
    directory = deployment_dir(settings.config_dir, name)
    config_path = directory / "config.json"
    if not config_path.is_file():
        raise DeploymentNotFoundError(f"The deployment {name} does not exist")
    base = await load_model(config_path, BaseDeployment)
    base.directory = directory
    logger.debug("Loaded deployment %s from %s", name, config_path)
    return base


async def create_deployment(
    ctx: AppContext, plugin: Plugin, base: BaseDeployment
) -> CloudDeployment:
    """Create the deployment directory and let the plugin configure it.

    On any failure the directory is removed again.

    Raises:
        DeploymentAlreadyExistsError: If <dep_dir>/config.json already exists.
    """
    if base.config_path.exists():
        raise DeploymentAlreadyExistsError(f"The deployment {base.name} already exists")
    os.makedirs(base.directory, mode=0o755, exist_ok=True)
    try:
        return await plugin.load_deployment(ctx, base, new=True)
    except BaseException:
        shutil.rmtree(base.directory, ignore_errors=True)
        raise


async def open_deployment(
    ctx: AppContext, registry: PluginRegistry, name: str
) -> CloudDeployment:
    """Load an existing deployment with the plugin recorded in its config.json."""
    base = await read_base_deployment(ctx.settings, name)
    plugin = registry.get(base.type)
    return await plugin.load_deployment(ctx, base, new=False)


def list_deployments(settings: GravitonSettings) -> List[str]:
    """Names of all configured deployments under the config root, sorted."""
    root = settings.deployments_dir
    if not root.is_dir():
        return []
    return sorted(
        entry.name
        for entry in root.iterdir()
        if entry.is_dir() and (entry / "config.json").is_file()
    )


def remove_deployment_dir(settings: GravitonSettings, name: str) -> None:
    directory = deployment_dir(settings.config_dir, name)
    logger.info("Removing %s", directory)
    shutil.rmtree(directory, ignore_errors=True)


__all__ = [
    "CloudDeployment",
    "new_base_deployment",
    "read_base_deployment",
    "create_deployment",
    "open_deployment",
    "list_deployments",
    "remove_deployment_dir",
]
