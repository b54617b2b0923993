"""
graviton/plugins/aws/volumes.py

Lifecycle of the EBS volume set of a deployment. Creation runs Terraform twice:
the first apply boots a one-shot builder VM that formats the volumes and
snapshots them; builder.tf is then removed and a second apply tears the
builder down while the snapshots remain.

The variables file etc/iac/volumes/config.json exists iff the set is up.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from graviton.errors import PreconditionError, StatePersistError
from graviton.models.deployment import VolumeStatus
from graviton.models.providers.aws import AwsVolumeVars
from graviton.utils.assets import restore_asset
from graviton.utils.console import Console, Spinner
from graviton.utils.terraform import Terraform, get_output
from graviton.utils.var_file import read_var_file, write_var_file

logger = logging.getLogger(__name__)

VOLUME_VARS_FILE = "config.json"
BUILDER_TEMPLATE = "builder.tf"
BUILDER_ASSET = f"etc/iac/volumes/{BUILDER_TEMPLATE}"


class VolumeSetManager:
    """Creates, inspects and deletes the volume set in `work_dir`.

    Args:
        work_dir: The staged volumes Terraform directory.
        template: Variables derived from the deployment (name, region, keys,
            AMI, instance type); sizes and license are filled in on create.
        terraform: Terraform invoker carrying binary, credentials and runner.
        console: Console for user-facing progress.
    """

    def __init__(
        self,
        work_dir: Path,
        template: AwsVolumeVars,
        terraform: Terraform,
        console: Console,
    ) -> None:
        self.work_dir = work_dir
        self.template = template
        self.terraform = terraform
        self.console = console

    @property
    def var_file(self) -> Path:
        return self.work_dir / VOLUME_VARS_FILE

    def exists(self) -> bool:
        return self.var_file.is_file()

    async def load(self) -> AwsVolumeVars:
        """Read the persisted variables of an existing volume set."""
        if not self.exists():
            raise PreconditionError(
                f"No volume set exists for {self.template.deployment_name}"
            )
        return await read_var_file(self.var_file, AwsVolumeVars)

    async def create(
        self, license_path: str, size_of_each_volume: int, cluster_size: int
    ) -> AwsVolumeVars:
        """Create (or re-apply) the volume set and return its persisted variables.

        Raises:
            PreconditionError: If the license is unreadable or a size is not positive.
            StatePersistError: If the variables file cannot be written.
            CommandError: If a Terraform run fails. Nothing is rolled back; the
                set can be repaired by calling create or delete again.
        """
        if cluster_size < 1 or size_of_each_volume < 1:
            raise PreconditionError("Cluster size and volume size must be positive")
        if not os.access(license_path, os.R_OK) or not os.path.isfile(license_path):
            raise PreconditionError(f"The license file {license_path} is not readable")

        self.console.log(2, f"Creating an aws volume set in directory {self.work_dir}")
        variables = self.template.model_copy(
            update={
                "cluster_size": str(cluster_size),
                "size_of_each_volume": str(size_of_each_volume),
                "license_path": license_path,
            }
        )
        builder = self.work_dir / BUILDER_TEMPLATE

        if self.exists():
            message = (
                f"Volumes have already been created for the "
                f"{variables.deployment_name} deployment, running terraform apply again."
            )
            self.console.log(1, message)
            logger.warning(message)
        elif restore_asset(builder, BUILDER_ASSET):
            logger.info("Restored %s for a fresh volume set", builder)
        await write_var_file(self.var_file, variables)

        await self.terraform.init(self.work_dir)
        spin = Spinner(self.console, 1, "Calling out to terraform to create the volumes")
        await self.terraform.apply(self.work_dir, self.var_file, spinner=spin)
        spin.close()

        if builder.exists():
            try:
                builder.unlink()
            except OSError as exc:
                raise StatePersistError(f"Failed to remove {builder}: {exc}") from exc
            spin = Spinner(
                self.console, 1, "Calling out to terraform to stop builder instances"
            )
            await self.terraform.apply(self.work_dir, self.var_file, spinner=spin)
            spin.close()
        else:
            logger.info("%s already removed by an earlier create", builder)

        self.console.log(1, "Successfully created the volumes.")
        return variables

    async def delete(self) -> None:
        """Destroy the volume set and remove its variables file."""
        if not self.exists():
            raise PreconditionError("There is no configured volume set")
        spin = Spinner(self.console, 1, "Calling out to terraform to delete the volumes")
        await self.terraform.destroy(self.work_dir, self.var_file, spinner=spin)
        spin.close()
        try:
            self.var_file.unlink()
        except OSError as exc:
            raise StatePersistError(f"Failed to remove {self.var_file}: {exc}") from exc
        self.console.log(1, "Successfully destroyed the volumes.")

    async def status(self) -> VolumeStatus:
        """Read the volume ids from Terraform's outputs."""
        if not self.exists():
            raise PreconditionError("There is no configured volume set")
        outputs = await self.terraform.output(self.work_dir)
        return VolumeStatus(volume_ids=get_output(outputs, "volumes", List[str]))


__all__ = ["VolumeSetManager", "VOLUME_VARS_FILE", "BUILDER_TEMPLATE"]
