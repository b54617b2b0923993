"""
graviton/plugins/aws/instance.py

Lifecycle of the EC2 instance set of a deployment: bastion, Stardog nodes
and ZooKeeper nodes behind a load balancer. The instance set needs an
existing volume set; its Stardog cluster size is the volume set's cluster
size.

The variables file etc/iac/instance/instance.json exists iff the set is up.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from graviton.errors import PreconditionError, StatePersistError
from graviton.models.deployment import InstanceStatus
from graviton.models.providers.aws import AwsInstanceVars, AwsVolumeVars
from graviton.utils.console import Console, Spinner
from graviton.utils.terraform import Terraform, get_output, key_value_scanner
from graviton.utils.var_file import read_var_file, write_var_file

logger = logging.getLogger(__name__)

INSTANCE_VARS_FILE = "instance.json"
LOAD_BALANCER_KEY = "load_balancer_ip"

instance_line_scanner = key_value_scanner([LOAD_BALANCER_KEY])


class InstanceSetManager:
    """Creates, inspects and deletes the instance set in `work_dir`.

    Args:
        work_dir: The staged instance Terraform directory.
        template: Variables derived from the deployment; sizes and the HTTP
            mask are filled in on create.
        volume_var_file: Variables file of the volume set this instance set
            mounts.
        terraform: Terraform invoker carrying binary, credentials and runner.
        console: Console for user-facing progress.
    """

    def __init__(
        self,
        work_dir: Path,
        template: AwsInstanceVars,
        volume_var_file: Path,
        terraform: Terraform,
        console: Console,
    ) -> None:
        self.work_dir = work_dir
        self.template = template
        self.volume_var_file = volume_var_file
        self.terraform = terraform
        self.console = console

    @property
    def var_file(self) -> Path:
        return self.work_dir / INSTANCE_VARS_FILE

    def exists(self) -> bool:
        return self.var_file.is_file()

    async def create(self, zookeeper_size: int, http_mask: str) -> InstanceStatus:
        """Create (or re-apply) the instance set.

        Returns:
            InstanceStatus holding the load balancer address captured from
            Terraform's apply output, if it printed one.

        Raises:
            PreconditionError: If no volume set exists or zookeeper_size < 1.
            CommandError: If Terraform fails. Nothing is rolled back.
        """
        if not self.volume_var_file.is_file():
            raise PreconditionError(
                "The volume set must be created before the instance can be launched"
            )
        if zookeeper_size < 1:
            raise PreconditionError("The ZooKeeper cluster size must be positive")
        volumes = await read_var_file(self.volume_var_file, AwsVolumeVars)

        variables = self.template.model_copy(
            update={
                "zk_size": str(zookeeper_size),
                "sd_size": volumes.cluster_size,
                "http_mask": http_mask,
            }
        )
        if self.exists():
            self.console.log(1, "The instance already exists.")
            logger.warning(
                "The instance of %s already exists, running terraform apply again.",
                variables.deployment_name,
            )
        await write_var_file(self.var_file, variables)

        await self.terraform.init(self.work_dir)
        logger.info("Running terraform...")
        spin = Spinner(self.console, 1, "Creating the instance VMs")
        result = await self.terraform.apply(
            self.work_dir, self.var_file, scanner=instance_line_scanner, spinner=spin
        )
        spin.close()
        self.console.log(1, "Successfully created the instance.")
        return InstanceStatus(load_balancer_ip=result.capture(LOAD_BALANCER_KEY) or "")

    async def delete(self) -> None:
        """Destroy the instance set and remove its variables file."""
        if not self.exists():
            raise PreconditionError("There is no configured instance")
        logger.info("Running terraform...")
        spin = Spinner(self.console, 1, "Deleting the instance VMs")
        await self.terraform.destroy(self.work_dir, self.var_file, spinner=spin)
        spin.close()
        try:
            self.var_file.unlink()
        except OSError as exc:
            raise StatePersistError(f"Failed to remove {self.var_file}: {exc}") from exc
        self.console.log(1, "Successfully destroyed the instance.")

    async def status(self) -> InstanceStatus:
        """Read the contact addresses from Terraform's outputs."""
        if not self.exists():
            raise PreconditionError("There is no configured instance")
        outputs = await self.terraform.output(self.work_dir)
        return InstanceStatus(
            bastion_contact=get_output(outputs, "bastion_contact", str),
            stardog_contact=get_output(outputs, "stardog_contact", str),
            stardog_internal_contact=get_output(outputs, "stardog_internal_contact", str),
            zookeeper_nodes=get_output(outputs, "zookeeper_nodes", List[str]),
        )


__all__ = ["InstanceSetManager", "INSTANCE_VARS_FILE", "instance_line_scanner"]
