"""
filename: graviton/plugins/aws/deployment.py

The AWS deployment aggregate. It hands each sub-resource manager only the
plain data it needs (working directory, Terraform variables, invoker) and
composes their results.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from graviton.deployment.base import CloudDeployment
from graviton.errors import PreconditionError
from graviton.models.deployment import BaseDeployment, InstanceStatus, VolumeStatus
from graviton.models.providers.aws import (
    AWSApiKey,
    AwsCloudOptions,
    AwsInstanceVars,
    AwsVolumeVars,
)
from graviton.plugins.aws.instance import InstanceSetManager
from graviton.plugins.aws.volumes import VolumeSetManager
from graviton.utils.terraform import Terraform

if TYPE_CHECKING:
    from graviton.context import AppContext

logger = logging.getLogger(__name__)


class AwsDeployment(CloudDeployment):
    """A Stardog cluster on EC2 with EBS-backed data volumes."""

    def __init__(
        self,
        base: BaseDeployment,
        options: AwsCloudOptions,
        ctx: AppContext,
        credentials: AWSApiKey,
    ) -> None:
        super().__init__(base, ctx)
        self.options = options
        terraform = Terraform(
            binary=ctx.settings.terraform_binary,
            env=credentials.to_env_dict(),
            runner=ctx.runner,
        )

        self.volumes = VolumeSetManager(
            work_dir=base.iac_dir / "volumes",
            template=AwsVolumeVars(
                deployment_name=base.name,
                region=options.region,
                aws_key_name=options.keyname,
                key_path=options.private_key_path,
                ami_id=options.ami_id,
                instance_type=options.sd_instance,
            ),
            terraform=terraform,
            console=ctx.console,
        )
        self.instance = InstanceSetManager(
            work_dir=base.iac_dir / "instance",
            template=AwsInstanceVars(
                deployment_name=base.name,
                region=options.region,
                key_name=options.keyname,
                version=base.version,
                zk_instance_type=options.zk_instance,
                sd_instance_type=options.sd_instance,
                bastion_instance_type=options.bastion_instance,
                ami_id=options.ami_id,
                private_key=options.private_key_path,
            ),
            volume_var_file=self.volumes.var_file,
            terraform=terraform,
            console=ctx.console,
        )

    async def create_volume_set(
        self, license_path: str, size_of_each_volume: int, cluster_size: int
    ) -> None:
        await self.volumes.create(license_path, size_of_each_volume, cluster_size)

    async def delete_volume_set(self) -> None:
        if self.instance.exists():
            raise PreconditionError(
                "The instance must be destroyed before its volumes are deleted"
            )
        await self.volumes.delete()

    def volume_exists(self) -> bool:
        return self.volumes.exists()

    async def status_volume_set(self) -> VolumeStatus:
        return await self.volumes.status()

    async def create_instance(self, zookeeper_size: int, http_mask: str) -> InstanceStatus:
        status = await self.instance.create(zookeeper_size, http_mask)
        if status.load_balancer_ip:
            logger.info("Load balancer of %s: %s", self.name, status.load_balancer_ip)
            self.ctx.console.log(
                1, f"The load balancer is at {status.load_balancer_ip}"
            )
        return status

    async def delete_instance(self) -> None:
        await self.instance.delete()

    def instance_exists(self) -> bool:
        return self.instance.exists()

    async def status_instance(self) -> InstanceStatus:
        return await self.instance.status()


__all__ = ["AwsDeployment"]
