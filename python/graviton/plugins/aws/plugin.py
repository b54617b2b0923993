"""
filename: graviton/plugins/aws/plugin.py

The 'aws' plugin: option defaults, per-command flags and the deployment
loader for EC2-hosted clusters.
"""

from __future__ import annotations

import argparse
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

import aiofiles
from pydantic import ValidationError

from graviton.errors import PreconditionError, StatePersistError
from graviton.models.deployment import BaseDeployment
from graviton.models.providers import CloudName
from graviton.models.providers.aws import (
    VALID_REGIONS,
    AWSApiKey,
    AwsCloudOptions,
    AwsPluginOptions,
)
from graviton.plugins import NEW_DEPLOYMENT_CMD, Plugin, require_programs
from graviton.plugins.aws.deployment import AwsDeployment
from graviton.utils.assets import stage_assets
from graviton.utils.json_file import save_model

if TYPE_CHECKING:
    from graviton.context import AppContext

logger = logging.getLogger(__name__)

IAC_ASSETS = "etc/iac"
NEW_DEPLOYMENT_INSTANCE_TYPE = "m3.large"

# (argparse dest, plugin option field, persisted cloud option field)
_FLAG_FIELDS = [
    ("aws_region", "region", "region"),
    ("aws_zk_instance_type", "zk_instance_type", "zk_instance"),
    ("aws_sd_instance_type", "sd_instance_type", "sd_instance"),
    ("aws_key_name", "aws_key_name", "keyname"),
]


class AwsPlugin(Plugin):
    name = CloudName.aws.value

    def __init__(self, options: Optional[AwsPluginOptions] = None) -> None:
        self.options = options or AwsPluginOptions()
        # flags given explicitly to a command acting on an existing deployment
        self.overrides: Dict[str, str] = {}

    def load_defaults(self, defaults: Dict[str, Any]) -> None:
        merged = {**self.options.model_dump(), **defaults}
        try:
            self.options = AwsPluginOptions.model_validate(merged)
        except ValidationError as exc:
            raise PreconditionError(f"Invalid aws defaults: {exc}") from exc

    def register_options(self, parsers: Dict[str, argparse.ArgumentParser]) -> None:
        """Add the aws flags to each command parser.

        On new-deployment the flags carry the option defaults (instance types
        default to m3.large). On commands acting on an existing deployment
        they default to None, so only flags the user actually passes override
        the deployment's persisted options.
        """
        regions = " | ".join(VALID_REGIONS)
        for command, parser in parsers.items():
            new = command == NEW_DEPLOYMENT_CMD
            if new:
                region_default: Optional[str] = self.options.region
                zk_default: Optional[str] = NEW_DEPLOYMENT_INSTANCE_TYPE
                sd_default: Optional[str] = NEW_DEPLOYMENT_INSTANCE_TYPE
                key_default: Optional[str] = self.options.aws_key_name
                suffix = ""
            else:
                region_default = zk_default = sd_default = key_default = None
                suffix = " Overrides the deployment's configured value."
            group = parser.add_argument_group("aws options")
            group.add_argument(
                "--region",
                dest="aws_region",
                default=region_default,
                help=f"The aws region to use [{regions}].{suffix}",
            )
            group.add_argument(
                "--zk-instance-type",
                dest="aws_zk_instance_type",
                default=zk_default,
                help=f"The instance type to use for zookeeper VMs.{suffix}",
            )
            group.add_argument(
                "--sd-instance-type",
                dest="aws_sd_instance_type",
                default=sd_default,
                help=f"The instance type to use for stardog VMs.{suffix}",
            )
            group.add_argument(
                "--aws-key-name",
                dest="aws_key_name",
                default=key_default,
                help=f"The AWS ssh key name.{suffix}",
            )

    def apply_options(self, args: argparse.Namespace) -> None:
        new = getattr(args, "command", None) == NEW_DEPLOYMENT_CMD
        update = {}
        overrides = {}
        for dest, field, cloud_field in _FLAG_FIELDS:
            value = getattr(args, dest, None)
            if value is None:
                continue
            update[field] = value
            if not new:
                overrides[cloud_field] = value
        self.options = self.options.model_copy(update=update)
        self.overrides = overrides

    def check_preconditions(self, ctx: AppContext) -> AWSApiKey:
        """Read the credentials and make sure the IaC and ssh tools are installed."""
        credentials = AWSApiKey.from_environ()
        settings = ctx.settings
        require_programs(
            [
                settings.terraform_binary,
                settings.image_builder_binary,
                settings.ssh_binary,
            ]
        )
        return credentials

    async def load_deployment(
        self, ctx: AppContext, base: BaseDeployment, new: bool
    ) -> AwsDeployment:
        credentials = self.check_preconditions(ctx)
        if new:
            cloud = await self._new_cloud_options(ctx, base)
            base.cloud_opts = cloud.model_dump()
            await save_model(base.config_path, base)
            logger.info("Created deployment %s in %s", base.name, base.directory)
        else:
            try:
                cloud = AwsCloudOptions.model_validate(base.cloud_opts)
            except ValidationError as exc:
                raise StatePersistError(
                    f"The cloud options of {base.name} are malformed: {exc}"
                ) from exc
            cloud = await self._apply_overrides(ctx, base, cloud)
        return AwsDeployment(base, cloud, ctx, credentials)

    async def _apply_overrides(
        self, ctx: AppContext, base: BaseDeployment, cloud: AwsCloudOptions
    ) -> AwsCloudOptions:
        """Persist the flags passed to this command over the stored cloud options."""
        changed = {
            field: value
            for field, value in self.overrides.items()
            if getattr(cloud, field) != value
        }
        if not changed:
            return cloud
        for field, value in changed.items():
            logger.info(
                "Changing %s of %s from %r to %r",
                field,
                base.name,
                getattr(cloud, field),
                value,
            )
            ctx.console.log(2, f"Using {field}={value} for {base.name}")
        cloud = cloud.model_copy(update=changed)
        base.cloud_opts = cloud.model_dump()
        await save_model(base.config_path, base)
        return cloud

    async def _new_cloud_options(
        self, ctx: AppContext, base: BaseDeployment
    ) -> AwsCloudOptions:
        """Fill in missing inputs interactively and stage the IaC templates."""
        resolver = ctx.resolver
        opts = self.options
        ami_id = opts.ami_id
        if not ami_id:
            ctx.console.log(1, "A base AMI is required for launching the virtual appliance.")
            ami_id = resolver.ask_string("Stardog base AMI", "")
            if not ami_id:
                raise PreconditionError("An AMI is required")
        key_name = opts.aws_key_name or resolver.ask_string("EC2 keyname", "default")
        region = opts.region or resolver.ask_string("Region", "us-west-1")
        if not base.private_key:
            base.private_key = resolver.ask_string("Private key path", "")
            if not base.private_key:
                raise PreconditionError("A path to a private key must be provided")

        staged = stage_assets(base.directory, IAC_ASSETS, overwrite=False)
        ctx.console.log(2, f"Terraform configuration extracted to {staged}")

        custom_props = ""
        if base.custom_props_file:
            try:
                async with aiofiles.open(base.custom_props_file, "r") as f:
                    custom_props = await f.read()
            except OSError as exc:
                raise PreconditionError(
                    f"Cannot read {base.custom_props_file}: {exc}"
                ) from exc

        return AwsCloudOptions(
            region=region,
            ami_id=ami_id,
            keyname=key_name,
            zk_instance=opts.zk_instance_type,
            sd_instance=opts.sd_instance_type,
            bastion_instance=opts.bastion_instance_type,
            private_key_path=base.private_key,
            custom_stardog_properties=custom_props,
        )


__all__ = ["AwsPlugin"]
