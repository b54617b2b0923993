"""
filename: graviton/models/providers/aws.py

Pydantic models for the 'aws' plugin:
 - AWSApiKey: credentials read from the environment.
 - AwsPluginOptions: plugin option defaults, overlaid by default.json and flags.
 - AwsCloudOptions: the cloud_opts record persisted in <dep_dir>/config.json.
 - AwsVolumeVars / AwsInstanceVars: Terraform variables files of the two
   sub-resources. Field aliases are the Terraform variable names.
"""

from __future__ import annotations

import os
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from graviton.errors import PreconditionError
from graviton.models.terraform import TerraformVariables

AWS_ACCESS_KEY_ENV = "AWS_ACCESS_KEY_ID"
AWS_SECRET_KEY_ENV = "AWS_SECRET_ACCESS_KEY"
AWS_SESSION_TOKEN_ENV = "AWS_SESSION_TOKEN"

VALID_REGIONS: List[str] = [
    "us-east-1",
    "us-east-2",
    "us-west-1",
    "us-west-2",
    "ca-central-1",
    "eu-west-1",
    "eu-west-2",
    "eu-central-1",
    "ap-south-1",
    "ap-northeast-1",
    "ap-northeast-2",
    "ap-southeast-1",
    "ap-southeast-2",
    "sa-east-1",
]


class AWSApiKey(BaseModel):
    """Pydantic model for AWSApiKey credentials."""

    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> AWSApiKey:
        """Read the credentials from the process environment.

        Raises:
            PreconditionError: If either mandatory variable is unset or empty.
        """
        env = os.environ if environ is None else environ
        for name in (AWS_ACCESS_KEY_ENV, AWS_SECRET_KEY_ENV):
            if not env.get(name):
                raise PreconditionError(
                    f"The environment variable {name} must be set"
                )
        return cls(
            access_key_id=env[AWS_ACCESS_KEY_ENV],
            secret_access_key=env[AWS_SECRET_KEY_ENV],
            session_token=env.get(AWS_SESSION_TOKEN_ENV) or None,
        )

    def to_env_dict(self) -> Dict[str, str]:
        """Converts credentials to a dictionary of environment variables.

        Returns:
            Dict[str, str]: A dictionary containing AWS environment variables.
        """
        env = {
            AWS_ACCESS_KEY_ENV: self.access_key_id,
            AWS_SECRET_KEY_ENV: self.secret_access_key,
        }
        if self.session_token:
            env[AWS_SESSION_TOKEN_ENV] = self.session_token
        return env


class AwsPluginOptions(BaseModel):
    """Option defaults of the aws plugin; keys match the default.json section."""

    model_config = ConfigDict(extra="ignore")

    region: str = "us-west-1"
    ami_id: str = ""
    aws_key_name: str = ""
    zk_instance_type: str = "t2.small"
    sd_instance_type: str = "m3.medium"
    bastion_instance_type: str = "t2.small"


class AwsCloudOptions(BaseModel):
    """Cloud options persisted with the BaseDeployment."""

    model_config = ConfigDict(extra="ignore")

    region: str = ""
    ami_id: str = ""
    keyname: str = ""
    zk_instance: str = ""
    sd_instance: str = ""
    bastion_instance: str = ""
    private_key_path: str = ""
    custom_stardog_properties: str = ""


class AwsVolumeVars(TerraformVariables):
    """Variables file of the EBS volume set (etc/iac/volumes/config.json)."""

    deployment_name: str = ""
    region: str = Field("", alias="aws_region")
    size_of_each_volume: str = Field("", alias="storage_size")
    cluster_size: str = ""
    aws_key_name: str = ""
    key_path: str = ""
    ami_id: str = Field("", alias="ami")
    instance_type: str = ""
    license_path: str = Field("", alias="stardog_license")


class AwsInstanceVars(TerraformVariables):
    """Variables file of the EC2 instance set (etc/iac/instance/instance.json)."""

    deployment_name: str = ""
    region: str = Field("", alias="aws_region")
    key_name: str = Field("", alias="aws_key_name")
    version: str = ""
    zk_instance_type: str = ""
    sd_instance_type: str = Field("", alias="stardog_instance_type")
    bastion_instance_type: str = ""
    zk_size: str = Field("", alias="zookeeper_size")
    sd_size: str = Field("", alias="stardog_size")
    ami_id: str = Field("", alias="baseami")
    private_key: str = ""
    http_mask: str = Field("", alias="http_subnet")


__all__ = [
    "VALID_REGIONS",
    "AWSApiKey",
    "AwsPluginOptions",
    "AwsCloudOptions",
    "AwsVolumeVars",
    "AwsInstanceVars",
]
