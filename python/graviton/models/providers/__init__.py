"""
graviton.models.providers

Cloud names known to graviton, and the per-cloud option models.
"""

from enum import Enum

from graviton.models.providers.aws import (
    AWSApiKey,
    AwsCloudOptions,
    AwsInstanceVars,
    AwsPluginOptions,
    AwsVolumeVars,
)


class CloudName(str, Enum):
    aws = "aws"


__all__ = [
    "CloudName",
    "AWSApiKey",
    "AwsCloudOptions",
    "AwsInstanceVars",
    "AwsPluginOptions",
    "AwsVolumeVars",
]
