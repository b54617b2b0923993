"""
graviton/models/deployment.py

Defines the plugin-independent deployment models:
 - BaseDeployment: the user-facing record stored in <dep_dir>/config.json.
 - VolumeStatus / InstanceStatus: parsed Terraform outputs of each sub-resource.
 - StardogDescription: the composed full-status view.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

STARDOG_PORT = 5821


def deployment_dir(config_dir: Path, name: str) -> Path:
    """Return <config_dir>/deployments/<name>."""
    return config_dir / "deployments" / name


def stardog_url(contact: str) -> str:
    """Build the Stardog HTTP URL for a contact address, or "" if there is none."""
    if not contact:
        return ""
    return f"http://{contact}:{STARDOG_PORT}"


class BaseDeployment(BaseModel):
    """One named deployment of the appliance.

    Attributes:
        name: Unique per config root; also the directory name.
        type: Cloud-type tag selecting the plugin (e.g. "aws").
        version: Version of Stardog to install.
        directory: <config_dir>/deployments/<name>.
        private_key: Path to the private key used for bastion access.
        custom_props_file: Optional path to a custom stardog.properties file.
        cloud_opts: Opaque plugin-specific options, decoded by the plugin.
    """

    name: str
    type: str
    version: str = ""
    directory: Path
    private_key: str = ""
    custom_props_file: str = ""
    cloud_opts: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        """Deployment names become directory names: no slashes, dots-only or blanks."""
        if not value.strip() or "/" in value or value in (".", ".."):
            raise ValueError(f"Invalid deployment name: {value!r}")
        return value

    @property
    def config_path(self) -> Path:
        return self.directory / "config.json"

    @property
    def iac_dir(self) -> Path:
        return self.directory / "etc" / "iac"


class VolumeStatus(BaseModel):
    """Volume identifiers reported by the volumes resource, in order."""

    volume_ids: List[str] = Field(default_factory=list)


class InstanceStatus(BaseModel):
    """Contact addresses reported by the instance resource."""

    bastion_contact: str = ""
    stardog_contact: str = ""
    stardog_internal_contact: str = ""
    zookeeper_nodes: List[str] = Field(default_factory=list)
    load_balancer_ip: str = ""


class StardogDescription(BaseModel):
    """Full status of a deployment as shown by `graviton status`."""

    ssh_host: str = ""
    stardog_url: str = ""
    stardog_internal_url: str = ""
    volume_description: Optional[VolumeStatus] = None
    instance_description: Optional[InstanceStatus] = None
    healthy: bool = False


__all__ = [
    "STARDOG_PORT",
    "deployment_dir",
    "stardog_url",
    "BaseDeployment",
    "VolumeStatus",
    "InstanceStatus",
    "StardogDescription",
]
