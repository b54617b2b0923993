"""
graviton/models/settings.py

Environment-driven settings for the orchestrator, plus the user defaults file
(<config_dir>/default.json) that overlays per-cloud plugin options.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_TRUE_STRINGS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_STRINGS = {"0", "f", "F", "FALSE", "false", "False"}


def parse_bool(value: str) -> bool:
    """Parse a boolean the way the unit-test switches have always been parsed.

    Accepts 1/t/T/TRUE/true/True and 0/f/F/FALSE/false/False.

    Raises:
        ValueError: For any other string.
    """
    if value in _TRUE_STRINGS:
        return True
    if value in _FALSE_STRINGS:
        return False
    raise ValueError(f"Invalid boolean string: {value!r}")


class GravitonSettings(BaseSettings):
    """
    Settings mapped from environment variables prefixed with `STARDOG_GRAVITON_`.
    For example `STARDOG_GRAVITON_UNIT_TEST=1` populates `unit_test`.
    """

    model_config = SettingsConfigDict(env_prefix="STARDOG_GRAVITON_")

    config_dir: Path = Field(default_factory=lambda: Path.home() / ".graviton")
    unit_test: str = ""
    healthy: str = ""
    terraform_binary: str = "terraform"
    image_builder_binary: str = "packer"
    ssh_binary: str = "ssh"
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    health_poll_interval: float = 2.0

    @property
    def unit_test_mode(self) -> bool:
        """True when STARDOG_GRAVITON_UNIT_TEST is set to anything non-empty."""
        return self.unit_test != ""

    @property
    def resolved_log_file(self) -> Path:
        return self.log_file or self.config_dir / "graviton.log"

    @property
    def deployments_dir(self) -> Path:
        return self.config_dir / "deployments"


class DefaultConfig(BaseModel):
    """User defaults read from <config_dir>/default.json.

    Per-cloud sections (e.g. "aws") are kept as extra fields and handed to the
    matching plugin's `load_defaults`.
    """

    model_config = ConfigDict(extra="allow")

    cloud_type: str = "aws"
    verbose: int = 1

    def plugin_defaults(self, cloud: str) -> Dict[str, Any]:
        extra = self.model_extra or {}
        section = extra.get(cloud)
        return section if isinstance(section, dict) else {}


__all__ = ["GravitonSettings", "DefaultConfig", "parse_bool"]
