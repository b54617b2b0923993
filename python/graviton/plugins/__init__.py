"""
graviton.plugins

A plugin adapts graviton to one cloud. Every plugin offers the same
capabilities: overlay user defaults on its options, declare per-command CLI
flags, and produce or load a deployment. The registry maps cloud names to
plugin instances; it is built once at program start and passed down.
"""

from __future__ import annotations

import argparse
import logging
import shutil
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from graviton.errors import PreconditionError, UnknownPluginError

if TYPE_CHECKING:
    from graviton.context import AppContext
    from graviton.deployment.base import CloudDeployment
    from graviton.models.deployment import BaseDeployment

logger = logging.getLogger(__name__)

# Commands whose parsers plugins may add flags to.
NEW_DEPLOYMENT_CMD = "new-deployment"
LAUNCH_CMD = "launch"
INSTANCE_CREATE_CMD = "instance create"


class Plugin(ABC):
    """Capabilities every cloud plugin provides."""

    name: str = ""

    @abstractmethod
    def load_defaults(self, defaults: Dict[str, Any]) -> None:
        """Overlay the user's default.json section onto the option defaults."""

    @abstractmethod
    def register_options(self, parsers: Dict[str, argparse.ArgumentParser]) -> None:
        """Declare flags on the given command parsers, with per-command defaults."""

    @abstractmethod
    def apply_options(self, args: argparse.Namespace) -> None:
        """Copy parsed flag values back onto the plugin options."""

    @abstractmethod
    async def load_deployment(
        self, ctx: AppContext, base: BaseDeployment, new: bool
    ) -> CloudDeployment:
        """Create (new=True) or reload (new=False) the deployment for `base`."""


def require_programs(programs: Iterable[str]) -> None:
    """Fail unless every program is on PATH.

    Raises:
        PreconditionError: Naming the first missing program.
    """
    for program in programs:
        if shutil.which(program) is None:
            raise PreconditionError(
                f"The program {program} must be in the path when running this program"
            )


class PluginRegistry:
    """Maps cloud names to plugins."""

    def __init__(self, plugins: Optional[Iterable[Plugin]] = None) -> None:
        self._plugins: Dict[str, Plugin] = {}
        for plugin in plugins or []:
            self.register(plugin)

    def register(self, plugin: Plugin) -> None:
        logger.debug("Registering plugin %s", plugin.name)
        self._plugins[plugin.name] = plugin

    def get(self, name: str) -> Plugin:
        try:
            return self._plugins[name]
        except KeyError:
            raise UnknownPluginError(f"The plugin {name} does not exist") from None

    def names(self) -> List[str]:
        return sorted(self._plugins)

    def plugins(self) -> List[Plugin]:
        return [self._plugins[n] for n in self.names()]


def default_registry() -> PluginRegistry:
    """A registry holding a fresh instance of every built-in plugin."""
    from graviton.plugins.aws.plugin import AwsPlugin

    return PluginRegistry([AwsPlugin()])


__all__ = [
    "NEW_DEPLOYMENT_CMD",
    "LAUNCH_CMD",
    "INSTANCE_CREATE_CMD",
    "Plugin",
    "PluginRegistry",
    "default_registry",
    "require_programs",
]
