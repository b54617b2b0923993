#!/usr/bin/env python3
"""
graviton/cli/graviton.py

Command line entry point: create, launch, inspect and destroy Stardog
cluster deployments.

Usage example:
  graviton new-deployment demo 5.0.0 --private-key ~/.ssh/demo.pem
  graviton launch demo --license ~/stardog-license-key.bin
  graviton status demo --json-file demo.json
  graviton client demo -- cluster info
  graviton destroy demo
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, NoReturn, Optional, Tuple

from pydantic import ValidationError

from graviton import __version__
from graviton.context import AppContext
from graviton.deployment.base import (
    CloudDeployment,
    create_deployment,
    list_deployments,
    new_base_deployment,
    open_deployment,
)
from graviton.deployment.lifecycle import (
    create_instance_and_wait,
    destroy_deployment,
    full_status_report,
    launch,
    run_client,
    run_ssh,
)
from graviton.errors import CanceledError, GravitonError, StatePersistError
from graviton.models.settings import DefaultConfig, GravitonSettings
from graviton.plugins import (
    INSTANCE_CREATE_CMD,
    LAUNCH_CMD,
    NEW_DEPLOYMENT_CMD,
    PluginRegistry,
    default_registry,
)
from graviton.utils.async_command_runner import CommandRunner, run_command
from graviton.utils.console import Console
from graviton.utils.lock import deployment_lock
from graviton.utils.prompt import InputResolver

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "default.json"
DEFAULT_WAIT_TIMEOUT = 600
EXIT_CANCELED = 130


def load_default_config(config_dir: Path) -> DefaultConfig:
    """Read <config_dir>/default.json; a missing file yields the built-in defaults.

    Raises:
        StatePersistError: If the file exists but is not a valid defaults document.
    """
    path = config_dir / DEFAULT_CONFIG_FILE
    if not path.is_file():
        return DefaultConfig()
    try:
        return DefaultConfig.model_validate(json.loads(path.read_text()))
    except (OSError, ValueError, ValidationError) as exc:
        raise StatePersistError(f"Cannot load {path}: {exc}") from exc


def setup_logging(settings: GravitonSettings) -> None:
    log_file = settings.resolved_log_file
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(log_file),
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@asynccontextmanager
async def locked_deployment(
    ctx: AppContext, registry: PluginRegistry, name: str
) -> AsyncIterator[CloudDeployment]:
    deployment = await open_deployment(ctx, registry, name)
    with deployment_lock(deployment.directory):
        yield deployment


# ---------------------------------------------------------------------------
# command handlers
# ---------------------------------------------------------------------------


async def _new_deployment(
    ctx: AppContext, registry: PluginRegistry, args: argparse.Namespace
) -> int:
    plugin = registry.get(args.cloud)
    base = new_base_deployment(
        ctx.settings,
        args.name,
        plugin.name,
        args.version,
        private_key=args.private_key,
        custom_props_file=args.custom_props,
    )
    await create_deployment(ctx, plugin, base)
    ctx.console.log(1, ctx.console.success(f"Deployment {args.name} created."))
    return 0


async def _volume_create(
    ctx: AppContext, registry: PluginRegistry, args: argparse.Namespace
) -> int:
    async with locked_deployment(ctx, registry, args.name) as deployment:
        await deployment.create_volume_set(
            args.license, args.volume_size, args.cluster_size
        )
    return 0


async def _volume_destroy(
    ctx: AppContext, registry: PluginRegistry, args: argparse.Namespace
) -> int:
    async with locked_deployment(ctx, registry, args.name) as deployment:
        await deployment.delete_volume_set()
    return 0


async def _volume_status(
    ctx: AppContext, registry: PluginRegistry, args: argparse.Namespace
) -> int:
    deployment = await open_deployment(ctx, registry, args.name)
    status = await deployment.status_volume_set()
    for volume_id in status.volume_ids:
        ctx.console.log(1, volume_id)
    return 0


async def _instance_create(
    ctx: AppContext, registry: PluginRegistry, args: argparse.Namespace
) -> int:
    async with locked_deployment(ctx, registry, args.name) as deployment:
        await create_instance_and_wait(
            ctx,
            deployment,
            args.zk_size,
            args.http_mask,
            args.wait_timeout,
            args.no_wait,
        )
    return 0


async def _instance_destroy(
    ctx: AppContext, registry: PluginRegistry, args: argparse.Namespace
) -> int:
    async with locked_deployment(ctx, registry, args.name) as deployment:
        await deployment.delete_instance()
    return 0


async def _instance_status(
    ctx: AppContext, registry: PluginRegistry, args: argparse.Namespace
) -> int:
    deployment = await open_deployment(ctx, registry, args.name)
    status = await deployment.status_instance()
    console = ctx.console
    console.log(1, f"Bastion: {status.bastion_contact}")
    console.log(1, f"Stardog: {status.stardog_contact}")
    console.log(1, f"Stardog (internal): {status.stardog_internal_contact}")
    console.log(1, f"ZooKeeper nodes: {', '.join(status.zookeeper_nodes)}")
    return 0


async def _launch(
    ctx: AppContext, registry: PluginRegistry, args: argparse.Namespace
) -> int:
    async with locked_deployment(ctx, registry, args.name) as deployment:
        await launch(
            ctx,
            deployment,
            args.license,
            args.volume_size,
            args.cluster_size,
            args.zk_size,
            args.http_mask,
            args.wait_timeout,
            args.no_wait,
        )
    return 0


async def _status(
    ctx: AppContext, registry: PluginRegistry, args: argparse.Namespace
) -> int:
    deployment = await open_deployment(ctx, registry, args.name)
    outfile = Path(args.json_file) if args.json_file else None
    await full_status_report(ctx, deployment, args.internal, outfile)
    return 0


async def _ssh(
    ctx: AppContext, registry: PluginRegistry, args: argparse.Namespace
) -> int:
    deployment = await open_deployment(ctx, registry, args.name)
    return await run_ssh(ctx, deployment)


async def _client(
    ctx: AppContext, registry: PluginRegistry, args: argparse.Namespace
) -> int:
    client_args = list(args.client_args)
    if client_args and client_args[0] == "--":
        client_args = client_args[1:]
    deployment = await open_deployment(ctx, registry, args.name)
    await run_client(ctx, deployment, client_args)
    return 0


async def _destroy(
    ctx: AppContext, registry: PluginRegistry, args: argparse.Namespace
) -> int:
    async with locked_deployment(ctx, registry, args.name) as deployment:
        await destroy_deployment(ctx, deployment, force=args.force)
    return 0


async def _ls(
    ctx: AppContext, registry: PluginRegistry, args: argparse.Namespace
) -> int:
    for name in list_deployments(ctx.settings):
        ctx.console.log(0, name)
    return 0


# ---------------------------------------------------------------------------
# parser
# ---------------------------------------------------------------------------


def _add_global_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config-dir",
        default=None,
        help="Root of the graviton configuration (default: ~/.graviton).",
    )
    parser.add_argument(
        "--cloud",
        default=None,
        help="Cloud plugin to use for new deployments (default: from default.json, else aws).",
    )
    parser.add_argument(
        "--log-level", default=None, help="Log file level (default: INFO)."
    )


def _add_launch_options(parser: argparse.ArgumentParser, volumes: bool) -> None:
    if volumes:
        parser.add_argument(
            "--license", required=True, help="Path to the Stardog license file."
        )
        parser.add_argument(
            "--cluster-size", type=int, default=3, help="Number of Stardog nodes."
        )
        parser.add_argument(
            "--volume-size",
            type=int,
            default=10,
            help="Size in GB of each node's data volume.",
        )
    parser.add_argument(
        "--zk-size", type=int, default=3, help="Number of ZooKeeper nodes."
    )
    parser.add_argument(
        "--http-mask",
        default="",
        help="CIDR mask allowed to reach the Stardog HTTP port.",
    )
    parser.add_argument(
        "--wait-timeout",
        type=int,
        default=DEFAULT_WAIT_TIMEOUT,
        help=f"Seconds to wait for the cluster to get healthy (default: {DEFAULT_WAIT_TIMEOUT}).",
    )
    parser.add_argument(
        "--no-wait",
        action="store_true",
        default=False,
        help="Do not wait for the cluster to get healthy.",
    )


def build_parser(
    registry: PluginRegistry, cloud: str
) -> argparse.ArgumentParser:
    """Build the full parser; the `cloud` plugin contributes its own flags."""
    parser = argparse.ArgumentParser(
        prog="graviton",
        description="Provision and manage Stardog clusters in the cloud.",
    )
    parser.add_argument("--version", action="version", version=__version__)
    _add_global_options(parser)
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=None,
        help="Increase console verbosity (repeatable).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    new_parser = subparsers.add_parser(
        NEW_DEPLOYMENT_CMD, help="Configure a new deployment."
    )
    new_parser.add_argument("name", help="Name of the deployment.")
    new_parser.add_argument("version", help="Version of Stardog to install.")
    new_parser.add_argument(
        "--private-key", default="", help="Private key used to reach the bastion host."
    )
    new_parser.add_argument(
        "--custom-props", default="", help="A custom stardog.properties file."
    )
    new_parser.set_defaults(func=_new_deployment)

    volume_parser = subparsers.add_parser("volume", help="Manage the data volumes.")
    volume_sub = volume_parser.add_subparsers(dest="volume_command", required=True)
    p = volume_sub.add_parser("create", help="Create the volume set.")
    p.add_argument("name")
    p.add_argument("--license", required=True, help="Path to the Stardog license file.")
    p.add_argument("--cluster-size", type=int, default=3, help="Number of Stardog nodes.")
    p.add_argument(
        "--volume-size", type=int, default=10, help="Size in GB of each volume."
    )
    p.set_defaults(func=_volume_create)
    p = volume_sub.add_parser("destroy", help="Delete the volume set.")
    p.add_argument("name")
    p.set_defaults(func=_volume_destroy)
    p = volume_sub.add_parser("status", help="List the volume ids.")
    p.add_argument("name")
    p.set_defaults(func=_volume_status)

    instance_parser = subparsers.add_parser("instance", help="Manage the cluster VMs.")
    instance_sub = instance_parser.add_subparsers(dest="instance_command", required=True)
    instance_create_parser = instance_sub.add_parser(
        "create", help="Create the instance set."
    )
    instance_create_parser.add_argument("name")
    _add_launch_options(instance_create_parser, volumes=False)
    instance_create_parser.set_defaults(func=_instance_create)
    p = instance_sub.add_parser("destroy", help="Delete the instance set.")
    p.add_argument("name")
    p.set_defaults(func=_instance_destroy)
    p = instance_sub.add_parser("status", help="Show the contact addresses.")
    p.add_argument("name")
    p.set_defaults(func=_instance_status)

    launch_parser = subparsers.add_parser(
        LAUNCH_CMD, help="Create volumes (if needed) and the instance, then wait."
    )
    launch_parser.add_argument("name")
    _add_launch_options(launch_parser, volumes=True)
    launch_parser.set_defaults(func=_launch)

    p = subparsers.add_parser("status", help="Show the status and health.")
    p.add_argument("name")
    p.add_argument(
        "--internal",
        action="store_true",
        default=False,
        help="Check health from the bastion host instead of this host.",
    )
    p.add_argument("--json-file", default=None, help="Write the status as JSON here.")
    p.set_defaults(func=_status)

    p = subparsers.add_parser("ssh", help="Open a shell on the bastion host.")
    p.add_argument("name")
    p.set_defaults(func=_ssh)

    p = subparsers.add_parser("client", help="Run stardog-admin on the bastion host.")
    p.add_argument("name")
    p.add_argument("client_args", nargs=argparse.REMAINDER)
    p.set_defaults(func=_client)

    p = subparsers.add_parser("destroy", help="Tear down and remove a deployment.")
    p.add_argument("name")
    p.add_argument(
        "--force",
        action="store_true",
        default=False,
        help="Remove the deployment even if its cloud resources cannot be destroyed.",
    )
    p.set_defaults(func=_destroy)

    p = subparsers.add_parser("ls", help="List the deployments.")
    p.set_defaults(func=_ls)

    registry.get(cloud).register_options(
        {
            NEW_DEPLOYMENT_CMD: new_parser,
            LAUNCH_CMD: launch_parser,
            INSTANCE_CREATE_CMD: instance_create_parser,
        }
    )
    return parser


def _prepare(
    argv: List[str],
    registry: PluginRegistry,
    runner: CommandRunner,
    resolver: Optional[InputResolver],
) -> Tuple[AppContext, argparse.Namespace]:
    pre = argparse.ArgumentParser(add_help=False)
    _add_global_options(pre)
    early, _ = pre.parse_known_args(argv)

    overrides = {}
    if early.config_dir:
        overrides["config_dir"] = Path(early.config_dir).expanduser()
    if early.log_level:
        overrides["log_level"] = early.log_level
    settings = GravitonSettings(**overrides)
    setup_logging(settings)
    defaults = load_default_config(settings.config_dir)
    cloud = early.cloud or defaults.cloud_type
    plugin = registry.get(cloud)
    plugin.load_defaults(defaults.plugin_defaults(cloud))

    args = build_parser(registry, cloud).parse_args(argv)
    args.cloud = cloud
    plugin.apply_options(args)
    verbose = args.verbose if args.verbose is not None else defaults.verbose
    ctx = AppContext(
        settings=settings,
        console=Console(verbose=verbose),
        resolver=resolver,
        runner=runner,
    )
    logger.debug("graviton %s: %s", __version__, argv)
    return ctx, args


def run(
    argv: Optional[List[str]] = None,
    registry: Optional[PluginRegistry] = None,
    runner: CommandRunner = run_command,
    resolver: Optional[InputResolver] = None,
) -> int:
    """Parse `argv`, run the selected command and return the exit status."""
    argv = sys.argv[1:] if argv is None else list(argv)
    registry = registry or default_registry()
    try:
        ctx, args = _prepare(argv, registry, runner, resolver)
        return asyncio.run(args.func(ctx, registry, args))
    except (KeyboardInterrupt, asyncio.CancelledError):
        err = CanceledError("The operation was canceled")
        logger.error("%s", err)
        print(f"ERROR: {err}", file=sys.stderr)
        return EXIT_CANCELED
    except GravitonError as exc:
        logger.error("%s", exc, exc_info=True)
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


def main() -> NoReturn:
    sys.exit(run())


if __name__ == "__main__":
    main()
