"""
graviton/deployment/lifecycle.py

Composite operations built on a CloudDeployment: launching (volumes, then the
instance, then a health wait), full status reporting, bastion access and
walking a deployment down to absent.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Sequence

from graviton.deployment.base import remove_deployment_dir
from graviton.deployment.health import is_healthy, wait_for_deployment_health
from graviton.errors import GravitonError
from graviton.models.deployment import StardogDescription
from graviton.models.terraform import CommandResult, ScanResult
from graviton.utils.async_command_runner import LineScanner
from graviton.utils.json_file import write_json_atomic
from graviton.utils.ssh import run_ssh_command, ssh_base_command, ssh_interactive_shell

if TYPE_CHECKING:
    from graviton.context import AppContext
    from graviton.deployment.base import CloudDeployment

logger = logging.getLogger(__name__)

STARDOG_ADMIN = "/usr/local/stardog/bin/stardog-admin"


def _line_printer(ctx: AppContext) -> LineScanner:
    def echo(line: str) -> Optional[ScanResult]:
        ctx.console.log(1, line)
        return None

    return echo


async def create_instance_and_wait(
    ctx: AppContext,
    deployment: CloudDeployment,
    zookeeper_size: int,
    http_mask: str = "",
    wait_timeout: float = 600,
    no_wait: bool = False,
) -> None:
    """Create the instance set, then wait for the external health check."""
    await deployment.create_instance(zookeeper_size, http_mask)
    if no_wait:
        ctx.console.log(1, "Not waiting...")
        return
    ctx.console.log(1, "Waiting for stardog to come up...")
    await wait_for_deployment_health(ctx, deployment, wait_timeout, internal=False)


async def launch(
    ctx: AppContext,
    deployment: CloudDeployment,
    license_path: str,
    volume_size: int,
    cluster_size: int,
    zookeeper_size: int,
    http_mask: str = "",
    wait_timeout: float = 600,
    no_wait: bool = False,
) -> None:
    """Bring a configured deployment all the way to cluster-up."""
    if deployment.volume_exists():
        ctx.console.log(1, "Using the existing volumes.")
    else:
        await deployment.create_volume_set(license_path, volume_size, cluster_size)
    await create_instance_and_wait(
        ctx, deployment, zookeeper_size, http_mask, wait_timeout, no_wait
    )


async def run_client(
    ctx: AppContext,
    deployment: CloudDeployment,
    args: Sequence[str],
    description: Optional[StardogDescription] = None,
) -> CommandResult:
    """Run stardog-admin against the internal URL from the bastion host.

    Output lines are echoed to the console as they arrive.
    """
    if description is None:
        description = await deployment.full_status()
    base = ssh_base_command(
        deployment.base.private_key,
        description.ssh_host,
        ssh_binary=ctx.settings.ssh_binary,
    )
    logger.debug("sshing to %s to run the stardog client", description.ssh_host)
    remote: List[str] = [
        "sudo",
        STARDOG_ADMIN,
        "--server",
        description.stardog_internal_url,
        *args,
    ]
    return await run_ssh_command(
        base, remote, runner=ctx.runner, scanner=_line_printer(ctx)
    )


async def run_ssh(ctx: AppContext, deployment: CloudDeployment) -> int:
    """Open an interactive ssh session on the bastion host."""
    description = await deployment.full_status()
    base = ssh_base_command(
        deployment.base.private_key,
        description.ssh_host,
        ssh_binary=ctx.settings.ssh_binary,
    )
    return await ssh_interactive_shell(base)


async def full_status_report(
    ctx: AppContext,
    deployment: CloudDeployment,
    internal: bool = False,
    outfile: Optional[Path] = None,
) -> StardogDescription:
    """Print where the cluster is reachable and whether it is healthy.

    Outside unit-test mode the cluster membership is also printed by running
    `stardog-admin cluster info` on the bastion.
    """
    description = await deployment.full_status()
    description.healthy = await is_healthy(ctx, deployment, internal)

    console = ctx.console
    console.log(
        1, f"Stardog is available here: {console.highlight(description.stardog_url)}"
    )
    console.log(1, f"ssh is available here: {description.ssh_host}")
    if outfile is not None:
        await write_json_atomic(outfile, description.model_dump(mode="json"), mode=0o644)
    if description.healthy:
        console.log(1, console.success("The instance is healthy"))
    else:
        console.log(1, console.fail("The instance is not healthy"))

    if not ctx.settings.unit_test_mode:
        await run_client(ctx, deployment, ["cluster", "info"], description)
    return description


async def destroy_deployment(
    ctx: AppContext, deployment: CloudDeployment, force: bool = False
) -> None:
    """Tear down the instance, then the volumes, then remove the directory.

    Without `force` a failed teardown propagates and the directory is kept,
    so the deployment can still be repaired. With `force` teardown failures
    are logged and the directory is removed anyway.
    """
    steps = []
    if deployment.instance_exists():
        steps.append(("instance", deployment.delete_instance))
    if deployment.volume_exists():
        steps.append(("volumes", deployment.delete_volume_set))

    for label, step in steps:
        try:
            await step()
        except GravitonError as exc:
            if not force:
                ctx.console.log(
                    1, "Use --force to remove the deployment directory anyway."
                )
                raise
            logger.warning(
                "Ignoring failed %s teardown of %s: %s", label, deployment.name, exc
            )
            ctx.console.log(1, ctx.console.fail(f"The {label} may have leaked: {exc}"))

    remove_deployment_dir(ctx.settings, deployment.name)
    ctx.console.log(1, f"The deployment {deployment.name} has been destroyed.")


__all__ = [
    "STARDOG_ADMIN",
    "create_instance_and_wait",
    "launch",
    "run_client",
    "run_ssh",
    "full_status_report",
    "destroy_deployment",
]
