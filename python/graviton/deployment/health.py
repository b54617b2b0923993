"""
graviton/deployment/health.py

Health checks of a running Stardog cluster.

A single probe is a GET of <stardog url>/admin/healthcheck and is healthy iff
the status is exactly 200. The external probe issues it from this host with
aiohttp; the internal probe runs curl on the bastion over ssh and compares the
printed status code. In unit-test mode no probe is made and the answer comes
from STARDOG_GRAVITON_HEALTHY.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

import aiohttp
from typing_extensions import TypeAlias

from graviton.errors import CommandError, WaitTimeoutError
from graviton.models.deployment import StardogDescription
from graviton.models.settings import GravitonSettings, parse_bool
from graviton.utils.async_command_runner import ProgressTicker
from graviton.utils.console import Spinner
from graviton.utils.ssh import run_ssh_command, ssh_base_command

if TYPE_CHECKING:
    from graviton.context import AppContext
    from graviton.deployment.base import CloudDeployment

logger = logging.getLogger(__name__)

HEALTHCHECK_PATH = "/admin/healthcheck"
REMOTE_CURL = "/usr/bin/curl"

HealthProbe: TypeAlias = Callable[[], Awaitable[bool]]


def unit_test_health(settings: GravitonSettings) -> Optional[bool]:
    """The forced probe result in unit-test mode, or None outside it.

    An unset STARDOG_GRAVITON_HEALTHY means healthy; a value that does not
    parse as a boolean means unhealthy.
    """
    if not settings.unit_test_mode:
        return None
    if not settings.healthy:
        return True
    try:
        return parse_bool(settings.healthy)
    except ValueError:
        logger.warning("Unparseable STARDOG_GRAVITON_HEALTHY=%r", settings.healthy)
        return False


async def check_http_health(stardog_url: str) -> bool:
    """GET the health endpoint under `stardog_url`; True iff it answers 200."""
    if not stardog_url:
        logger.debug("No Stardog URL known, reporting unhealthy")
        return False
    url = f"{stardog_url}{HEALTHCHECK_PATH}"
    logger.debug("Checking health at %s.", url)
    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(url) as response:
                return response.status == 200
    except (aiohttp.ClientError, OSError) as exc:
        logger.debug("Error getting the health check %s", exc)
        return False


async def check_internal_health(
    ctx: AppContext, private_key: str, description: StardogDescription
) -> bool:
    """Run curl against the internal Stardog URL from the bastion host.

    Raises:
        PreconditionError: If the ssh command cannot be built (no ssh binary
            or no bastion host).
    """
    base = ssh_base_command(
        private_key, description.ssh_host, ssh_binary=ctx.settings.ssh_binary
    )
    remote = [
        REMOTE_CURL,
        "-s",
        "-o",
        "/dev/null",
        "-w",
        "%{http_code}",
        f"{description.stardog_internal_url}{HEALTHCHECK_PATH}",
    ]
    logger.info("Running the remote health checker %s.", " ".join(base + remote))
    try:
        result = await run_ssh_command(base, remote, runner=ctx.runner)
    except CommandError as exc:
        logger.debug("ssh run error %s", exc)
        return False
    return result.stdout.strip() == "200"


async def is_healthy(
    ctx: AppContext, deployment: CloudDeployment, internal: bool = False
) -> bool:
    forced = unit_test_health(ctx.settings)
    if forced is not None:
        return forced
    description = await deployment.full_status()
    if internal:
        logger.debug("Checking health via ssh.")
        return await check_internal_health(ctx, deployment.base.private_key, description)
    return await check_http_health(description.stardog_url)


async def wait_for_health(
    probe: HealthProbe,
    timeout_sec: float,
    poll_interval: float = 2.0,
    spinner: Optional[ProgressTicker] = None,
) -> None:
    """Poll `probe` every `poll_interval` seconds until it reports healthy.

    The probe runs at most timeout_sec / poll_interval + 1 times.

    Raises:
        WaitTimeoutError: If the probe is still unhealthy at the last poll.
    """
    max_iterations = int(timeout_sec / poll_interval)
    iteration = 0
    while not await probe():
        if iteration >= max_iterations:
            raise WaitTimeoutError("Timed out waiting for the instance to get healthy")
        if spinner is not None:
            spinner.echo_next()
        await asyncio.sleep(poll_interval)
        iteration += 1


async def wait_for_deployment_health(
    ctx: AppContext,
    deployment: CloudDeployment,
    timeout_sec: float,
    internal: bool = False,
) -> None:
    if internal:
        spin = Spinner(ctx.console, 2, "Waiting for the node to be healthy internally")
    else:
        spin = Spinner(ctx.console, 1, "Waiting for external health check to pass")

    async def probe() -> bool:
        return await is_healthy(ctx, deployment, internal)

    try:
        await wait_for_health(
            probe, timeout_sec, ctx.settings.health_poll_interval, spinner=spin
        )
    finally:
        spin.close()
    ctx.console.log(1, ctx.console.success("The instance is healthy"))


__all__ = [
    "HealthProbe",
    "unit_test_health",
    "check_http_health",
    "check_internal_health",
    "is_healthy",
    "wait_for_health",
    "wait_for_deployment_health",
]
