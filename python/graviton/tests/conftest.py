"""Shared fixtures: isolated settings, a scripted command runner and an app context."""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

from graviton.context import AppContext
from graviton.deployment.base import create_deployment, new_base_deployment
from graviton.errors import CommandError
from graviton.models.providers.aws import AwsPluginOptions
from graviton.models.settings import GravitonSettings
from graviton.models.terraform import CommandResult
from graviton.plugins.aws.plugin import AwsPlugin
from graviton.utils.console import Console
from graviton.utils.prompt import ScriptedInputResolver

Responder = Callable[[List[str], Optional[str]], str]


class FakeRunner:
    """Stands in for run_command: records every call and replays canned stdout.

    `responder(argv, cwd)` returns the stdout text of a call. Calls whose argv
    contains `fail_on` raise CommandError instead.
    """

    def __init__(
        self, responder: Optional[Responder] = None, fail_on: Optional[str] = None
    ) -> None:
        self.responder = responder or (lambda argv, cwd: "")
        self.fail_on = fail_on
        self.calls: List[Dict[str, Any]] = []

    async def __call__(
        self,
        command: Sequence[str],
        *,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        scanner=None,
        spinner=None,
        **kwargs: Any,
    ) -> CommandResult:
        argv = list(command)
        self.calls.append({"argv": argv, "cwd": cwd, "env": env})
        if self.fail_on is not None and self.fail_on in argv:
            raise CommandError(f"Command {argv[0]} failed", 1, "boom")
        result = CommandResult()
        for line in self.responder(argv, cwd).splitlines():
            result.lines.append(line)
            if scanner is not None:
                scanned = scanner(line)
                if scanned is not None:
                    result.captures[scanned.key] = scanned.value
            if spinner is not None:
                spinner.echo_next()
        return result

    @property
    def argvs(self) -> List[List[str]]:
        return [call["argv"] for call in self.calls]

    def actions(self) -> List[str]:
        """The second argv word of every call (e.g. apply, destroy, output)."""
        return [argv[1] for argv in self.argvs]


def output_document(values: Dict[str, Any]) -> str:
    return json.dumps(
        {name: {"sensitive": False, "type": "x", "value": v} for name, v in values.items()}
    )


def terraform_outputs(
    volumes: Optional[Dict[str, Any]] = None,
    instance: Optional[Dict[str, Any]] = None,
    apply_lines: str = "",
    remote: str = "",
) -> Responder:
    """Responder answering `output -json` per working directory."""

    def respond(argv: List[str], cwd: Optional[str]) -> str:
        if "output" in argv:
            if cwd and cwd.endswith("volumes") and volumes is not None:
                return output_document(volumes)
            if cwd and cwd.endswith("instance") and instance is not None:
                return output_document(instance)
            return "{}"
        if "apply" in argv:
            return apply_lines
        if "sudo" in argv or "/usr/bin/curl" in argv:
            return remote
        return ""

    return respond


INSTANCE_OUTPUTS = {
    "bastion_contact": "b.example",
    "stardog_contact": "s.example",
    "stardog_internal_contact": "si.example",
    "zookeeper_nodes": ["z1", "z2", "z3"],
}


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> GravitonSettings:
    for name in (
        "STARDOG_GRAVITON_UNIT_TEST",
        "STARDOG_GRAVITON_HEALTHY",
        "STARDOG_GRAVITON_CONFIG_DIR",
        "STARDOG_GRAVITON_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    return GravitonSettings(config_dir=tmp_path / "root")


@pytest.fixture
def aws_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIAEXAMPLE")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secret")
    monkeypatch.delenv("AWS_SESSION_TOKEN", raising=False)


@pytest.fixture
def tools_on_path(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pretend terraform, packer and ssh are installed."""
    monkeypatch.setattr("shutil.which", lambda name: f"/usr/bin/{name}")


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner(terraform_outputs(volumes={"volumes": ["vol-1"]}))


@pytest.fixture
def console_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def ctx(
    settings: GravitonSettings, fake_runner: FakeRunner, console_stream: io.StringIO
) -> AppContext:
    return AppContext(
        settings=settings,
        console=Console(verbose=1, stream=console_stream, color=False),
        resolver=ScriptedInputResolver(),
        runner=fake_runner,
    )


@pytest.fixture
def license_file(tmp_path: Path) -> Path:
    path = tmp_path / "stardog-license-key.bin"
    path.write_bytes(b"license")
    return path


@pytest.fixture
def private_key(tmp_path: Path) -> Path:
    path = tmp_path / "id_rsa"
    path.write_text("key")
    return path


@pytest.fixture
def aws_plugin() -> AwsPlugin:
    return AwsPlugin(
        AwsPluginOptions(region="us-west-1", ami_id="ami-abc", aws_key_name="kp")
    )


async def make_deployment(
    ctx: AppContext,
    plugin: AwsPlugin,
    name: str = "demo",
    private_key: str = "/tmp/k",
    custom_props_file: str = "",
):
    """Configure a new aws deployment under the context's config root."""
    base = new_base_deployment(
        ctx.settings,
        name,
        plugin.name,
        "5.0.0",
        private_key=private_key,
        custom_props_file=custom_props_file,
    )
    return await create_deployment(ctx, plugin, base)
