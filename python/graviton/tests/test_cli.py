"""End-to-end tests of the graviton command line with a scripted runner."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List

import pytest

from graviton.cli.graviton import EXIT_CANCELED, load_default_config, run
from graviton.errors import StatePersistError
from graviton.plugins import PluginRegistry
from graviton.plugins.aws.plugin import AwsPlugin
from graviton.tests.conftest import INSTANCE_OUTPUTS, FakeRunner, terraform_outputs
from graviton.utils.prompt import ScriptedInputResolver


@pytest.fixture
def cli_env(monkeypatch: pytest.MonkeyPatch, aws_env, tools_on_path) -> None:
    monkeypatch.setenv("STARDOG_GRAVITON_UNIT_TEST", "1")
    monkeypatch.delenv("STARDOG_GRAVITON_HEALTHY", raising=False)
    monkeypatch.delenv("STARDOG_GRAVITON_CONFIG_DIR", raising=False)
    monkeypatch.delenv("STARDOG_GRAVITON_LOG_FILE", raising=False)


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path / "root"


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner(
        terraform_outputs(volumes={"volumes": ["vol-1"]}, instance=INSTANCE_OUTPUTS)
    )


def _run(root: Path, runner: FakeRunner, *argv: str, answers=None) -> int:
    return run(
        ["--config-dir", str(root), *argv],
        registry=PluginRegistry([AwsPlugin()]),
        runner=runner,
        resolver=ScriptedInputResolver(answers or {}),
    )


def _lines(text: str) -> List[str]:
    return [line for line in text.splitlines() if line]


def test_ls_empty(cli_env, root, runner, capsys) -> None:
    assert _run(root, runner, "ls") == 0
    assert _lines(capsys.readouterr().out) == []


def test_full_walkthrough(cli_env, root, runner, license_file, tmp_path, capsys) -> None:
    answers = {"Stardog base AMI": "ami-cli"}
    assert (
        _run(root, runner, "new-deployment", "demo", "5.0.0", "--private-key", "/tmp/k", answers=answers)
        == 0
    )
    config = json.loads((root / "deployments" / "demo" / "config.json").read_text())
    assert config["type"] == "aws"
    assert config["cloud_opts"]["ami_id"] == "ami-cli"
    assert config["cloud_opts"]["keyname"] == "default"
    assert config["cloud_opts"]["region"] == "us-west-1"
    assert config["cloud_opts"]["zk_instance"] == "m3.large"

    assert _run(root, runner, "ls") == 0
    assert "demo" in _lines(capsys.readouterr().out)

    assert (
        _run(root, runner, "launch", "demo", "--license", str(license_file), "--wait-timeout", "4")
        == 0
    )
    assert "The instance is healthy" in capsys.readouterr().out

    status_file = tmp_path / "status.json"
    assert _run(root, runner, "status", "demo", "--json-file", str(status_file)) == 0
    out = capsys.readouterr().out
    assert "Stardog is available here: http://s.example:5821" in out
    assert json.loads(status_file.read_text())["healthy"] is True

    assert _run(root, runner, "destroy", "demo") == 0
    assert "The deployment demo has been destroyed." in capsys.readouterr().out
    assert not (root / "deployments" / "demo").exists()
    assert _run(root, runner, "ls") == 0
    assert _lines(capsys.readouterr().out) == []


def test_unknown_deployment(cli_env, root, runner, capsys) -> None:
    assert _run(root, runner, "status", "nope") == 1
    assert "ERROR: The deployment nope does not exist" in capsys.readouterr().err


def test_duplicate_deployment(cli_env, root, runner, capsys) -> None:
    answers = {"Stardog base AMI": "ami-cli"}
    argv = ["new-deployment", "demo", "5.0.0", "--private-key", "/tmp/k"]
    assert _run(root, runner, *argv, answers=answers) == 0
    assert _run(root, runner, *argv, answers=answers) == 1
    assert "ERROR:" in capsys.readouterr().err


def test_missing_credentials(cli_env, root, runner, monkeypatch, capsys) -> None:
    monkeypatch.delenv("AWS_SECRET_ACCESS_KEY")
    rc = _run(
        root, runner, "new-deployment", "demo", "5.0.0", "--private-key", "/tmp/k",
        answers={"Stardog base AMI": "ami-cli"},
    )
    assert rc == 1
    assert "AWS_SECRET_ACCESS_KEY" in capsys.readouterr().err
    assert not (root / "deployments" / "demo").exists()


def test_default_config_overrides(cli_env, root, runner, capsys) -> None:
    root.mkdir(parents=True)
    (root / "default.json").write_text(
        json.dumps(
            {
                "cloud_type": "aws",
                "verbose": 0,
                "aws": {"ami_id": "ami-default", "aws_key_name": "dk", "region": "us-east-1"},
            }
        )
    )
    resolver = ScriptedInputResolver()
    rc = run(
        ["--config-dir", str(root), "new-deployment", "demo", "5.0.0", "--private-key", "/tmp/k"],
        registry=PluginRegistry([AwsPlugin()]),
        runner=runner,
        resolver=resolver,
    )

    assert rc == 0
    assert resolver.asked == []
    config = json.loads((root / "deployments" / "demo" / "config.json").read_text())
    assert config["cloud_opts"]["ami_id"] == "ami-default"
    assert config["cloud_opts"]["keyname"] == "dk"
    assert config["cloud_opts"]["region"] == "us-east-1"
    # verbose 0 silences level-1 messages
    assert "created" not in capsys.readouterr().out


def test_region_flag_overrides_default(cli_env, root, runner) -> None:
    rc = _run(
        root, runner, "new-deployment", "demo", "5.0.0", "--private-key", "/tmp/k",
        "--region", "eu-west-1", answers={"Stardog base AMI": "ami-cli"},
    )
    assert rc == 0
    config = json.loads((root / "deployments" / "demo" / "config.json").read_text())
    assert config["cloud_opts"]["region"] == "eu-west-1"


def test_client_passes_arguments(cli_env, root, runner, license_file) -> None:
    _run(root, runner, "new-deployment", "demo", "5.0.0", "--private-key", "/tmp/k",
         answers={"Stardog base AMI": "ami-cli"})
    _run(root, runner, "launch", "demo", "--license", str(license_file), "--no-wait")

    assert _run(root, runner, "client", "demo", "--", "db", "list") == 0
    assert runner.argvs[-1][-2:] == ["db", "list"]
    assert "--" not in runner.argvs[-1][-3:]


def test_keyboard_interrupt(cli_env, root, monkeypatch, capsys) -> None:
    async def interrupted(ctx, registry, args):
        raise KeyboardInterrupt

    monkeypatch.setattr("graviton.cli.graviton._ls", interrupted)

    assert _run(root, FakeRunner(), "ls") == EXIT_CANCELED
    assert "ERROR: The operation was canceled" in capsys.readouterr().err


def test_bad_default_config(root) -> None:
    root.mkdir(parents=True)
    (root / "default.json").write_text("{not json")
    with pytest.raises(StatePersistError):
        load_default_config(root)


def test_launch_flags_override_configured_options(cli_env, root, runner, license_file) -> None:
    _run(root, runner, "new-deployment", "demo", "5.0.0", "--private-key", "/tmp/k",
         answers={"Stardog base AMI": "ami-cli"})

    rc = _run(
        root, runner, "launch", "demo", "--license", str(license_file), "--no-wait",
        "--zk-instance-type", "c5.xlarge", "--region", "eu-west-1",
    )

    assert rc == 0
    iac = root / "deployments" / "demo" / "etc" / "iac"
    instance = json.loads((iac / "instance" / "instance.json").read_text())
    assert instance["zk_instance_type"] == "c5.xlarge"
    assert instance["stardog_instance_type"] == "m3.large"
    assert instance["aws_region"] == "eu-west-1"
    assert json.loads((iac / "volumes" / "config.json").read_text())["aws_region"] == "eu-west-1"
    config = json.loads((root / "deployments" / "demo" / "config.json").read_text())
    assert config["cloud_opts"]["zk_instance"] == "c5.xlarge"


def test_instance_create_accepts_plugin_flags(cli_env, root, runner, license_file) -> None:
    _run(root, runner, "new-deployment", "demo", "5.0.0", "--private-key", "/tmp/k",
         answers={"Stardog base AMI": "ami-cli"})
    assert _run(root, runner, "volume", "create", "demo", "--license", str(license_file)) == 0

    rc = _run(
        root, runner, "instance", "create", "demo", "--no-wait",
        "--sd-instance-type", "r5.large",
    )

    assert rc == 0
    instance = json.loads(
        (root / "deployments" / "demo" / "etc" / "iac" / "instance" / "instance.json").read_text()
    )
    assert instance["stardog_instance_type"] == "r5.large"
    assert instance["zk_instance_type"] == "m3.large"
