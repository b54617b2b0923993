"""Tests for the EBS volume set lifecycle."""

from __future__ import annotations

import json
from typing import List, Optional

import pytest

from graviton.errors import CommandError, PreconditionError
from graviton.tests.conftest import make_deployment, terraform_outputs


@pytest.mark.asyncio
async def test_fresh_create(ctx, aws_plugin, aws_env, tools_on_path, license_file) -> None:
    deployment = await make_deployment(ctx, aws_plugin, private_key="/tmp/k")
    await deployment.create_volume_set(str(license_file), 10, 3)

    volumes_dir = deployment.directory / "etc" / "iac" / "volumes"
    var_file = volumes_dir / "config.json"
    data = json.loads(var_file.read_text())
    assert data["cluster_size"] == "3"
    assert data["storage_size"] == "10"
    assert data["stardog_license"] == str(license_file)
    assert data["aws_region"] == "us-west-1"
    assert data["ami"] == "ami-abc"
    assert data["aws_key_name"] == "kp"
    assert data["key_path"] == "/tmp/k"
    assert deployment.volume_exists()
    assert not deployment.instance_exists()

    runner = ctx.runner
    assert runner.argvs == [
        ["terraform", "init", "-input=false"],
        ["terraform", "apply", "-var-file", str(var_file)],
        ["terraform", "apply", "-var-file", str(var_file)],
    ]
    assert all(call["cwd"] == str(volumes_dir) for call in runner.calls)
    assert runner.calls[1]["env"]["AWS_ACCESS_KEY_ID"] == "AKIAEXAMPLE"
    assert not (volumes_dir / "builder.tf").exists()


@pytest.mark.asyncio
async def test_create_twice_is_idempotent(
    ctx, aws_plugin, aws_env, tools_on_path, license_file
) -> None:
    deployment = await make_deployment(ctx, aws_plugin)
    await deployment.create_volume_set(str(license_file), 10, 3)
    var_file = deployment.directory / "etc" / "iac" / "volumes" / "config.json"
    first = var_file.read_bytes()

    ctx.runner.calls.clear()
    await deployment.create_volume_set(str(license_file), 10, 3)

    assert var_file.read_bytes() == first
    # builder.tf is already gone, so only one apply runs
    assert ctx.runner.actions() == ["init", "apply"]


@pytest.mark.asyncio
async def test_first_apply_failure_keeps_builder(
    ctx, aws_plugin, aws_env, tools_on_path, license_file
) -> None:
    deployment = await make_deployment(ctx, aws_plugin)
    ctx.runner.fail_on = "apply"

    with pytest.raises(CommandError):
        await deployment.create_volume_set(str(license_file), 10, 3)
    assert (deployment.directory / "etc" / "iac" / "volumes" / "builder.tf").is_file()


@pytest.mark.asyncio
async def test_create_validates_inputs(ctx, aws_plugin, aws_env, tools_on_path, tmp_path) -> None:
    deployment = await make_deployment(ctx, aws_plugin)
    with pytest.raises(PreconditionError, match="not readable"):
        await deployment.create_volume_set(str(tmp_path / "no-license"), 10, 3)
    with pytest.raises(PreconditionError):
        await deployment.create_volume_set(str(tmp_path), 0, 3)
    assert not deployment.volume_exists()
    assert ctx.runner.calls == []


@pytest.mark.asyncio
async def test_status_reads_volume_ids(
    ctx, aws_plugin, aws_env, tools_on_path, license_file
) -> None:
    ctx.runner.responder = terraform_outputs(volumes={"volumes": ["vol-1", "vol-2"]})
    deployment = await make_deployment(ctx, aws_plugin)
    await deployment.create_volume_set(str(license_file), 10, 2)

    status = await deployment.status_volume_set()
    assert status.volume_ids == ["vol-1", "vol-2"]
    assert ctx.runner.argvs[-1] == ["terraform", "output", "-json"]


@pytest.mark.asyncio
async def test_delete(ctx, aws_plugin, aws_env, tools_on_path, license_file) -> None:
    deployment = await make_deployment(ctx, aws_plugin)
    await deployment.create_volume_set(str(license_file), 10, 3)
    var_file = deployment.directory / "etc" / "iac" / "volumes" / "config.json"

    await deployment.delete_volume_set()

    assert ctx.runner.argvs[-1] == ["terraform", "destroy", "-force", "-var-file", str(var_file)]
    assert not deployment.volume_exists()
    with pytest.raises(PreconditionError):
        await deployment.delete_volume_set()


@pytest.mark.asyncio
async def test_failed_destroy_keeps_variables_file(
    ctx, aws_plugin, aws_env, tools_on_path, license_file
) -> None:
    deployment = await make_deployment(ctx, aws_plugin)
    await deployment.create_volume_set(str(license_file), 10, 3)
    ctx.runner.fail_on = "destroy"

    with pytest.raises(CommandError):
        await deployment.delete_volume_set()
    assert deployment.volume_exists()


@pytest.mark.asyncio
async def test_volumes_outlive_the_instance(
    ctx, aws_plugin, aws_env, tools_on_path, license_file
) -> None:
    deployment = await make_deployment(ctx, aws_plugin)
    await deployment.create_volume_set(str(license_file), 10, 3)
    await deployment.create_instance(3, "")

    with pytest.raises(PreconditionError, match="instance must be destroyed"):
        await deployment.delete_volume_set()
    assert deployment.volume_exists()


@pytest.mark.asyncio
async def test_recreate_after_delete_boots_the_builder_again(
    ctx, aws_plugin, aws_env, tools_on_path, license_file
) -> None:
    deployment = await make_deployment(ctx, aws_plugin)
    builder = deployment.directory / "etc" / "iac" / "volumes" / "builder.tf"
    await deployment.create_volume_set(str(license_file), 10, 3)
    await deployment.delete_volume_set()
    assert not builder.exists()

    builder_seen: List[bool] = []

    def respond(argv: List[str], cwd: Optional[str]) -> str:
        if "apply" in argv:
            builder_seen.append(builder.exists())
        return ""

    ctx.runner.responder = respond
    ctx.runner.calls.clear()
    await deployment.create_volume_set(str(license_file), 10, 3)

    assert ctx.runner.actions() == ["init", "apply", "apply"]
    assert builder_seen == [True, False]
    assert not builder.exists()
