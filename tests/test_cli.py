"""Tests for seabox CLI."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from seabox import __version__
from seabox.cli import cli

LABELLED_IMAGE = json.dumps([{"Id": "abc", "Labels": {"SEABOX_USER_ID": "1042"}}])
RUNNING_CONTAINER = json.dumps(
    [
        {
            "State": {"Running": True},
            "Config": {"User": "1042:1042"},
            "Mounts": [{"Source": "/nonexistent/proj", "Destination": "/mount"}],
        }
    ]
)


@pytest.fixture
def config_path(executor, tmp_path: Path) -> Iterator[Path]:
    """Point the CLI at a fake runtime and a config file under tmp_path."""
    path = tmp_path / "seabox.toml"
    with (
        patch("seabox.cli.utils.get_executor", return_value=executor),
        patch("seabox.config.get_config_path", return_value=path),
        patch("seabox.cli.get_config_path", return_value=path),
    ):
        yield path


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    path = tmp_path / "proj"
    path.mkdir()
    return path


def invoke(*args: str, env: dict[str, str] | None = None):
    return CliRunner().invoke(cli, list(args), env=env)


class TestCliBasics:
    """Tests for top-level CLI behaviour."""

    def test_version(self) -> None:
        result = invoke("--version")
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self) -> None:
        result = invoke("--help")
        assert result.exit_code == 0
        for name in ("create", "enter", "remove", "rm", "temp", "tmp", "list", "ls", "restart"):
            assert name in result.output

    def test_remove_requires_names(self, config_path: Path) -> None:
        result = invoke("remove")
        assert result.exit_code != 0


class TestCreateCommand:
    """Tests for `seabox create`."""

    def test_dry_run(self, executor, config_path: Path, workdir: Path) -> None:
        executor.respond("image", "inspect", "fedora", stdout=LABELLED_IMAGE)
        result = invoke("create", "dev", "-i", "fedora", "-d", str(workdir), "--dry-run")

        assert result.exit_code == 0, result.output
        assert "sudo podman container inspect dev" in result.output
        assert "--name dev fedora /bin/sh" in result.output
        assert executor.calls == [["sudo", "podman", "image", "inspect", "fedora"]]

    def test_no_image(self, config_path: Path) -> None:
        result = invoke("create", "dev", "--dry-run")
        assert result.exit_code == 1
        assert "Error: No default image found" in result.output

    def test_invalid_volume(self, executor, config_path: Path, workdir: Path) -> None:
        executor.respond("image", "inspect", "fedora", stdout=LABELLED_IMAGE)
        result = invoke(
            "create", "dev", "-i", "fedora", "-d", str(workdir), "-v", "/a", "--dry-run"
        )
        assert result.exit_code == 1
        assert "Invalid format for mount: /a" in result.output

    def test_missing_directory(self, config_path: Path, tmp_path: Path) -> None:
        result = invoke("create", "dev", "-i", "fedora", "-d", str(tmp_path / "nope"))
        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_config_file_image(self, executor, config_path: Path, workdir: Path) -> None:
        """The default image and its profile come from the config file."""
        config_path.write_text('image = "alpine"\n\n[alpine]\nruntime_invoker = ""\n')
        result = invoke("create", "dev", "--root", "-d", str(workdir), "--dry-run")

        assert result.exit_code == 0, result.output
        assert result.output.splitlines()[0] == "podman container inspect dev"
        assert "--name dev alpine /bin/sh" in result.output

    def test_env_overrides_config_file(self, config_path: Path, workdir: Path) -> None:
        config_path.write_text('image = "alpine"\n')
        result = invoke(
            "create",
            "dev",
            "--root",
            "-d",
            str(workdir),
            "--dry-run",
            env={"SEABOX_IMAGE": "debian", "SEABOX_RUNTIME_INVOKER": "doas"},
        )
        assert result.exit_code == 0, result.output
        assert "doas podman run" in result.output
        assert "--name dev debian /bin/sh" in result.output

    def test_empty_image_flag_keeps_config_image(self, config_path: Path, workdir: Path) -> None:
        """--image "" falls back to the configured image."""
        config_path.write_text('image = "alpine"\n')
        result = invoke("create", "dev", "--image", "", "--root", "-d", str(workdir), "--dry-run")
        assert result.exit_code == 0, result.output
        assert "--name dev alpine /bin/sh" in result.output

    def test_invalid_config(self, config_path: Path) -> None:
        config_path.write_text("image = \n")
        result = invoke("create", "dev", "--dry-run")
        assert result.exit_code == 1
        assert "Invalid TOML" in result.output


class TestTempCommand:
    """Tests for `seabox temp`."""

    def test_install_sudo_flag(self, executor, config_path: Path, workdir: Path) -> None:
        """A bare boolean flag means true."""
        executor.respond("image", "inspect", "fedora", stdout=LABELLED_IMAGE)
        result = invoke("temp", "-i", "fedora", "-d", str(workdir), "--dry-run", "--install-sudo")
        assert result.exit_code == 0, result.output
        assert 'PARAM_SUDO_INSTALL="install"' in result.output

    def test_install_sudo_false(self, executor, config_path: Path, workdir: Path) -> None:
        executor.respond("image", "inspect", "fedora", stdout=LABELLED_IMAGE)
        result = invoke(
            "tmp", "-i", "fedora", "-d", str(workdir), "--install-sudo", "false", "--dry-run"
        )
        assert result.exit_code == 0, result.output
        assert 'PARAM_SUDO_INSTALL="no_install"' in result.output

    def test_no_passwd_alias(self, executor, config_path: Path, workdir: Path) -> None:
        executor.respond("image", "inspect", "fedora", stdout=LABELLED_IMAGE)
        result = invoke("temp", "-i", "fedora", "-d", str(workdir), "--no-passwd", "--dry-run")
        assert result.exit_code == 0, result.output
        assert 'PARAM_NO_PASSWORD="1"' in result.output

    def test_pass_through(self, executor, config_path: Path, workdir: Path) -> None:
        result = invoke(
            "temp", "-i", "fedora", "-r", "--no-dir", "-p", "--env 'A=b c'", "--dry-run"
        )
        assert result.exit_code == 0, result.output
        assert "--rm --env 'A=b c' --network host" in result.output
        assert "--mount" not in result.output
        assert executor.calls == []

    def test_unbalanced_pass_through(self, config_path: Path) -> None:
        result = invoke("temp", "-i", "fedora", "-r", "--no-dir", "-p", '"oops', "--dry-run")
        assert result.exit_code == 1
        assert "Invalid pass-through arguments" in result.output

    def test_dry_run_needs_pull(self, executor, config_path: Path, workdir: Path) -> None:
        executor.respond("image", "inspect", exit_code=125)
        result = invoke("temp", "-i", "fedora", "-d", str(workdir), "--dry-run")
        assert result.exit_code == 1
        assert "# Need to pull image at this point - cannot proceed with dry run" in result.output
        assert "sudo podman pull fedora" in result.output
        assert not executor.ran("pull")


class TestContainerCommands:
    """Tests for enter, remove, restart and list."""

    def test_enter_dry_run(self, executor, config_path: Path) -> None:
        executor.respond("container", "inspect", "dev", stdout=RUNNING_CONTAINER)
        result = invoke("enter", "dev", "-u", "root", "-s", "/bin/bash", "--dry-run")
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [
            "sudo podman container inspect dev",
            "sudo podman start dev",
            "sudo podman exec -it -w /mount/ --user root dev /bin/bash",
        ]

    def test_enter_missing(self, executor, config_path: Path) -> None:
        executor.respond("container", "inspect", exit_code=125)
        result = invoke("enter", "ghost")
        assert result.exit_code == 1
        assert "A container with name 'ghost' does not exist" in result.output

    def test_rm_alias(self, executor, config_path: Path) -> None:
        result = invoke("rm", "a", "b", "--dry-run")
        assert result.exit_code == 0
        assert result.output.splitlines() == [
            "sudo podman kill a",
            "sudo podman container rm --force a",
            "sudo podman kill b",
            "sudo podman container rm --force b",
        ]
        assert executor.calls == []

    def test_remove_failure(self, executor, config_path: Path) -> None:
        executor.respond("container", "rm", exit_code=2)
        result = invoke("remove", "a")
        assert result.exit_code == 1
        assert "exit code 2" in result.output

    def test_restart(self, executor, config_path: Path) -> None:
        result = invoke("restart", "a")
        assert result.exit_code == 0
        assert executor.calls == [
            ["sudo", "podman", "kill", "a"],
            ["sudo", "podman", "start", "a"],
        ]

    def test_ls_alias(self, executor, config_path: Path) -> None:
        result = invoke("ls")
        assert result.exit_code == 0
        assert executor.uncaptured == [
            ["sudo", "podman", "ps", "--all", "--filter", "label=seabox=true"]
        ]

    def test_list_dry_run(self, executor, config_path: Path) -> None:
        result = invoke("list", "--dry-run")
        assert result.output.strip() == "sudo podman ps --all --filter label=seabox=true"
        assert executor.calls == []

    def test_image_profile_not_applied(self, executor, config_path: Path) -> None:
        """Name-addressed commands ignore the default image's profile."""
        config_path.write_text('image = "alpine"\n\n[alpine]\nruntime_invoker = "doas"\n')
        assert invoke("list", "--dry-run").output.strip() == (
            "sudo podman ps --all --filter label=seabox=true"
        )
        assert invoke("rm", "a", "--dry-run").output.splitlines()[0] == "sudo podman kill a"

    def test_global_section_applied(self, executor, config_path: Path) -> None:
        config_path.write_text('runtime_invoker = "doas"\n')
        result = invoke("restart", "a", "--dry-run")
        assert result.output.splitlines() == ["doas podman kill a", "doas podman start a"]


class TestConfigCommand:
    """Tests for `seabox config`."""

    def test_prints_path(self, config_path: Path) -> None:
        result = invoke("config")
        assert result.exit_code == 0
        assert result.output.strip() == str(config_path)

    def test_show_missing(self, config_path: Path) -> None:
        result = invoke("config", "show")
        assert result.exit_code == 0
        assert f"Config file not found at {config_path}" in result.output

    def test_show_file(self, config_path: Path) -> None:
        config_path.write_text('image = "alpine"\n')
        result = invoke("config", "show")
        assert result.exit_code == 0
        assert f"# Viewing '{config_path}'" in result.output
        assert 'image = "alpine"' in result.output

    def test_show_resolved(self, config_path: Path) -> None:
        config_path.write_text('image = "alpine"\n\n[fedora]\nno_password = true\n')
        result = invoke("config", "show", "--resolved", "--image", "fedora")
        assert result.exit_code == 0, result.output
        assert "fedora" in result.output
        assert "no_password" in result.output
        assert "True" in result.output

    def test_show_resolved_invalid(self, config_path: Path) -> None:
        config_path.write_text("colour = 'blue'\n")
        result = invoke("config", "show", "--resolved")
        assert result.exit_code == 1
        assert "Unknown configuration key 'colour'" in result.output
