"""Tests for seabox.generator module."""

from __future__ import annotations

import pytest

from seabox.errors import ValidationError
from seabox.generator import (
    DEFAULT_SHELL_COMMAND,
    entry_command,
    generate_entry_script,
    sudo_install_mode,
)


def script(**overrides) -> str:
    params = {
        "create_user": False,
        "username": "user",
        "container_uid": 1042,
        "passwordless_sudo": False,
        "no_password": False,
        "install_sudo": None,
    }
    params.update(overrides)
    return generate_entry_script(**params)


class TestSudoInstallMode:
    """Tests for the tri-state install_sudo mapping."""

    def test_modes(self) -> None:
        assert sudo_install_mode(None) == "prompt"
        assert sudo_install_mode(True) == "install"
        assert sudo_install_mode(False) == "no_install"


class TestGenerateEntryScript:
    """Tests for generate_entry_script."""

    def test_all_placeholders_filled(self) -> None:
        assert "INSERT_" not in script(shell="/bin/zsh", verbose=True)

    def test_parameters(self) -> None:
        text = script(
            create_user=True,
            container_uid=1000,
            passwordless_sudo=True,
            no_password=True,
            install_sudo=True,
        )
        assert 'PARAM_CREATE_USER="1"' in text
        assert 'PARAM_NEW_USER_USERNAME="user"' in text
        assert 'PARAM_USER_ID="1000"' in text
        assert 'PARAM_SUDO_INSTALL="install"' in text
        assert 'PARAM_PASSWORDLESS_SUDO="1"' in text
        assert 'PARAM_NO_PASSWORD="1"' in text

    def test_false_flags_are_empty(self) -> None:
        text = script()
        assert 'PARAM_CREATE_USER=""' in text
        assert 'PARAM_PASSWORDLESS_SUDO=""' in text
        assert 'PARAM_NO_PASSWORD=""' in text
        assert 'PARAM_VERBOSE=""' in text
        assert 'PARAM_SHELL=""' in text
        assert 'PARAM_SUDO_INSTALL="prompt"' in text

    def test_shell(self) -> None:
        assert 'PARAM_SHELL="/usr/bin/fish"' in script(shell="/usr/bin/fish")

    @pytest.mark.parametrize("shell", ['/bin/sh"; rm -rf /', "$(id)", "`id`", "a\\b", "a\nb"])
    def test_unsafe_shell(self, shell: str) -> None:
        """Shells that would break the quoted assignment are refused."""
        with pytest.raises(ValidationError, match="Unsupported characters"):
            script(shell=shell)

    def test_switches_user(self) -> None:
        assert 'exec su -s "$SHELL" - "$USERNAME"' in script()


class TestCommands:
    """Tests for the shell command wrappers."""

    def test_entry_command(self) -> None:
        assert entry_command("echo hi") == ("/bin/sh", "-c", "echo hi")

    def test_default_shell_command(self) -> None:
        """Default shell is looked up in passwd at enter time."""
        assert DEFAULT_SHELL_COMMAND[:2] == ("/bin/sh", "-c")
        assert "/etc/passwd" in DEFAULT_SHELL_COMMAND[2]
        assert 'exec "$SHELL_PATH"' in DEFAULT_SHELL_COMMAND[2]
