"""Shell script generation for seabox.

The entry script runs as root inside a fresh container: it creates the
unprivileged user if the image has none, optionally installs and configures
sudo, and finally switches to that user. seabox only fills its placeholders.
"""

from __future__ import annotations

from .constants import ENTRY_SHELL
from .errors import ValidationError

# Login shell lookup used when entering without --shell
DEFAULT_SHELL_SCRIPT = """USER=$(id -un)
SHELL_PATH=$(awk -F: -v u="$USER" '$1==u {print $7}' /etc/passwd)

if [ -z "$SHELL_PATH" ]; then
    if command -v /bin/bash >/dev/null 2>&1; then
        SHELL_PATH="/bin/bash"
    else
        SHELL_PATH="/bin/sh"
    fi
fi

export SHELL="$SHELL_PATH"
exec "$SHELL_PATH"
"""

DEFAULT_SHELL_COMMAND: tuple[str, ...] = (ENTRY_SHELL, "-c", DEFAULT_SHELL_SCRIPT)

SUDO_INSTALL = "install"
SUDO_NO_INSTALL = "no_install"
SUDO_PROMPT = "prompt"

# Characters that would break out of the double-quoted shell assignment
_UNSAFE_SHELL_CHARS = frozenset('"\\$`\n')

ENTRY_SCRIPT_TEMPLATE = r"""#!/bin/sh
PARAM_CREATE_USER="INSERT_CREATE_USER"
PARAM_NEW_USER_USERNAME="INSERT_NEW_USERNAME"
PARAM_USER_ID="INSERT_CONTAINER_ID"
# install | no_install | prompt
PARAM_SUDO_INSTALL="INSERT_SUDO_INSTALL"
PARAM_PASSWORDLESS_SUDO="INSERT_PASSWORDLESS_SUDO"
PARAM_NO_PASSWORD="INSERT_NO_PASSWORD"
PARAM_VERBOSE="INSERT_VERBOSE"
PARAM_SHELL="INSERT_SHELL"

_log() {
    if [ -n "$PARAM_VERBOSE" ]; then
        echo "[seabox] $*"
    fi
}

has() {
    command -v "$1" >/dev/null 2>&1
}

group_exists() {
    awk -F: -v g="$1" '$1 == g {found=1; exit} END {exit !found}' /etc/group
}

SHELL="$PARAM_SHELL"
if [ -z "$SHELL" ]; then
    SHELL=/bin/sh
    if has /bin/bash; then
        SHELL=/bin/bash
    fi
fi

if [ -n "$PARAM_CREATE_USER" ]; then
    _log "Creating user $PARAM_NEW_USER_USERNAME ($PARAM_USER_ID)"
    if has useradd; then
        useradd --uid "$PARAM_USER_ID" --shell "$SHELL" --create-home "$PARAM_NEW_USER_USERNAME"
    elif has adduser; then
        adduser --gecos "" -D -u "$PARAM_USER_ID" "$PARAM_NEW_USER_USERNAME"
    fi
fi

USERNAME=$(awk -F: -v uid="$PARAM_USER_ID" '$3 == uid {print $1; exit}' /etc/passwd)

if ! has sudo || ! has su; then
    case "$PARAM_SUDO_INSTALL" in
        install) ANSWER="yes" ;;
        no_install) ANSWER="no" ;;
        *)
            printf "sudo and su not found in the container - install? [Y/n] "
            IFS= read -r ANSWER || exit 1
            case "$ANSWER" in
                [Nn]*) ANSWER="no" ;;
                *) ANSWER="yes" ;;
            esac
            ;;
    esac

    if [ "$ANSWER" = "yes" ]; then
        echo "Installing sudo and su"
        if has apt; then
            apt update && apt install -y sudo
        elif has dnf; then
            dnf install -y sudo su
        elif has pacman; then
            pacman -Syu --noconfirm sudo
        elif has apk; then
            apk add sudo
        else
            echo "No supported package manager found to install sudo/su"
        fi
    fi
fi

for group in sudo wheel; do
    if group_exists "$group"; then
        if has usermod; then
            _log "Adding $USERNAME to group $group"
            usermod -a -G "$group" "$USERNAME"
        elif has addgroup; then
            _log "Adding $USERNAME to group $group"
            addgroup "$USERNAME" "$group"
        else
            echo "Group $group exists but neither usermod nor addgroup is available"
        fi
    fi
done

if [ -f /etc/sudoers ]; then
    for group in sudo wheel; do
        if group_exists "$group" && ! grep -q "^[[:space:]]*%$group[[:space:]]\{1,\}ALL=" /etc/sudoers; then
            _log "Granting group $group sudo access"
            echo "%$group	ALL=(ALL:ALL) ALL" >"/etc/sudoers.d/00-$group"
            chmod 0440 "/etc/sudoers.d/00-$group"
        fi
    done
else
    _log "sudo is not installed, skipping sudoers setup"
fi

if [ -n "$PARAM_PASSWORDLESS_SUDO" ]; then
    if has sudo && [ -f /etc/sudoers ]; then
        echo "Enabling passwordless sudo"
        echo "$USERNAME ALL=(ALL) NOPASSWD:ALL" >"/etc/sudoers.d/zz-$USERNAME"
        chmod 0440 "/etc/sudoers.d/zz-$USERNAME"
    else
        echo "Passwordless sudo requested, but sudo is not installed in the container"
    fi
fi

if [ -z "$PARAM_NO_PASSWORD" ] && [ -z "$PARAM_PASSWORDLESS_SUDO" ]; then
    echo "Setting password for user '$USERNAME' (uid $PARAM_USER_ID)"
    passwd "$USERNAME"
fi

if [ -z "$PARAM_SHELL" ]; then
    SHELL=$(awk -F: -v u="$USERNAME" '$1==u {print $7}' /etc/passwd)
    if [ -z "$SHELL" ]; then
        SHELL=/bin/sh
        if has /bin/bash; then
            SHELL=/bin/bash
        fi
    fi
fi

if has su; then
    exec su -s "$SHELL" - "$USERNAME"
elif has sudo; then
    exec sudo -iu "$USERNAME"
fi
echo "Neither su nor sudo is available; enter the container as root and switch users manually"
"""


def sudo_install_mode(install_sudo: bool | None) -> str:
    """Map the tri-state install_sudo setting onto the script's mode."""
    if install_sudo is None:
        return SUDO_PROMPT
    return SUDO_INSTALL if install_sudo else SUDO_NO_INSTALL


def _flag(enabled: bool) -> str:
    return "1" if enabled else ""


def generate_entry_script(
    *,
    create_user: bool,
    username: str,
    container_uid: int,
    passwordless_sudo: bool,
    no_password: bool,
    install_sudo: bool | None,
    shell: str | None = None,
    verbose: bool = False,
) -> str:
    """Fill the entry script placeholders.

    Boolean parameters become "1" or the empty string. An empty shell makes
    the script pick the user's login shell.

    Raises:
        ValidationError: If shell contains characters that would break the
            quoted assignment in the script.
    """
    if shell and _UNSAFE_SHELL_CHARS.intersection(shell):
        raise ValidationError(f"Unsupported characters in shell: {shell!r}")

    replacements = {
        "INSERT_CREATE_USER": _flag(create_user),
        "INSERT_NEW_USERNAME": username,
        "INSERT_CONTAINER_ID": str(container_uid),
        "INSERT_SUDO_INSTALL": sudo_install_mode(install_sudo),
        "INSERT_PASSWORDLESS_SUDO": _flag(passwordless_sudo),
        "INSERT_NO_PASSWORD": _flag(no_password),
        "INSERT_VERBOSE": _flag(verbose),
        "INSERT_SHELL": shell or "",
    }

    script = ENTRY_SCRIPT_TEMPLATE
    for placeholder, value in replacements.items():
        script = script.replace(placeholder, value)
    return script


def entry_command(script: str) -> tuple[str, ...]:
    """Command that runs a generated script with the container's sh."""
    return (ENTRY_SHELL, "-c", script)
