"""Constants module for seabox.

All fixed tokens shared between modules are defined here (SSOT).
"""

from __future__ import annotations

# === Identity ===
SEABOX_NAME = "seabox"
CONTAINER_LABEL = f"{SEABOX_NAME}=true"  # Tags every container seabox creates
HOSTNAME_PREFIX = SEABOX_NAME

# === Runtime ===
RUNTIME_BINARY = "podman"
DEFAULT_RUNTIME_INVOKER = "sudo"  # Prefix for privileged runtime calls

# === Configuration ===
CONFIG_FILE_NAME = f"{SEABOX_NAME}.toml"
ENV_PREFIX = "SEABOX_"
DEBUG_ENV_VAR = "SEABOX_DEBUG"
TRUE_VALUES = frozenset({"1", "true", "yes", "on", "y"})  # Boolish env values, case-insensitive
FALSE_VALUES = frozenset({"0", "false", "no", "off", "n"})

# === Container paths ===
MOUNT_ROOT = "/mount/"  # Primary bind mount destination and default workdir
PASSWD_PATH = "/etc/passwd"
ENTRY_SHELL = "/bin/sh"

# === User identity ===
NEW_USER_USERNAME = "user"  # Account created when the image has no normal user
DEFAULT_USER_ID = 1000  # Placeholder uid/gid until the entry script creates the user
USER_ID_LABEL = "SEABOX_USER_ID"  # Image label carrying a pre-selected uid
NORMAL_USER_ID_MIN = 1000  # Inclusive
NORMAL_USER_ID_MAX = 2000  # Exclusive; dynamic allocations start here
ROOT_IDMAP_RANGE = 2000  # Ids identity-mapped in root mode
