"""seabox - disposable and persistent development containers on podman."""

__version__ = "0.1.0"
