"""Container naming and the volumes a job container is given."""

from __future__ import annotations

import ntpath
import os
import posixpath
import re
from typing import Iterable, Optional

from .config import Config

ACT_PATH = "/var/run/act"
DOCKER_SOCKET = "/var/run/docker.sock"

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
_TRAILING_NUMBER = re.compile(r"-[0-9]+$")


def trim_to_len(text: str, length: int) -> str:
    """Cut ``text`` to at most ``length`` characters; negative lengths mean zero."""
    return text[:max(length, 0)]


def create_container_name(*parts: str) -> str:
    """Build a container name of roughly 30 characters from ``parts``.

    Every part but the last is shortened; a trailing ``-<number>`` (as in
    matrix jobs) is kept so that names do not clash.
    """
    if not parts:
        raise ValueError("at least one part is required")
    part_len = 30 // len(parts) - 1
    names: list[str] = []
    *leading, last = parts
    for part in leading:
        cleaned = _NON_ALNUM.sub("-", part)
        number = _TRAILING_NUMBER.search(part)
        if number:
            suffix = number.group(0)
            names.append(trim_to_len(cleaned, part_len - len(suffix)))
            names.append(suffix)
        else:
            names.append(trim_to_len(cleaned, part_len))
    names.append(_NON_ALNUM.sub("-", last))
    return "-".join(names).strip("-").replace("--", "-")


def _selinux_enabled() -> bool:
    return os.path.exists("/sys/fs/selinux/enforce")


def binds_and_mounts(config: Config, container_name: str,
                     volumes: Iterable[str] = (),
                     selinux_enabled: Optional[bool] = None,
                     platform: Optional[str] = None) -> tuple[list[str], dict[str, str]]:
    """Return the binds and named-volume mounts for a job container.

    ``volumes`` are the job container's ``volumes:`` entries. A missing
    daemon socket in ``config`` is set to the default one.
    """
    if selinux_enabled is None:
        selinux_enabled = _selinux_enabled()
    if platform is None:
        platform = config.host_os
    isabs = ntpath.isabs if platform == "windows" else posixpath.isabs

    if not config.container_daemon_socket:
        config.container_daemon_socket = DOCKER_SOCKET

    binds = [f"{config.container_daemon_socket}:{DOCKER_SOCKET}"]
    mounts = {
        "act-toolcache": "/toolcache",
        f"{container_name}-env": ACT_PATH,
    }

    for volume in volumes:
        if ":" not in volume or isabs(volume):
            # An anonymous volume or a host file.
            binds.append(volume)
        else:
            source, target = volume.split(":", 1)
            mounts[source] = target

    if config.bind_workdir:
        modifiers = ""
        if platform == "darwin":
            modifiers = ":delegated"
        if selinux_enabled:
            modifiers = ":z"
        binds.append(f"{config.workdir}:{config.container_workdir()}{modifiers}")
    else:
        mounts[container_name] = config.container_workdir()

    return binds, mounts