"""Runner configuration and the check that every job of a plan succeeded."""

from __future__ import annotations

import logging
import ntpath
import os
import re
import sys
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Tuple, Union

log = logging.getLogger(__name__)

_WINDOWS_PATH = re.compile(r"([a-zA-Z]):\\(.+)")


def _detect_host_os() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "darwin"
    return "linux"


class JobFailedError(RuntimeError):
    """Raised when a job of the plan concluded with a failure."""


@dataclass
class Config:
    """Settings that control how workflows are run."""

    actor: str = ""
    workdir: str = ""
    bind_workdir: bool = False
    event_name: str = ""
    event_path: str = ""
    default_branch: str = ""
    reuse_containers: bool = False
    force_pull: bool = False
    force_rebuild: bool = False
    log_output: bool = False
    json_logger: bool = False
    env: dict[str, str] = field(default_factory=dict)
    secrets: dict[str, str] = field(default_factory=dict)
    token: str = ""
    insecure_secrets: bool = False
    platforms: dict[str, str] = field(default_factory=dict)
    privileged: bool = False
    userns_mode: str = ""
    container_architecture: str = ""
    container_daemon_socket: str = ""
    use_git_ignore: bool = False
    github_instance: str = ""
    container_cap_add: list[str] | None = None
    container_cap_drop: list[str] | None = None
    auto_remove: bool = False
    artifact_server_path: str = ""
    artifact_server_port: str = ""
    no_skip_checkout: bool = False
    remote_name: str = ""
    host_os: str = field(default_factory=_detect_host_os)

    def container_path(self, path: str) -> str:
        """Resolve a host path to the path the container engine sees.

        Windows drive paths such as ``C:\\Users\\me`` become ``/mnt/c/Users/me``.
        An unusable path is logged and yields an empty string.
        """
        windows = self.host_os == "windows"
        if windows and "/" in path:
            log.error("You cannot specify linux style local paths (/mnt/etc) on Windows "
                      "as it does not understand them.")
            return ""

        abspath = ntpath.abspath(path) if windows else os.path.abspath(path)

        match = _WINDOWS_PATH.fullmatch(abspath)
        if match is None:
            return abspath

        drive = match.group(1).lower()
        rest = match.group(2).replace("\\", "/")
        return "/".join(("/mnt", drive, rest))

    def container_workdir(self) -> str:
        """Return the working directory as seen from inside the container."""
        return self.container_path(self.workdir)


def check_results(runs: Union[Mapping[str, str], Iterable[Tuple[str, str]]]) -> None:
    """Raise :class:`JobFailedError` for the first run whose result is ``failure``.

    ``runs`` maps run names to job results, or is an iterable of such pairs,
    in plan order.
    """
    items = runs.items() if isinstance(runs, Mapping) else runs
    for name, result in items:
        if result == "failure":
            raise JobFailedError(f"Job '{name}' failed")