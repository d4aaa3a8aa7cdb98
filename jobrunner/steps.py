"""Helpers shared by step kinds: environment merging, scripts and remote actions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Mapping, MutableMapping, Optional

DEFAULT_PATH = "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin"

_REMOTE_ACTION = re.compile(r"([^/@]+)/([^/@]+)(/([^@\n]*))?(@(.*))?")

_POWERSHELL_PREPEND = "$ErrorActionPreference = 'stop'"
_POWERSHELL_APPEND = "if ((Test-Path -LiteralPath variable:/LASTEXITCODE)) { exit $LASTEXITCODE }"


@dataclass
class RemoteAction:
    """An action referenced as ``{org}/{repo}[/path]@ref``."""

    org: str
    repo: str
    path: str
    ref: str
    url: str = "github.com"

    def clone_url(self) -> str:
        """Return the HTTPS URL to clone the action's repository from."""
        return f"https://{self.url}/{self.org}/{self.repo}"

    def is_checkout(self) -> bool:
        """Tell whether this is the standard checkout action."""
        return self.org == "actions" and self.repo == "checkout"


def new_remote_action(action: str) -> Optional[RemoteAction]:
    """Parse a ``uses:`` value; return ``None`` unless it names a ref."""
    match = _REMOTE_ACTION.fullmatch(action)
    if match is None or not match.group(6):
        return None
    return RemoteAction(
        org=match.group(1),
        repo=match.group(2),
        path=match.group(4) or "",
        ref=match.group(6),
    )


def action_cache_name(uses: str) -> str:
    """Return the directory name an action is cached under."""
    return uses.replace("/", "-")


def merge_into_map(target: MutableMapping[str, str], *maps: Mapping[str, str]) -> None:
    """Copy every entry of ``maps`` into ``target``; later maps win."""
    for mapping in maps:
        target.update(mapping)


def apply_path(env: MutableMapping[str, str], extra_path: Iterable[str] = ()) -> None:
    """Give ``env`` a default ``PATH`` and put ``extra_path`` in front of it."""
    if not env.get("PATH"):
        env["PATH"] = DEFAULT_PATH
    extra = list(extra_path or ())
    if extra:
        env["PATH"] = ":".join(extra) + ":" + env["PATH"]


def get_script_name(step_id: str, parent_steps: Iterable[str] = ()) -> str:
    """Name the script file of a step.

    ``parent_steps`` are the current steps of the enclosing composite
    actions, innermost first.
    """
    name = step_id
    for parent in parent_steps:
        name = f"{parent}-composite-{name}"
    return f"workflow/{name}"


def wrap_script(shell: str, script: str, name: str) -> tuple[str, str]:
    """Add the file extension and the shell's prologue and epilogue.

    Returns the file name and the full script text.
    """
    prepend = ""
    append = ""
    if shell in ("bash", "sh"):
        name += ".sh"
    elif shell in ("pwsh", "powershell"):
        name += ".ps1"
        prepend = _POWERSHELL_PREPEND
        append = _POWERSHELL_APPEND
    elif shell == "cmd":
        name += ".cmd"
        prepend = "@echo off"
    elif shell == "python":
        name += ".py"
    return name, f"{prepend}\n{script}\n{append}"