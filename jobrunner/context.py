"""The ``github`` context of a job and the environment variables derived from it."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from .containers import ACT_PATH

DEFAULT_ACTOR = "nektos/act"
EVENT_PATH = f"{ACT_PATH}/workflow/event.json"

_TAG_PREFIX = "refs/tags/"
_BRANCH_PREFIX = "refs/heads/"


def merge_maps(*maps: Mapping[str, str]) -> dict[str, str]:
    """Return a new mapping holding every entry of ``maps``; later maps win."""
    merged: dict[str, str] = {}
    for mapping in maps:
        merged.update(mapping or {})
    return merged


def nested_map_lookup(mapping: Mapping[str, Any], *keys: str) -> Any:
    """Follow ``keys`` through nested mappings.

    Returns ``None`` when no keys are given, a key is missing, or an
    intermediate value is not a mapping.
    """
    if not keys:
        return None
    value: Any = mapping
    for key in keys:
        if not isinstance(value, Mapping) or key not in value:
            return None
        value = value[key]
    return value


def as_string(value: Any) -> str:
    """Return ``value`` if it is a string, otherwise an empty string."""
    return value if isinstance(value, str) else ""


@dataclass
class GithubContext:
    """The values exposed to expressions as ``github.*``."""

    event: dict[str, Any] = field(default_factory=dict)
    event_path: str = EVENT_PATH
    workflow: str = ""
    run_id: str = ""
    run_number: str = ""
    actor: str = ""
    repository: str = ""
    event_name: str = ""
    sha: str = ""
    ref: str = ""
    ref_name: str = ""
    ref_type: str = ""
    head_ref: str = ""
    base_ref: str = ""
    token: str = ""
    workspace: str = ""
    action: str = ""
    action_path: str = ""
    action_ref: str = ""
    action_repository: str = ""
    job: str = ""
    repository_owner: str = ""
    retention_days: str = ""
    runner_perflog: str = ""
    runner_tracking_id: str = ""

    def apply_defaults(self) -> None:
        """Fill unset values with the runner's defaults.

        Also derives the repository owner from the repository and, for
        ``pull_request`` events, the base and head refs from the event.
        """
        if not self.run_id:
            self.run_id = "1"
        if not self.run_number:
            self.run_number = "1"
        if not self.retention_days:
            self.retention_days = "0"
        if not self.runner_perflog:
            self.runner_perflog = "/dev/null"
        if not self.actor:
            self.actor = DEFAULT_ACTOR
        if self.repository and not self.repository_owner:
            self.repository_owner = self.repository.split("/")[0]
        if self.event_name == "pull_request":
            self.base_ref = as_string(nested_map_lookup(self.event, "pull_request", "base", "ref"))
            self.head_ref = as_string(nested_map_lookup(self.event, "pull_request", "head", "ref"))

    def set_ref_type(self) -> None:
        """Derive ``ref_type`` and ``ref_name`` from a tag or branch ``ref``."""
        if self.ref.startswith(_TAG_PREFIX):
            self.ref_type = "tag"
            self.ref_name = self.ref[len(_TAG_PREFIX):]
        elif self.ref.startswith(_BRANCH_PREFIX):
            self.ref_type = "branch"
            self.ref_name = self.ref[len(_BRANCH_PREFIX):]


def github_env(github: GithubContext, job_name: str,
               github_instance: str = "github.com") -> dict[str, str]:
    """Return the ``GITHUB_*`` and related variables a step runs with."""
    env = {
        "CI": "true",
        "GITHUB_ENV": f"{ACT_PATH}/workflow/envs.txt",
        "GITHUB_PATH": f"{ACT_PATH}/workflow/paths.txt",
        "GITHUB_WORKFLOW": github.workflow,
        "GITHUB_RUN_ID": github.run_id,
        "GITHUB_RUN_NUMBER": github.run_number,
        "GITHUB_ACTION": github.action,
        "GITHUB_ACTION_PATH": github.action_path,
        "GITHUB_ACTION_REPOSITORY": github.action_repository,
        "GITHUB_ACTION_REF": github.action_ref,
        "GITHUB_ACTIONS": "true",
        "GITHUB_ACTOR": github.actor,
        "GITHUB_REPOSITORY": github.repository,
        "GITHUB_EVENT_NAME": github.event_name,
        "GITHUB_EVENT_PATH": github.event_path,
        "GITHUB_WORKSPACE": github.workspace,
        "GITHUB_SHA": github.sha,
        "GITHUB_REF": github.ref,
        "GITHUB_REF_NAME": github.ref_name,
        "GITHUB_REF_TYPE": github.ref_type,
        "GITHUB_TOKEN": github.token,
        "GITHUB_SERVER_URL": "https://github.com",
        "GITHUB_API_URL": "https://api.github.com",
        "GITHUB_GRAPHQL_URL": "https://api.github.com/graphql",
        "GITHUB_BASE_REF": github.base_ref,
        "GITHUB_HEAD_REF": github.head_ref,
        "GITHUB_JOB": job_name,
        "GITHUB_REPOSITORY_OWNER": github.repository_owner,
        "GITHUB_RETENTION_DAYS": github.retention_days,
        "RUNNER_PERFLOG": github.runner_perflog,
        "RUNNER_TRACKING_ID": github.runner_tracking_id,
    }
    if github_instance != "github.com":
        env["GITHUB_SERVER_URL"] = f"https://{github_instance}"
        env["GITHUB_API_URL"] = f"https://{github_instance}/api/v3"
        env["GITHUB_GRAPHQL_URL"] = f"https://{github_instance}/api/graphql"
    return env


def image_os(labels: Optional[Iterable[str]]) -> Optional[str]:
    """Return the ``ImageOS`` value for the (interpolated) ``runs-on`` labels.

    The last non-empty label decides; ``None`` means no label gave a value.
    """
    result: Optional[str] = None
    for label in labels or ():
        if not label:
            continue
        if label == "ubuntu-latest":
            # The current ubuntu-latest cannot be looked up, so it is fixed here.
            result = "ubuntu20"
        else:
            result = label.replace("-", "", 1).split(".", 1)[0]
    return result