"""
Deploy a throwaway preview environment for the current branch.

The branch must be pushed (or pushable) so the preview matches what
reviewers see upstream. App and preview names derive from the commit:
``chatwave-pr-<sha8>-<rand4hex>`` and ``preview-<sha8>-<rand4hex>``.
"""

import json
import secrets
import shlex
import sys
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, TextIO, Tuple

from app.deploy.commands import CommandRunner, DeployError
from app.deploy.env import (
    DEFAULT_FLY_ORG,
    DEFAULT_FLY_REGION,
    DeployResult,
    DeployTarget,
    deploy_env,
)

OUTPUT_FORMATS = ("human", "json", "dotenv")

# Console script installed by `pip install -e .` (same as scripts/destroy_preview.py)
DESTROY_SCRIPT = "chatwave-destroy-preview"


@dataclass
class PreviewNames:
    fly_app: str
    preview_name: str


def preview_names(short_sha: str, suffix: str) -> PreviewNames:
    return PreviewNames(
        fly_app=f"chatwave-pr-{short_sha}-{suffix}",
        preview_name=f"preview-{short_sha}-{suffix}",
    )


def random_suffix() -> str:
    return secrets.token_hex(2)


def current_branch(runner: CommandRunner) -> str:
    branch = runner.run(["git", "rev-parse", "--abbrev-ref", "HEAD"]).stdout.strip()
    if branch == "HEAD":
        raise DeployError("Detached HEAD is not supported for preview deploys. Check out a branch and retry.")
    return branch


def upstream_counts(runner: CommandRunner) -> Optional[Tuple[int, int]]:
    """(behind, ahead) relative to the upstream branch, or None without one."""
    if not runner.succeeds(["git", "rev-parse", "--abbrev-ref", "@{upstream}"]):
        return None

    counts = runner.run(["git", "rev-list", "--left-right", "--count", "@{upstream}...HEAD"]).stdout.split()
    if len(counts) != 2:
        raise DeployError("Unable to compare branch with upstream", output=" ".join(counts))
    return int(counts[0]), int(counts[1])


def sync_branch(runner: CommandRunner, out: TextIO) -> str:
    """
    Make sure the remote has this branch's commits.

    Raises:
        DeployError: Detached HEAD, or the branch is behind its upstream
    """
    branch = current_branch(runner)
    counts = upstream_counts(runner)

    if counts is None:
        print(f"==> Branch has no upstream. Pushing and setting upstream to origin/{branch}", file=out)
        runner.run(["git", "push", "-u", "origin", branch], error=f"git push failed for {branch}")
        return branch

    behind, ahead = counts
    if behind > 0:
        raise DeployError(f"Branch is behind upstream by {behind} commit(s). Pull/rebase first.")
    if ahead > 0:
        print(f"==> Pushing {ahead} unpushed commit(s) to origin/{branch}", file=out)
        runner.run(["git", "push", "origin", branch], error=f"git push failed for {branch}")
    return branch


def destroy_command(names: PreviewNames) -> List[str]:
    return [
        DESTROY_SCRIPT,
        "--app", names.fly_app,
        "--preview-name", names.preview_name,
    ]


def build_payload(result: DeployResult, names: PreviewNames) -> Dict:
    command = destroy_command(names)
    return {
        "baseUrl": result.fly_url,
        "env": result.as_env(),
        "destroy": {
            "app": names.fly_app,
            "previewName": names.preview_name,
            "argv": command,
            "command": shlex.join(command),
        },
    }


def render_payload(payload: Dict, fmt: str) -> str:
    if fmt == "json":
        return json.dumps(payload, indent=2)

    if fmt == "dotenv":
        lines = [f"{key}={shlex.quote(value)}" for key, value in payload["env"].items()]
        lines.append(f"BASE_URL={shlex.quote(payload['baseUrl'])}")
        lines.append(f"DESTROY_COMMAND={shlex.quote(payload['destroy']['command'])}")
        return "\n".join(lines)

    lines = ["", "Preview deployment is live."]
    lines.extend(f"{key}={value}" for key, value in payload["env"].items())
    lines.extend([
        "",
        "WARNING: This preview app keeps running until you destroy it.",
        "Teardown command:",
        payload["destroy"]["command"],
    ])
    return "\n".join(lines)


def deploy_preview(
    runner: Optional[CommandRunner] = None,
    environ: Optional[Mapping[str, str]] = None,
    fly_org: str = DEFAULT_FLY_ORG,
    fly_region: str = DEFAULT_FLY_REGION,
    out: TextIO = sys.stdout,
    suffix: Callable[[], str] = random_suffix,
    deploy: Callable[..., DeployResult] = deploy_env
) -> Dict:
    """
    Sync the branch, derive preview names and run the environment deploy.

    Returns:
        Payload with ``baseUrl``, the ``env`` map and the ``destroy`` descriptor
    """
    runner = runner or CommandRunner()

    sync_branch(runner, out)

    short_sha = runner.run(["git", "rev-parse", "--short=8", "HEAD"]).stdout.strip()
    names = preview_names(short_sha, suffix())

    print(f"==> Deploying preview app {names.fly_app}", file=out)
    result = deploy(
        DeployTarget(
            env="preview",
            fly_app=names.fly_app,
            fly_org=fly_org,
            fly_region=fly_region,
            preview_name=names.preview_name,
        ),
        runner=runner,
        environ=environ,
        out=out,
    )
    return build_payload(result, names)
