"""
Deploy the API to a Fly.io app for one environment (prod, dev or preview).

Flow:
1. Preconditions: git and fly on PATH, FLY_API_TOKEN set, `fly auth whoami` works
2. Ensure the Fly app exists (`fly status`, else `fly apps create`)
3. Ensure backend secrets exist on the app, seeding missing ones from
   CHATWAVE_JWT_SECRET_KEY / CHATWAVE_MONGODB_URL
4. Preview only: point the app at its own database (DATABASE_NAME=chatwave_<preview>)
5. `fly deploy`
6. Run the seed on the deployed machine
7. Smoke check <FLY_URL>/health
"""

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, TextIO

from app.config import settings
from app.deploy.commands import CommandRunner, DeployError, require_commands, require_env
from app.deploy.smoke import smoke_check

ENVIRONMENTS = ("prod", "dev", "preview")
DEFAULT_FLY_ORG = "qamate-test-apps"
DEFAULT_FLY_REGION = "iad"

REPO_ROOT = Path(__file__).resolve().parents[2]
FLY_CONFIG = "fly.toml"

# Secret on the Fly app -> local variable used to seed it when missing
REQUIRED_SECRETS = {
    "JWT_SECRET_KEY": "CHATWAVE_JWT_SECRET_KEY",
    "MONGODB_URL": "CHATWAVE_MONGODB_URL",
}

SEED_COMMAND = "python -m app.seed"


@dataclass
class DeployTarget:
    env: str
    fly_app: str
    fly_org: str = DEFAULT_FLY_ORG
    fly_region: str = DEFAULT_FLY_REGION
    preview_name: Optional[str] = None

    def validate(self) -> None:
        if not self.fly_app:
            raise DeployError("--fly-app is required")
        if self.env not in ENVIRONMENTS:
            raise DeployError(f"--env must be one of: {', '.join(ENVIRONMENTS)}")
        if self.env == "preview" and not self.preview_name:
            raise DeployError("--preview-name is required when --env preview")

    @property
    def label(self) -> str:
        if self.env == "preview":
            return f"preview {self.preview_name}"
        return f"{self.env} deployment"


@dataclass
class DeployResult:
    env: str
    fly_app: str
    fly_url: str
    backend_url: str
    preview_name: Optional[str] = None

    def as_env(self) -> Dict[str, str]:
        values = {
            "ENV": self.env,
            "FLY_APP": self.fly_app,
            "FLY_URL": self.fly_url,
            "BACKEND_URL": self.backend_url,
        }
        if self.preview_name:
            values["PREVIEW_NAME"] = self.preview_name
        return values

    def lines(self) -> List[str]:
        return [f"{key}={value}" for key, value in self.as_env().items()]


def fly_url(fly_app: str) -> str:
    return f"https://{fly_app}.fly.dev"


def preview_database_name(preview_name: str) -> str:
    return f"chatwave_{preview_name}"


def list_secret_names(runner: CommandRunner, fly_app: str) -> List[str]:
    result = runner.run(
        ["fly", "secrets", "list", "-a", fly_app, "--json"],
        error=f"Unable to list secrets for {fly_app}",
    )
    try:
        entries = json.loads(result.stdout or "[]")
    except json.JSONDecodeError as e:
        raise DeployError(f"Unexpected `fly secrets list` output for {fly_app}", output=result.stdout) from e

    names = []
    for entry in entries or []:
        name = entry.get("Name") or entry.get("name")
        if name:
            names.append(name)
    return names


def ensure_fly_app(runner: CommandRunner, target: DeployTarget, out: TextIO) -> None:
    print(f"==> Ensuring Fly app exists: {target.fly_app}", file=out)
    if runner.succeeds(["fly", "status", "-a", target.fly_app]):
        return
    runner.run(
        ["fly", "apps", "create", target.fly_app, "-o", target.fly_org, "--yes"],
        error=f"Unable to create Fly app {target.fly_app}",
    )


def ensure_backend_secrets(
    runner: CommandRunner,
    target: DeployTarget,
    environ: Mapping[str, str],
    out: TextIO
) -> List[str]:
    """
    Make sure every required secret is set on the app.

    Returns:
        Names of the secrets that had to be seeded

    Raises:
        DeployError: A secret is missing and no local value is available for it
    """
    present = set(list_secret_names(runner, target.fly_app))
    missing = [name for name in REQUIRED_SECRETS if name not in present]
    if not missing:
        return []

    unavailable = [REQUIRED_SECRETS[name] for name in missing if not environ.get(REQUIRED_SECRETS[name])]
    if unavailable:
        raise DeployError(
            f"{target.label} is missing {'/'.join(missing)}. "
            f"Set {' and '.join(unavailable)}."
        )

    print(f"==> Seeding missing backend secrets on {target.label}", file=out)
    payload = "".join(f"{name}={environ[REQUIRED_SECRETS[name]]}\n" for name in missing)
    runner.run(
        ["fly", "secrets", "import", "-a", target.fly_app, "--stage"],
        input=payload,
        error=f"Unable to set secrets on {target.fly_app}",
    )
    return missing


def configure_preview_database(runner: CommandRunner, target: DeployTarget, out: TextIO) -> str:
    database = preview_database_name(target.preview_name)
    print(f"==> Using database {database} for {target.label}", file=out)
    runner.run(
        ["fly", "secrets", "set", f"DATABASE_NAME={database}", "-a", target.fly_app, "--stage"],
        error=f"Unable to set DATABASE_NAME on {target.fly_app}",
    )
    return database


def deploy_app(runner: CommandRunner, target: DeployTarget, out: TextIO) -> None:
    print(f"==> Deploying Fly app {target.fly_app} ({target.env})", file=out)
    result = runner.run(
        [
            "fly", "deploy", ".",
            "--config", FLY_CONFIG,
            "-a", target.fly_app,
            "--primary-region", target.fly_region,
            "--env", f"PUBLIC_BASE_URL={fly_url(target.fly_app)}",
            "--yes",
        ],
        cwd=REPO_ROOT,
        error="Fly deploy failed",
    )
    if result.output:
        print(result.output, file=out)


def run_remote_seed(runner: CommandRunner, target: DeployTarget, out: TextIO) -> None:
    print(f"==> Running seed on {target.label}", file=out)
    result = runner.run(
        ["fly", "ssh", "console", "-a", target.fly_app, "-C", SEED_COMMAND],
        error=f"Seed failed on {target.label}",
    )
    if result.output:
        print(result.output, file=out)


def deploy_env(
    target: DeployTarget,
    runner: Optional[CommandRunner] = None,
    environ: Optional[Mapping[str, str]] = None,
    out: TextIO = sys.stdout,
    check: Callable[..., int] = smoke_check
) -> DeployResult:
    """
    Deploy one environment end to end.

    Raises:
        DeployError: Any precondition, command or smoke check failed
    """
    target.validate()

    runner = runner or CommandRunner(cwd=REPO_ROOT)
    environ = environ if environ is not None else {}

    require_env(environ, ["FLY_API_TOKEN"])
    require_commands(runner, ["git", "fly"])

    if not runner.succeeds(["fly", "auth", "whoami"]):
        raise DeployError("Fly authentication is missing. Set FLY_API_TOKEN or run 'fly auth login'.")

    ensure_fly_app(runner, target, out)
    ensure_backend_secrets(runner, target, environ, out)
    if target.env == "preview":
        configure_preview_database(runner, target, out)

    deploy_app(runner, target, out)
    run_remote_seed(runner, target, out)

    url = fly_url(target.fly_app)
    print(f"==> HTTP smoke check: {url}/health", file=out)
    check(f"{url}/health", out=out)

    return DeployResult(
        env=target.env,
        fly_app=target.fly_app,
        fly_url=url,
        backend_url=f"{url}{settings.API_PREFIX}",
        preview_name=target.preview_name if target.env == "preview" else None,
    )
