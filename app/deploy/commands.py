"""
External command execution for the deploy tooling.

Every command goes through CommandRunner so that exit codes are always
checked and tests can swap in a fake runner.
"""

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence


class DeployError(RuntimeError):
    """A deploy step failed. ``output`` carries whatever the command printed."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


@dataclass
class CommandResult:
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


class CommandRunner:
    """Runs commands with captured output; ``run`` raises DeployError on failure."""

    def __init__(self, cwd: Optional[Path] = None, env: Optional[Mapping[str, str]] = None):
        self.cwd = cwd
        self.env = dict(env) if env is not None else None

    def execute(
        self,
        args: Sequence[str],
        input: Optional[str] = None,
        cwd: Optional[Path] = None
    ) -> CommandResult:
        """Run a command and return its result without judging the exit code."""
        try:
            completed = subprocess.run(  # nosec B603 - args built by the deploy tooling
                list(args),
                cwd=cwd or self.cwd,
                env=self.env,
                input=input,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            raise DeployError(f"Required command not found: {args[0]}") from e

        return CommandResult(
            args=list(args),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    def run(
        self,
        args: Sequence[str],
        input: Optional[str] = None,
        cwd: Optional[Path] = None,
        error: Optional[str] = None
    ) -> CommandResult:
        """Run a command that must succeed."""
        result = self.execute(args, input=input, cwd=cwd)
        if not result.ok:
            raise DeployError(
                error or f"Command failed ({result.returncode}): {' '.join(args)}",
                output=result.output,
            )
        return result

    def succeeds(self, args: Sequence[str]) -> bool:
        """Probe: True when the command exits 0."""
        return self.execute(args).ok

    def which(self, name: str) -> Optional[str]:
        return shutil.which(name)


def require_commands(runner: CommandRunner, names: Iterable[str]) -> None:
    for name in names:
        if runner.which(name) is None:
            raise DeployError(f"Required command not found: {name}")


def require_env(environ: Mapping[str, str], names: Iterable[str]) -> Dict[str, str]:
    values = {}
    for name in names:
        value = environ.get(name, "")
        if not value:
            raise DeployError(f"{name} must be set")
        values[name] = value
    return values
