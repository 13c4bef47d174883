"""Tear down a preview Fly app."""

import sys
from typing import Optional, TextIO

from app.deploy.commands import CommandRunner, DeployError
from app.deploy.env import preview_database_name


def destroy_preview(
    fly_app: str,
    preview_name: Optional[str] = None,
    runner: Optional[CommandRunner] = None,
    out: TextIO = sys.stdout
) -> None:
    """
    Destroy the Fly app. The preview database is left in place.

    Raises:
        DeployError: Missing app name or `fly apps destroy` failed
    """
    if not fly_app:
        raise DeployError("--app is required")

    runner = runner or CommandRunner()

    print(f"==> Destroying Fly preview app {fly_app}", file=out)
    runner.run(["fly", "apps", "destroy", fly_app, "--yes"], error=f"Unable to destroy {fly_app}")

    print("", file=out)
    print(f"Fly preview app destroyed: {fly_app}", file=out)
    if preview_name:
        print(f"Preview database was: {preview_database_name(preview_name)}", file=out)
    print(
        "Reminder: preview databases are managed separately and were not dropped.",
        file=out,
    )
