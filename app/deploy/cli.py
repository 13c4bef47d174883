"""
Command-line entry points for the deploy tooling.

Installed as console scripts and wrapped by scripts/deploy_env.py,
scripts/deploy_preview.py and scripts/destroy_preview.py.
"""

import argparse
import os
import sys
from typing import List, Optional

from app.deploy.commands import DeployError
from app.deploy.destroy import destroy_preview
from app.deploy.env import (
    DEFAULT_FLY_ORG,
    DEFAULT_FLY_REGION,
    ENVIRONMENTS,
    DeployTarget,
    deploy_env,
)
from app.deploy.preview import OUTPUT_FORMATS, deploy_preview, render_payload


def _fail(error: DeployError) -> int:
    if error.output:
        print(error.output, file=sys.stderr)
    print(f"Error: {error}", file=sys.stderr)
    return 1


def deploy_env_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Deploy the ChatWave API to a Fly app.",
        epilog=(
            "Environment: FLY_API_TOKEN (required), CHATWAVE_JWT_SECRET_KEY and "
            "CHATWAVE_MONGODB_URL (used to seed missing app secrets)."
        ),
    )
    parser.add_argument("--env", required=True, choices=ENVIRONMENTS, help="Deployment target environment")
    parser.add_argument("--fly-app", required=True, help="Fly app name to deploy")
    parser.add_argument("--fly-org", default=DEFAULT_FLY_ORG, help=f"Fly organization slug (default: {DEFAULT_FLY_ORG})")
    parser.add_argument("--fly-region", default=DEFAULT_FLY_REGION, help=f"Fly primary region (default: {DEFAULT_FLY_REGION})")
    parser.add_argument("--preview-name", help="Required when --env preview")
    return parser


def deploy_env_main(argv: Optional[List[str]] = None) -> int:
    args = deploy_env_parser().parse_args(argv)
    target = DeployTarget(
        env=args.env,
        fly_app=args.fly_app,
        fly_org=args.fly_org,
        fly_region=args.fly_region,
        preview_name=args.preview_name,
    )

    try:
        result = deploy_env(target, environ=os.environ, out=sys.stdout)
    except DeployError as e:
        return _fail(e)

    print("")
    print("Deployment complete.")
    for line in result.lines():
        print(line)
    return 0


def deploy_preview_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deploy a preview environment for the current branch.")
    parser.add_argument("--fly-org", default=DEFAULT_FLY_ORG, help=f"Fly organization slug (default: {DEFAULT_FLY_ORG})")
    parser.add_argument("--fly-region", default=DEFAULT_FLY_REGION, help=f"Fly region (default: {DEFAULT_FLY_REGION})")
    parser.add_argument(
        "--format",
        default="human",
        choices=OUTPUT_FORMATS,
        help="Output format; json and dotenv print only the payload on stdout",
    )
    return parser


def deploy_preview_main(argv: Optional[List[str]] = None) -> int:
    args = deploy_preview_parser().parse_args(argv)
    progress = sys.stdout if args.format == "human" else sys.stderr

    try:
        payload = deploy_preview(
            environ=os.environ,
            fly_org=args.fly_org,
            fly_region=args.fly_region,
            out=progress,
        )
    except DeployError as e:
        return _fail(e)

    print(render_payload(payload, args.format))
    return 0


def destroy_preview_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Destroy a preview Fly app.")
    parser.add_argument("--app", required=True, help="Fly preview app to destroy")
    parser.add_argument("--preview-name", help="Preview name, for the database reminder")
    return parser


def destroy_preview_main(argv: Optional[List[str]] = None) -> int:
    args = destroy_preview_parser().parse_args(argv)
    try:
        destroy_preview(args.app, args.preview_name, out=sys.stdout)
    except DeployError as e:
        return _fail(e)
    return 0
