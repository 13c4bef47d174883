#!/usr/bin/env python3
"""
Deploy the API to a Fly app.

Usage:
    python scripts/deploy_env.py --env dev --fly-app chatwave-dev
    python scripts/deploy_env.py --env preview --fly-app chatwave-pr-x --preview-name preview-x

Prints ENV=, FLY_APP=, FLY_URL=, BACKEND_URL= (and PREVIEW_NAME= for previews)
on success.

Requires the project to be installed (`pip install -e .`), which also provides
the chatwave-deploy-env, chatwave-deploy-preview and chatwave-destroy-preview
console scripts.
"""

import sys

from app.deploy.cli import deploy_env_main

if __name__ == "__main__":
    sys.exit(deploy_env_main())
