#!/usr/bin/env python3
"""
Deploy a preview environment for the current branch.

Usage:
    python scripts/deploy_preview.py
    python scripts/deploy_preview.py --format json > preview.json
    python scripts/deploy_preview.py --format dotenv > .env.preview

Requires the project to be installed (`pip install -e .`), which also provides
the chatwave-deploy-env, chatwave-deploy-preview and chatwave-destroy-preview
console scripts.
"""

import sys

from app.deploy.cli import deploy_preview_main

if __name__ == "__main__":
    sys.exit(deploy_preview_main())
