#!/usr/bin/env python3
"""
Destroy a preview Fly app.

Usage:
    python scripts/destroy_preview.py --app chatwave-pr-1a2b3c4d-9f0e --preview-name preview-1a2b3c4d-9f0e

Requires the project to be installed (`pip install -e .`), which also provides
the chatwave-deploy-env, chatwave-deploy-preview and chatwave-destroy-preview
console scripts.
"""

import sys

from app.deploy.cli import destroy_preview_main

if __name__ == "__main__":
    sys.exit(destroy_preview_main())
