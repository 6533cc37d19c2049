"""Finding a GitHub token for `codepress review`.

The same token has to work for two callers: PyGithub, which fetches the PR
and posts the review, and the agent's own `gh` commands (`gh pr view
--comments`, `gh api .../comments`), which run in a subprocess. Sources are
therefore the ones `gh` itself honours, checked in this order:

  1. GITHUB_TOKEN (injected by GitHub Actions)
  2. GH_TOKEN (gh's own override variable)
  3. `gh auth token` (a local `gh auth login` session)
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")
_GH_TIMEOUT_SECONDS = 5


def _token_from_gh_session() -> str | None:
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=_GH_TIMEOUT_SECONDS,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug("gh CLI token lookup unavailable: %s", e)
        return None
    if result.returncode != 0:
        logger.debug("gh auth token failed: %s", result.stderr.strip())
        return None
    return result.stdout.strip() or None


def resolve_github_token() -> str | None:
    """Return a GitHub token, or None when no source has one. Never raises."""
    for name in TOKEN_ENV_VARS:
        token = os.environ.get(name)
        if token:
            logger.debug("Using GitHub token from %s.", name)
            return token

    token = _token_from_gh_session()
    if token:
        logger.debug("Using GitHub token from the gh CLI session.")
    return token
