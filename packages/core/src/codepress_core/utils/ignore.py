"""Path filtering for chunks that should never reach the model.

Patterns follow a useful subset of .gitignore syntax:
- fnmatch globs on the full path: "src/generated/*.py"
- fnmatch globs on the basename: "*.lock", "*.min.js"
- Directory names/prefixes: "node_modules/", "dist" (matches any file within that tree)
Blank lines and lines starting with "#" are ignored when read from a file.
"""

from __future__ import annotations

import fnmatch
from pathlib import Path

DEFAULT_IGNORE_PATTERNS = [
    # Dependencies and lock files
    "node_modules/",
    "vendor/",
    "*.lock",
    "package-lock.json",
    "pnpm-lock.yaml",
    "go.sum",
    # Build outputs and caches
    "dist/",
    ".next/",
    "coverage/",
    "__pycache__/",
    ".pytest_cache/",
    ".mypy_cache/",
    ".ruff_cache/",
    "*.egg-info/",
    "*.min.js",
    "*.min.css",
    "*.bundle.js",
    "*.chunk.js",
    "*.pyc",
    "*.class",
    "*.jar",
    "*.dll",
    "*.exe",
    # Secrets
    ".env",
    ".env.*",
    "*.key",
    "*.pem",
    # Binary and media
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.gif",
    "*.svg",
    "*.ico",
    "*.webp",
    "*.pdf",
    "*.woff",
    "*.woff2",
    "*.ttf",
    "*.mp4",
    "*.mp3",
    "*.zip",
    "*.tar.gz",
    "*.tgz",
    "*.7z",
    "*.db",
    "*.sqlite",
    "*.sqlite3",
    # Editor and OS noise
    ".DS_Store",
    ".vscode/",
    ".idea/",
    "*.log",
]


def load_ignore_file(path: str) -> list[str]:
    """Read patterns from an ignore file; a missing file yields no patterns."""
    p = Path(path)
    if not p.exists():
        return []
    return [line.strip() for line in p.read_text().splitlines() if line.strip() and not line.strip().startswith("#")]


def is_ignored(filename: str, patterns: list[str]) -> bool:
    """Return True if filename matches any pattern."""
    for pattern in patterns:
        if fnmatch.fnmatch(filename, pattern):
            return True
        # Basename match: "*.lock" matches "path/to/yarn.lock"
        if fnmatch.fnmatch(filename.rsplit("/", 1)[-1], pattern):
            return True
        # Directory prefix: "dist" or "dist/" matches "packages/web/dist/app.js"
        prefix = pattern.rstrip("/") + "/"
        if filename.startswith(prefix) or ("/" + prefix) in filename:
            return True
        # Directory glob: "*.egg-info/" matches "pkg.egg-info/PKG-INFO"
        directories = filename.split("/")[:-1]
        if pattern.endswith("/") and any(fnmatch.fnmatch(d, pattern.rstrip("/")) for d in directories):
            return True
    return False
