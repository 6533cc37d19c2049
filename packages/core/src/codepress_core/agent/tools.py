"""Tools the review agent may call during its loop.

Each tool returns plain text. Failures (missing file, timeout, bad range)
come back as an ``Error: ...`` string for the model to read rather than as
an exception, so one bad call does not end the review.
"""

from __future__ import annotations

import logging
import os
import posixpath
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

_BASH_TIMEOUT_SECONDS = 60
# Caps a single tool result. Large `cat` or `git log` output would otherwise
# crowd the diff out of the model's context window.
_MAX_OUTPUT_CHARS = 20_000

_JS_SUFFIXES = (".ts", ".tsx", ".js", ".jsx")
_SOURCE_SUFFIXES = (".py",) + _JS_SUFFIXES
_SKIP_DIRS = {"node_modules", ".git", "dist", "build", ".next", "__pycache__", ".venv", "venv"}

_JS_IMPORT_RES = [
    re.compile(r"""import\s+.*?\s+from\s+['"`]([^'"`]+)['"`]"""),
    re.compile(r"""import\s*\(\s*['"`]([^'"`]+)['"`]\s*\)"""),
    re.compile(r"""require\s*\(\s*['"`]([^'"`]+)['"`]\s*\)"""),
    re.compile(r"""export\s+.*?\s+from\s+['"`]([^'"`]+)['"`]"""),
]
_PY_IMPORT_RE = re.compile(r"^[ \t]*import[ \t]+([\w.]+(?:[ \t]*,[ \t]*[\w.]+)*)", re.MULTILINE)
_PY_FROM_RE = re.compile(
    r"^[ \t]*from[ \t]+(\.*)([\w.]*)[ \t]+import[ \t]+(?:\(([^)]*)\)|([\w \t,]+))", re.MULTILINE
)


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    input_schema: dict
    handler: Callable[[dict], str]

    def to_api(self) -> dict:
        return {"name": self.name, "description": self.description, "input_schema": self.input_schema}


def _truncate(text: str) -> str:
    if len(text) <= _MAX_OUTPUT_CHARS:
        return text
    return text[:_MAX_OUTPUT_CHARS] + "\n... [output truncated]"


def _resolve_inside(root: Path, relative_path: str) -> Path:
    candidate = (root / relative_path).resolve()
    if candidate != root and root not in candidate.parents:
        raise ValueError(f"path escapes the repository: {relative_path}")
    return candidate


def make_bash_tool(root: Path, timeout: int = _BASH_TIMEOUT_SECONDS) -> Tool:
    def run(tool_input: dict) -> str:
        command = tool_input.get("command", "")
        if not command.strip():
            return "Error: no command given"
        try:
            result = subprocess.run(
                command,
                shell=True,
                cwd=root,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return f"Error: command timed out after {timeout}s"
        output = result.stdout
        if result.stderr:
            output += f"\n[stderr]\n{result.stderr}"
        if result.returncode != 0:
            output += f"\n[exit code {result.returncode}]"
        return _truncate(output.strip() or "(no output)")

    return Tool(
        name="bash",
        description=(
            "Run a shell command in the repository root. Use it for git, grep, and the gh CLI "
            "(e.g. `gh pr view --comments` to read earlier review comments)."
        ),
        input_schema={
            "type": "object",
            "properties": {"command": {"type": "string", "description": "The command to run."}},
            "required": ["command"],
        },
        handler=run,
    )


def make_fetch_file_tool(root: Path) -> Tool:
    def run(tool_input: dict) -> str:
        path = tool_input.get("path", "")
        try:
            target = _resolve_inside(root, path)
            return _truncate(target.read_text(encoding="utf-8", errors="replace"))
        except (OSError, ValueError) as e:
            return f"Error: {e}"

    return Tool(
        name="fetch_file",
        description="Return the full contents of a file path.",
        input_schema={
            "type": "object",
            "properties": {"path": {"type": "string", "description": "Repository-relative file path."}},
            "required": ["path"],
        },
        handler=run,
    )


def make_fetch_snippet_tool(root: Path) -> Tool:
    def run(tool_input: dict) -> str:
        path = tool_input.get("path", "")
        try:
            start, end = int(tool_input.get("start", 1)), int(tool_input.get("end", 1))
        except (TypeError, ValueError):
            return "Error: start and end must be integers"
        if start < 1 or end < start:
            return f"Error: invalid line range {start}-{end}"
        try:
            lines = _resolve_inside(root, path).read_text(encoding="utf-8", errors="replace").splitlines()
        except (OSError, ValueError) as e:
            return f"Error: {e}"
        snippet = lines[start - 1 : end]
        if not snippet:
            return f"Error: {path} has only {len(lines)} line(s)"
        return _truncate("\n".join(f"{n}: {text}" for n, text in enumerate(snippet, start)))

    return Tool(
        name="fetch_snippet",
        description="Return a specific line range (inclusive) from a file path.",
        input_schema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Repository-relative file path."},
                "start": {"type": "integer", "description": "First line, 1-based."},
                "end": {"type": "integer", "description": "Last line, inclusive."},
            },
            "required": ["path", "start", "end"],
        },
        handler=run,
    )


def _list_source_files(root: Path) -> list[str]:
    files = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
        for name in sorted(filenames):
            if name.endswith(_SOURCE_SUFFIXES):
                files.append((Path(dirpath) / name).relative_to(root).as_posix())
    return files


def _resolve_js_import(specifier: str, from_file: str, known: set[str]) -> Optional[str]:
    # Bare specifiers are packages, not repository files.
    if not specifier.startswith(("./", "../")):
        return None
    base = posixpath.normpath(posixpath.join(posixpath.dirname(from_file), specifier))
    candidates = [base] + [base + ext for ext in _JS_SUFFIXES] + [f"{base}/index{ext}" for ext in _JS_SUFFIXES]
    return next((c for c in candidates if c in known), None)


def _resolve_python_module(module_path: str, files: list[str], known: set[str], anywhere: bool) -> Optional[str]:
    """Find ``module_path`` (slash-separated) as a module file or package.

    With ``anywhere`` set the module may sit under any source root, e.g.
    ``src/`` or ``packages/core/src/``.
    """
    for candidate in (f"{module_path}.py", f"{module_path}/__init__.py"):
        if candidate in known:
            return candidate
        if anywhere:
            match = next((f for f in files if f.endswith("/" + candidate)), None)
            if match:
                return match
    return None


def _python_imports(content: str, from_file: str, files: list[str], known: set[str]) -> list[str]:
    found = []
    for match in _PY_IMPORT_RE.finditer(content):
        for module in match.group(1).split(","):
            resolved = _resolve_python_module(module.strip().replace(".", "/"), files, known, anywhere=True)
            if resolved:
                found.append(resolved)

    for match in _PY_FROM_RE.finditer(content):
        dots, module, grouped, inline = match.groups()
        names = grouped if grouped is not None else inline
        module_path = module.replace(".", "/")
        if dots:
            base = posixpath.dirname(from_file)
            for _ in range(len(dots) - 1):
                base = posixpath.dirname(base)
            module_path = "/".join(p for p in (base, module_path) if p)
        anywhere = not dots
        resolved = _resolve_python_module(module_path, files, known, anywhere) if module_path else None
        if resolved and not resolved.endswith("/__init__.py"):
            found.append(resolved)
            continue
        # `from pkg import mod` may name submodules rather than attributes.
        submodules = []
        for name in names.split(","):
            name = name.strip().split(" ")[0]
            if name:
                sub = _resolve_python_module("/".join(p for p in (module_path, name) if p), files, known, anywhere)
                if sub:
                    submodules.append(sub)
        found.extend(submodules or ([resolved] if resolved else []))
    return found


def _extract_imports(root: Path, path: str, files: list[str], known: set[str]) -> list[str]:
    """Repository files imported by ``path``; packages and unresolvable imports are left out."""
    try:
        content = (root / path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return []
    if path.endswith(".py"):
        found = _python_imports(content, path, files, known)
    else:
        found = []
        for pattern in _JS_IMPORT_RES:
            for match in pattern.finditer(content):
                resolved = _resolve_js_import(match.group(1), path, known)
                if resolved:
                    found.append(resolved)
    return [f for f in dict.fromkeys(found) if f != path]


def make_dep_graph_tool(root: Path) -> Tool:
    def run(tool_input: dict) -> str:
        path = tool_input.get("path", "")
        try:
            depth = int(tool_input.get("depth", 1))
        except (TypeError, ValueError):
            return "Error: depth must be an integer"
        if depth < 1:
            return "Error: depth must be at least 1"
        try:
            target = _resolve_inside(root, path)
        except ValueError as e:
            return f"Error: {e}"
        if not target.is_file():
            return f"Error: File not found at {path}"
        start = target.relative_to(root).as_posix()

        files = _list_source_files(root)
        known = set(files)
        imports = {f: _extract_imports(root, f, files, known) for f in files}
        if start not in imports:
            imports[start] = _extract_imports(root, start, files, known)
        importers: dict[str, list[str]] = {f: [] for f in imports}
        for source, targets in imports.items():
            for imported in targets:
                importers[imported].append(source)

        graph: dict[str, tuple[list[str], list[str]]] = {}

        def visit(file_path: str, level: int) -> None:
            if level > depth or file_path in graph:
                return
            graph[file_path] = (imports[file_path], importers[file_path])
            if level < depth:
                for neighbour in imports[file_path] + importers[file_path]:
                    visit(neighbour, level + 1)

        visit(start, 1)

        output = []
        for file_path, (imported, imported_by) in graph.items():
            output.append(f"=== {file_path} ===")
            if imported:
                output.append(f"Imports ({len(imported)}):")
                output.extend(f"  → {f}" for f in imported)
            if imported_by:
                output.append(f"Imported by ({len(imported_by)}):")
                output.extend(f"  ← {f}" for f in imported_by)
            if not imported and not imported_by:
                output.append("No dependencies found")
            output.append("")
        return _truncate("\n".join(output).strip())

    return Tool(
        name="dep_graph",
        description="Return files directly importing or imported by path, up to depth hops.",
        input_schema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Repository-relative file path."},
                "depth": {"type": "integer", "description": "Depth of the graph to traverse (1 = direct only)."},
            },
            "required": ["path", "depth"],
        },
        handler=run,
    )


def default_tools(repo_root: str | Path = ".") -> list[Tool]:
    root = Path(repo_root).resolve()
    return [
        make_bash_tool(root),
        make_fetch_file_tool(root),
        make_fetch_snippet_tool(root),
        make_dep_graph_tool(root),
    ]


def list_tracked_files(repo_root: str | Path = ".") -> list[str]:
    """Paths tracked by git under ``repo_root``; empty outside a git checkout."""
    try:
        result = subprocess.run(
            ["git", "ls-files"],
            cwd=repo_root,
            capture_output=True,
            text=True,
            timeout=_BASH_TIMEOUT_SECONDS,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.debug("git ls-files unavailable: %s", e)
        return []
    if result.returncode != 0:
        logger.debug("git ls-files failed: %s", result.stderr.strip())
        return []
    return [line for line in result.stdout.splitlines() if line]


def execute_tool(tools: list[Tool], name: str, tool_input: dict) -> str:
    for tool in tools:
        if tool.name == name:
            logger.debug("Running tool %s with %s", name, tool_input)
            return tool.handler(tool_input or {})
    return f"Error: unknown tool {name!r}"
