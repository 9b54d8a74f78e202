"""Invoke tasks for reelname development.

Every task shells out through `uv` so local runs use the same locked
environment as CI.
"""

from __future__ import annotations

import shlex
import shutil
from collections.abc import Sequence
from pathlib import Path

from invoke import Collection, Context, task

PROJECT_ROOT = Path(__file__).parent
DIST_DIR = PROJECT_ROOT / "dist"
SOURCES = ("src", "tests")


def _uv(ctx: Context, args: Sequence[str], *, dry_run: bool = False) -> None:
    """Run ``uv`` with ``args``, or only print the command for a dry run."""
    command = shlex.join(("uv", *args))
    if dry_run:
        print(f"[dry-run] {command}")
        return
    ctx.run(command, echo=True, pty=True)


@task(help={"dev": "Install the dev extra (linters, type checker, invoke)."})
def sync(ctx: Context, dev: bool = True) -> None:
    """Create or refresh the virtual environment."""
    args = ["sync", "--extra", "test"]
    if dev:
        args.extend(["--extra", "dev"])
    _uv(ctx, args)


@task(help={"clean": "Empty dist/ first."})
def build(ctx: Context, clean: bool = False) -> None:
    """Build the sdist and wheel into dist/."""
    if clean and DIST_DIR.exists():
        shutil.rmtree(DIST_DIR)
    _uv(ctx, ["build"])


@task(
    help={
        "k": "pytest -k expression.",
        "path": "Test path (defaults to tests/).",
        "options": "Extra pytest flags.",
    }
)
def tests(ctx: Context, k: str = "", path: str = "tests", options: str = "") -> None:
    """Run the pytest suite."""
    args = ["run", "pytest"]
    if k:
        args.extend(["-k", k])
    if options:
        args.extend(shlex.split(options))
    args.append(path)
    _uv(ctx, args)


@task(help={"fix": "Let ruff fix what it can.", "check_format": "Also verify formatting."})
def lint(ctx: Context, fix: bool = False, check_format: bool = False) -> None:
    """Lint with ruff."""
    if check_format:
        _uv(ctx, ["run", "ruff", "format", "--check", *SOURCES])
    args = ["run", "ruff", "check", *SOURCES]
    if fix:
        args.append("--fix")
    _uv(ctx, args)


@task
def typecheck(ctx: Context) -> None:
    """Type-check the package with mypy."""
    _uv(ctx, ["run", "mypy", "src"])


@task
def ci(ctx: Context) -> None:
    """Run lint, type checks and tests the way CI does."""
    ctx.invoke(lint, check_format=True)
    ctx.invoke(typecheck)
    ctx.invoke(tests)


namespace = Collection(sync, build, tests, lint, typecheck, ci)
