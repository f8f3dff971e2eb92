"""Invoke tasks for local development of AIFiles.

Every task shells out to the `uv` CLI so environment syncing, builds, tests,
and linting run against the locked project environment.
"""

from __future__ import annotations

import shlex
import shutil
from collections.abc import Mapping, Sequence
from pathlib import Path

from invoke import Collection, Context, task

PROJECT_ROOT = Path(__file__).parent
DIST_DIR = PROJECT_ROOT / "dist"


def _uv(
    ctx: Context,
    args: Sequence[str],
    *,
    dry_run: bool = False,
    env: Mapping[str, str] | None = None,
) -> None:
    """Run ``uv`` with ``args``.

    Args:
        ctx: Invoke execution context.
        args: Arguments following the `uv` executable.
        dry_run: When True, print the command instead of running it.
        env: Extra environment variables for the command.
    """
    command = shlex.join(("uv", *args))
    if dry_run:
        print(f"[dry-run] {command}")
        return
    run_env = dict(ctx.config.run.env or {})
    if env:
        run_env.update(env)
    ctx.run(command, echo=True, pty=True, env=run_env)


@task(help={"dev": "Install the dev extra (tests, linters, invoke)."})
def sync(ctx: Context, dev: bool = True) -> None:
    """Create or update the virtual environment."""
    args = ["sync"]
    if dev:
        args.extend(["--extra", "dev"])
    _uv(ctx, args)


@task(help={"clean": "Empty dist/ first."})
def build(ctx: Context, clean: bool = False) -> None:
    """Build the sdist and wheel into `dist/`."""
    if clean and DIST_DIR.exists():
        shutil.rmtree(DIST_DIR)
    _uv(ctx, ["build"])


@task(
    help={
        "k": "pytest -k expression.",
        "slow": "Include tests that wait on real filesystem notifications.",
        "options": "Extra flags passed to pytest.",
    }
)
def tests(ctx: Context, k: str = "", slow: bool = True, options: str = "") -> None:
    """Run the test suite.

    Tests run with ``AIFILES_HOME`` pointed at a scratch directory so a
    developer's own templates and database are never touched.
    """
    args: list[str] = ["run", "pytest"]
    if k:
        args.extend(["-k", k])
    if not slow:
        args.extend(["-m", "not slow"])
    if options:
        args.extend(shlex.split(options))
    _uv(ctx, args, env={"AIFILES_HOME": str(PROJECT_ROOT / ".pytest-aifiles-home")})


@task(help={"fix": "Let ruff apply fixes."})
def lint(ctx: Context, fix: bool = False) -> None:
    """Check formatting and lint rules with ruff."""
    _uv(ctx, ["run", "ruff", "format", "--check", "src", "tests"])
    args = ["run", "ruff", "check", "src", "tests"]
    if fix:
        args.append("--fix")
    _uv(ctx, args)


@task
def mypy(ctx: Context) -> None:
    """Type-check the package."""
    _uv(ctx, ["run", "mypy", "src"])


@task(help={"template": "Template id to watch (default: enabled templates)."})
def watch(ctx: Context, template: str = "") -> None:
    """Start the watch daemon from the project environment."""
    args = ["run", "aifiles", "watch"]
    if template:
        args.extend(["--template", template])
    _uv(ctx, args)


@task
def ci(ctx: Context) -> None:
    """Run lint, type checks, and tests as CI does."""
    ctx.invoke(lint)
    ctx.invoke(mypy)
    ctx.invoke(tests)


namespace = Collection(sync, build, tests, lint, mypy, watch, ci)
