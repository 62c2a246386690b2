#!/usr/bin/env python3
"""Command-line entrypoint for the AEP inspector MCP server."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional, Sequence


def _bootstrap_repo_path() -> None:
    # Allow `python AEP_Server/run_server.py` from a checkout without installing.
    repo_root_str = str(Path(__file__).resolve().parent.parent)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


def _apply_overrides(projects_root: Optional[str], log_level: Optional[str]) -> None:
    # Preserve caller cwd so relative .aep paths resolve against it.
    os.environ.setdefault("AEP_MCP_LAUNCH_CWD", os.getcwd())
    if projects_root:
        os.environ["AEP_MCP_PROJECTS_ROOT"] = os.path.abspath(os.path.expanduser(projects_root))
    if log_level:
        os.environ["AEP_MCP_LOG_LEVEL"] = log_level


def _smoke_check(aep_file_path: Optional[str]) -> int:
    from AEP_Server import server
    from AEP_Server.errors import AEPDecodeError
    from AEP_Server.pathing import normalize_aep_path
    from AEP_Server.project import Project

    try:
        tool_count = len(asyncio.run(server.mcp.list_tools()))
    except Exception as exc:
        print(f"SMOKE_CHECK_FAILED: {exc}", file=sys.stderr)
        return 1
    if tool_count <= 0:
        print("SMOKE_CHECK_FAILED: no MCP tools are registered", file=sys.stderr)
        return 1

    if not aep_file_path:
        print(f"SMOKE_CHECK_OK: {tool_count} tools registered")
        return 0

    path = normalize_aep_path(aep_file_path)
    try:
        project = Project.open(path)
    except AEPDecodeError as exc:
        print(f"SMOKE_CHECK_FAILED: {path}: [{exc.code}] {exc.message}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"SMOKE_CHECK_FAILED: {path}: {exc}", file=sys.stderr)
        return 1

    print(
        f"SMOKE_CHECK_OK: {tool_count} tools registered; "
        f"{path} decoded {len(project.items)} items, "
        f"{len(project.compositions())} compositions, {project.bits_per_channel} bpc"
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Run the AEP inspector MCP server."
    )
    parser.add_argument(
        "--smoke",
        nargs="?",
        const="",
        default=None,
        metavar="AEP_FILE",
        help="Check tool registration, and decode AEP_FILE if given, without starting the server loop.",
    )
    parser.add_argument(
        "--projects-root",
        help="Directory searched for .aep files when a tool gets no explicit path.",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level name (overrides AEP_MCP_LOG_LEVEL and the config file).",
    )
    args = parser.parse_args(argv)

    _apply_overrides(args.projects_root, args.log_level)
    _bootstrap_repo_path()

    if args.smoke is not None:
        return _smoke_check(args.smoke)

    from AEP_Server.server import main as server_main

    server_main()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
