"""Config loading and .aep file resolution for the inspector tools."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


_CONFIG_PATH = os.path.expanduser("~/.aep_mcp/config.json")
_DEFAULT_LOG_LEVEL = "INFO"
_AEP_SUFFIX = ".aep"


def _load_optional_config() -> Dict[str, Any]:
    """Load optional JSON config payload from disk."""
    if not os.path.exists(_CONFIG_PATH):
        return {}
    try:
        with open(_CONFIG_PATH, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
        if isinstance(payload, dict):
            return payload
    except (OSError, ValueError):
        return {}
    return {}


def _config_or_env(config_payload: Dict[str, Any], key: str, env_key: str, default: Any) -> Any:
    """Return environment override, config value, or default."""
    env_value = os.environ.get(env_key)
    if env_value is not None and str(env_value).strip():
        return env_value
    if isinstance(config_payload, dict) and key in config_payload:
        value = config_payload.get(key)
        if value is not None and (not isinstance(value, str) or value.strip()):
            return value
    return default


def get_repo_root() -> str:
    """Return repository root inferred from module location."""
    return str(Path(__file__).resolve().parent.parent)


def get_log_level() -> int:
    """Resolve the logging level name from env/config, falling back to INFO."""
    level_name = str(
        _config_or_env(
            config_payload=_load_optional_config(),
            key="log_level",
            env_key="AEP_MCP_LOG_LEVEL",
            default=_DEFAULT_LOG_LEVEL
        )
    ).strip().upper()
    level = logging.getLevelName(level_name)
    if isinstance(level, int):
        return level
    return logging.INFO


def get_projects_root() -> Optional[str]:
    """
    Resolve the directory searched for .aep files.

    Order:
    1) AEP_MCP_PROJECTS_ROOT env override
    2) projects_root from the config file
    3) AEP_MCP_LAUNCH_CWD (cwd preserved by run_server)
    4) current working directory
    """
    configured = _config_or_env(
        config_payload=_load_optional_config(),
        key="projects_root",
        env_key="AEP_MCP_PROJECTS_ROOT",
        default=None
    )
    if isinstance(configured, str) and configured.strip():
        candidate = os.path.abspath(os.path.expanduser(configured.strip()))
        if os.path.isdir(candidate):
            return candidate
        return None

    launch_cwd = get_launch_cwd()
    if os.path.isdir(launch_cwd):
        return launch_cwd
    return None


def get_launch_cwd() -> str:
    """Return the caller's cwd preserved by run_server, else the current cwd."""
    launch_cwd = os.environ.get("AEP_MCP_LAUNCH_CWD")
    if isinstance(launch_cwd, str) and launch_cwd.strip():
        candidate = os.path.abspath(os.path.expanduser(launch_cwd.strip()))
        if os.path.isdir(candidate):
            return candidate
    return os.path.abspath(os.getcwd())


def normalize_aep_path(file_path: str) -> str:
    """Expand a user-supplied path; relative paths resolve against the launch cwd."""
    expanded = os.path.expanduser(file_path)
    if os.path.isabs(expanded):
        return os.path.abspath(expanded)
    return os.path.abspath(os.path.join(get_launch_cwd(), expanded))


def _safe_file_mtime(path_value: str) -> float:
    try:
        return float(os.path.getmtime(path_value))
    except OSError:
        return 0.0


def _iso_utc_from_ts(ts: float) -> Optional[str]:
    try:
        return datetime.fromtimestamp(float(ts), tz=timezone.utc).isoformat().replace("+00:00", "Z")
    except (OverflowError, OSError, ValueError):
        return None


def resolve_aep_file(project_root: Optional[str], aep_file_path: Optional[str] = None) -> Dict[str, Any]:
    """Pick the .aep file to decode: an explicit path, else the newest file under the root."""
    override_path = aep_file_path.strip() if isinstance(aep_file_path, str) else ""
    if override_path:
        expanded = normalize_aep_path(override_path)
        if not os.path.exists(expanded):
            return {
                "ok": True,
                "supported": False,
                "reason": "aep_file_path_not_found",
                "aep_file_path": expanded,
                "warnings": ["aep_file_path_not_found"],
            }
        if not os.path.isfile(expanded):
            return {
                "ok": True,
                "supported": False,
                "reason": "aep_file_path_not_file",
                "aep_file_path": expanded,
                "warnings": ["aep_file_path_not_file"],
            }
        if not expanded.lower().endswith(_AEP_SUFFIX):
            return {
                "ok": True,
                "supported": False,
                "reason": "aep_file_path_invalid_extension",
                "aep_file_path": expanded,
                "warnings": ["aep_file_path_invalid_extension"],
            }
        mtime = _safe_file_mtime(expanded)
        return {
            "ok": True,
            "supported": True,
            "project_root": os.path.abspath(project_root) if project_root else os.path.dirname(expanded),
            "aep_file_path": expanded,
            "aep_file_mtime_unix": mtime,
            "aep_file_mtime_utc": _iso_utc_from_ts(mtime),
            "candidate_count": 1,
            "candidate_paths": [expanded],
            "warnings": ["aep_file_path_override"],
        }

    if not isinstance(project_root, str) or not project_root:
        return {
            "ok": True,
            "supported": False,
            "reason": "project_root_unavailable",
            "warnings": ["project_root_unavailable"],
        }
    root = os.path.abspath(project_root)
    if not os.path.isdir(root):
        return {
            "ok": True,
            "supported": False,
            "reason": "project_root_not_dir",
            "project_root": root,
            "warnings": ["project_root_not_dir"],
        }

    candidates: List[Tuple[float, str]] = []
    try:
        for entry in Path(root).iterdir():
            if entry.is_file() and entry.suffix.lower() == _AEP_SUFFIX:
                candidates.append((_safe_file_mtime(str(entry)), str(entry)))
    except OSError:
        return {
            "ok": True,
            "supported": False,
            "reason": "project_root_list_failed",
            "project_root": root,
            "warnings": ["project_root_list_failed"],
        }

    if not candidates:
        return {
            "ok": True,
            "supported": False,
            "reason": "aep_file_not_found",
            "project_root": root,
            "warnings": ["aep_file_not_found"],
        }

    candidates.sort(key=lambda row: (row[0], row[1]), reverse=True)
    mtime, chosen = candidates[0]
    warnings = []
    if len(candidates) > 1:
        warnings.append("multiple_aep_files_found_using_newest")
    return {
        "ok": True,
        "supported": True,
        "project_root": root,
        "aep_file_path": chosen,
        "aep_file_mtime_unix": mtime,
        "aep_file_mtime_utc": _iso_utc_from_ts(mtime),
        "candidate_count": len(candidates),
        "candidate_paths": [path for _, path in candidates],
        "warnings": warnings,
    }
