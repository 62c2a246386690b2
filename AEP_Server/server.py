# server.py
from mcp.server.fastmcp import FastMCP, Context
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Any, Optional, Tuple
from AEP_Server.errors import AEPDecodeError
from AEP_Server.items import ItemType, item_to_dict
from AEP_Server.pathing import get_log_level, get_projects_root, resolve_aep_file
from AEP_Server.project import Project, project_to_dict

# Configure logging
logging.basicConfig(level=get_log_level(),
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("AEPInspectorServer")


@asynccontextmanager
async def server_lifespan(server: FastMCP) -> AsyncIterator[Dict[str, Any]]:
    """Manage server startup and shutdown lifecycle"""
    try:
        logger.info("AEP inspector server starting up")
        projects_root = get_projects_root()
        if projects_root is None:
            logger.warning("No projects root resolved; tools will need an explicit aep_file_path")
        else:
            logger.info(f"Looking for .aep files under {projects_root}")
        yield {}
    finally:
        _project_cache.clear()
        logger.info("AEP inspector server shut down")

# Create the MCP server with lifespan support
mcp = FastMCP(
    "AEPInspector",
    lifespan=server_lifespan
)

# Decoded projects keyed by (path, mtime)
_project_cache: Dict[Tuple[str, float], Project] = {}


def _load_project(aep_file_path: Optional[str]) -> Tuple[Optional[Project], Dict[str, Any]]:
    """Resolve and decode a project; returns (project, status payload)."""
    resolution = resolve_aep_file(get_projects_root(), aep_file_path)
    if not resolution.get("supported"):
        return None, {
            "ok": False,
            "error": resolution.get("reason", "aep_file_unavailable"),
            "message": "No decodable .aep file could be resolved",
            "warnings": resolution.get("warnings", []),
        }

    path = resolution["aep_file_path"]
    cache_key = (path, float(resolution.get("aep_file_mtime_unix") or 0.0))
    project = _project_cache.get(cache_key)
    if project is None:
        try:
            project = Project.open(path)
        except AEPDecodeError as e:
            logger.error(f"Error decoding {path}: {e.message}")
            return None, {
                "ok": False,
                "error": e.code,
                "message": e.message,
                "aep_file_path": path,
                "warnings": resolution.get("warnings", []),
            }
        except OSError as e:
            logger.error(f"Error reading {path}: {str(e)}")
            return None, {
                "ok": False,
                "error": "aep_file_read_failed",
                "message": str(e),
                "aep_file_path": path,
                "warnings": resolution.get("warnings", []),
            }
        # One decoded tree per path; older saves are dropped.
        for stale_key in [key for key in _project_cache if key[0] == path]:
            del _project_cache[stale_key]
        _project_cache[cache_key] = project

    return project, {
        "ok": True,
        "aep_file_path": path,
        "aep_file_mtime_utc": resolution.get("aep_file_mtime_utc"),
        "warnings": resolution.get("warnings", []),
    }


# Core Tool endpoints

@mcp.tool()
def get_project_summary(ctx: Context, aep_file_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Summarize an After Effects project: colour depth, expression engine and item counts.

    Parameters:
    - aep_file_path: Optional explicit .aep path; otherwise the newest .aep under the projects root is used
    """
    project, status = _load_project(aep_file_path)
    if project is None:
        return status
    summary = project_to_dict(project)
    summary.update(status)
    return summary


@mcp.tool()
def list_project_items(
    ctx: Context,
    aep_file_path: Optional[str] = None,
    item_type: Optional[str] = None
) -> Dict[str, Any]:
    """
    List every item in the project tree in depth-first order.

    Parameters:
    - aep_file_path: Optional explicit .aep path
    - item_type: Optional filter, one of "Folder", "Composition", "Footage" (case-insensitive)
    """
    wanted = None
    if item_type:
        lookup = {member.value.lower(): member for member in ItemType}
        wanted = lookup.get(str(item_type).strip().lower())
        if wanted is None:
            return {
                "ok": False,
                "error": "invalid_item_type",
                "message": f"item_type must be one of {', '.join(member.value for member in ItemType)}",
            }

    project, status = _load_project(aep_file_path)
    if project is None:
        return status

    items = [
        item_to_dict(item)
        for item in project.iter_items()
        if wanted is None or item.item_type == wanted
    ]
    status.update({"item_count": len(items), "items": items})
    return status


@mcp.tool()
def get_project_item(ctx: Context, item_id: int, aep_file_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Get one project item by its numeric id, including nested folder contents.

    Parameters:
    - item_id: The item id stored in the project (the root folder is 0)
    - aep_file_path: Optional explicit .aep path
    """
    project, status = _load_project(aep_file_path)
    if project is None:
        return status

    item = project.get_item(item_id)
    if item is None:
        return {
            "ok": False,
            "error": "item_not_found",
            "message": f"No item with id {item_id}",
            "aep_file_path": status.get("aep_file_path"),
        }
    status["item"] = item_to_dict(item, include_contents=True)
    return status


@mcp.tool()
def list_compositions(ctx: Context, aep_file_path: Optional[str] = None) -> Dict[str, Any]:
    """
    List compositions with the frame range and size a render launcher needs.

    Parameters:
    - aep_file_path: Optional explicit .aep path
    """
    project, status = _load_project(aep_file_path)
    if project is None:
        return status

    compositions = []
    for item in project.compositions():
        kind = item.kind
        compositions.append({
            "id": item.id,
            "name": item.name,
            "width": kind.width,
            "height": kind.height,
            "framerate": kind.framerate,
            "start_frame": kind.start_frame,
            "end_frame": kind.end_frame,
            "duration_seconds": kind.duration_seconds,
        })
    status.update({"composition_count": len(compositions), "compositions": compositions})
    return status


# Main execution
def main():
    """Run the MCP server"""
    mcp.run()

if __name__ == "__main__":
    main()
