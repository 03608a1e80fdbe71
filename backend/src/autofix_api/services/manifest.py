import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Tuple
from ..logger import get_logger

logger = get_logger(__name__)

DEPENDENCY_SECTIONS = ("dependencies", "devDependencies")


def read_manifest(repo_path: str, filename: str) -> Dict[str, Any]:
    """
    Reads the dependency manifest at the working-copy root.

    Args:
        repo_path (str): The working copy root.
        filename (str): Manifest file name (e.g. package.json).

    Returns:
        Dict[str, Any]: The parsed manifest, or an empty dict when it is missing or unparsable.
    """
    manifest_path = Path(repo_path) / filename
    if not manifest_path.is_file():
        return {}
    try:
        with open(manifest_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Error reading {manifest_path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring {manifest_path}: top level is not an object")
        return {}
    return data


def bump_dependency(manifest: Dict[str, Any], package_name: str, fixed_version: str) -> Tuple[Dict[str, Any], List[str]]:
    """
    Sets the version constraint of an already-declared package to ^fixed_version.

    Returns:
        Tuple[Dict[str, Any], List[str]]: A copy of the manifest and the sections that were updated.
    """
    updated = copy.deepcopy(manifest)
    touched = []
    for section in DEPENDENCY_SECTIONS:
        deps = updated.get(section)
        if isinstance(deps, dict) and package_name in deps:
            deps[package_name] = f"^{fixed_version}"
            touched.append(section)
    return updated, touched


def render_manifest(manifest: Dict[str, Any]) -> str:
    """Pretty-prints the manifest the way npm writes it (2-space indent, trailing newline)."""
    return json.dumps(manifest, indent=2, ensure_ascii=False) + "\n"
