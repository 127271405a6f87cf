"""
Template and parameters file loading.

Pre-flight step before a deployment is started. Templates must already be
compiled to ARM JSON. Parameters may be a full deployment parameters file
({"$schema": ..., "parameters": {...}}) or a bare {"name": {"value": ...}}
mapping.
"""

import json
from pathlib import Path
from typing import Any

from deploywatch_core.exceptions import PreflightError


def _load_json_object(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise PreflightError(str(path), "file not found")
    except OSError as e:
        raise PreflightError(str(path), str(e)) from e
    except json.JSONDecodeError as e:
        raise PreflightError(str(path), f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise PreflightError(str(path), "expected a JSON object")
    return data


def load_template(path: Path) -> dict[str, Any]:
    """
    Load a compiled ARM template.

    Raises:
        PreflightError: If the file is missing, unreadable, not JSON, or
            lacks a "resources" section.
    """
    template = _load_json_object(path)
    if "resources" not in template:
        raise PreflightError(str(path), "not an ARM template (no 'resources')")
    return template


def load_parameters(path: Path | None) -> dict[str, Any]:
    """
    Load deployment parameter values.

    Args:
        path: Parameters file, or None for no parameters

    Returns:
        Mapping of parameter name to {"value": ...} (or reference) object

    Raises:
        PreflightError: If the file is missing, unreadable, or malformed.
    """
    if path is None:
        return {}
    data = _load_json_object(path)
    parameters = data["parameters"] if "parameters" in data else data
    if not isinstance(parameters, dict):
        raise PreflightError(str(path), "'parameters' must be a JSON object")
    return parameters
