from __future__ import annotations

"""Helpers for locating the external optimizer executables.

The service never searches ``$PATH`` on its own: a bare executable name
resolves inside the tools directory, an absolute path is taken as-is. These
checks only report; a missing tool surfaces as ``ToolNotFoundError`` when
it is actually invoked.
"""

import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .config import EngineConfig
from .error_handling import ToolNotFoundError


@dataclass(frozen=True, slots=True)
class ToolInfo:
    """Metadata for an external binary."""

    name: str
    path: Path
    available: bool
    version: str | None = None

    def require(self) -> None:
        """Raise *ToolNotFoundError* if the tool isn't available."""
        if not self.available:
            raise ToolNotFoundError(self.name, self.path)


# ---------------------------------------------------------------------------
# Low-level helpers
# ---------------------------------------------------------------------------

TOOL_KEYS: tuple[str, ...] = (
    "advpng",
    "pngout",
    "optipng",
    "gifsicle",
    "jpegtran",
    "jfifremove",
    "cwebp",
    "gif2webp",
)

_VERSION_COMMANDS: dict[str, tuple[list[str], str]] = {
    "advpng": (["--version"], r"advancecomp v?(\S+)"),
    "optipng": (["-version"], r"OptiPNG version (\S+)"),
    "gifsicle": (["--version"], r"LCDF Gifsicle (\S+)"),
    "jpegtran": (["-version"], r"version (\S+)"),
    "cwebp": (["-version"], r"(\d+\.\d+\.\d+)"),
    "gif2webp": (["-version"], r"(\d+\.\d+\.\d+)"),
}


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def _extract_version(output: str, pattern: str) -> str | None:
    match = re.search(pattern, output)
    if match:
        return match.group(1)
    return None


def _run_version_cmd(cmd: list[str], regex: str) -> str | None:
    try:
        # Several of these tools exit non-zero for their version flag
        completed = subprocess.run(cmd, capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.SubprocessError):
        return None

    return _extract_version(completed.stdout, regex) or _extract_version(
        completed.stderr, regex
    )


def resolve_tool_path(
    tool_key: str, tools_dir: Path, engine_config: EngineConfig | None = None
) -> Path:
    """Return where *tool_key* is expected to live, without checking it exists."""
    if tool_key not in TOOL_KEYS:
        raise ValueError(f"Unknown tool: {tool_key}")

    if engine_config is None:
        engine_config = EngineConfig()
    configured = Path(engine_config.executable_for(tool_key))
    if configured.is_absolute():
        return configured
    return Path(tools_dir) / configured


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def discover_tool(
    tool_key: str,
    tools_dir: Path,
    engine_config: EngineConfig | None = None,
    *,
    probe_version: bool = True,
) -> ToolInfo:
    """Return *ToolInfo* for *tool_key* inside *tools_dir*.

    Args:
        tool_key: Tool identifier (advpng, pngout, optipng, gifsicle, ...)
        tools_dir: Directory holding the executables
        engine_config: EngineConfig instance; None builds one from the current environment
        probe_version: Run the tool's version flag when it is available

    Returns:
        ToolInfo with availability and version information
    """
    path = resolve_tool_path(tool_key, tools_dir, engine_config)
    if not _is_executable(path):
        return ToolInfo(name=tool_key, path=path, available=False)

    version = None
    if probe_version and tool_key in _VERSION_COMMANDS:
        args, regex = _VERSION_COMMANDS[tool_key]
        version = _run_version_cmd([str(path), *args], regex)
    return ToolInfo(name=tool_key, path=path, available=True, version=version)


def get_available_tools(
    tools_dir: Path, engine_config: EngineConfig | None = None
) -> dict[str, ToolInfo]:
    """Get availability status for all supported tools without requiring them."""
    return {key: discover_tool(key, tools_dir, engine_config) for key in TOOL_KEYS}


def verify_required_tools(
    tools_dir: Path, engine_config: EngineConfig | None = None
) -> dict[str, ToolInfo]:
    """Ensure every tool is present – raise ``ToolNotFoundError`` on the first missing one."""
    results: dict[str, ToolInfo] = {}
    for key in TOOL_KEYS:
        info = discover_tool(key, tools_dir, engine_config, probe_version=False)
        info.require()
        results[key] = info
    return results
