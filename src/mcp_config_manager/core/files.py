"""
Async JSON file helpers.

Blocking file calls are pushed to a worker thread so request handlers do
not stall the event loop. A missing file is reported as ``None``; invalid
JSON raises MalformedConfigError and a failed write raises WriteError.
"""

import asyncio
import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TypeVar, Union

from mcp_config_manager.core.exceptions import (
    ConfigManagerError, MalformedConfigError, WriteError
)

T = TypeVar("T")

PathLike = Union[str, Path]


async def run_sync(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop."""
    return await asyncio.to_thread(func, *args, **kwargs)


def dumps(data: Any) -> str:
    """Serialize the way every managed file is written: 2-space indent, UTF-8."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def parse_json_object(text: str, path: PathLike) -> Dict[str, Any]:
    """Parse file contents, insisting on a top-level JSON object."""
    try:
        data = json.loads(text) if text.strip() else {}
    except json.JSONDecodeError as e:
        raise MalformedConfigError(path, str(e)) from e
    if not isinstance(data, dict):
        raise MalformedConfigError(path, "top-level value is not an object")
    return data


def _read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except UnicodeDecodeError as e:
        raise MalformedConfigError(path, "not UTF-8 text") from e
    except OSError as e:
        raise ConfigManagerError(
            f"Failed to read {path}: {e}",
            error_code="READ_FAILED",
            details={"path": str(path)},
        ) from e


def _write_text(path: Path, text: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise WriteError(path, str(e)) from e


def _delete(path: Path) -> bool:
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        raise WriteError(path, str(e)) from e


def _metadata(path: Path) -> Dict[str, Any]:
    try:
        stat = path.stat()
    except FileNotFoundError:
        return {"exists": False, "mtime": None}
    mtime = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
    return {"exists": True, "mtime": mtime.isoformat()}


async def read_text(path: PathLike) -> Optional[str]:
    return await run_sync(_read_text, Path(path))


async def read_json(path: PathLike) -> Optional[Dict[str, Any]]:
    """Read a JSON object file; ``None`` if it does not exist."""
    text = await read_text(path)
    if text is None:
        return None
    return parse_json_object(text, path)


async def write_text(path: PathLike, text: str) -> None:
    """Replace a file's contents atomically (temp file + rename)."""
    await run_sync(_write_text, Path(path), text)


async def write_json(path: PathLike, data: Any) -> None:
    await write_text(path, dumps(data))


async def delete_file(path: PathLike) -> bool:
    """Delete a file; a file that is already gone is not an error."""
    return await run_sync(_delete, Path(path))


async def file_metadata(path: Optional[PathLike]) -> Dict[str, Any]:
    if not path:
        return {"exists": False, "mtime": None}
    return await run_sync(_metadata, Path(path).expanduser())
