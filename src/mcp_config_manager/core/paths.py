"""Default locations of the built-in clients' config files."""

import os
import sys
from pathlib import Path
from typing import Dict, Optional

CLAUDE = "claude"
CURSOR = "cursor"

BUILT_IN_NAMES = {
    CLAUDE: "Claude",
    CURSOR: "Cursor",
}


def home_dir() -> Path:
    home = os.environ.get("HOME") or os.environ.get("USERPROFILE")
    return Path(home) if home else Path.home()


def default_config_paths(platform: Optional[str] = None) -> Dict[str, str]:
    """Map built-in client id -> default config path for this OS."""
    platform = platform or sys.platform
    home = home_dir()

    if platform == "darwin":
        claude = home / "Library" / "Application Support" / "Claude"
    elif platform.startswith("win"):
        claude = home / "AppData" / "Roaming" / "Claude"
    else:
        claude = home / ".config" / "Claude"

    return {
        CLAUDE: str(claude / "claude_desktop_config.json"),
        CURSOR: str(home / ".cursor" / "mcp.json"),
    }
