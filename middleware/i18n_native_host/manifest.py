"""Native messaging host manifest generation and installation."""

from __future__ import annotations

import json
import os
import re
import shutil
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from i18n_native_host.utils.log_setup import get_logger

logger = get_logger("manifest")

HOST_NAME = "com.i18ntexteditor.host"
HOST_DESCRIPTION = "i18n Text Editor Native Host"
CONSOLE_SCRIPT = "i18n-native-host"

_EXTENSION_ID_RE = re.compile(r"^[a-p]{32}$")

# Per-user NativeMessagingHosts directories, relative to the home directory.
_BROWSER_DIRS: Dict[str, Dict[str, str]] = {
    "linux": {
        "chrome": ".config/google-chrome/NativeMessagingHosts",
        "chromium": ".config/chromium/NativeMessagingHosts",
        "edge": ".config/microsoft-edge/NativeMessagingHosts",
        "brave": ".config/BraveSoftware/Brave-Browser/NativeMessagingHosts",
    },
    "darwin": {
        "chrome": "Library/Application Support/Google/Chrome/NativeMessagingHosts",
        "chromium": "Library/Application Support/Chromium/NativeMessagingHosts",
        "edge": "Library/Application Support/Microsoft Edge/NativeMessagingHosts",
        "brave": "Library/Application Support/BraveSoftware/Brave-Browser/NativeMessagingHosts",
    },
}

_WINDOWS_REGISTRY_KEYS = {
    "chrome": r"HKCU\Software\Google\Chrome\NativeMessagingHosts",
    "chromium": r"HKCU\Software\Chromium\NativeMessagingHosts",
    "edge": r"HKCU\Software\Microsoft\Edge\NativeMessagingHosts",
    "brave": r"HKCU\Software\BraveSoftware\Brave-Browser\NativeMessagingHosts",
}

BROWSERS = sorted(_WINDOWS_REGISTRY_KEYS)


class ManifestError(RuntimeError):
    pass


def _platform_key(platform: Optional[str] = None) -> str:
    raw = platform or sys.platform
    if raw.startswith("linux"):
        return "linux"
    if raw == "darwin":
        return "darwin"
    if raw in {"win32", "cygwin", "msys"}:
        return "win32"
    raise ManifestError(f"Unsupported operating system: {raw}")


def build_manifest(extension_id: str, host_path: str) -> Dict[str, Any]:
    extension_id = extension_id.strip()
    if not _EXTENSION_ID_RE.match(extension_id):
        raise ManifestError(f"Invalid extension id: {extension_id!r}")
    return {
        "name": HOST_NAME,
        "description": HOST_DESCRIPTION,
        "path": host_path,
        "type": "stdio",
        "allowed_origins": [f"chrome-extension://{extension_id}/"],
    }


def default_host_path() -> str:
    found = shutil.which(CONSOLE_SCRIPT)
    if found:
        return str(Path(found).resolve())
    return str(Path(sys.argv[0]).resolve())


def manifest_dir(
    browser: str = "chrome",
    platform: Optional[str] = None,
    home: Optional[Path] = None,
) -> Path:
    key = _platform_key(platform)
    if browser not in _WINDOWS_REGISTRY_KEYS:
        raise ManifestError(f"Unsupported browser: {browser}")
    home = home or Path.home()
    if key == "win32":
        base = os.environ.get("LOCALAPPDATA") or str(home / "AppData" / "Local")
        return Path(base) / "i18n-native-host"
    return home / _BROWSER_DIRS[key][browser]


def install_manifest(
    extension_id: str,
    *,
    browser: str = "chrome",
    host_path: Optional[str] = None,
    platform: Optional[str] = None,
    home: Optional[Path] = None,
) -> Path:
    """Write the host manifest where the browser looks for it.

    Windows browsers find manifests through the registry, so the matching
    ``reg add`` command is logged for the user to run.
    """
    resolved_host = host_path or default_host_path()
    if not Path(resolved_host).exists():
        logger.warning("Host executable does not exist (yet): %s", resolved_host)
    manifest = build_manifest(extension_id, resolved_host)
    target_dir = manifest_dir(browser, platform=platform, home=home)
    target_dir.mkdir(parents=True, exist_ok=True)
    target = target_dir / f"{HOST_NAME}.json"
    target.write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    if _platform_key(platform) != "win32":
        target.chmod(0o644)
    else:
        logger.warning(
            'Register the host: reg add "%s\\%s" /ve /t REG_SZ /d "%s" /f',
            _WINDOWS_REGISTRY_KEYS[browser],
            HOST_NAME,
            target,
        )
    logger.info("Created native host manifest: %s", target)
    return target
