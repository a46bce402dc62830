"""Integration version, as declared in manifest.json."""

from __future__ import annotations

from pathlib import Path

from homeassistant.exceptions import HomeAssistantError
from homeassistant.util.json import load_json_object

_MANIFEST = Path(__file__).with_name("manifest.json")


def read_manifest_version(path: Path = _MANIFEST) -> str:
    try:
        manifest = load_json_object(path)
    except HomeAssistantError:
        return "0.0.0"
    return str(manifest.get("version") or "").strip() or "0.0.0"


INTEGRATION_VERSION = read_manifest_version()
