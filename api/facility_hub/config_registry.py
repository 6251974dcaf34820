from __future__ import annotations
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional
import json, logging, threading

from facility_hub.errors import ConfigurationError
from facility_hub.facility_configs import BUILTIN_FACILITY_CONFIGS, DEFAULT_FACILITY

logger = logging.getLogger(__name__)


def _read_json(p: Path) -> Dict[str, Any]:
    if not p.exists():
        return {}
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Cannot read facility configuration file {p}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Facility configuration file {p} must contain a JSON object")
    return data


class ConfigRegistry:
    """
    Process-wide table of raw facility configurations.

    Built-in entries are overlaid by the JSON file at `overlay_path`
    (same id replaces, new id adds). Lookups never merge; see
    config_resolver for that. reload() is the only runtime mutation.
    """

    def __init__(
        self,
        builtin: Optional[Dict[str, Dict[str, Any]]] = None,
        overlay_path: Optional[Path] = None,
    ):
        self._builtin = deepcopy(BUILTIN_FACILITY_CONFIGS if builtin is None else builtin)
        self.overlay_path = Path(overlay_path) if overlay_path is not None else None
        self._lock = threading.Lock()
        self._entries: Dict[str, Dict[str, Any]] = {}
        self.version = 0
        self.reload()

    def reload(self) -> int:
        """Rebuild the table from built-ins plus overlay file. Returns the new version."""
        entries = deepcopy(self._builtin)
        if self.overlay_path is not None:
            for fid, cfg in _read_json(self.overlay_path).items():
                if not isinstance(cfg, dict):
                    raise ConfigurationError(f"Configuration for facility {fid} must be an object")
                cfg = dict(cfg)
                cfg.setdefault("id", fid)
                entries[fid] = cfg
        with self._lock:
            self._entries = entries
            self.version += 1
        logger.info("Facility configurations loaded: %d entries (version %d)", len(entries), self.version)
        return self.version

    def has(self, facility_id: str) -> bool:
        return facility_id in self._entries

    def ids(self) -> List[str]:
        return list(self._entries)

    def entries(self) -> List[Dict[str, Any]]:
        return [{"id": fid, "name": cfg.get("name", fid), "extends": cfg.get("extends")}
                for fid, cfg in self._entries.items()]

    def get(self, facility_id: Optional[str]) -> Dict[str, Any]:
        """Raw entry for facility_id, or the default entry for unknown ids."""
        entries = self._entries
        cfg = entries.get(facility_id) if facility_id else None
        if cfg is None:
            cfg = entries.get(DEFAULT_FACILITY)
            if cfg is None:
                raise ConfigurationError(
                    f"Unknown facility {facility_id!r} and no {DEFAULT_FACILITY!r} configuration to fall back to"
                )
        return deepcopy(cfg)


def _default_registry() -> ConfigRegistry:
    from facility_hub.settings import settings
    return ConfigRegistry(overlay_path=settings.facility_config_path)


registry = _default_registry()
