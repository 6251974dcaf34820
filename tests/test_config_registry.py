import json

import pytest

from facility_hub.config_registry import ConfigRegistry
from facility_hub.errors import ConfigurationError
from facility_hub.facility_configs import BUILTIN_FACILITY_CONFIGS


def test_builtin_entries_are_available() -> None:
    registry = ConfigRegistry()
    for fid in ("default", "warehouse_001", "retail_001", "manufacturing_001",
                "enterprise-financial-hub", "enterprise-cold-storage"):
        assert registry.has(fid)
    assert "extends" not in registry.get("default")
    assert registry.get("retail_001")["extends"] == "default"


def test_get_returns_raw_unmerged_entry() -> None:
    raw = ConfigRegistry().get("retail_001")
    assert "inventory" not in raw
    assert raw["fields"].get("required") is None


def test_get_returns_a_copy() -> None:
    registry = ConfigRegistry()
    registry.get("default")["validation"]["skuFormat"] = "^mutated$"
    assert registry.get("default")["validation"]["skuFormat"] is None
    assert BUILTIN_FACILITY_CONFIGS["default"]["validation"]["skuFormat"] is None


def test_unknown_id_falls_back_to_default() -> None:
    registry = ConfigRegistry()
    assert registry.get("nope")["id"] == "default"
    assert registry.get(None)["id"] == "default"


def test_overlay_replaces_and_adds(tmp_path) -> None:
    overlay = tmp_path / "facilities.json"
    overlay.write_text(json.dumps({
        "retail_001": {"extends": "default", "name": "Renamed Store"},
        "kiosk_7": {"extends": "retail_001", "name": "Airport Kiosk"},
    }), encoding="utf-8")

    registry = ConfigRegistry(overlay_path=overlay)
    assert registry.get("retail_001")["name"] == "Renamed Store"
    assert registry.get("kiosk_7")["id"] == "kiosk_7"
    assert {"id": "kiosk_7", "name": "Airport Kiosk", "extends": "retail_001"} in registry.entries()


def test_reload_bumps_version_and_picks_up_changes(tmp_path) -> None:
    overlay = tmp_path / "facilities.json"
    registry = ConfigRegistry(overlay_path=overlay)
    first = registry.version
    assert not registry.has("late")

    overlay.write_text(json.dumps({"late": {"extends": "default"}}), encoding="utf-8")
    assert not registry.has("late")
    assert registry.reload() == first + 1
    assert registry.has("late")


def test_broken_overlay_is_a_configuration_error(tmp_path) -> None:
    overlay = tmp_path / "facilities.json"
    overlay.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        ConfigRegistry(overlay_path=overlay)

    overlay.write_text(json.dumps(["a", "list"]), encoding="utf-8")
    with pytest.raises(ConfigurationError):
        ConfigRegistry(overlay_path=overlay)
