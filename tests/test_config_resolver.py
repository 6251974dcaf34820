import pytest

from facility_hub.config_registry import ConfigRegistry
from facility_hub.config_resolver import ConfigResolver, deep_get, is_missing, merge_configurations
from facility_hub.errors import ConfigurationError
from facility_hub.facility_configs import BUILTIN_FACILITY_CONFIGS


def _custom(*names):
    return [{"name": n, "type": "text", "label": n.title()} for n in names]


def _resolver(**entries) -> ConfigResolver:
    table = {"default": BUILTIN_FACILITY_CONFIGS["default"]}
    table.update(entries)
    return ConfigResolver(ConfigRegistry(builtin=table))


@pytest.fixture
def builtin() -> ConfigResolver:
    return ConfigResolver(ConfigRegistry())


# ---------------------------------------------------------------------------
# resolve / merge
# ---------------------------------------------------------------------------

def test_every_builtin_child_keeps_all_default_keys(builtin) -> None:
    default = BUILTIN_FACILITY_CONFIGS["default"]
    for fid, cfg in BUILTIN_FACILITY_CONFIGS.items():
        if cfg.get("extends") != "default":
            continue
        resolved = builtin.resolve(fid)
        for section in ("productView", "validation", "inventory"):
            missing = set(default[section]) - set(resolved[section])
            assert not missing, f"{fid}.{section} lost {missing}"
        assert resolved["fields"]["required"]
        assert isinstance(resolved["fields"]["optional"], list)
        assert isinstance(resolved["fields"]["custom"], list)


def test_child_overrides_shallow_sections_key_by_key(builtin) -> None:
    resolved = builtin.resolve("warehouse_001")
    assert resolved["validation"]["batchIdFormat"] == "sku_sequence"
    assert resolved["validation"]["allowDuplicateNames"] is True
    assert resolved["productView"]["allowBatchMerging"] is True
    assert resolved["productView"]["primaryKey"] == "name_sku"
    assert resolved["inventory"] == BUILTIN_FACILITY_CONFIGS["default"]["inventory"]


def test_custom_fields_concatenate_parent_first() -> None:
    resolver = _resolver(
        parent={"id": "parent", "extends": "default", "fields": {"custom": _custom("a", "b", "c")}},
        child={"id": "child", "extends": "parent", "fields": {"custom": _custom("d", "e")}},
    )
    custom = resolver.resolve("child")["fields"]["custom"]
    assert [f["name"] for f in custom] == ["a", "b", "c", "d", "e"]


def test_required_list_is_replaced_only_when_present() -> None:
    resolver = _resolver(
        strict={"id": "strict", "extends": "default", "fields": {"required": ["name", "lot"]}},
        inherits={"id": "inherits", "extends": "strict", "fields": {"optional": ["notes"]}},
    )
    assert resolver.resolve("strict")["fields"]["required"] == ["name", "lot"]
    inherited = resolver.resolve("inherits")["fields"]
    assert inherited["required"] == ["name", "lot"]
    assert inherited["optional"] == ["notes"]


def test_features_merge_by_name() -> None:
    resolver = _resolver(
        base={"id": "base", "extends": "default",
              "features": {"audit-trails": {"enabled": True}, "cost-analysis": {"enabled": True}}},
        leaf={"id": "leaf", "extends": "base",
              "features": {"cost-analysis": {"enabled": False}, "smart-notifications": {"enabled": True}}},
    )
    features = resolver.resolve("leaf")["features"]
    assert features == {
        "audit-trails": {"enabled": True},
        "cost-analysis": {"enabled": False},
        "smart-notifications": {"enabled": True},
    }
    assert resolver.is_feature_enabled("leaf", "smart-notifications") is True
    assert resolver.is_feature_enabled("leaf", "cost-analysis") is False
    assert resolver.is_feature_enabled("leaf", "unknown-feature") is False


def test_merge_does_not_mutate_inputs() -> None:
    base = merge_configurations({}, BUILTIN_FACILITY_CONFIGS["default"])
    child = {"fields": {"custom": _custom("x")}, "validation": {"skuFormat": "^X$"}}
    merge_configurations(base, child)
    assert base["fields"]["custom"] == []
    assert base["validation"]["skuFormat"] is None


def test_unknown_facility_falls_back_to_default(builtin) -> None:
    resolved = builtin.resolve("does-not-exist")
    assert resolved["id"] == "default"
    assert resolved["fields"]["required"] == BUILTIN_FACILITY_CONFIGS["default"]["fields"]["required"]


def test_cycle_is_a_configuration_error() -> None:
    resolver = _resolver(
        a={"id": "a", "extends": "b"},
        b={"id": "b", "extends": "a"},
    )
    with pytest.raises(ConfigurationError, match="Cyclic"):
        resolver.resolve("a")


def test_self_reference_is_a_cycle() -> None:
    resolver = _resolver(loop={"id": "loop", "extends": "loop"})
    with pytest.raises(ConfigurationError):
        resolver.resolve("loop")


def test_dangling_extends_is_a_configuration_error() -> None:
    resolver = _resolver(orphan={"id": "orphan", "extends": "nowhere"})
    with pytest.raises(ConfigurationError, match="nowhere"):
        resolver.resolve("orphan")


def test_missing_default_is_a_configuration_error() -> None:
    resolver = ConfigResolver(ConfigRegistry(builtin={"only": {"id": "only"}}))
    with pytest.raises(ConfigurationError):
        resolver.resolve("something-else")


def test_resolved_configuration_is_a_copy(builtin) -> None:
    first = builtin.resolve("retail_001")
    first["validation"]["skuFormat"] = "changed"
    first["fields"]["custom"].clear()
    second = builtin.resolve("retail_001")
    assert second["validation"]["skuFormat"] == r"^[0-9]{8,12}$"
    assert len(second["fields"]["custom"]) == 2


def test_cache_follows_registry_reload(tmp_path) -> None:
    overlay = tmp_path / "facilities.json"
    registry = ConfigRegistry(overlay_path=overlay)
    resolver = ConfigResolver(registry)
    assert resolver.get_primary_key_format("shop_9") == "name_sku"

    overlay.write_text(
        '{"shop_9": {"extends": "default", "productView": {"primaryKey": "sku_only"}}}',
        encoding="utf-8",
    )
    assert resolver.get_primary_key_format("shop_9") == "name_sku"
    registry.reload()
    assert resolver.get_primary_key_format("shop_9") == "sku_only"


# ---------------------------------------------------------------------------
# composite keys
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("strategy,expected", [
    ("name_sku", "Widget_AB-001"),
    ("sku_only", "AB-001"),
    ("name_only", "Widget"),
    ("name_category_sku", "Widget_Tools_AB-001"),
    ("something_new", "Widget_AB-001"),
])
def test_composite_key_formulas(strategy, expected) -> None:
    resolver = _resolver(f={"id": "f", "extends": "default", "productView": {"primaryKey": strategy}})
    product = {"name": "Widget", "sku": "AB-001", "category": "Tools"}
    assert resolver.generate_composite_key(product, "f") == expected


def test_composite_key_reads_objects_too(builtin) -> None:
    class Unit:
        name = "Widget"
        sku = "AB-001"

    assert builtin.generate_composite_key(Unit(), "default") == "Widget_AB-001"


# ---------------------------------------------------------------------------
# validation
# ---------------------------------------------------------------------------

def _product(**overrides):
    product = {"name": "Widget", "sku": "AB-001", "category": "Tools", "quantity": 5, "pricePerUnit": 2.5}
    product.update(overrides)
    return product


def test_zero_quantity_is_present(builtin) -> None:
    result = builtin.validate(_product(quantity=0, pricePerUnit=0), "default")
    assert result.is_valid
    assert result.errors == []


def test_missing_and_empty_fields_are_all_reported(builtin) -> None:
    result = builtin.validate(_product(name="", category=None, pricePerUnit=None), "default")
    assert not result.is_valid
    assert result.errors == [
        "name is required",
        "category is required",
        "pricePerUnit is required",
    ]


def test_nested_required_paths(builtin) -> None:
    product = _product(sku="AB-123-456", location={"warehouse": "W1", "zone": ""})
    result = builtin.validate(product, "warehouse_001")
    assert result.errors == ["location.zone is required"]

    product["location"]["zone"] = "Z3"
    assert builtin.validate(product, "warehouse_001").is_valid


def test_location_required_when_configured(builtin) -> None:
    result = builtin.validate(_product(sku="AB-123-456"), "warehouse_001")
    assert "location is required" in result.errors
    assert "location.warehouse is required" in result.errors


def test_sku_format_is_checked_per_facility(builtin) -> None:
    result = builtin.validate(_product(sku="ABC"), "retail_001")
    assert result.errors == ["SKU format is invalid for facility retail_001"]
    assert builtin.validate(_product(sku="012345678905"), "retail_001").is_valid


def test_sku_format_skipped_when_sku_missing(builtin) -> None:
    result = builtin.validate(_product(sku=None), "retail_001")
    assert result.errors == ["sku is required"]


def test_financial_validation(builtin) -> None:
    base = _product(sku="FIN-ABCD1234-0001", location={"vault": "A"})
    missing = builtin.validate(base, "enterprise-financial-hub")
    assert missing.errors == ["acquisitionCost is required"]

    negative = dict(base, acquisitionCost=100, customFields={"depreciationRate": -5})
    assert builtin.validate(negative, "enterprise-financial-hub").errors == ["depreciationRate cannot be negative"]

    not_a_number = dict(base, acquisitionCost="lots")
    assert builtin.validate(not_a_number, "enterprise-financial-hub").errors == ["acquisitionCost must be a number"]

    ok = dict(base, acquisitionCost=0)
    assert builtin.validate(ok, "enterprise-financial-hub").is_valid


def test_invalid_sku_pattern_is_a_configuration_error() -> None:
    resolver = _resolver(broken={"id": "broken", "extends": "default", "validation": {"skuFormat": "(["}})
    with pytest.raises(ConfigurationError):
        resolver.validate(_product(), "broken")


def test_deep_get_and_missing_helpers() -> None:
    data = {"a": {"b": {"c": 0}}, "flag": False}
    assert deep_get(data, "a.b.c") == 0
    assert deep_get(data, ["a", "b", "c"]) == 0
    assert deep_get(data, "a.x.c", "dflt") == "dflt"
    assert deep_get(data, "a.b.c.d") is None
    assert not is_missing(0)
    assert not is_missing(False)
    assert is_missing("")
    assert is_missing(None)
