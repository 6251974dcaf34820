# facility_hub/config_resolver.py
"""
Facility configuration resolution.

Turns raw registry entries into merged, ready-to-use configurations
(extends chains, child-over-parent merge) and derives composite keys and
product validation from them.
"""
from __future__ import annotations
from copy import deepcopy
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional
import logging, re, threading

from facility_hub.config_registry import ConfigRegistry, registry as default_registry
from facility_hub.errors import ConfigurationError
from facility_hub.models import ValidationResult

logger = logging.getLogger(__name__)

# sections merged key-by-key, child wins
SHALLOW_SECTIONS = ("productView", "validation", "inventory")
PRIMARY_KEY_FORMATS = ("name_sku", "sku_only", "name_only", "name_category_sku")
FINANCIAL_FIELD_TYPES = ("currency", "percentage")

_MISSING = object()


# ============================================================================
# Safe navigation
# ============================================================================

def deep_get(data: Any, path: str | List[str], default: Any = None) -> Any:
    """Walk a dotted path through mappings (or attributes); default when any hop is absent."""
    parts = path.split(".") if isinstance(path, str) else list(path)
    cur = data
    for key in parts:
        if cur is None:
            return default
        if isinstance(cur, Mapping):
            if key not in cur:
                return default
            cur = cur[key]
        else:
            cur = getattr(cur, key, _MISSING)
            if cur is _MISSING:
                return default
    return cur


def is_missing(value: Any) -> bool:
    """None and "" are missing; 0, 0.0 and False are real values."""
    return value is None or (isinstance(value, str) and value == "")


@lru_cache(maxsize=128)
def _compile(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"Invalid skuFormat pattern {pattern!r}: {e}") from e


# ============================================================================
# Merge
# ============================================================================

def merge_configurations(base: Dict[str, Any], child: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge `child` over an already-resolved `base`.

    productView / validation / inventory: shallow merge, child wins.
    fields.required / fields.optional: child list replaces parent list when present.
    fields.custom: parent entries followed by child entries.
    features: shallow merge by feature name.
    Any other top-level key: child value wins.
    """
    out = {**deepcopy(base), **deepcopy(child)}

    for section in SHALLOW_SECTIONS:
        out[section] = {**(base.get(section) or {}), **(child.get(section) or {})}

    base_fields = base.get("fields") or {}
    child_fields = child.get("fields") or {}
    out["fields"] = {
        "required": list(child_fields["required"] if child_fields.get("required") is not None
                         else base_fields.get("required") or []),
        "optional": list(child_fields["optional"] if child_fields.get("optional") is not None
                         else base_fields.get("optional") or []),
        "custom": [*(base_fields.get("custom") or []), *(child_fields.get("custom") or [])],
    }

    features = {name: dict(flag) for name, flag in (base.get("features") or {}).items()}
    for name, flag in (child.get("features") or {}).items():
        features[name] = {**features.get(name, {}), **(flag or {})}
    out["features"] = features
    return deepcopy(out)


def _normalize_root(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Give a root configuration (no extends) every section the merged shape promises."""
    out = deepcopy(cfg)
    for section in SHALLOW_SECTIONS:
        out[section] = dict(out.get(section) or {})
    fields = out.get("fields") or {}
    out["fields"] = {
        "required": list(fields.get("required") or []),
        "optional": list(fields.get("optional") or []),
        "custom": list(fields.get("custom") or []),
    }
    out["features"] = dict(out.get("features") or {})
    return out


# ============================================================================
# Resolver
# ============================================================================

class ConfigResolver:
    """Resolves facility ids to merged configurations, cached per registry version."""

    def __init__(self, registry: ConfigRegistry):
        self.registry = registry
        self._cache: Dict[str, Dict[str, Any]] = {}
        self._cache_version = -1
        self._lock = threading.Lock()

    def resolve(self, facility_id: Optional[str]) -> Dict[str, Any]:
        key = facility_id or ""
        with self._lock:
            if self._cache_version != self.registry.version:
                self._cache.clear()
                self._cache_version = self.registry.version
            cached = self._cache.get(key)
        if cached is None:
            cached = self._resolve_entry(self.registry.get(facility_id), chain=[])
            with self._lock:
                self._cache[key] = cached
        return deepcopy(cached)

    def _resolve_entry(self, cfg: Dict[str, Any], chain: List[str]) -> Dict[str, Any]:
        own_id = cfg.get("id")
        if own_id in chain:
            cycle = " -> ".join([*chain, own_id])
            raise ConfigurationError(f"Cyclic facility configuration inheritance: {cycle}")
        chain = [*chain, own_id]

        parent_id = cfg.get("extends")
        if not parent_id:
            return _normalize_root(cfg)
        if parent_id in chain:
            cycle = " -> ".join([*chain, parent_id])
            raise ConfigurationError(f"Cyclic facility configuration inheritance: {cycle}")
        if not self.registry.has(parent_id):
            raise ConfigurationError(f"Facility {own_id!r} extends unknown configuration {parent_id!r}")

        parent = self._resolve_entry(self.registry.get(parent_id), chain)
        return merge_configurations(parent, cfg)

    def invalidate(self) -> None:
        with self._lock:
            self._cache.clear()

    # ------------------------------------------------------------------
    # Derived rules
    # ------------------------------------------------------------------

    def get_primary_key_format(self, facility_id: Optional[str]) -> str:
        return self.resolve(facility_id)["productView"].get("primaryKey") or "name_sku"

    def generate_composite_key(self, product: Any, facility_id: Optional[str]) -> str:
        key_format = self.get_primary_key_format(facility_id)
        name = deep_get(product, "name")
        sku = deep_get(product, "sku")
        if key_format == "sku_only":
            return f"{sku}"
        if key_format == "name_only":
            return f"{name}"
        if key_format == "name_category_sku":
            return f"{name}_{deep_get(product, 'category')}_{sku}"
        return f"{name}_{sku}"

    def is_feature_enabled(self, facility_id: Optional[str], feature: str) -> bool:
        flag = self.resolve(facility_id)["features"].get(feature) or {}
        return bool(flag.get("enabled", False))

    def validate(self, product: Any, facility_id: Optional[str]) -> ValidationResult:
        """Check product data against the facility rules; collects every error."""
        config = self.resolve(facility_id)
        rules = config["validation"]
        errors: List[str] = []

        for field in config["fields"]["required"]:
            if is_missing(deep_get(product, field)):
                errors.append(f"{field} is required")

        sku_format = rules.get("skuFormat")
        sku = deep_get(product, "sku")
        if sku_format and not is_missing(sku):
            if not _compile(sku_format).search(str(sku)):
                errors.append(f"SKU format is invalid for facility {facility_id}")

        if rules.get("locationRequired"):
            location = deep_get(product, "location")
            if is_missing(location) or (isinstance(location, (Mapping, list)) and not location):
                if "location is required" not in errors:
                    errors.append("location is required")

        if rules.get("financialValidation"):
            errors.extend(self._financial_errors(product, config, errors))

        return ValidationResult(is_valid=not errors, errors=errors)

    @staticmethod
    def _financial_errors(product: Any, config: Dict[str, Any], already: List[str]) -> List[str]:
        out: List[str] = []
        for field in config["fields"]["custom"]:
            name = field.get("name")
            if not name:
                continue
            value = deep_get(product, name)
            if is_missing(value):
                value = deep_get(product, ["customFields", name])
            if field.get("required") and is_missing(value):
                msg = f"{name} is required"
                if msg not in already:
                    out.append(msg)
                continue
            if field.get("type") in FINANCIAL_FIELD_TYPES and not is_missing(value):
                try:
                    negative = float(value) < 0
                except (TypeError, ValueError):
                    out.append(f"{name} must be a number")
                    continue
                if negative:
                    out.append(f"{name} cannot be negative")
        return out


resolver = ConfigResolver(default_registry)


def resolve(facility_id: Optional[str]) -> Dict[str, Any]:
    return resolver.resolve(facility_id)


def get_primary_key_format(facility_id: Optional[str]) -> str:
    return resolver.get_primary_key_format(facility_id)


def generate_composite_key(product: Any, facility_id: Optional[str]) -> str:
    return resolver.generate_composite_key(product, facility_id)


def validate(product: Any, facility_id: Optional[str]) -> ValidationResult:
    return resolver.validate(product, facility_id)
