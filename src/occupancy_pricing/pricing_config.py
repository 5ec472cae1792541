# This file defines runtime configuration for the occupancy pricing engine.
# The CLI, the API, and tests all read one policy surface so generated rules stay reproducible.
# The loader merges YAML defaults with OCCUPANCY_PRICING_* environment overrides and validates them.

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Any

import yaml

from src.occupancy_pricing.person_categories import (
    DEFAULT_PERSON_CATEGORIES,
    PersonCategory,
    validate_person_categories,
)

DEFAULT_CONFIG_PATH = "configs/occupancy_pricing.yaml"
_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def _load_yaml(path: str) -> dict[str, Any]:
    with open(path, encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config at {path} must be a mapping, got: {type(loaded).__name__}")
    return dict(loaded)


def _env_str(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value


def _env_int(name: str, default: int | None = None) -> int | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean value (true/false), got: {value!r}")


def _env_bool(name: str, default: bool | None = None) -> bool | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return _parse_bool(name, value)


def _yaml_bool(section: dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key)
    if value is None:
        return default
    return _parse_bool(key, value)


def _as_categories(value: Any) -> tuple[PersonCategory, ...]:
    if value is None:
        return DEFAULT_PERSON_CATEGORIES
    if not isinstance(value, list):
        raise ValueError("default_person_categories must be a list of category mappings")
    return tuple(PersonCategory.from_dict(item) for item in value)


@dataclass(frozen=True)
class PricingEngineConfig:
    policy_version: str
    default_person_categories: tuple[PersonCategory, ...]
    include_permutations_default: bool
    infants_count_toward_occupancy: bool
    allow_unaccompanied_minors: bool
    variant_count_warning_threshold: int
    price_decimals: int
    default_validity_days: int
    price_list_table_name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "policy_version": self.policy_version,
            "default_person_categories": [category.to_dict() for category in self.default_person_categories],
            "include_permutations_default": self.include_permutations_default,
            "infants_count_toward_occupancy": self.infants_count_toward_occupancy,
            "allow_unaccompanied_minors": self.allow_unaccompanied_minors,
            "variant_count_warning_threshold": self.variant_count_warning_threshold,
            "price_decimals": self.price_decimals,
            "default_validity_days": self.default_validity_days,
            "price_list_table_name": self.price_list_table_name,
        }


def default_engine_config() -> PricingEngineConfig:
    return PricingEngineConfig(
        policy_version="op1",
        default_person_categories=DEFAULT_PERSON_CATEGORIES,
        include_permutations_default=False,
        infants_count_toward_occupancy=True,
        allow_unaccompanied_minors=False,
        variant_count_warning_threshold=250,
        price_decimals=2,
        default_validity_days=365,
        price_list_table_name="price_list_document",
    )


def load_engine_config(*, config_path: str = DEFAULT_CONFIG_PATH) -> PricingEngineConfig:
    cfg = _load_yaml(config_path)
    occupancy_cfg = dict(cfg.get("occupancy", {}))
    defaults = default_engine_config()

    policy_version = str(_env_str("OCCUPANCY_PRICING_POLICY_VERSION", str(cfg.get("policy_version", defaults.policy_version))))
    default_person_categories = _as_categories(cfg.get("default_person_categories"))

    include_permutations_default = bool(
        _env_bool(
            "OCCUPANCY_PRICING_INCLUDE_PERMUTATIONS",
            _yaml_bool(occupancy_cfg, "include_permutations_default", defaults.include_permutations_default),
        )
    )
    infants_count_toward_occupancy = bool(
        _env_bool(
            "OCCUPANCY_PRICING_INFANTS_COUNT_TOWARD_OCCUPANCY",
            _yaml_bool(occupancy_cfg, "infants_count_toward_occupancy", defaults.infants_count_toward_occupancy),
        )
    )
    allow_unaccompanied_minors = bool(
        _env_bool(
            "OCCUPANCY_PRICING_ALLOW_UNACCOMPANIED_MINORS",
            _yaml_bool(occupancy_cfg, "allow_unaccompanied_minors", defaults.allow_unaccompanied_minors),
        )
    )
    variant_count_warning_threshold = int(
        _env_int(
            "OCCUPANCY_PRICING_VARIANT_WARNING_THRESHOLD",
            int(occupancy_cfg.get("variant_count_warning_threshold", defaults.variant_count_warning_threshold)),
        )
    )
    price_decimals = int(
        _env_int("OCCUPANCY_PRICING_PRICE_DECIMALS", int(cfg.get("price_decimals", defaults.price_decimals)))
    )
    default_validity_days = int(
        _env_int("OCCUPANCY_PRICING_VALIDITY_DAYS", int(cfg.get("default_validity_days", defaults.default_validity_days)))
    )
    price_list_table_name = str(
        _env_str("OCCUPANCY_PRICING_TABLE_NAME", str(cfg.get("price_list_table_name", defaults.price_list_table_name)))
    )

    category_errors = validate_person_categories(default_person_categories)
    if category_errors:
        raise ValueError(f"default_person_categories is invalid: {'; '.join(category_errors)}")
    if variant_count_warning_threshold <= 0:
        raise ValueError("variant_count_warning_threshold must be > 0")
    if not (0 <= price_decimals <= 6):
        raise ValueError("price_decimals must be in [0, 6]")
    if default_validity_days <= 0:
        raise ValueError("default_validity_days must be > 0")
    if not _IDENTIFIER_RE.match(price_list_table_name):
        raise ValueError(f"Unsafe SQL identifier: {price_list_table_name!r}")

    return PricingEngineConfig(
        policy_version=policy_version,
        default_person_categories=default_person_categories,
        include_permutations_default=include_permutations_default,
        infants_count_toward_occupancy=infants_count_toward_occupancy,
        allow_unaccompanied_minors=allow_unaccompanied_minors,
        variant_count_warning_threshold=variant_count_warning_threshold,
        price_decimals=price_decimals,
        default_validity_days=default_validity_days,
        price_list_table_name=price_list_table_name,
    )
