"""
Region configuration: region code -> instance domains.

Parsed once at startup from ``REGIONS_JSON`` and shared read-only.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, List, Mapping, Tuple

from regional_timeline.core.errors import (
    ConfigurationError,
    EmptyInstanceListError,
    UnknownRegionError,
)

logger = logging.getLogger(__name__)


def normalize_region_code(region: str) -> str:
    return (region or "").strip().upper()


def parse_instance_list(value: str | Iterable[str]) -> Tuple[str, ...]:
    """
    Split a comma-separated domain list into trimmed, unique, non-empty domains.

    Args:
        value: "a.example, b.example" or an iterable of domain strings

    Returns:
        Domains in first-seen order
    """
    parts = value.split(",") if isinstance(value, str) else list(value)
    seen: set[str] = set()
    domains: List[str] = []

    for part in parts:
        domain = str(part).strip().lower()
        if not domain or domain in seen:
            continue
        seen.add(domain)
        domains.append(domain)

    return tuple(domains)


@dataclass(frozen=True)
class RegionMap:
    """Immutable mapping of upper-cased region code to instance domains."""

    regions: Mapping[str, Tuple[str, ...]]

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object]) -> "RegionMap":
        regions = {}
        for code, value in raw.items():
            if not isinstance(value, (str, list, tuple)):
                raise ConfigurationError(
                    f"Server configuration error (region {code!r} must be a string or list)"
                )
            regions[normalize_region_code(code)] = parse_instance_list(value)
        return cls(regions=MappingProxyType(regions))

    @classmethod
    def from_json(cls, raw_json: str | None) -> "RegionMap":
        """
        Parse the ``REGIONS_JSON`` environment value.

        Raises:
            ConfigurationError: if the value is missing, not JSON, or not an object
        """
        if not raw_json or not raw_json.strip():
            raise ConfigurationError("Server configuration error (regions missing)")

        try:
            data = json.loads(raw_json)
        except json.JSONDecodeError as e:
            raise ConfigurationError("Server configuration error (regions invalid)") from e

        if not isinstance(data, dict):
            raise ConfigurationError("Server configuration error (regions invalid)")

        region_map = cls.from_mapping(data)
        logger.info("Loaded %d region(s): %s", len(region_map.regions), ", ".join(region_map.codes()))
        return region_map

    def codes(self) -> List[str]:
        return list(self.regions.keys())

    def resolve(self, region: str) -> Tuple[str, ...]:
        """
        Look up the instance domains for a region code.

        Raises:
            UnknownRegionError: the code is not configured
            EmptyInstanceListError: the code maps to no usable domains
        """
        code = normalize_region_code(region)
        if code not in self.regions:
            raise UnknownRegionError(code)

        domains = self.regions[code]
        if not domains:
            raise EmptyInstanceListError(code)
        return domains


__all__ = ["RegionMap", "normalize_region_code", "parse_instance_list"]
