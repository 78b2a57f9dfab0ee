"""Port for device and fleet configuration variable lookups."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class ConfigVariable:
    name: str
    value: str


class ConfigVariableSourcePort(Protocol):
    async def lookup_device_vars(self, device_id: str, names: Sequence[str]) -> Sequence[ConfigVariable]:
        """Return the device-level variables among ``names``."""

    async def lookup_fleet_vars(self, device_id: str, names: Sequence[str]) -> Sequence[ConfigVariable]:
        """Return the variables among ``names`` set on the fleet that owns the device."""


__all__ = ["ConfigVariable", "ConfigVariableSourcePort"]
