"""In-memory source of device and fleet configuration variables."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from device_heartbeat.application.ports.config_variables import ConfigVariable, ConfigVariableSourcePort


@dataclass(slots=True)
class InMemoryConfigVariables(ConfigVariableSourcePort):
    device_vars: dict[str, dict[str, str]] = field(default_factory=dict)
    fleet_vars: dict[str, dict[str, str]] = field(default_factory=dict)
    device_fleet: dict[str, str] = field(default_factory=dict)

    def set_device_var(self, device_id: str, name: str, value: str) -> None:
        self.device_vars.setdefault(device_id, {})[name] = value

    def set_fleet_var(self, fleet: str, name: str, value: str) -> None:
        self.fleet_vars.setdefault(fleet, {})[name] = value

    def assign(self, device_id: str, fleet: str) -> None:
        self.device_fleet[device_id] = fleet

    async def lookup_device_vars(self, device_id: str, names: Sequence[str]) -> Sequence[ConfigVariable]:
        return self._select(self.device_vars.get(device_id, {}), names)

    async def lookup_fleet_vars(self, device_id: str, names: Sequence[str]) -> Sequence[ConfigVariable]:
        fleet = self.device_fleet.get(device_id)
        if fleet is None:
            return ()
        return self._select(self.fleet_vars.get(fleet, {}), names)

    @staticmethod
    def _select(values: dict[str, str], names: Sequence[str]) -> tuple[ConfigVariable, ...]:
        return tuple(ConfigVariable(name=name, value=value) for name, value in values.items() if name in names)


__all__ = ["InMemoryConfigVariables"]
