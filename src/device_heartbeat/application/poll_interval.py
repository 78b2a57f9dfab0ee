"""Resolve how long a device is expected to wait between API polls."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence

from device_heartbeat.application.ports.config_variables import ConfigVariable, ConfigVariableSourcePort

# the maximum time the device supervisor will wait between polls
POLL_JITTER_FACTOR = 1.5

POLL_INTERVAL_VARIABLE_NAMES: tuple[str, ...] = (
    "BALENA_SUPERVISOR_POLL_INTERVAL",
    "RESIN_SUPERVISOR_POLL_INTERVAL",
)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

logger = logging.getLogger("device_heartbeat.poll_interval")


def parse_interval(value: str) -> int:
    """Parse the leading integer of ``value``; anything unparseable counts as 0."""
    match = _LEADING_INT.match(value)
    if match is None:
        return 0
    return int(match.group(1), 10)


def pick_variable(rows: Sequence[ConfigVariable]) -> ConfigVariable | None:
    """Return the row that sorts first by name, descending.

    This is the value the supervisor would have been handed last, so it is the
    one it actually used.
    """
    if not rows:
        return None
    return sorted(rows, key=lambda row: row.name, reverse=True)[0]


class PollIntervalResolver:
    """Computes the expected poll interval (ms), padded by the jitter factor."""

    def __init__(
        self,
        *,
        variables: ConfigVariableSourcePort,
        default_interval_ms: int,
        jitter_factor: float = POLL_JITTER_FACTOR,
        variable_names: Sequence[str] = POLL_INTERVAL_VARIABLE_NAMES,
    ) -> None:
        if default_interval_ms <= 0:
            raise ValueError("default_interval_ms must be positive")
        self._variables = variables
        self._default = default_interval_ms
        self._jitter = jitter_factor
        self._names = tuple(variable_names)

    @property
    def default_interval_ms(self) -> int:
        return self._default

    async def resolve(self, device_id: str, known_config: Mapping[str, str] | None = None) -> float:
        if known_config is not None:
            rows: Sequence[ConfigVariable] = [
                ConfigVariable(name=name, value=known_config[name])
                for name in self._names
                if name in known_config
            ]
            source = "known"
        else:
            rows = await self._variables.lookup_device_vars(device_id, self._names)
            source = "device"
            if not rows:
                rows = await self._variables.lookup_fleet_vars(device_id, self._names)
                source = "fleet"

        chosen = pick_variable(rows)
        if chosen is None:
            interval = self._default
            source = "default"
        else:
            interval = max(parse_interval(chosen.value), self._default)

        logger.debug(
            "resolved poll interval",
            extra={"data": {"device_id": device_id, "interval_ms": interval, "source": source}},
        )
        # adjust for the jitter the supervisor applies to its own schedule
        return interval * self._jitter


__all__ = [
    "POLL_INTERVAL_VARIABLE_NAMES",
    "POLL_JITTER_FACTOR",
    "PollIntervalResolver",
    "parse_interval",
    "pick_variable",
]
