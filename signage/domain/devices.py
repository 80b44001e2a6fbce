"""
Device Registry
===============

The fixed, enumerable set of output devices content can be targeted at.

Devices are identified by opaque string keys (``TV1``) and carry a display
name (``TV 1``). Lookups accept either form.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from signage.domain.exceptions import ConfigurationError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_DEVICES = "TV1:TV 1,TV2:TV 2,TV3:TV 3,TV4:TV 4"


@dataclass(frozen=True)
class Device:
    key: str
    display_name: str

    def to_dict(self) -> dict[str, str]:
        return {"key": self.key, "display_name": self.display_name}


class DeviceRegistry:
    """Ordered registry of configured devices."""

    def __init__(self, devices: list[Device] | None = None):
        self._devices: dict[str, Device] = {}
        for device in devices if devices is not None else self.parse(DEFAULT_DEVICES):
            if device.key in self._devices:
                raise ConfigurationError(f"Duplicate device key: {device.key}", detail={"key": device.key})
            self._devices[device.key] = device

    @staticmethod
    def parse(spec: str) -> list[Device]:
        """
        Parse a ``KEY:Display Name`` comma separated list.

        A missing display name defaults to the key.
        """
        devices = []
        for raw in (spec or "").split(","):
            raw = raw.strip()
            if not raw:
                continue
            key, _, name = raw.partition(":")
            key = key.strip()
            if not key:
                raise ConfigurationError(f"Invalid device entry: {raw!r}", detail={"entry": raw})
            devices.append(Device(key=key, display_name=name.strip() or key))
        if not devices:
            raise ConfigurationError("At least one device must be configured")
        return devices

    @classmethod
    def from_config(cls, spec: str) -> "DeviceRegistry":
        registry = cls(cls.parse(spec))
        logger.debug("Device registry loaded: %s", ", ".join(registry.keys()))
        return registry

    def keys(self) -> list[str]:
        return list(self._devices)

    def all(self) -> list[Device]:
        return list(self._devices.values())

    def find(self, name: str) -> Device | None:
        """Look up by key first, then by display name."""
        if name in self._devices:
            return self._devices[name]
        for device in self._devices.values():
            if device.display_name == name:
                return device
        return None

    def get(self, name: str) -> Device:
        device = self.find(name)
        if device is None:
            raise NotFoundError(f"Unknown device: {name}", detail={"device": name})
        return device

    def __contains__(self, key: object) -> bool:
        return key in self._devices

    def __iter__(self) -> Iterator[Device]:
        return iter(self._devices.values())

    def __len__(self) -> int:
        return len(self._devices)
