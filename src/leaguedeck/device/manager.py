"""
Stream Deck device registry.

Tracks which devices the host currently reports as connected and announces
device_connected / device_disconnected once per actual change.
"""

import logging
import time
from typing import Any, Dict, Iterable, List, Set, Tuple

from ..utils.events import DeviceEvent, EventEmitter, Events

logger = logging.getLogger(__name__)


class DeviceManager:
    """Registry of connected devices, fed by host device status reports."""

    def __init__(self, emitter: EventEmitter):
        self.emitter = emitter
        self._devices: Set[str] = set()

    @property
    def connected_devices(self) -> Set[str]:
        return set(self._devices)

    def is_connected(self, device_id: str) -> bool:
        return device_id in self._devices

    def connect(self, device_id: str) -> bool:
        """
        Mark a device connected.

        Returns:
            True if the device was not connected before
        """
        if device_id in self._devices:
            return False
        self._devices.add(device_id)
        logger.info(f"Device connected: {device_id}")
        self.emitter.emit(Events.DEVICE_CONNECTED, DeviceEvent(device_id, time.time()))
        return True

    def disconnect(self, device_id: str) -> bool:
        """
        Mark a device disconnected.

        Returns:
            True if the device was connected before
        """
        if device_id not in self._devices:
            return False
        self._devices.discard(device_id)
        logger.info(f"Device disconnected: {device_id}")
        self.emitter.emit(Events.DEVICE_DISCONNECTED, DeviceEvent(device_id, time.time()))
        return True

    def update_status(self, devices: Iterable[Any]) -> Tuple[List[str], List[str]]:
        """
        Reconcile the registry with a full device list from the host.

        Args:
            devices: Device ids, or dicts carrying ``serialNumber`` / ``id``

        Returns:
            (added device ids, removed device ids)
        """
        current = {device_id for device_id in map(self._device_id, devices) if device_id}

        added = sorted(current - self._devices)
        removed = sorted(self._devices - current)

        for device_id in removed:
            self.disconnect(device_id)
        for device_id in added:
            self.connect(device_id)

        if added or removed:
            logger.debug(f"Device status: {len(self._devices)} connected")
        return added, removed

    @staticmethod
    def _device_id(device: Any) -> str:
        if isinstance(device, dict):
            for key in ("serialNumber", "id", "device"):
                if device.get(key):
                    return str(device[key])
            logger.warning(f"Device entry without an identifier: {device}")
            return ""
        return str(device) if device else ""

    def get_status(self) -> Dict[str, Any]:
        return {"connected_devices": sorted(self._devices)}
