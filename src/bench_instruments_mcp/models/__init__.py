"""Device models and driver selection."""

from .device import DeviceConfig, DeviceModel, get_communication_device
