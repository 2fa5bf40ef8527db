from .device_sink import DeviceCallback, DeviceEvent, DeviceSink

__all__ = ["DeviceEvent", "DeviceSink", "DeviceCallback"]
