from .device import DeviceRecord
from .translate import Calibration, command_to_percent, percent_to_command, raw_to_percent

__all__ = ["DeviceRecord",
           "Calibration",
           "percent_to_command",
           "command_to_percent",
           "raw_to_percent"]
