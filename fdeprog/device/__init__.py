__all__ = [
    "FDEDeviceError", "DeviceOpenError", "DeviceReadError", "DeviceWriteError",
    "DeviceCloseError", "DeviceOtherError",
]


class FDEDeviceError(Exception):
    """An exception raised on a communication or programming error."""


class DeviceOpenError(FDEDeviceError):
    """The device could not be found, claimed, or prepared for transfers."""

    def __init__(self, detail="device open failed"):
        super().__init__(detail)


class DeviceReadError(FDEDeviceError):
    def __str__(self):
        return f"device read error: {self.args[0]}"


class DeviceWriteError(FDEDeviceError):
    def __str__(self):
        return f"device write error: {self.args[0]}"


class DeviceCloseError(FDEDeviceError):
    def __str__(self):
        return f"device close error: {self.args[0]}"


class DeviceOtherError(FDEDeviceError):
    """
    Bitstream file access errors, malformed bitstreams, out-of-order session use, and
    programming verification failures.
    """
