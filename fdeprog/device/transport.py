import struct
import logging
import enum
import usb1

from ..support.logging import *
from . import DeviceOpenError, DeviceReadError, DeviceWriteError, DeviceCloseError


__all__ = ["VID_FDE", "PID_FDE_PROGRAMMER", "Endpoint", "USBTransport",
           "pack_words", "unpack_words"]

logger = logging.getLogger(__name__)


VID_FDE            = 0x2200
PID_FDE_PROGRAMMER = 0x2008

INTERFACE          = 0
TIMEOUT_MS         = 1000


class Endpoint(enum.IntEnum):
    DATA_OUT    = 0x02
    COMMAND_OUT = 0x04
    DATA_IN     = 0x86
    STATUS_IN   = 0x88

    @property
    def is_in(self):
        return self & usb1.ENDPOINT_DIR_MASK == usb1.ENDPOINT_IN


def pack_words(words):
    """Convert a sequence of 16-bit words to their little-endian wire representation."""
    return struct.pack(f"<{len(words)}H", *words)


def unpack_words(data):
    """Convert a little-endian wire buffer to a list of 16-bit words."""
    if len(data) % 2 != 0:
        raise ValueError(f"buffer length {len(data)} is not a whole number of words")
    return list(struct.unpack(f"<{len(data) // 2}H", data))


class USBTransport:
    """
    Bulk transfers over the claimed interface of the programmer.

    A transfer that moves fewer bytes than requested is resumed from where it stopped;
    any libusb error tears the transport down before the error is raised, so that a failed
    operation never leaves the interface claimed.
    """

    def __init__(self, vid=VID_FDE, pid=PID_FDE_PROGRAMMER, *, timeout=TIMEOUT_MS):
        self.vid     = vid
        self.pid     = pid
        self.timeout = timeout

        self._context = None
        self._handle  = None

    @property
    def is_open(self):
        return self._handle is not None

    def open(self):
        assert not self.is_open

        context = usb1.USBContext()
        try:
            handle = context.openByVendorIDAndProductID(self.vid, self.pid)
        except usb1.USBError as e:
            context.close()
            logger.error("cannot open device %04x:%04x: %s", self.vid, self.pid, e)
            raise DeviceOpenError(f"cannot open device {self.vid:04x}:{self.pid:04x}: {e}")
        if handle is None:
            context.close()
            logger.error("device %04x:%04x not found", self.vid, self.pid)
            raise DeviceOpenError(f"device {self.vid:04x}:{self.pid:04x} not found")

        try:
            handle.setAutoDetachKernelDriver(True)
        except usb1.USBErrorNotSupported:
            pass

        try:
            handle.claimInterface(INTERFACE)
        except usb1.USBError as e:
            handle.close()
            context.close()
            logger.error("cannot claim interface %d: %s", INTERFACE, e)
            raise DeviceOpenError(f"cannot claim interface {INTERFACE}: {e}")

        self._context = context
        self._handle  = handle
        for endpoint in Endpoint:
            try:
                handle.clearHalt(endpoint)
            except usb1.USBError as e:
                self.teardown()
                logger.error("cannot clear halt on %s: %s", endpoint.name, e)
                raise DeviceOpenError(f"cannot clear halt on endpoint {endpoint:#04x}: {e}")

        logger.info("device %04x:%04x opened", self.vid, self.pid)

    def teardown(self):
        """Release the interface and shut down libusb, ignoring any errors on the way."""
        handle, context = self._handle, self._context
        self._handle = self._context = None
        if handle is not None:
            try:
                handle.releaseInterface(INTERFACE)
            except usb1.USBError as e:
                logger.debug("releasing interface during teardown failed: %s", e)
            handle.close()
        if context is not None:
            context.close()

    def close(self):
        if not self.is_open:
            logger.error("device close failed: device not opened")
            raise DeviceCloseError("device not opened")

        handle, context = self._handle, self._context
        self._handle = self._context = None
        try:
            handle.releaseInterface(INTERFACE)
        except usb1.USBError as e:
            handle.close()
            context.close()
            logger.error("device close failed: %s", e)
            raise DeviceCloseError(str(e))
        handle.close()
        context.close()
        logger.info("device closed")

    def write(self, endpoint, data):
        assert not endpoint.is_in
        if not isinstance(data, (bytes, bytearray)):
            data = bytes(data)
        if self._handle is None:
            raise DeviceWriteError("device not opened")

        logger.trace("USB: BULK EP%d OUT data=<%s> (submit)", endpoint & 0x7f, dump_hex(data))
        offset = 0
        while offset < len(data):
            try:
                transferred = self._handle.bulkWrite(endpoint, data[offset:], self.timeout)
            except usb1.USBError as e:
                self.teardown()
                logger.error("USB write error on EP%d: %s", endpoint & 0x7f, e)
                raise DeviceWriteError(f"USB write error on endpoint {endpoint:#04x}: {e}")
            offset += transferred
            if offset < len(data):
                logger.trace("USB: BULK EP%d OUT partial (%d of %d bytes)",
                             endpoint & 0x7f, offset, len(data))
        logger.trace("USB: BULK EP%d OUT (completed)", endpoint & 0x7f)

    def read(self, endpoint, length):
        assert endpoint.is_in
        if self._handle is None:
            raise DeviceReadError("device not opened")

        logger.trace("USB: BULK EP%d IN length=%d (submit)", endpoint & 0x7f, length)
        data = bytearray()
        while len(data) < length:
            try:
                data += self._handle.bulkRead(endpoint, length - len(data), self.timeout)
            except usb1.USBError as e:
                self.teardown()
                logger.error("USB read error on EP%d: %s", endpoint & 0x7f, e)
                raise DeviceReadError(f"USB read error on endpoint {endpoint:#04x}: {e}")
            if len(data) < length:
                logger.trace("USB: BULK EP%d IN partial (%d of %d bytes)",
                             endpoint & 0x7f, len(data), length)
        logger.trace("USB: BULK EP%d IN data=<%s> (completed)", endpoint & 0x7f, dump_hex(data))
        return bytes(data)
