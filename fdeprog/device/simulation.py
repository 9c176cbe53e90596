import random
import logging
import usb1

from .transport import Endpoint, pack_words, unpack_words
from .cipher import KEY_TABLE_WORDS, Cipher, decode_table
from .handshake import Command
from .config import ConfigSpace


__all__ = ["SimulatedProgrammer", "SimulatedUSBContext"]

logger = logging.getLogger(__name__)


class SimulatedProgrammer:
    """
    A protocol-level model of the programmer, standing in for a ``usb1.USBDeviceHandle``.

    :ivar int max_packet:
        Largest number of bytes moved by a single bulk transfer; longer transfers complete
        partially and must be resumed by the host.

    :ivar int busy_polls:
        Number of status reads answered with "not ready" before each command is accepted.

    :ivar bool program_succeeds:
        Whether the programmed flag is latched after a bitstream upload.

    :ivar set fail_on:
        Endpoints on which every transfer fails with a libusb I/O error.
    """

    def __init__(self, raw_table=None, fifo_size=256, *, max_packet=512, busy_polls=0,
                 program_succeeds=True):
        if raw_table is None:
            raw_table = [random.getrandbits(16) for _ in range(KEY_TABLE_WORDS)]
        self.raw_table  = list(raw_table)
        self.config     = ConfigSpace()
        self.config.words[ConfigSpace.FIFO_SIZE_WORD] = fifo_size

        self.max_packet = max_packet
        self.busy_polls = busy_polls
        self.program_succeeds = program_succeeds
        self.fail_on    = set()
        self.claim_fails = False
        self.clear_halt_fails = False

        self.claimed    = False
        self.closed     = False
        self.halts_cleared = set()
        self.commands   = []
        self.data_out_writes = []
        self.bitstream  = None

        self._cipher    = Cipher()
        self._busy      = None
        self._pending   = bytearray()
        self._programming = False
        self._received  = bytearray()

    # USBDeviceHandle interface

    def setAutoDetachKernelDriver(self, enable):
        pass

    def claimInterface(self, interface):
        if self.claim_fails:
            raise usb1.USBErrorBusy()
        self.claimed = True

    def releaseInterface(self, interface):
        if not self.claimed:
            raise usb1.USBErrorNotFound()
        self.claimed = False

    def clearHalt(self, endpoint):
        if self.clear_halt_fails:
            raise usb1.USBErrorPipe()
        self.halts_cleared.add(Endpoint(endpoint))

    def close(self):
        self.closed = True

    def bulkWrite(self, endpoint, data, timeout=0):
        endpoint = Endpoint(endpoint)
        if endpoint in self.fail_on:
            raise usb1.USBErrorIO()
        data = bytes(data)
        if endpoint == Endpoint.COMMAND_OUT:
            self._command(data)
        elif endpoint == Endpoint.DATA_OUT:
            assert self._programming, "bitstream data sent before activating the programmer"
            data = data[:self.max_packet]
            self.data_out_writes.append(data)
            self._received += data
        return len(data)

    def bulkRead(self, endpoint, length, timeout=0):
        endpoint = Endpoint(endpoint)
        if endpoint in self.fail_on:
            raise usb1.USBErrorIO()
        if endpoint == Endpoint.STATUS_IN:
            if self._busy:
                self._busy -= 1
                return b"\x00"
            return b"\x01"
        if not self._pending:
            raise usb1.USBErrorTimeout()
        length = min(length, self.max_packet, len(self._pending))
        data, self._pending = bytes(self._pending[:length]), self._pending[length:]
        return data

    # Device behavior

    def _command(self, data):
        if data == b"\x00":
            if self._busy is None:
                self._busy = self.busy_polls
            return

        self._busy = None
        command = Command(data)
        self.commands.append(command)
        logger.trace("simulated device received command %s", command.name)
        if command == Command.READ_KEY_TABLE:
            self._cipher.reset(decode_table(self.raw_table))
            self._pending += pack_words(self.raw_table)
        elif command == Command.READ_CONFIG:
            self._pending += ConfigSpace(self._cipher.decode(self.config.words)).encode()
        elif command == Command.ACTIVATE_PROGRAMMER:
            self._programming = True
            self._received = bytearray()
        elif command == Command.ACTIVE and self._programming:
            self._programming = False
            self.bitstream = self._cipher.encode(unpack_words(self._received))
            status = self.config.words[ConfigSpace.STATUS_WORD] & ~ConfigSpace.ST_PROGRAMMED
            if self.program_succeeds:
                status |= ConfigSpace.ST_PROGRAMMED
            self.config.words[ConfigSpace.STATUS_WORD] = status


class SimulatedUSBContext:
    """A stand-in for ``usb1.USBContext`` that finds at most one simulated programmer."""

    def __init__(self, device=None):
        self.device = device
        self.closed = False

    def openByVendorIDAndProductID(self, vendor_id, product_id, *args, **kwargs):
        return self.device

    def close(self):
        self.closed = True
