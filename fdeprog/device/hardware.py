import enum
import logging

from ..support.logging import *
from ..protocol.bitstream import BitstreamParsingError, decode_bitstream_file
from . import DeviceOtherError
from .transport import Endpoint, USBTransport, pack_words, unpack_words
from .cipher import KEY_TABLE_WORDS, Cipher, decode_table
from .handshake import Command, Handshake
from .config import ConfigSpace


__all__ = ["SessionState", "ProgramSession", "program_device"]

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    CLOSED      = "closed"
    OPENED      = "opened"
    INITIALIZED = "initialized"
    PROGRAMMING = "programming"
    PROGRAMMED  = "programmed"


class ProgramSession:
    """
    A programming session with the FDE programmer.

    The session owns the USB handle, the key table and both cipher cursors, and the last
    configuration space snapshot. Use it as a context manager, or call :meth:`open`,
    :meth:`initialize`, :meth:`program` and :meth:`close` in order. Any transfer error closes
    the session before it is raised.
    """

    def __init__(self, transport=None, **kwargs):
        self.transport = transport or USBTransport(**kwargs)
        self.handshake = Handshake(self.transport)
        self.cipher    = Cipher()
        self.config    = None
        self._state    = SessionState.CLOSED

    @property
    def state(self):
        if not self.transport.is_open:
            return SessionState.CLOSED
        return self._state

    def _require(self, *states):
        if self.state not in states:
            raise DeviceOtherError("operation not permitted while device is {}"
                                   .format(self.state.value))

    def __enter__(self):
        if self.state == SessionState.CLOSED:
            self.open()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if not self.transport.is_open:
            return
        if exc_type is None:
            self.close()
        else:
            self.transport.teardown()

    def open(self):
        self._require(SessionState.CLOSED)
        self.transport.open()
        self.config = None
        self._state = SessionState.OPENED

    def close(self):
        try:
            self.transport.close()
        finally:
            self._state = SessionState.CLOSED

    def _read_key_table(self):
        self.handshake.command(Command.READ_KEY_TABLE)
        raw_table = unpack_words(self.transport.read(Endpoint.DATA_IN, KEY_TABLE_WORDS * 2))
        self.cipher.reset(decode_table(raw_table))
        logger.debug("key table read")

    def read_config(self):
        """Read, decrypt and return the configuration space, keeping it as the current snapshot."""
        self._require(SessionState.INITIALIZED, SessionState.PROGRAMMING,
                      SessionState.PROGRAMMED)
        self.handshake.command(Command.READ_CONFIG)
        data = self.transport.read(Endpoint.DATA_IN, ConfigSpace.size)
        self.handshake.activate()

        encrypted   = ConfigSpace.decode(data)
        self.config = ConfigSpace(self.cipher.decode(encrypted.words))
        logger.trace("config space: %s", dump_words(self.config.words))
        logger.debug("config space read: %r", self.config)
        return self.config

    def initialize(self):
        self._require(SessionState.OPENED, SessionState.INITIALIZED, SessionState.PROGRAMMED)
        self._read_key_table()
        self._state = SessionState.INITIALIZED
        self.read_config()
        logger.info("device initialized, FIFO size is %d words", self.config.fifo_size)

    @staticmethod
    def _iter_chunks(data, chunk_size):
        for offset in range(0, len(data), chunk_size):
            yield data[offset:offset + chunk_size]

    def program(self, path):
        """
        Load the bitstream file at ``path`` into the FPGA.

        The file is decoded before anything is sent to the device, so a malformed bitstream
        leaves the device untouched.
        """
        self._require(SessionState.INITIALIZED, SessionState.PROGRAMMED)

        try:
            words = decode_bitstream_file(path)
        except OSError as e:
            logger.error("cannot read bitstream file %s: %s", path, e)
            raise DeviceOtherError(f"cannot read bitstream file {path}: {e}") from e
        except BitstreamParsingError as e:
            logger.error("invalid bitstream file %s: %s", path, e)
            raise DeviceOtherError(f"invalid bitstream file {path}: {e}") from e

        fifo_size = self.config.fifo_size
        if fifo_size == 0:
            raise DeviceOtherError("device reports a zero-sized programming FIFO")
        chunk_size = fifo_size * 2

        data = pack_words(self.cipher.encode(words))
        self._state = SessionState.PROGRAMMING
        self.handshake.command(Command.ACTIVATE_PROGRAMMER)
        logger.info("FPGA programmer activated")

        logger.info("writing %d bytes of bitstream in chunks of up to %d bytes",
                    len(data), chunk_size)
        for chunk in self._iter_chunks(data, chunk_size):
            self.transport.write(Endpoint.DATA_OUT, chunk)
        logger.debug("finished writing bitstream")

        self.handshake.activate()
        self.read_config()
        if not self.config.is_programmed:
            self._state = SessionState.INITIALIZED
            logger.error("FPGA programming failed")
            raise DeviceOtherError("FPGA programming failed")

        self._state = SessionState.PROGRAMMED
        logger.info("FPGA programming successful")


def program_device(path, **kwargs):
    """Open the programmer, load the bitstream file at ``path``, and close the programmer."""
    with ProgramSession(**kwargs) as session:
        session.initialize()
        session.program(path)
