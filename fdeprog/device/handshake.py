import enum
import logging

from .transport import Endpoint


__all__ = ["Command", "Handshake"]

logger = logging.getLogger(__name__)


class Command(bytes, enum.Enum):
    ACTIVE              = b"\x01\x00"
    READ_CONFIG         = b"\x01\x01"
    ACTIVATE_PROGRAMMER = b"\x01\x02"
    READ_KEY_TABLE      = b"\x01\x0f"


class Handshake:
    """
    The sync sequence that precedes every command.

    The device is polled by writing a zero byte to the command endpoint and reading back its
    status byte until the status is nonzero. The poll has no iteration limit; each attempt is
    only bounded by the transport timeout.
    """

    def __init__(self, transport):
        self.transport = transport

    def sync(self):
        polls = 0
        while True:
            self.transport.write(Endpoint.COMMAND_OUT, b"\x00")
            status, = self.transport.read(Endpoint.STATUS_IN, 1)
            polls += 1
            if status != 0:
                break
        logger.debug("sync done after %d poll(s)", polls)

    def command(self, command):
        self.sync()
        logger.trace("command %s", command.name)
        self.transport.write(Endpoint.COMMAND_OUT, command.value)

    def activate(self):
        self.command(Command.ACTIVE)
