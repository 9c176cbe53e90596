import struct


__all__ = ["ConfigSpace"]


class ConfigSpace:
    """
    Snapshot of the programmer configuration space.

    :ivar list[int] words:
        All 64 configuration words, after decryption.

    :ivar int fifo_size:
        Capacity of the programming FIFO, in 16-bit words (word 33).

    :ivar bool is_programmed:
        Whether the FPGA reports a successfully loaded bitstream (bit 0 of word 48).
    """
    words_count = 64
    size = words_count * 2
    _encoding = f"<{words_count}H"

    FIFO_SIZE_WORD  = 33
    STATUS_WORD     = 48
    ST_PROGRAMMED   = 1<<0

    def __init__(self, words=None):
        if words is None:
            words = [0] * self.words_count
        if len(words) != self.words_count:
            raise ValueError("configuration space must have {} words, not {}"
                             .format(self.words_count, len(words)))
        self.words = list(words)

    @property
    def fifo_size(self):
        return self.words[self.FIFO_SIZE_WORD]

    @property
    def is_programmed(self):
        return bool(self.words[self.STATUS_WORD] & self.ST_PROGRAMMED)

    def encode(self):
        """Convert configuration space to its 128-byte wire image, before encryption."""
        return struct.pack(self._encoding, *self.words)

    @classmethod
    def decode(cls, data):
        """
        Parse configuration space from its wire image.

        Raises :class:`ValueError` if ``data`` is not exactly 128 bytes long.
        """
        if len(data) != cls.size:
            raise ValueError("Incorrect configuration space length")
        return cls(struct.unpack_from(cls._encoding, data, 0))

    def __repr__(self):
        return "<ConfigSpace fifo_size={} is_programmed={}>".format(
            self.fifo_size, self.is_programmed)
