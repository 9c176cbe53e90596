__all__ = ["KEY_TABLE_WORDS", "KEY_WORDS", "decode_table", "Cipher"]


KEY_TABLE_WORDS = 32
KEY_WORDS       = 16


def decode_table(raw):
    """
    Unscramble the key table as fetched from the device.

    The first word is complemented, and every following word is XORed with its (already
    unscrambled) predecessor. The first half of the result is the key used for words sent to
    the device, the second half is the key used for words received from it.
    """
    if len(raw) != KEY_TABLE_WORDS:
        raise ValueError(f"key table must have {KEY_TABLE_WORDS} words, not {len(raw)}")
    table = [~raw[0] & 0xffff]
    for word in raw[1:]:
        table.append(word ^ table[-1])
    return table


class Cipher:
    """
    Rotating-key XOR obfuscation of the words exchanged with the device.

    Each direction has its own cursor into its 16-word key; a cursor advances by one for every
    word processed and persists between calls until :meth:`reset` installs a new table.
    """

    def __init__(self, table=None):
        self.reset(table or [0] * KEY_TABLE_WORDS)

    def reset(self, table):
        assert len(table) == KEY_TABLE_WORDS
        self.encode_key    = list(table[:KEY_WORDS])
        self.decode_key    = list(table[KEY_WORDS:])
        self.encode_cursor = 0
        self.decode_cursor = 0

    def encode(self, words):
        result = []
        for word in words:
            result.append(word ^ self.encode_key[self.encode_cursor])
            self.encode_cursor = (self.encode_cursor + 1) % KEY_WORDS
        return result

    def decode(self, words):
        result = []
        for word in words:
            result.append(word ^ self.decode_key[self.decode_cursor])
            self.decode_cursor = (self.decode_cursor + 1) % KEY_WORDS
        return result
