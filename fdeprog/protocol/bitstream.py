# The bitstream text format, as emitted by the FDE toolchain:
#
#   * one or more groups of hexadecimal digits per line, separated by `_`;
#   * every group is a 16-bit word (only the last four digits of a longer group matter);
#   * a space or a tab ends the data part of a line, the rest being a comment;
#   * blank lines are ignored.

import io
import string
import logging

from ..support.logging import dump_words


__all__ = ["BitstreamParsingError", "BitstreamDecoder", "decode_bitstream",
           "decode_bitstream_file"]

logger = logging.getLogger(__name__)


class BitstreamParsingError(Exception):
    pass


class BitstreamDecoder:
    def __init__(self):
        self.words = []
        self._line = 0

    def feed_line(self, line):
        """Decode one line of text, appending the words it contains to :attr:`words`."""
        self._line += 1
        line = line.strip()
        if not line:
            return

        data = 0
        for column, char in enumerate(line, 1):
            if char == "_":
                self.words.append(data)
                data = 0
                continue
            elif char in " \t":
                break

            if char not in string.hexdigits:
                raise BitstreamParsingError("Invalid character {!r} at line {}, column {}"
                                            .format(char, self._line, column))
            nibble = int(char, 16)
            data = ((data << 4) | nibble) & 0xffff
        self.words.append(data)

    def feed(self, lines):
        for line in lines:
            self.feed_line(line)
        return self.words


def decode_bitstream(text):
    """Decode bitstream ``text`` (a string or an iterable of lines) to a list of words."""
    if isinstance(text, str):
        # same line breaks as a file opened in text mode
        text = io.StringIO(text, newline=None)
    return BitstreamDecoder().feed(text)


def decode_bitstream_file(path):
    """
    Decode the bitstream file at ``path``.

    Raises :class:`OSError` if the file cannot be read, and :class:`BitstreamParsingError`
    if it is malformed or is not ASCII text.
    """
    try:
        with open(path, "r", encoding="ascii") as f:
            words = BitstreamDecoder().feed(f)
    except UnicodeDecodeError as e:
        raise BitstreamParsingError("Non-ASCII byte {:#04x} in bitstream file"
                                    .format(e.object[e.start])) from e
    logger.debug("decoded %d words from %s: %s", len(words), path, dump_words(words))
    return words
