__all__ = ["lazy", "dump_hex", "dump_words"]


class lazy:
    """
    A wrapper for lazily formatting a log message argument.

    E.g. ``logger.trace("data=<%s>", expensive(data))`` can be replaced with
    ``logger.trace("data=<%s>", lazy(lambda: expensive(data)))``, which would only perform
    ``expensive(data)`` when the record is actually emitted.
    """

    __slots__ = ["_object_", "_thunk_"]

    def __init__(self, thunk):
        self._object_ = None
        self._thunk_  = thunk

    def _force_(self):
        if self._thunk_:
            self._object_ = self._thunk_()
            self._thunk_  = None
        return self._object_

    def __str__(self):
        return str(self._force_())

    def __format__(self, format_spec):
        return format(self._force_(), format_spec)

    def __repr__(self):
        if self._thunk_:
            rep = repr(self._thunk_)
        else:
            rep = repr(self._object_)
        return f"<lazy {rep}>"


def dump_hex(data):
    def to_hex(data):
        try:
            data = memoryview(data)
        except TypeError:
            data = memoryview(bytes(data))
        if dump_hex.limit is None or len(data) < dump_hex.limit:
            return data.hex()
        else:
            return "{}... ({} bytes total)".format(
                data[:dump_hex.limit].hex(), len(data))
    return lazy(lambda: to_hex(data))

dump_hex.limit = 64


def dump_words(words):
    """Like :func:`dump_hex`, but for a sequence of 16-bit words."""
    def to_words(words):
        if dump_words.limit is None or len(words) < dump_words.limit:
            return " ".join(f"{word:04x}" for word in words)
        else:
            return "{}... ({} words total)".format(
                " ".join(f"{word:04x}" for word in words[:dump_words.limit]), len(words))
    return lazy(lambda: to_words(words))

dump_words.limit = 16
