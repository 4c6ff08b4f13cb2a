class PingError(Exception):
    """Base class for everything raised by pingscan."""


class FormatError(PingError):
    """Bytes on the wire do not follow the framing rules."""


class NotEnoughData(FormatError):
    # streaming decoders treat this as "keep buffering", never as fatal
    pass


class VarIntTooLong(FormatError):
    def __init__(self, msg: str = "VarInt longer than 5 bytes"):
        super().__init__(msg)


class InvalidString(FormatError):
    pass


class InvalidFrame(FormatError):
    pass


class ServerConnectionError(PingError):
    """Connect, read or write failed (refused, reset, closed or timed out)."""


class ProtocolViolation(PingError):
    pass


class SchemaError(PingError):
    """Status JSON is not valid JSON or does not have the expected shape."""

    def __init__(self, msg: str, raw: str = ""):
        super().__init__(msg)
        self.raw = raw


class AddressTooLong(PingError, ValueError):
    pass
