"""
Error Types
===========

Exceptions raised by the codec, protocol and session layers.

Propagation:
    ConnectError  - handshake failed, fatal
    SendError     - outbound frame not transmitted; fatal for the subscribe frame,
                    a shutdown cause for heartbeats and the close frame
    ReadError     - inbound frame unavailable (includes a normal peer close)
    DecodeError   - gzip or JSON decoding failed; the frame is dropped
    EncodeError   - the subscribe request could not be serialized
"""


class KlineStreamError(Exception):
    """Base class for all client errors."""


class ConnectError(KlineStreamError):
    pass


class SendError(KlineStreamError):
    pass


class ReadError(KlineStreamError):
    pass


class DecodeError(KlineStreamError):
    pass


class EncodeError(KlineStreamError):
    pass
