"""
Wire protocol shared by the session client and the request listener.
"""
from cluster_agent.protocol.framing import (
    ALL_KINDS,
    HEADER_SIZE,
    MAX_PAYLOAD_SIZE,
    DispatchLayout,
    Frame,
    FrameKind,
    decode_header,
    encode,
    encode_header,
    read_exact,
    read_frame,
    read_header,
    write_frame,
)
from cluster_agent.protocol.connection import Connection

__all__ = [
    'ALL_KINDS',
    'HEADER_SIZE',
    'MAX_PAYLOAD_SIZE',
    'DispatchLayout',
    'Frame',
    'FrameKind',
    'decode_header',
    'encode',
    'encode_header',
    'read_exact',
    'read_frame',
    'read_header',
    'write_frame',
    'Connection'
]
