"""
Error taxonomy for the cluster agent.

Every error except :class:`DirectoryChangeFailure` is fatal: the role that
detects it stops, and the whole agent exits with status 1.
"""
from typing import Optional


class AgentError(Exception):
    """Base class for all agent errors."""
    fatal = True


class ConfigurationError(AgentError):
    """Raised when the configuration file or a configured value is invalid."""


class ProtocolViolation(AgentError):
    """The peer sent something that does not follow the wire protocol."""


class MalformedHeader(ProtocolViolation):
    """A frame header has an unknown tag or a non-numeric length field."""

    def __init__(self, header: bytes, reason: str):
        super().__init__(f"Malformed frame header {header!r}: {reason}")
        self.header = header
        self.reason = reason


class UnexpectedFrameKind(ProtocolViolation):
    """A well-formed frame arrived with a different kind than the protocol requires."""

    def __init__(self, expected, received):
        expected_tags = '/'.join(kind.value for kind in expected)
        super().__init__(f"Expected a frame of kind '{expected_tags}', received '{received.value}'")
        self.expected = expected
        self.received = received


class TruncatedTransmission(AgentError):
    """The stream ended, or timed out, in the middle of a header or payload."""

    def __init__(self, expected: int, received: int, detail: Optional[str] = None):
        message = f"Truncated transmission: expected {expected} bytes, received {received}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.expected = expected
        self.received = received


class ConnectionClosed(AgentError):
    """The peer closed the connection cleanly before sending any part of a frame."""


class PartialTransmission(AgentError):
    """A frame could not be written completely."""


class PayloadTooLarge(AgentError):
    """The payload does not fit in the 5-digit length field."""

    def __init__(self, length: int, limit: int):
        super().__init__(f"Payload of {length} bytes exceeds the {limit} byte limit")
        self.length = length
        self.limit = limit


class SubprocessSpawnFailure(AgentError):
    """The shell subprocess for a command could not be started."""


class ResourceExhaustion(AgentError):
    """Memory ran out while capturing command output."""


class DirectoryChangeFailure(AgentError):
    """A ``cd`` command named a directory that could not be entered."""
    fatal = False
