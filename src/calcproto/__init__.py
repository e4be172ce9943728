"""CalcProtocol client

Negotiates one arithmetic assignment with a CalcProtocol server:
- fixed-size binary records and newline-terminated text lines
- one handshake state machine shared by TCP and UDP
- "any" mode: a full UDP attempt, then a fresh TCP attempt
"""

from .message import Encoding, Transport
from .selector import TransportMode, negotiate, summarize
from .session import Outcome, SessionConfig

__all__ = ["Encoding", "Transport", "TransportMode", "negotiate", "summarize", "Outcome", "SessionConfig"]
