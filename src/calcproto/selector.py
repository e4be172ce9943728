from __future__ import annotations

import enum
import logging

from .errors import FailureCause
from .message import Encoding, Transport
from .net import ChannelFactory
from .session import Outcome, Session, SessionConfig

logger = logging.getLogger(__name__)


class TransportMode(str, enum.Enum):
    TCP = "tcp"
    UDP = "udp"
    ANY = "any"


def run_session(factory: ChannelFactory, transport: Transport, config: SessionConfig) -> Outcome:
    try:
        channel = factory.open(transport)
    except OSError as e:
        logger.debug("could not open %s channel: %s", transport.value, e)
        return Outcome(
            transport=transport,
            encoding=config.encoding,
            cause=FailureCause.IO_ERROR,
            reason=f"cannot connect: {e}",
        )
    return Session(channel, config).run()


def negotiate(
    mode: TransportMode,
    encoding: Encoding,
    factory: ChannelFactory,
    config: SessionConfig | None = None,
) -> Outcome:
    """Run the handshake over the transport(s) ``mode`` asks for.

    ``any`` tries a full datagram session first and, unless the server
    accepted the result, a fresh stream session. When both fail the stream
    failure is the one reported.
    """
    config = config or SessionConfig(encoding=encoding)
    if config.encoding is not encoding:
        raise ValueError(f"config encoding {config.encoding.value} != {encoding.value}")

    if mode is TransportMode.TCP:
        return run_session(factory, Transport.STREAM, config)
    if mode is TransportMode.UDP:
        return run_session(factory, Transport.DATAGRAM, config)

    first = run_session(factory, Transport.DATAGRAM, config)
    if first.accepted:
        return first
    logger.info("UDP attempt failed (%s: %s); falling back to TCP", first.cause.value, first.reason)
    return run_session(factory, Transport.STREAM, config)


_FAILURE_TEXT = {
    FailureCause.IO_ERROR: "CANT CONNECT TO {host}",
    FailureCause.SIZE_MISMATCH: "WRONG SIZE OR INCORRECT PROTOCOL",
    FailureCause.PROTOCOL_MISMATCH: "MISSMATCH PROTOCOL",
    FailureCause.FORMAT_ERROR: "INVALID ASSIGNMENT FORMAT",
    FailureCause.TIMEOUT: "MESSAGE LOST (TIMEOUT)",
}


def summarize(outcome: Outcome, host: str = "server") -> str:
    if outcome.accepted:
        return f"OK (myresult={outcome.result})"
    if outcome.rejected:
        if outcome.result is None:
            return f"ERROR: {outcome.reason}"
        return f"ERROR (myresult={outcome.result})"
    return "ERROR: " + _FAILURE_TEXT[outcome.cause].format(host=host)
