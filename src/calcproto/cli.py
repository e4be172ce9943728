from __future__ import annotations

import argparse
import logging
import re
import sys
from dataclasses import dataclass

from .constants import DEFAULT_TIMEOUT_S
from .message import Encoding
from .net import SocketChannelFactory
from .selector import TransportMode, negotiate, summarize
from .session import SessionConfig

TARGET_RE = re.compile(r"^(tcp|udp|any)://([^:/]+):(\d+)/(text|binary)$", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class Target:
    mode: TransportMode
    host: str
    port: int
    encoding: Encoding


def parse_target(url: str) -> Target:
    m = TARGET_RE.match(url)
    if m is None:
        raise ValueError(f"invalid target {url!r}; expected PROTOCOL://host:port/api")
    mode, host, port, api = m.groups()
    port_num = int(port)
    if not 0 < port_num < 65536:
        raise ValueError(f"port out of range: {port_num}")
    return Target(TransportMode(mode.lower()), host, port_num, Encoding(api.lower()))


def cmd_negotiate(args: argparse.Namespace) -> int:
    target: Target = args.target
    print(
        f"Protocol: {target.mode.value}, Host {target.host}, port {target.port} "
        f"and path {target.encoding.value}."
    )

    config = SessionConfig(encoding=target.encoding, response_timeout=args.timeout)
    factory = SocketChannelFactory(target.host, target.port)
    outcome = negotiate(target.mode, target.encoding, factory, config)
    logging.debug("outcome: %s", outcome)

    line = outcome.assignment_line or (outcome.assignment.describe() if outcome.assignment else "")
    if line:
        print(f"ASSIGNMENT: {line}")

    # a verdict on our result goes to stdout, anything earlier is an error
    verdict = outcome.accepted or (outcome.rejected and outcome.result is not None)
    print(summarize(outcome, host=target.host), file=sys.stdout if verdict else sys.stderr)

    if outcome.accepted and target.mode is TransportMode.ANY:
        print(f"Successfully connected using {outcome.transport.value.upper()}")
    return 0 if outcome.accepted else 1


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="calcclient", description="CalcProtocol client (TCP/UDP, text/binary).")
    p.add_argument("target", type=_target_arg, help="PROTOCOL://host:port/api, e.g. any://localhost:5000/binary")
    p.add_argument(
        "--timeout",
        type=_timeout_arg,
        default=DEFAULT_TIMEOUT_S,
        help="UDP response timeout in seconds",
    )
    p.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    p.set_defaults(func=cmd_negotiate)
    return p


def _target_arg(value: str) -> Target:
    try:
        return parse_target(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def _timeout_arg(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if not 0 < seconds < float("inf"):
        raise argparse.ArgumentTypeError(f"timeout must be a positive number of seconds, got {value}")
    return seconds


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
