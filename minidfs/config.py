"""Command-line arguments and environment settings of a node."""

from __future__ import annotations

import argparse
import ipaddress
import logging
import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

from .packets import Action
from .roles import Role

log = logging.getLogger(__name__)

_VERSION = "0.1.0"
DEFAULT_PORT = 7888
DEFAULT_DIR_DATA = "./data"
DEFAULT_TIMEOUT_CHANNEL_WAIT = 1


@dataclass
class Args:
    """Options given on the command line."""

    role: Role
    port: int = DEFAULT_PORT
    dir_data: str = DEFAULT_DIR_DATA
    action: Action | None = None
    name: str | None = None
    path: str | None = None


@dataclass
class Configs:
    """Everything a node needs to start."""

    ip_dns: str
    port_dns: int
    interval_heartbeat: int
    timeout_chan_wait: int
    args: Args

    @classmethod
    def initialize(cls, argv: list[str] | None = None) -> Configs:
        """Read the environment (and a .env file) and the command line."""
        load_dotenv(find_dotenv(usecwd=True))

        ip_text = _require_env("IP_DNS")
        try:
            ip_dns = str(ipaddress.IPv4Address(ip_text))
        except ValueError:
            raise ValueError("Cannot parse env 'IP_DNS' to correct IP address format") from None
        port_dns = _parse_port(_require_env("PORT_DNS"))
        interval_heartbeat = _parse_unsigned(_require_env("HEARTBEAT_INTERVAL_SECOND"))
        timeout_text = os.environ.get("TIMEOUT_CHANNEL_WAIT")
        timeout_chan_wait = (
            DEFAULT_TIMEOUT_CHANNEL_WAIT if timeout_text is None else _parse_unsigned(timeout_text)
        )

        level = os.environ.get("LOG_LEVEL", "info").upper()
        logging.basicConfig(level=level)

        args = parse_args(argv)

        if args.role is Role.CLIENT:
            for field in ("action", "name", "path"):
                if getattr(args, field) is None:
                    log.error("Role: Client - Missing argument: '%s'", field)
                    raise SystemExit(1)

        return cls(
            ip_dns=ip_dns,
            port_dns=port_dns,
            interval_heartbeat=interval_heartbeat,
            timeout_chan_wait=timeout_chan_wait,
            args=args,
        )


def _require_env(name: str) -> str:
    try:
        return os.environ[name]
    except KeyError:
        raise KeyError(f"env '{name}' not existed") from None


def _parse_unsigned(text: str) -> int:
    value = int(text)
    if value < 0:
        raise ValueError(f"Expected a non-negative integer, got: {text}")
    return value


def _parse_port(text: str) -> int:
    value = int(text)
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"Port out of range: {text}")
    return value


def _arg_type(parse):
    def convert(text: str):
        try:
            return parse(text)
        except ValueError as err:
            raise argparse.ArgumentTypeError(str(err)) from None

    convert.__name__ = getattr(parse, "__name__", "value")
    return convert


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="minidfs", description="A small distributed file system node.")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {_VERSION}")
    parser.add_argument("-r", "--role", required=True, type=_arg_type(Role.parse))
    parser.add_argument("-p", "--port", type=_arg_type(_parse_port), default=DEFAULT_PORT)
    parser.add_argument("-d", "--dir-data", dest="dir_data", default=DEFAULT_DIR_DATA)
    parser.add_argument("--action", type=_arg_type(Action.parse))
    parser.add_argument("--name")
    parser.add_argument("--path")
    return parser


def parse_args(argv: list[str] | None = None) -> Args:
    """Parse command-line arguments; argparse exits on invalid input."""
    namespace = _build_parser().parse_args(argv)
    return Args(
        role=namespace.role,
        port=namespace.port,
        dir_data=namespace.dir_data,
        action=namespace.action,
        name=namespace.name,
        path=namespace.path,
    )