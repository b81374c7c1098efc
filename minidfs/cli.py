"""Entry point: start a node in the role given on the command line."""

from __future__ import annotations

from .client import ClientNode
from .config import Configs
from .data import DataNode
from .dns import DnsNode
from .master import MasterNode
from .roles import Role


def main(argv: list[str] | None = None) -> int:
    """Read the configuration and run the chosen node until it stops."""
    configs = Configs.initialize(argv)
    role = configs.args.role

    if role is Role.MASTER:
        MasterNode(configs).start(configs.args.port)
    elif role is Role.DATA:
        DataNode(configs).start(configs.args.port)
    elif role is Role.DNS:
        DnsNode(configs).start(configs.port_dns)
    elif role is Role.CLIENT:
        ClientNode(configs).start(configs.args.port)
    else:
        raise ValueError("Invalid role argument")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())