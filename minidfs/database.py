"""In-memory metadata store: which files exist and which nodes hold them."""

from __future__ import annotations

import ipaddress
import logging
import sqlite3
from datetime import datetime

from .addresses import addr_to_id, id_to_addr
from .entries import FileInfoEntry, NodeInfoEntry
from .errors import DBManagerCreationError
from .roles import Role

log = logging.getLogger(__name__)

NAME_DB_NODE = "node_info"
NAME_DB_FILE = "file_info"

_LOOPBACK = "127.0.0.1"


def _now() -> str:
    return datetime.now().astimezone().isoformat()


def _parse_timestamp(text: str | None) -> datetime | None:
    return None if text is None else datetime.fromisoformat(text)


class FileInfoTable:
    """Table mapping each filename to the node that holds it."""

    def __init__(self, conn: sqlite3.Connection, name: str = NAME_DB_FILE) -> None:
        self.conn = conn
        self.name = name

    def create(self) -> None:
        """Create the table if it does not exist yet."""
        log.info("Creating db %s", self.name)
        self.conn.execute(
            f"""CREATE TABLE IF NOT EXISTS {self.name} (
                filename        TEXT    PRIMARY KEY
                ,is_local       BOOLEAN NOT NULL
                ,node           TEXT    NOT NULL
                ,last_updated   TEXT    NOT NULL
            );"""
        )

    def upsert(self, info: FileInfoEntry) -> None:
        """Insert or replace the row for ``info.filename``; failures are logged."""
        try:
            cursor = self.conn.execute(
                f"""INSERT INTO {self.name}
                (filename, is_local, node, last_updated)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(filename) DO UPDATE SET
                    is_local = excluded.is_local,
                    node = excluded.node,
                    last_updated = excluded.last_updated
                ;""",
                (info.filename, bool(info.is_local), info.node_id, _now()),
            )
            log.debug("Upserted: %d", cursor.rowcount)
        except sqlite3.Error as err:
            log.error("%s", err)

    def all_entries(self) -> list[FileInfoEntry]:
        """Return every row of the table."""
        rows = self.conn.execute(
            f"SELECT filename, is_local, node, last_updated FROM {self.name};"
        ).fetchall()
        return [self._entry(row) for row in rows]

    def get_file_info(self, filename: str) -> list[FileInfoEntry]:
        """Return the rows for ``filename`` (at most one)."""
        rows = self.conn.execute(
            f"SELECT filename, is_local, node, last_updated FROM {self.name} WHERE filename = ?;",
            (filename,),
        ).fetchall()
        return [self._entry(row) for row in rows]

    @staticmethod
    def _entry(row: tuple) -> FileInfoEntry:
        filename, is_local, node, last_updated = row
        return FileInfoEntry(
            filename=filename,
            is_local=int(is_local) == 1,
            node_id=node,
            last_updated=_parse_timestamp(last_updated),
        )


class NodeInfoTable:
    """Table of the nodes known to the Master."""

    def __init__(self, conn: sqlite3.Connection, name: str = NAME_DB_NODE) -> None:
        self.conn = conn
        self.name = name

    def create(self) -> None:
        """Create the table if it does not exist yet."""
        log.info("Creating db %s", self.name)
        self.conn.execute(
            f"""CREATE TABLE IF NOT EXISTS {self.name} (
                node_id         TEXT    PRIMARY KEY
                ,ip             TEXT    NOT NULL
                ,port           INTEGER NOT NULL
                ,role           INTEGER NOT NULL
                ,last_updated   TEXT    NOT NULL
            );"""
        )

    def upsert(self, ip: str | ipaddress.IPv4Address, port: int, role: Role) -> None:
        """Insert or replace the node at ``ip:port``; database failures are logged."""
        node_id = addr_to_id(ip, port)
        try:
            cursor = self.conn.execute(
                f"""INSERT INTO {self.name}
                (node_id, ip, port, role, last_updated)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(node_id) DO UPDATE SET
                    ip = excluded.ip,
                    port = excluded.port,
                    role = excluded.role,
                    last_updated = excluded.last_updated
                ;""",
                (node_id, str(ipaddress.IPv4Address(ip)), port, role.to_byte(), _now()),
            )
            log.info("Upserted: %d", cursor.rowcount)
        except sqlite3.Error as err:
            log.error("%s", err)

    def get_node_info(self, ip: str | ipaddress.IPv4Address, port: int) -> list[NodeInfoEntry]:
        """Return the rows for the node at ``ip:port`` (at most one)."""
        rows = self.conn.execute(
            f"SELECT node_id, ip, port, role, last_updated FROM {self.name} WHERE node_id = ?;",
            (addr_to_id(ip, port),),
        ).fetchall()
        return [self._entry(row) for row in rows]

    def get_data_nodes(self) -> list[NodeInfoEntry]:
        """Return every node whose role is Data."""
        rows = self.conn.execute(
            f"SELECT node_id, ip, port, role, last_updated FROM {self.name} WHERE role = ?;",
            (Role.DATA.to_byte(),),
        ).fetchall()
        return [self._entry(row) for row in rows]

    @staticmethod
    def _entry(row: tuple) -> NodeInfoEntry:
        node_id, ip_text, port, role, last_updated = row
        try:
            ip: str | None = str(ipaddress.IPv4Address(ip_text))
        except ValueError as err:
            log.error("Cannot parse following to Ipv4: %s: %s", ip_text, err)
            ip = None
        return NodeInfoEntry(
            node_id=node_id,
            ip=ip,
            port=int(port),
            role=Role.from_byte(int(role)),
            last_updated=_parse_timestamp(last_updated),
        )


class DBManager:
    """Owns the in-memory database of one node and its tables."""

    def __init__(self, port: int) -> None:
        self.port = port
        try:
            self._conn = sqlite3.connect(":memory:", isolation_level=None, check_same_thread=False)
        except sqlite3.Error as err:
            log.error("Error as initializing in-memory DB: %s", err)
            raise DBManagerCreationError(str(err)) from err
        self.db_node: NodeInfoTable | None = None
        self.db_file: FileInfoTable | None = None

    def __enter__(self) -> DBManager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def initialize_db(self, role: Role) -> None:
        """Create the tables; a Master also gets a node table and records itself in it."""
        try:
            db_file = FileInfoTable(self._conn)
            db_file.create()
        except sqlite3.Error as err:
            log.error("Error as initializing in-memory DB: %s", err)
            raise DBManagerCreationError(str(err)) from err
        self.db_file = db_file

        if role is not Role.MASTER:
            self.db_node = None
            return

        try:
            db_node = NodeInfoTable(self._conn)
            db_node.create()
        except sqlite3.Error as err:
            log.error("Error as initializing in-memory DB: %s", err)
            raise DBManagerCreationError(str(err)) from err
        db_node.upsert(_LOOPBACK, self.port, Role.MASTER)
        self.db_node = db_node

    def get_nodes_replication(self, n: int) -> list[tuple[str, int]]:
        """Return up to ``n`` node addresses, those holding the fewest files first.

        Raises sqlite3.Error if the node table does not exist and ValueError
        if a stored node id is not a valid address.
        """
        rows = self._conn.execute(
            f"""SELECT
                    t1.node_id
                    , COALESCE(count, 0) as count
                FROM {NAME_DB_NODE} t1
                LEFT JOIN (
                    SELECT
                        node as node_id
                        , COUNT(*) as count
                    FROM {NAME_DB_FILE}
                    GROUP BY node
                ) t2 ON 1=1
                    AND t2.node_id = t1.node_id
                ORDER BY count
                LIMIT ?
                ;""",
            (n,),
        ).fetchall()
        for node_id, count in rows:
            log.debug("get_nodes_replication: inside: %s - %s", node_id, count)
        return [id_to_addr(node_id) for node_id, _ in rows]

    def upsert_node(self, ip: str | ipaddress.IPv4Address, port: int, role: Role) -> None:
        """Record a node; only available after initialising as Master."""
        self._node_table().upsert(ip, port, role)

    def upsert_file(self, info: FileInfoEntry) -> None:
        """Record which node holds a file."""
        self._file_table().upsert(info)

    def get_data_nodes(self) -> list[NodeInfoEntry]:
        """Return every known Data node."""
        return self._node_table().get_data_nodes()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _node_table(self) -> NodeInfoTable:
        if self.db_node is None:
            raise RuntimeError("Node table is not initialised")
        return self.db_node

    def _file_table(self) -> FileInfoTable:
        if self.db_file is None:
            raise RuntimeError("File table is not initialised")
        return self.db_file