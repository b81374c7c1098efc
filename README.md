# minidfs

A small distributed file store made of four kinds of node that talk to each
other over TCP:

- **DNS**: remembers the address of the Master node, as announced by the
  Master, and hands it out to nodes that ask.
- **Master**: keeps an in-memory table of nodes and of which node holds which
  file, picks the node a client should upload to, and starts replication.
  The Master records itself as a node, so it can be picked too.
- **Data**: stores files in its data directory, answers heartbeats, and sends
  a replica of a file to another node when the Master asks it to.
- **Client**: uploads one local file to the cluster.

Each node runs a receiver thread, a sender thread and a processor loop. All
messages use one packet format: a one-byte packet id, a four-byte big-endian
payload length, then the payload.

## Installing

```
pip install .
```

## Configuration

Settings are read from the environment, and from a `.env` file found in the
working directory or one of its parents:

| Variable                    | Meaning                                  | Required          |
|-----------------------------|------------------------------------------|-------------------|
| `IP_DNS`                    | IPv4 address of the DNS node             | yes               |
| `PORT_DNS`                  | Port of the DNS node                     | yes               |
| `HEARTBEAT_INTERVAL_SECOND` | Seconds between heartbeats               | yes               |
| `TIMEOUT_CHANNEL_WAIT`      | Seconds the processor waits for a packet | no (default 1)    |
| `LOG_LEVEL`                 | Logging level, e.g. `debug` or `info`    | no (default info) |

A missing required variable raises `KeyError`; a value that cannot be parsed
raises `ValueError`.

Example `.env`:

```
IP_DNS=127.0.0.1
PORT_DNS=7000
HEARTBEAT_INTERVAL_SECOND=5
```

## Running a cluster

Start each node in its own terminal. The DNS node listens on `PORT_DNS`; the
others listen on `--port` (default 7888). Nodes give their own address as
`127.0.0.1`, so a cluster runs on a single machine.

```
minidfs --role dns
minidfs --role master --port 7888 --dir-data ./data_master
minidfs --role data --port 7889 --dir-data ./data_node1
```

Upload a file from a client:

```
minidfs --role client --port 7900 --action write --name report.txt --path ./report.txt
```

The client asks the DNS node for the Master's address, asks the Master which
node should receive the file, uploads it there and waits for the
acknowledgement. The receiving node reports the upload to the Master, which
picks the node holding the fewest files and asks the holder to copy the file
there.

Options:

- `-r`, `--role`: `dns`, `master`, `data` or `client` (required)
- `-p`, `--port`: port this node listens on (default 7888)
- `-d`, `--dir-data`: directory where files are stored (default `./data`)
- `--action`: `read` or `write` (client only)
- `--name`: name to store the file under (client only)
- `--path`: local file to upload (client only)
- `-V`, `--version`: print the version and exit

A client started without `--action`, `--name` or `--path` logs the missing
option and exits with status 1.

## Using the library

The packet codec can be used on its own:

```python
from minidfs.packets import Packet
from minidfs.parser import parse_packet

packet = Packet.create_ask_ip(("127.0.0.1", 7000), 7900)
raw = packet.to_bytes()
parsed = parse_packet(raw, ("127.0.0.1", 5555))
# parsed.addr_sender == ("127.0.0.1", 7900)
```

`parse_packet` raises `minidfs.errors.ParseError` for malformed input, and
`minidfs.parser.read_packet` reads and decodes one packet from a connected
socket.

Other building blocks:

- `minidfs.database.DBManager`: the node and file tables in an in-memory
  SQLite database (`initialize_db`, `upsert_node`, `upsert_file`,
  `get_data_nodes`, `get_nodes_replication`, `close`).
- `minidfs.file_store.FileStore`: reads and writes whole files in a data
  directory.
- `minidfs.addresses`: `addr_to_id` and `id_to_addr` convert between
  `(ip, port)` and node ids of the form `"ip:port"`.
- `minidfs.dns.DnsNode`, `minidfs.master.MasterNode`, `minidfs.data.DataNode`
  and `minidfs.client.ClientNode`: the node types; each has `start(port)`,
  and the server nodes have `handle_packet(packet, outbox)` for processing a
  single packet.

## What it does not do

- Reading a file back is not supported: `--action read` makes the client do
  nothing, and the Master ignores read requests.
- The Master does not send heartbeats; `HEARTBEAT_INTERVAL_SECOND` is read
  but not used to schedule anything.
- The node and file tables live in memory only and are lost when a node
  stops.

## Tests

```
pip install .[test]
pytest
```