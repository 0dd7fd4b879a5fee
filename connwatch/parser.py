"""
Turn one ``lsof -i`` capture into connection records.

Expected columns (``lsof -w -n -P -i``)::

    COMMAND PID USER FD TYPE DEVICE SIZE/OFF NODE NAME [(STATE)]

Rows that belong to other processes, the header and anything with the wrong
column count are dropped without comment. Rows for a watched PID whose NAME
cannot be read are counted as skipped so the caller can report them.
"""

from collections import namedtuple

from .records import ConnectionKey, ConnectionRecord, Endpoint

MIN_FIELDS = 9
MAX_FIELDS = 10
INET_PROTOCOLS = {"TCP", "UDP", "UDPLITE", "SCTP"}

ParseResult = namedtuple("ParseResult", ["records", "skipped"])


def parse_endpoint(text):
    """Parse ``host:port`` / ``[v6host]:port``. Returns None if it isn't one."""
    if text.startswith("["):
        end = text.find("]")
        if end < 0 or text[end + 1:end + 2] != ":":
            return None
        host, port = text[1:end], text[end + 2:]
    else:
        if ":" not in text:
            return None
        host, port = text.rsplit(":", 1)
    if not host or not (port.isdigit() or port == "*"):
        return None
    return Endpoint(host, port)


def parse_name(name):
    """Split the NAME column into (local, remote). Raises ValueError if malformed."""
    if "->" in name:
        local_text, remote_text = name.split("->", 1)
        local, remote = parse_endpoint(local_text), parse_endpoint(remote_text)
        if local is None or remote is None:
            raise ValueError(f"bad connection name {name!r}")
        return local, remote
    local = parse_endpoint(name)
    if local is None:
        raise ValueError(f"bad socket name {name!r}")
    return local, None


def parse_line(line, pids):
    """
    Parse one lsof row.

    Returns a ConnectionRecord, None for rows that are not ours to parse
    (header, other processes, non-internet sockets), or raises ValueError
    for a row of a watched process that is malformed.
    """
    parts = line.split()
    if not MIN_FIELDS <= len(parts) <= MAX_FIELDS:
        return None
    if not parts[1].isdigit():
        return None
    pid = int(parts[1])
    if pid not in pids:
        return None
    protocol = parts[7].upper()
    if protocol not in INET_PROTOCOLS:
        return None

    local, remote = parse_name(parts[8])
    state = ""
    if len(parts) == MAX_FIELDS:
        raw_state = parts[9]
        if not (raw_state.startswith("(") and raw_state.endswith(")")):
            raise ValueError(f"bad state column {raw_state!r}")
        state = raw_state[1:-1]

    key = ConnectionKey(protocol, local, remote, pid)
    return ConnectionRecord(identity=key, state_label=state, command=parts[0])


def parse_lsof(text, pids):
    """
    Parse a whole capture for the given PIDs.

    Duplicate identities collapse to one record (the same socket is listed
    once per file descriptor); the last row wins. Never raises for bad rows.
    """
    pids = {int(p) for p in pids}
    records = {}
    skipped = 0
    for line in (text or "").splitlines():
        try:
            record = parse_line(line, pids)
        except ValueError:
            skipped += 1
            continue
        if record is not None:
            records[record.identity] = record
    return ParseResult(records, skipped)
