"""Reconciliation of successive snapshots and the bounded history of closed connections."""

import time
from collections import deque, namedtuple

TickResult = namedtuple("TickResult", ["tick", "opened", "closed"])


class HistoryStore:
    """Append-only log of closed connections, oldest first, FIFO-evicted at capacity."""

    def __init__(self, capacity=1000):
        if capacity < 1:
            raise ValueError("history capacity must be at least 1")
        self._entries = deque(maxlen=capacity)

    @property
    def capacity(self):
        return self._entries.maxlen

    def append(self, record):
        self._entries.append(record)

    def get(self, index):
        if not 0 <= index < len(self._entries):
            raise IndexError(f"history index {index} out of range")
        return self._entries[index]

    def newest_first(self):
        return list(reversed(self._entries))

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))


def _sort_key(record):
    # Listening sockets last, then by remote address, then by identity text.
    remote = record.identity.remote
    if remote is None:
        return (2, 0, 0, "", str(record.identity))
    ip = remote.ip()
    if ip is None:
        return (1, 0, 0, remote.host, str(record.identity))
    return (0, ip.version, int(ip), "", str(record.identity))


class Reconciler:
    """
    Owns the active set and the history store.

    Every tick either ``reconcile`` (a listing was obtained, even if empty)
    or ``skip`` (the listing failed) is called exactly once.
    """

    def __init__(self, history_capacity=1000, clock=time.time):
        self.history = HistoryStore(history_capacity)
        self.active = {}
        self.tick = 0
        self._clock = clock

    def next_tick(self):
        self.tick += 1
        return self.tick

    def reconcile(self, records, tick=None):
        """
        Replace the active set with ``records`` (identity -> record) observed
        at ``tick`` and push whatever vanished onto the history.
        """
        if tick is None:
            tick = self.next_tick()
        else:
            self.tick = tick
        now = self._clock()

        new_active = {}
        opened = []
        for identity, record in records.items():
            previous = self.active.get(identity)
            if previous is not None:
                new_active[identity] = previous.observed(tick, record.state_label, now)
            else:
                new_active[identity] = record.stamped(tick, now)
                opened.append(identity)

        closed = sorted(
            (rec for identity, rec in self.active.items() if identity not in new_active),
            key=lambda rec: str(rec.identity),
        )
        for record in closed:
            self.history.append(record)

        self.active = new_active
        opened.sort(key=str)
        return TickResult(tick, opened, closed)

    def skip(self, tick=None):
        """Account for a tick whose listing failed: nothing opens, nothing closes."""
        if tick is None:
            tick = self.next_tick()
        else:
            self.tick = tick
        return TickResult(tick, [], [])

    def active_rows(self):
        """Active records in display order."""
        return sorted(self.active.values(), key=_sort_key)
