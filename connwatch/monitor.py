"""Owner of the active set, history and navigation state, fed one tick or one key at a time."""

import threading
import time
from collections import namedtuple

from .config import debug_log
from .engine import Reconciler
from .navigation import ACTIVE, HISTORY, Navigator
from .parser import parse_lsof

View = namedtuple("View", ["active", "history", "focus", "selected", "offset", "status", "is_error"])

SWITCH_FOCUS = "switch_focus"
MOVE_UP = "move_up"
MOVE_DOWN = "move_down"
PAGE_UP = "page_up"
PAGE_DOWN = "page_down"
ACTIONS = (SWITCH_FOCUS, MOVE_UP, MOVE_DOWN, PAGE_UP, PAGE_DOWN)


class Monitor:
    """
    The single owner of everything the screen shows.

    Ticks (``apply_sample``) and key presses (``handle_action``) each run as
    one episode under ``lock``, so a half-applied tick is never visible to
    the input path or the renderer.
    """

    def __init__(self, target, history_capacity=1000, page_size=10, viewport=10, clock=None):
        self.target = target
        self.lock = threading.Lock()
        self.reconciler = Reconciler(history_capacity, clock=clock or time.time)
        self.nav = Navigator(viewport=viewport, page_size=page_size)
        self.status = "Initializing..."
        self.is_error = False
        self.pids = frozenset()

    @property
    def active(self):
        return self.reconciler.active

    @property
    def history(self):
        return self.reconciler.history

    def apply_sample(self, sample):
        return self.apply_listing(sample.pids, sample.listing)

    def apply_listing(self, pids, listing):
        """Parse, reconcile and re-clamp navigation for one tick."""
        with self.lock:
            pids = frozenset(pids)
            if pids != self.pids:
                debug_log(f"MONITOR: '{self.target}' now resolves to {sorted(pids) or 'nothing'}")
                self.pids = pids

            if not listing.ok:
                result = self.reconciler.skip()
                self._set_status(f"lsof error: {listing.error}", error=True)
            elif not pids:
                result = self.reconciler.reconcile({})
                self._set_status(f"Waiting for process '{self.target}'...", error=True)
            else:
                parsed = parse_lsof(listing.text, pids)
                if parsed.skipped:
                    debug_log(f"MONITOR: Skipped {parsed.skipped} malformed line(s) on tick {self.reconciler.tick + 1}")
                result = self.reconciler.reconcile(parsed.records)
                label = "PID" if len(pids) == 1 else "PIDs"
                msg = f"Monitoring {label}: {', '.join(str(p) for p in sorted(pids))}"
                msg += f" | {len(self.reconciler.active)} active, +{len(result.opened)} -{len(result.closed)}"
                if parsed.skipped:
                    msg += f" | {parsed.skipped} unreadable line(s)"
                self._set_status(msg, error=False)

            self.nav.list_resized(ACTIVE, len(self.reconciler.active))
            self.nav.list_resized(HISTORY, len(self.reconciler.history))
            return result

    def _set_status(self, msg, error):
        self.status = msg
        self.is_error = error

    def handle_action(self, action):
        if action not in ACTIONS:
            return False
        with self.lock:
            getattr(self.nav, action)()
        return True

    def set_viewport(self, rows):
        with self.lock:
            self.nav.set_viewport(rows)

    def view(self):
        """Consistent read-only copy for one frame."""
        with self.lock:
            return View(
                active=self.reconciler.active_rows(),
                history=self.reconciler.history.newest_first(),
                focus=self.nav.focus,
                selected=self.nav.selected,
                offset=self.nav.offset,
                status=self.status,
                is_error=self.is_error,
            )
