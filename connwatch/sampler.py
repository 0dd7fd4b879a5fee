"""Finding the target process and listing its sockets, on a background thread."""

import os
import queue
import subprocess
import threading
import time
from collections import namedtuple
from shutil import which

import psutil

from .config import CONFIG, debug_log

Listing = namedtuple("Listing", ["ok", "text", "error"])
Sample = namedtuple("Sample", ["pids", "listing", "taken_at"])


def resolve_pids(name, match_cmdline=True):
    """Return the set of PIDs whose process name (or command line) matches ``name``."""
    own = os.getpid()
    excluded = {own}
    try:
        # a `sudo connwatch <name>` parent matches its own command line
        excluded.update(p.pid for p in psutil.Process(own).parents())
    except psutil.Error:
        pass
    pids = set()
    for proc in psutil.process_iter(['pid', 'name', 'cmdline']):
        try:
            info = proc.info
            if info['pid'] in excluded:
                continue
            if info.get('name') == name:
                pids.add(info['pid'])
            elif match_cmdline and name in " ".join(info.get('cmdline') or []):
                pids.add(info['pid'])
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue
    return pids


def lsof_command(pids, use_sudo=True):
    cmd = ["lsof", "-w", "-n", "-P", "-i", "-a", "-p", ",".join(str(p) for p in sorted(pids))]
    if use_sudo and os.geteuid() != 0 and which("sudo"):
        # -n: never prompt, the terminal belongs to curses
        cmd = ["sudo", "-n"] + cmd
    return cmd


def list_connections(pids, use_sudo=True, timeout=3.0):
    """
    Run lsof for ``pids`` and return a Listing.

    lsof exits 1 with nothing on stderr when the processes have no network
    files; that is an empty success, not a failure.
    """
    if not pids:
        return Listing(True, "", None)
    try:
        result = subprocess.run(
            lsof_command(pids, use_sudo),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            timeout=timeout
        )
    except subprocess.TimeoutExpired:
        return Listing(False, "", f"lsof timed out after {timeout:g}s")
    except (OSError, ValueError) as e:
        return Listing(False, "", str(e))
    stderr = (result.stderr or "").strip()
    if result.returncode != 0 and stderr:
        return Listing(False, "", stderr.splitlines()[0])
    return Listing(True, result.stdout, None)


class Sampler(threading.Thread):
    """Background producer: resolves the target, lists its sockets and queues a Sample."""

    def __init__(self, target, out_queue=None, interval=None, resolver=None, lister=None):
        super().__init__(daemon=True, name="Sampler")
        self.target = target
        self.queue = out_queue if out_queue is not None else queue.Queue()
        self.interval = interval if interval is not None else CONFIG["sample_interval"]
        self.resolver = resolver or (lambda name: resolve_pids(name, CONFIG["match_cmdline"]))
        self.lister = lister or (lambda pids: list_connections(
            pids, CONFIG["use_sudo"], CONFIG["lister_timeout"]))
        self._stop_event = threading.Event()
        self._last_pids = frozenset()

    def stop(self):
        self._stop_event.set()

    def sample_once(self):
        try:
            pids = self.resolver(self.target)
        except psutil.Error as e:
            debug_log(f"SAMPLER: Process lookup failed: {e}")
            pids = set()
        listing = self.lister(pids)
        if not listing.ok:
            debug_log(f"SAMPLER: Listing failed for {sorted(pids)}: {listing.error}")
        self._last_pids = frozenset(pids)
        sample = Sample(self._last_pids, listing, time.time())
        self.queue.put(sample)
        return sample

    def run(self):
        debug_log(f"SAMPLER: Watching '{self.target}' every {self.interval:g}s")
        while not self._stop_event.is_set():
            started = time.time()
            try:
                self.sample_once()
            except Exception as e:
                debug_log(f"SAMPLER: Sample failed: {e!r}")
                listing = Listing(False, "", f"sampler error: {e}")
                self.queue.put(Sample(self._last_pids, listing, time.time()))
            elapsed = time.time() - started
            self._stop_event.wait(max(0.0, self.interval - elapsed))
