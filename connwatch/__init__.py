#!/usr/bin/env python3
import sys
import curses
import os
import time
import queue
import argparse
from shutil import which

from .config import CONFIG, init_config, save_config, debug_log
from .monitor import Monitor, SWITCH_FOCUS, MOVE_UP, MOVE_DOWN, PAGE_UP, PAGE_DOWN
from .navigation import ACTIVE, HISTORY
from .sampler import Sampler

KEY_TAB = 9
KEY_QUIT = ord('q')
KEY_THEME = ord('c')

# --------------------------------------------------
# 🎨 Themes & Colors
# --------------------------------------------------
# Curses color pair IDs (1-based because 0 is reserved)
CP_HEADER = 1   # Titles, column headers
CP_ACCENT = 2   # Focused border, selection
CP_TEXT = 3     # Normal body text
CP_WARN = 4     # Errors, waiting state
CP_BORDER = 5   # Unfocused borders, separators

THEMES = [
    {
        "name": "🔵 VSCode Dark (Default)",
        "colors": {
            CP_HEADER: (curses.COLOR_BLUE, -1),
            CP_ACCENT: (curses.COLOR_CYAN, -1),
            CP_TEXT: (curses.COLOR_WHITE, -1),
            CP_WARN: (curses.COLOR_RED, -1),
            CP_BORDER: (curses.COLOR_BLUE, -1)
        },
        "colors_256": {
            CP_HEADER: (33, 234),
            CP_ACCENT: (45, 234),
            CP_TEXT: (255, 234),
            CP_WARN: (203, 234),
            CP_BORDER: (240, 234)
        },
    },
    {
        "name": "🔸 Gruvbox Dark (Retro)",
        "colors": {
            CP_HEADER: (curses.COLOR_YELLOW, -1),
            CP_ACCENT: (curses.COLOR_CYAN, -1),
            CP_TEXT: (curses.COLOR_WHITE, -1),
            CP_WARN: (curses.COLOR_RED, -1),
            CP_BORDER: (curses.COLOR_YELLOW, -1)
        },
        "colors_256": {
            CP_HEADER: (214, 235),   # Orange1
            CP_ACCENT: (108, 235),   # Aqua
            CP_TEXT: (223, 235),     # Cream
            CP_WARN: (167, 235),     # IndianRed
            CP_BORDER: (246, 235)    # Grey
        },
    },
    {
        "name": "🟢 Phosphor (Terminal)",
        "colors": {
            CP_HEADER: (curses.COLOR_GREEN, -1),
            CP_ACCENT: (curses.COLOR_WHITE, -1),
            CP_TEXT: (curses.COLOR_GREEN, -1),
            CP_WARN: (curses.COLOR_RED, -1),
            CP_BORDER: (curses.COLOR_GREEN, -1)
        },
        "colors_256": {
            CP_HEADER: (46, 232),    # Green1 on near-black
            CP_ACCENT: (157, 232),   # DarkSeaGreen1
            CP_TEXT: (34, 232),      # Green3
            CP_WARN: (196, 232),     # Red1
            CP_BORDER: (22, 232)     # DarkGreen
        },
    },
]


def apply_current_theme(stdscr=None):
    """Initializes color pairs for CONFIG['theme'], using 256 colors if available."""
    if not curses.has_colors():
        return
    theme = THEMES[CONFIG["theme"] % len(THEMES)]
    curses.start_color()
    use_256 = curses.COLORS >= 256
    try:
        curses.use_default_colors()
    except curses.error:
        pass
    color_map = theme["colors_256"] if use_256 else theme["colors"]
    for pair_id, (fg, bg) in color_map.items():
        try:
            curses.init_pair(pair_id, fg, bg)
        except curses.error:
            pass
    if stdscr:
        try:
            stdscr.bkgdset(' ', curses.color_pair(CP_TEXT))
        except curses.error:
            pass


def cycle_theme(stdscr):
    CONFIG["theme"] = (CONFIG["theme"] + 1) % len(THEMES)
    save_config()
    apply_current_theme(stdscr)
    return THEMES[CONFIG["theme"]]["name"]


# --------------------------------------------------
# Checks
# --------------------------------------------------
def check_python_version():
    if sys.version_info < (3, 7):
        print("Python 3.7 or newer is required.")
        sys.exit(1)


def check_lsof_exists():
    if which("lsof") is None:
        print("Error: 'lsof' command not found. Please install 'lsof' and ensure it is in your PATH.")
        sys.exit(1)


def check_terminal_size(min_cols=80, min_rows=12):
    try:
        size = os.get_terminal_size()
    except OSError:
        return
    if size.columns < min_cols or size.lines < min_rows:
        print(f"Terminal too small: {size.columns}x{size.lines}, need at least {min_cols}x{min_rows}.")
        sys.exit(1)


def _get_app_version():
    try:
        v_file = os.path.join(os.path.dirname(__file__), "VERSION")
        with open(v_file) as f:
            return f.read().strip()
    except OSError:
        return "0.1.0"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="connwatch",
        description="Watch the network connections of a named process."
    )
    parser.add_argument("target", help="Process name (or command line fragment) to watch")
    parser.add_argument("--version", action="version", version=f"connwatch {_get_app_version()}")
    parser.add_argument("--interval", type=float, help="Seconds between samples")
    parser.add_argument("--history", type=int, help="Number of closed connections to keep")
    parser.add_argument("--no-sudo", action="store_true", help="Run lsof without sudo")
    return parser.parse_args(argv)


def apply_args(args):
    if args.interval is not None and args.interval > 0:
        CONFIG["sample_interval"] = args.interval
    if args.history is not None and args.history > 0:
        CONFIG["history_capacity"] = args.history
    if args.no_sudo:
        CONFIG["use_sudo"] = False


# --------------------------------------------------
# Rendering
# --------------------------------------------------
def format_active_row(rec):
    ident = rec.identity
    remote = str(ident.remote) if ident.remote is not None else "*"
    state = rec.state_label or "-"
    return f"🚀 {ident.protocol:<4} {str(ident.local):<22} → {remote:<28} {state:<12} {rec.command}/{ident.pid}"


def format_history_row(rec):
    ident = rec.identity
    ts = time.strftime("%H:%M:%S", time.localtime(rec.seen_at))
    remote = str(ident.remote) if ident.remote is not None else "*"
    span = f"#{rec.first_seen}" if rec.first_seen == rec.last_seen else f"#{rec.first_seen}-{rec.last_seen}"
    return f"[{ts}] {ident.protocol:<4} {str(ident.local):<22} → {remote:<28} {span}"


def panel_rows(height):
    """Number of list rows visible in a panel of the given height."""
    return max(1, height - 4)


def draw_panel(win, title, lines, selected, offset, is_active=False):
    """Boxed list with a title, a header rule and the visible slice of ``lines``."""
    win.erase()
    h, w = win.getmaxyx()
    b_color = curses.color_pair(CP_ACCENT) | curses.A_BOLD if is_active else curses.color_pair(CP_BORDER)
    try:
        win.attron(b_color)
        win.box()
        win.attroff(b_color)
    except curses.error:
        pass

    try:
        win.addstr(1, 1, title[:max(0, w - 2)], curses.color_pair(CP_HEADER) | curses.A_BOLD)
        win.hline(2, 1, curses.ACS_HLINE, w - 2, curses.color_pair(CP_BORDER))
    except curses.error:
        pass

    if not lines:
        try:
            win.addstr(3, 2, "(none)"[:max(0, w - 4)], curses.color_pair(CP_TEXT) | curses.A_DIM)
        except curses.error:
            pass

    max_len = max(1, w - 2)
    for i in range(panel_rows(h)):
        idx = offset + i
        if idx >= len(lines):
            break
        if is_active and idx == selected:
            attr = curses.color_pair(CP_ACCENT) | curses.A_REVERSE
        else:
            attr = curses.color_pair(CP_TEXT)
        try:
            win.addstr(i + 3, 1, lines[idx][:max_len].ljust(max_len), attr)
        except curses.error:
            pass
    win.noutrefresh()


def draw_status_bar(stdscr, status, is_error):
    h, w = stdscr.getmaxyx()
    attr = curses.color_pair(CP_WARN if is_error else CP_ACCENT) | curses.A_BOLD
    hints = " q Quit  Tab Focus  ↑↓ Select  PgUp/PgDn Page  c Color "
    try:
        stdscr.addstr(h - 1, 0, f" {status}"[:max(0, w - 1)].ljust(max(0, w - 1)), attr)
        if len(status) + len(hints) + 2 < w:
            stdscr.addstr(h - 1, w - len(hints) - 1, hints, curses.color_pair(CP_BORDER))
    except curses.error:
        pass
    stdscr.noutrefresh()


def draw_screen(stdscr, target, view):
    h, w = stdscr.getmaxyx()
    panel_h = max(5, h - 1)
    left_w = w // 2
    right_w = w - left_w

    active_lines = [format_active_row(r) for r in view.active]
    history_lines = [format_history_row(r) for r in view.history]
    focus_active = view.focus == ACTIVE

    active_win = stdscr.derwin(panel_h, left_w, 0, 0)
    draw_panel(active_win, f" Active Connections [{target}] ({len(active_lines)}) ", active_lines,
               view.selected if focus_active else -1, view.offset if focus_active else 0,
               is_active=focus_active)

    history_win = stdscr.derwin(panel_h, right_w, 0, left_w)
    draw_panel(history_win, f" Connection History ({len(history_lines)}) ", history_lines,
               view.selected if not focus_active else -1, view.offset if not focus_active else 0,
               is_active=not focus_active)

    draw_status_bar(stdscr, view.status, view.is_error)


KEY_ACTIONS = {
    KEY_TAB: SWITCH_FOCUS,
    curses.KEY_LEFT: SWITCH_FOCUS,
    curses.KEY_RIGHT: SWITCH_FOCUS,
    curses.KEY_UP: MOVE_UP,
    ord('k'): MOVE_UP,
    curses.KEY_DOWN: MOVE_DOWN,
    ord('j'): MOVE_DOWN,
    curses.KEY_PPAGE: PAGE_UP,
    curses.KEY_NPAGE: PAGE_DOWN,
}


def drain_samples(sample_queue, monitor):
    """Apply every sample the sampler has queued since the last frame."""
    applied = 0
    while True:
        try:
            sample = sample_queue.get_nowait()
        except queue.Empty:
            return applied
        monitor.apply_sample(sample)
        applied += 1


def main(stdscr, args=None):
    curses.curs_set(0)
    stdscr.keypad(True)
    # short timeout keeps keys responsive while lsof runs in the sampler thread
    stdscr.timeout(120)  # ms
    apply_current_theme(stdscr)

    target = args.target
    monitor = Monitor(target, history_capacity=CONFIG["history_capacity"],
                      page_size=CONFIG["page_size"])
    sampler = Sampler(target)
    sampler.start()
    debug_log(f"SAMPLER: Background thread started for '{target}'.")

    try:
        while True:
            drain_samples(sampler.queue, monitor)

            h, w = stdscr.getmaxyx()
            monitor.set_viewport(panel_rows(max(5, h - 1)))
            stdscr.erase()
            stdscr.noutrefresh()
            try:
                draw_screen(stdscr, target, monitor.view())
            except curses.error:
                pass
            curses.doupdate()

            k = stdscr.getch()
            if k == -1 or k == curses.KEY_RESIZE:
                continue
            if k == KEY_QUIT:
                break
            if k == KEY_THEME:
                cycle_theme(stdscr)
                continue
            action = KEY_ACTIONS.get(k)
            if action:
                monitor.handle_action(action)
    finally:
        sampler.stop()
        sampler.join(timeout=CONFIG["lister_timeout"] + 1.0)


def cli_entry():
    """terminal command 'connwatch' entry point"""
    check_python_version()
    args = parse_args()
    init_config()
    apply_args(args)
    check_lsof_exists()
    check_terminal_size()
    curses.wrapper(main, args)


if __name__ == "__main__":
    cli_entry()
