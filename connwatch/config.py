import os
import time

import yaml

CONFIG_DIR = os.path.expanduser("~/.config/connwatch")
CONFIG_PATH = os.path.join(CONFIG_DIR, "config.yaml")
DEBUG_LOG_PATH = os.path.join(CONFIG_DIR, "debug.log")

DEFAULTS = {
    "sample_interval": 1.0,
    "history_capacity": 1000,
    "page_size": 10,
    "lister_timeout": 3.0,
    "use_sudo": True,
    "match_cmdline": True,
    "theme": 1,
}

CONFIG = dict(DEFAULTS)


def debug_log(msg):
    """Write a timestamped message to the debug log."""
    try:
        os.makedirs(os.path.dirname(DEBUG_LOG_PATH), exist_ok=True)
        with open(DEBUG_LOG_PATH, "a") as f:
            f.write(f"[{time.strftime('%Y-%m-%d %H:%M:%S')}] {msg}\n")
    except OSError:
        pass


def _coerce(key, value):
    """Cast a user supplied value to the type of its default; None if it doesn't fit."""
    default = DEFAULTS[key]
    if isinstance(default, bool):
        return value if isinstance(value, bool) else None
    try:
        value = type(default)(value)
    except (TypeError, ValueError):
        return None
    if isinstance(value, (int, float)) and value <= 0 and key != "theme":
        return None
    return value


def init_config(path=None):
    """Read or create the config file and merge it over the defaults."""
    path = path or CONFIG_PATH
    if not os.path.exists(path):
        save_config(path)
        return CONFIG
    try:
        with open(path, "r") as f:
            saved = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        debug_log(f"CONFIG: Error loading {path}: {e}")
        return CONFIG
    if not isinstance(saved, dict):
        debug_log(f"CONFIG: Ignoring {path}, expected a mapping")
        return CONFIG
    for key, value in saved.items():
        if key not in DEFAULTS:
            debug_log(f"CONFIG: Unknown key '{key}'")
            continue
        coerced = _coerce(key, value)
        if coerced is None:
            debug_log(f"CONFIG: Bad value for '{key}': {value!r}, keeping {CONFIG[key]!r}")
            continue
        CONFIG[key] = coerced
    return CONFIG


def save_config(path=None):
    path = path or CONFIG_PATH
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(CONFIG, f, default_flow_style=False)
    except (OSError, yaml.YAMLError) as e:
        debug_log(f"CONFIG: Error saving: {e}")
