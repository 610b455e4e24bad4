"""Host configuration, with environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

_TRUE_VALUES = ("1", "true", "yes", "on")


def env_flag(value: Optional[str], default: bool = False) -> bool:
    """Interpret an environment value as a boolean switch."""
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


@dataclass
class HostConfig:
    fullscreen: bool = False
    mouse: bool = False
    title: Optional[str] = "Ferro App"
    # render exceptions are painted as "Error: ..." in place of the frame
    show_errors: bool = True
    exit_on_interrupt: bool = True
    # every byte written to the terminal is appended here when set
    write_log: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: object) -> HostConfig:
        """Build a config from ``FERRO_*`` variables; keyword overrides win.

        ``FERRO_FULLSCREEN`` / ``FERRO_MOUSE`` are boolean switches,
        ``FERRO_TITLE`` sets the window title, ``FERRO_ENV=production``
        hides render errors and ``FERRO_WRITE_LOG`` names the write log.
        """
        env = os.environ if environ is None else environ
        config = cls(
            fullscreen=env_flag(env.get("FERRO_FULLSCREEN"), cls.fullscreen),
            mouse=env_flag(env.get("FERRO_MOUSE"), cls.mouse),
            title=env.get("FERRO_TITLE", cls.title),
            show_errors=env.get("FERRO_ENV", "").strip().lower() != "production",
            write_log=env.get("FERRO_WRITE_LOG") or None,
        )
        known = {f.name for f in fields(cls)}
        for name, value in overrides.items():
            if name not in known:
                raise TypeError(f"unknown HostConfig field {name!r}")
            setattr(config, name, value)
        return config
