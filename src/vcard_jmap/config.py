from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path

logger = logging.getLogger(__name__)

CONF_NAME = "vcard-jmap.toml"


@dataclass
class Settings:
    dialect: str = "standard"
    vcard_version: str = "4.0"
    log_level: str = "WARNING"
    address_book_id: str | None = None
    calendar_id: str | None = None


DEFAULT_CONF = """# vcard-jmap local config (TOML)
# property dialect: standard, nextcloud or roundcube
dialect = "standard"
vcard_version = "4.0"
log_level = "WARNING"
# address_book_id = "default"
# calendar_id = "default"
"""


def conf_path(base: Path | None = None) -> Path:
    return Path(base or os.getcwd()) / "local" / CONF_NAME


def ensure_workspace(base: Path | None = None) -> Path:
    """Create ``local/vcard-jmap.toml`` under ``base`` unless it exists; return its path."""
    conf = conf_path(base)
    conf.parent.mkdir(parents=True, exist_ok=True)
    if not conf.exists():
        conf.write_text(DEFAULT_CONF, encoding="utf-8")
    return conf


def load_settings(path: Path | None = None) -> Settings:
    """Read settings from ``path``; a missing or malformed file gives the defaults."""
    settings = Settings()
    path = Path(path) if path is not None else conf_path()
    if not path.exists():
        return settings
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Ignoring malformed config %s: %s", path, exc)
        return settings

    for f in fields(Settings):
        if f.name in data and data[f.name] is not None:
            setattr(settings, f.name, str(data[f.name]))
    return settings
