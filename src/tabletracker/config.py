from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "tabletracker.yml"
IGNORE_FILE = ".tabletrackerignore"


@dataclass
class RuntimeConfig:
    dialect: Optional[str] = None
    keywords: Optional[List[str]] = None
    custom_keywords: List[str] = field(default_factory=list)
    keyword_presets: Dict[str, List[str]] = field(default_factory=dict)
    known_tables: Optional[str] = None
    filter_ctes: bool = False
    encoding: str = "auto"
    sql_dir: str = "sql"
    out_dir: Optional[str] = None
    include: List[str] = field(default_factory=lambda: ["*.sql"])
    exclude: List[str] = field(default_factory=list)
    ignore: List[str] = field(default_factory=list)
    log_level: str = "info"
    output_format: str = "text"


def load_config(path: Optional[Path]) -> RuntimeConfig:
    cfg = RuntimeConfig()
    if path is None:
        # Try working directory default
        default = Path(DEFAULT_CONFIG_FILE)
        if default.exists():
            path = default
    if path and path.exists():
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"config file {path} must contain a mapping")
        for k, v in data.items():
            if hasattr(cfg, k):
                setattr(cfg, k, v)
            else:
                logger.debug("ignoring unknown config key %r", k)

    cfg.ignore = list(cfg.ignore or [])
    ignore_file = Path(IGNORE_FILE)
    if ignore_file.exists():
        try:
            for line in ignore_file.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if line and not line.startswith("#"):
                    cfg.ignore.append(line)
        except OSError as e:
            logger.warning("failed to load %s: %s", IGNORE_FILE, e)

    return cfg
