import logging
import logging.config
from pathlib import Path
from typing import Optional

import yaml

LOG_CFG = Path(__file__).resolve().parent / "logging_config.yaml"


def load_logging_config(path: Optional[str | Path] = None) -> dict:
    with open(path or LOG_CFG, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def configure_logging(use_config: bool = False, path: Optional[str | Path] = None, level: int = logging.INFO) -> None:
    """
    Apply the packaged dictConfig (or `path`) when `use_config` is set,
    otherwise fall back to a plain basicConfig at `level`.
    """
    if use_config or path is not None:
        logging.config.dictConfig(load_logging_config(path))
    else:
        logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
