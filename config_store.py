import logging
import os
from typing import Optional

import toml
from pydantic import ValidationError

from config import configfile_path
from models import Config

logger = logging.getLogger(__name__)


class ConfigStoreError(RuntimeError):
    def __init__(self, path: str, message: str):
        super().__init__(f"writing config file {path}: {message}")
        self.path = path


def load(path: Optional[str] = None) -> Config:
    """Load the UI config, falling back to Config.default().

    A missing file is normal on first start. A file that cannot be read or
    parsed is logged and replaced by the default; its content is not kept.
    """
    path = path or configfile_path()
    if not os.path.exists(path):
        logger.info("No config file at %s, using defaults", path)
        return Config.default()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = toml.load(f)
        return Config.model_validate(data)
    except (OSError, UnicodeDecodeError, toml.TomlDecodeError, ValidationError) as e:
        logger.error("Failed to read existing config file %s: %s", path, e)
        return Config.default()


def store(conf: Config, path: Optional[str] = None) -> None:
    path = path or configfile_path()
    try:
        text = toml.dumps(conf.model_dump())
    except (TypeError, ValueError) as e:
        raise ConfigStoreError(path, str(e)) from e

    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
    except OSError as e:
        raise ConfigStoreError(path, str(e)) from e
    logger.debug("Stored config to %s", path)
