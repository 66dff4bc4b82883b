import json
import logging
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from rewrite_proxy.errors import ConfigError
from rewrite_proxy.rules.models import Config

logger = logging.getLogger("uvicorn.error")


def load_config(path: Union[str, Path]) -> Config:
    """
    Read the rule set from a JSON file.

    Any failure (missing file, unreadable file, invalid JSON, wrong field
    types) raises ConfigError; the caller is expected to stop the process.
    """
    path_obj = Path(path)
    try:
        payload = json.loads(path_obj.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(str(path), f"cannot read file ({exc})") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(str(path), f"invalid JSON ({exc})") from exc

    if not isinstance(payload, dict):
        raise ConfigError(str(path), "top level value must be an object")

    try:
        config = Config.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(str(path), f"invalid rule set ({exc})") from exc

    logger.info(
        f"[Config] Loaded {len(config.modifications)} modifications and "
        f"{len(config.ssl_rewrite)} ssl rewrite hosts from {path_obj}"
    )
    for mod in config.modifications:
        if mod.mode is None:
            logger.warning(
                f"[Config] Modification for selector {mod.selector} has neither "
                "appendTo nor replace and will be skipped"
            )
    return config
