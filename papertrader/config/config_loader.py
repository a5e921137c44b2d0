"""
Purpose:
    - Load a TOML session config
    - Merge layers: defaults < file < CLI overrides (--set key.path=value)
    - Validate the merged mapping into SessionConfig
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from papertrader.config.configs import SessionConfig
from papertrader.errors.errors import ConfigurationError
from papertrader.utils.utility import deep_merge, insert_path, validation_error_parser

logger = logging.getLogger(__name__)


def parse_overrides(pairs: list[str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}

    for item in pairs:
        key, sep, value = item.partition("=")
        if sep == "":
            raise ConfigurationError(f"--set requires KEY=VALUE format (got {item!r})", value=item)
        try:
            insert_path(overrides, key, value)  # use helper to expand dotted keys
        except ValueError as exc:
            raise ConfigurationError(str(exc), field=key, value=value) from exc
    return overrides


class ConfigLoader:
    """
    Config-loader; loading toml file.
    """

    def __init__(self, base_dir: str = ".") -> None:
        self._base_dir = base_dir

    def load(self, file_name: str | Path) -> dict[str, Any]:
        path = Path(file_name)
        if not path.is_absolute():
            path = Path(self._base_dir) / path

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with path.open("rb") as f:
            try:
                return tomllib.load(f)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigurationError(f"Invalid TOML in {path}: {exc}") from exc

    def resolve(
        self,
        file_cfg: Optional[Mapping[str, Any]] = None,
        cli_overrides: Optional[Mapping[str, Any]] = None,
    ) -> SessionConfig:
        merged: dict[str, Any] = {}
        for layer in (file_cfg, cli_overrides):
            if layer:
                merged = deep_merge(merged, layer)

        try:
            cfg = SessionConfig.model_validate(merged)
        except ValidationError as e:
            parsed = validation_error_parser(e)
            paths = ", ".join(f"{err['path']}: {err['message']}" for err in parsed)
            raise ConfigurationError(
                f"Invalid session config ({paths})",
                details={"errors": parsed},
            ) from e

        logger.debug("config resolved: %s (hash=%s)", cfg.session_name, cfg.stable_hash()[:12])
        return cfg

    def load_session_config(
        self,
        path: Optional[str | Path] = None,
        overrides: Optional[list[str]] = None,
    ) -> SessionConfig:
        file_cfg = self.load(path) if path is not None else {}
        cli_cfg = parse_overrides(overrides) if overrides else {}
        return self.resolve(file_cfg, cli_cfg)
