"""JSON Lines Telemetry adapter.

Implements the Telemetry port by appending one JSON object per line to a sink
file. Every record carries the run id, the seed and the wall-clock time.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

import orjson

from papertrader.types.aliases import TelemetryRecord
from papertrader.utils.utility import make_serializable


class JsonlTelemetry:
    _REDACTION_TOKEN = "***REDACTED***"
    _DEFAULT_SECRET_KEYS = frozenset(
        {
            "api_key",
            "api_secret",
            "secret",
            "password",
            "token",
            "auth_token",
        }
    )

    def __init__(
        self,
        run_id: str,
        seed: int,
        sink_path: Path,
        secret_keys: Iterable[str] = _DEFAULT_SECRET_KEYS,
    ) -> None:
        self._run_id = str(run_id)
        self._seed = seed
        self._sink_path = sink_path if isinstance(sink_path, Path) else Path(sink_path)
        self._secret_keys = frozenset(secret_keys)

    @property
    def sink_path(self) -> Path:
        return self._sink_path

    def log(self, event: str, **fields: Any) -> None:
        sanitized_fields, redacted = self._sanitize_fields(fields)

        record: TelemetryRecord = {
            "event": event,
            "ts_utc": datetime.now(timezone.utc).isoformat(),
            "run_id": self._run_id,
            "seed": self._seed,
            **sanitized_fields,
        }
        if redacted:
            record["redacted_fields"] = sorted(redacted)

        self._write_record(record)

    def _sanitize_fields(self, fields: Mapping[str, Any]) -> tuple[dict[str, Any], set[str]]:
        sanitized: dict[str, Any] = {}
        redacted: set[str] = set()
        for key, value in fields.items():
            if key in self._secret_keys:
                sanitized[key] = self._REDACTION_TOKEN
                redacted.add(key)
            else:
                sanitized[key] = make_serializable(value)

        return sanitized, redacted

    def _write_record(self, record: Mapping[str, Any]) -> None:
        payload = orjson.dumps(record, option=orjson.OPT_SORT_KEYS)
        self._sink_path.parent.mkdir(parents=True, exist_ok=True)
        with self._sink_path.open("ab") as handle:
            handle.write(payload + b"\n")
