from typing import Any

# -------- Aliases (clarify intent) --------
Symbol = str
TelemetryRecord = dict[str, Any]
