"""Audit logging for skill publishing and verification."""

import threading
from datetime import datetime, timezone
from pathlib import Path

AuditValue = str | int | float | bool | None


class AuditLogger:
    """Appends registry lifecycle events to an audit file.

    Log format: ISO8601_TIMESTAMP [OPERATION] key1=value1 key2=value2
    Example: 2026-02-01T10:00:00Z [PUBLISH] skill=3f2a version=1.0.0 status=verified

    Operations: SKILL_CREATE, UPLOAD_URL, PUBLISH, VERIFY, AUTO_DEFAULT,
    SET_DEFAULT, REVERIFY, DELETE, RATE_LIMITED, PACKAGE
    """

    def __init__(self, log_path: Path) -> None:
        self.log_path = log_path
        self._lock = threading.Lock()

    @staticmethod
    def format_line(operation: str, /, **kwargs: AuditValue) -> str:
        """Render one log line; None values are dropped, values with spaces quoted."""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

        pairs = []
        for key, value in kwargs.items():
            if value is None:
                continue
            str_value = str(value)
            if " " in str_value:
                str_value = f'"{str_value}"'
            pairs.append(f"{key}={str_value}")

        if pairs:
            return f"{timestamp} [{operation}] {' '.join(pairs)}\n"
        return f"{timestamp} [{operation}]\n"

    def log(self, operation: str, /, **kwargs: AuditValue) -> None:
        """Append an audit log entry.

        Args:
            operation: The operation name (e.g., PUBLISH, VERIFY)
            **kwargs: Key-value pairs to include in the log entry.
        """
        line = self.format_line(operation, **kwargs)
        with self._lock:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a") as f:
                f.write(line)
