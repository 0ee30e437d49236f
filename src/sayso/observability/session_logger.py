"""
sayso - Session Logger.

Decision trail for one app instance, written as JSONL so redirect loops and
lost saves can be replayed after the fact (`tail -f` friendly).

Events:
    session_start / session_end
    guard_decision  - every decision, with the page it was taken on
    navigation      - redirects the executor actually performed
    save_result     - save and completion outcomes with their failure kind

Enable with SAYSO_LOG_SESSIONS=1; files land in session_logs/.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, TextIO

LOG_DIR = Path("session_logs")

# Error messages can carry whole response bodies
MAX_MESSAGE_LEN = 200


def _clip(value: Any) -> Any:
    if isinstance(value, str) and len(value) > MAX_MESSAGE_LEN:
        return f"{value[:MAX_MESSAGE_LEN]}... ({len(value)} chars)"
    return value


class SessionLogger:
    """
    JSONL event log for one session.

    A disabled logger accepts every call and writes nothing, so callers
    never need to check.
    """

    def __init__(self, session_id: str | None = None, enabled: bool = True, log_dir: Path | None = None):
        self.enabled = enabled
        self.session_id = session_id or datetime.now().strftime("%Y%m%d_%H%M%S")
        self.decisions = 0
        self.log_path: Path | None = None
        self._file: TextIO | None = None

        if enabled:
            directory = log_dir or LOG_DIR
            directory.mkdir(parents=True, exist_ok=True)
            self.log_path = directory / f"session_{self.session_id}.jsonl"
            self._file = self.log_path.open("a", encoding="utf-8")
            self._emit("session_start", session_id=self.session_id)

    def _emit(self, event: str, **fields: Any) -> None:
        if self._file is None:
            return
        record = {"ts": datetime.now().isoformat(), "event": event}
        record.update({k: _clip(v) for k, v in fields.items()})
        self._file.write(json.dumps(record, default=str) + "\n")
        self._file.flush()

    def guard_decision(self, path: str, action: str, target: str | None = None) -> None:
        self.decisions += 1
        self._emit("guard_decision", seq=self.decisions, path=path, action=action, target=target)

    def navigation(self, from_path: str, to_path: str) -> None:
        self._emit("navigation", **{"from": from_path, "to": to_path})

    def save_result(
        self,
        step: str,
        status: str,
        failure: str | None = None,
        error: str | None = None,
    ) -> None:
        self._emit("save_result", step=step, status=status, failure=failure, error=error)

    def close(self) -> str | None:
        """Close the file. Returns its path, or None when nothing was written."""
        if self._file is None:
            return None
        self._emit("session_end", decisions=self.decisions)
        self._file.close()
        self._file = None
        return str(self.log_path)


_session_logger: SessionLogger | None = None


def get_session_logger() -> SessionLogger:
    """Process-wide logger, enabled by SAYSO_LOG_SESSIONS."""
    global _session_logger
    if _session_logger is None:
        from sayso.config import core_settings

        _session_logger = SessionLogger(enabled=core_settings.sayso_log_sessions)
    return _session_logger


def close_session_logger() -> str | None:
    """Close the process-wide logger, if one was opened."""
    global _session_logger
    path = _session_logger.close() if _session_logger is not None else None
    _session_logger = None
    return path
