from __future__ import annotations

from dataclasses import dataclass, field
import datetime as dt
import os
from pathlib import Path
from threading import Lock


@dataclass(slots=True)
class _NetTrace:
    """One open trace file plus the context stamped on every line.

    Context holds what the reader of a merged server/client log needs to
    tell lines apart: the role, and once known the room code and player slot.
    """

    path: Path
    context: dict[str, object] = field(default_factory=dict)
    events: int = 0

    def write(self, event: str, fields: dict[str, object]) -> None:
        stamp = dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds")
        merged = {**self.context, **fields}
        parts = [stamp, f"event={event.strip()}"]
        parts.extend(f"{key}={_format_value(merged[key])}" for key in sorted(merged))
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(" ".join(parts) + "\n")
        self.events += 1


_LOCK = Lock()
_TRACE: _NetTrace | None = None


def _format_value(value: object) -> str:
    if isinstance(value, tuple) and len(value) == 2:
        return f"{value[0]}:{value[1]}"
    return str(value).replace("\n", "\\n")


def net_debug_log_path() -> Path | None:
    with _LOCK:
        return None if _TRACE is None else _TRACE.path


def init_net_debug_log(*, base_dir: Path, role: str, host: str, port: int) -> Path:
    """Start a trace at `<base_dir>/logs/net/net-<role>-pid<pid>-<utc>.log`.

    Replaces any trace already open in this process.
    """
    global _TRACE
    role_name = str(role).strip().lower() or "unknown"
    stamp = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%dT%H%M%S.%fZ")
    path = base_dir / "logs" / "net" / f"net-{role_name}-pid{os.getpid()}-{stamp}.log"
    path.parent.mkdir(parents=True, exist_ok=True)

    trace = _NetTrace(path=path, context={"role": role_name})
    with _LOCK:
        _TRACE = trace
        trace.write("init", {"host": str(host), "port": int(port), "pid": os.getpid()})
    return path


def set_net_debug_context(**fields: object) -> None:
    """Stamp `fields` on every later line; a `None` value removes the key."""
    with _LOCK:
        if _TRACE is None:
            return
        for key, value in fields.items():
            if value is None:
                _TRACE.context.pop(key, None)
            else:
                _TRACE.context[key] = value


def net_debug_log(event: str, **fields: object) -> None:
    with _LOCK:
        if _TRACE is not None:
            _TRACE.write(str(event), fields)


def close_net_debug_log() -> None:
    global _TRACE
    with _LOCK:
        trace, _TRACE = _TRACE, None
        if trace is not None:
            trace.write("close", {"events": trace.events})


__all__ = [
    "close_net_debug_log",
    "init_net_debug_log",
    "net_debug_log",
    "net_debug_log_path",
    "set_net_debug_context",
]
