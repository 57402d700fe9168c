"""Scan recorder for controller time-series logging.

Rows are buffered per controller and handed back in batches; a bounded window
of recent `ScanResult` objects per controller backs the loop statistics.
"""

from collections import Counter, deque

from pydantic import BaseModel

from procsim.control.config import ControllerMode
from procsim.control.errors import InvalidArgument
from procsim.control.state import ScanResult


class LoopSummary(BaseModel):
    """Loop performance over a controller's recent scan window."""
    controller_id: str
    scans: int
    auto_scans: int
    saturated_scans: int
    saturation_ratio: float
    max_abs_error: float
    integral_abs_error: float    # sum of |e| * dt over Auto scans


class ScanRecorder:
    """Collects scan results for one or more controllers."""

    def __init__(self, buffer_size: int = 100, history_size: int = 500):
        if buffer_size < 1 or history_size < 1:
            raise InvalidArgument(
                f"Recorder sizes must be positive (buffer={buffer_size}, history={history_size})"
            )
        self.buffer_size = buffer_size
        self.history_size = history_size
        self._pending: dict[str, list[dict]] = {}
        self._history: dict[str, deque[ScanResult]] = {}
        self._counts: Counter[str] = Counter()

    def record(self, controller_id: str, simulation_time: float, result: ScanResult) -> list[dict]:
        """Record one scan.

        Returns that controller's rows as a batch once its buffer holds
        `buffer_size` of them, otherwise an empty list.
        """
        rows = self._pending.setdefault(controller_id, [])
        rows.append({
            "controller_id": controller_id,
            "simulation_time": simulation_time,
            **result.model_dump(mode="json"),
        })
        window = self._history.get(controller_id)
        if window is None:
            window = self._history[controller_id] = deque(maxlen=self.history_size)
        window.append(result)
        self._counts[controller_id] += 1

        if len(rows) >= self.buffer_size:
            return self.flush(controller_id)
        return []

    def flush(self, controller_id: str | None = None) -> list[dict]:
        """Return and clear pending rows for one controller, or for all of them."""
        if controller_id is not None:
            return self._pending.pop(controller_id, [])
        rows = [row for pending in self._pending.values() for row in pending]
        self._pending.clear()
        rows.sort(key=lambda row: row["simulation_time"])
        return rows

    def history(self, controller_id: str) -> list[ScanResult]:
        """Most recent scan results for a controller, oldest first."""
        return list(self._history.get(controller_id, ()))

    def summary(self, controller_id: str) -> LoopSummary:
        window = self._history.get(controller_id, ())
        auto = [r for r in window if r.mode == ControllerMode.AUTO]
        saturated = sum(1 for r in auto if r.saturated)
        return LoopSummary(
            controller_id=controller_id,
            scans=len(window),
            auto_scans=len(auto),
            saturated_scans=saturated,
            saturation_ratio=saturated / len(auto) if auto else 0.0,
            max_abs_error=max((abs(r.error) for r in window), default=0.0),
            integral_abs_error=sum(abs(r.error) * r.dt for r in auto),
        )

    @property
    def controller_ids(self) -> list[str]:
        return list(self._counts)

    @property
    def pending(self) -> int:
        return sum(len(rows) for rows in self._pending.values())

    @property
    def total_records(self) -> int:
        return sum(self._counts.values())

    def records_for(self, controller_id: str) -> int:
        return self._counts[controller_id]
