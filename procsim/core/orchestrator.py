"""SimPy-based scan scheduler.

Plays the host-scheduler role around a PID controller: once per scan interval
it reads the measured value from the plant, evaluates the control law and hands
the output back to the plant. Plant physics live outside this package; anything
with `measure()` and `apply()` can be driven.
"""

import logging
from typing import Callable, Protocol

import simpy

from procsim.control.errors import InvalidArgument
from procsim.control.pid_controller import PIDController
from procsim.core.recorder import ScanRecorder
from procsim.core.settings import settings

logger = logging.getLogger(__name__)


class ProcessPlant(Protocol):
    """Source of the process variable and sink for the controller output."""

    def measure(self) -> float: ...

    def apply(self, output: float, dt: float) -> None: ...


class ScanScheduler:
    """Runs one controller against one plant in a SimPy environment."""

    def __init__(
        self,
        controller: PIDController,
        plant: ProcessPlant,
        scan_interval: float | None = None,
        recorder: ScanRecorder | None = None,
    ):
        self.controller = controller
        self.plant = plant
        self.scan_interval = settings.SCAN_INTERVAL if scan_interval is None else scan_interval
        if self.scan_interval <= 0:
            raise InvalidArgument(f"Scan interval must be greater than zero (got {self.scan_interval})")
        self.recorder = recorder or ScanRecorder(
            settings.RECORDER_BUFFER_SIZE, settings.RECORDER_HISTORY_SIZE
        )
        self.env = simpy.Environment()
        self._batch: list[dict] = []
        self.scan_count = 0
        self._running = False
        self._process: simpy.Process | None = None

    def _scan_loop(self, env: simpy.Environment):
        """Main scan loop process."""
        while self._running:
            pv = self.plant.measure()
            result = self.controller.scan(pv, self.scan_interval)
            self.plant.apply(result.output, self.scan_interval)
            self.scan_count += 1
            self._batch.extend(
                self.recorder.record(self.controller.controller_id, env.now, result)
            )
            yield env.timeout(self.scan_interval)

    def schedule(self, at: float, action: Callable[[PIDController], None]):
        """Run `action(controller)` at simulation time `at`.

        Used for setpoint steps, mode switches and retuning during a run.
        """
        def _timed(env: simpy.Environment):
            yield env.timeout(max(at - env.now, 0.0))
            action(self.controller)

        self.env.process(_timed(self.env))

    def start(self):
        """Start scanning."""
        if self._running:
            return
        self._running = True
        if self._process is None or not self._process.is_alive:
            self._process = self.env.process(self._scan_loop(self.env))
        logger.info("%s v%s: scan scheduler for %s started (interval=%.3gs)",
                    settings.PROJECT_NAME, settings.VERSION,
                    self.controller.controller_id, self.scan_interval)

    def stop(self):
        """Stop scanning after the current scan."""
        self._running = False
        summary = self.recorder.summary(self.controller.controller_id)
        logger.info("Scan scheduler for %s stopped after %d scans (saturated %.0f%%, max |e|=%.4g)",
                    self.controller.controller_id, self.scan_count,
                    100.0 * summary.saturation_ratio, summary.max_abs_error)

    def run(self, until: float) -> list[dict]:
        """Advance simulation time to `until`.

        Returns only the rows recorded during this call; earlier runs are not
        repeated. Recent results stay available through `recorder.history()`.
        """
        self._batch = []
        self.start()
        try:
            self.env.run(until=until)
        except Exception as e:
            logger.exception("Scan scheduler for %s failed: %s", self.controller.controller_id, e)
            self._running = False
            self._batch = []
            raise
        batch = self._batch + self.recorder.flush(self.controller.controller_id)
        self._batch = []
        return batch

    @property
    def now(self) -> float:
        return self.env.now
