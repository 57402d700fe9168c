"""PID controller for process control loops.

Single entry point for the control law: arbitrates Auto/Manual mode, delegates
to the velocity or position engine, clamps the result to the output limits and
keeps the two-scan history continuous across mode switches.

Threading:
    One scheduler thread calls `update`/`scan` once per scan while a tuning
    surface may call the setters from another thread. A single re-entrant lock
    covers the whole of each scan and each setter, so a scan never sees a torn
    combination of gains, limits and integral state.
"""

import logging
import threading
from dataclasses import replace

from pydantic import ValidationError

from procsim.control.config import ControllerConfig, ControllerMode, Formulation, PidStructure
from procsim.control.errors import ConfigurationError, InvalidArgument
from procsim.control.position import PositionEngine
from procsim.control.state import ControllerState, ScanResult
from procsim.control.velocity import VelocityEngine

logger = logging.getLogger(__name__)

_ENGINES = {
    Formulation.VELOCITY: VelocityEngine,
    Formulation.POSITION: PositionEngine,
}


class PIDController:
    """Discrete PID controller with anti-windup and bumpless Auto/Manual transfer."""

    def __init__(
        self,
        controller_id: str = "PID-1",
        name: str = "PID Controller",
        config: ControllerConfig | None = None,
        **params,
    ):
        """Create a controller.

        Args:
            controller_id: Unique identifier for the controller.
            name: Display name.
            config: Complete configuration. When omitted, one is built from
                `params` (kp, ki, kd, output_min, output_max, structure,
                formulation, anti_windup, reseed_on_auto).

        Raises:
            ConfigurationError: limits or gains are invalid.
        """
        if config is None:
            try:
                config = ControllerConfig(**params)
            except ValidationError as e:
                raise ConfigurationError(str(e)) from e
        elif params:
            raise TypeError("Pass either config or individual parameters, not both")

        self.controller_id = controller_id
        self.name = name
        self._config = config
        self._engine = _ENGINES[config.formulation]()
        self._lock = threading.RLock()
        self._last_scan: ScanResult | None = None

        start = config.clamp(0.0)
        self._state = ControllerState(output=start, manual_output=start)

    # ── Scan ─────────────────────────────────────────────────────────

    def update(self, process_variable: float, dt: float) -> float:
        """Evaluate the control law for one scan.

        Args:
            process_variable: Measured value from the plant.
            dt: Scan interval in seconds.

        Returns:
            Controller output, clamped to output_min..output_max.
        """
        return self.scan(process_variable, dt).output

    def scan(self, process_variable: float, dt: float) -> ScanResult:
        """Like `update`, but return the full per-scan record."""
        with self._lock:
            self._engine.validate_dt(dt)
            config = self._config
            state = self._state
            state.process_variable = process_variable

            if state.mode == ControllerMode.MANUAL:
                state.output = state.manual_output
                result = ScanResult(
                    mode=state.mode,
                    structure=config.structure,
                    formulation=config.formulation,
                    dt=dt,
                    setpoint=state.setpoint,
                    process_variable=process_variable,
                    error=state.error,
                    output=state.output,
                    integral_sum=state.integral_sum,
                )
            else:
                terms = self._engine.compute(config, state, process_variable, dt)
                state.output = config.clamp(terms.output)
                result = ScanResult(
                    mode=state.mode,
                    structure=config.structure,
                    formulation=config.formulation,
                    dt=dt,
                    setpoint=state.setpoint,
                    process_variable=process_variable,
                    error=state.error,
                    proportional=terms.proportional,
                    integral=terms.integral,
                    derivative=terms.derivative,
                    delta_output=terms.delta_output,
                    output=state.output,
                    integral_sum=state.integral_sum,
                    saturated=state.output != terms.output,
                )

            state.advance_history(process_variable, state.setpoint)
            self._last_scan = result
            return result

    def initialize(self, output: float, process_variable: float, seed_integral: bool = False):
        """Reset to a steady-state (output, PV) pair.

        All history is set to the pair so the first scan produces no kick.
        With `seed_integral`, the position form's accumulator is chosen so the
        first Auto scan at the current error reproduces `output`.
        """
        with self._lock:
            config = self._config
            state = self._state
            output = config.clamp(output)
            state.output = output
            state.manual_output = output
            state.process_variable = process_variable
            state.seed_history(process_variable)
            state.integral_sum = 0.0
            if seed_integral:
                self._engine.seed_integral(config, state, output, state.error)
            logger.debug("Controller %s initialized (output=%.4g, pv=%.4g)",
                         self.controller_id, output, process_variable)

    def reset(self):
        """Clear integral and error history, keeping output, PV and manual value."""
        with self._lock:
            state = self._state
            state.integral_sum = 0.0
            state.seed_history(state.process_variable)
            logger.debug("Controller %s reset", self.controller_id)

    # ── Configuration ────────────────────────────────────────────────

    def set_tuning(self, kp: float, ki: float, kd: float):
        """Set the PID gains.

        Raises:
            ConfigurationError: a gain is negative in the position formulation.
        """
        with self._lock:
            self._engine.validate_tuning(kp, ki, kd)
            self._config = self._config.model_copy(update={"kp": kp, "ki": ki, "kd": kd})
            logger.info("Controller %s tuning: Kp=%.4g, Ki=%.4g, Kd=%.4g",
                        self.controller_id, kp, ki, kd)

    def set_output_limits(self, output_min: float, output_max: float):
        """Set the output clamp and re-clamp the current and manual outputs.

        Raises:
            ConfigurationError: output_min >= output_max.
        """
        if output_min >= output_max:
            raise ConfigurationError(
                f"Minimum limit ({output_min}) must be less than maximum limit ({output_max})"
            )
        with self._lock:
            self._config = self._config.model_copy(
                update={"output_min": output_min, "output_max": output_max}
            )
            self._state.output = self._config.clamp(self._state.output)
            self._state.manual_output = self._config.clamp(self._state.manual_output)
            logger.info("Controller %s output limits: [%.4g, %.4g]",
                        self.controller_id, output_min, output_max)

    def set_structure(self, structure: PidStructure | str):
        try:
            structure = PidStructure(structure)
        except ValueError as e:
            raise ConfigurationError(f"Unknown PID structure: {structure!r}") from e
        with self._lock:
            self._config = self._config.model_copy(update={"structure": structure})
            logger.info("Controller %s structure: %s", self.controller_id, structure.value)

    def set_anti_windup(self, enabled: bool):
        with self._lock:
            self._config = self._config.model_copy(update={"anti_windup": enabled})
            logger.info("Controller %s anti-windup %s",
                        self.controller_id, "enabled" if enabled else "disabled")

    def set_setpoint(self, setpoint: float):
        with self._lock:
            self._state.setpoint = setpoint

    # ── Mode ─────────────────────────────────────────────────────────

    def set_mode(self, mode: ControllerMode | str):
        """Switch between AUTO and MANUAL.

        Auto->Manual captures the current output as the manual value. On
        Manual->Auto the engine resumes from the current output; the position
        form only re-seeds its integral when `reseed_on_auto` is configured.
        """
        try:
            mode = ControllerMode(mode)
        except ValueError as e:
            raise InvalidArgument(f"Unknown controller mode: {mode!r}") from e
        with self._lock:
            state = self._state
            if mode == state.mode:
                return
            if mode == ControllerMode.MANUAL:
                state.manual_output = state.output
            else:
                self._engine.on_auto_resume(self._config, state)
            logger.info("Controller %s mode %s -> %s (output=%.4g)",
                        self.controller_id, state.mode.value, mode.value, state.output)
            state.mode = mode

    def set_manual_output(self, value: float):
        """Set the manual value, clamped to the output limits.

        While in MANUAL the output follows immediately.
        """
        with self._lock:
            state = self._state
            state.manual_output = self._config.clamp(value)
            if state.mode == ControllerMode.MANUAL:
                state.output = state.manual_output

    # ── Accessors ────────────────────────────────────────────────────

    @property
    def config(self) -> ControllerConfig:
        with self._lock:
            return self._config

    @property
    def formulation(self) -> Formulation:
        return self._config.formulation

    @property
    def state(self) -> ControllerState:
        """Snapshot copy of the controller state."""
        with self._lock:
            return replace(self._state)

    @property
    def mode(self) -> ControllerMode:
        with self._lock:
            return self._state.mode

    @property
    def auto_mode(self) -> bool:
        return self.mode == ControllerMode.AUTO

    @property
    def setpoint(self) -> float:
        with self._lock:
            return self._state.setpoint

    @property
    def process_variable(self) -> float:
        with self._lock:
            return self._state.process_variable

    @property
    def output(self) -> float:
        with self._lock:
            return self._state.output

    @property
    def manual_output(self) -> float:
        with self._lock:
            return self._state.manual_output

    @property
    def error(self) -> float:
        with self._lock:
            return self._state.error

    @property
    def integral_sum(self) -> float:
        with self._lock:
            return self._state.integral_sum

    @property
    def last_scan(self) -> ScanResult | None:
        with self._lock:
            return self._last_scan
