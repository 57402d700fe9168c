"""Velocity-form (incremental) PID engine.

Each scan produces an output *increment* that is added to the previous output:

    output[n] = clamp(output[n-1] + delta)

No integral accumulator is held, so saturation cannot build up across scans and
a Manual->Auto transition continues from whatever output is current.

For e[n] = sp - pv, e[n-1] = prev_error and e[n-2] = prev_setpoint - prev_pv2:

    BasicPID: Kp(e[n]-e[n-1]) + Ki e[n] dt + Kd(e[n]-2e[n-1]+e[n-2])/dt
    I-PD:     Ki e[n] dt + Kp(pv[n-1]-pv[n]) + Kd(pv[n-2]-2pv[n-1]+pv[n])/dt
    PI-D:     Kp(e[n]-e[n-1]) + Ki e[n] dt + Kd(pv[n-2]-2pv[n-1]+pv[n])/dt
"""

from procsim.control.config import ControllerConfig, Formulation, PidStructure
from procsim.control.state import ControllerState, EngineTerms


class VelocityEngine:
    """Incremental PID. Accepts gains of any sign and never rejects dt."""

    formulation = Formulation.VELOCITY

    def validate_tuning(self, kp: float, ki: float, kd: float):
        # Negative gains are allowed for reverse-acting loops.
        pass

    def validate_dt(self, dt: float):
        pass

    def compute(self, config: ControllerConfig, state: ControllerState,
                pv: float, dt: float) -> EngineTerms:
        sp = state.setpoint
        error = sp - pv
        error_1 = state.prev_error
        error_2 = state.prev_setpoint - state.prev_pv2
        pv_1 = state.prev_pv
        pv_2 = state.prev_pv2

        integral = config.ki * error * dt

        if config.structure == PidStructure.I_PD:
            proportional = config.kp * (pv_1 - pv)
        else:
            proportional = config.kp * (error - error_1)

        # Degrade instead of dividing by zero
        derivative = 0.0
        if dt > 0:
            if config.structure == PidStructure.BASIC_PID:
                derivative = config.kd * (error - 2.0 * error_1 + error_2) / dt
            else:
                derivative = config.kd * (pv_2 - 2.0 * pv_1 + pv) / dt

        delta = proportional + integral + derivative
        return EngineTerms(
            proportional=proportional,
            integral=integral,
            derivative=derivative,
            output=state.output + delta,
            delta_output=delta,
        )

    def seed_integral(self, config: ControllerConfig, state: ControllerState,
                      target_output: float, error: float):
        """No accumulator to seed; the previous output carries the state."""

    def on_auto_resume(self, config: ControllerConfig, state: ControllerState):
        """Bumpless by construction: the next increment lands on the current output."""
