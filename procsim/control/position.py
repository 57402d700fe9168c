"""Position-form (absolute) PID engine with anti-reset windup."""

from procsim.control.config import ControllerConfig, Formulation, PidStructure
from procsim.control.errors import ConfigurationError, InvalidArgument
from procsim.control.state import ControllerState, EngineTerms

# Floor for Ki when converting an output bound into an integral bound
KI_EPSILON = 1e-6


def clamp_integral(integral_sum: float, ki: float, output_min: float, output_max: float) -> float:
    """Bound the accumulator so that ki * integral_sum stays inside the output limits."""
    if ki * integral_sum > output_max:
        return output_max / max(ki, KI_EPSILON)
    if ki * integral_sum < output_min:
        return output_min / max(ki, KI_EPSILON)
    return integral_sum


class PositionEngine:
    """Absolute PID computed from an explicit integral accumulator.

    The accumulator is advanced by e*dt before the integral term is evaluated
    and, with anti-windup enabled, is re-clamped on every Auto scan whether or
    not the final output saturates. That bounds the integral's own
    contribution, so it unwinds within one scan once the error changes sign.

        BasicPID: Kp e + Ki I + Kd (e - prev_error)/dt
        I-PD:     Kp sp - Kp pv + Ki I - Kd (pv - prev_pv)/dt
        PI-D:     Kp e + Ki I - Kd (pv - prev_pv)/dt
    """

    formulation = Formulation.POSITION

    def validate_tuning(self, kp: float, ki: float, kd: float):
        if kp < 0 or ki < 0 or kd < 0:
            raise ConfigurationError("PID gains cannot be negative")

    def validate_dt(self, dt: float):
        if dt <= 0:
            raise InvalidArgument(f"Delta time must be greater than zero (got {dt})")

    def compute(self, config: ControllerConfig, state: ControllerState,
                pv: float, dt: float) -> EngineTerms:
        sp = state.setpoint
        error = sp - pv

        state.integral_sum += error * dt
        if config.anti_windup:
            state.integral_sum = clamp_integral(
                state.integral_sum, config.ki, config.output_min, config.output_max
            )
        integral = config.ki * state.integral_sum

        if config.structure == PidStructure.BASIC_PID:
            proportional = config.kp * error
            derivative = config.kd * (error - state.prev_error) / dt
        elif config.structure == PidStructure.I_PD:
            proportional = config.kp * sp - config.kp * pv
            derivative = -config.kd * (pv - state.prev_pv) / dt
        else:
            proportional = config.kp * error
            derivative = -config.kd * (pv - state.prev_pv) / dt

        return EngineTerms(
            proportional=proportional,
            integral=integral,
            derivative=derivative,
            output=proportional + integral + derivative,
        )

    def seed_integral(self, config: ControllerConfig, state: ControllerState,
                      target_output: float, error: float):
        """Choose integral_sum so that Kp*e + Ki*I reproduces `target_output`.

        Leaves the accumulator alone when Ki is effectively zero, since no
        integral value can then reach the target.
        """
        if config.ki < KI_EPSILON:
            return
        seeded = (target_output - config.kp * error) / config.ki
        if config.anti_windup:
            seeded = clamp_integral(seeded, config.ki, config.output_min, config.output_max)
        state.integral_sum = seeded

    def on_auto_resume(self, config: ControllerConfig, state: ControllerState):
        if config.reseed_on_auto:
            self.seed_integral(config, state, state.output, state.error)
