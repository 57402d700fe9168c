"""Controller configuration model and enumerations."""

from enum import Enum

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator

from procsim.core.settings import Settings, settings


class PidStructure(str, Enum):
    """Which terms act on error and which on measurement."""
    BASIC_PID = "basic_pid"   # P, I, D all on error
    I_PD = "i_pd"             # I on error, P and D on measurement
    PI_D = "pi_d"             # P and I on error, D on measurement


class Formulation(str, Enum):
    VELOCITY = "velocity"     # incremental output per scan
    POSITION = "position"     # absolute output from an integral accumulator


class ControllerMode(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class ControllerConfig(BaseModel):
    """Tunable controller parameters.

    The formulation is fixed for a controller instance; everything else may be
    retuned between scans through the controller's setters.

    Instances are frozen: the controller swaps in a `model_copy` under its
    lock instead of editing fields in place, so assigning to a field raises
    `ValidationError`. Building one directly (or through `from_settings`) with
    inverted limits or negative position-form gains also raises pydantic's
    `ValidationError`; only `PIDController` converts that to
    `ConfigurationError`.
    """
    model_config = ConfigDict(frozen=True)

    kp: float = Field(default=1.0, description="Proportional gain")
    ki: float = Field(default=0.1, description="Integral gain (1/s)")
    kd: float = Field(default=0.0, description="Derivative gain (s)")
    output_min: float = Field(default=0.0, description="Lower output clamp")
    output_max: float = Field(default=100.0, description="Upper output clamp")
    structure: PidStructure = PidStructure.BASIC_PID
    formulation: Formulation = Formulation.POSITION
    anti_windup: bool = Field(default=True, description="Bound the integral by the output limits (position only)")
    reseed_on_auto: bool = Field(default=False, description="Re-seed the integral on Manual->Auto (position only)")

    @model_validator(mode="after")
    def _check_limits_and_gains(self) -> "ControllerConfig":
        if self.output_min >= self.output_max:
            raise ValueError(
                f"output_min ({self.output_min}) must be less than output_max ({self.output_max})"
            )
        if self.formulation == Formulation.POSITION and min(self.kp, self.ki, self.kd) < 0:
            raise ValueError("PID gains cannot be negative in the position formulation")
        return self

    @classmethod
    def from_settings(cls, source: Settings | None = None, **overrides) -> "ControllerConfig":
        """Build a config from environment-driven defaults."""
        s = source or settings
        params = {
            "kp": s.DEFAULT_KP,
            "ki": s.DEFAULT_KI,
            "kd": s.DEFAULT_KD,
            "output_min": s.OUTPUT_MIN,
            "output_max": s.OUTPUT_MAX,
            "structure": s.DEFAULT_STRUCTURE,
            "formulation": s.DEFAULT_FORMULATION,
            "anti_windup": s.ANTI_WINDUP,
            "reseed_on_auto": s.RESEED_ON_AUTO,
        }
        return cls(**{**params, **overrides})

    def clamp(self, value: float) -> float:
        return float(np.clip(value, self.output_min, self.output_max))
