"""Per-scan controller state and the scan result record."""

from dataclasses import dataclass

from pydantic import BaseModel, Field

from procsim.control.config import ControllerMode, Formulation, PidStructure


@dataclass
class ControllerState:
    """Numeric state advanced once per scan.

    History is kept exactly two scans deep, which is what the second-difference
    derivative of the velocity formulation needs.
    """
    setpoint: float = 0.0
    process_variable: float = 0.0
    output: float = 0.0
    manual_output: float = 0.0
    mode: ControllerMode = ControllerMode.AUTO

    prev_error: float = 0.0
    prev_setpoint: float = 0.0
    prev_pv: float = 0.0
    prev_pv2: float = 0.0

    # Position formulation only
    integral_sum: float = 0.0

    @property
    def error(self) -> float:
        return self.setpoint - self.process_variable

    def advance_history(self, pv: float, setpoint: float):
        self.prev_error = setpoint - pv
        self.prev_pv2 = self.prev_pv
        self.prev_pv = pv
        self.prev_setpoint = setpoint

    def seed_history(self, pv: float):
        """Make both history scans equal to `pv` with zero prior error."""
        self.prev_error = 0.0
        self.prev_pv = pv
        self.prev_pv2 = pv
        self.prev_setpoint = self.setpoint


@dataclass
class EngineTerms:
    """Unclamped result of one engine evaluation."""
    proportional: float
    integral: float
    derivative: float
    output: float
    delta_output: float | None = None


class ScanResult(BaseModel):
    """Side-channel record of one scan, for an external logger or recorder."""
    mode: ControllerMode
    structure: PidStructure
    formulation: Formulation
    dt: float = Field(description="Scan interval used (s)")
    setpoint: float
    process_variable: float
    error: float = Field(description="setpoint - process_variable")
    proportional: float = Field(default=0.0, description="Proportional contribution")
    integral: float = Field(default=0.0, description="Integral contribution")
    derivative: float = Field(default=0.0, description="Derivative contribution")
    delta_output: float | None = Field(default=None, description="Increment (velocity form only)")
    output: float = Field(description="Clamped controller output")
    integral_sum: float = Field(default=0.0, description="Integral accumulator (position form only)")
    saturated: bool = Field(default=False, description="Engine output was clipped by the limits")
