"""PID control-law engine."""

from procsim.control.config import ControllerConfig, ControllerMode, Formulation, PidStructure
from procsim.control.errors import ConfigurationError, InvalidArgument
from procsim.control.pid_controller import PIDController
from procsim.control.state import ControllerState, ScanResult

__all__ = [
    "ConfigurationError",
    "ControllerConfig",
    "ControllerMode",
    "ControllerState",
    "Formulation",
    "InvalidArgument",
    "PIDController",
    "PidStructure",
    "ScanResult",
]
