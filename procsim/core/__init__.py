"""Settings, scan scheduling and recording around the control engine."""
