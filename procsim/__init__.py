"""Process-control simulator: scan-based PID control-law engine.

Modules:
    control: controller configuration, velocity/position engines, mode arbitration
    core: settings, simpy scan scheduler, scan recorder
"""
