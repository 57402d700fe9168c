"""Unit tests for the velocity-form (incremental) PID engine."""

import pytest

from procsim.control import ControllerConfig, ControllerState, PIDController
from procsim.control.velocity import VelocityEngine


def make_controller(**params) -> PIDController:
    params.setdefault("formulation", "velocity")
    params.setdefault("output_min", 0.0)
    params.setdefault("output_max", 100.0)
    return PIDController(**params)


class TestVelocityBasicPID:
    def test_worked_example(self):
        c = make_controller(kp=1.0, ki=0.5, kd=0.0)
        c.set_setpoint(10.0)
        c.initialize(50.0, 10.0)  # e[n-1] = 0
        out = c.update(5.0, 1.0)  # e[n] = 5
        # delta = 1*(5-0) + 0.5*5*1 + 0 = 7.5
        assert out == pytest.approx(57.5)
        assert c.last_scan.delta_output == pytest.approx(7.5)

    def test_second_difference_derivative(self):
        engine = VelocityEngine()
        cfg = ControllerConfig(kp=0.0, ki=0.0, kd=2.0, formulation="velocity")
        state = ControllerState(setpoint=10.0, output=50.0,
                                prev_error=3.0, prev_setpoint=10.0, prev_pv=7.0, prev_pv2=9.0)
        terms = engine.compute(cfg, state, 4.0, 0.5)
        # e[n]=6, e[n-1]=3, e[n-2]=10-9=1 -> 2*(6-6+1)/0.5 = 4
        assert terms.derivative == pytest.approx(4.0)
        assert terms.output == pytest.approx(54.0)

    def test_no_accumulator(self):
        c = make_controller(kp=0.0, ki=1.0, kd=0.0, output_min=-1000.0, output_max=1000.0)
        c.set_setpoint(10.0)
        c.initialize(0.0, 0.0)
        for _ in range(5):
            c.update(0.0, 1.0)
        assert c.integral_sum == 0.0
        assert c.output == pytest.approx(50.0)


class TestVelocityDeltaTime:
    def test_zero_dt_drops_derivative(self):
        c = make_controller(kp=0.0, ki=0.0, kd=1.0)
        c.set_setpoint(50.0)
        c.initialize(50.0, 50.0)
        out = c.update(40.0, 0.0)
        assert out == 50.0
        assert c.last_scan.derivative == 0.0

    def test_negative_dt_does_not_raise(self):
        c = make_controller(kp=1.0, ki=0.0, kd=1.0)
        c.set_setpoint(50.0)
        c.initialize(50.0, 50.0)
        out = c.update(45.0, -1.0)
        # proportional only: 1*(5-0)
        assert out == pytest.approx(55.0)


class TestVelocityKick:
    """Setpoint step 50 -> 60 with constant PV=50, Kp=2, Kd=1, dt=1."""

    def _step(self, structure: str) -> PIDController:
        c = make_controller(kp=2.0, ki=0.0, kd=1.0, structure=structure)
        c.set_setpoint(50.0)
        c.initialize(50.0, 50.0)
        c.set_setpoint(60.0)
        c.update(50.0, 1.0)
        return c

    def test_basic_pid_kicks(self):
        scan = self._step("basic_pid").last_scan
        assert scan.proportional == pytest.approx(20.0)
        assert scan.derivative == pytest.approx(10.0)
        assert scan.output == pytest.approx(80.0)

    def test_i_pd_has_no_kick(self):
        scan = self._step("i_pd").last_scan
        assert scan.proportional == 0.0
        assert scan.derivative == 0.0
        assert scan.output == pytest.approx(50.0)

    def test_pi_d_has_no_derivative_kick(self):
        scan = self._step("pi_d").last_scan
        assert scan.proportional == pytest.approx(20.0)
        assert scan.derivative == 0.0
        assert scan.output == pytest.approx(70.0)

    def test_i_pd_acts_on_measurement(self):
        c = make_controller(kp=2.0, ki=0.0, kd=0.0, structure="i_pd")
        c.set_setpoint(50.0)
        c.initialize(50.0, 50.0)
        out = c.update(48.0, 1.0)
        # Kp*(pv[n-1]-pv[n]) = 2*(50-48)
        assert out == pytest.approx(54.0)


class TestVelocityClamping:
    def test_upper_limit(self):
        c = make_controller(kp=5.0, ki=5.0)
        c.set_setpoint(100.0)
        c.initialize(90.0, 0.0)
        for _ in range(10):
            assert c.update(0.0, 1.0) == 100.0

    def test_lower_limit(self):
        c = make_controller(kp=5.0, ki=5.0)
        c.set_setpoint(0.0)
        c.initialize(10.0, 100.0)
        for _ in range(10):
            assert c.update(100.0, 1.0) == 0.0

    def test_recovers_from_saturation_immediately(self):
        c = make_controller(kp=0.0, ki=1.0)
        c.set_setpoint(100.0)
        c.initialize(50.0, 0.0)
        for _ in range(50):
            c.update(0.0, 1.0)
        assert c.output == 100.0
        c.set_setpoint(-5.0)
        assert c.update(0.0, 1.0) == pytest.approx(95.0)

    def test_reverse_acting_loop(self):
        c = make_controller(kp=-1.0, ki=0.0)
        c.set_setpoint(50.0)
        c.initialize(50.0, 50.0)
        # PV below setpoint drives a reverse-acting output down
        assert c.update(45.0, 1.0) == pytest.approx(45.0)
