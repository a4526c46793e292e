"""
Tests for crankmc.amplitude module.

This module tests acceptance bookkeeping and amplitude calibration:
- Window statistics and counter resets
- Growth, shrinkage and the ±π clamp
- Parameter validation
"""

import math

import pytest
from openmm import unit

from crankmc.amplitude import WINDOW, AmplitudeController
from crankmc.errors import SimulationError
from crankmc.run import SamplerConfig


def run_window(controller, accepted, rejected, calibrate=True):
    for _ in range(accepted):
        controller.record(True, calibrate)
    for _ in range(rejected):
        controller.record(False, calibrate)


class TestWindow:
    """Tests for window bookkeeping."""

    def test_counters_reset_after_window(self):
        controller = AmplitudeController(amplitude=0.5)
        run_window(controller, 300, WINDOW - 300, calibrate=False)
        assert controller.accept_counter == 0
        assert controller.reject_counter == 0
        assert controller.windows == 1
        assert controller.acceptance == pytest.approx(300 / WINDOW)

    def test_no_rescale_when_not_calibrating(self):
        controller = AmplitudeController(amplitude=0.5)
        run_window(controller, WINDOW, 0, calibrate=False)
        assert controller.amplitude == 0.5

    def test_partial_window_keeps_counting(self):
        controller = AmplitudeController(amplitude=0.5)
        run_window(controller, 10, 5)
        assert (controller.accept_counter, controller.reject_counter) == (10, 5)
        assert controller.windows == 0

    def test_reset(self):
        controller = AmplitudeController(amplitude=0.5)
        run_window(controller, 10, 5)
        controller.reset()
        assert controller.accept_counter == controller.reject_counter == 0


class TestRescale:
    """Tests for amplitude calibration."""

    def test_grows_when_accepting_too_often(self):
        controller = AmplitudeController(amplitude=0.5, acceptance_rate=0.4, factor=0.9)
        run_window(controller, WINDOW, 0)
        assert controller.amplitude == pytest.approx(0.5 / 0.9)

    def test_shrinks_only_when_negative(self):
        negative = AmplitudeController(amplitude=-0.5, acceptance_rate=0.4, factor=0.9)
        positive = AmplitudeController(amplitude=0.5, acceptance_rate=0.4, factor=0.9)
        run_window(negative, 0, WINDOW)
        run_window(positive, 0, WINDOW)
        assert negative.amplitude == pytest.approx(-0.45)
        assert positive.amplitude == 0.5

    def test_within_tolerance_unchanged(self):
        controller = AmplitudeController(amplitude=-0.5, acceptance_rate=0.4, tolerance=0.05)
        run_window(controller, int(0.42 * WINDOW), WINDOW - int(0.42 * WINDOW))
        assert controller.amplitude == -0.5

    @pytest.mark.parametrize("start", [math.pi / 2, -math.pi / 2])
    def test_growth_is_monotone_and_clamped(self, start):
        controller = AmplitudeController(
            amplitude=start, acceptance_rate=0.4, tolerance=0.05, factor=0.9
        )
        magnitudes = [abs(controller.amplitude)]
        for _ in range(10):
            run_window(controller, WINDOW, 0)
            magnitudes.append(abs(controller.amplitude))
        assert all(b >= a for a, b in zip(magnitudes, magnitudes[1:]))
        assert magnitudes[-1] == pytest.approx(math.pi)
        assert all(m <= math.pi for m in magnitudes)

    def test_rescale_logged(self, caplog):
        controller = AmplitudeController(amplitude=0.5)
        with caplog.at_level("INFO", logger="crankmc.amplitude"):
            run_window(controller, WINDOW, 0)
        assert "amplitude 0.5000 -> 0.5556" in caplog.text


class TestValidation:
    """Tests for invalid calibration parameters."""

    @pytest.mark.parametrize(
        "kwargs",
        [{"tolerance": 0.0}, {"tolerance": 1.0}, {"factor": 0.0}, {"factor": 1.5}],
    )
    def test_invalid_parameters(self, kwargs):
        controller = AmplitudeController(amplitude=0.5, **kwargs)
        with pytest.raises(SimulationError):
            run_window(controller, WINDOW, 0)

    def test_invalid_parameters_ignored_without_calibration(self):
        controller = AmplitudeController(amplitude=0.5, tolerance=2.0)
        run_window(controller, WINDOW, 0, calibrate=False)
        assert controller.windows == 1


class TestFromConfig:
    """Tests for building the controller from a SamplerConfig."""

    def test_plain_float(self):
        config = SamplerConfig(amplitude=-0.3, acceptance_rate=0.3)
        controller = AmplitudeController.from_config(config)
        assert controller.amplitude == -0.3
        assert controller.acceptance_rate == 0.3
        assert controller.tolerance == config.acceptance_rate_tolerance
        assert controller.factor == config.amplitude_changing_factor

    def test_quantity(self):
        config = SamplerConfig(amplitude=-30 * unit.degrees)
        controller = AmplitudeController.from_config(config)
        assert controller.amplitude == pytest.approx(-math.pi / 6)
