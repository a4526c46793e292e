"""
Tests for crankmc.metropolis module.

This module tests the move driver end to end:
- Energy-matrix consistency after many moves
- Rejected moves leave no trace
- FIXED residues never move
- Nested-Sampling containment
- Step modes, translations and teardown
- Side-chain switch consistency
"""

import dataclasses

import numpy as np
import pytest

from crankmc.amplitude import WINDOW, CalibrationMode
from crankmc.conformation import Conformation
from crankmc.energy import CalphaContactModel
from crankmc.energy_matrix import EnergyMatrix
from crankmc.metropolis import MoveDriver
from crankmc.space import Draws


def snapshot(conformation):
    return (
        conformation.positions().copy(),
        conformation.frames.copy(),
        conformation.prev_frames.copy(),
        [(r.chi1, r.chi2) for r in conformation.residues[1:]],
    )


class TestConsistency:
    """Tests for matrix and running-energy bookkeeping."""

    def test_matrix_matches_recompute(self, single_chain, contact_model, config):
        driver = MoveDriver(single_chain, contact_model, config)
        for _ in range(300):
            driver.move()
        assert driver.energies.is_symmetric()
        fresh = EnergyMatrix.compute(single_chain, contact_model)
        np.testing.assert_allclose(driver.energies.as_array(), fresh.as_array(), atol=1e-9)
        assert driver.energy == pytest.approx(fresh.total(), abs=1e-6)

    def test_counts(self, single_chain, contact_model, config):
        driver = MoveDriver(single_chain, contact_model, config)
        for _ in range(100):
            driver.move()
        assert driver.accepted + driver.rejected == 100
        assert driver.last_move is not None

    def test_geometry_preserved(self, two_chains, contact_model, config):
        driver = MoveDriver(two_chains, contact_model, config)
        for _ in range(300):
            driver.move()
        residues = two_chains.residues
        for i in range(1, two_chains.n_residues):
            if two_chains.is_chain_start(i + 1):
                continue
            a, b = residues[i], residues[i + 1]
            assert np.linalg.norm(b.ca - a.ca) == pytest.approx(3.80, abs=0.03)
            assert np.linalg.norm(b.n - a.c) == pytest.approx(1.33)


class TestRejection:
    """Tests for rejected moves."""

    def test_rejection_leaves_state_untouched(self, single_chain, shifted_model, config):
        config = dataclasses.replace(config, thermobeta=50.0)
        driver = MoveDriver(single_chain, shifted_model, config)
        # every recomputed pair now costs more than its committed value
        shifted_model.offset = 20.0
        before = snapshot(single_chain)
        matrix = driver.energies.as_array()
        energy = driver.energy
        for _ in range(50):
            assert not driver.move()
        after = snapshot(single_chain)
        np.testing.assert_array_equal(after[0], before[0])
        np.testing.assert_array_equal(after[1], before[1])
        np.testing.assert_array_equal(after[2], before[2])
        assert after[3] == before[3]
        np.testing.assert_array_equal(driver.energies.as_array(), matrix)
        assert driver.energy == energy
        assert driver.rejected == 50
        assert not driver.staging.active


class TestFixed:
    """Tests for FIXED residues under sampling."""

    def test_fixed_never_move(self, contact_model, config):
        fixed = [False] * 12
        fixed[0] = fixed[6] = fixed[11] = True
        conf = Conformation.from_sequence("ACDEFG/HIKLMN", Draws(seed=8), fixed=fixed)
        before = conf.positions()
        driver = MoveDriver(conf, contact_model, config)
        for _ in range(300):
            driver.move()
        after = conf.positions()
        for k in (0, 6, 11):
            np.testing.assert_array_equal(after[k], before[k])
        assert driver.accepted > 0


class TestNestedSampling:
    """Tests for the Nested-Sampling branch."""

    def test_threshold_required(self, single_chain, contact_model, config):
        config = dataclasses.replace(config, nested_sampling=True)
        driver = MoveDriver(single_chain, contact_model, config)
        with pytest.raises(ValueError):
            driver.move()

    def test_containment(self, single_chain, contact_model, config):
        """Starting below the threshold, the energy never reaches it."""
        config = dataclasses.replace(config, nested_sampling=True)
        driver = MoveDriver(single_chain, contact_model, config)
        threshold = driver.energy + 2.0
        for _ in range(300):
            driver.move(log_l_star=-threshold)
            assert driver.energy < threshold
        fresh = EnergyMatrix.compute(single_chain, contact_model)
        assert driver.energy == pytest.approx(fresh.total(), abs=1e-6)


class TestModes:
    """Tests for step modes and calibration."""

    def test_reset_mode_zeroes_counters(self, single_chain, contact_model, config):
        driver = MoveDriver(single_chain, contact_model, config)
        for _ in range(5):
            driver.move()
        driver.move(mode=CalibrationMode.RESET)
        counters = driver.amplitude.accept_counter + driver.amplitude.reject_counter
        assert counters == 1

    def test_integer_mode(self, single_chain, contact_model, config):
        driver = MoveDriver(single_chain, contact_model, config)
        driver.move(mode=1)
        assert driver.accepted + driver.rejected == 1

    @pytest.mark.slow
    def test_calibration_grows_amplitude_when_all_accepted(
        self, single_chain, constant_model, config
    ):
        config = dataclasses.replace(config, amplitude=-0.1, acceptance_rate=0.4)
        driver = MoveDriver(single_chain, constant_model, config)
        magnitudes = [abs(driver.amplitude.amplitude)]
        for _ in range(4 * WINDOW):
            driver.move(mode=CalibrationMode.CALIBRATE)
            magnitudes.append(abs(driver.amplitude.amplitude))
        assert driver.rejected == 0
        assert all(b >= a for a, b in zip(magnitudes, magnitudes[1:]))
        assert magnitudes[-1] == pytest.approx(0.1 / 0.95**4)


class TestTranslation:
    """Tests for the translational sub-move."""

    def test_translations_follow_global_term(self, two_chains, config):
        config = dataclasses.replace(config, external_potential="positional")
        model = CalphaContactModel(anchor=[0.0, 0.0, 0.0])
        driver = MoveDriver(two_chains, model, config)
        for _ in range(500):
            driver.move()
        assert driver.translations > 0
        fresh = EnergyMatrix.compute(two_chains, model)
        assert driver.energies.global_energy == pytest.approx(fresh.global_energy)
        assert driver.energy == pytest.approx(fresh.total(), abs=1e-6)

    def test_no_translation_without_potential(self, two_chains, config):
        model = CalphaContactModel(anchor=[0.0, 0.0, 0.0])
        driver = MoveDriver(two_chains, model, config)
        for _ in range(200):
            driver.move()
        assert driver.translations == 0

    def test_translation_only_after_pivot(self, two_chains, config):
        config = dataclasses.replace(config, external_potential="positional")
        model = CalphaContactModel(anchor=[0.0, 0.0, 0.0])
        driver = MoveDriver(two_chains, model, config)
        kinds = []
        translate = driver._translate

        def recording_translate(log_l_star=None):
            kinds.append(driver.last_move.kind)
            return translate(log_l_star)

        driver._translate = recording_translate
        for _ in range(500):
            driver.move()
        assert kinds
        assert all(kind.is_pivot for kind in kinds)


class TestSidechains:
    """Tests for the side-chain switch."""

    def test_config_must_match_conformation(self, single_chain, constant_model, config):
        config = dataclasses.replace(config, sidechains=False)
        with pytest.raises(ValueError):
            MoveDriver(single_chain, constant_model, config)

    def test_conformation_without_sidechains_needs_matching_config(
        self, constant_model, config
    ):
        conf = Conformation.from_sequence("MKTAYIAGVP", Draws(seed=7), sidechains=False)
        with pytest.raises(ValueError):
            MoveDriver(conf, constant_model, config)

    def test_gamma_stays_on_side_chain(self, single_chain, contact_model, config):
        """γ is re-derived with the backbone, 1.52 Å from Cβ."""
        driver = MoveDriver(single_chain, contact_model, config)
        for _ in range(300):
            driver.move()
        for res in single_chain.residues[1:]:
            if res.has_gamma:
                assert np.linalg.norm(res.g - res.cb) == pytest.approx(1.52, abs=1e-6)

    def test_backbone_only_sampling(self, contact_model, config):
        conf = Conformation.from_sequence("MKTAYIAGVP", Draws(seed=7), sidechains=False)
        chis = [(r.chi1, r.chi2) for r in conf.residues[1:]]
        driver = MoveDriver(conf, contact_model, dataclasses.replace(config, sidechains=False))
        for _ in range(300):
            driver.move()
        assert driver.accepted > 0
        assert [(r.chi1, r.chi2) for r in conf.residues[1:]] == chis
        for res in conf.residues[1:]:
            assert "g" not in res.atom_names()
            np.testing.assert_array_equal(res.g, np.zeros(3))


class TestFinalize:
    """Tests for teardown."""

    def test_finalize_releases(self, single_chain, constant_model, config):
        driver = MoveDriver(single_chain, constant_model, config)
        driver.move()
        driver.finalize()
        assert constant_model.finalized
        assert single_chain.energies is None
        with pytest.raises(RuntimeError):
            driver.move()
