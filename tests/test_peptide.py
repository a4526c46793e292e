"""
Tests for crankmc.peptide module.

This module tests the ideal trans-peptide template and atom re-derivation:
- Cα-Cα virtual bond length
- Backbone bond lengths and angles across peptide bonds
- Planar trans peptide bonds
- γ atom placement from chi1
"""

import math

import numpy as np
import pytest

from crankmc.conformation import Conformation
from crankmc.helpers import bond_angle, dihedral
from crankmc.peptide import (
    ANGLE_C_N_CA,
    ANGLE_CA_C_N,
    C_N,
    CA_C,
    CA_CA,
    N_CA,
    PEPTIDE,
    make_frame,
    random_frames,
)
from crankmc.space import Draws


class TestTemplate:
    """Tests for the 2D peptide template."""

    def test_ca_ca_length(self):
        """Trans peptide gives the familiar 3.8 Å Cα-Cα distance."""
        assert CA_CA == pytest.approx(3.80, abs=0.03)

    def test_oxygen_side(self):
        """Frame row 1 points to the carbonyl oxygen side."""
        assert PEPTIDE.o[1] > 0

    def test_make_frame_orthonormal(self):
        frame = make_frame([1.0, 1.0, 0.0], [0.0, 1.0, 1.0])
        np.testing.assert_allclose(frame @ frame.T, np.eye(3), atol=1e-12)
        np.testing.assert_allclose(frame[0], np.array([1.0, 1.0, 0.0]) / math.sqrt(2))

    def test_random_frames_bends(self, draws):
        """Consecutive frames keep the Cα-Cα-Cα angle within the bend range."""
        frames = random_frames(12, draws)
        for k in range(1, 12):
            bend = math.pi - math.acos(np.clip(frames[k - 1][0] @ frames[k][0], -1, 1))
            assert math.radians(85.0) - 1e-9 <= bend <= math.radians(150.0) + 1e-9


class TestBuiltChain:
    """Tests for geometry of a conformation built from the template."""

    def test_backbone_bonds(self, single_chain):
        for i in range(1, single_chain.n_residues + 1):
            res = single_chain.residues[i]
            assert np.linalg.norm(res.ca - res.n) == pytest.approx(N_CA)
            assert np.linalg.norm(res.c - res.ca) == pytest.approx(CA_C)

    def test_peptide_bonds(self, single_chain):
        """C(i)-N(i+1) bonds, angles and trans planarity."""
        residues = single_chain.residues
        for i in range(1, single_chain.n_residues):
            a, b = residues[i], residues[i + 1]
            assert np.linalg.norm(b.n - a.c) == pytest.approx(C_N)
            assert np.linalg.norm(b.ca - a.ca) == pytest.approx(CA_CA)
            assert bond_angle(a.ca, a.c, b.n) == pytest.approx(ANGLE_CA_C_N)
            assert bond_angle(a.c, b.n, b.ca) == pytest.approx(ANGLE_C_N_CA)
            assert abs(dihedral(a.ca, a.c, b.n, b.ca)) == pytest.approx(math.pi)

    def test_amide_hydrogen(self, single_chain):
        """N-H is 1.01 Å on every residue except proline."""
        for res in single_chain.residues[1:]:
            if res.has_h:
                assert np.linalg.norm(res.h - res.n) == pytest.approx(1.01)

    def test_gamma_follows_chi1(self, single_chain):
        """The N-Cα-Cβ-γ dihedral equals chi1."""
        for res in single_chain.residues[1:]:
            if res.has_gamma:
                assert dihedral(res.n, res.ca, res.cb, res.g) == pytest.approx(res.chi1)

    def test_no_gamma_without_sidechains(self):
        """Side chains off: γ is neither placed nor listed, chi1 is kept."""
        conf = Conformation.from_sequence("MKTAYIAGVP", Draws(seed=7), sidechains=False)
        met = conf.residues[1]
        assert met.chi1 is not None
        assert not met.has_gamma
        for res in conf.residues[1:]:
            assert "g" not in res.atom_names()
            assert "CG" not in [name for _, name, _ in res.pdb_atoms()]
            np.testing.assert_array_equal(res.g, np.zeros(3))

    def test_sidechain_flag_survives_copy(self):
        conf = Conformation.from_sequence("MKTAYIAGVP", Draws(seed=7), sidechains=False)
        clone = conf.copy()
        assert not clone.sidechains
        assert not any(res.has_gamma for res in clone.residues[1:])

    def test_glycine_has_no_side_chain(self, single_chain):
        gly = single_chain.residues[8]
        assert gly.id == "G"
        np.testing.assert_array_equal(gly.cb, np.zeros(3))
