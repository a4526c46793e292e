"""
Tests for crankmc.conformation module.

This module tests conformation construction and the staging transaction:
- from_sequence/from_frames: Topology, flags and determinism
- StagingBuffer: Read-through, copy-on-write, commit and discard
"""

import numpy as np
import pytest

from crankmc.conformation import Conformation, StagingBuffer
from crankmc.space import Draws


class TestConstruction:
    """Tests for building conformations."""

    def test_two_chain_topology(self, two_chains):
        assert two_chains.n_residues == 12
        assert two_chains.n_chains == 2
        assert two_chains.sequence == "ACDEFG/HIKLMN"
        assert list(two_chains.chain_ids) == [-1] + [0] * 6 + [1] * 6 + [-1]
        assert two_chains.chain_lengths() == [6, 6]

    def test_chain_starts(self, two_chains):
        starts = [i for i in range(1, 13) if two_chains.is_chain_start(i)]
        assert starts == [1, 7]

    def test_deterministic_for_seed(self):
        a = Conformation.from_sequence("ACDKLV", Draws(seed=3))
        b = Conformation.from_sequence("ACDKLV", Draws(seed=3))
        np.testing.assert_array_equal(a.positions(), b.positions())

    def test_flags(self):
        fixed = [False, True, False, False]
        constrained = [True, False, False, True]
        conf = Conformation.from_sequence(
            "AKLM", Draws(seed=1), fixed=fixed, constrained=constrained
        )
        assert list(conf.fixed_mask()) == fixed
        assert list(conf.constrained_mask()) == constrained

    def test_flag_length_mismatch(self):
        with pytest.raises(ValueError):
            Conformation.from_sequence("AKLM", Draws(seed=1), fixed=[True])

    def test_empty_chain_rejected(self):
        with pytest.raises(ValueError):
            Conformation.from_sequence("AK//LM", Draws(seed=1))

    def test_from_frames_origins(self, two_chains):
        """Explicit frames and origins reproduce a conformation exactly."""
        origins = [two_chains.residues[1].ca, two_chains.residues[7].ca]
        rebuilt = Conformation.from_frames(
            two_chains.sequence, two_chains.frames, two_chains.prev_frames, origins=origins
        )
        np.testing.assert_allclose(rebuilt.positions(), two_chains.positions())

    def test_copy_is_independent(self, single_chain):
        clone = single_chain.copy()
        clone.residues[3].ca += 1.0
        clone.frames[3] = np.eye(3)
        assert not np.allclose(clone.residues[3].ca, single_chain.residues[3].ca)
        assert not np.allclose(clone.frames[3], single_chain.frames[3])


class TestStagingBuffer:
    """Tests for the two-phase-commit shadow."""

    def test_read_through(self, single_chain):
        staging = single_chain.begin()
        assert staging.residue(4) is single_chain.residues[4]
        assert staging.frame(4) is not None
        np.testing.assert_array_equal(staging.frame(4), single_chain.frames[4])

    def test_copy_on_write(self, single_chain):
        staging = single_chain.begin()
        staged = staging.stage_residue(4)
        assert staged is not single_chain.residues[4]
        staged.ca = staged.ca + 2.0
        assert staging.residue(4) is staged
        assert not np.allclose(single_chain.residues[4].ca, staged.ca)

    def test_discard_leaves_committed(self, single_chain):
        before = single_chain.positions()
        frames = single_chain.frames.copy()
        staging = single_chain.begin()
        staging.stage_residue(2).ca = np.ones(3)
        staging.set_frame(2, np.eye(3))
        staging.set_prev_frame(0, np.eye(3))
        staging.discard()
        np.testing.assert_array_equal(single_chain.positions(), before)
        np.testing.assert_array_equal(single_chain.frames, frames)
        assert not staging.active and not staging.residues

    def test_commit_writes_back(self, two_chains):
        staging = two_chains.begin()
        staging.stage_residue(7).ca = np.ones(3)
        staging.set_prev_frame(1, np.eye(3))
        staging.set_frame(7, 2 * np.eye(3))
        staging.commit()
        np.testing.assert_array_equal(two_chains.residues[7].ca, np.ones(3))
        np.testing.assert_array_equal(two_chains.prev_frames[1], np.eye(3))
        np.testing.assert_array_equal(two_chains.frames[7], 2 * np.eye(3))

    def test_frame_before_uses_prev_frame_at_chain_start(self, two_chains):
        staging = two_chains.begin()
        staging.set_prev_frame(1, np.eye(3))
        np.testing.assert_array_equal(staging.frame_before(7), np.eye(3))
        np.testing.assert_array_equal(staging.frame_before(8), two_chains.frames[7])

    def test_begin_twice_raises(self, single_chain):
        staging = StagingBuffer(single_chain).begin()
        with pytest.raises(RuntimeError):
            staging.begin()

    def test_write_without_begin_raises(self, single_chain):
        with pytest.raises(RuntimeError):
            StagingBuffer(single_chain).stage_residue(1)

    def test_context_manager_discards(self, single_chain):
        before = single_chain.positions()
        with single_chain.begin() as staging:
            staging.stage_residue(5).ca = np.zeros(3)
        assert not staging.active
        np.testing.assert_array_equal(single_chain.positions(), before)
