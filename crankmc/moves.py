"""
crankmc.moves
=============

Construction of trial crankshaft and pivot moves.

A move picks a window ``[start, end]`` from the lookup table, rotates the
bond frames ``start..end-1`` by a random angle, re-propagates the Cα atoms
from the anchored side and re-derives the atoms of every rebuilt residue.
Everything is written into a :class:`~crankmc.conformation.StagingBuffer`;
the committed conformation is only read.

Classes
-------
MoveKind : Crankshaft, pivot around start, pivot around end.
TrialMove : Description of one built move.
MoveGeometryBuilder : Selects, classifies and builds moves.

Functions
---------
classify_move : Decide the kind of a window.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

import numpy as np

from crankmc.conformation import Conformation, StagingBuffer
from crankmc.energy import EnergyModel
from crankmc.errors import stop
from crankmc.kernels import normalize, rotate_frame, rotation_matrix
from crankmc.lookup import MoveLookupTable
from crankmc.peptide import advance_ca, place_residue_atoms, retreat_ca
from crankmc.residue import HAS_CHI2, NO_CHI1
from crankmc.space import AxisAngle, Draws

CHI_RESAMPLE_PROBABILITY = 0.25


class MoveKind(enum.Enum):
    CRANKSHAFT = "crankshaft"
    PIVOT_AROUND_START = "pivot_around_start"
    PIVOT_AROUND_END = "pivot_around_end"

    @property
    def is_pivot(self) -> bool:
        return self is not MoveKind.CRANKSHAFT


@dataclass
class TrialMove:
    """
    One constructed move.

    Attributes
    ----------
    kind : MoveKind
    length : int
        Segment length class drawn from the lookup table.
    start, end : int
        Window as selected (before pivot adjustment).
    first, last : int
        Inclusive range of rebuilt residues.
    angle : float
        Rotation angle (radians).
    axis : numpy.ndarray
        Unit rotation axis.
    resampled_chi : bool
        Whether side-chain dihedrals were redrawn.
    """

    kind: MoveKind
    length: int
    start: int
    end: int
    first: int
    last: int
    angle: float
    axis: np.ndarray
    resampled_chi: bool = False


def classify_move(start: int, end: int, chain_ids: np.ndarray, draws: Draws) -> MoveKind:
    """
    Kind of the move over window ``[start, end]``.

    A window touching slot ``0`` pivots around its end and one touching slot
    ``n + 1`` around its start. A window crossing a chain break pivots on the
    side that keeps the rotated segment on one chain; a two-residue window at
    a break picks the side by coin flip. Anything else is a crankshaft.
    """
    n = len(chain_ids) - 2
    if start == 0:
        return MoveKind.PIVOT_AROUND_END
    if end == n + 1:
        return MoveKind.PIVOT_AROUND_START
    if chain_ids[start] != chain_ids[end]:
        if end - start == 1:
            return MoveKind.PIVOT_AROUND_START if draws.coin() else MoveKind.PIVOT_AROUND_END
        if chain_ids[start] == chain_ids[start + 1]:
            return MoveKind.PIVOT_AROUND_START
        if chain_ids[end] == chain_ids[end - 1]:
            return MoveKind.PIVOT_AROUND_END
        stop(f"Something has gone wrong at the MC move selection ({start}-{end}).")
    return MoveKind.CRANKSHAFT


class MoveGeometryBuilder:
    """
    Builds trial moves of a conformation into a staging buffer.

    Parameters
    ----------
    conformation : Conformation
        Committed state (read only).
    lookup : MoveLookupTable
        Legal windows.
    model : EnergyModel
        Supplies side-chain dihedral samples.
    draws : Draws
        Source of randomness.
    fix_ca : bool, default=False
        Keep every Cα in place: windows always span two residues.
    fix_chi : bool, default=False
        Never resample side-chain dihedrals.
    sidechains : bool, default=True
        Whether γ atoms exist (dihedrals are only resampled if so).
    """

    def __init__(
        self,
        conformation: Conformation,
        lookup: MoveLookupTable,
        model: EnergyModel,
        draws: Draws,
        fix_ca: bool = False,
        fix_chi: bool = False,
        sidechains: bool = True,
    ):
        self.conformation = conformation
        self.lookup = lookup
        self.model = model
        self.draws = draws
        self.fix_ca = fix_ca
        self.fix_chi = fix_chi
        self.sidechains = sidechains

    def select(self) -> tuple[int, int, int]:
        """Draw ``(length, start, end)`` from the lookup table."""
        length, start = self.lookup.sample(self.draws.integer())
        end = start + 1 if self.fix_ca else start + length + 1
        return length, start, end

    def build(self, staging: StagingBuffer, amplitude: float) -> TrialMove:
        """
        Build one random move into ``staging``.

        Parameters
        ----------
        staging : StagingBuffer
            Open transaction; only this is written.
        amplitude : float
            Rotation amplitude (radians); angles are drawn in
            ``[-|amplitude|, +|amplitude|]``.

        Returns
        -------
        TrialMove

        Raises
        ------
        SimulationError
            If the move would rebuild a FIXED residue.
        """
        length, start, end = self.select()
        return self.build_window(staging, amplitude, length, start, end)

    def build_window(
        self,
        staging: StagingBuffer,
        amplitude: float,
        length: int,
        start: int,
        end: int,
    ) -> TrialMove:
        """Build the move over an explicit window ``[start, end]``."""
        conf = self.conformation
        chain_ids = conf.chain_ids
        kind = classify_move(start, end, chain_ids, self.draws)

        first = start + 1 if kind is MoveKind.PIVOT_AROUND_END else start
        last = end - 1 if kind is MoveKind.PIVOT_AROUND_START else end
        for k in range(first, last + 1):
            if conf.residues[k].fixed:
                stop(f"Tried to move fixed residue {k} (window {start}-{end}).")

        resampled = self._resample_chis(staging, first, last)

        space = AxisAngle(amplitude, self.draws)
        if kind is MoveKind.CRANKSHAFT:
            angle = space.angle()
            axis = normalize(conf.residues[end].ca - conf.residues[start].ca)
        else:
            sample = space.generator()
            angle = float(sample[3])
            axis = sample[:3]
        rot = rotation_matrix(axis, angle)

        # rotate the bond frames of the window
        for i in range(start, end):
            if kind is MoveKind.PIVOT_AROUND_END and i == start:
                chain = int(chain_ids[end])
                staging.set_prev_frame(chain, rotate_frame(conf.prev_frames[chain], rot))
            else:
                staging.set_frame(i, rotate_frame(conf.frames[i], rot))

        # propagate CAs away from the anchor
        if kind is MoveKind.PIVOT_AROUND_END:
            for i in range(end - 1, start, -1):
                staging.stage_residue(i).ca = retreat_ca(
                    staging.residue(i + 1).ca, staging.frame(i)
                )
        else:
            for i in range(start, end - 1):
                staging.stage_residue(i + 1).ca = advance_ca(
                    staging.residue(i).ca, staging.frame(i)
                )

        for i in range(first, last + 1):
            place_residue_atoms(
                staging.stage_residue(i),
                staging.frame_before(i),
                staging.frame(i),
            )

        return TrialMove(
            kind=kind,
            length=length,
            start=start,
            end=end,
            first=first,
            last=last,
            angle=angle,
            axis=np.asarray(axis),
            resampled_chi=resampled,
        )

    def _resample_chis(self, staging: StagingBuffer, first: int, last: int) -> bool:
        # one draw per move; P = 1/4 unless dihedrals are fixed
        if not self.sidechains or self.fix_chi:
            return False
        if self.draws.uniform() >= CHI_RESAMPLE_PROBABILITY:
            return False
        for i in range(first, last + 1):
            residue = self.conformation.residues[i]
            if residue.id in NO_CHI1 or residue.chi1 is None:
                continue
            staged = staging.stage_residue(i)
            staged.chi1 = self.model.sidechain_dihedral(residue.id, self.draws)
            if residue.id in HAS_CHI2 and residue.chi2 is not None:
                staged.chi2 = self.model.sidechain_dihedral2(
                    residue.id, staged.chi1, self.draws
                )
        return True
