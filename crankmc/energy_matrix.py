"""
crankmc.energy_matrix
=====================

Committed symmetric pairwise-energy matrix with incremental trial updates.

The matrix has shape ``(n + 1, n + 1)``. Cell ``[i, j]`` (``i, j >= 1``) is
the interaction of residues ``i`` and ``j``, the diagonal holds self terms and
cell ``[0, 0]`` holds the current global/external term. Every write goes
through :meth:`EnergyMatrix.set_pair` or :meth:`EnergyMatrix.commit`, both of
which write the two triangles together.

A trial only recomputes the rows of the moved window, so a step costs
``O(window * n)`` pair evaluations instead of ``O(n**2)``.

Classes
-------
EnergyMatrix : Symmetric accessor, initial fill, trial evaluation and commit.
TrialEnergies : Rows, losses and global term of one candidate move.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from crankmc.conformation import Conformation, StagingBuffer
    from crankmc.energy import EnergyModel


@dataclass
class TrialEnergies:
    """
    Energies of one candidate move over rows ``first..last``.

    Attributes
    ----------
    first, last : int
        Inclusive residue window the move rebuilt.
    rows : numpy.ndarray, shape (last - first + 1, n + 1)
        Recomputed rows; ``rows[k, j]`` is the trial value of cell
        ``[first + k, j]``. Column 0 is unused.
    internal_loss : float
        Sum of ``old - new`` over the recomputed pair and self terms.
        Negative means the energy went up.
    external_loss : float
        ``old_global - new_global``.
    global_energy : float
        Trial global/external term.
    """

    first: int
    last: int
    rows: np.ndarray
    internal_loss: float
    external_loss: float
    global_energy: float

    @property
    def loss(self) -> float:
        return self.internal_loss + self.external_loss


class EnergyMatrix:
    """
    Symmetric pairwise-energy matrix.

    Parameters
    ----------
    n_residues : int
        Number of residues ``n``; the matrix is ``(n + 1) x (n + 1)``.

    Examples
    --------
    >>> matrix = EnergyMatrix(3)
    >>> matrix.set_pair(1, 3, -2.0)
    >>> matrix[3, 1]
    -2.0
    >>> matrix.total()
    -2.0
    """

    def __init__(self, n_residues: int):
        self.n_residues = n_residues
        self._matrix = np.zeros((n_residues + 1, n_residues + 1))

    @classmethod
    def compute(cls, conformation: Conformation, model: EnergyModel) -> EnergyMatrix:
        """
        Fill every pair, self and global term from scratch.

        Each unordered pair is evaluated once.
        """
        n = conformation.n_residues
        matrix = cls(n)
        residues = conformation.residues
        for i in range(1, n + 1):
            matrix.set_pair(i, i, model.self_energy(residues[i]))
            for j in range(i + 1, n + 1):
                matrix.set_pair(i, j, model.pairwise(residues[i], residues[j]))
        matrix.global_energy = model.global_energy(1, n, conformation)
        return matrix

    def __getitem__(self, index: tuple[int, int]) -> float:
        i, j = index
        return float(self._matrix[i, j])

    def set_pair(self, i: int, j: int, value: float) -> None:
        """Write ``value`` to ``[i, j]`` and ``[j, i]``."""
        self._matrix[i, j] = value
        self._matrix[j, i] = value

    @property
    def global_energy(self) -> float:
        return float(self._matrix[0, 0])

    @global_energy.setter
    def global_energy(self, value: float) -> None:
        self._matrix[0, 0] = value

    def total(self) -> float:
        """Upper triangle including the diagonal, plus the global term."""
        body = self._matrix[1:, 1:]
        return float(np.sum(np.triu(body))) + self.global_energy

    def is_symmetric(self) -> bool:
        return bool(np.array_equal(self._matrix, self._matrix.T))

    def as_array(self) -> np.ndarray:
        return self._matrix.copy()

    def copy(self) -> EnergyMatrix:
        clone = EnergyMatrix(self.n_residues)
        clone._matrix = self._matrix.copy()
        return clone

    def evaluate(
        self,
        staging: StagingBuffer,
        first: int,
        last: int,
        model: EnergyModel,
    ) -> TrialEnergies:
        """
        Recompute rows ``first..last`` against the staged move.

        Columns outside the window pair a trial residue with a committed one;
        columns inside the window pair two trial residues; ``j == i`` is the
        self term. Cells with ``first <= j < i`` were already computed as
        ``(j, i)`` earlier in the same sweep and are copied, not recomputed,
        which requires ``i`` and ``j`` to run in increasing order.

        Parameters
        ----------
        staging : StagingBuffer
            Open transaction holding the trial residues.
        first, last : int
            Inclusive window of rebuilt residues.
        model : EnergyModel
            Potential model.

        Returns
        -------
        TrialEnergies
        """
        n = self.n_residues
        committed = staging.conformation.residues
        rows = np.zeros((last - first + 1, n + 1))
        internal_loss = 0.0
        for i in range(first, last + 1):
            trial = staging.residue(i)
            row = rows[i - first]
            for j in range(1, n + 1):
                if j < first or j > last:
                    q = model.pairwise(trial, committed[j])
                elif j > i:
                    q = model.pairwise(trial, staging.residue(j))
                elif j == i:
                    q = model.self_energy(trial)
                else:
                    row[j] = rows[j - first, i]
                    continue
                row[j] = q
                internal_loss += self._matrix[i, j] - q

        global_energy = model.global_energy(first, last, staging.conformation, staging)
        return TrialEnergies(
            first=first,
            last=last,
            rows=rows,
            internal_loss=internal_loss,
            external_loss=self.global_energy - global_energy,
            global_energy=global_energy,
        )

    def commit(self, trial: TrialEnergies) -> None:
        """Copy the trial rows into both triangles and set the global cell."""
        for i in range(trial.first, trial.last + 1):
            row = trial.rows[i - trial.first, 1:]
            self._matrix[i, 1:] = row
            self._matrix[1:, i] = row
        self.global_energy = trial.global_energy
