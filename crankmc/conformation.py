"""
crankmc.conformation
====================

Committed chain state and the staging transaction used to build trial moves.

Classes
-------
Conformation : Residues 1..n, bond frames, per-chain previous frames and the
    committed energy matrix.
StagingBuffer : Copy-on-write shadow of a conformation. A move writes only
    here; :meth:`StagingBuffer.commit` copies the staged state back and
    :meth:`StagingBuffer.discard` drops it.

Examples
--------
>>> from crankmc.conformation import Conformation
>>> from crankmc.space import Draws
>>> conf = Conformation.from_sequence("ACDEF/GHIK", Draws(seed=0))
>>> conf.n_residues, conf.n_chains
(9, 2)
>>> conf.sequence
'ACDEF/GHIK'
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

import numpy as np

from crankmc.peptide import advance_ca, place_residue_atoms, random_frames
from crankmc.residue import Residue, ResidueFlag
from crankmc.space import Draws

if TYPE_CHECKING:
    from crankmc.energy_matrix import EnergyMatrix

CHAIN_BREAK = "/"
CHAIN_SPACING = 15.0


class Conformation:
    """
    Committed state of one or more polypeptide chains.

    Attributes
    ----------
    residues : list[Residue]
        ``residues[0]`` is a sentinel; the chain proper is ``residues[1:]``.
    chain_ids : numpy.ndarray of int, shape (n + 2,)
        Chain index of each residue, ``-1`` at the sentinel slots ``0`` and
        ``n + 1`` so window arithmetic never leaves the array.
    frames : numpy.ndarray, shape (n + 1, 3, 3)
        ``frames[i]`` is the frame of the bond between residues ``i`` and
        ``i + 1``; for a chain's last residue it is a virtual bond that only
        positions C and O. ``frames[0]`` is unused.
    prev_frames : numpy.ndarray, shape (n_chains, 3, 3)
        Virtual bond preceding each chain's first residue (positions its N/H).
    sidechains : bool
        Whether γ atoms are placed.
    energies : EnergyMatrix or None
        Committed pairwise energy matrix, attached by the move driver.
    """

    def __init__(
        self,
        residues: list[Residue],
        frames: np.ndarray,
        prev_frames: np.ndarray,
        sidechains: bool = True,
    ):
        self.residues = residues
        self.frames = np.asarray(frames, dtype=float)
        self.prev_frames = np.asarray(prev_frames, dtype=float)
        self.sidechains = sidechains
        self.energies: EnergyMatrix | None = None

        n = len(residues) - 1
        self.chain_ids = np.full(n + 2, -1, dtype=int)
        for i in range(1, n + 1):
            self.chain_ids[i] = residues[i].chainid
        if self.frames.shape != (n + 1, 3, 3):
            raise ValueError(
                f"Expected {n + 1} bond frames for {n} residues, got {self.frames.shape[0]}!"
            )

    @classmethod
    def from_frames(
        cls,
        sequence: str,
        frames: np.ndarray,
        prev_frames: np.ndarray,
        origins: Sequence | None = None,
        fixed: Sequence[bool] | None = None,
        constrained: Sequence[bool] | None = None,
        sidechains: bool = True,
    ) -> Conformation:
        """
        Build a conformation with ideal peptide geometry from explicit frames.

        Parameters
        ----------
        sequence : str
            One-letter codes, chains separated by ``"/"``.
        frames : array-like, shape (n + 1, 3, 3)
            Bond frames (``frames[0]`` is ignored).
        prev_frames : array-like, shape (n_chains, 3, 3)
            Frame preceding each chain's first residue.
        origins : sequence of array-like, optional
            First Cα of each chain. Defaults to chains spaced along x.
        fixed, constrained : sequence of bool, optional
            Per-residue FIXED / CONSTRAINED flags (length n).
        sidechains : bool, default=True
            Whether to place γ atoms.

        Returns
        -------
        Conformation

        Raises
        ------
        ValueError
            On an empty sequence, an unknown residue letter or flag lists of
            the wrong length.
        """
        residues = _make_residues(sequence, fixed, constrained, sidechains)
        frames = np.asarray(frames, dtype=float)
        prev_frames = np.asarray(prev_frames, dtype=float)
        n_chains = residues[-1].chainid + 1
        if origins is None:
            origins = [np.array([CHAIN_SPACING * k, 0.0, 0.0]) for k in range(n_chains)]

        for i in range(1, len(residues)):
            residue = residues[i]
            if residue.chainid != residues[i - 1].chainid:
                residue.ca = np.asarray(origins[residue.chainid], dtype=float).copy()
                before = prev_frames[residue.chainid]
            else:
                residue.ca = advance_ca(residues[i - 1].ca, frames[i - 1])
                before = frames[i - 1]
            place_residue_atoms(residue, before, frames[i])

        return cls(residues, frames, prev_frames, sidechains=sidechains)

    @classmethod
    def from_sequence(
        cls,
        sequence: str,
        draws: Draws,
        fixed: Sequence[bool] | None = None,
        constrained: Sequence[bool] | None = None,
        sidechains: bool = True,
    ) -> Conformation:
        """
        Build a random, non-degenerate conformation for ``sequence``.

        Each chain gets random Cα bends between 85° and 150° and random
        peptide-plane orientations; the result is deterministic for a seeded
        ``draws``.
        """
        chains = sequence.split(CHAIN_BREAK)
        n = sum(len(chain) for chain in chains)
        frames = np.zeros((n + 1, 3, 3))
        frames[0] = np.eye(3)
        prev_frames = np.zeros((len(chains), 3, 3))
        first = 1
        for k, chain in enumerate(chains):
            block = random_frames(len(chain) + 1, draws)
            prev_frames[k] = block[0]
            frames[first : first + len(chain)] = block[1:]
            first += len(chain)
        return cls.from_frames(
            sequence,
            frames,
            prev_frames,
            fixed=fixed,
            constrained=constrained,
            sidechains=sidechains,
        )

    @property
    def n_residues(self) -> int:
        return len(self.residues) - 1

    @property
    def n_chains(self) -> int:
        return len(self.prev_frames)

    @property
    def sequence(self) -> str:
        """One-letter sequence with ``"/"`` at chain breaks."""
        letters = []
        for i in range(1, self.n_residues + 1):
            if i > 1 and self.is_chain_start(i):
                letters.append(CHAIN_BREAK)
            letters.append(self.residues[i].id)
        return "".join(letters)

    def is_chain_start(self, i: int) -> bool:
        """True if residue ``i`` opens a chain (residue 1 always does)."""
        return bool(self.chain_ids[i] != self.chain_ids[i - 1])

    def chain_lengths(self) -> list[int]:
        return [int(np.sum(self.chain_ids == k)) for k in range(self.n_chains)]

    def fixed_mask(self) -> np.ndarray:
        return np.array([r.fixed for r in self.residues[1:]], dtype=bool)

    def constrained_mask(self) -> np.ndarray:
        return np.array([r.constrained for r in self.residues[1:]], dtype=bool)

    def ca_trace(self) -> np.ndarray:
        """Cα coordinates of residues 1..n, shape ``(n, 3)``."""
        return np.array([r.ca for r in self.residues[1:]])

    def positions(self) -> np.ndarray:
        """All atom slots of residues 1..n, shape ``(n, 7, 3)``."""
        return np.array([r.positions() for r in self.residues[1:]])

    def begin(self) -> StagingBuffer:
        """Open a fresh staging transaction on this conformation."""
        return StagingBuffer(self).begin()

    def copy(self) -> Conformation:
        """Deep copy of coordinates, frames, flags and the energy matrix."""
        clone = Conformation(
            [r.copy() for r in self.residues],
            self.frames.copy(),
            self.prev_frames.copy(),
            sidechains=self.sidechains,
        )
        if self.energies is not None:
            clone.energies = self.energies.copy()
        return clone


class StagingBuffer:
    """
    Two-phase-commit shadow of a :class:`Conformation`.

    Reads fall through to the committed conformation until an index has been
    staged; writes only ever touch the buffer. One buffer is reused across
    steps by the move driver.

    Parameters
    ----------
    conformation : Conformation
        Committed state this buffer shadows.

    Examples
    --------
    >>> from crankmc.conformation import Conformation
    >>> from crankmc.space import Draws
    >>> conf = Conformation.from_sequence("AAAA", Draws(seed=1))
    >>> with conf.begin() as staging:
    ...     staging.stage_residue(2).ca += 1.0
    >>> # leaving the block without commit() discards the change
    >>> bool((staging.residue(2).ca == conf.residues[2].ca).all())
    True
    """

    def __init__(self, conformation: Conformation):
        self.conformation = conformation
        self.residues: dict[int, Residue] = {}
        self.frames: dict[int, np.ndarray] = {}
        self.prev_frames: dict[int, np.ndarray] = {}
        self.active = False

    def begin(self) -> StagingBuffer:
        if self.active:
            raise RuntimeError("Staging buffer already holds a move! CANNOT begin another!")
        self._clear()
        self.active = True
        return self

    def _clear(self) -> None:
        self.residues.clear()
        self.frames.clear()
        self.prev_frames.clear()

    def _check_active(self) -> None:
        if not self.active:
            raise RuntimeError("No open staging transaction! Call begin() first!")

    def residue(self, i: int) -> Residue:
        """Staged residue ``i`` if present, else the committed one."""
        staged = self.residues.get(i)
        return staged if staged is not None else self.conformation.residues[i]

    def stage_residue(self, i: int) -> Residue:
        """Writable copy of residue ``i`` (copied on first access)."""
        self._check_active()
        if i not in self.residues:
            self.residues[i] = self.conformation.residues[i].copy()
        return self.residues[i]

    def frame(self, i: int) -> np.ndarray:
        staged = self.frames.get(i)
        return staged if staged is not None else self.conformation.frames[i]

    def set_frame(self, i: int, frame: np.ndarray) -> None:
        self._check_active()
        self.frames[i] = frame

    def prev_frame(self, chain: int) -> np.ndarray:
        staged = self.prev_frames.get(chain)
        return staged if staged is not None else self.conformation.prev_frames[chain]

    def set_prev_frame(self, chain: int, frame: np.ndarray) -> None:
        self._check_active()
        self.prev_frames[chain] = frame

    def frame_before(self, i: int) -> np.ndarray:
        """Frame that positions residue ``i``'s N and H."""
        if self.conformation.is_chain_start(i):
            return self.prev_frame(int(self.conformation.chain_ids[i]))
        return self.frame(i - 1)

    def staged_indices(self) -> list[int]:
        return sorted(self.residues)

    def commit(self) -> None:
        """Copy every staged residue and frame into the conformation."""
        self._check_active()
        conf = self.conformation
        for i, residue in self.residues.items():
            conf.residues[i] = residue
        for i, frame in self.frames.items():
            conf.frames[i] = frame
        for chain, frame in self.prev_frames.items():
            conf.prev_frames[chain] = frame
        self._clear()
        self.active = False

    def discard(self) -> None:
        self._clear()
        self.active = False

    def __enter__(self) -> StagingBuffer:
        if not self.active:
            self.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.active:
            self.discard()


def _make_residues(
    sequence: str,
    fixed: Sequence[bool] | None,
    constrained: Sequence[bool] | None,
    sidechains: bool = True,
) -> list[Residue]:
    chains = sequence.split(CHAIN_BREAK)
    if not sequence or any(len(chain) == 0 for chain in chains):
        raise ValueError(f"Empty chain in sequence {sequence!r}! CANNOT build conformation!")
    n = sum(len(chain) for chain in chains)
    for name, mask in (("fixed", fixed), ("constrained", constrained)):
        if mask is not None and len(mask) != n:
            raise ValueError(f"{name} flags have length {len(mask)}, expected {n}!")

    residues = [Residue("-", num=0, chainid=-1)]
    for chainid, chain in enumerate(chains):
        for code in chain:
            num = len(residues)
            flags = ResidueFlag.NONE
            if fixed is not None and fixed[num - 1]:
                flags |= ResidueFlag.FIXED
            if constrained is not None and constrained[num - 1]:
                flags |= ResidueFlag.CONSTRAINED
            residues.append(
                Residue.of_type(
                    code, num=num, chainid=chainid, flags=flags, sidechain=sidechains
                )
            )
    return residues
