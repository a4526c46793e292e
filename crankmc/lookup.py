"""
crankmc.lookup
==============

Table of legal move windows per segment length.

A move of length class ``L`` (0..3) spans the residue window
``[start, start + L + 1]``. For every window ``[j, j + L]`` that stays on one
chain the table holds the start ``j``; a window opening a chain additionally
contributes ``j - 1``, the pivot anchored just before the chain. Windows that
would rebuild a FIXED residue are left out and counted, so that for every
length

    legal + fixed-disallowed == n + (1 - L) * n_chains.

A mismatch means the topology is inconsistent and is fatal.

Functions
---------
build_lookup_table : Build the immutable table for a conformation.
rebuilt_residues : Residues whose atoms a window can rebuild.

Classes
-------
MoveLookupTable : Padded per-length start indices and counts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from crankmc.errors import stop

if TYPE_CHECKING:
    from crankmc.conformation import Conformation

logger = logging.getLogger(__name__)

MAX_SEGMENT = 3
SENTINEL = -1


@dataclass(frozen=True)
class MoveLookupTable:
    """
    Legal move starts for each segment length class.

    Attributes
    ----------
    entries : numpy.ndarray of int, shape (n_lengths, n + n_chains)
        Row ``L`` lists the legal starts for length ``L`` followed by
        :data:`SENTINEL` padding. Read-only.
    counts : tuple[int, ...]
        Number of legal entries per length.
    fixed_counts : tuple[int, ...]
        Number of windows disallowed because they would move a FIXED residue.
    n_residues, n_chains : int
        Topology the table was built for.
    """

    entries: np.ndarray
    counts: tuple[int, ...]
    fixed_counts: tuple[int, ...]
    n_residues: int
    n_chains: int

    @property
    def max_length(self) -> int:
        return len(self.counts) - 1

    def theoretical_count(self, length: int) -> int:
        return self.n_residues + (1 - length) * self.n_chains

    def starts(self, length: int) -> np.ndarray:
        """Legal start indices for ``length`` (no padding)."""
        return self.entries[length, : self.counts[length]]

    def sample(self, toss: int) -> tuple[int, int]:
        """
        Map a random integer onto ``(length, start)``.

        The two low bits pick the length class (clamped to the longest class
        the topology supports), the remaining bits pick the slot.

        Raises
        ------
        SimulationError
            If the length class has no legal move or a sentinel is hit.
        """
        length = min(toss & 0x3, self.max_length)
        count = self.counts[length]
        if count == 0:
            stop(f"No legal move of length {length + 1} bonds: every window is fixed.")
        start = int(self.entries[length, (toss >> 2) % count])
        if start < 0:
            stop("Something has gone wrong when selecting amino acids for the MC move.")
        return length, start


def rebuilt_residues(start: int, end: int, chain_ids: np.ndarray) -> list[int]:
    """
    Residues whose atoms a move over ``[start, end]`` can rebuild.

    Parameters
    ----------
    start, end : int
        Move window; ``start == 0`` and ``end == n + 1`` denote pivots
        anchored outside the chain.
    chain_ids : numpy.ndarray
        Chain index per residue slot, ``-1`` at ``0`` and ``n + 1``.

    Returns
    -------
    list[int]
        Residue indices in increasing order.

    Notes
    -----
    A window crossing a chain break only rebuilds the side sharing a chain
    with its interior; a two-residue window at a break may rebuild either.
    """
    n = len(chain_ids) - 2
    lo, hi = max(start, 1), min(end, n)
    crosses = start >= 1 and end <= n and chain_ids[start] != chain_ids[end]
    if crosses and end - start > 1:
        keep = chain_ids[start + 1]
        return [k for k in range(lo, hi + 1) if chain_ids[k] == keep]
    return list(range(lo, hi + 1))


def build_lookup_table(conformation: Conformation, fix_ca: bool = False) -> MoveLookupTable:
    """
    Enumerate the legal move windows of a conformation.

    Parameters
    ----------
    conformation : Conformation
        Provides the sequence, chain breaks and FIXED flags.
    fix_ca : bool, default=False
        Whether moves keep every Cα in place. Such moves always span two
        residues, which changes the residues a window can rebuild.

    Returns
    -------
    MoveLookupTable

    Raises
    ------
    SimulationError
        If the conformation has no residues or an enumerated count does not
        match the theoretical count.

    Examples
    --------
    >>> from crankmc.conformation import Conformation
    >>> from crankmc.space import Draws
    >>> table = build_lookup_table(Conformation.from_sequence("AAAAA", Draws(seed=2)))
    >>> table.counts
    (6, 5, 4, 3)
    """
    n = conformation.n_residues
    if n < 1 or not conformation.sequence:
        stop("Sequence is not present for the MC lookup table calculation.")

    chain_ids = conformation.chain_ids
    residues = conformation.residues
    n_chains = conformation.n_chains
    max_length = min(MAX_SEGMENT, min(conformation.chain_lengths()) - 1)

    logger.debug("Creating MC move lookup table.")
    logger.debug("Sequence:    %s", "".join(r.id for r in residues[1:]))
    logger.debug(
        "Fixed:       %s", "".join("x" if r.fixed else " " for r in residues[1:])
    )
    logger.debug(
        "Constrained: %s",
        "".join("x" if r.constrained else " " for r in residues[1:]),
    )
    logger.debug("Chain:       %s", "".join(str(c % 10) for c in chain_ids[1 : n + 1]))

    width = n + n_chains
    entries = np.full((max_length + 1, width), SENTINEL, dtype=int)
    counts = []
    fixed_counts = []
    for length in range(max_length + 1):
        legal = []
        fixed = 0
        for j in range(1, n - length + 1):
            if chain_ids[j] != chain_ids[j + length]:
                continue
            candidates = (j - 1, j) if conformation.is_chain_start(j) else (j,)
            for start in candidates:
                end = start + 1 if fix_ca else start + length + 1
                if any(residues[k].fixed for k in rebuilt_residues(start, end, chain_ids)):
                    fixed += 1
                else:
                    legal.append(start)

        theoretical = n + (1 - length) * n_chains
        logger.debug(
            "len %d bonds, Nchains %d: %s (%d legal + %d fixed, expected %d)",
            length + 1,
            n_chains,
            " ".join(str(s) for s in legal),
            len(legal),
            fixed,
            theoretical,
        )
        if len(legal) + fixed != theoretical:
            stop(
                f"MC lookup table for {length + 1} bonds has {len(legal)}+{fixed} "
                f"entries, expected {theoretical}. Maybe too short chains?"
            )
        entries[length, : len(legal)] = legal
        counts.append(len(legal))
        fixed_counts.append(fixed)

    entries.flags.writeable = False
    logger.info(
        "MC move lookup table: %d residues, %d chains, legal moves per length %s",
        n,
        n_chains,
        counts,
    )
    return MoveLookupTable(
        entries=entries,
        counts=tuple(counts),
        fixed_counts=tuple(fixed_counts),
        n_residues=n,
        n_chains=n_chains,
    )
