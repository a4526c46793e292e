"""
Residue records and per-type rules for coarse-grained polypeptides.

Each :class:`Residue` carries backbone atoms (N, Cα, C, O, amide H), the side
chain (Cβ and a single γ atom), its χ1/χ2 dihedrals, bit flags and its chain
membership. Residue-type rules decide which atoms and dihedrals exist:

- glycine (``G``) has no Cβ and no χ angles,
- alanine (``A``) has a Cβ but no χ angles,
- proline (``P``) has no amide hydrogen,
- only valine, isoleucine and threonine (``V``, ``I``, ``T``) carry χ2.

Undefined dihedrals are ``None``.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field

import numpy as np

AMINO_ACIDS = "ACDEFGHIKLMNPQRSTVWY"

NO_CB = frozenset("G")
NO_CHI1 = frozenset("GA")
NO_AMIDE_H = frozenset("P")
HAS_CHI2 = frozenset("VIT")

# Default rotamer placements (radians)
DEFAULT_CHI1 = -math.pi / 3
DEFAULT_CHI2 = math.pi

ATOM_NAMES = ("n", "ca", "c", "o", "h", "cb", "g")

THREE_LETTER = {
    "A": "ALA", "C": "CYS", "D": "ASP", "E": "GLU", "F": "PHE",
    "G": "GLY", "H": "HIS", "I": "ILE", "K": "LYS", "L": "LEU",
    "M": "MET", "N": "ASN", "P": "PRO", "Q": "GLN", "R": "ARG",
    "S": "SER", "T": "THR", "V": "VAL", "W": "TRP", "Y": "TYR",
}  # fmt: skip

# PDB name and element of each atom slot; the gamma atom depends on the type
PDB_ATOMS = {
    "n": ("N", "N"),
    "ca": ("CA", "C"),
    "c": ("C", "C"),
    "o": ("O", "O"),
    "h": ("H", "H"),
    "cb": ("CB", "C"),
}
GAMMA_ATOMS = {
    "C": ("SG", "S"),
    "S": ("OG", "O"),
    "T": ("OG1", "O"),
    "V": ("CG1", "C"),
    "I": ("CG1", "C"),
}
DEFAULT_GAMMA = ("CG", "C")


class ResidueFlag(enum.IntFlag):
    """Per-residue bit flags."""

    NONE = 0
    FIXED = 1
    CONSTRAINED = 2


def _zero() -> np.ndarray:
    return np.zeros(3)


@dataclass(eq=False)
class Residue:
    """
    One amino-acid unit of the chain.

    Attributes
    ----------
    id : str
        One-letter residue type code.
    num : int
        Sequence index (1-based; 0 is the sentinel slot).
    chainid : int
        Index of the polypeptide chain the residue belongs to.
    flags : ResidueFlag
        FIXED residues never move; CONSTRAINED ones are restrained by the
        potential model.
    n, ca, c, o, h, cb, g : numpy.ndarray
        Atom positions in Å. ``h`` is unused for proline, ``cb`` for glycine
        and ``g`` whenever ``chi1`` is ``None`` or ``sidechain`` is off.
    chi1, chi2 : float or None
        Side-chain dihedrals in radians.
    sidechain : bool
        Whether the γ atom is modelled at all.
    """

    id: str
    num: int = 0
    chainid: int = 0
    flags: ResidueFlag = ResidueFlag.NONE
    n: np.ndarray = field(default_factory=_zero)
    ca: np.ndarray = field(default_factory=_zero)
    c: np.ndarray = field(default_factory=_zero)
    o: np.ndarray = field(default_factory=_zero)
    h: np.ndarray = field(default_factory=_zero)
    cb: np.ndarray = field(default_factory=_zero)
    g: np.ndarray = field(default_factory=_zero)
    chi1: float | None = None
    chi2: float | None = None
    sidechain: bool = True

    @classmethod
    def of_type(
        cls,
        code: str,
        num: int = 0,
        chainid: int = 0,
        flags: ResidueFlag = ResidueFlag.NONE,
        sidechain: bool = True,
    ) -> Residue:
        """
        Create a residue with the default dihedrals for its type.

        Raises
        ------
        ValueError
            If ``code`` is not one of the 20 standard one-letter codes.
        """
        if code not in AMINO_ACIDS:
            raise ValueError(f"Unknown residue type {code!r}! CANNOT create residue!")
        chi1 = None if code in NO_CHI1 else DEFAULT_CHI1
        chi2 = DEFAULT_CHI2 if code in HAS_CHI2 else None
        return cls(
            code,
            num=num,
            chainid=chainid,
            flags=flags,
            chi1=chi1,
            chi2=chi2,
            sidechain=sidechain,
        )

    @property
    def fixed(self) -> bool:
        return bool(self.flags & ResidueFlag.FIXED)

    @property
    def constrained(self) -> bool:
        return bool(self.flags & ResidueFlag.CONSTRAINED)

    @property
    def has_cb(self) -> bool:
        return self.id not in NO_CB

    @property
    def has_h(self) -> bool:
        return self.id not in NO_AMIDE_H

    @property
    def has_gamma(self) -> bool:
        return self.sidechain and self.chi1 is not None

    def atom_names(self) -> list[str]:
        """Names of the atoms this residue type actually has."""
        names = ["n", "ca", "c", "o"]
        if self.has_h:
            names.append("h")
        if self.has_cb:
            names.append("cb")
        if self.has_gamma:
            names.append("g")
        return names

    def pdb_atoms(self) -> list[tuple[str, str, str]]:
        """``(slot, PDB atom name, element symbol)`` for every atom present."""
        atoms = []
        for name in self.atom_names():
            if name == "g":
                pdb_name, element = GAMMA_ATOMS.get(self.id, DEFAULT_GAMMA)
            else:
                pdb_name, element = PDB_ATOMS[name]
            atoms.append((name, pdb_name, element))
        return atoms

    def positions(self) -> np.ndarray:
        """
        Stack of all atom slots in :data:`ATOM_NAMES` order, shape ``(7, 3)``.
        """
        return np.array([getattr(self, name) for name in ATOM_NAMES])

    def translate(self, shift: np.ndarray) -> None:
        """Shift every atom the residue type has by ``shift`` (Å)."""
        for name in self.atom_names():
            setattr(self, name, getattr(self, name) + shift)

    def copy(self) -> Residue:
        """Deep copy (atom arrays are not shared)."""
        return Residue(
            self.id,
            num=self.num,
            chainid=self.chainid,
            flags=self.flags,
            n=self.n.copy(),
            ca=self.ca.copy(),
            c=self.c.copy(),
            o=self.o.copy(),
            h=self.h.copy(),
            cb=self.cb.copy(),
            g=self.g.copy(),
            chi1=self.chi1,
            chi2=self.chi2,
            sidechain=self.sidechain,
        )
