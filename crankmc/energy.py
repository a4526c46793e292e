"""
crankmc.energy
==============

Potential-model interface consumed by the move engine, plus a small reference
model.

The engine never looks inside an energy function: it asks an
:class:`EnergyModel` for pair terms, self terms, the global/external term and
side-chain dihedral samples. Energies are in kJ/mol, lower is better.

Classes
-------
EnergyModel : Interface (pairwise, self, global, dihedral sampling, teardown).
CalphaContactModel : Cα square-well contacts, steric clash penalty and
    optional positional restraints as the global term.

Examples
--------
>>> from crankmc.conformation import Conformation
>>> from crankmc.energy import CalphaContactModel
>>> from crankmc.space import Draws
>>> conf = Conformation.from_sequence("AAAAAA", Draws(seed=0))
>>> model = CalphaContactModel()
>>> model.pairwise(conf.residues[1], conf.residues[2])  # chain neighbours
0.0
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np
from openmm import unit
from openmm.unit import Quantity

from crankmc.helpers import nostrom
from crankmc.residue import Residue
from crankmc.space import Draws

if TYPE_CHECKING:
    from crankmc.conformation import Conformation, StagingBuffer

# Staggered rotamer wells for chi1 (and chi2 of isoleucine), degrees
ROTAMER_WELLS = (-60.0, 180.0, 60.0)
ROTAMER_SPREAD = 15.0


def wrap_angle(angle: float) -> float:
    """Map an angle onto ``(-pi, pi]``."""
    wrapped = math.fmod(angle + math.pi, 2 * math.pi)
    if wrapped <= 0:
        wrapped += 2 * math.pi
    return wrapped - math.pi


class EnergyModel:
    """
    Interface between the move engine and a potential model.

    Subclasses must implement :meth:`pairwise`. Every other term defaults to
    zero so a model can start from pair interactions only.
    """

    def pairwise(self, a: Residue, b: Residue) -> float:
        """Interaction energy of two distinct residues (symmetric)."""
        raise NotImplementedError

    def self_energy(self, a: Residue) -> float:
        return 0.0

    def global_energy(
        self,
        start: int,
        end: int,
        conformation: Conformation,
        staging: StagingBuffer | None = None,
    ) -> float:
        """
        Global/external term of the whole system.

        Parameters
        ----------
        start, end : int
            Residue range the current move rebuilt (a hint; the term covers
            the full chain).
        conformation : Conformation
            Committed state.
        staging : StagingBuffer, optional
            Open trial state; residues are read through it when given.
        """
        return 0.0

    def sidechain_dihedral(self, code: str, draws: Draws) -> float:
        """
        Sample chi1 for residue type ``code`` from staggered rotamer wells.
        """
        well = ROTAMER_WELLS[min(int(3 * draws.uniform()), 2)]
        return wrap_angle(math.radians(well + draws.normal(0.0, ROTAMER_SPREAD)))

    def sidechain_dihedral2(self, code: str, chi1: float, draws: Draws) -> float:
        """
        Sample chi2 given chi1.

        Valine and threonine carry their second γ branch 120° from the first;
        isoleucine samples its own rotamer well.
        """
        if code == "I":
            return self.sidechain_dihedral(code, draws)
        return wrap_angle(chi1 + 2 * math.pi / 3)

    def finalize(self) -> None:
        """Release cached model state (contact maps, bias tables)."""


class CalphaContactModel(EnergyModel):
    """
    Cα-only reference potential.

    Pair term: ``contact_energy`` when two Cα atoms are closer than
    ``contact_distance``, plus ``clash_energy`` when closer than
    ``clash_distance``. Bonded neighbours (same chain, ``|i - j| < 2``) do not
    interact.

    Global term: harmonic restraint of every CONSTRAINED residue's Cα to its
    position in ``reference`` plus a harmonic pull of the Cα centroid towards
    ``anchor``.

    Parameters
    ----------
    contact_distance, clash_distance : float or openmm.unit.Quantity
        Well and clash radii (Å when unitless).
    contact_energy, clash_energy : float
        Well depth (negative) and clash penalty (kJ/mol).
    reference : Conformation, optional
        Positions the CONSTRAINED residues are restrained to.
    restraint : float, default=1.0
        Force constant of the positional restraints (kJ/mol/Å²).
    anchor : array-like or openmm.unit.Quantity, optional
        Target of the centroid pull. No pull when ``None``.
    anchor_spring : float, default=0.5
        Force constant of the centroid pull (kJ/mol/Å²).
    """

    def __init__(
        self,
        contact_distance: float | Quantity = 6.5 * unit.angstrom,
        contact_energy: float = -1.0,
        clash_distance: float | Quantity = 4.0 * unit.angstrom,
        clash_energy: float = 10.0,
        reference: Conformation | None = None,
        restraint: float = 1.0,
        anchor=None,
        anchor_spring: float = 0.5,
    ):
        self.contact_distance = float(nostrom(contact_distance))
        self.clash_distance = float(nostrom(clash_distance))
        self.contact_energy = contact_energy
        self.clash_energy = clash_energy
        self.restraint = restraint
        self.anchor = None if anchor is None else nostrom(anchor)
        self.anchor_spring = anchor_spring

        self.reference: dict[int, np.ndarray] | None = None
        if reference is not None:
            self.reference = {
                i: reference.residues[i].ca.copy()
                for i in range(1, reference.n_residues + 1)
                if reference.residues[i].constrained
            }

    def pairwise(self, a: Residue, b: Residue) -> float:
        if a.chainid == b.chainid and abs(a.num - b.num) < 2:
            return 0.0
        d = a.ca - b.ca
        distance = math.sqrt(d[0] * d[0] + d[1] * d[1] + d[2] * d[2])
        energy = 0.0
        if distance < self.contact_distance:
            energy += self.contact_energy
        if distance < self.clash_distance:
            energy += self.clash_energy
        return energy

    def global_energy(self, start, end, conformation, staging=None) -> float:
        if not self.reference and self.anchor is None:
            return 0.0
        read = staging.residue if staging is not None else conformation.residues.__getitem__
        cas = np.array([read(i).ca for i in range(1, conformation.n_residues + 1)])
        energy = 0.0
        if self.reference:
            for i, ref in self.reference.items():
                energy += self.restraint * float(np.sum((cas[i - 1] - ref) ** 2))
        if self.anchor is not None:
            centroid = cas.mean(axis=0)
            energy += self.anchor_spring * float(np.sum((centroid - self.anchor) ** 2))
        return energy

    def finalize(self) -> None:
        self.reference = None

