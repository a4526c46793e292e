"""
crankmc.peptide
===============

Ideal trans-peptide geometry and backbone-vector frames.

The chain is stored as Cα positions plus one orthonormal *frame* per peptide
bond. Row 0 of ``frames[i]`` is the unit Cα(i)→Cα(i+1) vector, row 1 lies in
the peptide plane on the carbonyl-oxygen side, row 2 is their cross product.
Every peptide-plane atom is a fixed linear combination of rows 0 and 1, so a
rigid rotation of frames reproduces the exact bond lengths and angles of the
template.

Functions
---------
make_frame : Orthonormal frame from a bond direction and an in-plane hint.
advance_ca : Next Cα from the current Cα and the bond frame.
retreat_ca : Previous Cα from the next Cα and the bond frame.
place_residue_atoms : Rebuild N, H, C, O, Cβ and γ of one residue.
random_frames : Non-degenerate random frames for building test chains.

Notes
-----
Template coordinates follow Engh & Huber bond lengths and angles with a
planar trans peptide (ω = 180°).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from crankmc.kernels import in_plane, place_atom, place_cb
from crankmc.residue import Residue
from crankmc.space import Draws

CA_C = 1.52
C_N = 1.33
N_CA = 1.46
C_O = 1.23
N_H = 1.01
CB_G = 1.52

ANGLE_CA_C_N = math.radians(116.2)
ANGLE_C_N_CA = math.radians(121.7)
ANGLE_CA_C_O = math.radians(120.5)
ANGLE_C_N_H = math.radians(119.5)
ANGLE_CA_CB_G = math.radians(114.0)


@dataclass(frozen=True)
class PeptideTemplate:
    """
    In-plane coordinates ``(x, y)`` of the peptide atoms in a bond frame.

    ``c`` and ``o`` are relative to Cα(i); ``n`` and ``h`` are relative to
    Cα(i+1). ``ca_ca`` is the Cα-Cα virtual bond length.
    """

    ca_ca: float
    c: tuple[float, float]
    o: tuple[float, float]
    n: tuple[float, float]
    h: tuple[float, float]


def _turn(direction: np.ndarray, theta: float) -> np.ndarray:
    cos, sin = math.cos(theta), math.sin(theta)
    return np.array(
        [cos * direction[0] - sin * direction[1], sin * direction[0] + cos * direction[1]]
    )


def _peptide_template() -> PeptideTemplate:
    # walk the zig-zag CA-C-N-CA in 2D; alternating turns give a trans bond
    d0 = np.array([1.0, 0.0])
    ca0 = np.zeros(2)
    c = ca0 + CA_C * d0
    d1 = _turn(d0, math.pi - ANGLE_CA_C_N)
    n = c + C_N * d1
    ca1 = n + N_CA * _turn(d1, -(math.pi - ANGLE_C_N_CA))
    o = c + C_O * _turn(d0, -(math.pi - ANGLE_CA_C_O))
    h = n + N_H * _turn(d1, math.pi - ANGLE_C_N_H)

    length = float(np.linalg.norm(ca1 - ca0))
    ex = (ca1 - ca0) / length
    ey = np.array([-ex[1], ex[0]])
    if np.dot(o - ca0, ey) < 0:
        ey = -ey

    def local(point, origin):
        return (float(np.dot(point - origin, ex)), float(np.dot(point - origin, ey)))

    return PeptideTemplate(
        ca_ca=length,
        c=local(c, ca0),
        o=local(o, ca0),
        n=local(n, ca1),
        h=local(h, ca1),
    )


PEPTIDE = _peptide_template()
CA_CA = PEPTIDE.ca_ca


def make_frame(direction, hint) -> np.ndarray:
    """
    Orthonormal bond frame.

    Parameters
    ----------
    direction : array-like, shape (3,)
        Cα(i)→Cα(i+1) direction (any length).
    hint : array-like, shape (3,)
        Any vector not parallel to ``direction``; its component orthogonal to
        ``direction`` becomes row 1.

    Returns
    -------
    numpy.ndarray, shape (3, 3)
        Rows ``e0``, ``e1``, ``e0 x e1``.
    """
    e0 = np.asarray(direction, dtype=float)
    e0 = e0 / np.linalg.norm(e0)
    e1 = np.asarray(hint, dtype=float)
    e1 = e1 - np.dot(e1, e0) * e0
    e1 = e1 / np.linalg.norm(e1)
    return np.array([e0, e1, np.cross(e0, e1)])


def advance_ca(ca: np.ndarray, frame: np.ndarray) -> np.ndarray:
    """Cα(i+1) from Cα(i) and the frame of bond i."""
    return ca + CA_CA * frame[0]


def retreat_ca(ca: np.ndarray, frame: np.ndarray) -> np.ndarray:
    """Cα(i) from Cα(i+1) and the frame of bond i."""
    return ca - CA_CA * frame[0]


def place_residue_atoms(
    residue: Residue,
    frame_before: np.ndarray,
    frame_after: np.ndarray,
) -> None:
    """
    Re-derive the local chemical geometry of one residue in place.

    Parameters
    ----------
    residue : Residue
        Residue whose ``ca`` is already in place.
    frame_before : numpy.ndarray, shape (3, 3)
        Frame of the peptide bond preceding the residue (the chain's
        previous frame for a chain-initial residue). Positions N and H.
    frame_after : numpy.ndarray, shape (3, 3)
        Frame of the peptide bond following the residue. Positions C and O.
        The γ atom is placed from ``chi1`` only when the residue has one.
    """
    ca = residue.ca
    residue.n = in_plane(ca, frame_before, PEPTIDE.n[0], PEPTIDE.n[1])
    if residue.has_h:
        residue.h = in_plane(ca, frame_before, PEPTIDE.h[0], PEPTIDE.h[1])
    residue.c = in_plane(ca, frame_after, PEPTIDE.c[0], PEPTIDE.c[1])
    residue.o = in_plane(ca, frame_after, PEPTIDE.o[0], PEPTIDE.o[1])
    if residue.has_cb:
        residue.cb = place_cb(residue.n, ca, residue.c)
        if residue.has_gamma:
            residue.g = place_atom(
                residue.n, ca, residue.cb, CB_G, ANGLE_CA_CB_G, residue.chi1
            )


def random_frames(
    count: int,
    draws: Draws,
    min_bend: float = math.radians(85.0),
    max_bend: float = math.radians(150.0),
) -> np.ndarray:
    """
    Random bond frames with Cα-Cα-Cα angles in ``[min_bend, max_bend]``.

    Parameters
    ----------
    count : int
        Number of frames (peptide bonds) to generate.
    draws : Draws
        Source of randomness.
    min_bend, max_bend : float
        Bounds on the virtual Cα bond angle (radians).

    Returns
    -------
    numpy.ndarray, shape (count, 3, 3)
    """
    frames = np.empty((count, 3, 3))
    direction = draws.unit_vector()
    for k in range(count):
        if k > 0:
            bend = draws.uniform(min_bend, max_bend)
            turn = math.pi - bend
            side = draws.unit_vector()
            side = side - np.dot(side, direction) * direction
            side /= np.linalg.norm(side)
            direction = math.cos(turn) * direction + math.sin(turn) * side
        hint = draws.unit_vector()
        while np.linalg.norm(np.cross(hint, direction)) < 1e-3:
            hint = draws.unit_vector()
        frames[k] = make_frame(direction, hint)
    return frames
