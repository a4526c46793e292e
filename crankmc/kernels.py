# Compiled versions of the geometry operations used by every move.

from __future__ import annotations

import math

import numpy as np
from numba import jit


@jit
def cross(a, b):
    """
    Cross product of two 3-vectors.

    Parameters
    ----------
    a, b : ndarray, shape (3,)
        Input vectors.

    Returns
    -------
    ndarray, shape (3,)
        ``a x b``.
    """
    out = np.empty(3)
    out[0] = a[1] * b[2] - a[2] * b[1]
    out[1] = a[2] * b[0] - a[0] * b[2]
    out[2] = a[0] * b[1] - a[1] * b[0]
    return out


@jit
def normalize(vector):
    """
    Return ``vector`` scaled to unit length.
    """
    norm = math.sqrt(vector[0] ** 2 + vector[1] ** 2 + vector[2] ** 2)
    out = np.empty(3)
    for k in range(3):
        out[k] = vector[k] / norm
    return out


@jit
def rotation_matrix(axis, angle):
    """
    Rotation matrix about an arbitrary axis through the origin.

    Parameters
    ----------
    axis : ndarray, shape (3,)
        Rotation axis (normalized internally).
    angle : float
        Rotation angle in radians (right-hand rule).

    Returns
    -------
    ndarray, shape (3, 3)
        Matrix ``R`` such that ``R @ v`` is ``v`` rotated by ``angle``.

    Notes
    -----
    Built from the quaternion/axis-angle formula with ``s = sin(angle/2)``
    and ``c = cos(angle/2)``.
    """
    unit_axis = normalize(axis)
    x = unit_axis[0]
    y = unit_axis[1]
    z = unit_axis[2]
    s = math.sin(angle / 2.0)
    c = math.cos(angle / 2.0)
    s2 = s * s
    rot = np.empty((3, 3))
    rot[0, 0] = 2 * (x * x - 1) * s2 + 1
    rot[0, 1] = 2 * x * y * s2 - 2 * z * c * s
    rot[0, 2] = 2 * x * z * s2 + 2 * y * c * s
    rot[1, 0] = 2 * x * y * s2 + 2 * z * c * s
    rot[1, 1] = 2 * (y * y - 1) * s2 + 1
    rot[1, 2] = 2 * z * y * s2 - 2 * x * c * s
    rot[2, 0] = 2 * x * z * s2 - 2 * y * c * s
    rot[2, 1] = 2 * z * y * s2 + 2 * x * c * s
    rot[2, 2] = 2 * (z * z - 1) * s2 + 1
    return rot


@jit
def rotate_frame(frame, rot):
    """
    Apply a rotation to every row of a backbone-vector frame.

    Parameters
    ----------
    frame : ndarray, shape (3, 3)
        Frame whose rows are vectors.
    rot : ndarray, shape (3, 3)
        Rotation matrix from :func:`rotation_matrix`.

    Returns
    -------
    ndarray, shape (3, 3)
        New frame with ``out[r] = rot @ frame[r]``.
    """
    out = np.empty((3, 3))
    for r in range(3):
        for i in range(3):
            acc = 0.0
            for j in range(3):
                acc += rot[i, j] * frame[r, j]
            out[r, i] = acc
    return out


@jit
def in_plane(origin, frame, x, y):
    """
    Position ``origin + x * frame[0] + y * frame[1]``.

    Used to place peptide-plane atoms from template coordinates.
    """
    out = np.empty(3)
    for k in range(3):
        out[k] = origin[k] + x * frame[0, k] + y * frame[1, k]
    return out


@jit
def place_cb(n, ca, c):
    """
    Ideal Cβ position from the backbone N, Cα and C atoms.

    Parameters
    ----------
    n, ca, c : ndarray, shape (3,)
        Backbone atom positions.

    Returns
    -------
    ndarray, shape (3,)
        Cβ position (L-amino acid chirality).
    """
    b = ca - n
    cc = c - ca
    a = cross(b, cc)
    return -0.58273431 * a + 0.56802827 * b - 0.54067466 * cc + ca


@jit
def place_atom(a, b, c, bond_length, bond_angle, torsion):
    """
    Place atom D from atoms A, B, C (NeRF).

    Parameters
    ----------
    a, b, c : ndarray, shape (3,)
        Preceding atoms.
    bond_length : float
        ``|CD|`` in Å.
    bond_angle : float
        Angle B-C-D in radians.
    torsion : float
        Dihedral A-B-C-D in radians.

    Returns
    -------
    ndarray, shape (3,)
        Position of D.
    """
    bc = normalize(c - b)
    n = normalize(cross(b - a, bc))
    m = cross(n, bc)
    d0 = -bond_length * math.cos(bond_angle)
    d1 = bond_length * math.sin(bond_angle) * math.cos(torsion)
    d2 = bond_length * math.sin(bond_angle) * math.sin(torsion)
    out = np.empty(3)
    for k in range(3):
        out[k] = c[k] + d0 * bc[k] + d1 * m[k] + d2 * n[k]
    return out
