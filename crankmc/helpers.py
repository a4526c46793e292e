# helpers.py
from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike
from openmm import unit
from openmm.unit import Quantity


def angstrom(array: ArrayLike) -> Quantity:
    """
    Attach Å units to a numeric array or vector.

    Parameters
    ----------
    array : array-like
        Numeric values interpreted as lengths in Å (unitless on input).

    Returns
    -------
    openmm.unit.Quantity
        The same values with units of Å (unit.angstrom).
    """
    return np.asarray(array, dtype=float) * unit.angstrom


def nostrom(quantity: Quantity | ArrayLike) -> np.ndarray:
    """
    Strip units from a length vector/array, returning pure Å as floats.

    Plain numbers are taken to be in Å already.

    Parameters
    ----------
    quantity : openmm.unit.Quantity or array-like
        Length(s), either with units convertible to Å or unitless Å.

    Returns
    -------
    numpy.ndarray
        The numeric values in Å, without units.
    """
    if unit.is_quantity(quantity):
        return np.asarray(quantity.value_in_unit(unit.angstrom), dtype=float)
    return np.asarray(quantity, dtype=float)


def as_radians(value: Quantity | float) -> float:
    """
    Return an angle in radians.

    Parameters
    ----------
    value : openmm.unit.Quantity or float
        Angle with angular units (e.g. ``90 * unit.degrees``) or a plain
        float already in radians.

    Returns
    -------
    float
        The angle in radians.
    """
    if unit.is_quantity(value):
        return float(value.value_in_unit(unit.radian))
    return float(value)


def angle(array1: ArrayLike, array2: ArrayLike) -> float:
    """
    Return the unsigned angle between two vectors (radians).

    Parameters
    ----------
    array1, array2 : array-like
        Unitless vectors.

    Returns
    -------
    float
        Angle in radians (0..π).
    """
    a = np.asarray(array1, dtype=float)
    b = np.asarray(array2, dtype=float)
    return float(
        np.arccos(
            np.clip(np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b)), -1.0, 1.0)
        )
    )


def bond_angle(a: ArrayLike, b: ArrayLike, c: ArrayLike) -> float:
    """
    Return the angle a-b-c at vertex ``b`` (radians).
    """
    a, b, c = (np.asarray(x, dtype=float) for x in (a, b, c))
    return angle(a - b, c - b)


def dihedral(a: ArrayLike, b: ArrayLike, c: ArrayLike, d: ArrayLike) -> float:
    """
    Return the signed dihedral angle a-b-c-d (radians).

    Parameters
    ----------
    a, b, c, d : array-like
        Unitless atom positions.

    Returns
    -------
    float
        Signed angle in radians (-π..π), IUPAC sign convention.
    """
    a, b, c, d = (np.asarray(x, dtype=float) for x in (a, b, c, d))
    b0 = a - b
    b1 = c - b
    b1 /= np.linalg.norm(b1)
    b2 = d - c
    v = b0 - np.dot(b0, b1) * b1
    w = b2 - np.dot(b2, b1) * b1
    return float(np.arctan2(np.dot(np.cross(b1, v), w), np.dot(v, w)))
