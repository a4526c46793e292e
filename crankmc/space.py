"""
crankmc.space
=============

Random draws and sampling spaces for Monte Carlo moves.

Every stochastic decision of the move engine goes through a :class:`Draws`
instance, so a run is reproducible from its seed and separate workers can own
independent streams.

Classes
-------
Draws : Injected pseudo-random-draw capability.
Space : Base class for move sampling spaces.
AxisAngle : Rotation angle in [-amplitude, +amplitude] plus a random axis.
AxisShift : Sparse per-axis rigid translation.

Examples
--------
>>> from crankmc.space import AxisAngle, Draws
>>> draws = Draws(seed=7)
>>> sample = AxisAngle(0.5, draws).generator()
>>> len(sample)  # [axis_x, axis_y, axis_z, angle]
4
>>> abs(sample[3]) <= 0.5
True
"""

from __future__ import annotations

import numpy as np

RAND_MAX = 2**31 - 1


class Draws:
    """
    Pseudo-random-draw capability (uniform float, uniform int, unit vector).

    Parameters
    ----------
    seed : int or numpy.random.Generator, optional
        Seed for a fresh ``numpy.random.default_rng`` or an existing generator
        to wrap.

    Attributes
    ----------
    generator : numpy.random.Generator
        Underlying bit stream.
    """

    def __init__(self, seed: int | np.random.Generator | None = None):
        if isinstance(seed, np.random.Generator):
            self.generator = seed
        else:
            self.generator = np.random.default_rng(seed)

    def uniform(self, low: float = 0.0, high: float = 1.0) -> float:
        """Uniform float in ``[low, high)``."""
        return float(self.generator.uniform(low, high))

    def integer(self) -> int:
        """Uniform integer in ``[0, RAND_MAX]``."""
        return int(self.generator.integers(0, RAND_MAX, endpoint=True))

    def coin(self) -> bool:
        """Unbiased coin flip."""
        return bool(self.generator.integers(0, 2))

    def normal(self, mean: float = 0.0, sd: float = 1.0) -> float:
        """Gaussian draw."""
        return float(self.generator.normal(mean, sd))

    def unit_vector(self) -> np.ndarray:
        """
        Uniformly distributed direction on the unit sphere.

        Returns
        -------
        numpy.ndarray
            Shape ``(3,)`` unit vector.
        """
        # Uniform direction: cos(psi) uniform in [-1, 1]
        phi = self.generator.uniform(0, 2 * np.pi)
        cos_psi = self.generator.uniform(-1, 1)
        sin_psi = np.sqrt(1.0 - cos_psi**2)
        return np.array([sin_psi * np.cos(phi), sin_psi * np.sin(phi), cos_psi])


class Space:
    """
    Base class representing a move sampling space.

    Parameters
    ----------
    draws : Draws
        Source of randomness shared with the rest of the engine.
    """

    def __init__(self, draws: Draws):
        self.draws = draws

    def generator(self) -> np.ndarray:
        """Generate a random sample from the space."""
        raise NotImplementedError


class AxisAngle(Space):
    """
    Rotation sample: a random unit axis and an angle in ``[-|a|, +|a|]``.

    Parameters
    ----------
    amplitude : float
        Move amplitude in radians. The sign only encodes whether the amplitude
        may adaptively shrink; the angle range uses its magnitude.
    draws : Draws
        Source of randomness.

    Examples
    --------
    >>> space = AxisAngle(-1.0, Draws(seed=1))
    >>> -1.0 <= space.angle() <= 1.0
    True
    """

    def __init__(self, amplitude: float, draws: Draws):
        super().__init__(draws)
        self.amplitude = amplitude

    def angle(self) -> float:
        """Rotation angle ``amplitude * (2u - 1)``."""
        return self.amplitude * (2.0 * self.draws.uniform() - 1.0)

    def generator(self) -> np.ndarray:
        """
        Generate a random rotation.

        Returns
        -------
        numpy.ndarray
            4-element array: [axis_x, axis_y, axis_z, angle].
        """
        angle = self.angle()
        x, y, z = self.draws.unit_vector()
        return np.array([x, y, z, angle])


class AxisShift(Space):
    """
    Sparse rigid translation: each Cartesian axis moves independently.

    An axis moves when its draw ``u`` falls below ``probability``; the
    displacement reuses the draw as ``scale * (u - probability / 2)``, so it
    is uniform in ``[-scale * probability / 2, +scale * probability / 2)``.

    Parameters
    ----------
    draws : Draws
        Source of randomness.
    probability : float, default=0.1
        Per-axis probability of moving.
    scale : float, default=4.0
        Displacement scale (Å per unit draw).

    Examples
    --------
    >>> shift = AxisShift(Draws(seed=3)).generator()
    >>> bool(np.all(np.abs(shift) <= 0.2))
    True
    """

    def __init__(self, draws: Draws, probability: float = 0.1, scale: float = 4.0):
        super().__init__(draws)
        self.probability = probability
        self.scale = scale

    def generator(self) -> np.ndarray:
        """
        Generate a displacement vector (Å); all-zero means no axis moved.
        """
        shift = np.zeros(3)
        for k in range(3):
            u = self.draws.uniform()
            if u < self.probability:
                shift[k] = self.scale * (u - self.probability / 2)
        return shift
