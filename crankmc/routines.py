"""
crankmc.routines
================

Acceptance criteria of the move engine.

Losses follow the engine's sign convention: ``loss = old - new``, so a
negative loss means the energy went up.

Functions
---------
coupling_weight : External coupling weight, weakened at high global energy.
acceptance_probability : Metropolis acceptance probability of a move.
metropolis_reject : Literal Metropolis rejection test for one uniform draw.
nested_sampling_reject : Nested-Sampling threshold test.
translation_accepts : One-sided Metropolis test of a rigid translation.

Notes
-----
Boltzmann factors are evaluated with `mpmath` so that ``exp(beta * loss)``
neither overflows nor underflows for large energy changes.

Examples
--------
>>> from crankmc.routines import acceptance_probability
>>> float(acceptance_probability(0.5, 0.0, beta=1.0))
1.0
>>> 0.0 < float(acceptance_probability(-1.0, 0.0, beta=1.0)) < 1.0
True
"""

from mpmath import mp as math

math.dps = 30

COUPLING_THRESHOLD = 10.0
WEAK_COUPLING = 0.01


def coupling_weight(global_energy, external_k=1.0):
    """
    Coupling weight used to scale the rejection draw.

    Parameters
    ----------
    global_energy : float
        Trial global/external energy.
    external_k : float, default=1.0
        Configured coupling weight.

    Returns
    -------
    float
        ``0.01`` when ``global_energy`` exceeds 10, else ``external_k``.
    """
    if global_energy > COUPLING_THRESHOLD:
        return WEAK_COUPLING
    return external_k


def _boltzmann(beta, loss):
    return math.exp(math.fmul(beta, loss))


def acceptance_probability(internal_loss, external_loss, beta, external_k=1.0):
    """
    Probability that the Metropolis branch accepts a move.

    Parameters
    ----------
    internal_loss : float
        Pair/self-term loss of the move.
    external_loss : float
        Global-term loss of the move.
    beta : float
        Inverse temperature.
    external_k : float, default=1.0
        Coupling weight (see :func:`coupling_weight`).

    Returns
    -------
    mpf
        ``1`` when ``internal_loss >= 0``, else
        ``min(1, exp(beta * (internal_loss + external_loss)) / external_k)``.
    """
    if internal_loss >= 0 or external_k <= 0:
        return math.mpf(1)
    ratio = math.fdiv(_boltzmann(beta, internal_loss + external_loss), external_k)
    return min(math.mpf(1), ratio)


def metropolis_reject(internal_loss, external_loss, beta, external_k, u):
    """
    Metropolis rejection for a uniform draw ``u`` in ``[0, 1)``.

    A move whose internal loss is non-negative is never rejected. Otherwise
    it is rejected when ``exp(beta * (internal_loss + external_loss)) <
    external_k * u``.
    """
    if internal_loss >= 0:
        return False
    return _boltzmann(beta, internal_loss + external_loss) < external_k * u


def nested_sampling_reject(loss, current_energy, log_l_star):
    """
    Nested-Sampling rejection against the threshold ``-log_l_star``.

    Parameters
    ----------
    loss : float
        Total loss of the move (``current - new`` energy).
    current_energy : float
        Running energy before the move.
    log_l_star : float
        Current log-likelihood threshold.

    Returns
    -------
    bool
        True when the move leaves the region below the threshold, or when the
        threshold has not been reached yet and the move raises the energy.
    """
    threshold = -log_l_star
    new_energy = current_energy - loss
    if threshold > current_energy and threshold <= new_energy:
        return True
    return threshold < current_energy and loss < 0


def translation_accepts(new_global, old_global, beta, u):
    """
    One-sided Metropolis test of a rigid translation.

    Accepted outright when the global energy decreases, else with probability
    ``exp(-beta * (new_global - old_global))``.
    """
    if new_global < old_global:
        return True
    return u < _boltzmann(-beta, new_global - old_global)
