"""
Pytest configuration for the crankmc test suite.

This file provides shared fixtures and markers for all tests:
- `slow` marker: Tests that run thousands of Monte Carlo steps
- Seeded random draws
- A 10-residue single chain and a 12-residue two-chain conformation
  (chain break after residue 6)
- Toy energy models with predictable acceptance behaviour
"""

import pytest

from crankmc.conformation import Conformation
from crankmc.energy import CalphaContactModel, EnergyModel
from crankmc.run import SamplerConfig
from crankmc.space import Draws


def pytest_configure(config):
    """Register custom markers to avoid warnings."""
    config.addinivalue_line("markers", "slow: marks tests as slow-running")


# ---------------------------------------------------------------------------
# Toy models
# ---------------------------------------------------------------------------


class ConstantModel(EnergyModel):
    """Every term is zero, so every Metropolis move is accepted."""

    def __init__(self):
        self.finalized = False

    def pairwise(self, a, b):
        return 0.0

    def finalize(self):
        self.finalized = True


class ShiftedModel(EnergyModel):
    """
    Reference contact model plus a constant offset on every pair.

    Raising ``offset`` after the energy matrix has been filled makes every
    recomputed pair worse than its committed value.
    """

    def __init__(self, offset=0.0):
        self.base = CalphaContactModel()
        self.offset = offset

    def pairwise(self, a, b):
        return self.base.pairwise(a, b) + self.offset


# ---------------------------------------------------------------------------
# Shared Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def draws():
    """Seeded random draws."""
    return Draws(seed=1234)


@pytest.fixture
def single_chain():
    """10-residue single chain."""
    return Conformation.from_sequence("MKTAYIAGVP", Draws(seed=7))


@pytest.fixture
def two_chains():
    """12 residues in two chains, break after residue 6."""
    return Conformation.from_sequence("ACDEFG/HIKLMN", Draws(seed=8))


@pytest.fixture
def contact_model():
    return CalphaContactModel()


@pytest.fixture
def constant_model():
    return ConstantModel()


@pytest.fixture
def shifted_model():
    return ShiftedModel()


@pytest.fixture
def config():
    """Quiet Metropolis configuration."""
    return SamplerConfig(name="test", seed=99, verbose=False)
