"""
crankmc - crankshaft Monte Carlo for coarse-grained polypeptides
================================================================

Move proposal and acceptance engine of a Metropolis / Nested-Sampling
sampler: crankshaft and pivot rotations, side-chain dihedral resampling and
rigid translations, scored incrementally against a symmetric pairwise-energy
matrix.

Public API
----------
run_sampler : Calibrate and run a sampling job.
SamplerConfig : Configuration for a run.
SamplerResult : Result of a run.
MoveDriver : Step-level access to the engine.
Conformation : Chain state (build with ``from_sequence`` / ``from_frames``).
EnergyModel : Potential-model interface.
CalphaContactModel : Reference Cα contact potential.
CalibrationMode : NORMAL / CALIBRATE / RESET step modes.
SimulationError : Raised on fatal invariant violations.

Examples
--------
>>> from crankmc import CalphaContactModel, Conformation, SamplerConfig, run_sampler
>>> from crankmc.space import Draws
>>> conf = Conformation.from_sequence("ACDEFGHIK", Draws(seed=5))
>>> result = run_sampler(conf, CalphaContactModel(), SamplerConfig(seed=5), 100)  # doctest: +SKIP
"""

from crankmc.amplitude import CalibrationMode
from crankmc.conformation import Conformation
from crankmc.energy import CalphaContactModel, EnergyModel
from crankmc.errors import SimulationError
from crankmc.metropolis import MoveDriver
from crankmc.run import SamplerConfig, SamplerResult, run_sampler

__all__ = [
    "run_sampler",
    "SamplerConfig",
    "SamplerResult",
    "MoveDriver",
    "Conformation",
    "EnergyModel",
    "CalphaContactModel",
    "CalibrationMode",
    "SimulationError",
]
