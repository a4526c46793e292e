"""
crankmc.run
===========

Python API for running the move engine.

Use :class:`SamplerConfig` to configure a run and :func:`run_sampler` to
execute it on a :class:`~crankmc.conformation.Conformation`.

Examples
--------
>>> from crankmc.conformation import Conformation
>>> from crankmc.energy import CalphaContactModel
>>> from crankmc.run import SamplerConfig, run_sampler
>>> from crankmc.space import Draws
>>> conf = Conformation.from_sequence("MKTAYIAKQR", Draws(seed=11))
>>> config = SamplerConfig(name="demo", thermobeta=2.0, seed=11, verbose=False)
>>> result = run_sampler(conf, CalphaContactModel(), config, n_steps=200)
>>> result.accepted + result.rejected
200
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

import numpy as np
from openmm import app
from openmm.unit import Quantity

from crankmc.amplitude import CalibrationMode
from crankmc.conformation import Conformation
from crankmc.energy import EnergyModel
from crankmc.helpers import angstrom
from crankmc.metropolis import MoveDriver
from crankmc.residue import THREE_LETTER
from crankmc.space import Draws

ExternalPotential = Literal["none", "positional"]


@dataclass
class SamplerConfig:
    """
    Configuration for a sampling run.

    Parameters
    ----------
    name : str, default="crankmc"
        Job name (used for the logger and log file).
    amplitude : float or openmm.unit.Quantity, default=-0.5
        Rotation amplitude in radians (or an angle Quantity). A negative
        value may also shrink during calibration.
    thermobeta : float, default=1.0
        Inverse temperature of the Metropolis test (mol/kJ).
    nested_sampling : bool, default=False
        Use the Nested-Sampling threshold test instead of Metropolis.
    acceptance_rate : float, default=0.5
        Target acceptance rate for calibration.
    acceptance_rate_tolerance : float, default=0.1
        Allowed deviation from the target; must lie in (0, 1).
    amplitude_changing_factor : float, default=0.95
        Amplitude rescaling factor; must lie in (0, 1).
    fix_ca_atoms : bool, default=False
        Keep every Cα in place (peptide-plane flips only).
    fix_chi_angles : bool, default=False
        Never resample side-chain dihedrals.
    sidechains : bool, default=True
        Place γ atoms and resample their dihedrals. Must match the
        ``sidechains`` flag the conformation was built with.
    external_potential : {"none", "positional"}, default="none"
        ``"positional"`` enables the translational sub-move after accepted
        pivot moves.
    external_k : float, default=1.0
        Coupling weight of the rejection draw.
    seed : int, optional
        Seed of the run's random stream.
    verbose : bool, default=True
        Whether to log progress to console.
    log_path : str, optional
        File to write the run log to.

    Examples
    --------
    >>> SamplerConfig(external_potential="positional").external_potential
    'positional'
    """

    name: str = "crankmc"
    amplitude: float | Quantity = -0.5
    thermobeta: float = 1.0
    nested_sampling: bool = False
    acceptance_rate: float = 0.5
    acceptance_rate_tolerance: float = 0.1
    amplitude_changing_factor: float = 0.95
    fix_ca_atoms: bool = False
    fix_chi_angles: bool = False
    sidechains: bool = True
    external_potential: ExternalPotential = "none"
    external_k: float = 1.0
    seed: int | None = None
    verbose: bool = True
    log_path: str | None = None

    def __post_init__(self):
        if self.external_potential not in ("none", "positional"):
            raise ValueError(
                f"Unknown external potential {self.external_potential!r}! "
                "Use 'none' or 'positional'."
            )


@dataclass
class SamplerResult:
    """
    Result of a sampling run.

    Attributes
    ----------
    energy : float
        Running energy after the last step.
    amplitude : float
        Amplitude after the run.
    accepted, rejected : int
        Outcomes of the production steps.
    acceptance_history : list[float]
        Acceptance rate of every completed 1024-step window.
    energies : numpy.ndarray
        Running energy after each production step.
    conformation : Conformation
        Final state.
    config : SamplerConfig
        Configuration used for the run.
    """

    energy: float
    amplitude: float
    accepted: int
    rejected: int
    conformation: Conformation
    config: SamplerConfig
    acceptance_history: list[float] = field(default_factory=list)
    energies: np.ndarray = field(default_factory=lambda: np.empty(0))

    @property
    def acceptance(self) -> float:
        total = self.accepted + self.rejected
        return self.accepted / total if total else 0.0

    def save_pdb(self, path: str) -> str:
        """
        Save the final structure to a PDB file.

        Parameters
        ----------
        path : str
            Output file path.

        Returns
        -------
        str
            Path to the saved file.
        """
        topology, positions = _topology(self.conformation)
        with open(path, "w") as f:
            app.PDBFile.writeFile(topology, positions, file=f)
        return path


def _topology(conformation: Conformation) -> tuple[app.Topology, Quantity]:
    """OpenMM topology and positions of every atom present."""
    topology = app.Topology()
    positions = []
    chain = None
    for i in range(1, conformation.n_residues + 1):
        residue = conformation.residues[i]
        if conformation.is_chain_start(i):
            chain = topology.addChain(id=chr(ord("A") + residue.chainid % 26))
        pdb_residue = topology.addResidue(THREE_LETTER[residue.id], chain, id=str(i))
        for slot, pdb_name, symbol in residue.pdb_atoms():
            topology.addAtom(pdb_name, app.element.get_by_symbol(symbol), pdb_residue)
            positions.append(getattr(residue, slot))
    return topology, angstrom(np.array(positions))


def _setup_logger(name: str, verbose: bool, log_path: str | None = None) -> logging.Logger:
    """Set up logger for the run."""
    logger = logging.getLogger(f"crankmc.{name}")
    logger.setLevel(logging.INFO)
    if logger.hasHandlers():
        logger.handlers.clear()

    # File handler
    if log_path:
        file_handler = logging.FileHandler(log_path, mode="w")
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)

    # Console handler (if verbose)
    if verbose:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        logger.addHandler(console)

    return logger


def run_sampler(
    conformation: Conformation,
    model: EnergyModel,
    config: SamplerConfig,
    n_steps: int,
    calibration_steps: int = 0,
    log_l_star: float | None = None,
    draws: Draws | None = None,
) -> SamplerResult:
    """
    Calibrate the amplitude, then sample.

    Parameters
    ----------
    conformation : Conformation
        Starting state (modified in place).
    model : EnergyModel
        Potential model.
    config : SamplerConfig
        Run parameters.
    n_steps : int
        Number of production steps.
    calibration_steps : int, default=0
        Steps run in calibration mode before production. The first one
        resets the counters.
    log_l_star : float, optional
        Nested-Sampling threshold (required when Nested Sampling is on).
    draws : Draws, optional
        Random source; defaults to ``Draws(config.seed)``.

    Returns
    -------
    SamplerResult
        Final energy, amplitude, acceptance statistics and conformation.

    Raises
    ------
    SimulationError
        On any invariant violation during sampling.
    """
    logger = _setup_logger(config.name, config.verbose, config.log_path)

    logger.info("crankmc - crankshaft Monte Carlo for coarse-grained polypeptides")
    logger.info("Job: %s", config.name)
    logger.info("Sequence: %s", conformation.sequence)
    logger.info(
        "Mode: %s", "Nested Sampling" if config.nested_sampling else "Metropolis"
    )
    logger.info("Start time: %s", datetime.now())

    driver = MoveDriver(conformation, model, config, draws)
    logger.info("Initial energy: %.4f", driver.energy)

    try:
        for step in range(calibration_steps):
            mode = CalibrationMode.RESET if step == 0 else CalibrationMode.CALIBRATE
            driver.move(log_l_star, mode)
        if calibration_steps:
            logger.info(
                "Calibration finished after %d steps: amplitude %.4f",
                calibration_steps,
                driver.amplitude.amplitude,
            )
            driver.amplitude.reset()

        accepted_before = driver.accepted
        rejected_before = driver.rejected
        seen_windows = driver.amplitude.windows
        history: list[float] = []
        trace = np.empty(n_steps)
        for step in range(n_steps):
            driver.move(log_l_star)
            trace[step] = driver.energy
            if driver.amplitude.windows != seen_windows:
                seen_windows = driver.amplitude.windows
                history.append(driver.amplitude.acceptance)
                logger.info(
                    "Step %d: energy %.4f, acceptance %.3f",
                    step + 1,
                    driver.energy,
                    driver.amplitude.acceptance,
                )

        result = SamplerResult(
            energy=driver.energy,
            amplitude=driver.amplitude.amplitude,
            accepted=driver.accepted - accepted_before,
            rejected=driver.rejected - rejected_before,
            conformation=conformation,
            config=config,
            acceptance_history=history,
            energies=trace,
        )
        logger.info(
            "Completed. Final energy: %.4f, accepted %d / %d moves (%d translations)",
            result.energy,
            result.accepted,
            n_steps,
            driver.translations,
        )
    finally:
        driver.finalize()
    return result
