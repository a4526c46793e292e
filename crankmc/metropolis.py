"""
crankmc.metropolis
==================

One Metropolis / Nested-Sampling step of the move engine.

:class:`MoveDriver` owns everything a run needs: the committed energy matrix,
the lookup table, one reusable staging buffer, the amplitude controller and
the running energy. A step is a two-phase transaction: the move is built and
scored in the staging buffer and the trial rows, then either committed in one
go or discarded.

Examples
--------
>>> from crankmc.conformation import Conformation
>>> from crankmc.energy import CalphaContactModel
>>> from crankmc.metropolis import MoveDriver
>>> from crankmc.run import SamplerConfig
>>> from crankmc.space import Draws
>>> conf = Conformation.from_sequence("GAVLIKT", Draws(seed=4))
>>> driver = MoveDriver(conf, CalphaContactModel(), SamplerConfig(seed=4))
>>> isinstance(driver.move(), bool)
True
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from crankmc import routines
from crankmc.amplitude import AmplitudeController, CalibrationMode
from crankmc.conformation import Conformation, StagingBuffer
from crankmc.energy import EnergyModel
from crankmc.energy_matrix import EnergyMatrix, TrialEnergies
from crankmc.lookup import build_lookup_table
from crankmc.moves import MoveGeometryBuilder, TrialMove
from crankmc.space import AxisShift, Draws

if TYPE_CHECKING:
    from crankmc.run import SamplerConfig

logger = logging.getLogger(__name__)


class MoveDriver:
    """
    Proposes, scores and commits moves on one conformation.

    Parameters
    ----------
    conformation : Conformation
        State to sample; its ``energies`` matrix is (re)computed here.
    model : EnergyModel
        Potential model.
    config : SamplerConfig
        Run parameters.
    draws : Draws, optional
        Random source; defaults to ``Draws(config.seed)``.

    Raises
    ------
    ValueError
        If ``config.sidechains`` disagrees with ``conformation.sidechains``.

    Attributes
    ----------
    energy : float
        Running total energy, reduced by the loss of every accepted move.
    amplitude : AmplitudeController
        Amplitude and acceptance bookkeeping.
    last_move : TrialMove or None
        Most recently built move.
    accepted, rejected : int
        Lifetime outcome counts.
    translations : int
        Accepted translational sub-moves.
    """

    def __init__(
        self,
        conformation: Conformation,
        model: EnergyModel,
        config: SamplerConfig,
        draws: Draws | None = None,
    ):
        if config.sidechains != conformation.sidechains:
            raise ValueError(
                f"Config sidechains={config.sidechains} but conformation was built "
                f"with sidechains={conformation.sidechains}! CANNOT sample!"
            )
        self.conformation = conformation
        self.model = model
        self.config = config
        self.draws = draws if draws is not None else Draws(config.seed)

        conformation.energies = EnergyMatrix.compute(conformation, model)
        self.lookup = build_lookup_table(conformation, fix_ca=config.fix_ca_atoms)
        self.staging: StagingBuffer | None = StagingBuffer(conformation)
        self.builder = MoveGeometryBuilder(
            conformation,
            self.lookup,
            model,
            self.draws,
            fix_ca=config.fix_ca_atoms,
            fix_chi=config.fix_chi_angles,
            sidechains=conformation.sidechains,
        )
        self.shift = AxisShift(self.draws)
        self.amplitude = AmplitudeController.from_config(config)
        self.energy = conformation.energies.total()

        self.last_move: TrialMove | None = None
        self.accepted = 0
        self.rejected = 0
        self.translations = 0

    @property
    def energies(self) -> EnergyMatrix:
        if self.conformation.energies is None or self.staging is None:
            raise RuntimeError("MoveDriver has been finalized! CANNOT sample!")
        return self.conformation.energies

    def propose_and_evaluate_move(self, log_l_star: float | None = None) -> bool:
        """
        Build one move, test it and commit it if accepted.

        Parameters
        ----------
        log_l_star : float, optional
            Nested-Sampling log-likelihood threshold; required when
            ``config.nested_sampling`` is set.

        Returns
        -------
        bool
            Whether the rotational move was accepted.

        Raises
        ------
        ValueError
            If Nested Sampling is on and ``log_l_star`` is missing.
        SimulationError
            On any invariant violation while building the move.
        """
        if self.config.nested_sampling and log_l_star is None:
            raise ValueError("Nested Sampling needs log_l_star! CANNOT test move!")
        energies = self.energies

        with self.staging.begin() as staging:
            move = self.builder.build(staging, self.amplitude.amplitude)
            self.last_move = move
            trial = energies.evaluate(staging, move.first, move.last, self.model)
            if not self.allowed(trial, log_l_star):
                return False
            energies.commit(trial)
            staging.commit()
            self.energy -= trial.loss

        if move.kind.is_pivot and self.config.external_potential == "positional":
            self._translate(log_l_star)
        return True

    def allowed(self, trial: TrialEnergies, log_l_star: float | None = None) -> bool:
        """
        Acceptance test of a scored trial.

        Metropolis runs (``nested_sampling`` off) reject an energy-raising move
        by the weighted Boltzmann test; Nested-Sampling runs reject by the
        threshold test only.
        """
        if not self.config.nested_sampling:
            if trial.internal_loss >= 0:
                return True
            external_k = routines.coupling_weight(trial.global_energy, self.config.external_k)
            return not routines.metropolis_reject(
                trial.internal_loss,
                trial.external_loss,
                self.config.thermobeta,
                external_k,
                self.draws.uniform(),
            )
        return not routines.nested_sampling_reject(trial.loss, self.energy, log_l_star)

    def _translate(self, log_l_star: float | None = None) -> bool:
        # rigid shift of every residue; only the global term can change
        conf = self.conformation
        if any(residue.fixed for residue in conf.residues[1:]):
            return False
        shift = self.shift.generator()
        if not shift.any():
            return False

        energies = self.energies
        n = conf.n_residues
        with self.staging.begin() as staging:
            for i in range(1, n + 1):
                staging.stage_residue(i).translate(shift)
            old_global = energies.global_energy
            new_global = self.model.global_energy(1, n, conf, staging)
            accepted = routines.translation_accepts(
                new_global, old_global, self.config.thermobeta, self.draws.uniform()
            )
            if accepted and self.config.nested_sampling:
                accepted = not routines.nested_sampling_reject(
                    old_global - new_global, self.energy, log_l_star
                )
            if not accepted:
                return False
            staging.commit()
            energies.global_energy = new_global
            self.energy -= old_global - new_global

        self.translations += 1
        return True

    def record_outcome(self, accepted: bool, calibrate: bool = False) -> float:
        """Count an outcome; returns the possibly updated amplitude."""
        if accepted:
            self.accepted += 1
        else:
            self.rejected += 1
        return self.amplitude.record(accepted, calibrate)

    def move(
        self,
        log_l_star: float | None = None,
        mode: CalibrationMode = CalibrationMode.NORMAL,
    ) -> bool:
        """
        One sampling step with acceptance bookkeeping.

        Parameters
        ----------
        log_l_star : float, optional
            Nested-Sampling threshold.
        mode : CalibrationMode, default=NORMAL
            RESET zeroes the counters first; RESET and CALIBRATE rescale the
            amplitude when a window closes.

        Returns
        -------
        bool
            Whether the move was accepted.
        """
        mode = CalibrationMode(mode)
        if mode is CalibrationMode.RESET:
            self.amplitude.reset()
        accepted = self.propose_and_evaluate_move(log_l_star)
        self.record_outcome(accepted, calibrate=mode is not CalibrationMode.NORMAL)
        return accepted

    def finalize(self) -> None:
        """Release the staging buffer, energy matrix, lookup table and model caches."""
        logger.debug(
            "Finalizing: running energy %.6f, matrix total %.6f",
            self.energy,
            self.energies.total(),
        )
        self.staging = None
        self.conformation.energies = None
        self.lookup = None
        self.builder = None
        self.model.finalize()
