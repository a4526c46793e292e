"""
crankmc.errors
==============

Fatal invariant violations of the move engine.

Every error detected inside the sampling core means the conformation, its
topology or the potential model is internally inconsistent. These are not
recoverable: :func:`stop` logs the message and raises
:class:`SimulationError`, which nothing inside the core catches.

Examples
--------
>>> from crankmc.errors import SimulationError, stop
>>> try:
...     stop("tried to move fixed residue 3")
... except SimulationError as e:
...     print(e)
tried to move fixed residue 3
"""

import logging

logger = logging.getLogger(__name__)


class SimulationError(RuntimeError):
    """
    Exception raised when a sampling invariant is violated.

    Raised by :func:`stop`; see the module docstring for the conditions.
    """

    pass


def stop(message: str) -> None:
    """
    Abort the simulation on an unrecoverable invariant violation.

    Parameters
    ----------
    message : str
        Human-readable description of the violated invariant.

    Raises
    ------
    SimulationError
        Always.
    """
    logger.critical(message)
    raise SimulationError(message)
