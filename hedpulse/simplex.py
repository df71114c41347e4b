#!/usr/bin/env python
# -*- coding: utf-8 -*-
#
#   Copyright 2016-2025 Blaise Frederick
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.
#
#
"""
Nelder-Mead minimization with an iteration budget, a wall clock deadline and
cooperative cancellation.
"""
import logging
import multiprocessing as mp
import time
from dataclasses import dataclass
from platform import system
from typing import Any, Callable

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import minimize

from hedpulse.config import DEFAULT_FATOL, DEFAULT_XATOL
from hedpulse.errors import FitNonConvergence

LGR = logging.getLogger("GENERAL")


class CancellationToken:
    """
    A flag shared with worker processes.

    Create it before the workers are started so that forked workers inherit it.
    """

    def __init__(self) -> None:
        if system() != "Windows":
            ctx = mp.get_context("fork")
        else:
            ctx = mp.get_context()
        self._event = ctx.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class SimplexResult:
    x: NDArray
    fun: float
    nit: int
    nfev: int
    converged: bool
    stopped: bool
    message: str


class _Watchdog:
    # raising StopIteration from the callback makes minimize return its best vertex
    def __init__(self, deadline: float | None, token: CancellationToken | None) -> None:
        self.deadline = deadline
        self.token = token
        self.fired = False

    def __call__(self, intermediate_result: Any) -> None:
        if self.token is not None and self.token.cancelled:
            self.fired = True
        elif self.deadline is not None and time.monotonic() >= self.deadline:
            self.fired = True
        if self.fired:
            raise StopIteration


def simplexminimize(
    func: Callable[..., float],
    x0: NDArray,
    args: tuple = (),
    maxiter: int = 1000,
    xatol: float = DEFAULT_XATOL,
    fatol: float = DEFAULT_FATOL,
    deadline: float | None = None,
    token: CancellationToken | None = None,
    adaptive: bool = False,
    debug: bool = False,
) -> SimplexResult:
    """
    Minimize a function with the Nelder-Mead simplex.

    Parameters
    ----------
    func : callable
        Objective, called as ``func(x, *args)``.
    x0 : NDArray
        Starting point.  The initial simplex is the scipy default around it.
    args : tuple, optional
        Extra arguments to ``func``.
    maxiter : int, optional
        Iteration budget.  Default is 1000.
    xatol, fatol : float, optional
        Degeneracy tolerances on the simplex vertices and function values.
    deadline : float, optional
        ``time.monotonic()`` value after which the search is abandoned.
    token : CancellationToken, optional
        Abandon the search once this is cancelled.
    adaptive : bool, optional
        Use dimension dependent coefficients.  Default is False.

    Returns
    -------
    SimplexResult
        The best vertex found.  ``converged`` is False when the budget ran out
        or the search was stopped; ``stopped`` is True only for a deadline or
        a cancellation.
    """
    x0 = np.asarray(x0, dtype=np.float64)
    if (token is not None and token.cancelled) or (
        deadline is not None and time.monotonic() >= deadline
    ):
        return SimplexResult(
            x=x0.copy(),
            fun=float(func(x0, *args)),
            nit=0,
            nfev=1,
            converged=False,
            stopped=True,
            message="stopped before starting",
        )
    watchdog = _Watchdog(deadline, token)
    theresult = minimize(
        func,
        x0,
        args=args,
        method="Nelder-Mead",
        callback=watchdog,
        options={
            "maxiter": int(maxiter),
            "xatol": xatol,
            "fatol": fatol,
            "adaptive": adaptive,
        },
    )
    converged = bool(theresult.success) and not watchdog.fired
    if not converged and debug:
        print(f"simplexminimize: {theresult.message} after {theresult.nit} iterations")
    if not converged:
        LGR.debug(
            f"{FitNonConvergence.__name__}: simplex did not converge, "
            f"{theresult.message} ({theresult.nit} iterations)"
        )
    return SimplexResult(
        x=np.asarray(theresult.x, dtype=np.float64),
        fun=float(theresult.fun),
        nit=int(theresult.nit),
        nfev=int(theresult.nfev),
        converged=converged,
        stopped=watchdog.fired,
        message=str(theresult.message),
    )
