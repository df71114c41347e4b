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
Parametric pulse waveform models.

A model maps a parameter vector onto a waveform on the window sample grid
``t = 0 .. n - 1``.  The optimizer only talks to the WaveformModel
interface, so the HED equation can be replaced without touching the fitting
code.
"""
from abc import ABC, abstractmethod

import numpy as np
from numpy.typing import NDArray
from scipy.signal import lfilter
from scipy.special import expit, logit

from hedpulse.fiducials import FiducialSet

# widths are never allowed to collapse below this many samples
MINWIDTH = 1.0e-3
# keeps the decay rate strictly inside (0, 1) in the free parameterization
RATEEPS = 1.0e-9
# upper clamp on log widths, far beyond any window length
MAXLOGWIDTH = 20.0


class WaveformModel(ABC):
    """
    Interface between a waveform equation and the batch optimizer.

    Subclasses define the parameter layout through ``PARAMNAMES`` and the
    three index groups: parameters shared across a batch (``ACROSS``),
    per-beat shape parameters (``WITHIN``) and the per-beat offset
    (``BASELINE``).
    """

    PARAMNAMES: tuple[str, ...] = ()
    ACROSS: tuple[int, ...] = ()
    WITHIN: tuple[int, ...] = ()
    BASELINE: tuple[int, ...] = ()

    @property
    def numparams(self) -> int:
        return len(self.PARAMNAMES)

    @abstractmethod
    def excess(self, params: NDArray, numpoints: int) -> NDArray:
        """Excess (forward wave) component."""

    @abstractmethod
    def decay(self, params: NDArray, numpoints: int) -> NDArray:
        """Reservoir (decay) component."""

    @abstractmethod
    def initialparams(
        self, values: NDArray, fiducials: FiducialSet, samplingrate: float, rate: float
    ) -> NDArray:
        """Seed vector for one beat, from its window values and window relative landmarks."""

    def rebuild(self, params: NDArray, numpoints: int) -> NDArray:
        params = np.asarray(params, dtype=np.float64)
        return (
            self.excess(params, numpoints)
            + self.decay(params, numpoints)
            + params[self.BASELINE[0]]
        )

    def chisquare(self, params: NDArray, values: NDArray) -> float:
        """
        Sum of squared residuals over the finite samples of ``values``.

        Returns np.inf if the model produces non-finite values there.
        """
        values = np.asarray(values, dtype=np.float64)
        finite = np.isfinite(values)
        residual = values[finite] - self.rebuild(params, len(values))[finite]
        thechisq = float(np.sum(residual * residual))
        if not np.isfinite(thechisq):
            return np.inf
        return thechisq

    def tofree(self, params: NDArray) -> NDArray:
        """Map bounded parameters onto the unconstrained space the simplex works in."""
        return np.asarray(params, dtype=np.float64).copy()

    def fromfree(self, freeparams: NDArray) -> NDArray:
        """Inverse of ``tofree``."""
        return np.asarray(freeparams, dtype=np.float64).copy()


class HEDModel(WaveformModel):
    """
    Hybrid Excess-and-Decay model.

    The excess is a sum of three Gaussian waves (systolic, renal reflection
    and diastolic reflection).  The reservoir decays geometrically with
    per-sample retention ``rate``, starting from ``decay0`` and fed by a
    leaky integral of the excess.  The renal and diastolic waves are placed
    at ``trenal`` and ``tdia`` samples after ``tsys``.

    Parameter layout
    ----------------
    0 rate, 1 trenal, 2 tdia (shared across a batch);
    3 tsys, 4 asys, 5 wsys, 6 arenal, 7 wrenal, 8 adia, 9 wdia, 10 decay0 (per beat);
    11 baseline (per beat, fitted last).
    """

    PARAMNAMES = (
        "rate",
        "trenal",
        "tdia",
        "tsys",
        "asys",
        "wsys",
        "arenal",
        "wrenal",
        "adia",
        "wdia",
        "decay0",
        "baseline",
    )
    ACROSS = (0, 1, 2)
    WITHIN = (3, 4, 5, 6, 7, 8, 9, 10)
    BASELINE = (11,)
    WIDTHS = (5, 7, 9)

    @staticmethod
    def _gaussian(t: NDArray, center: float, amplitude: float, width: float) -> NDArray:
        return amplitude * np.exp(-0.5 * np.square((t - center) / width))

    def excess(self, params: NDArray, numpoints: int) -> NDArray:
        t = np.arange(numpoints, dtype=np.float64)
        tsys = params[3]
        return (
            self._gaussian(t, tsys, params[4], max(params[5], MINWIDTH))
            + self._gaussian(t, tsys + params[1], params[6], max(params[7], MINWIDTH))
            + self._gaussian(t, tsys + params[2], params[8], max(params[9], MINWIDTH))
        )

    def decay(self, params: NDArray, numpoints: int) -> NDArray:
        rate = float(np.clip(params[0], RATEEPS, 1.0 - RATEEPS))
        t = np.arange(numpoints, dtype=np.float64)
        carried = params[10] * np.power(rate, t)
        charged = lfilter([0.0, 1.0 - rate], [1.0, -rate], self.excess(params, numpoints))
        return carried + charged

    def initialparams(
        self, values: NDArray, fiducials: FiducialSet, samplingrate: float, rate: float
    ) -> NDArray:
        values = np.asarray(values, dtype=np.float64)
        finitevals = values[np.isfinite(values)]
        start = fiducials.O.x
        systime = fiducials.S.x - start
        notchgap = fiducials.N.x - fiducials.S.x
        amplitude = fiducials.amplitude
        if amplitude <= 0.0:
            amplitude = float(np.ptp(finitevals)) if len(finitevals) > 0 else 1.0
        params = np.zeros(self.numparams, dtype=np.float64)
        params[0] = rate
        params[1] = max(0.5 * notchgap, 1.0)
        params[2] = fiducials.D.x - fiducials.S.x
        params[3] = systime
        params[4] = fiducials.S.y
        params[5] = max(systime / 2.0, 1.0)
        params[6] = 0.3 * fiducials.S.y
        params[7] = max(notchgap / 3.0, 1.0)
        params[8] = max(fiducials.D.y - fiducials.N.y, 0.1 * amplitude)
        params[9] = max(fiducials.D.x - fiducials.N.x, 1.0)
        params[10] = finitevals[0] if len(finitevals) > 0 else 0.0
        params[11] = 0.0
        return params

    def tofree(self, params: NDArray) -> NDArray:
        freeparams = np.asarray(params, dtype=np.float64).copy()
        freeparams[0] = logit(np.clip(freeparams[0], RATEEPS, 1.0 - RATEEPS))
        for i in self.WIDTHS:
            freeparams[i] = np.log(max(freeparams[i], MINWIDTH))
        return freeparams

    def fromfree(self, freeparams: NDArray) -> NDArray:
        params = np.asarray(freeparams, dtype=np.float64).copy()
        params[0] = np.clip(expit(params[0]), RATEEPS, 1.0 - RATEEPS)
        for i in self.WIDTHS:
            params[i] = np.exp(np.clip(params[i], np.log(MINWIDTH), MAXLOGWIDTH))
        return params
