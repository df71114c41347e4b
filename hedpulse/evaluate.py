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
Goodness of fit of the rebuilt beats.
"""
import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from hedpulse.batchfit import BatchResult, BeatFit
from hedpulse.errors import FiducialDetectionFailed
from hedpulse.fiducials import LANDMARKS, FiducialLocator
from hedpulse.segment import Beat

LGR = logging.getLogger("GENERAL")

# denominators smaller than this are replaced by 1
MINDENOM = 1.0e-12


@dataclass(frozen=True)
class FitResult:
    number: int
    chisquare: float
    maxerror: float
    nrmse: float
    ampnrmse: float
    converged: bool


@dataclass(frozen=True)
class FiducialError:
    """Landmarks of the rebuilt waveform minus those of the measured beat (dx in seconds)."""

    number: int
    dx: dict[str, float]
    dy: dict[str, float]

    def asdict(self) -> dict[str, float]:
        thedict = {"beat": self.number}
        for thename in LANDMARKS:
            thedict[f"{thename}_dx"] = self.dx[thename]
            thedict[f"{thename}_dy"] = self.dy[thename]
        return thedict


def _safedenom(value: float) -> float:
    if not np.isfinite(value) or np.fabs(value) < MINDENOM:
        return 1.0
    return float(np.fabs(value))


def fitstatistics(
    values: NDArray, rebuilt: NDArray, amplitude: float
) -> tuple[float, float, float, float]:
    """
    Summary statistics of a fit.

    Parameters
    ----------
    values : NDArray
        Measured samples.  Non-finite samples are ignored.
    rebuilt : NDArray
        Model waveform on the same grid.
    amplitude : float
        Pulse amplitude (S.y - O.y) used for the amplitude normalized error.

    Returns
    -------
    chisquare, maxerror, nrmse, ampnrmse : float
        Sum of squared residuals, largest absolute residual, RMSE over the
        data range and RMSE over the pulse amplitude.  All finite and non-negative.
    """
    values = np.asarray(values, dtype=np.float64)
    rebuilt = np.asarray(rebuilt, dtype=np.float64)
    finite = np.isfinite(values) & np.isfinite(rebuilt)
    if np.sum(finite) == 0:
        return 0.0, 0.0, 0.0, 0.0
    residual = values[finite] - rebuilt[finite]
    chisquare = float(np.sum(residual * residual))
    maxerror = float(np.max(np.fabs(residual)))
    rmse = np.sqrt(chisquare / len(residual))
    nrmse = float(rmse / _safedenom(np.ptp(values[finite])))
    ampnrmse = float(rmse / _safedenom(amplitude))
    return chisquare, maxerror, nrmse, ampnrmse


class ModelEvaluator:
    """
    Compare rebuilt beats with the measured ones.

    Parameters
    ----------
    samplingrate : float
        Used to express landmark time differences in seconds.
    locator : FiducialLocator, optional
        Locator for the rebuilt waveforms.  A default one is made if not given.
    """

    def __init__(
        self, samplingrate: float, locator: FiducialLocator | None = None, debug: bool = False
    ) -> None:
        self.samplingrate = samplingrate
        if locator is None:
            locator = FiducialLocator(samplingrate)
        self.locator = locator
        self.debug = debug

    def evaluate(self, beat: Beat, beatfit: BeatFit) -> FitResult:
        chisquare, maxerror, nrmse, ampnrmse = fitstatistics(
            beat.values, beatfit.rebuilt, beat.fiducials.amplitude
        )
        return FitResult(
            number=beat.number,
            chisquare=chisquare,
            maxerror=maxerror,
            nrmse=nrmse,
            ampnrmse=ampnrmse,
            converged=beatfit.converged,
        )

    def fiducialerror(self, beat: Beat, beatfit: BeatFit) -> FiducialError:
        """
        Locate the landmarks of the rebuilt waveform and compare them with the beat's.

        Differences are NaN when the rebuilt landmarks cannot be located.
        """
        measured = beat.localfiducials.points()
        try:
            rebuilt = self.locator.locatewaveform(beatfit.rebuilt).points()
        except FiducialDetectionFailed as e:
            LGR.debug(f"beat {beat.number}: rebuilt landmarks not found ({e})")
            return FiducialError(
                number=beat.number,
                dx={thename: np.nan for thename in LANDMARKS},
                dy={thename: np.nan for thename in LANDMARKS},
            )
        return FiducialError(
            number=beat.number,
            dx={
                thename: (rebuilt[thename].x - measured[thename].x) / self.samplingrate
                for thename in LANDMARKS
            },
            dy={thename: rebuilt[thename].y - measured[thename].y for thename in LANDMARKS},
        )

    def evaluateall(
        self, beats: list[Beat], batchresults: list[BatchResult]
    ) -> tuple[list[FitResult], list[FiducialError]]:
        """Evaluate every fitted beat, merged with the beats by candidate number, in time order."""
        beatsbynumber = {thebeat.number: thebeat for thebeat in beats}
        fitresults = []
        fiducialerrors = []
        for thebatch in batchresults:
            for thefit in thebatch.fits:
                thebeat = beatsbynumber[thefit.number]
                fitresults.append(self.evaluate(thebeat, thefit))
                fiducialerrors.append(self.fiducialerror(thebeat, thefit))
        fitresults.sort(key=lambda x: x.number)
        fiducialerrors.sort(key=lambda x: x.number)
        if self.debug:
            print(f"ModelEvaluator: {len(fitresults)} beats evaluated")
        return fitresults, fiducialerrors
