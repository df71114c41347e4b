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
Onset, systolic, notch and diastolic (OSND) landmarks of a pulse.
"""
import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from hedpulse.config import (
    DEFAULT_DIAMAXATTEMPTS,
    DEFAULT_DIAMAXSEARCH,
    DEFAULT_DIASHRINK,
    DEFAULT_NDMINSEPARATION,
)
from hedpulse.errors import FiducialDetectionFailed
from hedpulse.spline import MINPOINTS, SplineAnalyzer

LGR = logging.getLogger("GENERAL")

LANDMARKS = ("O", "S", "N", "D")

# the curvature fallback for the notch only looks at the early part of the limb,
# since the foot of the following upstroke is also strongly concave up
NOTCHSEARCHFRACTION = 0.6


@dataclass(frozen=True)
class FiducialPoint:
    x: float
    y: float

    def shifted(self, offset: float) -> "FiducialPoint":
        return FiducialPoint(self.x - offset, self.y)


@dataclass(frozen=True)
class FiducialSet:
    """
    The four landmarks of one pulse.

    Attributes
    ----------
    O, S, N, D : FiducialPoint
        Onset, systolic peak, dicrotic notch and diastolic peak.
    attempts : int
        Number of diastolic searches it took to find N and D.
    """

    O: FiducialPoint
    S: FiducialPoint
    N: FiducialPoint
    D: FiducialPoint
    attempts: int = 1

    def isordered(self) -> bool:
        return self.O.x < self.S.x < self.N.x < self.D.x

    @property
    def amplitude(self) -> float:
        return self.S.y - self.O.y

    def points(self) -> dict[str, FiducialPoint]:
        return {"O": self.O, "S": self.S, "N": self.N, "D": self.D}

    def shifted(self, offset: float) -> "FiducialSet":
        """Copy with every x moved by -offset (window relative coordinates)."""
        return FiducialSet(
            O=self.O.shifted(offset),
            S=self.S.shifted(offset),
            N=self.N.shifted(offset),
            D=self.D.shifted(offset),
            attempts=self.attempts,
        )

    def asdict(self, samplingrate: float | None = None) -> dict[str, float]:
        """Flatten to ``{"O_x": ..., "O_y": ...}``; x is in seconds if samplingrate is given."""
        thedict = {}
        for thename, thepoint in self.points().items():
            if samplingrate is None:
                thedict[f"{thename}_x"] = thepoint.x
            else:
                thedict[f"{thename}_x"] = thepoint.x / samplingrate
            thedict[f"{thename}_y"] = thepoint.y
        return thedict


class FiducialLocator:
    """
    Locate OSND landmarks on a spline.

    Parameters
    ----------
    samplingrate : float
        Sampling rate in Hz.
    shrink : float, optional
        Factor applied to the diastolic search window before a retry.  Default is 0.95.
    maxattempts : int, optional
        Total number of diastolic searches, including the first.  Default is 2.
    minseparation : float, optional
        N-D separations (in samples) between 0 and this value are implausible
        and trigger a retry.  Default is 1.5.
    maxsearch : float, optional
        Longest diastolic search window, in units of the sampling rate
        (i.e. seconds).  Default is 5.0.
    """

    def __init__(
        self,
        samplingrate: float,
        shrink: float = DEFAULT_DIASHRINK,
        maxattempts: int = DEFAULT_DIAMAXATTEMPTS,
        minseparation: float = DEFAULT_NDMINSEPARATION,
        maxsearch: float = DEFAULT_DIAMAXSEARCH,
        debug: bool = False,
    ) -> None:
        self.samplingrate = samplingrate
        self.shrink = shrink
        self.maxattempts = maxattempts
        self.minseparation = minseparation
        self.maxsearch = maxsearch
        self.debug = debug

    def findonset(
        self, analyzer: SplineAnalyzer, before: float, after: float | None = None
    ) -> FiducialPoint:
        """Last spline minimum in (after, before)."""
        minima, dummy = analyzer.stationarypoints(lower=after, upper=before)
        minima = minima[minima < before]
        if after is not None:
            minima = minima[minima > after]
        if len(minima) == 0:
            raise FiducialDetectionFailed(f"no onset minimum before x={before:.2f}")
        return FiducialPoint(float(minima[-1]), float(analyzer.valueat(minima[-1])))

    def findsystolic(
        self, analyzer: SplineAnalyzer, after: float, before: float | None = None
    ) -> FiducialPoint:
        """First spline maximum in (after, before)."""
        dummy, maxima = analyzer.stationarypoints(lower=after, upper=before)
        maxima = maxima[maxima > after]
        if len(maxima) == 0:
            raise FiducialDetectionFailed(f"no systolic maximum after x={after:.2f}")
        return FiducialPoint(float(maxima[0]), float(analyzer.valueat(maxima[0])))

    def _searchlimb(
        self, analyzer: SplineAnalyzer, start: float, end: float
    ) -> tuple[FiducialPoint, FiducialPoint] | None:
        # returns None when the search saturates or the landmarks are implausible
        if end - start < 2.0:
            return None
        minima, maxima = analyzer.stationarypoints(lower=start, upper=end)
        minima = minima[minima > start]
        if len(minima) > 0:
            notchx = float(minima[0])
        else:
            grid = np.arange(
                np.floor(start) + 1.0, np.floor(start + NOTCHSEARCHFRACTION * (end - start)) + 1.0
            )
            if len(grid) == 0:
                return None
            notchx = float(grid[np.argmax(analyzer.derivativeat(grid, order=2))])

        maxima = maxima[maxima > notchx]
        if len(maxima) > 0:
            diax = float(maxima[0])
        else:
            # no secondary maximum - take the shoulder, where the slope peaks
            inflections = analyzer.rootsof(order=2, target=0.0, lower=notchx, upper=end)
            inflections = inflections[inflections > notchx]
            if len(inflections) == 0:
                return None
            inflections = inflections[analyzer.derivativeat(inflections, order=3) < 0.0]
            if len(inflections) == 0:
                return None
            diax = float(inflections[0])

        if end - diax < 1.0:
            return None
        if 0.0 < diax - notchx < self.minseparation:
            return None
        return (
            FiducialPoint(notchx, float(analyzer.valueat(notchx))),
            FiducialPoint(diax, float(analyzer.valueat(diax))),
        )

    def findnotchanddiastolic(
        self, analyzer: SplineAnalyzer, systolic: FiducialPoint, limit: float | None = None
    ) -> tuple[FiducialPoint, FiducialPoint, int]:
        """
        Search the descending limb for the notch and diastolic peak.

        Parameters
        ----------
        analyzer : SplineAnalyzer
            Spline containing the beat.
        systolic : FiducialPoint
            The systolic peak the limb starts from.
        limit : float, optional
            End of the limb, normally the next onset.  Defaults to the end of
            the spline domain.

        Returns
        -------
        notch, diastolic : FiducialPoint
        attempts : int
            Number of searches performed.

        Raises
        ------
        FiducialDetectionFailed
            If no acceptable pair is found within ``maxattempts`` searches.
        """
        dummy, domainend = analyzer.domain
        if limit is None or limit > domainend:
            limit = domainend
        window = min(limit - systolic.x, self.maxsearch * self.samplingrate)
        for attempt in range(1, self.maxattempts + 1):
            thepoints = self._searchlimb(analyzer, systolic.x, systolic.x + window)
            if thepoints is not None:
                return thepoints[0], thepoints[1], attempt
            if self.debug:
                print(f"diastolic search {attempt} failed, window {window:.2f} samples")
            window *= self.shrink
        raise FiducialDetectionFailed(
            f"notch undetected after {self.maxattempts} searches (systolic x={systolic.x:.2f})"
        )

    def locate(
        self,
        analyzer: SplineAnalyzer,
        upos: float,
        vpos: float,
        lower: float | None = None,
        limit: float | None = None,
        onset: FiducialPoint | None = None,
    ) -> FiducialSet:
        """
        Locate the landmarks of one beat of a series.

        Parameters
        ----------
        analyzer : SplineAnalyzer
            Spline of the whole series.
        upos, vpos : float
            Upstroke boundary points of the beat.
        lower : float, optional
            Do not look for the onset before this position.
        limit : float, optional
            End of the descending limb (usually the next onset).
        onset : FiducialPoint, optional
            Onset found earlier; located here if not given.

        Returns
        -------
        FiducialSet
        """
        if onset is None:
            onset = self.findonset(analyzer, upos, after=lower)
        systolic = self.findsystolic(analyzer, vpos, before=limit)
        notch, diastolic, attempts = self.findnotchanddiastolic(analyzer, systolic, limit=limit)
        return FiducialSet(O=onset, S=systolic, N=notch, D=diastolic, attempts=attempts)

    def locatewaveform(self, values: NDArray) -> FiducialSet:
        """
        Locate the landmarks of a single onset-aligned waveform.

        Trailing NaN padding is ignored.  Used for the average waveform and
        for rebuilt model waveforms.
        """
        values = np.asarray(values, dtype=np.float64)
        nanpts = np.where(~np.isfinite(values))[0]
        if len(nanpts) > 0:
            values = values[: nanpts[0]]
        if len(values) < MINPOINTS:
            raise FiducialDetectionFailed("waveform too short to locate landmarks")
        analyzer = SplineAnalyzer(np.arange(len(values), dtype=np.float64), values)
        steepest = float(np.argmax(analyzer.samplederivative(order=1)))
        if steepest <= 0.0:
            raise FiducialDetectionFailed("waveform has no upstroke")
        minima, dummy = analyzer.stationarypoints(upper=steepest)
        minima = minima[minima < steepest]
        if len(minima) > 0:
            onset = FiducialPoint(float(minima[-1]), float(analyzer.valueat(minima[-1])))
        else:
            onset = FiducialPoint(0.0, float(values[0]))
        systolic = self.findsystolic(analyzer, steepest)
        notch, diastolic, attempts = self.findnotchanddiastolic(analyzer, systolic)
        return FiducialSet(O=onset, S=systolic, N=notch, D=diastolic, attempts=attempts)
