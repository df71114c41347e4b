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
import logging
import warnings
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from hedpulse.config import DEFAULT_DERIVPERCENTILE
from hedpulse.errors import NoPeaksDetected
from hedpulse.spline import SplineAnalyzer

LGR = logging.getLogger("GENERAL")


@dataclass(frozen=True)
class Peak:
    """
    An upward crossing of the derivative threshold.

    Attributes
    ----------
    index : int
        First sample index at or above the threshold.
    position : float
        Fractional position of the crossing, found on the spline.
    derivative : float
        Derivative at ``index``, in the units the detector thresholds in.
    amplitude : float
        Spline value at ``position``.
    """

    index: int
    position: float
    derivative: float
    amplitude: float

    def time(self, samplingrate: float) -> float:
        return self.position / samplingrate


@dataclass
class PeakDetectionResult:
    peaks: list[Peak]
    derivative: NDArray
    derivscale: float
    minima: NDArray
    maxima: NDArray

    @property
    def positions(self) -> NDArray:
        return np.asarray([thepeak.position for thepeak in self.peaks], dtype=np.float64)


class PeakDetector:
    """
    Find primary pulse upstrokes as upward first derivative threshold crossings.

    Parameters
    ----------
    samplingrate : float
        Sampling rate in Hz.
    pk_thrshd : float
        Derivative threshold.  A candidate exists at sample ``i + 1`` when
        ``d[i] < pk_thrshd <= d[i + 1]``.
    normalize : bool, optional
        Divide the derivative by a high percentile of its positive values
        before thresholding, making ``pk_thrshd`` dimensionless.  Default is True.
    derivpercentile : float, optional
        Percentile used for the normalization.  Default is 99.0.
    """

    def __init__(
        self,
        samplingrate: float,
        pk_thrshd: float,
        normalize: bool = True,
        derivpercentile: float = DEFAULT_DERIVPERCENTILE,
        debug: bool = False,
    ) -> None:
        self.samplingrate = samplingrate
        self.pk_thrshd = pk_thrshd
        self.normalize = normalize
        self.derivpercentile = derivpercentile
        self.debug = debug

    def derivscale(self, derivative: NDArray) -> float:
        if not self.normalize:
            return 1.0
        positive = derivative[derivative > 0.0]
        if len(positive) == 0:
            return 1.0
        thescale = np.percentile(positive, self.derivpercentile)
        if thescale <= 0.0:
            return 1.0
        return float(thescale)

    def detect(self, analyzer: SplineAnalyzer, warn: bool = True) -> PeakDetectionResult:
        """
        Locate candidate peaks and stationary points on a spline.

        Parameters
        ----------
        analyzer : SplineAnalyzer
            Spline of the conditioned series.
        warn : bool, optional
            Issue a NoPeaksDetected warning when nothing is found.  Default is True.

        Returns
        -------
        PeakDetectionResult
            Candidate peaks in time order, the thresholded derivative, the
            scale applied to it, and the spline minima and maxima (the
            baseline markers).  An empty peak list is valid.
        """
        rawderivative = analyzer.samplederivative(order=1)
        thescale = self.derivscale(rawderivative)
        derivative = rawderivative / thescale
        crossings = np.where(
            (derivative[:-1] < self.pk_thrshd) & (derivative[1:] >= self.pk_thrshd)
        )[0]
        peaks = []
        for i in crossings:
            theroots = analyzer.rootsof(
                order=1,
                target=self.pk_thrshd * thescale,
                lower=analyzer.xvals[i],
                upper=analyzer.xvals[i + 1],
            )
            if len(theroots) > 0:
                position = float(theroots[0])
            else:
                position = float(analyzer.xvals[i + 1])
            peaks.append(
                Peak(
                    index=int(i + 1),
                    position=position,
                    derivative=float(derivative[i + 1]),
                    amplitude=float(analyzer.valueat(position)),
                )
            )
        minima, maxima = analyzer.stationarypoints()
        if len(peaks) == 0 and warn:
            LGR.warning("no derivative threshold crossings found - no beats to process")
            warnings.warn(
                f"no peaks found with threshold {self.pk_thrshd}", NoPeaksDetected, stacklevel=2
            )
        elif self.debug:
            print(f"PeakDetector: {len(peaks)} candidate peaks, derivative scale {thescale}")
        return PeakDetectionResult(
            peaks=peaks, derivative=derivative, derivscale=thescale, minima=minima, maxima=maxima
        )
