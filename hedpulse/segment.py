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
Beat segmentation: boundaries, baseline correction, rejection and windowing.
"""
import logging
import warnings
from dataclasses import dataclass
from enum import Enum

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy.interpolate import CubicSpline
from statsmodels.robust import mad

from hedpulse.config import HEDConfig
from hedpulse.errors import FiducialDetectionFailed, SegmentationRejection
from hedpulse.fiducials import FiducialLocator, FiducialPoint, FiducialSet
from hedpulse.peakdetect import Peak, PeakDetector
from hedpulse.spline import MINPOINTS, SplineAnalyzer

LGR = logging.getLogger("GENERAL")

# two boundary points closer than this (in samples) are the same point
DUPLICATETOL = 0.5


class RejectionReason(str, Enum):
    MALFORMED_BOUNDARY = "MalformedBoundary"
    FIDUCIAL_FAILURE = "FiducialFailure"
    ORDERING_VIOLATION = "OrderingViolation"
    OUTLIER_INTERVAL = "OutlierInterval"
    OUTLIER_AMPLITUDE = "OutlierAmplitude"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Rejection:
    number: int
    position: float
    reason: RejectionReason
    message: str = ""


@dataclass(frozen=True)
class Boundaries:
    """Upstroke boundaries: half slope points ``u`` and ``v`` around the steepest point ``w``."""

    u: float
    v: float
    w: float


@dataclass(eq=False)
class Beat:
    """
    One accepted pulse.

    Attributes
    ----------
    number : int
        Ordinal of the candidate peak this beat came from.
    peak : Peak
        The derivative threshold crossing.
    start, end : int
        Half-open sample range [start, end) of the beat in the corrected series.
    boundaries : Boundaries
        Upstroke boundary points.
    fiducials : FiducialSet
        Landmarks in series coordinates.
    window : NDArray
        Baseline corrected samples from the onset, NaN padded to the common window length.
    spline : SplineAnalyzer
        Spline of the finite part of ``window``.
    interval : float
        Onset to next onset interval in seconds (NaN for the last candidate).
    amplitude : float
        Systolic minus onset amplitude.
    """

    number: int
    peak: Peak
    start: int
    end: int
    boundaries: Boundaries
    fiducials: FiducialSet
    window: NDArray
    spline: SplineAnalyzer | None
    interval: float
    amplitude: float

    @property
    def values(self) -> NDArray:
        return self.window[np.isfinite(self.window)]

    @property
    def localfiducials(self) -> FiducialSet:
        """Landmarks relative to the start of the window."""
        return self.fiducials.shifted(self.start)

    def timeaxis(self, samplingrate: float) -> NDArray:
        return np.arange(len(self.values), dtype=np.float64) / samplingrate


@dataclass
class SegmentationResult:
    """Output of BeatSegmenter.segment."""

    beats: list[Beat]
    ibi: NDArray
    rejections: dict[RejectionReason, list[Rejection]]
    averagewaveform: NDArray
    averagefiducials: FiducialSet | None
    windowlength: int
    baseline: NDArray
    corrected: NDArray
    peaks: list[Peak]
    samplingrate: float

    @property
    def numbeats(self) -> int:
        return len(self.beats)

    @property
    def numcandidates(self) -> int:
        return len(self.peaks)

    def rejectionlist(self) -> list[Rejection]:
        therejections = []
        for thelist in self.rejections.values():
            therejections.extend(thelist)
        return sorted(therejections, key=lambda x: x.number)

    def rejectiontable(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "candidate": [x.number for x in self.rejectionlist()],
                "time": [x.position / self.samplingrate for x in self.rejectionlist()],
                "reason": [str(x.reason) for x in self.rejectionlist()],
                "message": [x.message for x in self.rejectionlist()],
            }
        )

    def fiducialtable(self) -> pd.DataFrame:
        rows = []
        for thebeat in self.beats:
            therow = {"beat": thebeat.number, "interval": thebeat.interval}
            therow.update(thebeat.fiducials.asdict(samplingrate=self.samplingrate))
            rows.append(therow)
        return pd.DataFrame(rows)


def robustoutliers(values: NDArray, thresh: float, floor: float) -> NDArray:
    """
    Flag values far from the median.

    Parameters
    ----------
    values : NDArray
        Values to test.  NaNs are never flagged.
    thresh : float
        Robust z threshold.
    floor : float
        Minimum spread as a fraction of the median, so that perfectly regular
        data does not flag tiny deviations.

    Returns
    -------
    NDArray
        Boolean mask, True for outliers.
    """
    values = np.asarray(values, dtype=np.float64)
    theflags = np.zeros(len(values), dtype=bool)
    finite = np.isfinite(values)
    if np.sum(finite) < 3:
        return theflags
    themedian = np.median(values[finite])
    spread = max(float(mad(values[finite], center=np.median)), floor * np.fabs(themedian))
    if spread <= 0.0:
        return theflags
    theflags[finite] = np.fabs(values[finite] - themedian) / spread > thresh
    return theflags


class BeatSegmenter:
    """
    Split a conditioned PPG series into accepted beats.

    Parameters
    ----------
    config : HEDConfig
        Uses samplingrate, pk_thrshd, the derivative normalization options,
        boundaryfraction, the diastolic search options, windowmargin and the
        outlier policy.
    """

    def __init__(self, config: HEDConfig, debug: bool = False) -> None:
        self.config = config
        self.samplingrate = config.samplingrate
        self.debug = debug
        self.detector = PeakDetector(
            config.samplingrate,
            config.pk_thrshd,
            normalize=config.normalizederivative,
            derivpercentile=config.derivpercentile,
            debug=debug,
        )
        self.locator = FiducialLocator(
            config.samplingrate,
            shrink=config.diashrink,
            maxattempts=config.diamaxattempts,
            minseparation=config.ndminseparation,
            maxsearch=config.diamaxsearch,
            debug=debug,
        )

    def findboundaries(
        self, analyzer: SplineAnalyzer, peak: Peak, lower: float | None = None
    ) -> Boundaries:
        """
        Find the upstroke boundary points of a peak.

        Raises
        ------
        SegmentationRejection
            With reason MalformedBoundary if a point is missing or on the wrong side.
        """
        steepest = analyzer.rootsof(order=2, target=0.0, lower=peak.position)
        steepest = steepest[steepest >= peak.position]
        if len(steepest) > 0:
            steepest = steepest[analyzer.derivativeat(steepest, order=3) < 0.0]
        if len(steepest) == 0:
            raise SegmentationRejection(
                RejectionReason.MALFORMED_BOUNDARY, "no steepest point after the crossing"
            )
        wpos = float(steepest[0])
        target = self.config.boundaryfraction * analyzer.derivativeat(wpos, order=1)
        uroots = analyzer.rootsof(order=1, target=target, lower=lower, upper=wpos)
        vroots = analyzer.rootsof(order=1, target=target, lower=wpos)
        uroots = uroots[uroots < wpos]
        vroots = vroots[vroots > wpos]
        if len(uroots) == 0 or len(vroots) == 0:
            raise SegmentationRejection(
                RejectionReason.MALFORMED_BOUNDARY, "missing upstroke boundary"
            )
        theboundaries = Boundaries(u=float(uroots[-1]), v=float(vroots[0]), w=wpos)
        if not (theboundaries.u < wpos < theboundaries.v) or theboundaries.v <= peak.position:
            raise SegmentationRejection(
                RejectionReason.MALFORMED_BOUNDARY, "boundary on the wrong side of the peak"
            )
        return theboundaries

    def _boundarypass(
        self, analyzer: SplineAnalyzer, peaks: list[Peak]
    ) -> tuple[list[Boundaries | None], list[FiducialPoint | None], dict[int, SegmentationRejection]]:
        # boundaries and onsets for every candidate, with the first failure of each
        boundarylist = []
        onsetlist = []
        failures = {}
        previous = None
        for k, thepeak in enumerate(peaks):
            lower = None if k == 0 else peaks[k - 1].position
            try:
                theboundaries = self.findboundaries(analyzer, thepeak, lower=lower)
                if (
                    previous is not None
                    and np.fabs(theboundaries.u - previous.u) < DUPLICATETOL
                    and np.fabs(theboundaries.v - previous.v) < DUPLICATETOL
                ):
                    raise SegmentationRejection(
                        RejectionReason.MALFORMED_BOUNDARY, "duplicates the previous boundaries"
                    )
            except SegmentationRejection as e:
                boundarylist.append(None)
                onsetlist.append(None)
                failures[k] = e
                continue
            boundarylist.append(theboundaries)
            previous = theboundaries
            if k == 0:
                after = None
            elif boundarylist[k - 1] is not None:
                after = boundarylist[k - 1].v
            else:
                after = peaks[k - 1].position
            try:
                onsetlist.append(self.locator.findonset(analyzer, theboundaries.u, after=after))
            except FiducialDetectionFailed as e:
                onsetlist.append(None)
                failures[k] = SegmentationRejection(RejectionReason.FIDUCIAL_FAILURE, str(e))
        return boundarylist, onsetlist, failures

    def estimatebaseline(
        self, analyzer: SplineAnalyzer, onsets: list[FiducialPoint | None]
    ) -> NDArray:
        """
        Baseline curve through the pulse onsets.

        A natural cubic spline through the onset minima, held at its end
        values outside the first and last onset.  Falls back to all spline
        minima when there are fewer than two onsets, and to a constant when
        there are fewer than two minima.
        """
        knotx = np.asarray([x.x for x in onsets if x is not None], dtype=np.float64)
        knoty = np.asarray([x.y for x in onsets if x is not None], dtype=np.float64)
        if len(knotx) < 2:
            knotx, dummy = analyzer.stationarypoints()
            knoty = np.asarray(analyzer.valueat(knotx)) if len(knotx) > 0 else knotx
        if len(knotx) < 2:
            if len(knoty) == 1:
                return np.full(len(analyzer.xvals), float(knoty[0]))
            return np.full(len(analyzer.xvals), float(np.min(analyzer.yvals)))
        if len(knotx) == 2:
            return np.interp(analyzer.xvals, knotx, knoty)
        thebaseline = CubicSpline(knotx, knoty, bc_type="natural")(
            np.clip(analyzer.xvals, knotx[0], knotx[-1])
        )
        return thebaseline

    def segment(self, data: NDArray) -> SegmentationResult:
        """
        Segment a conditioned series.

        Parameters
        ----------
        data : NDArray
            One dimensional, finite amplitude samples at ``config.samplingrate``.

        Returns
        -------
        SegmentationResult
            Accepted beats, the candidate peak IBI sequence, the rejection log
            grouped by reason and the average waveform.

        Notes
        -----
        The first spline and peak pass only serves to estimate the baseline.
        After subtracting it, the spline, peaks and landmarks are all computed
        again from scratch on the corrected series.
        """
        data = np.asarray(data, dtype=np.float64)
        if data.ndim != 1:
            raise ValueError("segment expects a one dimensional series")
        if len(data) < MINPOINTS:
            raise ValueError(f"segment needs at least {MINPOINTS} samples, got {len(data)}")
        xvals = np.arange(len(data), dtype=np.float64)

        # first pass: baseline estimation only
        firstanalyzer = SplineAnalyzer(xvals, data, debug=self.debug)
        firstdetection = self.detector.detect(firstanalyzer, warn=False)
        dummy, firstonsets, dummy = self._boundarypass(firstanalyzer, firstdetection.peaks)
        baseline = self.estimatebaseline(firstanalyzer, firstonsets)
        corrected = data - baseline

        # second pass supersedes the first
        analyzer = firstanalyzer.refit(corrected)
        detection = self.detector.detect(analyzer)
        peaks = detection.peaks
        numcandidates = len(peaks)
        if numcandidates > 1:
            ibi = np.diff(detection.positions) / self.samplingrate
        else:
            ibi = np.zeros(0, dtype=np.float64)
        boundarylist, onsetlist, failures = self._boundarypass(analyzer, peaks)

        fiducials = [None] * numcandidates
        for k in range(numcandidates):
            if k in failures:
                continue
            limit = None
            if k + 1 < numcandidates:
                if onsetlist[k + 1] is not None:
                    limit = onsetlist[k + 1].x
                else:
                    limit = peaks[k + 1].position
            try:
                thefiducials = self.locator.locate(
                    analyzer,
                    boundarylist[k].u,
                    boundarylist[k].v,
                    limit=limit,
                    onset=onsetlist[k],
                )
            except FiducialDetectionFailed as e:
                failures[k] = SegmentationRejection(RejectionReason.FIDUCIAL_FAILURE, str(e))
                continue
            if not thefiducials.isordered():
                failures[k] = SegmentationRejection(
                    RejectionReason.ORDERING_VIOLATION,
                    f"O={thefiducials.O.x:.2f}, S={thefiducials.S.x:.2f}, "
                    f"N={thefiducials.N.x:.2f}, D={thefiducials.D.x:.2f}",
                )
                continue
            fiducials[k] = thefiducials

        # intervals between consecutive onsets, in seconds
        intervals = np.full(numcandidates, np.nan)
        for k in range(numcandidates - 1):
            if onsetlist[k] is not None and onsetlist[k + 1] is not None:
                intervals[k] = (onsetlist[k + 1].x - onsetlist[k].x) / self.samplingrate
        amplitudes = np.full(numcandidates, np.nan)
        for k in range(numcandidates):
            if fiducials[k] is not None:
                amplitudes[k] = fiducials[k].amplitude

        survivors = np.asarray([k for k in range(numcandidates) if k not in failures], dtype=int)
        if len(survivors) > 0:
            intervalflags = robustoutliers(
                intervals[survivors], self.config.outlierthresh, self.config.outlierfloor
            )
            amplitudeflags = robustoutliers(
                amplitudes[survivors], self.config.outlierthresh, self.config.outlierfloor
            )
            for i, k in enumerate(survivors):
                if intervalflags[i]:
                    failures[k] = SegmentationRejection(
                        RejectionReason.OUTLIER_INTERVAL, f"interval {intervals[k]:.3f} s"
                    )
                elif amplitudeflags[i]:
                    failures[k] = SegmentationRejection(
                        RejectionReason.OUTLIER_AMPLITUDE, f"amplitude {amplitudes[k]:.4g}"
                    )
        accepted = [k for k in range(numcandidates) if k not in failures]

        # common window length from the onset to onset gaps of the accepted beats
        gaps = intervals[accepted] * self.samplingrate if len(accepted) > 0 else np.zeros(0)
        gaps = gaps[np.isfinite(gaps)]
        if len(gaps) > 0:
            mediangap = float(np.median(gaps))
        elif len(accepted) > 0:
            mediangap = float(len(data) - fiducials[accepted[0]].O.x)
        else:
            mediangap = 0.0
        if len(accepted) > 0:
            windowlength = int(np.round(mediangap + self.config.windowmargin * self.samplingrate))
        else:
            windowlength = 0

        beats = []
        for k in accepted:
            start = int(np.round(fiducials[k].O.x))
            end = min(start + windowlength, len(data))
            if k + 1 < numcandidates and onsetlist[k + 1] is not None:
                end = min(end, int(np.round(onsetlist[k + 1].x)))
            end = max(end, start)
            window = np.full(windowlength, np.nan)
            window[: end - start] = corrected[start:end]
            if end - start >= MINPOINTS:
                thespline = SplineAnalyzer(
                    np.arange(end - start, dtype=np.float64), corrected[start:end]
                )
            else:
                thespline = None
            beats.append(
                Beat(
                    number=k,
                    peak=peaks[k],
                    start=start,
                    end=end,
                    boundaries=boundarylist[k],
                    fiducials=fiducials[k],
                    window=window,
                    spline=thespline,
                    interval=float(intervals[k]),
                    amplitude=float(amplitudes[k]),
                )
            )

        rejections = {thereason: [] for thereason in RejectionReason}
        for k in sorted(failures.keys()):
            rejections[failures[k].reason].append(
                Rejection(
                    number=k,
                    position=peaks[k].position,
                    reason=failures[k].reason,
                    message=failures[k].message,
                )
            )
            LGR.debug(f"candidate {k} rejected: {failures[k]}")

        if len(beats) > 0:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", category=RuntimeWarning)
                averagewaveform = np.nanmean(np.vstack([x.window for x in beats]), axis=0)
            try:
                averagefiducials = self.locator.locatewaveform(averagewaveform)
            except FiducialDetectionFailed as e:
                LGR.info(f"average waveform landmarks not found: {e}")
                averagefiducials = None
        else:
            averagewaveform = np.zeros(0, dtype=np.float64)
            averagefiducials = None

        LGR.info(
            f"{numcandidates} candidate peaks, {len(beats)} accepted beats, "
            + ", ".join(
                [f"{len(thelist)} {thereason}" for thereason, thelist in rejections.items()]
            )
        )
        return SegmentationResult(
            beats=beats,
            ibi=ibi,
            rejections=rejections,
            averagewaveform=averagewaveform,
            averagefiducials=averagefiducials,
            windowlength=windowlength,
            baseline=baseline,
            corrected=corrected,
            peaks=peaks,
            samplingrate=self.samplingrate,
        )
