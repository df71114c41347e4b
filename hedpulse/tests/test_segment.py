#!/usr/bin/env python
# -*- coding: utf-8 -*-
#
#   Copyright 2016-2026 Blaise Frederick
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
import numpy as np
import pytest

from hedpulse.config import HEDConfig
from hedpulse.fiducials import FiducialPoint, FiducialSet
from hedpulse.segment import BeatSegmenter, RejectionReason, robustoutliers
from hedpulse.simulate import generate_synthetic_ppg
from hedpulse.spline import MINPOINTS
from hedpulse.tests.utils import syntheticseries


def _gaussian(t, center, width, amp):
    return amp * np.exp(-0.5 * np.square((t - center) / width))


def _checkpartition(result):
    accepted = [thebeat.number for thebeat in result.beats]
    rejected = [therejection.number for therejection in result.rejectionlist()]
    assert len(set(accepted) & set(rejected)) == 0
    assert sorted(accepted + rejected) == list(range(result.numcandidates))


def segment_clean(debug=False):
    if debug:
        print("segment_clean")
    fs = 75.0
    ppg, onsets, systolic = syntheticseries(duration=30.0, fs=fs)
    result = BeatSegmenter(HEDConfig(samplingrate=fs)).segment(ppg)
    if debug:
        print(f"{result.numbeats} of {result.numcandidates} accepted")
        print(result.rejectiontable())
    assert result.numcandidates == len(onsets)
    assert len(result.ibi) == result.numcandidates - 1
    assert np.allclose(result.ibi, 60.0 / 72.0, atol=0.02)
    assert result.numbeats >= len(onsets) - 3
    _checkpartition(result)

    assert result.windowlength == pytest.approx((60.0 / 72.0 + 0.1) * fs, abs=2)
    for thebeat in result.beats:
        assert thebeat.fiducials.isordered()
        assert len(thebeat.window) == result.windowlength
        assert len(thebeat.values) >= MINPOINTS
        assert thebeat.spline is not None
        assert thebeat.start == int(np.round(thebeat.fiducials.O.x))
        assert thebeat.boundaries.u < thebeat.boundaries.w < thebeat.boundaries.v
        assert thebeat.amplitude == pytest.approx(1.0, abs=0.05)
        assert np.all(np.isnan(thebeat.window[len(thebeat.values) :]))
    assert np.allclose(result.corrected, ppg - result.baseline)
    assert len(result.averagewaveform) == result.windowlength
    assert result.averagefiducials is not None
    assert result.averagefiducials.isordered()

    fiducialtable = result.fiducialtable()
    assert len(fiducialtable) == result.numbeats
    assert "D_x" in fiducialtable.columns


def segment_drift(debug=False):
    if debug:
        print("segment_drift")
    fs = 75.0
    ppg, onsets, systolic = syntheticseries(duration=30.0, fs=fs, drift=0.2)
    result = BeatSegmenter(HEDConfig(samplingrate=fs)).segment(ppg)
    if debug:
        print(f"{result.numbeats} of {result.numcandidates} accepted")
    assert result.numcandidates == len(onsets)
    assert result.numbeats >= len(onsets) - 6
    _checkpartition(result)
    # the corrected series no longer wanders
    assert np.ptp(result.baseline) > 0.2
    for thebeat in result.beats:
        assert thebeat.fiducials.isordered()
        assert np.fabs(thebeat.fiducials.O.y) < 0.05


def segment_orderingviolation(debug=False):
    if debug:
        print("segment_orderingviolation")
    fs = 75.0
    ppg, onsets, systolic = syntheticseries(duration=10.0, fs=fs)
    segmenter = BeatSegmenter(HEDConfig(samplingrate=fs))

    def disorderedlocate(analyzer, upos, vpos, lower=None, limit=None, onset=None):
        return FiducialSet(
            O=FiducialPoint(upos, 0.0),
            S=FiducialPoint(vpos + 5.0, 1.0),
            N=FiducialPoint(vpos + 4.0, 0.4),
            D=FiducialPoint(vpos + 10.0, 0.5),
        )

    segmenter.locator.locate = disorderedlocate
    result = segmenter.segment(ppg)
    assert result.numbeats == 0
    assert len(result.rejections[RejectionReason.ORDERING_VIOLATION]) > 0
    assert len(result.averagewaveform) == 0
    assert result.averagefiducials is None
    _checkpartition(result)


def segment_outliers(debug=False):
    if debug:
        print("segment_outliers")
    fs = 75.0
    t, ppg, derivative, onsets, systolic = generate_synthetic_ppg(duration=30.0, fs=fs)

    # one beat three times as tall
    tall = ppg + _gaussian(t, systolic[10], 0.07, 2.0)
    config = HEDConfig(samplingrate=fs, normalizederivative=False, pk_thrshd=0.08)
    result = BeatSegmenter(config).segment(tall)
    if debug:
        print(result.rejectiontable())
    assert result.numcandidates == len(onsets)
    amplitudeoutliers = [x.number for x in result.rejections[RejectionReason.OUTLIER_AMPLITUDE]]
    assert amplitudeoutliers == [10]
    _checkpartition(result)

    # one beat missing
    gap = ppg - _gaussian(t, systolic[10], 0.07, 1.0) - _gaussian(t, onsets[10] + 0.45, 0.08, 0.45)
    result = BeatSegmenter(HEDConfig(samplingrate=fs)).segment(gap)
    if debug:
        print(result.rejectiontable())
    assert result.numcandidates == len(onsets) - 1
    intervaloutliers = [x.number for x in result.rejections[RejectionReason.OUTLIER_INTERVAL]]
    assert intervaloutliers == [9]
    assert result.ibi[9] == pytest.approx(2.0 * 60.0 / 72.0, abs=0.02)
    _checkpartition(result)


def segment_robustoutliers(debug=False):
    if debug:
        print("segment_robustoutliers")
    flags = robustoutliers(np.array([1.0, 1.01, 0.99, 1.0, 5.0]), 4.0, 0.05)
    assert list(flags) == [False, False, False, False, True]
    flags = robustoutliers(np.array([1.0, np.nan, 1.0, 1.0, 1.02]), 4.0, 0.05)
    assert not np.any(flags)
    assert not np.any(robustoutliers(np.zeros(6), 4.0, 0.0))
    assert len(robustoutliers(np.zeros(0), 4.0, 0.05)) == 0


def segment_flat(debug=False):
    if debug:
        print("segment_flat")
    with pytest.warns(UserWarning):
        result = BeatSegmenter(HEDConfig()).segment(np.zeros(500))
    assert result.numbeats == 0
    assert result.numcandidates == 0
    assert len(result.ibi) == 0
    assert result.windowlength == 0
    assert len(result.rejectionlist()) == 0
    with pytest.raises(ValueError):
        BeatSegmenter(HEDConfig()).segment(np.zeros((10, 10)))


def test_segment(debug=False):
    segment_clean(debug=debug)
    segment_drift(debug=debug)
    segment_orderingviolation(debug=debug)
    segment_outliers(debug=debug)
    segment_robustoutliers(debug=debug)
    segment_flat(debug=debug)


if __name__ == "__main__":
    test_segment(debug=True)
