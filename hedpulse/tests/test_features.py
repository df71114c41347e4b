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

from hedpulse.features import (
    bandpowers,
    intervalfeatures,
    morphologyfeatures,
    morphologytable,
    powerspectrum,
)
from hedpulse.fiducials import FiducialPoint, FiducialSet
from hedpulse.segment import BeatSegmenter
from hedpulse.tests.utils import fastconfig, syntheticseries


def features_morphology(debug=False):
    if debug:
        print("features_morphology")
    fs = 10.0
    thefiducials = FiducialSet(
        O=FiducialPoint(0.0, 0.0),
        S=FiducialPoint(10.0, 1.0),
        N=FiducialPoint(20.0, 0.4),
        D=FiducialPoint(25.0, 0.5),
    )
    features = morphologyfeatures(thefiducials, fs)
    if debug:
        print(features)
    assert np.allclose(features["pulse_amplitude"], 1.0)
    assert np.allclose(features["rising_time"], 1.0)
    assert np.allclose(features["notch_time"], 1.0)
    assert np.allclose(features["diastolic_time"], 1.5)
    assert np.allclose(features["notch_index"], 0.4)
    assert np.allclose(features["reflection_index"], 0.5)
    assert "pulse_width" not in features

    window = np.asarray([0.0, 0.25, 0.5, 0.75, 1.0, 0.75, 0.5, 0.25, 0.0, np.nan])
    features = morphologyfeatures(thefiducials, fs, window=window)
    assert np.allclose(features["pulse_width"], 0.3)

    # a zero amplitude pulse has undefined ratios
    flatfiducials = FiducialSet(
        O=FiducialPoint(0.0, 1.0),
        S=FiducialPoint(10.0, 1.0),
        N=FiducialPoint(20.0, 0.4),
        D=FiducialPoint(25.0, 0.5),
    )
    features = morphologyfeatures(flatfiducials, fs)
    assert np.isnan(features["notch_index"])
    assert np.isnan(features["reflection_index"])


def features_table(debug=False):
    if debug:
        print("features_table")
    fs = 75.0
    ppg, onsets, systolic = syntheticseries(duration=10.0, fs=fs)
    beats = BeatSegmenter(fastconfig(samplingrate=fs)).segment(ppg).beats
    thetable = morphologytable(beats, fs)
    if debug:
        print(thetable)
    assert len(thetable) == len(beats)
    assert list(thetable["beat"]) == [x.number for x in beats]
    # identical pulses give identical shapes once a preceding pulse exists
    risingtimes = thetable["rising_time"].to_numpy()[1:]
    assert np.all(risingtimes > 0.15)
    assert np.all(risingtimes < 0.35)
    assert np.std(risingtimes) < 1.0 / fs
    assert np.all(thetable["reflection_index"].to_numpy()[1:] > 0.0)
    assert np.all(thetable["reflection_index"].to_numpy()[1:] < 1.0)


def features_intervals(debug=False):
    if debug:
        print("features_intervals")
    summary = intervalfeatures(np.asarray([1.0, 1.0, 1.0, 1.0]))
    assert np.allclose(summary["mean_ibi"], 1.0)
    assert np.allclose(summary["sdnn"], 0.0)
    assert np.allclose(summary["rmssd"], 0.0)
    assert np.allclose(summary["mean_hr"], 60.0)

    summary = intervalfeatures(np.asarray([0.8, 1.0, 0.8, 1.0]))
    assert np.allclose(summary["rmssd"], 0.2)
    assert np.allclose(summary["sdnn"], 0.1)

    summary = intervalfeatures(np.asarray([1.0]))
    for thekey in ["mean_ibi", "sdnn", "rmssd", "mean_hr"]:
        assert np.isnan(summary[thekey])


def features_spectrum(debug=False):
    if debug:
        print("features_spectrum")
    fs = 50.0
    t = np.arange(0.0, 60.0, 1.0 / fs)
    sinewave = np.sin(2.0 * np.pi * 1.2 * t) + 5.0

    freqs, power = powerspectrum(sinewave, fs)
    assert len(freqs) == len(power) == len(t) // 2
    assert np.fabs(freqs[np.argmax(power)] - 1.2) < 2.0 * fs / len(t)

    thepowers = bandpowers(sinewave, fs)
    if debug:
        print(thepowers)
    assert thepowers["cardiac_fraction"] > 0.9
    assert thepowers["resp_fraction"] < 0.05
    fractions = [
        thepowers[f"{thename}_fraction"] for thename in ["vlf", "resp", "cardiac", "harmonic"]
    ]
    assert np.sum(fractions) <= 1.0 + 1e-9

    thepowers = bandpowers(np.ones(100), fs, bands={"all": (0.0, 25.0)})
    assert thepowers["all_power"] == 0.0
    assert np.isnan(thepowers["all_fraction"])


def test_features(debug=False):
    features_morphology(debug=debug)
    features_table(debug=debug)
    features_intervals(debug=debug)
    features_spectrum(debug=debug)


if __name__ == "__main__":
    test_features(debug=True)
