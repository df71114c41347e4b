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

from hedpulse.errors import OutOfDomain
from hedpulse.spline import SplineAnalyzer


def _sineanalyzer(numpoints=100, period=20.0):
    xvals = np.arange(numpoints, dtype=np.float64)
    return SplineAnalyzer(xvals, np.sin(2.0 * np.pi * xvals / period))


def spline_evaluation(debug=False):
    if debug:
        print("spline_evaluation")
    analyzer = _sineanalyzer()
    assert analyzer.domain == (0.0, 99.0)
    assert len(analyzer) == 100
    assert analyzer.valueat(12.5) == pytest.approx(np.sin(2.0 * np.pi * 12.5 / 20.0), abs=1e-3)
    assert analyzer.derivativeat(20.0) == pytest.approx(2.0 * np.pi / 20.0, abs=1e-3)
    values = analyzer.valueat(np.array([10.0, 15.0]))
    assert values.shape == (2,)
    assert analyzer.samplederivative(order=2).shape == (100,)


def spline_domain(debug=False):
    if debug:
        print("spline_domain")
    analyzer = _sineanalyzer()
    with pytest.raises(OutOfDomain):
        analyzer.valueat(-1.0)
    with pytest.raises(OutOfDomain):
        analyzer.derivativeat(np.array([50.0, 100.0]), order=1)
    # OutOfDomain is also a ValueError
    with pytest.raises(ValueError):
        analyzer.valueat(np.nan)
    with pytest.raises(ValueError):
        analyzer.derivativeat(10.0, order=4)


def spline_roots(debug=False):
    if debug:
        print("spline_roots")
    analyzer = _sineanalyzer()
    zeros = analyzer.rootsof(order=0, target=0.0, lower=1.0, upper=98.0)
    if debug:
        print(zeros)
    assert np.allclose(zeros, np.arange(10.0, 91.0, 10.0), atol=1e-3)
    halfway = analyzer.rootsof(order=0, target=0.5, lower=0.0, upper=10.0)
    assert len(halfway) == 2
    assert np.all(np.diff(halfway) > 0.0)
    assert len(analyzer.rootsof(order=0, target=2.0)) == 0


def spline_stationarypoints(debug=False):
    if debug:
        print("spline_stationarypoints")
    analyzer = _sineanalyzer()
    minima, maxima = analyzer.stationarypoints()
    assert np.allclose(maxima, [5.0, 25.0, 45.0, 65.0, 85.0], atol=0.05)
    assert np.allclose(minima, [15.0, 35.0, 55.0, 75.0, 95.0], atol=0.05)
    minima, maxima = analyzer.stationarypoints(lower=20.0, upper=40.0)
    assert np.allclose(maxima, [25.0], atol=0.05)
    assert np.allclose(minima, [35.0], atol=0.05)


def spline_flat(debug=False):
    if debug:
        print("spline_flat")
    analyzer = SplineAnalyzer(np.arange(20.0), np.ones(20))
    assert len(analyzer.rootsof(order=1)) == 0
    minima, maxima = analyzer.stationarypoints()
    assert len(minima) == 0
    assert len(maxima) == 0


def spline_validation(debug=False):
    if debug:
        print("spline_validation")
    with pytest.raises(ValueError):
        SplineAnalyzer(np.arange(3.0), np.zeros(3))
    with pytest.raises(ValueError):
        SplineAnalyzer(np.array([0.0, 1.0, 1.0, 2.0]), np.zeros(4))
    with pytest.raises(ValueError):
        SplineAnalyzer(np.arange(5.0), np.array([0.0, 1.0, np.nan, 1.0, 0.0]))
    with pytest.raises(ValueError):
        SplineAnalyzer(np.arange(5.0), np.zeros(6))


def spline_refit(debug=False):
    if debug:
        print("spline_refit")
    analyzer = _sineanalyzer()
    newanalyzer = analyzer.refit(2.0 * analyzer.yvals)
    assert newanalyzer is not analyzer
    assert newanalyzer.valueat(5.0) == pytest.approx(2.0 * analyzer.valueat(5.0))
    assert analyzer.valueat(5.0) == pytest.approx(1.0, abs=1e-3)


def test_spline(debug=False):
    spline_evaluation(debug=debug)
    spline_domain(debug=debug)
    spline_roots(debug=debug)
    spline_stationarypoints(debug=debug)
    spline_flat(debug=debug)
    spline_validation(debug=debug)
    spline_refit(debug=debug)


if __name__ == "__main__":
    test_spline(debug=True)
