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

from hedpulse.fiducials import FiducialPoint, FiducialSet
from hedpulse.waveformmodel import HEDModel, WaveformModel

TESTPARAMS = np.array([0.95, 12.0, 20.0, 15.0, 1.0, 4.0, 0.3, 5.0, 0.4, 6.0, 0.1, 0.05])


def model_layout(debug=False):
    if debug:
        print("model_layout")
    model = HEDModel()
    assert isinstance(model, WaveformModel)
    assert model.numparams == 12
    assert model.PARAMNAMES[0] == "rate"
    assert model.PARAMNAMES[11] == "baseline"
    allindices = sorted(model.ACROSS + model.WITHIN + model.BASELINE)
    assert allindices == list(range(12))
    with pytest.raises(TypeError):
        WaveformModel()


def model_components(debug=False):
    if debug:
        print("model_components")
    model = HEDModel()
    numpoints = 60
    excess = model.excess(TESTPARAMS, numpoints)
    decay = model.decay(TESTPARAMS, numpoints)
    rebuilt = model.rebuild(TESTPARAMS, numpoints)
    assert excess.shape == (numpoints,)
    assert np.allclose(rebuilt, excess + decay + TESTPARAMS[11])
    assert np.argmax(excess) == pytest.approx(15, abs=1)

    # with no excess the reservoir just decays
    noexcess = TESTPARAMS.copy()
    noexcess[[4, 6, 8]] = 0.0
    t = np.arange(numpoints)
    assert np.allclose(model.decay(noexcess, numpoints), 0.1 * np.power(0.95, t))

    # the reservoir charges from the excess
    nocarry = TESTPARAMS.copy()
    nocarry[10] = 0.0
    chargeddecay = model.decay(nocarry, numpoints)
    assert chargeddecay[0] == 0.0
    assert np.all(chargeddecay[1:] >= 0.0)
    assert chargeddecay[-1] > 0.0


def model_chisquare(debug=False):
    if debug:
        print("model_chisquare")
    model = HEDModel()
    rebuilt = model.rebuild(TESTPARAMS, 50)
    assert model.chisquare(TESTPARAMS, rebuilt) == pytest.approx(0.0, abs=1e-20)
    shifted = rebuilt + 0.1
    assert model.chisquare(TESTPARAMS, shifted) == pytest.approx(50 * 0.01)
    padded = np.concatenate((shifted, np.full(10, np.nan)))
    assert model.chisquare(TESTPARAMS, padded) == pytest.approx(50 * 0.01)


def model_reparameterization(debug=False):
    if debug:
        print("model_reparameterization")
    model = HEDModel()
    freeparams = model.tofree(TESTPARAMS)
    assert np.allclose(model.fromfree(freeparams), TESTPARAMS)
    # any free vector maps onto valid parameters
    extreme = np.full(12, -50.0)
    params = model.fromfree(extreme)
    assert 0.0 < params[0] < 1.0
    assert np.all(params[[5, 7, 9]] > 0.0)
    assert np.all(np.isfinite(model.rebuild(params, 40)))
    params = model.fromfree(np.full(12, 50.0))
    assert 0.0 < params[0] < 1.0
    assert np.isfinite(model.chisquare(params, np.zeros(40)))


def model_seeds(debug=False):
    if debug:
        print("model_seeds")
    model = HEDModel()
    thefiducials = FiducialSet(
        O=FiducialPoint(0.0, 0.0),
        S=FiducialPoint(20.0, 1.0),
        N=FiducialPoint(32.0, 0.25),
        D=FiducialPoint(41.0, 0.45),
    )
    values = np.linspace(0.0, 1.0, 60)
    params = model.initialparams(values, thefiducials, 75.0, 0.99)
    assert params.shape == (12,)
    assert params[0] == 0.99
    assert params[3] == pytest.approx(20.0)
    assert params[2] == pytest.approx(21.0)
    assert params[4] == pytest.approx(1.0)
    assert np.all(params[[5, 7, 9]] >= 1.0)
    assert params[11] == 0.0


def test_waveformmodel(debug=False):
    model_layout(debug=debug)
    model_components(debug=debug)
    model_chisquare(debug=debug)
    model_reparameterization(debug=debug)
    model_seeds(debug=debug)


if __name__ == "__main__":
    test_waveformmodel(debug=True)
