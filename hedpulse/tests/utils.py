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
"""
Utility functions for testing hedpulse.
"""

import os

import numpy as np

from hedpulse.config import HEDConfig
from hedpulse.simulate import generate_synthetic_ppg


def get_hedpulse_root():
    """
    Returns the path to the base hedpulse directory, terminated with separator.
    Based on function by Yaroslav Halchenko used in Neurosynth Python package.
    """
    thisdir, thisfile = os.path.split(os.path.join(os.path.realpath(__file__)))
    return os.path.join(thisdir, "..") + os.path.sep


def get_test_temp_path():
    """
    Returns the path to test temporary directory, terminated with separator.
    Based on function by Yaroslav Halchenko used in Neurosynth Python package.
    """
    return os.path.realpath(os.path.join(get_hedpulse_root(), "tests", "tmp")) + os.path.sep


def create_dir(thedir, debug=False):
    # create a directory if it doesn't exist
    try:
        os.makedirs(thedir)
        if debug:
            print(thedir, "created")
    except OSError:
        if debug:
            print(thedir, "exists")


def mse(ndarr1, ndarr2):
    """
    Compute the mean square error between two equal sized arrays.
    """
    return np.mean(np.square(ndarr2 - ndarr1))


def fastconfig(**overrides):
    """A configuration with small iteration budgets, so fitting tests run quickly."""
    options = dict(
        refinementrounds=1,
        withiniterations=200,
        acrossiterations=100,
        simplex_iterations=400,
        baselineiterations=50,
    )
    options.update(overrides)
    return HEDConfig(**options).validate()


def syntheticseries(duration=30.0, fs=75.0, hr=72.0, drift=0.0, noise_level=0.0, seed=0):
    """Canonical two wave PPG; returns (ppg, onsets, systolic times)."""
    t, ppg, derivative, onsets, systolic = generate_synthetic_ppg(
        duration=duration, fs=fs, hr=hr, drift=drift, noise_level=noise_level, seed=seed
    )
    return ppg, onsets, systolic
