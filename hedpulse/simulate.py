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
import numpy as np
from numpy.typing import NDArray

# canonical pulse: systolic and diastolic gaussian waves, offsets and widths in seconds
SYSTOLICDELAY = 0.18
SYSTOLICWIDTH = 0.07
SYSTOLICAMP = 1.0
DIASTOLICDELAY = 0.45
DIASTOLICWIDTH = 0.08
DIASTOLICAMP = 0.45


def _gausswave(t: NDArray, center: float, width: float, amp: float) -> tuple[NDArray, NDArray]:
    thewave = amp * np.exp(-0.5 * np.square((t - center) / width))
    return thewave, -thewave * (t - center) / (width * width)


def generate_synthetic_ppg(
    duration: float = 120.0,
    fs: float = 75.0,
    hr: float = 72.0,
    noise_level: float = 0.0,
    drift: float = 0.0,
    driftfreq: float = 0.25,
    hrvariability: float = 0.0,
    firstonset: float = 0.3,
    seed: int = 0,
) -> tuple[NDArray, NDArray, NDArray, NDArray, NDArray]:
    """
    Generate a synthetic PPG made of canonical two wave pulses.

    Parameters
    ----------
    duration : float
        Duration in seconds
    fs : float
        Sampling frequency in Hz
    hr : float
        Mean heart rate in beats per minute
    noise_level : float
        Standard deviation of additive gaussian noise
    drift : float
        Amplitude of a sinusoidal baseline drift (respiration)
    driftfreq : float
        Frequency of the drift in Hz
    hrvariability : float
        Standard deviation of the beat to beat period, as a fraction of the mean period
    firstonset : float
        Start time of the first pulse in seconds
    seed : int
        Seed for the noise and period jitter

    Returns
    -------
    t : NDArray
        Sample times
    ppg : NDArray
        The signal, including drift and noise
    derivative : NDArray
        Analytic time derivative of the noise free signal, per sample
    onsets : NDArray
        Start times of the pulses
    systolic : NDArray
        Times of the systolic wave centers
    """
    rng = np.random.RandomState(seed)
    t = np.arange(0.0, duration, 1.0 / fs)
    ppg = np.zeros_like(t)
    derivative = np.zeros_like(t)
    beat_period = 60.0 / hr

    onsets = []
    theonset = firstonset
    while theonset + SYSTOLICDELAY < duration:
        onsets.append(theonset)
        for center, width, amp in (
            (theonset + SYSTOLICDELAY, SYSTOLICWIDTH, SYSTOLICAMP),
            (theonset + DIASTOLICDELAY, DIASTOLICWIDTH, DIASTOLICAMP),
        ):
            thewave, thederiv = _gausswave(t, center, width, amp)
            ppg += thewave
            derivative += thederiv
        theonset += beat_period * (1.0 + hrvariability * rng.randn())
    onsets = np.asarray(onsets)

    if drift != 0.0:
        ppg += drift * np.sin(2.0 * np.pi * driftfreq * t)
        derivative += 2.0 * np.pi * driftfreq * drift * np.cos(2.0 * np.pi * driftfreq * t)
    if noise_level > 0.0:
        ppg += rng.normal(0.0, noise_level, len(ppg))

    # per sample rather than per second, to match the spline derivatives
    return t, ppg, derivative / fs, onsets, onsets + SYSTOLICDELAY
