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
Morphological and spectral descriptors of the segmented series.
"""
import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy import fftpack
from scipy.signal.windows import hamming

from hedpulse.config import DEFAULT_SPECTRALBANDS
from hedpulse.fiducials import FiducialSet

# a band power ratio with a denominator below this is reported as NaN
MINPOWER = 1.0e-20


def morphologyfeatures(
    fiducials: FiducialSet, samplingrate: float, window: NDArray | None = None
) -> dict[str, float]:
    """
    Closed form pulse shape ratios from the O, S, N, D landmarks.

    Parameters
    ----------
    fiducials : FiducialSet
        Landmarks of one pulse (any x origin).
    samplingrate : float
        Sampling rate in Hz.
    window : NDArray, optional
        Onset aligned samples of the pulse.  If given, the width at half
        amplitude is added.

    Returns
    -------
    dict
        pulse_amplitude, rising_time, notch_time, diastolic_time (s, from S),
        notch_index and reflection_index (heights above the onset relative to
        the amplitude), and optionally pulse_width (s).
    """
    amplitude = fiducials.amplitude
    if np.fabs(amplitude) > 0.0:
        scale = 1.0 / amplitude
    else:
        scale = np.nan
    features = {
        "pulse_amplitude": amplitude,
        "rising_time": (fiducials.S.x - fiducials.O.x) / samplingrate,
        "notch_time": (fiducials.N.x - fiducials.S.x) / samplingrate,
        "diastolic_time": (fiducials.D.x - fiducials.S.x) / samplingrate,
        "notch_index": (fiducials.N.y - fiducials.O.y) * scale,
        "reflection_index": (fiducials.D.y - fiducials.O.y) * scale,
    }
    if window is not None:
        values = np.asarray(window, dtype=np.float64)
        values = values[np.isfinite(values)]
        above_half = values > fiducials.O.y + amplitude / 2.0
        transitions = np.diff(above_half.astype(int))
        rise_points = np.where(transitions == 1)[0]
        fall_points = np.where(transitions == -1)[0]
        if len(rise_points) > 0:
            fall_points = fall_points[fall_points > rise_points[0]]
        if len(rise_points) > 0 and len(fall_points) > 0:
            features["pulse_width"] = (fall_points[0] - rise_points[0]) / samplingrate
        else:
            features["pulse_width"] = np.nan
    return features


def morphologytable(beats: list, samplingrate: float) -> pd.DataFrame:
    """One row of morphology features per accepted beat."""
    rows = []
    for thebeat in beats:
        therow = {"beat": thebeat.number}
        therow.update(
            morphologyfeatures(thebeat.localfiducials, samplingrate, window=thebeat.window)
        )
        rows.append(therow)
    return pd.DataFrame(rows)


def intervalfeatures(ibi: NDArray) -> dict[str, float]:
    """
    Time domain summary of an inter-beat interval sequence in seconds.

    Returns
    -------
    dict
        mean_ibi, sdnn and rmssd in seconds, and the mean rate in beats per
        minute.  All NaN if there are fewer than two intervals.
    """
    ibi = np.asarray(ibi, dtype=np.float64)
    ibi = ibi[np.isfinite(ibi)]
    if len(ibi) < 2:
        return {"mean_ibi": np.nan, "sdnn": np.nan, "rmssd": np.nan, "mean_hr": np.nan}
    return {
        "mean_ibi": float(np.mean(ibi)),
        "sdnn": float(np.std(ibi)),
        "rmssd": float(np.sqrt(np.mean(np.diff(ibi) ** 2))),
        "mean_hr": float(60.0 / np.mean(ibi)),
    }


def powerspectrum(invec: NDArray, samplerate: float) -> tuple[NDArray, NDArray]:
    """
    One sided power spectrum of a hamming windowed series.

    Parameters
    ----------
    invec : NDArray
        Input series.  An odd final sample is dropped.
    samplerate : float
        Sampling rate in Hz.

    Returns
    -------
    freqs, power : NDArray
        Frequencies from 0 to just below Nyquist, and the squared magnitude
        at each.
    """
    if np.shape(invec)[0] % 2 == 1:
        thevec = invec[:-1]
    else:
        thevec = invec
    thevec = thevec - np.mean(thevec)
    spec = fftpack.fft(hamming(np.shape(thevec)[0]) * thevec)[0 : np.shape(thevec)[0] // 2]
    power = np.square(np.abs(spec))
    freqs = np.arange(np.shape(spec)[0]) * samplerate / np.shape(thevec)[0]
    return freqs, power


def bandpowers(
    invec: NDArray, samplerate: float, bands: dict[str, tuple[float, float]] | None = None
) -> dict[str, float]:
    """
    Summed spectral power in frequency bands, with each band's share of the total.

    Parameters
    ----------
    invec : NDArray
        The (baseline corrected) series.
    samplerate : float
        Sampling rate in Hz.
    bands : dict, optional
        ``{name: (low, high)}`` in Hz, half open.  Defaults to DEFAULT_SPECTRALBANDS.

    Returns
    -------
    dict
        ``{name}_power`` and ``{name}_fraction`` for each band.  Fractions are
        NaN if the series has no power.
    """
    if bands is None:
        bands = DEFAULT_SPECTRALBANDS
    invec = np.asarray(invec, dtype=np.float64)
    thepowers = {}
    if len(invec) < 4:
        for thename in bands:
            thepowers[f"{thename}_power"] = np.nan
            thepowers[f"{thename}_fraction"] = np.nan
        return thepowers
    freqs, power = powerspectrum(invec, samplerate)
    totalpower = float(np.sum(power))
    for thename, (lowerfreq, upperfreq) in bands.items():
        inband = (freqs >= lowerfreq) & (freqs < upperfreq)
        bandpower = float(np.sum(power[inband]))
        thepowers[f"{thename}_power"] = bandpower
        if totalpower > MINPOWER:
            thepowers[f"{thename}_fraction"] = bandpower / totalpower
        else:
            thepowers[f"{thename}_fraction"] = np.nan
    return thepowers
