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
from dataclasses import asdict, dataclass, field
from typing import Any

from hedpulse.errors import ConfigurationError

# ---------------------------------------- Global constants -------------------------------------------
DEFAULT_SAMPLINGRATE = 75.0
DEFAULT_PKTHRSHD = 0.8
DEFAULT_SIMPLEXITERATIONS = 20000
DEFAULT_BATCHNUMBER = 6
DEFAULT_BEATSIN = 2
DEFAULT_RATE = 0.99
DEFAULT_REFINEMENTROUNDS = 4
DEFAULT_WITHINITERATIONS = 1000
DEFAULT_ACROSSITERATIONS = 1000
DEFAULT_BASELINEITERATIONS = 200
DEFAULT_XATOL = 1.0e-6
DEFAULT_FATOL = 1.0e-9
DEFAULT_DERIVPERCENTILE = 99.0
DEFAULT_BOUNDARYFRACTION = 0.5

# diastolic search: window shrink factor, total number of searches, minimum N-D
# separation in samples, and the longest search in units of the sampling rate
DEFAULT_DIASHRINK = 0.95
DEFAULT_DIAMAXATTEMPTS = 2
DEFAULT_NDMINSEPARATION = 1.5
DEFAULT_DIAMAXSEARCH = 5.0

DEFAULT_WINDOWMARGIN = 0.1
DEFAULT_OUTLIERTHRESH = 4.0
DEFAULT_OUTLIERFLOOR = 0.05

# band edges in Hz for the spectral band power summary
DEFAULT_SPECTRALBANDS = {
    "vlf": (0.0, 0.15),
    "resp": (0.15, 0.5),
    "cardiac": (0.5, 3.0),
    "harmonic": (3.0, 8.0),
}


@dataclass
class HEDConfig:
    """
    Options for segmentation and HED fitting.

    Parameters
    ----------
    samplingrate : float
        Sampling rate of the conditioned series in Hz.
    pk_thrshd : float
        First derivative threshold for peak candidates.  Dimensionless when
        ``normalizederivative`` is True.
    run_hed : bool
        If False, stop after segmentation.
    simplex_iterations : int
        Iteration budget of the joint simplex pass.
    all_beats : bool
        Fit every accepted beat rather than ``batch_number`` batches.
    batch_number : int
        Number of batches to fit when ``all_beats`` is False.
    beats_in : int
        Number of consecutive beats sharing the across parameters.
    rate : float
        Prior for the decay rate.  Lower values suit non-canonical waveforms.
    refinementrounds : int
        Number of times the within, across, joint and baseline passes are repeated.
    batchdeadline : float or None
        Wall clock limit per batch in seconds.
    nprocs : int
        Number of worker processes for batch fitting.
    """

    samplingrate: float = DEFAULT_SAMPLINGRATE
    pk_thrshd: float = DEFAULT_PKTHRSHD
    run_hed: bool = True
    simplex_iterations: int = DEFAULT_SIMPLEXITERATIONS
    all_beats: bool = False
    batch_number: int = DEFAULT_BATCHNUMBER
    beats_in: int = DEFAULT_BEATSIN
    rate: float = DEFAULT_RATE
    refinementrounds: int = DEFAULT_REFINEMENTROUNDS
    withiniterations: int = DEFAULT_WITHINITERATIONS
    acrossiterations: int = DEFAULT_ACROSSITERATIONS
    baselineiterations: int = DEFAULT_BASELINEITERATIONS
    xatol: float = DEFAULT_XATOL
    fatol: float = DEFAULT_FATOL
    normalizederivative: bool = True
    derivpercentile: float = DEFAULT_DERIVPERCENTILE
    boundaryfraction: float = DEFAULT_BOUNDARYFRACTION
    diashrink: float = DEFAULT_DIASHRINK
    diamaxattempts: int = DEFAULT_DIAMAXATTEMPTS
    ndminseparation: float = DEFAULT_NDMINSEPARATION
    diamaxsearch: float = DEFAULT_DIAMAXSEARCH
    windowmargin: float = DEFAULT_WINDOWMARGIN
    outlierthresh: float = DEFAULT_OUTLIERTHRESH
    outlierfloor: float = DEFAULT_OUTLIERFLOOR
    batchdeadline: float | None = None
    nprocs: int = 1
    showprogressbar: bool = False
    spectralbands: dict = field(default_factory=lambda: dict(DEFAULT_SPECTRALBANDS))

    def validate(self) -> "HEDConfig":
        """
        Check the option values, raising ConfigurationError on the first bad one.

        Returns
        -------
        HEDConfig
            self, so the call can be chained.
        """
        if not self.samplingrate > 0.0:
            raise ConfigurationError(f"samplingrate must be positive, got {self.samplingrate}")
        if self.beats_in < 1:
            raise ConfigurationError(f"beats_in must be at least 1, got {self.beats_in}")
        if not self.all_beats and self.batch_number < 1:
            raise ConfigurationError(
                f"batch_number must be at least 1 when all_beats is False, got {self.batch_number}"
            )
        if not 0.0 < self.rate < 1.0:
            raise ConfigurationError(f"rate must lie in (0, 1), got {self.rate}")
        for thename in [
            "simplex_iterations",
            "withiniterations",
            "acrossiterations",
            "baselineiterations",
            "refinementrounds",
            "diamaxattempts",
            "nprocs",
        ]:
            if getattr(self, thename) < 1:
                raise ConfigurationError(f"{thename} must be at least 1")
        if not 0.0 < self.diashrink < 1.0:
            raise ConfigurationError(f"diashrink must lie in (0, 1), got {self.diashrink}")
        if not 0.0 < self.boundaryfraction < 1.0:
            raise ConfigurationError(
                f"boundaryfraction must lie in (0, 1), got {self.boundaryfraction}"
            )
        if not 0.0 < self.derivpercentile <= 100.0:
            raise ConfigurationError("derivpercentile must lie in (0, 100]")
        if self.windowmargin < 0.0 or self.ndminseparation < 0.0:
            raise ConfigurationError("windowmargin and ndminseparation must not be negative")
        if self.outlierthresh <= 0.0 or self.outlierfloor < 0.0:
            raise ConfigurationError("outlierthresh must be positive and outlierfloor non-negative")
        if self.batchdeadline is not None and self.batchdeadline <= 0.0:
            raise ConfigurationError("batchdeadline must be positive when set")
        for thename, (lowfreq, highfreq) in self.spectralbands.items():
            if not 0.0 <= lowfreq < highfreq:
                raise ConfigurationError(f"spectral band {thename} has bad edges")
        return self

    def asdict(self) -> dict[str, Any]:
        return asdict(self)
