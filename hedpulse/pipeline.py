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
Single entry point running segmentation, fitting, evaluation and feature extraction.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike, NDArray

import hedpulse.features as hed_features
from hedpulse.batchfit import BatchOptimizer, BatchResult
from hedpulse.config import HEDConfig
from hedpulse.evaluate import FiducialError, FitResult, ModelEvaluator
from hedpulse.fiducials import FiducialSet
from hedpulse.segment import BeatSegmenter, Rejection, RejectionReason, SegmentationResult
from hedpulse.simplex import CancellationToken
from hedpulse.spline import MINPOINTS, SplineAnalyzer
from hedpulse.waveformmodel import HEDModel, WaveformModel

LGR = logging.getLogger("GENERAL")
TimingLGR = logging.getLogger("TIMING")


@dataclass
class PipelineResult:
    """
    Everything a run produces.

    The segmentation, the batch fits and the evaluation are kept as
    returned by their components; the ``*table`` methods flatten them into
    DataFrames keyed by beat (candidate) number.
    """

    config: HEDConfig
    segmentation: SegmentationResult
    paramnames: tuple[str, ...] = ()
    batchresults: list[BatchResult] = field(default_factory=list)
    fitresults: list[FitResult] = field(default_factory=list)
    fiducialerrors: list[FiducialError] = field(default_factory=list)
    morphology: pd.DataFrame = field(default_factory=pd.DataFrame)
    averagemorphology: dict[str, float] = field(default_factory=dict)
    intervalsummary: dict[str, float] = field(default_factory=dict)
    spectral: dict[str, float] = field(default_factory=dict)

    @property
    def numbeats(self) -> int:
        return self.segmentation.numbeats

    @property
    def ibi(self) -> NDArray:
        return self.segmentation.ibi

    @property
    def rejections(self) -> dict[RejectionReason, list[Rejection]]:
        return self.segmentation.rejections

    @property
    def windows(self) -> list[NDArray]:
        return [thebeat.window for thebeat in self.segmentation.beats]

    @property
    def splines(self) -> list[SplineAnalyzer | None]:
        return [thebeat.spline for thebeat in self.segmentation.beats]

    @property
    def fiducials(self) -> list[FiducialSet]:
        return [thebeat.fiducials for thebeat in self.segmentation.beats]

    @property
    def averagewaveform(self) -> NDArray:
        return self.segmentation.averagewaveform

    @property
    def averagefiducials(self) -> FiducialSet | None:
        return self.segmentation.averagefiducials

    @property
    def numfitted(self) -> int:
        return len(self.fitresults)

    def ibitable(self) -> pd.DataFrame:
        return pd.DataFrame({"ibi": self.ibi})

    def fiducialtable(self) -> pd.DataFrame:
        return self.segmentation.fiducialtable()

    def rejectiontable(self) -> pd.DataFrame:
        return self.segmentation.rejectiontable()

    def parametertable(self) -> pd.DataFrame:
        rows = []
        for thebatch in self.batchresults:
            for thefit in thebatch.fits:
                therow = {"beat": thefit.number, "batch": thebatch.index}
                therow.update(dict(zip(self.paramnames, thefit.params)))
                rows.append(therow)
        return pd.DataFrame(rows, columns=["beat", "batch"] + list(self.paramnames))

    def fitresulttable(self) -> pd.DataFrame:
        return pd.DataFrame(
            [vars(theresult) for theresult in self.fitresults],
            columns=["number", "chisquare", "maxerror", "nrmse", "ampnrmse", "converged"],
        ).rename(columns={"number": "beat"})

    def fiducialerrortable(self) -> pd.DataFrame:
        return pd.DataFrame([theerror.asdict() for theerror in self.fiducialerrors])

    def morphologytable(self) -> pd.DataFrame:
        return self.morphology

    def summary(self) -> dict[str, Any]:
        """Scalar description of the run, suitable for a JSON sidecar."""
        thesummary = {
            "numcandidates": self.segmentation.numcandidates,
            "numbeats": self.numbeats,
            "numfitted": self.numfitted,
            "numbatches": len(self.batchresults),
            "windowlength": self.segmentation.windowlength,
            "samplingrate": self.config.samplingrate,
        }
        for thereason, thelist in self.rejections.items():
            thesummary[f"rejected_{thereason}"] = len(thelist)
        if self.numfitted > 0:
            thesummary["median_nrmse"] = float(np.median([x.nrmse for x in self.fitresults]))
            thesummary["converged_fraction"] = float(
                np.mean([x.converged for x in self.fitresults])
            )
        thesummary["batches_stopped"] = int(np.sum([x.stopped for x in self.batchresults]))
        thesummary.update(self.intervalsummary)
        thesummary.update(self.spectral)
        for thekey, thevalue in self.averagemorphology.items():
            thesummary[f"average_{thekey}"] = thevalue
        return thesummary


def runpipeline(
    data: ArrayLike,
    config: HEDConfig | None = None,
    model: WaveformModel | None = None,
    observer: Callable[[BatchResult], None] | None = None,
    token: CancellationToken | None = None,
    debug: bool = False,
) -> PipelineResult:
    """
    Segment a conditioned PPG series and fit the waveform model to its beats.

    Parameters
    ----------
    data : array_like
        One dimensional, finite, conditioned PPG samples at ``config.samplingrate``.
    config : HEDConfig, optional
        Options.  Defaults are used if not given.
    model : WaveformModel, optional
        Model to fit.  Defaults to HEDModel.
    observer : callable, optional
        Called with every BatchResult, in batch order, as batches complete.
    token : CancellationToken, optional
        Cancels outstanding fitting work.
    debug : bool, optional
        Print internal state.  Default is False.

    Returns
    -------
    PipelineResult

    Raises
    ------
    ConfigurationError
        If the options are invalid, or there are accepted beats but fewer
        than ``config.beats_in``.
    ValueError
        If the data is not a one dimensional array of finite values, or is too
        short to fit a spline to.
    """
    if config is None:
        config = HEDConfig()
    config.validate()
    if model is None:
        model = HEDModel()
    data = np.asarray(data, dtype=np.float64)
    if data.ndim != 1:
        raise ValueError("input data must be one dimensional")
    if not np.all(np.isfinite(data)):
        raise ValueError("input data contains non-finite values")
    if len(data) < MINPOINTS:
        raise ValueError(
            f"input data has {len(data)} samples, at least {MINPOINTS} are needed to segment it"
        )

    starttime = time.monotonic()
    TimingLGR.info("Segmentation start")
    segmenter = BeatSegmenter(config, debug=debug)
    segmentation = segmenter.segment(data)
    TimingLGR.info(
        "Segmentation done",
        {
            "message2": segmentation.numbeats,
            "message3": "beats",
        },
    )
    theresult = PipelineResult(
        config=config, segmentation=segmentation, paramnames=tuple(model.PARAMNAMES)
    )

    if config.run_hed and segmentation.numbeats > 0:
        TimingLGR.info("Model fitting start")
        optimizer = BatchOptimizer(config, model=model, observer=observer, token=token, debug=debug)
        theresult.batchresults = optimizer.fit(segmentation.beats)
        evaluator = ModelEvaluator(config.samplingrate, locator=segmenter.locator, debug=debug)
        theresult.fitresults, theresult.fiducialerrors = evaluator.evaluateall(
            segmentation.beats, theresult.batchresults
        )
        TimingLGR.info(
            "Model fitting done",
            {
                "message2": len(theresult.fitresults),
                "message3": "beats",
            },
        )
    elif not config.run_hed:
        LGR.info("model fitting disabled")

    theresult.morphology = hed_features.morphologytable(segmentation.beats, config.samplingrate)
    if segmentation.averagefiducials is not None:
        theresult.averagemorphology = hed_features.morphologyfeatures(
            segmentation.averagefiducials,
            config.samplingrate,
            window=segmentation.averagewaveform,
        )
    theresult.intervalsummary = hed_features.intervalfeatures(segmentation.ibi)
    theresult.spectral = hed_features.bandpowers(
        segmentation.corrected, config.samplingrate, bands=config.spectralbands
    )
    LGR.info(f"pipeline finished in {time.monotonic() - starttime:.2f} s")
    return theresult
