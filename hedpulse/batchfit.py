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
Batched, multi-pass Nelder-Mead fitting of a waveform model to accepted beats.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Callable

import numpy as np
from numpy.typing import NDArray
from tqdm import tqdm

import hedpulse.multiproc as hed_multiproc
from hedpulse.config import HEDConfig
from hedpulse.errors import ConfigurationError
from hedpulse.segment import Beat
from hedpulse.simplex import CancellationToken, simplexminimize
from hedpulse.waveformmodel import HEDModel, WaveformModel

LGR = logging.getLogger("GENERAL")
TimingLGR = logging.getLogger("TIMING")


def partitionbeats(
    numbeats: int, beats_in: int, all_beats: bool = False, batch_number: int = 6
) -> list[list[int]]:
    """
    Split accepted beats into consecutive batches.

    Parameters
    ----------
    numbeats : int
        Number of accepted beats.
    beats_in : int
        Beats per batch.
    all_beats : bool, optional
        If True, cover every beat: full batches followed by one partial batch
        holding the remainder.  If False, take the first ``batch_number`` full
        batches.  Default is False.
    batch_number : int, optional
        Number of batches in fixed mode.  Default is 6.

    Returns
    -------
    list of list of int
        Beat indices (into the accepted beat list) of each batch, in order.

    Raises
    ------
    ConfigurationError
        If ``beats_in`` is less than 1, or there are beats but fewer than ``beats_in``.
    """
    if beats_in < 1:
        raise ConfigurationError(f"beats_in must be at least 1, got {beats_in}")
    if numbeats == 0:
        return []
    if numbeats < beats_in:
        raise ConfigurationError(
            f"{numbeats} accepted beats is fewer than beats_in ({beats_in})"
        )
    numfull = numbeats // beats_in
    if all_beats:
        batches = [list(range(i * beats_in, (i + 1) * beats_in)) for i in range(numfull)]
        if numbeats % beats_in != 0:
            batches.append(list(range(numfull * beats_in, numbeats)))
        return batches
    if numfull < batch_number:
        LGR.warning(
            f"only {numfull} batches of {beats_in} beats available, {batch_number} requested"
        )
    return [
        list(range(i * beats_in, (i + 1) * beats_in)) for i in range(min(numfull, batch_number))
    ]


@dataclass(frozen=True)
class BeatFit:
    """Fitted model of one beat.  Arrays are on the beat's window sample grid."""

    number: int
    params: NDArray
    excess: NDArray
    decay: NDArray
    rebuilt: NDArray
    residue: NDArray
    converged: bool


@dataclass
class BatchResult:
    """
    Outcome of fitting one batch.

    Attributes
    ----------
    index : int
        Batch ordinal.
    beatnumbers : list of int
        Candidate numbers of the member beats, in time order.
    fits : list of BeatFit
        One per member beat.
    sharedparams : NDArray
        Final values of the parameters shared across the batch.
    chisqhistory : list of float
        Summed Chi-square after seeding and after each completed round.
    stopped : bool
        True if a deadline or cancellation cut the fit short.
    elapsed : float
        Wall clock seconds spent on the batch.
    """

    index: int
    beatnumbers: list[int]
    fits: list[BeatFit]
    sharedparams: NDArray
    chisqhistory: list[float] = field(default_factory=list)
    stopped: bool = False
    elapsed: float = 0.0

    @property
    def totalchisq(self) -> float:
        return float(self.chisqhistory[-1]) if len(self.chisqhistory) > 0 else np.inf


class BatchOptimizer:
    """
    Fit a WaveformModel to batches of beats with partially shared parameters.

    Each batch is seeded from its own beats, then refined for
    ``config.refinementrounds`` rounds of four passes: per-beat shape
    parameters, shared parameters, everything jointly, and finally the
    per-beat baseline offset.  All searches run in the model's free
    parameterization.

    Parameters
    ----------
    config : HEDConfig
    model : WaveformModel, optional
        Defaults to HEDModel.
    observer : callable, optional
        Called with each BatchResult, in batch order, in the calling process.
    token : CancellationToken, optional
        Stops all remaining work when cancelled.
    """

    def __init__(
        self,
        config: HEDConfig,
        model: WaveformModel | None = None,
        observer: Callable[[BatchResult], None] | None = None,
        token: CancellationToken | None = None,
        debug: bool = False,
    ) -> None:
        self.config = config
        if model is None:
            model = HEDModel()
        self.model = model
        self.observer = observer
        self.token = token
        self.debug = debug
        self.across = np.asarray(model.ACROSS, dtype=int)
        self.within = np.asarray(model.WITHIN, dtype=int)
        self.baseline = np.asarray(model.BASELINE, dtype=int)

    def seedbatch(self, beats: list[Beat]) -> list[NDArray]:
        """Initial parameter vectors, with the shared entries set to the batch medians."""
        seeds = [
            self.model.initialparams(
                thebeat.values, thebeat.localfiducials, self.config.samplingrate, self.config.rate
            )
            for thebeat in beats
        ]
        shared = np.median(np.vstack(seeds)[:, self.across], axis=0)
        for theseed in seeds:
            theseed[self.across] = shared
        return seeds

    # cost functions, all in the free parameterization
    def _subsetcost(self, subset, freeparams, indices, values):
        trial = freeparams.copy()
        trial[indices] = subset
        return self.model.chisquare(self.model.fromfree(trial), values)

    def _acrosscost(self, subset, freelist, valueslist):
        thechisq = 0.0
        for thefree, thevalues in zip(freelist, valueslist):
            thechisq += self._subsetcost(subset, thefree, self.across, thevalues)
        return thechisq

    def _jointcost(self, subset, freelist, valueslist):
        numacross = len(self.across)
        numwithin = len(self.within)
        thechisq = 0.0
        for i, (thefree, thevalues) in enumerate(zip(freelist, valueslist)):
            trial = thefree.copy()
            trial[self.across] = subset[:numacross]
            trial[self.within] = subset[numacross + i * numwithin : numacross + (i + 1) * numwithin]
            thechisq += self.model.chisquare(self.model.fromfree(trial), thevalues)
        return thechisq

    def _totalchisq(self, freelist, valueslist) -> float:
        return float(
            np.sum(
                [
                    self.model.chisquare(self.model.fromfree(thefree), thevalues)
                    for thefree, thevalues in zip(freelist, valueslist)
                ]
            )
        )

    def fitbatch(self, batchindex: int, beats: list[Beat]) -> BatchResult:
        """
        Fit one batch.

        Parameters
        ----------
        batchindex : int
            Ordinal of the batch, carried into the result.
        beats : list of Beat
            Consecutive accepted beats.

        Returns
        -------
        BatchResult
            Always returned, with the best parameters found, even if the fit
            was stopped early.
        """
        starttime = time.monotonic()
        if self.config.batchdeadline is not None:
            deadline = starttime + self.config.batchdeadline
        else:
            deadline = None
        simplexargs = {
            "xatol": self.config.xatol,
            "fatol": self.config.fatol,
            "deadline": deadline,
            "token": self.token,
        }
        valueslist = [thebeat.values for thebeat in beats]
        freelist = [self.model.tofree(theseed) for theseed in self.seedbatch(beats)]
        numbeats = len(beats)
        chisqhistory = [self._totalchisq(freelist, valueslist)]
        jointconverged = [False] * numbeats
        baselineconverged = [False] * numbeats
        stopped = False

        for theround in range(self.config.refinementrounds):
            # pass 1: per-beat shape parameters
            for i in range(numbeats):
                result = simplexminimize(
                    self._subsetcost,
                    freelist[i][self.within],
                    args=(freelist[i], self.within, valueslist[i]),
                    maxiter=self.config.withiniterations,
                    **simplexargs,
                )
                freelist[i][self.within] = result.x
                if result.stopped:
                    stopped = True
                    break
            if stopped:
                break

            # pass 2: shared parameters on the summed Chi-square
            result = simplexminimize(
                self._acrosscost,
                freelist[0][self.across],
                args=(freelist, valueslist),
                maxiter=self.config.acrossiterations,
                **simplexargs,
            )
            for thefree in freelist:
                thefree[self.across] = result.x
            if result.stopped:
                stopped = True
                break

            # pass 3: everything but the baselines, jointly
            jointstart = np.concatenate(
                [freelist[0][self.across]] + [thefree[self.within] for thefree in freelist]
            )
            result = simplexminimize(
                self._jointcost,
                jointstart,
                args=(freelist, valueslist),
                maxiter=self.config.simplex_iterations,
                **simplexargs,
            )
            numacross = len(self.across)
            numwithin = len(self.within)
            for i, thefree in enumerate(freelist):
                thefree[self.across] = result.x[:numacross]
                thefree[self.within] = result.x[
                    numacross + i * numwithin : numacross + (i + 1) * numwithin
                ]
            jointconverged = [result.converged] * numbeats
            if result.stopped:
                stopped = True
                break

            # pass 4: per-beat baseline offset
            for i in range(numbeats):
                result = simplexminimize(
                    self._subsetcost,
                    freelist[i][self.baseline],
                    args=(freelist[i], self.baseline, valueslist[i]),
                    maxiter=self.config.baselineiterations,
                    **simplexargs,
                )
                freelist[i][self.baseline] = result.x
                baselineconverged[i] = result.converged
                if result.stopped:
                    stopped = True
                    break
            if stopped:
                break
            chisqhistory.append(self._totalchisq(freelist, valueslist))
            if self.debug:
                print(f"batch {batchindex}, round {theround + 1}: chisq {chisqhistory[-1]}")

        if stopped:
            chisqhistory.append(self._totalchisq(freelist, valueslist))
            LGR.info(f"batch {batchindex} stopped early, best parameters kept")

        fits = []
        for i, thebeat in enumerate(beats):
            params = self.model.fromfree(freelist[i])
            numpoints = len(valueslist[i])
            rebuilt = self.model.rebuild(params, numpoints)
            converged = jointconverged[i] and baselineconverged[i] and not stopped
            if not converged:
                LGR.debug(f"beat {thebeat.number} fit did not converge")
            fits.append(
                BeatFit(
                    number=thebeat.number,
                    params=params,
                    excess=self.model.excess(params, numpoints),
                    decay=self.model.decay(params, numpoints),
                    rebuilt=rebuilt,
                    residue=valueslist[i] - rebuilt,
                    converged=converged,
                )
            )
        elapsed = time.monotonic() - starttime
        TimingLGR.info(f"batch {batchindex} fitted in {elapsed:.2f} s")
        return BatchResult(
            index=batchindex,
            beatnumbers=[thebeat.number for thebeat in beats],
            fits=fits,
            sharedparams=fits[0].params[self.across].copy(),
            chisqhistory=chisqhistory,
            stopped=stopped,
            elapsed=elapsed,
        )

    def fit(self, beats: list[Beat]) -> list[BatchResult]:
        """
        Partition the accepted beats and fit every batch.

        Batches run in ``config.nprocs`` worker processes when that is more
        than one.  Results come back in batch order, and the observer sees
        them in that order.
        """
        batches = partitionbeats(
            len(beats),
            self.config.beats_in,
            all_beats=self.config.all_beats,
            batch_number=self.config.batch_number,
        )
        if len(batches) == 0:
            return []
        LGR.info(f"fitting {len(batches)} batches of up to {self.config.beats_in} beats")

        def fitone(batchindex):
            return self.fitbatch(batchindex, [beats[i] for i in batches[batchindex]])

        if self.config.nprocs > 1:
            results = hed_multiproc.run_itemwise(
                fitone,
                list(range(len(batches))),
                nprocs=self.config.nprocs,
                showprogressbar=self.config.showprogressbar,
                debug=self.debug,
            )
            results = sorted(results, key=lambda x: x.index)
            if self.observer is not None:
                for theresult in results:
                    self.observer(theresult)
        else:
            results = []
            for batchindex in tqdm(
                range(len(batches)),
                desc="Batch",
                unit="batches",
                disable=(not self.config.showprogressbar),
            ):
                results.append(fitone(batchindex))
                if self.observer is not None:
                    self.observer(results[-1])
        return results
