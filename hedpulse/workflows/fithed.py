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
import argparse
import logging
import time
import warnings
from typing import Any

import matplotlib.pyplot as plt
import numpy as np

import hedpulse.io as hed_io
import hedpulse.multiproc as hed_multiproc
import hedpulse.workflows.parser_funcs as pf
from hedpulse.batchfit import BatchResult
from hedpulse.config import (
    DEFAULT_BATCHNUMBER,
    DEFAULT_BEATSIN,
    DEFAULT_OUTLIERTHRESH,
    DEFAULT_PKTHRSHD,
    DEFAULT_RATE,
    DEFAULT_REFINEMENTROUNDS,
    DEFAULT_SIMPLEXITERATIONS,
    HEDConfig,
)
from hedpulse.errors import ConfigurationError
from hedpulse.pipeline import PipelineResult, runpipeline
from hedpulse.version import __version__
from hedpulse.workflows.utils import setup_logger, shutdown_loggers

LGR = logging.getLogger("GENERAL")
ErrorLGR = logging.getLogger("ERROR")
TimingLGR = logging.getLogger("TIMING")


def _get_parser() -> Any:
    """
    Argument parser for fithed.
    """
    parser = argparse.ArgumentParser(
        prog="fithed",
        description=(
            "Segment a conditioned PPG recording into beats and fit the hybrid excess "
            "and decay waveform model to batches of them."
        ),
        allow_abbrev=False,
    )

    # Required arguments
    parser.add_argument(
        "infile",
        type=lambda x: pf.is_valid_file(parser, x),
        help="Text file with one (amplitude) or two (time, amplitude) columns.",
    )
    parser.add_argument(
        "outputroot",
        help="The root name of the output files.",
    )

    # Input options
    parser.add_argument(
        "--samplerate",
        dest="samplerate",
        metavar="FREQ",
        action="store",
        type=lambda x: pf.is_float(parser, x, minval=0.0),
        help="Sampling rate of the data in Hz.  Required if the file has no time column.",
        default=None,
    )
    parser.add_argument(
        "--colnum",
        dest="colnum",
        metavar="COL",
        action="store",
        type=lambda x: pf.is_int(parser, x, minval=1),
        help="Zero based column holding the amplitude in a multicolumn file (default is 1).",
        default=None,
    )

    # Segmentation options
    parser.add_argument(
        "--pk_thrshd",
        dest="pk_thrshd",
        metavar="THRESH",
        action="store",
        type=lambda x: pf.is_float(parser, x),
        help=f"Normalized derivative threshold for peak candidates (default is {DEFAULT_PKTHRSHD}).",
        default=DEFAULT_PKTHRSHD,
    )
    parser.add_argument(
        "--rawderivative",
        dest="normalizederivative",
        action="store_false",
        help="Threshold the derivative in data units rather than normalizing it first.",
        default=True,
    )
    parser.add_argument(
        "--outlierthresh",
        dest="outlierthresh",
        metavar="THRESH",
        action="store",
        type=lambda x: pf.is_float(parser, x, minval=0.0),
        help=(
            "Reject beats whose interval or amplitude is more than THRESH robust "
            f"deviations from the median (default is {DEFAULT_OUTLIERTHRESH})."
        ),
        default=DEFAULT_OUTLIERTHRESH,
    )

    # Fitting options
    parser.add_argument(
        "--nohed",
        dest="run_hed",
        action="store_false",
        help="Segment only - do not fit the waveform model.",
        default=True,
    )
    parser.add_argument(
        "--allbeats",
        dest="all_beats",
        action="store_true",
        help="Fit every accepted beat rather than a fixed number of batches.",
        default=False,
    )
    parser.add_argument(
        "--batchnumber",
        dest="batch_number",
        metavar="NUM",
        action="store",
        type=lambda x: pf.is_int(parser, x, minval=1),
        help=f"Number of batches to fit (default is {DEFAULT_BATCHNUMBER}).",
        default=DEFAULT_BATCHNUMBER,
    )
    parser.add_argument(
        "--beatsin",
        dest="beats_in",
        metavar="NUM",
        action="store",
        type=lambda x: pf.is_int(parser, x, minval=1),
        help=f"Beats per batch (default is {DEFAULT_BEATSIN}).",
        default=DEFAULT_BEATSIN,
    )
    parser.add_argument(
        "--rate",
        dest="rate",
        metavar="RATE",
        action="store",
        type=lambda x: pf.is_float(parser, x, minval=0.0, maxval=1.0),
        help=f"Initial reservoir retention per sample, in (0, 1) (default is {DEFAULT_RATE}).",
        default=DEFAULT_RATE,
    )
    parser.add_argument(
        "--simplexiterations",
        dest="simplex_iterations",
        metavar="NUM",
        action="store",
        type=lambda x: pf.is_int(parser, x, minval=1),
        help=f"Iteration budget of the joint fit (default is {DEFAULT_SIMPLEXITERATIONS}).",
        default=DEFAULT_SIMPLEXITERATIONS,
    )
    parser.add_argument(
        "--refinementrounds",
        dest="refinementrounds",
        metavar="NUM",
        action="store",
        type=lambda x: pf.is_int(parser, x, minval=1),
        help=f"Number of refinement rounds per batch (default is {DEFAULT_REFINEMENTROUNDS}).",
        default=DEFAULT_REFINEMENTROUNDS,
    )
    parser.add_argument(
        "--batchdeadline",
        dest="batchdeadline",
        metavar="SECONDS",
        action="store",
        type=lambda x: pf.is_float(parser, x, minval=0.0),
        help="Stop refining a batch after SECONDS and keep the best parameters so far.",
        default=None,
    )
    parser.add_argument(
        "--nprocs",
        dest="nprocs",
        action="store",
        type=int,
        metavar="NPROCS",
        help=(
            "Use NPROCS worker processes for batch fitting. "
            "Setting NPROCS to less than 1 sets the number of "
            "worker processes to n_cpus - 1."
        ),
        default=1,
    )

    # Miscellaneous options
    parser.add_argument(
        "--noprogressbar",
        dest="showprogressbar",
        action="store_false",
        help="Will disable showing progress bars (helpful if stdout is going to a file).",
        default=True,
    )
    parser.add_argument(
        "--display",
        dest="display",
        action="store_true",
        help="Graph each fitted batch as it completes.",
        default=False,
    )
    parser.add_argument(
        "--verbose",
        dest="verbose",
        action="store_true",
        help="Print additional internal information.",
        default=False,
    )
    parser.add_argument(
        "--debug",
        dest="debug",
        action="store_true",
        help="Print debugging information.",
        default=False,
    )
    return parser


def displaybatch(thebatch: BatchResult, samplingrate: float) -> None:
    """Plot the measured and rebuilt waveforms of one batch."""
    fig, axes = plt.subplots(1, len(thebatch.fits), figsize=(5 * len(thebatch.fits), 4))
    axes = np.atleast_1d(axes)
    for theax, thefit in zip(axes, thebatch.fits):
        timeaxis = np.arange(len(thefit.rebuilt)) / samplingrate
        theax.plot(timeaxis, thefit.rebuilt + thefit.residue, "k", label="measured")
        theax.plot(timeaxis, thefit.rebuilt, "r", label="rebuilt")
        theax.plot(timeaxis, thefit.excess, "b--", label="excess")
        theax.plot(timeaxis, thefit.decay, "g--", label="decay")
        theax.set_title(f"beat {thefit.number}")
        theax.set_xlabel("Time (s)")
    axes[0].legend()
    fig.suptitle(f"Batch {thebatch.index}")
    plt.tight_layout()
    plt.show()


def fithed(args: Any) -> PipelineResult:
    """
    Run segmentation and HED fitting on a file and write the results.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line options.

    Returns
    -------
    PipelineResult
    """
    starttime = time.monotonic()
    setup_logger(
        logger_filename=f"{args.outputroot}_log.txt",
        timing_filename=f"{args.outputroot}_runtimings.tsv",
        error_filename=f"{args.outputroot}_errors.txt",
        verbose=args.verbose,
        debug=args.debug,
    )
    TimingLGR.info("Start")
    LGR.info(f"starting fithed {__version__}")
    if hasattr(args, "commandline"):
        LGR.info(f"command line: {args.commandline}")

    try:
        data, samplingrate = hed_io.readseries(
            args.infile, samplingrate=args.samplerate, colnum=args.colnum
        )
        if args.nprocs < 1:
            args.nprocs = hed_multiproc.maxcpus()
        config = HEDConfig(
            samplingrate=samplingrate,
            pk_thrshd=args.pk_thrshd,
            normalizederivative=args.normalizederivative,
            outlierthresh=args.outlierthresh,
            run_hed=args.run_hed,
            all_beats=args.all_beats,
            batch_number=args.batch_number,
            beats_in=args.beats_in,
            rate=args.rate,
            simplex_iterations=args.simplex_iterations,
            refinementrounds=args.refinementrounds,
            batchdeadline=args.batchdeadline,
            nprocs=args.nprocs,
            showprogressbar=args.showprogressbar,
        ).validate()

        if args.display:

            def observer(thebatch):
                displaybatch(thebatch, config.samplingrate)

        else:
            observer = None

        with warnings.catch_warnings(record=True) as caughtwarnings:
            warnings.simplefilter("always")
            theresult = runpipeline(data, config, observer=observer, debug=args.debug)
        for thewarning in caughtwarnings:
            ErrorLGR.warning(f"{thewarning.category.__name__}: {thewarning.message}")

        TimingLGR.info("Writing output")
        hed_io.writepipelineresults(theresult, args.outputroot)
    except (ConfigurationError, ValueError, FileNotFoundError) as e:
        ErrorLGR.error(f"fithed failed: {e}")
        shutdown_loggers()
        raise

    LGR.info(
        f"{theresult.numbeats} beats accepted, {theresult.numfitted} fitted, "
        f"total time {time.monotonic() - starttime:.2f} s"
    )
    TimingLGR.info("Done")
    shutdown_loggers()
    return theresult
