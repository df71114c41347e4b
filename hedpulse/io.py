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
import json
import logging
import os

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from hedpulse.errors import ConfigurationError

LGR = logging.getLogger("GENERAL")


def readseries(
    inputfilename: str, samplingrate: float | None = None, colnum: int | None = None
) -> tuple[NDArray, float]:
    """
    Read a PPG series from a text file.

    Parameters
    ----------
    inputfilename : str
        Whitespace, comma or tab separated text file.  With one column, the
        column is the amplitude.  With two or more, the first column is time
        in seconds and the second (or ``colnum``) is the amplitude.  An
        optional header row and ``#`` comments are allowed.
    samplingrate : float, optional
        Sampling rate in Hz.  Required for single column files; overrides
        the time column otherwise.
    colnum : int, optional
        Zero based amplitude column for multicolumn files.

    Returns
    -------
    data : NDArray
        Amplitude samples.
    samplingrate : float
        Sampling rate in Hz.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ConfigurationError
        If the sampling rate cannot be determined.
    ValueError
        If the amplitude column contains non-numeric or non-finite values.
    """
    if not os.path.isfile(inputfilename):
        raise FileNotFoundError(f"input file {inputfilename} does not exist")
    df = pd.read_csv(inputfilename, sep=r"[,\s]+", engine="python", header=None, comment="#")

    # drop a header row if there is one
    if not np.issubdtype(df.dtypes.iloc[0], np.number):
        df = df.iloc[1:].apply(pd.to_numeric, errors="coerce").reset_index(drop=True)
    numcols = df.shape[1]
    if numcols == 1:
        data = df.iloc[:, 0].to_numpy(dtype=np.float64)
        if samplingrate is None:
            raise ConfigurationError(
                f"{inputfilename} has no time column - the sampling rate must be given"
            )
    else:
        if colnum is None:
            colnum = 1
        data = df.iloc[:, colnum].to_numpy(dtype=np.float64)
        if samplingrate is None:
            timestep = np.median(np.diff(df.iloc[:, 0].to_numpy(dtype=np.float64)))
            if not timestep > 0.0:
                raise ConfigurationError(f"time column of {inputfilename} is not increasing")
            samplingrate = 1.0 / timestep
    if not np.all(np.isfinite(data)):
        raise ValueError(f"{inputfilename} contains missing or non-numeric amplitudes")
    LGR.info(f"read {len(data)} samples at {samplingrate} Hz from {inputfilename}")
    return data, float(samplingrate)


def writedicttojson(thedict: dict, thefilename: str) -> None:
    """
    Write key-value pairs to a json file, converting numpy types.

    Parameters
    ----------
    thedict : dict
        Key-value pairs.  Numpy scalars and arrays are converted to python
        types, and non-finite floats are written as null.
    thefilename : str
        Output file name.
    """
    thisdict = {}
    for key in thedict:
        thevalue = thedict[key]
        if isinstance(thevalue, (bool, np.bool_)):
            thisdict[key] = bool(thevalue)
        elif isinstance(thevalue, np.integer):
            thisdict[key] = int(thevalue)
        elif isinstance(thevalue, (float, np.floating)):
            thisdict[key] = float(thevalue) if np.isfinite(thevalue) else None
        elif isinstance(thevalue, np.ndarray):
            thisdict[key] = thevalue.tolist()
        else:
            thisdict[key] = thevalue
    with open(thefilename, "wb") as fp:
        fp.write(
            json.dumps(thisdict, sort_keys=True, indent=4, separators=(",", ":")).encode("utf-8")
        )


def readdictfromjson(inputfilename: str) -> dict:
    if not os.path.isfile(inputfilename):
        raise FileNotFoundError(f"json file {inputfilename} does not exist")
    with open(inputfilename, "r") as json_data:
        return json.load(json_data)


def writetsv(df: pd.DataFrame, outputfilename: str) -> None:
    df.to_csv(outputfilename, sep="\t", index=False, na_rep="n/a", float_format="%.6g")


def writepipelineresults(result, outputroot: str) -> list[str]:
    """
    Write the tables and the run summary of a PipelineResult.

    Parameters
    ----------
    result : PipelineResult
        Output of runpipeline.
    outputroot : str
        Prefix for every output file.

    Returns
    -------
    list of str
        The files written.
    """
    thetables = {
        "ibi": result.ibitable(),
        "fiducials": result.fiducialtable(),
        "rejections": result.rejectiontable(),
        "morphology": result.morphologytable(),
    }
    if len(result.batchresults) > 0:
        thetables["params"] = result.parametertable()
        thetables["fitquality"] = result.fitresulttable()
        thetables["fiducialerror"] = result.fiducialerrortable()
    if len(result.averagewaveform) > 0:
        thetables["averagewaveform"] = pd.DataFrame(
            {
                "time": np.arange(len(result.averagewaveform)) / result.config.samplingrate,
                "amplitude": result.averagewaveform,
            }
        )

    thefiles = []
    for thename, thetable in thetables.items():
        thefilename = f"{outputroot}_desc-{thename}.tsv"
        writetsv(thetable, thefilename)
        thefiles.append(thefilename)
    thefilename = f"{outputroot}_desc-summary.json"
    thesummary = result.summary()
    thesummary.update(
        {f"config_{thekey}": thevalue for thekey, thevalue in result.config.asdict().items()}
    )
    thesummary["config_spectralbands"] = {
        thekey: list(thevalue) for thekey, thevalue in result.config.spectralbands.items()
    }
    writedicttojson(thesummary, thefilename)
    thefiles.append(thefilename)
    LGR.info(f"wrote {len(thefiles)} files with root {outputroot}")
    return thefiles
