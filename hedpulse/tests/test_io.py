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
import os

import numpy as np
import pandas as pd
import pytest

from hedpulse.errors import ConfigurationError
from hedpulse.io import readdictfromjson, readseries, writedicttojson, writepipelineresults
from hedpulse.pipeline import runpipeline
from hedpulse.tests.utils import create_dir, fastconfig, get_test_temp_path, syntheticseries


def _writecolumns(thefilename, columns, header=None, sep=","):
    with open(thefilename, "w") as fp:
        fp.write("# synthetic test data\n")
        if header is not None:
            fp.write(sep.join(header) + "\n")
        for therow in zip(*columns):
            fp.write(sep.join([f"{x:.8f}" for x in therow]) + "\n")


def io_readseries(debug=False):
    if debug:
        print("io_readseries")
    testtemproot = get_test_temp_path()
    create_dir(testtemproot)
    fs = 75.0
    ppg, onsets, systolic = syntheticseries(duration=10.0, fs=fs)
    t = np.arange(len(ppg)) / fs

    twocol = os.path.join(testtemproot, "io_twocol.csv")
    _writecolumns(twocol, [t, ppg], header=["time", "ppg"])
    data, samplingrate = readseries(twocol)
    if debug:
        print(samplingrate, len(data))
    assert np.fabs(samplingrate - fs) < 1e-3
    assert np.allclose(data, ppg, atol=1e-7)

    # an explicit rate overrides the time column
    data, samplingrate = readseries(twocol, samplingrate=100.0)
    assert samplingrate == 100.0

    # choose the amplitude column
    threecol = os.path.join(testtemproot, "io_threecol.txt")
    _writecolumns(threecol, [t, ppg, 2.0 * ppg], sep="\t")
    data, samplingrate = readseries(threecol, colnum=2)
    assert np.allclose(data, 2.0 * ppg, atol=1e-7)

    onecol = os.path.join(testtemproot, "io_onecol.txt")
    _writecolumns(onecol, [ppg])
    data, samplingrate = readseries(onecol, samplingrate=fs)
    assert len(data) == len(ppg)
    with pytest.raises(ConfigurationError):
        readseries(onecol)

    with pytest.raises(FileNotFoundError):
        readseries(os.path.join(testtemproot, "io_doesnotexist.txt"))

    badfile = os.path.join(testtemproot, "io_bad.txt")
    with open(badfile, "w") as fp:
        fp.write("1.0\n2.0\nbad\n4.0\n")
    with pytest.raises(ValueError):
        readseries(badfile, samplingrate=fs)


def io_json(debug=False):
    if debug:
        print("io_json")
    testtemproot = get_test_temp_path()
    create_dir(testtemproot)
    thefilename = os.path.join(testtemproot, "io_dict.json")
    writedicttojson(
        {
            "anint": np.int64(3),
            "afloat": np.float64(0.5),
            "anan": np.nan,
            "aflag": np.bool_(True),
            "anarray": np.asarray([1.0, 2.0]),
            "astring": "hello",
        },
        thefilename,
    )
    thedict = readdictfromjson(thefilename)
    assert thedict == {
        "anint": 3,
        "afloat": 0.5,
        "anan": None,
        "aflag": True,
        "anarray": [1.0, 2.0],
        "astring": "hello",
    }


def io_pipelineresults(debug=False):
    if debug:
        print("io_pipelineresults")
    testtemproot = get_test_temp_path()
    create_dir(testtemproot)
    ppg, onsets, systolic = syntheticseries(duration=15.0)
    theresult = runpipeline(ppg, config=fastconfig(beats_in=2, batch_number=1))
    outputroot = os.path.join(testtemproot, "io_pipeline")
    thefiles = writepipelineresults(theresult, outputroot)
    if debug:
        print(thefiles)
    for thename in [
        "ibi",
        "fiducials",
        "rejections",
        "morphology",
        "params",
        "fitquality",
        "fiducialerror",
        "averagewaveform",
    ]:
        thefilename = f"{outputroot}_desc-{thename}.tsv"
        assert thefilename in thefiles
        assert os.path.isfile(thefilename)
    paramtable = pd.read_csv(f"{outputroot}_desc-params.tsv", sep="\t")
    assert len(paramtable) == 2
    assert "rate" in paramtable.columns
    ibitable = pd.read_csv(f"{outputroot}_desc-ibi.tsv", sep="\t")
    assert len(ibitable) == len(theresult.ibi)

    thesummary = readdictfromjson(f"{outputroot}_desc-summary.json")
    assert thesummary["numbeats"] == theresult.numbeats
    assert thesummary["numfitted"] == 2
    assert thesummary["config_beats_in"] == 2
    assert thesummary["config_batchdeadline"] is None


def test_io(debug=False):
    io_readseries(debug=debug)
    io_json(debug=debug)
    io_pipelineresults(debug=debug)


if __name__ == "__main__":
    test_io(debug=True)
