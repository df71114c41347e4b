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
import logging
import os

import hedpulse
import hedpulse.version as hed_version
from hedpulse.tests.utils import create_dir, get_test_temp_path
from hedpulse.workflows.utils import (
    ContextFilter,
    TimingFormatter,
    setup_logger,
    shutdown_loggers,
)


def workflowutils_version(debug=False):
    if debug:
        print("workflowutils_version", hedpulse.__version__)
    assert hedpulse.__version__ == hed_version.__version__
    theparts = hedpulse.__version__.split(".")
    assert len(theparts) == 3
    assert all([x.isdigit() for x in theparts])


def workflowutils_formatting(debug=False):
    if debug:
        print("workflowutils_formatting")
    timingrecord = logging.LogRecord(
        "TIMING", logging.INFO, __file__, 1, "done", ({"message2": 12, "message3": "beats"},), None
    )
    assert not ContextFilter().filter(timingrecord)
    assert TimingFormatter("%(message)s\t%(message2)s\t%(message3)s").format(
        timingrecord
    ) == "done\t12\tbeats"

    plainrecord = logging.LogRecord("GENERAL", logging.INFO, __file__, 1, "start", (), None)
    assert ContextFilter().filter(plainrecord)
    assert TimingFormatter("%(message)s\t%(message2)s").format(plainrecord) == "start\tNone"


def workflowutils_loggers(debug=False):
    if debug:
        print("workflowutils_loggers")
    testtemproot = get_test_temp_path()
    create_dir(testtemproot)
    outputroot = os.path.join(testtemproot, "workflowutils")
    filenames = [
        f"{outputroot}_log.txt",
        f"{outputroot}_runtimings.tsv",
        f"{outputroot}_errors.txt",
    ]
    setup_logger(*filenames, verbose=True)
    try:
        assert logging.getLogger("GENERAL").level == 15
        logging.getLogger("GENERAL").info("general message")
        logging.getLogger("TIMING").info("Fitting done", {"message2": 4, "message3": "beats"})
        logging.getLogger("ERROR").warning("error message")
    finally:
        shutdown_loggers()
    for thelogger in ["GENERAL", "TIMING", "ERROR"]:
        assert len(logging.getLogger(thelogger).handlers) == 0

    with open(filenames[0], "r") as fp:
        thelog = fp.read()
    assert "general message" in thelog
    assert "Fitting done" not in thelog
    with open(filenames[1], "r") as fp:
        thetimings = fp.read().strip().split("\t")
    assert thetimings[1:] == ["Fitting done", "4", "beats"]
    with open(filenames[2], "r") as fp:
        assert "error message" in fp.read()

    # a second run with the same root starts from fresh files
    setup_logger(*filenames, debug=True)
    try:
        assert logging.getLogger("GENERAL").level == logging.DEBUG
    finally:
        shutdown_loggers()
    with open(filenames[0], "r") as fp:
        assert fp.read() == ""


def test_workflowutils(debug=False):
    workflowutils_version(debug=debug)
    workflowutils_formatting(debug=debug)
    workflowutils_loggers(debug=debug)


if __name__ == "__main__":
    test_workflowutils(debug=True)
