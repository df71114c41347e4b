#!/usr/bin/env python
# -*- coding: utf-8 -*-
#
#   Copyright 2018-2025 Blaise Frederick
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
Functions for parsers.
"""
import argparse
import os.path as op
import sys
from argparse import Namespace
from typing import Callable, List, Optional, Union


def is_valid_file(parser: argparse.ArgumentParser, arg: Optional[str]) -> Optional[str]:
    """
    Check if argument is an existing file.

    Parameters
    ----------
    parser : argparse.ArgumentParser
        The argument parser object used to raise errors when file validation fails.
    arg : str, optional
        The file path to validate. If None, no validation is performed.

    Returns
    -------
    str, optional
        The original argument.

    Raises
    ------
    SystemExit
        If the file specified in arg does not exist.
    """
    if arg is not None and not op.isfile(arg):
        parser.error("The file {0} does not exist!".format(arg))

    return arg


def is_float(
    parser: argparse.ArgumentParser,
    arg: Union[str, float],
    minval: Optional[float] = None,
    maxval: Optional[float] = None,
) -> float:
    """
    Check if argument is a float within optional bounds.

    Parameters
    ----------
    parser : argparse.ArgumentParser
        The argument parser object used for error reporting.
    arg : str or float
        The argument to validate.
    minval, maxval : float, optional
        Inclusive bounds on the value.

    Returns
    -------
    float
        The validated value.

    Raises
    ------
    SystemExit
        If the argument is not a float or is out of bounds.

    Examples
    --------
    >>> parser = argparse.ArgumentParser()
    >>> is_float(parser, "3.14")
    3.14

    >>> is_float(parser, "-1", minval=0)
    SystemExit: Value -1.0 is smaller than 0
    """
    try:
        arg = float(arg)
    except ValueError:
        parser.error("Value {0} is not a float".format(arg))
    if minval is not None and arg < minval:
        parser.error("Value {0} is smaller than {1}".format(arg, minval))
    if maxval is not None and arg > maxval:
        parser.error("Value {0} is larger than {1}".format(arg, maxval))

    return arg


def is_int(
    parser: argparse.ArgumentParser,
    arg: Union[str, int],
    minval: Optional[int] = None,
    maxval: Optional[int] = None,
) -> int:
    """
    Check if argument is an int within optional bounds.

    Parameters
    ----------
    parser : argparse.ArgumentParser
        The argument parser object used for error reporting.
    arg : str or int
        The argument to validate.
    minval, maxval : int, optional
        Inclusive bounds on the value.

    Returns
    -------
    int
        The validated value.
    """
    try:
        arg = int(arg)
    except ValueError:
        parser.error("Value {0} is not an int".format(arg))
    if minval is not None and arg < minval:
        parser.error("Value {0} is smaller than {1}".format(arg, minval))
    if maxval is not None and arg > maxval:
        parser.error("Value {0} is larger than {1}".format(arg, maxval))

    return arg


def generic_init(
    theparser: Callable[[], argparse.ArgumentParser],
    themain: Callable[[Namespace], None],
    inputargs: Optional[List[str]] = None,
) -> None:
    """
    Compile arguments either from the command line, or from an argument list.

    Parameters
    ----------
    theparser : Callable[[], argparse.ArgumentParser]
        Returns the configured argument parser.
    themain : Callable[[Namespace], None]
        Takes the parsed arguments and runs the workflow.
    inputargs : List[str], optional
        List of argument strings to parse. If None, arguments are parsed
        from sys.argv. Default is None.

    Notes
    -----
    The raw command line is saved as ``args.commandline``.
    """
    if inputargs is None:
        print("processing command line arguments")
        # write out the command used
        try:
            args = theparser().parse_args()
            argstowrite = sys.argv
        except SystemExit:
            print("Use --help option for detailed information on options.")
            raise
    else:
        print("processing passed argument list:")
        try:
            args = theparser().parse_args(inputargs)
            argstowrite = inputargs
        except SystemExit:
            print("Use --help option for detailed information on options.")
            raise

    # save the raw and formatted command lines
    args.commandline = " ".join(argstowrite)

    themain(args)
