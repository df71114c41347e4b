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
import multiprocessing as mp
from platform import system
from typing import Any, Callable

from tqdm import tqdm


def maxcpus(reservecpu: bool = True) -> int:
    """Return the number of CPUs available for worker processes.

    Parameters
    ----------
    reservecpu : bool, default=True
        If True, leave one CPU free.

    Returns
    -------
    int
        ``cpu_count() - 1`` if `reservecpu`, otherwise ``cpu_count()``.
    """
    if reservecpu:
        return max(mp.cpu_count() - 1, 1)
    else:
        return mp.cpu_count()


def _process_data(
    data_in: list[Any],
    inQ: Any,
    outQ: Any,
    showprogressbar: bool = True,
    chunksize: int = 100,
    procunit: str = "batches",
) -> list[Any]:
    """Feed work items to the workers in chunks and collect what they send back.

    Parameters
    ----------
    data_in : list
        Work items.
    inQ, outQ : Queue
        Queues shared with the running workers.
    showprogressbar : bool, optional
        Display a tqdm progress bar.  Default is True.
    chunksize : int, optional
        Number of items queued before the results are collected.  Default is 100.
    procunit : str, optional
        Unit shown on the progress bar.

    Returns
    -------
    list
        Results in arrival order.  ``None`` results are dropped.
    """
    data_out = []
    totalnum = len(data_in)
    with tqdm(total=totalnum, desc="Batch", unit=procunit, disable=(not showprogressbar)) as pbar:
        for chunkstart in range(0, totalnum, chunksize):
            thechunk = data_in[chunkstart : chunkstart + chunksize]

            # queue the chunk
            for dat in thechunk:
                inQ.put(dat)

            # retrieve the chunk
            for i in range(len(thechunk)):
                ret = outQ.get()
                if ret is not None:
                    data_out.append(ret)
                pbar.update(1)

    return data_out


def run_multiproc(
    consumerfunc: Callable[[Any, Any], None],
    data_in: list[Any],
    nprocs: int = 1,
    showprogressbar: bool = True,
    chunksize: int = 100,
    procunit: str = "batches",
) -> list[Any]:
    """
    Run a queue consumer in several worker processes.

    Parameters
    ----------
    consumerfunc : callable
        Worker body.  Called as ``consumerfunc(inQ, outQ)``; it must read items
        from ``inQ`` until it gets ``None`` and put exactly one result on
        ``outQ`` per item.
    data_in : list
        Work items sent to the workers.
    nprocs : int, optional
        Number of worker processes.  Default is 1.
    showprogressbar : bool, optional
        Display a progress bar.  Default is True.
    chunksize : int, optional
        Items queued at a time.  Default is 100.
    procunit : str, optional
        Unit shown on the progress bar.

    Returns
    -------
    list
        The worker results, in arrival order.

    Notes
    -----
    Workers are started with the 'fork' context where it is available, so
    they inherit the state of the parent (including closures passed as
    ``consumerfunc``) without pickling it.
    """
    if system() != "Windows":
        ctx = mp.get_context("fork")
    else:
        ctx = mp.get_context()
    inQ = ctx.Queue()
    outQ = ctx.Queue()
    workers = [ctx.Process(target=consumerfunc, args=(inQ, outQ)) for i in range(nprocs)]
    for w in workers:
        w.start()

    try:
        data_out = _process_data(
            data_in,
            inQ,
            outQ,
            showprogressbar=showprogressbar,
            chunksize=chunksize,
            procunit=procunit,
        )
    finally:
        # shut down workers
        for i in range(nprocs):
            inQ.put(None)
        for w in workers:
            w.join()
            w.close()

    return data_out


def run_itemwise(
    itemfunc: Callable[[Any], Any],
    items: list[Any],
    nprocs: int = 1,
    showprogressbar: bool = True,
    procunit: str = "batches",
    debug: bool = False,
) -> list[Any]:
    """
    Apply a function to every item, serially or in worker processes.

    Parameters
    ----------
    itemfunc : callable
        Called as ``itemfunc(item)``.
    items : list
        Work items.
    nprocs : int, optional
        Worker processes; 1 runs everything in this process.  Default is 1.
    showprogressbar : bool, optional
        Display a progress bar.  Default is True.

    Returns
    -------
    list
        ``itemfunc(item)`` for each item, in the order of ``items``.

    Raises
    ------
    Exception
        Whatever ``itemfunc`` raised in a worker is raised again here.
    """
    if nprocs > 1 and len(items) > 1:
        # define the consumer function here so it inherits itemfunc and items
        def theconsumerfunc(inQ, outQ):
            while True:
                # get a new message
                val = inQ.get()

                # this is the 'TERM' signal
                if val is None:
                    break

                # process and send the data
                try:
                    outQ.put((val, itemfunc(items[val]), None))
                except Exception as e:
                    outQ.put((val, None, e))

        if debug:
            print(f"run_itemwise: {len(items)} {procunit} with {nprocs} processes")
        data_out = run_multiproc(
            theconsumerfunc,
            list(range(len(items))),
            nprocs=min(nprocs, len(items)),
            showprogressbar=showprogressbar,
            procunit=procunit,
        )

        # unpack the data
        results = [None] * len(items)
        for theindex, theresult, theerror in data_out:
            if theerror is not None:
                raise theerror
            results[theindex] = theresult
        return results
    else:
        return [
            itemfunc(theitem)
            for theitem in tqdm(
                items, desc="Batch", unit=procunit, disable=(not showprogressbar)
            )
        ]
