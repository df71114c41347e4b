"""Logging setup for the hedpulse workflows."""
import logging
import os

LGR = logging.getLogger("GENERAL")
TimingLGR = logging.getLogger("TIMING")
ErrorLGR = logging.getLogger("ERROR")

# between INFO and DEBUG
VERBOSE_LEVEL = 15


class ContextFilter(logging.Filter):
    """Drop records from the timing logger, which has its own file."""

    NAMES = {"TIMING"}

    def filter(self, record):
        return not any([n in record.name for n in self.NAMES])


class TimingFormatter(logging.Formatter):
    """Formatter for the run timing table.

    A timing record may carry a dict as its only argument; its ``message2``
    and ``message3`` entries fill the extra columns, e.g.
    ``TimingLGR.info("Segmentation done", {"message2": 12, "message3": "beats"})``.
    """

    def format(self, record):
        if isinstance(record.args, dict):
            record.message2 = record.args.get("message2", None)
            record.message3 = record.args.get("message3", None)
        else:
            record.message2 = None
            record.message3 = None
        return super().format(record)


def setup_logger(logger_filename, timing_filename, error_filename, verbose=False, debug=False):
    """Attach file and console handlers to the GENERAL, TIMING and ERROR loggers.

    Parameters
    ----------
    logger_filename : str
        Run log; GENERAL messages also go to the console.
    timing_filename : str
        Tab separated timing table.
    error_filename : str
        Warnings and errors; these also go to the console.
    verbose : bool, optional
        Log GENERAL at the VERBOSE level (15).  Default is False.
    debug : bool, optional
        Log GENERAL at DEBUG, overriding ``verbose``.  Default is False.

    Notes
    -----
    Files left over from an earlier run with the same output root are removed.
    Call ``shutdown_loggers`` at the end of the run.
    """
    for fname in [logger_filename, timing_filename, error_filename]:
        if os.path.isfile(fname):
            os.remove(fname)

    logging.addLevelName(VERBOSE_LEVEL, "VERBOSE")
    if debug:
        LGR.setLevel(logging.DEBUG)
    elif verbose:
        LGR.setLevel(VERBOSE_LEVEL)
    else:
        LGR.setLevel(logging.INFO)

    log_formatter = logging.Formatter("%(message)s")
    log_handler = logging.FileHandler(logger_filename)
    log_handler.setFormatter(log_formatter)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(log_formatter)
    log_handler.addFilter(ContextFilter())
    stream_handler.addFilter(ContextFilter())
    LGR.addHandler(log_handler)
    LGR.addHandler(stream_handler)
    LGR.propagate = False

    # columns: time stamp, event, count, unit
    timing_formatter = TimingFormatter(
        "%(asctime)s.%(msecs)03d\t%(message)s\t%(message2)s\t%(message3)s",
        datefmt="%Y%m%dT%H%M%S",
    )
    timing_handler = logging.FileHandler(timing_filename)
    timing_handler.setFormatter(timing_formatter)
    TimingLGR.setLevel(logging.INFO)
    TimingLGR.addHandler(timing_handler)
    TimingLGR.propagate = False

    error_formatter = logging.Formatter("%(asctime)s\t%(message)s", datefmt="%Y%m%dT%H%M%S")
    error_handler = logging.FileHandler(error_filename)
    error_handler.setFormatter(error_formatter)
    ErrorLGR.setLevel(logging.WARNING)
    ErrorLGR.addHandler(error_handler)
    ErrorLGR.addHandler(stream_handler)
    ErrorLGR.propagate = False


def shutdown_loggers():
    """Detach and close every handler added by setup_logger."""
    for thelogger in [LGR, ErrorLGR, TimingLGR]:
        handlers = thelogger.handlers[:]
        for handler in handlers:
            thelogger.removeHandler(handler)
            handler.close()
