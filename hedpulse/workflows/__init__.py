# emacs: -*- mode: python-mode; py-indent-offset: 4; tab-width: 4; -*-
# ex: set sts=4 ts=4 sw=4 et:
"""
Command line workflows for hedpulse.
"""

from . import fithed

__all__ = ["fithed"]
