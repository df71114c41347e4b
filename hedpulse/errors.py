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
Exceptions and warnings raised by hedpulse.

Only configuration problems and spline domain violations are fatal.  Per-beat
problems are raised inside the segmenter, caught there, and turned into
rejection records so that a run always completes.
"""


class HEDError(Exception):
    """Base class for all hedpulse errors."""


class ConfigurationError(HEDError, ValueError):
    """An invalid option or option combination.  Raised before any output is produced."""


class OutOfDomain(HEDError, ValueError):
    """A spline was evaluated outside the range it was fitted on."""

    def __init__(self, xvals, domain):
        self.xvals = xvals
        self.domain = domain
        super().__init__(f"evaluation point(s) {xvals} outside of spline domain {domain}")


class FiducialDetectionFailed(HEDError):
    """The O, S, N, D landmarks of a beat could not be located."""


class SegmentationRejection(HEDError):
    """A candidate beat failed one of the segmentation checks.

    Parameters
    ----------
    reason : RejectionReason
        Why the beat was excluded.
    message : str
        Human readable detail.
    """

    def __init__(self, reason, message=""):
        self.reason = reason
        self.message = message
        super().__init__(f"{reason}: {message}")


class NoPeaksDetected(UserWarning):
    """No derivative threshold crossings were found.  The run continues with no beats."""


class FitNonConvergence(UserWarning):
    """A simplex run stopped on its iteration budget rather than on tolerance."""
