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
Natural cubic spline representation of a sampled series.

All the landmark detection in hedpulse works on the spline rather than on the
raw samples, so that derivatives and crossings are located between samples.
"""
import logging

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.interpolate import CubicSpline

from hedpulse.errors import OutOfDomain

LGR = logging.getLogger("GENERAL")

DOMAINTOL = 1.0e-9
MINPOINTS = 4


class SplineAnalyzer:
    """
    Natural cubic spline through (index, amplitude) pairs, with its derivatives.

    Parameters
    ----------
    xvals : array_like
        Strictly increasing sample positions (usually sample indices).
    yvals : array_like
        Amplitudes at ``xvals``.

    Notes
    -----
    Instances are never modified.  Use ``refit`` to get a new analyzer on the
    same grid after the amplitudes have changed.
    """

    def __init__(self, xvals: ArrayLike, yvals: ArrayLike, debug: bool = False) -> None:
        self.xvals = np.asarray(xvals, dtype=np.float64)
        self.yvals = np.asarray(yvals, dtype=np.float64)
        if self.xvals.ndim != 1 or self.xvals.shape != self.yvals.shape:
            raise ValueError("xvals and yvals must be one dimensional and of equal length")
        if len(self.xvals) < MINPOINTS:
            raise ValueError(f"at least {MINPOINTS} points are needed to fit a spline")
        if not (np.all(np.isfinite(self.xvals)) and np.all(np.isfinite(self.yvals))):
            raise ValueError("spline input contains non-finite values")
        if np.any(np.diff(self.xvals) <= 0.0):
            raise ValueError("xvals must be strictly increasing")
        self.debug = debug
        self.spline = CubicSpline(self.xvals, self.yvals, bc_type="natural", extrapolate=False)
        self._derivs = {0: self.spline}
        for order in range(1, 4):
            self._derivs[order] = self.spline.derivative(order)
        if self.debug:
            print(f"SplineAnalyzer: {len(self.xvals)} points, domain {self.domain}")

    @property
    def domain(self) -> tuple[float, float]:
        return float(self.xvals[0]), float(self.xvals[-1])

    def __len__(self) -> int:
        return len(self.xvals)

    def _checkdomain(self, x: ArrayLike) -> NDArray:
        thex = np.asarray(x, dtype=np.float64)
        lo, hi = self.domain
        outside = (thex < lo - DOMAINTOL) | (thex > hi + DOMAINTOL) | ~np.isfinite(thex)
        if np.any(outside):
            raise OutOfDomain(thex[outside] if thex.ndim > 0 else thex, self.domain)
        return np.clip(thex, lo, hi)

    def valueat(self, x: ArrayLike) -> NDArray | float:
        """Spline value at x.  Raises OutOfDomain outside the fitted range."""
        return self.derivativeat(x, order=0)

    def derivativeat(self, x: ArrayLike, order: int = 1) -> NDArray | float:
        """
        Evaluate a derivative of the spline.

        Parameters
        ----------
        x : float or array_like
            Evaluation position(s).
        order : int, optional
            Derivative order, 0 to 3.  Default is 1.

        Returns
        -------
        float or NDArray
            The derivative value(s), with the shape of ``x``.
        """
        if order not in self._derivs:
            raise ValueError(f"derivative order must be between 0 and 3, got {order}")
        thex = self._checkdomain(x)
        result = self._derivs[order](thex)
        if np.ndim(result) == 0:
            return float(result)
        return result

    def samplederivative(self, order: int = 1) -> NDArray:
        """Derivative of the given order at every grid point."""
        return self._derivs[order](self.xvals)

    def rootsof(
        self,
        order: int = 1,
        target: float = 0.0,
        lower: float | None = None,
        upper: float | None = None,
    ) -> NDArray:
        """
        Find every position where a derivative of the spline equals a target.

        Parameters
        ----------
        order : int, optional
            Derivative order, 0 (the spline itself) to 2.  Default is 1.
        target : float, optional
            Value to solve for.  Default is 0.0.
        lower, upper : float, optional
            Restrict the returned roots to [lower, upper].

        Returns
        -------
        NDArray
            Sorted, de-duplicated roots inside the domain.  May be empty.

        Notes
        -----
        Intervals on which the derivative is identically equal to the target
        (flat segments) produce no roots.
        """
        if order not in (0, 1, 2):
            raise ValueError(f"root finding is supported for orders 0 to 2, got {order}")
        theroots = self._derivs[order].solve(target, discontinuity=False)
        # a flat interval is reported as its start point followed by nan
        flatstarts = np.where(np.isnan(theroots))[0] - 1
        theroots = np.delete(theroots, flatstarts[flatstarts >= 0])
        theroots = np.sort(theroots[np.isfinite(theroots)])
        lo, hi = self.domain
        if lower is not None:
            lo = max(lo, lower)
        if upper is not None:
            hi = min(hi, upper)
        theroots = theroots[(theroots >= lo - DOMAINTOL) & (theroots <= hi + DOMAINTOL)]
        if len(theroots) > 1:
            keep = np.concatenate(([True], np.diff(theroots) > DOMAINTOL))
            theroots = theroots[keep]
        return theroots

    def stationarypoints(
        self, lower: float | None = None, upper: float | None = None
    ) -> tuple[NDArray, NDArray]:
        """
        Local minima and maxima of the spline.

        Returns
        -------
        minima, maxima : NDArray
            Positions of the roots of the first derivative where the second
            derivative is positive and negative, respectively.
        """
        theroots = self.rootsof(order=1, target=0.0, lower=lower, upper=upper)
        if len(theroots) == 0:
            return theroots, theroots
        curvature = self.derivativeat(theroots, order=2)
        return theroots[curvature > 0.0], theroots[curvature < 0.0]

    def refit(self, newyvals: ArrayLike) -> "SplineAnalyzer":
        """Return a new analyzer on the same grid with new amplitudes."""
        return SplineAnalyzer(self.xvals, newyvals, debug=self.debug)
