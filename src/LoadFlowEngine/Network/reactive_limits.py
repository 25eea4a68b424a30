# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Tuple
import numpy as np


class ReactiveLimits:
    """
    Reactive capability of a generating unit as a function of its active power (all in p.u.)
    """

    def get_min_q(self, p: float) -> float:
        raise NotImplementedError()

    def get_max_q(self, p: float) -> float:
        raise NotImplementedError()


class MinMaxReactiveLimits(ReactiveLimits):
    """
    Fixed reactive limits
    """

    def __init__(self, min_q: float, max_q: float):
        """

        :param min_q: minimum reactive power (p.u.)
        :param max_q: maximum reactive power (p.u.)
        """
        if min_q > max_q:
            raise ValueError(f"Inconsistent reactive limits: min_q={min_q} > max_q={max_q}")
        self.min_q = min_q
        self.max_q = max_q

    def get_min_q(self, p: float) -> float:
        return self.min_q

    def get_max_q(self, p: float) -> float:
        return self.max_q

    def __str__(self):
        return f"MinMaxReactiveLimits({self.min_q}, {self.max_q})"


class ReactiveCapabilityCurve(ReactiveLimits):
    """
    Capability curve given by (P, Qmin, Qmax) points
    Between points the limits are interpolated linearly, outside the P range the extreme points hold
    """

    def __init__(self, points: List[Tuple[float, float, float]]):
        """

        :param points: list of (p, min_q, max_q) in p.u.
        """
        if len(points) < 2:
            raise ValueError("A reactive capability curve needs at least two points")

        pts = sorted(points, key=lambda t: t[0])
        self.p = np.array([t[0] for t in pts], dtype=float)
        self.min_q = np.array([t[1] for t in pts], dtype=float)
        self.max_q = np.array([t[2] for t in pts], dtype=float)

        if np.any(self.min_q > self.max_q):
            raise ValueError("Inconsistent reactive capability curve: some min_q > max_q")

    def get_min_q(self, p: float) -> float:
        return float(np.interp(p, self.p, self.min_q))

    def get_max_q(self, p: float) -> float:
        return float(np.interp(p, self.p, self.max_q))

    def __str__(self):
        return f"ReactiveCapabilityCurve({len(self.p)} points)"


class ReactiveDiagram(ReactiveLimits):
    """
    Reactive diagram of a bus: the superposition of the diagrams of the units that share it.
    The resulting diagram is the envelope (max) of the superimposed ones.
    """

    def __init__(self):
        self.diagrams: List[ReactiveLimits] = list()

    def add_diagram(self, diagram: ReactiveLimits):
        """
        Superimpose a unit diagram
        :param diagram: ReactiveLimits
        """
        self.diagrams.append(diagram)

    def __len__(self):
        return len(self.diagrams)

    def get_min_q(self, p: float) -> float:
        if len(self.diagrams) == 0:
            return -np.inf
        return min(d.get_min_q(p) for d in self.diagrams)

    def get_max_q(self, p: float) -> float:
        if len(self.diagrams) == 0:
            return np.inf
        return max(d.get_max_q(p) for d in self.diagrams)
