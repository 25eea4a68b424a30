# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import numpy as np
from LoadFlowEngine.basic_structures import Vec
from LoadFlowEngine.enumerations import EquationType
from LoadFlowEngine.Equations.equation_system import EquationSystem

DEFAULT_CONV_EPS_PER_EQ = 1e-4

DEFAULT_MAX_ACTIVE_POWER_MISMATCH = 1e-2  # MW

DEFAULT_MAX_REACTIVE_POWER_MISMATCH = 1e-2  # MVAr

DEFAULT_MAX_VOLTAGE_MISMATCH = 1e-4  # p.u.

DEFAULT_MAX_ANGLE_MISMATCH = 1e-5  # rad

DEFAULT_MAX_RATIO_MISMATCH = 1e-5

DEFAULT_MAX_SUSCEPTANCE_MISMATCH = 1e-4  # p.u.


class StoppingCriteriaResult:
    """
    Outcome of a convergence test
    """

    def __init__(self, converged: bool, norm: float):
        """

        :param converged: is the mismatch small enough?
        :param norm: 2-norm of the mismatch vector
        """
        self.converged = converged
        self.norm = norm

    def __str__(self):
        return f"converged={self.converged}, norm={self.norm}"


def compute_norm(fx: Vec) -> float:
    """
    2-norm of the mismatch vector
    :param fx: mismatch vector
    """
    return float(np.sqrt(np.dot(fx, fx))) if len(fx) > 0 else 0.0


class StoppingCriteria:
    """
    Decides whether a mismatch vector is close enough to zero
    """

    def test(self, fx: Vec, equation_system: EquationSystem) -> StoppingCriteriaResult:
        raise NotImplementedError()


class DefaultStoppingCriteria(StoppingCriteria):
    """
    A single epsilon per equation: |f| < sqrt(n eps^2)
    """

    def __init__(self, conv_eps_per_eq: float = DEFAULT_CONV_EPS_PER_EQ):
        """

        :param conv_eps_per_eq: convergence epsilon of a single equation
        """
        self.conv_eps_per_eq = conv_eps_per_eq

    def test(self, fx: Vec, equation_system: EquationSystem) -> StoppingCriteriaResult:
        norm = compute_norm(fx)
        converged = norm < np.sqrt(self.conv_eps_per_eq * self.conv_eps_per_eq * len(fx))
        return StoppingCriteriaResult(converged, norm)


class PerEquationTypeStoppingCriteria(StoppingCriteria):
    """
    Every active equation is tested against the epsilon of its kind.
    Power epsilons are given in MW / MVAr and converted with the base power of the network.
    """

    def __init__(self,
                 max_active_power_mismatch: float = DEFAULT_MAX_ACTIVE_POWER_MISMATCH,
                 max_reactive_power_mismatch: float = DEFAULT_MAX_REACTIVE_POWER_MISMATCH,
                 max_voltage_mismatch: float = DEFAULT_MAX_VOLTAGE_MISMATCH,
                 max_angle_mismatch: float = DEFAULT_MAX_ANGLE_MISMATCH,
                 max_ratio_mismatch: float = DEFAULT_MAX_RATIO_MISMATCH,
                 max_susceptance_mismatch: float = DEFAULT_MAX_SUSCEPTANCE_MISMATCH):
        """

        :param max_active_power_mismatch: MW
        :param max_reactive_power_mismatch: MVAr
        :param max_voltage_mismatch: p.u.
        :param max_angle_mismatch: rad
        :param max_ratio_mismatch: p.u. (no ratio equations are built for the moment)
        :param max_susceptance_mismatch: p.u. (no susceptance equations are built for the moment)
        """
        self.max_active_power_mismatch = max_active_power_mismatch
        self.max_reactive_power_mismatch = max_reactive_power_mismatch
        self.max_voltage_mismatch = max_voltage_mismatch
        self.max_angle_mismatch = max_angle_mismatch
        self.max_ratio_mismatch = max_ratio_mismatch
        self.max_susceptance_mismatch = max_susceptance_mismatch

    def get_epsilon(self, tpe: EquationType, sb: float) -> float:
        """
        Tolerance of an equation kind in per unit
        :param tpe: EquationType
        :param sb: base power (MVA)
        """
        if tpe == EquationType.BUS_TARGET_P:
            return self.max_active_power_mismatch / sb

        elif tpe == EquationType.BUS_TARGET_Q:
            return self.max_reactive_power_mismatch / sb

        elif tpe in (EquationType.BUS_TARGET_V, EquationType.ZERO_V):
            return self.max_voltage_mismatch

        elif tpe in (EquationType.BUS_TARGET_PHI, EquationType.ZERO_PHI):
            return self.max_angle_mismatch

        else:
            raise ValueError(f"Unknown equation type {tpe}")

    def test(self, fx: Vec, equation_system: EquationSystem) -> StoppingCriteriaResult:
        sb = equation_system.network.sb
        converged = True
        for eq in equation_system.sorted_equations_to_solve:
            if abs(fx[eq.row]) >= self.get_epsilon(eq.type, sb):
                converged = False
                break
        return StoppingCriteriaResult(converged, compute_norm(fx))
