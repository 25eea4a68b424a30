# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Tuple
import numpy as np
from LoadFlowEngine.basic_structures import Logger, Vec
from LoadFlowEngine.enumerations import StateVectorScalingMode, VariableType
from LoadFlowEngine.Equations.equation_system import EquationSystem
from LoadFlowEngine.Solvers.stopping_criteria import StoppingCriteria, StoppingCriteriaResult

DEFAULT_LINE_SEARCH_MAX_ITERATIONS = 10

DEFAULT_LINE_SEARCH_STEP_FOLD = 4.0 / 3.0

DEFAULT_MAX_DV = 0.1  # p.u.

DEFAULT_MAX_DPHI = np.deg2rad(10.0)  # rad


class StateVectorScaling:
    """
    Policy applied to the Newton-Raphson step.
    apply() may rescale dx before it is subtracted from x,
    apply_after() may move the new state once its mismatch is known.
    """

    mode = StateVectorScalingMode.NONE

    def apply(self, dx: Vec, equation_system: EquationSystem, logger: Logger) -> Vec:
        return dx

    def apply_after(self,
                    equation_system: EquationSystem,
                    x: Vec,
                    dx: Vec,
                    fx: Vec,
                    stopping_criteria: StoppingCriteria,
                    test_result: StoppingCriteriaResult,
                    logger: Logger) -> Tuple[Vec, Vec, StoppingCriteriaResult]:
        return x, fx, test_result


class NoStateVectorScaling(StateVectorScaling):
    """
    Full Newton step
    """
    pass


class LineSearchStateVectorScaling(StateVectorScaling):
    """
    The step is folded back while the mismatch norm does not decrease
    """

    mode = StateVectorScalingMode.LINE_SEARCH

    def __init__(self, initial_norm: float,
                 max_iterations: int = DEFAULT_LINE_SEARCH_MAX_ITERATIONS,
                 step_fold: float = DEFAULT_LINE_SEARCH_STEP_FOLD):
        """

        :param initial_norm: norm of the mismatch at the initial point
        :param max_iterations: maximum number of folds per Newton-Raphson iteration
        :param step_fold: step reduction factor (> 1)
        """
        if step_fold <= 1.0:
            raise ValueError(f"The step fold must be greater than 1: {step_fold}")
        self.max_iterations = max_iterations
        self.step_fold = step_fold
        self.last_norm = initial_norm

    def apply_after(self,
                    equation_system: EquationSystem,
                    x: Vec,
                    dx: Vec,
                    fx: Vec,
                    stopping_criteria: StoppingCriteria,
                    test_result: StoppingCriteriaResult,
                    logger: Logger) -> Tuple[Vec, Vec, StoppingCriteriaResult]:
        step_size = 1.0
        iteration = 0
        while test_result.norm >= self.last_norm and iteration < self.max_iterations:
            new_step_size = step_size / self.step_fold
            # x was computed with the full step size, move it back
            x = x + (step_size - new_step_size) * dx
            step_size = new_step_size
            fx = equation_system.get_mismatch_vector(x)
            test_result = stopping_criteria.test(fx, equation_system)
            iteration += 1

        if iteration > 0:
            logger.add_info("Line search step size reduced",
                            value=step_size,
                            expected_value=test_result.norm)

        self.last_norm = test_result.norm
        return x, fx, test_result


class MaxVoltageChangeStateVectorScaling(StateVectorScaling):
    """
    The whole step is scaled down so that no voltage module moves more than max_dv
    and no angle more than max_dphi in one iteration
    """

    mode = StateVectorScalingMode.MAX_VOLTAGE_CHANGE

    def __init__(self, max_dv: float = DEFAULT_MAX_DV, max_dphi: float = DEFAULT_MAX_DPHI):
        """

        :param max_dv: maximum voltage module change (p.u.)
        :param max_dphi: maximum angle change (rad)
        """
        self.max_dv = max_dv
        self.max_dphi = max_dphi

    def apply(self, dx: Vec, equation_system: EquationSystem, logger: Logger) -> Vec:
        scale = 1.0
        for var in equation_system.sorted_variables_to_find:
            d = abs(dx[var.column])
            if var.type == VariableType.BUS_V and d > self.max_dv:
                scale = min(scale, self.max_dv / d)
            elif var.type == VariableType.BUS_PHI and d > self.max_dphi:
                scale = min(scale, self.max_dphi / d)

        if scale < 1.0:
            logger.add_info("Newton-Raphson step scaled by the maximum voltage change", value=scale)
            return dx * scale

        return dx


def create_state_vector_scaling(mode: StateVectorScalingMode,
                                initial_norm: float,
                                line_search_max_iterations: int = DEFAULT_LINE_SEARCH_MAX_ITERATIONS,
                                line_search_step_fold: float = DEFAULT_LINE_SEARCH_STEP_FOLD,
                                max_dv: float = DEFAULT_MAX_DV,
                                max_dphi: float = DEFAULT_MAX_DPHI) -> StateVectorScaling:
    """
    Build the scaling policy of a Newton-Raphson run
    :param mode: StateVectorScalingMode
    :param initial_norm: mismatch norm at the initial point
    :param line_search_max_iterations:
    :param line_search_step_fold:
    :param max_dv:
    :param max_dphi:
    :return: StateVectorScaling
    """
    if mode == StateVectorScalingMode.NONE:
        return NoStateVectorScaling()

    elif mode == StateVectorScalingMode.LINE_SEARCH:
        return LineSearchStateVectorScaling(initial_norm=initial_norm,
                                            max_iterations=line_search_max_iterations,
                                            step_fold=line_search_step_fold)

    elif mode == StateVectorScalingMode.MAX_VOLTAGE_CHANGE:
        return MaxVoltageChangeStateVectorScaling(max_dv=max_dv, max_dphi=max_dphi)

    else:
        raise ValueError(f"Unknown state vector scaling mode {mode}")
