# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import time
from typing import List, Union
import numpy as np
from LoadFlowEngine.basic_structures import Logger, Vec
from LoadFlowEngine.enumerations import SolverStatus, StateVectorScalingMode, EquationType, VariableType
from LoadFlowEngine.exceptions import LinearSolverError, SlackError
from LoadFlowEngine.Equations.equation_system import EquationSystem
from LoadFlowEngine.LinearAlgebra.jacobian_matrix import JacobianMatrix
from LoadFlowEngine.Solvers.voltage_initializer import VoltageInitializer
from LoadFlowEngine.Solvers.stopping_criteria import StoppingCriteria, DefaultStoppingCriteria
from LoadFlowEngine.Solvers.state_vector_scaling import (create_state_vector_scaling,
                                                         DEFAULT_LINE_SEARCH_MAX_ITERATIONS,
                                                         DEFAULT_LINE_SEARCH_STEP_FOLD,
                                                         DEFAULT_MAX_DV, DEFAULT_MAX_DPHI)
from LoadFlowEngine.Solvers.load_flow_observer import AcLoadFlowObserver

DEFAULT_MAX_ITERATIONS = 15

DEFAULT_MIN_REALISTIC_VOLTAGE = 0.5

DEFAULT_MAX_REALISTIC_VOLTAGE = 1.5


class NewtonRaphsonParameters:
    """
    Settings of the Newton-Raphson solver
    """

    def __init__(self,
                 max_iterations: int = DEFAULT_MAX_ITERATIONS,
                 stopping_criteria: Union[StoppingCriteria, None] = None,
                 state_vector_scaling_mode: StateVectorScalingMode = StateVectorScalingMode.NONE,
                 line_search_max_iterations: int = DEFAULT_LINE_SEARCH_MAX_ITERATIONS,
                 line_search_step_fold: float = DEFAULT_LINE_SEARCH_STEP_FOLD,
                 max_dv: float = DEFAULT_MAX_DV,
                 max_dphi: float = DEFAULT_MAX_DPHI,
                 min_realistic_voltage: float = DEFAULT_MIN_REALISTIC_VOLTAGE,
                 max_realistic_voltage: float = DEFAULT_MAX_REALISTIC_VOLTAGE,
                 realistic_voltage_check_period: int = 1,
                 always_update_network: bool = True):
        """

        :param max_iterations: maximum number of iterations
        :param stopping_criteria: StoppingCriteria, DefaultStoppingCriteria if None
        :param state_vector_scaling_mode: StateVectorScalingMode
        :param line_search_max_iterations: maximum number of step folds per iteration
        :param line_search_step_fold: step reduction factor
        :param max_dv: maximum voltage module change per iteration (p.u.)
        :param max_dphi: maximum angle change per iteration (rad)
        :param min_realistic_voltage: lower bound of the realistic voltage band (p.u.)
        :param max_realistic_voltage: upper bound of the realistic voltage band (p.u.)
        :param realistic_voltage_check_period: check the voltage band every n iterations, 0 disables the check
        :param always_update_network: write the last iterate into the network even without convergence
        """
        if max_iterations < 1:
            raise ValueError(f"Invalid max number of iterations: {max_iterations}")

        if min_realistic_voltage >= max_realistic_voltage:
            raise ValueError(f"Invalid realistic voltage band [{min_realistic_voltage}, {max_realistic_voltage}]")

        self.max_iterations = max_iterations
        self.stopping_criteria = stopping_criteria if stopping_criteria is not None else DefaultStoppingCriteria()
        self.state_vector_scaling_mode = state_vector_scaling_mode
        self.line_search_max_iterations = line_search_max_iterations
        self.line_search_step_fold = line_search_step_fold
        self.max_dv = max_dv
        self.max_dphi = max_dphi
        self.min_realistic_voltage = min_realistic_voltage
        self.max_realistic_voltage = max_realistic_voltage
        self.realistic_voltage_check_period = realistic_voltage_check_period
        self.always_update_network = always_update_network


class NewtonRaphsonResult:
    """
    Outcome of a Newton-Raphson run
    """

    def __init__(self,
                 status: SolverStatus,
                 iterations: int,
                 slack_bus_active_power_mismatch: float,
                 x: Vec,
                 norm_history: List[float],
                 elapsed: float):
        """

        :param status: SolverStatus
        :param iterations: number of iterations performed
        :param slack_bus_active_power_mismatch: calculated minus target active power at the slack bus (p.u.)
        :param x: last state vector
        :param norm_history: mismatch norm at every iteration, starting with the initial point
        :param elapsed: seconds
        """
        self.status = status
        self.iterations = iterations
        self.slack_bus_active_power_mismatch = slack_bus_active_power_mismatch
        self.x = x
        self.norm_history = norm_history
        self.elapsed = elapsed

    @property
    def converged(self) -> bool:
        return self.status == SolverStatus.CONVERGED

    @property
    def error(self) -> float:
        return self.norm_history[-1] if len(self.norm_history) else 0.0

    def __str__(self):
        return (f"NewtonRaphsonResult(status={self.status}, iterations={self.iterations}, "
                f"slack_bus_active_power_mismatch={self.slack_bus_active_power_mismatch})")


class NewtonRaphson:
    """
    Newton-Raphson solver over an equation system.

    Mismatch convention: f(x) = calculated - target.
    Every iteration solves J dx = f(x) and updates x <- x - dx,
    which is the same as moving by J^-1 (target - calculated).
    """

    def __init__(self,
                 equation_system: EquationSystem,
                 j: JacobianMatrix,
                 parameters: NewtonRaphsonParameters,
                 observer: Union[AcLoadFlowObserver, None] = None,
                 logger: Union[Logger, None] = None):
        """

        :param equation_system: EquationSystem
        :param j: JacobianMatrix listening to the equation system
        :param parameters: NewtonRaphsonParameters
        :param observer: AcLoadFlowObserver
        :param logger: Logger
        """
        self.equation_system = equation_system
        self.j = j
        self.parameters = parameters
        self.observer = observer if observer is not None else AcLoadFlowObserver()
        self.logger = logger if logger is not None else Logger()

    @property
    def network(self):
        return self.equation_system.network

    def is_state_unrealistic(self, x: Vec) -> bool:
        """
        Check the voltage modules of x against the realistic band, reporting the offending buses
        :param x: state vector
        :return: is there any voltage out of the band?
        """
        unrealistic = False
        for var in self.equation_system.sorted_variables_to_find:
            if var.type == VariableType.BUS_V:
                v = x[var.column]
                if v < self.parameters.min_realistic_voltage or v > self.parameters.max_realistic_voltage:
                    unrealistic = True
                    self.logger.add_warning("Unrealistic voltage",
                                            device=self.network.get_bus(var.num).idtag,
                                            value=v,
                                            expected_value=f"[{self.parameters.min_realistic_voltage}, "
                                                           f"{self.parameters.max_realistic_voltage}]")
        return unrealistic

    def get_slack_bus_active_power_mismatch(self) -> float:
        """
        Calculated minus target active power at the slack bus, from the term caches.
        The slack P equation is inactive but its terms follow the state.
        """
        try:
            slack = self.network.get_slack_bus()
        except SlackError:
            return 0.0

        eq = self.equation_system.get_equation(slack.num, EquationType.BUS_TARGET_P)
        if eq is None:
            return 0.0
        return self.equation_system.get_mismatch(eq)

    def run(self, voltage_initializer: VoltageInitializer) -> NewtonRaphsonResult:
        """
        Solve the equation system
        :param voltage_initializer: VoltageInitializer already prepared
        :return: NewtonRaphsonResult
        """
        start = time.time()
        es = self.equation_system
        criteria = self.parameters.stopping_criteria
        period = self.parameters.realistic_voltage_check_period

        # initial point
        x = es.create_state_vector(voltage_initializer)
        self.observer.before_equations_update(0)
        es.update_equations(x)
        self.observer.after_equations_update(es, 0)

        self.observer.before_equation_vector_update(0)
        fx = es.evaluate_equations() - es.create_target_vector()
        self.observer.after_equation_vector_update(es, fx, 0)

        test_result = criteria.test(fx, es)
        norm_history = [test_result.norm]

        scaling = create_state_vector_scaling(mode=self.parameters.state_vector_scaling_mode,
                                              initial_norm=test_result.norm,
                                              line_search_max_iterations=self.parameters.line_search_max_iterations,
                                              line_search_step_fold=self.parameters.line_search_step_fold,
                                              max_dv=self.parameters.max_dv,
                                              max_dphi=self.parameters.max_dphi)

        status = SolverStatus.RUNNING
        iteration = 0

        while status == SolverStatus.RUNNING:

            if test_result.converged:
                status = SolverStatus.CONVERGED
                break

            if iteration >= self.parameters.max_iterations:
                status = SolverStatus.MAX_ITERATION_REACHED
                break

            self.observer.begin_iteration(iteration)

            # solve J dx = f(x)
            try:
                self.observer.before_jacobian_build(iteration)
                _ = self.j.matrix
                self.observer.after_jacobian_build(iteration)

                self.observer.before_lu_decomposition(iteration)
                self.j.decompose()
                self.observer.after_lu_decomposition(iteration)

                self.observer.before_lu_solve(iteration)
                dx = self.j.solve(fx)
                self.observer.after_lu_solve(iteration)

            except LinearSolverError as e:
                self.logger.add_error(f"Newton-Raphson linear solve failed @iter {iteration}: {e.message}")
                status = SolverStatus.SOLVER_FAILED
                break

            if not np.all(np.isfinite(dx)):
                self.logger.add_error(f"Newton-Raphson produced a non finite step @iter {iteration}")
                status = SolverStatus.SOLVER_FAILED
                break

            dx = scaling.apply(dx, es, self.logger)

            # x <- x - dx, then the mismatch of the new point
            x = x - dx

            self.observer.before_equations_update(iteration)
            es.update_equations(x)
            self.observer.after_equations_update(es, iteration)

            self.observer.before_equation_vector_update(iteration)
            fx = es.evaluate_equations() - es.create_target_vector()
            self.observer.after_equation_vector_update(es, fx, iteration)

            test_result = criteria.test(fx, es)
            x, fx, test_result = scaling.apply_after(es, x, dx, fx, criteria, test_result, self.logger)

            iteration += 1
            norm_history.append(test_result.norm)

            self.observer.end_iteration(iteration - 1)

            if period > 0 and iteration % period == 0 and self.is_state_unrealistic(x):
                status = SolverStatus.UNREALISTIC_STATE

        # a converged state can still be out of the realistic band
        if status == SolverStatus.CONVERGED and period > 0 and self.is_state_unrealistic(x):
            status = SolverStatus.UNREALISTIC_STATE

        if status != SolverStatus.CONVERGED:
            self.logger.add_divergence(f"Newton-Raphson finished with status {status}",
                                       value=norm_history[-1],
                                       expected_value=0.0)

        # the caches hold the last iterate, which is the state of the network from now on
        if status == SolverStatus.CONVERGED or self.parameters.always_update_network:
            es.update_network(x)

        return NewtonRaphsonResult(status=status,
                                   iterations=iteration,
                                   slack_bus_active_power_mismatch=self.get_slack_bus_active_power_mismatch(),
                                   x=x,
                                   norm_history=norm_history,
                                   elapsed=time.time() - start)
