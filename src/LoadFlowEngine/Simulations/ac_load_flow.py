# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

import time
from typing import List, Union
from LoadFlowEngine.basic_structures import Logger
from LoadFlowEngine.enumerations import (SolverStatus, OuterLoopStatus, LinearSolverType, VoltageInitMode)
from LoadFlowEngine.exceptions import OuterLoopError
from LoadFlowEngine.Network.network import LfNetwork
from LoadFlowEngine.Network.slack_bus_selector import SlackBusSelector, get_slack_bus_selector
from LoadFlowEngine.Equations.ac_equation_system import create_ac_equation_system
from LoadFlowEngine.LinearAlgebra.jacobian_matrix import JacobianMatrix
from LoadFlowEngine.Solvers.voltage_initializer import (VoltageInitializer, UniformValueVoltageInitializer,
                                                        PreviousValueVoltageInitializer)
from LoadFlowEngine.Solvers.stopping_criteria import DefaultStoppingCriteria, PerEquationTypeStoppingCriteria
from LoadFlowEngine.Solvers.newton_raphson import NewtonRaphson, NewtonRaphsonParameters, NewtonRaphsonResult
from LoadFlowEngine.Solvers.load_flow_observer import AcLoadFlowObserver
from LoadFlowEngine.OuterLoops.outer_loop import OuterLoop, OuterLoopContext
from LoadFlowEngine.OuterLoops.distributed_slack import DistributedSlackOuterLoop
from LoadFlowEngine.OuterLoops.reactive_limits import ReactiveLimitsOuterLoop
from LoadFlowEngine.Simulations.dc_load_flow import DcValueVoltageInitializer
from LoadFlowEngine.Simulations.load_flow_options import LoadFlowOptions

DEFAULT_MAX_OUTER_LOOP_ITERATIONS = 20


def get_voltage_initializer(mode: VoltageInitMode,
                            linear_solver_type: LinearSolverType = LinearSolverType.SPARSE) -> VoltageInitializer:
    """
    Build the voltage initializer of a mode
    :param mode: VoltageInitMode
    :param linear_solver_type: used by the DC initialization
    :return: VoltageInitializer
    """
    if mode == VoltageInitMode.UNIFORM_VALUES:
        return UniformValueVoltageInitializer()
    elif mode == VoltageInitMode.PREVIOUS_VALUES:
        return PreviousValueVoltageInitializer()
    elif mode == VoltageInitMode.DC_VALUES:
        return DcValueVoltageInitializer(linear_solver_type)
    else:
        raise ValueError(f"Unknown voltage initialization mode {mode}")


class AcLoadFlowParameters:
    """
    Everything the AC engine needs, as strategy objects
    """

    def __init__(self,
                 slack_bus_selector: Union[SlackBusSelector, None] = None,
                 voltage_initializer: Union[VoltageInitializer, None] = None,
                 newton_raphson_parameters: Union[NewtonRaphsonParameters, None] = None,
                 outer_loops: Union[List[OuterLoop], None] = None,
                 max_outer_loop_iterations: int = DEFAULT_MAX_OUTER_LOOP_ITERATIONS,
                 linear_solver_type: LinearSolverType = LinearSolverType.SPARSE,
                 reactive_limits: bool = False):
        """

        :param slack_bus_selector: SlackBusSelector, None to keep the slack already selected
        :param voltage_initializer: VoltageInitializer, flat start if None
        :param newton_raphson_parameters: NewtonRaphsonParameters
        :param outer_loops: outer loops, innermost first
        :param max_outer_loop_iterations: maximum number of outer loop corrections
        :param linear_solver_type: LinearSolverType
        :param reactive_limits: respect the reactive limits when dispatching Q over the generators
        """
        if max_outer_loop_iterations < 1:
            raise ValueError(f"Invalid max number of outer loop iterations: {max_outer_loop_iterations}")

        self.slack_bus_selector = slack_bus_selector
        self.voltage_initializer = (voltage_initializer if voltage_initializer is not None
                                    else UniformValueVoltageInitializer())
        self.newton_raphson_parameters = (newton_raphson_parameters if newton_raphson_parameters is not None
                                          else NewtonRaphsonParameters())
        self.outer_loops = outer_loops if outer_loops is not None else list()
        self.max_outer_loop_iterations = max_outer_loop_iterations
        self.linear_solver_type = linear_solver_type
        self.reactive_limits = reactive_limits

    @staticmethod
    def from_options(options: LoadFlowOptions) -> "AcLoadFlowParameters":
        """
        Translate the load flow options
        :param options: LoadFlowOptions
        :return: AcLoadFlowParameters
        """
        if options.per_equation_type_criteria:
            criteria = PerEquationTypeStoppingCriteria(
                max_active_power_mismatch=options.max_active_power_mismatch,
                max_reactive_power_mismatch=options.max_reactive_power_mismatch,
                max_voltage_mismatch=options.max_voltage_mismatch,
                max_angle_mismatch=options.max_angle_mismatch,
                max_ratio_mismatch=options.max_ratio_mismatch,
                max_susceptance_mismatch=options.max_susceptance_mismatch)
        else:
            criteria = DefaultStoppingCriteria(options.tolerance)

        nr_parameters = NewtonRaphsonParameters(max_iterations=options.max_iter,
                                                stopping_criteria=criteria,
                                                state_vector_scaling_mode=options.state_vector_scaling_mode,
                                                line_search_max_iterations=options.line_search_max_iterations,
                                                line_search_step_fold=options.line_search_step_fold,
                                                max_dv=options.max_voltage_change,
                                                max_dphi=options.max_angle_change_rad,
                                                min_realistic_voltage=options.min_realistic_voltage,
                                                max_realistic_voltage=options.max_realistic_voltage)

        outer_loops = list()
        if options.distributed_slack:
            outer_loops.append(DistributedSlackOuterLoop(balance_type=options.balance_type,
                                                         slack_bus_p_max_mismatch=options.slack_bus_p_max_mismatch))
        if options.reactive_limits:
            outer_loops.append(ReactiveLimitsOuterLoop(max_switch_pq_pv=options.max_switch_pq_pv))

        return AcLoadFlowParameters(
            slack_bus_selector=get_slack_bus_selector(options.slack_bus_selection_mode, options.slack_bus_id),
            voltage_initializer=get_voltage_initializer(options.voltage_init_mode, options.linear_solver),
            newton_raphson_parameters=nr_parameters,
            outer_loops=outer_loops,
            max_outer_loop_iterations=options.max_outer_loop_iter,
            linear_solver_type=options.linear_solver,
            reactive_limits=options.reactive_limits)


class AcLoadFlowResult:
    """
    Outcome of an AC load flow
    """

    def __init__(self,
                 network: LfNetwork,
                 outer_loop_iterations: int,
                 newton_raphson_iterations: int,
                 solver_status: SolverStatus,
                 outer_loop_status: OuterLoopStatus,
                 slack_bus_active_power_mismatch: float,
                 norm_history: List[float],
                 elapsed: float,
                 message: str = ''):
        """

        :param network: solved LfNetwork
        :param outer_loop_iterations: number of outer loop corrections
        :param newton_raphson_iterations: Newton-Raphson iterations of all the runs
        :param solver_status: status of the last Newton-Raphson run
        :param outer_loop_status: OuterLoopStatus
        :param slack_bus_active_power_mismatch: (MW)
        :param norm_history: mismatch norms of all the runs
        :param elapsed: seconds
        :param message: failure description
        """
        self.network = network
        self.outer_loop_iterations = outer_loop_iterations
        self.newton_raphson_iterations = newton_raphson_iterations
        self.solver_status = solver_status
        self.outer_loop_status = outer_loop_status
        self.slack_bus_active_power_mismatch = slack_bus_active_power_mismatch
        self.norm_history = norm_history
        self.elapsed = elapsed
        self.message = message

    @property
    def converged(self) -> bool:
        return self.solver_status == SolverStatus.CONVERGED and self.outer_loop_status == OuterLoopStatus.STABLE

    @property
    def error(self) -> float:
        return self.norm_history[-1] if len(self.norm_history) else 0.0

    def __str__(self):
        return (f"AcLoadFlowResult(outer_loop_iterations={self.outer_loop_iterations}, "
                f"newton_raphson_iterations={self.newton_raphson_iterations}, "
                f"solver_status={self.solver_status}, outer_loop_status={self.outer_loop_status}, "
                f"slack_bus_active_power_mismatch={self.slack_bus_active_power_mismatch})")


class AcLoadFlowEngine:
    """
    AC load flow: Newton-Raphson wrapped by the outer loops
    """

    def __init__(self,
                 network: LfNetwork,
                 parameters: Union[AcLoadFlowParameters, None] = None,
                 observer: Union[AcLoadFlowObserver, None] = None,
                 logger: Union[Logger, None] = None):
        """

        :param network: LfNetwork, a single connected component
        :param parameters: AcLoadFlowParameters
        :param observer: AcLoadFlowObserver
        :param logger: Logger
        """
        self.network = network
        self.parameters = parameters if parameters is not None else AcLoadFlowParameters()
        self.observer = observer if observer is not None else AcLoadFlowObserver()
        self.logger = logger if logger is not None else Logger()

    def run_outer_loops(self,
                        nr: NewtonRaphson,
                        context: OuterLoopContext,
                        nr_result: NewtonRaphsonResult,
                        norm_history: List[float]):
        """
        Check the outer loops in order. The first unstable one has corrected the state,
        so Newton-Raphson runs again from the last solution and the list is checked from the start.
        :param nr: NewtonRaphson
        :param context: OuterLoopContext
        :param nr_result: result of the first Newton-Raphson run
        :param norm_history: list where the norms of the new runs are appended
        :return: outer loop status, outer loop iterations, Newton-Raphson iterations, last Newton-Raphson result
        """
        initializer = PreviousValueVoltageInitializer()
        outer_iterations = 0
        nr_iterations = 0

        while True:
            unstable_loop = None
            for outer_loop in self.parameters.outer_loops:
                context.last_newton_raphson_result = nr_result
                context.outer_loop_total_iterations = outer_iterations

                self.observer.before_outer_loop_status_check(outer_loop.name)
                status = outer_loop.check(context)
                self.observer.after_outer_loop_status_check(outer_loop.name, status)

                if status == OuterLoopStatus.UNSTABLE:
                    unstable_loop = outer_loop
                    break

            if unstable_loop is None:
                return OuterLoopStatus.STABLE, outer_iterations, nr_iterations, nr_result

            outer_iterations += 1

            self.observer.before_outer_loop_body(unstable_loop.name)
            nr_result = nr.run(initializer)
            self.observer.after_outer_loop_body(unstable_loop.name)

            nr_iterations += nr_result.iterations
            norm_history += nr_result.norm_history

            if nr_result.status != SolverStatus.CONVERGED:
                self.logger.add_error(f"Newton-Raphson failed after the {unstable_loop.name} outer loop correction",
                                      device=self.network.name, value=str(nr_result.status))
                return OuterLoopStatus.UNSTABLE, outer_iterations, nr_iterations, nr_result

            if outer_iterations >= self.parameters.max_outer_loop_iterations:
                self.logger.add_error("Maximum number of outer loop iterations reached",
                                      device=self.network.name,
                                      value=outer_iterations,
                                      expected_value=self.parameters.max_outer_loop_iterations)
                return OuterLoopStatus.MAX_ITERATION_REACHED, outer_iterations, nr_iterations, nr_result

    def run(self) -> AcLoadFlowResult:
        """
        Run the AC load flow
        :return: AcLoadFlowResult
        """
        start = time.time()

        if self.parameters.slack_bus_selector is not None:
            self.network.select_slack_bus(self.parameters.slack_bus_selector)

        self.observer.before_equation_system_creation()
        es = create_ac_equation_system(self.network, self.logger)
        self.observer.after_equation_system_creation()

        j = JacobianMatrix(es, self.parameters.linear_solver_type)

        try:
            initializer = self.parameters.voltage_initializer
            self.observer.before_voltage_initializer_preparation(initializer.name)
            initializer.prepare(self.network, self.logger)
            self.observer.after_voltage_initializer_preparation()

            nr = NewtonRaphson(es, j, self.parameters.newton_raphson_parameters, self.observer, self.logger)
            nr_result = nr.run(initializer)

            norm_history = list(nr_result.norm_history)
            nr_iterations = nr_result.iterations
            outer_iterations = 0
            outer_status = OuterLoopStatus.STABLE
            message = ''

            context = OuterLoopContext(self.network, es, self.logger)
            for outer_loop in self.parameters.outer_loops:
                outer_loop.initialize(context)

            if nr_result.status == SolverStatus.CONVERGED and len(self.parameters.outer_loops):
                try:
                    (outer_status, outer_iterations,
                     more_iterations, nr_result) = self.run_outer_loops(nr, context, nr_result, norm_history)
                    nr_iterations += more_iterations
                except OuterLoopError as e:
                    outer_status = OuterLoopStatus.FAILED
                    message = e.message
                    self.logger.add_error(f"Outer loop failed: {e.message}", device=self.network.name)

            for outer_loop in self.parameters.outer_loops:
                outer_loop.cleanup(context)

            if nr_result.status != SolverStatus.CONVERGED and message == '':
                message = str(nr_result.status)

            self.network.update_state(reactive_limits=self.parameters.reactive_limits)

        finally:
            j.cleanup()

        self.observer.after_load_flow(str(nr_result.status))

        return AcLoadFlowResult(network=self.network,
                                outer_loop_iterations=outer_iterations,
                                newton_raphson_iterations=nr_iterations,
                                solver_status=nr_result.status,
                                outer_loop_status=outer_status,
                                slack_bus_active_power_mismatch=nr_result.slack_bus_active_power_mismatch
                                * self.network.sb,
                                norm_history=norm_history,
                                elapsed=time.time() - start,
                                message=message)
