# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import pytest
from LoadFlowEngine.basic_structures import Logger
from LoadFlowEngine.enumerations import (SolverStatus, EquationType, LinearSolverType, StateVectorScalingMode,
                                         LogSeverity)
from LoadFlowEngine.Network.slack_bus_selector import FirstSlackBusSelector
from LoadFlowEngine.Equations.ac_equation_system import create_ac_equation_system
from LoadFlowEngine.LinearAlgebra.jacobian_matrix import JacobianMatrix
from LoadFlowEngine.Solvers.newton_raphson import NewtonRaphson, NewtonRaphsonParameters
from LoadFlowEngine.Solvers.stopping_criteria import PerEquationTypeStoppingCriteria, DefaultStoppingCriteria
from LoadFlowEngine.Solvers.state_vector_scaling import LineSearchStateVectorScaling
from LoadFlowEngine.Solvers.voltage_initializer import UniformValueVoltageInitializer
from LoadFlowEngine.Solvers.load_flow_observer import (AcLoadFlowObserver, ProfilingAcLoadFlowObserver,
                                                       LargestMismatchAcLoadFlowObserver, MultipleAcLoadFlowObserver)
from LoadFlowEngine.Simulations.ac_load_flow import AcLoadFlowEngine, AcLoadFlowParameters
from network_factory import create_two_bus_network, create_disconnected_load_network


def get_parameters(**kwargs) -> AcLoadFlowParameters:
    return AcLoadFlowParameters(slack_bus_selector=FirstSlackBusSelector(),
                                linear_solver_type=LinearSolverType.DENSE,
                                **kwargs)


def test_newton_raphson_alone():
    network = create_two_bus_network()
    network.select_slack_bus(FirstSlackBusSelector())
    es = create_ac_equation_system(network)
    j = JacobianMatrix(es, LinearSolverType.SPARSE)

    nr = NewtonRaphson(es, j, NewtonRaphsonParameters())
    result = nr.run(UniformValueVoltageInitializer())
    j.cleanup()

    assert result.converged
    assert result.iterations == 3
    assert len(result.norm_history) == 4
    assert np.all(np.diff(result.norm_history) < 0)
    assert result.error < np.sqrt(4 * 1e-8)

    # the slack active power equation is not solved but its mismatch is known
    assert abs(result.slack_bus_active_power_mismatch) < 1e-3


def test_default_stopping_criteria():
    network = create_two_bus_network()
    network.select_slack_bus(FirstSlackBusSelector())
    es = create_ac_equation_system(network)

    criteria = DefaultStoppingCriteria(1e-4)
    assert criteria.test(np.full(4, 0.9e-4), es).converged
    assert not criteria.test(np.full(4, 1.1e-4), es).converged
    assert np.isclose(criteria.test(np.array([3.0, 4.0, 0.0, 0.0]), es).norm, 5.0)


def test_per_equation_type_stopping_criteria():
    """
    Rows: p@b2, q@b2, v@b1, φ@b1
    """
    network = create_two_bus_network()
    network.select_slack_bus(FirstSlackBusSelector())
    es = create_ac_equation_system(network)

    criteria = PerEquationTypeStoppingCriteria(max_active_power_mismatch=1e-2,
                                               max_reactive_power_mismatch=1e-2,
                                               max_voltage_mismatch=1e-4,
                                               max_angle_mismatch=1e-5)

    # MW and MVAr go to p.u. with the base power
    assert np.isclose(criteria.get_epsilon(EquationType.BUS_TARGET_P, network.sb), 1e-4)
    assert np.isclose(criteria.get_epsilon(EquationType.BUS_TARGET_Q, network.sb), 1e-4)
    assert np.isclose(criteria.get_epsilon(EquationType.ZERO_V, network.sb), 1e-4)
    assert np.isclose(criteria.get_epsilon(EquationType.ZERO_PHI, network.sb), 1e-5)

    assert criteria.test(np.array([5e-5, 5e-5, 5e-5, 5e-6]), es).converged
    assert not criteria.test(np.array([2e-4, 0.0, 0.0, 0.0]), es).converged
    assert not criteria.test(np.array([0.0, 0.0, 0.0, 5e-5]), es).converged


def test_per_equation_type_criteria_in_the_engine():
    network = create_two_bus_network()
    params = get_parameters(newton_raphson_parameters=NewtonRaphsonParameters(
        stopping_criteria=PerEquationTypeStoppingCriteria()))
    result = AcLoadFlowEngine(network, params).run()

    assert result.converged
    assert np.isclose(network.get_bus_by_id('b2').v, 0.855, atol=1e-3)


@pytest.mark.parametrize("mode", [StateVectorScalingMode.NONE,
                                  StateVectorScalingMode.LINE_SEARCH,
                                  StateVectorScalingMode.MAX_VOLTAGE_CHANGE])
def test_state_vector_scaling_modes(mode):
    network = create_two_bus_network()
    params = get_parameters(newton_raphson_parameters=NewtonRaphsonParameters(state_vector_scaling_mode=mode))
    result = AcLoadFlowEngine(network, params).run()

    assert result.converged
    b2 = network.get_bus_by_id('b2')
    assert np.isclose(b2.v, 0.855, atol=1e-3)
    assert np.isclose(np.rad2deg(b2.angle), -13.520904, atol=1e-3)


def test_max_voltage_change_limits_the_first_step():
    """
    The first full step moves the angle of b2 by 0.2 rad, above the 0.1 rad allowed
    """
    network = create_two_bus_network()
    logger = Logger()
    params = get_parameters(newton_raphson_parameters=NewtonRaphsonParameters(
        max_iterations=1,
        state_vector_scaling_mode=StateVectorScalingMode.MAX_VOLTAGE_CHANGE,
        max_dphi=0.1))
    result = AcLoadFlowEngine(network, params, logger=logger).run()

    assert result.solver_status == SolverStatus.MAX_ITERATION_REACHED
    b2 = network.get_bus_by_id('b2')
    assert np.isclose(b2.angle, -0.1)
    assert np.isclose(b2.v, 0.95)
    assert any(e.msg == "Newton-Raphson step scaled by the maximum voltage change" for e in logger.entries)


def test_singular_jacobian():
    """
    Solved as a whole, the floating island b2-b3 makes the Jacobian singular
    """
    network = create_disconnected_load_network()
    logger = Logger()

    for solver_type in (LinearSolverType.DENSE, LinearSolverType.SPARSE):
        params = AcLoadFlowParameters(slack_bus_selector=FirstSlackBusSelector(), linear_solver_type=solver_type)
        result = AcLoadFlowEngine(network, params, logger=logger).run()

        assert result.solver_status == SolverStatus.SOLVER_FAILED
        assert result.newton_raphson_iterations == 0
        assert not result.converged

    assert logger.error_count() == 2


def test_observers_do_not_change_the_solution():
    network1 = create_two_bus_network()
    network2 = create_two_bus_network()

    logger = Logger()
    profiler = ProfilingAcLoadFlowObserver()
    largest = LargestMismatchAcLoadFlowObserver(logger)
    observer = MultipleAcLoadFlowObserver([profiler, largest])

    result1 = AcLoadFlowEngine(network1, get_parameters()).run()
    result2 = AcLoadFlowEngine(network2, get_parameters(), observer=observer).run()

    assert result1.newton_raphson_iterations == result2.newton_raphson_iterations
    assert np.array_equal(network1.get_v(), network2.get_v())
    assert np.array_equal(network1.get_angles(), network2.get_angles())

    # one linear solve per iteration
    assert len(profiler.timings['LU decomposition']) == 3
    assert len(profiler.timings['LU solve']) == 3
    assert len(profiler.timings['Equation system creation']) == 1
    df = profiler.to_df()
    assert df.loc['Jacobian build', 'Calls'] == 3

    # the initial point plus one mismatch per iteration, starting with the full load at b2
    assert len(largest.largest) == 4
    assert np.isclose(largest.largest[0], 2.0)
    assert logger.count_type(LogSeverity.Information) == 4
    assert logger[0].device == 'p@b2'


def test_invalid_parameters():
    with pytest.raises(ValueError):
        NewtonRaphsonParameters(max_iterations=0)

    with pytest.raises(ValueError):
        NewtonRaphsonParameters(min_realistic_voltage=1.2, max_realistic_voltage=1.1)

    with pytest.raises(ValueError):
        LineSearchStateVectorScaling(initial_norm=1.0, step_fold=1.0)

    with pytest.raises(ValueError):
        AcLoadFlowParameters(max_outer_loop_iterations=0)


def test_line_search_folds_the_step_back():
    """
    With a reference norm of zero no step is good enough: the step is folded max_iterations times
    """
    network = create_two_bus_network()
    network.select_slack_bus(FirstSlackBusSelector())
    es = create_ac_equation_system(network)
    criteria = DefaultStoppingCriteria()
    logger = Logger()

    x0 = es.create_state_vector(UniformValueVoltageInitializer())
    dx = np.full(es.column_count, 0.01)
    x = x0 - dx
    fx = es.get_mismatch_vector(x)

    scaling = LineSearchStateVectorScaling(initial_norm=0.0, max_iterations=2, step_fold=2.0)
    x, fx, test_result = scaling.apply_after(es, x, dx, fx, criteria, criteria.test(fx, es), logger)

    # two folds by 2: a quarter of the step
    assert np.allclose(x, x0 - 0.25 * dx)
    assert np.allclose(fx, es.get_mismatch_vector(x0 - 0.25 * dx))
    assert np.isclose(test_result.norm, criteria.test(fx, es).norm)
    assert scaling.last_norm == test_result.norm
    assert logger[0].msg == "Line search step size reduced"
    assert np.isclose(logger[0].value, 0.25)


def test_line_search_keeps_a_decreasing_step():
    network = create_two_bus_network()
    network.select_slack_bus(FirstSlackBusSelector())
    es = create_ac_equation_system(network)
    criteria = DefaultStoppingCriteria()
    logger = Logger()

    x0 = es.create_state_vector(UniformValueVoltageInitializer())
    dx = np.full(es.column_count, 0.01)
    fx = es.get_mismatch_vector(x0 - dx)

    scaling = LineSearchStateVectorScaling(initial_norm=1e10)
    x, fx2, test_result = scaling.apply_after(es, x0 - dx, dx, fx, criteria, criteria.test(fx, es), logger)

    assert np.array_equal(x, x0 - dx)
    assert np.array_equal(fx2, fx)
    assert len(logger) == 0


class IterationCounter(AcLoadFlowObserver):

    def __init__(self):
        self.begun = list()
        self.ended = list()
        self.outer_loop_checks = 0
        self.status_name = ''

    def begin_iteration(self, iteration: int):
        self.begun.append(iteration)

    def end_iteration(self, iteration: int):
        self.ended.append(iteration)

    def before_outer_loop_status_check(self, outer_loop_name: str):
        self.outer_loop_checks += 1

    def after_load_flow(self, status_name: str):
        self.status_name = status_name


def test_multiple_observer_forwards_the_hooks():
    network = create_two_bus_network()
    counters = [IterationCounter(), IterationCounter()]
    result = AcLoadFlowEngine(network, get_parameters(), observer=MultipleAcLoadFlowObserver(counters)).run()

    assert result.converged
    for counter in counters:
        assert counter.begun == [0, 1, 2]
        assert counter.ended == [0, 1, 2]
        assert counter.outer_loop_checks == 0
        assert counter.status_name == str(SolverStatus.CONVERGED)
