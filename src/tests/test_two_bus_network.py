# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from LoadFlowEngine.basic_structures import Logger
from LoadFlowEngine.enumerations import (SolverStatus, OuterLoopStatus, LinearSolverType, BranchSide,
                                         LogSeverity)
from LoadFlowEngine.Network.slack_bus_selector import FirstSlackBusSelector
from LoadFlowEngine.Solvers.voltage_initializer import PreviousValueVoltageInitializer
from LoadFlowEngine.Solvers.newton_raphson import NewtonRaphsonParameters
from LoadFlowEngine.Solvers.stopping_criteria import DefaultStoppingCriteria
from LoadFlowEngine.Simulations.ac_load_flow import AcLoadFlowEngine, AcLoadFlowParameters
from network_factory import create_two_bus_network, create_non_impedant_network


def get_parameters(linear_solver_type: LinearSolverType = LinearSolverType.DENSE, **kwargs) -> AcLoadFlowParameters:
    """
    Plain Newton-Raphson without outer loops, the first voltage controlled bus is the slack
    """
    return AcLoadFlowParameters(slack_bus_selector=FirstSlackBusSelector(),
                                linear_solver_type=linear_solver_type,
                                **kwargs)


def test_two_bus_base_case():
    """
    Reference solution of the two bus network with two parallel lines
    """
    network = create_two_bus_network()
    result = AcLoadFlowEngine(network, get_parameters()).run()

    assert result.converged
    assert result.solver_status == SolverStatus.CONVERGED
    assert result.outer_loop_status == OuterLoopStatus.STABLE
    assert result.newton_raphson_iterations == 3

    b1 = network.get_bus_by_id('b1')
    b2 = network.get_bus_by_id('b2')
    assert np.isclose(b1.v, 1.0, atol=1e-6)
    assert np.isclose(np.rad2deg(b1.angle), 0.0, atol=1e-6)
    assert np.isclose(b2.v, 0.855, atol=1e-3)
    assert np.isclose(np.rad2deg(b2.angle), -13.520904, atol=1e-3)

    # the load is shared equally by the two lines
    for name in ('l12a', 'l12b'):
        line = network.get_branch_by_id(name)
        assert np.isclose(line.p1, 1.0, atol=1e-3)
        assert np.isclose(line.q1, 0.8417, atol=1e-3)
        assert np.isclose(line.p2, -1.0, atol=1e-3)
        assert np.isclose(line.q2, -0.5, atol=1e-3)

    # the slack produces exactly its target
    assert abs(result.slack_bus_active_power_mismatch) < 1e-1

    # the generator gets the reactive power of the slack bus
    g1 = b1.generators[0]
    assert np.isclose(g1.p, 2.0, atol=1e-3)
    assert np.isclose(g1.q, 1.6834, atol=1e-3)


def test_two_bus_sparse_and_dense_agree():
    network_dense = create_two_bus_network()
    network_sparse = create_two_bus_network()
    AcLoadFlowEngine(network_dense, get_parameters(LinearSolverType.DENSE)).run()
    AcLoadFlowEngine(network_sparse, get_parameters(LinearSolverType.SPARSE)).run()

    assert np.allclose(network_dense.get_v(), network_sparse.get_v(), atol=1e-10)
    assert np.allclose(network_dense.get_angles(), network_sparse.get_angles(), atol=1e-10)


def test_power_balance():
    """
    At every bus the calculated injection equals generation minus load
    """
    network = create_two_bus_network()
    params = get_parameters(newton_raphson_parameters=NewtonRaphsonParameters(
        stopping_criteria=DefaultStoppingCriteria(1e-10)))
    result = AcLoadFlowEngine(network, params).run()
    assert result.converged

    for bus in network.buses:
        p_flows = sum(br.p1 if br.bus1 is bus else br.p2 for br in bus.branches)
        q_flows = sum(br.q1 if br.bus1 is bus else br.q2 for br in bus.branches)
        assert np.isclose(p_flows, bus.get_generation_p() - bus.load_target_p, atol=1e-4)
        assert np.isclose(q_flows, bus.get_generation_q() - bus.load_target_q, atol=1e-4)


def test_restart_from_previous_values():
    network = create_two_bus_network()
    params = get_parameters()
    result = AcLoadFlowEngine(network, params).run()
    assert result.newton_raphson_iterations == 3

    params.voltage_initializer = PreviousValueVoltageInitializer()
    result = AcLoadFlowEngine(network, params).run()
    assert result.converged
    assert result.newton_raphson_iterations == 0


def test_restart_keeps_the_non_impedant_flows():
    """
    The dummy flow of l23 carries the whole load, a warm restart must not start it from zero
    """
    network = create_non_impedant_network()
    params = get_parameters()
    result = AcLoadFlowEngine(network, params).run()
    assert result.converged
    assert result.newton_raphson_iterations > 0

    l23 = network.get_branch_by_id('l23')
    assert np.isclose(l23.p1, 2.0, atol=1e-3)
    assert np.isclose(l23.q1, 1.0, atol=1e-3)

    params.voltage_initializer = PreviousValueVoltageInitializer()
    result = AcLoadFlowEngine(network, params).run()
    assert result.converged
    assert result.newton_raphson_iterations == 0
    assert np.isclose(l23.p1, 2.0, atol=1e-3)


def test_open_line():
    """
    Opening one side of a line moves all the flow to the other line
    """
    network = create_two_bus_network(load_p=1.0, load_q=0.5)
    l12a = network.get_branch_by_id('l12a')
    l12b = network.get_branch_by_id('l12b')
    l12b.disconnect(BranchSide.TWO)

    result = AcLoadFlowEngine(network, get_parameters()).run()
    assert result.converged

    # same solution as the base case: half the load over twice the reactance
    b2 = network.get_bus_by_id('b2')
    assert np.isclose(b2.v, 0.855, atol=1e-3)
    assert np.isclose(np.rad2deg(b2.angle), -13.520904, atol=1e-3)

    assert np.isclose(l12a.p1, 1.0, atol=1e-3)
    assert np.isclose(l12a.q1, 0.8417, atol=1e-3)
    assert np.isclose(l12a.p2, -1.0, atol=1e-3)
    assert np.isclose(l12a.q2, -0.5, atol=1e-3)

    # without shunts the open line carries nothing and its open side is undefined
    assert np.isclose(l12b.p1, 0.0, atol=1e-9)
    assert np.isclose(l12b.q1, 0.0, atol=1e-9)
    assert np.isnan(l12b.p2)
    assert np.isnan(l12b.q2)


def test_disconnect_round_trip():
    network = create_two_bus_network(load_p=1.0, load_q=0.5)
    b2 = network.get_bus_by_id('b2')
    l12b = network.get_branch_by_id('l12b')

    result = AcLoadFlowEngine(network, get_parameters()).run()
    assert result.converged
    v_ref = b2.v
    angle_ref = b2.angle

    l12b.disconnect()
    assert l12b.is_disabled
    result = AcLoadFlowEngine(network, get_parameters()).run()
    assert result.converged
    assert b2.v < v_ref
    assert np.isnan(l12b.p1) and np.isnan(l12b.p2)

    l12b.connect()
    assert l12b.is_closed
    result = AcLoadFlowEngine(network, get_parameters()).run()
    assert result.converged
    assert np.isclose(b2.v, v_ref, atol=1e-8)
    assert np.isclose(b2.angle, angle_ref, atol=1e-8)


def test_unrealistic_state():
    """
    The solution exists but the voltage at b2 is below the realistic band
    """
    network = create_two_bus_network()
    logger = Logger()
    params = get_parameters(newton_raphson_parameters=NewtonRaphsonParameters(min_realistic_voltage=0.9))
    result = AcLoadFlowEngine(network, params, logger=logger).run()

    assert result.solver_status == SolverStatus.UNREALISTIC_STATE
    assert not result.converged
    assert any(e.msg == "Unrealistic voltage" and e.device == 'b2' for e in logger.entries)


def test_max_iterations_reached():
    network = create_two_bus_network()
    logger = Logger()
    params = get_parameters(newton_raphson_parameters=NewtonRaphsonParameters(max_iterations=1))
    result = AcLoadFlowEngine(network, params, logger=logger).run()

    assert result.solver_status == SolverStatus.MAX_ITERATION_REACHED
    assert result.newton_raphson_iterations == 1
    assert logger.count_type(LogSeverity.Divergence) == 1

    # the network holds the last iterate: one Newton step from flat start
    b2 = network.get_bus_by_id('b2')
    assert np.isclose(b2.v, 0.9, atol=1e-9)
    assert np.isclose(b2.angle, -0.2, atol=1e-9)


def test_non_impedant_branch():
    """
    b2 and b3 are the same electrical node
    """
    network = create_non_impedant_network()
    result = AcLoadFlowEngine(network, get_parameters()).run()
    assert result.converged

    b2 = network.get_bus_by_id('b2')
    b3 = network.get_bus_by_id('b3')
    assert np.isclose(b2.v, b3.v, atol=1e-9)
    assert np.isclose(b2.angle, b3.angle, atol=1e-9)
    assert np.isclose(b3.v, 0.855, atol=1e-3)

    l23 = network.get_branch_by_id('l23')
    assert np.isclose(l23.p1, 2.0, atol=1e-3)
    assert np.isclose(l23.q1, 1.0, atol=1e-3)
    assert np.isclose(l23.p2, -2.0, atol=1e-3)
    assert np.isclose(l23.q2, -1.0, atol=1e-3)
