# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from LoadFlowEngine.enumerations import SolverStatus, LinearSolverType
from LoadFlowEngine.Network.slack_bus_selector import FirstSlackBusSelector
from LoadFlowEngine.Simulations.dc_load_flow import (DcLoadFlowEngine, DcLoadFlowParameters,
                                                     DcValueVoltageInitializer)
from LoadFlowEngine.Simulations.ac_load_flow import AcLoadFlowEngine, AcLoadFlowParameters
from LoadFlowEngine.api import run_dc_load_flow
from network_factory import create_two_bus_network, create_three_bus_network, create_non_impedant_network


def test_dc_two_bus():
    network = create_two_bus_network()
    result = run_dc_load_flow(network, DcLoadFlowParameters(slack_bus_selector=FirstSlackBusSelector(),
                                                            linear_solver_type=LinearSolverType.DENSE))

    assert result.converged
    assert result.status == SolverStatus.CONVERGED

    b2 = network.get_bus_by_id('b2')
    assert np.isclose(b2.angle, -0.2)
    assert b2.v == 1.0

    for name in ('l12a', 'l12b'):
        line = network.get_branch_by_id(name)
        assert np.isclose(line.p1, 1.0)
        assert np.isclose(line.p2, -1.0)
        assert np.isnan(line.q1)

    assert np.isclose(result.slack_bus_active_power_mismatch, 0.0, atol=1e-8)


def test_dc_is_linear():
    network1 = create_two_bus_network(load_p=1.5)
    network2 = create_two_bus_network(load_p=3.0)
    params = DcLoadFlowParameters(slack_bus_selector=FirstSlackBusSelector())

    DcLoadFlowEngine(network1, params).run()
    DcLoadFlowEngine(network2, params).run()

    assert np.allclose(2.0 * network1.get_angles(), network2.get_angles())
    assert np.isclose(2.0 * network1.get_branch_by_id('l12a').p1, network2.get_branch_by_id('l12a').p1)


def test_dc_slack_mismatch():
    """
    The slack takes whatever the generation targets leave unbalanced, reported in MW
    """
    network = create_three_bus_network()
    result = DcLoadFlowEngine(network, DcLoadFlowParameters(slack_bus_selector=FirstSlackBusSelector())).run()

    assert result.converged
    assert np.isclose(result.slack_bus_active_power_mismatch, 100.0)

    # lossless: the flows leaving the load bus match its demand
    b3 = network.get_bus_by_id('b3')
    assert np.isclose(b3.calculated_p, -3.0)


def test_dc_non_impedant_branch():
    network = create_non_impedant_network()
    result = DcLoadFlowEngine(network, DcLoadFlowParameters(slack_bus_selector=FirstSlackBusSelector())).run()

    assert result.converged
    b2 = network.get_bus_by_id('b2')
    b3 = network.get_bus_by_id('b3')
    assert np.isclose(b2.angle, b3.angle)
    assert np.isclose(network.get_branch_by_id('l23').p1, 2.0)


def test_dc_voltage_initializer():
    """
    The DC angles are computed on a copy, the network keeps its state
    """
    network = create_two_bus_network()
    network.select_slack_bus(FirstSlackBusSelector())

    initializer = DcValueVoltageInitializer(LinearSolverType.DENSE)
    initializer.prepare(network)

    b1 = network.get_bus_by_id('b1')
    b2 = network.get_bus_by_id('b2')
    assert np.isclose(initializer.get_angle(b2), -0.2)
    assert np.isclose(initializer.get_angle(b1), 0.0)
    assert initializer.get_magnitude(b2) == 1.0

    assert b2.angle == 0.0
    assert np.isnan(network.get_branch_by_id('l12a').p1)


def test_ac_from_dc_values():
    network = create_two_bus_network()
    params = AcLoadFlowParameters(slack_bus_selector=FirstSlackBusSelector(),
                                  voltage_initializer=DcValueVoltageInitializer(LinearSolverType.DENSE),
                                  linear_solver_type=LinearSolverType.DENSE)
    result = AcLoadFlowEngine(network, params).run()

    assert result.converged
    b2 = network.get_bus_by_id('b2')
    assert np.isclose(b2.v, 0.855, atol=1e-3)
    assert np.isclose(np.rad2deg(b2.angle), -13.520904, atol=1e-3)
