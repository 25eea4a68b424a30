# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import pytest
from LoadFlowEngine.enumerations import SolverType, SolverStatus, SlackBusSelectionMode, LogSeverity, BusMode
from LoadFlowEngine.Network.generator import LfGenerator
from LoadFlowEngine.Simulations.load_flow_options import LoadFlowOptions
from LoadFlowEngine.Simulations.load_flow_driver import LoadFlowDriver
from LoadFlowEngine.api import load_flow
from network_factory import create_two_island_network, create_disconnected_load_network


def test_multiple_components():
    """
    Both islands are solved, the lonely load bus has no slack candidate and is skipped
    """
    network = create_two_island_network()
    driver = LoadFlowDriver(network, LoadFlowOptions())
    results = driver.run()

    assert results.converged
    assert len(results.components) == 3
    assert results.components[0].converged
    assert results.components[1].converged
    assert results.components[2].solver_status == SolverStatus.NO_CALCULATION
    assert results.components[2].slack_bus_id == ''

    assert np.array_equal(results.bus_component, [0, 0, 1, 1, 2])

    # the merged state: the islands are identical
    v1 = network.get_bus_by_id('i1_b2').v
    v2 = network.get_bus_by_id('i2_b2').v
    assert np.isclose(v1, 0.9412, atol=1e-3)
    assert np.isclose(v1, v2)
    assert network.get_bus_by_id('i1_b1').slack
    assert network.get_bus_by_id('i2_b1').slack

    assert results.logger.count_type(LogSeverity.Warning) == 1

    # one report per component
    assert len(results.convergence_reports) == 3
    report = results.convergence_reports[0]
    assert report.converged()
    assert report.iterations() == results.components[0].iterations
    assert list(report.to_dataframe().columns) == ['Status', 'Error', 'Elapsed (s)', 'Iterations']
    assert not results.convergence_reports[2].converged()


def test_results_data_frames():
    network = create_two_island_network()
    results = load_flow(network)

    bus_df = results.get_bus_df()
    assert list(bus_df.columns) == ['Vm (kV)', 'Vm (p.u.)', 'Va (deg)', 'P (MW)', 'Q (MVAr)', 'Type', 'Component']
    assert np.isclose(bus_df.loc['i1_b1', 'Vm (p.u.)'], 1.0)
    assert np.isclose(bus_df.loc['i1_b1', 'P (MW)'], 100.0, atol=1e-2)
    assert np.isclose(bus_df.loc['i1_b2', 'P (MW)'], -100.0, atol=1e-2)
    assert np.isnan(bus_df.loc['lonely', 'Vm (p.u.)'])
    assert bus_df.loc['lonely', 'Component'] == 2

    branch_df = results.get_branch_df()
    assert np.isclose(branch_df.loc['i1_l12a', 'Pf (MW)'], 50.0, atol=1e-2)
    assert np.isclose(branch_df.loc['i1_l12a', 'Pt (MW)'], -50.0, atol=1e-2)
    # lossless lines still consume reactive power
    assert np.isclose(branch_df.loc['i1_l12a', 'Ploss (MW)'], 0.0, atol=1e-2)
    assert branch_df.loc['i1_l12a', 'Qloss (MVAr)'] > 0.0

    components_df = results.get_components_df()
    assert components_df.index.name == 'Component'
    assert list(components_df['Slack bus']) == ['i1_b1', 'i2_b1', '']


def test_workers_give_the_same_results():
    network1 = create_two_island_network()
    network2 = create_two_island_network()

    results1 = load_flow(network1, LoadFlowOptions(n_workers=1))
    results2 = load_flow(network2, LoadFlowOptions(n_workers=2))

    assert np.array_equal(results1.voltage_module, results2.voltage_module, equal_nan=True)
    assert np.array_equal(results1.voltage_angle, results2.voltage_angle, equal_nan=True)
    assert np.array_equal(results1.Pf, results2.Pf, equal_nan=True)
    assert [c.num for c in results1.components] == [c.num for c in results2.components]


def test_disabled_branch():
    network = create_two_island_network()
    network.get_branch_by_id('i1_l12b').disconnect()
    results = load_flow(network)

    assert results.converged
    k = list(results.branch_names).index('i1_l12b')
    assert np.isnan(results.Pf[k])
    assert np.isnan(results.Qt[k])

    # the remaining line carries the whole load of the island, as in the base two bus case
    assert np.isclose(network.get_bus_by_id('i1_b2').v, 0.855, atol=1e-3)


def test_slack_by_name():
    network = create_two_island_network()
    options = LoadFlowOptions(slack_bus_selection_mode=SlackBusSelectionMode.NAME, slack_bus_id='i2_b1')
    driver = LoadFlowDriver(network, options)
    results = driver.run()

    assert results.converged
    assert results.components[0].slack_bus_id == 'i1_b1'
    assert results.components[1].slack_bus_id == 'i2_b1'


def test_dc_driver():
    network = create_two_island_network()
    results = load_flow(network, LoadFlowOptions(solver_type=SolverType.DC))

    assert results.converged
    assert results.components[0].iterations == 1
    assert np.isclose(network.get_bus_by_id('i1_b2').angle, -0.1)
    assert np.isclose(network.get_branch_by_id('i2_l12a').p1, 0.5)


def test_floating_island_is_not_solved():
    network = create_disconnected_load_network()
    results = load_flow(network)

    assert results.converged
    assert results.components[0].solver_status == SolverStatus.CONVERGED
    assert results.components[1].solver_status == SolverStatus.NO_CALCULATION
    assert np.isnan(results.voltage_module[1])
    assert np.isnan(results.voltage_module[2])


def test_options_round_trip():
    options = LoadFlowOptions(solver_type=SolverType.DC, tolerance=1e-6, n_workers=3)
    data = options.to_dict()

    assert data['solver_type'] == 'DC'
    assert data['n_workers'] == 3
    assert list(data.keys()) == options.get_headers()

    parsed = LoadFlowOptions()
    parsed.parse_dict(data)
    assert parsed.solver_type == SolverType.DC
    assert parsed.tolerance == 1e-6
    assert parsed.n_workers == 3

    with pytest.raises(KeyError):
        parsed.parse_dict({'not_an_option': 1})


def test_discarded_voltage_control_is_reported():
    """
    A stopped unit at the load bus keeps its reactive set point and the driver says why
    """
    network = create_two_island_network()
    b2 = network.get_bus_by_id('i1_b2')
    b2.add_generator(LfGenerator(idtag='stopped', target_p=0.0, min_p=0.2, max_p=1.0, target_q=0.1,
                                 voltage_regulator_on=True, target_v=1.0))
    results = load_flow(network)

    assert results.converged
    assert b2.mode == BusMode.PQ
    entries = [e for e in results.logger.entries if e.device == 'stopped']
    assert len(entries) == 1
    assert entries[0].severity == LogSeverity.Information
    assert entries[0].msg.startswith("Voltage control discarded: not started")

    # the unit supplies part of the load reactive power, the voltage rises above the other island
    assert network.get_bus_by_id('i1_b2').v > network.get_bus_by_id('i2_b2').v
