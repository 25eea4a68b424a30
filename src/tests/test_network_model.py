# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import pytest
from LoadFlowEngine.basic_structures import Logger
from LoadFlowEngine.enumerations import BalanceType, VariableType, BranchSide, BusMode
from LoadFlowEngine.exceptions import (ConflictingVoltageControlError, NonImpedantBranchError, UnknownVariableError,
                                       ModelError, SlackError)
from LoadFlowEngine.Network.bus import LfBus, dispatch_q
from LoadFlowEngine.Network.branch import LfBranch
from LoadFlowEngine.Network.generator import LfGenerator
from LoadFlowEngine.Network.network import LfNetwork
from LoadFlowEngine.Network.reactive_limits import MinMaxReactiveLimits, ReactiveCapabilityCurve, ReactiveDiagram
from LoadFlowEngine.Network.slack_bus_selector import (FirstSlackBusSelector, MostMeshedSlackBusSelector,
                                                       NameSlackBusSelector, LargestGeneratorSlackBusSelector)
from LoadFlowEngine.Equations.variable import Variable
from LoadFlowEngine.Equations.equation_term import VariableEquationTerm
from network_factory import create_two_bus_network, create_three_bus_network, create_two_island_network


def test_conflicting_voltage_control():
    bus = LfBus(idtag='b1')
    bus.add_generator(LfGenerator(idtag='g1', voltage_regulator_on=True, target_v=1.0))

    # same target: fine
    bus.add_generator(LfGenerator(idtag='g2', voltage_regulator_on=True, target_v=1.0))
    assert bus.voltage_control

    with pytest.raises(ConflictingVoltageControlError):
        bus.add_generator(LfGenerator(idtag='g3', voltage_regulator_on=True, target_v=1.02))


def test_bus_aggregates_generators():
    bus = LfBus(idtag='b1')
    bus.add_generator(LfGenerator(idtag='g1', target_p=1.0, min_p=0.2, max_p=2.0, voltage_regulator_on=True))
    bus.add_generator(LfGenerator(idtag='g2', target_p=0.5, target_q=0.3, max_p=1.0))

    assert np.isclose(bus.generation_target_p, 1.5)
    assert np.isclose(bus.generation_target_q, 0.3)
    assert np.isclose(bus.min_p, 0.2)
    assert np.isclose(bus.max_p, 3.0)

    # no diagram given: unlimited
    assert bus.get_max_q() == np.inf
    assert bus.get_min_q() == -np.inf


def test_network_consistency():
    network = LfNetwork()
    b1 = network.add_bus(LfBus(idtag='b1'))
    b2 = network.add_bus(LfBus(idtag='b2'))
    network.add_branch(LfBranch(idtag='l12', bus1=b1, bus2=b2, x=0.1))

    with pytest.raises(ModelError):
        network.add_bus(LfBus(idtag='b1'))

    with pytest.raises(ModelError):
        network.add_branch(LfBranch(idtag='l12', bus1=b1, bus2=b2, x=0.1))

    with pytest.raises(ModelError):
        network.add_branch(LfBranch(idtag='loop', bus1=b1, bus2=b1, x=0.1))

    with pytest.raises(ModelError):
        network.add_branch(LfBranch(idtag='foreign', bus1=b1, bus2=LfBus(idtag='b3'), x=0.1))

    assert b1.num == 0 and b2.num == 1
    assert network.get_branch_by_id('l12').num == 0
    assert network.get_bus_by_id('nope') is None


def test_non_impedant_branch_admittance():
    network = create_two_bus_network()
    branch = LfBranch(idtag='zero', bus1=network.get_bus(0), bus2=network.get_bus(1))
    assert branch.is_non_impedant

    with pytest.raises(NonImpedantBranchError):
        _ = branch.y

    assert np.isclose(network.get_branch_by_id('l12a').y, -5j)


def test_branch_sides():
    network = create_two_bus_network()
    branch = network.get_branch_by_id('l12a')

    branch.disconnect(BranchSide.ONE)
    assert branch.get_bus1() is None
    assert branch.get_bus(BranchSide.TWO).idtag == 'b2'
    assert not branch.is_closed
    assert not branch.is_disabled

    branch.disconnect()
    assert branch.is_disabled

    branch.connect()
    assert branch.is_closed


def test_unknown_variable_derivative():
    v = Variable(0, VariableType.BUS_V)
    phi = Variable(0, VariableType.BUS_PHI)
    term = VariableEquationTerm(v, coefficient=2.0)

    assert term.der(v) == 2.0
    with pytest.raises(UnknownVariableError):
        term.der(phi)


def test_split_components():
    network = create_two_island_network()
    components = network.split_components()

    assert [c.bus_number for c in components] == [2, 2, 1]
    assert [c.branch_number for c in components] == [2, 2, 0]
    assert [c.num for c in components] == [0, 1, 2]

    # the components hold copies
    components[0].get_bus_by_id('i1_b2').v = 0.9
    assert network.get_bus_by_id('i1_b2').v == 1.0

    # the state goes back on demand
    network.set_state_from(components[0])
    assert network.get_bus_by_id('i1_b2').v == 0.9
    assert network.get_bus_by_id('i2_b2').v == 1.0


def test_slack_bus_selectors():
    network = create_three_bus_network()

    assert network.select_slack_bus(FirstSlackBusSelector()).idtag == 'b1'
    assert network.select_slack_bus(NameSlackBusSelector('b2')).idtag == 'b2'
    assert sum(bus.slack for bus in network.buses) == 1
    assert network.get_slack_bus().idtag == 'b2'

    # both candidates have two branches, the first one wins
    assert network.select_slack_bus(MostMeshedSlackBusSelector()).idtag == 'b1'
    network.get_bus_by_id('b2').nominal_v = 400.0
    assert network.select_slack_bus(MostMeshedSlackBusSelector()).idtag == 'b2'

    assert network.select_slack_bus(LargestGeneratorSlackBusSelector()).idtag == 'b1'

    with pytest.raises(SlackError):
        network.select_slack_bus(NameSlackBusSelector('b4'))

    # a load bus cannot regulate the voltage of the network
    with pytest.raises(SlackError):
        FirstSlackBusSelector().select([network.get_bus_by_id('b3')])


def test_reactive_capability_curve():
    curve = ReactiveCapabilityCurve([(2.0, -0.5, 0.5), (0.0, -1.0, 1.0)])

    assert np.isclose(curve.get_max_q(1.0), 0.75)
    assert np.isclose(curve.get_min_q(1.0), -0.75)
    # the extreme points hold outside the range
    assert np.isclose(curve.get_max_q(3.0), 0.5)
    assert np.isclose(curve.get_max_q(-1.0), 1.0)

    with pytest.raises(ValueError):
        ReactiveCapabilityCurve([(0.0, -1.0, 1.0)])

    with pytest.raises(ValueError):
        MinMaxReactiveLimits(min_q=1.0, max_q=-1.0)


def test_reactive_diagram_envelope():
    diagram = ReactiveDiagram()
    assert diagram.get_max_q(0.0) == np.inf

    diagram.add_diagram(MinMaxReactiveLimits(min_q=-0.2, max_q=0.3))
    diagram.add_diagram(ReactiveCapabilityCurve([(0.0, -1.0, 1.0), (2.0, -0.5, 0.5)]))

    assert len(diagram) == 2
    assert np.isclose(diagram.get_max_q(2.0), 0.5)
    assert np.isclose(diagram.get_min_q(2.0), -0.5)


def test_dispatch_q():
    g1 = LfGenerator(idtag='g1', voltage_regulator_on=True, reactive_limits=MinMaxReactiveLimits(-0.3, 0.3))
    g2 = LfGenerator(idtag='g2', voltage_regulator_on=True, reactive_limits=MinMaxReactiveLimits(-1.0, 1.0))

    dispatch_q([g1, g2], False, 1.0)
    assert np.isclose(g1.q, 0.5)
    assert np.isclose(g2.q, 0.5)

    # g1 is pinned at its maximum and g2 takes the rest
    dispatch_q([g1, g2], True, 1.0)
    assert np.isclose(g1.q, 0.3)
    assert np.isclose(g2.q, 0.7)

    # beyond every limit the total is still dispatched
    dispatch_q([g1, g2], True, 5.0)
    assert np.isclose(g1.q + g2.q, 5.0)


def test_participation_factors():
    gen = LfGenerator(idtag='g', target_p=1.0, min_p=0.5, max_p=4.0, droop=2.0)

    assert gen.get_participation_factor(BalanceType.PROPORTIONAL_TO_GENERATION_P_MAX) == 4.0
    assert gen.get_participation_factor(BalanceType.PROPORTIONAL_TO_GENERATION_P) == 1.0
    assert gen.get_participation_factor(BalanceType.PROPORTIONAL_TO_GENERATION_PARTICIPATION_FACTOR) == 2.0
    assert gen.get_participation_factor(BalanceType.PROPORTIONAL_TO_GENERATION_REMAINING_MARGIN) == 3.0
    assert gen.get_participation_factor(BalanceType.PROPORTIONAL_TO_GENERATION_REMAINING_MARGIN,
                                        positive_mismatch=False) == 0.5

    gen.participating = False
    assert gen.get_participation_factor(BalanceType.PROPORTIONAL_TO_GENERATION_P_MAX) == 0.0


def test_non_impedant_loop_is_reported():
    network = create_two_bus_network()
    b2 = network.get_bus_by_id('b2')
    b3 = network.add_bus(LfBus(idtag='b3'))
    network.add_branch(LfBranch(idtag='z1', bus1=b2, bus2=b3))
    network.add_branch(LfBranch(idtag='z2', bus1=b2, bus2=b3))

    logger = Logger()
    forest = network.get_non_impedant_spanning_forest(logger)

    assert [br.idtag for br in forest] == ['z1']
    assert logger.warning_count() == 1
    assert logger[0].device == 'z2'

    clusters = network.get_non_impedant_clusters()
    assert [[bus.idtag for bus in c] for c in clusters] == [['b2', 'b3']]


def test_mixed_limited_and_unlimited_units():
    """
    A unit without reactive limits makes the whole bus unlimited, the limited one is pinned
    and the free one takes the rest
    """
    bus = LfBus(idtag='b1')
    bus.add_generator(LfGenerator(idtag='g1', voltage_regulator_on=True,
                                  reactive_limits=MinMaxReactiveLimits(-0.1, 0.1)))
    bus.add_generator(LfGenerator(idtag='g2', voltage_regulator_on=True))

    assert len(bus.reactive_diagram) == 2
    assert bus.get_max_q() == np.inf
    assert bus.get_min_q() == -np.inf

    g1, g2 = bus.generators
    dispatch_q(bus.generators, True, 1.0)
    assert np.isclose(g1.q, 0.1)
    assert np.isclose(g2.q, 0.9)

    dispatch_q(bus.generators, True, -1.0)
    assert np.isclose(g1.q, -0.1)
    assert np.isclose(g2.q, -0.9)


def test_narrow_reactive_range_discards_voltage_control():
    bus = LfBus(idtag='b1')
    gen = LfGenerator(idtag='g1', target_p=1.0, target_q=0.002, voltage_regulator_on=True,
                      reactive_limits=MinMaxReactiveLimits(-0.001, 0.003))
    bus.add_generator(gen)

    assert not gen.voltage_regulator_on
    assert not bus.voltage_control
    assert bus.mode == BusMode.PQ
    assert np.isclose(bus.generation_target_q, 0.002)
    assert [idtag for idtag, reason in bus.discarded_voltage_controls] == ['g1']

    # the copies keep the record
    assert bus.copy().discarded_voltage_controls == bus.discarded_voltage_controls


def test_stopped_generator_discards_voltage_control():
    bus = LfBus(idtag='b1')
    stopped = LfGenerator(idtag='g1', target_p=0.0, min_p=0.5, max_p=2.0, target_q=0.1,
                          voltage_regulator_on=True, target_v=1.02)
    bus.add_generator(stopped)

    assert not stopped.voltage_regulator_on
    assert not bus.voltage_control
    assert np.isclose(bus.generation_target_q, 0.1)
    assert 'not started' in bus.discarded_voltage_controls[0][1]

    # without a minimum power a unit at zero still holds the voltage (synchronous condenser)
    condenser = LfGenerator(idtag='g2', target_p=0.0, voltage_regulator_on=True, target_v=1.02)
    bus.add_generator(condenser)
    assert condenser.voltage_regulator_on
    assert bus.voltage_control
    assert np.isclose(bus.target_v, 1.02)
    assert len(bus.discarded_voltage_controls) == 1
