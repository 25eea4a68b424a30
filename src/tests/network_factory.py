# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
"""
Small networks shared by the tests, every magnitude in p.u.
"""
from LoadFlowEngine.Network.bus import LfBus
from LoadFlowEngine.Network.branch import LfBranch
from LoadFlowEngine.Network.generator import LfGenerator
from LoadFlowEngine.Network.network import LfNetwork
from LoadFlowEngine.Network.reactive_limits import MinMaxReactiveLimits


def create_two_bus_network(load_p: float = 2.0, load_q: float = 1.0, x: float = 0.2) -> LfNetwork:
    """
    b1 (generator regulating at 1 p.u.) --- two parallel lines --- b2 (load)

    With the default values the equivalent reactance is 0.1 and the solution is
    V2 = 0.855 p.u., angle2 = -13.520904 deg, P1 = 2.0 p.u., Q1 = 1.683 p.u. (both lines together)
    :param load_p: load active power at b2
    :param load_q: load reactive power at b2
    :param x: reactance of each line
    """
    network = LfNetwork(sb=100.0, name='two bus')

    b1 = network.add_bus(LfBus(idtag='b1'))
    b1.add_generator(LfGenerator(idtag='g1', target_p=load_p, min_p=0.0, max_p=10.0,
                                 voltage_regulator_on=True, target_v=1.0))

    b2 = network.add_bus(LfBus(idtag='b2', load_target_p=load_p, load_target_q=load_q))

    network.add_branch(LfBranch(idtag='l12a', bus1=b1, bus2=b2, r=0.0, x=x))
    network.add_branch(LfBranch(idtag='l12b', bus1=b1, bus2=b2, r=0.0, x=x))

    return network


def create_three_bus_network(g1_target_p: float = 1.0, g1_max_p: float = 3.0,
                             g2_target_p: float = 1.0, g2_max_p: float = 1.5,
                             g2_target_v: float = 1.0, g2_max_q: float = 9999.0,
                             load_p: float = 3.0, load_q: float = 0.5) -> LfNetwork:
    """
    Meshed network of three buses:
        b1: generator g1 regulating at 1 p.u.
        b2: generator g2 regulating at g2_target_v with a reactive limit
        b3: load
    """
    network = LfNetwork(sb=100.0, name='three bus')

    b1 = network.add_bus(LfBus(idtag='b1'))
    b1.add_generator(LfGenerator(idtag='g1', target_p=g1_target_p, min_p=0.0, max_p=g1_max_p,
                                 voltage_regulator_on=True, target_v=1.0))

    b2 = network.add_bus(LfBus(idtag='b2'))
    b2.add_generator(LfGenerator(idtag='g2', target_p=g2_target_p, min_p=0.0, max_p=g2_max_p,
                                 voltage_regulator_on=True, target_v=g2_target_v,
                                 reactive_limits=MinMaxReactiveLimits(min_q=-g2_max_q, max_q=g2_max_q)))

    b3 = network.add_bus(LfBus(idtag='b3', load_target_p=load_p, load_target_q=load_q))

    network.add_branch(LfBranch(idtag='l13', bus1=b1, bus2=b3, r=0.01, x=0.1))
    network.add_branch(LfBranch(idtag='l23', bus1=b2, bus2=b3, r=0.01, x=0.1))
    network.add_branch(LfBranch(idtag='l12', bus1=b1, bus2=b2, r=0.01, x=0.1))

    return network


def create_two_island_network() -> LfNetwork:
    """
    Two copies of the two bus network (with half the load) in the same LfNetwork, plus
    a lonely load bus that cannot be solved
    """
    network = LfNetwork(sb=100.0, name='two islands')

    for k in (1, 2):
        b1 = network.add_bus(LfBus(idtag=f'i{k}_b1'))
        b1.add_generator(LfGenerator(idtag=f'i{k}_g1', target_p=1.0, max_p=10.0,
                                     voltage_regulator_on=True, target_v=1.0))
        b2 = network.add_bus(LfBus(idtag=f'i{k}_b2', load_target_p=1.0, load_target_q=0.5))
        network.add_branch(LfBranch(idtag=f'i{k}_l12a', bus1=b1, bus2=b2, x=0.2))
        network.add_branch(LfBranch(idtag=f'i{k}_l12b', bus1=b1, bus2=b2, x=0.2))

    network.add_bus(LfBus(idtag='lonely', load_target_p=0.1))

    return network


def create_non_impedant_network() -> LfNetwork:
    """
    The two bus network where the load hangs from b3, linked to b2 through a branch without impedance
    """
    network = create_two_bus_network()
    b2 = network.get_bus_by_id('b2')
    b3 = network.add_bus(LfBus(idtag='b3', load_target_p=b2.load_target_p, load_target_q=b2.load_target_q))
    b2.load_target_p = 0.0
    b2.load_target_q = 0.0
    network.add_branch(LfBranch(idtag='l23', bus1=b2, bus2=b3, r=0.0, x=0.0))
    return network


def create_disconnected_load_network() -> LfNetwork:
    """
    A slack bus and a load island made of two buses without any path to the slack.
    Solved as a whole, the angles of the island have no reference.
    """
    network = LfNetwork(sb=100.0, name='floating island')

    b1 = network.add_bus(LfBus(idtag='b1'))
    b1.add_generator(LfGenerator(idtag='g1', target_p=0.0, max_p=10.0, voltage_regulator_on=True, target_v=1.0))

    b2 = network.add_bus(LfBus(idtag='b2', load_target_p=0.5, load_target_q=0.1))
    b3 = network.add_bus(LfBus(idtag='b3', load_target_p=0.5, load_target_q=0.1))
    network.add_branch(LfBranch(idtag='l23', bus1=b2, bus2=b3, r=0.0, x=0.1))

    return network
