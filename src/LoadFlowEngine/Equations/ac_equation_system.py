# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from LoadFlowEngine.basic_structures import Logger
from LoadFlowEngine.enumerations import EquationType, VariableType, BranchSide, FlowQuantity
from LoadFlowEngine.exceptions import ConflictingVoltageControlError
from LoadFlowEngine.Equations.equation_system import EquationSystem
from LoadFlowEngine.Equations.equation_term import VariableEquationTerm
from LoadFlowEngine.Equations.ac_equation_terms import ClosedBranchAcFlowTerm, OpenBranchAcFlowTerm, BusShuntAcTerm
from LoadFlowEngine.Network.network import LfNetwork
from LoadFlowEngine.Network.bus import TARGET_V_EPSILON

_FLOW_KEYS = {
    (BranchSide.ONE, FlowQuantity.ACTIVE): 'p1',
    (BranchSide.ONE, FlowQuantity.REACTIVE): 'q1',
    (BranchSide.TWO, FlowQuantity.ACTIVE): 'p2',
    (BranchSide.TWO, FlowQuantity.REACTIVE): 'q2',
}

_BUS_EQUATION = {
    FlowQuantity.ACTIVE: EquationType.BUS_TARGET_P,
    FlowQuantity.REACTIVE: EquationType.BUS_TARGET_Q,
}


def create_bus_equations(network: LfNetwork, equation_system: EquationSystem):
    """
    P, Q and V equations of every bus plus the phase reference of the slack.
    A voltage controlled bus has its V equation active and its Q equation inactive, the opposite otherwise.
    The slack P equation is inactive: its mismatch is what the distributed slack absorbs.
    """
    for bus in network.buses:
        p = equation_system.create_equation(bus.num, EquationType.BUS_TARGET_P)
        q = equation_system.create_equation(bus.num, EquationType.BUS_TARGET_Q)

        v_var = equation_system.create_variable(bus.num, VariableType.BUS_V)
        v = equation_system.create_equation(bus.num, EquationType.BUS_TARGET_V)
        v.add_term(VariableEquationTerm(v_var, bus=bus))

        if bus.slack:
            phi_var = equation_system.create_variable(bus.num, VariableType.BUS_PHI)
            phi = equation_system.create_equation(bus.num, EquationType.BUS_TARGET_PHI)
            phi.add_term(VariableEquationTerm(phi_var, bus=bus))
            p.active = False

        v.active = bus.voltage_control_enabled
        q.active = not bus.voltage_control_enabled

        if bus.shunt_g != 0.0:
            p.add_term(BusShuntAcTerm(bus, FlowQuantity.ACTIVE, equation_system))
        if bus.shunt_b != 0.0:
            q.add_term(BusShuntAcTerm(bus, FlowQuantity.REACTIVE, equation_system))


def create_branch_equations(network: LfNetwork, equation_system: EquationSystem):
    """
    Flow terms of the impedant branches, attached to the P and Q equations of their buses
    """
    for branch in network.branches:

        if branch.is_disabled or branch.is_non_impedant:
            continue

        if branch.is_closed:
            for side in (BranchSide.ONE, BranchSide.TWO):
                bus = branch.get_bus(side)
                for quantity in (FlowQuantity.ACTIVE, FlowQuantity.REACTIVE):
                    term = ClosedBranchAcFlowTerm(branch, side, quantity, equation_system)
                    equation_system.create_equation(bus.num, _BUS_EQUATION[quantity]).add_term(term)
                    branch.set_evaluable(_FLOW_KEYS[(side, quantity)], term)

        else:
            side = BranchSide.ONE if branch.get_bus1() is not None else BranchSide.TWO
            bus = branch.get_bus(side)
            for quantity in (FlowQuantity.ACTIVE, FlowQuantity.REACTIVE):
                term = OpenBranchAcFlowTerm(branch, side, quantity, equation_system)
                equation_system.create_equation(bus.num, _BUS_EQUATION[quantity]).add_term(term)
                branch.set_evaluable(_FLOW_KEYS[(side, quantity)], term)


def create_non_impedant_branch_equations(network: LfNetwork, equation_system: EquationSystem, logger: Logger):
    """
    A non impedant branch of the spanning forest gets dummy P and Q flow variables, added to the
    balance of its buses, and two equations making both sides share the same voltage:
        r1 v1 - r2 v2 = 0
        φ1 - φ2 = a2 - a1
    """
    for branch in network.get_non_impedant_spanning_forest(logger):
        bus1 = branch.get_bus1()
        bus2 = branch.get_bus2()

        for var_type, quantity in ((VariableType.DUMMY_P, FlowQuantity.ACTIVE),
                                   (VariableType.DUMMY_Q, FlowQuantity.REACTIVE)):
            dummy = equation_system.create_variable(branch.num, var_type)
            term1 = VariableEquationTerm(dummy, 1.0)
            term2 = VariableEquationTerm(dummy, -1.0)
            equation_system.create_equation(bus1.num, _BUS_EQUATION[quantity]).add_term(term1)
            equation_system.create_equation(bus2.num, _BUS_EQUATION[quantity]).add_term(term2)
            branch.set_evaluable(_FLOW_KEYS[(BranchSide.ONE, quantity)], term1)
            branch.set_evaluable(_FLOW_KEYS[(BranchSide.TWO, quantity)], term2)

        z_v = equation_system.create_equation(branch.num, EquationType.ZERO_V)
        z_v.add_term(VariableEquationTerm(equation_system.create_variable(bus1.num, VariableType.BUS_V),
                                          branch.r1, bus=bus1))
        z_v.add_term(VariableEquationTerm(equation_system.create_variable(bus2.num, VariableType.BUS_V),
                                          -branch.r2, bus=bus2))

        z_phi = equation_system.create_equation(branch.num, EquationType.ZERO_PHI)
        z_phi.add_term(VariableEquationTerm(equation_system.create_variable(bus1.num, VariableType.BUS_PHI),
                                            1.0, bus=bus1))
        z_phi.add_term(VariableEquationTerm(equation_system.create_variable(bus2.num, VariableType.BUS_PHI),
                                            -1.0, bus=bus2))


def merge_non_impedant_voltage_controls(network: LfNetwork, equation_system: EquationSystem, logger: Logger):
    """
    Buses linked by non impedant branches share one voltage, so only one of them may keep its V equation.
    The slack is preferred, otherwise the lowest bus number.
    """
    for cluster in network.get_non_impedant_clusters():
        controllers = [bus for bus in cluster if bus.voltage_control_enabled]
        if len(controllers) < 2:
            continue

        reference = next((bus for bus in controllers if bus.slack), controllers[0])
        for bus in controllers:
            if bus is reference:
                continue

            if abs(bus.target_v - reference.target_v) > TARGET_V_EPSILON:
                raise ConflictingVoltageControlError(bus_id=bus.idtag,
                                                     target_v=bus.target_v,
                                                     other_target_v=reference.target_v,
                                                     message="Buses linked by non impedant branches "
                                                             "with different target voltages")

            bus.voltage_control_enabled = False
            equation_system.get_equation(bus.num, EquationType.BUS_TARGET_V).active = False
            equation_system.get_equation(bus.num, EquationType.BUS_TARGET_Q).active = True
            logger.add_warning("Voltage control shared through a non impedant branch",
                               device=bus.idtag, value=reference.idtag)


def create_ac_equation_system(network: LfNetwork, logger: Logger = None) -> EquationSystem:
    """
    Build the AC equation system of a network whose slack bus is already selected
    :param network: LfNetwork
    :param logger: Logger
    :return: EquationSystem
    """
    if logger is None:
        logger = Logger()

    equation_system = EquationSystem(network)

    for bus in network.buses:
        bus.reset_voltage_control()
    for branch in network.branches:
        branch.evaluables.clear()

    with equation_system.deferred_indexing():
        create_bus_equations(network, equation_system)
        create_branch_equations(network, equation_system)
        create_non_impedant_branch_equations(network, equation_system, logger)
        merge_non_impedant_voltage_controls(network, equation_system, logger)

    return equation_system
