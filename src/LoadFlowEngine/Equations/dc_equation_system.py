# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from LoadFlowEngine.basic_structures import Logger
from LoadFlowEngine.enumerations import EquationType, VariableType, BranchSide
from LoadFlowEngine.Equations.equation_system import EquationSystem
from LoadFlowEngine.Equations.equation_term import VariableEquationTerm
from LoadFlowEngine.Equations.dc_equation_terms import ClosedBranchDcFlowTerm
from LoadFlowEngine.Network.network import LfNetwork


def create_dc_equation_system(network: LfNetwork, logger: Logger = None) -> EquationSystem:
    """
    Build the DC equation system: one P equation per bus (inactive at the slack),
    the slack phase reference and the linearised branch flows.
    Non impedant branches of the spanning forest get a dummy P variable and a phase equality.
    Branches with one side open carry no DC flow.
    :param network: LfNetwork whose slack bus is already selected
    :param logger: Logger
    :return: EquationSystem
    """
    if logger is None:
        logger = Logger()

    equation_system = EquationSystem(network)

    for branch in network.branches:
        branch.evaluables.clear()

    with equation_system.deferred_indexing():

        for bus in network.buses:
            p = equation_system.create_equation(bus.num, EquationType.BUS_TARGET_P)
            if bus.slack:
                phi_var = equation_system.create_variable(bus.num, VariableType.BUS_PHI)
                equation_system.create_equation(bus.num, EquationType.BUS_TARGET_PHI).add_term(
                    VariableEquationTerm(phi_var, bus=bus))
                p.active = False

        for branch in network.branches:
            if not branch.is_closed or branch.is_non_impedant:
                continue

            for side, key in ((BranchSide.ONE, 'p1'), (BranchSide.TWO, 'p2')):
                term = ClosedBranchDcFlowTerm(branch, side, equation_system)
                equation_system.create_equation(branch.get_bus(side).num, EquationType.BUS_TARGET_P).add_term(term)
                branch.set_evaluable(key, term)

        for branch in network.get_non_impedant_spanning_forest(logger):
            bus1 = branch.get_bus1()
            bus2 = branch.get_bus2()
            dummy = equation_system.create_variable(branch.num, VariableType.DUMMY_P)
            term1 = VariableEquationTerm(dummy, 1.0)
            term2 = VariableEquationTerm(dummy, -1.0)
            equation_system.create_equation(bus1.num, EquationType.BUS_TARGET_P).add_term(term1)
            equation_system.create_equation(bus2.num, EquationType.BUS_TARGET_P).add_term(term2)
            branch.set_evaluable('p1', term1)
            branch.set_evaluable('p2', term2)

            z_phi = equation_system.create_equation(branch.num, EquationType.ZERO_PHI)
            z_phi.add_term(VariableEquationTerm(equation_system.create_variable(bus1.num, VariableType.BUS_PHI),
                                                1.0, bus=bus1))
            z_phi.add_term(VariableEquationTerm(equation_system.create_variable(bus2.num, VariableType.BUS_PHI),
                                                -1.0, bus=bus2))

    return equation_system
