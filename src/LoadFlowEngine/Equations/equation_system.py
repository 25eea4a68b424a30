# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Dict, Tuple, Union, Iterable, TYPE_CHECKING
from contextlib import contextmanager
import numpy as np
from LoadFlowEngine.basic_structures import Vec
from LoadFlowEngine.enumerations import EquationType, VariableType, EquationEventType, EquationTermEventType
from LoadFlowEngine.Equations.variable import Variable
from LoadFlowEngine.Equations.equation import Equation
from LoadFlowEngine.Equations.equation_term import EquationTerm
from LoadFlowEngine.Network.network import LfNetwork

if TYPE_CHECKING:
    from LoadFlowEngine.Solvers.voltage_initializer import VoltageInitializer


class EquationSystemListener:
    """
    Receives the structural changes of an equation system
    """

    def on_equation_change(self, equation: Equation, event_type: EquationEventType) -> None:
        pass

    def on_equation_term_change(self, term: EquationTerm, event_type: EquationTermEventType) -> None:
        pass

    def on_state_update(self) -> None:
        """
        The term caches have been refreshed with a new state vector
        """
        pass


def compute_rows(equations: Iterable[Equation]) -> List[Equation]:
    """
    Ordered active set: the active equations sorted by (type, element number).
    The position in the list is the row.
    :param equations: all the equations
    :return: sorted active equations
    """
    return sorted((eq for eq in equations if eq.active), key=lambda eq: eq.key)


def compute_columns(active_equations: Iterable[Equation]) -> List[Variable]:
    """
    Variables referenced by the active equations sorted by (type, element number).
    The position in the list is the column.
    :param active_equations: active equations
    :return: sorted variables
    """
    variables = set()
    for eq in active_equations:
        for term in eq.terms:
            variables.update(term.variables)
    return sorted(variables, key=lambda var: var.key)


class EquationSystem:
    """
    Equations and variables of a network.

    Equations are created once and toggled active / inactive at runtime.
    Every change of the active set renumbers rows and columns immediately,
    unless it happens inside a deferred_indexing() block.
    """

    def __init__(self, network: LfNetwork):
        """

        :param network: LfNetwork
        """
        self.network = network

        self._equations: Dict[Tuple[int, EquationType], Equation] = dict()

        self._variables: Dict[Tuple[int, VariableType], Variable] = dict()

        self._listeners: List[EquationSystemListener] = list()

        self._sorted_equations: List[Equation] = list()

        self._sorted_variables: List[Variable] = list()

        self._defer_indexing = False

        self._index_pending = False

    # ------------------------------------------------------------------------------------------------------------------
    # structure
    # ------------------------------------------------------------------------------------------------------------------

    def create_variable(self, num: int, tpe: VariableType) -> Variable:
        """
        Get or create a variable
        :param num: element number
        :param tpe: VariableType
        :return: Variable
        """
        key = (num, tpe)
        var = self._variables.get(key, None)
        if var is None:
            var = Variable(num, tpe)
            self._variables[key] = var
        return var

    def create_equation(self, num: int, tpe: EquationType) -> Equation:
        """
        Get or create an equation, new equations are active
        :param num: element number
        :param tpe: EquationType
        :return: Equation
        """
        key = (num, tpe)
        eq = self._equations.get(key, None)
        if eq is None:
            eq = Equation(num, tpe, self)
            self._equations[key] = eq
            self.notify_equation_change(eq, EquationEventType.EQUATION_CREATED)
        return eq

    def get_equation(self, num: int, tpe: EquationType) -> Union[Equation, None]:
        return self._equations.get((num, tpe), None)

    def has_equation(self, num: int, tpe: EquationType) -> bool:
        return (num, tpe) in self._equations

    def get_variable(self, num: int, tpe: VariableType) -> Union[Variable, None]:
        return self._variables.get((num, tpe), None)

    @property
    def equations(self) -> List[Equation]:
        """
        All the equations, active or not
        """
        return list(self._equations.values())

    @property
    def sorted_equations_to_solve(self) -> List[Equation]:
        """
        Active equations in row order
        """
        return self._sorted_equations

    @property
    def sorted_variables_to_find(self) -> List[Variable]:
        """
        Referenced variables in column order
        """
        return self._sorted_variables

    @property
    def row_count(self) -> int:
        return len(self._sorted_equations)

    @property
    def column_count(self) -> int:
        return len(self._sorted_variables)

    def add_listener(self, listener: EquationSystemListener):
        self._listeners.append(listener)

    def remove_listener(self, listener: EquationSystemListener):
        self._listeners.remove(listener)

    def notify_equation_change(self, equation: Equation, event_type: EquationEventType):
        """
        Called by the equations on creation and (de)activation
        """
        self._reindex()
        for listener in self._listeners:
            listener.on_equation_change(equation, event_type)

    def notify_term_added(self, term: EquationTerm):
        """
        Called by the equations when a term is attached
        """
        self._reindex()
        for listener in self._listeners:
            listener.on_equation_term_change(term, EquationTermEventType.EQUATION_TERM_ADDED)

    @contextmanager
    def deferred_indexing(self):
        """
        Build many equations with a single renumbering at the end of the block
        """
        self._defer_indexing = True
        try:
            yield self
        finally:
            self._defer_indexing = False
            if self._index_pending:
                self._reindex()

    def _reindex(self):
        """
        Renumber rows and columns from the active set
        """
        if self._defer_indexing:
            self._index_pending = True
            return

        self._index_pending = False

        for eq in self._sorted_equations:
            eq.row = -1
        for var in self._sorted_variables:
            var.column = -1

        self._sorted_equations = compute_rows(self._equations.values())
        for row, eq in enumerate(self._sorted_equations):
            eq.row = row

        self._sorted_variables = compute_columns(self._sorted_equations)
        for column, var in enumerate(self._sorted_variables):
            var.column = column

    # ------------------------------------------------------------------------------------------------------------------
    # numerics
    # ------------------------------------------------------------------------------------------------------------------

    def create_state_vector(self, initializer: "VoltageInitializer") -> Vec:
        """
        Initial state vector
        :param initializer: VoltageInitializer
        :return: x
        """
        x = np.zeros(self.column_count)
        for var in self._sorted_variables:
            if var.type == VariableType.BUS_V:
                x[var.column] = initializer.get_magnitude(self.network.get_bus(var.num))
            elif var.type == VariableType.BUS_PHI:
                x[var.column] = initializer.get_angle(self.network.get_bus(var.num))
            else:
                x[var.column] = initializer.get_non_impedant_flow(self.network.get_branch(var.num), var.type)
        return x

    def get_target(self, eq: Equation) -> float:
        """
        Right hand side of an equation
        :param eq: Equation
        :return: target value
        """
        if eq.type == EquationType.BUS_TARGET_P:
            bus = self.network.get_bus(eq.num)
            return bus.generation_target_p - bus.load_target_p

        elif eq.type == EquationType.BUS_TARGET_Q:
            bus = self.network.get_bus(eq.num)
            return bus.generation_target_q - bus.load_target_q

        elif eq.type == EquationType.BUS_TARGET_V:
            return self.network.get_bus(eq.num).target_v

        elif eq.type == EquationType.BUS_TARGET_PHI:
            return 0.0

        elif eq.type == EquationType.ZERO_V:
            return 0.0

        elif eq.type == EquationType.ZERO_PHI:
            branch = self.network.get_branch(eq.num)
            return branch.a2 - branch.a1

        else:
            raise ValueError(f"Unknown equation type {eq.type}")

    def create_target_vector(self) -> Vec:
        """
        Targets of the active equations in row order
        """
        return np.array([self.get_target(eq) for eq in self._sorted_equations], dtype=float)

    def update_equations(self, x: Vec):
        """
        Refresh the cache of every term, active or not, with the state x
        :param x: state vector
        """
        for eq in self._equations.values():
            for term in eq.terms:
                term.update(x)

        for listener in self._listeners:
            listener.on_state_update()

    def evaluate_equations(self) -> Vec:
        """
        Values of the active equations in row order (from the term caches)
        """
        return np.array([eq.eval() for eq in self._sorted_equations], dtype=float)

    def get_mismatch_vector(self, x: Vec) -> Vec:
        """
        Calculated minus target for the state x
        :param x: state vector
        :return: mismatch vector
        """
        self.update_equations(x)
        return self.evaluate_equations() - self.create_target_vector()

    def get_mismatch(self, eq: Equation) -> float:
        """
        Calculated minus target of a single equation (active or not) from the term caches
        """
        return eq.eval() - self.get_target(eq)

    def update_network(self, x: Vec):
        """
        Write the state into the network: voltages, angles, bus injections and branch flows
        :param x: state vector
        """
        self.update_equations(x)

        for var in self._sorted_variables:
            if var.type == VariableType.BUS_V:
                self.network.get_bus(var.num).v = x[var.column]
            elif var.type == VariableType.BUS_PHI:
                self.network.get_bus(var.num).angle = x[var.column]

        for bus in self.network.buses:
            p_eq = self.get_equation(bus.num, EquationType.BUS_TARGET_P)
            q_eq = self.get_equation(bus.num, EquationType.BUS_TARGET_Q)
            bus.calculated_p = p_eq.eval() if p_eq is not None else np.nan
            bus.calculated_q = q_eq.eval() if q_eq is not None else np.nan

        for branch in self.network.branches:
            branch.update_flows()

    def get_equation_description(self, row: int) -> str:
        """
        Human readable description of an active equation, used in reports
        :param row: row number
        """
        eq = self._sorted_equations[row]
        if eq.type.on_branch:
            element = self.network.get_branch(eq.num).idtag
        else:
            element = self.network.get_bus(eq.num).idtag
        return f"{eq.type.symbol}@{element}"
