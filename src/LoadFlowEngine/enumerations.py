# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from enum import Enum


class LogSeverity(Enum):
    """
    Severity of a log entry
    """
    Error = 'Error'
    Warning = 'Warning'
    Information = 'Information'
    Divergence = 'Divergence'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return LogSeverity[s]
        except KeyError:
            return s


class SolverStatus(Enum):
    """
    Status of a Newton-Raphson run (also used for the DC solve)
    """
    NOT_STARTED = 'Not started'
    RUNNING = 'Running'
    CONVERGED = 'Converged'
    MAX_ITERATION_REACHED = 'Max iteration reached'
    SOLVER_FAILED = 'Solver failed'
    UNREALISTIC_STATE = 'Unrealistic state'
    NO_CALCULATION = 'No calculation'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return SolverStatus[s]
        except KeyError:
            return s


class OuterLoopStatus(Enum):
    """
    Outer loop status
    STABLE and UNSTABLE are the answers of a single check, the rest only appear in the engine results
    """
    STABLE = 'Stable'
    UNSTABLE = 'Unstable'
    FAILED = 'Failed'
    MAX_ITERATION_REACHED = 'Max iteration reached'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)


class EquationType(Enum):
    """
    Kinds of equation, the value gives the row ordering
    """
    BUS_TARGET_P = 0
    BUS_TARGET_Q = 1
    BUS_TARGET_V = 2
    BUS_TARGET_PHI = 3
    ZERO_V = 4
    ZERO_PHI = 5

    @property
    def symbol(self) -> str:
        """
        Short name used in reports
        """
        return _EQUATION_SYMBOLS[self]

    @property
    def on_branch(self) -> bool:
        """
        Is the equation element a branch? (bus otherwise)
        """
        return self in (EquationType.ZERO_V, EquationType.ZERO_PHI)

    def __str__(self):
        return self.symbol

    def __repr__(self):
        return str(self)


_EQUATION_SYMBOLS = {
    EquationType.BUS_TARGET_P: 'p',
    EquationType.BUS_TARGET_Q: 'q',
    EquationType.BUS_TARGET_V: 'v',
    EquationType.BUS_TARGET_PHI: 'φ',
    EquationType.ZERO_V: 'z_v',
    EquationType.ZERO_PHI: 'z_φ',
}


class VariableType(Enum):
    """
    Kinds of state variable, the value gives the column ordering
    """
    BUS_V = 0
    BUS_PHI = 1
    DUMMY_P = 2
    DUMMY_Q = 3

    @property
    def symbol(self) -> str:
        """
        Short name used in reports
        """
        return _VARIABLE_SYMBOLS[self]

    @property
    def on_branch(self) -> bool:
        """
        Is the variable element a branch? (bus otherwise)
        """
        return self in (VariableType.DUMMY_P, VariableType.DUMMY_Q)

    def __str__(self):
        return self.symbol

    def __repr__(self):
        return str(self)


_VARIABLE_SYMBOLS = {
    VariableType.BUS_V: 'v',
    VariableType.BUS_PHI: 'φ',
    VariableType.DUMMY_P: 'dummy_p',
    VariableType.DUMMY_Q: 'dummy_q',
}


class EquationEventType(Enum):
    """
    Events fired by the equation system to its listeners
    """
    EQUATION_CREATED = 'Equation created'
    EQUATION_ACTIVATED = 'Equation activated'
    EQUATION_DEACTIVATED = 'Equation deactivated'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)


class EquationTermEventType(Enum):
    """
    Events fired when terms are attached to equations
    """
    EQUATION_TERM_ADDED = 'Equation term added'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)


class BranchSide(Enum):
    """
    Side of a branch
    """
    ONE = 1
    TWO = 2

    def __str__(self):
        return str(self.value)

    def __repr__(self):
        return str(self)


class FlowQuantity(Enum):
    """
    Quantity computed by a branch flow term
    """
    ACTIVE = 'P'
    REACTIVE = 'Q'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)


class BusMode(Enum):
    """
    Emulates the bus types
    """
    PQ = 1
    PV = 2
    Slack = 3

    def __str__(self):
        return self.name

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return BusMode[s]
        except KeyError:
            return s


class LinearSolverType(Enum):
    """
    Linear algebra back-ends
    """
    DENSE = 'Dense LU'
    SPARSE = 'Sparse LU'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return LinearSolverType[s]
        except KeyError:
            return s


class VoltageInitMode(Enum):
    """
    Voltage initialization policies
    """
    UNIFORM_VALUES = 'Uniform values'
    PREVIOUS_VALUES = 'Previous values'
    DC_VALUES = 'DC values'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return VoltageInitMode[s]
        except KeyError:
            return s


class SlackBusSelectionMode(Enum):
    """
    Slack bus selection policies
    """
    FIRST = 'First'
    MOST_MESHED = 'Most meshed'
    NAME = 'Name'
    LARGEST_GENERATOR = 'Largest generator'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return SlackBusSelectionMode[s]
        except KeyError:
            return s


class StateVectorScalingMode(Enum):
    """
    Newton-Raphson step control policies
    """
    NONE = 'None'
    LINE_SEARCH = 'Line search'
    MAX_VOLTAGE_CHANGE = 'Max voltage change'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return StateVectorScalingMode[s]
        except KeyError:
            return s


class BalanceType(Enum):
    """
    Source of the participation factors of the distributed slack
    """
    PROPORTIONAL_TO_GENERATION_P_MAX = 'Proportional to generation Pmax'
    PROPORTIONAL_TO_GENERATION_P = 'Proportional to generation P'
    PROPORTIONAL_TO_GENERATION_PARTICIPATION_FACTOR = 'Proportional to participation factor'
    PROPORTIONAL_TO_GENERATION_REMAINING_MARGIN = 'Proportional to remaining margin'
    PROPORTIONAL_TO_LOAD = 'Proportional to load'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return BalanceType[s]
        except KeyError:
            return s


class ReactiveLimitType(Enum):
    """
    Reactive limit violated by a bus switched to PQ
    """
    MIN_Q = 'Min Q'
    MAX_Q = 'Max Q'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)


class SolverType(Enum):
    """
    Load flow formulations
    """
    NR = 'Newton Raphson'
    DC = 'Linear DC'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return SolverType[s]
        except KeyError:
            return s
