# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Tuple
from LoadFlowEngine.enumerations import VariableType


class Variable:
    """
    Unknown of the equation system, identified by (element number, type).
    The column is only assigned while an active equation refers to the variable.
    """

    __slots__ = ('num', 'type', 'column')

    def __init__(self, num: int, tpe: VariableType):
        """

        :param num: bus or branch number
        :param tpe: VariableType
        """
        self.num = num
        self.type = tpe
        self.column = -1

    @property
    def key(self) -> Tuple[int, int]:
        """
        Sorting key: type first, then element number
        """
        return self.type.value, self.num

    def __eq__(self, other):
        return isinstance(other, Variable) and self.num == other.num and self.type == other.type

    def __hash__(self):
        return hash((self.num, self.type))

    def __lt__(self, other: "Variable"):
        return self.key < other.key

    def __str__(self):
        return f"Variable(num={self.num}, type={self.type}, column={self.column})"

    def __repr__(self):
        return str(self)
