# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Union, Any, Dict
import numpy as np
from LoadFlowEngine.enumerations import BranchSide
from LoadFlowEngine.exceptions import NonImpedantBranchError
from LoadFlowEngine.Network.bus import LfBus


class LfBranch:
    """
    π model branch, all the magnitudes in p.u.

             r1 e^(j a1)          y = 1 / (r + jx)          r2 e^(j a2)
        bus1 ---( )( )--------+-------[////]-------+--------( )( )--- bus2
                              |                    |
                          g1 + j b1            g2 + j b2
                              |                    |
    """

    def __init__(self,
                 idtag: str,
                 bus1: Union[LfBus, None],
                 bus2: Union[LfBus, None],
                 r: float = 0.0,
                 x: float = 0.0,
                 g1: float = 0.0,
                 b1: float = 0.0,
                 g2: float = 0.0,
                 b2: float = 0.0,
                 r1: float = 1.0,
                 r2: float = 1.0,
                 a1: float = 0.0,
                 a2: float = 0.0,
                 name: str = ''):
        """

        :param idtag: unique identifier
        :param bus1: bus at side 1 (None if the side is open)
        :param bus2: bus at side 2 (None if the side is open)
        :param r: series resistance
        :param x: series reactance
        :param g1: shunt conductance at side 1
        :param b1: shunt susceptance at side 1
        :param g2: shunt conductance at side 2
        :param b2: shunt susceptance at side 2
        :param r1: ratio at side 1
        :param r2: ratio at side 2
        :param a1: phase shift at side 1 (rad)
        :param a2: phase shift at side 2 (rad)
        :param name: name
        """
        self.num: int = -1
        self.idtag = idtag
        self.name = name if name != '' else idtag

        self.bus1 = bus1
        self.bus2 = bus2

        self.connected1 = bus1 is not None
        self.connected2 = bus2 is not None

        self.r = r
        self.x = x
        self.g1 = g1
        self.b1 = b1
        self.g2 = g2
        self.b2 = b2
        self.r1 = r1
        self.r2 = r2
        self.a1 = a1
        self.a2 = a2

        # flow results, nan when undefined
        self.p1 = np.nan
        self.q1 = np.nan
        self.p2 = np.nan
        self.q2 = np.nan

        # evaluable handles set by the equation system
        self.evaluables: Dict[str, Any] = dict()

    def get_bus1(self) -> Union[LfBus, None]:
        """
        Bus at side 1 if connected
        """
        return self.bus1 if self.connected1 else None

    def get_bus2(self) -> Union[LfBus, None]:
        """
        Bus at side 2 if connected
        """
        return self.bus2 if self.connected2 else None

    def get_bus(self, side: BranchSide) -> Union[LfBus, None]:
        return self.get_bus1() if side == BranchSide.ONE else self.get_bus2()

    @property
    def is_disabled(self) -> bool:
        """
        A branch without any connected side does not take part in the solve
        """
        return self.get_bus1() is None and self.get_bus2() is None

    @property
    def is_closed(self) -> bool:
        return self.get_bus1() is not None and self.get_bus2() is not None

    @property
    def is_non_impedant(self) -> bool:
        return self.r == 0.0 and self.x == 0.0

    @property
    def y(self) -> complex:
        """
        Series admittance
        """
        if self.is_non_impedant:
            raise NonImpedantBranchError(self.idtag)
        return 1.0 / complex(self.r, self.x)

    def disconnect(self, side: Union[BranchSide, None] = None):
        """
        Open a side (both sides if None)
        :param side: BranchSide
        """
        if side is None or side == BranchSide.ONE:
            self.connected1 = False
        if side is None or side == BranchSide.TWO:
            self.connected2 = False

    def connect(self, side: Union[BranchSide, None] = None):
        """
        Close a side (both sides if None), only sides that have a bus can be closed
        :param side: BranchSide
        """
        if (side is None or side == BranchSide.ONE) and self.bus1 is not None:
            self.connected1 = True
        if (side is None or side == BranchSide.TWO) and self.bus2 is not None:
            self.connected2 = True

    def set_evaluable(self, key: str, evaluable: Any):
        """
        Attach the object able to evaluate one of the flows p1, q1, p2 or q2
        :param key: flow name
        :param evaluable: anything with an eval() method
        """
        self.evaluables[key] = evaluable

    def update_flows(self):
        """
        Read the flows from the evaluable handles, nan where there is none
        """
        for key in ('p1', 'q1', 'p2', 'q2'):
            evaluable = self.evaluables.get(key, None)
            setattr(self, key, evaluable.eval() if evaluable is not None else np.nan)

    def copy(self, bus1: Union[LfBus, None], bus2: Union[LfBus, None]) -> "LfBranch":
        """
        Copy of the branch parameters attached to other bus objects
        :param bus1: bus at side 1
        :param bus2: bus at side 2
        :return: LfBranch
        """
        br = LfBranch(idtag=self.idtag, bus1=bus1, bus2=bus2,
                      r=self.r, x=self.x,
                      g1=self.g1, b1=self.b1, g2=self.g2, b2=self.b2,
                      r1=self.r1, r2=self.r2, a1=self.a1, a2=self.a2,
                      name=self.name)
        br.connected1 = self.connected1 and bus1 is not None
        br.connected2 = self.connected2 and bus2 is not None
        br.set_state_from(self)
        return br

    def set_state_from(self, other: "LfBranch"):
        self.p1 = other.p1
        self.q1 = other.q1
        self.p2 = other.p2
        self.q2 = other.q2

    def __str__(self):
        return self.idtag

    def __repr__(self):
        return f"LfBranch({self.num}, {self.idtag})"
