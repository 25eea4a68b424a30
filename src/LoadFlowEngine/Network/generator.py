# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import Union
import numpy as np
from LoadFlowEngine.enumerations import BalanceType
from LoadFlowEngine.Network.reactive_limits import ReactiveLimits

# 1 MVAr at 100 MVA
REACTIVE_RANGE_THRESHOLD_PU = 1e-2

POWER_EPSILON_PU = 1e-6


class LfGenerator:
    """
    Generating unit attached to a bus, all the magnitudes are in p.u.
    """

    def __init__(self,
                 idtag: str,
                 name: str = '',
                 target_p: float = 0.0,
                 target_q: float = 0.0,
                 min_p: float = 0.0,
                 max_p: float = 9999.0,
                 voltage_regulator_on: bool = False,
                 target_v: float = 1.0,
                 reactive_limits: Union[ReactiveLimits, None] = None,
                 participating: bool = True,
                 droop: float = 4.0):
        """

        :param idtag: unique identifier
        :param name: name
        :param target_p: active power set point (p.u.)
        :param target_q: reactive power set point, used when not regulating (p.u.)
        :param min_p: minimum active power (p.u.)
        :param max_p: maximum active power (p.u.)
        :param voltage_regulator_on: does the unit regulate its bus voltage?
        :param target_v: voltage set point (p.u.)
        :param reactive_limits: ReactiveLimits (unlimited if None)
        :param participating: does the unit participate in the slack distribution?
        :param droop: droop (%), used by the participation factor balance type
        """
        self.idtag = idtag
        self.name = name if name != '' else idtag
        self.target_p = target_p
        self.initial_target_p = target_p
        self.target_q = target_q
        self.min_p = min_p
        self.max_p = max_p
        self.voltage_regulator_on = voltage_regulator_on
        self.target_v = target_v
        self.reactive_limits = reactive_limits
        self.participating = participating
        self.droop = droop

        # results
        self.p = np.nan
        self.q = np.nan

    def get_min_q(self, p: float) -> float:
        if self.reactive_limits is None:
            return -np.inf
        return self.reactive_limits.get_min_q(p)

    def get_max_q(self, p: float) -> float:
        if self.reactive_limits is None:
            return np.inf
        return self.reactive_limits.get_max_q(p)

    def get_voltage_control_discard_reason(self) -> str:
        """
        Check that the unit can hold a voltage
        :return: why the voltage control must be discarded, empty when it can be kept
        """
        range_q = self.get_max_q(self.target_p) - self.get_min_q(self.target_p)
        if range_q < REACTIVE_RANGE_THRESHOLD_PU:
            return f"reactive range at target P ({range_q}) is too small"

        if abs(self.target_p) < POWER_EPSILON_PU and self.min_p > POWER_EPSILON_PU:
            return f"not started (target P={self.target_p}, min P={self.min_p})"

        return ''

    def get_participation_factor(self, balance_type: BalanceType, positive_mismatch: bool = True) -> float:
        """
        Weight of this unit in the slack distribution
        :param balance_type: BalanceType
        :param positive_mismatch: sign of the mismatch to distribute, the remaining margin depends on it
        :return: participation factor (>= 0)
        """
        if not self.participating:
            return 0.0

        if balance_type == BalanceType.PROPORTIONAL_TO_GENERATION_P_MAX:
            return max(self.max_p, 0.0)

        elif balance_type == BalanceType.PROPORTIONAL_TO_GENERATION_P:
            return abs(self.target_p)

        elif balance_type == BalanceType.PROPORTIONAL_TO_GENERATION_PARTICIPATION_FACTOR:
            if self.droop != 0.0:
                return max(self.max_p, 0.0) / self.droop
            return 0.0

        elif balance_type == BalanceType.PROPORTIONAL_TO_GENERATION_REMAINING_MARGIN:
            if positive_mismatch:
                return max(self.max_p - self.target_p, 0.0)
            return max(self.target_p - self.min_p, 0.0)

        else:
            raise ValueError(f"Unknown balance type {balance_type}")

    def copy(self) -> "LfGenerator":
        """
        Deep copy of this generator
        :return: LfGenerator
        """
        gen = LfGenerator(idtag=self.idtag,
                          name=self.name,
                          target_p=self.target_p,
                          target_q=self.target_q,
                          min_p=self.min_p,
                          max_p=self.max_p,
                          voltage_regulator_on=self.voltage_regulator_on,
                          target_v=self.target_v,
                          reactive_limits=self.reactive_limits,
                          participating=self.participating,
                          droop=self.droop)
        gen.initial_target_p = self.initial_target_p
        gen.p = self.p
        gen.q = self.q
        return gen

    def __str__(self):
        return self.idtag

    def __repr__(self):
        return f"LfGenerator({self.idtag})"
