# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from LoadFlowEngine.enumerations import BalanceType, OuterLoopStatus
from LoadFlowEngine.exceptions import NoParticipatingGeneratorError, NoParticipatingLoadError
from LoadFlowEngine.OuterLoops.outer_loop import OuterLoop, OuterLoopContext
from LoadFlowEngine.OuterLoops.active_power_distribution import ActivePowerDistribution, P_RESIDUE_EPS

DEFAULT_SLACK_BUS_P_MAX_MISMATCH = 1.0  # MW


class DistributedSlackOuterLoop(OuterLoop):
    """
    Moves the active power picked up by the slack bus to the participating generators,
    or to the loads with the load balance type
    """

    name = 'DistributedSlack'

    def __init__(self,
                 balance_type: BalanceType = BalanceType.PROPORTIONAL_TO_GENERATION_P_MAX,
                 slack_bus_p_max_mismatch: float = DEFAULT_SLACK_BUS_P_MAX_MISMATCH):
        """

        :param balance_type: BalanceType
        :param slack_bus_p_max_mismatch: slack bus mismatch accepted without distribution (MW)
        """
        self.active_power_distribution = ActivePowerDistribution(balance_type)
        self.slack_bus_p_max_mismatch = slack_bus_p_max_mismatch

    def check(self, context: OuterLoopContext) -> OuterLoopStatus:
        mismatch = context.last_newton_raphson_result.slack_bus_active_power_mismatch
        sb = context.network.sb

        if abs(mismatch) <= self.slack_bus_p_max_mismatch / sb or abs(mismatch) <= P_RESIDUE_EPS:
            return OuterLoopStatus.STABLE

        result = self.active_power_distribution.run(context.network, mismatch, context.logger)

        if abs(result.remaining_mismatch) > P_RESIDUE_EPS:
            context.logger.add_error("Failed to distribute slack bus active power mismatch",
                                     device=context.network.name,
                                     value=result.remaining_mismatch * sb,
                                     expected_value=0.0)
            if self.active_power_distribution.on_loads:
                raise NoParticipatingLoadError(remaining_mismatch=result.remaining_mismatch * sb)
            raise NoParticipatingGeneratorError(remaining_mismatch=result.remaining_mismatch * sb)

        if result.moved:
            return OuterLoopStatus.UNSTABLE
        return OuterLoopStatus.STABLE
