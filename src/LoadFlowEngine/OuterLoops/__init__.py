# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from LoadFlowEngine.OuterLoops.outer_loop import OuterLoop, OuterLoopContext
from LoadFlowEngine.OuterLoops.active_power_distribution import (ActivePowerDistribution,
                                                                 ActivePowerDistributionResult, P_RESIDUE_EPS)
from LoadFlowEngine.OuterLoops.distributed_slack import DistributedSlackOuterLoop
from LoadFlowEngine.OuterLoops.reactive_limits import ReactiveLimitsOuterLoop, set_voltage_control
