# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from LoadFlowEngine.Network.reactive_limits import (ReactiveLimits, MinMaxReactiveLimits,
                                                    ReactiveCapabilityCurve, ReactiveDiagram)
from LoadFlowEngine.Network.generator import LfGenerator
from LoadFlowEngine.Network.bus import LfBus
from LoadFlowEngine.Network.branch import LfBranch
from LoadFlowEngine.Network.network import LfNetwork
from LoadFlowEngine.Network.slack_bus_selector import (SlackBusSelector, FirstSlackBusSelector,
                                                       MostMeshedSlackBusSelector, NameSlackBusSelector,
                                                       LargestGeneratorSlackBusSelector, get_slack_bus_selector)
