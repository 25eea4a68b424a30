# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from LoadFlowEngine.__version__ import __LoadFlowEngine_VERSION__
from LoadFlowEngine.enumerations import *
from LoadFlowEngine.basic_structures import Logger, LogEntry, ConvergenceReport
from LoadFlowEngine.exceptions import *
from LoadFlowEngine.Network import *
from LoadFlowEngine.Simulations import *
from LoadFlowEngine.api import run_ac_load_flow, run_dc_load_flow, load_flow
