# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from LoadFlowEngine.Simulations.options_template import OptionsTemplate, OptionProp
from LoadFlowEngine.Simulations.load_flow_options import LoadFlowOptions
from LoadFlowEngine.Simulations.dc_load_flow import (DcLoadFlowEngine, DcLoadFlowParameters, DcLoadFlowResult,
                                                     DcValueVoltageInitializer)
from LoadFlowEngine.Simulations.ac_load_flow import (AcLoadFlowEngine, AcLoadFlowParameters, AcLoadFlowResult,
                                                     get_voltage_initializer)
from LoadFlowEngine.Simulations.load_flow_results import LoadFlowResults, ComponentResult
from LoadFlowEngine.Simulations.load_flow_driver import LoadFlowDriver
