# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from LoadFlowEngine.Solvers.voltage_initializer import (VoltageInitializer, UniformValueVoltageInitializer,
                                                        PreviousValueVoltageInitializer)
from LoadFlowEngine.Solvers.stopping_criteria import (StoppingCriteria, StoppingCriteriaResult,
                                                      DefaultStoppingCriteria, PerEquationTypeStoppingCriteria)
from LoadFlowEngine.Solvers.state_vector_scaling import (StateVectorScaling, NoStateVectorScaling,
                                                         LineSearchStateVectorScaling,
                                                         MaxVoltageChangeStateVectorScaling,
                                                         create_state_vector_scaling)
from LoadFlowEngine.Solvers.load_flow_observer import (AcLoadFlowObserver, MultipleAcLoadFlowObserver,
                                                       ProfilingAcLoadFlowObserver,
                                                       LargestMismatchAcLoadFlowObserver)
from LoadFlowEngine.Solvers.newton_raphson import NewtonRaphson, NewtonRaphsonParameters, NewtonRaphsonResult
