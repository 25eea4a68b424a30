# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0


class LoadFlowError(Exception):
    """Base class for exceptions in this package."""
    pass


class ModelError(LoadFlowError):
    """Exception raised when the network model given to the engine is not consistent."""
    def __init__(self, message="Inconsistent network model"):
        self.message = message
        super().__init__(self.message)


class ConflictingVoltageControlError(ModelError):
    """Exception raised when two voltage controllers of the same bus have different targets."""
    def __init__(self, bus_id, target_v, other_target_v, message="Generators with inconsistent target voltages"):
        self.bus_id = bus_id
        self.target_v = target_v
        self.other_target_v = other_target_v
        self.message = f"{message} at bus {bus_id}: {target_v} != {other_target_v}"
        super().__init__(self.message)


class NonImpedantBranchError(ModelError):
    """Exception raised when a branch without impedance is fed into an impedance based term."""
    def __init__(self, branch_id, message="Non impedant branch used in an admittance term"):
        self.branch_id = branch_id
        self.message = f"{message}: {branch_id}"
        super().__init__(self.message)


class UnknownVariableError(LoadFlowError):
    """Exception raised when a term is asked for the derivative of a variable it does not depend on."""
    def __init__(self, variable, message="Unknown variable"):
        self.variable = variable
        self.message = f"{message}: {variable}"
        super().__init__(self.message)


class SlackError(LoadFlowError):
    """Exception raised when there is a problem with the slack bus in a load flow study."""
    def __init__(self, message="Invalid or undefined slack bus configuration"):
        self.message = message
        super().__init__(self.message)


class RectangularJacobianError(LoadFlowError):
    """Exception raised when the Jacobian matrix used in load flow calculation is not square."""
    def __init__(self, rows, columns, message="Jacobian matrix must be square"):
        self.rows = rows
        self.columns = columns
        self.message = f"{message}: found {rows}x{columns}"
        super().__init__(self.message)


class LinearSolverError(LoadFlowError):
    """Exception raised by the linear algebra back-end."""
    def __init__(self, message="Linear solver failure"):
        self.message = message
        super().__init__(self.message)


class SingularMatrixError(LinearSolverError):
    """Exception raised when the LU decomposition finds a singular matrix."""
    def __init__(self, message="Singular matrix"):
        super().__init__(message)


class OuterLoopError(LoadFlowError):
    """Exception raised when an outer loop cannot make progress. It is fatal for the solve."""
    def __init__(self, message="Outer loop cannot make progress"):
        self.message = message
        super().__init__(self.message)


class NoParticipatingGeneratorError(OuterLoopError):
    """Exception raised when the slack mismatch cannot be distributed because nobody participates."""
    def __init__(self, remaining_mismatch=0.0, message="No more generator participating to slack distribution"):
        self.remaining_mismatch = remaining_mismatch
        super().__init__(message)


class NoParticipatingLoadError(OuterLoopError):
    """Exception raised when the slack mismatch cannot be distributed on the loads."""
    def __init__(self, remaining_mismatch=0.0, message="No more load participating to slack distribution"):
        self.remaining_mismatch = remaining_mismatch
        super().__init__(message)
