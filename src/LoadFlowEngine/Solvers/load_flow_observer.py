# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Dict, Union, TYPE_CHECKING
import time
import threading
import numpy as np
import pandas as pd
from LoadFlowEngine.basic_structures import Logger, Vec
from LoadFlowEngine.enumerations import OuterLoopStatus

if TYPE_CHECKING:
    from LoadFlowEngine.Equations.equation_system import EquationSystem


class AcLoadFlowObserver:
    """
    Diagnostic hooks around the phases of an AC load flow.
    All the hooks do nothing, subclasses pick what they need.
    Observers must never change the numerical results.
    """

    def before_equation_system_creation(self):
        pass

    def after_equation_system_creation(self):
        pass

    def before_voltage_initializer_preparation(self, initializer_name: str):
        pass

    def after_voltage_initializer_preparation(self):
        pass

    def begin_iteration(self, iteration: int):
        pass

    def before_equations_update(self, iteration: int):
        pass

    def after_equations_update(self, equation_system: "EquationSystem", iteration: int):
        pass

    def before_equation_vector_update(self, iteration: int):
        pass

    def after_equation_vector_update(self, equation_system: "EquationSystem", mismatch: Vec, iteration: int):
        pass

    def before_jacobian_build(self, iteration: int):
        pass

    def after_jacobian_build(self, iteration: int):
        pass

    def before_lu_decomposition(self, iteration: int):
        pass

    def after_lu_decomposition(self, iteration: int):
        pass

    def before_lu_solve(self, iteration: int):
        pass

    def after_lu_solve(self, iteration: int):
        pass

    def end_iteration(self, iteration: int):
        pass

    def before_outer_loop_status_check(self, outer_loop_name: str):
        pass

    def after_outer_loop_status_check(self, outer_loop_name: str, status: OuterLoopStatus):
        pass

    def before_outer_loop_body(self, outer_loop_name: str):
        pass

    def after_outer_loop_body(self, outer_loop_name: str):
        pass

    def after_load_flow(self, status_name: str):
        pass


class MultipleAcLoadFlowObserver(AcLoadFlowObserver):
    """
    Forwards every hook to a list of observers
    """

    def __init__(self, observers: List[AcLoadFlowObserver]):
        self.observers = observers

    def before_equation_system_creation(self):
        for observer in self.observers:
            observer.before_equation_system_creation()

    def after_equation_system_creation(self):
        for observer in self.observers:
            observer.after_equation_system_creation()

    def before_voltage_initializer_preparation(self, initializer_name: str):
        for observer in self.observers:
            observer.before_voltage_initializer_preparation(initializer_name)

    def after_voltage_initializer_preparation(self):
        for observer in self.observers:
            observer.after_voltage_initializer_preparation()

    def begin_iteration(self, iteration: int):
        for observer in self.observers:
            observer.begin_iteration(iteration)

    def before_equations_update(self, iteration: int):
        for observer in self.observers:
            observer.before_equations_update(iteration)

    def after_equations_update(self, equation_system: "EquationSystem", iteration: int):
        for observer in self.observers:
            observer.after_equations_update(equation_system, iteration)

    def before_equation_vector_update(self, iteration: int):
        for observer in self.observers:
            observer.before_equation_vector_update(iteration)

    def after_equation_vector_update(self, equation_system: "EquationSystem", mismatch: Vec, iteration: int):
        for observer in self.observers:
            observer.after_equation_vector_update(equation_system, mismatch, iteration)

    def before_jacobian_build(self, iteration: int):
        for observer in self.observers:
            observer.before_jacobian_build(iteration)

    def after_jacobian_build(self, iteration: int):
        for observer in self.observers:
            observer.after_jacobian_build(iteration)

    def before_lu_decomposition(self, iteration: int):
        for observer in self.observers:
            observer.before_lu_decomposition(iteration)

    def after_lu_decomposition(self, iteration: int):
        for observer in self.observers:
            observer.after_lu_decomposition(iteration)

    def before_lu_solve(self, iteration: int):
        for observer in self.observers:
            observer.before_lu_solve(iteration)

    def after_lu_solve(self, iteration: int):
        for observer in self.observers:
            observer.after_lu_solve(iteration)

    def end_iteration(self, iteration: int):
        for observer in self.observers:
            observer.end_iteration(iteration)

    def before_outer_loop_status_check(self, outer_loop_name: str):
        for observer in self.observers:
            observer.before_outer_loop_status_check(outer_loop_name)

    def after_outer_loop_status_check(self, outer_loop_name: str, status: OuterLoopStatus):
        for observer in self.observers:
            observer.after_outer_loop_status_check(outer_loop_name, status)

    def before_outer_loop_body(self, outer_loop_name: str):
        for observer in self.observers:
            observer.before_outer_loop_body(outer_loop_name)

    def after_outer_loop_body(self, outer_loop_name: str):
        for observer in self.observers:
            observer.after_outer_loop_body(outer_loop_name)

    def after_load_flow(self, status_name: str):
        for observer in self.observers:
            observer.after_load_flow(status_name)


class ProfilingAcLoadFlowObserver(AcLoadFlowObserver):
    """
    Wall clock time spent in each phase.
    Shared by several worker threads, the timers are kept per thread.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._local = threading.local()
        self.timings: Dict[str, List[float]] = dict()

    def _start(self, phase: str):
        starts = getattr(self._local, 'starts', None)
        if starts is None:
            starts = dict()
            self._local.starts = starts
        starts[phase] = time.perf_counter()

    def _stop(self, phase: str):
        starts = getattr(self._local, 'starts', dict())
        t0 = starts.pop(phase, None)
        if t0 is not None:
            with self._lock:
                self.timings.setdefault(phase, list()).append(time.perf_counter() - t0)

    def before_equation_system_creation(self):
        self._start('Equation system creation')

    def after_equation_system_creation(self):
        self._stop('Equation system creation')

    def before_voltage_initializer_preparation(self, initializer_name: str):
        self._start('Voltage initializer preparation')

    def after_voltage_initializer_preparation(self):
        self._stop('Voltage initializer preparation')

    def before_equations_update(self, iteration: int):
        self._start('Equations update')

    def after_equations_update(self, equation_system: "EquationSystem", iteration: int):
        self._stop('Equations update')

    def before_jacobian_build(self, iteration: int):
        self._start('Jacobian build')

    def after_jacobian_build(self, iteration: int):
        self._stop('Jacobian build')

    def before_lu_decomposition(self, iteration: int):
        self._start('LU decomposition')

    def after_lu_decomposition(self, iteration: int):
        self._stop('LU decomposition')

    def before_lu_solve(self, iteration: int):
        self._start('LU solve')

    def after_lu_solve(self, iteration: int):
        self._stop('LU solve')

    def before_outer_loop_status_check(self, outer_loop_name: str):
        self._start(f'{outer_loop_name} check')

    def after_outer_loop_status_check(self, outer_loop_name: str, status: OuterLoopStatus):
        self._stop(f'{outer_loop_name} check')

    def before_outer_loop_body(self, outer_loop_name: str):
        self._start(f'{outer_loop_name} body')

    def after_outer_loop_body(self, outer_loop_name: str):
        self._stop(f'{outer_loop_name} body')

    def to_df(self) -> pd.DataFrame:
        """
        Summary of the timings
        :return: DataFrame indexed by phase
        """
        with self._lock:
            data = [[phase, len(vals), np.sum(vals), np.max(vals)] for phase, vals in self.timings.items()]
        df = pd.DataFrame(data=data, columns=['Phase', 'Calls', 'Total (s)', 'Max (s)'])
        df.set_index('Phase', inplace=True)
        return df


class LargestMismatchAcLoadFlowObserver(AcLoadFlowObserver):
    """
    Records the equation with the largest mismatch at every iteration
    """

    def __init__(self, logger: Union[Logger, None] = None):
        """

        :param logger: Logger where the largest mismatches are reported
        """
        self.logger = logger if logger is not None else Logger()
        self.largest: List[float] = list()

    def after_equation_vector_update(self, equation_system: "EquationSystem", mismatch: Vec, iteration: int):
        if len(mismatch) == 0:
            return
        row = int(np.argmax(np.abs(mismatch)))
        self.largest.append(float(mismatch[row]))
        self.logger.add_info(f"Largest mismatch at iteration {iteration}",
                             device=equation_system.get_equation_description(row),
                             value=mismatch[row])
