# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from typing import List, Any, Dict, Union
import datetime
import pandas as pd
import numpy as np
import nptyping as npt
from scipy.sparse import csc_matrix
from LoadFlowEngine.enumerations import LogSeverity, SolverStatus

IntList = List[int]
IntVec = npt.NDArray[npt.Shape['*'], npt.Int]
BoolVec = npt.NDArray[npt.Shape['*'], npt.Bool]
Vec = npt.NDArray[npt.Shape['*'], npt.Double]
CxVec = npt.NDArray[npt.Shape['*'], npt.Complex]
Mat = npt.NDArray[npt.Shape['*, *'], npt.Double]
CscMat = csc_matrix


class LogEntry:
    """
    Logger entry
    """

    def __init__(self,
                 time: Union[str, None] = None,
                 msg="",
                 severity: LogSeverity = LogSeverity.Information,
                 device="",
                 value="",
                 expected_value=""):
        """

        :param time: time stamp (now if None)
        :param msg: message
        :param severity: LogSeverity
        :param device: name or id of the element concerned
        :param value: offending value
        :param expected_value: value that was expected
        """
        if time is None:
            self.time = "{date:%H:%M:%S}".format(date=datetime.datetime.now())
        else:
            self.time = time
        self.msg = str(msg)
        self.severity = severity
        self.device = device
        self.value = value
        self.expected_value = str(expected_value)

    def to_list(self) -> List[Any]:
        """
        Get list representation of this entry
        :return:
        """
        return [self.time, self.severity.value, self.msg, self.device, self.value, self.expected_value]

    def __str__(self):
        return "{0} {1}: {2} {3} {4} {5}".format(self.time,
                                                 self.severity.value,
                                                 self.msg,
                                                 self.device,
                                                 self.value,
                                                 self.expected_value)


class Logger:
    """
    Logger class
    Collects the messages of a load flow run without touching any global state,
    every engine receives one and workers merge theirs with +=
    """

    def __init__(self) -> None:

        self.entries: List[LogEntry] = list()

    def has_logs(self) -> bool:
        """
        Are there any logs?
        :return: True / False
        """
        return len(self.entries) > 0

    def add(self, msg: str, severity: LogSeverity = LogSeverity.Error, device="", value="", expected_value=""):
        """
        Add general entry
        :param msg: message
        :param severity: LogSeverity
        :param device: element concerned
        :param value: offending value
        :param expected_value: expected value
        """
        self.entries.append(LogEntry(msg=str(msg),
                                     severity=severity,
                                     device=str(device),
                                     value=str(value),
                                     expected_value=str(expected_value)))

    def add_info(self, msg: str, device="", value="", expected_value=""):
        """
        Add info entry
        :param msg:
        :param device:
        :param value:
        :param expected_value:
        """
        self.add(msg, LogSeverity.Information, device, value, expected_value)

    def add_warning(self, msg: str, device="", value="", expected_value=""):
        """
        Add warning entry
        :param msg:
        :param device:
        :param value:
        :param expected_value:
        """
        self.add(msg, LogSeverity.Warning, device, value, expected_value)

    def add_error(self, msg: str, device="", value="", expected_value=""):
        """
        Add error entry
        :param msg:
        :param device:
        :param value:
        :param expected_value:
        """
        self.add(msg, LogSeverity.Error, device, value, expected_value)

    def add_divergence(self, msg, device="", value=0.0, expected_value=0.0, tol=1e-6):
        """
        Add divergence entry, only if the value and the expected value differ more than tol
        :param msg:
        :param device:
        :param value:
        :param expected_value:
        :param tol:
        """
        if abs(value - expected_value) > tol:
            self.add(msg, LogSeverity.Divergence, device, value, expected_value)

    def to_dict(self) -> Dict[str, Dict[str, List[List[str]]]]:
        """
        Get the logs sorted by severity and message
        :return: Dictionary[Dictionary[List[time, device, value, expected value]]]
        """
        by_severity = dict()

        for e in self.entries:
            by_msg = by_severity.setdefault(e.severity.value, dict())
            by_msg.setdefault(e.msg, list()).append([e.time, e.device, e.value, e.expected_value])

        return by_severity

    def to_df(self) -> pd.DataFrame:
        """
        Get DataFrame
        :return: DataFrame
        """
        data = [e.to_list() for e in self.entries]
        df = pd.DataFrame(data=data, columns=['Time', 'Severity', 'Message', 'Device', 'Value', 'Expected value'])
        df.set_index('Time', inplace=True)
        return df

    def print(self) -> None:
        """
        Print the logs
        """
        print(self.to_df())

    def __str__(self):
        return ''.join(str(e) + '\n' for e in self.entries)

    def __getitem__(self, key):
        return self.entries[key]

    def __iadd__(self, other: "Logger"):
        """
        += implementation
        :param other:
        :return:
        """
        if other is not None:
            self.entries += other.entries
        return self

    def __len__(self) -> int:
        return len(self.entries)

    def count_type(self, severity: LogSeverity) -> int:
        """
        Count the number of entries of a certain severity
        :param severity: LogSeverity
        :return: number of occurrences
        """
        return sum(1 for entry in self.entries if entry.severity == severity)

    def info_count(self) -> int:
        """
        Count the number of information occurrences
        :return:
        """
        return self.count_type(LogSeverity.Information)

    def warning_count(self) -> int:
        """
        Count number of warnings
        :return:
        """
        return self.count_type(LogSeverity.Warning)

    def error_count(self) -> int:
        """
        Count number of errors
        :return:
        """
        return self.count_type(LogSeverity.Error)


class ConvergenceReport:
    """
    Convergence report of the Newton-Raphson runs of one load flow
    """

    def __init__(self) -> None:
        """
        Constructor
        """
        self.status_: List[SolverStatus] = list()
        self.error_: List[float] = list()
        self.elapsed_: List[float] = list()
        self.iterations_: List[int] = list()
        self.norm_history_: List[List[float]] = list()

    def add(self, status: SolverStatus, error: float, elapsed: float, iterations: int, norm_history: List[float]):
        """

        :param status: final status of the run
        :param error: final mismatch norm
        :param elapsed: seconds
        :param iterations: number of iterations
        :param norm_history: mismatch norm at every iteration
        """
        self.status_.append(status)
        self.error_.append(error)
        self.elapsed_.append(elapsed)
        self.iterations_.append(iterations)
        self.norm_history_.append(norm_history)

    def converged(self) -> bool:
        """
        Did the last run converge?
        """
        if len(self.status_) > 0:
            return self.status_[-1] == SolverStatus.CONVERGED
        else:
            return False

    def error(self) -> float:
        if len(self.error_) > 0:
            return self.error_[-1]
        else:
            return np.nan

    def elapsed(self) -> float:
        return float(np.sum(self.elapsed_))

    def iterations(self) -> int:
        return int(np.sum(self.iterations_))

    def __len__(self) -> int:
        return len(self.status_)

    def to_dataframe(self) -> pd.DataFrame:
        """
        Get the report as a DataFrame, one row per run
        """
        data = {'Status': [str(s) for s in self.status_],
                'Error': self.error_,
                'Elapsed (s)': self.elapsed_,
                'Iterations': self.iterations_}
        df = pd.DataFrame(data)
        df.index.name = 'Run'
        return df
