"""Process exit codes surfaced by workflow error paths."""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import NoReturn

LOG = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Exit codes returned to the calling shell or scheduler."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    PARAMETER_ERROR = 2
    CONNECTION_ERROR = 3
    AUTHENTICATION_ERROR = 4
    RESOURCE_NOT_FOUND = 5
    OPERATION_FAILED = 6
    TASK_FAILED = 7
    CONFIGURATION_ERROR = 8
    PRECONDITION_ERROR = 9
    USER_CANCELLED = 10

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").lower()


def terminate(code: ExitCode, message: str, *, logger: logging.Logger | None = None) -> NoReturn:
    """Log `message` at ERROR and leave the process with `code`.

    Only top-level workflow operations call this; helpers return results instead.
    """

    target = logger or LOG
    level = logging.INFO if code is ExitCode.SUCCESS else logging.ERROR
    target.log(level, message, extra={"exit_code": int(code)})
    raise SystemExit(int(code))


__all__ = ["ExitCode", "terminate"]
