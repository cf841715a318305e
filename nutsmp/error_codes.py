# nutsmp/error_codes.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
"""
Status codes and exceptions raised by the nutsmp services.

Services return ErrorCode.OK on completion, including a graceful stop
requested through an interrupt callback. Failures are raised as exceptions
carrying the status code a command-line front end should exit with:

- ConfigurationError: invalid run or adaptation settings (USAGE),
- InitializationError: no valid starting point (SOFTWARE),
- StepsizeInitializationError: the initial step-size search failed (DATAERR).

Codes follow the BSD sysexits convention.
"""

from enum import IntEnum


class ErrorCode(IntEnum):
    OK = 0
    USAGE = 64
    DATAERR = 65
    NOINPUT = 66
    SOFTWARE = 70
    CONFIG = 78


class NutsmpError(Exception):
    """Base class of nutsmp errors."""

    code = ErrorCode.SOFTWARE


class ConfigurationError(NutsmpError, ValueError):
    code = ErrorCode.USAGE


class InitializationError(NutsmpError, RuntimeError):
    code = ErrorCode.SOFTWARE


class StepsizeInitializationError(NutsmpError, RuntimeError):
    code = ErrorCode.DATAERR
