#!/usr/bin/env python3

"""
Core Error Types

Everything the interpreter core raises derives from CoreError, so a host can
stop the machine and report a bad ROM (or its own misuse of the API) without
having to know which component noticed the problem.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"


class CoreError(Exception):
    pass


class OutOfBoundsError(CoreError):
    # Memory, PC or index register outside of RAM, or a jump into the reserved area
    pass


class InvalidOpcodeError(CoreError):
    pass


class ProtocolViolationError(CoreError):
    # RET without CALL, CALL too deep, or a captured key supplied when none was requested
    pass


class InputContractViolationError(CoreError):
    pass
