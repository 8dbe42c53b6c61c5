"""Runtime: scopes, substitution, evaluation, execution and the interpreter."""

from .control import BREAK, CONTINUE, NORMAL, ControlFlow, Return
from .executor import Executor
from .interpreter import ChannelSnapshot, Interpreter, LoadResult, ScriptFile

__all__ = [
    "BREAK",
    "CONTINUE",
    "NORMAL",
    "ControlFlow",
    "Return",
    "Executor",
    "ChannelSnapshot",
    "Interpreter",
    "LoadResult",
    "ScriptFile",
]
