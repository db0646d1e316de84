"""
Interpreter exception hierarchy.

Every failure raised while running a script is an InterpreterError. The
subclasses mirror the Python exception a user of the dialect would expect
(SyntaxError, NameError, ...) and prefix their message with that name so the
text returned to a tool caller reads naturally.
"""

from typing import Optional


class InterpreterError(Exception):
    """Base class for all script failures."""

    kind = "Error"

    def __init__(self, message: str, expression: Optional[str] = None):
        self.message = message
        self.expression = expression
        super().__init__(message)

    def __str__(self) -> str:
        text = f"{self.kind}: {self.message}"
        if self.expression is not None:
            text += f" (in expression: {self.expression})"
        return text


class ScriptSyntaxError(InterpreterError):
    kind = "SyntaxError"


class ScriptNameError(InterpreterError):
    kind = "NameError"


class ScriptTypeError(InterpreterError):
    kind = "TypeError"


class ScriptValueError(InterpreterError):
    kind = "ValueError"


class ScriptImportError(InterpreterError):
    kind = "ImportError"


class ScriptAttributeError(InterpreterError):
    kind = "AttributeError"


class ScriptRuntimeError(InterpreterError):
    kind = "RuntimeError"


class ResourceLimitError(ScriptRuntimeError):
    """Raised when a script exceeds one of the configured InterpreterLimits."""


class ExecutionAborted(ScriptRuntimeError):
    """Raised by sys.exit() inside a script."""

    def __init__(self, exit_code: int = 0):
        self.exit_code = exit_code
        super().__init__(f"program exited with code {exit_code}")


class EvaluationError(InterpreterError):
    """Wraps a host failure that has no dedicated script exception.

    Attributes:
        expression: the sub-expression being evaluated
        cause: the underlying host exception
    """

    kind = "EvaluationError"

    def __init__(self, expression: str, cause: BaseException):
        self.cause = cause
        super().__init__(f"{type(cause).__name__}: {cause}", expression)
