"""
Error taxonomy for statement parsing.

Fatal conditions are raised as ``StatementParseError`` subclasses inside the
engine and turned into a terminal progress event plus an invalid
``ValidationResult`` at the ``parse_statement`` boundary.
"""


class StatementParseError(Exception):
    """Base class for fatal parse failures."""
    kind = "StatementParseError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsupportedBankFormat(StatementParseError):
    """No bank config matched and no usable hint was supplied."""
    kind = "UnsupportedBankFormat"


class EmptyInput(StatementParseError, ValueError):
    """The supplied page text holds nothing to parse."""
    kind = "EmptyInput"


class CorruptPageStructure(StatementParseError):
    """Declared page count disagrees with the supplied page text."""
    kind = "CorruptPageStructure"


class ParseCancelled(StatementParseError):
    kind = "Cancelled"

    def __init__(self, message: str = "cancelled"):
        super().__init__(message)


class InvalidProgressTransition(RuntimeError):
    """A progress update tried to move the state machine backwards."""
