import logging
from typing import List


class DiagnosticLogger:
    """
    Free-text progress channel for an operator view.

    The detector and set finder write capture stats, per-card attribute dumps
    and per-set explanations here. The base class discards everything.
    """

    def log(self, message: str) -> None:
        pass

    def log_section(self, title: str) -> None:
        pass

    def clear(self) -> None:
        pass


class NullDiagnosticLogger(DiagnosticLogger):
    """No-op logger used when no diagnostics view is attached."""


class LoggingDiagnosticLogger(DiagnosticLogger):
    """Forwards diagnostics to a standard library logger."""

    def __init__(self, name: str = "set_solver.diagnostics", level: int = logging.DEBUG):
        self._logger = logging.getLogger(name)
        self._level = level

    def log(self, message: str) -> None:
        self._logger.log(self._level, message)

    def log_section(self, title: str) -> None:
        self._logger.log(self._level, f"=== {title} ===")


class BufferedDiagnosticLogger(DiagnosticLogger):
    """Collects diagnostic lines in memory so they can be returned to a client."""

    def __init__(self):
        self.lines: List[str] = []

    def log(self, message: str) -> None:
        self.lines.append(message)

    def log_section(self, title: str) -> None:
        self.lines.append(f"=== {title} ===")

    def clear(self) -> None:
        self.lines.clear()

    def text(self) -> str:
        return "\n".join(self.lines)
