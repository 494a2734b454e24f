"""
Exception hierarchy for engine communication and accuracy analysis.
"""

from typing import Optional, Sequence, Union


class AccuracyAnalysisError(Exception):
    """Base class for all errors raised by this package."""


class EngineError(AccuracyAnalysisError):
    """Failure at the engine process boundary."""


class ProcessSpawnError(EngineError):
    """The engine executable could not be launched."""

    def __init__(self, command: Union[str, Sequence[str]], cause: Optional[BaseException] = None):
        self.command = command
        self.cause = cause
        message = f"Could not launch engine: {command!r}"
        if cause is not None:
            message += f" ({cause})"
        super().__init__(message)


class EngineTimeoutError(EngineError):
    """No qualifying response line arrived before the deadline."""

    def __init__(self, timeout: float, waiting_for: str = "engine line"):
        self.timeout = timeout
        self.waiting_for = waiting_for
        super().__init__(f"Timed out after {timeout:g}s waiting for {waiting_for}")


class EngineTerminatedError(EngineError):
    """The engine process exited while a response was still expected."""


class SessionBusyError(EngineError):
    """A second request or wait was issued while one is outstanding."""


class IllegalSuggestedMoveError(AccuracyAnalysisError):
    """The engine's suggested move cannot be applied to its position."""

    def __init__(self, fen: str, move: Optional[str], reason: str = "illegal"):
        self.fen = fen
        self.move = move
        self.reason = reason
        super().__init__(f"Cannot apply suggested move {move!r} to {fen!r}: {reason}")


class MalformedProtocolLine(AccuracyAnalysisError):
    """An engine line announces a score that cannot be parsed."""

    def __init__(self, line: str):
        self.line = line
        super().__init__(f"Malformed score in engine line: {line!r}")


class GameReplayError(AccuracyAnalysisError):
    """A game's move list could not be replayed from its start position."""
