"""
Move accuracy analysis.

Scores how closely the moves of a completed chess game match the
recommendations of an external UCI engine, as a single percentage.
"""

__version__ = "0.1.0"

from .errors import (
    AccuracyAnalysisError,
    EngineError,
    ProcessSpawnError,
    EngineTimeoutError,
    EngineTerminatedError,
    SessionBusyError,
    IllegalSuggestedMoveError,
    MalformedProtocolLine,
    GameReplayError,
)
