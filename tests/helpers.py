"""Helpers shared by the test modules."""

import chess


def fen_key(fen: str) -> str:
    """Position key used by the fake engine script."""
    return " ".join(fen.split()[:4])


def fen_after(fen: str, *uci_moves: str) -> str:
    """FEN reached by playing ``uci_moves`` from ``fen``."""
    board = chess.Board(fen)
    for move in uci_moves:
        board.push_uci(move)
    return board.fen()
