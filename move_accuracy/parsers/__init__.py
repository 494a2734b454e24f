"""Game record parsing and move replay."""

from .pgn_parser import (
    GameMetadata,
    MovePolicy,
    MoveRecord,
    ParsedGame,
    apply_uci_move,
    build_move_records,
    count_games,
    parse_game,
    parse_pgn,
    read_pgn_file,
)
