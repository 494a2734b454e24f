"""UCI engine process management and protocol parsing."""

from .session import (
    ProtocolSession,
    SessionState,
    SearchRequest,
    LineBuffer,
    open_session,
)

from .uci_parser import (
    MATE_SCORE,
    mate_to_cp,
    parse_score,
    parse_mate,
    parse_bestmove,
    is_bestmove,
)
