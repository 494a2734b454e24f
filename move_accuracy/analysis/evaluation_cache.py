"""
Evaluation caching for engine searches.
Stores search results so a position searched once at a given depth is
never sent to the engine again.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional

from .position_evaluator import SearchResult

logger = logging.getLogger(__name__)


class EvaluationCache:
    """
    Cache of search results keyed by position and depth.

    Cache key format: namespace + FEN (without move counters) + depth.
    The namespace identifies the engine setup that produced a score
    (engine command, options, mate score, score perspective), so results
    from a differently configured run are never reused.
    Within one game the position after move N is the position before
    move N+1, so a single search serves both lookups.

    With no ``cache_path`` the cache lives in memory only.
    """

    FILE_NAME = "evaluations.json"

    def __init__(self, cache_path: Optional[Path] = None):
        """
        Initialize cache.

        Args:
            cache_path: Directory holding the cache file, or None for memory only
        """
        self.cache_path = Path(cache_path) if cache_path is not None else None
        self.cache_file = self.cache_path / self.FILE_NAME if self.cache_path else None
        self._cache: Dict[str, Dict] = {}
        self._dirty = False
        self.hits = 0
        self.misses = 0

        if self.cache_path is not None:
            self.cache_path.mkdir(parents=True, exist_ok=True)
            self._load()

    @staticmethod
    def normalize_fen(fen: str) -> str:
        """
        Drop the halfmove clock and fullmove number from a FEN.

        Keeps piece placement, active color, castling and en passant.
        """
        return " ".join(fen.split()[:4])

    def _make_key(self, fen: str, depth: int, namespace: str = "") -> str:
        key = f"{self.normalize_fen(fen)}|d{depth}"
        return f"{namespace}|{key}" if namespace else key

    def _load(self) -> None:
        if self.cache_file is None or not self.cache_file.exists():
            return
        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                self._cache = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable evaluation cache %s: %s", self.cache_file, exc)
            self._cache = {}
        else:
            logger.debug("Loaded %d cached evaluations from %s", len(self._cache), self.cache_file)

    def save(self) -> None:
        """Write the cache to disk if it changed since the last save."""
        if self._dirty and self.cache_file is not None:
            with open(self.cache_file, "w", encoding="utf-8") as f:
                json.dump(self._cache, f, indent=2)
            logger.debug("Saved %d cached evaluations to %s", len(self._cache), self.cache_file)
        self._dirty = False

    def get(self, fen: str, depth: int, namespace: str = "") -> Optional[SearchResult]:
        """
        Look up a cached search result.

        Args:
            fen: Position FEN
            depth: Search depth
            namespace: Engine setup the result must come from

        Returns:
            SearchResult if cached, None otherwise
        """
        data = self._cache.get(self._make_key(fen, depth, namespace))
        if data is None:
            self.misses += 1
            return None
        self.hits += 1
        return SearchResult(
            best_move=data.get("best_move"),
            score=data["score"],
            score_announced=data.get("score_announced", True),
            depth=data["depth"],
            mate_in=data.get("mate_in"),
        )

    def put(self, fen: str, result: SearchResult, namespace: str = "") -> None:
        """Store a search result under its position, depth and namespace."""
        self._cache[self._make_key(fen, result.depth, namespace)] = result.to_dict()
        self._dirty = True

    def __contains__(self, key) -> bool:
        return self._make_key(*key) in self._cache

    @property
    def size(self) -> int:
        """Number of cached positions."""
        return len(self._cache)

    def clear(self) -> None:
        self._cache = {}
        self._dirty = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.save()
        return False
