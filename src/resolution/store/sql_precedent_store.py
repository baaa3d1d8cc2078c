import json
from threading import Lock
from typing import List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from src.core.domain.exceptions import PrecedentLookupError
from src.dilemma.domain.dilemma_models import Dilemma
from src.resolution.domain.precedent_models import BUILTIN_PRECEDENTS, Precedent, PrecedentMatch
from src.resolution.interfaces.precedent_source import PrecedentSource, rank_precedents


class SqlPrecedentStore(PrecedentSource):
    """
    Precedent cases persisted in a SQL table.
    Rows are loaded into an in-process cache on first lookup; later lookups
    only read the cache until add_precedent invalidates it.
    """

    def __init__(self, engine: Optional[Engine] = None, seed: bool = True):
        self.engine = engine
        self._cache: List[Precedent] = []
        self._lock = Lock()
        self._loaded = False
        if self.engine:
            self.ensure_schema()
            if seed:
                self._seed_defaults()

    @classmethod
    def from_dsn(cls, dsn: str) -> "SqlPrecedentStore":
        if dsn.startswith("sqlite") and (dsn.endswith("://") or ":memory:" in dsn):
            # Single shared connection; per-thread connections would each see an empty database
            engine = create_engine(
                dsn,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                future=True,
            )
        else:
            engine = create_engine(dsn, pool_pre_ping=True, future=True)
        return cls(engine=engine)

    def ensure_schema(self) -> None:
        if not self.engine:
            return
        with self.engine.begin() as conn:
            conn.execute(
                text(
                    """
                    CREATE TABLE IF NOT EXISTS rea_precedents (
                        precedent_id TEXT PRIMARY KEY,
                        title TEXT NOT NULL,
                        description TEXT NOT NULL,
                        dimensions_json TEXT NOT NULL DEFAULT '[]',
                        keywords_json TEXT NOT NULL DEFAULT '[]',
                        outcome TEXT NOT NULL DEFAULT '',
                        reasoning TEXT NOT NULL DEFAULT '',
                        favored_frameworks_json TEXT NOT NULL DEFAULT '[]'
                    )
                    """
                )
            )

    def add_precedent(self, precedent: Precedent) -> None:
        if not self.engine:
            raise PrecedentLookupError("No engine configured for precedent store")
        with self.engine.begin() as conn:
            conn.execute(
                text("DELETE FROM rea_precedents WHERE precedent_id=:precedent_id"),
                {"precedent_id": precedent.id},
            )
            conn.execute(
                text(
                    """
                    INSERT INTO rea_precedents (
                        precedent_id, title, description, dimensions_json,
                        keywords_json, outcome, reasoning, favored_frameworks_json
                    ) VALUES (
                        :precedent_id, :title, :description, :dimensions_json,
                        :keywords_json, :outcome, :reasoning, :favored_frameworks_json
                    )
                    """
                ),
                {
                    "precedent_id": precedent.id,
                    "title": precedent.title,
                    "description": precedent.description,
                    "dimensions_json": json.dumps(precedent.dimensions),
                    "keywords_json": json.dumps(precedent.keywords),
                    "outcome": precedent.outcome,
                    "reasoning": precedent.reasoning,
                    "favored_frameworks_json": json.dumps(precedent.favored_frameworks),
                },
            )
        with self._lock:
            self._loaded = False

    def all_precedents(self) -> List[Precedent]:
        with self._lock:
            if self._loaded:
                return list(self._cache)
            self._cache = self._load_rows()
            self._loaded = True
            return list(self._cache)

    def find_similar(self, dilemma: Dilemma, min_similarity: float) -> List[PrecedentMatch]:
        return rank_precedents(self.all_precedents(), dilemma, min_similarity)

    def _load_rows(self) -> List[Precedent]:
        if not self.engine:
            return []
        try:
            with self.engine.begin() as conn:
                rows = conn.execute(
                    text(
                        """
                        SELECT precedent_id, title, description, dimensions_json,
                               keywords_json, outcome, reasoning, favored_frameworks_json
                        FROM rea_precedents
                        ORDER BY precedent_id
                        """
                    )
                ).fetchall()
        except Exception as e:
            raise PrecedentLookupError(f"Precedent query failed: {e}") from e
        return [
            Precedent(
                id=row.precedent_id,
                title=row.title,
                description=row.description,
                dimensions=list(json.loads(row.dimensions_json or "[]")),
                keywords=list(json.loads(row.keywords_json or "[]")),
                outcome=row.outcome,
                reasoning=row.reasoning,
                favored_frameworks=list(json.loads(row.favored_frameworks_json or "[]")),
            )
            for row in rows
        ]

    def _seed_defaults(self) -> None:
        with self.engine.begin() as conn:
            count = conn.execute(text("SELECT COUNT(*) FROM rea_precedents")).scalar()
        if count:
            return
        for precedent in BUILTIN_PRECEDENTS:
            self.add_precedent(precedent)
