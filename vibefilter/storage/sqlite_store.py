# Path: vibefilter/storage/sqlite_store.py
# Purpose: Persist the catalog (concepts, images, embeddings, tags, hub stats, expansion cache) in SQLite.
# Layer: vibefilter/storage.
# Details: Vectors are float32 blobs, concept term sets are JSON, writes are serialized by a lock.

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Union

import numpy as np

from vibefilter.errors import EmbeddingError, StorageError
from vibefilter.models.domain import (
    Concept,
    HubStats,
    ImageEmbedding,
    ImageRecord,
    ImageTag,
    QueryExpansionEntry,
    RankingCandidate,
    TagScore,
)
from vibefilter.vectors import is_unit

logger = logging.getLogger(__name__)

# Keeps IN (...) clauses below SQLite's bound-parameter limit.
_CHUNK = 500

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS concepts (
        id TEXT PRIMARY KEY,
        label TEXT NOT NULL,
        synonyms TEXT NOT NULL DEFAULT '[]',
        related TEXT NOT NULL DEFAULT '[]',
        opposites TEXT NOT NULL DEFAULT '[]',
        embedding BLOB
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS images (
        id TEXT PRIMARY KEY,
        url TEXT,
        category TEXT,
        hub_count INTEGER,
        hub_score REAL,
        hub_avg_cosine_similarity REAL,
        hub_avg_cosine_similarity_margin REAL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS image_embeddings (
        image_id TEXT PRIMARY KEY REFERENCES images(id) ON DELETE CASCADE,
        model TEXT NOT NULL,
        dim INTEGER NOT NULL,
        vector BLOB NOT NULL,
        content_hash TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_image_embeddings_hash ON image_embeddings(content_hash, model)",
    """
    CREATE TABLE IF NOT EXISTS image_tags (
        image_id TEXT NOT NULL REFERENCES images(id) ON DELETE CASCADE,
        concept_id TEXT NOT NULL,
        score REAL NOT NULL,
        PRIMARY KEY (image_id, concept_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS query_expansions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        term TEXT NOT NULL,
        category TEXT NOT NULL,
        expansion TEXT NOT NULL,
        source TEXT NOT NULL,
        model TEXT,
        created_at TEXT NOT NULL,
        last_used_at TEXT NOT NULL,
        UNIQUE (term, expansion, source, category)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_query_expansions_lookup ON query_expansions(term, category, source)",
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_blob(vector: np.ndarray) -> bytes:
    return np.asarray(vector, dtype=np.float32).tobytes()


def _from_blob(blob: Optional[bytes]) -> Optional[np.ndarray]:
    if blob is None:
        return None
    return np.frombuffer(blob, dtype=np.float32).copy()


def _chunks(ids: Sequence[str]) -> Iterator[List[str]]:
    unique = list(dict.fromkeys(ids))
    for start in range(0, len(unique), _CHUNK):
        yield unique[start : start + _CHUNK]


def _placeholders(count: int) -> str:
    return ",".join("?" for _ in range(count))


class SQLiteStore:
    """SQLite implementation of the catalog and expansion cache.

    ``database_path`` may be ``":memory:"`` for tests. The connection is shared across
    threads and guarded by a lock.
    """

    def __init__(self, database_path: Union[str, Path]) -> None:
        self.database_path = str(database_path)
        if self.database_path != ":memory:":
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self.database_path, check_same_thread=False)
        except sqlite3.Error as exc:
            raise StorageError(f"Could not open catalog database {self.database_path}: {exc}") from exc
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with self._lock, self._conn:
            for statement in _SCHEMA:
                self._conn.execute(statement)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "SQLiteStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _select_by_ids(self, sql: str, ids: Optional[Sequence[str]], column: str) -> List[sqlite3.Row]:
        """Run ``sql`` for all rows, or once per chunk of ``ids`` filtered on ``column``."""

        with self._lock:
            if ids is None:
                return list(self._conn.execute(sql))
            rows: List[sqlite3.Row] = []
            joiner = " AND " if " WHERE " in sql else " WHERE "
            for chunk in _chunks(ids):
                query = f"{sql}{joiner}{column} IN ({_placeholders(len(chunk))})"
                rows.extend(self._conn.execute(query, chunk))
            return rows

    # Concepts
    def upsert_concepts(self, concepts: Iterable[Concept]) -> int:
        rows = [
            (
                concept.id,
                concept.label,
                json.dumps(sorted(concept.synonyms)),
                json.dumps(sorted(concept.related)),
                json.dumps(sorted(concept.opposites)),
                _to_blob(concept.embedding) if concept.embedding is not None else None,
            )
            for concept in concepts
        ]
        with self._lock, self._conn:
            self._conn.executemany(
                """
                INSERT INTO concepts (id, label, synonyms, related, opposites, embedding)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    label = excluded.label,
                    synonyms = excluded.synonyms,
                    related = excluded.related,
                    opposites = excluded.opposites,
                    embedding = COALESCE(excluded.embedding, concepts.embedding)
                """,
                rows,
            )
        return len(rows)

    def list_concepts(self) -> List[Concept]:
        with self._lock:
            rows = list(self._conn.execute("SELECT * FROM concepts ORDER BY id"))
        return [
            Concept(
                id=row["id"],
                label=row["label"],
                synonyms=frozenset(json.loads(row["synonyms"])),
                related=frozenset(json.loads(row["related"])),
                opposites=frozenset(json.loads(row["opposites"])),
                embedding=_from_blob(row["embedding"]),
            )
            for row in rows
        ]

    def set_concept_embeddings(self, vectors: Mapping[str, np.ndarray]) -> None:
        """Store concept vectors; every vector must already be unit length."""

        for concept_id, vector in vectors.items():
            if not is_unit(vector):
                raise EmbeddingError(f"Refusing to store non-unit embedding for concept {concept_id}.")
        with self._lock, self._conn:
            self._conn.executemany(
                "UPDATE concepts SET embedding = ? WHERE id = ?",
                [(_to_blob(vector), concept_id) for concept_id, vector in vectors.items()],
            )

    # Images
    def upsert_images(self, records: Iterable[ImageRecord]) -> int:
        rows = [(record.id, record.url, record.category) for record in records]
        with self._lock, self._conn:
            self._conn.executemany(
                """
                INSERT INTO images (id, url, category) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    url = COALESCE(excluded.url, images.url),
                    category = COALESCE(excluded.category, images.category)
                """,
                rows,
            )
        return len(rows)

    def list_images(self, ids: Optional[Sequence[str]] = None) -> List[ImageRecord]:
        rows = self._select_by_ids("SELECT id, url, category FROM images", ids, "id")
        records = [ImageRecord(id=row["id"], url=row["url"], category=row["category"]) for row in rows]
        return sorted(records, key=lambda record: record.id)

    # Embeddings
    def save_embeddings(self, embeddings: Iterable[ImageEmbedding]) -> int:
        """Replace the embeddings of the given images, creating image rows when missing."""

        items = list(embeddings)
        for item in items:
            if not is_unit(item.vector):
                raise EmbeddingError(f"Refusing to store non-unit embedding for image {item.image_id}.")
        with self._lock, self._conn:
            self._conn.executemany(
                "INSERT OR IGNORE INTO images (id) VALUES (?)", [(item.image_id,) for item in items]
            )
            self._conn.executemany(
                """
                INSERT INTO image_embeddings (image_id, model, dim, vector, content_hash)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(image_id) DO UPDATE SET
                    model = excluded.model,
                    dim = excluded.dim,
                    vector = excluded.vector,
                    content_hash = excluded.content_hash
                """,
                [(item.image_id, item.model, item.dim, _to_blob(item.vector), item.content_hash) for item in items],
            )
        return len(items)

    def load_embeddings(self, ids: Optional[Sequence[str]] = None) -> List[ImageEmbedding]:
        rows = self._select_by_ids(
            "SELECT image_id, model, dim, vector, content_hash FROM image_embeddings", ids, "image_id"
        )
        embeddings: List[ImageEmbedding] = []
        for row in sorted(rows, key=lambda r: r["image_id"]):
            vector = _from_blob(row["vector"])
            if vector is None or vector.shape[0] != row["dim"]:
                logger.warning("Stored embedding for %s is corrupt; skipping", row["image_id"])
                continue
            embeddings.append(
                ImageEmbedding(
                    image_id=row["image_id"], vector=vector, model=row["model"], content_hash=row["content_hash"]
                )
            )
        return embeddings

    def find_embedding_by_hash(self, content_hash: str, model: str) -> Optional[np.ndarray]:
        with self._lock:
            row = self._conn.execute(
                "SELECT vector FROM image_embeddings WHERE content_hash = ? AND model = ? LIMIT 1",
                (content_hash, model),
            ).fetchone()
        return _from_blob(row["vector"]) if row is not None else None

    # Tags
    def replace_tags(self, image_id: str, tags: Sequence[TagScore]) -> None:
        """Make ``tags`` the complete tag set of ``image_id``."""

        with self._lock, self._conn:
            self._conn.execute("INSERT OR IGNORE INTO images (id) VALUES (?)", (image_id,))
            self._conn.execute("DELETE FROM image_tags WHERE image_id = ?", (image_id,))
            self._conn.executemany(
                "INSERT INTO image_tags (image_id, concept_id, score) VALUES (?, ?, ?)",
                [(image_id, tag.concept_id, float(tag.score)) for tag in tags],
            )

    def load_tags(self, ids: Optional[Sequence[str]] = None) -> Dict[str, List[ImageTag]]:
        rows = self._select_by_ids("SELECT image_id, concept_id, score FROM image_tags", ids, "image_id")
        tags: Dict[str, List[ImageTag]] = {}
        for row in rows:
            tags.setdefault(row["image_id"], []).append(
                ImageTag(image_id=row["image_id"], concept_id=row["concept_id"], score=float(row["score"]))
            )
        for image_tags in tags.values():
            image_tags.sort(key=lambda tag: (-tag.score, tag.concept_id))
        return tags

    # Hub statistics
    def save_hub_stats(
        self, stats: Mapping[str, HubStats], clear: bool = False, cleared_ids: Sequence[str] = ()
    ) -> None:
        """Write hub statistics; ``clear`` nulls every image first, ``cleared_ids`` nulls just those."""

        null_columns = (
            "hub_count = NULL, hub_score = NULL, "
            "hub_avg_cosine_similarity = NULL, hub_avg_cosine_similarity_margin = NULL"
        )
        with self._lock, self._conn:
            if clear:
                self._conn.execute(f"UPDATE images SET {null_columns}")
            elif cleared_ids:
                self._conn.executemany(
                    f"UPDATE images SET {null_columns} WHERE id = ?", [(image_id,) for image_id in cleared_ids]
                )
            self._conn.executemany(
                """
                INSERT INTO images (id, hub_count, hub_score, hub_avg_cosine_similarity,
                                    hub_avg_cosine_similarity_margin)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    hub_count = excluded.hub_count,
                    hub_score = excluded.hub_score,
                    hub_avg_cosine_similarity = excluded.hub_avg_cosine_similarity,
                    hub_avg_cosine_similarity_margin = excluded.hub_avg_cosine_similarity_margin
                """,
                [
                    (
                        image_id,
                        item.hub_count,
                        item.hub_score,
                        item.avg_cosine_similarity,
                        item.avg_cosine_similarity_margin,
                    )
                    for image_id, item in stats.items()
                ],
            )

    def load_hub_stats(self, ids: Optional[Sequence[str]] = None) -> Dict[str, HubStats]:
        rows = self._select_by_ids(
            "SELECT id, hub_count, hub_score, hub_avg_cosine_similarity, hub_avg_cosine_similarity_margin "
            "FROM images WHERE hub_score IS NOT NULL",
            ids,
            "id",
        )
        return {
            row["id"]: HubStats(
                hub_count=int(row["hub_count"] or 0),
                hub_score=float(row["hub_score"]),
                avg_cosine_similarity=float(row["hub_avg_cosine_similarity"] or 0.0),
                avg_cosine_similarity_margin=float(row["hub_avg_cosine_similarity_margin"] or 0.0),
            )
            for row in rows
        }

    def load_candidates(self, ids: Optional[Sequence[str]] = None) -> List[RankingCandidate]:
        """Bulk-load everything ranking needs: one query per table, joined in memory."""

        if ids is None:
            image_ids = [record.id for record in self.list_images()]
        else:
            image_ids = list(dict.fromkeys(ids))
        embeddings = {item.image_id: item.vector for item in self.load_embeddings(ids)}
        tags = self.load_tags(ids)
        hubs = self.load_hub_stats(ids)
        return [
            RankingCandidate(
                image_id=image_id,
                vector=embeddings.get(image_id),
                tags=tags.get(image_id, []),
                hub_stats=hubs.get(image_id),
            )
            for image_id in image_ids
        ]

    # Query expansion cache
    def get_expansions(self, term: str, category: str, source: str) -> List[QueryExpansionEntry]:
        with self._lock:
            rows = list(
                self._conn.execute(
                    """
                    SELECT term, category, expansion, source, model, created_at, last_used_at
                    FROM query_expansions
                    WHERE term = ? AND category = ? AND source = ?
                    ORDER BY id
                    """,
                    (term, category, source),
                )
            )
        return [
            QueryExpansionEntry(
                term=row["term"],
                category=row["category"],
                expansion=row["expansion"],
                source=row["source"],
                model=row["model"],
                created_at=datetime.fromisoformat(row["created_at"]),
                last_used_at=datetime.fromisoformat(row["last_used_at"]),
            )
            for row in rows
        ]

    def add_expansions(
        self, term: str, category: str, expansions: Sequence[str], source: str, model: Optional[str] = None
    ) -> int:
        now = _now()
        rows = [(term, category, text.strip(), source, model, now, now) for text in expansions if text.strip()]
        with self._lock, self._conn:
            before = self._conn.total_changes
            self._conn.executemany(
                """
                INSERT OR IGNORE INTO query_expansions
                    (term, category, expansion, source, model, created_at, last_used_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            inserted = self._conn.total_changes - before
        if inserted < len(rows):
            logger.debug("Ignored %d duplicate expansions for %r", len(rows) - inserted, term)
        return inserted

    def touch_expansions(self, term: str, category: str, source: str) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE query_expansions SET last_used_at = ? WHERE term = ? AND category = ? AND source = ?",
                (_now(), term, category, source),
            )
