"""SQLite-backed storage for canonical story graphs.

SqliteStoryStore keeps stories and their owned nodes, paths and transitions
in four tables using stdlib sqlite3. Graphs are never diffed: every import
replaces a story's whole graph with :meth:`SqliteStoryStore.replace_story_graph`,
which runs the delete and the re-insert inside one transaction so readers
never observe a half-replaced graph.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loomport.errors import MissingReferenceError, StoryConflictError, StoryNotFoundError
from loomport.graph.models import Visibility
from loomport.observability.logging import get_logger

if TYPE_CHECKING:
    from loomport.graph.models import StoryNode, StoryPath, StoryPayload, StoryTransition

log = get_logger(__name__)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS stories (
    id          TEXT PRIMARY KEY,
    slug        TEXT NOT NULL UNIQUE,
    title       TEXT NOT NULL,
    summary     TEXT,
    tags        JSON NOT NULL DEFAULT '[]',
    visibility  TEXT NOT NULL DEFAULT 'PRIVATE',
    owner_id    TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now')),
    updated_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);
CREATE INDEX IF NOT EXISTS idx_stories_title ON stories(title);

CREATE TABLE IF NOT EXISTS story_nodes (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    story_id  TEXT NOT NULL REFERENCES stories(id),
    key       TEXT NOT NULL,
    title     TEXT,
    synopsis  TEXT,
    type      TEXT NOT NULL,
    content   JSON,
    media     JSON,
    UNIQUE (story_id, key)
);

CREATE TABLE IF NOT EXISTS story_paths (
    id        INTEGER PRIMARY KEY AUTOINCREMENT,
    story_id  TEXT NOT NULL REFERENCES stories(id),
    key       TEXT NOT NULL,
    label     TEXT NOT NULL,
    summary   TEXT,
    metadata  JSON,
    UNIQUE (story_id, key)
);

CREATE TABLE IF NOT EXISTS story_transitions (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    story_id      TEXT NOT NULL REFERENCES stories(id),
    from_node_id  INTEGER NOT NULL REFERENCES story_nodes(id),
    to_node_id    INTEGER REFERENCES story_nodes(id),
    path_id       INTEGER NOT NULL REFERENCES story_paths(id),
    ordering      INTEGER,
    condition     JSON,
    effect        JSON
);
CREATE INDEX IF NOT EXISTS idx_transitions_story ON story_transitions(story_id);
CREATE INDEX IF NOT EXISTS idx_transitions_from  ON story_transitions(from_node_id);
"""


def _dump(value: Any) -> str | None:
    return json.dumps(value) if value is not None else None


def _load(value: str | None) -> Any:
    return json.loads(value) if value is not None else None


@dataclass
class StoryRecord:
    """Identity of a stored story."""

    id: str
    slug: str
    title: str
    visibility: Visibility
    owner_id: str
    summary: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> StoryRecord:
        return cls(
            id=row["id"],
            slug=row["slug"],
            title=row["title"],
            visibility=Visibility(row["visibility"]),
            owner_id=row["owner_id"],
            summary=row["summary"],
        )


class SqliteStoryStore:
    """SQLite store for stories and their node/path/transition graphs."""

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        *,
        _conn: sqlite3.Connection | None = None,
    ) -> None:
        """Open or create a story database.

        Args:
            db_path: Path to ``.db`` file, or ``":memory:"`` for in-memory.
            _conn: Pre-existing connection (for testing). If provided,
                   *db_path* is ignored.
        """
        if _conn is not None:
            self._conn = _conn
            self._db_path: str = ":memory:"
        else:
            self._db_path = str(db_path) if isinstance(db_path, Path) else db_path
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                self._db_path,
                isolation_level=None,  # autocommit; transactions are explicit
            )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> SqliteStoryStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def backup_to(self, dest_path: Path) -> None:
        """Copy the live database to a destination file.

        Uses SQLite's online backup API for a consistent copy.
        """
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        dest = sqlite3.connect(str(dest_path))
        try:
            self._conn.backup(dest)
        except Exception:
            dest.close()
            if dest_path.exists():
                dest_path.unlink()
            raise
        else:
            dest.close()

    # -- Stories ---------------------------------------------------------------

    def get_story(self, story_id: str) -> StoryRecord | None:
        row = self._conn.execute("SELECT * FROM stories WHERE id = ?", (story_id,)).fetchone()
        return StoryRecord.from_row(row) if row is not None else None

    def find_story_by_slug(self, slug: str) -> StoryRecord | None:
        row = self._conn.execute("SELECT * FROM stories WHERE slug = ?", (slug,)).fetchone()
        return StoryRecord.from_row(row) if row is not None else None

    def ensure_identifier_available(
        self,
        slug: str,
        title: str,
        *,
        exclude_story_id: str | None = None,
    ) -> None:
        """Reject a slug or title already used by another story.

        Runs before any destructive write, so a conflict never costs data.

        Args:
            slug: Story slug the import will use.
            title: Story title the import will use.
            exclude_story_id: Story being replaced; its own slug and title
                do not count as conflicts.

        Raises:
            StoryConflictError: If another story holds the slug or title.
        """
        if not slug:
            raise StoryConflictError(
                "Unable to derive a story code from the Twine story. "
                "Provide a code override before importing.",
                conflict_on="slug",
            )
        existing = self.find_story_by_slug(slug)
        if existing is not None and existing.id != exclude_story_id:
            raise StoryConflictError(
                f"Story code '{slug}' is already in use. Please choose a different code.",
                conflict_on="slug",
            )

        if not title.strip():
            raise StoryConflictError(
                "Your Twine story needs a title. Set one in Twine or provide a title override.",
                conflict_on="title",
            )
        row = self._conn.execute(
            "SELECT id FROM stories WHERE title = ? AND id IS NOT ? LIMIT 1",
            (title, exclude_story_id),
        ).fetchone()
        if row is not None:
            raise StoryConflictError(
                f"A story titled '{title}' already exists. "
                "Provide a unique title in Twine or via override.",
                conflict_on="title",
            )

    def _upsert_story(
        self,
        owner_id: str,
        payload: StoryPayload,
        visibility: Visibility,
        story_id: str | None,
    ) -> str:
        tags = json.dumps(payload.tags)
        if story_id is not None:
            cursor = self._conn.execute(
                "UPDATE stories SET slug = ?, title = ?, summary = ?, tags = ?, visibility = ?, "
                "updated_at = strftime('%Y-%m-%dT%H:%M:%f','now') WHERE id = ?",
                (payload.slug, payload.title, payload.summary, tags, str(visibility), story_id),
            )
            if cursor.rowcount == 0:
                raise StoryNotFoundError(story_id)
            return story_id

        new_id = uuid.uuid4().hex
        self._conn.execute(
            "INSERT INTO stories (id, slug, title, summary, tags, visibility, owner_id) "
            "VALUES (?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(slug) DO UPDATE SET "
            "  title = excluded.title, summary = excluded.summary, tags = excluded.tags, "
            "  visibility = excluded.visibility, owner_id = excluded.owner_id, "
            "  updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')",
            (new_id, payload.slug, payload.title, payload.summary, tags, str(visibility), owner_id),
        )
        row = self._conn.execute(
            "SELECT id FROM stories WHERE slug = ?", (payload.slug,)
        ).fetchone()
        return str(row["id"])

    # -- Graph replace ---------------------------------------------------------

    def _delete_graph(self, story_id: str) -> None:
        self._conn.execute("DELETE FROM story_transitions WHERE story_id = ?", (story_id,))
        self._conn.execute("DELETE FROM story_paths WHERE story_id = ?", (story_id,))
        self._conn.execute("DELETE FROM story_nodes WHERE story_id = ?", (story_id,))

    def _insert_node(self, story_id: str, node: StoryNode) -> int:
        cursor = self._conn.execute(
            "INSERT INTO story_nodes (story_id, key, title, synopsis, type, content, media) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                story_id,
                node.key,
                node.title,
                node.synopsis,
                str(node.type or "NARRATIVE"),
                _dump(node.content),
                _dump(node.media),
            ),
        )
        return int(cursor.lastrowid or 0)

    def _insert_path(self, story_id: str, path: StoryPath) -> int:
        cursor = self._conn.execute(
            "INSERT INTO story_paths (story_id, key, label, summary, metadata) "
            "VALUES (?, ?, ?, ?, ?)",
            (story_id, path.key, path.label or path.key, path.summary, _dump(path.metadata)),
        )
        return int(cursor.lastrowid or 0)

    def _insert_transition(
        self,
        story_id: str,
        transition: StoryTransition,
        node_ids: dict[str, int],
        path_ids: dict[str, int],
    ) -> None:
        context = f"transition from '{transition.from_key}' via '{transition.path}'"
        from_id = node_ids.get(transition.from_key)
        if from_id is None:
            raise MissingReferenceError("node", transition.from_key, sorted(node_ids), context)
        path_id = path_ids.get(transition.path)
        if path_id is None:
            raise MissingReferenceError("path", transition.path, sorted(path_ids), context)
        to_id: int | None = None
        if transition.to_key is not None:
            to_id = node_ids.get(transition.to_key)
            if to_id is None:
                raise MissingReferenceError("node", transition.to_key, sorted(node_ids), context)

        self._conn.execute(
            "INSERT INTO story_transitions "
            "(story_id, from_node_id, to_node_id, path_id, ordering, condition, effect) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                story_id,
                from_id,
                to_id,
                path_id,
                transition.ordering,
                _dump(transition.condition),
                _dump(transition.effect),
            ),
        )

    def replace_story_graph(
        self,
        owner_id: str,
        payload: StoryPayload,
        *,
        story_id: str | None = None,
        enforce_visibility: Visibility | None = None,
    ) -> StoryRecord:
        """Replace a story's whole graph with *payload* in one transaction.

        The story row is upserted (by *story_id* when given, else by slug),
        then its nodes, paths and transitions are deleted and the payload's
        are inserted. Storage ids generated for nodes and paths are captured
        by key and used to resolve transition references.

        Args:
            owner_id: Owner of the story.
            payload: A validated story payload.
            story_id: Existing story to overwrite, regardless of slug.
            enforce_visibility: Visibility that wins over the payload's.

        Returns:
            The stored story's identity.

        Raises:
            MissingReferenceError: If a transition references a key that
                was not inserted. Nothing is written.
            StoryNotFoundError: If *story_id* does not exist.
        """
        visibility = enforce_visibility or payload.visibility

        self._conn.execute("BEGIN IMMEDIATE")
        try:
            resolved_id = self._upsert_story(owner_id, payload, visibility, story_id)
            self._delete_graph(resolved_id)

            node_ids = {node.key: self._insert_node(resolved_id, node) for node in payload.nodes}
            path_ids = {path.key: self._insert_path(resolved_id, path) for path in payload.paths}
            for transition in payload.transitions:
                self._insert_transition(resolved_id, transition, node_ids, path_ids)

            self._conn.execute("COMMIT")
        except Exception:
            self._conn.execute("ROLLBACK")
            log.warning("story_graph_replace_rolled_back", slug=payload.slug, story_id=story_id)
            raise

        log.info(
            "story_graph_replaced",
            story_id=resolved_id,
            slug=payload.slug,
            nodes=len(node_ids),
            paths=len(path_ids),
            transitions=len(payload.transitions),
        )
        record = self.get_story(resolved_id)
        if record is None:
            raise StoryNotFoundError(resolved_id)
        return record

    # -- Reads -----------------------------------------------------------------

    def graph_counts(self, story_id: str) -> dict[str, int]:
        """Return node, path and transition counts for a story."""
        counts: dict[str, int] = {}
        for name, table in (
            ("nodes", "story_nodes"),
            ("paths", "story_paths"),
            ("transitions", "story_transitions"),
        ):
            row = self._conn.execute(
                f"SELECT COUNT(*) AS cnt FROM {table} WHERE story_id = ?", (story_id,)
            ).fetchone()
            counts[name] = row["cnt"]
        return counts

    def load_story_graph(self, story_id: str) -> dict[str, Any]:
        """Reconstruct a stored story as payload-shaped data.

        Transitions come back ordered by source node insertion order, then
        ``ordering``.

        Raises:
            StoryNotFoundError: If the story does not exist.
        """
        row = self._conn.execute("SELECT * FROM stories WHERE id = ?", (story_id,)).fetchone()
        if row is None:
            raise StoryNotFoundError(story_id)

        nodes: list[dict[str, Any]] = []
        node_keys: dict[int, str] = {}
        for node_row in self._conn.execute(
            "SELECT * FROM story_nodes WHERE story_id = ? ORDER BY id", (story_id,)
        ).fetchall():
            node_keys[node_row["id"]] = node_row["key"]
            node: dict[str, Any] = {"key": node_row["key"], "type": node_row["type"]}
            for column in ("title", "synopsis"):
                if node_row[column] is not None:
                    node[column] = node_row[column]
            for column in ("content", "media"):
                if node_row[column] is not None:
                    node[column] = _load(node_row[column])
            nodes.append(node)

        paths: list[dict[str, Any]] = []
        path_keys: dict[int, str] = {}
        for path_row in self._conn.execute(
            "SELECT * FROM story_paths WHERE story_id = ? ORDER BY id", (story_id,)
        ).fetchall():
            path_keys[path_row["id"]] = path_row["key"]
            path: dict[str, Any] = {"key": path_row["key"], "label": path_row["label"]}
            if path_row["summary"] is not None:
                path["summary"] = path_row["summary"]
            if path_row["metadata"] is not None:
                path["metadata"] = _load(path_row["metadata"])
            paths.append(path)

        transitions: list[dict[str, Any]] = []
        for tr_row in self._conn.execute(
            "SELECT * FROM story_transitions WHERE story_id = ? "
            "ORDER BY from_node_id, ordering, id",
            (story_id,),
        ).fetchall():
            transition: dict[str, Any] = {
                "from": node_keys[tr_row["from_node_id"]],
                "path": path_keys[tr_row["path_id"]],
            }
            if tr_row["to_node_id"] is not None:
                transition["to"] = node_keys[tr_row["to_node_id"]]
            if tr_row["ordering"] is not None:
                transition["ordering"] = tr_row["ordering"]
            for column in ("condition", "effect"):
                if tr_row[column] is not None:
                    transition[column] = _load(tr_row[column])
            transitions.append(transition)

        return {
            "slug": row["slug"],
            "title": row["title"],
            "summary": row["summary"],
            "tags": _load(row["tags"]) or [],
            "visibility": row["visibility"],
            "nodes": nodes,
            "paths": paths,
            "transitions": transitions,
        }
