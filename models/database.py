"""SQLite database initialization and CRUD operations."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional

from config.exceptions import BlockPersistError, DatabaseError
from models.chapter import Block, Chapter, UnitDescriptor
from models.enums import BlockType, ChapterGenerationStatus, UnitStatus
from models.project import Project

logger = logging.getLogger(__name__)

# SQL for creating all tables
_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS projects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    genre TEXT DEFAULT '',
    target_word_count INTEGER DEFAULT 50000,
    awaiting_approval_chapter_id INTEGER,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS chapters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL REFERENCES projects(id),
    title TEXT NOT NULL DEFAULT '',
    sort_order INTEGER NOT NULL,
    unit_outline TEXT NOT NULL DEFAULT '[]',
    word_count INTEGER DEFAULT 0,
    generation_status TEXT DEFAULT 'pending',
    summary TEXT,
    character_appearances TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS blocks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    chapter_id INTEGER NOT NULL REFERENCES chapters(id),
    position INTEGER NOT NULL,
    block_type TEXT DEFAULT 'paragraph',
    content TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

# Indexes added via migration (idempotent)
_MIGRATION_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_chapters_project_order ON chapters(project_id, sort_order)",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_blocks_chapter_position ON blocks(chapter_id, position)",
    "ALTER TABLE projects ADD COLUMN awaiting_approval_chapter_id INTEGER",
]


def _dump_units(units: Iterable[UnitDescriptor]) -> str:
    return json.dumps([u.to_dict() for u in units], ensure_ascii=False)


def _load_units(raw: Optional[str]) -> list[UnitDescriptor]:
    if not raw:
        return []
    return [UnitDescriptor.from_dict(item) for item in json.loads(raw)]


class Database:
    """SQLite store for projects, chapters, unit outlines, and blocks."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("PRAGMA journal_mode = WAL")
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self):
        with self._connect() as conn:
            conn.executescript(_CREATE_TABLES_SQL)
        self._migrate()

    def _migrate(self):
        """Apply idempotent schema migrations (indexes, constraints)."""
        with self._connect() as conn:
            for sql in _MIGRATION_SQL:
                try:
                    conn.execute(sql)
                except sqlite3.OperationalError as e:
                    logger.debug("Migration skipped (already applied): %s", e)

    # ---- Project CRUD ----

    def create_project(self, project: Project) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO projects (title, genre, target_word_count) VALUES (?, ?, ?)",
                (project.title, project.genre, project.target_word_count),
            )
            return cursor.lastrowid

    def get_project(self, project_id: int) -> Optional[Project]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
            if not row:
                return None
            return Project(
                id=row["id"], title=row["title"], genre=row["genre"],
                target_word_count=row["target_word_count"],
                awaiting_approval_chapter_id=row["awaiting_approval_chapter_id"],
                created_at=row["created_at"],
            )

    def list_projects(self) -> list[Project]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM projects ORDER BY id").fetchall()
            return [
                Project(
                    id=r["id"], title=r["title"], genre=r["genre"],
                    target_word_count=r["target_word_count"],
                    awaiting_approval_chapter_id=r["awaiting_approval_chapter_id"],
                    created_at=r["created_at"],
                )
                for r in rows
            ]

    def set_awaiting_approval(self, project_id: int, chapter_id: Optional[int]):
        """Record the chapter held at a checkpoint, or clear the gate with None."""
        with self._connect() as conn:
            conn.execute(
                "UPDATE projects SET awaiting_approval_chapter_id = ? WHERE id = ?",
                (chapter_id, project_id),
            )

    # ---- Chapter CRUD ----

    def create_chapter(self, chapter: Chapter) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO chapters (project_id, title, sort_order, unit_outline, "
                "word_count, generation_status) VALUES (?, ?, ?, ?, ?, ?)",
                (chapter.project_id, chapter.title, chapter.sort_order,
                 _dump_units(chapter.units), chapter.word_count,
                 chapter.generation_status.value),
            )
            return cursor.lastrowid

    def get_chapter(self, chapter_id: int) -> Optional[Chapter]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM chapters WHERE id = ?", (chapter_id,)).fetchone()
            if not row:
                return None
            return self._row_to_chapter(row)

    def get_chapters(self, project_id: int) -> list[Chapter]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM chapters WHERE project_id = ? ORDER BY sort_order, id",
                (project_id,),
            ).fetchall()
            return [self._row_to_chapter(r) for r in rows]

    def set_unit_outline(self, chapter_id: int, units: list[UnitDescriptor]):
        """Replace the chapter's whole unit list in one write."""
        with self._connect() as conn:
            conn.execute(
                "UPDATE chapters SET unit_outline=?, updated_at=CURRENT_TIMESTAMP WHERE id=?",
                (_dump_units(units), chapter_id),
            )

    def update_unit_status(self, chapter_id: int, index: int, status: UnitStatus):
        """Set one unit's status, leaving sibling units and chapter fields untouched."""
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            self._set_unit_status(conn, chapter_id, index, status)

    def _set_unit_status(self, conn: sqlite3.Connection, chapter_id: int, index: int, status: UnitStatus):
        """Index-addressed status write inside the caller's transaction."""
        row = conn.execute(
            "SELECT unit_outline FROM chapters WHERE id = ?", (chapter_id,)
        ).fetchone()
        if not row:
            raise DatabaseError("Chapter not found", {"chapter_id": chapter_id})
        units = _load_units(row["unit_outline"])
        if not 0 <= index < len(units):
            raise DatabaseError(
                "Unit index out of range",
                {"chapter_id": chapter_id, "index": index, "units": len(units)},
            )
        units[index].status = status
        conn.execute(
            "UPDATE chapters SET unit_outline=?, updated_at=CURRENT_TIMESTAMP WHERE id=?",
            (_dump_units(units), chapter_id),
        )

    def update_generation_status(self, chapter_id: int, status: ChapterGenerationStatus):
        with self._connect() as conn:
            conn.execute(
                "UPDATE chapters SET generation_status=?, updated_at=CURRENT_TIMESTAMP WHERE id=?",
                (status.value, chapter_id),
            )

    def update_chapter_summary(
        self,
        chapter_id: int,
        summary: str,
        character_appearances: Optional[list[dict]] = None,
    ):
        with self._connect() as conn:
            conn.execute(
                "UPDATE chapters SET summary=?, character_appearances=?, "
                "updated_at=CURRENT_TIMESTAMP WHERE id=?",
                (summary,
                 json.dumps(character_appearances, ensure_ascii=False)
                 if character_appearances is not None else None,
                 chapter_id),
            )

    def reset_units(self, project_id: int, from_statuses: Iterable[UnitStatus]) -> int:
        """Move every unit in the given statuses back to pending across the project.

        Chapters that had any unit reset return to generation_status=pending.

        Returns:
            Number of units reset.
        """
        targets = set(from_statuses)
        total = 0
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            rows = conn.execute(
                "SELECT id, unit_outline FROM chapters WHERE project_id = ?", (project_id,)
            ).fetchall()
            for row in rows:
                units = _load_units(row["unit_outline"])
                changed = 0
                for unit in units:
                    if unit.status in targets:
                        unit.status = UnitStatus.PENDING
                        changed += 1
                if changed:
                    conn.execute(
                        "UPDATE chapters SET unit_outline=?, generation_status=?, "
                        "updated_at=CURRENT_TIMESTAMP WHERE id=?",
                        (_dump_units(units), ChapterGenerationStatus.PENDING.value, row["id"]),
                    )
                    total += changed
        logger.info("Reset %d unit(s) to pending in project %d", total, project_id)
        return total

    def reset_chapter(self, chapter_id: int):
        """Delete the chapter's blocks, reset all units to pending, zero its word count."""
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT unit_outline FROM chapters WHERE id = ?", (chapter_id,)
            ).fetchone()
            if not row:
                raise DatabaseError("Chapter not found", {"chapter_id": chapter_id})
            units = _load_units(row["unit_outline"])
            for unit in units:
                unit.status = UnitStatus.PENDING
            conn.execute("DELETE FROM blocks WHERE chapter_id = ?", (chapter_id,))
            conn.execute(
                "UPDATE chapters SET unit_outline=?, word_count=0, generation_status=?, "
                "updated_at=CURRENT_TIMESTAMP WHERE id=?",
                (_dump_units(units), ChapterGenerationStatus.PENDING.value, chapter_id),
            )
        logger.info("Chapter %d reset for regeneration", chapter_id)

    def _row_to_chapter(self, row) -> Chapter:
        appearances = row["character_appearances"]
        return Chapter(
            id=row["id"], project_id=row["project_id"],
            title=row["title"], sort_order=row["sort_order"],
            units=_load_units(row["unit_outline"]),
            word_count=row["word_count"] or 0,
            generation_status=ChapterGenerationStatus(row["generation_status"]),
            summary=row["summary"],
            character_appearances=json.loads(appearances) if appearances else None,
            created_at=row["created_at"], updated_at=row["updated_at"],
        )

    # ---- Block CRUD ----

    def commit_unit(
        self,
        chapter_id: int,
        unit_index: int,
        contents: list[str],
        start_position: int,
        words: int,
    ) -> list[Block]:
        """Record a finished unit: its paragraphs, its words, and status done.

        Blocks, the chapter word count, and the unit status are written in one
        transaction, so a unit is either fully committed or not at all and a
        later resume never writes its prose twice. start_position must equal
        the chapter's current block count.

        Raises:
            BlockPersistError: On a position gap or any SQLite failure. Nothing is written.
        """
        try:
            with self._connect() as conn:
                conn.execute("BEGIN IMMEDIATE")
                blocks = self._insert_blocks(conn, chapter_id, contents, start_position)
                conn.execute(
                    "UPDATE chapters SET word_count=word_count+?, updated_at=CURRENT_TIMESTAMP WHERE id=?",
                    (words, chapter_id),
                )
                self._set_unit_status(conn, chapter_id, unit_index, UnitStatus.DONE)
                return blocks
        except sqlite3.Error as e:
            raise BlockPersistError(chapter_id, f"Failed to commit unit: {e}") from e

    def _insert_blocks(
        self, conn: sqlite3.Connection, chapter_id: int, contents: list[str], start_position: int,
    ) -> list[Block]:
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM blocks WHERE chapter_id = ?", (chapter_id,)
        ).fetchone()
        if row["n"] != start_position:
            raise BlockPersistError(
                chapter_id,
                f"Block position gap: expected start {row['n']}, got {start_position}",
            )
        blocks = []
        for offset, content in enumerate(contents):
            position = start_position + offset
            cursor = conn.execute(
                "INSERT INTO blocks (chapter_id, position, block_type, content) "
                "VALUES (?, ?, ?, ?)",
                (chapter_id, position, BlockType.PARAGRAPH.value, content),
            )
            blocks.append(Block(
                id=cursor.lastrowid, chapter_id=chapter_id,
                position=position, content=content,
            ))
        return blocks

    def get_blocks(self, chapter_id: int) -> list[Block]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM blocks WHERE chapter_id = ? ORDER BY position",
                (chapter_id,),
            ).fetchall()
            return [
                Block(
                    id=r["id"], chapter_id=r["chapter_id"], position=r["position"],
                    content=r["content"], block_type=BlockType(r["block_type"]),
                    created_at=r["created_at"],
                )
                for r in rows
            ]

    def delete_blocks(self, chapter_id: int) -> int:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM blocks WHERE chapter_id = ?", (chapter_id,))
            return cursor.rowcount

    def get_chapter_text(self, chapter_id: int) -> str:
        """Return the chapter's blocks joined by blank lines."""
        return "\n\n".join(b.content for b in self.get_blocks(chapter_id))
