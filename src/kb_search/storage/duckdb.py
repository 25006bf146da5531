"""
DuckDB storage backend for problems and their embeddings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import duckdb

from .base import ProblemRecord, canonical_text


_PROBLEM_COLUMNS = (
    "id, problem, solution, machine_part, tags, created_by, "
    "created_at, updated_at, embedding"
)


class DuckDBStorage:
    """DuckDB-backed persistence for problems and their embedding column."""

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        self.db_path = str(Path(db_path).expanduser().resolve())
        self.read_only = read_only
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = duckdb.connect(self.db_path, read_only=read_only)
        if initialize and not read_only:
            self.initialize()

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        self._conn.close()

    def initialize(self) -> None:
        # NULL embedding means "never embedded"; an empty list is stored as-is
        # and treated as invalid by the search path.
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS problems (
                id VARCHAR PRIMARY KEY,
                problem VARCHAR NOT NULL,
                solution VARCHAR NOT NULL,
                machine_part VARCHAR,
                tags VARCHAR[] NOT NULL,
                created_by VARCHAR,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                embedding DOUBLE[]
            );
            """
        )

    def create_problem(self, record: ProblemRecord) -> ProblemRecord:
        self._conn.execute(
            """
            INSERT INTO problems (
                id, problem, solution, machine_part, tags, created_by, embedding
            )
            VALUES (?, ?, ?, ?, CAST(? AS VARCHAR[]), ?, CAST(? AS DOUBLE[]))
            """,
            [
                record.id,
                record.problem,
                record.solution,
                record.machine_part,
                list(record.tags),
                record.created_by,
                record.embedding,
            ],
        )
        stored = self.get_problem(record.id)
        if stored is None:
            raise RuntimeError(f"Failed to create problem: {record.id}")
        return stored

    def get_problem(self, problem_id: str) -> ProblemRecord | None:
        row = self._conn.execute(
            f"SELECT {_PROBLEM_COLUMNS} FROM problems WHERE id = ?",
            [problem_id],
        ).fetchone()
        if row is None:
            return None
        return self._row_to_problem(row)

    def list_problems(self) -> list[ProblemRecord]:
        rows = self._conn.execute(
            f"SELECT {_PROBLEM_COLUMNS} FROM problems ORDER BY created_at ASC, rowid ASC"
        ).fetchall()
        return [self._row_to_problem(row) for row in rows]

    def update_problem(
        self,
        problem_id: str,
        *,
        problem: str | None = None,
        solution: str | None = None,
        machine_part: str | None = None,
        tags: list[str] | None = None,
    ) -> ProblemRecord | None:
        existing = self.get_problem(problem_id)
        if existing is None:
            return None

        if machine_part is None:
            machine_part = existing.machine_part
        updated = ProblemRecord(
            id=existing.id,
            problem=existing.problem if problem is None else problem,
            solution=existing.solution if solution is None else solution,
            # An empty string clears the machine part.
            machine_part=machine_part or None,
            tags=existing.tags if tags is None else list(tags),
            created_by=existing.created_by,
            embedding=existing.embedding,
        )
        text_changed = canonical_text(updated) != canonical_text(existing)

        self._conn.execute(
            f"""
            UPDATE problems SET
                problem = ?,
                solution = ?,
                machine_part = ?,
                tags = CAST(? AS VARCHAR[]),
                updated_at = now()
                {", embedding = NULL" if text_changed else ""}
            WHERE id = ?
            """,
            [
                updated.problem,
                updated.solution,
                updated.machine_part,
                list(updated.tags),
                problem_id,
            ],
        )
        return self.get_problem(problem_id)

    def delete_problem(self, problem_id: str) -> bool:
        row = self._conn.execute(
            "DELETE FROM problems WHERE id = ? RETURNING id",
            [problem_id],
        ).fetchone()
        return row is not None

    def update_problem_embedding(self, problem_id: str, embedding: list[float]) -> bool:
        row = self._conn.execute(
            """
            UPDATE problems SET embedding = CAST(? AS DOUBLE[])
            WHERE id = ?
            RETURNING id
            """,
            [list(embedding), problem_id],
        ).fetchone()
        return row is not None

    def stats(self) -> dict[str, Any]:
        total, with_embedding = self._conn.execute(
            """
            SELECT count(*), count(embedding)
            FROM problems
            """
        ).fetchone()
        machine_parts = self._conn.execute(
            """
            SELECT DISTINCT machine_part FROM problems
            WHERE machine_part IS NOT NULL AND machine_part <> ''
            ORDER BY machine_part
            """
        ).fetchall()
        tags = self._conn.execute(
            """
            SELECT DISTINCT tag FROM (SELECT unnest(tags) AS tag FROM problems)
            ORDER BY tag
            """
        ).fetchall()
        return {
            "total": int(total),
            "with_embedding": int(with_embedding),
            "missing_embedding": int(total) - int(with_embedding),
            "machine_parts": [str(row[0]) for row in machine_parts],
            "tags": [str(row[0]) for row in tags],
        }

    @staticmethod
    def _row_to_problem(row: tuple[Any, ...]) -> ProblemRecord:
        return ProblemRecord(
            id=str(row[0]),
            problem=str(row[1]),
            solution=str(row[2]),
            machine_part=str(row[3]) if row[3] is not None else None,
            tags=[str(tag) for tag in (row[4] or [])],
            created_by=str(row[5]) if row[5] is not None else None,
            created_at=str(row[6]) if row[6] is not None else None,
            updated_at=str(row[7]) if row[7] is not None else None,
            embedding=[float(v) for v in row[8]] if row[8] is not None else None,
        )
