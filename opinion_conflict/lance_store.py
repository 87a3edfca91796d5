"""LanceDB-backed storage for cards, profiles and conflict edges.

Each record type lives in its own table with an explicit PyArrow schema.
List fields are stored as JSON strings and timestamps as ISO-8601 strings.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any

import lancedb
import pyarrow as pa

from opinion_conflict.errors import ConstraintViolation
from opinion_conflict.logger import get_logger
from opinion_conflict.models import (
    Card,
    CardConflict,
    CognitiveConflict,
    UserCognitiveProfile,
    pair_key,
    triple_key,
)
from opinion_conflict.store import ConflictStore

logger = get_logger(__name__)

CARDS = "cards"
PROFILES = "cognitive_profiles"
CARD_CONFLICTS = "card_conflicts"
COGNITIVE_CONFLICTS = "cognitive_conflicts"

SCHEMAS: dict[str, pa.Schema] = {
    CARDS: pa.schema([
        pa.field("id", pa.string()),
        pa.field("owner_id", pa.string()),
        pa.field("title", pa.string()),
        pa.field("viewpoint_summary", pa.string()),
        pa.field("keywords", pa.string()),
        pa.field("topic_hint", pa.string()),
        pa.field("created_at", pa.string()),
        pa.field("updated_at", pa.string()),
    ]),
    PROFILES: pa.schema([
        pa.field("id", pa.string()),
        pa.field("owner_id", pa.string()),
        pa.field("topic", pa.string()),
        pa.field("belief_statement", pa.string()),
        pa.field("contributing_card_ids", pa.string()),  # JSON list
        pa.field("keywords", pa.string()),
        pa.field("belief_type", pa.string()),
        pa.field("confidence", pa.float64()),
        pa.field("is_active", pa.bool_()),
        pa.field("created_at", pa.string()),
        pa.field("updated_at", pa.string()),
    ]),
    CARD_CONFLICTS: pa.schema([
        pa.field("id", pa.string()),
        pa.field("owner_id", pa.string()),
        pa.field("card_id_low", pa.string()),
        pa.field("card_id_high", pa.string()),
        pa.field("pair_key", pa.string()),
        pa.field("conflict_type", pa.string()),
        pa.field("topic", pa.string()),
        pa.field("similarity_score", pa.float64()),
        pa.field("conflict_score", pa.float64()),
        pa.field("description", pa.string()),
        pa.field("ai_analysis", pa.string()),
        pa.field("acknowledged", pa.bool_()),
        pa.field("created_at", pa.string()),
        pa.field("acknowledged_at", pa.string()),
    ]),
    COGNITIVE_CONFLICTS: pa.schema([
        pa.field("id", pa.string()),
        pa.field("owner_id", pa.string()),
        pa.field("card_id", pa.string()),
        pa.field("profile_id", pa.string()),
        pa.field("triple_key", pa.string()),
        pa.field("conflict_type", pa.string()),
        pa.field("topic", pa.string()),
        pa.field("user_belief", pa.string()),
        pa.field("card_viewpoint", pa.string()),
        pa.field("conflict_score", pa.float64()),
        pa.field("description", pa.string()),
        pa.field("ai_analysis", pa.string()),
        pa.field("acknowledged", pa.bool_()),
        pa.field("dismissed", pa.bool_()),
        pa.field("created_at", pa.string()),
        pa.field("acknowledged_at", pa.string()),
        pa.field("dismissed_at", pa.string()),
    ]),
}


def _sql(value: Any) -> str:
    """Render a Python value as a SQL literal for a where clause."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return "'" + str(value).replace("'", "''") + "'"


def _newest_first(rows: list[dict]) -> list[dict]:
    return sorted(rows, key=lambda r: r.get("created_at") or "", reverse=True)


class LanceConflictStore(ConflictStore):
    """LanceDB wrapper implementing the conflict store contract.

    LanceDB has no unique indexes, so the two uniqueness keys (``pair_key``
    and ``triple_key``) are enforced with ``merge_insert`` on the key column
    under a process-wide lock, followed by a read-back to confirm which
    writer's row is stored.
    """

    def __init__(self, db_path: str | Path = "./data/lancedb") -> None:
        """Initialize the LanceDB store.

        Args:
            db_path: Path to LanceDB database directory
        """
        self.db_path = Path(db_path)
        self.db_path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

        self.db = lancedb.connect(str(self.db_path))
        self.tables = {name: self._get_or_create_table(name) for name in SCHEMAS}

    def _get_or_create_table(self, name: str):
        """Get existing table or create it with its schema."""
        try:
            return self.db.open_table(name)
        except Exception:
            logger.info("Creating LanceDB table %s in %s", name, self.db_path)
            return self.db.create_table(name, schema=SCHEMAS[name])

    def _select(self, name: str, where: str | None = None) -> list[dict]:
        query = self.tables[name].search()
        if where:
            query = query.where(where)
        return query.limit(None).to_list()

    def _upsert(self, name: str, record: dict) -> None:
        (
            self.tables[name]
            .merge_insert("id")
            .when_matched_update_all()
            .when_not_matched_insert_all()
            .execute([record])
        )

    def _insert_unique(self, name: str, key_column: str, record: dict) -> None:
        key = record[key_column]
        with self._lock:
            if self.tables[name].count_rows(f"{key_column} = {_sql(key)}") > 0:
                raise ConstraintViolation(key)
            (
                self.tables[name]
                .merge_insert(key_column)
                .when_not_matched_insert_all()
                .execute([record])
            )
            self._keep_first_writer(name, key_column, record)

    def _keep_first_writer(self, name: str, key_column: str, record: dict) -> None:
        """Settle writers in other processes that passed the existence check.

        The oldest row for the key wins. A losing writer deletes its own row
        before raising, so the key is left with exactly one row.

        Raises:
            ConstraintViolation: If another row for the key is older
        """
        key = record[key_column]
        rows = self._select(name, f"{key_column} = {_sql(key)}")
        rows.sort(key=lambda r: (r["created_at"] or "", r["id"]))
        if rows and rows[0]["id"] == record["id"]:
            return

        self.tables[name].delete(f"id = {_sql(record['id'])}")
        logger.debug("Another writer stored %s first, removed %s", key, record["id"])
        raise ConstraintViolation(key)

    # Cards

    def add_card(self, card: Card) -> None:
        self._upsert(CARDS, card.to_dict())

    def get_card(self, card_id: str) -> Card | None:
        rows = self._select(CARDS, f"id = {_sql(card_id)}")
        return Card.from_dict(rows[0]) if rows else None

    def list_cards(self, owner_id: str, limit: int | None = None) -> list[Card]:
        rows = _newest_first(self._select(CARDS, f"owner_id = {_sql(owner_id)}"))
        if limit is not None:
            rows = rows[:limit]
        return [Card.from_dict(r) for r in rows]

    # Profiles

    @staticmethod
    def _profile_record(profile: UserCognitiveProfile) -> dict:
        record = profile.to_dict()
        record["contributing_card_ids"] = json.dumps(record["contributing_card_ids"])
        return record

    @staticmethod
    def _profile_from_row(row: dict) -> UserCognitiveProfile:
        row = dict(row)
        row["contributing_card_ids"] = json.loads(row.get("contributing_card_ids") or "[]")
        return UserCognitiveProfile.from_dict(row)

    def save_profile(self, profile: UserCognitiveProfile) -> None:
        where = f"owner_id = {_sql(profile.owner_id)} AND topic = {_sql(profile.topic)}"
        with self._lock:
            for row in self._select(PROFILES, where):
                if row["id"] != profile.id:
                    raise ConstraintViolation(f"{profile.owner_id}:{profile.topic}")
            self._upsert(PROFILES, self._profile_record(profile))

    def get_profile(self, profile_id: str) -> UserCognitiveProfile | None:
        rows = self._select(PROFILES, f"id = {_sql(profile_id)}")
        return self._profile_from_row(rows[0]) if rows else None

    def get_profile_by_topic(self, owner_id: str, topic: str) -> UserCognitiveProfile | None:
        rows = self._select(PROFILES, f"owner_id = {_sql(owner_id)} AND topic = {_sql(topic)}")
        return self._profile_from_row(rows[0]) if rows else None

    def list_profiles(self, owner_id: str, active_only: bool = True) -> list[UserCognitiveProfile]:
        where = f"owner_id = {_sql(owner_id)}"
        if active_only:
            where += " AND is_active = true"
        rows = sorted(self._select(PROFILES, where), key=lambda r: r.get("created_at") or "")
        return [self._profile_from_row(r) for r in rows]

    # Card-to-card conflicts

    def insert_card_conflict_if_absent(self, conflict: CardConflict) -> CardConflict:
        self._insert_unique(CARD_CONFLICTS, "pair_key", conflict.to_dict())
        return conflict

    def get_card_conflict(self, conflict_id: str) -> CardConflict | None:
        rows = self._select(CARD_CONFLICTS, f"id = {_sql(conflict_id)}")
        return CardConflict.from_dict(rows[0]) if rows else None

    def find_card_conflict(self, owner_id: str, card_id_a: str, card_id_b: str) -> CardConflict | None:
        key = pair_key(owner_id, card_id_a, card_id_b)
        rows = self._select(CARD_CONFLICTS, f"pair_key = {_sql(key)}")
        return CardConflict.from_dict(rows[0]) if rows else None

    def list_card_conflicts(
        self,
        owner_id: str,
        acknowledged: bool | None = None,
        card_id: str | None = None,
    ) -> list[CardConflict]:
        clauses = [f"owner_id = {_sql(owner_id)}"]
        if acknowledged is not None:
            clauses.append(f"acknowledged = {_sql(acknowledged)}")
        if card_id is not None:
            clauses.append(f"(card_id_low = {_sql(card_id)} OR card_id_high = {_sql(card_id)})")
        rows = _newest_first(self._select(CARD_CONFLICTS, " AND ".join(clauses)))
        return [CardConflict.from_dict(r) for r in rows]

    def update_card_conflict(self, conflict: CardConflict) -> None:
        values: dict[str, Any] = {"acknowledged": conflict.acknowledged}
        if conflict.acknowledged_at is not None:
            values["acknowledged_at"] = conflict.acknowledged_at.isoformat()
        self.tables[CARD_CONFLICTS].update(where=f"id = {_sql(conflict.id)}", values=values)

    def count_card_conflicts(self, owner_id: str, acknowledged: bool | None = None) -> int:
        where = f"owner_id = {_sql(owner_id)}"
        if acknowledged is not None:
            where += f" AND acknowledged = {_sql(acknowledged)}"
        return self.tables[CARD_CONFLICTS].count_rows(where)

    # Card-to-profile conflicts

    def insert_cognitive_conflict_if_absent(self, conflict: CognitiveConflict) -> CognitiveConflict:
        self._insert_unique(COGNITIVE_CONFLICTS, "triple_key", conflict.to_dict())
        return conflict

    def get_cognitive_conflict(self, conflict_id: str) -> CognitiveConflict | None:
        rows = self._select(COGNITIVE_CONFLICTS, f"id = {_sql(conflict_id)}")
        return CognitiveConflict.from_dict(rows[0]) if rows else None

    def find_cognitive_conflict(self, owner_id: str, card_id: str, profile_id: str) -> CognitiveConflict | None:
        key = triple_key(owner_id, card_id, profile_id)
        rows = self._select(COGNITIVE_CONFLICTS, f"triple_key = {_sql(key)}")
        return CognitiveConflict.from_dict(rows[0]) if rows else None

    def list_cognitive_conflicts(
        self,
        owner_id: str,
        card_id: str | None = None,
        acknowledged: bool | None = None,
        dismissed: bool | None = None,
    ) -> list[CognitiveConflict]:
        where = self._cognitive_where(owner_id, card_id, acknowledged, dismissed)
        rows = _newest_first(self._select(COGNITIVE_CONFLICTS, where))
        return [CognitiveConflict.from_dict(r) for r in rows]

    def update_cognitive_conflict(self, conflict: CognitiveConflict) -> None:
        values: dict[str, Any] = {
            "acknowledged": conflict.acknowledged,
            "dismissed": conflict.dismissed,
        }
        if conflict.acknowledged_at is not None:
            values["acknowledged_at"] = conflict.acknowledged_at.isoformat()
        if conflict.dismissed_at is not None:
            values["dismissed_at"] = conflict.dismissed_at.isoformat()
        self.tables[COGNITIVE_CONFLICTS].update(where=f"id = {_sql(conflict.id)}", values=values)

    def count_cognitive_conflicts(
        self,
        owner_id: str,
        acknowledged: bool | None = None,
        dismissed: bool | None = None,
    ) -> int:
        where = self._cognitive_where(owner_id, None, acknowledged, dismissed)
        return self.tables[COGNITIVE_CONFLICTS].count_rows(where)

    @staticmethod
    def _cognitive_where(
        owner_id: str,
        card_id: str | None,
        acknowledged: bool | None,
        dismissed: bool | None,
    ) -> str:
        clauses = [f"owner_id = {_sql(owner_id)}"]
        if card_id is not None:
            clauses.append(f"card_id = {_sql(card_id)}")
        if acknowledged is not None:
            clauses.append(f"acknowledged = {_sql(acknowledged)}")
        if dismissed is not None:
            clauses.append(f"dismissed = {_sql(dismissed)}")
        return " AND ".join(clauses)

    def table_counts(self) -> dict[str, int]:
        """Row count per table."""
        return {name: table.count_rows() for name, table in self.tables.items()}

    def __repr__(self) -> str:
        return f"LanceConflictStore(path={self.db_path}, tables={sorted(self.tables)})"
