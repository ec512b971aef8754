from __future__ import annotations

from typing import Generic, Iterable, Iterator, TypeVar

from cutoff_intake.inference import Inference
from cutoff_intake.models import AdmissionRecord, Snapshot

T = TypeVar("T")


class EntitySet(Generic[T]):
    """Insertion-ordered set of dimension entities keyed on their full field tuple."""

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._items: dict[tuple, T] = {}
        for item in items:
            self.add(item)

    def add(self, item: T) -> bool:
        key = item.identity()  # type: ignore[attr-defined]
        if key in self._items:
            return False
        self._items[key] = item
        return True

    def __contains__(self, item: object) -> bool:
        identity = getattr(item, "identity", None)
        return identity is not None and identity() in self._items

    def __iter__(self) -> Iterator[T]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def to_list(self) -> list[T]:
        return list(self._items.values())


class MergeEngine:
    """
    Accumulates one run's records on top of an existing snapshot.

    Records are deduplicated on their composite identity key; new ones get
    ``current_max_rank + 1``. Dimension entities are merged separately by
    full-value uniqueness. The existing snapshot is never mutated.
    """

    def __init__(self, existing: Snapshot | None = None) -> None:
        existing = existing or Snapshot()
        self.records: list[AdmissionRecord] = list(existing.records)
        self._record_keys = {record.identity_key() for record in self.records}
        self.current_max_rank = existing.max_rank()
        self.starting_rank = self.current_max_rank
        self.new_records: list[AdmissionRecord] = []
        self.duplicates_skipped = 0

        self.institutes = EntitySet(existing.institutes)
        self.programs = EntitySet(existing.programs)
        self.categories = EntitySet(existing.categories)
        self.rounds = EntitySet(existing.rounds)

    @property
    def new_records_added(self) -> int:
        return len(self.new_records)

    def merge_record(self, candidate: AdmissionRecord) -> AdmissionRecord | None:
        key = candidate.identity_key()
        if key in self._record_keys:
            self.duplicates_skipped += 1
            return None
        self.current_max_rank += 1
        ranked = candidate.with_rank(self.current_max_rank)
        self.records.append(ranked)
        self._record_keys.add(key)
        self.new_records.append(ranked)
        return ranked

    def merge_entities(self, inference: Inference) -> None:
        self.institutes.add(inference.institute)
        self.programs.add(inference.program)
        self.categories.add(inference.category)
        self.rounds.add(inference.round)

    def merge(self, inference: Inference) -> AdmissionRecord | None:
        self.merge_entities(inference)
        return self.merge_record(inference.record)

    def snapshot(self) -> Snapshot:
        return Snapshot(
            records=list(self.records),
            institutes=self.institutes.to_list(),
            programs=self.programs.to_list(),
            categories=self.categories.to_list(),
            rounds=self.rounds.to_list(),
        )
