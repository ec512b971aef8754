from __future__ import annotations

import unittest

from cutoff_intake.inference import infer_entities
from cutoff_intake.merge import EntitySet, MergeEngine
from cutoff_intake.models import AdmissionRecord, Category, Institute, Snapshot


def row(opening: str = "1", closing: str = "63", **overrides: str) -> dict[str, str]:
    data = {
        "Year": "2025",
        "Round": "1",
        "College": "Indian Institute of Technology Bombay",
        "Couse": "Computer Science and Engineering (4 Years, Bachelor of Technology)",
        "Quota": "AI",
        "Seat Type": "OPEN",
        "Gender": "Gender-Neutral",
        "Opening Rank": opening,
        "Closing Rank": closing,
    }
    data.update(overrides)
    return data


def stored_record(rank: int, **overrides) -> AdmissionRecord:
    record = infer_entities(row(str(rank), str(rank + 10))).record
    return AdmissionRecord.from_dict({**record.to_dict(), "rank": rank, **overrides})


class EntitySetTests(unittest.TestCase):
    def test_full_tuple_uniqueness_ignores_storage_id(self):
        items = EntitySet([Category("OPEN", "OPEN", "General Category", id=7)])
        self.assertFalse(items.add(Category("OPEN", "OPEN", "General Category")))
        self.assertTrue(items.add(Category("OPEN", "OPEN", "General")))
        self.assertEqual(len(items), 2)
        self.assertEqual(items.to_list()[0].id, 7)
        self.assertIn(Category("OPEN", "OPEN", "General"), items)
        self.assertNotIn("OPEN", items)


class MergeEngineTests(unittest.TestCase):
    def test_ranks_start_after_existing_maximum(self):
        existing = Snapshot(records=[stored_record(4), stored_record(17), stored_record(9)])
        engine = MergeEngine(existing)
        first = engine.merge(infer_entities(row("100", "200")))
        second = engine.merge(infer_entities(row("300", "400")))
        self.assertEqual(engine.starting_rank, 17)
        self.assertEqual((first.rank, second.rank), (18, 19))
        self.assertEqual(len(engine.snapshot().records), 5)

    def test_duplicates_are_skipped_without_advancing_rank(self):
        engine = MergeEngine()
        self.assertIsNotNone(engine.merge(infer_entities(row())))
        self.assertIsNone(engine.merge(infer_entities(row())))
        third = engine.merge(infer_entities(row("2", "70")))
        self.assertEqual(engine.duplicates_skipped, 1)
        self.assertEqual(engine.new_records_added, 2)
        self.assertEqual(third.rank, 2)

    def test_duplicate_of_existing_record_is_skipped(self):
        existing = Snapshot(records=[stored_record(5)])
        engine = MergeEngine(existing)
        self.assertIsNone(engine.merge(infer_entities(row("5", "15"))))
        self.assertEqual(engine.duplicates_skipped, 1)

    def test_every_key_field_distinguishes_records(self):
        engine = MergeEngine()
        engine.merge(infer_entities(row()))
        variants = [
            {"College": "IIT Delhi"},
            {"Couse": "Civil Engineering"},
            {"Seat Type": "EWS"},
            {"Gender": "Female-only (including Supernumerary)"},
            {"Round": "2"},
        ]
        for overrides in variants:
            with self.subTest(overrides=overrides):
                self.assertIsNotNone(engine.merge(infer_entities(row(**overrides))))
        self.assertIsNotNone(engine.merge(infer_entities(row("2"))))
        self.assertIsNotNone(engine.merge(infer_entities(row("1", "64"))))
        self.assertEqual(engine.duplicates_skipped, 0)

    def test_quota_and_year_are_not_part_of_the_key(self):
        engine = MergeEngine()
        engine.merge(infer_entities(row()))
        self.assertIsNone(engine.merge(infer_entities(row(Quota="OS", Year="2024"))))

    def test_entities_are_unioned_with_existing(self):
        existing = Snapshot(
            institutes=[Institute("IITBOM", "Indian Institute of Technology Bombay", "IIT", "Mumbai, Maharashtra", id=1)]
        )
        engine = MergeEngine(existing)
        engine.merge(infer_entities(row()))
        engine.merge(infer_entities(row("2", "70")))
        engine.merge(infer_entities(row(College="NIT Trichy")))
        snapshot = engine.snapshot()
        self.assertEqual([item.code for item in snapshot.institutes], ["IITBOM", "NITTRI"])
        self.assertEqual(snapshot.institutes[0].id, 1)
        self.assertEqual(len(snapshot.programs), 1)
        self.assertEqual(len(snapshot.categories), 1)
        self.assertEqual(len(snapshot.rounds), 1)

    def test_existing_snapshot_is_not_mutated(self):
        existing = Snapshot(records=[stored_record(1)])
        engine = MergeEngine(existing)
        engine.merge(infer_entities(row("9", "99")))
        self.assertEqual(len(existing.records), 1)
        self.assertEqual(existing.institutes, [])


if __name__ == "__main__":
    unittest.main()
