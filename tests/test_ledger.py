from __future__ import annotations

from datetime import datetime

from webp_pipeline.core.models import ConversionRecord
from webp_pipeline.storage.ledger import ConversionLedger


def test_add_and_get(tmp_path) -> None:
    ledger = ConversionLedger(tmp_path / "data" / "conversions.db")
    record = ConversionRecord("public/a.png", "public/webp/a.webp", 2000, 500, 85)
    ledger.add_record(record)

    stored = ledger.get_by_source("public/a.png")
    assert stored.output == "public/webp/a.webp"
    assert stored.webp_size == 500
    assert isinstance(stored.converted_at, datetime)
    assert ledger.get_by_source("public/missing.png") is None


def test_replace_list_and_totals(tmp_path) -> None:
    ledger = ConversionLedger(tmp_path / "conversions.db")
    ledger.add_record(ConversionRecord("a.png", "a.webp", 1000, 400, 85, datetime(2024, 1, 1)))
    ledger.add_record(ConversionRecord("b.jpg", "b.webp", 3000, 600, 85, datetime(2024, 1, 2)))
    ledger.add_record(ConversionRecord("a.png", "a.webp", 1000, 300, 75, datetime(2024, 1, 3)))

    assert ledger.count() == 2
    assert [r.source for r in ledger.list_all()] == ["b.jpg", "a.png"]
    assert ledger.totals() == (4000, 900)


def test_delete_and_empty_totals(tmp_path) -> None:
    ledger = ConversionLedger(tmp_path / "conversions.db")
    assert ledger.totals() == (0, 0)

    ledger.add_record(ConversionRecord("a.png", "a.webp", 10, 5, 85))
    assert ledger.delete_by_source("a.png") is True
    assert ledger.delete_by_source("a.png") is False
    assert ledger.count() == 0


def test_record_dict_round_trip() -> None:
    record = ConversionRecord("a.png", "a.webp", 10, 5, 85, datetime(2024, 5, 1, 12, 0))
    assert ConversionRecord.from_dict(record.to_dict()) == record
