"""Test the normalized bill record."""
import pytest
from bill_clarifier.models.bill import METADATA_FIELDS, RawBillRecord
from tests.factories import make_record


class TestRawBillRecord:
    def test_all_fields_optional(self):
        record = RawBillRecord()
        assert record.total_amount is None
        assert record.billing_items == []
        assert record.is_empty()

    def test_non_finite_floats_dropped(self):
        record = RawBillRecord(total_amount=float("nan"), energy_cost=float("inf"))
        assert record.total_amount is None
        assert record.energy_cost is None

    def test_month_out_of_range(self):
        assert RawBillRecord(reference_month=13).reference_month is None
        assert RawBillRecord(reference_month=12).reference_month == 12

    @pytest.mark.parametrize("raw,expected", [(150, 100.0), (-5, 0.0), (87.5, 87.5)])
    def test_confidence_clamped(self, raw, expected):
        assert RawBillRecord(extraction_confidence=raw).extraction_confidence == expected

    def test_unreadable(self):
        record = RawBillRecord.unreadable()
        assert record.effective_confidence == 0.0
        assert record.is_empty()
        assert set(record.fields_not_found) == set(RawBillRecord.data_field_names())

    def test_data_fields_exclude_metadata(self):
        names = RawBillRecord.data_field_names()
        assert not METADATA_FIELDS & set(names)
        assert "total_amount" in names

    def test_present_fields(self):
        record = make_record()
        present = record.present_fields()
        assert "total_amount" in present
        assert "billing_items" not in present
        assert "extraction_confidence" not in present

    def test_effective_confidence_defaults_to_zero(self):
        assert RawBillRecord().effective_confidence == 0.0
