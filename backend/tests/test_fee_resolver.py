"""
Tests for the two-tier fee schedule: lookups, uniqueness and write rules.
"""
import pytest
from unittest.mock import patch
from uuid import uuid4

from sqlalchemy.exc import IntegrityError

from app.models.db_models import FeeEntryDB
from app.services.fees import FeeResolver, SOURCE_BANK, SOURCE_LAWYER


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def resolver(db, audit_sink):
    return FeeResolver(db, audit_sink)


@pytest.fixture
def bank_wide_fee(resolver, seed):
    result = resolver.create_fee(seed.office.id, seed.bank.id, seed.document_type.id, 12000)
    assert result.ok, result.error_message
    return result.data


# =============================================================================
# UNIQUENESS
# =============================================================================

class TestFeeUniqueness:

    def test_bank_wide_then_lawyer_entry_do_not_conflict(self, resolver, seed, bank_wide_fee):
        result = resolver.create_fee(
            seed.office.id, seed.bank.id, seed.document_type.id, 15000, lawyer_id=seed.lawyer.id,
        )
        assert result.ok
        assert result.data.lawyer_id == seed.lawyer.id

    def test_duplicate_bank_wide_entry_conflicts(self, resolver, seed, bank_wide_fee):
        result = resolver.create_fee(seed.office.id, seed.bank.id, seed.document_type.id, 9000)
        assert not result.ok
        assert result.error_kind == "conflict"

    def test_duplicate_lawyer_entry_conflicts(self, resolver, seed):
        first = resolver.create_fee(
            seed.office.id, seed.bank.id, seed.document_type.id, 15000, lawyer_id=seed.lawyer.id,
        )
        second = resolver.create_fee(
            seed.office.id, seed.bank.id, seed.document_type.id, 16000, lawyer_id=seed.lawyer.id,
        )
        assert first.ok
        assert second.error_kind == "conflict"

    def test_same_tuple_for_another_bank_is_fine(self, db, resolver, seed, bank_wide_fee):
        result = resolver.create_fee(seed.office.id, seed.other_bank.id, seed.document_type.id, 12000)
        assert result.ok
        assert db.query(FeeEntryDB).count() == 2

    def test_storage_index_rejects_bank_wide_duplicates(self, db, seed, bank_wide_fee):
        db.add(FeeEntryDB(
            id=str(uuid4()),
            office_id=seed.office.id,
            bank_id=seed.bank.id,
            lawyer_id=None,
            document_type_id=seed.document_type.id,
            amount=1,
        ))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

    def test_lost_race_is_reported_as_conflict(self, db, resolver, seed, bank_wide_fee):
        # Pre-check passes (as for a concurrent writer); the index still refuses.
        with patch.object(FeeResolver, "_check_unique", return_value=None):
            result = resolver.create_fee(seed.office.id, seed.bank.id, seed.document_type.id, 9000)
        assert result.error_kind == "conflict"
        assert db.query(FeeEntryDB).count() == 1


# =============================================================================
# LOOKUP
# =============================================================================

class TestResolveFee:

    def test_strict_lawyer_lookup_without_lawyer_entry(self, resolver, seed, bank_wide_fee):
        result = resolver.resolve_fee(
            seed.office.id, seed.bank.id, seed.document_type.id, lawyer_id=seed.lawyer.id,
        )
        assert not result.ok
        assert result.error_kind == "not_found"

    def test_fallback_returns_bank_wide_entry(self, resolver, seed, bank_wide_fee):
        result = resolver.resolve_fee(
            seed.office.id, seed.bank.id, seed.document_type.id, lawyer_id=seed.lawyer.id, fallback=True,
        )
        assert result.ok
        assert result.data.amount == 12000
        assert result.data.source == SOURCE_BANK
        assert result.data.fee_entry_id == bank_wide_fee.id

    def test_lawyer_entry_preferred(self, resolver, seed, bank_wide_fee):
        resolver.create_fee(seed.office.id, seed.bank.id, seed.document_type.id, 15000, lawyer_id=seed.lawyer.id)
        for fallback in (False, True):
            result = resolver.resolve_fee(
                seed.office.id, seed.bank.id, seed.document_type.id,
                lawyer_id=seed.lawyer.id, fallback=fallback,
            )
            assert result.data.amount == 15000
            assert result.data.source == SOURCE_LAWYER

    def test_without_lawyer_uses_bank_wide_entry(self, resolver, seed, bank_wide_fee):
        result = resolver.resolve_fee(seed.office.id, seed.bank.id, seed.document_type.id)
        assert result.data.amount == 12000

    def test_bank_lookup_ignores_lawyer_entries(self, resolver, seed):
        resolver.create_fee(seed.office.id, seed.bank.id, seed.document_type.id, 15000, lawyer_id=seed.lawyer.id)
        result = resolver.resolve_fee(seed.office.id, seed.bank.id, seed.document_type.id)
        assert result.error_kind == "not_found"

    def test_inactive_entry_is_invisible(self, resolver, seed, bank_wide_fee):
        resolver.update_fee(seed.office.id, bank_wide_fee.id, {"active": False})
        result = resolver.resolve_fee(seed.office.id, seed.bank.id, seed.document_type.id)
        assert result.error_kind == "not_found"

    def test_unknown_document_type(self, resolver, seed):
        result = resolver.resolve_fee(seed.office.id, seed.bank.id, "missing")
        assert result.error_kind == "validation"

    def test_bank_of_another_office(self, resolver, seed, bank_wide_fee):
        result = resolver.resolve_fee(seed.other_office.id, seed.bank.id, seed.document_type.id)
        assert result.error_kind == "not_found"


# =============================================================================
# WRITES
# =============================================================================

class TestCreateFee:

    def test_grouped_amount_string(self, resolver, seed):
        result = resolver.create_fee(seed.office.id, seed.bank.id, seed.document_type.id, "4.000.000")
        assert result.data.amount == 4000000

    def test_zero_amount_allowed(self, resolver, seed):
        assert resolver.create_fee(seed.office.id, seed.bank.id, seed.document_type.id, 0).ok

    @pytest.mark.parametrize("amount", [-1, "-500", "", None, "abc"])
    def test_invalid_amount(self, resolver, seed, amount):
        result = resolver.create_fee(seed.office.id, seed.bank.id, seed.document_type.id, amount)
        assert result.error_kind == "validation"

    def test_unpaired_lawyer_rejected(self, resolver, seed):
        result = resolver.create_fee(
            seed.office.id, seed.bank.id, seed.document_type.id, 1000, lawyer_id=seed.unpaired_lawyer.id,
        )
        assert result.error_kind == "validation"

    def test_inactive_document_type_rejected(self, db, resolver, seed):
        seed.document_type.active = False
        db.commit()
        result = resolver.create_fee(seed.office.id, seed.bank.id, seed.document_type.id, 1000)
        assert result.error_kind == "validation"

    def test_audit_event_after_commit(self, resolver, seed, audit_sink):
        result = resolver.create_fee(seed.office.id, seed.bank.id, seed.document_type.id, 1000, user_id="u1")
        event = audit_sink.emit.call_args[0][0]
        assert event.table == "fee_entries"
        assert event.action == "create"
        assert event.user_id == "u1"
        assert event.diff["fee_id"] == result.data.id


class TestUpdateFee:

    def test_amount_change(self, resolver, seed, bank_wide_fee):
        result = resolver.update_fee(seed.office.id, bank_wide_fee.id, {"amount": "13.500"})
        assert result.data.amount == 13500

    def test_pairing_is_immutable(self, resolver, seed, bank_wide_fee):
        result = resolver.update_fee(seed.office.id, bank_wide_fee.id, {"lawyer_id": seed.lawyer.id})
        assert result.error_kind == "validation"
        result = resolver.update_fee(seed.office.id, bank_wide_fee.id, {"bank_id": seed.other_bank.id})
        assert result.error_kind == "validation"

    def test_unchanged_pairing_values_are_accepted(self, resolver, seed, bank_wide_fee):
        result = resolver.update_fee(
            seed.office.id, bank_wide_fee.id, {"bank_id": seed.bank.id, "lawyer_id": None, "amount": 1},
        )
        assert result.ok

    def test_empty_changes(self, resolver, seed, bank_wide_fee):
        assert resolver.update_fee(seed.office.id, bank_wide_fee.id, {}).error_kind == "validation"

    def test_document_type_change_to_taken_tuple(self, resolver, seed, bank_wide_fee):
        other = resolver.create_fee(seed.office.id, seed.bank.id, seed.second_document_type.id, 500).data
        result = resolver.update_fee(seed.office.id, other.id, {"document_type_id": seed.document_type.id})
        assert result.error_kind == "conflict"

    def test_missing_entry(self, resolver, seed):
        assert resolver.update_fee(seed.office.id, "missing", {"amount": 1}).error_kind == "not_found"

    def test_negative_amount_leaves_entry_untouched(self, db, resolver, seed, bank_wide_fee):
        result = resolver.update_fee(seed.office.id, bank_wide_fee.id, {"amount": -5})
        assert result.error_kind == "validation"
        assert db.get(FeeEntryDB, bank_wide_fee.id).amount == 12000


class TestListAndDelete:

    @pytest.fixture
    def both_tiers(self, resolver, seed, bank_wide_fee):
        lawyer_fee = resolver.create_fee(
            seed.office.id, seed.bank.id, seed.second_document_type.id, 700, lawyer_id=seed.lawyer.id,
        ).data
        return bank_wide_fee, lawyer_fee

    def test_unset_lists_both_tiers_bank_wide_first(self, resolver, seed, both_tiers):
        entries = resolver.list_fees(seed.office.id, seed.bank.id).data
        assert [e.id for e in entries] == [both_tiers[0].id, both_tiers[1].id]

    def test_none_lists_bank_wide_only(self, resolver, seed, both_tiers):
        entries = resolver.list_fees(seed.office.id, seed.bank.id, lawyer_id=None).data
        assert [e.id for e in entries] == [both_tiers[0].id]

    def test_lawyer_lists_only_lawyer_entries(self, resolver, seed, both_tiers):
        entries = resolver.list_fees(seed.office.id, seed.bank.id, lawyer_id=seed.lawyer.id).data
        assert [e.id for e in entries] == [both_tiers[1].id]

    def test_unpaired_lawyer_listing_rejected(self, resolver, seed, both_tiers):
        result = resolver.list_fees(seed.office.id, seed.bank.id, lawyer_id=seed.unpaired_lawyer.id)
        assert result.error_kind == "validation"

    def test_delete(self, db, resolver, seed, bank_wide_fee):
        assert resolver.delete_fee(seed.office.id, bank_wide_fee.id).ok
        assert db.query(FeeEntryDB).count() == 0
        assert resolver.delete_fee(seed.office.id, bank_wide_fee.id).error_kind == "not_found"

    def test_get_fee(self, resolver, seed, bank_wide_fee):
        assert resolver.get_fee(seed.office.id, bank_wide_fee.id).data.amount == 12000
        assert resolver.get_fee(seed.other_office.id, bank_wide_fee.id).error_kind == "not_found"
