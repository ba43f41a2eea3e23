# Overview: Pytest coverage for per-series document numbering.

from datetime import date

import pytest

from billing.extensions import db
from billing.models import Document, DocumentSequence
from billing.services import account_service, document_service, sequence_service
from billing.services.sequence_service import format_document_number
from billing.validation import ValidationError

from conftest import line

DOC_DATE = date(2026, 4, 10)


def make_invoice(account, customer, **kwargs):
    return document_service.create_document(
        account_id=account.id,
        kind="invoice",
        customer_id=customer.id,
        lines=[line()],
        document_date=DOC_DATE,
        **kwargs,
    ).document


class TestFormatting:
    def test_format(self):
        assert format_document_number("INV/", date(2026, 1, 5), 3) == "INV/26/003"
        assert format_document_number("CN/", date(2030, 1, 5), 1234) == "CN/30/1234"

    def test_preview_uses_profile_prefix(self, db_session, account):
        account_service.update_profile(account.id, {"invoice_prefix": "ACME-"})

        preview = sequence_service.preview_next(account.id, "invoice", DOC_DATE)

        assert preview.document_number == "ACME-26/001"

    def test_unknown_kind(self, db_session, account):
        with pytest.raises(ValidationError):
            sequence_service.preview_next(account.id, "receipt")


class TestReservation:
    def test_account_creation_seeds_all_series(self, db_session, account):
        kinds = {s.kind for s in db_session.query(DocumentSequence).filter_by(account_id=account.id)}
        assert kinds == {"invoice", "credit_note", "debit_note"}

    def test_numbers_increase_per_series(self, db_session, account, local_customer):
        first = make_invoice(account, local_customer)
        second = make_invoice(account, local_customer)
        note = document_service.create_document(
            account_id=account.id,
            kind="credit_note",
            customer_id=local_customer.id,
            lines=[line(rate="100")],
            document_date=DOC_DATE,
            reason="Damaged goods",
        ).document

        assert first.document_number == "INV/26/001"
        assert second.document_number == "INV/26/002"
        assert note.document_number == "CN/26/001"
        assert sequence_service.issued_count(account.id, "invoice") == 2

    def test_preview_does_not_reserve(self, db_session, account, local_customer):
        assert sequence_service.preview_next(account.id, "invoice", DOC_DATE).sequence_number == 1
        assert sequence_service.preview_next(account.id, "invoice", DOC_DATE).sequence_number == 1

        make_invoice(account, local_customer)

        assert sequence_service.preview_next(account.id, "invoice", DOC_DATE).document_number == "INV/26/002"

    def test_deleted_numbers_are_not_reused(self, db_session, account, local_customer):
        make_invoice(account, local_customer)
        second = make_invoice(account, local_customer)
        document_service.soft_delete_document(account_id=account.id, document_id=second.id)

        third = make_invoice(account, local_customer)

        assert third.document_number == "INV/26/003"
        assert sequence_service.count(account.id, "invoice") == 2
        assert sequence_service.count(account.id, "invoice", include_deleted=True) == 3

    def test_failed_save_does_not_consume_a_number(self, db_session, account, local_customer):
        make_invoice(account, local_customer)

        with pytest.raises(ValidationError):
            document_service.create_document(
                account_id=account.id,
                kind="invoice",
                customer_id=local_customer.id,
                lines=[line(quantity=0)],
                document_date=DOC_DATE,
            )

        assert sequence_service.issued_count(account.id, "invoice") == 1
        assert make_invoice(account, local_customer).document_number == "INV/26/002"

    def test_rollback_releases_reservation(self, db_session, account):
        reserved = sequence_service.reserve_next(account.id, "invoice", DOC_DATE)
        assert reserved.sequence_number == 1

        db.session.rollback()

        assert sequence_service.issued_count(account.id, "invoice") == 0

    def test_missing_counter_is_seeded_from_existing_documents(self, db_session, account, local_customer):
        make_invoice(account, local_customer)
        make_invoice(account, local_customer)
        db_session.query(DocumentSequence).filter_by(account_id=account.id, kind="invoice").delete()
        db_session.commit()

        reserved = sequence_service.reserve_next(account.id, "invoice", DOC_DATE)
        db_session.commit()

        assert reserved.document_number == "INV/26/003"
        assert sequence_service.issued_count(account.id, "invoice") == 3

    def test_custom_display_number_keeps_authoritative_sequence(self, db_session, account, local_customer):
        custom = make_invoice(account, local_customer, document_number="SPECIAL-7")
        following = make_invoice(account, local_customer)

        assert custom.document_number == "SPECIAL-7"
        assert custom.sequence_number == 1
        assert following.document_number == "INV/26/002"

    def test_series_are_isolated_per_account(self, db_session, account, other_account, local_customer):
        make_invoice(account, local_customer)
        make_invoice(account, local_customer)

        assert sequence_service.preview_next(other_account.id, "invoice", DOC_DATE).sequence_number == 1
        assert db_session.query(Document).filter_by(account_id=other_account.id).count() == 0
