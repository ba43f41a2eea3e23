# Overview: Pytest coverage for professional identifier allocation and registration.

import re

import pytest
from sqlalchemy.exc import OperationalError

from billing.models import IdentifierCounter, Professional
from billing.services import identifier_service
from billing.services.concurrency import ConcurrencyError
from billing.validation import ConflictError, ValidationError

FALLBACK_PATTERN = re.compile(r"^BHPCA\d{5}$")


def register(**overrides):
    data = {
        "first_name": "Asha",
        "last_name": "Rao",
        "email": "Asha@Example.com",
        "designation": "Chartered Accountant",
    }
    data.update(overrides)
    return identifier_service.register_professional(**data)


def locked_counter(name):
    raise OperationalError("UPDATE identifier_counters", {}, Exception("database is locked"))


class TestFormatting:
    def test_format_identifier(self):
        assert identifier_service.format_identifier("CA", 7) == "BHPCA00007"
        assert identifier_service.format_identifier("GP", 123456) == "BHPGP123456"

    @pytest.mark.parametrize(
        "value,code",
        [("Chartered Accountant", "CA"), ("chartered accountant", "CA"), ("gp", "GP"), (" Staff ", "ST")],
    )
    def test_designation_code(self, value, code):
        assert identifier_service.designation_code(value) == code

    def test_unknown_designation(self):
        with pytest.raises(ValidationError):
            identifier_service.designation_code("Lawyer")


class TestAllocate:
    def test_sequential_ids(self, db_session):
        first = identifier_service.allocate("CA")
        second = identifier_service.allocate("Tax Consultant")

        assert first.value == "BHPCA00001"
        assert first.authoritative is True
        assert second.value == "BHPTC00002"
        assert identifier_service.current_count() == 2

    def test_counter_row_created_once(self, db_session):
        identifier_service.allocate("CA")
        identifier_service.allocate("CA")

        assert db_session.query(IdentifierCounter).count() == 1

    def test_fallback_when_counter_unavailable(self, db_session, app, monkeypatch):
        monkeypatch.setitem(app.config, "COUNTER_RETRY_ATTEMPTS", 2)
        monkeypatch.setattr(identifier_service, "_increment_counter", locked_counter)

        allocated = identifier_service.allocate("CA")

        assert allocated.authoritative is False
        assert allocated.counter is None
        assert FALLBACK_PATTERN.match(allocated.value)
        number = int(allocated.value[-5:])
        assert identifier_service.FALLBACK_MIN <= number <= identifier_service.FALLBACK_MAX

    def test_fallback_disabled_raises(self, db_session, app, monkeypatch):
        monkeypatch.setitem(app.config, "COUNTER_RETRY_ATTEMPTS", 1)
        monkeypatch.setitem(app.config, "IDENTIFIER_FALLBACK_ENABLED", False)
        monkeypatch.setattr(identifier_service, "_increment_counter", locked_counter)

        with pytest.raises(ConcurrencyError):
            identifier_service.allocate("CA")


class TestRegister:
    def test_register_professional(self, db_session):
        professional = register(firm_name="  Rao & Co  ")

        assert professional.professional_id == "BHPCA00001"
        assert professional.id_is_authoritative is True
        assert professional.email == "asha@example.com"
        assert professional.designation == "Chartered Accountant"
        assert professional.firm_name == "Rao & Co"
        assert professional.to_dict()["referral_code"] == "BHPCA00001"

    def test_designation_code_is_canonicalized(self, db_session):
        professional = register(designation="gp")
        assert professional.designation == "GST Practitioner"

    def test_referral(self, db_session):
        referrer = register()
        referred = register(first_name="Vikram", email="vikram@example.com", referral_code="bhpca00001 ")

        assert referred.referred_by == referrer.professional_id
        assert identifier_service.lookup_referrer("BHPCA99999") is None

    def test_invalid_input_consumes_no_id(self, db_session):
        with pytest.raises(ValidationError):
            register(designation="Lawyer")
        with pytest.raises(ValidationError):
            register(email="not-an-email")

        assert identifier_service.current_count() == 0

    def test_fallback_ids_are_flagged(self, db_session, app, monkeypatch):
        monkeypatch.setitem(app.config, "COUNTER_RETRY_ATTEMPTS", 1)
        monkeypatch.setattr(identifier_service, "_increment_counter", locked_counter)

        professional = register()

        assert professional.id_is_authoritative is False
        assert FALLBACK_PATTERN.match(professional.professional_id)

    def test_fallback_collision_is_a_conflict(self, db_session, app, monkeypatch):
        monkeypatch.setitem(app.config, "COUNTER_RETRY_ATTEMPTS", 1)
        monkeypatch.setattr(identifier_service, "_increment_counter", locked_counter)
        monkeypatch.setattr(identifier_service._random, "randint", lambda low, high: 12345)

        register()
        with pytest.raises(ConflictError):
            register(first_name="Second", email="second@example.com")

        assert db_session.query(Professional).count() == 1
