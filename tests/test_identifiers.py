import re

import pytest

from app.core.errors import FormatError
from app.domain.identifiers import (
    create_appointment_id,
    create_doctor_id,
    create_document_id,
    create_patient_id,
    create_queue_id,
    create_user_id,
    ensure_valid_document_id,
)


@pytest.mark.parametrize(
    "factory, prefix",
    [
        (create_patient_id, "patient"),
        (create_doctor_id, "doctor"),
        (create_appointment_id, "appt"),
        (create_user_id, "user"),
        (create_document_id, "doc"),
        (create_queue_id, "queue"),
    ],
)
def test_generated_ids_carry_prefix_and_suffix(factory, prefix):
    generated = factory()
    assert re.fullmatch(rf"{prefix}_[0-9A-Za-z]{{8}}", generated)


def test_generated_ids_are_unique():
    assert len({create_patient_id() for _ in range(200)}) == 200


def test_valid_id_is_returned_unchanged():
    assert create_patient_id("patient_abc_123") == "patient_abc_123"


def test_wrong_prefix_is_rejected():
    with pytest.raises(FormatError) as excinfo:
        create_patient_id("doctor_abc123")
    assert "patient_<alphanumeric>" in str(excinfo.value)


def test_invalid_characters_are_rejected():
    with pytest.raises(FormatError):
        create_appointment_id("appt_abc-123")


def test_document_id_gets_prefix_when_missing():
    assert ensure_valid_document_id("abc123") == "doc_abc123"
    assert ensure_valid_document_id("doc_abc123") == "doc_abc123"


@pytest.mark.parametrize(
    "factory",
    [create_patient_id, create_doctor_id, create_appointment_id, create_document_id],
)
def test_generated_id_parses_back_unchanged(factory):
    generated = factory()
    assert factory(str(generated)) == generated


def test_missing_prefix_names_expected_format():
    with pytest.raises(FormatError) as excinfo:
        create_doctor_id("abc123")
    assert "doctor_<alphanumeric>" in excinfo.value.message
