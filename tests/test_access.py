from datetime import date

import pytest

from app.core.errors import AccessDeniedError
from app.domain.access import (
    DocumentAccessContext,
    DocumentAction,
    Principal,
    UserRole,
    authorize_document,
    can_modify_document,
    can_toggle_sharing,
    can_view_document,
    can_view_patient_stats,
)
from app.domain.documents import (
    DocumentCategory,
    build_storage_key,
    file_extension,
    format_file_size,
    is_allowed_file_type,
    is_image,
    is_pdf,
    is_valid_category,
)

STAFF = Principal(id="user_staff", role=UserRole.STAFF)
DOCTOR = Principal(id="user_doctor", role=UserRole.DOCTOR)
OTHER_DOCTOR = Principal(id="user_other_doctor", role=UserRole.DOCTOR)
PATIENT = Principal(id="user_patient", role=UserRole.PATIENT)
OTHER_PATIENT = Principal(id="user_other_patient", role=UserRole.PATIENT)


def make_context(*, shared: bool = False, uploaded_by: str = "user_staff") -> DocumentAccessContext:
    return DocumentAccessContext(
        uploaded_by=uploaded_by,
        patient_user_id="user_patient",
        doctor_user_id="user_doctor",
        is_shared_with_patient=shared,
    )


def test_staff_can_do_everything():
    ctx = make_context()
    for action in DocumentAction:
        authorize_document(STAFF, action, ctx)


def test_patient_sees_only_own_shared_documents():
    assert can_view_document(PATIENT, make_context(shared=True))
    assert not can_view_document(PATIENT, make_context(shared=False))
    assert not can_view_document(OTHER_PATIENT, make_context(shared=True))


def test_patient_never_modifies_or_shares():
    ctx = make_context(shared=True, uploaded_by="user_patient")
    assert not can_modify_document(PATIENT, ctx)
    assert not can_toggle_sharing(PATIENT, ctx)


def test_doctor_needs_upload_or_assignment():
    assert can_view_document(DOCTOR, make_context())
    assert can_view_document(OTHER_DOCTOR, make_context(uploaded_by="user_other_doctor"))
    assert not can_view_document(OTHER_DOCTOR, make_context())
    assert can_modify_document(DOCTOR, make_context())
    assert can_toggle_sharing(DOCTOR, make_context())


def test_authorize_document_raises_with_details():
    with pytest.raises(AccessDeniedError) as excinfo:
        authorize_document(PATIENT, DocumentAction.DELETE, make_context(shared=True))
    assert excinfo.value.details == {"action": "delete", "role": "PATIENT"}


def test_patient_stats_visibility():
    assert can_view_patient_stats(PATIENT, "user_patient")
    assert not can_view_patient_stats(PATIENT, "user_other_patient")
    assert not can_view_patient_stats(PATIENT, None)
    assert can_view_patient_stats(DOCTOR, "user_patient")
    assert can_view_patient_stats(STAFF, None)


def test_file_type_helpers():
    assert is_allowed_file_type("application/pdf")
    assert not is_allowed_file_type("application/zip")
    assert is_image("image/png")
    assert is_pdf("application/pdf")
    assert not is_pdf("image/png")
    assert is_valid_category("LAB_RESULTS")
    assert not is_valid_category("lab_results")
    assert DocumentCategory.IMAGING.label == "Medical Imaging"


def test_file_extension_and_key():
    assert file_extension("scan.final.PDF") == ".PDF"
    assert file_extension("README") == ""
    key = build_storage_key("patient_abc", "f00d", "x-ray.png", date(2026, 10, 20))
    assert key == "documents/patient_abc/2026-10-20/f00d.png"


@pytest.mark.parametrize(
    "size, expected",
    [(0, "0 Bytes"), (512, "512 Bytes"), (1024, "1 KB"), (1536, "1.5 KB"),
     (1024 * 1024, "1 MB"), (int(1.5 * 1024 * 1024), "1.5 MB")],
)
def test_format_file_size(size, expected):
    assert format_file_size(size) == expected
