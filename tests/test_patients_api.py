from conftest import OTHER_PATIENT_ID, PATIENT_ID

NEW_PATIENT = {
    "first_name": "Michael",
    "last_name": "Lee",
    "email": "Michael.Lee@Hotmail.com",
    "phone_number": "+65 9345 6789",
    "date_of_birth": "1978-11-08",
    "address": "789 Sentosa Cove",
}


def test_missing_auth_headers_are_rejected(client):
    response = client.get("/api/patients")
    assert response.status_code == 401


def test_malformed_auth_headers_are_rejected(client):
    response = client.get(
        "/api/patients", headers={"X-User-ID": "staff-1", "X-User-Role": "STAFF"}
    )
    assert response.status_code == 401
    response = client.get(
        "/api/patients", headers={"X-User-ID": "user_staff01", "X-User-Role": "ADMIN"}
    )
    assert response.status_code == 401


def test_patient_cannot_list_patients(client, patient_headers):
    response = client.get("/api/patients", headers=patient_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "AccessDenied"


def test_list_patients_with_pagination(client, staff_headers):
    response = client.get("/api/patients?limit=1", headers=staff_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["total_count"] == 2
    assert len(body["patients"]) == 1
    assert body["pagination"] == {"limit": 1, "offset": 0, "has_more": True}


def test_list_patients_filters_by_phone_in_any_format(client, staff_headers):
    response = client.get(
        "/api/patients", params={"phone": "+65 9123 4567"}, headers=staff_headers
    )
    assert response.status_code == 200
    patients = response.json()["patients"]
    assert [patient["id"] for patient in patients] == [PATIENT_ID]
    assert patients[0]["phone_display"] == "+65 9123 4567"


def test_list_patients_rejects_bad_phone_filter(client, staff_headers):
    response = client.get("/api/patients", params={"phone": "123"}, headers=staff_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "FormatError"


def test_create_patient_normalizes_contact_details(client, staff_headers):
    response = client.post("/api/patients", json=NEW_PATIENT, headers=staff_headers)
    assert response.status_code == 201
    patient = response.json()["patient"]
    assert patient["id"].startswith("patient_")
    assert patient["user_id"].startswith("user_")
    assert patient["email"] == "michael.lee@hotmail.com"
    assert patient["phone_number"] == "93456789"
    assert patient["phone_display"] == "+65 9345 6789"


def test_create_patient_duplicate_phone_conflicts(client, staff_headers):
    payload = dict(NEW_PATIENT, email="someone.else@example.com", phone_number="91234567")
    response = client.post("/api/patients", json=payload, headers=staff_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "ConflictError"


def test_create_patient_invalid_phone(client, staff_headers):
    payload = dict(NEW_PATIENT, phone_number="+1 555 0100")
    response = client.post("/api/patients", json=payload, headers=staff_headers)
    assert response.status_code == 400
    assert "+65 XXXX XXXX" in response.json()["detail"]


def test_patient_reads_only_own_record(client, patient_headers):
    assert client.get(f"/api/patients/{PATIENT_ID}", headers=patient_headers).status_code == 200
    response = client.get(f"/api/patients/{OTHER_PATIENT_ID}", headers=patient_headers)
    assert response.status_code == 403


def test_unknown_patient_is_not_found(client, staff_headers):
    response = client.get("/api/patients/patient_missing", headers=staff_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


def test_malformed_patient_id_is_bad_request(client, staff_headers):
    response = client.get("/api/patients/doctor_chen01", headers=staff_headers)
    assert response.status_code == 400


def test_update_patient(client, patient_headers):
    response = client.put(
        f"/api/patients/{PATIENT_ID}",
        json={"address": "1 Raffles Place", "phone_number": "8111 2222"},
        headers=patient_headers,
    )
    assert response.status_code == 200
    patient = response.json()["patient"]
    assert patient["address"] == "1 Raffles Place"
    assert patient["phone_number"] == "81112222"


def test_update_patient_to_taken_email_conflicts(client, staff_headers):
    response = client.put(
        f"/api/patients/{PATIENT_ID}",
        json={"email": "emily.tan@gmail.com"},
        headers=staff_headers,
    )
    assert response.status_code == 409


def test_delete_patient_with_appointments_conflicts(client, staff_headers, doctor_headers):
    booking = client.post(
        "/api/appointments",
        json={
            "patient_id": PATIENT_ID,
            "doctor_id": "doctor_chen01",
            "type": "CHECK_UP",
            "scheduled_at": "2030-01-07T10:00:00+08:00",
        },
        headers=staff_headers,
    )
    assert booking.status_code == 201

    response = client.delete(f"/api/patients/{PATIENT_ID}", headers=staff_headers)
    assert response.status_code == 409
    assert response.json()["detail"] == "Cannot delete patient with existing appointments"


def test_delete_patient(client, staff_headers):
    response = client.delete(f"/api/patients/{OTHER_PATIENT_ID}", headers=staff_headers)
    assert response.status_code == 204
    response = client.get(f"/api/patients/{OTHER_PATIENT_ID}", headers=staff_headers)
    assert response.status_code == 404
