from conftest import DOCTOR_ID, OTHER_DOCTOR_ID, PATIENT_ID


def test_list_doctors_filters(client, patient_headers):
    response = client.get("/api/doctors", params={"search": "wil"}, headers=patient_headers)
    assert response.status_code == 200
    doctors = response.json()["doctors"]
    assert [doctor["id"] for doctor in doctors] == [OTHER_DOCTOR_ID]
    assert doctors[0]["full_name"] == "Dr. James Wilson"

    response = client.get(
        "/api/doctors", params={"specialization": "general"}, headers=patient_headers
    )
    assert [doctor["id"] for doctor in response.json()["doctors"]] == [DOCTOR_ID]


def test_create_doctor_requires_staff(client, doctor_headers):
    payload = {"first_name": "Maria", "last_name": "Rodriguez", "email": "dr.maria@carepulse.com"}
    response = client.post("/api/doctors", json=payload, headers=doctor_headers)
    assert response.status_code == 403


def test_create_and_update_doctor(client, staff_headers):
    payload = {
        "first_name": "Maria",
        "last_name": "Rodriguez",
        "email": "Dr.Maria@CarePulse.com",
        "specialization": "Pediatric Physiotherapy",
    }
    response = client.post("/api/doctors", json=payload, headers=staff_headers)
    assert response.status_code == 201
    doctor = response.json()["doctor"]
    assert doctor["email"] == "dr.maria@carepulse.com"
    assert doctor["is_active"] is True

    response = client.put(
        f"/api/doctors/{doctor['id']}", json={"is_active": False}, headers=staff_headers
    )
    assert response.status_code == 200
    assert response.json()["doctor"]["is_active"] is False

    response = client.get("/api/doctors", params={"is_active": "true"}, headers=staff_headers)
    assert doctor["id"] not in [item["id"] for item in response.json()["doctors"]]


def test_create_doctor_duplicate_email(client, staff_headers):
    payload = {"first_name": "Sarah", "last_name": "Chen", "email": "dr.chen@carepulse.com"}
    response = client.post("/api/doctors", json=payload, headers=staff_headers)
    assert response.status_code == 409


def test_delete_doctor_without_appointments(client, staff_headers):
    response = client.delete(f"/api/doctors/{OTHER_DOCTOR_ID}", headers=staff_headers)
    assert response.status_code == 204
    response = client.get(f"/api/doctors/{OTHER_DOCTOR_ID}", headers=staff_headers)
    assert response.status_code == 404


def test_delete_doctor_with_appointments_deactivates(client, staff_headers):
    booking = client.post(
        "/api/appointments",
        json={
            "patient_id": PATIENT_ID,
            "doctor_id": DOCTOR_ID,
            "type": "FIRST_CONSULT",
            "scheduled_at": "2030-01-07T10:00:00+08:00",
        },
        headers=staff_headers,
    )
    assert booking.status_code == 201

    response = client.delete(f"/api/doctors/{DOCTOR_ID}", headers=staff_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["deactivated"] is True
    assert body["doctor"]["is_active"] is False

    response = client.post(
        "/api/appointments",
        json={
            "patient_id": PATIENT_ID,
            "doctor_id": DOCTOR_ID,
            "type": "CHECK_UP",
            "scheduled_at": "2030-01-08T10:00:00+08:00",
        },
        headers=staff_headers,
    )
    assert response.status_code == 409
