import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import crud
import errors
import logic
import schemas

APPLICATION = {
    "jobId": 1,
    "name": "Sam Applicant",
    "email": "sam@example.com",
    "phone": "555-0199",
    "location": "Lisbon",
    "qualification": "MSc Computer Science",
    "resumeFileName": "sam_cv.pdf",
    "interviewPreference": "Video call",
    "message": "Looking forward to it",
}


def create_job(client: TestClient, title: str = "Backend Engineer") -> int:
    response = client.post("/jobs", json={"title": title, "company": "Acme", "location": "Remote"})
    return response.json()["job"]["id"]


def test_submit_application(test_client: TestClient):
    job_id = create_job(test_client)

    response = test_client.post("/applications", json={**APPLICATION, "jobId": job_id})

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "Application submitted successfully!"
    application = data["application"]
    assert application["jobId"] == job_id
    assert application["resumeFileName"] == "sam_cv.pdf"
    assert application["interviewPreference"] == "Video call"
    assert application["inviteSent"] is False
    assert application["inviteSentDate"] is None
    assert application["appliedDate"].endswith("Z")


def test_submit_application_defaults(test_client: TestClient):
    payload = {
        k: v
        for k, v in APPLICATION.items()
        if k not in ("resumeFileName", "interviewPreference", "message")
    }

    application = test_client.post("/applications", json=payload).json()["application"]

    assert application["resumeFileName"] == "Not provided"
    assert application["interviewPreference"] == "Not specified"
    assert application["message"] == ""


def test_submit_application_accepts_string_job_id(test_client: TestClient):
    response = test_client.post("/applications", json={**APPLICATION, "jobId": "7"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["application"]["jobId"] == 7


@pytest.mark.parametrize("missing", ["jobId", "name", "email", "phone", "location", "qualification"])
def test_submit_application_missing_field(test_client: TestClient, missing: str):
    payload = {k: v for k, v in APPLICATION.items() if k != missing}

    response = test_client.post("/applications", json=payload)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"success": False, "message": "Missing required fields"}
    assert test_client.get("/applications").json() == []


def test_submit_application_with_malformed_job_id(test_client: TestClient):
    response = test_client.post("/applications", json={**APPLICATION, "jobId": "not-a-number"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["success"] is False


def test_submit_application_with_zero_job_id(test_client: TestClient):
    response = test_client.post("/applications", json={**APPLICATION, "jobId": 0})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"success": False, "message": "Missing required fields"}
    assert test_client.get("/applications").json() == []


def test_submit_application_with_out_of_range_job_id(test_client: TestClient):
    response = test_client.post("/applications", json={**APPLICATION, "jobId": 2**70})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["success"] is False
    assert test_client.get("/applications").json() == []


def test_submit_application_for_unknown_job_is_accepted(test_client: TestClient):
    """Only presence of jobId is validated, not that the job exists."""
    response = test_client.post("/applications", json={**APPLICATION, "jobId": 55555})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["application"]["jobId"] == 55555


def test_list_applications(test_client: TestClient):
    backend = create_job(test_client, "Backend Engineer")
    frontend = create_job(test_client, "Frontend Engineer")
    test_client.post("/applications", json={**APPLICATION, "jobId": backend, "name": "A"})
    test_client.post("/applications", json={**APPLICATION, "jobId": frontend, "name": "B"})
    test_client.post("/applications", json={**APPLICATION, "jobId": backend, "name": "C"})

    everything = test_client.get("/applications").json()
    for_backend = test_client.get(f"/applications/job/{backend}").json()

    assert [a["name"] for a in everything] == ["A", "B", "C"]
    assert [a["name"] for a in for_backend] == ["A", "C"]
    assert test_client.get("/applications/job/99999").json() == []


def test_submit_application_logic_validation(db_session: Session):
    with pytest.raises(errors.ValidationError):
        logic.submit_application(db_session, schemas.ApplicationCreate(name="Only a name"))
    assert crud.list_applications(db_session) == []
