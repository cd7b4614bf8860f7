from datetime import timedelta

import pytest
from sqlalchemy import func, select

from counsel_intake.core.db import utcnow
from counsel_intake.models.orm import Client, IntakeLink, IntakeSession, Organization, User
from counsel_intake.services import intake_service


def _count(db, model):
    return db.scalar(select(func.count(model.id)))


# ---------- staff link management ----------
def test_create_link_requires_token(client, firm):
    r = client.post("/api/intake/create-link", json={"intakeType": "Immigration"})
    assert r.status_code == 401
    assert r.json()["success"] is False


def test_create_and_list_links(client, firm, headers_for):
    headers = headers_for(firm["lawyer"])
    r = client.post("/api/intake/create-link", json={"intakeType": "family"}, headers=headers)
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["url"].endswith(f"/intake/{body['linkId']}")

    r = client.get("/api/intake/links", headers=headers)
    assert r.status_code == 200
    links = r.json()["data"]
    assert len(links) == 1
    assert links[0]["linkId"] == body["linkId"]
    assert links[0]["caseType"] == "Family"
    assert links[0]["status"] == "pending"

    # scoped to the creator
    r = client.get("/api/intake/links", headers=headers_for(firm["admin"]))
    assert r.json()["data"] == []


def test_create_link_needs_type(client, firm, headers_for):
    r = client.post("/api/intake/create-link", json={}, headers=headers_for(firm["lawyer"]))
    assert r.status_code == 400
    assert r.json()["message"].startswith("Validation Error")


def test_delete_link_only_by_creator(client, firm, make_link, headers_for):
    link = make_link()
    r = client.delete(f"/api/intake/links/{link.link_id}", headers=headers_for(firm["admin"]))
    assert r.status_code == 404
    r = client.delete(f"/api/intake/links/{link.link_id}", headers=headers_for(firm["lawyer"]))
    assert r.status_code == 200


def test_abandon_link_then_visitor_gets_410(client, db, firm, make_link, headers_for):
    link = make_link()
    headers = headers_for(firm["lawyer"])
    r = client.post(f"/api/intake/links/{link.link_id}/abandon", headers=headers)
    assert r.status_code == 200
    assert r.json()["status"] == "abandoned"

    # forward-only
    r = client.post(f"/api/intake/links/{link.link_id}/abandon", headers=headers)
    assert r.status_code == 409

    r = client.get(f"/api/intake/{link.link_id}")
    assert r.status_code == 410


# ---------- visitor access ----------
def test_open_link_creates_then_resumes_session(client, db, make_link):
    link = make_link("Immigration")

    r = client.get(f"/api/intake/{link.link_id}")
    assert r.status_code == 200
    body = r.json()
    assert body["sessionId"] == link.link_id
    assert body["status"] == "started"
    assert body["caseType"] == "Immigration"
    assert body["extractedData"] == {"caseInfo": {"caseType": "Immigration"}}

    r = client.get(f"/api/intake/{link.link_id}")
    assert r.status_code == 200
    assert _count(db, IntakeSession) == 1


def test_open_unknown_link(client):
    r = client.get("/api/intake/does-not-exist")
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "Intake link not found."}


def test_expired_link_is_410_and_creates_nothing(client, db, make_link):
    link = make_link("Civil", expires_in=timedelta(days=-1))

    r = client.get(f"/api/intake/{link.link_id}")

    assert r.status_code == 410
    assert r.json()["message"] == "Intake link has expired."
    assert _count(db, IntakeSession) == 0
    db.expire_all()
    assert db.get(IntakeLink, link.id).status == "expired"


def test_expired_link_leaves_existing_session_untouched(client, db, make_link):
    link = make_link("Civil")
    client.get(f"/api/intake/{link.link_id}")
    db.expire_all()
    before = db.scalar(select(IntakeSession)).updated_at

    db.get(IntakeLink, link.id).expires_at = utcnow() - timedelta(minutes=1)
    db.commit()

    assert client.get(f"/api/intake/{link.link_id}").status_code == 410
    db.expire_all()
    assert db.scalar(select(IntakeSession)).updated_at == before


def test_initiate_creates_bare_session(client, db):
    r = client.post("/api/intake/initiate")
    assert r.status_code == 201
    intake_id = r.json()["intakeId"]
    s = db.scalar(select(IntakeSession).where(IntakeSession.session_id == intake_id))
    assert s.status == "started"
    assert s.case_type == "Other"


# ---------- form path and completion ----------
def test_update_data_then_complete_once(client, db, firm, make_link):
    link = make_link("Other")
    client.get(f"/api/intake/{link.link_id}")

    form = {
        "personalInfo": {"firstName": "Maria", "lastName": "Garcia", "dateOfBirth": None},
        "contactInfo": {"email": "maria@example.com"},
        "caseInfo": {"caseType": "Other", "description": "Landlord dispute"},
        "medicalInfo": {"disabilities": '[{"type": "hearing"}]'},
    }
    r = client.put(f"/api/intake/{link.link_id}/update-data", json=form)
    assert r.status_code == 200
    # 6 filled of 7 leaves
    assert r.json()["completionPercentage"] == 86

    r = client.post(f"/api/intake/{link.link_id}/complete")
    assert r.status_code == 200
    client_id = r.json()["clientId"]

    r = client.post(f"/api/intake/{link.link_id}/complete")
    assert r.status_code == 409
    assert r.json()["message"] == "Intake already completed."

    assert _count(db, Client) == 1
    db.expire_all()
    c = db.get(Client, client_id)
    assert c.contact_info == {"email": "maria@example.com"}
    assert c.medical_info == {"disabilities": [{"type": "hearing"}]}
    assert c.organization_id == firm["org"].id

    # completed link: stored session served read-only, even once past expiry
    db.get(IntakeLink, link.id).expires_at = utcnow() - timedelta(days=1)
    db.commit()
    r = client.get(f"/api/intake/{link.link_id}")
    assert r.status_code == 200
    assert r.json()["status"] == "completed"
    assert r.json()["isConverted"] is True
    assert r.json()["clientId"] == client_id

    # no more edits after completion
    r = client.put(f"/api/intake/{link.link_id}/update-data", json=form)
    assert r.status_code == 409


def test_complete_without_data_is_rejected(client, db):
    intake_id = client.post("/api/intake/initiate").json()["intakeId"]
    r = client.post(f"/api/intake/{intake_id}/complete")
    assert r.status_code == 400
    assert _count(db, Client) == 0


def test_complete_unknown_session(client):
    assert client.post("/api/intake/nope/complete").status_code == 404


def test_update_data_rejects_non_object(client):
    intake_id = client.post("/api/intake/initiate").json()["intakeId"]
    r = client.put(f"/api/intake/{intake_id}/update-data", json=["a", "b"])
    assert r.status_code == 400


# ---------- conversational endpoints ----------
def test_ai_intake_round_trip(client, make_link, fake_extraction):
    link = make_link("Other")
    client.get(f"/api/intake/{link.link_id}")

    r = client.post("/api/ai/intake", json={"intakeId": link.link_id, "initial": True})
    assert r.status_code == 200
    assert r.json() == {
        "message": "What is your first name?",
        "extractedData": {"caseInfo": {"caseType": "Other"}},
        "isComplete": False,
        "transcript": None,
    }

    fake_extraction.reply({"personalInfo": {"firstName": "Sam"}}, "What is your last name?")
    r = client.post("/api/ai/intake", json={"intakeId": link.link_id, "message": "Sam"})
    assert r.status_code == 200
    assert r.json()["extractedData"]["personalInfo"] == {"firstName": "Sam"}
    assert r.json()["isComplete"] is False


def test_ai_intake_requires_message(client, make_link):
    link = make_link()
    client.get(f"/api/intake/{link.link_id}")
    r = client.post("/api/ai/intake", json={"intakeId": link.link_id})
    assert r.status_code == 400
    assert r.json()["message"] == "Message is required"


def test_ai_intake_unknown_session(client):
    r = client.post("/api/ai/intake", json={"intakeId": "missing", "message": "hi"})
    assert r.status_code == 404


def test_voice_intake_without_message(client, make_link):
    link = make_link()
    client.get(f"/api/intake/{link.link_id}")
    r = client.post("/api/ai/voice-intake", json={"intakeId": link.link_id})
    assert r.status_code == 200
    assert r.json()["message"] == "Could not understand your response. Please try again."


def test_voice_audio_is_transcribed_first(client, make_link, fake_extraction, monkeypatch):
    from counsel_intake.services import transcription_service

    seen = {}

    def fake_transcribe(audio, filename, content_type, language="en"):
        seen["args"] = (audio, filename, content_type)
        return "My name is Lena"

    monkeypatch.setattr(transcription_service, "transcribe", fake_transcribe)
    link = make_link()
    client.get(f"/api/intake/{link.link_id}")
    fake_extraction.reply({"personalInfo": {"firstName": "Lena"}}, "What is your last name?")

    r = client.post(
        "/api/ai/voice-intake/audio",
        data={"intakeId": link.link_id},
        files={"audio": ("answer.webm", b"\x1a\x45\xdf\xa3", "audio/webm")},
    )

    assert r.status_code == 200
    assert r.json()["transcript"] == "My name is Lena"
    assert r.json()["extractedData"]["personalInfo"]["firstName"] == "Lena"
    assert seen["args"] == (b"\x1a\x45\xdf\xa3", "answer.webm", "audio/webm")


def test_completion_through_ai_turn(client, db, make_link, fake_extraction):
    link = make_link("Other")
    client.get(f"/api/intake/{link.link_id}")
    fake_extraction.reply({"personalInfo": {"firstName": "Sam"}}, "COMPLETED")

    r = client.post("/api/ai/intake", json={"intakeId": link.link_id, "message": "that's all"})
    assert r.json()["isComplete"] is True

    r = client.post("/api/ai/intake", json={"intakeId": link.link_id, "message": "wait"})
    assert r.status_code == 409
    assert _count(db, Client) == 1


# ---------- staff intake views ----------
def _seed_sessions(db, firm):
    other_org = Organization(slug="other", name="Other Firm")
    db.add(other_org)
    db.flush()
    rows = [
        IntakeSession(session_id="s-1", case_type="Immigration", organization_id=firm["org"].id,
                      status="in-progress",
                      extracted_data={"personalInfo": {"firstName": "Maria", "lastName": "Garcia"}}),
        IntakeSession(session_id="s-2", case_type="Criminal", organization_id=firm["org"].id,
                      status="completed",
                      extracted_data={"contactInfo": {"email": "tom@example.com"}}),
        IntakeSession(session_id="s-3", case_type="Immigration", organization_id=other_org.id,
                      status="in-progress",
                      extracted_data={"personalInfo": {"firstName": "Maria"}}),
    ]
    db.add_all(rows)
    db.commit()


def test_list_intakes_scoped_and_filtered(client, db, firm, headers_for):
    _seed_sessions(db, firm)
    headers = headers_for(firm["lawyer"])

    r = client.get("/api/intake", headers=headers)
    assert r.status_code == 200
    assert sorted(s["sessionId"] for s in r.json()) == ["s-1", "s-2"]

    r = client.get("/api/intake", params={"search": "garc"}, headers=headers)
    assert [s["sessionId"] for s in r.json()] == ["s-1"]

    r = client.get("/api/intake", params={"search": "tom@"}, headers=headers)
    assert [s["sessionId"] for s in r.json()] == ["s-2"]

    r = client.get("/api/intake", params={"status": "completed"}, headers=headers)
    assert [s["sessionId"] for s in r.json()] == ["s-2"]

    r = client.get("/api/intake", params={"caseType": "immigration", "status": "all"}, headers=headers)
    assert [s["sessionId"] for s in r.json()] == ["s-1"]


def test_get_and_delete_intake(client, db, firm, headers_for):
    _seed_sessions(db, firm)

    r = client.get("/api/intake/sessions/s-1", headers=headers_for(firm["lawyer"]))
    assert r.status_code == 200
    assert r.json()["messages"] == []

    # other firm's intake is invisible
    assert client.get("/api/intake/sessions/s-3", headers=headers_for(firm["lawyer"])).status_code == 404

    assert client.delete("/api/intake/sessions/s-1", headers=headers_for(firm["lawyer"])).status_code == 403
    assert client.delete("/api/intake/sessions/s-1", headers=headers_for(firm["admin"])).status_code == 204
    assert db.scalar(select(IntakeSession).where(IntakeSession.session_id == "s-1")) is None


# ---------- clients and notifications ----------
def test_clients_and_notifications_after_completion(client, db, firm, make_link, headers_for):
    link = make_link("Other")
    client.get(f"/api/intake/{link.link_id}")
    client.put(f"/api/intake/{link.link_id}/update-data", json={"personalInfo": {"firstName": "Ana"}})
    client_id = client.post(f"/api/intake/{link.link_id}/complete").json()["clientId"]
    headers = headers_for(firm["lawyer"])

    r = client.get("/api/clients", headers=headers)
    assert [c["id"] for c in r.json()] == [client_id]
    r = client.get(f"/api/clients/{client_id}", headers=headers)
    assert r.json()["personalInfo"] == {"firstName": "Ana"}
    assert r.json()["sourceSessionId"] == link.link_id

    notes = client.get("/api/notifications", headers=headers).json()
    assert len(notes) == 1
    assert notes[0]["type"] == "new_case"
    assert notes[0]["link"] == f"/clients/{client_id}"
    assert notes[0]["read"] is False

    note_id = notes[0]["id"]
    assert client.put(f"/api/notifications/{note_id}/read", headers=headers).json()["read"] is True
    assert client.get("/api/notifications", params={"unread": True}, headers=headers).json() == []
    # not the admin's notification
    assert client.delete(f"/api/notifications/{note_id}", headers=headers_for(firm["admin"])).status_code == 404
    assert client.delete(f"/api/notifications/{note_id}", headers=headers).status_code == 200


# ---------- sweep ----------
def test_expire_stale_links(db, make_link):
    stale = make_link(expires_in=timedelta(hours=-2))
    fresh = make_link()
    done = make_link(status="completed", expires_in=timedelta(days=-3))

    assert intake_service.expire_stale_links(db) == 1
    db.expire_all()
    assert db.get(IntakeLink, stale.id).status == "expired"
    assert db.get(IntakeLink, fresh.id).status == "pending"
    assert db.get(IntakeLink, done.id).status == "completed"


def test_user_from_other_firm_cannot_see_client(client, db, firm, headers_for):
    other = Organization(slug="elsewhere", name="Elsewhere LLP")
    db.add(other)
    db.flush()
    outsider = User(email="x@elsewhere.law", hashed_password="-", role="lawyer", organization_id=other.id)
    c = Client(organization_id=firm["org"].id, personal_info={"firstName": "Ana"})
    db.add_all([outsider, c])
    db.commit()

    assert client.get(f"/api/clients/{c.id}", headers=headers_for(outsider)).status_code == 404


def test_health(client, make_link):
    make_link()
    assert client.get("/health/ping").json() == {"ok": True}
    body = client.get("/health/store").json()
    assert body["pendingLinks"] == 1
    assert body["sessions"] == 0
    assert body["storageBackend"] in ("local", "s3")


def test_notification_is_stored_with_the_callers_commit(db, firm):
    from counsel_intake.core.errors import ValidationError
    from counsel_intake.services import notification_service

    user_id = firm["lawyer"].id
    note = notification_service.create_notification(db, user_id, "Draft", type="info")
    assert note.id is not None
    db.rollback()
    assert notification_service.list_notifications(db, user_id) == []

    notification_service.create_notification(db, user_id, "Kept", type="success", link="/clients/1")
    db.commit()
    assert [n.message for n in notification_service.list_notifications(db, user_id)] == ["Kept"]

    with pytest.raises(ValidationError):
        notification_service.create_notification(db, user_id, "?", type="gossip")
