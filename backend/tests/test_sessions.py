"""Tests for revision session routes."""

from datetime import date

from conftest import headers_for


async def test_create_session(client, auth_headers, user, make_subject):
    subject = await make_subject(user)

    response = await client.post(
        "/sessions/",
        json={"subject_id": str(subject.id), "date": "2025-02-10", "start_time": "09:00", "end_time": "10:30"},
        headers=auth_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "planned"
    assert body["start_time"] == "09:00:00"


async def test_create_requires_own_subject(client, auth_headers, make_user, make_subject):
    foreign = await make_subject(await make_user("bob@example.com", "Bob"))

    response = await client.post(
        "/sessions/",
        json={"subject_id": str(foreign.id), "date": "2025-02-10", "start_time": "09:00", "end_time": "10:30"},
        headers=auth_headers,
    )

    assert response.status_code == 404


async def test_create_rejects_inverted_times(client, auth_headers, user, make_subject):
    subject = await make_subject(user)

    response = await client.post(
        "/sessions/",
        json={"subject_id": str(subject.id), "date": "2025-02-10", "start_time": "10:30", "end_time": "10:30"},
        headers=auth_headers,
    )

    assert response.status_code == 422


async def test_list_filters(client, auth_headers, user, make_subject, make_session):
    maths = await make_subject(user)
    physique = await make_subject(user, name="Physique")
    await make_session(maths, day=date(2025, 2, 10))
    await make_session(physique, day=date(2025, 2, 12), status="done")
    await make_session(maths, day=date(2025, 2, 20))

    def dates(response):
        return [s["date"] for s in response.json()]

    everything = await client.get("/sessions/", headers=auth_headers)
    assert dates(everything) == ["2025-02-10", "2025-02-12", "2025-02-20"]

    in_range = await client.get(
        "/sessions/", params={"date_from": "2025-02-11", "date_to": "2025-02-20"}, headers=auth_headers
    )
    assert dates(in_range) == ["2025-02-12", "2025-02-20"]

    by_subject = await client.get("/sessions/", params={"subject_id": str(maths.id)}, headers=auth_headers)
    assert dates(by_subject) == ["2025-02-10", "2025-02-20"]

    done = await client.get("/sessions/", params={"status": "done"}, headers=auth_headers)
    assert dates(done) == ["2025-02-12"]


async def test_update_checks_merged_time_range(client, auth_headers, user, make_subject, make_session):
    session = await make_session(await make_subject(user))

    response = await client.patch(f"/sessions/{session.id}", json={"start_time": "12:00"}, headers=auth_headers)
    assert response.status_code == 422

    response = await client.patch(
        f"/sessions/{session.id}", json={"end_time": "12:00", "notes": "Chapitre 3"}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["end_time"] == "12:00:00"
    assert response.json()["notes"] == "Chapitre 3"


async def test_toggle_done(client, auth_headers, user, make_subject, make_session):
    session = await make_session(await make_subject(user))

    first = await client.post(f"/sessions/{session.id}/toggle-done", headers=auth_headers)
    second = await client.post(f"/sessions/{session.id}/toggle-done", headers=auth_headers)

    assert first.json()["status"] == "done"
    assert second.json()["status"] == "planned"


async def test_delete_removes_invites(client, auth_headers, user, make_subject, make_session, make_invite):
    session = await make_session(await make_subject(user))
    await make_invite(session)

    response = await client.delete(f"/sessions/{session.id}", headers=auth_headers)

    assert response.status_code == 204
    assert (await client.get("/invites/abc123")).status_code == 404


async def test_sessions_are_private(client, make_user, make_subject, make_session):
    session = await make_session(await make_subject(await make_user("bob@example.com", "Bob")))
    intruder = await make_user("eve@example.com", "Eve")

    response = await client.get(f"/sessions/{session.id}", headers=headers_for(intruder))

    assert response.status_code == 404
