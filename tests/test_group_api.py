from fastapi.testclient import TestClient

from suite_draw.models import DrawStatus

ADMIN = {"X-User-Role": "admin"}


def test_drawless_group_requires_admin(client: TestClient, build):
    build.suite(build.building(), "1", 2)
    leader = build.student(None)

    response = client.post("/api/groups", json={"leader_id": leader.id, "size": 2, "drawless": True})
    assert response.status_code == 403

    response = client.post("/api/groups", json={"leader_id": leader.id, "size": 2, "drawless": True}, headers=ADMIN)
    assert response.status_code == 201
    assert response.json()["draw_id"] is None


def test_create_group_validation(client: TestClient, build):
    draw = build.draw()
    build.suite(build.building(), "1", 2, draws=[draw])
    leader = build.student(draw)

    assert client.post("/api/groups", json={"leader_id": leader.id, "size": 0}).status_code == 422
    assert client.post("/api/groups", json={"leader_id": 999, "size": 2}).status_code == 404
    response = client.post("/api/groups", json={"leader_id": leader.id, "size": 3})
    assert response.status_code == 422
    assert "available suite size" in response.json()["detail"]


def test_patch_drawless_group(client: TestClient, build):
    draw = build.draw()
    morse = build.building()
    build.suite(morse, "1", 2)
    build.suite(morse, "2", 3)
    leader, joiner = build.students(draw, 2)
    group = client.post(
        "/api/groups", json={"leader_id": leader.id, "size": 2, "drawless": True}, headers=ADMIN
    ).json()

    response = client.patch(
        f"/api/groups/{group['id']}", json={"size": 3, "add_ids": [joiner.id]}, headers=ADMIN
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["size"] == 3
    assert body["member_ids"] == [leader.id, joiner.id]
    student = client.get(f"/api/students/{joiner.id}").json()
    assert (student["draw_id"], student["old_draw_id"]) == (None, draw.id)


def test_skip_group_in_lottery(client: TestClient, build):
    draw = build.draw(status=DrawStatus.lottery)
    group = build.locked_group(draw, 2, lottery_number=1)

    assert client.post(f"/api/groups/{group.id}/skip").status_code == 403

    response = client.post(f"/api/groups/{group.id}/skip", headers={"X-User-Role": "rep"})
    assert response.status_code == 200
    assert response.json()["skipped"] is True


def test_select_suite(client: TestClient, build):
    draw = build.draw(status=DrawStatus.suite_selection)
    morse = build.building()
    suite = build.suite(morse, "1", 2, draws=[draw])
    big = build.suite(morse, "2", 4, draws=[draw])
    group = build.locked_group(draw, 2)

    response = client.post(f"/api/groups/{group.id}/select-suite", json={"suite_id": big.id}, headers=ADMIN)
    assert response.status_code == 409

    response = client.post(f"/api/groups/{group.id}/select-suite", json={"suite_id": suite.id}, headers=ADMIN)
    assert response.status_code == 200
    assert response.json()["suite_id"] == suite.id

    other = build.locked_group(draw, 2)
    response = client.post(f"/api/groups/{other.id}/select-suite", json={"suite_id": suite.id}, headers=ADMIN)
    assert response.status_code == 409
    assert "already occupied" in response.json()["detail"]


def test_unlock_after_lottery_refused(client: TestClient, build):
    draw = build.draw(status=DrawStatus.lottery)
    group = build.locked_group(draw, 2)

    response = client.post(f"/api/groups/{group.id}/unlock", headers=ADMIN)
    assert response.status_code == 422


def test_profile_sync_without_config_is_noop(client: TestClient, build, monkeypatch):
    monkeypatch.delenv("PROFILE_REQUEST_URL", raising=False)
    student = build.student(None, username="al123")

    response = client.post(f"/api/students/{student.id}/profile-sync")
    assert response.status_code == 200
    assert response.json()["username"] == "al123"


def test_duplicate_username_is_409(client: TestClient):
    assert client.post("/api/students", json={"username": "al123"}).status_code == 201
    assert client.post("/api/students", json={"username": "al123"}).status_code == 409
