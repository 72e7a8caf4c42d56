from bson import ObjectId


def _create_user(client, **fields):
    body = {"name": "Asha", "email": "asha@farm.io", "photo": "https://img.io/asha.png"}
    body.update(fields)
    resp = client.post("/users", json=body)
    assert resp.status_code == 200, resp.text
    return resp.json()["insertedId"]


def test_create_and_fetch_user(client):
    uid = _create_user(client)

    resp = client.get(f"/users/{uid}")
    assert resp.status_code == 200
    user = resp.json()
    assert user["_id"] == uid
    assert user["email"] == "asha@farm.io"

    assert [u["_id"] for u in client.get("/users").json()] == [uid]


def test_create_user_rejects_bad_email(client):
    resp = client.post("/users", json={"name": "Asha", "email": "not-an-email"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid request"


def test_get_missing_user(client):
    resp = client.get(f"/users/{ObjectId()}")
    assert resp.status_code == 404
    assert resp.json()["message"] == "User not found"


def test_update_user_profile(client, db):
    uid = _create_user(client)

    resp = client.put(f"/users/{uid}", json={"name": "Asha K", "photo": "https://img.io/new.png"})

    assert resp.status_code == 200
    assert resp.json()["matchedCount"] == 1
    doc = db["users"].find_one({"_id": ObjectId(uid)})
    assert doc["name"] == "Asha K"
    assert doc["photo"] == "https://img.io/new.png"
    assert doc["email"] == "asha@farm.io"


def test_update_missing_user(client):
    assert client.put(f"/users/{ObjectId()}", json={"name": "X"}).status_code == 404


def test_delete_user_requires_token(client, db):
    uid = _create_user(client)
    resp = client.delete(f"/users/{uid}")
    assert resp.status_code == 401
    assert db["users"].count_documents({}) == 1


def test_delete_user(client, auth_as, db):
    uid = _create_user(client)
    resp = client.delete(f"/users/{uid}", headers=auth_as("admin@farm.io"))
    assert resp.status_code == 200
    assert resp.json()["deletedCount"] == 1
    assert db["users"].count_documents({}) == 0


def test_update_user_ignores_null_fields(client, db):
    uid = _create_user(client)

    resp = client.put(f"/users/{uid}", json={"name": None, "photo": "https://img.io/new.png"})

    assert resp.status_code == 200
    doc = db["users"].find_one({"_id": ObjectId(uid)})
    assert doc["name"] == "Asha"
    assert doc["photo"] == "https://img.io/new.png"
