from common.models import RoleEnum

ADMIN_PAYLOAD = {
    "name": "Admin",
    "username": "admin",
    "email": "admin@example.com",
    "password": "Passw0rd!",
    "role": RoleEnum.ADMIN.value,
}

USER_PAYLOAD = {
    "name": "Jane",
    "username": "jane",
    "email": "jane@example.com",
    "password": "Passw0rd!",
    "phone": "+420 777 123 456",
    "address": "Brno",
}


def auth_header(client, username: str, password: str) -> dict[str, str]:
    response = client.post(
        "/users/login",
        data={"username": username, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


def test_registration_and_login(users_client):
    admin_resp = users_client.post("/users/register", json=ADMIN_PAYLOAD)
    assert admin_resp.status_code == 201
    assert admin_resp.json()["role"] == "admin"

    user_resp = users_client.post("/users/register", json={**USER_PAYLOAD, "role": "admin"})
    assert user_resp.status_code == 201
    assert user_resp.json()["role"] == "regular"

    duplicate = users_client.post("/users/register", json=USER_PAYLOAD)
    assert duplicate.status_code == 400

    # Email works as the login name as well.
    headers = auth_header(users_client, "jane@example.com", "Passw0rd!")
    me = users_client.get("/users/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["username"] == "jane"


def test_login_rejects_wrong_password(users_client):
    users_client.post("/users/register", json=USER_PAYLOAD)
    response = users_client.post(
        "/users/login",
        data={"username": "jane", "password": "nope-nope"},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == 401


def test_update_self_and_privacy(users_client):
    users_client.post("/users/register", json=USER_PAYLOAD)
    users_client.post("/users/register", json={**USER_PAYLOAD, "username": "viewer", "email": "viewer@example.com"})
    jane_headers = auth_header(users_client, "jane", "Passw0rd!")
    viewer_headers = auth_header(users_client, "viewer", "Passw0rd!")

    update_resp = users_client.put(
        "/users/me",
        json={"name": "Jane Updated", "bio": "Weekend climber", "privacy": {"show_phone": True, "show_bio": True}},
        headers=jane_headers,
    )
    assert update_resp.status_code == 200
    assert update_resp.json()["name"] == "Jane Updated"
    assert update_resp.json()["show_phone"] is True

    jane_id = update_resp.json()["id"]
    public = users_client.get(f"/users/{jane_id}", headers=viewer_headers).json()
    assert public["phone"] == "+420 777 123 456"
    assert public["bio"] == "Weekend climber"
    assert public["email"] is None
    assert public["address"] is None

    own = users_client.get(f"/users/{jane_id}", headers=jane_headers).json()
    assert own["email"] == "jane@example.com"
    assert own["address"] == "Brno"


def test_email_change_must_stay_unique(users_client):
    users_client.post("/users/register", json=ADMIN_PAYLOAD)
    users_client.post("/users/register", json=USER_PAYLOAD)
    headers = auth_header(users_client, "jane", "Passw0rd!")

    response = users_client.put("/users/me", json={"email": "admin@example.com"}, headers=headers)
    assert response.status_code == 400


def test_delete_account_self_or_admin(users_client):
    users_client.post("/users/register", json=ADMIN_PAYLOAD)
    users_client.post("/users/register", json=USER_PAYLOAD)
    users_client.post("/users/register", json={**USER_PAYLOAD, "username": "bob", "email": "bob@example.com"})
    admin_headers = auth_header(users_client, "admin", "Passw0rd!")
    bob_headers = auth_header(users_client, "bob", "Passw0rd!")

    jane_id = users_client.get("/users/me", headers=auth_header(users_client, "jane", "Passw0rd!")).json()["id"]
    assert users_client.delete(f"/users/{jane_id}", headers=bob_headers).status_code == 403
    assert users_client.delete(f"/users/{jane_id}", headers=admin_headers).status_code == 204
    assert users_client.get(f"/users/{jane_id}", headers=admin_headers).status_code == 404
