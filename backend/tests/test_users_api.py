import os

from conftest import make_pdf, make_png


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_register_returns_token_and_slug(client):
    response = client.post(
        "/api/users/register",
        json={"name": "  Alice   Martin ", "email": "Alice@Example.com", "password": "secret123"}
    )

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Alice   Martin"
    assert data["email"] == "alice@example.com"
    assert data["profile_url"] == "alice-martin"
    assert data["token"]


def test_register_duplicate_email(client, make_user):
    make_user("Alice Martin")

    response = client.post(
        "/api/users/register",
        json={"name": "Someone Else", "email": "ALICE@example.com", "password": "secret123"}
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "User already exists"


def test_register_suffixes_taken_profile_url(client, make_user):
    make_user("Alice Martin")
    second, _ = make_user("Alice Martin", email="alice2@example.com")
    third, _ = make_user("Alice Martin", email="alice3@example.com")

    assert second["profile_url"] == "alice-martin-2"
    assert third["profile_url"] == "alice-martin-3"


def test_register_rejects_short_password(client):
    response = client.post(
        "/api/users/register",
        json={"name": "Bob", "email": "bob@example.com", "password": "123"}
    )
    assert response.status_code == 422


def test_register_rejects_password_over_bcrypt_limit(client):
    for password in ("x" * 80, "é" * 40):
        response = client.post(
            "/api/users/register",
            json={"name": "Bob", "email": "bob@example.com", "password": password}
        )
        assert response.status_code == 422

    response = client.post(
        "/api/users/register",
        json={"name": "Bob", "email": "bob@example.com", "password": "x" * 72}
    )
    assert response.status_code == 201


def test_update_rejects_password_over_bcrypt_limit(client, make_user):
    _, headers = make_user("Alice Martin")

    response = client.put("/api/users/profile", json={"password": "x" * 73}, headers=headers)
    assert response.status_code == 422

    too_long = client.post(
        "/api/users/login", json={"email": "alice@example.com", "password": "x" * 80}
    )
    assert too_long.status_code == 401


def test_profile_url_keeps_only_url_safe_characters(client, make_user):
    user, _ = make_user("AC/DC Fan #1?", email="acdc@example.com", public=True)
    assert user["profile_url"] == "ac-dc-fan-1"

    response = client.get(f"/api/users/public/{user['profile_url']}")
    assert response.status_code == 200
    assert response.json()["name"] == "AC/DC Fan #1?"

    symbols, _ = make_user("???", email="symbols@example.com")
    assert symbols["profile_url"] == "user"


def test_login(client, make_user):
    user, _ = make_user("Alice Martin")

    response = client.post(
        "/api/users/login",
        json={"email": "ALICE@example.com", "password": "secret123"}
    )

    assert response.status_code == 200
    assert response.json()["id"] == user["id"]
    assert response.json()["token"]


def test_login_failures(client, make_user):
    make_user("Alice Martin")

    wrong_password = client.post(
        "/api/users/login", json={"email": "alice@example.com", "password": "nope123"}
    )
    unknown_email = client.post(
        "/api/users/login", json={"email": "nobody@example.com", "password": "secret123"}
    )

    for response in (wrong_password, unknown_email):
        assert response.status_code == 401
        assert response.json()["detail"] == "Incorrect email or password"


def test_me_requires_valid_token(client):
    assert client.get("/api/users/me").status_code == 401

    response = client.get("/api/users/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Not authorized, token failed"


def test_me_returns_profile(client, make_user):
    user, headers = make_user("Alice Martin")
    client.post("/api/skills/", json={"name": "Python", "category": "Programming", "level": "expert"}, headers=headers)

    response = client.get("/api/users/me", headers=headers)

    assert response.status_code == 200
    assert response.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"
    data = response.json()
    assert data["id"] == user["id"]
    assert "hashed_password" not in data
    assert data["public_profile"] is False
    assert data["skills"] == [
        {"id": data["skills"][0]["id"], "name": "Python", "category": "Programming",
         "description": None, "level": "expert"}
    ]
    assert data["certifications"] == []


def test_update_profile(client, make_user):
    _, headers = make_user("Alice Martin")

    response = client.put(
        "/api/users/profile",
        json={"name": "Alice M.", "bio": "Cloud engineer", "public_profile": True},
        headers=headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Alice M."
    assert data["bio"] == "Cloud engineer"
    assert data["public_profile"] is True
    # profile url is fixed at registration
    assert data["profile_url"] == "alice-martin"
    assert data["email"] == "alice@example.com"


def test_update_profile_email_in_use(client, make_user):
    make_user("Bob Stone")
    _, headers = make_user("Alice Martin")

    response = client.put("/api/users/profile", json={"email": "bob@example.com"}, headers=headers)

    assert response.status_code == 400
    assert response.json()["detail"] == "Email already in use"


def test_update_password(client, make_user):
    _, headers = make_user("Alice Martin")

    response = client.put("/api/users/profile", json={"password": "newsecret"}, headers=headers)
    assert response.status_code == 200

    old = client.post("/api/users/login", json={"email": "alice@example.com", "password": "secret123"})
    new = client.post("/api/users/login", json={"email": "alice@example.com", "password": "newsecret"})
    assert old.status_code == 401
    assert new.status_code == 200


def test_public_profile(client, make_user):
    make_user("Alice Martin")
    make_user("Bob Stone", public=True)

    private = client.get("/api/users/public/alice-martin")
    assert private.status_code == 404
    assert private.json()["detail"] == "Profile not found or not public"

    missing = client.get("/api/users/public/nobody")
    assert missing.status_code == 404

    response = client.get("/api/users/public/bob-stone")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Bob Stone"
    assert "email" not in data
    assert data["skills"] == []


def test_upload_profile_image_replaces_previous(client, make_user, storage):
    _, headers = make_user("Alice Martin")

    first = client.post(
        "/api/users/upload",
        files={"file": ("avatar.png", make_png(), "image/png")},
        headers=headers
    )
    assert first.status_code == 200
    first_key = first.json()["profile_image"]
    assert first_key.startswith("profile-images/")
    assert first.json()["url"] == f"/uploads/{first_key}"
    assert os.path.exists(os.path.join(storage.root, first_key))

    second = client.post(
        "/api/users/upload",
        files={"file": ("avatar2.png", make_png(color=(0, 0, 255)), "image/png")},
        headers=headers
    )
    second_key = second.json()["profile_image"]

    assert second_key != first_key
    assert not os.path.exists(os.path.join(storage.root, first_key))
    assert os.path.exists(os.path.join(storage.root, second_key))
    assert client.get("/api/users/me", headers=headers).json()["profile_image"] == second_key


def test_upload_profile_image_rejects_pdf(client, make_user):
    _, headers = make_user("Alice Martin")

    response = client.post(
        "/api/users/upload",
        files={"file": ("cv.pdf", make_pdf(), "application/pdf")},
        headers=headers
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Only image files are allowed!"
