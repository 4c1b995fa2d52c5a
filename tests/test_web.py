from conftest import make_user
from userdesk.auth import create_access_token
from userdesk.web import TOKEN_COOKIE


def _web_login(client, username, password):
    return client.post("/auth/login", data={"username": username, "password": password})


def _form(**overrides):
    form = {
        "username": "webuser",
        "password": "webpass",
        "active": "on",
        "user_group_id": "3",
        "first_name": "Web",
        "last_name": "User",
        "phone": "050-1112222",
        "email": "webuser@acme.io",
    }
    form.update(overrides)
    return form


def test_users_page_redirects_to_login_when_anonymous(client):
    resp = client.get("/users", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/auth/login"


def test_login_and_list(client):
    resp = _web_login(client, "admin", "adminpass")
    assert resp.status_code == 200
    assert str(resp.url).endswith("/users")
    assert "Johnny" in resp.text
    assert "Full Access (Create, Edit, Delete, View)" in resp.text


def test_login_failure_shows_reason(client):
    resp = _web_login(client, "admin", "wrong")
    assert resp.status_code == 401
    assert "Incorrect password" in resp.text

    resp = _web_login(client, "", "")
    assert "Username and password are required" in resp.text


def test_user_without_group_is_sent_back_to_login(client):
    resp = _web_login(client, "drifter", "drifterpass")
    assert str(resp.url).startswith("http://testserver/auth/login")
    assert "user group assigned" in resp.text
    assert "access_token" not in client.cookies


def test_unknown_group_is_treated_as_unassigned(client):
    stray = make_user(3, "regular", "regularpass", 99, "Johnny", "Walker")
    client.cookies.set(TOKEN_COOKIE, create_access_token(stray))
    resp = client.get("/users", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"].startswith("/auth/login?error=")


def test_list_filters(client):
    _web_login(client, "viewer", "viewerpass")
    resp = client.get("/users", params={"status": "inactive"})
    assert "sleeper" in resp.text
    assert "Johnny" not in resp.text

    resp = client.get("/users", params={"search": "EDITOR@acme"})
    assert "Grace" in resp.text
    assert "Ada" not in resp.text


def test_regular_user_edit_pages(client):
    _web_login(client, "regular", "regularpass")
    assert client.get("/users/3/edit").status_code == 200
    resp = client.get("/users/4/edit")
    assert resp.status_code == 403
    assert "permission" in resp.text


def test_regular_user_cannot_open_create(client):
    _web_login(client, "regular", "regularpass")
    assert client.get("/users/create").status_code == 403


def test_create_via_form(client, service):
    _web_login(client, "editor", "editorpass")
    resp = client.post("/users/create", data=_form())
    assert resp.status_code == 200
    created = service.get_user_by_id(7)
    assert created.username == "webuser"
    assert created.active is True


def test_create_form_shows_validation_errors(client, service):
    _web_login(client, "editor", "editorpass")
    resp = client.post("/users/create", data=_form(username="ab", first_name="X1"))
    assert resp.status_code == 400
    assert "Username must be between 3 and 20 characters" in resp.text
    assert len(service.get_all_users()) == 6


def test_create_form_duplicate_username(client):
    _web_login(client, "admin", "adminpass")
    resp = client.post("/users/create", data=_form(username="editor"))
    assert resp.status_code == 400
    assert "Username already exists in the system" in resp.text


def test_edit_self_via_form(client, service):
    _web_login(client, "viewer", "viewerpass")
    resp = client.post(
        "/users/4/edit",
        data=_form(username="viewer", password="viewerpass", user_group_id="4", first_name="Jonathan"),
    )
    assert resp.status_code == 200
    assert service.get_user_by_id(4).data.first_name == "Jonathan"


def test_delete_via_form(client, service):
    _web_login(client, "editor", "editorpass")
    assert client.get("/users/6/delete").status_code == 403

    client.get("/auth/logout")
    _web_login(client, "admin", "adminpass")
    assert client.get("/users/6/delete").status_code == 200
    resp = client.post("/users/6/delete")
    assert resp.status_code == 200
    assert service.get_user_by_id(6) is None


def test_logout_clears_cookie(client):
    _web_login(client, "admin", "adminpass")
    client.get("/auth/logout")
    resp = client.get("/users", follow_redirects=False)
    assert resp.status_code == 303


def test_web_login_is_rate_limited(client, rate_limited):
    statuses = [_web_login(client, "admin", "wrong").status_code for _ in range(rate_limited + 1)]
    assert statuses[:-1] == [401] * rate_limited
    assert statuses[-1] == 429
