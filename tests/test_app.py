def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


def test_unknown_route_is_json(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.get_json() == {
        "success": False,
        "error": "Resource not found",
        "code": "not_found",
    }


def test_wrong_method_is_json(client):
    response = client.put("/api/picks")

    assert response.status_code == 405
    assert response.get_json()["code"] == "method_not_allowed"


def test_api_responses_are_not_cached(client):
    response = client.get("/api/teams")

    assert response.headers["Cache-Control"] == "no-store"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "Strict-Transport-Security" not in response.headers


def test_testing_config(app):
    assert app.config["SQLALCHEMY_DATABASE_URI"] == "sqlite:///:memory:"
    assert app.config["CACHE_TYPE"] == "SimpleCache"
    assert app.config["SCHEDULER_ENABLED"] is False
