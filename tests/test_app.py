import pytest
from fastapi.testclient import TestClient

from dokan import main


def test_unhandled_errors_are_hidden(app):
    @app.get("/api/boom")
    def boom():
        raise RuntimeError("database exploded")

    with TestClient(app, raise_server_exceptions=False) as c:
        res = c.get("/api/boom")
    assert res.status_code == 500
    assert res.json() == {"message": "Internal server error"}


def test_unknown_route_uses_message_shape(client):
    res = client.get("/api/nothing-here")
    assert res.status_code == 404
    assert res.json() == {"message": "Not Found"}


def test_production_requires_secrets(app, monkeypatch):
    monkeypatch.setattr(main, "IS_PRODUCTION", True)
    monkeypatch.delenv("SESSION_SECRET", raising=False)
    monkeypatch.setenv("ADMIN_PASSWORD", "set")
    with pytest.raises(RuntimeError, match="SESSION_SECRET"):
        main.create_app()


def test_seeding_categories_is_idempotent(app, db):
    main.seed_categories()
    main.create_app()
    assert db.query(main.models.Category).count() == len(main.DEFAULT_CATEGORIES)
