import json

import pytest

from handlers import main


def _event(method, path):
    return {"requestContext": {"http": {"method": method, "path": path}}}


def test_main_routes_health(monkeypatch):
    monkeypatch.setattr(main.health_check, "lambda_handler", lambda e, c: {"status": "ok"})
    resp = main.lambda_handler(_event("GET", "/health"), None)
    assert resp["status"] == "ok"


def test_main_routes_index(monkeypatch):
    monkeypatch.setattr(main.health_check, "index_handler", lambda e, c: {"index": True})
    resp = main.lambda_handler(_event("GET", "/"), None)
    assert resp["index"] is True


def test_main_routes_validate_payment(monkeypatch):
    marker = {}

    def fake_handler(event, context):
        marker["called"] = True
        return {"statusCode": 200}

    monkeypatch.setattr(main.payments, "lambda_handler", fake_handler)
    resp = main.lambda_handler(_event("POST", "/validate-payment"), None)
    assert resp["statusCode"] == 200
    assert marker["called"] is True


@pytest.mark.parametrize(
    "method,path,module,attr",
    [
        ("GET", "/tickets/count", "tickets", "count_handler"),
        ("POST", "/tickets/purchase", "tickets", "purchase_handler"),
        ("POST", "/upload", "uploads", "lambda_handler"),
        ("POST", "/test-ai", "ai_test", "lambda_handler"),
        ("GET", "/raffle", "raffle", "lambda_handler"),
    ],
)
def test_main_routes_table(monkeypatch, method, path, module, attr):
    monkeypatch.setattr(getattr(main, module), attr, lambda e, c: {"routed": attr})
    resp = main.lambda_handler(_event(method, path), None)
    assert resp["routed"] == attr


def test_main_strips_trailing_slash(monkeypatch):
    monkeypatch.setattr(main.tickets, "count_handler", lambda e, c: {"count": 0})
    resp = main.lambda_handler(_event("GET", "/tickets/count/"), None)
    assert resp["count"] == 0


def test_main_options_preflight():
    resp = main.lambda_handler(_event("OPTIONS", "/validate-payment"), None)
    assert resp["statusCode"] == 204
    assert resp["headers"]["Access-Control-Allow-Origin"] == "*"


def test_main_wrong_method_is_unknown():
    resp = main.lambda_handler(_event("GET", "/validate-payment"), None)
    assert resp["statusCode"] == 404


def test_main_unknown_route():
    resp = main.lambda_handler(_event("GET", "/unknown"), None)
    assert resp["statusCode"] == 404
    body = json.loads(resp["body"])
    assert body["message"] == "Route not found"
    assert body["route"] == "GET /unknown"
