import pytest

from vinculum.config import Settings
from vinculum.errors import ValidationError
from vinculum.handler import MAX_IDENTIFIERS, handle_tracking_request, parse_queries
from vinculum.shapes import DEFAULT_ATTEMPTS

from conftest import FakeResponse, FakeSession


def test_parse_queries_accepts_lists_commas_and_dedupes():
    queries = parse_queries(None, {"orderNumbers": ["A1, A2", "A1"], "orderNumber": "A3", "orderLocation": " WH1 "})

    assert [q.identifier for q in queries] == ["A1", "A2", "A3"]
    assert all(q.location_hint == "WH1" for q in queries)


def test_parse_queries_falls_back_to_query_string_and_default_location():
    queries = parse_queries({"deliveryNo": " D-77 "}, {}, default_location="MAIN")

    assert [(q.identifier, q.location_hint) for q in queries] == [("D-77", "MAIN")]


@pytest.mark.parametrize("body", [{}, {"orderNumber": ""}, {"orderNumber": "   "}, {"orderNumbers": " , ,"}, {"orderNumber": None}])
def test_blank_identifiers_rejected_without_upstream_call(settings, body):
    session = FakeSession()

    status, _, payload = handle_tracking_request("POST", {}, body, settings=settings, session=session)

    assert status == 400
    assert "orderNumber" in payload["error"]
    assert payload["hint"]
    assert session.call_count == 0
    with pytest.raises(ValidationError):
        parse_queries({}, body)


def test_unsupported_method_lists_allowed_methods(settings):
    status, headers, payload = handle_tracking_request("DELETE", {}, {}, settings=settings)

    assert status == 405
    assert headers == {"Allow": "GET, POST"}
    assert payload == {"error": "Method not allowed"}


def test_missing_api_key_fails_closed_before_network(shipped_order):
    session = FakeSession(shipped_order)
    settings = Settings(api_owner="storefront")

    status, _, payload = handle_tracking_request("POST", {}, {"orderNumber": "A1"}, settings=settings, session=session)

    assert status == 500
    assert "VINCULUM_API_KEY" in payload["error"]
    assert session.call_count == 0


def test_successful_lookup_scenario(settings, shipped_order):
    session = FakeSession(shipped_order)

    status, _, payload = handle_tracking_request(
        "POST", {}, {"orderNumber": "4105939108DC"}, settings=settings, session=session,
    )

    assert status == 200
    assert session.call_count == 1
    assert payload["identifier"] == "4105939108DC"
    assert payload["status"] == "Shipped"
    assert payload["courier"] == "BlueDart"
    assert payload["trackingNumber"] == "BD123"
    assert [ev["status"] for ev in payload["events"]] == ["Shipped"]
    assert payload["attempt"] == "shipmentDetail:orderNo"
    assert payload["rawUpstream"]["orders"][0]["status"] == "Shipped"
    assert "shipments" not in payload


@pytest.mark.parametrize("k", range(1, len(DEFAULT_ATTEMPTS) + 1))
def test_result_comes_from_attempt_k_with_at_most_k_calls(settings, rejected, k):
    winner = FakeResponse(200, {"responseCode": 0, "orders": [{"status": f"from attempt {k}"}]})
    session = FakeSession(*([rejected] * (k - 1)), winner, rejected)

    status, _, payload = handle_tracking_request("GET", {"orderNumber": "A1"}, None, settings=settings, session=session)

    assert status == 200
    assert session.call_count == k
    assert payload["status"] == f"from attempt {k}"
    assert payload["attempt"] == DEFAULT_ATTEMPTS[k - 1].label


def test_rejected_everywhere_returns_full_diagnostics(settings, rejected):
    session = FakeSession(rejected)

    status, _, payload = handle_tracking_request("POST", {}, {"orderNumber": "A1"}, settings=settings, session=session)

    assert status == 400
    assert payload["error"] == "Invalid credentials"
    assert payload["identifier"] == "A1"
    assert len(payload["tried"]) == len(DEFAULT_ATTEMPTS)
    assert [entry["label"] for entry in payload["tried"]] == [a.label for a in DEFAULT_ATTEMPTS]
    assert all(entry["responseCode"] == 11 for entry in payload["tried"])
    assert all(entry["httpStatus"] == 200 for entry in payload["tried"])


def test_http_errors_everywhere_pass_upstream_status_through(settings):
    session = FakeSession(FakeResponse(503, text="maintenance"))

    status, _, payload = handle_tracking_request("POST", {}, {"orderNumber": "A1"}, settings=settings, session=session)

    assert status == 503
    assert payload["error"] == "Upstream error"
    assert payload["details"] == {"raw": "maintenance"}
    assert len(payload["tried"]) == len(DEFAULT_ATTEMPTS)


def test_network_errors_everywhere_return_502(settings, timeout_error):
    session = FakeSession(timeout_error)

    status, _, payload = handle_tracking_request("POST", {}, {"orderNumber": "A1"}, settings=settings, session=session)

    assert status == 502
    assert all(entry["outcome"] == "network_error" for entry in payload["tried"])


def test_multiple_identifiers_resolve_in_order(settings, shipped_order, rejected):
    # A1 succeeds first try, A2 is rejected by every shape
    session = FakeSession(shipped_order, *([rejected] * len(DEFAULT_ATTEMPTS)))

    status, _, payload = handle_tracking_request(
        "POST", {}, {"orderNumbers": "A1,A2"}, settings=settings, session=session,
    )

    assert status == 200
    assert payload["identifier"] == "A1"
    assert payload["courier"] == "BlueDart"
    assert [r["identifier"] for r in payload["results"]] == ["A1"]
    assert payload["results"][0]["shipments"][0]["trackingNumber"] == "BD123"
    assert [e["identifier"] for e in payload["errors"]] == ["A2"]
    assert session.call_count == 1 + len(DEFAULT_ATTEMPTS)


def test_unexpected_error_becomes_500(settings, monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("normalizer blew up")

    monkeypatch.setattr("vinculum.handler.normalize", explode)
    session = FakeSession(FakeResponse(200, {"orders": []}))

    status, _, payload = handle_tracking_request("POST", {}, {"orderNumber": "A1"}, settings=settings, session=session)

    assert status == 500
    assert payload == {"error": "normalizer blew up"}


def test_repeated_lookup_is_structurally_identical(settings, shipped_order):
    first = handle_tracking_request("POST", {}, {"orderNumber": "A1"}, settings=settings, session=FakeSession(shipped_order))
    second = handle_tracking_request("POST", {}, {"orderNumber": "A1"}, settings=settings, session=FakeSession(shipped_order))
    assert first == second


def test_too_many_identifiers_rejected_before_network(settings, rejected):
    session = FakeSession(rejected)
    numbers = ",".join(f"A{i}" for i in range(MAX_IDENTIFIERS + 1))

    status, _, payload = handle_tracking_request(
        "POST", {}, {"orderNumbers": numbers}, settings=settings, session=session,
    )

    assert status == 400
    assert str(MAX_IDENTIFIERS) in payload["hint"]
    assert session.call_count == 0


def test_identifier_limit_is_inclusive():
    numbers = [f"A{i}" for i in range(MAX_IDENTIFIERS)]
    assert len(parse_queries(None, {"orderNumbers": numbers})) == MAX_IDENTIFIERS


def test_location_from_query_string_applies_to_body_identifier():
    queries = parse_queries({"orderLocation": "WH2"}, {"orderNumber": "A1"}, default_location="MAIN")
    assert queries[0].location_hint == "WH2"


def test_body_location_wins_over_query_string():
    queries = parse_queries({"orderLocation": ["WH2"]}, {"orderNumber": "A1", "orderLocation": "WH1"})
    assert queries[0].location_hint == "WH1"
