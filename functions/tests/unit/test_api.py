"""Unit tests for the HTTP handlers and the local Flask server."""

from unittest.mock import patch

import pytest

from config.errors import ErrorCode
from main import (
    error_response,
    handle_calculate,
    handle_chat,
    handle_chat_reset,
    handle_chat_session,
    handle_demo,
    handle_materials,
    handle_options,
    success_response,
)
from validators.request_validator import validate_calculate_request, validate_chat_request

PIZZA_MESSAGE = "I want to build a pizza oven 1m x 1m, I'm a beginner"


@pytest.fixture
def client():
    from serve_local import create_app

    app = create_app()
    app.config["TESTING"] = True
    return app.test_client()


class TestResponseHelpers:
    def test_success_response(self):
        payload = success_response({"ok": 1})

        assert payload["success"] is True
        assert payload["data"] == {"ok": 1}
        assert "timestamp" in payload

    def test_error_response(self):
        payload = error_response(ErrorCode.INVALID_FIELD, "bad", {"field": "x"})

        assert payload["success"] is False
        assert payload["error"] == "bad"
        assert payload["code"] == ErrorCode.INVALID_FIELD
        assert payload["details"] == {"field": "x"}


class TestRequestValidator:
    """Tests for request body validation."""

    def test_calculate_accepts_empty_body(self):
        result = validate_calculate_request(None)

        assert result.is_valid
        assert result.data["quality_option"] is None

    def test_calculate_rejects_bad_types(self):
        result = validate_calculate_request({"area_sqm": "big", "quality_option": "luxury"})

        assert not result.is_valid
        assert len(result.errors) == 2

    def test_calculate_rejects_boolean_area(self):
        assert not validate_calculate_request({"area_sqm": True}).is_valid

    @pytest.mark.parametrize("area", ["nan", float("nan"), "inf"])
    def test_calculate_rejects_non_finite_area(self, area):
        result = validate_calculate_request({"area_sqm": area})

        assert not result.is_valid
        assert result.errors == ["area_sqm must be a finite number"]

    def test_chat_requires_message(self):
        assert not validate_chat_request({"message": "   "}).is_valid
        assert not validate_chat_request("hello").is_valid

    def test_chat_message_length(self):
        assert not validate_chat_request({"message": "x" * 4001}).is_valid

    def test_chat_optional_fields(self):
        result = validate_chat_request({"message": " hi ", "sessionId": "s-1", "apiKey": ""})

        assert result.data == {"message": "hi", "session_id": "s-1", "api_key": None, "has_api_key": True}


class TestConfiguratorHandlers:
    """Tests for the pizza oven configurator endpoints."""

    def test_calculate(self):
        payload, status = handle_calculate({"area_sqm": 1.8, "quality_option": "günstig"})

        assert status == 200
        assert payload["data"]["total_cost"] == pytest.approx(210.8)
        assert payload["data"]["quality_option"] == "günstig"

    def test_calculate_defaults(self):
        payload, status = handle_calculate(None)

        assert status == 200
        assert payload["data"]["area_sqm"] == 1.5
        assert payload["data"]["total_cost"] == pytest.approx(146.5)

    def test_calculate_invalid_body(self):
        payload, status = handle_calculate({"quality_option": "luxury"})

        assert status == 400
        assert payload["code"] == ErrorCode.VALIDATION_ERROR
        assert payload["details"]["errors"]

    def test_calculate_area_out_of_range(self):
        payload, status = handle_calculate({"area_sqm": 5})

        assert status == 400
        assert payload["details"]["field"] == "area_sqm"

    @pytest.mark.parametrize("area", ["nan", float("nan")])
    def test_calculate_nan_area_is_client_error(self, area):
        payload, status = handle_calculate({"area_sqm": area, "quality_option": "premium"})

        assert status == 400
        assert payload["code"] == ErrorCode.VALIDATION_ERROR

    def test_options(self):
        payload, status = handle_options("premium", "1.5")

        assert status == 200
        assert payload["data"]["total_cost"] == pytest.approx(363.7)
        assert payload["data"]["estimated_build_time"] == "5-7 Tage"

    def test_unknown_option(self):
        payload, status = handle_options("luxury")

        assert status == 400
        assert payload["code"] == ErrorCode.INVALID_FIELD

    def test_demo(self):
        payload, status = handle_demo()

        assert status == 200
        assert payload["data"]["project"] == "Pizzaofen"

    def test_materials(self):
        payload, status = handle_materials()

        assert status == 200
        assert {"materials", "calculationRules", "pizzaoven", "stats"} <= set(payload["data"])
        assert "pizza_oven" in payload["data"]["calculationRules"]


class TestChatHandlers:
    """Tests for the chat endpoints."""

    def test_chat_creates_session(self):
        payload, status = handle_chat({"message": PIZZA_MESSAGE})

        assert status == 200
        response = payload["data"]["response"]
        session = payload["data"]["session"]
        assert response["phase"] == "interactive"
        assert response["transitions"] == ["planning", "materials", "interactive"]
        assert session["sessionId"].startswith("session-")
        assert session["hasApiKey"] is False
        assert session["hasBlueprint"] is True

    def test_chat_continues_session(self):
        first, _ = handle_chat({"message": PIZZA_MESSAGE})
        session_id = first["data"]["session"]["sessionId"]

        payload, status = handle_chat({"sessionId": session_id, "message": "How long will it take?"})

        assert status == 200
        assert payload["data"]["response"]["data"]["intent"] == "time"
        assert payload["data"]["session"]["messageCount"] == 2

    def test_chat_rejects_empty_message(self):
        payload, status = handle_chat({"message": ""})

        assert status == 400
        assert payload["success"] is False

    def test_api_key_is_per_request(self, mock_chat_openai):
        with patch("services.llm_service.ChatOpenAI", return_value=mock_chat_openai):
            payload, status = handle_chat({"message": PIZZA_MESSAGE, "apiKey": "gsk-test"})

        assert status == 200
        assert "ai_analysis" in payload["data"]["response"]["transitions"]
        assert payload["data"]["session"]["hasApiKey"] is True

        session_id = payload["data"]["session"]["sessionId"]
        info, _ = handle_chat_session(session_id)
        assert info["data"]["hasApiKey"] is False
        assert info["data"]["messageCount"] == 1

    def test_chat_session_without_id_resumes_current(self):
        first, _ = handle_chat({"message": PIZZA_MESSAGE})

        payload, status = handle_chat_session()

        assert status == 200
        assert payload["data"]["sessionId"] == first["data"]["session"]["sessionId"]

    def test_chat_reset(self):
        first, _ = handle_chat({"message": PIZZA_MESSAGE})
        old_id = first["data"]["session"]["sessionId"]

        payload, status = handle_chat_reset({"sessionId": old_id})

        assert status == 200
        assert payload["data"]["sessionId"] != old_id
        assert payload["data"]["phase"] == "input"
        assert payload["data"]["messageCount"] == 0


class TestLocalServer:
    """Tests for the Flask routes in serve_local."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.get_json() == {"status": "ok", "service": "multibuild-agent"}

    def test_calculate_route(self, client):
        response = client.post("/calculate", json={"area_sqm": 1.5, "quality_option": "premium"})

        assert response.status_code == 200
        assert response.get_json()["data"]["total_cost"] == pytest.approx(363.7)

    def test_options_route(self, client):
        response = client.get("/options/schnell?area=1.5")

        assert response.status_code == 200
        assert response.get_json()["data"]["estimated_build_time"] == "2-3 Tage"

    def test_chat_route(self, client):
        response = client.post("/chat", json={"message": "hello there"})

        body = response.get_json()
        assert response.status_code == 200
        assert body["data"]["response"]["phase"] == "clarification"

    def test_chat_route_invalid_json(self, client):
        response = client.post("/chat", data="not json", content_type="application/json")

        assert response.status_code == 400
