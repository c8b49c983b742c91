"""
Unit tests for Anki client.

Tests client initialization, request building, multi-action handling and
connection checks WITHOUT requiring Anki to be running.
"""

import pytest
import requests
from unittest.mock import Mock, patch

from drill2anki.anki.anki_client import AnkiClient, AnkiConnectError


@pytest.fixture
def client():
    """AnkiClient built from mocked settings."""
    with patch("drill2anki.anki.anki_client.get_settings") as mock_settings:
        mock_settings.return_value = Mock(
            anki_connect_url="http://localhost:8765",
            anki_timeout=30,
        )
        yield AnkiClient()


def response_with(payload):
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class TestAnkiClientInit:
    """Tests for AnkiClient initialization."""

    def test_default_initialization(self, client):
        """Client should initialize with default settings."""
        assert client.base_url == "http://localhost:8765"
        assert client.timeout == 30

    def test_custom_initialization(self):
        """Client should accept custom parameters."""
        with patch("drill2anki.anki.anki_client.get_settings") as mock_settings:
            mock_settings.return_value = Mock(
                anki_connect_url="http://localhost:8765",
                anki_timeout=30,
            )
            client = AnkiClient(base_url="http://custom:9999", timeout=5)

            assert client.base_url == "http://custom:9999"
            assert client.timeout == 5


class TestInvoke:
    """Tests for the raw request/response handling."""

    def test_payload_and_result(self, client):
        client.session.post = Mock(return_value=response_with({"result": 6, "error": None}))

        assert client._invoke("version") == 6

        _, kwargs = client.session.post.call_args
        assert kwargs["json"] == {"action": "version", "version": 6, "params": {}}
        assert kwargs["timeout"] == 30

    def test_error_raises(self, client):
        client.session.post = Mock(
            return_value=response_with({"result": None, "error": "model was not found"})
        )

        with pytest.raises(AnkiConnectError, match="model was not found"):
            client._invoke("addNote", {"note": {}})

    def test_multi_versions_each_action(self, client):
        calls = []

        def fake_invoke(action, params=None):
            calls.append((action, params))
            return [123, {"result": None, "error": "cannot create note because it is a duplicate"}]

        client._invoke = fake_invoke
        results = client.add_notes([{"modelName": "Basic"}, {"modelName": "Basic"}])

        assert results == [(123, None), (None, "cannot create note because it is a duplicate")]
        action, params = calls[0]
        assert action == "multi"
        assert params["actions"][0] == {
            "action": "addNote",
            "params": {"note": {"modelName": "Basic"}},
            "version": 6,
        }

    def test_multi_with_no_actions(self, client):
        client._invoke = Mock()

        assert client.add_notes([]) == []
        client._invoke.assert_not_called()


class TestNoteAndCardActions:
    """Tests for the action wrappers."""

    def test_update_notes_returns_errors(self, client):
        client._invoke = Mock(return_value=[None, {"result": None, "error": "note was not found"}])

        assert client.update_notes([{"id": 1}, {"id": 2}]) == [None, "note was not found"]

    def test_find_cards_for_notes(self, client):
        client._invoke = Mock(return_value=[[11, 12], {"result": None, "error": "boom"}, []])

        cards = client.find_cards_for_notes([1, 2, 3])

        assert cards == {1: [11, 12], 3: []}
        queries = [a["params"]["query"] for a in client._invoke.call_args[0][1]["actions"]]
        assert queries == ["nid:1", "nid:2", "nid:3"]

    def test_set_due_date(self, client):
        client._invoke = Mock(return_value=True)

        assert client.set_due_date([1, 2], "5") is True
        client._invoke.assert_called_once_with("setDueDate", {"cards": [1, 2], "days": "5"})

    def test_set_ease_factors(self, client):
        client._invoke = Mock(return_value=[True, True])

        client.set_ease_factors([1, 2], [2500, 2500])
        client._invoke.assert_called_once_with(
            "setEaseFactors", {"cards": [1, 2], "easeFactors": [2500, 2500]}
        )

    def test_set_card_values_stringifies(self, client):
        client._invoke = Mock(return_value=[True, True, True])

        client.set_card_values(7, ["ivl", "reps", "lapses"], [6, 3, 1])

        action, params = client._invoke.call_args[0]
        assert action == "setSpecificValueOfCard"
        assert params["card"] == 7
        assert params["newValues"] == ["6", "3", "1"]
        assert params["warning_check"] is True


class TestConnection:
    """Tests for connection checking."""

    def test_connected(self, client):
        client._invoke = Mock(return_value=6)
        assert client.check_connection() is True

    @pytest.mark.parametrize("error", [
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.Timeout("slow"),
        AnkiConnectError("bad"),
    ])
    def test_not_connected(self, client, error):
        client._invoke = Mock(side_effect=error)
        assert client.check_connection() is False

    def test_result_is_cached(self, client):
        client._invoke = Mock(return_value=6)

        client.check_connection()
        client.check_connection()

        assert client._invoke.call_count == 1

    def test_require_connection_raises(self, client):
        client._invoke = Mock(side_effect=requests.exceptions.ConnectionError("refused"))

        with pytest.raises(AnkiConnectError, match="Anki is not available"):
            client.require_connection()

    def test_get_version_none_when_offline(self, client):
        client._invoke = Mock(side_effect=requests.exceptions.ConnectionError("refused"))
        assert client.get_version() is None
