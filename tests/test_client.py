"""Tests for the FS-Quiz HTTP client."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from quizdocs.errors import UpstreamFetchError
from quizdocs.quiz.client import QuestionSourceClient, image_urls, pick_question, to_bool


def _response(status: int, payload: Any = None, *, bad_json: bool = False) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    if bad_json:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


def _client(*responses: MagicMock) -> tuple[QuestionSourceClient, MagicMock]:
    session = MagicMock()
    session.get.side_effect = list(responses)
    return QuestionSourceClient("https://quiz.test/2/", session=session), session


class TestHelpers:
    """Test payload helpers."""

    def test_pick_question_wrapped(self) -> None:
        payload = {"questions": [{"question_id": 3, "text": "A"}, {"question_id": 4}]}
        assert pick_question(payload) == {"question_id": 3, "text": "A"}

    def test_pick_question_bare(self) -> None:
        assert pick_question({"question_id": 3}) == {"question_id": 3}

    def test_pick_question_unknown(self) -> None:
        assert pick_question({"questions": []}) is None
        assert pick_question(["x"]) is None

    def test_to_bool(self) -> None:
        assert to_bool(1) is True
        assert to_bool("1") is True
        assert to_bool("0") is False
        assert to_bool(None) is False
        assert to_bool(True) is True

    def test_image_urls(self) -> None:
        """Should join paths to the host, skipping blanks and capping the count."""
        question = {"images": [{"path": "/a.png"}, {"path": ""}, None] + [{"path": f"{i}.png"} for i in range(10)]}

        urls = image_urls(question, host="https://img.test", limit=3)

        assert urls == ["https://img.test/a.png", "https://img.test/0.png", "https://img.test/1.png"]

    def test_image_urls_missing(self) -> None:
        assert image_urls({"text": "no images"}) == []


class TestFetchQuestion:
    """Test QuestionSourceClient.fetch_question."""

    def test_found(self) -> None:
        """Should request the question url and unwrap the payload."""
        client, session = _client(_response(200, {"questions": [{"question_id": 5, "text": "Q"}]}))

        assert client.fetch_question(5) == {"question_id": 5, "text": "Q"}
        url = session.get.call_args.args[0]
        assert url == "https://quiz.test/2/question/5"
        assert session.get.call_args.kwargs["timeout"] == (5.0, 20.0)

    def test_not_found(self) -> None:
        """Should treat 404 as a missing id."""
        client, _ = _client(_response(404))
        assert client.fetch_question(5) is None

    def test_unexpected_shape_is_empty(self) -> None:
        """Should treat an unrecognised payload as a question without text."""
        client, _ = _client(_response(200, {"something": "else"}))
        assert client.fetch_question(5) == {}

    def test_server_error(self) -> None:
        """Should raise UpstreamFetchError with the status."""
        client, _ = _client(_response(503))

        with pytest.raises(UpstreamFetchError) as excinfo:
            client.fetch_question(5)

        assert excinfo.value.status == 503

    def test_transport_error(self) -> None:
        """Should wrap requests exceptions."""
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("boom")
        client = QuestionSourceClient("https://quiz.test/2", session=session)

        with pytest.raises(UpstreamFetchError):
            client.fetch_question(1)

    def test_invalid_json(self) -> None:
        client, _ = _client(_response(200, bad_json=True))
        with pytest.raises(UpstreamFetchError):
            client.fetch_question(1)


class TestFetchAnswer:
    """Test QuestionSourceClient.fetch_answer."""

    def test_answer_with_question(self) -> None:
        """Should coerce is_correct and attach the question."""
        client, session = _client(
            _response(200, {"answer_id": 9, "question_id": 5, "is_correct": "1"}),
            _response(200, {"question_id": 5, "text": "Q"}),
        )

        result = client.fetch_answer(9)

        assert result is not None
        assert result.answer["is_correct"] is True
        assert result.question == {"question_id": 5, "text": "Q"}
        assert session.get.call_args_list[0].args[0] == "https://quiz.test/2/answer/9"

    def test_answer_question_missing(self) -> None:
        client, _ = _client(
            _response(200, {"answer_id": 9, "question_id": 5, "is_correct": 0}),
            _response(404),
        )

        result = client.fetch_answer(9)

        assert result is not None
        assert result.answer["is_correct"] is False
        assert result.question is None

    def test_answer_not_found(self) -> None:
        client, _ = _client(_response(404))
        assert client.fetch_answer(9) is None

    def test_answer_malformed(self) -> None:
        """Should reject answers without a numeric question id."""
        client, _ = _client(_response(200, {"answer_id": 9, "question_id": "5"}))
        with pytest.raises(UpstreamFetchError):
            client.fetch_answer(9)
