"""Tests for key-based redaction of JSON documents, bodies, and headers."""

import json

import pytest

from smartlog.errors import RedactionError
from smartlog.redaction import (
    REDACTED,
    group_header_pairs,
    redact,
    redact_headers,
    redact_json_body,
)


class TestRedactDocument:
    def test_top_level_key(self):
        doc = {"username": "alice", "password": "s3cret"}
        result = redact(doc, ["password"])
        assert result == {"username": "alice", "password": REDACTED}

    def test_nested_object(self):
        doc = {"user": {"name": "a", "details": {"token": "secret"}}}
        result = redact(doc, ["token"])
        assert result == {"user": {"name": "a", "details": {"token": "[REDACTED]"}}}

    def test_objects_inside_array(self):
        doc = {"users": [{"name": "a", "api_key": "k1"}, {"name": "b", "api_key": "k2"}]}
        result = redact(doc, ["api_key"])
        assert result == {
            "users": [
                {"name": "a", "api_key": "[REDACTED]"},
                {"name": "b", "api_key": "[REDACTED]"},
            ]
        }

    def test_array_of_scalars_is_untouched(self):
        doc = {"tags": ["password", "token"], "password": ["a", "b"]}
        result = redact(doc, ["password"])
        assert result["tags"] == ["password", "token"]
        assert result["password"] == REDACTED

    def test_matching_key_replaces_whole_subtree(self):
        doc = {"credentials": {"user": "u", "nested": {"deep": 1}}, "count": 3}
        result = redact(doc, ["credentials"])
        assert result == {"credentials": REDACTED, "count": 3}

    def test_non_string_values_are_replaced(self):
        doc = {"pin": 1234, "flag": True, "none": None}
        result = redact(doc, ["pin", "flag", "none"])
        assert result == {"pin": REDACTED, "flag": REDACTED, "none": REDACTED}

    def test_arrays_nested_in_arrays_are_carried_over(self):
        doc = {"matrix": [[{"password": "x"}]]}
        result = redact(doc, ["password"])
        assert result == {"matrix": [[{"password": "x"}]]}

    @pytest.mark.parametrize("key", ["Password", "password", "PASSWORD"])
    def test_key_matching_is_case_insensitive(self, key):
        doc = {"PassWord": "x", "inner": {"password": "y"}}
        assert redact(doc, [key]) == {"PassWord": REDACTED, "inner": {"password": REDACTED}}

    def test_empty_key_set_returns_same_object(self):
        doc = {"password": "x"}
        assert redact(doc, []) is doc

    def test_does_not_mutate_input(self):
        doc = {"password": "x", "inner": {"token": "t"}, "items": [{"token": "u"}]}
        snapshot = json.loads(json.dumps(doc))
        redact(doc, ["password", "token"])
        assert doc == snapshot

    def test_idempotent(self):
        doc = {
            "password": "x",
            "user": {"token": "t", "items": [{"token": "u"}, 1, "two"]},
        }
        keys = ["password", "token"]
        once = redact(doc, keys)
        assert redact(once, keys) == once


class TestRedactJsonBody:
    def test_redacts_json_object(self):
        body = b'{"user":"alice","password":"hunter2"}'
        result = redact_json_body(body, ["password"])
        assert json.loads(result) == {"user": "alice", "password": REDACTED}

    def test_str_body_returns_str(self):
        result = redact_json_body('{"token":"t"}', ["token"])
        assert isinstance(result, str)
        assert json.loads(result) == {"token": REDACTED}

    @pytest.mark.parametrize(
        "body",
        [
            b"",
            b"not json at all",
            b"\xff\xfe\x00binary",
            b'["password", {"password": "x"}]',
            b'"password"',
            b"42",
            b'{"truncated": ',
        ],
    )
    def test_non_object_bodies_pass_through(self, body):
        assert redact_json_body(body, ["password"]) is body

    def test_empty_key_set_passes_through(self):
        body = b'{"password":"x"}'
        assert redact_json_body(body, []) is body

    def test_unencodable_document_falls_back_to_original(self):
        # NaN parses, but cannot be re-encoded as strict JSON
        body = b'{"password":"x","ratio":NaN}'
        assert redact_json_body(body, ["password"]) is body

    def test_unencodable_document_raises_in_strict_mode(self):
        body = b'{"password":"x","ratio":NaN}'
        with pytest.raises(RedactionError):
            redact_json_body(body, ["password"], strict=True)

    def test_deeply_nested_body_passes_through(self):
        body = b'{"a":' * 3000 + b"1" + b"}" * 3000
        assert redact_json_body(body, ["password"]) is body
        assert redact_json_body(body, ["password"], strict=True) is body

    def test_keeps_non_ascii_text(self):
        body = '{"name":"Zoë","password":"p"}'.encode("utf-8")
        result = redact_json_body(body, ["password"])
        assert "Zoë".encode("utf-8") in result


class TestRedactHeaders:
    def test_redacts_matching_header(self):
        headers = {"Authorization": ["Bearer x"], "Content-Type": ["application/json"]}
        result = redact_headers(headers, ["authorization"])
        assert result["Authorization"] == ["[REDACTED]"]
        assert result["Content-Type"] == ["application/json"]

    def test_multiple_values_collapse_to_one_placeholder(self):
        headers = {"Set-Cookie": ["a=1", "b=2"]}
        assert redact_headers(headers, ["set-cookie"]) == {"Set-Cookie": [REDACTED]}

    def test_non_matching_values_are_shared(self):
        accept = ["application/json"]
        headers = {"Accept": accept, "Api-Key": ["k"]}
        result = redact_headers(headers, ["api-key"])
        assert result["Accept"] is accept
        assert headers["Api-Key"] == ["k"]

    def test_empty_key_set_returns_same_object(self):
        headers = {"Authorization": ["Bearer x"]}
        assert redact_headers(headers, []) is headers

    def test_accepts_raw_pairs(self):
        pairs = [(b"authorization", b"Bearer x"), (b"accept", b"text/plain"), (b"Accept", b"text/html")]
        result = redact_headers(pairs, ["Authorization"])
        assert result == {"authorization": [REDACTED], "accept": ["text/plain", "text/html"]}

    def test_same_key_list_covers_headers_and_bodies(self):
        keys = ["API-KEY"]
        headers = redact_headers({"Api-Key": ["k"]}, keys)
        body = json.loads(redact_json_body(b'{"api-key":"k"}', keys))
        assert headers["Api-Key"] == [REDACTED]
        assert body["api-key"] == REDACTED


class TestGroupHeaderPairs:
    def test_keeps_first_spelling_and_order(self):
        grouped = group_header_pairs([("X-Trace", "1"), ("x-trace", "2"), ("Accept", "*/*")])
        assert list(grouped) == ["X-Trace", "Accept"]
        assert grouped["X-Trace"] == ["1", "2"]
