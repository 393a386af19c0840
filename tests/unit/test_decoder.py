"""
Unit tests for strict decoding of model responses.
"""

import json

import pytest

from tiered_memory.memory.decoder import (
    DecodeFailure,
    DecodeSuccess,
    FailureReason,
    decode_extraction_response
)


class TestDecodeExtractionResponse:

    def test_valid_payload(self):
        result = decode_extraction_response(
            '{"memories": [{"content": "Sam lives in Austin", "importance_score": 0.7}]}'
        )
        assert isinstance(result, DecodeSuccess)
        assert result.ok
        assert result.payload.memories[0].content == "Sam lives in Austin"
        assert result.payload.memories[0].importance_score == 0.7

    def test_empty_memories_list_is_valid(self):
        result = decode_extraction_response('{"memories": []}')
        assert result.ok
        assert result.payload.memories == []

    def test_code_fences_are_stripped(self):
        result = decode_extraction_response('```json\n{"memories": [{"content": "x"}]}\n```')
        assert result.ok
        assert result.payload.memories[0].content == "x"

    @pytest.mark.parametrize("wrap", ["{}", "```json\n{}\n```"])
    def test_fences_inside_content_are_kept(self, wrap):
        content = "Use ```json {\"a\": 1}``` in the config snippet"
        raw = wrap.replace("{}", json.dumps({"memories": [{"content": content}]}))

        result = decode_extraction_response(raw)

        assert result.ok
        assert result.payload.memories[0].content == content

    def test_unknown_fields_ignored(self):
        result = decode_extraction_response('{"memories": [{"content": "x", "mood": "happy"}], "v": 2}')
        assert result.ok

    @pytest.mark.parametrize("raw", [None, "", "   \n"])
    def test_empty_response(self, raw):
        result = decode_extraction_response(raw)
        assert isinstance(result, DecodeFailure)
        assert result.reason == FailureReason.EMPTY
        assert not result.ok

    def test_invalid_json(self):
        result = decode_extraction_response("Sure! Here are the memories: ...")
        assert result.reason == FailureReason.INVALID_JSON
        assert result.raw == "Sure! Here are the memories: ..."

    @pytest.mark.parametrize("raw", [
        '[{"content": "x"}]',
        '{"items": []}',
        '{"memories": {"content": "x"}}',
        '{"memories": [{"content": "x", "importance_score": "very high"}]}',
        '{"memories": ["just a string"]}',
    ])
    def test_schema_violations(self, raw):
        result = decode_extraction_response(raw)
        assert result.reason == FailureReason.SCHEMA
        assert result.detail
