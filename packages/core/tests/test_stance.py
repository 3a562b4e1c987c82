"""Tests for stance-identification reply parsing."""

import json

from contractlens_core.models import Language
from contractlens_core.stance import extract_json_object, parse_stance_response

REPLY = {
    "parties": [
        {"name": "北京某科技有限公司", "role": "甲方", "description": "采购方"},
        {"name": "上海某设备有限公司", "role": "乙方", "description": "供应方"},
    ],
    "contract_type": "设备采购合同",
    "options": [
        {
            "stance": "作为采购方",
            "description": "保护采购方利益",
            "key_points": ["验收标准"],
            "pros": ["付款主动"],
            "cons": ["交付风险"],
            "suggestions": ["明确违约金"],
        },
        {"stance": "作为供应方"},
    ],
}


class TestExtractJsonObject:
    def test_plain_json(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        assert extract_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_json_surrounded_by_prose(self):
        assert extract_json_object('Here you go: {"a": 1} hope it helps') == {"a": 1}

    def test_non_object_rejected(self):
        assert extract_json_object("[1, 2]") is None

    def test_garbage_rejected(self):
        assert extract_json_object("no json here") is None


class TestParseStanceResponse:
    def test_full_reply(self):
        result = parse_stance_response(json.dumps(REPLY, ensure_ascii=False), Language.CHINESE)

        assert [p.name for p in result.parties] == ["北京某科技有限公司", "上海某设备有限公司"]
        assert result.parties[0].role == "甲方"
        assert result.contract_type == "设备采购合同"
        assert result.primary_option.stance == "作为采购方"
        assert result.primary_option.key_points == ["验收标准"]
        assert [o.stance for o in result.all_options] == ["作为采购方", "作为供应方"]

    def test_option_gaps_filled(self):
        result = parse_stance_response(json.dumps(REPLY, ensure_ascii=False), Language.CHINESE)
        sparse = result.alternative_options[0]
        assert sparse.description == "该立场下的权益保护方案"
        assert sparse.key_points == ["根据合同内容分析"]
        assert sparse.suggestions == ["建议协商解决"]

    def test_unparseable_reply_falls_back_to_chinese_defaults(self):
        result = parse_stance_response("抱歉，我无法识别。", Language.CHINESE)
        assert [p.name for p in result.parties] == ["甲方", "乙方"]
        assert result.contract_type == "通用合同"
        assert result.primary_option.stance == "作为甲方"
        assert result.alternative_options[0].stance == "作为乙方"

    def test_unparseable_reply_falls_back_to_english_defaults(self):
        result = parse_stance_response("", Language.ENGLISH)
        assert [p.name for p in result.parties] == ["Party A", "Party B"]
        assert result.contract_type == "General Contract"
        assert result.primary_option.stance == "As Party A"

    def test_invalid_entries_skipped(self):
        reply = {"parties": [{"role": "no name"}, "x"], "options": [{"description": "no stance"}, 3]}
        result = parse_stance_response(json.dumps(reply), Language.ENGLISH)
        assert [p.name for p in result.parties] == ["Party A", "Party B"]
        assert result.primary_option.stance == "As Party A"

    def test_default_options_are_independent_copies(self):
        first = parse_stance_response("", Language.ENGLISH)
        first.primary_option.key_points.append("mutated")
        second = parse_stance_response("", Language.ENGLISH)
        assert "mutated" not in second.primary_option.key_points
