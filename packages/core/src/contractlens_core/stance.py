"""Parse the model's stance-identification reply into a StanceIdentification.

The reply is requested as JSON but treated as untrusted: anything missing or
malformed falls back to localized defaults, so parsing never fails.
"""

from __future__ import annotations

import json
import logging
import re

from contractlens_core.models import ContractParty, Language, StanceIdentification, StanceOption

logger = logging.getLogger(__name__)

_DEFAULT_PARTIES = {
    Language.CHINESE: [
        ("甲方", "甲方", "合同一方当事人"),
        ("乙方", "乙方", "合同另一方当事人"),
    ],
    Language.ENGLISH: [
        ("Party A", "Party A", "One party to the contract"),
        ("Party B", "Party B", "The other party to the contract"),
    ],
}

_DEFAULT_CONTRACT_TYPE = {Language.CHINESE: "通用合同", Language.ENGLISH: "General Contract"}

_DEFAULT_OPTIONS = {
    Language.CHINESE: [
        {
            "stance": "作为甲方",
            "description": "以甲方身份参与合同谈判，优先保护自身权益",
            "key_points": ["明确权益和责任", "争取有利条款"],
            "pros": ["议价权较强", "条款相对宽松"],
            "cons": ["需承担风险", "面临强硬要求"],
            "suggestions": ["明确核心条款", "制定谈判策略"],
        },
        {
            "stance": "作为乙方",
            "description": "以乙方身份参与合同谈判，平衡各方权益",
            "key_points": ["保护合理权益", "明确义务范围"],
            "pros": ["可限制无理要求", "支付条款相对有利"],
            "cons": ["面临强势谈判", "可能遭遇压力"],
            "suggestions": ["提出合理诉求", "灵活协商"],
        },
    ],
    Language.ENGLISH: [
        {
            "stance": "As Party A",
            "description": "Negotiate as Party A, protecting your own interests first",
            "key_points": ["Clarify rights and responsibilities", "Secure favourable terms"],
            "pros": ["Stronger bargaining position", "Relatively flexible terms"],
            "cons": ["Bears more risk", "May face firm demands"],
            "suggestions": ["Pin down the core clauses", "Prepare a negotiation strategy"],
        },
        {
            "stance": "As Party B",
            "description": "Negotiate as Party B, balancing the interests of both sides",
            "key_points": ["Protect reasonable interests", "Define the scope of obligations"],
            "pros": ["Can push back on unreasonable demands", "Payment terms tend to be favourable"],
            "cons": ["Faces a stronger counterpart", "May come under pressure"],
            "suggestions": ["Raise reasonable requests", "Stay flexible in negotiation"],
        },
    ],
}

# Per-field fallbacks for an option that has a stance title but gaps elsewhere.
_OPTION_FILLERS = {
    Language.CHINESE: {
        "description": "该立场下的权益保护方案",
        "key_points": ["根据合同内容分析"],
        "pros": ["保护自身权益"],
        "cons": ["需要谨慎应对"],
        "suggestions": ["建议协商解决"],
    },
    Language.ENGLISH: {
        "description": "Protection plan for this stance",
        "key_points": ["Based on the contract content"],
        "pros": ["Protects your own interests"],
        "cons": ["Requires careful handling"],
        "suggestions": ["Resolve through negotiation"],
    },
}


def extract_json_object(raw: str) -> dict | None:
    """Return the first JSON object in ``raw``, tolerating markdown fences and surrounding prose."""
    cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip())
    cleaned = re.sub(r"\s*```$", "", cleaned.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            data = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError:
            return None
    return data if isinstance(data, dict) else None


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _string_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _parse_parties(value) -> list[ContractParty]:
    if not isinstance(value, list):
        return []
    parties = []
    for item in value:
        if not isinstance(item, dict) or not _text(item.get("name")):
            continue
        name = _text(item.get("name"))
        role = _text(item.get("role")) or name
        parties.append(ContractParty(name=name, role=role, description=_text(item.get("description"))))
    return parties


def _parse_option(item, language: Language) -> StanceOption | None:
    if not isinstance(item, dict) or not _text(item.get("stance")):
        return None
    fillers = _OPTION_FILLERS[language]
    return StanceOption(
        stance=_text(item.get("stance")),
        description=_text(item.get("description")) or fillers["description"],
        key_points=_string_list(item.get("key_points")) or list(fillers["key_points"]),
        pros=_string_list(item.get("pros")) or list(fillers["pros"]),
        cons=_string_list(item.get("cons")) or list(fillers["cons"]),
        suggestions=_string_list(item.get("suggestions")) or list(fillers["suggestions"]),
    )


def _default_option(d: dict) -> StanceOption:
    return StanceOption(**{k: (list(v) if isinstance(v, list) else v) for k, v in d.items()})


def parse_stance_response(raw: str, language: Language) -> StanceIdentification:
    data = extract_json_object(raw)
    if data is None:
        logger.warning("Stance reply was not valid JSON, using defaults: %s", raw[:200])
        data = {}

    parties = _parse_parties(data.get("parties"))
    if not parties:
        parties = [ContractParty(name=n, role=r, description=d) for n, r, d in _DEFAULT_PARTIES[language]]

    contract_type = _text(data.get("contract_type")) or _DEFAULT_CONTRACT_TYPE[language]

    raw_options = data.get("options") if isinstance(data.get("options"), list) else []
    options = [opt for opt in (_parse_option(item, language) for item in raw_options) if opt is not None]
    if not options:
        options = [_default_option(d) for d in _DEFAULT_OPTIONS[language]]

    return StanceIdentification(
        parties=parties,
        contract_type=contract_type,
        primary_option=options[0],
        alternative_options=options[1:],
    )
