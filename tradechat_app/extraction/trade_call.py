"""
Trade call extraction from finished model responses.

The model is instructed to emit a fixed template (Signal Matrix, Trade Call,
Thesis, disclaimer). Each field of the trade call is pulled out by a named
rule: an ordered list of patterns tried in turn, and a post-processor that
turns the first match into field values. A response without both a direction
and an entry price has no trade call.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional

from ..data.models import TradeCall

FieldValues = dict[str, str]


@dataclass(frozen=True)
class ExtractionRule:
    """Named rule: patterns tried in order, first match post-processed."""
    name: str
    patterns: tuple[re.Pattern, ...]
    process: Callable[[re.Match], FieldValues]

    def apply(self, text: str) -> FieldValues:
        for pattern in self.patterns:
            match = pattern.search(text)
            if match:
                return self.process(match)
        return {}


def _direction(match: re.Match) -> FieldValues:
    side = match.group(1).upper()
    return {
        "direction": "SELL" if side in ("SELL", "SHORT") else "BUY",
        "side": side,
        "coin": match.group(2).upper(),
    }


def _conviction(match: re.Match) -> FieldValues:
    value = match.group(1)
    return {"conviction": value if "/" in value else f"{value}/1.00"}


def _price_with_pct(field: str) -> Callable[[re.Match], FieldValues]:
    def process(match: re.Match) -> FieldValues:
        values = {field: match.group(1)}
        if match.lastindex and match.lastindex >= 2:
            values[f"{field}_pct"] = match.group(2)
        return values
    return process


def _size(match: re.Match) -> FieldValues:
    raw = re.sub(r"\*+", "", match.group(1)).strip()
    if not raw or raw == "N/A":
        return {}
    return {"size": raw}


def _thesis(min_chars: int) -> Callable[[re.Match], FieldValues]:
    def process(match: re.Match) -> FieldValues:
        raw = re.sub(r"\*+", "", match.group(1))
        raw = re.sub(r"\n+", " ", raw).strip()
        if len(raw) < min_chars:
            return {}
        return {"thesis": raw}
    return process


_FLAGS = re.IGNORECASE
_PRICE = r"(\$[\d,.]+)"
_LABEL_GAP = r"[:\s]*\**\s*"


def build_rules(min_thesis_chars: int = 10) -> tuple[ExtractionRule, ...]:
    """The rule table for the fixed response template."""
    return (
        ExtractionRule(
            name="direction",
            patterns=(re.compile(rf"Direction{_LABEL_GAP}(BUY|SELL|LONG|SHORT)\s+(\w+)", _FLAGS),),
            process=_direction,
        ),
        ExtractionRule(
            name="conviction",
            patterns=(re.compile(rf"Conviction{_LABEL_GAP}([\d.]+(?:/[\d.]+)?)", _FLAGS),),
            process=_conviction,
        ),
        ExtractionRule(
            name="entry",
            patterns=(re.compile(rf"Entry{_LABEL_GAP}{_PRICE}", _FLAGS),),
            process=lambda m: {"entry": m.group(1)},
        ),
        ExtractionRule(
            name="target",
            patterns=(
                re.compile(rf"Target{_LABEL_GAP}{_PRICE}\s*\(([^)]+)\)", _FLAGS),
                re.compile(rf"Target{_LABEL_GAP}{_PRICE}", _FLAGS),
            ),
            process=_price_with_pct("target"),
        ),
        ExtractionRule(
            name="stop",
            patterns=(
                re.compile(rf"Stop{_LABEL_GAP}{_PRICE}\s*\(([^)]+)\)", _FLAGS),
                re.compile(rf"Stop{_LABEL_GAP}{_PRICE}", _FLAGS),
            ),
            process=_price_with_pct("stop"),
        ),
        ExtractionRule(
            name="rr",
            patterns=(re.compile(rf"R:R{_LABEL_GAP}([\d.]+:[\d.]+)", _FLAGS),),
            process=lambda m: {"rr": m.group(1)},
        ),
        ExtractionRule(
            name="size",
            patterns=(re.compile(rf"Size{_LABEL_GAP}(.+)", _FLAGS),),
            process=_size,
        ),
        ExtractionRule(
            name="thesis",
            patterns=(re.compile(r"###\s*THESIS\s*\n+([\s\S]*?)(?=\*Not financial|\n*\Z)", _FLAGS),),
            process=_thesis(min_thesis_chars),
        ),
    )


_TRADE_CALL_SECTION = re.compile(r"###\s*TRADE\s*CALL[\s\S]*?(?=###\s*THESIS|\Z)", re.IGNORECASE)
_THESIS_SECTION = re.compile(r"###\s*THESIS[\s\S]*?(?=\*Not financial|\Z)", re.IGNORECASE)
_DISCLAIMER = re.compile(r"\*Not financial advice[^*]*\*", re.IGNORECASE)
_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")


class TradeCallExtractor:
    """Applies the rule table to a completed response."""

    def __init__(self, rules: Optional[tuple[ExtractionRule, ...]] = None,
                 min_thesis_chars: int = 10):
        self.rules = rules if rules is not None else build_rules(min_thesis_chars)

    def extract_fields(self, text: str) -> FieldValues:
        """Run every rule and merge the field values they produce."""
        fields: FieldValues = {}
        for rule in self.rules:
            fields.update(rule.apply(text))
        return fields

    def extract(self, text: str) -> Optional[TradeCall]:
        """
        Extract the trade call, or None when direction or entry is missing.

        Args:
            text: Completed response text

        Returns:
            TradeCall with direction normalized to BUY or SELL, or None
        """
        if not text:
            return None

        fields = self.extract_fields(text)
        if not fields.get("direction") or not fields.get("entry"):
            return None
        return TradeCall(**fields)

    @staticmethod
    def strip_trade_call(text: str) -> str:
        """
        Remove the trade call, thesis and disclaimer from display text.

        Used when a structured card replaces those sections. Everything before
        the TRADE CALL heading (the signal matrix) is kept.
        """
        if not text:
            return text
        cleaned = _TRADE_CALL_SECTION.sub("", text, count=1)
        cleaned = _THESIS_SECTION.sub("", cleaned, count=1)
        cleaned = _DISCLAIMER.sub("", cleaned, count=1)
        cleaned = _EXCESS_BLANK_LINES.sub("\n\n", cleaned)
        return cleaned.strip()


_default_extractor = TradeCallExtractor()


def parse_trade_call(text: str) -> Optional[TradeCall]:
    """Extract a trade call with the default rules."""
    return _default_extractor.extract(text)


def strip_trade_call_from_text(text: str) -> str:
    return TradeCallExtractor.strip_trade_call(text)
