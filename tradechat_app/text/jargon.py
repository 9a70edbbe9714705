"""Plain-English substitutions for trading jargon in model output."""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class JargonRule:
    """One word-boundary substitution."""
    term: str
    replacement: str
    ignore_case: bool = True

    def compile(self) -> re.Pattern:
        flags = re.IGNORECASE if self.ignore_case else 0
        return re.compile(rf"\b{self.term}\b", flags)


# Acronyms are case-sensitive so ordinary words ("oi", "atr") are left alone
DEFAULT_RULES: tuple[JargonRule, ...] = (
    JargonRule(r"funding rate", "holding cost"),
    JargonRule(r"OI", "market interest", ignore_case=False),
    JargonRule(r"open interest", "market interest"),
    JargonRule(r"L/S ratio", "buyer/seller balance"),
    JargonRule(r"long[\s-]short ratio", "buyer/seller balance"),
    JargonRule(r"cascade", "chain reaction"),
    JargonRule(r"regime", "phase"),
    JargonRule(r"Kelly", "optimal", ignore_case=False),
    JargonRule(r"compression breakout", "price squeeze"),
    JargonRule(r"leverage ratio", "borrowed money level"),
    JargonRule(r"implied volatility", "expected price swings"),
    JargonRule(r"ATR", "price range", ignore_case=False),
    JargonRule(r"average true range", "price range"),
    JargonRule(r"CVD", "buy/sell volume", ignore_case=False),
    JargonRule(r"cumulative volume delta", "buy/sell volume"),
    JargonRule(r"divergence", "disagreement"),
    JargonRule(r"slippage", "price impact"),
    JargonRule(r"MFI", "money flow", ignore_case=False),
)


class JargonFilter:
    """
    Stateless text transform applying the rule table in order.

    Rules must stay independent: no replacement may be matched by a later
    pattern, otherwise output would depend on rule order.
    """

    def __init__(self, rules: tuple[JargonRule, ...] = DEFAULT_RULES):
        self.rules = rules
        self._compiled = [(rule.compile(), rule.replacement) for rule in rules]

    def __call__(self, text: str) -> str:
        return self.apply(text)

    def apply(self, text: str) -> str:
        for pattern, replacement in self._compiled:
            text = pattern.sub(replacement, text)
        return text

    def overlapping_rules(self) -> list[tuple[str, str]]:
        """Pairs (earlier term, later term) where the later pattern matches the earlier replacement."""
        overlaps = []
        for i, (_, replacement) in enumerate(self._compiled):
            for later_pattern, _ in self._compiled[i + 1:]:
                if later_pattern.search(replacement):
                    overlaps.append((self.rules[i].term, later_pattern.pattern))
        return overlaps


_default_filter = JargonFilter()


def clean_jargon(text: str) -> str:
    """Apply the default jargon rules."""
    return _default_filter.apply(text)
