"""
Renderer for the constrained markdown dialect emitted by the trading model.

Input is processed line by line in one of three modes: fenced code, table,
or default. Default-mode lines are classified by a fixed precedence (fence,
table row, rule, blank, headings, bold section labels, list items, caption,
paragraph). Inline text is HTML-escaped and then highlighted: prices,
percentages, confidence decimals, ratios, directional keywords and weights
are wrapped in styled spans.

The renderer is pure and cheap enough to run on every stream delta against
the full accumulated text.
"""

import html
import re
from typing import Iterable, Optional

from ..config.defaults import RenderParams

ACCENT = "#2563eb"
GREEN = "#059669"
RED = "#dc2626"
AMBER = "#d97706"
MUTED = "rgba(0,0,0,0.4)"

# Inline highlight rules, applied in order. Each match is stashed behind a
# private-use placeholder so later rules never see inserted markup.
_HIGHLIGHT_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"(\$[\d,]+(?:\.\d+)?(?:\s?[BMKbmk](?:illion)?)?)"),
     f'<span style="color:{ACCENT};font-family:monospace;font-weight:600">{{}}</span>'),
    (re.compile(r"(?<![#\w])([+-]?\d+\.?\d*%)(?![<])"),
     f'<span style="color:{ACCENT};font-weight:500">{{}}</span>'),
    (re.compile(r"\b(0\.\d{1,2}|1\.00?)\b(?![%<\d])"),
     f'<span style="color:{ACCENT};font-weight:700">{{}}</span>'),
    (re.compile(r"\b(\d+\.?\d*:\d+)\b"),
     f'<span style="color:{ACCENT};font-weight:600">{{}}</span>'),
    (re.compile(r"\b(LONG|BULLISH|BUY|Accumulating|Net Buying)\b", re.IGNORECASE),
     f'<span style="color:{GREEN};font-weight:600">{{}}</span>'),
    (re.compile(r"\b(SHORT|BEARISH|SELL|Distributing|Net Selling)\b", re.IGNORECASE),
     f'<span style="color:{RED};font-weight:600">{{}}</span>'),
    (re.compile(r"\b(NEUTRAL|STAND ASIDE|NO TRADE|FLAT|Balanced|Mixed|Neutral)\b"),
     f'<span style="color:{MUTED};font-weight:600">{{}}</span>'),
    (re.compile(r"\b(High)\b"), f'<span style="color:{GREEN};font-weight:500">{{}}</span>'),
    (re.compile(r"\b(Low)\b"), f'<span style="color:{RED};font-weight:500">{{}}</span>'),
    (re.compile(r"\b(Med)\b"), f'<span style="color:{AMBER};font-weight:500">{{}}</span>'),
]

_INLINE_CODE = re.compile(r"`([^`]+)`")
_BOLD = re.compile(r"\*\*(.+?)\*\*")

_STASH_OPEN = "\ue000"
_STASH_CLOSE = "\ue001"
_STASH_BASE = 0xE100
_STASH_REF = re.compile(f"{_STASH_OPEN}(.){_STASH_CLOSE}", re.DOTALL)

_TABLE_SEPARATOR = re.compile(r"^\|[\s\-:|]+\|$")
_HORIZONTAL_RULE = re.compile(r"^[-=]{3,}\s*$")
_BOLD_ONLY = re.compile(r"^\*\*(.+?)\*\*:?\s*$")
_BOLD_LABEL = re.compile(r"^\*\*(.+?)\*\*[:\s]+(.+)$")
_BULLET = re.compile(r"^[-*]\s")
_BULLET_PREFIX = re.compile(r"^[-*]\s+")
_NUMBERED = re.compile(r"^(\d+)[.)]\s+(.+)$")
_SECTION_CHARS = re.compile(r"[^A-Z\s/:. &]")


def highlight(text: str) -> str:
    """Escape text and apply the inline highlight rules."""
    stash: list[str] = []

    def stash_markup(markup: str) -> str:
        stash.append(markup)
        return f"{_STASH_OPEN}{chr(_STASH_BASE + len(stash) - 1)}{_STASH_CLOSE}"

    # Placeholder delimiters in the input would alias stash entries
    s = html.escape(text.replace(_STASH_OPEN, "").replace(_STASH_CLOSE, ""), quote=False)
    for pattern, template in _HIGHLIGHT_RULES:
        s = pattern.sub(lambda m, t=template: stash_markup(t.format(m.group(1))), s)

    s = _INLINE_CODE.sub(
        lambda m: f'<code style="background:rgba(37,99,235,0.06);color:{ACCENT};padding:0 5px;'
                  f'border-radius:3px;font-size:13px;font-family:monospace">{m.group(1)}</code>',
        s,
    )
    s = _BOLD.sub(lambda m: f'<span style="color:rgba(0,0,0,0.85);font-weight:600">{m.group(1)}</span>', s)
    return _STASH_REF.sub(lambda m: stash[ord(m.group(1)) - _STASH_BASE], s)


class MarkdownRenderer:
    """Converts model markdown into styled HTML markup."""

    def __init__(self, params: Optional[RenderParams] = None):
        self.params = params or RenderParams()
        self.section_keywords = tuple(k.upper() for k in self.params.section_keywords)

    def is_section(self, label: str) -> bool:
        """Case-insensitive keyword match after dropping punctuation and digits."""
        cleaned = _SECTION_CHARS.sub("", label.upper()).strip()
        return any(keyword in cleaned for keyword in self.section_keywords)

    def render(self, text: str) -> str:
        if not text:
            return ""

        out: list[str] = []
        in_code = False
        code_lines: list[str] = []
        table_rows: list[str] = []

        for raw in text.split("\n"):
            t = raw.strip()

            if t.startswith("```"):
                if not in_code:
                    out.extend(self._flush_table(table_rows))
                    in_code = True
                    code_lines = []
                    continue
                in_code = False
                out.append(self._code_block(code_lines))
                continue

            if in_code:
                code_lines.append(raw)
                continue

            if t.startswith("|"):
                if not _TABLE_SEPARATOR.match(t):
                    table_rows.append(t)
                continue
            out.extend(self._flush_table(table_rows))

            out.append(self._render_line(t))

        if in_code:
            out.append(self._code_block(code_lines))
        out.extend(self._flush_table(table_rows))
        return "".join(out)

    def _render_line(self, t: str) -> str:
        if _HORIZONTAL_RULE.match(t):
            return ('<div style="margin:10px 0;height:1px;background:linear-gradient(90deg,'
                    'rgba(37,99,235,0.15),rgba(37,99,235,0.03),transparent)"></div>')
        if not t:
            return '<div style="height:4px"></div>'
        if t.startswith("#### "):
            return (f'<div style="color:rgba(0,0,0,0.8);font-weight:600;font-size:13px;margin:8px 0 2px 0;'
                    f'padding-left:11px;border-left:2px solid rgba(37,99,235,0.3)">{highlight(t[5:])}</div>')
        if t.startswith("### "):
            return self._section_header(t[4:])
        if t.startswith("## "):
            return ('<div style="display:flex;align-items:center;gap:10px;margin:14px 0 4px 0">'
                    f'<div style="width:3px;height:18px;border-radius:1px;background:{ACCENT};'
                    'box-shadow:0 0 8px rgba(37,99,235,0.2)"></div>'
                    '<span style="color:rgba(0,0,0,0.9);font-weight:700;font-size:14px;'
                    f'text-transform:uppercase;letter-spacing:0.05em">{html.escape(t[3:], quote=False)}</span></div>')

        bold_only = _BOLD_ONLY.match(t)
        if bold_only and self.is_section(bold_only.group(1)):
            return self._section_header(bold_only.group(1))

        bold_label = _BOLD_LABEL.match(t)
        if bold_label:
            label, value = bold_label.group(1), bold_label.group(2)
            if self.is_section(label):
                return (self._section_header(label) +
                        f'<div style="color:rgba(0,0,0,0.65);padding-left:11px;font-size:14px;'
                        f'line-height:1.5">{highlight(value)}</div>')
            return ('<div style="padding:2px 0;font-size:14px"><span style="color:rgba(0,0,0,0.85);'
                    f'font-weight:600">{html.escape(label.rstrip(":"), quote=False)}:</span> '
                    f'<span style="color:rgba(0,0,0,0.6)">{highlight(value)}</span></div>')

        if _BULLET.match(t):
            return ('<div style="display:flex;align-items:baseline;gap:8px;padding:2px 0 2px 2px;font-size:14px">'
                    '<span style="color:rgba(37,99,235,0.4);flex-shrink:0">&bull;</span>'
                    f'<span style="color:rgba(0,0,0,0.65)">{highlight(_BULLET_PREFIX.sub("", t))}</span></div>')

        numbered = _NUMBERED.match(t)
        if numbered:
            return ('<div style="display:flex;align-items:baseline;gap:8px;padding:2px 0 2px 2px;font-size:14px">'
                    f'<span style="color:{ACCENT};font-weight:700;font-size:11px;min-width:14px">'
                    f'{numbered.group(1)}.</span>'
                    f'<span style="color:rgba(0,0,0,0.65)">{highlight(numbered.group(2))}</span></div>')

        if t.startswith("*") and t.endswith("*") and not t.startswith("**"):
            return ('<div style="color:rgba(0,0,0,0.3);font-size:11px;font-style:italic;margin-top:8px">'
                    f'{html.escape(t[1:-1], quote=False)}</div>')

        return f'<div style="color:rgba(0,0,0,0.65);padding:1px 0;font-size:14px;line-height:1.5">{highlight(t)}</div>'

    def _section_header(self, label: str) -> str:
        return ('<div style="display:flex;align-items:center;gap:8px;margin:14px 0 4px 0">'
                f'<div style="width:3px;height:14px;border-radius:1px;background:{ACCENT};'
                'box-shadow:0 0 6px rgba(37,99,235,0.2)"></div>'
                f'<span style="color:{ACCENT};font-weight:700;font-size:12px;text-transform:uppercase;'
                f'letter-spacing:0.1em">{html.escape(label, quote=False)}</span></div>')

    def _code_block(self, lines: Iterable[str]) -> str:
        code = html.escape("\n".join(lines), quote=False)
        return ('<pre style="background:rgba(0,0,0,0.03);border:1px solid rgba(37,99,235,0.1);'
                'border-radius:8px;padding:10px 14px;overflow-x:auto;font-size:12px;line-height:1.5;'
                f'margin:6px 0;color:rgba(0,0,0,0.7)">{code}</pre>')

    def _flush_table(self, rows: list[str]) -> list[str]:
        """Render and clear buffered table rows; nothing if the buffer is empty."""
        if not rows:
            return []

        parts = ['<table style="width:100%;border-collapse:collapse;font-size:13px;margin:6px 0;'
                 'border:1px solid rgba(37,99,235,0.1);border-radius:8px;overflow:hidden">']
        for i, row in enumerate(rows):
            cells = [cell.strip() for cell in row.split("|") if cell.strip()]
            if i == 0:
                tag = "th"
                style = (f"background:rgba(37,99,235,0.05);color:{ACCENT};font-weight:600;font-size:11px;"
                         "text-transform:uppercase;letter-spacing:0.05em;padding:6px 12px")
            else:
                tag = "td"
                background = "background:rgba(0,0,0,0.015)" if i % 2 == 0 else "background:transparent"
                style = f"{background};color:rgba(0,0,0,0.65);padding:5px 12px;border-top:1px solid rgba(0,0,0,0.06)"
            parts.append("<tr>" + "".join(
                f'<{tag} style="{style};text-align:left">{highlight(cell)}</{tag}>' for cell in cells
            ) + "</tr>")
        parts.append("</table>")
        rows.clear()
        return ["".join(parts)]


_default_renderer = MarkdownRenderer()


def render_markdown(text: str) -> str:
    """Render text with the default section keywords."""
    return _default_renderer.render(text)
