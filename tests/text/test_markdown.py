"""Tests for the markdown renderer and inline highlighter."""

import re

import pytest

from tradechat_app.config.defaults import RenderParams
from tradechat_app.text.markdown import MarkdownRenderer, highlight, render_markdown


def count(pattern: str, text: str) -> int:
    return len(re.findall(pattern, text))


class TestHighlight:
    """Test inline highlighting."""

    def test_dollar_amount(self):
        """Test dollar amounts are wrapped once."""
        out = highlight("Entry at $97,000.50")
        assert "font-family:monospace;font-weight:600\">$97,000.50</span>" in out

    def test_dollar_with_magnitude(self):
        """Test magnitude suffixes stay inside the price span."""
        assert ">$1.2B</span>" in highlight("Volume $1.2B today")
        assert ">$3 million</span>" in highlight("$3 million")

    def test_signed_percentage(self):
        """Test signed percentages are highlighted."""
        out = highlight("Target +5.2% and stop -3.1%")
        assert ">+5.2%</span>" in out
        assert ">-3.1%</span>" in out

    def test_percentage_inside_price_span_not_reprocessed(self):
        """Test text inside earlier markup is not matched by later rules."""
        out = highlight("$150 (3%)")
        assert count(r"<span", out) == 2
        assert ">$150</span>" in out
        assert ">3%</span>" in out

    def test_confidence_decimal(self):
        """Test 0.xx decimals are emphasised."""
        assert 'font-weight:700">0.72</span>' in highlight("Conviction 0.72")

    def test_ratio(self):
        """Test ratios such as 2.1:1 are highlighted."""
        assert ">2.1:1</span>" in highlight("R:R 2.1:1")

    @pytest.mark.parametrize("word,color", [
        ("BULLISH", "#059669"),
        ("Accumulating", "#059669"),
        ("SELL", "#dc2626"),
        ("Distributing", "#dc2626"),
        ("NEUTRAL", "rgba(0,0,0,0.4)"),
        ("Mixed", "rgba(0,0,0,0.4)"),
    ])
    def test_directional_keywords(self, word, color):
        """Test directional keywords get their family colour."""
        assert f'color:{color};font-weight:600">{word}</span>' in highlight(f"Flow is {word}")

    def test_weights(self):
        """Test High/Med/Low weight words."""
        out = highlight("High Med Low")
        assert "#059669;font-weight:500\">High</span>" in out
        assert "#d97706;font-weight:500\">Med</span>" in out
        assert "#dc2626;font-weight:500\">Low</span>" in out

    def test_bold_and_code(self):
        """Test bold and inline code markers are converted."""
        out = highlight("**Note** use `limit` orders")
        assert "font-weight:600\">Note</span>" in out
        assert "<code" in out and ">limit</code>" in out
        assert "**" not in out and "`" not in out

    def test_bold_wrapping_highlighted_price(self):
        """Test bold around a price keeps the inner price markup intact."""
        out = highlight("**$97,000**")
        assert ">$97,000</span></span>" in out

    def test_html_escaped(self):
        """Test raw HTML from the model is escaped."""
        out = highlight("<script>alert(1)</script> & more")
        assert "<script>" not in out
        assert "&lt;script&gt;" in out
        assert "&amp; more" in out

    def test_no_placeholder_leaks(self):
        """Test the internal placeholders never reach the output."""
        out = highlight("BUY BTC at $97,000 (+5.2%) with 0.72 conviction, R:R 2:1, weight High")
        assert not re.search("[\ue000-\uf8ff]", out)

    def test_placeholder_characters_in_input(self):
        """Test placeholder delimiters in model text cannot alias highlighted fragments."""
        out = highlight("price $5 and \ue000\ue100\ue001 tail")
        assert out.count("$5</span>") == 1
        assert "and \ue100 tail" in out

        assert "note a" in render_markdown("note \ue000a\ue001")


class TestBlockRendering:
    """Test line classification and block modes."""

    def test_table_scenario(self):
        """Test the separator row yields no output row and the header gets header styling."""
        out = render_markdown("| Signal | Reading |\n|---|---|\n| Whale Flow | Accumulating |")

        assert count(r"<table", out) == 1
        assert count(r"<tr>", out) == 2
        assert count(r"<th ", out) == 2
        assert count(r"<td ", out) == 2
        assert "---" not in out
        assert ">Signal</th>" in out

    def test_table_row_parity(self):
        """Test body rows alternate background."""
        out = render_markdown("| A |\n|---|\n| 1 |\n| 2 |\n| 3 |")

        rows = re.findall(r"<tr>(.*?)</tr>", out)
        assert "background:transparent" in rows[1]
        assert "background:rgba(0,0,0,0.015)" in rows[2]
        assert "background:transparent" in rows[3]

    def test_table_flushed_by_following_line(self):
        """Test a non-table line closes the table before rendering itself."""
        out = render_markdown("| A | B |\n| 1 | 2 |\nAfter the table")

        assert out.index("</table>") < out.index("After the table")

    def test_unterminated_table_flushed(self):
        """Test a table at the end of input is still emitted."""
        assert render_markdown("Intro\n| A | B |").endswith("</table>")

    def test_code_fence(self):
        """Test fenced code is escaped and not highlighted."""
        out = render_markdown("```\nif a < b: buy($97,000)\n```")

        assert out.startswith("<pre")
        assert "a &lt; b" in out
        assert "<span" not in out

    def test_unterminated_code_fence_flushed(self):
        """Test an open fence at end of input is emitted as a code block."""
        out = render_markdown("Text\n```python\nprint('partial')")

        assert out.endswith("</pre>")
        assert "print('partial')" in out

    def test_fence_flushes_open_table(self):
        """Test a code fence opening after table rows emits the table first."""
        out = render_markdown("| A |\n| 1 |\n```\ncode\n```")

        assert out.index("</table>") < out.index("<pre")

    def test_headings(self):
        """Test heading levels."""
        out = render_markdown("## Overview\n### Signal Matrix\n#### Details")

        assert "text-transform:uppercase;letter-spacing:0.05em\">Overview</span>" in out
        assert "letter-spacing:0.1em\">Signal Matrix</span>" in out
        assert "border-left:2px solid" in out and ">Details</div>" in out

    def test_bold_only_section_label(self):
        """Test a bold-only line naming a section becomes a section header."""
        out = render_markdown("**TRADE CALL**")
        assert "letter-spacing:0.1em\">TRADE CALL</span>" in out

    def test_bold_only_non_section_is_paragraph(self):
        """Test a bold-only line without a section keyword stays a paragraph."""
        out = render_markdown("**Hello there**")
        assert "letter-spacing:0.1em" not in out
        assert "font-weight:600\">Hello there</span>" in out

    def test_bold_label_section_with_body(self):
        """Test a bold section label with text renders a header and an indented body."""
        out = render_markdown("**Direction:** BUY BTC")

        assert "letter-spacing:0.1em\">Direction:</span>" in out
        assert "padding-left:11px" in out
        assert ">BUY</span> BTC" in out

    def test_bold_label_value(self):
        """Test a non-section bold label renders as label and value."""
        out = render_markdown("**Size:** 3% of account")

        assert "font-weight:600\">Size:</span> " in out
        assert ">3%</span> of account" in out

    def test_lists(self):
        """Test bullet and numbered list items."""
        out = render_markdown("- first point\n* second point\n2) third point")

        assert count("&bull;", out) == 2
        assert ">2.</span>" in out
        assert ">third point</span>" in out

    def test_italic_caption(self):
        """Test a single-asterisk line renders as a muted caption."""
        out = render_markdown("*Not financial advice. Manage your risk.*")

        assert "font-style:italic" in out
        assert ">Not financial advice. Manage your risk.</div>" in out

    def test_horizontal_rule_and_blank(self):
        """Test rules and blank lines produce spacer elements."""
        out = render_markdown("a\n---\n\nb")

        assert "linear-gradient" in out
        assert '<div style="height:4px"></div>' in out

    def test_empty_input(self):
        """Test empty text renders nothing."""
        assert render_markdown("") == ""

    def test_idempotent_on_growing_prefix(self, template_response):
        """Test rendering each prefix never raises and rendering is deterministic."""
        renderer = MarkdownRenderer()
        for end in range(0, len(template_response), 11):
            prefix = template_response[:end]
            assert renderer.render(prefix) == renderer.render(prefix)

    def test_custom_section_keywords(self):
        """Test section recognition follows the configured keywords."""
        renderer = MarkdownRenderer(RenderParams(section_keywords=("OUTLOOK",)))

        assert renderer.is_section("Weekly Outlook:")
        assert not renderer.is_section("Trade Call")


class TestSectionRecognition:
    """Test section keyword matching."""

    @pytest.mark.parametrize("label", [
        "SIGNAL MATRIX", "Trade Call", "R:R", "Smart Money:", "1. Risk", "thesis",
    ])
    def test_sections(self, label):
        """Test labels containing a keyword are sections."""
        assert MarkdownRenderer().is_section(label)

    @pytest.mark.parametrize("label", ["Size", "Note", "Hello"])
    def test_non_sections(self, label):
        """Test plain labels are not sections."""
        assert not MarkdownRenderer().is_section(label)
