"""Tests for HTML to markdown conversion and the complexity scan."""

import pytest

from docpatch.services.post_processors import HtmlToMarkdownProcessor, ProcessingContext
from docpatch.services.post_processors.html_to_markdown import (
    contains_html,
    convert_html_to_markdown,
    detect_complex_html,
)


def _make_context(path: str = "docs/guide.md", original_text: str = "") -> ProcessingContext:
    return ProcessingContext.for_path(path, original_text=original_text)


# ---------------------------------------------------------------------------
# contains_html
# ---------------------------------------------------------------------------


class TestContainsHtml:
    @pytest.mark.parametrize("text", [
        "<strong>bold</strong>",
        "line<br/>break",
        '<a href="x">y</a>',
        "<DIV>upper</DIV>",
    ])
    def test_detects_tags(self, text):
        assert contains_html(text)

    @pytest.mark.parametrize("text", ["", "plain text", "a < b and c > d", "**md**"])
    def test_ignores_non_html(self, text):
        assert not contains_html(text)


# ---------------------------------------------------------------------------
# Inline elements
# ---------------------------------------------------------------------------


class TestInlineConversion:
    def test_strong(self):
        assert convert_html_to_markdown("<strong>bold</strong> text") == "**bold** text"

    def test_b_with_attributes(self):
        assert convert_html_to_markdown('<b class="x">bold</b>') == "**bold**"

    def test_em_and_i(self):
        assert convert_html_to_markdown("<em>a</em> and <i>b</i>") == "*a* and *b*"

    def test_code(self):
        assert convert_html_to_markdown("Run <code>make test</code>") == "Run `make test`"

    def test_link(self):
        assert convert_html_to_markdown('<a href="https://x.io">docs</a>') == "[docs](https://x.io)"

    def test_link_without_href_keeps_text(self):
        assert convert_html_to_markdown('<a name="top">Top</a>') == "Top"

    def test_strikethrough(self):
        assert convert_html_to_markdown("<del>old</del> <s>gone</s>") == "~~old~~ ~~gone~~"

    def test_nested_emphasis_composes(self):
        assert convert_html_to_markdown("<strong><em>both</em></strong>") == "***both***"

    def test_bold_inside_link(self):
        result = convert_html_to_markdown('<a href="url"><strong>Bold Link</strong></a>')
        assert result == "[**Bold Link**](url)"

    def test_edge_whitespace_moves_outside_markers(self):
        assert convert_html_to_markdown("<strong> bold </strong>x") == "**bold** x"

    def test_empty_emphasis_dropped(self):
        assert convert_html_to_markdown("<strong></strong>text") == "text"

    def test_does_not_match_longer_tag_names(self):
        # <section> must not be read as <s>
        result = convert_html_to_markdown("<section>x</section> <b>y</b>")
        assert "~~" not in result
        assert "**y**" in result

    def test_line_breaks(self):
        assert convert_html_to_markdown("Line 1<br>Line 2<br/>Line 3") == "Line 1\nLine 2\nLine 3"


# ---------------------------------------------------------------------------
# Block elements
# ---------------------------------------------------------------------------


class TestBlockConversion:
    def test_heading_and_paragraph(self):
        assert convert_html_to_markdown("<h2>Title</h2><p>Body</p>") == "## Title\n\nBody"

    def test_image_either_attribute_order(self):
        assert convert_html_to_markdown('<img src="a.png" alt="Alt">') == "![Alt](a.png)"
        assert convert_html_to_markdown('<img alt="Alt" src="a.png" />') == "![Alt](a.png)"

    def test_image_without_alt(self):
        assert convert_html_to_markdown('<img src="a.png">') == "![](a.png)"

    def test_horizontal_rule(self):
        assert convert_html_to_markdown("<p>A</p><hr/><p>B</p>") == "A\n\n---\n\nB"

    def test_unordered_list(self):
        assert convert_html_to_markdown("<ul><li>One</li><li>Two</li></ul>") == "- One\n- Two"

    def test_ordered_list_is_numbered(self):
        assert convert_html_to_markdown("<ol><li>First</li><li>Second</li></ol>") == "1. First\n2. Second"

    def test_nested_list_indented_under_parent(self):
        html = "<ul><li>a<ul><li>b</li></ul></li></ul>"
        assert convert_html_to_markdown(html) == "- a\n  - b"

    def test_nested_ordered_list_keeps_sibling_items(self):
        html = "<ul><li>Setup<ol><li>Install</li><li>Run</li></ol></li><li>Done</li></ul>"
        assert convert_html_to_markdown(html) == "- Setup\n  1. Install\n  2. Run\n- Done"

    def test_whitespace_between_items_dropped(self):
        html = "<ul>\n  <li>One</li>\n  <li>Two</li>\n</ul>"
        assert convert_html_to_markdown(html) == "- One\n- Two"

    def test_nested_list_converted_in_one_pass(self):
        once = convert_html_to_markdown("<ul><li>a<ul><li>b</li></ul></li></ul>")
        assert not contains_html(once)
        assert convert_html_to_markdown(once) == once

    def test_div_and_span_unwrapped(self):
        assert convert_html_to_markdown("<div><span>kept</span></div>") == "kept"

    def test_pre_code_becomes_fence_with_language(self):
        html = '<pre><code class="language-python">print("hi")\n</code></pre>'
        assert convert_html_to_markdown(html) == '```python\nprint("hi")\n```'

    def test_pre_without_code(self):
        assert convert_html_to_markdown("<pre>preformatted text</pre>") == "```\npreformatted text\n```"

    def test_pre_content_is_not_converted(self):
        html = "<pre><code>&lt;b&gt; <b>raw</b></code></pre>"
        assert convert_html_to_markdown(html) == "```\n&lt;b&gt; <b>raw</b>\n```"

    def test_excess_blank_lines_collapsed(self):
        assert convert_html_to_markdown("<p>A</p>\n\n\n\n<p>B</p>") == "A\n\nB"

    def test_entities_are_not_decoded(self):
        assert convert_html_to_markdown("<p>&lt;tag&gt; &amp; more</p>") == "&lt;tag&gt; &amp; more"


class TestBlockquotes:
    @pytest.mark.parametrize("cls,admonition", [
        ("info", "info"),
        ("note", "note"),
        ("tip", "tip"),
        ("warning", "warning"),
        ("danger", "danger"),
        ("important", "warning"),
        ("success", "tip"),
    ])
    def test_class_maps_to_admonition(self, cls, admonition):
        html = f'<blockquote class="{cls}">Careful</blockquote>'
        assert convert_html_to_markdown(html) == f":::{admonition}\nCareful\n:::"

    def test_unknown_class_is_plain_quote(self):
        assert convert_html_to_markdown('<blockquote class="fancy">Hi</blockquote>') == "> Hi"

    def test_plain_quote_prefixes_every_line(self):
        html = "<blockquote>Quoted\n\nline two</blockquote>"
        assert convert_html_to_markdown(html) == "> Quoted\n>\n> line two"

    def test_nested_quotes_resolved_innermost_first(self):
        html = "<blockquote>Outer<blockquote>Inner</blockquote></blockquote>"
        assert convert_html_to_markdown(html) == "> Outer\n> > Inner"

    def test_admonition_blank_lines_trimmed(self):
        html = '<blockquote class="note"><p>Body</p></blockquote>'
        assert convert_html_to_markdown(html) == ":::note\nBody\n:::"


# ---------------------------------------------------------------------------
# Code protection and no-op behaviour
# ---------------------------------------------------------------------------


class TestCodeProtection:
    def test_inline_code_untouched(self):
        text = "Use `<b>not bold</b>` and <b>bold</b>"
        assert convert_html_to_markdown(text) == "Use `<b>not bold</b>` and **bold**"

    def test_fenced_html_untouched(self):
        text = "```html\n<p>raw</p>\n```\n\n<p>para</p>"
        assert convert_html_to_markdown(text) == "```html\n<p>raw</p>\n```\n\npara"

    def test_no_html_returns_input(self):
        text = "plain **md** text\n\n\n\nwith gaps  "
        assert convert_html_to_markdown(text) == text

    def test_mixed_markdown_and_html(self):
        text = "# Heading\n\n<strong>Bold HTML</strong>\n\n**Already markdown**"
        assert convert_html_to_markdown(text) == "# Heading\n\n**Bold HTML**\n\n**Already markdown**"

    def test_malformed_html_does_not_raise(self):
        assert isinstance(convert_html_to_markdown("<p   >text<  /p><strong>x"), str)


# ---------------------------------------------------------------------------
# detect_complex_html
# ---------------------------------------------------------------------------


class TestDetectComplexHtml:
    def test_clean_text_has_no_warnings(self):
        assert detect_complex_html("Just **markdown**") == []

    def test_empty_text(self):
        assert detect_complex_html("") == []

    def test_table(self):
        warnings = detect_complex_html("<table><tr><td>1</td></tr></table>")
        assert "Contains HTML table - manual conversion to markdown table may be needed" in warnings
        assert "Contains unconverted HTML elements: table, tr, td" in warnings

    def test_inline_style(self):
        warnings = detect_complex_html('<p style="color:red">x</p>')
        assert "Contains inline styles - may need cleanup" in warnings

    def test_form_and_input(self):
        warnings = detect_complex_html('<form><input type="text" /></form>')
        assert "Contains form element - needs manual review" in warnings
        assert "Contains input element - needs manual review" in warnings

    def test_script_svg_sup(self):
        warnings = detect_complex_html("<script>x()</script><svg></svg>E=mc<sup>2</sup>")
        assert "Contains script tag - should be removed or converted" in warnings
        assert "Contains SVG element - needs manual review" in warnings
        assert "Contains superscript - no markdown equivalent" in warnings

    def test_html_inside_code_ignored(self):
        assert detect_complex_html("Example: `<script>x()</script>`") == []

    def test_does_not_alter_text(self):
        text = "<table></table>"
        detect_complex_html(text)
        assert text == "<table></table>"


# ---------------------------------------------------------------------------
# HtmlToMarkdownProcessor
# ---------------------------------------------------------------------------


class TestHtmlToMarkdownProcessor:
    def test_should_process_markdown_with_html(self):
        processor = HtmlToMarkdownProcessor()
        assert processor.should_process(_make_context(original_text="<b>x</b>"))

    def test_skips_markdown_without_html(self):
        processor = HtmlToMarkdownProcessor()
        assert not processor.should_process(_make_context(original_text="plain"))

    def test_skips_html_targets(self):
        processor = HtmlToMarkdownProcessor()
        assert not processor.should_process(_make_context("site/index.html", "<b>x</b>"))

    def test_skips_other_targets(self):
        processor = HtmlToMarkdownProcessor()
        assert not processor.should_process(_make_context("config/app.yaml", "<b>x</b>"))

    def test_process_converts_and_flags_modified(self, md_context):
        result = HtmlToMarkdownProcessor().process("<strong>bold</strong> text", md_context)
        assert result.text == "**bold** text"
        assert result.was_modified
        assert result.warnings == []

    def test_process_reports_leftover_tags(self, md_context):
        result = HtmlToMarkdownProcessor().process("<p>Intro</p><table><tr><td>1</td></tr></table>", md_context)
        assert result.text.startswith("Intro")
        assert "Contains HTML table - manual conversion to markdown table may be needed" in result.warnings
        assert "Contains unconverted HTML elements: table, tr, td" in result.warnings

    def test_process_empty_text(self, md_context):
        result = HtmlToMarkdownProcessor().process("", md_context)
        assert result.text == ""
        assert not result.was_modified
