"""Tests for chatexport.convert.blocks — HTML fragment to content blocks."""

from chatexport.convert.blocks import PLAIN_TEXT_LANGUAGE, detect_code_language, html_to_blocks
from chatexport.convert.tree import Element
from chatexport.core.models import BlockType, RunKind


def _types(blocks) -> list[BlockType]:
    return [b.type for b in blocks]


class TestParagraphs:
    def test_simple_paragraph(self):
        blocks = html_to_blocks("<p>Hello <b>world</b></p>")
        assert _types(blocks) == [BlockType.PARAGRAPH]
        assert blocks[0].text == "Hello world"
        assert blocks[0].runs[1].annotations.bold

    def test_bare_inline_siblings_grouped(self):
        blocks = html_to_blocks("Hello <b>world</b>")
        assert len(blocks) == 1
        assert blocks[0].text == "Hello world"

    def test_mixed_inline_and_block(self):
        blocks = html_to_blocks("Intro<ul><li>x</li></ul>Outro")
        assert _types(blocks) == [BlockType.PARAGRAPH, BlockType.BULLETED_ITEM, BlockType.PARAGRAPH]
        assert [b.text for b in blocks] == ["Intro", "x", "Outro"]

    def test_div_wrappers_flattened(self):
        blocks = html_to_blocks("<div><div><p>One</p><p>Two</p></div></div>")
        assert [b.text for b in blocks] == ["One", "Two"]

    def test_div_with_inline_content_is_paragraph(self):
        blocks = html_to_blocks("<div>Just <i>text</i></div>")
        assert len(blocks) == 1
        assert blocks[0].runs[1].annotations.italic

    def test_empty_paragraph_dropped(self):
        assert html_to_blocks("<p>   </p>") == []


class TestEmpty:
    def test_script_only(self):
        assert html_to_blocks("<script>alert(1)</script>") == []

    def test_empty_string(self):
        assert html_to_blocks("") == []


class TestHeadings:
    def test_levels(self):
        blocks = html_to_blocks("<h1>A</h1><h2>B</h2><h3>C</h3><h6>D</h6>")
        assert [(b.type, b.level) for b in blocks] == [
            (BlockType.HEADING, 2),
            (BlockType.HEADING, 2),
            (BlockType.HEADING, 3),
            (BlockType.HEADING, 3),
        ]


class TestLists:
    def test_nested_list(self):
        blocks = html_to_blocks("<ul><li>A<ul><li>B</li></ul></li></ul>")
        assert len(blocks) == 1
        item = blocks[0]
        assert item.type == BlockType.BULLETED_ITEM
        assert item.text == "A"
        assert len(item.children) == 1
        assert item.children[0].type == BlockType.BULLETED_ITEM
        assert item.children[0].text == "B"

    def test_ordered_list(self):
        blocks = html_to_blocks("<ol><li>one</li><li>two</li></ol>")
        assert _types(blocks) == [BlockType.NUMBERED_ITEM, BlockType.NUMBERED_ITEM]

    def test_item_without_text_keeps_children(self):
        blocks = html_to_blocks("<ul><li><ol><li>inner</li></ol></li></ul>")
        assert _types(blocks) == [BlockType.NUMBERED_ITEM]
        assert blocks[0].text == "inner"

    def test_item_inline_formatting(self):
        blocks = html_to_blocks("<ul><li><b>Key</b>: value</li></ul>")
        assert blocks[0].runs[0].annotations.bold
        assert blocks[0].text == "Key: value"


class TestCode:
    def test_fenced_code_language(self):
        blocks = html_to_blocks('<pre><code class="language-js">const a = 1;\n</code></pre>')
        assert _types(blocks) == [BlockType.CODE]
        assert blocks[0].language == "javascript"
        assert blocks[0].text == "const a = 1;"

    def test_code_whitespace_preserved(self):
        blocks = html_to_blocks('<pre><code class="language-python">def f():\n    return 1</code></pre>')
        assert blocks[0].text == "def f():\n    return 1"

    def test_unknown_language(self):
        blocks = html_to_blocks('<pre><code class="language-foobar">x</code></pre>')
        assert blocks[0].language == PLAIN_TEXT_LANGUAGE

    def test_no_language(self):
        blocks = html_to_blocks("<pre>plain</pre>")
        assert blocks[0].language == PLAIN_TEXT_LANGUAGE

    def test_detect_from_parent(self):
        code = Element("code")
        pre = Element("pre", {"class": "lang-py"})
        assert detect_code_language(code, pre) == "python"


class TestOtherBlocks:
    def test_quote(self):
        blocks = html_to_blocks("<blockquote>quoted</blockquote>")
        assert _types(blocks) == [BlockType.QUOTE]

    def test_divider(self):
        blocks = html_to_blocks("<p>a</p><hr><p>b</p>")
        assert _types(blocks) == [BlockType.PARAGRAPH, BlockType.DIVIDER, BlockType.PARAGRAPH]

    def test_display_equation(self):
        blocks = html_to_blocks('<div class="katex-display"><span class="katex" data-tex="x^2">x2</span></div>')
        assert _types(blocks) == [BlockType.EQUATION]
        assert blocks[0].expression == "x^2"

    def test_table_rows(self):
        html = "<table><tr><th>a</th><th>b</th></tr><tr><td>1</td><td>2</td></tr></table>"
        blocks = html_to_blocks(html)
        assert [b.text for b in blocks] == ["a | b", "1 | 2"]

    def test_image_only_paragraph(self):
        blocks = html_to_blocks('<p><img src="https://x/a.png"></p>')
        assert blocks[0].runs[0].kind == RunKind.IMAGE


class TestDegradation:
    def test_unknown_tag_degrades_to_text(self):
        blocks = html_to_blocks("<custom-box><p>A</p></custom-box>")
        assert _types(blocks) == [BlockType.PARAGRAPH]
        assert blocks[0].text == "A"

    def test_deep_nesting_does_not_recurse_forever(self):
        html = "<div>" * 70 + "<p>deep</p>" + "</div>" * 70
        blocks = html_to_blocks(html)
        assert [b.text for b in blocks] == ["deep"]
