"""Тесты HTML-фильтров (BeautifulSoup, html2text)."""
import json

from cliptpl.filters.html import (
    html_to_json, markdown, remove_attr, remove_html, remove_tags, replace_tags, strip_attr,
)
from cliptpl.filters.registry import create_default_registry


class TestRemoveHtml:

    def test_by_tag_class_and_id(self):
        value = '<div><p>keep</p><span class="ad big">x</span><nav id="menu">m</nav><script>s()</script></div>'

        result = remove_html(value, '(".ad,#menu,script")')

        assert result == "<div><p>keep</p></div>"

    def test_class_substring_match(self):
        assert remove_html('<p class="sidebar-left">x</p><p>y</p>', '".sidebar"') == "<p>y</p>"

    def test_nested_matches(self):
        value = "<section><aside><aside>x</aside></aside>y</section>"

        assert remove_html(value, "aside") == "<section>y</section>"

    def test_without_param(self):
        assert remove_html("<p>x</p>") == "<p>x</p>"


class TestRemoveTags:

    def test_keeps_content(self):
        value = '<p>Go <a href="/x">there</a> <span>now</span></p>'

        assert remove_tags(value, '("a,span")') == "<p>Go there now</p>"

    def test_without_param(self):
        assert remove_tags("<b>x</b>") == "<b>x</b>"


class TestReplaceTags:

    def test_rename_keeps_attributes(self):
        value = '<strong class="k">a</strong> <em>b</em>'

        assert replace_tags(value, '"strong":"b"') == '<b class="k">a</b> <em>b</em>'

    def test_several_replacements(self):
        value = "<h3>T</h3><em>i</em>"

        assert replace_tags(value, '("h3":"h2","em":"i")') == "<h2>T</h2><i>i</i>"

    def test_empty_target_unwraps(self):
        assert replace_tags("<p><mark>x</mark></p>", '"mark":""') == "<p>x</p>"

    def test_without_param(self):
        assert replace_tags("<b>x</b>") == "<b>x</b>"


class TestAttributes:

    def test_strip_attr_keeps_listed(self):
        value = '<a href="/x" class="c" style="color:red">x</a><img alt="a" src="i.png"/>'

        result = strip_attr(value, '("href,src")')

        assert result == '<a href="/x">x</a><img src="i.png"/>'

    def test_strip_attr_removes_all_by_default(self):
        assert strip_attr('<p class="c" id="i">x</p>') == "<p>x</p>"

    def test_remove_attr(self):
        value = '<p class="c" style="x" id="i">t</p>'

        assert remove_attr(value, '("style,class")') == '<p id="i">t</p>'

    def test_remove_attr_case_insensitive(self):
        assert remove_attr('<p STYLE="x">t</p>', "style") == "<p>t</p>"

    def test_remove_attr_without_param(self):
        assert remove_attr('<p class="c">t</p>') == '<p class="c">t</p>'


class TestHtmlToJson:

    def test_single_element(self):
        result = json.loads(html_to_json('<p class="a b">Hello <b>world</b></p>'))

        assert result == {
            "type": "element",
            "tag": "p",
            "attributes": {"class": "a b"},
            "children": [
                {"type": "text", "content": "Hello"},
                {"type": "element", "tag": "b", "children": [{"type": "text", "content": "world"}]},
            ],
        }

    def test_several_top_level_nodes(self):
        result = json.loads(html_to_json("<br/>text<!-- note -->"))

        assert result == [{"type": "element", "tag": "br"}, {"type": "text", "content": "text"}]

    def test_document_body(self):
        result = json.loads(html_to_json("<html><head><title>t</title></head><body><i>x</i></body></html>"))

        assert result == {"type": "element", "tag": "i", "children": [{"type": "text", "content": "x"}]}


class TestMarkdown:

    def test_converts_html(self):
        assert markdown("<h1>Title</h1><p>Hello <strong>world</strong></p>") == "# Title\n\nHello **world**"

    def test_relative_links_resolved_against_page(self):
        result = markdown('<p><a href="/x">there</a></p>', None, "https://ex.com/a")

        assert result == "[there](https://ex.com/x)"

    def test_base_url_param(self):
        result = markdown('<p><a href="x">there</a></p>', '"https://base.org/d/"', "https://ex.com/a")

        assert result == "[there](https://base.org/d/x)"


class TestRegistered:

    def test_html_filters_in_default_registry(self):
        registry = create_default_registry()

        for name in ("remove_html", "remove_tags", "replace_tags", "strip_attr", "remove_attr",
                     "html_to_json", "markdown"):
            assert name in registry

    def test_markdown_through_registry_uses_page_url(self):
        registry = create_default_registry()

        result = registry.apply("markdown", '<a href="/p">p</a>', None, "https://ex.com/")

        assert result == "[p](https://ex.com/p)"
