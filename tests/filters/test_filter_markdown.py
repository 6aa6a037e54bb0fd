"""Тесты фильтров, формирующих Markdown."""
import json

from cliptpl.filters.markdown import (
    blockquote, callout, escape_markdown, footnote, fragment_link, image, link, list_filter, strip_md,
    table, wikilink,
)


class TestQuotes:

    def test_blockquote(self):
        assert blockquote("a\nb") == "> a\n> b"

    def test_callout_default(self):
        assert callout("text") == "> [!info]\n> text"

    def test_callout_with_title_and_fold(self):
        assert callout("text", '("warning","Title",true)') == "> [!warning]- Title\n> text"
        assert callout("text", '("note","T",false)') == "> [!note]+ T\n> text"


class TestLinks:

    def test_escape_markdown(self):
        assert escape_markdown("[x]") == "\\[x\\]"

    def test_link_default_text(self):
        assert link("https://x.com") == "[link](https://x.com)"

    def test_link_custom_text(self):
        assert link("https://x.com", '"Site [1]"') == "[Site \\[1\\]](https://x.com)"

    def test_link_relative_url_resolved_against_page(self):
        result = link("/a b", None, "https://ex.com/dir/page")

        assert result == "[link](https://ex.com/a%20b)"

    def test_link_dot_relative_url(self):
        result = link("./img.png", None, "https://ex.com/dir/page")

        assert result == "[link](https://ex.com/dir/img.png)"

    def test_link_array(self):
        assert link('["https://a","https://b"]', '"x"') == "[x](https://a)\n[x](https://b)"

    def test_link_object(self):
        assert link('{"https://a": "A"}') == "[A](https://a)"

    def test_link_empty(self):
        assert link("") == ""

    def test_image(self):
        assert image("i.png", '"alt"') == "![alt](i.png)"

    def test_image_array(self):
        assert image('["a.png","b.png"]') == "![](a.png)\n![](b.png)"

    def test_wikilink(self):
        assert wikilink("Page") == "[[Page]]"
        assert wikilink("Page", '"A"') == "[[Page|A]]"

    def test_wikilink_array(self):
        assert json.loads(wikilink('["a","b"]')) == ["[[a]]", "[[b]]"]


class TestFootnotesAndLists:

    def test_footnote_array(self):
        assert footnote('["a","b"]') == "[^1]: a\n\n[^2]: b"

    def test_footnote_object(self):
        assert footnote('{"myKey":"v"}') == "[^my-key]: v"

    def test_footnote_plain(self):
        assert footnote("text") == "text"

    def test_bullet_list(self):
        assert list_filter('["a","b"]') == "- a\n- b"

    def test_numbered_list(self):
        assert list_filter('["a","b"]', "numbered") == "1. a\n2. b"

    def test_task_lists(self):
        assert list_filter('["a"]', "task") == "- [ ] a"
        assert list_filter('["a","b"]', "numbered-task") == "1. [ ] a\n2. [ ] b"

    def test_nested_list(self):
        assert list_filter('["a",["b"],"c"]') == "- a\n\t- b\n- c"

    def test_scalar_becomes_single_item(self):
        assert list_filter("text") == "- text"


class TestTable:

    def test_array_of_objects(self):
        value = '[{"h1":"one","h2":"two"},{"h1":"1","h2":"2"}]'

        assert table(value) == "| h1 | h2 |\n| - | - |\n| one | two |\n| 1 | 2 |"

    def test_object(self):
        assert table('{"a":1,"b":"x|y"}') == "| a | 1 |\n| - | - |\n| b | x\\|y |"

    def test_array_of_arrays_padded(self):
        value = '[["one","two"],["1"]]'

        assert table(value, '("A","B")') == "| A | B |\n| - | - |\n| one | two |\n| 1 |  |"

    def test_simple_array(self):
        assert table('["one","two"]') == "| Value |\n| - |\n| one |\n| two |"

    def test_simple_array_with_headers(self):
        result = table('["one","two","three","four"]', '("Column 1", "Column 2")')

        assert result == "| Column 1 | Column 2 |\n| - | - |\n| one | two |\n| three | four |"

    def test_not_tabular(self):
        assert table("plain") == "plain"
        assert table("[]") == "[]"
        assert table("") == ""


class TestStripMd:

    def test_inline_formatting(self):
        text = "# Title\n\nSome **bold**, *italic*, ==marked== and `code`."

        assert strip_md(text) == "Title\n\nSome bold, italic, marked and code."

    def test_links_and_images(self):
        text = "See [docs](https://x.com/d) ![pic](a.png) [[Page|alias]] [[Other]]"

        assert strip_md(text) == "See docs  alias Other"

    def test_lists_and_quotes(self):
        assert strip_md("- [x] done\n- item\n> quoted") == "done\nitem\nquoted"

    def test_code_block_and_footnote(self):
        assert strip_md("a[^1]\n\n```\ncode\n```\n\n\n\nb") == "a\n\nb"


class TestFragmentLink:

    def test_array_with_url(self):
        result = json.loads(fragment_link('["text content"]', '"https://example.com"'))

        assert result == ["text content [link](https://example.com#:~:text=text%20content)"]

    def test_custom_label(self):
        result = json.loads(fragment_link('["text"]', '"custom title":"https://example.com"'))

        assert result == ["text [custom title](https://example.com#:~:text=text)"]

    def test_page_url_used_without_url_param(self):
        result = json.loads(fragment_link('["a b"]', '"source"', "https://ex.com/p"))

        assert result == ["a b [source](https://ex.com/p#:~:text=a%20b)"]

    def test_long_text_uses_start_and_end(self):
        text = "one two three four five six seven eight nine ten eleven"

        result = json.loads(fragment_link(json.dumps([text]), None, "https://ex.com"))

        assert result[0].endswith(
            "(https://ex.com#:~:text=one%20two%20three%20four%20five,seven%20eight%20nine%20ten%20eleven)"
        )

    def test_highlight_objects(self):
        value = '[{"text":"hi","timestamp":"t"}]'

        result = json.loads(fragment_link(value, None, "https://ex.com"))

        assert result == [{"text": "hi [link](https://ex.com#:~:text=hi)", "timestamp": "t"}]

    def test_plain_text(self):
        result = json.loads(fragment_link("hi", None, "https://ex.com"))

        assert result == ["hi [link](https://ex.com#:~:text=hi)"]

    def test_without_url_or_text(self):
        assert fragment_link('["text"]') == '["text"]'
        assert fragment_link("", None, "https://ex.com") == ""
