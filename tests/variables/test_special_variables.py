"""Тесты разбора специальных переменных: schema, selector, prompt."""
import pytest

from cliptpl.variables.prompt import is_prompt_name, parse_prompt
from cliptpl.variables.schema import find_schema_key, lookup_schema
from cliptpl.variables.selector import SelectorQuery, is_selector_name, parse_selector


class TestSchema:

    def setup_method(self):
        self.variables = {
            "{{schema:@Article:author}}": "Jane",
            "{{schema:name}}": "Exact",
            "{{schema:@Movie:actor}}": [{"name": "A"}, {"name": ""}, {"name": "C"}],
        }

    def test_exact_key_wins(self):
        assert find_schema_key("name", self.variables) == "{{schema:name}}"

    def test_shorthand_key(self):
        assert find_schema_key("author", self.variables) == "{{schema:@Article:author}}"

    def test_typed_key(self):
        assert find_schema_key("@Article:author", self.variables) == "{{schema:@Article:author}}"
        assert lookup_schema("schema:@Article:author", self.variables) == "Jane"

    def test_lookup(self):
        assert lookup_schema("schema:author", self.variables) == "Jane"
        assert lookup_schema("schema:missing", self.variables) is None
        assert lookup_schema("schema:", self.variables) is None

    def test_projection_skips_empty(self):
        assert lookup_schema("schema:actor[*].name", self.variables) == ["A", "C"]

    def test_index(self):
        assert lookup_schema("schema:actor[2].name", self.variables) == "C"
        assert lookup_schema("schema:actor[9].name", self.variables) is None

    def test_whole_element(self):
        assert lookup_schema("schema:actor[0]", self.variables) == {"name": "A"}

    def test_projection_over_non_array(self):
        assert lookup_schema("schema:author[0]", self.variables) is None


class TestSelector:

    def test_is_selector_name(self):
        assert is_selector_name("selector:h1")
        assert is_selector_name("selectorHtml:div")
        assert not is_selector_name("title")

    def test_parse_plain(self):
        assert parse_selector("selector:div > p") == SelectorQuery("div > p")

    def test_parse_attribute(self):
        assert parse_selector("selector:img?src") == SelectorQuery("img", "src")

    def test_parse_html(self):
        assert parse_selector("selectorHtml:article") == SelectorQuery("article", None, True)

    def test_parse_escaped_quotes(self):
        query = parse_selector('selector:a[title=\\"x\\"]')

        assert query.selector == 'a[title="x"]'

    def test_parse_non_selector(self):
        with pytest.raises(ValueError):
            parse_selector("title")


class TestPrompt:

    def test_is_prompt_name(self):
        assert is_prompt_name('"summarize"')
        assert is_prompt_name("prompt:summarize")
        assert not is_prompt_name("title")

    def test_quoted(self):
        assert parse_prompt('"summarize the page"').prompt == "summarize the page"

    def test_prefixed(self):
        assert parse_prompt('prompt:"tags"').prompt == "tags"

    def test_prefixed_unquoted(self):
        assert parse_prompt("prompt:short summary").prompt == "short summary"

    def test_escapes(self):
        assert parse_prompt('"say \\"hi\\""').prompt == 'say "hi"'

    def test_unrecognized(self):
        assert parse_prompt("") is None
        assert parse_prompt("a}b") is None
