"""Тесты текстовых фильтров."""
import json

import pytest

from cliptpl.filters.text import (
    camel, capitalize, decode_uri, kebab, lower, pascal, replace, safe_name, snake,
    split, strip_tags, template, title, trim, uncamel, unescape_filter, upper,
)


class TestCaseFilters:

    def test_lower_upper(self):
        assert lower("AbC") == "abc"
        assert upper("AbC") == "ABC"

    def test_capitalize(self):
        assert capitalize("hELLO wORLD") == "Hello world"

    def test_capitalize_json(self):
        assert json.loads(capitalize('["abc", "dEF"]')) == ["Abc", "Def"]

    def test_title(self):
        assert title("hello big world") == "Hello Big World"

    @pytest.mark.parametrize("func,source,expected", [
        (camel, "hello world", "helloWorld"),
        (pascal, "hello world", "HelloWorld"),
        (kebab, "helloWorld Foo", "hello-world-foo"),
        (snake, "helloWorld foo", "hello_world_foo"),
        (uncamel, "helloWorld", "hello world"),
    ])
    def test_case_conversions(self, func, source, expected):
        assert func(source) == expected

    def test_trim(self):
        assert trim("  x \n") == "x"


class TestReplaceAndSplit:

    def test_replace_pair(self):
        assert replace("a-b-c", '"-":"+"') == "a+b+c"

    def test_replace_multiple_pairs(self):
        assert replace("ab", '"a":"1","b":"2"') == "12"

    def test_replace_without_replacement_removes(self):
        assert replace("a-b", '"-"') == "ab"

    def test_replace_quoted_separator(self):
        assert replace("a:b", '":":"="') == "a=b"

    def test_replace_without_param(self):
        assert replace("abc") == "abc"

    def test_split_single_char(self):
        assert json.loads(split("a,b,c", '","')) == ["a", "b", "c"]

    def test_split_multi_char(self):
        assert json.loads(split("a, b, c", '", "')) == ["a", "b", "c"]

    def test_split_without_param(self):
        assert json.loads(split("abc")) == ["abc"]

    def test_unescape(self):
        assert unescape_filter('say \\"hi\\"\\nbye') == 'say "hi"\nbye'

    def test_decode_uri(self):
        assert decode_uri("a%20b%2Fc") == "a b/c"


class TestSafeName:

    def test_default_removes_forbidden(self):
        assert safe_name('a/b:c?"d"') == "abcd"

    def test_reserved_windows_name(self):
        assert safe_name("con") == "_con"

    def test_empty_becomes_untitled(self):
        assert safe_name("") == "Untitled"

    def test_mac_leading_dot(self):
        assert safe_name(".hidden", "mac") == "_hidden"

    def test_linux_keeps_colon(self):
        assert safe_name("a:b", "linux") == "a:b"

    def test_obsidian_characters(self):
        assert safe_name("a#b|c^[d]") == "abcd"


class TestHtml:

    def test_strip_tags(self):
        assert strip_tags("<p>Hello <b>World</b></p>") == "Hello World"

    def test_strip_tags_keeps_allowed(self):
        assert strip_tags("<p>Hello <b>World</b></p>", '("b")') == "Hello <b>World</b>"

    def test_strip_tags_unescapes_entities(self):
        assert strip_tags("a &amp; b") == "a & b"


class TestTemplateFilter:

    def test_fields(self):
        value = '{"name": "X", "year": 2020}'

        assert template(value, '"${name} (${year})"') == "X (2020)"

    def test_plain_value(self):
        assert template("abc", '"[${value}]"') == "[abc]"

    def test_missing_field(self):
        assert template('{"a": 1}', '"${b}"') == ""
