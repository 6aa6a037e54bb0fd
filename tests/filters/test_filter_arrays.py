"""Тесты фильтров для массивов и объектов."""
import json

from cliptpl.filters.arrays import (
    first, join, last, length, map_filter, merge, nth, object_filter, reverse, slice_filter, unique,
)


class TestElementAccess:

    def test_first_last(self):
        assert first('["a","b"]') == "a"
        assert last('["a","b"]') == "b"

    def test_first_of_non_array(self):
        assert first("plain") == "plain"
        assert first("[]") == "[]"

    def test_first_of_object_element(self):
        assert first('[{"k":1}]') == '{"k":1}'

    def test_slice_array(self):
        assert slice_filter('["a","b","c"]', "1,3") == '["b","c"]'

    def test_slice_single_element_unwraps(self):
        assert slice_filter('["a","b","c"]', "0,1") == "a"

    def test_slice_string(self):
        assert slice_filter("hello", "1,3") == "el"
        assert slice_filter("hello", "-2") == "lo"

    def test_slice_open_start(self):
        assert slice_filter("hello", ",2") == "he"


class TestNth:

    VALUE = "[1,2,3,4,5,6]"

    def test_single_position(self):
        assert nth(self.VALUE, "2") == "[2]"

    def test_every_nth(self):
        assert nth(self.VALUE, "2n") == "[2,4,6]"

    def test_from_offset(self):
        assert nth(self.VALUE, "n+5") == "[5,6]"

    def test_positions_in_groups(self):
        assert nth(self.VALUE, "1,2:3") == "[1,2,4,5]"

    def test_invalid_syntax_returns_input(self):
        assert nth(self.VALUE, "xyz") == self.VALUE

    def test_non_array(self):
        assert nth("text", "2") == "text"


class TestJoinAndMerge:

    def test_join_default(self):
        assert join('["a","b"]') == "a,b"

    def test_join_separator(self):
        assert join('["a","b"]', '" - "') == "a - b"

    def test_join_escaped_newline(self):
        assert join('["a","b"]', '"\\\\n"') == "a\nb"

    def test_join_non_array(self):
        assert join("text", '"-"') == "text"

    def test_merge(self):
        assert merge('["a"]', '("b","c")') == '["a","b","c"]'

    def test_merge_into_empty(self):
        assert merge("", '("a")') == "[]"

    def test_merge_scalar_json(self):
        assert json.loads(merge('"x"', '"y"')) == ['"x"', "y"]


class TestStructure:

    def test_unique_array(self):
        assert unique("[1,2,1,3]") == "[1,2,3]"

    def test_unique_object_keeps_last_keys(self):
        assert unique('{"a":1,"b":2,"c":1}') == '{"b":2,"c":1}'

    def test_object_modes(self):
        value = '{"a":1,"b":2}'

        assert object_filter(value, "array") == '[["a",1],["b",2]]'
        assert object_filter(value, "keys") == '["a","b"]'
        assert object_filter(value, "values") == "[1,2]"
        assert object_filter(value, "other") == value

    def test_length(self):
        assert length("[1,2]") == "2"
        assert length('{"a":1}') == "1"
        assert length("abc") == "3"

    def test_reverse(self):
        assert reverse("[1,2,3]") == "[3,2,1]"
        assert reverse("abc") == "cba"
        assert reverse('{"a":1,"b":2}') == '{"b":2,"a":1}'
        assert reverse("") == ""


class TestMap:

    def test_property_path(self):
        value = '[{"name":"a","meta":{"year":2020}},{"name":"b","meta":{"year":2021}}]'

        assert map_filter(value, '"item => item.name"') == '["a","b"]'
        assert map_filter(value, "x => x.meta.year") == "[2020,2021]"

    def test_string_with_substitutions(self):
        value = '[{"name":"a","url":"https://a"}]'

        assert map_filter(value, '"item => \\"${item.name}: ${item.url}\\""') == '["a: https://a"]'

    def test_object_literal(self):
        value = '[{"name":"a","url":"https://a","n":1}]'

        result = map_filter(value, "item => ({title: item.name, link: item.url})")

        assert json.loads(result) == [{"title": "a", "link": "https://a"}]

    def test_whole_item_and_index(self):
        assert map_filter('[["x","y"],["z"]]', "row => row[0]") == '["x","z"]'
        assert map_filter('["a","b"]', "s => \"<${s}>\"") == '["<a>","<b>"]'

    def test_plain_text_is_single_item(self):
        assert map_filter("hello", 'v => "${v}!"') == '["hello!"]'

    def test_invalid_arrow_returns_input(self):
        assert map_filter('["a"]', "item.name") == '["a"]'
        assert map_filter('["a"]') == '["a"]'

    def test_object_input_unchanged(self):
        assert map_filter('{"a":1}', "x => x") == '{"a":1}'
