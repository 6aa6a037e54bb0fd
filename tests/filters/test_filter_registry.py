"""Тесты реестра фильтров."""
import pytest

from cliptpl.filters.registry import FilterRegistry, FilterSpec, create_default_registry


class TestFilterRegistry:

    def setup_method(self):
        self.registry = create_default_registry()

    @pytest.mark.parametrize("name", [
        "upper", "replace", "split", "join", "nth", "calc", "number_format",
        "link", "list", "callout", "date", "date_modify", "safe_name",
    ])
    def test_builtin_filters_registered(self, name):
        assert name in self.registry

    def test_names_sorted(self):
        names = self.registry.names()

        assert names == sorted(names)
        assert [spec.name for spec in self.registry.specs()] == names

    def test_unknown_filter_returns_value(self):
        assert self.registry.apply("nosuch", "x") == "x"

    def test_failing_filter_returns_original_value(self):
        def boom(value, param):
            raise RuntimeError("bad")

        self.registry.register("boom", boom)

        assert self.registry.apply("boom", ["a"]) == ["a"]

    def test_json_like_output_is_parsed(self):
        assert self.registry.apply("split", "a,b", '","') == ["a", "b"]

    def test_structured_value_passed_as_json(self):
        assert self.registry.apply("join", ["a", "b"], '"-"') == "a-b"

    def test_none_value(self):
        assert self.registry.apply("upper", None) == ""

    def test_apply_chain(self):
        assert self.registry.apply_chain("  hi  ", "trim|upper") == "HI"

    def test_apply_chain_quoted_pipe(self):
        assert self.registry.apply_chain("a-b", 'replace:"-":"|"|upper') == "A|B"

    def test_url_passed_to_link_filters(self):
        result = self.registry.apply("link", "/p", None, "https://ex.com/a/b")

        assert result == "[link](https://ex.com/p)"

    def test_register_overrides(self):
        self.registry.register("upper", lambda value, param: "custom")

        assert self.registry.apply("upper", "x") == "custom"

    def test_register_all(self):
        registry = FilterRegistry()
        registry.register_all([FilterSpec("twice", lambda value, param: value * 2, "Repeat")])

        assert registry.names() == ["twice"]
        assert registry.get("twice").description == "Repeat"
        assert registry.apply("twice", "ab") == "abab"

    def test_registries_are_independent(self):
        self.registry.register("extra", lambda value, param: value)

        assert "extra" not in create_default_registry()
