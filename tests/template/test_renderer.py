"""Тесты рендерера: переменные, условия, циклы, присваивания и ошибки."""
import asyncio

import pytest

from cliptpl.config import EngineConfig
from cliptpl.engine import TemplateEngine


class TestVariables:

    def test_simple_interpolation(self, run_render):
        result = run_render("Hello {{name}}!", {"name": "World"})

        assert result.output == "Hello World!"
        assert result.errors == []

    def test_wrapped_key_lookup(self, run_render):
        """Извлечённые переменные хранятся под ключом {{name}}."""
        assert run_render("{{title}}", {"{{title}}": "T"}).output == "T"

    def test_wrapped_key_wins_over_plain(self, run_render):
        assert run_render("{{title}}", {"{{title}}": "wrapped", "title": "plain"}).output == "wrapped"

    def test_undefined_renders_empty_without_error(self, run_render):
        result = run_render("[{{missing}}]")

        assert result.output == "[]"
        assert result.ok

    def test_nested_path(self, run_render):
        variables = {"author": {"name": "Ann"}, "items": [{"title": "first"}]}

        assert run_render("{{author.name}}", variables).output == "Ann"
        assert run_render("{{items[0].title}}", variables).output == "first"

    def test_length(self, run_render):
        assert run_render("{{items.length}}", {"items": [1, 2, 3]}).output == "3"

    def test_value_formatting(self, run_render):
        variables = {"n": 3.0, "f": 2.5, "b": True, "lst": ["a", 1], "d": {"k": "v"}}

        assert run_render("{{n}}|{{f}}|{{b}}", variables).output == "3|2.5|true"
        assert run_render("{{lst}}", variables).output == '["a",1]'
        assert run_render("{{d}}", variables).output == '{"k":"v"}'

    def test_literal_number(self, run_render):
        assert run_render("{{ 42 }}").output == "42"

    def test_filters(self, run_render):
        assert run_render("{{ name|upper }}", {"name": "ann"}).output == "ANN"

    def test_filter_with_argument_from_variable(self, run_render):
        variables = {"items": ["a", "b"], "sep": " / "}

        assert run_render("{{ items|join:sep }}", variables).output == "a / b"

    def test_join_with_escaped_newline(self, run_render):
        assert run_render('{{ items|join:"\\n" }}', {"items": ["a", "b"]}).output == "a\nb"

    def test_unknown_filter_returns_value(self, run_render):
        result = run_render("{{ name|nosuch }}", {"name": "x"})

        assert result.output == "x"
        assert result.ok

    def test_filter_result_feeds_next_filter(self, run_render):
        """JSON-вывод фильтра разбирается и передаётся дальше структурой."""
        result = run_render('{{ tags|split:","|first }}', {"tags": "a,b,c"})

        assert result.output == "a"


class TestNullish:

    @pytest.mark.parametrize("variables,expected", [
        ({}, "fallback"),
        ({"a": ""}, "fallback"),
        ({"a": []}, "fallback"),
        ({"a": 0}, "0"),
        ({"a": False}, "false"),
        ({"a": "value"}, "value"),
    ])
    def test_nullish_fallback(self, run_render, variables, expected):
        assert run_render("{{ a ?? 'fallback' }}", variables).output == expected

    def test_nullish_chain(self, run_render):
        assert run_render('{{ a ?? b ?? "c" }}', {"b": "B"}).output == "B"

    def test_right_side_is_lazy(self, run_render):
        """Правая часть ?? не вычисляется, если левая есть."""
        def boom(value):
            raise RuntimeError("should not run")

        result = run_render('{{ a ?? "x"|boom }}', {"a": "A"}, filters={"boom": boom})

        assert result.output == "A"
        assert result.ok


class TestConditions:

    @pytest.mark.parametrize("value", [0, "", [], False, None])
    def test_falsy_values(self, run_render, value):
        result = run_render("{% if v %}yes{% else %}no{% endif %}", {"v": value})

        assert result.output == "no"

    @pytest.mark.parametrize("value", ["0", "text", 1, -1, ["x"], {"k": 1}, True])
    def test_truthy_values(self, run_render, value):
        result = run_render("{% if v %}yes{% else %}no{% endif %}", {"v": value})

        assert result.output == "yes"

    def test_elseif_chain(self, run_render):
        template = "{% if a == 1 %}one{% elseif a == 2 %}two{% else %}other{% endif %}"

        assert run_render(template, {"a": 1}).output == "one"
        assert run_render(template, {"a": 2}).output == "two"
        assert run_render(template, {"a": 3}).output == "other"

    def test_numeric_string_comparison(self, run_render):
        template = "{% if count > 5 %}big{% else %}small{% endif %}"

        assert run_render(template, {"count": "10"}).output == "big"
        assert run_render(template, {"count": 2}).output == "small"

    def test_loose_equality(self, run_render):
        assert run_render('{% if n == "3" %}y{% endif %}', {"n": 3}).output == "y"

    def test_contains_in_list_ignores_case(self, run_render):
        template = '{% if tags contains "Python" %}y{% else %}n{% endif %}'

        assert run_render(template, {"tags": ["python", "go"]}).output == "y"
        assert run_render(template, {"tags": ["rust"]}).output == "n"

    def test_contains_in_string(self, run_render):
        template = '{% if title contains "world" %}y{% endif %}'

        assert run_render(template, {"title": "Hello World"}).output == "y"

    def test_logical_operators(self, run_render):
        variables = {"a": True, "b": False}

        assert run_render("{% if a and not b %}y{% endif %}", variables).output == "y"
        assert run_render("{% if b or a %}y{% endif %}", variables).output == "y"
        assert run_render("{% if a && b %}y{% else %}n{% endif %}", variables).output == "n"

    def test_condition_on_filtered_value(self, run_render):
        template = "{% if items|length > 2 %}many{% endif %}"

        assert run_render(template, {"items": [1, 2, 3]}).output == "many"

    def test_multiline_blocks(self, run_render):
        """Перевод строки после обычного %} не попадает в вывод."""
        template = "Line1\n{% if true %}\nYes\n{% endif %}\nLine2"

        assert run_render(template).output == "Line1\nYes\nLine2"


class TestForLoops:

    def test_iterations_joined_with_newline(self, run_render):
        result = run_render("{% for i in items %}{{i}}{% endfor %}", {"items": ["a", "b", "c"]})

        assert result.output == "a\nb\nc"

    def test_iteration_output_is_stripped(self, run_render):
        template = "{% for i in items %}\n- {{i}}\n{% endfor %}"

        assert run_render(template, {"items": ["a", "b"]}).output == "- a\n- b"

    def test_index_binding(self, run_render):
        template = "{% for i in items %}{{i_index}}:{{i}}{% endfor %}"

        assert run_render(template, {"items": ["a", "b"]}).output == "0:a\n1:b"

    def test_loop_object(self, run_render):
        template = "{% for i in items %}{{loop.index}}/{{loop.length}}{% if loop.last %}!{% endif %}{% endfor %}"

        assert run_render(template, {"items": ["a", "b"]}).output == "1/2\n2/2!"

    def test_nested_loops(self, run_render):
        template = "{% for row in rows %}{% for c in row %}{{c}}{% endfor %}{% endfor %}"

        assert run_render(template, {"rows": [["a", "b"], ["c"]]}).output == "a\nb\nc"

    def test_item_properties(self, run_render):
        template = "{% for p in people %}{{p.name}}{% endfor %}"

        assert run_render(template, {"people": [{"name": "A"}, {"name": "B"}]}).output == "A\nB"

    def test_undefined_iterable_renders_empty(self, run_render):
        result = run_render("[{% for i in missing %}{{i}}{% endfor %}]")

        assert result.output == "[]"
        assert result.ok

    def test_empty_list(self, run_render):
        assert run_render("[{% for i in items %}{{i}}{% endfor %}]", {"items": []}).output == "[]"

    def test_non_list_iterable_is_node_error(self, run_render):
        """Ошибка цикла локальна: остальной шаблон рендерится."""
        result = run_render("a{% for i in s %}{{i}}{% endfor %}b", {"s": "abc"})

        assert result.output == "ab"
        assert [e.message for e in result.errors] == ["For loop iterable is not an array: str"]
        assert result.errors[0].line == 1

    def test_iterable_from_filter(self, run_render):
        template = '{% for t in tags|split:"," %}#{{t}}{% endfor %}'

        assert run_render(template, {"tags": "a,b"}).output == "#a\n#b"

    def test_loop_bindings_do_not_leak(self, run_render):
        template = "{% for i in items %}{% set y = i %}{% endfor %}[{{i}}{{y}}]"

        assert run_render(template, {"items": ["a"]}).output == "[]"


class TestSet:

    def test_set_and_use(self, run_render):
        assert run_render("{% set x = 5 %}{{x}}").output == "5"

    def test_set_with_filter(self, run_render):
        template = "{% set t = title|upper %}{{t}}"

        assert run_render(template, {"title": "hello"}).output == "HELLO"

    def test_set_overrides_page_variable(self, run_render):
        template = '{% set title = "new" %}{{title}}'

        assert run_render(template, {"title": "old"}).output == "new"

    def test_set_writes_to_context(self, engine):
        context = engine.create_context({})
        asyncio.run(engine.render('{% set x = "v" %}', context))

        assert context.variables["x"] == "v"


class TestCustomFilters:

    def test_custom_filter_overrides_builtin(self, run_render):
        result = run_render("{{ name|upper }}", {"name": "x"}, filters={"upper": lambda v: "custom"})

        assert result.output == "custom"

    def test_custom_filter_receives_evaluated_args(self, run_render):
        def wrap(value, mark):
            return f"{mark}{value}{mark}"

        assert run_render('{{ name|wrap:"*" }}', {"name": "x"}, filters={"wrap": wrap}).output == "*x*"

    def test_custom_filter_receives_raw_value(self, run_render):
        seen = []

        def spy(value):
            seen.append(value)
            return len(value)

        result = run_render("{{ items|spy }}", {"items": ["a", "b"]}, filters={"spy": spy})

        assert seen == [["a", "b"]]
        assert result.output == "2"

    def test_failing_custom_filter_is_node_error(self, run_render):
        def boom(value):
            raise RuntimeError("bad")

        result = run_render("a{{ name|boom }}b", {"name": "x"}, filters={"boom": boom})

        assert result.output == "ab"
        assert len(result.errors) == 1
        assert result.errors[0].message.startswith("Error evaluating variable: Filter 'boom' failed")


class TestRenderErrors:

    def test_unbalanced_template_renders_nothing(self, run_render):
        result = run_render("Hello {% if a %}x")

        assert result.output == ""
        assert result.errors
        assert result.errors[0].message == "Missing {% endif %} to close {% if %}"

    def test_syntax_error_renders_nothing(self, run_render):
        result = run_render("Hello {{ }} world")

        assert result.output == ""
        assert len(result.errors) == 1

    def test_error_in_condition(self, run_render):
        def boom(value):
            raise ValueError("nope")

        result = run_render("{% if a|boom %}y{% endif %}z", {"a": 1}, filters={"boom": boom})

        assert result.output == "z"
        assert result.errors[0].message.startswith("Error evaluating if condition:")

    def test_error_in_set(self, run_render):
        def boom(value):
            raise ValueError("nope")

        result = run_render("{% set x = a|boom %}{{x}}", {"a": 1}, filters={"boom": boom})

        assert result.output == ""
        assert result.errors[0].message.startswith("Error in set:")

    def test_render_is_deterministic(self, run_render):
        template = "{% for i in items %}{{i|upper}}{% endfor %}"
        variables = {"items": ["a", "b"]}

        assert run_render(template, variables).output == run_render(template, variables).output

    def test_trim_output_option(self):
        engine = TemplateEngine(EngineConfig(trim_output=True))
        result = asyncio.run(engine.render("  {{x}}\n\n", engine.create_context({"x": "v"})))

        assert result.output == "v"
