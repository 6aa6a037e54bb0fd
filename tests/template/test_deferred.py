"""Тесты отложенных переменных: селекторы, schema и промпты на этапе рендеринга."""
from cliptpl.template.context import UNRESOLVED, Deferred


class TestDeferred:

    def test_placeholder_text(self):
        deferred = Deferred("selector:h1|upper")

        assert deferred.placeholder() == "{{selector:h1|upper}}"
        assert str(deferred) == "{{selector:h1|upper}}"

    def test_unresolved_is_falsy_singleton(self):
        assert not UNRESOLVED
        assert type(UNRESOLVED)() is UNRESOLVED


class TestDeferredRendering:

    def test_selector_without_resolver_is_kept(self, run_render):
        result = run_render("Title: {{selector:h1}}")

        assert result.output == "Title: {{selector:h1}}"
        assert result.has_deferred_variables is True
        assert result.ok

    def test_filters_stay_attached(self, run_render):
        result = run_render('{{selector:p|replace:"a":"b"|upper}}')

        assert result.output == '{{selector:p|replace:"a":"b"|upper}}'

    def test_parenthesized_filter_args(self, run_render):
        result = run_render('{{selector:p|callout:("info", "T")}}')

        assert result.output == '{{selector:p|callout:("info", "T")}}'

    def test_resolver_supplies_value(self, run_render):
        async def resolver(name, context):
            return "page title" if name == "selector:h1" else UNRESOLVED

        result = run_render("{{selector:h1|upper}}", async_resolver=resolver)

        assert result.output == "PAGE TITLE"
        assert result.has_deferred_variables is False

    def test_resolver_declines(self, run_render):
        async def resolver(name, context):
            return UNRESOLVED

        result = run_render("{{selector:h1|upper}}", async_resolver=resolver)

        assert result.output == "{{selector:h1|upper}}"
        assert result.has_deferred_variables is True

    def test_resolver_failure_is_node_error(self, run_render):
        async def resolver(name, context):
            raise RuntimeError("tab closed")

        result = run_render("a{{selector:h1}}b", async_resolver=resolver)

        assert result.output == "ab"
        assert result.errors[0].message == (
            "Error evaluating variable: Resolver failed for selector:h1: tab closed"
        )

    def test_resolved_selector_in_loop(self, run_render):
        async def resolver(name, context):
            return ["a", "b"]

        result = run_render(
            "{% for li in selector:ul > li %}{{li}}{% endfor %}", async_resolver=resolver
        )

        assert result.output == "a\nb"

    def test_deferred_is_truthy_in_condition(self, run_render):
        result = run_render("{% if selector:h1 %}has{% endif %}")

        assert result.output == "has"
        assert result.has_deferred_variables is True

    def test_for_over_deferred_is_error(self, run_render):
        result = run_render("{% for x in selector:li %}{{x}}{% endfor %}")

        assert result.output == ""
        assert result.errors[0].message == "For loop iterable is not an array: deferred"

    def test_prompt_literal(self, run_render):
        result = run_render('{{"summarize the page"}}')

        assert result.output == '{{"summarize the page"}}'
        assert result.has_deferred_variables is True

    def test_prompt_with_filters(self, run_render):
        result = run_render('{{"tags"|split:","|first}}')

        assert result.output == '{{"tags"|split:","|first}}'

    def test_prefixed_prompt(self, run_render):
        result = run_render('{{prompt:"summary"|upper}}')

        assert result.output == '{{prompt:"summary"|upper}}'
        assert result.has_deferred_variables is True

    def test_schema_from_variables(self, run_render):
        variables = {"{{schema:@Movie:director}}": [{"name": "A"}, {"name": "B"}]}

        result = run_render("{{schema:director[*].name|join:\", \"}}", variables)

        assert result.output == "A, B"
        assert result.has_deferred_variables is False

    def test_schema_missing_is_deferred(self, run_render):
        result = run_render("{{schema:author}}")

        assert result.output == "{{schema:author}}"
        assert result.has_deferred_variables is True

    def test_bare_argument_in_deferred_chain(self, run_render):
        result = run_render("{{selector:li|list:numbered}}")

        assert result.output == '{{selector:li|list:"numbered"}}'
