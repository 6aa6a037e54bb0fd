"""Тесты сопоставления блочных тегов подсчётом глубины."""
from cliptpl.template.blocks import match_blocks
from cliptpl.template.lexer import tokenize_template
from cliptpl.template.tokens import TokenType


def _match(text):
    return match_blocks(tokenize_template(text))


class TestMatchBlocks:

    def test_balanced_nested_blocks(self):
        blocks = _match("{% if a %}{% for x in y %}{% endfor %}{% endif %}")

        assert blocks.balanced
        assert len(blocks.blocks) == 2
        kinds = sorted(block.kind.value for block in blocks.blocks.values())
        assert kinds == [TokenType.FOR.value, TokenType.IF.value]

    def test_boundaries(self):
        """Границы тела: индексы тегов else и endif."""
        blocks = _match("{% if a %}x{% else %}y{% endif %}")

        assert blocks.balanced
        assert blocks.boundaries(0) == [5, 9]

    def test_inner_endif_closes_inner_block(self):
        blocks = _match("{% if a %}{% if b %}{% endif %}{% endif %}")

        assert blocks.balanced
        outer = blocks.blocks[0]
        inner = blocks.blocks[4]
        assert inner.end < outer.end

    def test_crossing_blocks(self):
        """Перекрещенные блоки: лишний endif и незакрытый if."""
        blocks = _match("{% if a %}{% for x in y %}{% endif %}{% endfor %}")

        assert not blocks.balanced
        messages = [issue.message for issue in blocks.issues]
        assert "Unexpected {% endif %} - no matching opening tag" in messages
        assert "Missing {% endif %} to close {% if %}" in messages

    def test_else_outside_if(self):
        blocks = _match("{% for x in y %}{% else %}{% endfor %}")

        assert [issue.message for issue in blocks.issues] == [
            "Unexpected {% else %} - no matching opening tag"
        ]

    def test_unclosed_for_position(self):
        blocks = _match("text\n{% for x in y %}")
        issue = blocks.issues[0]

        assert issue.message == "Missing {% endfor %} to close {% for %}"
        assert issue.line == 2

    def test_plain_text_is_balanced(self):
        assert _match("no blocks here {{ x }}").balanced
