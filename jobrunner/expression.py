"""Evaluation of ``${{ }}`` expressions embedded in strings and YAML nodes."""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Protocol

from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode
from yaml.representer import SafeRepresenter

log = logging.getLogger(__name__)

# GitHub merges maps through this undocumented "insert directive".
_INSERT_DIRECTIVE = re.compile(r"\$\{\{\s*insert\s*\}\}")
_STRING_END = re.compile(r"(?:''|[^'])*'")


class ExpressionError(ValueError):
    """Raised when an expression is malformed or yields an unusable value."""


class Interpreter(Protocol):
    """Anything that can evaluate a single expression."""

    def evaluate(self, expression: str, is_if_expression: bool) -> Any:
        ...


def _has_expression(text: str) -> bool:
    return "${{" in text and "}}" in text


def _to_node(value: Any) -> Node:
    return SafeRepresenter(sort_keys=False).represent_data(value)


class ExpressionEvaluator:
    """Evaluates expressions, interpolates strings and rewrites YAML nodes."""

    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def evaluate(self, expression: str, is_if_expression: bool = False) -> Any:
        """Evaluate one expression with the underlying interpreter."""
        log.debug("evaluating expression '%s'", expression)
        result = self.interpreter.evaluate(expression, is_if_expression)
        log.debug("expression '%s' evaluated to '%s'", expression, result)
        return result

    def evaluate_yaml_node(self, node: Node) -> Node:
        """Evaluate every expression inside ``node``.

        Mappings and sequences are updated in place; the node to use in
        place of ``node`` is returned, since a scalar may evaluate to any value.
        """
        if isinstance(node, ScalarNode):
            return self._evaluate_scalar(node)
        if isinstance(node, MappingNode):
            self._evaluate_mapping(node)
        elif isinstance(node, SequenceNode):
            self._evaluate_sequence(node)
        return node

    def _evaluate_scalar(self, node: ScalarNode) -> Node:
        text = node.value if isinstance(node.value, str) else str(node.value)
        if not _has_expression(text):
            return node
        expression = rewrite_sub_expression(text, False)
        return _to_node(self.evaluate(expression, False))

    def _evaluate_mapping(self, node: MappingNode) -> None:
        pairs: list[tuple[Node, Node]] = []
        for key, value in node.value:
            value = self.evaluate_yaml_node(value)
            if isinstance(key, ScalarNode) and _INSERT_DIRECTIVE.search(str(key.value)):
                if isinstance(value, MappingNode):
                    pairs.extend(value.value)
                elif isinstance(value, SequenceNode):
                    items = iter(value.value)
                    pairs.extend(zip(items, items))
            else:
                pairs.append((self.evaluate_yaml_node(key), value))
        node.value = pairs

    def _evaluate_sequence(self, node: SequenceNode) -> None:
        items: list[Node] = []
        for item in node.value:
            was_sequence = isinstance(item, SequenceNode)
            item = self.evaluate_yaml_node(item)
            # An expression that yields a list is merged into the parent list.
            if isinstance(item, SequenceNode) and not was_sequence:
                items.extend(item.value)
            else:
                items.append(item)
        node.value = items

    def interpolate(self, text: str) -> str:
        """Replace every expression in ``text`` with its string value.

        Evaluation failures are logged and yield an empty string.
        """
        if not _has_expression(text):
            return text
        expression = rewrite_sub_expression(text, True)
        try:
            evaluated = self.evaluate(expression, False)
        except Exception as err:  # noqa: BLE001 - failures become an empty value
            log.error("Unable to interpolate expression '%s': %s", expression, err)
            return ""
        if not isinstance(evaluated, str):
            raise ExpressionError(f"Expression {expression} did not evaluate to a string")
        return evaluated


def eval_bool(evaluator: ExpressionEvaluator, expression: str,
              truthy: Callable[[Any], bool]) -> bool:
    """Evaluate an ``if:`` expression and judge the result with ``truthy``."""
    rewritten = rewrite_sub_expression(expression, False)
    return truthy(evaluator.evaluate(rewritten, True))


def escape_format_string(text: str) -> str:
    """Double every brace so ``text`` is literal inside a format string."""
    return text.replace("{", "{{").replace("}", "}}")


def rewrite_sub_expression(text: str, force_format: bool = False) -> str:
    """Turn a string with embedded ``${{ }}`` blocks into one ``format(...)`` call.

    A string that is exactly one expression is returned unchanged unless
    ``force_format`` is set.
    """
    if not _has_expression(text):
        return text

    pos = 0
    length = len(text)
    expr_start = -1
    in_string = False
    results: list[str] = []
    pieces: list[str] = []

    while pos < length:
        if in_string:
            match = _STRING_END.match(text, pos)
            if match is None:
                raise ExpressionError("unclosed string.")
            in_string = False
            pos = match.end()
        elif expr_start > -1:
            expr_end = text.find("}}", pos)
            quote = text.find("'", pos)
            if expr_end > -1 and quote > -1:
                if expr_end < quote:
                    quote = -1
                else:
                    expr_end = -1
            if expr_end > -1:
                pieces.append(f"{{{len(results)}}}")
                results.append(text[expr_start:expr_end].strip())
                pos = expr_end + 2
                expr_start = -1
            elif quote > -1:
                pos = quote + 1
                in_string = True
            else:
                raise ExpressionError("unclosed expression.")
        else:
            start = text.find("${{", pos)
            if start != -1:
                pieces.append(escape_format_string(text[pos:start]))
                expr_start = start + 3
                pos = expr_start
            else:
                pieces.append(escape_format_string(text[pos:]))
                pos = length

    format_out = "".join(pieces)
    if len(results) == 1 and format_out == "{0}" and not force_format:
        return text

    out = "format('{}', {})".format(format_out.replace("'", "''"), ", ".join(results))
    if out != text:
        log.debug("expression '%s' rewritten to '%s'", text, out)
    return out