"""
Tests for document evaluation and DocumentKernel.
"""

import math
import sys

import pytest

from flownote.kernel import (
    DocumentKernel,
    EvaluationOutput,
    EvaluationResult,
    ResultType,
    build_eval_context,
    evaluate_document,
    evaluate_line,
)
from flownote.parser import parse_line
from flownote.scope import Scope
from flownote.values import UNDEFINED


def types(output):
    return [r.type for r in output.results]


class TestEvaluateDocument:
    """Line-by-line evaluation with a shared scope."""

    def test_assignments_flow_downward(self):
        output = evaluate_document("x = 2\ny = x * 3\n")

        assert output.variables["x"] == 2
        assert output.variables["y"] == 6
        assert output.results[0].type == ResultType.ASSIGNMENT
        assert output.results[1].result == 6
        assert output.results[2].type == ResultType.TEXT

    def test_one_result_per_line(self):
        content = "a\nb = 1\n\n# c\n"
        assert len(evaluate_document(content).results) == len(content.split("\n"))

    def test_line_numbers_are_one_based(self):
        output = evaluate_document("1\n2\n3")
        assert [r.line_number for r in output.results] == [1, 2, 3]

    def test_empty_document(self):
        output = evaluate_document("")
        assert types(output) == [ResultType.TEXT]
        assert output.variables == {}

    def test_text_and_comments_pass_through(self):
        output = evaluate_document("Planning trip to Seattle\n# budget\n// todo")
        assert types(output) == [ResultType.TEXT, ResultType.COMMENT, ResultType.COMMENT]
        assert all(r.result is UNDEFINED for r in output.results)

    def test_nested_assignment(self):
        output = evaluate_document(
            "hotel.perNight = 180\n"
            "hotel.nights = 4\n"
            "hotel.total = hotel.perNight * hotel.nights"
        )
        assert output.variables["hotel"] == {"perNight": 180, "nights": 4, "total": 720}

    def test_sum_over_object(self):
        output = evaluate_document(
            "flights = 450\nhotel.perNight = 180\nhotel.nights = 4\ntotal = sum(flights, hotel)"
        )
        assert output.variables["total"] == 634

    def test_reassignment_later_in_document(self):
        output = evaluate_document("x = 1\nx = x + 1\nx")
        assert output.results[2].result == 2


class TestAns:
    """ans and _ track the most recent value."""

    def test_ans_follows_last_value(self):
        output = evaluate_document("5 + 5\nans * 2")
        assert output.results[0].result == 10
        assert output.results[1].result == 20

    def test_underscore_alias(self):
        output = evaluate_document("7\n_ + 1")
        assert output.results[1].result == 8

    def test_ans_starts_at_zero(self):
        output = evaluate_document("ans + 1")
        assert output.results[0].result == 1

    def test_assignment_updates_ans(self):
        output = evaluate_document("x = 3\nans * 10")
        assert output.results[1].result == 30

    def test_text_and_errors_do_not_touch_ans(self):
        output = evaluate_document("4\nSome prose here\nnope + 1\n# comment\nans")
        assert output.results[2].type == ResultType.ERROR
        assert output.results[4].result == 4

    def test_undefined_does_not_touch_ans(self):
        output = evaluate_document("9\nhotel.missing\nans", {"hotel": {}})
        assert output.results[1].type == ResultType.VALUE
        assert output.results[1].result is UNDEFINED
        assert output.results[2].result == 9

    def test_ans_is_written_to_scope(self):
        output = evaluate_document("x = 5\nx * 2")
        assert output.variables["ans"] == 10
        assert output.variables["_"] == 10


class TestUserFunctions:
    """name(params) = body definitions."""

    def test_define_and_call(self):
        output = evaluate_document("tip(amount, pct) = amount * pct / 100\ntip(85, 20)")
        assert output.results[0].type == ResultType.FUNCTION_DEF
        assert output.results[0].result is UNDEFINED
        assert output.results[1].result == 17

    def test_function_sees_document_variables(self):
        output = evaluate_document("rate = 0.1\nfee(x) = x * rate\nfee(200)")
        assert output.results[2].result == 20

    def test_parameters_shadow_variables(self):
        output = evaluate_document("x = 100\nf(x) = x + 1\nf(1)")
        assert output.results[2].result == 2

    def test_functions_call_each_other(self):
        output = evaluate_document("double(x) = x * 2\nquad(x) = double(double(x))\nquad(3)")
        assert output.results[2].result == 12

    def test_function_defined_later_is_visible_inside_earlier_body(self):
        output = evaluate_document("outer(x) = inner(x) + 1\ninner(x) = x * 10\nouter(2)")
        assert output.results[2].result == 21

    def test_redefinition_replaces(self):
        output = evaluate_document("f(x) = x\nf(x) = x * 2\nf(5)")
        assert output.results[2].result == 10

    def test_missing_argument_is_undefined(self):
        output = evaluate_document("f(a, b) = b\nf(1)")
        assert output.results[1].result is UNDEFINED

    def test_deep_recursion(self):
        output = evaluate_document("fact(n) = n <= 1 ? 1 : n * fact(n - 1)\nfact(150)")
        assert output.results[1].type == ResultType.VALUE
        assert output.results[1].result == pytest.approx(float(math.factorial(150)))

    def test_recursion_limit_is_restored(self):
        limit = sys.getrecursionlimit()
        evaluate_document("fact(n) = n <= 1 ? 1 : n * fact(n - 1)\nfact(50)")
        assert sys.getrecursionlimit() == limit

    def test_unbounded_recursion_is_an_error(self):
        output = evaluate_document("loop(n) = loop(n + 1)\nloop(0)\nafter = 1")
        assert output.results[1].type == ResultType.ERROR
        assert output.variables["after"] == 1

    def test_literal_parameters_do_not_define_a_function(self):
        output = evaluate_document("f(1, 2) = 3")
        assert output.results[0].type == ResultType.ERROR
        assert output.results[0].error == "Invalid or unexpected token '='"
        assert "f" not in output.scope.functions

    def test_shadows_builtin(self):
        output = evaluate_document("sqrt(x) = 42\nsqrt(9)")
        assert output.results[1].result == 42


class TestErrors:
    """Errors are isolated to their line."""

    def test_error_isolation(self):
        output = evaluate_document("x = 1\nbroken = nope * 2\ny = x + 10")

        assert output.results[1].type == ResultType.ERROR
        assert output.results[1].error == "nope is not defined"
        assert output.variables["y"] == 11
        assert "broken" not in output.variables

    def test_syntax_error(self):
        output = evaluate_document("x = (1 + 2")
        assert output.results[0].type == ResultType.ERROR
        assert output.results[0].error == "Unexpected end of input"
        assert "x" not in output.variables

    def test_division_by_zero_line(self):
        output = evaluate_document("1 / 0")
        assert output.results[0].type == ResultType.ERROR

    def test_errors_property(self):
        output = evaluate_document("a = 1\nb = zz\nc = yy")
        assert [r.line_number for r in output.errors] == [2, 3]


class TestExternalVariables:
    """Globals passed in from outside the document."""

    def test_external_variable_is_visible(self):
        output = evaluate_document("price = 100\nprice * taxRate", {"taxRate": 0.08})
        assert output.results[1].result == pytest.approx(8)

    def test_document_shadows_external(self):
        output = evaluate_document("taxRate = 0.5\n100 * taxRate", {"taxRate": 0.08})
        assert output.results[1].result == 50

    def test_external_shadows_builtin(self):
        output = evaluate_document("pi", {"pi": 3})
        assert output.results[0].result == 3

    def test_externals_are_not_copied_into_scope(self):
        output = evaluate_document("1", {"taxRate": 0.08})
        assert "taxRate" not in output.variables


class TestEvaluateLine:
    """Single line evaluation helpers."""

    def test_evaluate_line_updates_scope(self):
        scope = Scope()
        result = evaluate_line(parse_line("x = 4"), scope, 1, 0)
        assert result.type == ResultType.ASSIGNMENT
        assert scope.get_variable("x") == 4

    def test_context_layering(self):
        scope = Scope()
        scope.set_variable("max", 1)
        context = build_eval_context(scope, 99, {"min": 2})
        assert context["max"] == 1
        assert context["min"] == 2
        assert context["ans"] == 99
        assert context["_"] == 99
        assert context["sqrt"](9) == 3


class TestSerialization:
    """JSON-compatible dictionaries."""

    def test_result_to_dict(self):
        result = EvaluationResult(line_number=3, type=ResultType.VALUE, result=math.inf)
        assert result.to_dict() == {"line_number": 3, "type": "value", "result": "Infinity"}

    def test_text_result_has_no_result_key(self):
        result = EvaluationResult(line_number=1, type=ResultType.TEXT)
        assert result.to_dict() == {"line_number": 1, "type": "text"}

    def test_error_to_dict(self):
        result = EvaluationResult(line_number=2, type=ResultType.ERROR, error="boom")
        assert result.to_dict() == {"line_number": 2, "type": "error", "error": "boom"}

    def test_output_to_dict(self):
        output = evaluate_document("hotel.rate = 100\nhotel.missing")
        data = output.to_dict()
        assert data["variables"] == {"hotel": {"rate": 100}, "ans": 100, "_": 100}
        assert data["results"][1] == {"line_number": 2, "type": "value", "result": None}


class TestDocumentKernel:
    """The stateful wrapper used by watch and repl."""

    def setup_method(self):
        self.kernel = DocumentKernel({"taxRate": 0.1})

    def test_execute(self):
        output = self.kernel.execute("price = 50\nprice * taxRate")
        assert isinstance(output, EvaluationOutput)
        assert output.results[1].result == pytest.approx(5)
        assert self.kernel.execution_count == 1
        assert self.kernel.content == "price = 50\nprice * taxRate"

    def test_append_line_returns_new_result(self):
        self.kernel.append_line("x = 2")
        result = self.kernel.append_line("x * 21")
        assert result.line_number == 2
        assert result.result == 42
        assert self.kernel.execution_count == 2

    def test_get_variable(self):
        self.kernel.execute("hotel.nights = 4")
        assert self.kernel.get_variable("hotel.nights") == 4
        assert self.kernel.get_variable("hotel.rate") is UNDEFINED

    def test_namespace_hides_ans(self):
        self.kernel.execute("x = 1\nf(a) = a")
        assert self.kernel.get_namespace() == {"x": 1}
        assert self.kernel.get_defined_names() == ["x", "f"]

    def test_each_run_starts_fresh(self):
        self.kernel.execute("x = 1")
        self.kernel.execute("y = 2")
        assert self.kernel.get_variable("x") is UNDEFINED

    def test_history(self):
        self.kernel.execute("1")
        self.kernel.execute("2")
        history = self.kernel.get_history()
        assert [(count, content) for count, content, _ in history] == [(1, "1"), (2, "2")]

        history.clear()
        assert len(self.kernel.get_history()) == 2

        self.kernel.clear_history()
        assert self.kernel.get_history() == []

    def test_reset(self):
        self.kernel.execute("x = 1")
        self.kernel.reset()
        assert self.kernel.lines == []
        assert self.kernel.execution_count == 0
        assert self.kernel.get_namespace() == {}
        assert self.kernel.external_variables == {"taxRate": 0.1}


class TestLargeNumbers:
    """Overflowing arithmetic settles on Infinity instead of growing."""

    def test_overflowing_assignment_then_division(self):
        output = evaluate_document("x = 10 ** 400\nx / 3")
        assert not output.errors
        assert output.variables["x"] == math.inf
        assert output.results[1].result == math.inf

    def test_power_tower_finishes(self):
        output = evaluate_document("9 ** 9 ** 9")
        assert output.results[0].result == math.inf
        assert output.to_dict()["results"][0]["result"] == "Infinity"
