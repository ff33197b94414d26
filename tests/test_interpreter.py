"""Tests for rendering templates.

Tests cover:
- Text: identity for directive-free templates
- Directives: #if, #switch, #choose, #for, #guard, #check, #var
- Bindings: defined variables, loop variables and their collisions
- Engine: configuration, custom pipes, repeated renders
"""

from types import SimpleNamespace

import pytest

from hashflow import (
    CheckViolationError,
    DuplicateBindingError,
    EngineConfig,
    EvaluationError,
    ForVarKey,
    GuardViolationError,
    OperandTypeError,
    PipeNotFoundError,
    ScriptEngine,
    TemplateSyntaxError,
    evaluate_condition,
    interpolate_body,
    render,
)


def interpolated(template: str, context: dict) -> str:
    return render(template, context, body_formatter=interpolate_body)


# =============================================================================
# Text
# =============================================================================


class TestText:
    """Tests for plain text handling."""

    @pytest.mark.parametrize(
        "template",
        [
            "",
            "hello",
            "hello\n\nworld\n",
            "  indented\n\ttabbed\n",
            "# heading\n#include x\n:name ${x}",
        ],
    )
    def test_identity(self, template):
        assert render(template, {"name": "n", "x": 1}) == template

    def test_directive_lines_leave_no_blank_lines(self):
        template = "select *\nfrom t\n#if :id <> blank\nwhere id = :id\n#fi\norder by id"

        assert render(template, {"id": 5}) == "select *\nfrom t\nwhere id = :id\norder by id"
        assert render(template, {}) == "select *\nfrom t\norder by id"


# =============================================================================
# #if
# =============================================================================


class TestIf:
    """Tests for #if / #else / #fi."""

    TEMPLATE = "#if :age >= 18\nadult\n#else\nminor\n#fi"

    def test_then_branch(self):
        assert render(self.TEMPLATE, {"age": 20}) == "adult"

    def test_else_branch(self):
        assert render(self.TEMPLATE, {"age": 10}) == "minor"

    def test_numeric_string(self):
        assert render(self.TEMPLATE, {"age": "18"}) == "adult"

    def test_without_else(self):
        assert render("#if :a == 1\nyes\n#fi", {"a": 2}) == ""

    @pytest.mark.parametrize(
        "context,expected",
        [
            ({"a": 1, "b": 2}, "both"),
            ({"a": 1, "b": 3}, "only a"),
            ({"a": 0}, "none"),
        ],
    )
    def test_nested(self, context, expected):
        template = "#if :a == 1\n#if :b == 2\nboth\n#else\nonly a\n#fi\n#else\nnone\n#fi"

        assert render(template, context) == expected

    def test_dead_branch_is_not_evaluated(self):
        template = "#if :a == 1\n#check :a == 1 throw 'boom'\n#var b = :a | no_such_pipe\n#fi"

        assert render(template, {"a": 2}) == ""
        with pytest.raises(CheckViolationError):
            render(template, {"a": 1})

    def test_logic_operators(self):
        template = "#if !(:a == 1 || :b == 2) && :c <> blank\nyes\n#else\nno\n#fi"

        assert render(template, {"a": 0, "b": 0, "c": "x"}) == "yes"
        assert render(template, {"a": 1, "b": 0, "c": "x"}) == "no"
        assert render(template, {"a": 0, "b": 0}) == "no"

    def test_short_circuit(self):
        assert render("#if :a == 1 || :a | nope == 1\nyes\n#fi", {"a": 1}) == "yes"
        assert render("#if :a == 2 && :a | nope == 1\nyes\n#fi", {"a": 1}) == ""

    def test_deep_variables(self):
        context = {"user": {"name": "ann", "roles": ["admin", "dev"]}}
        template = "#if :user.roles[0] == 'admin' && :user.name ~ '^a'\nadmin\n#fi"

        assert render(template, context) == "admin"

    def test_object_attributes(self):
        context = {"user": SimpleNamespace(name="ann", _secret="x")}

        assert render("#if :user.name == 'ann'\nyes\n#fi", context) == "yes"
        assert render("#if :user._secret == null\nhidden\n#fi", context) == "hidden"

    def test_ordering_on_text_fails(self):
        with pytest.raises(OperandTypeError):
            render("#if :name > 1\nx\n#fi", {"name": "abc"})

    def test_malformed_number_literal(self):
        with pytest.raises(OperandTypeError):
            render("#if :n < 1abc\nx\n#fi", {"n": 1})

    def test_boolean_matches_its_text_form(self):
        template = "#if :flag == 'true'\nyes\n#else\nno\n#fi"

        assert render(template, {"flag": True}) == "yes"
        assert render(template, {"flag": False}) == "no"

    def test_nan_ordering_fails(self):
        with pytest.raises(OperandTypeError):
            render("#if :x > 1\nx\n#fi", {"x": float("nan")})


# =============================================================================
# #switch and #choose
# =============================================================================


class TestSwitch:
    """Tests for #switch / #case / #default."""

    TEMPLATE = (
        "#switch :status\n"
        "#case 'open', 'new'\n"
        "active\n"
        "#break\n"
        "#case 'closed'\n"
        "done\n"
        "#break\n"
        "#default\n"
        "unknown\n"
        "#break\n"
        "#end"
    )

    @pytest.mark.parametrize(
        "status,expected",
        [("new", "active"), ("open", "active"), ("closed", "done"), ("other", "unknown")],
    )
    def test_branches(self, status, expected):
        assert render(self.TEMPLATE, {"status": status}) == expected

    def test_no_match_without_default(self):
        template = "#switch :n\n#case 1\none\n#break\n#end"

        assert render(template, {"n": 2}) == ""

    def test_numeric_case_values(self):
        template = "#switch :n\n#case 1\none\n#break\n#end"

        assert render(template, {"n": "1"}) == "one"
        assert render(template, {"n": 1.0}) == "one"

    def test_first_match_wins(self):
        template = "#switch :n\n#case 1\nfirst\n#break\n#case 1\nsecond\n#break\n#end"

        assert render(template, {"n": 1}) == "first"

    def test_subject_pipes_and_variable_cases(self):
        template = "#switch :code | lower\n#case :expected\nmatch\n#break\n#end"

        assert render(template, {"code": "ABC", "expected": "abc"}) == "match"

    def test_boolean_subject_with_text_cases(self):
        template = "#switch :enabled\n#case 'true'\non\n#break\n#default\noff\n#break\n#end"

        assert render(template, {"enabled": True}) == "on"
        assert render(template, {"enabled": False}) == "off"


class TestChoose:
    """Tests for #choose / #when / #default."""

    TEMPLATE = (
        "#choose\n"
        "#when :age < 13\n"
        "child\n"
        "#break\n"
        "#when :age < 20\n"
        "teen\n"
        "#break\n"
        "#default\n"
        "adult\n"
        "#break\n"
        "#end"
    )

    @pytest.mark.parametrize("age,expected", [(10, "child"), (15, "teen"), (30, "adult")])
    def test_branches(self, age, expected):
        assert render(self.TEMPLATE, {"age": age}) == expected

    def test_later_conditions_not_evaluated(self):
        template = "#choose\n#when :a == 1\nfirst\n#break\n#when :a | missing == 1\nsecond\n#break\n#end"

        assert render(template, {"a": 1}) == "first"

    def test_nested_choose_in_branch(self):
        template = (
            "#choose\n"
            "#when :a == 1\n"
            "#choose\n"
            "#when :b == 1\n"
            "inner\n"
            "#break\n"
            "#end\n"
            "#break\n"
            "#end"
        )

        assert render(template, {"a": 1, "b": 1}) == "inner"
        assert render(template, {"a": 1, "b": 2}) == ""


# =============================================================================
# #for
# =============================================================================


class TestFor:
    """Tests for #for loops."""

    def test_bracketed_list_with_index(self):
        template = "#for n,i of :nums delimiter ', ' open '[' close ']'\n${i}:${n}\n#done"

        assert interpolated(template, {"nums": [10, 20]}) == "[0:10, 1:20]"

    def test_interpolate_from_config(self):
        template = "#for n,i of :nums delimiter ', ' open '[' close ']'\n${i}:${n}\n#done"
        engine = ScriptEngine(template, config=EngineConfig(interpolate=True))

        assert engine.evaluate({"nums": [10, 20]}) == "[0:10, 1:20]"

    def test_delimiter(self):
        assert interpolated("#for x of :nums delimiter ','\n${x}\n#done", {"nums": [1, 2, 3]}) == "1,2,3"

    def test_identity_formatter_keeps_placeholders(self):
        template = "#for x of :nums delimiter ','\nitem ${x}\n#done"

        assert render(template, {"nums": [1, 2]}) == "item ${x},item ${x}"

    def test_default_delimiter(self):
        assert interpolated("#for x of :xs\n${x}\n#done", {"xs": ["a", "b"]}) == "a, b"

    def test_configured_default_delimiter(self):
        engine = ScriptEngine(
            "#for x of :xs\n${x}\n#done",
            config=EngineConfig(default_delimiter=" | ", interpolate=True),
        )

        assert engine.evaluate({"xs": ["a", "b"]}) == "a | b"

    @pytest.mark.parametrize("nums", [[], None, ()])
    def test_empty_source_ignores_open_close(self, nums):
        template = "#for x of :nums open '(' close ')'\n${x}\n#done"

        assert interpolated(template, {"nums": nums}) == ""

    def test_missing_source(self):
        assert interpolated("#for x of :nums open '('\n${x}\n#done", {}) == ""

    def test_scalar_source_iterates_once(self):
        template = "#for x of :v open '<' close '>'\n${x}\n#done"

        assert interpolated(template, {"v": "abc"}) == "<abc>"
        assert interpolated(template, {"v": 5}) == "<5>"

    def test_generators_and_sets(self):
        template = "#for x of :v delimiter '-'\n${x}\n#done"

        assert interpolated(template, {"v": (i * 2 for i in range(3))}) == "0-2-4"
        assert interpolated(template, {"v": {7}}) == "7"

    def test_blank_iterations_dropped(self):
        template = "#for x of :xs delimiter ','\n#if :x <> blank\n${x}\n#fi\n#done"

        assert interpolated(template, {"xs": ["a", "", "b"]}) == "a,b"

    def test_loop_variables_visible_to_conditions(self):
        template = "#for u of :users delimiter ' '\n#if :u.active == true\n${u.name}\n#fi\n#done"
        users = [{"name": "a", "active": True}, {"name": "b", "active": False}, {"name": "c", "active": True}]

        assert interpolated(template, {"users": users}) == "a c"

    def test_source_pipes(self):
        template = "#for t of :tags | split(',') delimiter ' '\n[${t}]\n#done"

        assert interpolated(template, {"tags": "a,b"}) == "[a] [b]"

    def test_kv_pipe(self):
        template = "#for e of :user | kv delimiter ', '\n${e.key}=${e.value}\n#done"

        assert interpolated(template, {"user": {"a": 1, "b": 2}}) == "a=1, b=2"

    def test_nested_loops(self):
        template = (
            "#for g of :groups delimiter '; '\n"
            "#for m of :g.members delimiter ','\n"
            "${g.name}:${m}\n"
            "#done\n"
            "#done"
        )
        groups = [{"name": "a", "members": [1, 2]}, {"name": "b", "members": [3]}]

        assert interpolated(template, {"groups": groups}) == "a:1,a:2; b:3"

    def test_for_generated_vars(self):
        template = "#for row of :rows delimiter ' / '\n#for c of :row delimiter ','\n${c}\n#done\n#done"
        engine = ScriptEngine(template, body_formatter=interpolate_body)

        result = engine.render({"rows": [[1, 2], [3]]})

        assert result.text == "1,2 / 3"
        assert result.for_generated_vars == {
            ForVarKey("row", 0, 0): [1, 2],
            ForVarKey("c", 1, 0): 1,
            ForVarKey("c", 1, 1): 2,
            ForVarKey("row", 0, 1): [3],
            ForVarKey("c", 2, 0): 3,
        }
        assert result.flat_for_vars()["c_1_1"] == 2

    def test_loop_var_per_iteration(self):
        template = "#for u of :users delimiter '; '\n#var name = :u.name | upper\n${name}\n#done"
        result = ScriptEngine(template, body_formatter=interpolate_body).render(
            {"users": [{"name": "ann"}, {"name": "bob"}]}
        )

        assert result.text == "ANN; BOB"
        assert result.defined_vars == {}
        assert result.for_generated_vars[ForVarKey("name", 0, 1)] == "BOB"
        assert str(ForVarKey("name", 0, 1)) == "name_0_1"

    def test_body_formatter_arguments(self):
        calls = []

        def formatter(for_index, item_index, body, loop_vars):
            calls.append((for_index, item_index, body, dict(loop_vars)))
            return body.upper()

        engine = ScriptEngine("#for x, i of :xs\nv\n#done", body_formatter=formatter)

        assert engine.evaluate({"xs": ["a", "b"]}) == "V, V"
        assert calls == [(0, 0, "v", {"x": "a", "i": 0}), (0, 1, "v", {"x": "b", "i": 1})]


# =============================================================================
# #guard and #check
# =============================================================================


class TestGuard:
    """Tests for #guard ... #throw."""

    TEMPLATE = "before\n#guard :user <> blank\nhello ${user}\n#throw 'user required'"

    def test_passes(self):
        assert render(self.TEMPLATE, {"user": "x"}) == "before\nhello ${user}"

    def test_violation(self):
        with pytest.raises(GuardViolationError) as exc_info:
            render(self.TEMPLATE, {})

        assert exc_info.value.message == "user required"

    def test_default_message(self):
        with pytest.raises(GuardViolationError, match="guard condition failed"):
            render("#guard :a == 1\nok\n#throw", {"a": 2})

    def test_body_never_rendered_on_failure(self):
        template = "#guard :a == 1\n#var b = 1\n#throw 'no'"
        engine = ScriptEngine(template)

        with pytest.raises(GuardViolationError):
            engine.render({"a": 2})
        assert engine.render({"a": 1}).defined_vars == {"b": 1}


class TestCheck:
    """Tests for #check ... throw."""

    TEMPLATE = "#check :age < 0 throw 'negative age'\nok"

    def test_true_condition_throws(self):
        with pytest.raises(CheckViolationError) as exc_info:
            render(self.TEMPLATE, {"age": -1})

        assert exc_info.value.message == "negative age"

    def test_false_condition_renders_nothing(self):
        assert render(self.TEMPLATE, {"age": 5}) == "ok"


# =============================================================================
# #var
# =============================================================================


class TestVar:
    """Tests for #var bindings."""

    def test_binding(self):
        engine = ScriptEngine("#var total = :items | length\n#if :total > 1\nmany\n#fi")
        result = engine.render({"items": [1, 2]})

        assert result.text == "many"
        assert result.defined_vars == {"total": 2}

    def test_deep_access_into_defined_var(self):
        template = "#var u = :user\n#if :u.name == 'ann'\nyes\n#fi"

        assert render(template, {"user": {"name": "ann"}}) == "yes"

    def test_redefinition(self):
        with pytest.raises(DuplicateBindingError) as exc_info:
            render("#var a = 1\n#var a = 2", {})

        assert exc_info.value.name == "a"

    def test_context_collision(self):
        with pytest.raises(DuplicateBindingError):
            render("#var a = 2", {"a": 1})

    def test_loop_item_collides_with_context(self):
        with pytest.raises(DuplicateBindingError):
            render("#for x of :xs\n${x}\n#done", {"x": 1, "xs": [1]})

    def test_loop_index_collides_with_defined_var(self):
        with pytest.raises(DuplicateBindingError):
            render("#var i = 0\n#for x, i of :xs\n${x}\n#done", {"xs": [1]})

    def test_loop_var_collides_with_item(self):
        with pytest.raises(DuplicateBindingError):
            render("#for x of :xs\n#var x = 1\n#done", {"xs": [1]})

    def test_var_inside_branch_binds_per_iteration(self):
        template = (
            "#for u of :users delimiter '; '\n"
            "#if :u.active == true\n"
            "#var n = :u.name | upper\n"
            "${n}\n"
            "#fi\n"
            "#done"
        )
        users = [{"name": "ann", "active": True}, {"name": "bob", "active": True}]

        result = ScriptEngine(template, body_formatter=interpolate_body).render({"users": users})

        assert result.text == "ANN; BOB"
        assert result.defined_vars == {}
        assert result.for_generated_vars[ForVarKey("n", 0, 1)] == "BOB"

    def test_var_in_inner_loop_binds_to_inner_iteration(self):
        template = (
            "#for row of :rows delimiter ' / '\n"
            "#for c of :row delimiter ','\n"
            "#var d = :c | nvl(0)\n"
            "${d}\n"
            "#done\n"
            "#done"
        )

        result = ScriptEngine(template, body_formatter=interpolate_body).render({"rows": [[1, None], [3]]})

        assert result.text == "1,0 / 3"
        assert result.flat_for_vars()["d_1_1"] == 0
        assert result.flat_for_vars()["d_2_0"] == 3

    def test_loop_var_collides_with_defined_var(self):
        with pytest.raises(DuplicateBindingError) as exc_info:
            render("#var n = 1\n#for x of :xs\n#var n = :x\n#done", {"xs": [1]})

        assert exc_info.value.name == "n"

    def test_state_is_per_render(self):
        engine = ScriptEngine("#var a = :x\nok")

        assert engine.evaluate({"x": 1}) == "ok"
        assert engine.evaluate({"x": 2}) == "ok"


# =============================================================================
# Pipes in templates
# =============================================================================


class TestPipes:
    """Tests for pipe resolution during rendering."""

    def test_custom_pipe_shadows_builtin(self):
        template = "#if :name | upper == 'custom'\nyes\n#fi"

        assert render(template, {"name": "x"}, pipes={"upper": lambda v: "custom"}) == "yes"
        assert render(template, {"name": "custom"}) == ""

    def test_custom_pipe_with_arguments(self):
        engine = ScriptEngine("#if :n | times(3) == 6\nyes\n#fi")
        engine.register_pipe("times", lambda v, k: v * k)

        assert engine.evaluate({"n": 2}) == "yes"

    def test_in_pipe(self):
        template = "#if :status | in('open', 'pending') == true\nyes\n#fi"

        assert render(template, {"status": "pending"}) == "yes"
        assert render(template, {"status": "closed"}) == ""

    def test_nvl_pipe(self):
        assert render("#if :page | nvl(1) == 1\nfirst\n#fi", {}) == "first"

    def test_unknown_pipe(self):
        with pytest.raises(PipeNotFoundError, match="Cannot find pipe 'nope'"):
            render("#if :a | nope == 1\nx\n#fi", {"a": 1})

    def test_pipe_failure_is_wrapped(self):
        def explode(value):
            raise ZeroDivisionError("no")

        with pytest.raises(EvaluationError) as exc_info:
            render("#if :a | explode == 1\nx\n#fi", {"a": 1}, pipes={"explode": explode})

        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)

    def test_wrong_argument_count(self):
        with pytest.raises(EvaluationError, match="takes 1 argument"):
            render("#if :a | nvl == 1\nx\n#fi", {"a": 1})


# =============================================================================
# Line prefix
# =============================================================================


class TestLinePrefix:
    TEMPLATE = "select *\n-- #if :id > 0\nwhere id = :id\n-- #fi"

    def test_prefixed_directives(self):
        engine = ScriptEngine(self.TEMPLATE, config=EngineConfig(line_prefix="--"))

        assert engine.evaluate({"id": 1}) == "select *\nwhere id = :id"
        assert engine.evaluate({"id": 0}) == "select *"

    def test_without_prefix_lines_are_text(self):
        assert render(self.TEMPLATE, {"id": 1}) == self.TEMPLATE


# =============================================================================
# Standalone conditions
# =============================================================================


class TestEvaluateCondition:
    def test_condition(self):
        assert evaluate_condition(":age >= 18 && :name <> blank", {"age": 20, "name": "x"})
        assert not evaluate_condition("!(:age >= 18) || :name == blank", {"age": 20, "name": "x"})

    def test_multiline_rejected(self):
        with pytest.raises(TemplateSyntaxError, match="single line"):
            evaluate_condition(":a == 1\n:b == 2", {})
