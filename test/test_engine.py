import math

import pytest

from symgrad.engine import (
    Abs, Add, Constant, Cos, Divide, Exp, Expr, Log, Multiply, Negate, Op,
    Power, Sign, Sin, Subtract, Tan, Variable, from_tuple, sqrt,
)
from symgrad.errors import UnsupportedOperator


def test_operands_and_rules_line_up():
    x = Variable("x")
    y = Variable("y")
    for node in [Constant(1), x]:
        assert node.operands() == ()
        assert node.local_gradient_rules() == ()
    for make in [Negate, Sin, Cos, Tan, Log, Exp, Sign, Abs]:
        node = make(x)
        assert node.operands() == (x,)
        assert len(node.local_gradient_rules()) == 1
    for make in [Add, Subtract, Multiply, Divide, Power]:
        node = make(x, y)
        assert node.operands() == (x, y)
        assert len(node.local_gradient_rules()) == 2


def test_rule_shapes():
    a = Variable("a")
    b = Variable("b")
    g = Variable("g")

    def rules(node):
        return [str(rule(g)) for rule in node.local_gradient_rules()]

    assert rules(Add(a, b)) == ["g", "g"]
    assert rules(Subtract(a, b)) == ["g", "(-g)"]
    assert rules(Multiply(a, b)) == ["(b * g)", "(a * g)"]
    assert rules(Divide(a, b)) == ["(g / b)", "(((-a) / (b ^ 2)) * g)"]
    assert rules(Power(a, b)) == ["((b * (a ^ (b - 1))) * g)", "(((a ^ b) * log(a)) * g)"]
    assert rules(Sin(a)) == ["(cos(a) * g)"]
    assert rules(Cos(a)) == ["((-sin(a)) * g)"]
    assert rules(Tan(a)) == ["(g / (cos(a) ^ 2))"]
    assert rules(Log(a)) == ["(g / a)"]
    assert rules(Negate(a)) == ["(-g)"]
    assert rules(Exp(a)) == ["(exp(a) * g)"]
    assert rules(Sign(a)) == ["0"]
    assert rules(Abs(a)) == ["(sign(a) * g)"]


def test_rules_reuse_operands():
    a = Variable("a")
    b = Variable("b")
    g = Variable("g")
    left, right = Multiply(a, b).local_gradient_rules()
    assert left(g).args[0] is b
    assert right(g).args[0] is a
    assert left(g).args[1] is g

    e = Exp(a)
    (rule,) = e.local_gradient_rules()
    assert rule(g).args[0] is e


def test_rules_build_new_nodes():
    a = Variable("a")
    g = Variable("g")
    (rule,) = Sin(a).local_gradient_rules()
    assert rule(g) is not rule(g)
    assert rule(g).id != rule(g).id


def test_to_string():
    a = Variable("a")
    b = Variable("b")
    assert str(Constant(2)) == "2"
    assert str(Constant(0.5)) == "0.5"
    assert str(Constant(-3.0)) == "-3"
    assert str(Constant(float("inf"))) == "inf"
    assert str(Add(a, Multiply(b, 2))) == "(a + (b * 2))"
    assert str(Negate(Sin(a))) == "(-sin(a))"
    assert str(sqrt(a)) == "(a ^ 0.5)"
    assert Abs(Exp(Log(a))).to_string() == "abs(exp(log(a)))"
    assert str(Power(Tan(a), Cos(b))) == "(tan(a) ^ cos(b))"


def test_python_operators():
    a = Variable("a")
    b = Variable("b")
    assert str(a + b) == "(a + b)"
    assert str(2 * a) == "(2 * a)"
    assert str(a - 1) == "(a - 1)"
    assert str(1 - a) == "(1 - a)"
    assert str(a / b) == "(a / b)"
    assert str(1 / a) == "(1 / a)"
    assert str(a ** 2) == "(a ^ 2)"
    assert str(2 ** a) == "(2 ^ a)"
    assert str(-a) == "(-a)"
    assert str(abs(a)) == "abs(a)"
    assert str(a.exp().log()) == "log(exp(a))"
    assert str(a.sqrt()) == "(a ^ 0.5)"
    with pytest.raises(TypeError):
        a + "b"


def test_identity_not_structure():
    x1 = Variable("x")
    x2 = Variable("x")
    assert x1 is not x2
    assert x1 != x2
    assert x1.id != x2.id
    assert len({x1, x2}) == 2


def test_nodes_are_immutable():
    a = Variable("a")
    node = a + 1
    with pytest.raises(AttributeError):
        node.op = Op.MUL
    with pytest.raises(AttributeError):
        node.args = (a, a)
    with pytest.raises(AttributeError):
        a.data = "b"
    assert node.op is Op.ADD


def test_construction_leaves_operands_alone():
    a = Variable("a")
    b = Variable("b")
    s = Add(a, b)
    Multiply(s, s)
    Negate(s)
    assert s.args == (a, b)
    assert a.args == () and b.args == ()


def test_evaluate_every_op():
    env = {"x": 0.7, "y": 1.3}
    x = Variable("x")
    y = Variable("y")
    assert Constant(4).evaluate(env) == 4.0
    assert x.evaluate(env) == 0.7
    assert Negate(x).evaluate(env) == -0.7
    assert Sin(x).evaluate(env) == pytest.approx(math.sin(0.7))
    assert Cos(x).evaluate(env) == pytest.approx(math.cos(0.7))
    assert Tan(x).evaluate(env) == pytest.approx(math.tan(0.7))
    assert Log(x).evaluate(env) == pytest.approx(math.log(0.7))
    assert Exp(x).evaluate(env) == pytest.approx(math.exp(0.7))
    assert Sign(Negate(x)).evaluate(env) == -1.0
    assert Sign(Constant(0)).evaluate(env) == 0.0
    assert Abs(Negate(x)).evaluate(env) == pytest.approx(0.7)
    assert Add(x, y).evaluate(env) == pytest.approx(2.0)
    assert Subtract(x, y).evaluate(env) == pytest.approx(-0.6)
    assert Multiply(x, y).evaluate(env) == pytest.approx(0.91)
    assert Divide(x, y).evaluate(env) == pytest.approx(0.7 / 1.3)
    assert Power(x, y).evaluate(env) == pytest.approx(0.7 ** 1.3)
    assert sqrt(y).evaluate(env) == pytest.approx(math.sqrt(1.3))
    assert isinstance(Add(x, y).evaluate(env), float)


def test_float_specials_propagate():
    x = Variable("x")
    assert Divide(1, x).evaluate({"x": 0.0}) == math.inf
    assert Divide(1, x).evaluate({"x": -0.0}) == -math.inf
    assert math.isnan(Divide(x, x).evaluate({"x": 0.0}))
    assert Log(x).evaluate({"x": 0.0}) == -math.inf
    assert math.isnan(Log(x).evaluate({"x": -1.0}))
    assert Exp(x).evaluate({"x": 1000.0}) == math.inf
    assert math.isnan(Power(x, 0.5).evaluate({"x": -4.0}))
    assert Power(x, -1).evaluate({"x": 0.0}) == math.inf


def test_to_tuple():
    a = Variable("a")
    b = Variable("b")
    node = Multiply(Add(a, Constant(2)), Sin(b))
    assert node.to_tuple() == ('*', ('+', ('var', 'a'), ('const', 2.0)), ('sin', ('var', 'b')))


def test_to_tuple_shares_repeated_nodes():
    a = Variable("a")
    s = Add(a, 1)
    t = Multiply(s, s).to_tuple()
    assert t[1] is t[2]


def test_from_tuple_round_trip():
    a = Variable("a")
    b = Variable("b")
    node = Divide(Power(a, b), Negate(Abs(Subtract(b, 3))))
    rebuilt = from_tuple(node.to_tuple())
    assert rebuilt is not node
    assert rebuilt.to_tuple() == node.to_tuple()
    env = {"a": 2.0, "b": 5.0}
    assert rebuilt.evaluate(env) == node.evaluate(env)


def test_from_tuple_interns_variables():
    node = from_tuple(('+', ('var', 'x'), ('*', ('var', 'x'), ('const', 3.0))))
    assert node.args[0] is node.args[1].args[0]


def test_from_tuple_unknown_kind():
    with pytest.raises(UnsupportedOperator) as err:
        from_tuple(('mod', ('var', 'x'), ('const', 2.0)))
    assert err.value.token == 'mod'


def test_repr():
    x = Variable("x")
    assert repr(x) == f"Expr(var='x', id={x.id})"
    node = x + 1
    assert repr(node) == f"Expr(+, id={node.id})"
    assert isinstance(node, Expr)


def test_from_tuple_wrong_operand_count():
    for t in [('sin', ('var', 'a'), ('var', 'b')), ('+', ('var', 'a')), ('const',)]:
        with pytest.raises(UnsupportedOperator):
            from_tuple(t)
