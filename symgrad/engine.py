import itertools
import math
from enum import Enum

from symgrad.errors import UnsupportedOperator

_ids = itertools.count()


def next_id():
    return next(_ids)


class Op(Enum):
    CONST = 'const'
    VAR = 'var'
    # unary
    NEG = 'neg'
    SIN = 'sin'
    COS = 'cos'
    TAN = 'tan'
    LOG = 'log'
    EXP = 'exp'
    SIGN = 'sign'
    ABS = 'abs'
    # binary
    ADD = '+'
    SUB = '-'
    MUL = '*'
    DIV = '/'
    POW = '^'


LEAF_OPS = frozenset((Op.CONST, Op.VAR))
UNARY_OPS = frozenset((Op.NEG, Op.SIN, Op.COS, Op.TAN, Op.LOG, Op.EXP, Op.SIGN, Op.ABS))
BINARY_OPS = frozenset((Op.ADD, Op.SUB, Op.MUL, Op.DIV, Op.POW))


def arity(op):
    if op in LEAF_OPS:
        return 0
    if op in UNARY_OPS:
        return 1
    return 2


def format_number(value):
    if math.isfinite(value) and value == int(value) and abs(value) < 1e16:
        return str(int(value))
    return repr(value)


class Expr:
    """ a single node of a scalar expression graph

    Nodes never change after construction. Two nodes built separately are
    distinct even when they look the same: `id` is what differentiation and
    evaluation caching key on.
    """
    __slots__ = ("id", "op", "args", "data", "__weakref__")

    def __init__(self, op, args=(), data=None):
        args = tuple(args)
        assert len(args) == arity(op), f"{op.value} takes {arity(op)} operands, got {len(args)}"
        object.__setattr__(self, "id", next_id())
        object.__setattr__(self, "op", op)
        object.__setattr__(self, "args", args)
        # the constant's value or the variable's name, for the leaves
        object.__setattr__(self, "data", data)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name):
        raise AttributeError(f"{type(self).__name__} is immutable")

    @property
    def a(self):
        return self.args[0]

    @property
    def b(self):
        return self.args[1]

    @property
    def value(self):
        assert self.op is Op.CONST, "only constants carry a value"
        return self.data

    @property
    def name(self):
        assert self.op is Op.VAR, "only variables carry a name"
        return self.data

    def operands(self):
        return self.args

    def local_gradient_rules(self):
        """ one function per operand mapping the upstream gradient
        expression to that operand's chain-rule contribution """
        op = self.op
        if op in LEAF_OPS:
            return ()
        a = self.args[0]

        if op is Op.NEG:
            return (lambda g: Negate(g),)
        if op is Op.SIN:
            return (lambda g: Multiply(Cos(a), g),)
        if op is Op.COS:
            return (lambda g: Multiply(Negate(Sin(a)), g),)
        if op is Op.TAN:
            return (lambda g: Divide(g, Power(Cos(a), Constant(2))),)
        if op is Op.LOG:
            return (lambda g: Divide(g, a),)
        if op is Op.EXP:
            # d(e^a)/da is the node itself
            return (lambda g: Multiply(self, g),)
        if op is Op.SIGN:
            # zero everywhere it is defined
            return (lambda g: Constant(0),)
        if op is Op.ABS:
            return (lambda g: Multiply(Sign(a), g),)

        b = self.args[1]
        if op is Op.ADD:
            return (lambda g: g, lambda g: g)
        if op is Op.SUB:
            return (lambda g: g, lambda g: Negate(g))
        if op is Op.MUL:
            return (lambda g: Multiply(b, g), lambda g: Multiply(a, g))
        if op is Op.DIV:
            return (
                lambda g: Divide(g, b),
                lambda g: Multiply(Divide(Negate(a), Power(b, Constant(2))), g),
            )
        if op is Op.POW:
            return (
                lambda g: Multiply(Multiply(b, Power(a, Subtract(b, Constant(1)))), g),
                lambda g: Multiply(Multiply(Power(a, b), Log(a)), g),
            )
        raise NotImplementedError(f"no gradient rules for {op}")

    def evaluate(self, bindings, use_cache=True, cache=None):
        from symgrad.cache import get_default_cache
        if cache is None:
            cache = get_default_cache()
        return cache.evaluate(self, bindings, use_cache=use_cache)

    def to_string(self):
        op = self.op
        if op is Op.CONST:
            return format_number(self.data)
        if op is Op.VAR:
            return self.data
        if op is Op.NEG:
            return f"(-{self.args[0].to_string()})"
        if op in UNARY_OPS:
            return f"{op.value}({self.args[0].to_string()})"
        return f"({self.args[0].to_string()} {op.value} {self.args[1].to_string()})"

    def to_tuple(self, _memo=None):
        """ canonical structural form: ('const', value), ('var', name) or
        (kind, *operand_tuples). Shared nodes map to the same tuple object. """
        if _memo is None:
            _memo = {}
        if self.id in _memo:
            return _memo[self.id]
        if self.op in LEAF_OPS:
            out = (self.op.value, self.data)
        else:
            out = (self.op.value,) + tuple(arg.to_tuple(_memo) for arg in self.args)
        _memo[self.id] = out
        return out

    # python operators build new nodes

    def __add__(self, other):
        return Add(self, other)

    def __radd__(self, other): # other + self
        return Add(other, self)

    def __sub__(self, other):
        return Subtract(self, other)

    def __rsub__(self, other): # other - self
        return Subtract(other, self)

    def __mul__(self, other):
        return Multiply(self, other)

    def __rmul__(self, other): # other * self
        return Multiply(other, self)

    def __truediv__(self, other):
        return Divide(self, other)

    def __rtruediv__(self, other): # other / self
        return Divide(other, self)

    def __pow__(self, other):
        return Power(self, other)

    def __rpow__(self, other): # other ** self
        return Power(other, self)

    def __neg__(self):
        return Negate(self)

    def __abs__(self):
        return Abs(self)

    def sin(self):
        return Sin(self)

    def cos(self):
        return Cos(self)

    def tan(self):
        return Tan(self)

    def log(self):
        return Log(self)

    def exp(self):
        return Exp(self)

    def sign(self):
        return Sign(self)

    def sqrt(self):
        return sqrt(self)

    def __str__(self):
        return self.to_string()

    def __repr__(self):
        if self.op in LEAF_OPS:
            return f"Expr({self.op.value}={self.data!r}, id={self.id})"
        return f"Expr({self.op.value}, id={self.id})"


def lift(x):
    if isinstance(x, Expr):
        return x
    if isinstance(x, (int, float)) and not isinstance(x, bool):
        return Constant(x)
    raise TypeError(f"can not use {type(x).__name__} as an expression")


def Constant(value):
    return Expr(Op.CONST, data=float(value))


def Variable(name):
    assert isinstance(name, str) and name, "variable names are non-empty strings"
    return Expr(Op.VAR, data=name)


def Negate(a):
    return Expr(Op.NEG, (lift(a),))


def Sin(a):
    return Expr(Op.SIN, (lift(a),))


def Cos(a):
    return Expr(Op.COS, (lift(a),))


def Tan(a):
    return Expr(Op.TAN, (lift(a),))


def Log(a):
    return Expr(Op.LOG, (lift(a),))


def Exp(a):
    return Expr(Op.EXP, (lift(a),))


def Sign(a):
    return Expr(Op.SIGN, (lift(a),))


def Abs(a):
    return Expr(Op.ABS, (lift(a),))


def Add(a, b):
    return Expr(Op.ADD, (lift(a), lift(b)))


def Subtract(a, b):
    return Expr(Op.SUB, (lift(a), lift(b)))


def Multiply(a, b):
    return Expr(Op.MUL, (lift(a), lift(b)))


def Divide(a, b):
    return Expr(Op.DIV, (lift(a), lift(b)))


def Power(a, b):
    return Expr(Op.POW, (lift(a), lift(b)))


def sqrt(a):
    return Power(a, Constant(0.5))


def from_tuple(t, variables=None):
    """ rebuild a graph from its canonical tuple form

    Every occurrence of a variable name becomes the same Variable node, and a
    tuple object that appears more than once becomes one shared node.
    """
    if variables is None:
        variables = {}
    memo = {}

    def build(t):
        key = id(t)
        if key in memo:
            return memo[key]
        try:
            op = Op(t[0])
        except ValueError:
            raise UnsupportedOperator(t[0]) from None
        if len(t) - 1 != (1 if op in LEAF_OPS else arity(op)):
            raise UnsupportedOperator(f"{t[0]}/{len(t) - 1}")
        if op is Op.CONST:
            out = Constant(t[1])
        elif op is Op.VAR:
            if t[1] not in variables:
                variables[t[1]] = Variable(t[1])
            out = variables[t[1]]
        else:
            out = Expr(op, tuple(build(arg) for arg in t[1:]))
        memo[key] = out
        return out

    return build(t)
