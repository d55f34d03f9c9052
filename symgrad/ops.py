"""Operator and function tokens a front end may hand over.

Whatever turns formula text into a graph looks tokens up here instead of
picking constructors itself, so every front end agrees on the supported set.
"""
from symgrad.engine import (
    Abs, Add, Cos, Divide, Exp, Log, Multiply, Negate, Power, Sin, Subtract,
    Tan, sqrt,
)
from symgrad.errors import UnsupportedFunction, UnsupportedOperator

BINARY_OPS = {
    '+': Add,
    '-': Subtract,
    '*': Multiply,
    '/': Divide,
    '^': Power,
}

UNARY_OPS = {
    '-': Negate,
}

FUNCTIONS = {
    'sin': Sin,
    'cos': Cos,
    'tan': Tan,
    'log': Log,
    'sqrt': sqrt,
    'exp': Exp,
    'abs': Abs,
}


def binary_operator(token):
    try:
        return BINARY_OPS[token]
    except KeyError:
        raise UnsupportedOperator(token) from None


def unary_operator(token):
    try:
        return UNARY_OPS[token]
    except KeyError:
        raise UnsupportedOperator(token) from None


def function(name):
    try:
        return FUNCTIONS[name]
    except KeyError:
        raise UnsupportedFunction(name) from None
