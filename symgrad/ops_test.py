import unittest

from symgrad.engine import Op, Variable
from symgrad.errors import UnsupportedFunction, UnsupportedOperator
from symgrad.ops import binary_operator, function, unary_operator


class Tests(unittest.TestCase):
    def test_binary_tokens(self):
        a = Variable("a")
        b = Variable("b")
        for token, op in [("+", Op.ADD), ("-", Op.SUB), ("*", Op.MUL), ("/", Op.DIV), ("^", Op.POW)]:
            node = binary_operator(token)(a, b)
            self.assertIs(node.op, op)
            self.assertEqual(node.args, (a, b))

    def test_unary_minus(self):
        a = Variable("a")
        self.assertIs(unary_operator("-")(a).op, Op.NEG)

    def test_functions(self):
        a = Variable("a")
        for name in ["sin", "cos", "tan", "log", "exp", "abs"]:
            self.assertEqual(function(name)(a).op.value, name)

    def test_sqrt_is_half_power(self):
        a = Variable("a")
        node = function("sqrt")(a)
        self.assertIs(node.op, Op.POW)
        self.assertIs(node.args[0], a)
        self.assertEqual(node.args[1].value, 0.5)

    def test_unknown_operator(self):
        with self.assertRaises(UnsupportedOperator) as err:
            binary_operator("%")
        self.assertEqual(err.exception.token, "%")
        with self.assertRaises(UnsupportedOperator):
            unary_operator("+")

    def test_unknown_function(self):
        with self.assertRaises(UnsupportedFunction) as err:
            function("sinh")
        self.assertEqual(err.exception.token, "sinh")
        self.assertIsInstance(err.exception, ValueError)
        # sign exists as a node but not as a front end function
        with self.assertRaises(UnsupportedFunction):
            function("sign")


if __name__ == "__main__":
    unittest.main()
