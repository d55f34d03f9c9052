import math
import weakref

import numpy as np

from symgrad.engine import Op
from symgrad.errors import UndefinedVariable


UNARY_KERNELS = {
    Op.NEG: np.negative,
    Op.SIN: np.sin,
    Op.COS: np.cos,
    Op.TAN: np.tan,
    Op.LOG: np.log,
    Op.EXP: np.exp,
    Op.SIGN: np.sign,
    Op.ABS: np.abs,
}

BINARY_KERNELS = {
    Op.ADD: np.add,
    Op.SUB: np.subtract,
    Op.MUL: np.multiply,
    Op.DIV: np.true_divide,
    Op.POW: np.power,
}


def same_number(x, y):
    x = float(x)
    y = float(y)
    if math.isnan(x):
        return math.isnan(y)
    # 0.0 and -0.0 compare equal but 1/x tells them apart
    return x == y and math.copysign(1.0, x) == math.copysign(1.0, y)


def bindings_equal(left, right):
    """ same names bound to the same numbers, checked both ways """
    if left is right:
        return True
    if len(left) != len(right):
        return False
    for name, value in left.items():
        if name not in right or not same_number(value, right[name]):
            return False
    return True


def apply_op(node, args, bindings):
    """ one node's numeric rule given its operands' values """
    op = node.op
    if op is Op.CONST:
        return np.float64(node.data)
    if op is Op.VAR:
        try:
            return np.float64(bindings[node.data])
        except KeyError:
            raise UndefinedVariable(node.data) from None
    if op in UNARY_KERNELS:
        return UNARY_KERNELS[op](args[0])
    if op in BINARY_KERNELS:
        return BINARY_KERNELS[op](args[0], args[1])
    raise NotImplementedError(f"no kernel for {op}")


class EvalCache:
    """ remembers, per node id, the last bindings a node was evaluated with
    and the value it produced """

    def __init__(self, enabled=True):
        self.enabled = enabled
        self._entries = {}
        # one finalizer per live node, dropping its entry when the node dies
        self._finalizers = {}

    def __len__(self):
        return len(self._entries)

    def __contains__(self, node):
        return node.id in self._entries

    def clear(self):
        for finalizer in self._finalizers.values():
            finalizer.detach()
        self._finalizers.clear()
        self._entries.clear()

    def invalidate(self, node):
        finalizer = self._finalizers.pop(node.id, None)
        if finalizer is not None:
            finalizer.detach()
        self._entries.pop(node.id, None)

    def _forget(self, node_id):
        self._entries.pop(node_id, None)
        self._finalizers.pop(node_id, None)

    def lookup(self, node, bindings):
        entry = self._entries.get(node.id)
        if entry is None or not bindings_equal(entry[0], bindings):
            return None
        return entry[1]

    def evaluate(self, node, bindings, use_cache=True):
        use_cache = use_cache and self.enabled
        if use_cache:
            # one private copy shared by every entry stored during this call
            bindings = dict(bindings)
        with np.errstate(all="ignore"):
            return float(self._evaluate(node, bindings, use_cache))

    def _evaluate(self, node, bindings, use_cache):
        if use_cache:
            hit = self.lookup(node, bindings)
            if hit is not None:
                return hit
        args = [self._evaluate(arg, bindings, use_cache) for arg in node.args]
        value = apply_op(node, args, bindings)
        if use_cache:
            self._store(node, bindings, value)
        return value

    def _store(self, node, bindings, value):
        if node.id not in self._finalizers:
            self._finalizers[node.id] = weakref.finalize(node, _forget_node, weakref.ref(self), node.id)
        self._entries[node.id] = (bindings, value)


def _forget_node(cache_ref, node_id):
    cache = cache_ref()
    if cache is not None:
        cache._forget(node_id)


_default_cache = EvalCache()


def get_default_cache():
    return _default_cache


def set_default_cache(cache):
    global _default_cache
    assert isinstance(cache, EvalCache)
    _default_cache = cache
