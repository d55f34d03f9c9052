import logging

from symgrad.engine import Add, Constant, Op

logger = logging.getLogger(__name__)


def walk(root):
    """ yields every node reachable from root exactly once """
    seen = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if node.id in seen:
            continue
        seen.add(node.id)
        yield node
        stack.extend(reversed(node.operands()))


def collect_variables(root):
    # a name bound to several Variable instances keeps whichever is seen last
    variables = {}
    for node in walk(root):
        if node.op is Op.VAR:
            variables[node.data] = node
    return variables


def all_derivative_pairs(root, seed=None):
    """ yields (node, contribution) for every root-to-node path

    A node reachable along several paths is yielded once per path, each time
    with that path's chain-rule product. The order is the pre-order of the
    recursive definition: the node itself, then everything below its first
    operand, then everything below its second.
    """
    if seed is None:
        seed = Constant(1)
    stack = [(root, seed)]
    while stack:
        node, grad = stack.pop()
        yield node, grad
        children = [(arg, rule(grad)) for arg, rule in zip(node.operands(), node.local_gradient_rules())]
        stack.extend(reversed(children))


def derivative_of(target, pairs):
    """ sums every contribution addressed to target itself """
    total = None
    for node, contribution in pairs:
        if node.id == target.id:
            total = contribution if total is None else Add(total, contribution)
    if total is None:
        return Constant(0)
    return total


def gradient(root, targets=None, seed=None):
    """ derivatives of root with respect to several targets in one pass

    Targets are nodes or variable names and default to every variable of
    root. The result maps each target as given to its derivative.
    """
    variables = None
    if targets is None:
        variables = collect_variables(root)
        targets = list(variables)
    else:
        targets = list(targets)

    keys_by_id = {}
    for target in targets:
        node = target
        if isinstance(target, str):
            if variables is None:
                variables = collect_variables(root)
            node = variables.get(target)
            if node is None:
                continue
        keys = keys_by_id.setdefault(node.id, [])
        if target not in keys:
            keys.append(target)

    totals = {}
    count = 0
    for node, contribution in all_derivative_pairs(root, seed):
        count += 1
        for key in keys_by_id.get(node.id, ()):
            total = totals.get(key)
            totals[key] = contribution if total is None else Add(total, contribution)
    logger.debug("gradient walked %d derivative pairs for %d targets", count, len(targets))

    return {target: totals.get(target) or Constant(0) for target in targets}
