import math

from symgrad.autodiff import gradient


def central_difference(node, bindings, name, h=1e-6):
    """ (f(x+h) - f(x-h)) / 2h, bypassing the evaluation cache """
    x = bindings[name]
    forward = node.evaluate({**bindings, name: x + h}, use_cache=False)
    backward = node.evaluate({**bindings, name: x - h}, use_cache=False)
    return (forward - backward) / (2 * h)


def check_gradient(root, bindings, h=1e-6, tol=1e-4):
    """ compares every symbolic partial of root against a central difference

    Returns {name: (symbolic, numeric)} for the variables that disagree by
    more than tol, relative once the magnitudes exceed one.
    """
    mismatches = {}
    for name, derivative in gradient(root).items():
        symbolic = derivative.evaluate(bindings, use_cache=False)
        numeric = central_difference(root, bindings, name, h)
        scale = max(1.0, abs(symbolic), abs(numeric))
        if not math.isclose(symbolic, numeric, rel_tol=0.0, abs_tol=tol * scale):
            mismatches[name] = (symbolic, numeric)
    return mismatches
