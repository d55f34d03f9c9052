import logging
import sys

from symgrad.autodiff import gradient
from symgrad.cache import EvalCache, set_default_cache
from symgrad.compiler import compile_expression
from symgrad.engine import Variable
from symgrad.numeric import check_gradient

BINDINGS = {
    "m1": 1.0, "m2": 1.5, "M": 2.0,
    "l1": 1.0, "l2": 0.5, "g": 9.81,
    "p1": 0.3, "p2": -0.2, "p3": 0.1,
    "q2": 0.4, "q3": -0.7,
}


def make_hamiltonian():
    m1, m2, M, l1, l2, g, p1, p2, p3, q2, q3 = (
        Variable(name) for name in ("m1", "m2", "M", "l1", "l2", "g", "p1", "p2", "p3", "q2", "q3")
    )
    c2 = q2.cos()
    c3 = q3.cos()
    inertia = (2 - c2*c2 - c3*c3)*m1 + M
    kinetic = (
        m1*2*((p3*c3)*(p2*c2) - l1*p1*((p2*c2) + (p3*c3)))
        + m1*(p2*p2*(c2*c2) + p3*p3*(c3*c3) + l1*p1*l1*p1)
        + inertia*(p2*p2 + p3*p3)
    ) / (2*l1*l1*m1*inertia)
    potential = g*(l1*m1*q2.cos() + l2*m2*q3.cos())
    return kinetic - potential


def main(argv):
    logging.basicConfig(level=logging.INFO)
    if "--no-cache" in argv[1:]:
        set_default_cache(EvalCache(enabled=False))

    H = make_hamiltonian()
    print(f"H: {H}")
    print(f"H = {H.evaluate(BINDINGS):.6f}")

    derivatives = gradient(H, ["q2", "q3", "p1", "p2", "p3"])
    for name, derivative in derivatives.items():
        value = derivative.evaluate(BINDINGS)
        print(f"dH/d{name} = {value:.6f}")

    dq2 = compile_expression(derivatives["q2"], argnames=sorted(BINDINGS))
    print(f"compiled dH/dq2 = {dq2(*(BINDINGS[n] for n in dq2.argnames)):.6f}")

    mismatches = check_gradient(H, BINDINGS)
    assert not mismatches, f"symbolic and numeric derivatives disagree: {mismatches}"


if __name__ == '__main__':
    main(sys.argv)
