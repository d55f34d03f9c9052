import importlib.util
import logging
import math
import os
import sysconfig
import tempfile

import numpy as np
from setuptools import Extension, setup

from symgrad.autodiff import collect_variables
from symgrad.errors import UndefinedVariable, UnsupportedOperator

logger = logging.getLogger(__name__)

PY_FUNCTIONS = {
    'neg': np.negative,
    'sin': np.sin,
    'cos': np.cos,
    'tan': np.tan,
    'log': np.log,
    'exp': np.exp,
    'sign': np.sign,
    'abs': np.abs,
    '+': np.add,
    '-': np.subtract,
    '*': np.multiply,
    '/': np.true_divide,
    '^': np.power,
}

CPP_UNARY = {
    'neg': '-{}',
    'sin': 'std::sin({})',
    'cos': 'std::cos({})',
    'tan': 'std::tan({})',
    'log': 'std::log({})',
    'exp': 'std::exp({})',
    'sign': 'sign({})',
    'abs': 'std::fabs({})',
}

CPP_BINARY = {
    '+': '{} + {}',
    '-': '{} - {}',
    '*': '{} * {}',
    '/': '{} / {}',
    '^': 'std::pow({}, {})',
}


def linearize(t):
    """ flattens a canonical tuple into straight-line instructions

    Each instruction is (kind, payload) where payload is the constant, the
    variable name, or the indices of earlier instructions. A tuple object
    that occurs several times is emitted once.
    """
    code = []
    memo = {}

    def emit(t):
        if id(t) in memo:
            return memo[id(t)]
        kind = t[0]
        if kind in ('const', 'var'):
            code.append((kind, t[1]))
        elif kind in PY_FUNCTIONS:
            code.append((kind, tuple(emit(arg) for arg in t[1:])))
        else:
            raise UnsupportedOperator(kind)
        memo[id(t)] = len(code) - 1
        return memo[id(t)]

    emit(t)
    return code


def default_argnames(node):
    return sorted(collect_variables(node))


def check_argnames(argnames):
    argnames = tuple(argnames)
    duplicates = sorted({argname for argname in argnames if argnames.count(argname) > 1})
    if duplicates:
        raise ValueError(f"duplicate argument names: {', '.join(duplicates)}")
    return argnames


def compile_expression(node, argnames=None):
    """ builds a python function f(*values) that evaluates node, taking
    values in argnames order """
    if argnames is None:
        argnames = default_argnames(node)
    argnames = check_argnames(argnames)
    index = {argname: i for i, argname in enumerate(argnames)}

    # each step reads earlier slots (or the inputs) and fills the next slot
    steps = []
    for kind, payload in linearize(node.to_tuple()):
        if kind == 'const':
            steps.append((kind, None, np.float64(payload)))
        elif kind == 'var':
            if payload not in index:
                raise UndefinedVariable(payload)
            steps.append((kind, None, index[payload]))
        else:
            steps.append((kind, PY_FUNCTIONS[kind], payload))
    logger.debug("compiled %d steps over %s", len(steps), argnames)

    def fn(*values):
        if len(values) != len(argnames):
            raise TypeError(f"expected {len(argnames)} values, got {len(values)}")
        slots = []
        with np.errstate(all="ignore"):
            for kind, func, payload in steps:
                if kind == 'const':
                    slots.append(payload)
                elif kind == 'var':
                    slots.append(np.float64(values[payload]))
                else:
                    slots.append(func(*(slots[j] for j in payload)))
        return float(slots[-1])

    fn.argnames = argnames
    return fn


def _cpp_constant(value):
    if math.isnan(value):
        return "NAN"
    if math.isinf(value):
        return "HUGE_VAL" if value > 0 else "-HUGE_VAL"
    return repr(value)


def to_cpp_source(node, argnames, name="expr"):
    argnames = check_argnames(argnames)
    index = {argname: i for i, argname in enumerate(argnames)}
    result = [f"double {name}(const double* input) {{"]
    for i, (kind, payload) in enumerate(linearize(node.to_tuple())):
        if kind == 'const':
            rhs = _cpp_constant(payload)
        elif kind == 'var':
            if payload not in index:
                raise UndefinedVariable(payload)
            rhs = f"input[{index[payload]}]"
        elif kind in CPP_UNARY:
            rhs = CPP_UNARY[kind].format(*(f"t{j}" for j in payload))
        else:
            rhs = CPP_BINARY[kind].format(*(f"t{j}" for j in payload))
        result.append(f"const double t{i} = {rhs};")
    result.append(f"return t{i};")
    result.append("}")
    return result


def make_extension(node, argnames=None, name="expr", extra_compile_args=None):
    """ compiles node into a CPython extension module and loads it

    The module exposes one function, `name`, taking a list of floats in
    argnames order.
    """
    if argnames is None:
        argnames = default_argnames(node)
    argnames = check_argnames(argnames)
    nin = len(argnames)
    with tempfile.TemporaryDirectory() as dir_path:
        source_dir = f"{dir_path}/src"
        build_dir = f"{dir_path}/build"
        os.makedirs(source_dir)
        os.makedirs(build_dir)
        file_path = f"{source_dir}/{name}.cpp"
        with open(file_path, "w+") as f:
            print(
                """\
#include <cmath>

static double sign(double x) {
    return x > 0 ? 1.0 : x < 0 ? -1.0 : x;
}
            """,
                file=f,
            )
            print("\n".join(to_cpp_source(node, argnames, f"{name}_impl")), file=f)
            print(
                f"""
#include <Python.h>

    extern "C" {{
    PyObject* {name}_wrapper(PyObject* module, PyObject* obj) {{
          if (!PyList_CheckExact(obj)) {{
                PyErr_Format(PyExc_TypeError, "expected list");
                return nullptr;
          }}
          if (PyList_Size(obj) != {nin}) {{
                PyErr_Format(PyExc_TypeError, "expected list of size {nin}");
                return nullptr;
          }}
          double input[{max(nin, 1)}];
          for (int i = 0; i < {nin}; i++) {{
            PyObject* item_obj = PyList_GetItem(obj, i);
            double item_double = PyFloat_AsDouble(item_obj);
            if (item_double == -1.0 && PyErr_Occurred()) {{
                return nullptr;
            }}
            input[i] = item_double;
          }}
          return PyFloat_FromDouble({name}_impl(input));
    }}

    static PyMethodDef {name}_methods[] = {{
          {{ "{name}", {name}_wrapper, METH_O, "doc" }},
          {{ nullptr, nullptr }},
    }};

    // clang-format off
    static struct PyModuleDef {name}module = {{
        PyModuleDef_HEAD_INIT,
        "{name}",
        "doc",
        -1,
        {name}_methods,
        NULL,
        NULL,
        NULL,
        NULL
    }};
    // clang-format on

    PyObject* PyInit_{name}() {{
        PyObject* m = PyState_FindModule(&{name}module);
        if (m != NULL) {{
            return m;
        }}
        return PyModule_Create(&{name}module);
    }}
    }}
            """,
                file=f,
            )

        logger.info("C++ file is at %s", file_path)
        if extra_compile_args is None:
            extra_compile_args = (sysconfig.get_config_var('CFLAGS') or '').split()
            extra_compile_args.append("-O2")
        ext = Extension(name=name, sources=[file_path], extra_compile_args=extra_compile_args)
        setup(
            name=name,
            ext_modules=[ext],
            script_args=["--quiet", "build_ext", "--build-temp", build_dir],
            options={"build_ext": {"build_lib": source_dir}},
        )
        libs = [p for p in os.listdir(source_dir) if p.startswith(name) and not p.endswith(".cpp")]
        assert len(libs) == 1, f"expected one built library, found {libs}"
        lib_file = f"{source_dir}/{libs[0]}"
        logger.debug("loading %s", lib_file)
        spec = importlib.util.spec_from_file_location(name, lib_file)
        compiled = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(compiled)
        return compiled
