# -*- coding: utf-8 -*-
# Copyright 2016-2018 Nate Bogdanowicz
"""Evaluation of C constant expressions

Expressions are parsed with pycparser by wrapping them in a dummy function, then the resulting
`c_ast` is walked directly. Any typedef names the expression uses (e.g. in a cast like
``(uint32_t)0``) must be declared first, or pycparser will choke on them.
"""
import re
import ast
import logging
import threading

import cffi
import cffi.commontypes
from pycparser import c_parser, c_generator, c_ast, plyparser

log = logging.getLogger(__name__)

COMMON_TYPES = set(cffi.commontypes.COMMON_TYPES)

UNOPS = {
    '+': lambda x: +x,
    '-': lambda x: -x,
    '!': lambda x: not x,
    '~': lambda x: ~x,
}
BINOPS = {
    '+': lambda x, y: x + y,
    '-': lambda x, y: x - y,
    '*': lambda x, y: x * y,
    '<<': lambda x, y: x << y,
    '>>': lambda x, y: x >> y,
    '|': lambda x, y: x | y,
    '&': lambda x, y: x & y,
    '^': lambda x, y: x ^ y,
    '==': lambda x, y: x == y,
    '!=': lambda x, y: x != y,
    '<': lambda x, y: x < y,
    '>': lambda x, y: x > y,
    '<=': lambda x, y: x <= y,
    '>=': lambda x, y: x >= y,
}

_local = threading.local()
_ffi = cffi.FFI()
_generator = c_generator.CGenerator()


class ConvertError(Exception):
    pass


def _get_cparser():
    # CParser instances are stateful, so each thread gets its own
    if not hasattr(_local, 'cparser'):
        _local.cparser = c_parser.CParser()
    return _local.cparser


def src_to_c_ast(source, type_names=()):
    """Convert C expression source str to a c_ast expression node"""
    if ';' in source:
        raise ConvertError("Only expressions are supported, not statements")

    fake_types = ''.join('typedef int {};\n'.format(name) for name in sorted(type_names))
    try:
        tree = _get_cparser().parse(fake_types + 'int __expr(void){' + source + ';}')
    except (plyparser.ParseError, AttributeError) as e:
        raise ConvertError("Could not parse expression '{}': {}".format(source, e))

    block_items = tree.ext[-1].body.block_items
    if not block_items:
        raise ConvertError("Empty expression")
    return block_items[0]


def evaluate(source, identifiers=None, type_names=()):
    """Evaluate a C constant expression

    Parameters
    ----------
    source : str
        The (already macro-expanded) expression text
    identifiers : dict, optional
        Values of the identifiers the expression may use, usually enum constants
    type_names : iterable of str
        Typedef names that may appear in casts or ``sizeof``. Names from cffi's
        ``COMMON_TYPES`` are recognized automatically.

    Returns
    -------
    int, float or str
    """
    identifiers = identifiers or {}
    names = set(re.findall(r'[A-Za-z_$][A-Za-z0-9_$]*', source))
    type_names = (set(type_names) | (names & COMMON_TYPES)) - set(identifiers)
    type_names &= names

    node = src_to_c_ast(source, type_names)
    val = _Evaluator(identifiers).visit(node)
    if isinstance(val, bool):
        val = int(val)
    log.debug("Evaluated '{}' to {!r}".format(source, val))
    return val


def _c_div(x, y):
    if isinstance(x, int) and isinstance(y, int):
        quotient = abs(x) // abs(y)
        return quotient if (x < 0) == (y < 0) else -quotient
    return x / y


def _c_mod(x, y):
    return x - y * _c_div(x, y)


class _Evaluator(object):
    def __init__(self, identifiers):
        self.identifiers = identifiers

    def visit(self, node):
        method = getattr(self, 'visit_' + type(node).__name__, None)
        if method is None:
            raise ConvertError("Unsupported expression node '{}'".format(type(node).__name__))
        return method(node)

    def visit_ID(self, node):
        try:
            return self.identifiers[node.name]
        except KeyError:
            raise ConvertError("Unknown identifier '{}'".format(node.name))

    def visit_Constant(self, const):
        if const.type == 'string':
            return self._literal(const.value)
        elif const.type == 'char':
            val = self._literal(const.value)
            if len(val) != 1:
                raise ConvertError("Unsupported char constant {}".format(const.value))
            return ord(val)
        elif const.type in ('float', 'double', 'long double'):
            return float(const.value.rstrip('FfLl'))
        elif const.type.endswith('int'):
            int_str = const.value.lower().rstrip('ul')
            if int_str.startswith('0x'):
                base = 16
            elif int_str.startswith('0b'):
                base = 2
            elif int_str.startswith('0') and len(int_str) > 1:
                base = 8
            else:
                base = 10
            return int(int_str, base)
        else:
            raise ConvertError("Unknown constant type '{}'".format(const.type))

    @staticmethod
    def _literal(value):
        try:
            return ast.literal_eval(value.lstrip('LuU8'))
        except (ValueError, SyntaxError):
            raise ConvertError("Unsupported literal {}".format(value))

    def visit_UnaryOp(self, node):
        if node.op == 'sizeof':
            type_str = _generator.visit(node.expr)
            log.debug("SIZEOF({})".format(type_str))
            try:
                return _ffi.sizeof(type_str)
            except (cffi.CDefError, cffi.FFIError, TypeError) as e:
                raise ConvertError("Can't take sizeof({}): {}".format(type_str, e))
        elif node.op in UNOPS:
            return UNOPS[node.op](self.visit(node.expr))
        raise ConvertError("Unknown unary op '{}'".format(node.op))

    def visit_BinaryOp(self, node):
        if node.op == '&&':
            return int(bool(self.visit(node.left)) and bool(self.visit(node.right)))
        elif node.op == '||':
            return int(bool(self.visit(node.left)) or bool(self.visit(node.right)))

        left_val = self.visit(node.left)
        right_val = self.visit(node.right)
        try:
            if node.op == '/':
                return _c_div(left_val, right_val)
            elif node.op == '%':
                return _c_mod(left_val, right_val)
            elif node.op in BINOPS:
                return BINOPS[node.op](left_val, right_val)
        except (ZeroDivisionError, TypeError, ValueError) as e:
            raise ConvertError("Can't evaluate '{}' operation: {}".format(node.op, e))
        raise ConvertError("Unknown binary op '{}'".format(node.op))

    def visit_TernaryOp(self, node):
        return self.visit(node.iftrue if self.visit(node.cond) else node.iffalse)

    def visit_ExprList(self, node):
        val = None
        for expr in node.exprs:
            val = self.visit(expr)
        return val

    def visit_Cast(self, node):
        val = self.visit(node.expr)
        type_str = _generator.visit(node.to_type)
        is_float = isinstance(node.to_type.type, c_ast.TypeDecl) and \
            any(name in ('float', 'double') for name in
                getattr(node.to_type.type.type, 'names', ()))
        py_type = float if is_float else int

        # Let cffi apply the C conversion rules (truncation, wraparound) where it knows the type
        try:
            return py_type(_ffi.cast(type_str, val))
        except (cffi.CDefError, cffi.FFIError, TypeError, ValueError, OverflowError):
            log.debug("cffi could not cast to '{}', converting directly".format(type_str))

        try:
            return py_type(val)
        except (TypeError, ValueError):
            raise ConvertError("Can't cast {!r} to '{}'".format(val, type_str))
