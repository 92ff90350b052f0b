# -*- coding: utf-8 -*-
# Copyright 2016-2018 Nate Bogdanowicz
"""The language-neutral model of a header's API

Type references (`Primitive`, `Named`, `Pointer`, `Array`, `FunctionPointer`, `FunctionType`,
`TagRef`, and inline `RecordDef`/`EnumDef`) describe types. Declarations (`TypedefDef`,
`RecordDef`, `EnumDef`, `FunctionDecl`, `VariableDecl`) and macros are collected in a
`SymbolTable`. All nodes compare structurally; source locations and diagnostics are not
part of that comparison.
"""
import logging
from collections import OrderedDict

from .macros import MacroTable, MacroExpander, MacroDef

log = logging.getLogger(__name__)

SIGN_WORDS = ('signed', 'unsigned')
SIZE_WORDS = ('short', 'long')
PRIMITIVE_WORDS = ('void', 'char', 'int', 'float', 'double', '_Bool', '_Complex') + \
    SIGN_WORDS + SIZE_WORDS


class Node(object):
    _fields = ()

    def __eq__(self, other):
        if type(self) is not type(other):
            return False
        return all(getattr(self, name) == getattr(other, name) for name in self._fields)

    def __ne__(self, other):
        return not self.__eq__(other)

    __hash__ = None

    def __repr__(self):
        args = ', '.join('{}={!r}'.format(name, getattr(self, name)) for name in self._fields)
        return '{}({})'.format(type(self).__name__, args)


def _with_quals(qualifiers, text):
    return ' '.join(tuple(qualifiers) + (text,))


class Primitive(Node):
    """A built-in type such as ``unsigned long int``"""
    _fields = ('name', 'qualifiers')

    def __init__(self, name, qualifiers=()):
        self.name = name
        self.qualifiers = tuple(qualifiers)

    @classmethod
    def from_words(cls, words, qualifiers=()):
        """Build a primitive from its specifier words, normalizing their order

        ``long unsigned`` and ``unsigned long`` both become 'unsigned long'. 'int' is implied
        only when there is nothing but a sign word (``unsigned`` is 'unsigned int').
        """
        sign = [w for w in SIGN_WORDS if w in words]
        sizes = [w for w in words if w in SIZE_WORDS]
        base = [w for w in words if w not in SIGN_WORDS and w not in SIZE_WORDS]
        if not base and not sizes:
            base = ['int']
        return cls(' '.join(sign + sizes + base), qualifiers)

    def __str__(self):
        return _with_quals(self.qualifiers, self.name)


class Named(Node):
    """A reference to a typedef name"""
    _fields = ('name', 'qualifiers')

    def __init__(self, name, qualifiers=()):
        self.name = name
        self.qualifiers = tuple(qualifiers)

    def __str__(self):
        return _with_quals(self.qualifiers, self.name)


class TagRef(Node):
    """A reference to a struct, union or enum by its tag"""
    _fields = ('kind', 'name', 'qualifiers')

    def __init__(self, kind, name, qualifiers=()):
        self.kind = kind
        self.name = name
        self.qualifiers = tuple(qualifiers)

    def __str__(self):
        return _with_quals(self.qualifiers, '{} {}'.format(self.kind, self.name))


class Pointer(Node):
    _fields = ('inner', 'depth', 'qualifiers')

    def __init__(self, inner, depth=1, qualifiers=()):
        if depth < 1:
            raise ValueError("Pointer depth must be at least 1")
        self.inner = inner
        self.depth = depth
        self.qualifiers = tuple(qualifiers)

    def __str__(self):
        text = '{}{}'.format(self.inner, '*' * self.depth)
        return ' '.join((text,) + self.qualifiers)


class Array(Node):
    """A fixed-size (or incomplete) array

    ``size`` is the evaluated element count, or None if it couldn't be evaluated.
    ``size_expr`` is the size as written, or None for an incomplete array (``[]``).
    """
    _fields = ('inner', 'size', 'size_expr')

    def __init__(self, inner, size=None, size_expr=None):
        self.inner = inner
        self.size = size
        self.size_expr = size_expr

    def __str__(self):
        return '{}[{}]'.format(self.inner, '' if self.size_expr is None else self.size_expr)


class Param(Node):
    _fields = ('name', 'type')

    def __init__(self, name, type):
        self.name = name
        self.type = type

    def __str__(self):
        return str(self.type) if self.name is None else '{} {}'.format(self.type, self.name)


class _Signature(Node):
    _fields = ('return_type', 'params', 'variadic', 'has_prototype')

    def __init__(self, return_type, params=(), variadic=False, has_prototype=True):
        self.return_type = return_type
        self.params = list(params)
        self.variadic = variadic
        self.has_prototype = has_prototype

    def param_str(self):
        params = [str(p) for p in self.params]
        if self.variadic:
            params.append('...')
        if not params and self.has_prototype:
            params = ['void']
        return ', '.join(params)


class FunctionType(_Signature):
    """A (non-pointer) function type, as in ``typedef void (fn)(int);``"""
    def __str__(self):
        return '{}({})'.format(self.return_type, self.param_str())


class FunctionPointer(_Signature):
    def __str__(self):
        return '{} (*)({})'.format(self.return_type, self.param_str())


def make_pointer(inner, qualifiers=()):
    """Wrap `inner` in one more level of pointer

    A pointer to a function type becomes a `FunctionPointer`. Pointer levels are merged, so
    only the qualifiers of the outermost level are kept.
    """
    if isinstance(inner, FunctionType):
        return FunctionPointer(inner.return_type, inner.params, inner.variadic,
                               inner.has_prototype)
    elif isinstance(inner, Pointer):
        return Pointer(inner.inner, inner.depth + 1, qualifiers)
    return Pointer(inner, 1, qualifiers)


class Declaration(Node):
    """Base for everything with a source location, comment and diagnostics"""
    def __init__(self, location=None, comment=None, pragmas=()):
        self.location = location
        self.comment = comment
        self.pragmas = list(pragmas)
        self.diagnostics = []


class Field(Declaration):
    _fields = ('name', 'type', 'bit_width', 'reserved', 'comment', 'pragmas')

    def __init__(self, name, type, bit_width=None, reserved=False, **kwds):
        super(Field, self).__init__(**kwds)
        self.name = name
        self.type = type
        self.bit_width = bit_width
        self.reserved = reserved


class RecordDef(Declaration):
    """A struct or union; ``fields`` is None when it's only been forward-declared"""
    _fields = ('kind', 'name', 'fields', 'comment', 'pragmas')

    def __init__(self, kind, name=None, fields=None, **kwds):
        super(RecordDef, self).__init__(**kwds)
        self.kind = kind
        self.name = name
        self.fields = fields

    @property
    def is_complete(self):
        return self.fields is not None

    def field(self, name):
        for field in self.fields or ():
            if field.name == name:
                return field
        raise KeyError(name)

    def __str__(self):
        return '{} {}'.format(self.kind, self.name or '<anonymous>')


class Enumerator(Declaration):
    _fields = ('name', 'value_expr', 'value', 'comment')

    def __init__(self, name, value_expr=None, value=None, **kwds):
        super(Enumerator, self).__init__(**kwds)
        self.name = name
        self.value_expr = value_expr
        self.value = value


class EnumDef(Declaration):
    _fields = ('name', 'enumerators', 'comment', 'pragmas')
    kind = 'enum'

    def __init__(self, name=None, enumerators=None, **kwds):
        super(EnumDef, self).__init__(**kwds)
        self.name = name
        self.enumerators = enumerators

    @property
    def is_complete(self):
        return self.enumerators is not None

    def __str__(self):
        return 'enum {}'.format(self.name or '<anonymous>')


class FunctionDecl(Declaration):
    _fields = ('name', 'return_type', 'params', 'variadic', 'has_prototype', 'is_definition',
               'storage', 'comment', 'pragmas')

    def __init__(self, name, return_type, params=(), variadic=False, has_prototype=True,
                 is_definition=False, storage=(), **kwds):
        super(FunctionDecl, self).__init__(**kwds)
        self.name = name
        self.return_type = return_type
        self.params = list(params)
        self.variadic = variadic
        self.has_prototype = has_prototype
        self.is_definition = is_definition
        self.storage = tuple(storage)

    @property
    def type(self):
        return FunctionType(self.return_type, self.params, self.variadic, self.has_prototype)


class TypedefDef(Declaration):
    _fields = ('name', 'type', 'comment', 'pragmas')

    def __init__(self, name, type, **kwds):
        super(TypedefDef, self).__init__(**kwds)
        self.name = name
        self.type = type


class VariableDecl(Declaration):
    _fields = ('name', 'type', 'storage', 'comment', 'pragmas')

    def __init__(self, name, type, storage=(), **kwds):
        super(VariableDecl, self).__init__(**kwds)
        self.name = name
        self.type = type
        self.storage = tuple(storage)


class Pragma(Node):
    _fields = ('text',)

    def __init__(self, text, location=None):
        self.text = text
        self.location = location

    def __str__(self):
        return '#pragma {}'.format(self.text)


class SymbolTable(object):
    """Everything declared in a single header

    Ordinary names (typedefs, functions, variables, enum constants, macros) and tags live in
    separate namespaces, as in C. ``entries`` holds every declaration in source order.
    """
    def __init__(self, fpath='<string>', depth_limit=64):
        self.fpath = fpath
        self.macros = MacroTable()
        self.expander = MacroExpander(self.macros, depth_limit)
        self.entries = []
        self.typedefs = OrderedDict()
        self.tags = OrderedDict()
        self.functions = OrderedDict()
        self.variables = OrderedDict()
        self.enum_constants = OrderedDict()
        self.includes = []
        self.pragmas = []
        self.diagnostics = []

    def add(self, entry):
        self.entries.append(entry)
        if isinstance(entry, TypedefDef):
            self.typedefs[entry.name] = entry
        elif isinstance(entry, (RecordDef, EnumDef)):
            self.add_tag(entry)
        elif isinstance(entry, FunctionDecl):
            self.functions[entry.name] = entry
        elif isinstance(entry, VariableDecl):
            self.variables[entry.name] = entry
        elif isinstance(entry, MacroDef):
            if self.macros.get(entry.name) is not entry:
                self.macros.add(entry)
        log.debug("Added {!r}".format(entry))
        return entry

    def add_tag(self, tagged):
        """Register a struct/union/enum by its tag, never replacing a complete one"""
        if tagged.name is None:
            return
        existing = self.tags.get(tagged.name)
        if existing is not None and existing.is_complete and not tagged.is_complete:
            return
        self.tags[tagged.name] = tagged

    def add_enumerator(self, enumerator):
        self.enum_constants[enumerator.name] = enumerator

    def add_diagnostic(self, diagnostic, owner=None):
        self.diagnostics.append(diagnostic)
        if owner is not None:
            owner.diagnostics.append(diagnostic)

    def enum_values(self):
        return {name: e.value for name, e in self.enum_constants.items() if e.value is not None}

    def lookup(self, name):
        """Find an ordinary (non-tag) name, or return None"""
        for namespace in (self.typedefs, self.functions, self.variables, self.enum_constants):
            if name in namespace:
                return namespace[name]
        return self.macros.get(name)

    def lookup_tag(self, name):
        return self.tags.get(name)

    def resolve(self, typeref):
        """Follow typedef names and tag references to what they ultimately refer to

        Names that aren't defined in this header are returned as-is.
        """
        seen = set()
        while True:
            if isinstance(typeref, Named):
                if typeref.name in seen:
                    raise ValueError("Typedef cycle through '{}'".format(typeref.name))
                seen.add(typeref.name)
                typedef = self.typedefs.get(typeref.name)
                if typedef is None:
                    return typeref
                typeref = typedef.type
            elif isinstance(typeref, TagRef):
                tagged = self.tags.get(typeref.name)
                return typeref if tagged is None else tagged
            else:
                return typeref

    def evaluate_macro(self, name):
        """Expand the macro `name` and evaluate it as a C constant expression"""
        return self.expander.evaluate(name, self.enum_values(), self.typedefs.keys())

    def __eq__(self, other):
        if not isinstance(other, SymbolTable):
            return NotImplemented
        return (self.entries == other.entries and self.includes == other.includes and
                list(self.macros) == list(other.macros))

    def __ne__(self, other):
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    __hash__ = None

    def __repr__(self):
        return '<SymbolTable {} ({} entries)>'.format(self.fpath, len(self.entries))
