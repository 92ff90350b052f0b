# -*- coding: utf-8 -*-
# Copyright 2016-2018 Nate Bogdanowicz
"""Macro definitions and their expansion

Expansion follows the classic hideset ("blue paint") algorithm: every token produced by
expanding a macro remembers the names of the macros it came from, and is never expanded by any
of them again. This makes self-referential and mutually recursive macros terminate, while still
rescanning each substituted body together with the rest of the input.
"""
import logging
from collections import OrderedDict, deque

from .errors import MacroExpansionError, LexError
from .lexer import Token, lex_tokens, render, stringify
from . import expr

log = logging.getLogger(__name__)

_PASTE = object()  # Marker for a `##` between substitution segments


class MacroDef(object):
    """A single ``#define``

    ``params`` is None for an object-like macro and a list of parameter names (possibly ending
    with '...') for a function-like one. ``body`` holds the unexpanded replacement tokens.
    """
    def __init__(self, name, params=None, body=(), location=None, comment=None, raw_text=None):
        self.name = name
        self.params = None if params is None else list(params)
        self.body = list(body)
        self.location = location
        self.comment = comment
        self.raw_text = render(self.body) if raw_text is None else raw_text
        self.diagnostics = []

    @property
    def is_function_like(self):
        return self.params is not None

    @property
    def is_variadic(self):
        return bool(self.params) and self.params[-1] == '...'

    @property
    def named_params(self):
        return [p for p in (self.params or ()) if p != '...']

    @property
    def uses_params(self):
        """Whether the body refers to any parameter"""
        names = set(self.named_params)
        if self.is_variadic:
            names.add('__VA_ARGS__')
        return any(t.type is Token.IDENTIFIER and t.string in names for t in self.body)

    def depends_on(self):
        """Names of the identifiers in the body, which may be other macros"""
        params = set(self.named_params) | {'__VA_ARGS__'}
        return [t.string for t in self.body
                if t.type is Token.IDENTIFIER and t.string not in params]

    def body_str(self):
        return render(self.body)

    def __eq__(self, other):
        if not isinstance(other, MacroDef):
            return NotImplemented
        return (self.name == other.name and self.params == other.params and
                [t.string for t in self.body] == [t.string for t in other.body] and
                self.comment == other.comment)

    def __ne__(self, other):
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    __hash__ = None

    def __str__(self):
        if self.is_function_like:
            return '{}({})'.format(self.name, ', '.join(self.params))
        return self.name

    def __repr__(self):
        return '<MacroDef {} = {!r}>'.format(self, self.raw_text)


class MacroTable(object):
    """Name-indexed store of the macros defined so far, in definition order"""
    def __init__(self):
        self._macros = OrderedDict()
        self.generation = 0

    def define(self, name, params=None, body=(), location=None, comment=None, raw_text=None):
        """Define (or redefine) a macro, returning its new `MacroDef`

        `body` may be given as source text, which is then lexed.
        """
        if isinstance(body, str):
            raw_text = body.strip() if raw_text is None else raw_text
            body = lex_tokens(body, '<macro {}>'.format(name))
        return self.add(MacroDef(name, params, body, location, comment, raw_text))

    def add(self, macro):
        old = self._macros.pop(macro.name, None)
        if old is not None and old != macro:
            log.debug("Redefining macro {} from {!r} to {!r}".format(macro.name, old.raw_text,
                                                                    macro.raw_text))
        self._macros[macro.name] = macro
        self.generation += 1

        log.debug("Saving {}-macro {} = {}".format('func' if macro.is_function_like else 'obj',
                                                   macro, macro.body))
        return macro

    def get(self, name, default=None):
        return self._macros.get(name, default)

    def __getitem__(self, name):
        return self._macros[name]

    def __contains__(self, name):
        return name in self._macros

    def __iter__(self):
        return iter(self._macros.values())

    def __len__(self):
        return len(self._macros)


class MacroExpander(object):
    """Expands macro invocations using the definitions in a `MacroTable`

    Parameters
    ----------
    table : MacroTable
        The macros to expand. Later changes to the table are seen by the expander.
    depth_limit : int
        The maximum number of nested expansions a token may go through before a
        `MacroExpansionError` is raised.
    """
    def __init__(self, table, depth_limit=64):
        self.table = table
        self.depth_limit = depth_limit
        self._cache = {}
        self._cache_generation = table.generation

    def expand(self, name, args=None):
        """Fully expand the macro `name`, invoked with `args` if it is function-like

        Each arg may be a string or a list of tokens. An undefined name, or a function-like
        macro given no args, comes back as a single identifier token.
        """
        name_token = Token(Token.IDENTIFIER, name, fpath='<expand>')
        macro = self.table.get(name)
        if macro is None or (macro.is_function_like and args is None):
            return [name_token]

        if self._cache_generation != self.table.generation:
            self._cache.clear()
            self._cache_generation = self.table.generation

        if args is None:
            key = (name, None)
        elif macro.is_function_like and not macro.uses_params:
            key = (name, len(args))
        else:
            key = None

        if key is not None and key in self._cache:
            return [t.copy() for t in self._cache[key]]

        tokens = [name_token]
        if args is not None:
            tokens.append(Token(Token.PUNCTUATOR, '(', fpath='<expand>'))
            for i, arg in enumerate(args):
                arg = lex_tokens(arg, '<expand>') if isinstance(arg, str) else list(arg)
                if i:
                    tokens.append(Token(Token.PUNCTUATOR, ',', fpath='<expand>'))
                    if arg:
                        arg[0] = arg[0].copy(spaced=True)
                tokens.extend(arg)
            tokens.append(Token(Token.PUNCTUATOR, ')', fpath='<expand>'))

        result = self._expand(tokens)
        if key is not None:
            self._cache[key] = result
            result = [t.copy() for t in result]
        return result

    def expand_tokens(self, tokens):
        """Expand every macro invocation in a token sequence"""
        return self._expand(tokens)

    def expand_text(self, text, fpath='<string>'):
        return self._expand(lex_tokens(text, fpath))

    def evaluate(self, name_or_tokens, identifiers=None, type_names=()):
        """Expand a macro name, expression text or token list and evaluate it as a C constant"""
        if isinstance(name_or_tokens, str):
            tokens = self.expand_text(name_or_tokens)
        else:
            tokens = self.expand_tokens(name_or_tokens)
        return expr.evaluate(render(tokens), identifiers, type_names)

    def _expand(self, tokens):
        pending = deque(tokens)
        out = []

        while pending:
            token = pending.popleft()
            if token.type is not Token.IDENTIFIER or token.string in token.hideset:
                out.append(token)
                continue

            macro = self.table.get(token.string)
            if macro is None:
                out.append(token)
                continue

            if macro.is_function_like:
                if not pending or not pending[0].matches(Token.PUNCTUATOR, '('):
                    out.append(token)
                    continue
                args, rparen = self._collect_args(token, pending)
                hideset = (token.hideset & rparen.hideset) | {macro.name}
            else:
                args = None
                hideset = token.hideset | {macro.name}

            if len(hideset) > self.depth_limit:
                raise MacroExpansionError(token, "Expansion of macro '{}' exceeded the depth "
                                          "limit of {}".format(macro.name, self.depth_limit))

            body = self._substitute(macro, token, args, hideset)
            log.debug("Expanded {} to {}".format(macro, render(body)))
            pending.extendleft(reversed(body))

        return out

    @staticmethod
    def _collect_args(name_token, pending):
        """Pop a parenthesized argument list from `pending`, splitting it at top-level commas"""
        pending.popleft()  # '('
        args = [[]]
        depth = 1
        while True:
            if not pending:
                raise MacroExpansionError(name_token, "Unterminated argument list for macro "
                                          "'{}'".format(name_token.string))
            token = pending.popleft()
            if token.matches(Token.PUNCTUATOR, '('):
                depth += 1
            elif token.matches(Token.PUNCTUATOR, ')'):
                depth -= 1
                if depth == 0:
                    return args, token
            elif token.matches(Token.PUNCTUATOR, ',') and depth == 1:
                args.append([])
                continue
            args[-1].append(token)

    @staticmethod
    def _split_args(tokens):
        args = [[]]
        depth = 0
        for token in tokens:
            if token.matches(Token.PUNCTUATOR, '(') or token.matches(Token.PUNCTUATOR, '['):
                depth += 1
            elif token.matches(Token.PUNCTUATOR, ')') or token.matches(Token.PUNCTUATOR, ']'):
                depth -= 1
            elif token.matches(Token.PUNCTUATOR, ',') and depth == 0:
                args.append([])
                continue
            args[-1].append(token)
        return args

    def _bind_args(self, macro, name_token, args):
        """Map parameter names to their (unexpanded) argument tokens"""
        named = macro.named_params
        if not named and args == [[]]:
            args = []

        def count_ok(args):
            if macro.is_variadic:
                return len(args) >= len(named)
            return len(args) == len(named)

        if not count_ok(args):
            # An argument may itself expand to a comma-separated list
            joined = []
            for i, arg in enumerate(args):
                if i:
                    joined.append(Token(Token.PUNCTUATOR, ',', fpath=name_token.fpath))
                joined.extend(self._expand(arg))
            resplit = self._split_args(joined)
            if not named and resplit == [[]]:
                resplit = []
            if not count_ok(resplit):
                raise MacroExpansionError(name_token, "Macro '{}' takes {} arguments, got "
                                          "{}".format(macro.name, len(named), len(args)))
            args = resplit

        bound = dict(zip(named, args))
        if macro.is_variadic:
            va_args = []
            for i, arg in enumerate(args[len(named):]):
                if i:
                    va_args.append(Token(Token.PUNCTUATOR, ',', fpath=name_token.fpath))
                va_args.extend(arg)
            bound['__VA_ARGS__'] = va_args
        return bound

    def _substitute(self, macro, name_token, args, hideset):
        bound = {} if args is None else self._bind_args(macro, name_token, args)
        expanded_args = {}
        body = macro.body

        def is_paste(i):
            return 0 <= i < len(body) and body[i].matches(Token.PUNCTUATOR, '##')

        # Build the segments to be joined, applying `#` along the way
        segments = []
        i = 0
        while i < len(body):
            token = body[i]
            next_token = body[i+1] if i + 1 < len(body) else None

            if (token.matches(Token.PUNCTUATOR, '#') and next_token is not None and
                    next_token.type is Token.IDENTIFIER):
                if next_token.string in bound:
                    text = stringify(bound[next_token.string])
                else:
                    text = stringify(self._expand([next_token.copy(hideset=hideset)]))
                segments.append([token.copy(type=Token.STRING_CONST, string=text)])
                i += 2
                continue

            if token.matches(Token.PUNCTUATOR, '##'):
                segments.append(_PASTE)
            elif token.type is Token.IDENTIFIER and token.string in bound:
                if is_paste(i-1) or is_paste(i+1):
                    sub = list(bound[token.string])
                else:
                    if token.string not in expanded_args:
                        expanded_args[token.string] = self._expand(bound[token.string])
                    sub = list(expanded_args[token.string])
                if sub:
                    sub[0] = sub[0].copy(spaced=token.spaced)
                segments.append(sub)
            else:
                segments.append([token])
            i += 1

        # Join segments, pasting across `##`
        result = []
        pasting = False
        prev_empty = True
        for segment in segments:
            if segment is _PASTE:
                pasting = True
                continue

            if pasting and segment and not prev_empty:
                left = result.pop()
                result.extend(self._paste(left, segment[0]))
                result.extend(segment[1:])
            else:
                result.extend(segment)
            prev_empty = (prev_empty and not segment) if pasting else not segment
            pasting = False

        result = [t.copy(hideset=t.hideset | hideset, leading_comment=None,
                         trailing_comment=None) for t in result]
        if result:
            result[0].spaced = name_token.spaced
        return result

    @staticmethod
    def _paste(left, right):
        text = left.string + right.string
        log.debug("Macro concat produced '{}'".format(text))
        try:
            tokens = lex_tokens(text, left.fpath)
        except LexError:
            tokens = []

        if len(tokens) != 1 or tokens[0].string != text:
            log.debug("Pasting '{}' and '{}' does not give a valid token".format(left.string,
                                                                               right.string))
            return [left, right]
        return [left.copy(type=tokens[0].type, string=text)]
