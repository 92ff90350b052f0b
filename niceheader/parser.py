# -*- coding: utf-8 -*-
# Copyright 2016-2018 Nate Bogdanowicz
"""Declaration parser

`Parser` makes a single forward pass over a header's token stream with a few tokens of
lookahead. Directives are handled as they stream past: ``#define`` registers a macro,
``#pragma`` is recorded (and push/pop balance tracked), ``#include`` is noted, and
conditional directives are ignored so that every branch gets parsed. Macro names found in type
and declarator positions are expanded in place; expressions are kept as written and only
expanded in order to evaluate them.
"""
import warnings
import logging
from collections import OrderedDict

from .config import Config
from .errors import (ParseError, EndOfStreamError, MacroExpansionError, PragmaBalanceError,
                     PragmaBalanceWarning, Diagnostic)
from .expr import ConvertError
from .lexer import Token, Tokenizer, Directive, render
from .macros import MacroDef
from .model import (SymbolTable, Primitive, Named, TagRef, Array, Param, FunctionType,
                    Field, RecordDef, EnumDef, Enumerator, FunctionDecl, TypedefDef,
                    VariableDecl, Pragma, make_pointer, PRIMITIVE_WORDS)

log = logging.getLogger(__name__)

STORAGE_WORDS = {'extern', 'static', 'inline', '__inline', '__inline__', '__forceinline',
                 'register', 'auto', '_Thread_local', 'thread_local', '_Noreturn'}
QUALIFIER_WORDS = {'const', 'volatile', 'restrict', '__restrict', '__restrict__', '__const',
                   '_Atomic'}
ATTRIBUTE_WORDS = {'__attribute__', '__attribute', '__declspec', '__asm__', '__asm', 'asm',
                   '_Alignas', 'alignas', '__extension__'}
CALLING_CONVENTIONS = {'__cdecl', '_cdecl', '__stdcall', '_stdcall', '__fastcall', '__thiscall',
                       '__vectorcall', '__w64', '__ptr32', '__ptr64'}
TAG_WORDS = {'struct', 'union', 'enum'}
DECL_START_WORDS = {'typedef'} | TAG_WORDS | STORAGE_WORDS | QUALIFIER_WORDS | \
    set(PRIMITIVE_WORDS)
KEYWORDS = DECL_START_WORDS | ATTRIBUTE_WORDS | CALLING_CONVENTIONS

PUSH_WORDS = {'push', 'push_options', 'push_macro'}
POP_WORDS = {'pop', 'pop_options', 'pop_macro'}
IGNORED_DIRECTIVES = {'if', 'ifdef', 'ifndef', 'elif', 'elifdef', 'elifndef', 'else', 'endif',
                      'undef', 'error', 'warning', 'line', 'ident', 'sccs', ''}


class DeclSpec(object):
    """The declaration specifiers shared by all declarators of a declaration"""
    def __init__(self):
        self.base = None
        self.storage = []
        self.is_typedef = False
        self.defs = []  # Tagged definitions registered while parsing these specifiers


class Declarator(object):
    """A parsed declarator, which turns a base type into the declared type

    ``pointers`` holds one qualifier tuple per ``*``, ``suffixes`` the array and parameter-list
    suffixes in source order, and ``inner`` a parenthesized inner declarator.
    """
    def __init__(self, name_token=None, pointers=(), suffixes=(), inner=None):
        self.name_token = name_token
        self.pointers = list(pointers)
        self.suffixes = list(suffixes)
        self.inner = inner

    @property
    def name(self):
        if self.name_token is not None:
            return self.name_token.string
        elif self.inner is not None:
            return self.inner.name
        return None

    @property
    def location(self):
        if self.name_token is not None:
            return self.name_token.location
        elif self.inner is not None:
            return self.inner.location
        return None

    def apply(self, base):
        typ = base
        for qualifiers in self.pointers:
            typ = make_pointer(typ, qualifiers)
        for suffix in reversed(self.suffixes):
            typ = suffix(typ)
        return typ if self.inner is None else self.inner.apply(typ)


def _array_suffix(size, size_expr):
    def suffix(inner):
        return Array(inner, size, size_expr)
    return suffix


def _function_suffix(params, variadic, has_prototype):
    def suffix(return_type):
        return FunctionType(return_type, params, variadic, has_prototype)
    return suffix


class Parser(object):
    """Parses the declarations of a single header into a `SymbolTable`

    Parameters
    ----------
    source : str
        The header text
    fpath : str
        Identifies the header in locations and error messages
    config : Config, optional
    table : SymbolTable, optional
        Table to fill in. A new one is created by default.
    """
    def __init__(self, source, fpath='<string>', config=None, table=None):
        self.source = source
        self.fpath = fpath
        self.config = config or Config()
        if table is None:
            table = SymbolTable(fpath, self.config.macro_expansion_depth_limit)
        self.table = table
        self.expander = table.expander

        self._stream = None
        self._buffer = []
        self._decl_tokens = []
        self._last_good_offset = 0
        self._pending_pragmas = []
        self._diagnostics = []  # Recorded since the last declaration, awaiting an owner
        self._pragma_stacks = OrderedDict()
        self._extern_c_depth = 0

    def parse(self):
        self._stream = iter(Tokenizer(self.source, self.fpath))
        self._buffer = []

        while self._more():
            self._decl_tokens = []
            try:
                try:
                    self._parse_external_declaration()
                except EndOfStreamError:
                    last = self._decl_tokens[-1] if self._decl_tokens else None
                    raise self._error(last, "Unexpected end of input in the middle of a "
                                      "declaration")
            except ParseError as e:
                if not self.config.best_effort_resume_on_syntax_error:
                    raise
                log.warning("Skipping declaration: {}".format(e))
                self.table.add_diagnostic(e.to_diagnostic())
                self._diagnostics = []
                if not self._resync():
                    log.warning("No point to resume parsing from, giving up on the rest of "
                                "{}".format(self.fpath))
                    break
            else:
                if self._decl_tokens:
                    self._last_good_offset = max(self._last_good_offset,
                                                 self._decl_tokens[-1].span[1])

        self._check_unpopped_pragmas()
        log.info("Parsed {}: {} declarations, {} macros".format(
            self.fpath, len(self.table.entries), len(self.table.macros)))
        return self.table

    # Token stream

    def _fill(self, n):
        """Buffer at least `n` tokens, handling any directives on the way"""
        while len(self._buffer) < n:
            try:
                item = next(self._stream)
            except StopIteration:
                return False

            if isinstance(item, Directive):
                self._handle_directive(item)
            else:
                self._buffer.append(item)
        return True

    def _peek(self, n=0, expand=True):
        i = 0
        while True:
            if not self._fill(i + 1):
                raise EndOfStreamError()
            if expand and self._expand_at(i):
                continue
            if i == n:
                return self._buffer[i]
            i += 1

    def _more(self):
        try:
            self._peek()
        except EndOfStreamError:
            return False
        return True

    def _next(self, expand=True):
        token = self._peek(0, expand)
        self._buffer.pop(0)
        self._decl_tokens.append(token)
        return token

    def _accept(self, string, expand=True):
        token = self._peek(0, expand)
        if token.type in (Token.PUNCTUATOR, Token.IDENTIFIER) and token.string == string:
            return self._next(expand)
        return None

    def _expect(self, string, expand=True):
        token = self._peek(0, expand)
        if token.string != string:
            raise self._error(token, "Expected '{}', got '{}'".format(string, token.string))
        return self._next(expand)

    def _expand_at(self, i):
        """Expand the macro invocation starting at buffer index `i`, if there is one

        Returns True if the buffer was changed.
        """
        token = self._buffer[i]
        if token.type is not Token.IDENTIFIER or token.string in token.hideset:
            return False

        macro = self.table.macros.get(token.string)
        if macro is None:
            return False

        end = i
        if macro.is_function_like:
            if not self._fill(i + 2) or not self._buffer[i+1].matches(Token.PUNCTUATOR, '('):
                return False

            depth = 0
            end = i + 1
            while True:
                if not self._fill(end + 1):
                    error = MacroExpansionError(token, "Unterminated argument list for macro "
                                                "'{}'".format(token.string))
                    self._paint(i, macro, error)
                    return False
                t = self._buffer[end]
                if t.matches(Token.PUNCTUATOR, '('):
                    depth += 1
                elif t.matches(Token.PUNCTUATOR, ')'):
                    depth -= 1
                    if depth == 0:
                        break
                end += 1

        call = self._buffer[i:end+1]
        try:
            result = self.expander.expand_tokens(call)
        except MacroExpansionError as e:
            self._paint(i, macro, e)
            return False

        # Report locations at the invocation
        result = [t.copy(fpath=token.fpath, line=token.line, col=token.col, offset=token.offset)
                  for t in result]
        if result:
            result[0].spaced = token.spaced
            result[0].leading_comment = token.leading_comment
            result[-1].trailing_comment = call[-1].trailing_comment
        elif token.leading_comment and self._fill(end + 2):
            after = self._buffer[end+1]
            if after.leading_comment is None:
                self._buffer[end+1] = after.copy(leading_comment=token.leading_comment)

        self._buffer[i:end+1] = result
        return True

    def _paint(self, i, macro, error):
        """Keep the token at index `i` literally, recording why it wasn't expanded"""
        token = self._buffer[i]
        log.warning("Not expanding macro: {}".format(error))
        diagnostic = error.to_diagnostic()
        macro.diagnostics.append(diagnostic)
        self._add_diagnostic(diagnostic)
        self._buffer[i] = token.copy(hideset=token.hideset | {token.string})

    def _error(self, token, msg):
        return ParseError(token, msg, self._last_good_offset)

    def _warn(self, token, kind, msg, owner=None):
        log.warning("{} ({})".format(msg, token.location if token is not None else self.fpath))
        location = token.location if token is not None else None
        self._add_diagnostic(Diagnostic('warning', kind, msg, location), owner)

    def _add_diagnostic(self, diagnostic, owner=None):
        """Record a diagnostic, holding it for the declaration being parsed if no owner is given"""
        self.table.add_diagnostic(diagnostic, owner)
        if owner is None:
            self._diagnostics.append(diagnostic)

    def _claim_diagnostics(self, owners):
        """Attach the held diagnostics to `owners`"""
        if owners:
            for owner in owners:
                owner.diagnostics.extend(self._diagnostics)
            self._diagnostics = []

    def _resync(self):
        """Find a point to resume parsing from after an error"""
        for i, token in enumerate(self._decl_tokens[1:], 1):
            if token.matches(Token.PUNCTUATOR, ';'):
                self._buffer[0:0] = self._decl_tokens[i+1:]
                return True

        while True:
            try:
                token = self._next(expand=False)
            except EndOfStreamError:
                return False
            if token.matches(Token.PUNCTUATOR, ';'):
                return True

    def _comment_for(self, start):
        tokens = self._decl_tokens[start:]
        if not tokens:
            return None
        return tokens[0].leading_comment or tokens[-1].trailing_comment

    def _take_pragmas(self, token):
        taken, pending = [], []
        for pragma in self._pending_pragmas:
            (taken if pragma.location.offset < token.offset else pending).append(pragma)
        self._pending_pragmas = pending
        return taken

    # Directives

    def _handle_directive(self, directive):
        name = directive.name
        if name == 'define':
            comment = directive.leading_comment or directive.trailing_comment
            macro = MacroDef(directive.macro_name, directive.params, directive.body,
                             directive.name_token.location, comment, directive.raw_text)
            self.table.add(macro)
        elif name == 'pragma':
            self._handle_pragma(directive)
        elif name in ('include', 'include_next', 'import'):
            log.debug("Recording #{} {}".format(name, directive.text))
            self.table.includes.append(directive.text)
        elif name in IGNORED_DIRECTIVES:
            log.debug("Ignoring {!r}".format(directive))
        else:
            log.debug("Ignoring unknown directive {!r}".format(directive))

    def _handle_pragma(self, directive):
        pragma = Pragma(directive.text, directive.location)
        log.debug("Recording {}".format(pragma))
        self.table.pragmas.append(pragma)
        self._pending_pragmas.append(pragma)

        words = [t.string for t in directive.tokens if t.type is Token.IDENTIFIER]
        for i, word in enumerate(words):
            if word in PUSH_WORDS or word in POP_WORDS:
                family = word.split('_', 1)[1] if '_' in word else ''
                key = (tuple(words[:i]), family)
                if word in PUSH_WORDS:
                    self._pragma_stacks.setdefault(key, []).append(pragma)
                elif self._pragma_stacks.get(key):
                    self._pragma_stacks[key].pop()
                else:
                    self._pragma_mismatch(pragma, "'#pragma {}' has no matching "
                                          "push".format(pragma.text))
                break

    def _check_unpopped_pragmas(self):
        for stack in self._pragma_stacks.values():
            for pragma in stack:
                self._pragma_mismatch(pragma, "'#pragma {}' is never popped".format(pragma.text))
        self._pragma_stacks.clear()

    def _pragma_mismatch(self, pragma, msg):
        if self.config.treat_pragma_push_pop_as_fatal_on_mismatch:
            raise PragmaBalanceError(pragma.location, msg)

        warning = PragmaBalanceWarning(pragma.location, msg)
        log.warning(str(warning))
        warnings.warn(warning)
        self.table.add_diagnostic(warning.to_diagnostic())

    # Declarations

    def _parse_external_declaration(self):
        token = self._peek()
        if token.matches(Token.PUNCTUATOR, ';'):
            self._next()
        elif self._extern_c_depth and token.matches(Token.PUNCTUATOR, '}'):
            self._next()
            self._extern_c_depth -= 1
        elif token.matches(Token.IDENTIFIER, 'extern') and \
                self._peek(1).type is Token.STRING_CONST:
            self._next()
            self._next()
            if self._accept('{'):
                self._extern_c_depth += 1
        elif token.type is Token.IDENTIFIER and token.string in ('_Static_assert',
                                                                  'static_assert'):
            while not self._next(expand=False).matches(Token.PUNCTUATOR, ';'):
                pass
        else:
            self._parse_declaration()

    def _parse_declaration(self):
        first = self._peek()
        pragmas = self._take_pragmas(first)
        spec = self._parse_specifiers(top_level=True)

        declared = []
        if self._accept(';') is None and not self._missing_semicolon():
            while True:
                declarator = self._parse_declarator()
                if declarator.name is None:
                    token = self._peek()
                    raise self._error(token, "Expected a name to declare, got "
                                      "'{}'".format(token.string))
                typ = declarator.apply(spec.base)

                if isinstance(typ, FunctionType) and not spec.is_typedef and \
                        self._peek(expand=False).matches(Token.PUNCTUATOR, '{'):
                    self._skip_balanced('{', '}')
                    declared.append(self._make_declaration(spec, declarator, typ, True))
                    break

                self._skip_attributes()
                if self._accept('='):
                    self._collect_expression((',', ';'))
                declared.append(self._make_declaration(spec, declarator, typ))

                if self._accept(','):
                    continue
                elif self._accept(';') or self._missing_semicolon():
                    break
                token = self._peek()
                raise self._error(token, "Expected ';' after declaration of '{}', got "
                                  "'{}'".format(declarator.name, token.string))

        comment = self._comment_for(0)
        for decl in spec.defs + declared:
            decl.comment = comment
            decl.pragmas = list(pragmas)

        owners = spec.defs + declared
        if not declared and not spec.defs:
            base = spec.base
            kwds = dict(location=first.location, comment=comment, pragmas=pragmas)
            if isinstance(base, TagRef):
                # Forward declaration
                if base.kind == 'enum':
                    owners = [EnumDef(base.name, **kwds)]
                else:
                    owners = [RecordDef(base.kind, base.name, **kwds)]
                self.table.add(owners[0])
            elif isinstance(base, (RecordDef, EnumDef)):
                # Anonymous definition, e.g. an enum used only for its constants
                base.comment = comment
                base.pragmas = list(pragmas)
                self.table.add(base)
                owners = [base]
            else:
                self._warn(first, 'EmptyDeclaration', "Declaration declares nothing")

        self._claim_diagnostics(owners)
        self._diagnostics = []
        for decl in declared:
            self.table.add(decl)

    def _make_declaration(self, spec, declarator, typ, is_definition=False):
        kwds = dict(location=declarator.location)
        if spec.is_typedef:
            return TypedefDef(declarator.name, typ, **kwds)
        elif isinstance(typ, FunctionType):
            return FunctionDecl(declarator.name, typ.return_type, typ.params, typ.variadic,
                                typ.has_prototype, is_definition, spec.storage, **kwds)
        return VariableDecl(declarator.name, typ, spec.storage, **kwds)

    def _missing_semicolon(self):
        """Check for a declaration that runs straight into the next one"""
        token = self._peek()
        if token.type is Token.IDENTIFIER and token.string in DECL_START_WORDS:
            self._warn(token, 'MissingSemicolon', "Missing ';' before '{}'".format(token.string))
            return True
        return False

    def _parse_specifiers(self, top_level=False):
        spec = DeclSpec()
        qualifiers = []
        words = []
        name = None
        tagged = None

        while True:
            token = self._peek()
            if token.type is not Token.IDENTIFIER:
                break

            string = token.string
            has_base = bool(words) or name is not None or tagged is not None
            if has_base and (string == 'typedef' or string in STORAGE_WORDS):
                # Start of the next declaration, after a missing ';'
                break
            elif string == 'typedef':
                self._next()
                spec.is_typedef = True
            elif string in STORAGE_WORDS:
                spec.storage.append(self._next().string)
            elif string in QUALIFIER_WORDS:
                qualifiers.append(self._next().string)
            elif string in ATTRIBUTE_WORDS or string in CALLING_CONVENTIONS:
                self._skip_attributes()
            elif string in PRIMITIVE_WORDS and name is None and tagged is None:
                words.append(self._next().string)
            elif string in TAG_WORDS and not words and name is None and tagged is None:
                tagged = self._parse_tag_specifier(spec, top_level)
            elif not words and name is None and tagged is None:
                name = self._next().string
            else:
                break

        if name is not None:
            spec.base = Named(name, qualifiers)
        elif isinstance(tagged, TagRef):
            spec.base = TagRef(tagged.kind, tagged.name, qualifiers)
        elif tagged is not None:
            spec.base = tagged
        elif words or qualifiers or spec.storage or spec.is_typedef:
            spec.base = Primitive.from_words(words, qualifiers)
        else:
            token = self._peek()
            raise self._error(token, "Expected a declaration, got '{}'".format(token.string))
        return spec

    def _parse_tag_specifier(self, spec, top_level):
        keyword = self._next()
        kind = keyword.string
        self._skip_attributes()

        name = None
        if self._peek().type is Token.IDENTIFIER:
            name = self._next().string
            self._skip_attributes()

        if not self._peek().matches(Token.PUNCTUATOR, '{'):
            if name is None:
                token = self._peek()
                raise self._error(token, "Expected a tag name or '{{' after '{}', got "
                                  "'{}'".format(kind, token.string))
            if top_level and name not in self.table.tags:
                forward = EnumDef(name) if kind == 'enum' else RecordDef(kind, name)
                self.table.add_tag(forward)
            return TagRef(kind, name)

        if kind == 'enum':
            definition = EnumDef(name, self._parse_enum_body(), location=keyword.location)
        else:
            definition = RecordDef(kind, name, self._parse_record_body(),
                                   location=keyword.location)
        log.debug("Parsed definition of {}".format(definition))
        self._skip_attributes()

        if top_level and name is not None:
            self.table.add(definition)
            spec.defs.append(definition)
            return TagRef(kind, name)
        return definition

    def _parse_record_body(self):
        self._expect('{')
        fields = []
        while self._accept('}') is None:
            fields.extend(self._parse_field_declaration())
        return fields

    def _parse_field_declaration(self):
        start = len(self._decl_tokens)
        first = self._peek()
        if first.matches(Token.PUNCTUATOR, ';'):
            self._next()
            return []

        outer_diagnostics, self._diagnostics = self._diagnostics, []
        pragmas = self._take_pragmas(first)
        spec = self._parse_specifiers()
        fields = []

        if self._accept(';'):
            if isinstance(spec.base, RecordDef):
                # Anonymous struct/union member
                fields.append(Field(None, spec.base))
        else:
            while True:
                if self._accept(':'):
                    width = self._parse_bit_width(first)
                    fields.append(Field(None, spec.base, width, reserved=True))
                else:
                    declarator = self._parse_declarator()
                    if declarator.name is None:
                        token = self._peek()
                        raise self._error(token, "Expected a field name, got "
                                          "'{}'".format(token.string))
                    typ = declarator.apply(spec.base)
                    width = None
                    if self._accept(':'):
                        width = self._parse_bit_width(declarator.name_token or first)
                    self._skip_attributes()
                    fields.append(Field(declarator.name, typ, width))

                if self._accept(','):
                    continue
                self._expect(';')
                break

        comment = self._comment_for(start)
        for field in fields:
            field.comment = comment
            field.pragmas = list(pragmas)
            field.location = first.location
        self._claim_diagnostics(fields)
        self._diagnostics = outer_diagnostics + self._diagnostics
        return fields

    def _parse_bit_width(self, token):
        tokens = self._collect_expression((',', ';'))
        width = self._evaluate(tokens)
        if not isinstance(width, int) or width < 0:
            msg = "Invalid bitfield width '{}'".format(render(tokens))
            log.warning(msg)
            self._add_diagnostic(Diagnostic('error', 'InvalidBitfieldWidth', msg, token.location))
            return None
        return width

    def _parse_enum_body(self):
        self._expect('{')
        enumerators = []
        prev_value = -1

        while self._accept('}', expand=False) is None:
            start = len(self._decl_tokens)
            name_token = self._next(expand=False)
            if name_token.type is not Token.IDENTIFIER:
                raise self._error(name_token, "Expected an enumerator name, got "
                                  "'{}'".format(name_token.string))

            value_expr = None
            if self._accept('=', expand=False):
                tokens = self._collect_expression((',', '}'))
                value_expr = render(tokens)
                value = self._evaluate(tokens)
            elif prev_value is not None:
                value = prev_value + 1
            else:
                value = None
            self._accept(',', expand=False)

            enumerator = Enumerator(name_token.string, value_expr, location=name_token.location,
                                    comment=self._comment_for(start))
            if isinstance(value, int):
                enumerator.value = value
            else:
                self._warn(name_token, 'UnevaluatedEnumerator', "Could not evaluate value of "
                           "enumerator '{}'".format(name_token.string), enumerator)

            self.table.add_enumerator(enumerator)
            enumerators.append(enumerator)
            prev_value = enumerator.value
        return enumerators

    def _parse_declarator(self):
        self._skip_attributes()
        pointers = []
        while self._accept('*') or self._accept('^'):
            qualifiers = []
            while True:
                token = self._peek()
                if token.type is Token.IDENTIFIER and token.string in QUALIFIER_WORDS:
                    qualifiers.append(self._next().string)
                elif token.type is Token.IDENTIFIER and (token.string in ATTRIBUTE_WORDS or
                                                         token.string in CALLING_CONVENTIONS):
                    self._skip_attributes()
                else:
                    break
            pointers.append(tuple(qualifiers))

        name_token = None
        inner = None
        token = self._peek()
        if token.matches(Token.PUNCTUATOR, '(') and self._is_nested_declarator():
            self._next()
            inner = self._parse_declarator()
            self._expect(')')
        elif token.type is Token.IDENTIFIER and token.string not in KEYWORDS:
            name_token = self._next()

        suffixes = []
        while True:
            if self._accept('['):
                tokens = self._collect_expression((']',))
                self._expect(']', expand=False)
                if tokens:
                    size_expr = render(tokens)
                    size = self._evaluate(tokens)
                    if not isinstance(size, int):
                        log.debug("Could not evaluate array size '{}'".format(size_expr))
                        size = None
                else:
                    size_expr = size = None
                suffixes.append(_array_suffix(size, size_expr))
            elif self._accept('('):
                suffixes.append(_function_suffix(*self._parse_parameters()))
            else:
                break

        return Declarator(name_token, pointers, suffixes, inner)

    def _is_nested_declarator(self):
        """Whether the '(' up next starts a nested declarator rather than a parameter list"""
        token = self._peek(1)
        if token.type is Token.PUNCTUATOR:
            return token.string in ('*', '^', '(')
        elif token.type is Token.IDENTIFIER:
            if token.string in ATTRIBUTE_WORDS or token.string in CALLING_CONVENTIONS:
                return True
            if token.string in KEYWORDS or token.string in self.table.typedefs:
                return False
            return True
        return False

    def _parse_parameters(self):
        """Parse a parameter list, whose '(' was already consumed"""
        if self._accept(')'):
            return [], False, False

        if self._peek().matches(Token.IDENTIFIER, 'void') and \
                self._peek(1).matches(Token.PUNCTUATOR, ')'):
            self._next()
            self._next()
            return [], False, True

        params = []
        variadic = False
        while True:
            if self._accept('...'):
                variadic = True
                self._expect(')')
                break

            spec = self._parse_specifiers()
            declarator = self._parse_declarator()
            params.append(Param(declarator.name, declarator.apply(spec.base)))

            if self._accept(','):
                continue
            self._expect(')')
            break
        return params, variadic, True

    def _skip_attributes(self):
        while True:
            token = self._peek()
            if token.type is not Token.IDENTIFIER:
                return
            if token.string in ATTRIBUTE_WORDS:
                self._next()
                if self._peek(expand=False).matches(Token.PUNCTUATOR, '('):
                    self._skip_balanced('(', ')')
            elif token.string in CALLING_CONVENTIONS:
                self._next()
            else:
                return

    def _skip_balanced(self, open_str, close_str):
        self._expect(open_str, expand=False)
        depth = 1
        while depth:
            token = self._next(expand=False)
            if token.matches(Token.PUNCTUATOR, open_str):
                depth += 1
            elif token.matches(Token.PUNCTUATOR, close_str):
                depth -= 1

    def _collect_expression(self, stops):
        """Collect the unexpanded tokens up to (not including) a top-level stop token"""
        tokens = []
        depth = 0
        while True:
            token = self._peek(expand=False)
            if depth == 0 and token.type is Token.PUNCTUATOR and token.string in stops:
                return tokens
            if token.string in ('(', '[', '{'):
                depth += 1
            elif token.string in (')', ']', '}'):
                if depth == 0:
                    raise self._error(token, "Unbalanced '{}' in expression".format(token.string))
                depth -= 1
            tokens.append(self._next(expand=False))

    def _evaluate(self, tokens):
        try:
            return self.expander.evaluate(list(tokens), self.table.enum_values(),
                                          self.table.typedefs.keys())
        except (ConvertError, MacroExpansionError) as e:
            log.debug("Could not evaluate '{}': {}".format(render(tokens), e))
            return None
