# -*- coding: utf-8 -*-
# Copyright 2016-2018 Nate Bogdanowicz
"""Lexing of C header text

`Lexer` turns text into raw tokens (including whitespace and comments). `Tokenizer` builds on it
to produce the stream the declaration parser consumes: significant tokens carrying their
leading/trailing comments, interleaved with `Directive` objects for preprocessor lines.
"""
import re
import copy
import logging
from enum import Enum
from collections import namedtuple, deque

from .errors import LexError

log = logging.getLogger(__name__)

TokenType = Enum('TokenType', 'IDENTIFIER NUMBER STRING_CONST CHAR_CONST HEADER_NAME '
                 'RAW_TEXT PUNCTUATOR NEWLINE WHITESPACE LINE_COMMENT BLOCK_COMMENT')
Location = namedtuple('Location', ['fpath', 'line', 'col', 'offset'])


class Token(object):
    def __init__(self, type, string, line=0, col=0, offset=0, fpath='<string>'):
        self.type = type
        self.string = string
        self.line = line
        self.col = col
        self.offset = offset
        self.fpath = fpath
        self.spaced = False  # Preceded by whitespace
        self.leading_comment = None
        self.trailing_comment = None
        self.hideset = frozenset()  # Macros this token was produced by

    @property
    def span(self):
        return (self.offset, self.offset + len(self.string))

    @property
    def location(self):
        return Location(self.fpath, self.line, self.col, self.offset)

    def copy(self, **attrs):
        other = copy.copy(self)
        for name, value in attrs.items():
            setattr(other, name, value)
        return other

    def matches(self, other_type, other_string):
        return self.type is other_type and self.string == other_string

    def __eq__(self, other):
        if isinstance(other, str):
            return self.string == other
        elif isinstance(other, TokenType):
            return self.type == other
        elif not isinstance(other, Token):
            return NotImplemented

        return self.string == other.string and self.type == other.type

    def __ne__(self, other):
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    __hash__ = None

    def __str__(self):
        string = '' if self.string == '\n' else self.string
        return '{}[{}:{}:{}]({})'.format(self.type.name, self.fpath, self.line, self.col, string)

    def __repr__(self):
        return str(self)

for ttype in TokenType:
    setattr(Token, ttype.name, ttype)

NON_TOKENS = (Token.WHITESPACE, Token.NEWLINE, Token.LINE_COMMENT, Token.BLOCK_COMMENT)
COMMENTS = (Token.LINE_COMMENT, Token.BLOCK_COMMENT)


class Lexer(object):
    def __init__(self):
        self.token_info = []

    def add(self, name, regex_str, testfunc=None, flags=0):
        self.token_info.append((name, re.compile(regex_str, flags), testfunc))

    def lex(self, text, fpath='<string>'):
        return list(self.iter_tokens(text, fpath))

    def iter_tokens(self, text, fpath='<string>'):
        """Lazily lex `text`, yielding every token including whitespace and comments"""
        line = 1
        col = 1
        pos = 0
        history = deque(maxlen=3)  # Recent significant tokens on the current line

        while pos < len(text):
            token = self.read_token(text, pos, line, col, fpath, history)
            if token is None or (token.type is not Token.BLOCK_COMMENT and
                                 text.startswith('/*', pos)):
                raise LexError(Location(fpath, line, col, pos), self._describe_failure(text, pos))
            yield token

            if token.type is Token.NEWLINE:
                history.clear()
            elif token.type not in NON_TOKENS:
                history.append(token.string)

            pos += len(token.string)
            n_newlines = token.string.count('\n')
            if n_newlines:
                line += n_newlines
                col = len(token.string.rsplit('\n', 1)[-1]) + 1
            else:
                col += len(token.string)

    def read_token(self, text, pos=0, line=1, col=1, fpath='<string>', history=()):
        """Read the next token from text, starting at pos"""
        best_token = None
        best_size = 0
        for token_type, regex, testfunc in self.token_info:
            match = regex.match(text, pos)
            if match:
                if testfunc and not testfunc(history):
                    continue

                size = match.end() - match.start()
                if size > best_size:
                    best_token = Token(token_type, match.group(0), line, col, pos, fpath)
                    best_size = size
        return best_token

    @staticmethod
    def _describe_failure(text, pos):
        if text.startswith('/*', pos):
            return "Unterminated block comment"
        char = text[pos]
        if char == '"':
            return "Unterminated string literal"
        elif char == "'":
            return "Unterminated character constant"
        return "No acceptable token found for {!r}".format(char)


def _token_matcher_factory(match_strings):
    match_strings = list(match_strings)

    def matcher(history):
        return list(history)[-len(match_strings):] == match_strings
    return matcher


MESSAGE_DIRECTIVES = ('error', 'warning', 'ident', 'sccs')
RAW_CHAR = r"(?:[^\s/]|/(?![/*]))"  # Not whitespace, and not the start of a comment


def build_c_lexer():
    # Only lex angle brackets as part of a header name immediately after `#include`
    include_matcher = _token_matcher_factory(("#", "include"))
    include_next_matcher = _token_matcher_factory(("#", "include_next"))

    # The message of a diagnostic directive is free text, e.g. `#error Don't include this`
    def message_matcher(history):
        return len(history) == 2 and history[0] == '#' and history[1] in MESSAGE_DIRECTIVES

    lexer = Lexer()
    lexer.add(Token.NEWLINE, r"\r?\n")
    lexer.add(Token.WHITESPACE, r"(?:[ \t\v\f\r]|\\\r?\n)+")
    lexer.add(Token.RAW_TEXT, RAW_CHAR + r"(?:(?:\\\r?\n|[^\n/]|/(?![/*]))*" + RAW_CHAR + ")?",
              testfunc=message_matcher)
    lexer.add(Token.NUMBER, r'\.?[0-9](?:[eEpP][+-]|[0-9$a-zA-Z_.])*')
    lexer.add(Token.IDENTIFIER, r"[$a-zA-Z_][$a-zA-Z0-9_]*")
    lexer.add(Token.STRING_CONST, r'(?:u8|[LuU])?"(?:[^"\\\n]|\\.)*"')
    lexer.add(Token.CHAR_CONST, r"[LuU]?'(?:[^'\\\n]|\\.)*'")
    lexer.add(Token.HEADER_NAME, r"<[^>\n]*>",
              testfunc=lambda h: include_matcher(h) or include_next_matcher(h))
    lexer.add(Token.LINE_COMMENT, r"//[^\n]*")
    lexer.add(Token.BLOCK_COMMENT, r"/\*.*?\*/", flags=re.DOTALL)
    lexer.add(Token.PUNCTUATOR,
              r"<<=|>>=|\.\.\.|[<>=*/%&^|!+-]=|->|\+\+|--|<<|>>|&&|[|]{2}|##|"
              r"[{}\[\]()<>.&*+\-~!/%^|=;:,?#]")
    return lexer


lexer = build_c_lexer()


def comment_text(token):
    """Strip the comment markers (and doc-comment decoration) from a comment token"""
    if token.type is Token.LINE_COMMENT:
        return token.string[2:].lstrip('/!<').strip()

    lines = token.string[2:-2].lstrip('*!<').splitlines()
    lines = [line.strip().lstrip('*').strip() for line in lines]
    return '\n'.join(line for line in lines if line)


def _join_comments(first, second):
    return second if first is None else first + '\n' + second


def lex_tokens(text, fpath='<string>'):
    """Lex `text` into its significant tokens only, recording which ones follow whitespace

    Unlike `Tokenizer`, no directive handling is done, so this is suitable for macro bodies and
    other snippets.
    """
    tokens = []
    spaced = False
    for token in lexer.iter_tokens(text, fpath):
        if token.type in NON_TOKENS:
            spaced = True
            continue
        token.spaced = spaced and bool(tokens)
        spaced = False
        tokens.append(token)
    return tokens


def render(tokens):
    """Render tokens back to source text, with a single space wherever whitespace was"""
    out = []
    for i, token in enumerate(tokens):
        if i and token.spaced:
            out.append(' ')
        out.append(token.string)
    return ''.join(out)


def stringify(tokens):
    """Render tokens as a single C string literal, as the ``#`` operator does"""
    text = render(tokens)
    return '"{}"'.format(text.replace('\\', '\\\\').replace('"', '\\"'))


class Directive(object):
    """A preprocessor directive line such as ``#pragma once``

    ``name`` is the directive name ('' for a null directive) and ``tokens`` holds the significant
    tokens following it on the (possibly continued) line.
    """
    def __init__(self, hash_token, name, tokens):
        self.hash_token = hash_token
        self.name = name
        self.tokens = tokens
        self.leading_comment = None
        self.trailing_comment = None

    @property
    def location(self):
        return self.hash_token.location

    @property
    def text(self):
        return render(self.tokens)

    def __repr__(self):
        return '<#{} {}>'.format(self.name, self.text)


class DefineDirective(Directive):
    """A ``#define`` line, split into macro name, parameter list and body

    The macro is function-like only if ``(`` immediately follows the name, with no whitespace
    in between. ``params`` is None for object-like macros.
    """
    def __init__(self, hash_token, tokens, source):
        super(DefineDirective, self).__init__(hash_token, 'define', tokens)
        if not tokens or tokens[0].type is not Token.IDENTIFIER:
            raise LexError(tokens[0] if tokens else hash_token, "Expected macro name after #define")

        self.name_token = tokens[0]
        rest = tokens[1:]
        self.params = None
        if rest and rest[0].matches(Token.PUNCTUATOR, '(') and not rest[0].spaced:
            self.params, rest = self._parse_params(rest)

        self.body = rest
        if rest:
            rest[0] = rest[0].copy(spaced=False)
            self.raw_text = source[rest[0].offset:rest[-1].span[1]]
        else:
            self.raw_text = ''

    @property
    def macro_name(self):
        return self.name_token.string

    def _parse_params(self, tokens):
        params = []
        needs_comma = False
        i = 1
        while True:
            if i >= len(tokens):
                raise LexError(self.name_token, "Unterminated parameter list in #define "
                               "{}".format(self.macro_name))
            token = tokens[i]
            i += 1

            if token.matches(Token.PUNCTUATOR, ')'):
                break

            if needs_comma:
                if token.matches(Token.PUNCTUATOR, ','):
                    needs_comma = False
                else:
                    raise LexError(token, "Need comma in parameter list of #define "
                                   "{}".format(self.macro_name))
            elif token.type is Token.IDENTIFIER:
                params.append(token.string)
                needs_comma = True
            elif token == '...':
                params.append(token.string)
                needs_comma = True
            else:
                raise LexError(token, "Invalid token '{}' in parameter list of #define "
                               "{}".format(token.string, self.macro_name))
        return params, tokens[i:]


class Tokenizer(object):
    """Restartable stream of significant tokens and directives

    Each iteration lexes the text afresh. Comments never appear in the stream; instead their
    text is attached to the next token as ``leading_comment``, or, when the comment follows
    content on the same line, to that prior token as ``trailing_comment``.
    """
    def __init__(self, text, fpath='<string>'):
        self.text = text
        self.fpath = fpath

    def __iter__(self):
        return self._generate()

    def _generate(self):
        raw = lexer.iter_tokens(self.text, self.fpath)
        comments = []
        held = None  # Last token, held back until we know its trailing comment
        at_line_start = True
        spaced = False

        for token in raw:
            if token.type is Token.NEWLINE:
                if held is not None:
                    yield held
                    held = None
                at_line_start = True
                spaced = True
            elif token.type is Token.WHITESPACE:
                spaced = True
            elif token.type in COMMENTS:
                text = comment_text(token)
                if held is not None:
                    held.trailing_comment = _join_comments(held.trailing_comment, text)
                else:
                    comments.append(text)
                spaced = True
            elif at_line_start and token.matches(Token.PUNCTUATOR, '#'):
                directive = self._read_directive(token, raw)
                if comments:
                    directive.leading_comment = '\n'.join(comments)
                    comments = []
                log.debug("Lexed directive {!r}".format(directive))
                yield directive
                spaced = True
            else:
                token.spaced = spaced
                spaced = False
                if comments:
                    token.leading_comment = '\n'.join(comments)
                    comments = []
                at_line_start = False
                if held is not None:
                    yield held
                held = token

        if held is not None:
            yield held

    def _read_directive(self, hash_token, raw):
        """Consume the rest of the directive line from `raw`"""
        tokens = []
        trailing = []
        spaced = False
        for token in raw:
            if token.type is Token.NEWLINE:
                break
            elif token.type is Token.WHITESPACE:
                spaced = True
            elif token.type in COMMENTS:
                trailing.append(comment_text(token))
                spaced = True
            else:
                token.spaced = spaced
                spaced = False
                tokens.append(token)

        if not tokens:
            directive = Directive(hash_token, '', [])
        elif tokens[0].string == 'define':
            directive = DefineDirective(hash_token, tokens[1:], self.text)
        else:
            directive = Directive(hash_token, tokens[0].string, tokens[1:])

        if trailing:
            directive.trailing_comment = '\n'.join(trailing)
        return directive
