# -*- coding: utf-8 -*-
# Copyright 2016-2018 Nate Bogdanowicz
from collections import namedtuple

Diagnostic = namedtuple('Diagnostic', ['severity', 'kind', 'message', 'location'])


def _format_location(location):
    if location is None:
        return ''
    return "[{}:{}:{}] ".format(location.fpath, location.line, location.col)


def _as_location(location):
    # Tokens carry their own location; everything else is passed through
    return getattr(location, 'location', location)


class HeaderError(Exception):
    """Base class of all errors raised while processing a header

    ``partial`` holds the `SymbolTable` built before the error occurred, once the error has
    reached the caller of `process_header()`.
    """
    def __init__(self, location, msg):
        self.location = _as_location(location)
        self.msg = msg
        self.partial = None
        self.diagnostics = []
        super(HeaderError, self).__init__(_format_location(self.location) + msg)

    def to_diagnostic(self, severity='error'):
        return Diagnostic(severity, type(self).__name__, self.msg, self.location)


class LexError(HeaderError):
    pass


class MacroExpansionError(HeaderError):
    pass


class ParseError(HeaderError):
    """A declaration could not be parsed

    ``offset`` is the source offset just past the last declaration that was parsed
    successfully, so a caller can resume after the offending region.
    """
    def __init__(self, location, msg, offset=0):
        super(ParseError, self).__init__(location, msg)
        self.offset = offset


class PragmaBalanceError(HeaderError):
    pass


class EndOfStreamError(Exception):
    pass


class PragmaBalanceWarning(Warning):
    def __init__(self, location, msg):
        self.location = _as_location(location)
        self.msg = msg
        super(PragmaBalanceWarning, self).__init__(_format_location(self.location) + msg)

    def to_diagnostic(self):
        return Diagnostic('warning', type(self).__name__, self.msg, self.location)
