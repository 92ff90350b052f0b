# -*- coding: utf-8 -*-
# Copyright 2016-2018 Nate Bogdanowicz
from .__about__ import __version__

from .config import Config
from .errors import (HeaderError, LexError, MacroExpansionError, ParseError, PragmaBalanceError,
                     PragmaBalanceWarning, Diagnostic)
from .lexer import Token, TokenType, Tokenizer
from .macros import MacroDef, MacroTable, MacroExpander
from .model import SymbolTable
from .parser import Parser
from .process import process_header

__all__ = ['process_header', 'Config', 'Parser', 'SymbolTable', 'Tokenizer', 'Token', 'TokenType',
           'MacroDef', 'MacroTable', 'MacroExpander', 'HeaderError', 'LexError',
           'MacroExpansionError', 'ParseError', 'PragmaBalanceError', 'PragmaBalanceWarning',
           'Diagnostic', '__version__']
