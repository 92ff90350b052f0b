# -*- coding: utf-8 -*-
# Copyright 2016-2018 Nate Bogdanowicz
import logging

from .config import Config
from .errors import HeaderError
from .parser import Parser

log = logging.getLogger(__name__)


def process_header(source, fpath='<string>', config=None, **options):
    """Parse the text of a C header into a `SymbolTable`

    Parameters
    ----------
    source : str
        The header's contents. Nothing is read from disk, and ``#include`` directives are
        recorded but not followed.
    fpath : str, optional
        Identifies the header in locations and error messages
    config : Config, optional
        Base configuration
    **options
        Overrides for individual `Config` fields, e.g.
        ``best_effort_resume_on_syntax_error=True``

    Returns
    -------
    table : SymbolTable

    Raises
    ------
    HeaderError
        If processing has to stop. The exception's ``partial`` attribute holds the
        `SymbolTable` built up to that point, and ``diagnostics`` everything recorded so far.
    """
    config = Config.from_options(config, **options)
    log.debug("Processing {} with {}".format(fpath, config))

    parser = Parser(source, fpath, config)
    try:
        return parser.parse()
    except HeaderError as e:
        e.partial = parser.table
        e.diagnostics = list(parser.table.diagnostics) + [e.to_diagnostic()]
        raise
