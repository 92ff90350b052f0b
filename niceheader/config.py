# -*- coding: utf-8 -*-
# Copyright 2016-2018 Nate Bogdanowicz


class Config(object):
    """Options controlling how strictly a header is processed

    Parameters
    ----------
    treat_pragma_push_pop_as_fatal_on_mismatch : bool
        If True, an unmatched ``#pragma ... pop`` (or a ``push`` left open at the end of the
        header) raises a `PragmaBalanceError` instead of issuing a `PragmaBalanceWarning`.
        Default is False.
    macro_expansion_depth_limit : int
        Maximum macro nesting depth before expansion is abandoned with a
        `MacroExpansionError`. Default is 64.
    best_effort_resume_on_syntax_error : bool
        If True, a declaration that cannot be parsed is recorded as a diagnostic and parsing
        resumes at the next declaration boundary. Default is False.
    """
    def __init__(self, treat_pragma_push_pop_as_fatal_on_mismatch=False,
                 macro_expansion_depth_limit=64, best_effort_resume_on_syntax_error=False):
        if isinstance(macro_expansion_depth_limit, bool) or \
                not isinstance(macro_expansion_depth_limit, int):
            raise ValueError("macro_expansion_depth_limit must be an int, got "
                             "{!r}".format(macro_expansion_depth_limit))
        if macro_expansion_depth_limit < 1:
            raise ValueError("macro_expansion_depth_limit must be positive")

        self.treat_pragma_push_pop_as_fatal_on_mismatch = bool(
            treat_pragma_push_pop_as_fatal_on_mismatch)
        self.macro_expansion_depth_limit = macro_expansion_depth_limit
        self.best_effort_resume_on_syntax_error = bool(best_effort_resume_on_syntax_error)

    @classmethod
    def from_options(cls, config=None, **options):
        """Build a Config from an optional base config and keyword overrides"""
        if config is None:
            return cls(**options)

        kwds = dict(vars(config))
        for name in options:
            if name not in kwds:
                raise TypeError("Unknown option '{}'".format(name))
        kwds.update(options)
        return cls(**kwds)

    def __repr__(self):
        return 'Config({})'.format(', '.join('{}={!r}'.format(k, v)
                                             for k, v in sorted(vars(self).items())))
