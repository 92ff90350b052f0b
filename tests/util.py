# -*- coding: utf-8 -*-
# Copyright 2016-2018 Nate Bogdanowicz
import os.path


def local_fpath(test_fpath, relpath):
    """Get the absolute path of `relpath`, relative to the test file `test_fpath`"""
    return os.path.join(os.path.dirname(os.path.abspath(test_fpath)), relpath)


def read_header(test_fpath, relpath):
    """Get the text and path of a header fixture, ready to pass to `process_header()`"""
    fpath = local_fpath(test_fpath, relpath)
    with open(fpath) as f:
        return f.read(), fpath
