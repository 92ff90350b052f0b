# -*- coding: utf-8 -*-
# Copyright 2016-2019 Nate Bogdanowicz
import datetime

__distname__ = "NiceHeader"
__version__ = "0.1.dev0"
__author__ = "Nate Bogdanowicz"
__email__ = "natezb@gmail.com"
__license__ = "GPLv3"
__copyright__ = "Copyright 2015-{}, {}".format(datetime.date.today().year, __author__)
