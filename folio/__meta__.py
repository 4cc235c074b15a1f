# -*- coding: utf-8 -*-
"""Define project metadata
"""

__title__ = 'folio'
__summary__ = 'A small network file store with traversal-safe paths.'

__version__ = '0.1.0'

__install_requires__ = ['attrs', 'click', 'flask', 'humanize', 'werkzeug']
__tests_require__ = ['pytest']

__author__ = 'Folio Authors'

__license__ = 'MIT License'
