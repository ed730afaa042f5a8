"""Accountrix Store Meta information.
   Accountrix Store keeps session lists, tokens and entitlements on-device.
"""
__title__ = 'accountrix_store'
__description__ = (
   'Accountrix Store keeps third-party session lists, tokens and '
   'entitlements in an integrity-checked local store.'
)
__version__ = '1.0.0'
__copyright__ = 'Copyright (c) 2024 Accountrix'
__author__ = 'Accountrix Team'
__author_email__ = 'dev@accountrix.app'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/accountrix/accountrix-store'
