"""Navigator Secure Meta information.
   Navigator Secure provides password-based encryption of values
   with cipher handles cached per password.
"""
__title__ = 'navigator_secure'
__description__ = (
   'Navigator Secure provides password-based encryption of values '
   'with cipher handles cached per password.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/navigator-secure'
