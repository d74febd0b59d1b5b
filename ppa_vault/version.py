"""PPA Vault Meta information.
   PPA Vault keeps named credentials in a single file encrypted
   under one master password.
"""
__title__ = 'ppa_vault'
__description__ = (
   'PPA Vault keeps named credentials in a single file '
   'encrypted under one master password.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/ppa-vault'
