"""Navigator KeyVault Meta information.
   Navigator KeyVault protects a data-encryption key with a password
   (and an optional recovery code) in a local key file.
"""
__title__ = 'navigator_keyvault'
__description__ = (
   'Navigator KeyVault: password-protected envelope encryption '
   'with local key files.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/navigator-keyvault'
