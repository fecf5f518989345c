"""
Exceptions for the HDRIVault core
Everything derives from HdriVaultError so callers have one general error catcher
"""


class HdriVaultError(Exception):
    # general container for errors
    pass


class KeyUnavailableError(HdriVaultError):
    # raised when the application key cannot be built (no crypto provider, no key material)
    pass


class DecryptionError(HdriVaultError):
    # raised when an encrypted payload fails authentication; the message never says which stage failed
    pass


class InvalidFormatError(HdriVaultError):
    # raised when a document is missing required structure or declares an unknown version
    pass


class ParseError(InvalidFormatError):
    # raised when the document text is not a JSON object at all
    pass


class UnsupportedLegacySchemeError(HdriVaultError):
    # raised when an asset uses a retired encryption scheme
    pass


class CodecError(HdriVaultError, ValueError):
    # raised on invalid base64 or data URL text
    pass


class SerializationError(HdriVaultError):
    # raised when a project cannot be written (missing asset bytes, unreadable source)
    pass
