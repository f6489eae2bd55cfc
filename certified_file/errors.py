class CertifiedFileError(Exception):
    """Base exception for certified file decode errors"""
    pass


class TruncatedInput(CertifiedFileError, EOFError):
    def __init__(self, wanted, got):
        super().__init__(f"Wanted {wanted:d} bytes, only {got:d} available")
        self.wanted = wanted
        self.got = got


class InvalidMagic(CertifiedFileError):
    def __init__(self, magic):
        super().__init__(f"Invalid certified file magic {magic!r}")
        self.magic = magic


class InvalidEnumValue(CertifiedFileError):
    def __init__(self, enum_cls, value):
        super().__init__(f"Invalid {enum_cls.__name__} value 0x{value:X}")
        self.enum_cls = enum_cls
        self.value = value


class InvalidHeaderPadding(CertifiedFileError):
    pass


class BadPadding(CertifiedFileError):
    """Encryption root padding is not zero, wrong key or corrupted block"""
    pass


class OptionalHeaderSizeMismatch(CertifiedFileError):
    def __init__(self, expected, actual):
        super().__init__(f"Optional header declares {expected:d} payload bytes, read {actual:d}")
        self.expected = expected
        self.actual = actual


class OptionalHeaderTableSizeMismatch(CertifiedFileError):
    def __init__(self, declared, consumed):
        super().__init__(f"Optional header table declares {declared:d} bytes, consumed {consumed:d}")
        self.declared = declared
        self.consumed = consumed


class UnsupportedSignatureType(CertifiedFileError):
    def __init__(self, algorithm):
        super().__init__(f"Unsupported signature type {algorithm.name}")
        self.algorithm = algorithm


class KeyNotFound(CertifiedFileError, KeyError):
    def __str__(self):
        return Exception.__str__(self)


class InvalidSignatureOffset(CertifiedFileError):
    pass
