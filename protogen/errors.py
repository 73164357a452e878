"""Error kinds raised while compiling definitions into descriptors.

Every fatal error aborts generation of the single definition being
processed. Unsupported slicing is not an error: it is recorded on the
generated message as a reserved tag (see ``ReservedKind.UNSUPPORTED_SLICING``).
"""


class ProtogenError(Exception):
    """Base class for all generator failures."""


class MalformedInputError(ProtogenError, ValueError):
    """The input violates a structural invariant of a schema definition."""


class UnresolvedUrlError(MalformedInputError):
    """A definition has no url, a duplicate url, or a profile base that is missing."""


class AmbiguousRenameError(MalformedInputError):
    """More than one explicit type name is attached to the same element."""


class ContentReferenceCycleError(MalformedInputError):
    """Following content references leads back to an element already visited."""


class UnrecognizedIdentityError(ProtogenError, LookupError):
    """A lookup by url or resource type failed."""

    def __init__(self, identity: str, message: str | None = None):
        self.identity = identity
        super().__init__(message or f"Unrecognized identity: {identity}")
