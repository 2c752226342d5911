"""Exception taxonomy shared by the imaging pipeline, the wizard and the clients."""

from __future__ import annotations


class PassportKitError(Exception):
    """Base class for all passportkit errors."""


class DecodeError(PassportKitError):
    """The uploaded file could not be decoded as an image."""


class RenderError(PassportKitError):
    """The crop/rotate/scale transform could not be rendered."""


class EncodeError(PassportKitError):
    """A rendered canvas could not be compressed."""


class CollaboratorError(PassportKitError):
    """An external service call failed (network, non-2xx, malformed body)."""


class ValidationError(PassportKitError, ValueError):
    """Input has the wrong shape (bad identifiers, empty crop, bad base64)."""


class TransitionError(PassportKitError):
    """The wizard event is not allowed in the current step."""
