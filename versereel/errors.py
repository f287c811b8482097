"""Error types for the versereel pipeline.

Recoverable kinds (QuotaExceeded, TransientProviderError, ProviderFailure)
are handled inside the credential rotator and never end a run on their own.
Fatal kinds (SourceLoadFailure, CredentialsExhausted, MediaError) stop the run
before progress is advanced. EndOfSource is the clean terminal condition.
"""


class VerseReelError(Exception):
    """Base class for every error raised by versereel."""


class SourceLoadFailure(VerseReelError):
    """The source text could not be read or parsed."""


class EndOfSource(VerseReelError):
    """Every chapter of the source has been processed."""


class QuotaExceeded(VerseReelError):
    """The current credential cannot pay for the request."""


class TransientProviderError(VerseReelError):
    """A provider failure worth retrying on the same credential (5xx, rate limit, network)."""


class ProviderFailure(VerseReelError):
    """A provider failure that should move to the next credential."""


class CredentialsExhausted(VerseReelError):
    """No remaining credential can serve the request."""


class StorePersistFailure(VerseReelError):
    """The remote copy of the progress state could not be written."""


class MediaError(VerseReelError):
    """Rendering, audio assembly or muxing failed."""


class StorageError(VerseReelError):
    """An object store call failed for a reason other than a missing key."""
