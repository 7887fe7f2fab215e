"""Error taxonomy for retime and stitch jobs.

Fatal conditions are raised as subclasses of RampStitchError after the job
has released every codec resource. Recoverable conditions (non-monotonic
easing, dimension probe failure, rotation mismatch, missing audio codec,
skipped clips) are logged and never raised.
"""


class RampStitchError(Exception):
    """Base class for every fatal job error."""


class NoVideoTrack(RampStitchError):
    """Input contains no decodable video track."""


class UnsupportedProfile(RampStitchError):
    """Every encoder tier was rejected by the capability query."""


class NoFramesEmitted(RampStitchError):
    """Decoding finished without a single sample reaching the encoder."""


class NoVideosProvided(RampStitchError, ValueError):
    """Stitch was called with an empty clip list."""


class AudioDecodeFailed(RampStitchError):
    """Both the primary and the fallback audio decode paths failed."""


class ContainerFinalizeFailed(RampStitchError):
    """The output container could not be written or muxed."""


class SampleClosedError(RampStitchError):
    """A media sample was used after it was released."""
