class RingOutlierFilterError(Exception):
    """Base class for all errors raised while filtering a frame."""


class FormatError(RingOutlierFilterError):
    """
    The input point buffer cannot be decoded.

    Raised for a missing required field, an unsupported field datatype,
    a buffer length that is not a multiple of the point step, or a ring id
    beyond the configured ring count.
    """


class ConfigurationError(RingOutlierFilterError):
    """A parameter value is invalid or produces a degenerate histogram."""


class TransformError(RingOutlierFilterError):
    """The rigid transform for the output frame could not be obtained or applied."""
