"""
Exception types raised while loading, evaluating and ranking a graph.

Every error derives from InferenceError so callers can catch the whole family,
and also from the builtin that best describes it (ValueError, IndexError, ...)
so generic handlers keep working.
"""


class InferenceError(Exception):
    """Base class for all graph processing errors."""


class GraphLoadError(InferenceError):
    """The graph source could not be read or parsed."""


class UseAfterClose(InferenceError, RuntimeError):
    """A graph, tensor or execution context was used after close()."""


class UnknownOutputError(InferenceError, LookupError):
    def __init__(self, output_name, available=()):
        self.output_name = output_name
        self.available = tuple(available)
        super().__init__(
            f"Graph has no output named '{output_name}' (available: {list(self.available)})")

    def __str__(self):
        # LookupError would otherwise repr() the message
        return self.args[0]


class OutputIndexError(InferenceError, IndexError):
    def __init__(self, output_name, index, size):
        self.output_name = output_name
        self.index = index
        self.size = size
        super().__init__(
            f"Output index {index} out of range for '{output_name}' which produced {size} element(s)")


class FeedError(InferenceError, ValueError):
    """A feed value could not be turned into a tensor, or names an unknown input."""


class ShapeError(InferenceError, ValueError):
    def __init__(self, shape):
        self.shape = tuple(shape)
        super().__init__(
            "Expected model to produce a [1 N] shaped tensor where N is the number of labels, "
            f"instead it produced one with shape {list(self.shape)}")


class LabelCountMismatchError(InferenceError, ValueError):
    def __init__(self, expected, actual):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Tensor has {expected} class probabilities but {actual} labels were supplied")


class ConversionError(InferenceError, ValueError):
    """An input message could not be converted into a feed map."""


class ResourceError(InferenceError, OSError):
    """A model or label location could not be read."""


class InvalidProbabilityError(InferenceError, ValueError):
    def __init__(self, indices):
        self.indices = tuple(int(i) for i in indices)
        super().__init__(
            f"Tensor holds non-finite probabilities at class index(es) {list(self.indices)}")
