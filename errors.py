class TreemapError(Exception):
    pass


class InvalidInputError(TreemapError, ValueError):
    """contract violation by the caller: negative count, non-finite bounds, etc"""
    pass


class QueryFailedError(TreemapError):
    """a layer catalog or statistics query raised

    kind is one of 'layers', 'attributes', 'stats'. the original exception
    is chained as __cause__.
    """

    def __init__(self, kind, message):
        super().__init__(message)
        self.kind = kind

    @classmethod
    def from_exception(cls, kind, exc):
        detail = str(exc) or exc.__class__.__name__
        err = cls(kind, '%s query failed: %s' % (kind, detail))
        err.__cause__ = exc
        return err
