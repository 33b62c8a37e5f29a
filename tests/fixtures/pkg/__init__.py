from .helper import double

__all__ = ["double"]
