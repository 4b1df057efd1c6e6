from .api import batch_loading as batch_loading
from .api import flush_all as flush_all
from .exceptions import AlreadyDispatchedError as AlreadyDispatchedError
from .exceptions import BatchLoaderError as BatchLoaderError
from .exceptions import InvalidArgumentError as InvalidArgumentError
from .exceptions import InvalidKeyError as InvalidKeyError
from .exceptions import MissingKeyError as MissingKeyError
from .exceptions import ShapeMismatchError as ShapeMismatchError
from .exceptions import SizeMismatchError as SizeMismatchError
from .futures import attach as attach
from .loader import Loader as Loader
from .options import LoaderOptions as LoaderOptions
from .scope import DispatchScope as DispatchScope
from .scope import current_scope as current_scope
from .window import BatchWindow as BatchWindow

__all__ = [
    "Loader",
    "LoaderOptions",
    "BatchWindow",
    "DispatchScope",
    "current_scope",
    "batch_loading",
    "flush_all",
    "attach",
    "BatchLoaderError",
    "InvalidKeyError",
    "InvalidArgumentError",
    "AlreadyDispatchedError",
    "ShapeMismatchError",
    "SizeMismatchError",
    "MissingKeyError",
]
