# nutsmp/__init__.py

from . import config
from . import num
from . import error_codes
from . import callbacks
from . import model
from . import mcmc
from . import services
from .model import Model, LogDensityModel
from .error_codes import ErrorCode
from .config import __version__

__all__ = [
    "num",
    "mcmc",
    "services",
    "Model",
    "LogDensityModel",
    "ErrorCode",
    "__version__",
]
