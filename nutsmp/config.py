# nutsmp/config.py
# --------------------------------------------------------------
# Author: Emmanuel Vazquez <emmanuel.vazquez@centralesupelec.fr>
# Copyright (c) 2022-2026, CentraleSupelec
# License: GPLv3 (see LICENSE)
# --------------------------------------------------------------
import os
import logging
from importlib.util import find_spec

_version_file = os.path.join(os.path.dirname(__file__), "..", "VERSION")
try:
    with open(os.path.abspath(_version_file), "r") as f:
        __version__ = f.read().strip()
except FileNotFoundError:
    __version__ = "0.0.0"

_BACKENDS = ("numpy", "torch")


class _NutsmpConfig:
    """Process-wide settings: version, numerical backend and logger."""

    def __init__(self):
        self.version = __version__
        self.backend = None
        self.logger = logging.getLogger("nutsmp")
        if not self.logger.handlers:
            h = logging.StreamHandler()
            h.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
            self.logger.addHandler(h)
        self.logger.setLevel(logging.INFO)

    def __repr__(self):
        return f"<NutsmpConfig version={self.version!r}, backend={self.backend!r}>"


_config = _NutsmpConfig()


def _detect_backend():
    env = os.environ.get("NUTSMP_BACKEND")
    if env in _BACKENDS:
        return env
    if find_spec("torch") is not None:
        return "torch"
    return "numpy"


def set_backend(backend: str):
    """Force a backend ('numpy'|'torch') before importing nutsmp.num."""
    if backend not in _BACKENDS:
        raise ValueError("backend must be 'numpy' or 'torch'")
    _config.backend = backend
    os.environ["NUTSMP_BACKEND"] = backend


def get_backend():
    """Return the current backend, detecting it on first use."""
    if _config.backend is None:
        set_backend(_detect_backend())
    return _config.backend


def get_logger():
    return _config.logger


def set_log_level(level):
    _config.logger.setLevel(level)
