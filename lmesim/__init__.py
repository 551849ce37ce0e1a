from . import glm, simulation, population, mixed, pipeline  # noqa: F401
from .frontend import info  # noqa: F401

__version__ = "0.1.0"
