# plugin_gate/schemas/__init__.py
"""
Schema module initialization.
Exports all schema classes from submodules for convenient imports.
"""
from .auth import *
from .public import *
from .license import *
from .device import *
from .security import *
from .settings import *
