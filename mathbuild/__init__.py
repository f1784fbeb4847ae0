"""
mathbuild - build orchestrator for math.js
Turns the src/ tree into the browser bundle, commonjs and es-module trees,
compiled entry files and the reference documentation.
"""

__version__ = "1.0.0"
