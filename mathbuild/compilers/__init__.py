"""
mathbuild compilers package
Provides the banner, transpilation, bundling and cleaning steps of the build
"""

from .banner import get_version, create_banner, update_version_file, write_compiled_header
from .bundler import Bundler, BuildContext, PackagingEngine, WebpackSession
from .cleaner import clean
from .module_compiler import ModuleCompiler, EntryCompiler, collect_sources
from .node_tools import NodeSession, check_build_prerequisites
from .transpiler import BabelTransformer, Transformer, TransformProfile

__all__ = [
    "get_version",
    "create_banner",
    "update_version_file",
    "write_compiled_header",
    "Bundler",
    "BuildContext",
    "PackagingEngine",
    "WebpackSession",
    "clean",
    "ModuleCompiler",
    "EntryCompiler",
    "collect_sources",
    "NodeSession",
    "check_build_prerequisites",
    "BabelTransformer",
    "Transformer",
    "TransformProfile",
]
