"""
ShaderWatch Compiler Package.

Adapter around the external shader toolchain.
Requires Python 3.11+.
"""

from shaderwatch.compiler.adapter import (
    ShaderCompiler,
    build_request,
    compile_shader,
    default_output_directory,
    resolve_crate_name,
)
from shaderwatch.compiler.models import (
    CompileFailure,
    CompileOptions,
    CompileOutcome,
    CompileRequest,
    CompileSuccess,
    EntryPoint,
    ExecutionModel,
    SpirvMetadata,
)

__all__ = [
    "ShaderCompiler",
    "build_request",
    "compile_shader",
    "default_output_directory",
    "resolve_crate_name",
    "CompileFailure",
    "CompileOptions",
    "CompileOutcome",
    "CompileRequest",
    "CompileSuccess",
    "EntryPoint",
    "ExecutionModel",
    "SpirvMetadata",
]
