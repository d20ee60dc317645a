"""
ShaderWatch Compiler Data Models.

Defines the requests handed to the compiler adapter and the outcomes it
produces.
Requires Python 3.11+.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class SpirvMetadata(str, Enum):
    """Level of metadata the toolchain embeds in the SPIR-V binary."""

    NONE = "none"
    NAME_VARIABLES = "name-variables"
    FULL = "full"


class ExecutionModel(str, Enum):
    """SPIR-V execution models an entry point can declare."""

    VERTEX = "Vertex"
    TESSELLATION_CONTROL = "TessellationControl"
    TESSELLATION_EVALUATION = "TessellationEvaluation"
    GEOMETRY = "Geometry"
    FRAGMENT = "Fragment"
    GL_COMPUTE = "GLCompute"
    KERNEL = "Kernel"
    TASK_NV = "TaskNV"
    MESH_NV = "MeshNV"
    RAY_GENERATION = "RayGenerationKHR"
    INTERSECTION = "IntersectionKHR"
    ANY_HIT = "AnyHitKHR"
    CLOSEST_HIT = "ClosestHitKHR"
    MISS = "MissKHR"
    CALLABLE = "CallableKHR"
    TASK_EXT = "TaskEXT"
    MESH_EXT = "MeshEXT"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class CompileOptions:
    """Toolchain flags for a shader build."""

    target: str = "spirv-unknown-vulkan1.2"
    release: bool = True
    deny_warnings: bool = False
    multimodule: bool = False
    spirv_metadata: SpirvMetadata = SpirvMetadata.NONE
    relax_struct_store: bool = False
    relax_logical_pointer: bool = False
    relax_block_layout: bool = False
    uniform_buffer_standard_layout: bool = False
    scalar_block_layout: bool = False
    skip_block_layout: bool = False
    preserve_bindings: bool = False

    @property
    def profile(self) -> str:
        """Cargo profile directory name."""
        return "release" if self.release else "debug"

    def to_flags(self) -> list[str]:
        """Render the options as toolchain command-line flags."""
        flags: list[str] = []
        if not self.release:
            flags.append("--debug")
        if self.spirv_metadata is not SpirvMetadata.NONE:
            flags.extend(["--spirv-metadata", self.spirv_metadata.value])
        for name in (
            "deny_warnings",
            "multimodule",
            "relax_struct_store",
            "relax_logical_pointer",
            "relax_block_layout",
            "uniform_buffer_standard_layout",
            "scalar_block_layout",
            "skip_block_layout",
            "preserve_bindings",
        ):
            if getattr(self, name):
                flags.append("--" + name.replace("_", "-"))
        return flags


@dataclass(frozen=True)
class CompileRequest:
    """A single shader crate build, fixed at startup."""

    source_path: Path
    output_directory: Path
    options: CompileOptions = field(default_factory=CompileOptions)


@dataclass(frozen=True)
class EntryPoint:
    """An entry point declared by a SPIR-V module."""

    name: str
    execution_model: ExecutionModel

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "execution_model": self.execution_model.value}


@dataclass(frozen=True)
class CompileSuccess:
    """A build that produced an artifact and its metadata sidecar."""

    artifact_path: Path
    metadata_path: Path
    entry_points: tuple[EntryPoint, ...] = ()
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class CompileFailure:
    """A build that failed, with text suitable for display."""

    diagnostic: str
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return False


CompileOutcome = CompileSuccess | CompileFailure
