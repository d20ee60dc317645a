"""
ShaderWatch Compiler Adapter.

Runs one build of a shader crate through the external toolchain and turns
the result into a CompileOutcome. Toolchain failures are returned, never
raised.
Requires Python 3.11+.
"""

import json
import os
import shutil
import string
import subprocess
import tempfile
import time
import tomllib
from pathlib import Path
from typing import Any

from shaderwatch.compiler.models import (
    CompileFailure,
    CompileOptions,
    CompileOutcome,
    CompileRequest,
    CompileSuccess,
    EntryPoint,
)
from shaderwatch.compiler.spirv import SpirvFormatError, read_entry_points_from_file
from shaderwatch.errors import ConfigurationError
from shaderwatch.utils.config import DEFAULT_COMPILER_COMMAND, get_settings
from shaderwatch.utils.logger import LoggerMixin

ARTIFACT_SUFFIX = ".spv"
METADATA_SUFFIX = ".spv.json"
TEMPLATE_FIELDS = frozenset({"crate", "target", "output_dir"})


def resolve_crate_name(source_path: Path) -> str:
    """
    Read the package name from a crate's Cargo.toml.

    Args:
        source_path: Crate root directory

    Returns:
        The `[package].name` value

    Raises:
        ConfigurationError: If the path is not a readable crate
    """
    if not source_path.is_dir():
        raise ConfigurationError(f"Shader crate {source_path} is not a directory", source_path)

    manifest = source_path / "Cargo.toml"
    try:
        with manifest.open("rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"No Cargo.toml in {source_path}", source_path) from None
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Cannot read {manifest}: {e}", source_path) from e

    name = data.get("package", {}).get("name")
    if not isinstance(name, str) or not name:
        raise ConfigurationError(f"{manifest} has no [package] name", source_path)
    return name


def artifact_stem(crate_name: str) -> str:
    """Artifact base name; Cargo turns dashes into underscores for library targets."""
    return crate_name.replace("-", "_")


def default_output_directory(
    source_path: Path,
    options: CompileOptions,
    output_root: Path | None = None,
) -> Path:
    """
    Deterministic artifact directory for a crate.

    Layout is `<output_root>/<target>/<profile>`, with output_root
    defaulting to `<crate>/target/spirv-builder`.
    """
    root = output_root if output_root is not None else source_path / "target" / "spirv-builder"
    return root / options.target / options.profile


def _check_template(command: list[str]) -> None:
    """Reject command templates that cannot be rendered."""
    if not command:
        raise ConfigurationError("Compiler command is empty")
    for arg in command:
        try:
            fields = [name for _, name, _, _ in string.Formatter().parse(arg) if name is not None]
        except ValueError as e:
            raise ConfigurationError(f"Malformed compiler command argument {arg!r}: {e}") from e
        unknown = [name for name in fields if name not in TEMPLATE_FIELDS]
        if unknown:
            raise ConfigurationError(
                f"Unknown placeholder {{{unknown[0]}}} in compiler command argument {arg!r}; "
                f"expected one of {', '.join(sorted(TEMPLATE_FIELDS))}"
            )


def build_request(
    source_path: Path,
    options: CompileOptions | None = None,
    output_root: Path | None = None,
) -> CompileRequest:
    """Create the immutable request for a crate at startup."""
    options = options or CompileOptions()
    source_path = source_path.resolve()
    return CompileRequest(
        source_path=source_path,
        output_directory=default_output_directory(source_path, options, output_root),
        options=options,
    )


class ShaderCompiler(LoggerMixin):
    """
    Compiles shader crates with an external build command.

    The command is an argument template; `{crate}`, `{target}` and
    `{output_dir}` are substituted and the request's options are appended
    as flags. The toolchain writes into a private staging directory, and
    the artifact and sidecar are moved into the output directory only
    after the build succeeded, so a failed build leaves previous outputs
    untouched.
    """

    def __init__(self, command: list[str] | None = None) -> None:
        """
        Initialize the compiler.

        Args:
            command: Build command template, defaults to the configured one

        Raises:
            ConfigurationError: If the template is empty or uses unknown placeholders
        """
        if command is None:
            command = get_settings().compiler.command or list(DEFAULT_COMPILER_COMMAND)
        self._command = list(command)
        _check_template(self._command)

    @property
    def command(self) -> list[str]:
        return list(self._command)

    def render_command(self, request: CompileRequest, staging_dir: Path) -> list[str]:
        """Substitute the request into the command template."""
        values = {
            "crate": str(request.source_path),
            "target": request.options.target,
            "output_dir": str(staging_dir),
        }
        return [arg.format(**values) for arg in self._command] + request.options.to_flags()

    def compile(self, request: CompileRequest) -> CompileOutcome:
        """
        Build a shader crate.

        Args:
            request: Crate, output directory and toolchain options

        Returns:
            CompileSuccess with artifact and sidecar paths, or
            CompileFailure with a diagnostic message
        """
        start = time.perf_counter()
        try:
            crate_name = resolve_crate_name(request.source_path)
        except ConfigurationError as e:
            return CompileFailure(diagnostic=str(e), duration=time.perf_counter() - start)

        stem = artifact_stem(crate_name)
        output_dir = request.output_directory
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.TemporaryDirectory(prefix=".staging-", dir=output_dir) as tmp:
                staging_dir = Path(tmp)
                diagnostic = self._run_toolchain(request, staging_dir)
                if diagnostic is not None:
                    return CompileFailure(diagnostic=diagnostic, duration=time.perf_counter() - start)

                staged = staging_dir / f"{stem}{ARTIFACT_SUFFIX}"
                if not staged.exists():
                    return CompileFailure(
                        diagnostic=f"Toolchain reported success but produced no {staged.name}",
                        duration=time.perf_counter() - start,
                    )

                try:
                    metadata, entry_points = self._describe(staged, crate_name, request.options)
                except SpirvFormatError as e:
                    return CompileFailure(
                        diagnostic=f"{staged.name} is not a valid SPIR-V module: {e}",
                        duration=time.perf_counter() - start,
                    )

                staged_metadata = staging_dir / f"{stem}{METADATA_SUFFIX}"
                staged_metadata.write_text(
                    json.dumps(metadata, indent=2, sort_keys=True) + "\n", encoding="utf-8"
                )

                artifact_path = output_dir / staged.name
                metadata_path = output_dir / staged_metadata.name
                self._install(staged, artifact_path)
                self._install(staged_metadata, metadata_path)
        except OSError as e:
            return CompileFailure(
                diagnostic=f"Failed to write build outputs to {output_dir}: {e}",
                duration=time.perf_counter() - start,
            )

        return CompileSuccess(
            artifact_path=artifact_path,
            metadata_path=metadata_path,
            entry_points=tuple(entry_points),
            duration=time.perf_counter() - start,
        )

    def _run_toolchain(self, request: CompileRequest, staging_dir: Path) -> str | None:
        """Run the build command, returning a diagnostic on failure."""
        cmd = self.render_command(request, staging_dir)
        self.log.debug("running_toolchain", command=cmd)

        try:
            result = subprocess.run(
                cmd,
                cwd=request.source_path,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except FileNotFoundError:
            return f"Toolchain executable not found: {cmd[0]}"
        except OSError as e:
            return f"Failed to start toolchain {cmd[0]}: {e}"

        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip()
            return output or f"{cmd[0]} exited with status {result.returncode}"
        return None

    def _describe(
        self, staged: Path, crate_name: str, options: CompileOptions
    ) -> tuple[dict[str, Any], list[EntryPoint]]:
        """Build the sidecar contents for a staged artifact."""
        metadata: dict[str, Any] = {
            "crate": crate_name,
            "target": options.target,
            "profile": options.profile,
            "artifact": staged.name,
        }

        if staged.is_dir():
            # Multimodule builds emit one module per entry point.
            entry_points: list[EntryPoint] = []
            modules = []
            for module in sorted(staged.glob(f"*{ARTIFACT_SUFFIX}")):
                module_entries = read_entry_points_from_file(module)
                entry_points.extend(module_entries)
                modules.append({
                    "path": f"{staged.name}/{module.name}",
                    "entry_points": [e.to_dict() for e in module_entries],
                })
            metadata["modules"] = modules
        else:
            entry_points = read_entry_points_from_file(staged)

        metadata["entry_points"] = [e.to_dict() for e in entry_points]
        return metadata, entry_points

    @staticmethod
    def _install(staged: Path, final: Path) -> None:
        """Move a staged output over its final location."""
        if final.is_dir() and not final.is_symlink():
            shutil.rmtree(final)
        elif staged.is_dir() and final.exists():
            final.unlink()
        os.replace(staged, final)


def compile_shader(request: CompileRequest, compiler: ShaderCompiler | None = None) -> CompileOutcome:
    """Compile a request with the configured toolchain."""
    return (compiler or ShaderCompiler()).compile(request)
