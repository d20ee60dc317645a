"""
ShaderWatch Command Line.

Builds a shader crate once, then optionally keeps rebuilding it whenever
the watched paths change.
Requires Python 3.11+.

Usage:
    shaderwatch path/to/shader-crate
    shaderwatch path/to/shader-crate --watch path/to/shader-crate/src
"""

import argparse
import asyncio
import sys
from pathlib import Path

from pydantic import ValidationError

from shaderwatch import __version__
from shaderwatch.compiler import (
    CompileOptions,
    ShaderCompiler,
    SpirvMetadata,
    build_request,
    resolve_crate_name,
)
from shaderwatch.errors import ConfigurationError, ShaderWatchError
from shaderwatch.utils.config import WatcherSettings, get_settings
from shaderwatch.utils.logger import configure_logging, get_logger
from shaderwatch.watcher import WatchSession, report_outcome

logger = get_logger("shaderwatch")


def debounce_ms(value: str) -> int:
    """Parse --debounce-ms with the same bounds as WATCHER_DEBOUNCE_DELAY_MS."""
    try:
        return WatcherSettings(debounce_delay_ms=value).debounce_delay_ms
    except ValidationError as e:
        raise argparse.ArgumentTypeError(e.errors()[0]["msg"]) from None


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="shaderwatch",
        description="Compile a rust-gpu shader crate to SPIR-V, optionally rebuilding on change.",
    )
    parser.add_argument("path_to_crate", type=Path, help="Shader crate to compile")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-t", "--target",
        default=settings.compiler.target,
        help="rust-gpu compile target (default: %(default)s)",
    )
    parser.add_argument(
        "--release",
        action=argparse.BooleanOptionalAction,
        default=settings.compiler.release,
        help="Compile shaders in release mode",
    )
    parser.add_argument(
        "--deny-warnings", action="store_true", help="Treat warnings as errors during compilation"
    )
    parser.add_argument(
        "--multimodule", action="store_true", help="Compile one .spv file per entry point"
    )
    parser.add_argument(
        "--spirv-metadata",
        type=SpirvMetadata,
        choices=list(SpirvMetadata),
        default=SpirvMetadata.NONE,
        metavar="{none,name-variables,full}",
        help="Level of metadata included in the SPIR-V binary",
    )
    parser.add_argument(
        "--relax-struct-store",
        action="store_true",
        help="Allow store from one struct type to a different type with compatible layout",
    )
    parser.add_argument(
        "--relax-logical-pointer",
        action="store_true",
        help="Allow allocating and returning pointers in logical addressing mode",
    )
    parser.add_argument(
        "--relax-block-layout", action="store_true", help="Enable VK_KHR_relaxed_block_layout"
    )
    parser.add_argument(
        "--uniform-buffer-standard-layout",
        action="store_true",
        help="Enable VK_KHR_uniform_buffer_standard_layout",
    )
    parser.add_argument(
        "--scalar-block-layout", action="store_true", help="Enable VK_EXT_scalar_block_layout"
    )
    parser.add_argument(
        "--skip-block-layout",
        action="store_true",
        help="Skip checking standard uniform / storage buffer layout",
    )
    parser.add_argument(
        "--preserve-bindings", action="store_true", help="Preserve unused descriptor bindings"
    )
    parser.add_argument(
        "-w", "--watch",
        dest="watch_paths",
        action="append",
        type=Path,
        metavar="PATH",
        help="Rebuild when PATH changes; may be given more than once",
    )
    parser.add_argument(
        "-o", "--output-dir",
        type=Path,
        default=settings.compiler.output_root,
        help="Root of the artifact tree (default: <crate>/target/spirv-builder)",
    )
    parser.add_argument(
        "--debounce-ms",
        type=debounce_ms,
        default=None,
        help=f"Quiet period before a rebuild (default: {settings.watcher.debounce_delay_ms})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def options_from_args(args: argparse.Namespace) -> CompileOptions:
    """Collect toolchain options from parsed arguments."""
    return CompileOptions(
        target=args.target,
        release=args.release,
        deny_warnings=args.deny_warnings,
        multimodule=args.multimodule,
        spirv_metadata=args.spirv_metadata,
        relax_struct_store=args.relax_struct_store,
        relax_logical_pointer=args.relax_logical_pointer,
        relax_block_layout=args.relax_block_layout,
        uniform_buffer_standard_layout=args.uniform_buffer_standard_layout,
        scalar_block_layout=args.scalar_block_layout,
        skip_block_layout=args.skip_block_layout,
        preserve_bindings=args.preserve_bindings,
    )


def run(args: argparse.Namespace, compiler: ShaderCompiler | None = None) -> int:
    """
    Build once, then watch if requested.

    Returns:
        Process exit status
    """
    crate_path: Path = args.path_to_crate
    crate_name = resolve_crate_name(crate_path)
    request = build_request(crate_path, options_from_args(args), args.output_dir)
    compiler = compiler or ShaderCompiler()

    session = None
    if args.watch_paths:
        # Validates the watch paths before the first build starts
        session = WatchSession(
            request,
            compiler,
            watch_paths=args.watch_paths,
            debounce_delay_ms=args.debounce_ms,
        )

    logger.info("building_shader", crate=crate_name, output_dir=str(request.output_directory))
    if session is None:
        outcome = compiler.compile(request)
        report_outcome(outcome, logger)
        return 0 if outcome.ok else 1

    try:
        # The first build runs inside the session so edits made meanwhile are seen
        asyncio.run(session.run(initial_build=True))
    except KeyboardInterrupt:
        logger.info("watch_stopped")
        return 130
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the `shaderwatch` command."""
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else None)

    logger.info("shader_builder", version=__version__)
    try:
        return run(args)
    except ConfigurationError as e:
        logger.error("configuration_error", error=str(e))
        return e.exit_code
    except ShaderWatchError as e:
        logger.error("watch_failed", error=str(e))
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())
