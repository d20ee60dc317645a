#!/usr/bin/env python3
"""
Stand-in for `cargo gpu build` used by the test suite.

Reads `#[spirv(<stage>)] pub fn <name>` declarations from src/lib.rs and
emits a SPIR-V module declaring them. A crate containing `compile_error!`
fails the way rustc does.

Environment:
    FAKE_TOOLCHAIN_DELAY: seconds to sleep before building
    FAKE_TOOLCHAIN_LOG: file that gets one line appended per invocation
"""

import argparse
import os
import re
import sys
import time
import tomllib
from pathlib import Path

# Add the project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from shaderwatch.compiler.spirv import encode_module  # noqa: E402

STAGES = {"vertex": 0, "fragment": 4, "compute": 5}
ENTRY_RE = re.compile(r"#\[spirv\((\w+)[^\]]*\)\]\s*pub fn (\w+)")


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--shader-crate", type=Path, required=True)
    parser.add_argument("--target", required=True)
    parser.add_argument("--output-dir", type=Path, required=True)
    parser.add_argument("--multimodule", action="store_true")
    parser.add_argument("--produce-nothing", action="store_true")
    parser.add_argument("--bad-entry-name", action="store_true")
    args, _ = parser.parse_known_args()

    log_file = os.environ.get("FAKE_TOOLCHAIN_LOG")
    if log_file:
        with open(log_file, "a", encoding="utf-8") as f:
            f.write(f"{args.shader_crate}\n")

    delay = float(os.environ.get("FAKE_TOOLCHAIN_DELAY", "0"))
    if delay:
        time.sleep(delay)

    with (args.shader_crate / "Cargo.toml").open("rb") as f:
        name = tomllib.load(f)["package"]["name"]
    source = (args.shader_crate / "src" / "lib.rs").read_text(encoding="utf-8")

    if "compile_error!" in source:
        print("error: shader failed to compile", file=sys.stderr)
        print(" --> src/lib.rs:1:1", file=sys.stderr)
        return 101

    if args.produce_nothing:
        return 0

    entries = [(STAGES.get(stage, 99), fn) for stage, fn in ENTRY_RE.findall(source)]
    if args.bad_entry_name:
        entries.append((4, b"\xff\xfe"))
    stem = name.replace("-", "_")
    args.output_dir.mkdir(parents=True, exist_ok=True)

    if args.multimodule:
        module_dir = args.output_dir / f"{stem}.spv"
        module_dir.mkdir()
        for entry in entries:
            (module_dir / f"{entry[1]}.spv").write_bytes(encode_module([entry]))
    else:
        (args.output_dir / f"{stem}.spv").write_bytes(encode_module(entries))
    return 0


if __name__ == "__main__":
    sys.exit(main())
