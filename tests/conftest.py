"""
ShaderWatch Test Configuration.

Pytest fixtures and configuration.
Requires Python 3.11+.
"""

import sys
from collections.abc import Generator
from pathlib import Path

import pytest

from shaderwatch.utils.config import get_settings

FAKE_TOOLCHAIN = Path(__file__).parent / "fake_toolchain.py"


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """Re-read settings for every test so env overrides apply."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def toolchain_command() -> list[str]:
    """Build command running the fake toolchain."""
    return [
        sys.executable,
        str(FAKE_TOOLCHAIN),
        "--shader-crate",
        "{crate}",
        "--target",
        "{target}",
        "--output-dir",
        "{output_dir}",
    ]


@pytest.fixture
def sample_shader_source() -> str:
    """Sample rust-gpu shader source."""
    return '''#![no_std]

use spirv_std::glam::{vec4, Vec4};
use spirv_std::spirv;

#[spirv(vertex)]
pub fn main_vs(#[spirv(vertex_index)] idx: i32, #[spirv(position)] out_pos: &mut Vec4) {
    *out_pos = vec4((idx - 1) as f32, ((idx & 1) * 2 - 1) as f32, 0.0, 1.0);
}

#[spirv(fragment)]
pub fn main_fs(output: &mut Vec4) {
    *output = vec4(1.0, 0.0, 0.0, 1.0);
}
'''


def _make_crate(root: Path, name: str, source: str) -> Path:
    crate = root / name
    (crate / "src").mkdir(parents=True)
    (crate / "Cargo.toml").write_text(
        f'[package]\nname = "{name}"\nversion = "0.1.0"\nedition = "2021"\n\n'
        '[lib]\ncrate-type = ["dylib"]\n'
    )
    (crate / "src" / "lib.rs").write_text(source)
    return crate


@pytest.fixture
def shader_crate(tmp_path: Path, sample_shader_source: str) -> Path:
    """Create a valid shader crate."""
    return _make_crate(tmp_path, "sky-shader", sample_shader_source)


@pytest.fixture
def broken_crate(tmp_path: Path) -> Path:
    """Create a shader crate that fails to compile."""
    return _make_crate(tmp_path, "broken-shader", 'compile_error!("oops");\n')
