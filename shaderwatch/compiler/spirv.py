"""
ShaderWatch SPIR-V Reflection.

Reads entry points out of a compiled SPIR-V module so they can be written
to the metadata sidecar.
Requires Python 3.11+.
"""

import struct
from pathlib import Path

from shaderwatch.compiler.models import EntryPoint, ExecutionModel

SPIRV_MAGIC = 0x07230203
HEADER_WORDS = 5
OP_ENTRY_POINT = 15

_EXECUTION_MODELS: dict[int, ExecutionModel] = {
    0: ExecutionModel.VERTEX,
    1: ExecutionModel.TESSELLATION_CONTROL,
    2: ExecutionModel.TESSELLATION_EVALUATION,
    3: ExecutionModel.GEOMETRY,
    4: ExecutionModel.FRAGMENT,
    5: ExecutionModel.GL_COMPUTE,
    6: ExecutionModel.KERNEL,
    5267: ExecutionModel.TASK_NV,
    5268: ExecutionModel.MESH_NV,
    5313: ExecutionModel.RAY_GENERATION,
    5314: ExecutionModel.INTERSECTION,
    5315: ExecutionModel.ANY_HIT,
    5316: ExecutionModel.CLOSEST_HIT,
    5317: ExecutionModel.MISS,
    5318: ExecutionModel.CALLABLE,
    5364: ExecutionModel.TASK_EXT,
    5365: ExecutionModel.MESH_EXT,
}


class SpirvFormatError(ValueError):
    """Raised when a binary is not a well-formed SPIR-V module."""


def _decode_words(data: bytes) -> tuple[int, ...]:
    if len(data) < HEADER_WORDS * 4 or len(data) % 4:
        raise SpirvFormatError(f"module size {len(data)} is not a whole number of words")

    count = len(data) // 4
    for order in ("<", ">"):
        words = struct.unpack(f"{order}{count}I", data)
        if words[0] == SPIRV_MAGIC:
            return words
    raise SpirvFormatError(f"bad magic number 0x{struct.unpack('<I', data[:4])[0]:08x}")


def _decode_string(words: tuple[int, ...]) -> str:
    # Octets are packed low byte first within each word, whatever the module byte order.
    raw = struct.pack(f"<{len(words)}I", *words)
    end = raw.find(b"\0")
    if end < 0:
        raise SpirvFormatError("unterminated literal string")
    try:
        return raw[:end].decode("utf-8")
    except UnicodeDecodeError as e:
        raise SpirvFormatError(f"entry point name is not valid UTF-8: {raw[:end]!r}") from e


def read_entry_points(data: bytes) -> list[EntryPoint]:
    """
    Extract the OpEntryPoint declarations of a SPIR-V module.

    Args:
        data: Raw module bytes, either endianness

    Returns:
        Entry points in declaration order
    """
    words = _decode_words(data)

    entry_points: list[EntryPoint] = []
    index = HEADER_WORDS
    while index < len(words):
        instruction = words[index]
        word_count = instruction >> 16
        opcode = instruction & 0xFFFF
        if word_count == 0 or index + word_count > len(words):
            raise SpirvFormatError(f"truncated instruction at word {index}")

        if opcode == OP_ENTRY_POINT:
            if word_count < 4:
                raise SpirvFormatError(f"malformed OpEntryPoint at word {index}")
            model = _EXECUTION_MODELS.get(words[index + 1], ExecutionModel.UNKNOWN)
            name = _decode_string(words[index + 3 : index + word_count])
            entry_points.append(EntryPoint(name=name, execution_model=model))

        index += word_count

    return entry_points


def read_entry_points_from_file(path: Path) -> list[EntryPoint]:
    """Read entry points from a SPIR-V file on disk."""
    return read_entry_points(path.read_bytes())


def encode_module(entry_points: list[tuple[int, str | bytes]], order: str = "<") -> bytes:
    """
    Build a minimal SPIR-V module declaring the given entry points.

    Used by the test suite and the fake toolchain. Each entry point is
    (execution model number, name).
    """
    words: list[int] = [SPIRV_MAGIC, 0x00010500, 0, 100, 0]
    for result_id, (model, name) in enumerate(entry_points, start=1):
        encoded = (name if isinstance(name, bytes) else name.encode("utf-8")) + b"\0"
        encoded += b"\0" * (-len(encoded) % 4)
        literal = list(struct.unpack(f"<{len(encoded) // 4}I", encoded))
        operands = [model, result_id, *literal]
        words.append(((len(operands) + 1) << 16) | OP_ENTRY_POINT)
        words.extend(operands)
    return struct.pack(f"{order}{len(words)}I", *words)
