"""Resource caps for a single script run."""

from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

# Fixed ceiling on while-loop iterations, not configurable
MAX_WHILE_ITERATIONS = 10000


class InterpreterLimits(BaseSettings):
    """Interpreter hardening limits from INTERPRETER_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="INTERPRETER_", case_sensitive=False)

    max_source_length: int = 100_000
    max_nesting_depth: int = 50
    max_output_size: int = 1_000_000  # characters across all output lines
    max_call_arguments: int = 256
    max_collection_size: int = 1_000_000
    max_int_bits: int = 100_000  # about 30,000 decimal digits


def estimate_int_bits(op: str, left: Any, right: Any) -> int:
    """Upper estimate of the bit length of ``left op right``.

    Only integer ``*`` and ``**`` can grow without bound; every other
    operation returns 0.
    """
    if not (isinstance(left, int) and isinstance(right, int)):
        return 0
    if op == "*":
        return left.bit_length() + right.bit_length()
    if op == "**":
        if right <= 0 or abs(left) <= 1:
            return 0
        return left.bit_length() * right
    return 0
