#!/usr/bin/env python3
"""
Kubernetes resource quantity helpers.

Quantities are parsed into Decimal base units (cores, bytes) before any
arithmetic or comparison; suffixed strings are never compared directly.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from kubernetes.utils import parse_quantity as _k8s_parse_quantity

MILLI_PER_CORE = 1000

_BINARY_SUFFIXES = [
    ("Ei", 1024 ** 6),
    ("Pi", 1024 ** 5),
    ("Ti", 1024 ** 4),
    ("Gi", 1024 ** 3),
    ("Mi", 1024 ** 2),
    ("Ki", 1024),
]

Number = Union[int, float, Decimal]


def parse_quantity(value: Union[str, Number]) -> Decimal:
    """Parse "500m", "1Gi", "2" etc. into base units. Raises ValueError."""
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("empty quantity")
    return _k8s_parse_quantity(value)


def _multiplier(multiplier: Number) -> Decimal:
    # str() keeps 1.1 as 1.1 instead of its binary float expansion
    try:
        dec = multiplier if isinstance(multiplier, Decimal) else Decimal(str(multiplier))
    except InvalidOperation as e:
        raise ValueError(f"invalid multiplier: {multiplier}") from e
    if not dec.is_finite():
        raise ValueError(f"multiplier must be finite: {multiplier}")
    if dec < 0:
        raise ValueError(f"multiplier must not be negative: {multiplier}")
    return dec


def scale_cpu_millicores(raw: Union[str, Number], multiplier: Number) -> int:
    """Scale a CPU quantity; result rounded to the nearest whole millicore."""
    cores = parse_quantity(raw) * _multiplier(multiplier)
    return int((cores * MILLI_PER_CORE).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def scale_memory_bytes(raw: Union[str, Number], multiplier: Number) -> int:
    """Scale a memory quantity; result rounded to the nearest whole byte."""
    num_bytes = parse_quantity(raw) * _multiplier(multiplier)
    return int(num_bytes.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_cpu(millicores: int) -> str:
    if millicores % MILLI_PER_CORE == 0:
        return str(millicores // MILLI_PER_CORE)
    return f"{millicores}m"


def format_memory(num_bytes: int) -> str:
    if num_bytes == 0:
        return "0"
    for suffix, factor in _BINARY_SUFFIXES:
        if num_bytes % factor == 0:
            return f"{num_bytes // factor}{suffix}"
    return str(num_bytes)
