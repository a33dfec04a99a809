#!/usr/bin/env python3
"""
Tests for resource quantity helpers
"""

from decimal import Decimal

import pytest

from quantity_utils import (
    format_cpu,
    format_memory,
    parse_quantity,
    scale_cpu_millicores,
    scale_memory_bytes,
)


def test_parse_quantity_units():
    assert parse_quantity("500m") == Decimal("0.5")
    assert parse_quantity("2") == Decimal(2)
    assert parse_quantity("1Gi") == Decimal(1024 ** 3)
    assert parse_quantity("1G") == Decimal(1000 ** 3)
    assert parse_quantity(" 256Mi ") == Decimal(256 * 1024 ** 2)


@pytest.mark.parametrize("bad", ["", "   ", "abc", "12Qi"])
def test_parse_quantity_rejects_garbage(bad):
    with pytest.raises(ValueError):
        parse_quantity(bad)


def test_scale_cpu_millicores():
    assert scale_cpu_millicores("500m", 1.5) == 750
    assert scale_cpu_millicores("1", 1.1) == 1100
    assert scale_cpu_millicores("1m", 0.4) == 0
    assert scale_cpu_millicores("1m", 0.5) == 1


def test_scale_memory_bytes():
    assert scale_memory_bytes("1Gi", 3.0) == 3 * 1024 ** 3
    assert scale_memory_bytes("3", 0.5) == 2


def test_negative_multiplier_rejected():
    with pytest.raises(ValueError):
        scale_cpu_millicores("1", -1)


@pytest.mark.parametrize("multiplier", [float("nan"), float("inf"), Decimal("NaN"), Decimal("-Infinity"), "abc"])
def test_non_finite_or_garbage_multiplier_rejected(multiplier):
    with pytest.raises(ValueError):
        scale_memory_bytes("1Gi", multiplier)


def test_format_cpu():
    assert format_cpu(750) == "750m"
    assert format_cpu(2000) == "2"
    assert format_cpu(0) == "0"


def test_format_memory():
    assert format_memory(3 * 1024 ** 3) == "3Gi"
    assert format_memory(1536 * 1024 ** 2) == "1536Mi"
    assert format_memory(1000) == "1000"
    assert format_memory(0) == "0"
