"""
Smoke test for the duplicate lock stress harness (small run, in-memory backend).
"""

from __future__ import annotations

from testing.stress_test import _percentile, generate_keys, run_stress

from backend_feerelay.sponsor.cache import MemoryLockCache


def test_generate_keys_distinct_and_prefixed():
    keys = generate_keys(20, seed=1)
    assert len(set(keys)) == 20
    assert all(k.startswith("transaction/") for k in keys)


def test_percentile():
    assert _percentile([], 50) == 0.0
    assert _percentile([1.0, 2.0, 3.0], 50) == 2.0
    assert _percentile([1.0, 2.0, 3.0], 100) == 3.0


def test_run_stress_single_winner_per_key():
    report = run_stress(MemoryLockCache(30.0), generate_keys(10, seed=7), threads=4)
    assert report["attempts"] == 40
    assert report["keys"] == 10
    assert report["violations"] == 0
