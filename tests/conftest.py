"""
Pytest configuration for PPETS tests.

The composite-order groups are deliberately small so that whole sessions
run quickly; the curve families always run at their native size.
"""
import pytest
import sys
from pathlib import Path

# Ensure ppets package is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from ppets.crypto import DefaultCryptoProvider, PairingType
from ppets.log import CollectingSink

# [skip_verification, num_validations, family, strength 1, strength 2]
SMALL_A = ["false", "2", "A", "64", "128"]
SMALL_E = ["false", "2", "E", "48", "96"]
SMALL_A1 = ["false", "2", "A1", "2", "32"]


def params(base, skip=None, validations=None):
    """Copy of a parameter list with the first two slots overridden."""
    out = list(base)
    if skip is not None:
        out[0] = "true" if skip else "false"
    if validations is not None:
        out[1] = str(validations)
    return out


@pytest.fixture(scope="session")
def crypto():
    return DefaultCryptoProvider(primality_rounds=16)


@pytest.fixture(scope="session")
def group_a(crypto):
    """G1 of alt_bn128."""
    return crypto.create_group(PairingType.TYPE_A, 64, 128)


@pytest.fixture(scope="session")
def group_e(crypto):
    """G1 of BLS12-381."""
    return crypto.create_group(PairingType.TYPE_E, 48, 96)


@pytest.fixture(scope="session")
def group_a1(crypto):
    """Composite-order group, two 32-bit primes."""
    return crypto.create_group(PairingType.TYPE_A1, 2, 32)


@pytest.fixture(params=["A", "E", "A1"])
def group(request, group_a, group_e, group_a1):
    return {"A": group_a, "E": group_e, "A1": group_a1}[request.param]


@pytest.fixture
def log():
    """Collects log lines for assertions."""
    return CollectingSink()
