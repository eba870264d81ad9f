"""Shared key material for the test suite.

Key generation dominates test time, so one small key pair and one set of
auth servers is built per session and shared read-only across tests.
"""

import pytest

from tpaillier.core.shares import ShareSet, combine
from tpaillier.crypto.entropy import RandomSource
from tpaillier.crypto.keys import generate_key_pair
from tpaillier.crypto.shamir import Polynomial


@pytest.fixture(scope="session")
def random_source():
    return RandomSource()


@pytest.fixture(scope="session")
def key_pair(random_source):
    """256-bit key, any 3 of 5 servers decrypt."""
    return generate_key_pair(bits=256, l=3, w=5, random=random_source)


@pytest.fixture(scope="session")
def public_key(key_pair):
    return key_pair[0]


@pytest.fixture(scope="session")
def private_key(key_pair):
    return key_pair[1]


@pytest.fixture(scope="session")
def polynomial(private_key, random_source):
    return Polynomial.derive(private_key, random_source)


@pytest.fixture(scope="session")
def servers(public_key, polynomial):
    return polynomial.servers(public_key.w)


@pytest.fixture
def decrypt(public_key, servers):
    """Threshold-decrypt a ciphertext with the given (default: first l) servers."""

    def _decrypt(ciphertext, indices=None):
        if indices is None:
            indices = range(public_key.l)

        share_set = ShareSet(public_key.w)
        for i in indices:
            share_set.add(servers[i].partial_decrypt(public_key, ciphertext))
        return combine(public_key, share_set)

    return _decrypt
