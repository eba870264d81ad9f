"""Integration tests for end-to-end threshold decryption scenarios."""

import logging

import pytest
from typer.testing import CliRunner

from tpaillier.cli import app
from tpaillier.core.shares import ShareSet, combine
from tpaillier.crypto.entropy import RandomSource
from tpaillier.crypto.keys import generate_key_pair, verify_key_pair
from tpaillier.crypto.shamir import Polynomial
from tpaillier.errors import InsufficientSharesError, ReconstructionError


runner = CliRunner()


class TestThresholdScenario:
    """512-bit key, any 3 of 5 servers."""

    @pytest.fixture(scope="class")
    def deployment(self):
        random = RandomSource()
        public_key, private_key = generate_key_pair(bits=512, l=3, w=5, random=random)
        servers = Polynomial.derive(private_key, random).servers(5)
        return public_key, private_key, servers

    def test_key_pair_verifies(self, deployment):
        public_key, private_key, _ = deployment
        assert verify_key_pair(public_key, private_key)

    def test_servers_0_2_4_decrypt(self, deployment):
        """Servers {0, 2, 4} jointly recover m = 42."""
        public_key, _, servers = deployment
        c = public_key.encrypt(42)

        share_set = ShareSet(5)
        for i in (0, 2, 4):
            share_set.add(servers[i].partial_decrypt(public_key, c))

        assert combine(public_key, share_set) == 42

    def test_servers_0_2_cannot_decrypt(self, deployment):
        """Servers {0, 2} alone are below the threshold."""
        public_key, _, servers = deployment
        c = public_key.encrypt(42)

        share_set = ShareSet(5)
        for i in (0, 2):
            share_set.add(servers[i].partial_decrypt(public_key, c))

        with pytest.raises(InsufficientSharesError):
            combine(public_key, share_set)

    def test_late_share_completes_decryption(self, deployment):
        """Reconstruction stays pending until the l-th share arrives."""
        public_key, _, servers = deployment
        c = public_key.encrypt(42)
        share_set = ShareSet(5)

        share_set.add(servers[4].partial_decrypt(public_key, c))
        share_set.add(servers[1].partial_decrypt(public_key, c))
        with pytest.raises(InsufficientSharesError):
            combine(public_key, share_set)

        share_set.add(servers[3].partial_decrypt(public_key, c))
        assert combine(public_key, share_set) == 42

    def test_encrypted_tally(self, deployment):
        """Homomorphic sum of several ballots, decrypted once."""
        public_key, _, servers = deployment
        votes = [1, 0, 1, 1, 0, 1]

        tally = public_key.encrypt(0)
        for vote in votes:
            tally = public_key.ee_add(tally, public_key.encrypt(vote))
        tally = public_key.reencrypt(tally)

        share_set = ShareSet(5)
        for server in servers[2:]:
            share_set.add(server.partial_decrypt(public_key, tally))

        assert combine(public_key, share_set) == sum(votes)


class TestSingleServer:
    """l = w = 1 degenerates to ordinary Paillier."""

    def test_one_of_one(self):
        public_key, private_key = generate_key_pair(bits=128, l=1, w=1)
        (server,) = Polynomial.derive(private_key).servers(1)

        c = public_key.encrypt(77)
        share_set = ShareSet(1)
        share_set.add(server.partial_decrypt(public_key, c))

        assert combine(public_key, share_set) == 77


class TestLogging:
    """What a full run at DEBUG writes to the log."""

    def test_secrets_never_logged(self, caplog):
        """
        Key generation, dealing, partial decryption and combining (including
        a rejected share) log progress but never d, a coefficient or a share.
        """
        random = RandomSource()

        with caplog.at_level(logging.DEBUG, logger="tpaillier"):
            public_key, private_key = generate_key_pair(
                bits=256, l=3, w=5, random=random
            )
            polynomial = Polynomial.derive(private_key, random)
            servers = polynomial.servers(5)

            c = public_key.encrypt(1234, random)
            share_set = ShareSet(5)
            for i in (0, 2, 4):
                share_set.add(servers[i].partial_decrypt(public_key, c))
            assert combine(public_key, share_set) == 1234

            bad_set = ShareSet(5)
            for i in (0, 1):
                bad_set.add(servers[i].partial_decrypt(public_key, c))
            bad_set.set_share(2, 1)
            with pytest.raises(ReconstructionError):
                combine(public_key, bad_set)

        messages = [r.getMessage() for r in caplog.records]
        secrets = [private_key.d, *polynomial.coefficients]
        secrets += [server.share for server in servers]

        assert "Derived degree 2 sharing polynomial" in messages
        assert "Dealing shares to 5 servers" in messages
        assert "Server 2 computing partial decryption" in messages
        assert "Combining shares from servers [0, 2, 4]" in messages
        assert any(r.levelno == logging.WARNING for r in caplog.records)
        for secret in secrets:
            assert not any(str(secret) in message for message in messages)

    def test_cli_debug_events(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="tpaillier"):
            result = runner.invoke(app, ["demo", "-b", "128", "-u", "1,3,4"])

        assert result.exit_code == 0
        messages = [r.getMessage() for r in caplog.records]
        assert "Demo requested with servers [1, 3, 4]" in messages


class TestCLI:
    """Tests for the typer command line."""

    def test_demo(self):
        result = runner.invoke(
            app, ["demo", "-m", "42", "-b", "128", "-l", "3", "-w", "5", "-u", "0,2,4"]
        )

        assert result.exit_code == 0
        assert "Decrypted: 42" in result.output

    def test_demo_insufficient_servers(self):
        result = runner.invoke(app, ["demo", "-b", "128", "-u", "0,2"])

        assert result.exit_code == 1
        assert "Need 3 shares, got 2" in result.output

    def test_demo_unknown_server(self):
        result = runner.invoke(app, ["demo", "-b", "128", "-u", "0,2,9"])

        assert result.exit_code == 1
        assert "No server 9" in result.output

    def test_sum(self):
        result = runner.invoke(app, ["sum", "10", "20", "12", "-k", "3", "-b", "128"])

        assert result.exit_code == 0
        assert "= 126" in result.output

    def test_verify(self):
        result = runner.invoke(app, ["verify", "-b", "128", "-l", "2", "-w", "3"])

        assert result.exit_code == 0
        assert "Key pair OK" in result.output

    def test_invalid_threshold(self):
        result = runner.invoke(app, ["verify", "-b", "128", "-l", "4", "-w", "3"])

        assert result.exit_code == 1
        assert "must be >= threshold" in result.output

    def test_keygen_info(self):
        result = runner.invoke(
            app, ["keygen-info", "-b", "128", "-l", "2", "-w", "4", "--check", "5"]
        )

        assert result.exit_code == 0
        assert "delta = 24" in result.output
        assert "E(5) = " in result.output
