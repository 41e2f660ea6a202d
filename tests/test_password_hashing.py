"""Tests for bcrypt password hashing."""

from __future__ import annotations

import unittest

from portal.passwords import DEFAULT_BCRYPT_ROUNDS, PasswordHasher


class PasswordHashingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.hasher = PasswordHasher(rounds=4)

    def test_hash_and_verify(self) -> None:
        hashed = self.hasher.hash("supersecurepassword")
        self.assertTrue(hashed.startswith("$2b$04$"))
        self.assertTrue(self.hasher.verify("supersecurepassword", hashed))
        self.assertFalse(self.hasher.verify("incorrect", hashed))

    def test_hashes_are_salted(self) -> None:
        first = self.hasher.hash("same-password")
        second = self.hasher.hash("same-password")
        self.assertNotEqual(first, second)
        self.assertTrue(self.hasher.verify("same-password", first))
        self.assertTrue(self.hasher.verify("same-password", second))

    def test_malformed_hash_does_not_verify(self) -> None:
        self.assertFalse(self.hasher.verify("password", "not-a-bcrypt-hash"))
        self.assertFalse(self.hasher.verify("password", ""))

    def test_empty_password_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.hasher.hash("")

    def test_default_cost_factor(self) -> None:
        hasher = PasswordHasher()
        self.assertEqual(hasher.rounds, DEFAULT_BCRYPT_ROUNDS)
        self.assertEqual(DEFAULT_BCRYPT_ROUNDS, 10)
        self.assertTrue(hasher.hash("pw").startswith("$2b$10$"))

    def test_rounds_out_of_range(self) -> None:
        with self.assertRaises(ValueError):
            PasswordHasher(rounds=3)
        with self.assertRaises(ValueError):
            PasswordHasher(rounds=32)

    def test_dummy_verify_runs(self) -> None:
        self.assertIsNone(self.hasher.dummy_verify())


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
