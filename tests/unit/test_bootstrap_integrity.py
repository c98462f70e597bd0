import hashlib
import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(ROOT / "installers" / "bootstrap"))
sys.path.insert(0, str(ROOT / "packages" / "core"))

from kirha_bootstrap.integrity import read_expected_digest, sha256_file, verify_checksum


class BootstrapIntegrityTests(unittest.TestCase):
    def test_read_expected_digest_takes_first_token(self):
        with tempfile.TemporaryDirectory() as tmp:
            p = Path(tmp) / "kirha-mcp-installer-linux-amd64.sha256"
            p.write_text("abc123  kirha-mcp-installer-linux-amd64\n", encoding="utf-8")
            self.assertEqual(read_expected_digest(p), "abc123")

            p.write_text("   \n", encoding="utf-8")
            self.assertEqual(read_expected_digest(p), "")

    def test_sha256_and_verify(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            binary = root / "kirha-mcp-installer-linux-amd64"
            binary.write_bytes(b"hello world")

            digest = hashlib.sha256(b"hello world").hexdigest()
            self.assertEqual(sha256_file(binary), digest)

            checksum = root / "kirha-mcp-installer-linux-amd64.sha256"
            checksum.write_text(f"{digest}  {binary.name}\n", encoding="utf-8")
            self.assertTrue(verify_checksum(binary, checksum))

            checksum.write_text(f"deadbeef {binary.name}\n", encoding="utf-8")
            self.assertFalse(verify_checksum(binary, checksum))

    def test_verify_is_case_sensitive(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            binary = root / "bin"
            binary.write_bytes(b"payload")
            checksum = root / "bin.sha256"
            checksum.write_text(hashlib.sha256(b"payload").hexdigest().upper(), encoding="utf-8")
            self.assertFalse(verify_checksum(binary, checksum))

    def test_undecodable_sidecar_is_a_mismatch(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            binary = root / "bin"
            binary.write_bytes(b"payload")
            checksum = root / "bin.sha256"
            checksum.write_bytes(b"\xff\xfe\x00garbage")
            self.assertNotEqual(read_expected_digest(checksum), sha256_file(binary))
            self.assertFalse(verify_checksum(binary, checksum))

    def test_missing_sidecar_passes(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            binary = root / "bin"
            binary.write_bytes(b"payload")
            self.assertTrue(verify_checksum(binary, root / "bin.sha256"))


if __name__ == "__main__":
    unittest.main()
