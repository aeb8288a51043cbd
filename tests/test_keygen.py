import hashlib
import tempfile
import unittest
import zlib
from pathlib import Path

from dupescout import ConfigurationError, KEY_GENERATORS, resolve_key_generator
from dupescout.keygen import PARTIAL_READ_SIZE, crc32_key, murmur3_key, sha256_key

from .test_utils import make_tree


class BuiltinKeyGeneratorTest(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self._tmpdir.name)

    def tearDown(self):
        self._tmpdir.cleanup()

    def test_identical_content_gives_identical_keys(self):
        files = make_tree(self.root, {'a': b'same' * 1000, 'b': b'same' * 1000, 'c': b'other' * 1000})

        for name, key_generator in KEY_GENERATORS.items():
            with self.subTest(key_generator=name):
                key_a = key_generator(str(files['a']))
                self.assertTrue(key_a)
                self.assertEqual(key_a, key_generator(str(files['b'])))
                self.assertNotEqual(key_a, key_generator(str(files['c'])))

    def test_crc32_key_reads_head_and_size(self):
        content = b'x' * (PARTIAL_READ_SIZE + 10)
        files = make_tree(self.root, {'big': content})

        expected = f"{len(content)}-{zlib.crc32(content[:PARTIAL_READ_SIZE]):08x}"
        self.assertEqual(crc32_key(str(files['big'])), expected)

    def test_crc32_key_collides_after_head(self):
        """Files that differ only after the first 16 KiB share a partial key."""
        head = b'h' * PARTIAL_READ_SIZE
        files = make_tree(self.root, {'a': head + b'tail-1', 'b': head + b'tail-2'})

        self.assertEqual(crc32_key(str(files['a'])), crc32_key(str(files['b'])))
        self.assertNotEqual(sha256_key(str(files['a'])), sha256_key(str(files['b'])))
        self.assertNotEqual(murmur3_key(str(files['a'])), murmur3_key(str(files['b'])))

    def test_sha256_key_is_hex_digest(self):
        files = make_tree(self.root, {'f': b'hello'})

        self.assertEqual(sha256_key(str(files['f'])), hashlib.sha256(b'hello').hexdigest())

    def test_murmur3_key_is_128_bit_hex(self):
        files = make_tree(self.root, {'f': b'hello'})

        key = murmur3_key(str(files['f']))
        self.assertEqual(len(key), 32)
        int(key, 16)

    def test_missing_file_raises(self):
        with self.assertRaises(OSError):
            crc32_key(str(self.root / 'missing'))


class ResolveKeyGeneratorTest(unittest.TestCase):
    def test_resolves_names(self):
        self.assertIs(resolve_key_generator('sha256'), sha256_key)
        self.assertIs(resolve_key_generator(None), crc32_key)

    def test_callables_pass_through(self):
        def key_generator(path):
            return path

        self.assertIs(resolve_key_generator(key_generator), key_generator)

    def test_unknown_name_is_configuration_error(self):
        with self.assertRaises(ConfigurationError) as cm:
            resolve_key_generator('md5')

        self.assertIn('md5', str(cm.exception))

    def test_non_callable_is_configuration_error(self):
        with self.assertRaises(ConfigurationError):
            resolve_key_generator(42)


if __name__ == '__main__':
    unittest.main()
