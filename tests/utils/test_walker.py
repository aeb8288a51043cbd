import os
import tempfile
import unittest
from pathlib import Path

from dupescout.errors import TraversalError
from dupescout.utils.walker import WalkPolicy, walk_files

from ..test_utils import make_tree


def accept_all() -> WalkPolicy:
    return WalkPolicy(should_prune_directory=lambda p: False, should_skip_file=lambda p: False)


class WalkFilesTest(unittest.TestCase):
    """Test traversal order and candidate selection."""

    def test_yields_non_empty_regular_files_depth_first(self):
        """Files are yielded depth-first with children in name order."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, {
                'b.txt': b'b',
                'a/2.txt': b'2',
                'a/1.txt': b'1',
                'a/sub/x.txt': b'x',
                'c.txt': b'c',
            })

            found = [p.relative_to(root).as_posix() for p, _ in walk_files(root, accept_all())]

            self.assertEqual(found, ['a/1.txt', 'a/2.txt', 'a/sub/x.txt', 'b.txt', 'c.txt'])

    def test_yields_stat_of_each_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, {'file.bin': b'12345'})

            [(path, st)] = list(walk_files(root, accept_all()))

            self.assertEqual(path, root / 'file.bin')
            self.assertEqual(st.st_size, 5)

    def test_skips_empty_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, {'empty': b'', 'full': b'data'})

            found = [p.name for p, _ in walk_files(root, accept_all())]

            self.assertEqual(found, ['full'])

    def test_skips_symlinks(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, {'target': b'data', 'dir/inner': b'inner'})
            (root / 'link').symlink_to(root / 'target')
            (root / 'dirlink').symlink_to(root / 'dir')
            (root / 'broken').symlink_to(root / 'missing')

            found = [p.relative_to(root).as_posix() for p, _ in walk_files(root, accept_all())]

            self.assertEqual(found, ['dir/inner', 'target'])

    def test_prunes_directories(self):
        """Pruned directories are not descended into."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, {'keep/a': b'a', 'skip/b': b'b', 'skip/deeper/c': b'c'})
            visited = []

            def prune(path):
                visited.append(path.name)
                return path.name == 'skip'

            policy = WalkPolicy(should_prune_directory=prune, should_skip_file=lambda p: False)
            found = [p.name for p, _ in walk_files(root, policy)]

            self.assertEqual(found, ['a'])
            self.assertNotIn('deeper', visited)

    def test_prunes_root(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, {'a': b'a'})

            policy = WalkPolicy(should_prune_directory=lambda p: True, should_skip_file=lambda p: False)

            self.assertEqual(list(walk_files(root, policy)), [])

    def test_skips_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, {'a.jpg': b'a', 'b.txt': b'b'})

            policy = WalkPolicy(should_prune_directory=lambda p: False,
                                should_skip_file=lambda p: p.suffix != '.jpg')

            self.assertEqual([p.name for p, _ in walk_files(root, policy)], ['a.jpg'])

    def test_root_may_be_a_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            file_path = make_tree(Path(tmpdir), {'only': b'content'})['only']

            self.assertEqual([p for p, _ in walk_files(file_path, accept_all())], [file_path])


class WalkCancellationTest(unittest.TestCase):
    def test_cancelled_before_start_yields_nothing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, {'a': b'a'})
            policy = accept_all()._replace(cancelled=lambda: True)

            self.assertEqual(list(walk_files(root, policy)), [])

    def test_cancellation_stops_walk_in_nested_directories(self):
        """Once cancelled, no further entry is visited, at any depth."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, {'a/1': b'1', 'a/2': b'2', 'b/3': b'3', 'c': b'4'})
            cancelled = False
            policy = accept_all()._replace(cancelled=lambda: cancelled)

            found = []
            for path, _ in walk_files(root, policy):
                found.append(path.name)
                cancelled = True

            self.assertEqual(found, ['1'])


class WalkErrorTest(unittest.TestCase):
    def test_missing_root_raises(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            missing = Path(tmpdir) / 'missing'

            with self.assertRaises(TraversalError) as cm:
                list(walk_files(missing, accept_all()))

            self.assertEqual(cm.exception.path, str(missing))
            self.assertIsInstance(cm.exception.__cause__, FileNotFoundError)

    @unittest.skipIf(os.name != 'posix' or os.geteuid() == 0, "requires POSIX permissions as non-root")
    def test_unreadable_directory_raises(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, {'locked/a': b'a'})
            locked = root / 'locked'
            locked.chmod(0)
            try:
                with self.assertRaises(TraversalError) as cm:
                    list(walk_files(root, accept_all()))

                self.assertEqual(cm.exception.path, str(locked))
            finally:
                locked.chmod(0o755)

    @unittest.skipIf(os.name != 'posix' or os.geteuid() == 0, "requires POSIX permissions as non-root")
    def test_unreadable_pruned_directory_is_not_an_error(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, {'locked/a': b'a', 'b': b'b'})
            locked = root / 'locked'
            locked.chmod(0)
            try:
                policy = WalkPolicy(should_prune_directory=lambda p: p.name == 'locked',
                                    should_skip_file=lambda p: False)

                self.assertEqual([p.name for p, _ in walk_files(root, policy)], ['b'])
            finally:
                locked.chmod(0o755)


if __name__ == '__main__':
    unittest.main()
