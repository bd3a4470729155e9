import os
import shutil
import tempfile
import unittest

from git_grove.BoundaryResolver import BoundaryResolver, is_within
from git_grove.GroveConfig import PermissionThreshold
from git_grove.PermissionGate import PermissionGate
from git_grove.ResolutionResult import Intent, Status


def make_dirs(base, *parts, **kw):
    path = os.path.join(base, *parts)
    os.makedirs(path)
    mode = kw.get('mode', 0o755)
    # makedirs honours umask, so set every level explicitly
    current = base
    for part in parts:
        current = os.path.join(current, part)
        os.chmod(current, mode)
    return path


class BoundaryResolverTestCase(unittest.TestCase):

    def setUp(self):
        self.base_path = os.path.realpath(tempfile.mkdtemp())
        self.project = make_dirs(self.base_path, 'projects', 'web')
        make_dirs(self.project, '.git')
        make_dirs(self.project, 'vendor', 'lib')
        make_dirs(self.project, 'vendor', 'lib', '.git')
        make_dirs(self.base_path, 'plain', 'docs')
        self.resolver = BoundaryResolver(self.base_path)

    def tearDown(self):
        shutil.rmtree(self.base_path, True)

    def resolve(self, *parts):
        return self.resolver.resolve(os.path.join(self.base_path, *parts))

    def test_01_front_page(self):
        r = self.resolve('projects', 'web')
        self.assertEqual(r.status, Status.OK)
        self.assertTrue(r.is_git_repository)
        self.assertEqual(r.repo_root, self.project)
        self.assertEqual(r.intent, Intent.FRONT_PAGE)
        self.assertEqual(r.inner_path, '')

    def test_02_blob_and_tree(self):
        r = self.resolve('projects', 'web', 'blob', 'src', 'main.py')
        self.assertEqual((r.intent, r.inner_path, r.status), (Intent.BLOB_VIEW, 'src/main.py', Status.OK))

        r = self.resolve('projects', 'web', 'tree', 'src')
        self.assertEqual((r.intent, r.inner_path, r.status), (Intent.TREE_VIEW, 'src/', Status.OK))

        r = self.resolve('projects', 'web', 'tree')
        self.assertEqual((r.intent, r.inner_path), (Intent.TREE_VIEW, '.'))

        r = self.resolve('projects', 'web', 'raw', 'logo.png')
        self.assertEqual((r.intent, r.inner_path), (Intent.RAW_VIEW, 'logo.png'))

    def test_03_unknown_suffix_is_not_found(self):
        r = self.resolve('projects', 'web', 'commits', 'master')
        self.assertTrue(r.is_git_repository)
        self.assertEqual(r.status, Status.NOT_FOUND)
        self.assertEqual(r.intent, Intent.UNRESOLVED)

    def test_04_innermost_repository_wins(self):
        r = self.resolve('projects', 'web', 'vendor', 'lib', 'blob', 'a.c')
        self.assertEqual(r.repo_root, os.path.join(self.project, 'vendor', 'lib'))
        self.assertEqual(r.inner_path, 'a.c')

        # an enclosing repo sees the nested one's path as plain suffix
        r = self.resolve('projects', 'web', 'vendor')
        self.assertEqual(r.repo_root, self.project)
        self.assertEqual(r.status, Status.NOT_FOUND)

    def test_05_no_marker_ends_at_root(self):
        r = self.resolve('plain', 'docs')
        self.assertEqual(r.status, Status.OK)
        self.assertFalse(r.is_git_repository)
        self.assertEqual(r.intent, Intent.PLAIN_DIRECTORY)
        self.assertEqual(r.repo_root, self.base_path)
        self.assertEqual(r.inner_path, 'plain/docs')

        r = self.resolve('does', 'not', 'exist')
        self.assertFalse(r.is_git_repository)
        self.assertEqual(r.repo_root, self.base_path)

        r = self.resolver.resolve(self.base_path)
        self.assertEqual((r.repo_root, r.inner_path, r.intent), (self.base_path, '', Intent.PLAIN_DIRECTORY))

    def test_06_containment(self):
        r = self.resolver.resolve(os.path.join(self.base_path, '..'))
        self.assertEqual(r.status, Status.FORBIDDEN)
        r = self.resolver.resolve(os.path.join(self.base_path, 'plain', '..', '..', 'etc'))
        self.assertEqual(r.status, Status.FORBIDDEN)
        # a sibling sharing the root's name as prefix is outside too
        r = self.resolver.resolve(self.base_path + 'x')
        self.assertEqual(r.status, Status.FORBIDDEN)

    def test_07_repository_permissions(self):
        os.chmod(self.project, 0o750)
        r = self.resolve('projects', 'web')
        self.assertEqual(r.status, Status.FORBIDDEN)

        owner_resolver = BoundaryResolver(self.base_path, PermissionGate(PermissionThreshold.OWNER))
        r = owner_resolver.resolve(self.project)
        self.assertEqual(r.status, Status.OK)
        self.assertEqual(r.intent, Intent.FRONT_PAGE)

    def test_08_hidden_repository_name_is_judged_on_bits(self):
        hidden = make_dirs(self.base_path, '.dotfiles')
        make_dirs(hidden, '.git')
        r = self.resolver.resolve(hidden)
        self.assertEqual(r.status, Status.OK)
        self.assertTrue(r.is_git_repository)

    def test_09_serving_root_with_marker_is_plain(self):
        make_dirs(self.base_path, '.git')
        r = self.resolve('plain')
        self.assertFalse(r.is_git_repository)
        self.assertEqual(r.intent, Intent.PLAIN_DIRECTORY)

    def test_10_is_within(self):
        self.assertTrue(is_within('/srv/git', '/srv/git'))
        self.assertTrue(is_within('/srv/git', '/srv/git/a'))
        self.assertFalse(is_within('/srv/git', '/srv/gitx'))
        self.assertFalse(is_within('/srv/git', '/srv'))
        self.assertTrue(is_within('/', '/etc'))


if __name__ == "__main__":
    unittest.TextTestRunner(verbosity=2).run(
        unittest.TestSuite([
            unittest.TestLoader().loadTestsFromTestCase(BoundaryResolverTestCase),
        ])
    )
