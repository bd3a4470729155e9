import glob
import json
import os
import shutil
import tempfile
import unittest
import warnings
from wsgiref.util import setup_testing_defaults

from git_grove.GitContentProvider import Commit, GitCommandError
from git_grove.GroveConfig import GroveConfig
from git_grove.GroveRouter import assemble_WSGI_grove_app
from git_grove.WSGIHandlerSelector import sanitize_path


class FakeProvider(object):
    '''Stands in for GitContentProvider, so no git executable is needed.'''

    files = {
        'README.md': b'# Hello grove\n\nSome *text*.\n',
        'src/main.py': b'print("hi")\nprint("bye")\n',
        'logo.png': b'\x89PNG\r\n\x1a\n\x00\x00',
    }
    dirs = {
        '': ['README.md', 'logo.png', 'src/'],
        'src': ['main.py'],
    }
    history = [
        Commit('a' * 40, 'Ann', '2024-01-02 10:00:00 +0000', 'Second change', ''),
        Commit('b' * 40, 'Bob', '2024-01-01 10:00:00 +0000', 'Initial import', 'with a body'),
    ]

    def __init__(self, path):
        self.path = path

    def ref_exists(self, ref):
        return ref in ('HEAD', 'master', 'v1')

    def branch(self, ref = 'HEAD'):
        return 'master'

    def tags(self):
        return ['v1']

    def total_commits(self):
        return len(self.history)

    def sha(self, ref):
        return 'a' * 40

    def commits(self, ref, max_count):
        return self.history[:max_count]

    def get_file(self, ref, path):
        return self.files.get(path, b'')

    def get_dir(self, ref, path):
        return self.dirs[path.strip('/')]

    def owner(self):
        return 'Ann'


class BrokenProvider(FakeProvider):

    def tags(self):
        raise GitCommandError(['git', 'for-each-ref'], 128, b'fatal: not a git repository')


class GroveRouterTestCase(unittest.TestCase):

    def setUp(self):
        self.base_path = os.path.realpath(tempfile.mkdtemp())
        os.chmod(self.base_path, 0o755)
        for parts in (('proj', '.git'), ('subtree', '.git'), ('plain', 'docs'), ('.secret',), ('closed',), ('res',)):
            path = os.path.join(self.base_path, *parts)
            os.makedirs(path)
            current = self.base_path
            for part in parts:
                current = os.path.join(current, part)
                os.chmod(current, 0o755)
        os.chmod(os.path.join(self.base_path, 'closed'), 0o700)
        with open(os.path.join(self.base_path, 'res', 'favicon.png'), 'wb') as f:
            f.write(b'\x89PNG\r\n\x1a\n')
        self.app = self.make_app()

    def tearDown(self):
        shutil.rmtree(self.base_path, True)

    def make_app(self, provider_factory = FakeProvider, **kw):
        config = GroveConfig(self.base_path, resources = os.path.join(self.base_path, 'res'), **kw)
        return assemble_WSGI_grove_app(config, provider_factory = provider_factory)

    def request(self, path, query = '', method = 'GET', app = None):
        environ = {
            'PATH_INFO': path,
            'QUERY_STRING': query,
            'REQUEST_METHOD': method,
        }
        setup_testing_defaults(environ)
        captured = {}

        def start_response(status, headers, exc_info = None):
            captured['status'] = status
            captured['headers'] = dict(headers)

        body = b''.join((app or self.app)(environ, start_response))
        return captured['status'], captured['headers'], body

    def test_01_root_listing(self):
        status, headers, body = self.request('/')
        self.assertEqual(status, '200 OK')
        self.assertTrue(headers['Content-Type'].startswith('text/html'))
        self.assertEqual(headers['Content-Length'], str(len(body)))
        self.assertIn(b'proj', body)
        self.assertIn(b'plain', body)
        self.assertNotIn(b'.secret', body)
        self.assertNotIn(b'closed', body)
        # no way up from the root
        self.assertNotIn(b'>..<', body)

    def test_02_nested_plain_directory(self):
        status, headers, body = self.request('/plain/docs')
        self.assertEqual(status, '200 OK')
        self.assertIn(b'>..<', body)

    def test_03_plain_directory_refusals(self):
        self.assertEqual(self.request('/closed')[0], '403 Forbidden')
        self.assertEqual(self.request('/.secret')[0], '403 Forbidden')
        self.assertEqual(self.request('/nothing/here')[0], '404 Not Found')

    def test_04_front_page(self):
        status, headers, body = self.request('/proj')
        self.assertEqual(status, '200 OK')
        self.assertIn(b'Initial import', body)
        self.assertIn(b'commit-owner', body)
        self.assertIn(b'<h1>Hello grove</h1>', body)
        self.assertIn(b'git clone http://127.0.0.1/proj/.git', body)
        self.assertIn(b'/proj/tree/', body)

    def test_05_api(self):
        status, headers, body = self.request('/proj', 'api&c=1')
        self.assertEqual(status, '200 OK')
        self.assertEqual(headers['Content-Type'], 'application/json')
        data = json.loads(body.decode('utf8'))
        self.assertEqual(data['branch'], 'master')
        self.assertEqual(data['tags'], ['v1'])
        self.assertEqual(data['commit_count'], 2)
        self.assertEqual([c['subject'] for c in data['commits']], ['Second change'])

    def test_06_bad_commit_count_falls_back(self):
        status, headers, body = self.request('/proj', 'api&c=lots')
        data = json.loads(body.decode('utf8'))
        self.assertEqual(len(data['commits']), 2)

    def test_07_tree(self):
        status, headers, body = self.request('/proj/tree')
        self.assertEqual(status, '200 OK')
        self.assertIn(b'http://127.0.0.1/proj/blob/README.md', body)
        self.assertIn(b'http://127.0.0.1/proj/tree/src/', body)

        status, headers, body = self.request('/proj/tree/src', 'ref=v1')
        self.assertEqual(status, '200 OK')
        self.assertIn(b'http://127.0.0.1/proj/blob/src/main.py?ref=v1', body)

    def test_08_blob(self):
        status, headers, body = self.request('/proj/blob/src/main.py')
        self.assertEqual(status, '200 OK')
        self.assertIn(b'L-1', body)
        self.assertIn(b'L-2', body)
        self.assertIn(b'bye', body)

        status, headers, body = self.request('/proj/blob/logo.png')
        self.assertIn(b'data:image/png;base64,', body)

    def test_09_raw(self):
        status, headers, body = self.request('/proj/raw/src/main.py')
        self.assertEqual(status, '200 OK')
        self.assertEqual(headers['Content-Type'], 'text/plain; charset=utf-8')
        self.assertEqual(body, FakeProvider.files['src/main.py'])

        status, headers, body = self.request('/proj/raw/logo.png')
        self.assertEqual(headers['Content-Type'], 'image/png')
        self.assertEqual(body, FakeProvider.files['logo.png'])

    def test_10_unknown_repository_page(self):
        self.assertEqual(self.request('/proj/commits/master')[0], '404 Not Found')

    def test_11_methods(self):
        status, headers, body = self.request('/proj', method = 'POST')
        self.assertEqual(status, '405 Method Not Allowed')
        self.assertIn('GET', headers['Allow'])

        status, headers, body = self.request('/proj', method = 'HEAD')
        self.assertEqual(status, '200 OK')
        self.assertEqual(body, b'')
        self.assertNotEqual(headers['Content-Length'], '0')

    def test_12_collaborator_failure_is_500(self):
        app = self.make_app(provider_factory = BrokenProvider)
        status, headers, body = self.request('/proj', app = app)
        self.assertEqual(status, '500 Internal Server Error')
        self.assertNotIn(b'fatal', body)
        self.assertNotIn(self.base_path.encode('utf8'), body)

    def test_13_substring_dispatch(self):
        status, headers, body = self.request('/subtree')
        self.assertIn(b'browse files', body)

        app = self.make_app(keyword_dispatch = 'substring')
        status, headers, body = self.request('/subtree', app = app)
        self.assertEqual(status, '200 OK')
        self.assertNotIn(b'browse files', body)
        self.assertIn(b'http://127.0.0.1/subtree/blob/README.md', body)

    def test_14_favicon(self):
        status, headers, body = self.request('/favicon.ico')
        self.assertEqual(status, '200 OK')
        self.assertEqual(headers['Content-Type'], 'image/png')

    def test_15_path_cleanup(self):
        status, headers, body = self.request('/plain/../../../etc')
        self.assertEqual(status, '404 Not Found')
        status, headers, body = self.request('//plain///docs/')
        self.assertEqual(status, '200 OK')

    def test_16_nul_byte_in_path(self):
        for path in ('/foo\x00bar', '/proj/blob/a\x00b', '/proj/.git/HE\x00AD'):
            status, headers, body = self.request(path)
            self.assertEqual(status, '400 Bad Request', repr(path))


class SanitizePathTestCase(unittest.TestCase):

    def test_01_sanitize_path(self):
        self.assertEqual(sanitize_path('//a//b/'), '/a/b')
        self.assertEqual(sanitize_path('/a/../b'), '/b')
        self.assertEqual(sanitize_path('/a\x00b'), None)

    def test_02_sources_compile_without_warnings(self):
        # stray escapes such as '\?' in docstrings are warnings on newer interpreters
        package = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'git_grove')
        for path in glob.glob(os.path.join(package, '*.py')):
            with open(path, 'rb') as f:
                source = f.read()
            with warnings.catch_warnings():
                warnings.simplefilter('error')
                compile(source, path, 'exec')


if __name__ == "__main__":
    unittest.TextTestRunner(verbosity=2).run(
        unittest.TestSuite([
            unittest.TestLoader().loadTestsFromTestCase(GroveRouterTestCase),
            unittest.TestLoader().loadTestsFromTestCase(SanitizePathTestCase),
        ])
    )
