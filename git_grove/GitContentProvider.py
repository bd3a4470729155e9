# -*- coding: utf8 -*-
'''
Read-only access to the content of one repository, by way of the git executable.

This file is part of git_grove Project.

git_grove Project is free software: you can redistribute it and/or modify
it under the terms of the GNU Lesser General Public License as published by
the Free Software Foundation, either version 2.1 of the License, or
(at your option) any later version.

git_grove Project is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
GNU Lesser General Public License for more details.

You should have received a copy of the GNU Lesser General Public License
along with git_grove Project.  If not, see <http://www.gnu.org/licenses/>.
'''
import logging
import posixpath
import subprocess
from collections import namedtuple

logger = logging.getLogger(__name__)

GIT = 'git'

# field and record separators for "git log --format"
_FS = '\x1f'
_RS = '\x1e'
_LOG_FORMAT = _FS.join(['%H', '%an', '%ad', '%s', '%b']) + _RS

Commit = namedtuple('Commit', 'sha author time subject body')


class GitCommandError(Exception):

	def __init__(self, cmd, returncode, stderr):
		self.cmd = cmd
		self.returncode = returncode
		self.stderr = stderr
		super(GitCommandError, self).__init__(
			'%s exited with %s: %s' % (' '.join(cmd), returncode, stderr.decode('utf8', 'replace').strip()))


def get_command_output(cmd, cwd = None, stdin = None):
	'''
	get_command_output(cmd, cwd, stdin) -> (out, err, return_code)

	cmd - list of arguments. No shell is involved.
	stdin - (optional) bytes fed to the command.
	'''
	_p = subprocess.Popen(cmd, cwd = cwd,
		stdin = subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
		stdout = subprocess.PIPE,
		stderr = subprocess.PIPE)
	o, e = _p.communicate(stdin)
	return o, e, _p.returncode


def is_safe_ref(ref):
	# anything starting with '-' would be taken for an option by git
	return bool(ref) and not ref.startswith('-') and '\x00' not in ref


class GitContentProvider(object):
	'''
	Wraps a repository working folder (the one holding ".git").

	Query methods meant to tolerate "no such thing" (refs, files,
	empty repositories) return empty values. Unexpected git failures raise
	GitCommandError.
	'''

	def __init__(self, path):
		self.path = path

	def git(self, *args, **kw):
		check = kw.pop('check', True)
		cmd = [GIT, '-C', self.path] + list(args)
		out, err, code = get_command_output(cmd, **kw)
		if code and check:
			raise GitCommandError(cmd, code, err)
		return out if not code else None

	def _text(self, *args):
		out = self.git(*args, check = False)
		if out is None:
			return ''
		return out.decode('utf8', 'replace').strip()

	def ref_exists(self, ref):
		if not is_safe_ref(ref):
			return False
		return self.git('rev-parse', '--verify', '--quiet', ref + '^{commit}', check = False) is not None

	def branch(self, ref = 'HEAD'):
		if not is_safe_ref(ref):
			return ''
		return self._text('rev-parse', '--abbrev-ref', ref)

	def tags(self):
		'''Tag names, newest first.'''
		out = self.git('for-each-ref', '--sort=-creatordate', '--format=%(refname:short)', 'refs/tags')
		return [line for line in out.decode('utf8', 'replace').splitlines() if line]

	def total_commits(self):
		out = self._text('rev-list', '--count', 'HEAD')
		try:
			return int(out)
		except ValueError:
			return 0

	def sha(self, ref):
		'''
		Hash ref points to. For ranges ("a..b") that is the tip, b.
		'''
		if not is_safe_ref(ref):
			return ''
		for line in self._text('rev-parse', ref).splitlines():
			if not line.startswith('^'):
				return line
		return ''

	def commits(self, ref, max_count):
		'''
		Up to max_count Commit tuples reachable from ref (which may be a
		range), newest first.
		'''
		if max_count <= 0 or not is_safe_ref(ref):
			return []
		out = self.git('log', '-n', str(max_count), '--date=iso',
			'--format=' + _LOG_FORMAT, ref, '--', check = False)
		if not out:
			return []
		commits = []
		for record in out.decode('utf8', 'replace').split(_RS):
			record = record.strip('\n')
			if not record:
				continue
			fields = record.split(_FS)
			if len(fields) != 5:
				logger.debug("Skipping malformed log record in %s: %r", self.path, record)
				continue
			sha, author, time, subject, body = fields
			commits.append(Commit(sha, author, time, subject, body.strip()))
		return commits

	def get_file(self, ref, path):
		'''Raw bytes of path at ref. Empty if there is no such file.'''
		if not path or not is_safe_ref(ref):
			return b''
		out = self.git('cat-file', 'blob', '%s:%s' % (ref, path.strip('/')), check = False)
		return out or b''

	def get_dir(self, ref, path):
		'''
		Names found in folder path at ref. Folders carry a trailing '/'.
		path '.' (or '') is the repository root.
		'''
		if not is_safe_ref(ref):
			return []
		path = path.strip('/')
		args = ['ls-tree', '-z', ref, '--']
		if path and path != '.':
			args.append(path + '/')
		out = self.git(*args, check = False)
		if not out:
			return []
		names = []
		for record in out.decode('utf8', 'replace').split('\x00'):
			if not record:
				continue
			meta, _, name = record.partition('\t')
			name = posixpath.basename(name)
			if meta.split(' ')[1] == 'tree':
				name += '/'
			names.append(name)
		return names

	def owner(self):
		'''Name of whoever commits in this repository, per git var.'''
		ident = self._text('var', 'GIT_COMMITTER_IDENT')
		return ident.split(' <', 1)[0]
