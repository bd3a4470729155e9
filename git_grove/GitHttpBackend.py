# -*- coding: utf8 -*-
'''
Module provides WSGI-based methods for handling HTTP Get and Post requests
sent by git clients to "<repo>/.git/..." URLs: the Smart HTTP protocol
(upload-pack only - grove is read-only) and plain ("dumb") file fetches.

Before anything is served the repository folder named in the URL, that is
everything up to and including the first ".git/", has to pass
PermissionGate.bits_only.

Copyright (c) 2010  Daniel Dotsenko <dotsa@hotmail.com>

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
import gzip
import logging
import os
import re
import subprocess
import tempfile
import zlib
from wsgiref.headers import Headers

from git_grove.BoundaryResolver import is_within
from git_grove.IntentClassifier import split_git_delegate_path
from git_grove.PermissionGate import FilesystemEntry, PermissionGate
from git_grove.ResolutionResult import Status
from git_grove.StaticWSGIServer import StaticWSGIServer, file_iterator

logger = logging.getLogger(__name__)

git_folder_signature = set(['head', 'objects', 'refs'])
SERVED_COMMANDS = ('git-upload-pack',)
REFUSED_COMMANDS = ('git-receive-pack',)

# files a dumb HTTP client may fetch from a .git folder
DUMB_PATHS = re.compile(
	r'^(?:HEAD'
	r'|info/refs'
	r'|objects/info/(?:packs|alternates|http-alternates)'
	r'|objects/[0-9a-f]{2}/[0-9a-f]{38}'
	r'|objects/pack/pack-[0-9a-f]{40}\.(?:pack|idx)'
	r')\Z')


def pkt_line(data):
	'''
	Git pkt-line framing: 4 hex digits of total length (including these 4) + data.
	'''
	return ('%04x' % (len(data) + 4)).encode('ascii') + data


class GitHTTPBackendBase(object):

	block_size = 65536

	def __init__(self, serving_root, canned_handlers, gate = None, **kw):
		'''
		serving_root (Mandatory) - Local file system path = root of served files.
		canned_handlers (Mandatory) - CannedHTTPHandlers-like callable.
		gate (optional) - PermissionGate. Defaults to threshold OTHER.
		block_size (Default = 65536) Chunk size for WSGI file feeding
		'''
		self.serving_root = os.path.normpath(os.path.abspath(serving_root))
		self.canned_handlers = canned_handlers
		self.gate = gate or PermissionGate()
		self.__dict__.update(kw)

	def approve(self, url_path):
		'''
		approve(url_path) -> (Status, git_dir)

		Finds the repository folder an URL containing ".git/" points into and
		decides if we are allowed to hand it to a git client.
		'''
		split = split_git_delegate_path(url_path)
		if split is None:
			return Status.NOT_FOUND, None
		git_dir = os.path.normpath(os.path.join(self.serving_root, split[0].lstrip('/')))
		if git_dir == self.serving_root or not is_within(self.serving_root, git_dir):
			return Status.FORBIDDEN, None

		try:
			entry = FilesystemEntry.from_path(git_dir)
		except OSError as e:
			logger.info("Git request of %r produced error: %s", url_path, e)
			return Status.NOT_FOUND, None
		if not self.gate.bits_only(entry):
			return Status.FORBIDDEN, None

		try:
			files = os.listdir(git_dir)
		except OSError:
			files = []
		if not git_folder_signature.issubset([i.lower() for i in files]):
			return Status.NOT_FOUND, None
		return Status.OK, git_dir

	def basic_checks(self, dataObj, environ, start_response):
		'''
		This function is shared by all .git/ handlers.
		It does the same basic steps - figure out git dir, git command etc.

		dataObj - dictionary
		Once this function returns, this object will have the free-form updated data.

		Returns non-None object if an error was triggered (and already prepared in start_response).
		'''
		selector_matches = (environ.get('wsgiorg.routing_args') or ([], {}))[1]
		url_path = environ.get('WSGIHandlerSelector.path') or environ.get('PATH_INFO', '')
		remote = environ.get('REMOTE_ADDR')
		logger.info("Git request to %s from %s", url_path, remote)

		git_command = selector_matches.get('git_command')
		if git_command is not None:
			if git_command in REFUSED_COMMANDS:
				logger.warning("Git request from %s denied (read-only server): %s %s", remote, git_command, url_path)
				return self.canned_handlers(Status.FORBIDDEN, environ, start_response)
			if git_command not in SERVED_COMMANDS:
				return self.canned_handlers('bad_request', environ, start_response)

		status, git_dir = self.approve(url_path)
		if status is not Status.OK:
			logger.warning("Git request from %s denied (%s): %s", remote, status.value, url_path)
			return self.canned_handlers(status, environ, start_response)

		dataObj['git_command'] = git_command
		dataObj['git_dir'] = git_dir
		return None

	def get_command_output(self, cmd, stdin = None):
		'''
		get_command_output(cmd, stdin) -> (out, error, return_code)

		stdin (optional) - bytes fed to the command.

		Output goes to temp files, so large packs do not have to fit in memory.
		Both returned file objects are rewound.
		'''
		stdout = tempfile.TemporaryFile()
		stderr = tempfile.TemporaryFile()
		_p = subprocess.Popen(cmd,
			stdin = subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
			stdout = stdout,
			stderr = stderr)
		_p.communicate(stdin)
		stdout.seek(0)
		stderr.seek(0)
		return stdout, stderr, _p.returncode

	def command_failed(self, cmd, stderr, exit_code, environ, start_response):
		logger.error("%s exited with %s for %s: %s", ' '.join(cmd), exit_code,
			environ.get('REMOTE_ADDR'), stderr.read().decode('utf8', 'replace').strip())
		stderr.close()
		return self.canned_handlers(Status.INTERNAL_ERROR, environ, start_response)

	def package_response(self, outIO, environ, start_response, headers = [], prefix = b''):
		'''
		Sends prefix followed by the content of the rewound file outIO.
		'''
		newheaders = headers
		headers = [('Content-Type', 'application/octet-stream')] # If unknown = binary
		headersIface = Headers(headers)
		for header in newheaders:
			headersIface[header[0]] = '; '.join(header[1:])
		headersIface['Cache-Control'] = 'no-cache'

		outIO.seek(0, 2)
		headersIface['Content-Length'] = str(outIO.tell() + len(prefix))
		outIO.seek(0)

		start_response('200 OK', headers)
		if environ.get('REQUEST_METHOD') == 'HEAD':
			outIO.close()
			return [b'']
		if not prefix:
			return file_iterator(outIO, self.block_size)
		return self._prefixed(prefix, file_iterator(outIO, self.block_size))

	def _prefixed(self, prefix, chunks):
		yield prefix
		for chunk in chunks:
			yield chunk


class GitHTTPBackendInfoRefs(GitHTTPBackendBase):
	'''
	Responds to "GET <repo>/.git/info/refs?service=git-upload-pack".

	This is the fist step in the RPC dialog. We have to reply with right content
	to show to Git client that we are an "intelligent" server.
	'''

	def __call__(self, environ, start_response):
		dataObj = {}
		answer = self.basic_checks(dataObj, environ, start_response)
		if answer is not None:
			# basic_checks already prepared the error response.
			return answer
		git_command = dataObj['git_command']
		git_dir = dataObj['git_dir']

		# git-http-backend ends the service line with '\n' and counts it. So do we.
		smart_server_advert = ('# service=%s\n' % git_command).encode('ascii')
		prefix = pkt_line(smart_server_advert) + b'0000'

		cmd = ['git', git_command[4:], '--stateless-rpc', '--advertise-refs', git_dir]
		stdout, stderr, exit_code = self.get_command_output(cmd)
		if exit_code: # non-zero value = error
			stdout.close()
			return self.command_failed(cmd, stderr, exit_code, environ, start_response)
		stderr.close()

		headers = [('Content-Type', 'application/x-%s-advertisement' % git_command)]
		return self.package_response(stdout, environ, start_response, headers, prefix = prefix)


class GitHTTPBackendSmartHTTP(GitHTTPBackendBase):
	'''
	Responds to "POST <repo>/.git/git-upload-pack".

	This is a second step in the RPC dialog. Reads the client's wants and haves
	from the request body and returns the pack git produced.
	'''

	def read_body(self, environ):
		_i = environ['wsgi.input']
		# some clients may send no length or some "-1" garbage. Transfer-Encoding: chunked
		try:
			_l = int(environ.get('CONTENT_LENGTH') or -1)
		except ValueError:
			_l = -1

		if _l >= 0:
			body = _i.read(_l)
		elif environ.get('HTTP_TRANSFER_ENCODING', '').lower() == 'chunked':
			# the WSGI server has already de-chunked the stream. Read to the end.
			body = _i.read()
		else:
			body = b''

		if environ.get('HTTP_CONTENT_ENCODING', '').lower() in ('gzip', 'x-gzip'):
			body = gzip.decompress(body)
		return body

	def __call__(self, environ, start_response):
		dataObj = {}
		answer = self.basic_checks(dataObj, environ, start_response)
		if answer is not None:
			return answer
		git_command = dataObj['git_command']
		git_dir = dataObj['git_dir']

		try:
			stdin = self.read_body(environ)
		except (OSError, EOFError, zlib.error) as e:
			logger.warning("Unreadable %s request body from %s: %s", git_command, environ.get('REMOTE_ADDR'), e)
			return self.canned_handlers('bad_request', environ, start_response)

		cmd = ['git', git_command[4:], '--stateless-rpc', git_dir]
		stdout, stderr, exit_code = self.get_command_output(cmd, stdin = stdin)
		del stdin
		if exit_code:
			stdout.close()
			return self.command_failed(cmd, stderr, exit_code, environ, start_response)
		stderr.close()

		headers = [('Content-Type', 'application/x-%s-result' % git_command)]
		return self.package_response(stdout, environ, start_response, headers)


class GitHTTPBackendDumbHTTP(GitHTTPBackendBase):
	'''
	Serves files from inside an approved .git folder to "dumb" HTTP clients.

	Only the files the dumb protocol asks for are served (see DUMB_PATHS).
	config, hooks, logs and the like are 404. Each file must also pass
	PermissionGate.bits_only on its own.
	'''

	def __call__(self, environ, start_response):
		dataObj = {}
		answer = self.basic_checks(dataObj, environ, start_response)
		if answer is not None:
			return answer

		selector_matches = (environ.get('wsgiorg.routing_args') or ([], {}))[1]
		working_path = selector_matches.get('working_path') or ''
		if not DUMB_PATHS.match(working_path):
			logger.info("Dumb git request from %s for unserved file: %s", environ.get('REMOTE_ADDR'), working_path)
			return self.canned_handlers(Status.NOT_FOUND, environ, start_response)

		try:
			entry = FilesystemEntry.from_path(os.path.join(dataObj['git_dir'], *working_path.split('/')))
		except OSError:
			return self.canned_handlers(Status.NOT_FOUND, environ, start_response)
		if not self.gate.bits_only(entry):
			logger.warning("Dumb git request from %s denied: %s", environ.get('REMOTE_ADDR'), working_path)
			return self.canned_handlers(Status.FORBIDDEN, environ, start_response)

		return StaticWSGIServer(dataObj['git_dir'], self.canned_handlers,
			block_size = self.block_size)(environ, start_response)
