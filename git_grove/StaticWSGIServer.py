# -*- coding: utf8 -*-
"""
static - A simple WSGI-based web server to serve static content.

Copyright (c) 2010  Daniel Dotsenko <dotsa@hotmail.com>
Copyright (C) 2006-2009 Luke Arno - http://lukearno.com/

This library is free software; you can redistribute it and/or
modify it under the terms of the GNU Lesser General Public
License as published by the Free Software Foundation; either
version 2.1 of the License, or (at your option) any later version.

This library is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
Lesser General Public License for more details.

You should have received a copy of the GNU Lesser General Public
License along with this library; if not, write to:

The Free Software Foundation, Inc.,
51 Franklin Street, Fifth Floor,
Boston, MA  02110-1301, USA.
"""

import email.utils
import logging
import mimetypes
import os
import time
from wsgiref.headers import Headers

mimetypes.add_type('application/x-git-packed-objects-toc', '.idx')
mimetypes.add_type('application/x-git-packed-objects', '.pack')

logger = logging.getLogger(__name__)


def file_iterator(file_like, block_size):
	try:
		for chunk in iter(lambda: file_like.read(block_size), b''):
			yield chunk
	finally:
		file_like.close()


class StaticWSGIServer(object):
	"""
	A simple WSGI-based static content server app.

	Relies on WSGIHandlerSelector for prepopulating some needed environ
	variables and cleaning up the URI.

	Inputs:
		root (mandatory)
			String containing a file-system level path behaving as served root.

		canned_handlers (mandatory)
			Function or class instance that can take WSGI-like +2 arguments
			and capable or emitting WSGI-compatible output.
			(See CannedHTTPHandlers class for argument details.)

		file_name (optional)
			Serve this one file (relative to root) regardless of request path.
			Used for favicon-like resources.

		block_size (optional)
			File reader's buffer size. Defaults to 65536.
	"""

	def __init__(self, root, canned_handlers, file_name = None, block_size = 65536, **kw):
		self.root = root
		self.canned_handlers = canned_handlers
		self.file_name = file_name
		self.block_size = block_size
		self.__dict__.update(kw)

	def resolve_path(self, environ):
		'''
		Returns absolute filesystem path of what is asked for, or None if it
		points outside of root.
		'''
		if self.file_name:
			path_info = self.file_name
		else:
			selector_matches = (environ.get('wsgiorg.routing_args') or ([], {}))[1]
			# 'working_path' is the name of a regex group fed to WSGIHandlerSelector
			# marking the portion of the URI that is palatable for static serving.
			path_info = selector_matches.get('working_path') or ''

		_pp = os.path.abspath(self.root)
		full_path = os.path.abspath(os.path.join(_pp, path_info.strip('/')))
		if full_path != _pp and not full_path.startswith(_pp.rstrip(os.sep) + os.sep):
			return None
		return full_path

	def __call__(self, environ, start_response):
		full_path = self.resolve_path(environ)
		if full_path is None:
			return self.canned_handlers('forbidden', environ, start_response)
		if not os.path.isfile(full_path):
			return self.canned_handlers('not_found', environ, start_response)

		try:
			mtime = os.stat(full_path).st_mtime
			file_like = open(full_path, 'rb')
		except OSError as e:
			logger.error("Could not open %r for %s: %s", full_path, environ.get('REMOTE_ADDR'), e)
			return self.canned_handlers('internal_error', environ, start_response)

		etag, last_modified = '"%s"' % mtime, email.utils.formatdate(mtime, usegmt = True)
		headers = [
			('Content-Type', 'application/octet-stream'),
			('Date', email.utils.formatdate(time.time(), usegmt = True)),
			('Last-Modified', last_modified),
			('ETag', etag)
		]
		headersIface = Headers(headers)

		if_modified = environ.get('HTTP_IF_MODIFIED_SINCE')
		if if_modified:
			since = email.utils.parsedate(if_modified)
			if since and since >= email.utils.parsedate(last_modified):
				file_like.close()
				return self.canned_handlers('not_modified', environ, start_response, headers = headers)
		if_none = environ.get('HTTP_IF_NONE_MATCH')
		if if_none and (if_none == '*' or etag in if_none):
			file_like.close()
			return self.canned_handlers('not_modified', environ, start_response, headers = headers)

		headersIface['Content-Type'] = mimetypes.guess_type(full_path)[0] or 'application/octet-stream'
		headersIface['Content-Length'] = str(os.fstat(file_like.fileno()).st_size)

		start_response('200 OK', headers)
		if environ.get('REQUEST_METHOD') == 'HEAD':
			file_like.close()
			return [b'']
		if 'wsgi.file_wrapper' in environ:
			return environ['wsgi.file_wrapper'](file_like, self.block_size)
		return file_iterator(file_like, self.block_size)
