# -*- coding: utf8 -*-
"""WSGIHandlerSelector
	WSGI delegation matching based on URL path and method.

Copyright (c) 2010 Daniel Dotsenko <dotsa@hotmail.com>
Copyright (C) 2006 Luke Arno - http://lukearno.com/

This library is free software; you can redistribute it and/or
modify it under the terms of the GNU Lesser General Public
License as published by the Free Software Foundation; either
version 2.1 of the License, or (at your option) any later version.

This library is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU
Lesser General Public License for more details.

You should have received a copy of the GNU Lesser General Public
License along with this library; if not, write to
the Free Software Foundation, Inc., 51 Franklin Street,
Fifth Floor, Boston, MA  02110-1301  USA
"""

import logging
import re
from urllib.parse import urljoin

logger = logging.getLogger(__name__)


def sanitize_path(path):
	'''
	Turns garbage like this: r'//qwre/asdf/..*/*/*///.././../qwer/./..//../../.././//yuioghkj/../wrt.sdaf'
	into a clean, absolute URL path. Dot-segments that would climb above '/'
	are dropped by urljoin, so the result never starts with '/../'.

	Returns None for paths that still try to climb out, and for paths
	holding a NUL byte (no filesystem or git call accepts those).
	'''
	if '\x00' in path:
		return None
	# './' keeps urljoin from reading 'c:stuff' as a scheme
	path = urljoin('/', './' + re.sub('//+', '/', path.strip('/')))
	if not path.startswith('/') or path.startswith('/../') or path == '/..':
		return None
	return path


def decode_path_info(environ):
	'''
	PEP 3333 hands PATH_INFO over as latin-1 decoded bytes. We want real text.
	'''
	raw = environ.get('PATH_INFO', '')
	return raw.encode('latin1').decode('utf8')


class WSGIHandlerSelector(object):
	"""
	WSGI middleware for URL paths and HTTP method based delegation.

	Based on Selector from http://lukearno.com/projects/selector/
	"""

	def __init__(self, canned_handlers, WSGI_env_key = 'WSGIHandlerSelector'):
		"""
		WSGIHandlerSelector instance initializer.

		WSGIHandlerSelector(canned_handlers, WSGI_env_key = 'WSGIHandlerSelector')

		Inputs:
		 canned_handlers (mandatory)
		  A pointer to an instance of a class or a function that fills the role
		  of WSGICannedHTTPHandlers.CannedHTTPHandlers class.

		 WSGI_env_key (optional) (must be named arg)
		  name of the key selector injects into WSGI's environ.
		  Defaults to 'WSGIHandlerSelector'
		"""
		self.mappings = []
		self.WSGI_env_key = WSGI_env_key
		self.canned_handlers = canned_handlers

	def add(self, path, default_handler = None, **http_methods):
		r"""
		Add a selector mapping.

		add(path, default_handler, **named_handlers)

		Adding order is important. First added = first matched.

		Inputs:
		 path - A regex string. We will compile it.
		  Highly recommend using grouping of type: "(?P<groupname>.+)"
		  These will be exposed to WSGI app through environment key.

		 default_handler - (optional) A pointer to the function / iterable
		  class instance that will handle ALL HTTP methods (verbs)

		 **named_handlers - (optional) An unpacked dict of handlers allocated
		  to handle specific HTTP methods (HTTP verbs).

		Matched named method handlers override default handler.

		Examples:
			.add('^(?P<working_path>.*)$', generic_handler,
							  POST=post_handler, HEAD=head_handler)

		If the string contains '\?' - which translates to '?' for non-regex
		strings, we understand that as "match on PATH_INFO + '?' + QUERY_STRING"

		When lookup matches are met, results are injected into
		environ['wsgiorg.routing_args'] per
		http://www.wsgi.org/wsgi/Specifications/routing_args
		"""
		self.mappings.append((
			re.compile(path),
			http_methods.copy(),
			default_handler,
			(path.find(r'\?') > -1)
			))

	def __call__(self, environ, start_response):
		"""
		Delegate request to the appropriate WSGI app.

		The following keys will be added to the WSGI's environ:

		wsgiorg.routing_args
			It's a tuple of a list and a dict. The structure follows the wsgiorg routing_args convention:
			http://www.wsgi.org/wsgi/Specifications/routing_args

		WSGIHandlerSelector.path
			Sanitized, decoded request path.

		WSGIHandlerSelector.canned_handlers
			Pointer to the CannedHTTPHandlers instance in use.
		"""
		try:
			path = decode_path_info(environ)
		except UnicodeError:
			logger.warning("Undecodable path from %s", environ.get('REMOTE_ADDR'))
			return self.canned_handlers('bad_request', environ, start_response)

		matches = None
		handler = None
		alternate_HTTP_verbs = set()
		query_string = (environ.get('QUERY_STRING') or '')
		method = environ.get('REQUEST_METHOD', '')

		path = sanitize_path(path)
		if path is not None:
			for _regex, _registered_methods, _default, _use_query_string in self.mappings:
				if _use_query_string:
					matches = _regex.search(path + '?' + query_string)
				else:
					matches = _regex.search(path)

				if matches:
					handler = _registered_methods.get(method) or _default
					if handler:
						break
					else:
						alternate_HTTP_verbs.update(_registered_methods.keys())
		else:
			logger.warning("Rejected path %r from %s", environ.get('PATH_INFO'), environ.get('REMOTE_ADDR'))
			return self.canned_handlers('bad_request', environ, start_response)

		if handler:
			environ['PATH_INFO'] = path.encode('utf8').decode('latin1')
			environ[self.WSGI_env_key + '.path'] = path

			args, kwargs = environ.get('wsgiorg.routing_args') or ((), {})
			kwargs = dict(kwargs)
			kwargs.update(matches.groupdict())
			environ['wsgiorg.routing_args'] = (list(args) + list(matches.groups()), kwargs)

			environ[self.WSGI_env_key + '.canned_handlers'] = self.canned_handlers

			return handler(environ, start_response)
		elif alternate_HTTP_verbs:
			# uugh... narrow miss. Regex matched some path, but the method was off.
			# let's advertize what methods we can do with this URI.
			return self.canned_handlers('method_not_allowed', environ,
				start_response, headers = [('Allow', ', '.join(sorted(alternate_HTTP_verbs)))])
		else:
			return self.canned_handlers('not_found', environ, start_response)
