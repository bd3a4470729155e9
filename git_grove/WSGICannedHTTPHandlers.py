# -*- coding: utf8 -*-
'''
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

from wsgiref.headers import Headers

class CannedHTTPHandlers(object):
	'''
	Makes it possible to issue HTTP error + status responses in one line of code.

	The body is only ever the generic status text. Paths, exception messages
	and other internal detail go to the server log, never to the client.
	'''
	collection = {
		'304': '304 Not Modified',
		'not_modified': '304 Not Modified',
		'400': '400 Bad Request',
		'bad_request': '400 Bad Request',
		'403': '403 Forbidden',
		'forbidden': '403 Forbidden',
		'404': '404 Not Found',
		'not_found': '404 Not Found',
		'405': '405 Method Not Allowed',
		'method_not_allowed': '405 Method Not Allowed',
		'500': '500 Internal Server Error',
		'internal_error': '500 Internal Server Error',
		'501': '501 Not Implemented',
		'not_implemented': '501 Not Implemented',
		'200': '200 OK',
	}

	def __call__(self, code, environ, start_response, headers = []):
		'''
		This is NOT a WSGI-compliant app. We convert an error code into
		certain action over start_response and return a WSGI-compliant payload.

		code - key of .collection, or a ResolutionResult.Status member.
		'''
		code = getattr(code, 'value', code)
		status_line = self.collection[code]
		headerbase = [('Content-Type', 'text/plain; charset=utf-8')]
		if headers:
			hObj = Headers(headerbase)
			for header in headers:
				hObj[header[0]] = '; '.join(header[1:])
		if status_line.startswith('304'):
			body = b''
		else:
			body = (status_line + '\n').encode('utf8')
		headerbase.append(('Content-Length', str(len(body))))
		start_response(status_line, headerbase)
		if environ.get('REQUEST_METHOD') == 'HEAD':
			return [b'']
		return [body]
