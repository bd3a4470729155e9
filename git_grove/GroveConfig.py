# -*- coding: utf8 -*-
'''
Process-wide configuration of a grove server.

The configuration is built once at startup (see server_console.py) and handed
to every handler constructor. It is a namedtuple, so nobody downstream
can change it while requests are being served.

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
import os
from collections import namedtuple
from enum import IntEnum

DEFAULT_BIND = '0.0.0.0'
DEFAULT_PORT = 8860
DEFAULT_RESOURCES = '/usr/share/grove'
DEFAULT_REF = 'HEAD'
DEFAULT_COMMITS = 10

DISPATCH_MODES = ('structural', 'substring')


class PermissionThreshold(IntEnum):
	'''
	Which principal class must be granted access before an entry is served.
	The value is the number of octal digits the permission mask is shifted by.
	'''
	OTHER = 0
	GROUP = 1
	OWNER = 2

	@classmethod
	def parse(cls, value):
		'''
		Accepts an instance, a name ("other", "Group") or a digit (0, "2").
		Raises ValueError for anything else.
		'''
		if isinstance(value, cls):
			return value
		text = str(value).strip()
		if text.isdigit():
			try:
				return cls(int(text))
			except ValueError:
				pass
		else:
			try:
				return cls[text.upper()]
			except KeyError:
				pass
		raise ValueError('unknown permission threshold %r' % (value,))


_GroveConfigBase = namedtuple('_GroveConfigBase', [
	'serving_root',
	'bind',
	'port',
	'resources',
	'threshold',
	'keyword_dispatch',
	'default_ref',
	'default_commits',
])


class GroveConfig(_GroveConfigBase):
	'''
	Immutable server settings.

	serving_root
		Absolute, normalized path. Nothing above it is ever served.
	bind, port
		Interface and port the WSGI server listens on.
	resources
		Folder holding static resources (favicon.png).
	threshold
		PermissionThreshold gating what may be disclosed.
	keyword_dispatch
		'structural' (default) or 'substring'. See IntentClassifier.dispatch_intent
	default_ref, default_commits
		Fallbacks for the "ref" and "c" query parameters.
	'''
	__slots__ = ()

	def __new__(cls, serving_root,
			bind = DEFAULT_BIND,
			port = DEFAULT_PORT,
			resources = DEFAULT_RESOURCES,
			threshold = PermissionThreshold.OTHER,
			keyword_dispatch = 'structural',
			default_ref = DEFAULT_REF,
			default_commits = DEFAULT_COMMITS
			):
		return super(GroveConfig, cls).__new__(
			cls,
			os.path.normpath(os.path.abspath(serving_root)),
			bind,
			int(port),
			resources,
			PermissionThreshold.parse(threshold),
			keyword_dispatch,
			default_ref,
			int(default_commits)
			)

	@classmethod
	def from_options(cls, options, repodir = None):
		'''
		Builds a config out of a get_cmd_options()-style dict.

		options - dict with (optional) keys 'bind', 'port', 'res', 'perms', 'dispatch'
		repodir - folder to serve. Defaults to current working directory.
			Relative paths are resolved against current working directory.

		Raises ValueError with a human-readable message on bad input.
		'''
		serving_root = os.path.abspath(repodir or os.getcwd())
		if not os.path.isdir(serving_root):
			raise ValueError('repository directory %s is not a directory' % serving_root)

		port = options.get('port', DEFAULT_PORT)
		try:
			port = int(port)
		except (TypeError, ValueError):
			raise ValueError('port must be a number, got %r' % (port,))
		if not 0 < port < 65536:
			raise ValueError('port %s is out of range' % port)

		dispatch = options.get('dispatch', 'structural')
		if dispatch not in DISPATCH_MODES:
			raise ValueError('dispatch must be one of %s' % ', '.join(DISPATCH_MODES))

		return cls(
			serving_root,
			bind = options.get('bind', DEFAULT_BIND),
			port = port,
			resources = options.get('res', DEFAULT_RESOURCES),
			threshold = PermissionThreshold.parse(options.get('perms', 'other')),
			keyword_dispatch = dispatch
			)
