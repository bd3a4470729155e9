# -*- coding: utf8 -*-
'''
Command-line entry point of grove. Serves a folder full of git repositories
for browsing and cloning on a threaded WSGI server.

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
import logging
import sys

from cheroot import wsgi

from git_grove import __version__
from git_grove.GroveConfig import DEFAULT_BIND, DEFAULT_PORT, DEFAULT_RESOURCES, GroveConfig
from git_grove.GroveRouter import assemble_WSGI_grove_app

logger = logging.getLogger('grove')

# options that never take an argument
SWITCHES = ('help', 'version', 'show-bind', 'show-port', 'show-res')

_help = '''
Usage: grove [options] [repodir]

Serves every git repository found under repodir (defaults to the current
folder) for browsing in a web browser and for "git clone" over HTTP.

Options:
--bind (Defaults to %(bind)s)
	Address to listen on.

--port (Defaults to %(port)s)

--res (Defaults to %(res)s)
	Folder with static resources (favicon.png).

--perms (Defaults to other)
	Who must be able to read a folder or file before grove shows it:
	other, group or owner (or 0, 1, 2).

--dispatch (Defaults to structural)
	structural - pages are picked by the "tree/", "blob/", "raw/" path segment
	right under the repository folder.
	substring - pages are picked by the words "tree", "blob", "raw" anywhere
	in the URL. Compatible with links made by older grove releases.

--version
--show-bind
--show-port
--show-res
	Print the value and exit.

Examples:

cd ~/src && grove
	Every repository under ~/src is at http://localhost:%(port)s/<name>/
	and can be cloned from http://localhost:%(port)s/<name>/.git

grove --perms group --port 8080 /srv/repos
''' % {'bind': DEFAULT_BIND, 'port': DEFAULT_PORT, 'res': DEFAULT_RESOURCES}


def get_cmd_options(options = None, argv = None):
	'''
	Very basic command-line options parser

	Only supports "--"-prefixed options, either with argument over a space, or
	stand-alone (see SWITCHES). Anything else is a positional argument.
	Example:
	command --switch1 --key1 "long argument1" some/folder --key2 argument2

	Returns (options, positionals)
	'''
	options = dict(options or {})
	if argv is None:
		argv = sys.argv[1:]
	positionals = []
	lastKey = None

	for item in argv:
		if item.startswith('--'):
			options[item[2:]] = True
			lastKey = None if item[2:] in SWITCHES else item[2:]
		elif lastKey:
			options[lastKey] = item.strip('"').strip("'")
			lastKey = None
		else:
			positionals.append(item)
	return options, positionals


def main(argv = None):
	command_options, positionals = get_cmd_options({
			'bind': DEFAULT_BIND,
			'port': str(DEFAULT_PORT),
			'res': DEFAULT_RESOURCES,
			'perms': 'other',
			'dispatch': 'structural'
		}, argv)

	if command_options.get('help'):
		print(_help)
		return 0
	for key, value in (('version', __version__),
			('show-bind', command_options['bind']),
			('show-port', command_options['port']),
			('show-res', command_options['res'])):
		if command_options.get(key):
			print(value)
			return 0

	logging.basicConfig(level = logging.INFO, format = '%(asctime)s %(message)s', datefmt = '%H:%M:%S')

	try:
		config = GroveConfig.from_options(command_options, positionals[0] if positionals else None)
	except ValueError as e:
		logger.error("%s", e)
		return 2

	app = assemble_WSGI_grove_app(config)
	server = wsgi.Server((config.bind, config.port), app)

	logger.info("grove %s", __version__)
	logger.info("Serving %s (visible to: %s)", config.serving_root, config.threshold.name.lower())
	logger.info("Listening on http://%s:%s/", config.bind, config.port)
	try:
		server.start()
	except KeyboardInterrupt:
		pass
	finally:
		server.stop()
	return 0


if __name__ == "__main__":
	sys.exit(main())
