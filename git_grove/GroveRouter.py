# -*- coding: utf8 -*-
'''
WSGI application that lets people browse a tree of repositories and clone
them over plain HTTP.

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
import os
import posixpath
from urllib.parse import parse_qs

from git_grove import __version__
from git_grove.BoundaryResolver import BoundaryResolver
from git_grove.GitContentProvider import GitCommandError, GitContentProvider
from git_grove.GitHttpBackend import GitHTTPBackendDumbHTTP, GitHTTPBackendInfoRefs, GitHTTPBackendSmartHTTP
from git_grove.IntentClassifier import REPO_ROOT_MARKER, dispatch_intent
from git_grove.PageRenderer import IMAGE_EXTENSIONS, README_NAMES, GitPage, ListEntry, LogEntry, PageRenderer, RenderError
from git_grove.PermissionGate import FilesystemEntry, PermissionGate
from git_grove.ResolutionResult import Intent, Status
from git_grove.StaticWSGIServer import StaticWSGIServer
from git_grove.WSGICannedHTTPHandlers import CannedHTTPHandlers
from git_grove.WSGIHandlerSelector import WSGIHandlerSelector, sanitize_path, decode_path_info

logger = logging.getLogger(__name__)

_IMAGE_TYPES = {
	'.png': 'image/png',
	'.jpg': 'image/jpeg',
	'.jpeg': 'image/jpeg',
	'.gif': 'image/gif',
}


def first_value(params, name):
	values = params.get(name)
	return values[0] if values else ''


class GroveRouter(object):
	'''
	Browsing part of grove. For every request:
	 1. BoundaryResolver finds the repository (or plain folder) asked for,
	 2. IntentClassifier.dispatch_intent picks the page,
	 3. the page is put together from GitContentProvider and PageRenderer.

	Clients only ever get canned status text on failure. Details are logged.
	'''

	def __init__(self, config, canned_handlers = None, provider_factory = GitContentProvider, renderer = None):
		self.config = config
		self.canned_handlers = canned_handlers or CannedHTTPHandlers()
		self.provider_factory = provider_factory
		self.renderer = renderer or PageRenderer()
		self.gate = PermissionGate(config.threshold)
		self.resolver = BoundaryResolver(config.serving_root, self.gate)
		self.pages = {
			Intent.PLAIN_DIRECTORY: self.make_dir_page,
			Intent.TREE_VIEW: self.make_tree_page,
			Intent.BLOB_VIEW: self.make_file_page,
			Intent.RAW_VIEW: self.make_raw_page,
			Intent.FRONT_PAGE: self.make_git_page,
		}

	def __call__(self, environ, start_response):
		path = environ.get('WSGIHandlerSelector.path')
		if path is None:
			# not mounted behind WSGIHandlerSelector
			try:
				path = sanitize_path(decode_path_info(environ))
			except UnicodeError:
				path = None
			if path is None:
				return self.canned_handlers('bad_request', environ, start_response)
		remote = environ.get('REMOTE_ADDR')
		logger.info("View of %r from %s", path, remote)

		requested = os.path.normpath(os.path.join(self.config.serving_root, *path.strip('/').split('/')))
		result = self.resolver.resolve(requested)
		if not result.ok:
			logger.info("Sending %s status: %s (%r)", remote, result.status.value, path)
			return self.canned_handlers(result.status, environ, start_response)

		page = self.new_page(environ, path, result)
		intent = dispatch_intent(result, page.url, self.config.keyword_dispatch)

		try:
			status, content_type, body = self.pages[intent](environ, result, page)
		except (RenderError, GitCommandError, OSError) as e:
			logger.error("View of %r from %s caused error: %s", path, remote, e)
			return self.canned_handlers(Status.INTERNAL_ERROR, environ, start_response)

		if status is not Status.OK:
			logger.info("Sending %s status: %s (%r)", remote, status.value, path)
			return self.canned_handlers(status, environ, start_response)

		logger.debug("View of %r from %s served as %s", path, remote, intent.value)
		headers = [
			('Content-Type', content_type),
			('Content-Length', str(len(body))),
			('X-Content-Type-Options', 'nosniff'),
		]
		start_response('200 OK', headers)
		if environ.get('REQUEST_METHOD') == 'HEAD':
			return [b'']
		return [body]

	def new_page(self, environ, path, result):
		host = environ.get('HTTP_HOST') or '%s:%s' % (environ.get('SERVER_NAME', ''), environ.get('SERVER_PORT', ''))
		query = environ.get('QUERY_STRING') or ''
		repo_url_path = result.repo_root[len(self.config.serving_root):].replace(os.sep, '/')
		return GitPage(
			url = 'http://' + host + path.rstrip('/') + '/',
			host = host,
			query = '?' + query if query else '',
			version = __version__,
			path = repo_url_path,
			in_repo_path = posixpath.join(os.path.basename(result.repo_root), result.inner_path),
			)

	def render(self, kind, page):
		return Status.OK, self.renderer.content_type(kind), self.renderer.render(kind, page)

	## plain folders ##

	def make_dir_page(self, environ, result, page):
		'''
		Listing of a folder that is not (inside) a repository.
		'''
		root = self.config.serving_root
		parts = [p for p in result.inner_path.split('/') if p]
		directory = os.path.join(root, *parts)

		try:
			entry = FilesystemEntry.from_path(directory)
		except OSError:
			return Status.NOT_FOUND, None, None
		if not entry.is_directory:
			return Status.NOT_FOUND, None, None

		# the root is named by configuration, so only its bits count. Every
		# folder below it has to pass the full gate, hidden ones included.
		if not self.gate.bits_only(FilesystemEntry.from_path(root)):
			return Status.FORBIDDEN, None, None
		current = root
		for part in parts:
			current = os.path.join(current, part)
			if not self.gate.full(FilesystemEntry.from_path(current)):
				return Status.FORBIDDEN, None, None

		page.path = '/' + '/'.join(parts)
		page.in_repo_path = page.path
		listing = []
		if parts:
			listing.append(ListEntry('/', '/', '', ''))
			listing.append(ListEntry(page.url + '../', '..', '', ''))
		for name in sorted(os.listdir(directory)):
			if self.gate.listable(os.path.join(directory, name)):
				listing.append(ListEntry(page.url + name + '/', name, '', ''))
		page.listing = listing
		return self.render('dir', page)

	## repositories ##

	def open_repository(self, environ, result, page):
		'''
		Creates the content provider and fills in the repository header of page.
		Returns (provider, ref, log_ref, params).
		'''
		provider = self.provider_factory(result.repo_root)
		params = parse_qs(environ.get('QUERY_STRING') or '', keep_blank_values = True)

		# ref has to exist, otherwise we quietly fall back to the default
		ref = first_value(params, 'ref')
		if not ref or not provider.ref_exists(ref):
			ref = self.config.default_ref

		# "since" is shorthand for ?ref=<since>..<ref>. Includes ref, excludes since.
		log_ref = ref
		since = first_value(params, 'since')
		if since and provider.ref_exists(since):
			log_ref = since + '..' + ref

		page.owner = provider.owner()
		page.branch = provider.branch(self.config.default_ref)
		page.tags = provider.tags()
		page.tag_num = len(page.tags)
		page.commit_num = provider.total_commits()
		page.sha = provider.sha(log_ref)
		page.git_dir = '/.git'
		return provider, ref, log_ref, params

	def make_tree_page(self, environ, result, page):
		provider, ref, log_ref, params = self.open_repository(environ, result, page)
		folder = result.inner_path.strip('/')
		if folder == REPO_ROOT_MARKER:
			folder = ''
		listing = []
		for name in provider.get_dir(ref, folder):
			kind = 'tree' if name.endswith('/') else 'blob'
			link = 'http://%s%s/%s/%s' % (page.host, page.path, kind, posixpath.join(folder, name))
			listing.append(ListEntry(name, name, link, page.query))
		page.listing = listing
		return self.render('tree', page)

	def make_file_page(self, environ, result, page):
		provider, ref, log_ref, params = self.open_repository(environ, result, page)
		page.file_name = result.inner_path
		page.file_data = provider.get_file(ref, result.inner_path)
		return self.render('file', page)

	def make_raw_page(self, environ, result, page):
		provider = self.provider_factory(result.repo_root)
		params = parse_qs(environ.get('QUERY_STRING') or '', keep_blank_values = True)
		ref = first_value(params, 'ref')
		if not ref or not provider.ref_exists(ref):
			ref = self.config.default_ref

		data = provider.get_file(ref, result.inner_path)
		extension = posixpath.splitext(result.inner_path)[1].lower()
		if extension in IMAGE_EXTENSIONS:
			content_type = _IMAGE_TYPES[extension]
		elif b'\x00' in data:
			content_type = 'application/octet-stream'
		else:
			content_type = 'text/plain; charset=utf-8'
		return Status.OK, content_type, data

	def make_git_page(self, environ, result, page):
		'''
		Front page of a repository: latest commits and the README.
		'''
		provider, ref, log_ref, params = self.open_repository(environ, result, page)

		try:
			max_commits = int(first_value(params, 'c'))
		except ValueError:
			max_commits = self.config.default_commits

		logs = []
		for commit in provider.commits(log_ref, max_commits):
			if not commit.sha:
				continue
			classtype = '-owner' if commit.author == page.owner else ''
			logs.append(LogEntry(commit.author, classtype, commit.sha, commit.time, commit.subject, commit.body))
		page.logs = logs

		# presence is enough, "?api" carries no value
		if 'api' in params:
			return self.render('api', page)

		for name in README_NAMES:
			readme = provider.get_file(ref, name)
			if readme:
				page.readme = readme
				break
		return self.render('gitpage', page)


def assemble_WSGI_grove_app(config, provider_factory = GitContentProvider, renderer = None):
	'''
	Assembles the WSGI-compatible grove application.

	config - GroveConfig instance.
	provider_factory (optional) - callable(repo_root) -> GitContentProvider-like object.
	renderer (optional) - PageRenderer-like object.

	returns WSGI application instance.
	'''
	canned = CannedHTTPHandlers()
	gate = PermissionGate(config.threshold)

	selector = WSGIHandlerSelector(canned)
	favicon_handler = StaticWSGIServer(config.resources, canned, file_name = 'favicon.png')
	git_inforefs_handler = GitHTTPBackendInfoRefs(config.serving_root, canned, gate)
	git_rpc_handler = GitHTTPBackendSmartHTTP(config.serving_root, canned, gate)
	git_dumb_handler = GitHTTPBackendDumbHTTP(config.serving_root, canned, gate)
	browser = GroveRouter(config, canned, provider_factory, renderer)

	selector.add(r'^/favicon\.ico$', GET = favicon_handler, HEAD = favicon_handler)
	selector.add(
		r'^(?P<repo_path>.*?\.git)/info/refs\?(?:.*&)?service=(?P<git_command>git-[^&]+)',
		GET = git_inforefs_handler,
		HEAD = git_inforefs_handler
		)
	selector.add(
		r'^(?P<repo_path>.*?\.git)/(?P<git_command>git-[^/]+)$',
		POST = git_rpc_handler
		)
	selector.add(
		r'^(?P<repo_path>.*?\.git)/(?P<working_path>.*)$',
		GET = git_dumb_handler,
		HEAD = git_dumb_handler
		)
	selector.add(r'^(?P<working_path>.*)$', GET = browser, HEAD = browser)

	return selector
