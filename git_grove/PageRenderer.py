# -*- coding: utf8 -*-
'''
Turns a filled-in GitPage into response bytes.

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
import base64
import html
import json
import logging
import posixpath
from collections import namedtuple

import markdown
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_for_filename
from pygments.util import ClassNotFound

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.gif')
README_NAMES = ('README', 'README.txt', 'README.md')

ListEntry = namedtuple('ListEntry', 'url name link query')
LogEntry = namedtuple('LogEntry', 'author classtype sha time subject body')

CONTENT_TYPES = {
	'dir': 'text/html; charset=utf-8',
	'tree': 'text/html; charset=utf-8',
	'file': 'text/html; charset=utf-8',
	'gitpage': 'text/html; charset=utf-8',
	'api': 'application/json',
}


class RenderError(Exception):
	pass


class GitPage(object):
	'''
	Everything a page template may show. Filled in piecemeal by GroveRouter.
	'''

	def __init__(self, **kw):
		self.owner = ''
		self.in_repo_path = ''
		self.url = ''
		self.host = ''
		self.path = ''
		self.query = ''
		self.version = ''
		self.git_dir = ''
		self.branch = ''
		self.tag_num = 0
		self.commit_num = 0
		self.sha = ''
		self.tags = []
		self.file_name = ''
		self.file_data = b''
		self.readme = b''
		self.listing = []
		self.logs = []
		self.__dict__.update(kw)


def highlight_file(name, data):
	'''
	HTML for a file's content. Images are inlined, text gets numbered
	lines anchored as L-1, L-2, ...
	'''
	extension = posixpath.splitext(name)[1].lower()
	if extension in IMAGE_EXTENSIONS:
		return '<img src="data:image/%s;base64,%s"/>' % (
			extension.lstrip('.'), base64.b64encode(data).decode('ascii'))

	text = data.decode('utf8', 'replace')
	try:
		lexer = get_lexer_for_filename(name, text)
	except ClassNotFound:
		lexer = TextLexer()
	formatter = HtmlFormatter(linenos = 'table', lineanchors = 'L', anchorlinenos = True)
	return highlight(text, lexer, formatter)


def render_readme(data):
	return markdown.markdown(data.decode('utf8', 'replace'), extensions = ['fenced_code', 'tables'])


_LAYOUT = '''<!DOCTYPE html>
<html>
  <head>
	<meta charset="utf-8"/>
	<meta name="viewport" content="width=device-width, initial-scale=1"/>
	<title>%(title)s</title>
	<style>
	  body { font-family: sans-serif; margin: 0; }
	  .container { max-width: 960px; margin: 0 auto; padding: 1rem; }
	  .meta { color: #555; font-size: .9rem; }
	  ul.listing { line-height: 1.8; padding-left: 1rem; }
	  .commit { border-bottom: 1px solid #ddd; padding: .4rem 0; }
	  .commit-owner .author { font-weight: bold; }
	  .sha { font-family: monospace; color: #777; }
	  %(style)s
	</style>
  </head>
  <body>
	<div class="container">
	  <h1><a href="/">grove</a> %(heading)s</h1>
	  %(body)s
	  <p class="meta">grove %(version)s</p>
	</div>
  </body>
</html>
'''

_REPO_HEADER = '''<div class="meta">
  branch <b>%(branch)s</b> &middot; %(commit_num)s commits &middot; %(tag_num)s tags
  &middot; <span class="sha">%(sha)s</span>
  <br/>clone: <code>git clone %(clone_url)s</code>
</div>'''


class PageRenderer(object):
	'''
	render(kind, page) -> bytes

	kind is one of CONTENT_TYPES' keys. Anything that goes wrong while
	rendering comes out as RenderError.
	'''

	def content_type(self, kind):
		return CONTENT_TYPES[kind]

	def render(self, kind, page):
		method = getattr(self, 'render_' + kind, None)
		if method is None:
			raise RenderError('no template for %r' % (kind,))
		try:
			return method(page).encode('utf8')
		except RenderError:
			raise
		except Exception as e:
			raise RenderError('rendering %r failed: %s' % (kind, e))

	def _layout(self, page, heading, body, style = ''):
		return _LAYOUT % {
			'title': html.escape(page.in_repo_path or page.path or '/'),
			'heading': heading,
			'body': body,
			'style': style,
			'version': html.escape(page.version),
		}

	def _repo_header(self, page):
		return _REPO_HEADER % {
			'branch': html.escape(page.branch),
			'commit_num': page.commit_num,
			'tag_num': page.tag_num,
			'sha': html.escape(page.sha),
			'clone_url': html.escape('http://%s%s%s' % (page.host, page.path, page.git_dir)),
		}

	def _listing(self, entries):
		items = []
		for entry in entries:
			href = entry.link or entry.url
			items.append('<li><a href="%s%s">%s</a></li>' % (
				html.escape(href, quote = True), html.escape(entry.query or '', quote = True), html.escape(entry.name)))
		return '<ul class="listing">\n%s\n</ul>' % '\n'.join(items)

	def render_dir(self, page):
		return self._layout(page, html.escape(page.path), self._listing(page.listing))

	def render_tree(self, page):
		body = self._repo_header(page) + self._listing(page.listing)
		return self._layout(page, html.escape(page.in_repo_path), body)

	def render_file(self, page):
		body = self._repo_header(page) + '<div class="file">%s</div>' % highlight_file(page.file_name, page.file_data)
		return self._layout(page, html.escape(page.in_repo_path), body,
			style = HtmlFormatter().get_style_defs('.highlight'))

	def render_gitpage(self, page):
		commits = []
		for log in page.logs:
			commits.append(
				'<div class="commit commit%s"><span class="sha">%s</span> '
				'<span class="author">%s</span> <span class="meta">%s</span>'
				'<div class="subject">%s</div><div class="body">%s</div></div>' % (
					log.classtype,
					html.escape(log.sha[:10]),
					html.escape(log.author),
					html.escape(log.time),
					html.escape(log.subject),
					html.escape(log.body).replace('\n', '<br/>'),
				))
		body = '%s<p><a href="%s/tree/%s">browse files</a></p><div class="log">%s</div><div class="readme">%s</div>' % (
			self._repo_header(page),
			html.escape(page.path, quote = True),
			html.escape(page.query, quote = True),
			'\n'.join(commits),
			render_readme(page.readme) if page.readme else '',
		)
		return self._layout(page, html.escape(page.in_repo_path), body)

	def render_api(self, page):
		return json.dumps({
			'branch': page.branch,
			'sha': page.sha,
			'tags': list(page.tags),
			'commit_count': page.commit_num,
			'commits': [{
				'sha': log.sha,
				'author': log.author,
				'time': log.time,
				'subject': log.subject,
				'body': log.body,
			} for log in page.logs],
		}, indent = 2)
