# -*- coding: utf8 -*-
'''
Turns what is left of a URL path under a repository into a page intent.

Only this module knows about the "blob", "tree" and "raw" keywords.
Everything downstream works with the Intent enum.

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
from git_grove.ResolutionResult import Intent, Status

REPO_ROOT_MARKER = '.'
GIT_DELEGATE_SEGMENT = '.git/'

# checked in this order. First hit wins.
_FILE_PREFIXES = (
	('blob/', Intent.BLOB_VIEW),
	('raw/', Intent.RAW_VIEW),
)
_TREE_PREFIX = 'tree/'

# dispatch order of the legacy keyword scan
_SUBSTRING_KEYWORDS = (
	('tree', Intent.TREE_VIEW),
	('blob', Intent.BLOB_VIEW),
	('raw', Intent.RAW_VIEW),
)


def classify_suffix(suffix):
	'''
	classify_suffix(suffix) -> (intent, inner_path, status)

	suffix - '/'-separated path left under a confirmed repository root,
		with no leading slash. '' means the repository root itself.

		'blob/a/b.txt' -> BLOB_VIEW,  'a/b.txt'
		'raw/a/b.txt'  -> RAW_VIEW,   'a/b.txt'
		'tree/src/lib' -> TREE_VIEW,  'src/lib/'
		'tree'         -> TREE_VIEW,  '.'
		''             -> FRONT_PAGE, ''
		'anything'     -> UNRESOLVED, NOT_FOUND
	'''
	suffix = suffix.strip('/')
	if not suffix:
		return Intent.FRONT_PAGE, '', Status.OK

	# trailing slash lets "tree" and "tree/" split the same way
	suffix += '/'
	for prefix, intent in _FILE_PREFIXES:
		if suffix.startswith(prefix):
			return intent, suffix[len(prefix):].rstrip('/'), Status.OK
	if suffix.startswith(_TREE_PREFIX):
		inner_path = suffix[len(_TREE_PREFIX):]
		if not inner_path:
			inner_path = REPO_ROOT_MARKER
		return Intent.TREE_VIEW, inner_path, Status.OK
	return Intent.UNRESOLVED, suffix.rstrip('/'), Status.NOT_FOUND


def dispatch_intent(result, url, mode = 'structural'):
	'''
	Picks the page to render for an OK ResolutionResult.

	mode 'structural'
		Trust the tag the classifier put on the result.
	mode 'substring'
		Scan the full rendered URL for the words "tree", "blob", "raw", in that
		order. Kept for compatibility with older grove links. A repository
		or branch with one of those words in its name gets misrouted.
	'''
	if not result.is_git_repository:
		return Intent.PLAIN_DIRECTORY
	if mode == 'substring':
		for keyword, intent in _SUBSTRING_KEYWORDS:
			if keyword in url:
				return intent
		return Intent.FRONT_PAGE
	return result.intent


def split_git_delegate_path(path):
	'''
	Splits a URL path at the first '.git/' occurrence.

	'/proj/.git/info/refs' -> ('/proj/.git', 'info/refs')
	'/a/b.git/HEAD' -> ('/a/b.git', 'HEAD')

	Returns None if the path does not contain '.git/'.
	'''
	if GIT_DELEGATE_SEGMENT not in path:
		return None
	head, _, tail = path.partition(GIT_DELEGATE_SEGMENT)
	return head + GIT_DELEGATE_SEGMENT.rstrip('/'), tail
