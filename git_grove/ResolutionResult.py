# -*- coding: utf8 -*-
'''
Value types shared by BoundaryResolver, IntentClassifier and GroveRouter.

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
from collections import namedtuple
from enum import Enum


class Status(Enum):
	'''
	Outcome of a resolution. Values are keys of CannedHTTPHandlers.collection
	'''
	OK = '200'
	FORBIDDEN = '403'
	NOT_FOUND = '404'
	INTERNAL_ERROR = '500'


class Intent(Enum):
	PLAIN_DIRECTORY = 'dir'
	TREE_VIEW = 'tree'
	BLOB_VIEW = 'blob'
	RAW_VIEW = 'raw'
	FRONT_PAGE = 'gitpage'
	UNRESOLVED = 'unresolved'


class ResolutionResult(namedtuple('ResolutionResult',
		'repo_root inner_path is_git_repository intent status')):
	'''
	repo_root
		Serving root or the (innermost) repository folder under it.
	inner_path
		What is left of the requested path under repo_root. For repositories
		this is the path inside the repo with the blob/tree/raw keyword removed.
	'''
	__slots__ = ()

	@property
	def ok(self):
		return self.status is Status.OK
