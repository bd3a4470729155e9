# -*- coding: utf8 -*-
'''
Finds which repository (if any) a requested filesystem path belongs to.

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

from git_grove.IntentClassifier import classify_suffix
from git_grove.PermissionGate import FilesystemEntry, PermissionGate
from git_grove.ResolutionResult import Intent, ResolutionResult, Status

logger = logging.getLogger(__name__)

REPO_MARKER = '.git'


def is_within(root, path):
	'''True if path is root or lies under it. Both must be normalized.'''
	if path == root:
		return True
	return path.startswith(root.rstrip(os.sep) + os.sep)


class BoundaryResolver(object):
	"""
	Walks a requested path upward, toward the serving root, until it finds a
	folder holding a '.git' marker folder.

	The walk starts at the requested path itself and only ever moves to the
	parent, stopping at the serving root. Hence:
	 - the innermost repository wins over any enclosing one,
	 - the repo_root returned is never above the serving root,
	 - it takes at most (depth of requested path under the root) steps.

	No exceptions are raised for expected outcomes. Everything is reported
	through ResolutionResult.status.
	"""

	def __init__(self, serving_root, gate = None):
		self.serving_root = os.path.normpath(os.path.abspath(serving_root))
		self.gate = gate or PermissionGate()

	def resolve(self, requested_path):
		serving_root = self.serving_root
		cursor = os.path.normpath(requested_path)

		# the caller joins URL paths onto the root, but we do not take that on faith.
		if not is_within(serving_root, cursor):
			logger.warning("Path %r lies outside of serving root %r", requested_path, serving_root)
			return ResolutionResult(serving_root, '', False, Intent.UNRESOLVED, Status.FORBIDDEN)

		suffix = ''
		while True:
			if cursor == serving_root:
				return ResolutionResult(serving_root, suffix, False, Intent.PLAIN_DIRECTORY, Status.OK)

			if os.path.isdir(os.path.join(cursor, REPO_MARKER)):
				return self._confirm_repository(cursor, suffix)

			# inner paths are URL-ish, hence always '/' separated.
			suffix = posixpath.join(os.path.basename(cursor), suffix) if suffix else os.path.basename(cursor)
			cursor = os.path.dirname(cursor)

	def _confirm_repository(self, repo_root, suffix):
		try:
			entry = FilesystemEntry.from_path(repo_root)
		except OSError as e:
			# we just saw its .git folder. Not being able to stat it is our problem, not the client's.
			logger.error("Could not stat repository %r: %s", repo_root, e)
			return ResolutionResult(repo_root, suffix, True, Intent.UNRESOLVED, Status.INTERNAL_ERROR)

		if not self.gate.bits_only(entry):
			return ResolutionResult(repo_root, suffix, True, Intent.UNRESOLVED, Status.FORBIDDEN)

		intent, inner_path, status = classify_suffix(suffix)
		return ResolutionResult(repo_root, inner_path, True, intent, status)
