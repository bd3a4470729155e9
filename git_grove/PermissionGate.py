# -*- coding: utf8 -*-
'''
Decides whether a filesystem entry may be disclosed, judging only by its name
and POSIX permission bits.

Bits are checked for the principal class picked by PermissionThreshold:

		  rwx rwx rwx         r-x
	0b    111 101 101  &  (0b 101 << 3 * GROUP)
	0b    111 101 101  &   0b 000 101 000
	0b    000 101 000  > 0  -> servable

i.e. a directory must be readable and listable (files - readable) by the
chosen class. Non-POSIX filesystems would need a translation layer that maps
their ACLs onto these bits.

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
import stat
from collections import namedtuple

from git_grove.GroveConfig import PermissionThreshold

DIRECTORY_MASK = 0o5 # read + execute (list)
FILE_MASK = 0o4 # read


class FilesystemEntry(namedtuple('FilesystemEntry', 'path name is_directory permission_bits')):
	__slots__ = ()

	@classmethod
	def from_path(cls, path):
		'''
		Stats the path (following symlinks) and returns a FilesystemEntry.
		Lets OSError through - callers decide what a failed stat means.
		'''
		st = os.stat(path)
		return cls(
			path,
			os.path.basename(os.path.normpath(path)),
			stat.S_ISDIR(st.st_mode),
			stat.S_IMODE(st.st_mode)
			)


class PermissionGate(object):

	def __init__(self, threshold = PermissionThreshold.OTHER):
		self.threshold = PermissionThreshold.parse(threshold)

	def bits_only(self, entry):
		'''
		True if the configured principal class has the needed bits on entry.
		Name is not looked at, so explicitly named entries (a repo folder
		found through its .git marker) are judged on bits alone.
		'''
		mask = DIRECTORY_MASK if entry.is_directory else FILE_MASK
		return bool(entry.permission_bits & (mask << (3 * int(self.threshold))))

	def full(self, entry):
		'''
		Same as bits_only, but hidden (dot-named) entries never pass.
		Use this one for anything that ends up in a listing.
		'''
		if entry.name.startswith('.'):
			return False
		return self.bits_only(entry)

	def listable(self, path):
		'''
		full() for a path on disk. Entries we cannot stat are not listed.
		'''
		try:
			entry = FilesystemEntry.from_path(path)
		except OSError:
			return False
		return self.full(entry)
