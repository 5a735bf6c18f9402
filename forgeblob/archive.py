from abc import ABC, abstractmethod
from os import fspath, listdir, path


class ArchiveEntry:
    def __init__(self, name, location=None):
        self.name = name
        self.location = location

    def __repr__(self):
        return f"ArchiveEntry({self.name!r})"


class Archive(ABC):
    """Named raw entries of a forge archive.

    Subclasses provide ``entries`` and ``get_raw_data``; name lookups are
    shared.
    """

    @property
    @abstractmethod
    def entries(self):
        pass

    @abstractmethod
    def get_raw_data(self, entry):
        pass

    def find(self, substring):
        return [entry for entry in self.entries if substring in entry.name]

    def get(self, name):
        for entry in self.entries:
            if entry.name == name:
                return entry
        raise KeyError(name)


class FolderArchive(Archive):
    """Raw entries already exported to a folder, one file per entry.

    Files produced by decoding and texture extraction are not entries.
    """

    DERIVED = (".dec", ".dds", ".png")

    def __init__(self, folder):
        self.folder = fspath(folder)
        self._entries = None

    @property
    def entries(self):
        if self._entries is None:
            self._entries = [
                ArchiveEntry(name, path.join(self.folder, name))
                for name in sorted(listdir(self.folder))
                if path.isfile(path.join(self.folder, name))
                and not name.endswith(self.DERIVED)
            ]
        return self._entries

    def get_raw_data(self, entry):
        with open(entry.location, "rb") as f:
            return f.read()
