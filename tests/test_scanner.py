import os
import tempfile
import unittest
from pathlib import Path

from shared.exceptions import SetupError
from sync_tool.scanner import file_extension, normalize_extensions, relative_key, scan_directory

EXTENSIONS = {".mp3", ".flac", ".m3u"}


class TestExtensions(unittest.TestCase):
    def test_file_extension(self):
        self.assertEqual(file_extension("song.mp3"), ".mp3")
        self.assertEqual(file_extension("Song.FLAC"), ".flac")
        self.assertEqual(file_extension("archive.tar.gz"), ".gz")
        self.assertIsNone(file_extension("README"))
        self.assertIsNone(file_extension("a.b"))

    def test_normalize_drops_playlists_and_adds_dot(self):
        self.assertEqual(normalize_extensions(["MP3", ".flac", ".m3u", "m3u8", ".pls", ""]),
                         {".mp3", ".flac"})


class TestScanDirectory(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()

    def tearDown(self):
        self._tmp.cleanup()

    def _touch(self, rel):
        path = self.root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"x")
        return path

    def _scan(self):
        return [relative_key(self.root, p) for p in scan_directory(self.root, EXTENSIONS)]

    def test_finds_supported_files_recursively_in_order(self):
        for rel in ("b.mp3", "artist/album/01.flac", "a.mp3", "cover.jpg", "notes.txt"):
            self._touch(rel)
        self.assertEqual(self._scan(), ["a.mp3", "artist/album/01.flac", "b.mp3"])

    def test_hidden_files_and_directories_skipped(self):
        self._touch(".hidden.mp3")
        self._touch(".git/objects/x.mp3")
        self._touch("visible/.secret/y.mp3")
        self._touch("visible/ok.mp3")
        self.assertEqual(self._scan(), ["visible/ok.mp3"])

    def test_playlists_always_excluded(self):
        self._touch("list.m3u")
        self._touch("song.mp3")
        self.assertEqual(self._scan(), ["song.mp3"])

    def test_extension_match_is_case_insensitive(self):
        self._touch("LOUD.MP3")
        self.assertEqual(self._scan(), ["LOUD.MP3"])

    def test_not_a_directory(self):
        with self.assertRaises(SetupError):
            scan_directory(self.root / "missing", EXTENSIONS)
        with self.assertRaises(SetupError):
            scan_directory(self._touch("file.mp3"), EXTENSIONS)

    @unittest.skipUnless(hasattr(os, "symlink"), "symlinks not supported")
    def test_symlinked_directory_is_followed(self):
        with tempfile.TemporaryDirectory() as other:
            Path(other, "s.mp3").write_bytes(b"x")
            os.symlink(other, self.root / "linked", target_is_directory=True)
            self.assertEqual(self._scan(), ["linked/s.mp3"])

    @unittest.skipUnless(hasattr(os, "symlink"), "symlinks not supported")
    def test_symlink_loop_scanned_once(self):
        self._touch("album/song.mp3")
        os.symlink(self.root / "album", self.root / "album" / "again", target_is_directory=True)
        os.symlink(self.root, self.root / "album" / "top", target_is_directory=True)
        self.assertEqual(self._scan(), ["album/song.mp3"])

    def test_empty_directory(self):
        self.assertEqual(scan_directory(self.root, EXTENSIONS), [])


if __name__ == '__main__':
    unittest.main()
