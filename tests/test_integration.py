#!/usr/bin/env python3
"""
Integration tests for diskmv

Each test builds a fake mount root holding disk2 and disk5 and runs whole
moves through DiskMover.
"""

import io
import os
import shutil
import tempfile
import unittest
from pathlib import Path

from diskmv.core import DiskLookup, DiskMover, MoveOutcome, MovePolicy
from diskmv.core import resolve_share_path, validate_disks
from diskmv.utils import RunReporter


class TestDiskMoverIntegration(unittest.TestCase):
    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, self.temp_dir, ignore_errors=True)
        self.mount_root = self.temp_dir / "mnt"
        self.disk2 = self.mount_root / "disk2"
        self.disk5 = self.mount_root / "disk5"
        for path in (self.disk2, self.disk5, self.mount_root / "user"):
            path.mkdir(parents=True)
        self.lookup = DiskLookup(self.mount_root)
        self.busy = set()

    def _write(self, root, relative, content="content"):
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    def _run(self, path, **policy):
        policy = MovePolicy(**policy)
        self.output = io.StringIO()
        share_path = resolve_share_path(path, self.lookup)
        source, dest = validate_disks("disk2", "disk5", self.lookup)
        mover = DiskMover(
            share_path,
            source,
            dest,
            policy,
            busy_check=lambda p: str(p) in self.busy,
            reporter=RunReporter(policy, stream=self.output),
        )
        return {r.share_path.as_posix(): r.outcome for r in mover.move()}

    def _snapshot(self, root):
        """Every path under root with its type, content, mode and mtime"""
        snapshot = {}
        for current, dirs, files in os.walk(root):
            for name in dirs + files:
                path = Path(current) / name
                st = os.lstat(path)
                content = path.read_bytes() if path.is_file() and not path.is_symlink() else None
                snapshot[path.relative_to(root).as_posix()] = (
                    st.st_mode,
                    st.st_mtime_ns,
                    content,
                )
        return snapshot

    def test_move_directory_scenario(self):
        """movies/Foo moves from disk2 to disk5 and the emptied directory goes"""
        self._write(self.disk2, "movies/Foo/Foo.mkv", "movie bytes")

        outcomes = self._run("movies/Foo", dry_run=False)

        self.assertEqual(
            outcomes,
            {"movies/Foo/Foo.mkv": MoveOutcome.MOVED, "movies/Foo": MoveOutcome.MOVED},
        )
        self.assertEqual((self.disk5 / "movies/Foo/Foo.mkv").read_text(), "movie bytes")
        self.assertFalse((self.disk2 / "movies/Foo/Foo.mkv").exists())
        self.assertFalse((self.disk2 / "movies/Foo").exists())
        self.assertTrue((self.disk2 / "movies").is_dir())
        self.assertTrue((self.disk5 / "movies/Foo").is_dir())

    def test_duplicate_scenario(self):
        """An existing destination file is left alone and reported as duplicate"""
        self._write(self.disk2, "movies/Foo/Foo.mkv", "source version")
        self._write(self.disk5, "movies/Foo/Foo.mkv", "dest version")
        before_src = self._snapshot(self.disk2)
        before_dst = self._snapshot(self.disk5)

        outcomes = self._run("movies/Foo", dry_run=False)

        self.assertIs(outcomes["movies/Foo/Foo.mkv"], MoveOutcome.SKIPPED_DUPLICATE)
        self.assertIs(outcomes["movies/Foo"], MoveOutcome.SKIPPED_FILTERED)
        self.assertEqual(self._snapshot(self.disk2), before_src)
        self.assertEqual(self._snapshot(self.disk5), before_dst)
        self.assertIn("Skipped duplicate: movies/Foo/Foo.mkv", self.output.getvalue())
        self.assertIn("overwrite denied", self.output.getvalue())

    def test_clobber_overwrites(self):
        self._write(self.disk2, "movies/Foo/Foo.mkv", "source version")
        self._write(self.disk5, "movies/Foo/Foo.mkv", "stale")

        outcomes = self._run("movies/Foo", dry_run=False, clobber=True)

        self.assertIs(outcomes["movies/Foo/Foo.mkv"], MoveOutcome.MOVED)
        self.assertEqual((self.disk5 / "movies/Foo/Foo.mkv").read_text(), "source version")
        self.assertFalse((self.disk2 / "movies/Foo").exists())

    def test_clobber_replaces_destination_symlink(self):
        outside = self._write(self.temp_dir, "outside.txt", "must not change")
        self._write(self.disk2, "movies/a.mkv", "source version")
        (self.disk5 / "movies").mkdir()
        os.symlink(outside, self.disk5 / "movies" / "a.mkv")

        self._run("movies", dry_run=False, clobber=True)

        self.assertEqual(outside.read_text(), "must not change")
        self.assertFalse((self.disk5 / "movies/a.mkv").is_symlink())
        self.assertEqual((self.disk5 / "movies/a.mkv").read_text(), "source version")

    def test_metadata_preserved(self):
        source = self._write(self.disk2, "music/album/track.flac", "audio")
        os.chmod(source, 0o751)
        os.utime(source, ns=(1_500_000_000_000_000_000, 1_600_000_000_123_456_789))
        os.chmod(self.disk2 / "music" / "album", 0o705)
        src_stat = os.lstat(source)
        dir_stat = os.lstat(self.disk2 / "music" / "album")

        self._run("music/album", dry_run=False)

        dest = self.disk5 / "music/album/track.flac"
        dest_stat = os.lstat(dest)
        self.assertEqual(dest.read_text(), "audio")
        self.assertEqual(dest_stat.st_mode, src_stat.st_mode)
        self.assertEqual(dest_stat.st_mtime_ns, src_stat.st_mtime_ns)
        self.assertEqual(dest_stat.st_uid, src_stat.st_uid)
        self.assertEqual(dest_stat.st_gid, src_stat.st_gid)
        self.assertTrue(os.access(dest, os.X_OK))

        dest_dir_stat = os.lstat(self.disk5 / "music" / "album")
        self.assertEqual(dest_dir_stat.st_mode, dir_stat.st_mode)

    def test_keepsource(self):
        source = self._write(self.disk2, "movies/Foo/Foo.mkv", "movie")

        outcomes = self._run("movies/Foo", dry_run=False, keep_source=True)

        self.assertIs(outcomes["movies/Foo/Foo.mkv"], MoveOutcome.MOVED)
        self.assertIs(outcomes["movies/Foo"], MoveOutcome.SKIPPED_FILTERED)
        self.assertEqual(source.read_text(), "movie")
        self.assertEqual((self.disk5 / "movies/Foo/Foo.mkv").read_text(), "movie")
        self.assertIn("Copied: movies/Foo/Foo.mkv", self.output.getvalue())

    def test_dry_run_makes_no_changes(self):
        self._write(self.disk2, "movies/Foo/Foo.mkv")
        self._write(self.disk2, "movies/Foo/sub/extra.srt")
        self._write(self.disk5, "movies/Foo/existing.nfo")
        before_src = self._snapshot(self.disk2)
        before_dst = self._snapshot(self.disk5)

        outcomes = self._run("movies/Foo")

        self.assertEqual(self._snapshot(self.disk2), before_src)
        self.assertEqual(self._snapshot(self.disk5), before_dst)
        self.assertTrue(all(o is MoveOutcome.DRY_RUN_WOULD_MOVE for o in outcomes.values()))
        lines = self.output.getvalue().splitlines()
        self.assertIn("TEST MODE", lines[0])
        self.assertIn("TEST MODE", lines[-1])

    def test_dry_run_predicts_real_run(self):
        self._write(self.disk2, "tv/Show/s01/e01.mkv", "x" * 2048)
        self._write(self.disk2, "tv/Show/s01/e01.srt", "x" * 10)
        self._write(self.disk2, "tv/Show/s02/e01.mkv", "x" * 10)
        self._write(self.disk2, "tv/Show/s02/e02.mkv", "x" * 10)
        self._write(self.disk2, "tv/Show/poster.jpg", "x" * 10)
        self._write(self.disk5, "tv/Show/s02/e02.mkv", "already there")
        self._write(self.disk2, "tv/Show/busy.mkv", "x" * 10)
        self.busy.add(str(self.disk2 / "tv/Show/busy.mkv"))
        os.symlink("poster.jpg", self.disk2 / "tv/Show/folder.jpg")
        flags = dict(max_size_bytes=1024, allowed_extensions=frozenset({"mkv", "srt"}))

        predicted = self._run("tv/Show", dry_run=True, **flags)
        actual = self._run("tv/Show", dry_run=False, **flags)

        expected_real = {
            MoveOutcome.DRY_RUN_WOULD_MOVE: MoveOutcome.MOVED,
        }
        self.assertEqual(set(predicted), set(actual))
        for path, outcome in predicted.items():
            with self.subTest(path=path):
                self.assertIs(actual[path], expected_real.get(outcome, outcome))

        self.assertIs(actual["tv/Show/s01/e01.mkv"], MoveOutcome.SKIPPED_FILTERED)
        self.assertIs(actual["tv/Show/s01/e01.srt"], MoveOutcome.MOVED)
        self.assertIs(actual["tv/Show/s02/e01.mkv"], MoveOutcome.MOVED)
        self.assertIs(actual["tv/Show/s02/e02.mkv"], MoveOutcome.SKIPPED_DUPLICATE)
        self.assertIs(actual["tv/Show/busy.mkv"], MoveOutcome.SKIPPED_BUSY)
        self.assertIs(actual["tv/Show/folder.jpg"], MoveOutcome.SKIPPED_FILTERED)
        self.assertIs(actual["tv/Show"], MoveOutcome.SKIPPED_FILTERED)

    def test_dry_run_predicts_directory_removal(self):
        self._write(self.disk2, "movies/Foo/sub/a.mkv")
        predicted = self._run("movies/Foo", dry_run=True)
        self.assertIs(predicted["movies/Foo/sub"], MoveOutcome.DRY_RUN_WOULD_MOVE)
        self.assertIs(predicted["movies/Foo"], MoveOutcome.DRY_RUN_WOULD_MOVE)

        actual = self._run("movies/Foo", dry_run=False)
        self.assertIs(actual["movies/Foo/sub"], MoveOutcome.MOVED)
        self.assertIs(actual["movies/Foo"], MoveOutcome.MOVED)
        self.assertFalse((self.disk2 / "movies/Foo").exists())

    def test_idempotent(self):
        self._write(self.disk2, "movies/Foo/Foo.mkv", "movie")
        self._write(self.disk2, "movies/Foo/Foo.nfo", "info")
        flags = dict(dry_run=False, allowed_extensions=frozenset({"mkv"}))

        first = self._run("movies/Foo", **flags)
        after_first = (self._snapshot(self.disk2), self._snapshot(self.disk5))
        second = self._run("movies/Foo", **flags)

        self.assertIs(first["movies/Foo/Foo.mkv"], MoveOutcome.MOVED)
        self.assertNotIn("movies/Foo/Foo.mkv", second)
        self.assertIs(second["movies/Foo/Foo.nfo"], MoveOutcome.SKIPPED_FILTERED)
        self.assertEqual((self._snapshot(self.disk2), self._snapshot(self.disk5)), after_first)

    def test_busy_file_keeps_directory(self):
        self._write(self.disk2, "movies/Foo/a.mkv")
        self._write(self.disk2, "movies/Foo/b.mkv")
        self.busy.add(str(self.disk2 / "movies/Foo/b.mkv"))

        outcomes = self._run("movies/Foo", dry_run=False)

        self.assertIs(outcomes["movies/Foo/a.mkv"], MoveOutcome.MOVED)
        self.assertIs(outcomes["movies/Foo/b.mkv"], MoveOutcome.SKIPPED_BUSY)
        self.assertIs(outcomes["movies/Foo"], MoveOutcome.SKIPPED_FILTERED)
        self.assertTrue((self.disk2 / "movies/Foo/b.mkv").exists())
        self.assertFalse((self.disk5 / "movies/Foo/b.mkv").exists())
        self.assertIn("Skipped busy: movies/Foo/b.mkv", self.output.getvalue())

    def test_hidden_file_keeps_directory(self):
        self._write(self.disk2, "movies/Foo/Foo.mkv")
        self._write(self.disk2, "movies/Foo/.hidden")

        outcomes = self._run("movies/Foo", dry_run=False, allowed_extensions=frozenset({"mkv"}))

        self.assertIs(outcomes["movies/Foo/Foo.mkv"], MoveOutcome.MOVED)
        self.assertTrue((self.disk2 / "movies/Foo/.hidden").exists())
        self.assertTrue((self.disk2 / "movies/Foo").is_dir())

    def test_size_boundary(self):
        self._write(self.disk2, "data/exact.bin", "x" * 1024)
        self._write(self.disk2, "data/over.bin", "x" * 1025)

        outcomes = self._run("data", dry_run=False, max_size_bytes=1024)

        self.assertIs(outcomes["data/exact.bin"], MoveOutcome.MOVED)
        self.assertIs(outcomes["data/over.bin"], MoveOutcome.SKIPPED_FILTERED)

    def test_symlinks_copied_as_links(self):
        self._write(self.disk2, "movies/Foo/Foo.mkv")
        os.symlink("Foo.mkv", self.disk2 / "movies/Foo/latest.mkv")

        skipped = self._run("movies/Foo", dry_run=False)
        self.assertIs(skipped["movies/Foo/latest.mkv"], MoveOutcome.SKIPPED_FILTERED)
        self.assertTrue((self.disk2 / "movies/Foo/latest.mkv").is_symlink())

        moved = self._run("movies/Foo", dry_run=False, copy_symlinks=True)
        self.assertIs(moved["movies/Foo/latest.mkv"], MoveOutcome.MOVED)
        link = self.disk5 / "movies/Foo/latest.mkv"
        self.assertTrue(link.is_symlink())
        self.assertEqual(os.readlink(link), "Foo.mkv")
        self.assertFalse((self.disk2 / "movies/Foo").exists())

    def test_merge_into_existing_directory(self):
        self._write(self.disk2, "movies/Foo/new.mkv", "new")
        self._write(self.disk5, "movies/Foo/old.mkv", "old")

        outcomes = self._run("movies/Foo", dry_run=False)

        self.assertIs(outcomes["movies/Foo"], MoveOutcome.MOVED)
        self.assertEqual(
            sorted(p.name for p in (self.disk5 / "movies/Foo").iterdir()),
            ["new.mkv", "old.mkv"],
        )

    def test_single_file_path(self):
        self._write(self.disk2, "movies/Foo/Foo.mkv", "movie")
        self._write(self.disk2, "movies/Foo/Foo.nfo", "info")

        outcomes = self._run(str(self.disk2 / "movies/Foo/Foo.mkv"), dry_run=False)

        self.assertEqual(outcomes, {"movies/Foo/Foo.mkv": MoveOutcome.MOVED})
        self.assertTrue((self.disk2 / "movies/Foo/Foo.nfo").exists())
        self.assertTrue((self.disk5 / "movies/Foo/Foo.mkv").exists())


if __name__ == "__main__":
    unittest.main()
