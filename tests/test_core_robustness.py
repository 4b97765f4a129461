"""
Robustness tests for manifest structure, verbosity and concurrent recording.
"""

from __future__ import annotations

import importlib
import io
import json
import threading
import unittest

from helpers_cli import workspace_temp_dir

manifest_mod = importlib.import_module("comic_paginator.manifest")
ManifestRecorder = manifest_mod.ManifestRecorder


def _recorder(dry_run: bool = True, verbosity: str = "normal", stream=None) -> ManifestRecorder:
    return ManifestRecorder(
        tool_name="comic-paginator",
        tool_version="0.0.0",
        command="comic-paginator convert --input book.cbz",
        options={"dry_run": dry_run},
        inputs={"input": "book.cbz"},
        outputs={"epub": "book.epub"},
        dry_run=dry_run,
        verbosity=verbosity,
        console_stream=stream if stream is not None else io.StringIO(),
    )


class ManifestStructureTests(unittest.TestCase):
    def test_build_manifest_has_expected_shape(self) -> None:
        recorder = _recorder()
        recorder.log("hello")
        recorder.add_action("page", "dry-run", id=1, name="p1.png")

        manifest = recorder.build_manifest({"pages": 1})
        self.assertEqual(manifest["tool"], "comic-paginator")
        self.assertIn("started_at", manifest)
        self.assertIn("ended_at", manifest)
        self.assertEqual(manifest["action_counts"].get("dry-run"), 1)
        self.assertEqual(manifest["actions"][0]["id"], 1)
        self.assertEqual(manifest["logs"][0]["message"], "hello")

    def test_write_manifest_respects_dry_run(self) -> None:
        with workspace_temp_dir("test_manifest") as tmpdir:
            out_path = tmpdir / "manifest.json"
            _recorder(dry_run=True).write_manifest(out_path, {"ok": True})
            self.assertFalse(out_path.exists())

    def test_write_manifest_writes_json(self) -> None:
        with workspace_temp_dir("test_manifest") as tmpdir:
            out_path = tmpdir / "nested" / "manifest.json"
            recorder = _recorder(dry_run=False)
            recorder.add_action("page", "written", id=0, part=0, size=[10, 20])
            recorder.write_manifest(out_path, {"pages": 1, "output": tmpdir})

            loaded = json.loads(out_path.read_text(encoding="utf-8"))
            self.assertEqual(loaded["summary"]["pages"], 1)
            self.assertEqual(loaded["summary"]["output"], str(tmpdir))
            self.assertEqual(loaded["action_counts"].get("written"), 1)

    def test_concurrent_actions_are_all_recorded(self) -> None:
        recorder = _recorder(verbosity="quiet")

        def record(worker: int) -> None:
            for index in range(200):
                recorder.add_action("page", "written", id=index, worker=worker)
                recorder.log(f"worker {worker} page {index}", level="debug")

        threads = [threading.Thread(target=record, args=(worker,)) for worker in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(recorder.action_counts().get("written"), 1600)
        self.assertEqual(len(recorder.logs), 1600)


class ManifestVerbosityTests(unittest.TestCase):
    def test_quiet_suppresses_info_but_prints_error(self) -> None:
        stream = io.StringIO()
        recorder = _recorder(verbosity="quiet", stream=stream)
        recorder.log("hello-info")
        recorder.log("hello-error", level="error")
        output = stream.getvalue()
        self.assertNotIn("hello-info", output)
        self.assertIn("hello-error", output)
        self.assertEqual(len(recorder.logs), 2)

    def test_normal_prints_info_but_not_debug(self) -> None:
        stream = io.StringIO()
        recorder = _recorder(verbosity="normal", stream=stream)
        recorder.log("hello-info")
        recorder.log("hello-debug", level="debug")
        output = stream.getvalue()
        self.assertIn("hello-info", output)
        self.assertNotIn("hello-debug", output)

    def test_verbose_prints_debug_with_level_prefix(self) -> None:
        stream = io.StringIO()
        recorder = _recorder(verbosity="verbose", stream=stream)
        recorder.log("hello-debug", level="debug")
        self.assertIn("[debug] hello-debug", stream.getvalue())


if __name__ == "__main__":
    unittest.main()
