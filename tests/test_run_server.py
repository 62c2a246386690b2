import io
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

from AEP_Server import run_server

from aep_builders import comp_item, folder_item, list_chunk, project_bytes, utf8


class SmokeCheckTests(unittest.TestCase):
    def _run(self, argv):
        out, err = io.StringIO(), io.StringIO()
        with mock.patch.dict(os.environ, {}):
            with redirect_stdout(out), redirect_stderr(err):
                code = run_server.main(argv)
        return code, out.getvalue(), err.getvalue()

    def test_smoke_without_project_lists_tools(self):
        code, out, _ = self._run(["--smoke"])
        self.assertEqual(code, 0)
        self.assertIn("SMOKE_CHECK_OK: 4 tools registered", out)

    def test_smoke_decodes_given_project(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "job.aep")
            with open(path, "wb") as handle:
                handle.write(project_bytes(comp_item("Main", 1), folder_item("Pre", 2, comp_item("Inner", 3)), depth=0x01))
            code, out, _ = self._run(["--smoke", path])
        self.assertEqual(code, 0)
        self.assertIn("decoded 4 items, 2 compositions, 16 bpc", out)

    def test_smoke_reports_decode_failure(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "broken.aep")
            with open(path, "wb") as handle:
                handle.write(project_bytes(list_chunk(b"Item", utf8("No descriptor"))))
            code, _, err = self._run(["--smoke", path])
        self.assertEqual(code, 1)
        self.assertIn("[missing_chunk]", err)

    def test_overrides_land_in_environment(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with mock.patch.dict(os.environ, {}):
                os.environ.pop("AEP_MCP_LAUNCH_CWD", None)
                run_server._apply_overrides(tmpdir, "debug")
                self.assertEqual(os.environ["AEP_MCP_PROJECTS_ROOT"], os.path.abspath(tmpdir))
                self.assertEqual(os.environ["AEP_MCP_LOG_LEVEL"], "debug")
                self.assertEqual(os.environ["AEP_MCP_LAUNCH_CWD"], os.getcwd())


if __name__ == "__main__":
    unittest.main()
