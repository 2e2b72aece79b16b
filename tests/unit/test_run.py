"""Tests for the server launcher's command line."""

from unittest.mock import patch

import run


class TestCommandLine:

    def test_defaults(self):
        args = run.build_parser().parse_args([])

        assert run.uvicorn_options(args) == {
            "host": "127.0.0.1",
            "port": 8000,
            "reload": False,
            "workers": 1,
            "log_level": "info",
        }

    def test_reload_forces_single_worker(self):
        args = run.build_parser().parse_args(["--reload", "--workers", "4"])

        assert run.uvicorn_options(args)["workers"] == 1

    def test_main_starts_uvicorn_with_the_app(self):
        with patch.object(run.uvicorn, "run") as uvicorn_run:
            run.main(["--host", "0.0.0.0", "--port", "8080", "--workers", "3"])

        uvicorn_run.assert_called_once_with(
            "linkboard.main:app",
            host="0.0.0.0",
            port=8080,
            reload=False,
            workers=3,
            log_level="info",
        )
