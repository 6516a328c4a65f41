# tests/unit/test_main.py — v2
"""Tests for main.py — CLI entry point."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

import pytest

from manuscript_pipeline.main import (
    _build_parser,
    _cmd_dead_letters,
    _cmd_regenerate,
    _cmd_upload,
    main,
)


# ---------------------------------------------------------------------------
# Parser tests
# ---------------------------------------------------------------------------

class TestBuildParser:
    def test_version_flag(self):
        parser = _build_parser()
        with pytest.raises(SystemExit) as exc_info:
            parser.parse_args(["--version"])
        assert exc_info.value.code == 0

    def test_worker_subcommand(self):
        args = _build_parser().parse_args(["worker", "--queue", "assets", "--once"])
        assert args.command == "worker"
        assert args.queue == ["assets"]
        assert args.once is True

    def test_worker_rejects_unknown_queue(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["worker", "--queue", "audiobook"])

    def test_upload_subcommand(self):
        args = _build_parser().parse_args(["upload", "novel.docx", "--user", "u1", "--genre", "romance"])
        assert args.file == Path("novel.docx")
        assert args.user == "u1"
        assert args.file_type is None
        assert args.genre == "romance"

    def test_regenerate_kinds(self):
        args = _build_parser().parse_args(["regenerate", "u1", "m1", "--kinds", "keywords,categories"])
        assert args.kinds == "keywords,categories"

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "manuscript-pipeline" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Command tests
# ---------------------------------------------------------------------------

class TestCommands:
    @pytest.mark.asyncio
    async def test_upload_uses_extension_as_type(self, container, service, tmp_path, manuscript_text, capsys):
        path = tmp_path / "The Storm.txt"
        path.write_bytes(manuscript_text)
        args = argparse.Namespace(file=path, user="user-1", file_type=None, title=None, genre=None)

        assert await _cmd_upload(args, container, service) == 0

        printed = json.loads(capsys.readouterr().out)
        assert printed["status"] == "queued"
        manuscript = await container.manuscripts.get(printed["manuscript_id"])
        assert manuscript.title == "The Storm"

    @pytest.mark.asyncio
    async def test_upload_missing_file(self, container, service, tmp_path):
        args = argparse.Namespace(file=tmp_path / "nope.txt", user="user-1", file_type=None, title=None, genre=None)
        assert await _cmd_upload(args, container, service) == 1

    @pytest.mark.asyncio
    async def test_regenerate_splits_kinds(self, container, service, manuscript_text, capsys):
        upload = await service.upload("user-1", manuscript_text, "txt", "storm.txt")
        await container.worker.drain("analysis")
        capsys.readouterr()

        args = argparse.Namespace(user="user-1", manuscript=upload.manuscript_id, kinds="keywords, categories")
        assert await _cmd_regenerate(args, container, service) == 0

        ticket = json.loads(capsys.readouterr().out)
        job = await container.jobs.get(ticket["reportId"])
        assert job.kinds == ["keywords", "categories"]

    @pytest.mark.asyncio
    async def test_dead_letters_empty(self, container, service, capsys):
        args = argparse.Namespace(queue=None)
        assert await _cmd_dead_letters(args, container, service) == 0
        out = capsys.readouterr().out
        assert "analysis: 0 dead-lettered" in out
        assert "assets: 0 dead-lettered" in out
