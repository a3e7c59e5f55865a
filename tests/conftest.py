import os
import subprocess

import pytest

from evmap import tiles


class FakeTippecanoe:
    """
    Stand-in for the tippecanoe binary.

    Records every command line and its keyword arguments. By default it
    writes a small archive at the -o path; `returncode`, `stderr` and
    `write_output` switch it to failing or silently producing nothing.
    """

    def __init__(self, returncode=0, write_output=True, stderr=""):
        self.returncode = returncode
        self.write_output = write_output
        self.stderr = stderr
        self.calls = []
        self.kwargs = []
        self.input_existed = None

    def __call__(self, cmd, **kwargs):
        self.calls.append(list(cmd))
        self.kwargs.append(kwargs)
        self.input_existed = os.path.exists(cmd[-1])
        if self.write_output and self.returncode == 0:
            out = cmd[cmd.index("-o") + 1]
            with open(out, "wb") as f:
                f.write(b"PMTiles" + b"\0" * 1024)
        return subprocess.CompletedProcess(cmd, self.returncode, stdout="", stderr=self.stderr)

    def layer_names(self):
        return [c[c.index("-l") + 1] for c in self.calls]


@pytest.fixture
def fake_tippecanoe(monkeypatch):
    fake = FakeTippecanoe()
    monkeypatch.setattr(tiles.subprocess, "run", fake)
    return fake


@pytest.fixture
def pmtiles_dir(tmp_path):
    d = tmp_path / "pmtiles"
    os.makedirs(d)
    return d
