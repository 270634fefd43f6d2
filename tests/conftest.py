"""Shared fixtures for the catalogue test-suite."""

import pytest

ARCHIVE = "https://archive.test/files/No-Intro"


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += int(minutes * 60 * 1000)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


PLATFORM_PAGE = """
<html><head><title>Index of /files/No-Intro/Nintendo - Game Boy/</title></head>
<body>
<table id="list">
  <thead><tr><th>File Name</th><th>File Size</th><th>Date</th></tr></thead>
  <tbody>
    <tr><td><a href="../">Parent directory/</a></td><td>-</td><td>-</td></tr>
    <tr><td><a href="Tetris%20(World)%20(Rev%201).zip">Tetris (World) (Rev 1).zip</a></td><td>21.1 KiB</td></tr>
    <tr><td><a href="Pokemon%20-%20Red%20Version%20(USA,%20Europe)%20(SGB%20Enhanced).zip">Pokemon - Red</a></td><td>370 KiB</td></tr>
    <tr><td><a href="Zelda%20no%20Densetsu%20(Japan).zip">Zelda no Densetsu (Japan).zip</a></td></tr>
    <tr><td><a href="Wario%20Land%20(Europe)%20(En,Fr,De).zip">Wario Land</a></td></tr>
    <tr><td><a href="Tetris%20(World)%20(Rev%201).zip">Tetris (World) (Rev 1).zip</a></td></tr>
    <tr><td><a href="Tetris (World) (Rev 1).zip">unencoded duplicate</a></td></tr>
    <tr><td><a href="readme.txt">readme.txt</a></td></tr>
  </tbody>
</table>
</body></html>
"""

ROOT_PAGE = """
<html><body>
<h1>Index of /files/No-Intro/</h1>
<a href="/files/">files</a>
<table>
  <tr><td><a href="../">Parent Directory</a></td></tr>
  <tr><td><a href="Nintendo%20-%20Game%20Boy/">Nintendo - Game Boy/</a></td></tr>
  <tr><td><a href="Sony%20-%20PlayStation%20Portable/">Sony - PlayStation Portable/</a></td></tr>
  <tr><td><a href="MAME/">MAME/</a></td></tr>
  <tr><td><a href="Nintendo%20-%20Game%20Boy/">Nintendo - Game Boy/</a></td></tr>
  <tr><td><a href="No-Intro%20Love%20Pack.zip">No-Intro Love Pack.zip</a></td></tr>
</table>
</body></html>
"""
