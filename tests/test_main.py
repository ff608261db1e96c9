"""Test command-line parsing and the entry point."""

import json
from unittest.mock import patch

import pytest

from navim.__main__ import UsageError, main, parse_args
from navim.history import History
from navim.loader import LoadResult
from navim.markup import from_html
from navim.settings import ViewerSettings


def test_parse_target_and_options():
    options = parse_args(["--width", "72", "--log", "navim.log", "page.html"])
    assert options == {'width': 72, 'log': "navim.log", 'target': "page.html", 'mode': 'view',
                       'save': False}


def test_parse_save_without_target():
    options = parse_args(["--width", "72", "--save"])
    assert options['save']
    assert options['target'] is None


@pytest.mark.parametrize("args,mode", [
    (["--version"], 'version'),
    (["-V"], 'version'),
    (["--history"], 'history'),
    (["--clear-history"], 'clear-history'),
    (["--keytest"], 'keytest'),
    (["--help"], 'help'),
])
def test_parse_modes(args, mode):
    assert parse_args(args)['mode'] == mode


@pytest.mark.parametrize("args", [
    [],
    ["--width"],
    ["--width", "wide", "page.html"],
    ["--colour", "page.html"],
    ["a.html", "b.html"],
])
def test_parse_errors(args):
    with pytest.raises(UsageError):
        parse_args(args)


def test_main_version(capsys):
    assert main(["--version"]) == 0
    assert capsys.readouterr().out.startswith("navim ")


def test_main_usage_error(capsys):
    assert main([]) == 2
    err = capsys.readouterr().err
    assert "no TARGET given" in err
    assert "usage:" in err


def test_main_rejects_out_of_range_width(capsys):
    with patch('navim.settings.load_settings', return_value=ViewerSettings()):
        assert main(["--width", "5", "page.html"]) == 2
    assert "--width must be between" in capsys.readouterr().err


def test_main_opens_target():
    with patch('navim.settings.load_settings', return_value=ViewerSettings()), \
            patch('navim.history.History'), \
            patch('navim.viewer.Viewer') as mock_viewer:
        assert main(["--width", "60", "page.html"]) == 0
    settings = mock_viewer.call_args[0][0]
    assert settings.width == 60
    viewer = mock_viewer.return_value
    viewer.open.assert_called_once_with("page.html")
    viewer.run.assert_called_once()


def test_main_empty_history(capsys):
    with patch('navim.settings.load_settings', return_value=ViewerSettings()), \
            patch('navim.history.History') as mock_history, \
            patch('navim.viewer.Viewer') as mock_viewer:
        mock_history.return_value.entries.return_value = []
        assert main(["--history"]) == 0
    assert "No history yet" in capsys.readouterr().out
    mock_viewer.return_value.run.assert_not_called()


def test_main_waits_for_first_page():
    with patch('navim.settings.load_settings', return_value=ViewerSettings()), \
            patch('navim.history.History'), \
            patch('navim.viewer.Viewer') as mock_viewer:
        viewer = mock_viewer.return_value
        result = LoadResult(1, "page.html", "file:///site/page.html", from_html("<p>x</p>"))
        viewer.loader.wait.return_value = result
        assert main(["page.html"]) == 0
    viewer.handle_load_result.assert_called_once_with(result)
    viewer.run.assert_called_once()


def test_main_unreadable_target(capsys):
    with patch('navim.settings.load_settings', return_value=ViewerSettings()), \
            patch('navim.history.History'), \
            patch('navim.viewer.Viewer') as mock_viewer:
        viewer = mock_viewer.return_value
        viewer.loader.wait.return_value = LoadResult(1, "missing.html", error="Could not read missing.html")
        assert main(["missing.html"]) == 1
    assert "Could not read missing.html" in capsys.readouterr().err
    viewer.handle_load_result.assert_not_called()
    viewer.run.assert_not_called()


def test_main_clear_history(tmp_path, capsys):
    history = History(tmp_path / "history.json")
    history.add("Page", "file:///p.html")
    with patch('navim.history.History', return_value=history), \
            patch('navim.viewer.Viewer') as mock_viewer:
        assert main(["--clear-history"]) == 0
    assert "History cleared" in capsys.readouterr().out
    assert History(tmp_path / "history.json").entries() == []
    mock_viewer.assert_not_called()


def test_main_saves_width(tmp_path, capsys):
    path = tmp_path / "config.json"
    with patch('navim.settings.settings_file', return_value=path), \
            patch('navim.settings.load_settings', return_value=ViewerSettings()), \
            patch('navim.history.History'), \
            patch('navim.viewer.Viewer') as mock_viewer:
        assert main(["--width", "72", "--save"]) == 0
    assert json.loads(path.read_text(encoding="utf-8"))['width'] == 72
    assert str(path) in capsys.readouterr().out
    mock_viewer.assert_not_called()


def test_main_save_then_view(tmp_path):
    path = tmp_path / "config.json"
    with patch('navim.settings.settings_file', return_value=path), \
            patch('navim.settings.load_settings', return_value=ViewerSettings()), \
            patch('navim.history.History'), \
            patch('navim.viewer.Viewer') as mock_viewer:
        assert main(["--width", "72", "--save", "page.html"]) == 0
    assert json.loads(path.read_text(encoding="utf-8"))['width'] == 72
    mock_viewer.return_value.run.assert_called_once()
