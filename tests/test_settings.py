"""Unit tests for settings persistence."""

import json
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from navim.settings import (
    ViewerSettings, config_dir, load_settings, save_settings, settings_file, validate_setting,
)


class TestSettingsPersistence(unittest.TestCase):
    """Test settings persistence functionality."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.path = settings_file(Path(self.temp_dir))

    def tearDown(self):
        """Clean up test fixtures."""
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def test_defaults_when_missing(self):
        """Test loading when no settings file exists."""
        self.assertEqual(load_settings(self.path), ViewerSettings())

    def test_save_and_load_settings(self):
        """Test saving and loading settings."""
        settings = ViewerSettings(width=72, image_columns=30, max_images=0, scrolloff=5,
                                  wrap_links=True, invert_images=True)
        self.assertTrue(save_settings(settings, self.path))
        self.assertEqual(load_settings(self.path), settings)

    def test_atomic_write_leaves_no_temp_file(self):
        save_settings(ViewerSettings(), self.path)
        self.assertTrue(self.path.exists())
        self.assertFalse(self.path.with_suffix('.tmp').exists())

    def test_save_creates_directory(self):
        path = Path(self.temp_dir) / "nested" / "config.json"
        self.assertTrue(save_settings(ViewerSettings(), path))
        self.assertTrue(path.exists())

    def test_partial_file_uses_defaults(self):
        self.path.write_text(json.dumps({"width": 60}), encoding='utf-8')
        settings = load_settings(self.path)
        self.assertEqual(settings.width, 60)
        self.assertEqual(settings.max_images, ViewerSettings().max_images)

    def test_invalid_values_ignored(self):
        self.path.write_text(json.dumps({
            "width": 5, "scrolloff": "3", "wrap_links": 1, "max_images": True, "unknown": 1,
        }), encoding='utf-8')
        with self.assertLogs('navim.settings', level='WARNING'):
            settings = load_settings(self.path)
        self.assertEqual(settings, ViewerSettings())

    def test_corrupted_file(self):
        """Test loading from a corrupted settings file."""
        self.path.write_text("{ invalid json", encoding='utf-8')
        with self.assertLogs('navim.settings', level='WARNING'):
            settings = load_settings(self.path)
        self.assertEqual(settings, ViewerSettings())

    def test_non_dict_file(self):
        self.path.write_text("[1, 2]", encoding='utf-8')
        self.assertEqual(load_settings(self.path), ViewerSettings())

    def test_save_failure_returns_false(self):
        with patch('builtins.open', side_effect=PermissionError("denied")):
            self.assertFalse(save_settings(ViewerSettings(), self.path))
        self.assertFalse(self.path.with_suffix('.tmp').exists())


class TestValidateSetting(unittest.TestCase):

    def test_ranges(self):
        self.assertTrue(validate_setting('width', 20))
        self.assertTrue(validate_setting('width', 400))
        self.assertFalse(validate_setting('width', 19))
        self.assertFalse(validate_setting('width', 401))
        self.assertTrue(validate_setting('max_images', 0))
        self.assertFalse(validate_setting('scrolloff', -1))

    def test_types(self):
        self.assertFalse(validate_setting('width', 80.0))
        self.assertFalse(validate_setting('width', True))
        self.assertTrue(validate_setting('wrap_links', False))
        self.assertFalse(validate_setting('wrap_links', "yes"))

    def test_unknown_key(self):
        self.assertFalse(validate_setting('colour', 'red'))


def test_config_dir_uses_platformdirs():
    with patch('navim.settings.platformdirs.user_config_dir', return_value='/tmp/navim-test') as mock_dir:
        assert config_dir() == Path('/tmp/navim-test')
        mock_dir.assert_called_once_with('navim')
