"""
Utils module unit tests
"""

import pytest

from utils import atomic_write_text, backup_corrupt_file, sanitize_filename


class TestAtomicWriteText:
    """Test atomic_write_text function"""

    def test_write_text(self, tmp_path):
        file_path = tmp_path / "state.json"
        atomic_write_text(file_path, "内容")
        assert file_path.read_text(encoding="utf-8") == "内容"

    def test_creates_directory(self, tmp_path):
        file_path = tmp_path / "nested" / "dir" / "state.json"
        atomic_write_text(file_path, "{}")
        assert file_path.exists()

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        file_path = tmp_path / "state.json"
        atomic_write_text(file_path, "old")
        atomic_write_text(file_path, "new")
        assert file_path.read_text(encoding="utf-8") == "new"
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    def test_backup(self, tmp_path):
        file_path = tmp_path / "state.json"
        atomic_write_text(file_path, "old")
        atomic_write_text(file_path, "new", backup=True)
        assert len(list(tmp_path.glob("state.*.bak"))) == 1


class TestBackupCorruptFile:
    def test_missing_file(self, tmp_path):
        assert backup_corrupt_file(tmp_path / "missing.json") is None

    def test_copy_kept(self, tmp_path):
        file_path = tmp_path / "state.json"
        file_path.write_text("{broken", encoding="utf-8")
        backup = backup_corrupt_file(file_path)
        assert backup.read_text(encoding="utf-8") == "{broken"
        assert file_path.exists()


class TestSanitizeFilename:
    @pytest.mark.parametrize("raw, expected", [
        ("作品_大纲.txt", "作品_大纲.txt"),
        ("a/b\\c.txt", "a_b_c.txt"),
        ("a:b.txt", "a_b.txt"),
        ("  ..  ", "untitled"),
    ])
    def test_sanitize(self, raw, expected):
        assert sanitize_filename(raw) == expected
