"""快照文件测试"""

import json
import os
from unittest.mock import patch

import pytest

from taskboard.exceptions import SnapshotError
from taskboard.models.task import Task
from taskboard.storage.snapshot import TaskSnapshot


class TestTaskSnapshotLoad:
    """测试读取快照"""

    def test_missing_file_returns_empty(self, snapshot, data_file):
        """测试文件不存在时返回空映射"""
        assert not data_file.exists()
        assert snapshot.load() == {}

    def test_load_valid_file(self, snapshot, data_file):
        """测试读取合法快照"""
        data_file.write_text(json.dumps({
            "3": {"id": 3, "title": "买菜", "description": "", "is_complete": True},
            "7": {"id": 7, "title": "跑步", "description": "5 公里", "is_complete": False},
        }), encoding="utf-8")

        tasks = snapshot.load()

        assert sorted(tasks) == [3, 7]
        assert tasks[3].title == "买菜"
        assert tasks[3].is_complete is True
        assert tasks[7].description == "5 公里"

    def test_key_wins_over_embedded_id(self, snapshot, data_file):
        """测试以映射的键作为任务 ID"""
        data_file.write_text(json.dumps({"5": {"id": 1, "title": "A"}}), encoding="utf-8")
        tasks = snapshot.load()
        assert tasks[5].id == 5

    @pytest.mark.parametrize("content", [
        "{not json",
        "[]",
        '{"abc": {"title": "A"}}',
        '{"1": "A"}',
        '{"0": {"title": "A"}}',
        '{"1": {"title": 123, "is_complete": "maybe"}}',
    ])
    def test_invalid_file_raises(self, snapshot, data_file, content):
        """测试非法快照抛出 SnapshotError"""
        data_file.write_text(content, encoding="utf-8")
        with pytest.raises(SnapshotError):
            snapshot.load()

    def test_non_utf8_file_raises(self, snapshot, data_file):
        """测试非 UTF-8 编码的快照抛出 SnapshotError"""
        data_file.write_bytes(b'{"1": {"title": "\xff\xfe"}}')
        with pytest.raises(SnapshotError):
            snapshot.load()


class TestTaskSnapshotSave:
    """测试写入快照"""

    def test_save_writes_readable_json(self, snapshot, data_file):
        """测试写入的文件是按 ID 排序的 JSON"""
        tasks = {
            2: Task(id=2, title="B"),
            1: Task(id=1, title="中文标题", is_complete=True),
        }
        snapshot.save(tasks)

        text = data_file.read_text(encoding="utf-8")
        assert "中文标题" in text
        data = json.loads(text)
        assert list(data) == ["1", "2"]
        assert data["1"] == {"id": 1, "title": "中文标题", "description": "", "is_complete": True}

    def test_save_overwrites_previous(self, snapshot):
        """测试整体重写"""
        snapshot.save({1: Task(id=1, title="A"), 2: Task(id=2, title="B")})
        snapshot.save({2: Task(id=2, title="B")})
        assert sorted(snapshot.load()) == [2]

    def test_save_creates_parent_dir(self, tmp_path):
        """测试自动创建目录"""
        snapshot = TaskSnapshot(tmp_path / "nested" / "dir" / "tasks.json")
        snapshot.save({1: Task(id=1, title="A")})
        assert snapshot.load()[1].title == "A"

    def test_save_leaves_no_temp_files(self, snapshot, tmp_path):
        """测试写入后不残留临时文件"""
        snapshot.save({1: Task(id=1, title="A")})
        assert [p.name for p in tmp_path.iterdir()] == ["tasks.json"]

    def test_failed_replace_keeps_old_file(self, snapshot, data_file, tmp_path):
        """测试替换失败时旧文件保持不变，临时文件被清理"""
        snapshot.save({1: Task(id=1, title="A")})
        original = data_file.read_text(encoding="utf-8")

        with patch("taskboard.storage.snapshot.os.replace", side_effect=OSError("只读文件系统")):
            with pytest.raises(SnapshotError):
                snapshot.save({1: Task(id=1, title="B")})

        assert data_file.read_text(encoding="utf-8") == original
        assert [p.name for p in tmp_path.iterdir()] == ["tasks.json"]

    def test_save_unencodable_text_falls_back_to_escapes(self, snapshot, data_file, tmp_path):
        """测试孤立代理项以 \\u 转义写入，可正常读回"""
        snapshot.save({1: Task(id=1, title="\ud800"), 2: Task(id=2, title="中文")})

        assert [p.name for p in tmp_path.iterdir()] == ["tasks.json"]
        assert "\\ud800" in data_file.read_text(encoding="utf-8")
        tasks = snapshot.load()
        assert tasks[1].title == "\ud800"
        assert tasks[2].title == "中文"

    def test_failed_write_cleans_temp_file(self, snapshot, tmp_path):
        """测试写入时出现 ValueError 也会清理临时文件并转为 SnapshotError"""
        with patch("taskboard.storage.snapshot.os.replace", side_effect=ValueError("写入异常")):
            with pytest.raises(SnapshotError):
                snapshot.save({1: Task(id=1, title="A")})

        assert list(tmp_path.iterdir()) == []

    def test_save_uses_atomic_replace(self, snapshot, data_file):
        """测试通过 os.replace 落盘"""
        calls = []
        original_replace = os.replace

        def tracking_replace(src, dst):
            calls.append((src, dst))
            return original_replace(src, dst)

        with patch("taskboard.storage.snapshot.os.replace", side_effect=tracking_replace):
            snapshot.save({1: Task(id=1, title="A")})

        assert len(calls) == 1
        assert calls[0][1] == data_file
