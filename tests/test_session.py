"""Tests for EditSession."""

import asyncio
import json

import pytest

from jnode import session as session_module
from jnode.errors import (
    CoercionError,
    CommitError,
    CommitInProgressError,
    FormatParseError,
    FormatPrintError,
    PathError,
    SessionStateError,
)
from jnode.formats import Converter, FormatTag, print_document
from jnode.rows import Node, Row, ValueType
from jnode.session import EditSession, FileStore, MemoryStore, SessionState

CUSTOMER = {"customer": {"name": "Ann", "age": 30, "tags": ["a"]}}


def _store(document: object = CUSTOMER, fmt: FormatTag = FormatTag.JSON) -> MemoryStore:
    return MemoryStore(print_document(document, fmt), fmt)


def _session(path=("customer",), document: object = CUSTOMER, **kwargs) -> EditSession:
    store = _store(document)
    return EditSession(store, Node.at(document, path), **kwargs)


class SlowConverter(Converter):
    """Converter whose parse yields to the event loop until released."""

    def __init__(self) -> None:
        self.release = asyncio.Event()

    async def parse(self, text, fmt):
        await self.release.wait()
        return await super().parse(text, fmt)


class TestSessionState:
    """세션 상태 전이 테스트."""

    def test_initial_state_is_viewing(self):
        session = _session()
        assert session.state is SessionState.VIEWING
        assert not session.is_editing

    def test_projection_and_labels(self):
        session = _session()
        assert session.projection == [
            Row("name", "Ann", ValueType.STRING),
            Row("age", "30", ValueType.NUMBER),
        ]
        assert session.path_label == '$["customer"]'
        assert json.loads(session.display_text) == {"name": "Ann", "age": 30}

    def test_no_node_selected(self):
        session = EditSession(MemoryStore("{}"))
        assert session.path_label == "$"
        assert session.display_text == "{}"
        with pytest.raises(SessionStateError):
            session.begin_edit()

    def test_begin_edit(self):
        session = _session()
        session.begin_edit()
        assert session.state is SessionState.EDITING

    def test_begin_edit_twice_fails(self):
        session = _session()
        session.begin_edit()
        with pytest.raises(SessionStateError):
            session.begin_edit()

    def test_update_field_requires_editing(self):
        session = _session()
        with pytest.raises(SessionStateError):
            session.update_field(0, "Bob")

    def test_update_field(self):
        session = _session()
        session.begin_edit()
        session.update_field(0, "Bob")
        assert session.projection[0] == Row("name", "Bob", ValueType.STRING)

    def test_projection_is_a_copy(self):
        session = _session()
        session.projection.clear()
        assert len(session.projection) == 2

    @pytest.mark.parametrize("index", [2, -1, 100])
    def test_update_field_out_of_range(self, index):
        session = _session()
        before = session.store.get_contents()
        session.begin_edit()
        with pytest.raises(IndexError):
            session.update_field(index, "x")
        assert session.store.get_contents() == before

    def test_cancel_restores_rows(self):
        session = _session()
        original = session.projection
        session.begin_edit()
        session.update_field(0, "Bob")
        session.update_field(1, "99")
        session.cancel()
        assert session.state is SessionState.VIEWING
        assert session.projection == original

    @pytest.mark.asyncio
    async def test_cancel_after_commit_restores_committed_rows(self):
        document = {"customer": {"name": "Ann", "age": 30}}
        session = _session(document=document)
        session.begin_edit()
        session.update_field(1, "31")
        await session.commit()
        committed = session.projection

        session.begin_edit()
        session.update_field(0, "Bob")
        session.update_field(1, "99")
        session.cancel()
        assert session.projection == committed
        assert session.projection[1] == Row("age", "31", ValueType.NUMBER)

    def test_cancel_requires_editing(self):
        with pytest.raises(SessionStateError):
            _session().cancel()

    def test_select_node_resets_to_viewing(self):
        session = _session()
        session.begin_edit()
        session.update_field(0, "Bob")
        session.select_node(Node.at(CUSTOMER, ("customer", "age")))
        assert session.state is SessionState.VIEWING
        assert session.projection == [Row(None, "30", ValueType.NUMBER)]
        assert session.path_label == '$["customer"]["age"]'

    def test_close_is_terminal(self):
        session = _session()
        session.close()
        assert session.state is SessionState.CLOSED
        with pytest.raises(SessionStateError):
            session.begin_edit()
        with pytest.raises(SessionStateError):
            session.select_node(Node.at(CUSTOMER, ("customer",)))


class TestCommit:
    """Tests for commit()."""

    @pytest.mark.asyncio
    async def test_commit_preserves_number_type(self):
        document = {"customer": {"name": "Ann", "age": 30}}
        session = _session(document=document)
        session.begin_edit()
        session.update_field(1, "31")
        await session.commit()

        assert json.loads(session.store.get_contents()) == {
            "customer": {"name": "Ann", "age": 31}
        }
        assert session.state is SessionState.VIEWING
        assert session.projection[1] == Row("age", "31", ValueType.NUMBER)

    @pytest.mark.asyncio
    async def test_commit_keeps_nested_containers(self):
        session = _session()
        session.begin_edit()
        session.update_field(0, "Bob")
        await session.commit()
        assert json.loads(session.store.get_contents()) == {
            "customer": {"name": "Bob", "age": 30, "tags": ["a"]}
        }

    @pytest.mark.asyncio
    async def test_commit_scalar_node(self):
        document = {"scores": [100, 200, 300]}
        session = _session(("scores", 1), document)
        session.begin_edit()
        session.update_field(0, "250")
        await session.commit()
        assert json.loads(session.store.get_contents()) == {"scores": [100, 250, 300]}
        assert session.projection == [Row(None, "250", ValueType.NUMBER)]

    @pytest.mark.asyncio
    async def test_commit_boolean_and_null(self):
        document = {"flags": {"on": True, "note": None}}
        session = _session(("flags",), document)
        session.begin_edit()
        session.update_field(0, "false")
        session.update_field(1, "ignored")
        await session.commit()
        assert json.loads(session.store.get_contents()) == {
            "flags": {"on": False, "note": None}
        }

    @pytest.mark.asyncio
    async def test_commit_scalar_root(self):
        session = _session((), "hello")
        session.begin_edit()
        session.update_field(0, "world")
        await session.commit()
        assert session.store.get_contents() == '"world"'

    @pytest.mark.asyncio
    async def test_unchanged_commit_is_identical(self):
        session = _session(("customer", "age"))
        before = session.store.get_contents()
        session.begin_edit()
        await session.commit()
        assert session.store.get_contents() == before

    @pytest.mark.asyncio
    async def test_commit_jsonl(self):
        records = [{"id": 1, "ok": False}, {"id": 2, "ok": False}]
        store = _store(records, FormatTag.JSONL)
        session = EditSession(store, Node.at(records, (1,)))
        session.begin_edit()
        session.update_field(1, "true")
        await session.commit()
        assert store.get_contents() == '{"id": 1, "ok": false}\n{"id": 2, "ok": true}'

    @pytest.mark.asyncio
    async def test_commit_requires_editing(self):
        session = _session()
        with pytest.raises(SessionStateError):
            await session.commit()

    @pytest.mark.asyncio
    async def test_coercion_failure_is_atomic(self):
        session = _session()
        before = session.store.get_contents()
        session.begin_edit()
        session.update_field(0, "Bob")
        session.update_field(1, "abc")
        with pytest.raises(CommitError) as info:
            await session.commit()
        assert isinstance(info.value.cause, CoercionError)
        assert isinstance(info.value.__cause__, CoercionError)
        assert session.store.get_contents() == before
        assert session.state is SessionState.EDITING

    @pytest.mark.asyncio
    async def test_path_failure(self):
        session = _session()
        session.store.set_contents('{"other": 1}')
        session.begin_edit()
        with pytest.raises(CommitError) as info:
            await session.commit()
        assert isinstance(info.value.cause, PathError)
        assert session.store.get_contents() == '{"other": 1}'

    @pytest.mark.asyncio
    async def test_parse_failure(self):
        session = _session()
        session.store.set_contents("{broken")
        session.begin_edit()
        with pytest.raises(CommitError) as info:
            await session.commit()
        assert isinstance(info.value.cause, FormatParseError)
        assert session.store.get_contents() == "{broken"

    @pytest.mark.asyncio
    async def test_print_failure(self):
        class BrokenPrinter(Converter):
            async def print(self, document, fmt):
                raise FormatPrintError("unrepresentable")

        session = _session(converter=BrokenPrinter())
        before = session.store.get_contents()
        session.begin_edit()
        session.update_field(0, "Bob")
        with pytest.raises(CommitError) as info:
            await session.commit()
        assert isinstance(info.value.cause, FormatPrintError)
        assert session.store.get_contents() == before

    @pytest.mark.asyncio
    async def test_object_without_scalar_rows_is_noop(self):
        document = {"a": {"nested": {"x": 1}, "list": [1]}}
        session = _session(("a",), document)
        before = session.store.get_contents()
        session.begin_edit()
        await session.commit()
        assert session.state is SessionState.VIEWING
        assert session.store.get_contents() == before

    @pytest.mark.asyncio
    async def test_concurrent_commit_is_rejected(self):
        converter = SlowConverter()
        session = _session(converter=converter)
        session.begin_edit()
        session.update_field(0, "Bob")

        first = asyncio.create_task(session.commit())
        await asyncio.sleep(0)
        assert session.is_committing
        with pytest.raises(CommitInProgressError):
            await session.commit()
        with pytest.raises(SessionStateError):
            session.update_field(0, "Eve")

        converter.release.set()
        await first
        assert not session.is_committing
        assert json.loads(session.store.get_contents())["customer"]["name"] == "Bob"

    @pytest.mark.asyncio
    async def test_select_path(self):
        session = EditSession(_store())
        await session.select_path(("customer", "name"))
        assert session.projection == [Row(None, "Ann", ValueType.STRING)]

    @pytest.mark.asyncio
    async def test_select_missing_path(self):
        session = EditSession(_store())
        with pytest.raises(PathError):
            await session.select_path(("nobody",))


class TestFileStore:
    """파일 저장소 테스트."""

    def test_format_from_extension(self, tmp_path):
        assert FileStore(tmp_path / "a.jsonl").get_format() is FormatTag.JSONL
        assert FileStore(tmp_path / "a.json").get_format() is FormatTag.JSON
        assert FileStore(tmp_path / "a.txt", FormatTag.JSONL).get_format() is FormatTag.JSONL

    @pytest.mark.asyncio
    async def test_commit_writes_file(self, tmp_path):
        target = tmp_path / "doc.json"
        target.write_text('{"customer": {"name": "Ann", "age": 30}}', encoding="utf-8")
        session = EditSession(FileStore(target))
        await session.select_path(("customer",))
        session.begin_edit()
        session.update_field(1, "31")
        await session.commit()

        assert json.loads(target.read_text(encoding="utf-8")) == {
            "customer": {"name": "Ann", "age": 31}
        }
        assert not (tmp_path / "doc.json.tmp").exists()

    @pytest.mark.asyncio
    async def test_write_failure_is_commit_error(self, tmp_path):
        class ReadOnlyStore(MemoryStore):
            def set_contents(self, contents):
                raise PermissionError("read-only")

        store = ReadOnlyStore('{"a": 1}')
        session = EditSession(store, Node.at({"a": 1}, ()))
        session.begin_edit()
        session.update_field(0, "2")
        with pytest.raises(CommitError) as info:
            await session.commit()
        assert isinstance(info.value.cause, PermissionError)
        assert store.get_contents() == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_invalid_utf8_is_commit_error(self, tmp_path):
        target = tmp_path / "doc.json"
        target.write_bytes(b'{"a": 1}')
        session = EditSession(FileStore(target))
        await session.select_path(())
        target.write_bytes(b'{"a": "\xff"}')
        session.begin_edit()
        session.update_field(0, "2")
        with pytest.raises(CommitError) as info:
            await session.commit()
        assert isinstance(info.value.cause, FormatParseError)
        assert target.read_bytes() == b'{"a": "\xff"}'

    @pytest.mark.asyncio
    async def test_select_invalid_utf8(self, tmp_path):
        target = tmp_path / "doc.json"
        target.write_bytes(b'{"a": "\xff"}')
        session = EditSession(FileStore(target))
        with pytest.raises(FormatParseError):
            await session.select_path(())

    def test_failed_replace_removes_temp_file(self, tmp_path, monkeypatch):
        target = tmp_path / "doc.json"
        target.write_text("{}", encoding="utf-8")

        def fail_replace(src, dst):
            raise PermissionError("locked")

        monkeypatch.setattr(session_module.os, "replace", fail_replace)
        with pytest.raises(PermissionError):
            FileStore(target).set_contents('{"a": 1}')
        assert target.read_text(encoding="utf-8") == "{}"
        assert not (tmp_path / "doc.json.tmp").exists()

    def test_unencodable_text_is_print_error(self, tmp_path):
        target = tmp_path / "doc.json"
        target.write_text("{}", encoding="utf-8")
        with pytest.raises(FormatPrintError):
            FileStore(target).set_contents('"\ud800"')
        assert target.read_text(encoding="utf-8") == "{}"
        assert not (tmp_path / "doc.json.tmp").exists()
