import json
from contextlib import asynccontextmanager

import pytest

from maintenance_hub import check_batches
from maintenance_hub.settings import load_settings

CLEAN = {
    "inventory_products": [{"id": 1}, {"id": 2}],
    "inventory_batches": [
        {"id": "a", "product_id": 1, "batch_number": "B1"},
        {"id": "b", "product_id": 2, "batch_number": "B2"},
    ],
}

DIRTY = {
    "inventory_products": [{"id": 1}],
    "inventory_batches": [
        {"id": "a", "product_id": 1, "batch_number": "B1"},
        {"id": "b", "product_id": 1, "batch_number": "B1"},
        {"id": "c", "product_id": 9, "batch_number": "B2"},
    ],
}


@pytest.fixture
def settings(clean_env, tmp_path):
    s = load_settings(env_files=[])
    s.DATA_ROOT = tmp_path / "data"
    return s


@pytest.fixture
def use_tables(monkeypatch, fake_source):
    def _use(tables, **kw):
        src = fake_source(tables, **kw)

        @asynccontextmanager
        async def _open(settings, kind=None):
            yield src

        monkeypatch.setattr(check_batches, "open_source", _open)
        return src
    return _use


def test_clean_data_exits_0(settings, use_tables, capsys):
    use_tables(CLEAN)
    assert check_batches.main([], settings=settings) == 0
    out = capsys.readouterr().out
    assert "=== Batch Integrity Check ===" in out
    assert "No duplicates or orphan batches found." in out


def test_issues_exit_2(settings, use_tables, capsys):
    use_tables(DIRTY)
    assert check_batches.main([], settings=settings) == 2
    out = capsys.readouterr().out
    assert "batch_number='B1' -> 2" in out
    assert "Orphan batches (no parent product): 1" in out


def test_fetch_failure_exits_1(settings, use_tables, capsys):
    use_tables(DIRTY, fail_on="inventory_batches")
    assert check_batches.main([], settings=settings) == 1
    captured = capsys.readouterr()
    assert "Check failed:" in captured.err
    assert "inventory_batches" in captured.err
    assert "=== Batch Integrity Check ===" not in captured.out


def test_missing_credentials_exit_1(settings, capsys):
    assert check_batches.main(["--source", "rest"], settings=settings) == 1
    err = capsys.readouterr().err
    assert "Missing VITE_SUPABASE_URL or VITE_SUPABASE_ANON_KEY" in err


def test_json_output(settings, use_tables, capsys):
    use_tables(DIRTY)
    assert check_batches.main(["--json"], settings=settings) == 2
    payload = json.loads(capsys.readouterr().out)
    assert payload["totals"] == {"products": 1, "batches": 3}
    assert payload["duplicates"]["by_batch_number"] == [{"batch_number": "B1", "count": 2}]
    assert payload["orphans_count"] == 1
    assert payload["has_issues"] is True


def test_page_size_setting_is_used(settings, use_tables):
    settings.CHECK_PAGE_SIZE = 1
    src = use_tables(CLEAN)
    check_batches.main([], settings=settings)
    batch_calls = [c for c in src.calls if c[0] == "inventory_batches"]
    assert batch_calls[0] == ("inventory_batches", 0, 0)
    assert len(batch_calls) == 2


def test_print_limit_setting(settings, use_tables, capsys):
    settings.CHECK_PRINT_LIMIT = 1
    use_tables({
        "inventory_products": [],
        "inventory_batches": [{"id": i, "product_id": None, "batch_number": f"N{i}"} for i in range(3)],
    })
    assert check_batches.main([], settings=settings) == 2
    out = capsys.readouterr().out
    assert out.count("  batch id=") == 1
    assert "  ..." in out
