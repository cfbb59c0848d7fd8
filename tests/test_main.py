from conftest import make_plot, square_geoshape, square_ring
from plot_guard import main as cli
from plot_guard.storage import SQLiteStore

SHAPE = square_geoshape(38.7, 9.0, 0.001)


def test_validate_valid_shape(capsys):
    assert cli.main(["validate", SHAPE]) == 0
    assert "VALID" in capsys.readouterr().out


def test_validate_bowtie_fails(capsys):
    code = cli.main(
        ["validate", "POLYGON((0 0,100 100,100 0,0 100,0 0))", "--min-area", "0"]
    )
    assert code == 1
    assert "self_intersecting" in capsys.readouterr().out


def test_validate_checks_overlaps_in_database(tmp_path, capsys):
    db = str(tmp_path / "plots.sqlite3")
    store = SQLiteStore(db)
    store.upsert_plot(make_plot(square_ring(38.7, 9.0, 0.001), "p1", plot_name="Almaz"))
    store.close()

    assert cli.main(["validate", SHAPE, "--db", db]) == 1
    out = capsys.readouterr().out
    assert "overlap_detected" in out
    assert "Almaz" in out

    assert cli.main(["validate", SHAPE, "--db", db, "--threshold", "101"]) == 0


def test_unusable_database_exits_with_2(tmp_path):
    missing = str(tmp_path / "no-such-dir" / "plots.sqlite3")
    assert cli.main(["validate", SHAPE, "--db", missing]) == 2


def test_sync_prints_counts_per_form(tmp_path, monkeypatch, capsys):
    class FakeAPI:
        def iter_pages(self, form_id, *, since_ms=None):
            if form_id == "broken":
                raise RuntimeError("server unreachable")
            yield [{"_uuid": "u1", "_id": 1, "_submission_time": "2024-01-05T08:00:00"}]

    monkeypatch.setattr(cli, "SubmissionsAPI", FakeAPI)
    db = str(tmp_path / "plots.sqlite3")

    code = cli.main(
        ["sync", "good", "broken", "--db", db, "--extraction-config", str(tmp_path / "x.json")]
    )
    out = capsys.readouterr().out
    assert code == 1
    assert "good: fetched 1 submissions" in out
    assert "broken: FAILED (server unreachable)" in out

    store = SQLiteStore(db)
    try:
        assert store.get_watermark("good") is not None
    finally:
        store.close()
