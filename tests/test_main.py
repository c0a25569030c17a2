import pytest

from data.loaders import ML100K_GENRES
from src import main as cli
from src.config import EngineConfig, default_reports, select_reports
from src.engine import pipeline
from src.errors import ConcurrencyFault


def _write(path, lines):
    path.write_text("\n".join(lines) + "\n", encoding="latin-1")


@pytest.fixture
def data_dir(tmp_path):
    root = tmp_path / "ml-100k"
    root.mkdir()
    items = []
    for movie_id, title, genres in [
        (1, "Toy Story (1995)", {"Animation", "Comedy"}),
        (2, "GoldenEye (1995)", {"Action", "Thriller"}),
        (3, "Four Rooms (1995)", {"Thriller"}),
        (4, "Get Shorty (1995)", {"Action", "Comedy", "Drama"}),
    ]:
        flags = ["1" if g in genres else "0" for g in ML100K_GENRES]
        items.append("|".join([str(movie_id), title, "01-Jan-1995", "", "http://imdb"] + flags))
    _write(root / "u.item", items)
    _write(root / "u.user", [
        "1|24|M|technician|85711",
        "2|53|F|other|94043",
        "3|16|M|student|32067",
    ])
    _write(root / "u.data", [
        "1\t1\t5\t874965758",
        "2\t1\t4\t876893171",
        "3\t2\t3\t878542960",
        "1\t3\t2\t876893119",
        "2\t4\t5\t889751712",
        "3\t4\t4\t875071561",
    ])
    return root


def test_main_writes_both_modes(tmp_path, data_dir):
    # arrange
    out = tmp_path / "out"

    # act
    code = cli.main([
        "--data-dir", str(data_dir),
        "--output-dir", str(out),
        "--mode", "both",
        "--chunk-size", "2",
        "--no-progress",
    ])

    # assert
    assert code == 0
    seq_files = sorted(p.name for p in (out / "withoutmultithreading").iterdir())
    par_files = sorted(p.name for p in (out / "withmultithreading").iterdir())
    assert len(seq_files) == 10
    assert seq_files == par_files
    for name in seq_files:
        seq = (out / "withoutmultithreading" / name).read_text(encoding="utf-8")
        par = (out / "withmultithreading" / name).read_text(encoding="utf-8")
        assert seq == par

    general = (out / "withoutmultithreading" / "Top10General.csv").read_text(encoding="utf-8")
    assert general.splitlines()[1:] == [
        '"Toy Story (1995)",4.50,2',
        '"Get Shorty (1995)",4.50,2',
        '"GoldenEye (1995)",3.00,1',
        '"Four Rooms (1995)",2.00,1',
    ]


def test_main_reads_data_dir_from_environment(tmp_path, data_dir, monkeypatch):
    # arrange
    monkeypatch.setenv("MOVIELENS_DATA_DIR", str(data_dir))
    out = tmp_path / "out"

    # act
    code = cli.main([
        "--output-dir", str(out),
        "--mode", "sequential",
        "--report", "female",
        "--output-format", "txt",
        "--no-progress",
    ])

    # assert
    assert code == 0
    lines = (out / "withoutmultithreading" / "Top10Female.txt").read_text(encoding="utf-8").splitlines()
    assert lines[0] == "Top 10 Movies (Female Viewers)"
    assert lines[2:] == ["Get Shorty (1995) :: 5.00", "Toy Story (1995) :: 4.00"]
    assert not (out / "withmultithreading").exists()


def test_main_missing_data_dir_returns_error(tmp_path, monkeypatch):
    # arrange
    monkeypatch.delenv("MOVIELENS_DATA_DIR", raising=False)

    # act / assert
    assert cli.main(["--data-dir", str(tmp_path / "missing"), "--no-progress"]) == 1
    assert cli.main(["--no-progress"]) == 1


def test_main_rejects_bad_chunk_size(data_dir, tmp_path):
    code = cli.main([
        "--data-dir", str(data_dir),
        "--output-dir", str(tmp_path / "out"),
        "--chunk-size", "0",
        "--no-progress",
    ])
    assert code == 1
    assert not (tmp_path / "out").exists()


def test_failed_parallel_run_writes_nothing(tmp_path, data_dir, monkeypatch):
    # arrange
    def broken(chunk):
        raise MemoryError("worker ran out of memory")

    monkeypatch.setattr(pipeline, "aggregate_chunk", broken)
    out = tmp_path / "out"
    config = EngineConfig(
        data_dir=data_dir,
        output_dir=out,
        chunk_size=2,
        reports=select_reports(["general"], default_reports()),
    )

    # act / assert
    with pytest.raises(ConcurrencyFault) as excinfo:
        cli.run(config, "parallel", show_progress=False)
    assert isinstance(excinfo.value.__cause__, MemoryError)
    assert not out.exists()


def test_main_adds_custom_filter_report(tmp_path, data_dir):
    # arrange
    out = tmp_path / "out"

    # act
    code = cli.main([
        "--data-dir", str(data_dir),
        "--output-dir", str(out),
        "--mode", "parallel",
        "--report", "general",
        "--filter", "genre=Thriller",
        "--no-progress",
    ])

    # assert
    assert code == 0
    assert sorted(p.name for p in (out / "withmultithreading").iterdir()) == [
        "Top10Custom.csv",
        "Top10General.csv",
    ]
    custom = (out / "withmultithreading" / "Top10Custom.csv").read_text(encoding="utf-8")
    assert custom.splitlines()[1:] == ['"GoldenEye (1995)",3.00,1', '"Four Rooms (1995)",2.00,1']


def test_main_rejects_unparsable_filter(data_dir, tmp_path):
    code = cli.main([
        "--data-dir", str(data_dir),
        "--output-dir", str(tmp_path / "out"),
        "--filter", "rating>4",
        "--no-progress",
    ])
    assert code == 1
