import pytest

from src.config import EngineConfig, default_reports
from src.reports.generator import ReportGenerator


@pytest.fixture
def generator(tmp_path, sample_ratings, catalog):
    config = EngineConfig(data_dir=tmp_path, output_dir=tmp_path / "out", chunk_size=3)
    return ReportGenerator(sample_ratings, catalog, config)


def test_run_builds_every_report(generator):
    # act
    run = generator.run(parallel=False)

    # assert
    assert [r.name for r in run.reports] == [r.name for r in default_reports()]
    assert run.mode == "sequential"
    assert run.folder_name == "withoutmultithreading"
    assert run.elapsed >= 0.0


def test_report_rows_over_sample(generator):
    # act
    reports = generator.run(parallel=True).by_name()

    # assert
    assert reports["general"].rendered_rows()[:3] == [
        ("Willow (1988)", "5.00", 1),
        ("Unknown", "5.00", 1),
        ("Clueless (1995)", "4.50", 2),
    ]
    assert reports["female"].rendered_rows() == [
        ("Willow (1988)", "5.00", 1),
        ("Clueless (1995)", "4.50", 2),
        ("Toy Story (1995)", "4.00", 1),
    ]
    assert reports["age_above_30"].rendered_rows() == [
        ("Heat (1995)", "4.00", 1),
        ("Casino (1995)", "2.00", 1),
    ]
    assert reports["drama"].n_ratings == 1
    assert reports["comedy"].n_ratings == 5


def test_sequential_and_parallel_render_identically(generator):
    # act
    seq = generator.run(parallel=False)
    par = generator.run(parallel=True)

    # assert
    for a, b in zip(seq.reports, par.reports):
        assert a.rendered_rows() == b.rendered_rows()
