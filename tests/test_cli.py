import json

import pytest

from bloommarket.cli import build_parser, main
from bloommarket.config.settings import get_settings


@pytest.fixture(autouse=True)
def _offline(monkeypatch, tmp_path):
    monkeypatch.setenv("BLOOMMARKET_DATA_SOURCE", "mock")
    monkeypatch.setenv("BLOOMMARKET_CACHE_DIR", str(tmp_path / "cache"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_nearby_json_output(capsys):
    code = main(["nearby", "--lat", "12.9716", "--lon", "77.5946", "--json", "--limit", "3"])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["reference"]["latitude"] == pytest.approx(12.9716)
    assert len(payload["listings"]) == 3
    distances = [item["distanceKm"] for item in payload["listings"]]
    assert distances == sorted(distances)
    assert payload["notices"] == []


def test_nearby_text_output_for_communities(capsys):
    code = main(["nearby", "--lat", "12.9716", "--lon", "77.5946", "--kind", "communities"])

    assert code == 0
    out = capsys.readouterr().out
    assert out.startswith("Near 12.9716, 77.5946:")
    assert "Local Plant Community" in out


def test_later_run_reuses_cached_location(capsys):
    assert main(["nearby", "--lat", "51.5074", "--lon", "-0.1278"]) == 0
    capsys.readouterr()

    code = main(["nearby", "--json", "--kind", "communities"])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["reference"]["latitude"] == pytest.approx(51.5074)
    assert len(payload["communities"]) == 5


def test_no_coordinates_and_no_cache_fails(capsys):
    code = main(["nearby"])

    assert code == 1
    assert "No location available (unsupported)" in capsys.readouterr().out


@pytest.mark.parametrize(
    "argv",
    [
        ["nearby", "--lat", "1.0"],
        ["nearby", "--lon", "1.0"],
        ["nearby", "--lat", "91", "--lon", "0"],
    ],
)
def test_bad_coordinates_are_usage_errors(argv):
    with pytest.raises(SystemExit) as excinfo:
        main(argv)
    assert excinfo.value.code == 2


def test_parser_accepts_missing_coordinates():
    args = build_parser().parse_args(["nearby"])
    assert (args.lat, args.lon) == (None, None)
