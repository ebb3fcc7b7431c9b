"""Tests for the command line interface."""

import hashlib
import json

from typer.testing import CliRunner

from dupectl import __version__
from dupectl.cli import app
from dupectl.core.cache import CacheStore
from dupectl.utils import config as config_module
from tests.conftest import write_file

runner = CliRunner()


def find_json(*args: str) -> dict:
    result = runner.invoke(app, ["dupes", "find", "--json", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_version():
    """Test --version prints the package version."""
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_find_reports_duplicates(abc_files, temp_dir, cache_path):
    """Test dupes find --json lists the duplicate group with its digests."""
    a, b, c = abc_files

    report = find_json(str(temp_dir), "--cache", str(cache_path), "-a", "sha256", "-a", "md5")

    assert report["algorithms"] == ["sha256", "md5"]
    (group,) = report["groups"]
    assert group["files"] == [str(a.resolve()), str(b.resolve())]
    assert group["digests"]["sha256"] == hashlib.sha256(a.read_bytes()).hexdigest()
    assert group["reclaimable"] == a.stat().st_size
    assert report["stats"]["files"] == 3
    assert report["skipped"] == []


def test_find_uses_cache_on_second_run(abc_files, temp_dir, cache_path):
    """A second find over unchanged files hashes nothing."""
    first = find_json(str(temp_dir), "--cache", str(cache_path))
    second = find_json(str(temp_dir), "--cache", str(cache_path))

    assert first["stats"]["hashed"] == 3
    assert second["stats"]["hashed"] == 0
    assert second["stats"]["cached"] == 3
    assert second["groups"] == first["groups"]


def test_find_no_cache_leaves_no_database(abc_files, temp_dir, cache_path):
    """--no-cache never creates the cache file."""
    find_json(str(temp_dir), "--cache", str(cache_path), "--no-cache")

    assert not cache_path.exists()


def test_find_primary_match(abc_files, temp_dir):
    """--match primary groups on the primary algorithm only."""
    report = find_json(str(temp_dir), "--no-cache", "-a", "sha256", "-a", "md5", "--match", "primary", "--primary", "md5")

    assert list(report["groups"][0]["digests"]) == ["md5"]


def test_find_no_duplicates(temp_dir, cache_path):
    """Distinct files report that no duplicates were found."""
    write_file(temp_dir / "one.txt", b"one")
    write_file(temp_dir / "two.txt", b"two")

    result = runner.invoke(app, ["dupes", "find", str(temp_dir), "--cache", str(cache_path)])

    assert result.exit_code == 0
    assert "No duplicates found!" in result.output


def test_find_table_output(abc_files, temp_dir, cache_path):
    """The table report lists groups and the skipped count."""
    result = runner.invoke(app, ["dupes", "find", str(temp_dir), "--cache", str(cache_path)])

    assert result.exit_code == 0
    assert "Group 1:" in result.output
    assert "Skipped due to errors" in result.output


def test_find_missing_path(temp_dir, cache_path):
    """A missing scan root exits with status 1."""
    result = runner.invoke(app, ["dupes", "find", str(temp_dir / "missing"), "--cache", str(cache_path)])

    assert result.exit_code == 1


def test_find_unknown_algorithm(temp_dir):
    """An unknown algorithm is a usage error."""
    result = runner.invoke(app, ["dupes", "find", str(temp_dir), "--no-cache", "-a", "crc99"])

    assert result.exit_code == 2


def test_find_bad_match_mode(temp_dir):
    """An unknown match mode is a usage error."""
    result = runner.invoke(app, ["dupes", "find", str(temp_dir), "--no-cache", "--match", "some"])

    assert result.exit_code == 2


def test_find_with_corrupt_cache_falls_back(abc_files, temp_dir, cache_path):
    """An unusable cache file is reported and the scan still runs."""
    write_file(cache_path, b"not a database" * 200)

    result = runner.invoke(app, ["dupes", "find", str(temp_dir), "--cache", str(cache_path)])

    assert result.exit_code == 0
    assert "Cache unavailable" in result.output


def test_compare(temp_dir):
    """Test dupes compare reports same and different pairs without deleting."""
    write_file(temp_dir / "master" / "x.txt", b"same")
    write_file(temp_dir / "shrink" / "x.txt", b"same")
    write_file(temp_dir / "master" / "y.txt", b"left")
    write_file(temp_dir / "shrink" / "y.txt", b"right")

    result = runner.invoke(app, ["dupes", "compare", str(temp_dir / "master"), str(temp_dir / "shrink"), "--no-cache"])

    assert result.exit_code == 0
    assert "Same: 1" in result.output
    assert "Different: 1" in result.output
    assert (temp_dir / "shrink" / "x.txt").exists()


def test_compare_same_directory(temp_dir):
    """Comparing a directory with itself is rejected."""
    result = runner.invoke(app, ["dupes", "compare", str(temp_dir), str(temp_dir), "--no-cache"])

    assert result.exit_code == 1


def test_hash_files_json(temp_dir):
    """Test hash files --json prints per-file digests."""
    path = write_file(temp_dir / "file.txt", b"Test content")

    result = runner.invoke(app, ["hash", "files", str(path), "--json", "-a", "sha256"])

    assert result.exit_code == 0, result.output
    (entry,) = json.loads(result.stdout)
    assert entry["path"] == str(path)
    assert entry["digests"] == {"sha256": hashlib.sha256(b"Test content").hexdigest()}


def test_hash_files_missing(temp_dir):
    """Hashing a missing path exits with status 1."""
    result = runner.invoke(app, ["hash", "files", str(temp_dir / "missing")])

    assert result.exit_code == 1


def test_hash_algorithms():
    """Test hash algorithms lists the registered names."""
    result = runner.invoke(app, ["hash", "algorithms"])

    assert result.exit_code == 0
    for name in ("sha256", "blake2b", "blake3", "xxh64"):
        assert name in result.output


def test_cache_path_option(cache_path):
    """Test cache path honours --cache."""
    result = runner.invoke(app, ["cache", "path", "--cache", str(cache_path)])

    assert result.exit_code == 0
    assert cache_path.name in result.output


def test_cache_info(abc_files, temp_dir, cache_path):
    """Test cache info shows row and digest counts."""
    find_json(str(temp_dir), "--cache", str(cache_path), "-a", "sha256")

    result = runner.invoke(app, ["cache", "info", "--cache", str(cache_path)])

    assert result.exit_code == 0
    assert "Files:" in result.output
    assert "sha256: 3" in result.output


def test_cache_info_missing(cache_path):
    """Test cache info on a missing database says so and exits cleanly."""
    result = runner.invoke(app, ["cache", "info", "--cache", str(cache_path)])

    assert result.exit_code == 0
    assert "does not exist" in result.output


def test_cache_forget(abc_files, temp_dir, cache_path):
    """Test cache forget removes everything under a scanned directory."""
    find_json(str(temp_dir), "--cache", str(cache_path))

    result = runner.invoke(app, ["cache", "forget", str(temp_dir), "--cache", str(cache_path)])

    assert result.exit_code == 0
    assert "Removed 3" in result.output
    with CacheStore(cache_path) as store:
        assert store.stats()["rows"] == 0


def test_cache_forget_keeps_sibling_directory(temp_dir, cache_path):
    """Only the named directory is forgotten, not siblings sharing its prefix."""
    write_file(temp_dir / "photos" / "a.jpg", b"one")
    write_file(temp_dir / "photos-backup" / "a.jpg", b"one")
    find_json(str(temp_dir), "--cache", str(cache_path))

    result = runner.invoke(app, ["cache", "forget", str(temp_dir / "photos"), "--cache", str(cache_path)])

    assert result.exit_code == 0
    assert "Removed 1" in result.output


def test_config_init_and_show(isolated_config):
    """Test config init writes a file that config show prints."""
    result = runner.invoke(app, ["config", "init"])

    assert result.exit_code == 0
    assert isolated_config.config_file.exists()

    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 0
    assert "[engine]" in result.output

    result = runner.invoke(app, ["config", "init"])
    assert "already exists" in result.output


def test_config_show_without_file():
    """Test config show without a config file."""
    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    assert "does not exist" in result.output


def test_config_path(isolated_config):
    """Test config path prints the config file location."""
    result = runner.invoke(app, ["config", "path"])

    assert result.exit_code == 0
    assert "config.toml" in result.output


def test_config_show_reports_broken_file(tmp_path, monkeypatch):
    """Test config show names the parse error and lists the defaults in effect."""
    config_dir = tmp_path / "broken"
    config_dir.mkdir()
    (config_dir / "config.toml").write_text("[engine\nworkers = ")
    monkeypatch.setattr(config_module, "_config", config_module.Config(config_dir=config_dir))

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    assert "could not be loaded" in result.output
    assert "Effective settings" in result.output
    assert "match = 'all'" in result.output
