"""
Tests for the command line interface.
"""

import json
import pytest

from jobmatch import __version__
from jobmatch.app import main


@pytest.fixture
def cli(tmp_path, monkeypatch, capsys):
    """Run the CLI against a temporary database and return parsed stdout."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("JOBMATCH_DB_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setenv("JOBMATCH_LOG_FILE", "false")

    def run(*argv, parse=True):
        main(list(argv))
        out = capsys.readouterr().out
        return json.loads(out) if parse else out

    return run


@pytest.fixture
def payload_files(tmp_path, job_payload, profile_payload):
    job = tmp_path / "job.json"
    job.write_text(json.dumps(job_payload))
    profile = tmp_path / "profile.json"
    profile.write_text(json.dumps(profile_payload))
    return job, profile


class TestBasics:
    """Test version, help and database setup."""

    def test_version(self, cli):
        assert cli("--version", parse=False).strip() == __version__

    def test_init_db(self, cli, tmp_path):
        result = cli("init-db")

        assert result["status"] == "initialized"
        assert (tmp_path / "cli.db").exists()

    def test_db_flag_overrides_environment(self, cli, tmp_path):
        cli("--db", str(tmp_path / "other.db"), "init-db")

        assert (tmp_path / "other.db").exists()


class TestCatalogCommands:
    """Test skill catalog commands."""

    def test_resolve(self, cli):
        result = cli("resolve", "Python", "python", "--category", "PROGRAMMING_LANGUAGE")

        assert [s["name"] for s in result] == ["Python", "Python"]
        assert result[0]["id"] == result[1]["id"]
        assert result[0]["category"] == "PROGRAMMING_LANGUAGE"

    def test_suggest(self, cli):
        cli("resolve", "Python", "PyTorch", "Java")

        result = cli("suggest", "py", "--limit", "5")

        assert [s["name"] for s in result] == ["Python", "PyTorch"]

    def test_alias_and_skills(self, cli):
        [react] = cli("resolve", "React")

        created = cli("alias", "--skill-id", str(react["id"]), "--alias", "ReactJS")
        listing = cli("skills")

        assert created["created"] is True
        assert listing[0]["aliases"] == ["ReactJS"]

    def test_similar(self, cli):
        docker, kubernetes = cli("resolve", "Docker", "Kubernetes")

        result = cli("similar", "--skill-id", str(docker["id"]),
                     "--related-id", str(kubernetes["id"]), "--score", "0.8")

        assert result == [{"related_skill": kubernetes, "score": 0.8}]

    def test_consolidate(self, cli):
        cli("resolve", "Node.js")
        cli("resolve", "NodeJS")

        result = cli("consolidate")

        assert result == {"processed": 2, "merged_count": 1, "aliases_created": 1}


class TestIngestAndAnalyze:
    """Test ingestion and scoring commands."""

    def test_validate_valid(self, cli, payload_files):
        job, profile = payload_files

        assert cli("validate", "--input", str(job), parse=False).strip() == "Valid"
        assert cli("validate", "--kind", "profile", "--input", str(profile), parse=False).strip() == "Valid"

    def test_validate_invalid(self, cli, tmp_path, capsys):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"company": "Acme"}))

        with pytest.raises(SystemExit) as exc_info:
            main(["validate", "--input", str(bad)])

        assert exc_info.value.code == 2
        assert "Missing required field: title" in capsys.readouterr().out

    def test_missing_input_file(self, cli, tmp_path):
        with pytest.raises(SystemExit, match="Input file not found"):
            main(["ingest-job", "--input", str(tmp_path / "nope.json")])

    def test_ingest_and_analyze(self, cli, payload_files):
        job, profile = payload_files

        stored_job = cli("ingest-job", "--input", str(job), "--id", "job-1")
        stored_profile = cli("ingest-profile", "--input", str(profile), "--id", "cand-1")
        report = cli("analyze", "--candidate", "cand-1", "--job", "job-1")

        assert stored_job["required_skills"] == 3
        assert stored_profile["declared_skills"] == 2
        assert report["job_posting"]["id"] == "job-1"
        assert 0 <= report["overall_score"] <= 100
        assert {m["skill"]["name"] for m in report["skill_matches"]} == {
            "React", "Kubernetes", "Communication", "GraphQL",
        }

    def test_scores(self, cli, payload_files):
        job, profile = payload_files
        cli("ingest-job", "--input", str(job), "--id", "job-1")
        cli("ingest-profile", "--input", str(profile), "--id", "cand-1")

        rows = cli("scores", "--candidate", "cand-1", "--jobs", "job-1", "job-2")

        assert [r["job_posting_id"] for r in rows] == ["job-1", "job-2"]
        assert rows[1]["error"] == "Failed to analyze"

    def test_analyze_unknown_posting_exits_1(self, cli, capsys):
        cli("init-db")

        with pytest.raises(SystemExit) as exc_info:
            main(["analyze", "--candidate", "cand-1", "--job", "missing"])

        assert exc_info.value.code == 1
        assert "Job posting not found: missing" in capsys.readouterr().err

    def test_invalid_payload_exits_1(self, cli, tmp_path, capsys):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"title": "Dev"}))

        with pytest.raises(SystemExit) as exc_info:
            main(["ingest-job", "--input", str(bad)])

        assert exc_info.value.code == 1
        assert "Missing required field: company" in capsys.readouterr().err

    def test_malformed_json_exits_1(self, cli, tmp_path, capsys):
        broken = tmp_path / "broken.json"
        broken.write_text('{"title": "Dev",')

        with pytest.raises(SystemExit) as exc_info:
            main(["validate", "--input", str(broken)])

        assert exc_info.value.code == 1
        assert "Invalid JSON in" in capsys.readouterr().err
