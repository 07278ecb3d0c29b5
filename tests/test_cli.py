"""Tests for the command line interface."""

import copy
import tempfile
from pathlib import Path

import yaml
from click.testing import CliRunner

from fakes import FakeEmbeddingProvider, FakeGenerator, FakeStore, failing_generator, make_doc
from ksynth.cli import cli
from ksynth.config import DEFAULT_CONFIG
from ksynth.embeddings.embedder import EmbeddingService
from ksynth.services import build_services
from ksynth.storage.memory import InMemoryVectorIndex


def _obj(generator=None, with_embeddings=True):
    docs = [make_doc(f"n{i}", tags={"ml"}) for i in range(3)] + [make_doc("other", folder="misc")]
    store = FakeStore(docs)
    index = InMemoryVectorIndex()
    vectors = {f"N{i}": [1.0, 0.01 * i] for i in range(3)}
    vectors.update({"Other": [0.0, 1.0], "neural nets": [1.0, 0.0]})
    embeddings = EmbeddingService(FakeEmbeddingProvider(vectors), index) if with_embeddings else None

    config = copy.deepcopy(DEFAULT_CONFIG)
    config["vault_path"] = "/unused"
    if not with_embeddings:
        config["ai"]["api_keys"] = {}
    services = build_services(
        config, store=store, index=index, embeddings=embeddings, generator=generator or FakeGenerator()
    )
    return {"config": config, "services": services}, store


def test_embed_then_search():
    obj, _ = _obj()
    runner = CliRunner()

    result = runner.invoke(cli, ["embed"], obj=obj)
    assert result.exit_code == 0, result.output
    assert "Embedded 4 new document(s)" in result.output

    result = runner.invoke(cli, ["search", "neural nets"], obj=obj)
    assert result.exit_code == 0, result.output
    assert "n0" in result.output
    assert "other" not in result.output


def test_cluster_tag():
    obj, _ = _obj()
    result = CliRunner().invoke(cli, ["cluster", "tag", "ml"], obj=obj)
    assert result.exit_code == 0, result.output
    assert "#ml" in result.output
    assert "N2" in result.output


def test_cluster_manual_unknown_ids_only():
    obj, _ = _obj()
    result = CliRunner().invoke(cli, ["cluster", "manual", "ghost"], obj=obj)
    assert result.exit_code == 0
    assert "is empty" in result.output


def test_suggest_by_tag():
    obj, _ = _obj()
    result = CliRunner().invoke(cli, ["suggest", "--source", "tag"], obj=obj)
    assert result.exit_code == 0, result.output
    assert "Synthesis Suggestions" in result.output
    assert "#ml" in result.output


def test_suggest_without_seeds_uses_vault_notes():
    obj, _ = _obj()
    runner = CliRunner()
    assert runner.invoke(cli, ["embed"], obj=obj).exit_code == 0

    result = runner.invoke(cli, ["suggest"], obj=obj)
    assert result.exit_code == 0, result.output
    assert "Synthesis Suggestions" in result.output
    assert "No suggestions" not in result.output


def test_synthesize_dry_run_writes_nothing():
    obj, store = _obj()
    result = CliRunner().invoke(
        cli, ["synthesize", "--tag", "ml", "--type", "summary", "--dry-run"], obj=obj
    )
    assert result.exit_code == 0, result.output
    assert "Dry run" in result.output
    assert store.written == {}


def test_synthesize_saves_note():
    obj, store = _obj()
    result = CliRunner().invoke(cli, ["synthesize", "--tag", "ml", "--title", "ML Overview"], obj=obj)
    assert result.exit_code == 0, result.output
    assert list(store.written) == ["Synthesized/ML Overview.md"]
    assert "summary" in result.output


def test_synthesize_failure_reports_stage():
    obj, store = _obj(generator=failing_generator())
    result = CliRunner().invoke(cli, ["synthesize", "--id", "n0", "--id", "n1", "--type", "framework"], obj=obj)
    assert result.exit_code == 1
    assert "at generate" in result.output
    assert store.written == {}


def test_synthesize_needs_a_source():
    obj, _ = _obj()
    result = CliRunner().invoke(cli, ["synthesize"], obj=obj)
    assert result.exit_code == 2


def test_similarity_disabled_without_provider():
    obj, _ = _obj(with_embeddings=False)
    runner = CliRunner()
    assert runner.invoke(cli, ["embed"], obj=obj).exit_code == 1
    result = runner.invoke(cli, ["stats"], obj=obj)
    assert result.exit_code == 0
    assert "disabled" in result.output


def test_stats():
    obj, _ = _obj()
    result = CliRunner().invoke(cli, ["stats"], obj=obj)
    assert result.exit_code == 0, result.output
    assert "Documents: 4" in result.output
    assert "Folders: 2" in result.output


def test_init_writes_config():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_file = Path(tmpdir) / "conf" / "config.yaml"
        vault = Path(tmpdir) / "vault"
        result = CliRunner().invoke(cli, ["--config", str(config_file), "init", "--path", str(vault)])
        assert result.exit_code == 0, result.output
        assert (vault / "Synthesized").is_dir()

        cfg = yaml.safe_load(config_file.read_text())
        assert cfg["vault_path"] == str(vault.resolve())
        assert cfg["config_version"] == 2
