import structlog

from blogsmith.cli import _parse_args, _read_reference_files, main


def test_generate_arguments():
    args = _parse_args([
        "generate", "renewable energy",
        "--primary", "solar power", "wind energy",
        "--secondary", "grid storage",
        "--reference", "https://ref.test/a",
        "--reference", "Plain reference text",
        "--save", "--key", "renewables",
    ])
    assert args.command == "generate"
    assert args.topic == "renewable energy"
    assert args.primary == ["solar power", "wind energy"]
    assert args.secondary == ["grid storage"]
    assert args.reference == ["https://ref.test/a", "Plain reference text"]
    assert args.save is True
    assert args.key == "renewables"
    assert args.stored_references is False


def test_enrich_arguments():
    args = _parse_args(["enrich", "--limit", "5"])
    assert args.command == "enrich"
    assert args.limit == 5


def test_reference_files_skip_blank_lines(tmp_path):
    path = tmp_path / "refs.txt"
    path.write_text("https://ref.test/a\n\n  https://ref.test/b  \n", encoding="utf-8")
    assert _read_reference_files([str(path)]) == ["https://ref.test/a", "https://ref.test/b"]


def test_missing_credentials_exit_nonzero(monkeypatch, capsys, tmp_path):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("UNSPLASH_ACCESS_KEY", raising=False)
    monkeypatch.chdir(tmp_path)

    assert main(["generate", "renewable energy"]) == 1
    assert "credentials" in capsys.readouterr().err


def test_logging_still_works_after_a_cli_run():
    # Runs after main() reconfigured structlog in the test above
    structlog.get_logger().info("after_cli_run", check=True)
