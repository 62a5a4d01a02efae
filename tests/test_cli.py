import json
from pathlib import Path

from typer.testing import CliRunner

from vcard_jmap.cli import app

runner = CliRunner()

ALICE = "BEGIN:VCARD\nVERSION:4.0\nFN:Alice\nEMAIL;TYPE=work:alice@example.com\nEND:VCARD\n"
MEETING = (
    "BEGIN:VCALENDAR\nVERSION:2.0\nPRODID:-//Example//EN\n"
    "BEGIN:VEVENT\nUID:m1\nDTSTART:20240301T090000Z\nSUMMARY:Standup\nEND:VEVENT\n"
    "END:VCALENDAR\n"
)


def _conf(tmp_path: Path) -> Path:
    conf = tmp_path / "conf.toml"
    conf.write_text('address_book_id = "ab1"\ncalendar_id = "cal1"\n')
    return conf


def test_init_creates_conf(tmp_path: Path):
    result = runner.invoke(app, ["init", "--dir", str(tmp_path)])

    assert result.exit_code == 0
    assert (tmp_path / "local" / "vcard-jmap.toml").exists()


def test_to_json_writes_cards_and_events(tmp_path: Path):
    (tmp_path / "alice.vcf").write_text(ALICE)
    (tmp_path / "meeting.ics").write_text(MEETING)
    out = tmp_path / "out.json"

    result = runner.invoke(app, [
        "to-json", str(tmp_path), "--output", str(out), "--config", str(_conf(tmp_path)),
    ])

    assert result.exit_code == 0
    records = json.loads(out.read_text(encoding="utf-8"))
    by_type = {r["@type"]: r for r in records}
    assert by_type["Card"]["fullName"] == "Alice"
    assert by_type["Card"]["addressBookId"] == "ab1"
    assert by_type["Event"]["title"] == "Standup"
    assert by_type["Event"]["calendarId"] == "cal1"


def test_to_json_without_sources_fails(tmp_path: Path):
    result = runner.invoke(app, ["to-json", str(tmp_path), "--config", str(tmp_path / "none.toml")])
    assert result.exit_code == 2


def test_unknown_dialect_fails(tmp_path: Path):
    (tmp_path / "alice.vcf").write_text(ALICE)
    result = runner.invoke(app, [
        "to-json", str(tmp_path), "--dialect", "outlook", "--config", str(tmp_path / "none.toml"),
    ])
    assert result.exit_code == 2


def test_from_json_writes_vcards(tmp_path: Path):
    src = tmp_path / "cards.json"
    src.write_text(json.dumps({
        "new1": {"@type": "Card", "fullName": "Alice"},
        "new2": {"@type": "Event", "uid": "m1", "title": "Standup", "start": "2024-03-01T09:00:00"},
    }))
    out = tmp_path / "out.txt"

    result = runner.invoke(app, [
        "from-json", str(src), "--output", str(out), "--config", str(tmp_path / "none.toml"),
    ])

    assert result.exit_code == 0
    text = out.read_text(encoding="utf-8")
    assert "FN:Alice" in text
    assert "SUMMARY:Standup" in text


def test_from_json_reports_failed_records(tmp_path: Path):
    src = tmp_path / "cards.json"
    src.write_text(json.dumps({
        "good": {"@type": "Card", "fullName": "Alice"},
        "bad": {"@type": "Card", "speakToAs": {"@type": "SpeakToAs", "grammaticalGender": "inanimate"}},
    }))
    out = tmp_path / "out.vcf"

    result = runner.invoke(app, [
        "from-json", str(src), "--output", str(out), "--config", str(tmp_path / "none.toml"),
    ])

    assert result.exit_code == 1
    assert "FN:Alice" in out.read_text(encoding="utf-8")


def test_from_json_rejects_non_object(tmp_path: Path):
    src = tmp_path / "cards.json"
    src.write_text("[]")
    result = runner.invoke(app, ["from-json", str(src), "--config", str(tmp_path / "none.toml")])
    assert result.exit_code == 2
