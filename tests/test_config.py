"""
Tests for settings loading, durations and snowflake helpers.
"""
import json
import stat

import pytest

import r2d


@pytest.mark.unit
class TestParseDuration:
    """Test parse_duration()."""

    @pytest.mark.parametrize("text,days", [
        ("7d", 7), ("2w", 14), ("1m", 30), ("1Y", 365), ("24h", 1), ("10", 10), ("3 d", 3),
    ])
    def test_valid(self, text, days):
        assert r2d.parse_duration(text) == pytest.approx(days)

    @pytest.mark.parametrize("text", ["", "0d", "abc", "7x", "-3", "0"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            r2d.parse_duration(text)


@pytest.mark.unit
class TestSnowflake:
    """Test snowflake conversion."""

    def test_epoch_is_zero(self):
        assert r2d.timestamp_to_snowflake(r2d.DISCORD_EPOCH) == 0

    def test_timestamp_survives_conversion(self):
        ms = 1_700_000_000_000
        assert r2d.snowflake_to_timestamp(r2d.timestamp_to_snowflake(ms)) == ms

    def test_known_snowflake(self):
        assert r2d.snowflake_to_timestamp("175928847299117063") == 1462015105796

    def test_cutoff(self):
        now = 1_700_000_000.0
        expected = r2d.timestamp_to_snowflake(1_700_000_000_000 - 7 * r2d.DAY_MS)
        assert r2d.cutoff_snowflake(7, now) == expected


@pytest.mark.unit
class TestLoadConfig:
    """Test load_config() layering."""

    def test_defaults(self, tmp_path):
        config = r2d.load_config(config_file=tmp_path / "none.json", environ={},
                                 env_file=tmp_path / ".env")

        assert config == r2d.DEFAULTS

    def test_precedence(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"token": "file", "max_age_days": 90, "delete_delay_ms": 500}))

        config = r2d.load_config(
            overrides={"max_age_days": 3},
            config_file=config_file,
            environ={"DISCORD_TOKEN": "env", "R2D_MAX_AGE": "14", "R2D_DRY_RUN": "1"},
            env_file=tmp_path / ".env",
        )

        assert config["token"] == "env"
        assert config["max_age_days"] == 3
        assert config["dry_run"] is True
        assert config["delete_delay_ms"] == 500

    def test_env_file_token(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("OTHER=1\nDISCORD_TOKEN='abc.def'\n")

        config = r2d.load_config(config_file=tmp_path / "none.json", environ={}, env_file=env_file)

        assert config["token"] == "abc.def"

    def test_max_age_accepts_durations(self, tmp_path):
        config = r2d.load_config(config_file=tmp_path / "none.json", environ={"R2D_MAX_AGE": "2w"},
                                 env_file=tmp_path / ".env")

        assert config["max_age_days"] == 14

    def test_bad_max_age_ignored(self, tmp_path):
        config = r2d.load_config(config_file=tmp_path / "none.json", environ={"R2D_MAX_AGE": "soon"},
                                 env_file=tmp_path / ".env")

        assert config["max_age_days"] == r2d.DEFAULTS["max_age_days"]

    def test_corrupt_config_ignored(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json")

        config = r2d.load_config(config_file=config_file, environ={}, env_file=tmp_path / ".env")

        assert config["max_age_days"] == 30


@pytest.mark.unit
class TestSaveConfig:
    """Test save_config()."""

    def test_merges_and_restricts_permissions(self, tmp_path):
        config_file = tmp_path / "sub" / "config.json"
        config_file.parent.mkdir()
        config_file.write_text(json.dumps({"max_age_days": 9}))

        r2d.save_config({"token": "abc"}, config_file)

        assert json.loads(config_file.read_text()) == {"max_age_days": 9, "token": "abc"}
        assert stat.S_IMODE(config_file.stat().st_mode) == 0o600

    def test_creates_directory(self, tmp_path):
        config_file = tmp_path / "new" / "config.json"

        r2d.save_config({"token": "abc"}, config_file)

        assert json.loads(config_file.read_text()) == {"token": "abc"}
