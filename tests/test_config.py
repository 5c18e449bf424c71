"""
ModMail Bot - Configuration Tests
=================================

Tests for environment loading and the staff permission gate.
"""

import discord
import pytest

from src.core.config import ConfigValidationError, has_staff_permission, load_config

from tests.conftest import STAFF_CHANNEL_ID, make_member, make_user


@pytest.fixture
def env(monkeypatch):
    """Minimal valid environment."""
    for name in (
        "BOT_TOKEN",
        "GUILD_ID",
        "DEBUG",
        "COMMAND_PREFIX",
        "REQUIRED_PERMISSION",
        "SPAM_MESSAGE_LIMIT",
        "SPAM_TIME_WINDOW",
        "BANNED_TERMS",
        "ERROR_WEBHOOK_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DISCORD_TOKEN", "token")
    monkeypatch.setenv("STAFF_CHANNEL_ID", str(STAFF_CHANNEL_ID))
    return monkeypatch


# =============================================================================
# Loading Tests
# =============================================================================

class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults(self, env):
        config = load_config()

        assert config.staff_channel_id == STAFF_CHANNEL_ID
        assert config.command_prefix == "!"
        assert config.required_permission == "administrator"
        assert config.spam_message_limit == 6
        assert config.spam_time_window == 60
        assert config.banned_terms == set()
        assert config.guild_id is None

    def test_missing_required(self, env):
        env.delenv("DISCORD_TOKEN")
        env.delenv("STAFF_CHANNEL_ID")

        with pytest.raises(ConfigValidationError) as exc:
            load_config()

        assert "DISCORD_TOKEN" in str(exc.value)
        assert "STAFF_CHANNEL_ID" in str(exc.value)

    def test_bot_token_alias(self, env):
        env.delenv("DISCORD_TOKEN")
        env.setenv("BOT_TOKEN", "alias-token")

        assert load_config().discord_token == "alias-token"

    def test_invalid_channel_id(self, env):
        env.setenv("STAFF_CHANNEL_ID", "modmail")

        with pytest.raises(ConfigValidationError):
            load_config()

    def test_out_of_range_values_clamped(self, env):
        env.setenv("SPAM_MESSAGE_LIMIT", "1")
        env.setenv("SPAM_TIME_WINDOW", "99999")

        config = load_config()

        assert config.spam_message_limit == 2
        assert config.spam_time_window == 3600

    def test_garbage_int_uses_default(self, env):
        env.setenv("SPAM_MESSAGE_LIMIT", "lots")

        assert load_config().spam_message_limit == 6

    def test_banned_terms_parsed(self, env):
        env.setenv("BANNED_TERMS", " Spoiler, scam ,,")

        assert load_config().banned_terms == {"spoiler", "scam"}

    def test_unknown_permission(self, env):
        env.setenv("REQUIRED_PERMISSION", "be_cool")

        with pytest.raises(ConfigValidationError):
            load_config()

    def test_invalid_webhook_ignored(self, env):
        env.setenv("ERROR_WEBHOOK_URL", "not-a-url")

        assert load_config().error_webhook_url is None

    @pytest.mark.parametrize("value", ["false", "0", "", "off", "no"])
    def test_debug_off_values(self, env, value):
        env.setenv("DEBUG", value)

        assert load_config().debug is False

    @pytest.mark.parametrize("value", ["1", "true", "YES", " on "])
    def test_debug_on_values(self, env, value):
        env.setenv("DEBUG", value)

        assert load_config().debug is True

    def test_debug_unset(self, env):
        assert load_config().debug is False

    def test_application_id_not_read_from_env(self, env):
        env.setenv("CLIENT_ID", "123456789012345678")

        assert not hasattr(load_config(), "client_id")

    def test_startup_validation_drives_logger_debug(self, env, monkeypatch):
        from src.core import config as config_module
        from src.core.logger import logger

        env.setenv("DEBUG", "false")
        loaded = load_config()
        monkeypatch.setattr(config_module, "get_config", lambda: loaded)
        monkeypatch.setattr(logger, "debug_enabled", True)

        config_module.validate_and_log_config()

        assert logger.debug_enabled is False

        loaded.debug = True
        config_module.validate_and_log_config()

        assert logger.debug_enabled is True


# =============================================================================
# Permission Tests
# =============================================================================

class TestHasStaffPermission:
    """Tests for has_staff_permission()."""

    def test_admin_allowed(self, config):
        assert has_staff_permission(make_member(discord.Permissions(administrator=True)), config)

    def test_no_permissions_denied(self, config):
        assert not has_staff_permission(make_member(discord.Permissions()), config)

    def test_dm_user_denied(self, config):
        user = make_user()
        del user.guild_permissions

        assert not has_staff_permission(user, config)
        assert not has_staff_permission(None, config)

    def test_custom_permission(self, config):
        config.required_permission = "manage_messages"

        assert has_staff_permission(make_member(discord.Permissions(manage_messages=True)), config)
        assert not has_staff_permission(make_member(discord.Permissions(kick_members=True)), config)
