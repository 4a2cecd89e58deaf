"""
Unit tests for the command-line layer.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from m365_group_settings import __main__ as cli
from m365_group_settings.auth.authenticator import AuthenticationError
from m365_group_settings.directory.groups import GroupResolver
from m365_group_settings.profiles import ProfileStore, TenantProfile


@pytest.fixture(autouse=True)
def profile_home(tmp_path, monkeypatch):
    monkeypatch.setenv("M365_GROUP_SETTINGS_HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def resolver(graph):
    return GroupResolver(graph)


class FakeGraphContext:
    """Stands in for GraphClient(...) used as an async context manager."""

    def __init__(self, graph):
        self.graph = graph

    def __call__(self, token, guardian, **kwargs):
        self.graph.guardian = guardian
        return self

    async def __aenter__(self):
        return self.graph

    async def __aexit__(self, *args):
        return None


class TestParseArgs:

    def test_blocked_words_collects_words(self):
        args = cli.parse_args(["add-blocked-words", "CEO", "HR", "--profile", "contoso"])
        assert args.words == ["CEO", "HR"]
        assert args.profile == "contoso"

    def test_allowed_group_requires_name_or_id(self):
        with pytest.raises(SystemExit):
            cli.parse_args(["set-allowed-group"])
        with pytest.raises(SystemExit):
            cli.parse_args(["set-allowed-group", "--name", "A", "--id", "g-1"])

    def test_no_command_exits(self):
        with pytest.raises(SystemExit):
            cli.parse_args([])


class TestBuildConfig:

    def test_profile_is_used(self, profile_home):
        store = ProfileStore.load()
        store.add(TenantProfile(name="contoso", tenant_id="t-1", client_id="c-1", auth_mode="secret"))

        config = cli.build_config(cli.parse_args(["get-settings", "-p", "contoso"]))

        assert config.auth.mode == "secret"
        assert config.auth.secret.client_id == "c-1"

    def test_cli_ids_without_profile(self):
        args = cli.parse_args([
            "get-settings", "--tenant-id", "t", "--client-id", "c", "--cert-path", "cert.txt",
        ])
        config = cli.build_config(args)
        assert config.auth.mode == "certificate"
        assert config.auth.certificate.certificate_path == "cert.txt"

    def test_delegated_flag(self):
        args = cli.parse_args([
            "get-settings", "--tenant-id", "t", "--client-id", "c", "--delegated", "--what-if",
        ])
        config = cli.build_config(args)
        assert config.auth.mode == "delegated"
        assert config.auth.delegated.tenant_id == "t"
        assert config.what_if is True

    def test_missing_profile_raises(self):
        with pytest.raises(AuthenticationError):
            cli.build_config(cli.parse_args(["get-settings", "-p", "nope"]))

    def test_no_credentials_raises(self):
        with pytest.raises(AuthenticationError):
            cli.build_config(cli.parse_args(["get-settings"]))


class TestRunCommand:

    @pytest.mark.asyncio
    async def test_add_blocked_words_prints_warnings(self, gateway, resolver, graph, capsys):
        graph.add_unified_settings(CustomBlockedWordsList="CEO,HR")
        args = cli.parse_args(["add-blocked-words", "ceo", "Finance"])

        code = await cli.run_command(args, gateway, resolver, "Group.Unified")

        out = capsys.readouterr().out
        assert code == cli.EXIT_OK
        assert "ceo already listed" in out
        assert "CEO,HR,Finance" in out

    @pytest.mark.asyncio
    async def test_get_settings_absent_prints_notice(self, gateway, resolver, capsys):
        args = cli.parse_args(["get-settings"])
        code = await cli.run_command(args, gateway, resolver, "Group.Unified")
        assert code == cli.EXIT_OK
        assert "create-settings" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_get_blocked_words_json(self, gateway, resolver, graph, capsys):
        graph.add_unified_settings(CustomBlockedWordsList="CEO,HR")
        args = cli.parse_args(["get-blocked-words", "--json"])
        await cli.run_command(args, gateway, resolver, "Group.Unified")
        assert capsys.readouterr().out.strip() == '["CEO", "HR"]'

    @pytest.mark.asyncio
    async def test_get_blocked_words_json_strips_spaces(self, gateway, resolver, graph, capsys):
        graph.add_unified_settings(CustomBlockedWordsList="CEO, HR")
        args = cli.parse_args(["get-blocked-words", "--json"])
        await cli.run_command(args, gateway, resolver, "Group.Unified")
        assert capsys.readouterr().out.strip() == '["CEO", "HR"]'


class TestMainAsync:

    @pytest.fixture
    def authenticated(self):
        authenticator = MagicMock()
        authenticator.acquire_token = AsyncMock(return_value="token")
        with patch.object(cli, "Authenticator", return_value=authenticator):
            yield authenticator

    def _argv(self, *command):
        return [*command, "--tenant-id", "t", "--client-id", "c"]

    @pytest.mark.asyncio
    async def test_not_found_exit_code(self, graph, authenticated, capsys):
        with patch.object(cli, "GraphClient", FakeGraphContext(graph)):
            code = await cli.main_async(self._argv("enable-group-creation"))

        assert code == cli.EXIT_USER_ERROR
        assert "create-settings" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_delete_declined_makes_no_changes(self, graph, authenticated, capsys):
        graph.add_unified_settings()
        with patch.object(cli, "GraphClient", FakeGraphContext(graph)), \
                patch.object(cli, "confirm_deletion", return_value=False):
            code = await cli.main_async(self._argv("delete-settings"))

        assert code == cli.EXIT_USER_ERROR
        assert "No changes made" in capsys.readouterr().out
        assert len(graph.settings) == 1

    @pytest.mark.asyncio
    async def test_create_when_present(self, graph, authenticated):
        graph.add_unified_settings()
        with patch.object(cli, "GraphClient", FakeGraphContext(graph)):
            code = await cli.main_async(self._argv("create-settings"))
        assert code == cli.EXIT_USER_ERROR
        assert graph.writes == []

    @pytest.mark.asyncio
    async def test_authentication_failure(self):
        authenticator = MagicMock()
        authenticator.acquire_token = AsyncMock(side_effect=AuthenticationError("bad cert"))
        with patch.object(cli, "Authenticator", return_value=authenticator):
            code = await cli.main_async(self._argv("get-settings"))
        assert code == cli.EXIT_SERVICE_ERROR

    @pytest.mark.asyncio
    async def test_profile_list_needs_no_auth(self, capsys):
        code = await cli.main_async(["profile", "list"])
        assert code == cli.EXIT_OK
        assert "No profiles configured" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_what_if_add_words_sends_nothing(self, graph, authenticated, capsys):
        graph.add_unified_settings(CustomBlockedWordsList="CEO,HR")
        with patch.object(cli, "GraphClient", FakeGraphContext(graph)):
            code = await cli.main_async(self._argv("add-blocked-words", "Finance", "--what-if"))

        out = capsys.readouterr().out
        assert code == cli.EXIT_OK
        assert "What-if: would set blocked words to: CEO,HR,Finance" in out
        assert "✅" not in out
        assert "were NOT sent" in out
        assert graph.value_of("CustomBlockedWordsList") == "CEO,HR"

    @pytest.mark.asyncio
    async def test_what_if_create_sends_nothing(self, graph, authenticated, capsys):
        with patch.object(cli, "GraphClient", FakeGraphContext(graph)):
            code = await cli.main_async(self._argv("create-settings", "--what-if"))

        out = capsys.readouterr().out
        assert code == cli.EXIT_OK
        assert "What-if: would create 'Group.Unified' settings object" in out
        assert "Created" not in out
        assert graph.settings == []

    @pytest.mark.asyncio
    async def test_what_if_json_prints_audit_record(self, graph, authenticated, capsys):
        graph.add_unified_settings()
        with patch.object(cli, "GraphClient", FakeGraphContext(graph)):
            await cli.main_async(self._argv("disable-group-creation", "--what-if", "--json"))

        out = capsys.readouterr().out
        record = json.loads(out[out.index("{"):])["write_guardian"]
        assert record["mode"] == "WHAT-IF"
        assert [w["method"] for w in record["planned_writes"]] == ["PATCH"]
        assert record["violations_detected"] == 0
        assert graph.value_of("EnableGroupCreation") == "True"

    @pytest.mark.asyncio
    async def test_read_failure_prints_cause_once(self, graph, authenticated, capsys):
        graph.failures["GET"] = httpx.ConnectError("connection refused")
        with patch.object(cli, "GraphClient", FakeGraphContext(graph)):
            code = await cli.main_async(self._argv("get-settings"))

        err = capsys.readouterr().err
        assert code == cli.EXIT_SERVICE_ERROR
        assert err.count("connection refused") == 1
