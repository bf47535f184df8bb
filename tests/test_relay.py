"""Test relay rules in both directions."""

from __future__ import annotations

import uuid

import pytest

from corrade_bridge.events import discord_message_in, notification_in
from corrade_bridge.gateway import Action, Bus, ChannelHandle, PendingAckTable, Relay
from tests.harness import CHANNEL_ID, GROUP, TOPIC, BridgeTestHarness
from tests.mocks import MockCorradeAdapter


def _notification(**fields: str):
    _, evt = notification_in(TOPIC, fields)
    return evt


def _discord(content: str = "hello", **overrides):
    kwargs = {
        "channel_id": CHANNEL_ID,
        "channel_kind": "text",
        "server_name": "Home",
        "author_name": "Bob",
        "author_discriminator": "4521",
        "content": content,
    }
    kwargs.update(overrides)
    _, evt = discord_message_in(**kwargs)
    return evt


def _group_chat(**overrides: str):
    fields = {
        "type": "group",
        "group": "Alpha",
        "firstname": "Jane",
        "lastname": "Resident",
        "message": "hi all",
    }
    fields.update(overrides)
    return _notification(**fields)


class TestCorradeToDiscord:
    """Rules for notifications arriving from Corrade."""

    def test_group_chat_is_forwarded(self):
        # Arrange
        h = BridgeTestHarness()

        # Act
        verdict = h.relay.handle_notification(_group_chat())

        # Assert
        assert verdict.action is Action.FORWARD
        assert len(h.discord.messages) == 1
        out = h.discord.messages[0]
        assert out.channel_id == CHANNEL_ID
        assert out.content == "Jane Resident [SL]: hi all"

    def test_unresolved_channel_suppresses_and_logs_error(self, log_records):
        h = BridgeTestHarness(resolved=False)

        verdict = h.relay.handle_notification(_group_chat())

        assert verdict.action is Action.SUPPRESS
        assert verdict.reason == "channel_unresolved"
        assert h.discord.messages == []
        assert any(r["level"] == "ERROR" and "check your configuration" in r["message"] for r in log_records)

    def test_unresolved_channel_is_checked_before_status_reports(self):
        h = BridgeTestHarness(resolved=False)
        h.pending.insert("id-9", {"command": "tell"})

        verdict = h.relay.handle_notification(_notification(command="tell_status", success="True", id="id-9"))

        assert verdict.reason == "channel_unresolved"
        assert "id-9" in h.pending

    @pytest.mark.parametrize("type_value", [None, "", "local", "GROUP", "instantmessage"])
    def test_non_group_type_is_suppressed(self, type_value):
        h = BridgeTestHarness()
        evt = _group_chat()
        if type_value is None:
            del evt.fields["type"]
        else:
            evt.fields["type"] = type_value

        verdict = h.relay.handle_notification(evt)

        assert verdict.reason == "not_group_notification"
        assert h.discord.messages == []

    def test_group_name_matches_case_insensitively(self):
        h = BridgeTestHarness()

        verdict = h.relay.handle_notification(_group_chat(group="alpha"))

        assert verdict.forwarded

    def test_foreign_group_is_suppressed(self):
        h = BridgeTestHarness()

        verdict = h.relay.handle_notification(_group_chat(group="Beta"))

        assert verdict.reason == "foreign_group"
        assert h.discord.messages == []

    def test_missing_group_is_suppressed(self):
        h = BridgeTestHarness()
        evt = _group_chat()
        del evt.fields["group"]

        assert h.relay.handle_notification(evt).reason == "foreign_group"

    def test_second_life_system_sender_is_suppressed(self):
        h = BridgeTestHarness()

        verdict = h.relay.handle_notification(
            _group_chat(firstname="Second", lastname="Life", message="No group members are online.")
        )

        assert verdict.reason == "system_message"
        assert h.discord.messages == []

    def test_sender_named_second_only_is_forwarded(self):
        h = BridgeTestHarness()

        assert h.relay.handle_notification(_group_chat(firstname="Second", lastname="Resident")).forwarded

    @pytest.mark.parametrize(
        "message",
        [
            "Bob#4521 [Discord]: hello",
            "alice#0 [Discord]: with a #hash inside",
            "first line\nBob#1 [Discord]: relayed on the second line",
        ],
    )
    def test_relayed_echo_is_suppressed(self, message):
        h = BridgeTestHarness()

        verdict = h.relay.handle_notification(_group_chat(message=message))

        assert verdict.reason == "relayed_echo"
        assert h.discord.messages == []

    @pytest.mark.parametrize(
        "message",
        [
            "Bob#abc [Discord]: not digits",
            "Bob#12 [discord]: lower-case tag",
            "Bob#12 [Discord]:",
            "Bob#12 [Discord]:\r\ntext on the next line",
            "#12 [Discord]: no name",
        ],
    )
    def test_similar_but_not_echo_is_forwarded(self, message):
        h = BridgeTestHarness()

        assert h.relay.handle_notification(_group_chat(message=message)).forwarded

    def test_missing_message_is_suppressed(self):
        h = BridgeTestHarness()
        evt = _group_chat()
        del evt.fields["message"]

        assert h.relay.handle_notification(evt).reason == "missing_message"
        assert h.discord.messages == []

    def test_own_tell_command_echoed_by_broker_is_suppressed(self):
        """The bridge is subscribed to the topic it publishes on, so it sees its own commands."""
        h = BridgeTestHarness()
        h.simulate_discord_message("hello")
        payload = h.corrade.commands[0].payload

        verdict = h.relay.handle_notification(_notification(**payload))

        assert verdict.reason == "not_group_notification"
        assert h.discord.messages == []
        assert "id-1" in h.pending

    def test_empty_payload_is_suppressed(self):
        h = BridgeTestHarness()

        assert h.relay.handle_notification(_notification()).action is Action.SUPPRESS


class TestStatusReports:
    """Correlation of Corrade status reports with commands the bridge sent."""

    def test_report_carrying_relay_command_is_not_a_status_report(self):
        h = BridgeTestHarness()
        h.simulate_discord_message("hello")
        assert "id-1" in h.pending

        verdict = h.relay.handle_notification(_notification(command="tell", success="True", id="id-1"))

        assert verdict.reason == "not_group_notification"
        assert "id-1" in h.pending

    def test_report_for_pending_id_is_acknowledged(self, log_records):
        h = BridgeTestHarness()
        h.simulate_discord_message("hello")

        verdict = h.relay.handle_notification(_notification(command="tellstatus", success="True", id="id-1"))

        assert verdict.action is Action.ACKNOWLEDGE
        assert verdict.reason == "delivered"
        assert "id-1" not in h.pending
        assert h.discord.messages == []
        assert any("Successfully sent message with ID: id-1" in r["message"] for r in log_records)

    def test_failure_report_is_logged_and_discarded(self, log_records):
        h = BridgeTestHarness()
        h.simulate_discord_message("hello")

        verdict = h.relay.handle_notification(
            _notification(command="tellstatus", success="False", id="id-1", error="agent not in group")
        )

        assert verdict.reason == "delivery_failed"
        assert "id-1" not in h.pending
        assert h.corrade.commands and len(h.corrade.commands) == 1  # no retry
        assert any(r["level"] == "WARNING" and "Tell command failed" in r["message"] for r in log_records)

    def test_second_report_for_same_id_is_orphaned(self, log_records):
        h = BridgeTestHarness()
        h.simulate_discord_message("hello")
        h.relay.handle_notification(_notification(command="tellstatus", success="True", id="id-1"))

        verdict = h.relay.handle_notification(_notification(command="tellstatus", success="True", id="id-1"))

        assert verdict.reason == "orphaned_report"
        assert any("does not belong to us" in r["message"] for r in log_records)

    def test_report_without_success_is_dropped_silently(self, log_records):
        h = BridgeTestHarness()
        h.simulate_discord_message("hello")
        log_records.clear()

        verdict = h.relay.handle_notification(_notification(command="tellstatus", id="id-1"))

        assert verdict.reason == "incomplete_report"
        assert "id-1" in h.pending
        assert log_records == []

    def test_report_without_id_is_orphaned(self):
        h = BridgeTestHarness()

        assert h.relay.handle_notification(_notification(command="x", success="True")).reason == "orphaned_report"

    def test_orphaned_report_log_masks_password(self, log_records):
        h = BridgeTestHarness()

        h.relay.handle_notification(_notification(command="x", success="True", id="nope", password="hunter2"))

        assert not any("hunter2" in r["message"] for r in log_records)

    def test_report_is_never_forwarded_even_with_group_fields(self):
        h = BridgeTestHarness()
        h.simulate_discord_message("hello")

        h.relay.handle_notification(
            _notification(
                command="tellstatus",
                success="True",
                id="id-1",
                type="group",
                group="Alpha",
                firstname="Jane",
                lastname="Resident",
                message="hi",
            )
        )

        assert h.discord.messages == []


class TestDiscordToCorrade:
    """Rules for messages arriving from Discord."""

    def test_message_builds_tell_command_and_pending_entry(self):
        # Arrange
        h = BridgeTestHarness()

        # Act
        verdict = h.relay.handle_discord_message(_discord("hello"))

        # Assert
        assert verdict.forwarded
        assert len(h.corrade.commands) == 1
        cmd = h.corrade.commands[0]
        assert cmd.correlation_id == "id-1"
        assert cmd.payload == {
            "command": "tell",
            "group": "Alpha",
            "password": "hunter2",
            "entity": "group",
            "target": GROUP.group_uuid,
            "message": "Bob#4521 [Discord]: hello",
            "id": "id-1",
        }
        assert h.pending.remove("id-1") == cmd.payload

    def test_each_message_gets_fresh_id(self):
        h = BridgeTestHarness()

        h.relay.handle_discord_message(_discord("one"))
        h.relay.handle_discord_message(_discord("two"))

        assert [c.correlation_id for c in h.corrade.commands] == ["id-1", "id-2"]
        assert len(h.pending) == 2

    def test_default_ids_are_uuids(self):
        bus = Bus()
        channel = ChannelHandle()
        channel.set(CHANNEL_ID)
        pending = PendingAckTable()
        corrade = MockCorradeAdapter()
        bus.register(corrade)
        relay = Relay(bus, GROUP, channel, pending)

        relay.handle_discord_message(_discord("hello"))

        correlation_id = corrade.commands[0].correlation_id
        assert uuid.UUID(correlation_id).version == 4
        assert correlation_id in pending

    def test_bot_author_is_suppressed(self):
        h = BridgeTestHarness()

        verdict = h.relay.handle_discord_message(_discord("beep", author_is_bot=True))

        assert verdict.reason == "bot_author"
        assert h.corrade.commands == []

    def test_attachments_are_appended_in_order(self):
        h = BridgeTestHarness()

        h.relay.handle_discord_message(
            _discord("look", attachment_urls=["https://cdn/a.png", "https://cdn/b.png"])
        )

        assert h.corrade.commands[0].payload["message"] == "Bob#4521 [Discord]: look https://cdn/a.png https://cdn/b.png"

    def test_attachment_only_message_is_forwarded(self):
        h = BridgeTestHarness()

        assert h.relay.handle_discord_message(_discord("", attachment_urls=["https://cdn/a.png"])).forwarded
        assert h.corrade.commands[0].payload["message"] == "Bob#4521 [Discord]:  https://cdn/a.png"

    def test_empty_message_creates_no_command_or_pending_entry(self):
        h = BridgeTestHarness()

        verdict = h.relay.handle_discord_message(_discord(""))

        assert verdict.reason == "empty_message"
        assert h.corrade.commands == []
        assert len(h.pending) == 0

    def test_wrong_channel_is_suppressed(self):
        h = BridgeTestHarness()

        assert h.relay.handle_discord_message(_discord(channel_id="999")).reason == "wrong_channel"
        assert len(h.pending) == 0

    def test_unresolved_channel_matches_nothing(self):
        h = BridgeTestHarness(resolved=False)

        assert h.relay.handle_discord_message(_discord()).reason == "wrong_channel"

    def test_wrong_server_is_suppressed(self):
        h = BridgeTestHarness()

        assert h.relay.handle_discord_message(_discord(server_name="Elsewhere")).reason == "wrong_server"

    def test_direct_message_has_no_server(self):
        h = BridgeTestHarness()

        assert h.relay.handle_discord_message(_discord(server_name=None)).reason == "wrong_server"

    def test_non_text_channel_is_suppressed(self):
        h = BridgeTestHarness()

        assert h.relay.handle_discord_message(_discord(channel_kind="voice")).reason == "not_text_channel"
        assert h.corrade.commands == []

    def test_bot_check_runs_before_empty_check(self):
        h = BridgeTestHarness()

        assert h.relay.handle_discord_message(_discord("", author_is_bot=True)).reason == "bot_author"


class TestBusIntegration:
    def test_relay_accepts_only_inbound_events(self):
        h = BridgeTestHarness()

        assert h.relay.accept_event("corrade", _group_chat())
        assert h.relay.accept_event("discord", _discord())
        assert not h.relay.accept_event("relay", object())

    def test_published_events_reach_relay(self):
        h = BridgeTestHarness()

        h.simulate_group_chat("Jane", "Resident", "hi")
        h.simulate_discord_message("yo")

        assert [m.content for m in h.discord.messages] == ["Jane Resident [SL]: hi"]
        assert [c.payload["message"] for c in h.corrade.commands] == ["Bob#4521 [Discord]: yo"]
