import threading
from unittest.mock import patch

from chatrelay.schemas.webhook import RelayStatus
from chatrelay.services.admission_service import RejectReason
from chatrelay.services.ai_service import AI_ERROR_RESPONSE, PRIMER_MESSAGES
from chatrelay.services.conversation_window import Role
from chatrelay.services.relay_service import DeliveryAttempt, DeliveryChannel, ReplyPipeline
from chatrelay.services.result import GATEWAY_ERROR, TTS_ERROR, Result

TARGET_JID = "15551234567@s.whatsapp.net"
REPLY = "Osmosis is the movement of water."


def _prompt_messages(provider):
    return provider.generate.call_args[0][0]


class TestRejections:
    def test_rejected_event_skips_everything(self, pipeline, provider, gateway, make_event):
        outcome = pipeline.handle(make_event(from_me=True))

        assert outcome.status == RelayStatus.IGNORED_SELF
        assert outcome.reason == RejectReason.SELF_ECHO
        assert outcome.attempts == []
        provider.generate.assert_not_called()
        gateway.send_text.assert_not_called()
        assert len(pipeline.session.window) == 0

    def test_duplicate_is_ignored(self, pipeline, gateway, make_event):
        assert pipeline.handle(make_event(message_id="m1")).status == RelayStatus.SUCCESS
        assert pipeline.handle(make_event(message_id="m1")).status == RelayStatus.IGNORED_DUPLICATE
        gateway.send_text.assert_called_once()


class TestTextReply:
    def test_end_to_end_text_reply(self, pipeline, provider, gateway, synthesizer, make_event):
        outcome = pipeline.handle(make_event(text="explain osmosis", message_id="m1"))

        assert outcome.status == RelayStatus.SUCCESS
        assert outcome.wants_voice is False
        assert outcome.cleaned_text == "explain osmosis"
        assert outcome.channel == DeliveryChannel.TEXT
        assert outcome.attempts == [DeliveryAttempt(channel=DeliveryChannel.TEXT, ok=True)]

        messages = _prompt_messages(provider)
        assert messages[-1] == {"role": "user", "content": "explain osmosis"}
        gateway.send_text.assert_called_once_with(TARGET_JID, REPLY)
        synthesizer.synthesize.assert_not_called()

    def test_window_records_cleaned_user_turn_and_reply(self, pipeline, make_event):
        pipeline.handle(make_event(text="send me a voice note explaining gravity"))

        turns = pipeline.session.window.snapshot()
        assert [turn.role for turn in turns] == [Role.USER, Role.ASSISTANT]
        assert turns[0].text == "note explaining gravity"
        assert turns[1].text == REPLY

    def test_history_ends_with_newest_turn_then_prompt(self, pipeline, provider, make_event):
        pipeline.handle(make_event(text="first question", message_id="a"))
        pipeline.handle(make_event(text="second question", message_id="b"))

        contents = [m["content"] for m in _prompt_messages(provider)]
        assert contents[-4:] == ["first question", REPLY, "second question", "second question"]

    def test_full_window_leaves_nine_earlier_turns(self, pipeline, provider, make_event):
        for i in range(6):
            pipeline.handle(make_event(text=f"question {i}", message_id=f"q{i}"))

        history = _prompt_messages(provider)[len(PRIMER_MESSAGES):-1]
        assert len(history) == 10
        assert history[0] == {"role": "assistant", "content": REPLY}
        assert history[-1] == {"role": "user", "content": "question 5"}

    def test_completion_failure_sends_apology(self, pipeline, provider, gateway, make_event):
        provider.generate.side_effect = RuntimeError("timeout")

        outcome = pipeline.handle(make_event())

        assert outcome.status == RelayStatus.SUCCESS
        assert outcome.reply_text == AI_ERROR_RESPONSE
        gateway.send_text.assert_called_once_with(TARGET_JID, AI_ERROR_RESPONSE)
        assert pipeline.session.window.snapshot()[-1].text == AI_ERROR_RESPONSE

    @patch("chatrelay.services.relay_service.alert_error")
    def test_gateway_failure_still_succeeds(self, mock_alert, pipeline, gateway, make_event):
        gateway.send_text.return_value = Result.failure("HTTP 502", GATEWAY_ERROR)

        outcome = pipeline.handle(make_event())

        assert outcome.status == RelayStatus.SUCCESS
        assert outcome.delivered is False
        assert outcome.attempts == [DeliveryAttempt(channel=DeliveryChannel.TEXT, ok=False, error="HTTP 502")]
        mock_alert.assert_called_once()


class TestVoiceReply:
    def test_voice_note_sent_when_requested(self, pipeline, gateway, synthesizer, make_event):
        outcome = pipeline.handle(make_event(text="explain osmosis as voice note"))

        assert outcome.wants_voice is True
        assert outcome.cleaned_text == "explain osmosis"
        assert outcome.channel == DeliveryChannel.VOICE
        synthesizer.synthesize.assert_called_once_with(REPLY)
        artifact = synthesizer.synthesize.return_value.value
        gateway.send_voice_note.assert_called_once_with(TARGET_JID, artifact.path, "audio/wav")
        gateway.send_text.assert_not_called()

    def test_voice_file_removed_after_sending(self, pipeline, synthesizer, make_event):
        artifact = synthesizer.synthesize.return_value.value
        pipeline.handle(make_event(text="send audio about osmosis"))
        assert not artifact.path.exists()

    def test_voice_file_kept_when_configured(self, pipeline, synthesizer, make_event):
        pipeline.keep_audio_files = True
        artifact = synthesizer.synthesize.return_value.value
        pipeline.handle(make_event(text="send audio about osmosis"))
        assert artifact.path.exists()

    def test_synthesis_failure_falls_back_to_full_text(self, pipeline, provider, gateway, synthesizer, make_event):
        long_reply = "x" * 2000
        provider.generate.return_value.content = long_reply
        synthesizer.synthesize.return_value = Result.failure("espeak not found", TTS_ERROR)

        outcome = pipeline.handle(make_event(text="send me a voice note explaining gravity"))

        assert outcome.status == RelayStatus.SUCCESS
        assert outcome.channel == DeliveryChannel.TEXT
        assert outcome.attempts == [
            DeliveryAttempt(channel=DeliveryChannel.VOICE, ok=False, error="espeak not found"),
            DeliveryAttempt(channel=DeliveryChannel.TEXT, ok=True),
        ]
        synthesizer.synthesize.assert_called_once_with("x" * 1500)
        gateway.send_voice_note.assert_not_called()
        gateway.send_text.assert_called_once_with(TARGET_JID, long_reply)

    def test_voice_upload_failure_falls_back_to_text(self, pipeline, gateway, make_event):
        gateway.send_voice_note.return_value = Result.failure("HTTP 500", GATEWAY_ERROR)

        outcome = pipeline.handle(make_event(text="say it: what is osmosis"))

        assert outcome.channel == DeliveryChannel.TEXT
        assert [a.channel for a in outcome.attempts] == [DeliveryChannel.VOICE, DeliveryChannel.TEXT]

    def test_synthesizer_exception_falls_back_to_text(self, pipeline, gateway, synthesizer, make_event):
        synthesizer.synthesize.side_effect = RuntimeError("driver crashed")

        outcome = pipeline.handle(make_event(text="send audio about osmosis"))

        assert outcome.status == RelayStatus.SUCCESS
        assert outcome.channel == DeliveryChannel.TEXT
        assert outcome.attempts[0].error == "driver crashed"


class TestSerializedState:
    def test_parallel_duplicates_admitted_once(self, pipeline, gateway, make_event):
        event = make_event(message_id="same")
        statuses = []

        def worker():
            statuses.append(pipeline.handle(event).status)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert statuses.count(RelayStatus.SUCCESS) == 1
        assert statuses.count(RelayStatus.IGNORED_DUPLICATE) == 7
        gateway.send_text.assert_called_once()
        assert len(pipeline.session.window) == 2


class TestRecipient:
    def test_padded_target_number_is_trimmed(self, session, provider, synthesizer, gateway, make_event):
        pipeline = ReplyPipeline(
            session=session,
            target_number="  15551234567\n",
            provider=provider,
            synthesizer=synthesizer,
            gateway=gateway,
        )

        outcome = pipeline.handle(make_event())

        assert pipeline.recipient == TARGET_JID
        assert outcome.channel == DeliveryChannel.TEXT
        gateway.send_text.assert_called_once_with(TARGET_JID, REPLY)
