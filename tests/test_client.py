import json
import unittest
from unittest.mock import MagicMock, Mock

import httpx
import openai

from search_chat.core import RateLimitExhaustedError, ToolRequest, Turn, Role, TransportError
from search_chat.core.client import CompletionClient, Mode, Reply, decode_reply, decode_stream_frame

from .test_base import (
    COMPLETIONS_URL,
    completion_body,
    rate_limit_error,
    raw_response,
    status_error,
    text_reply,
    tool_call,
)

TOOLS = [{"type": "function", "function": {"name": "web_search", "description": "d", "parameters": {}}}]
TURNS = (Turn(Role.USER, "hello"),)


def stream_response(lines):
    context = MagicMock()
    context.__enter__.return_value.iter_lines.return_value = lines
    return context


class TestDecoding(unittest.TestCase):
    def test_decode_text_reply(self):
        self.assertEqual(decode_reply(completion_body("Hi")), Reply(text="Hi"))

    def test_decode_tool_reply(self):
        body = completion_body(None, [tool_call("call_1", "web_search", {"query": "weather today"})])
        reply = decode_reply(body)
        self.assertIsNone(reply.text)
        self.assertEqual(
            reply.tool_requests,
            (ToolRequest("call_1", "web_search", '{"query": "weather today"}'),),
        )

    def test_tool_reply_with_empty_content_has_no_text(self):
        body = completion_body("", [tool_call("call_1", "web_search", {"query": "q"})])
        self.assertIsNone(decode_reply(body).text)

    def test_object_arguments_are_serialized(self):
        call = tool_call("call_1", "web_search", "{}")
        call["function"]["arguments"] = {"query": "x"}
        reply = decode_reply(completion_body(None, [call]))
        self.assertEqual(json.loads(reply.tool_requests[0].arguments), {"query": "x"})

    def test_bad_tool_calls_are_transport_errors(self):
        listed = tool_call("call_1", "web_search", "{}")
        listed["function"]["arguments"] = ["x"]
        numbered = tool_call("call_1", "web_search", "{}")
        numbered["id"] = 7
        duplicated = [
            tool_call("call_1", "web_search", {"query": "a"}),
            tool_call("call_1", "open_url", {"id": "b"}),
        ]
        for calls in ([listed], [numbered], duplicated):
            with self.subTest(calls=calls):
                with self.assertRaises(TransportError):
                    decode_reply(completion_body(None, calls))

    def test_empty_reply_is_normalized(self):
        self.assertEqual(decode_reply(completion_body(None)), Reply(text=""))
        self.assertEqual(decode_reply(json.dumps({"choices": []})), Reply(text=""))

    def test_malformed_bodies(self):
        for body in ["not json", "{}", '{"choices": [{}]}', '{"choices": "x"}', "[]"]:
            with self.subTest(body=body):
                with self.assertRaises(TransportError):
                    decode_reply(body)

    def test_stream_frames(self):
        self.assertEqual(
            decode_stream_frame('data: {"choices":[{"delta":{"content":"Hel"}}]}'), (False, "Hel")
        )
        self.assertEqual(decode_stream_frame('data: {"choices":[{"delta":{}}]}'), (False, None))
        self.assertEqual(decode_stream_frame("data: {broken"), (False, None))
        self.assertEqual(decode_stream_frame(": keep-alive"), (False, None))
        self.assertEqual(decode_stream_frame(""), (False, None))
        self.assertEqual(decode_stream_frame("data: [DONE]"), (True, None))


class TestCompletionClient(unittest.TestCase):
    def setUp(self):
        self.mock_client = Mock()
        self.sleep = Mock()
        self.client = CompletionClient(
            self.mock_client, max_retries=3, retry_backoff=2, system_prompt="sys", sleep=self.sleep
        )
        self.create = self.mock_client.chat.completions.with_raw_response.create
        self.stream_create = self.mock_client.chat.completions.with_streaming_response.create

    def test_buffered_request_shape(self):
        self.create.return_value = text_reply("Hi")

        reply = self.client.complete("model-a", TURNS, tools=TOOLS)

        self.assertEqual(reply.text, "Hi")
        kwargs = self.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "model-a")
        self.assertFalse(kwargs["stream"])
        self.assertEqual(kwargs["tools"], TOOLS)
        self.assertEqual(
            kwargs["messages"],
            [{"role": "system", "content": "sys"}, {"role": "user", "content": "hello"}],
        )

    def test_tools_omitted_when_not_requested(self):
        self.create.return_value = text_reply("Hi")

        self.client.complete("model-a", TURNS)
        self.client.complete("model-a", TURNS, tools=[])

        for call in self.create.call_args_list:
            self.assertNotIn("tools", call.kwargs)

    def test_rejects_bad_arguments(self):
        with self.assertRaises(ValueError):
            self.client.complete("", TURNS)
        with self.assertRaises(ValueError):
            self.client.complete("model-a", TURNS, tools=TOOLS, mode=Mode.STREAMED)
        self.create.assert_not_called()

    def test_rate_limit_retries_then_succeeds(self):
        self.create.side_effect = [rate_limit_error(), rate_limit_error(), text_reply("finally")]

        reply = self.client.complete("model-a", TURNS)

        self.assertEqual(reply.text, "finally")
        self.assertEqual(self.create.call_count, 3)
        self.assertEqual(self.sleep.call_count, 2)
        # identical request every time
        first, *rest = self.create.call_args_list
        for call in rest:
            self.assertEqual(call.kwargs, first.kwargs)

    def test_rate_limit_exhausted_is_fatal(self):
        """Three retries after the first attempt, then give up"""
        self.create.side_effect = [rate_limit_error() for _ in range(5)]

        with self.assertRaises(RateLimitExhaustedError) as ctx:
            self.client.complete("model-a", TURNS)

        self.assertEqual(self.create.call_count, 4)
        self.assertEqual(self.sleep.call_count, 3)
        self.sleep.assert_called_with(2)
        self.assertEqual(ctx.exception.attempts, 4)
        self.assertEqual(ctx.exception.status_code, 429)

    def test_other_status_is_reported_once(self):
        self.create.side_effect = status_error(500, openai.InternalServerError, "boom")

        with self.assertRaises(TransportError) as ctx:
            self.client.complete("model-a", TURNS)

        self.assertNotIsInstance(ctx.exception, RateLimitExhaustedError)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(self.create.call_count, 1)
        self.sleep.assert_not_called()

    def test_connection_error(self):
        self.create.side_effect = openai.APIConnectionError(request=httpx.Request("POST", COMPLETIONS_URL))

        with self.assertRaises(TransportError):
            self.client.complete("model-a", TURNS)

    def test_malformed_body_is_transport_error(self):
        self.create.return_value = raw_response("<html>gateway</html>")

        with self.assertRaises(TransportError):
            self.client.complete("model-a", TURNS)

    def test_streamed_reply(self):
        self.stream_create.return_value = stream_response(
            [
                'data: {"choices":[{"delta":{"role":"assistant"}}]}',
                "",
                'data: {"choices":[{"delta":{"content":"Hel"}}]}',
                "data: {not json",
                'data: {"choices":[{"delta":{"content":"lo"}}]}',
                "data: [DONE]",
                'data: {"choices":[{"delta":{"content":"ignored"}}]}',
            ]
        )
        fragments = []

        reply = self.client.complete("model-a", TURNS, mode=Mode.STREAMED, on_fragment=fragments.append)

        self.assertEqual(fragments, ["Hel", "lo"])
        self.assertEqual(reply, Reply(text="Hello"))
        self.assertTrue(self.stream_create.call_args.kwargs["stream"])
        self.assertNotIn("tools", self.stream_create.call_args.kwargs)

    def test_stream_ending_without_done(self):
        self.stream_create.return_value = stream_response(['data: {"choices":[{"delta":{"content":"partial"}}]}'])

        reply = self.client.complete("model-a", TURNS, mode=Mode.STREAMED)

        self.assertEqual(reply.text, "partial")

    def test_stream_rate_limit_retry(self):
        self.stream_create.side_effect = [
            rate_limit_error(),
            stream_response(['data: {"choices":[{"delta":{"content":"ok"}}]}', "data: [DONE]"]),
        ]

        reply = self.client.complete("model-a", TURNS, mode=Mode.STREAMED)

        self.assertEqual(reply.text, "ok")
        self.sleep.assert_called_once_with(2)

    def test_stream_dropped_connection(self):
        context = MagicMock()
        context.__enter__.return_value.iter_lines.side_effect = httpx.ReadError("reset")
        self.stream_create.return_value = context

        with self.assertRaises(TransportError):
            self.client.complete("model-a", TURNS, mode=Mode.STREAMED)
