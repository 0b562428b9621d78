import io
import json
import unittest
from unittest.mock import Mock, patch

import httpx
import openai
from rich.console import Console

from search_chat import ChatCLI, Session
from search_chat.core.agent import Agent
from search_chat.core.client import CompletionClient
from search_chat.core.tools import ToolRegistry

COMPLETIONS_URL = "https://api.groq.com/openai/v1/chat/completions"


def quiet_console():
    return Console(file=io.StringIO(), force_terminal=False, width=120)


def completion_body(content=None, tool_calls=None):
    message = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return json.dumps({"choices": [{"index": 0, "message": message}]})


def raw_response(body):
    return Mock(http_response=Mock(text=body))


def text_reply(content):
    return raw_response(completion_body(content))


def tool_call(call_id, name, arguments):
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}}


def tool_reply(*calls, content=None):
    return raw_response(completion_body(content, list(calls)))


def status_error(status, error_cls=openai.APIStatusError, message="error"):
    request = httpx.Request("POST", COMPLETIONS_URL)
    return error_cls(message, response=httpx.Response(status, request=request), body=None)


def rate_limit_error():
    return status_error(429, openai.RateLimitError, "Rate limit reached")


class BaseChatCLITest(unittest.TestCase):
    def setUp(self):
        self.console = quiet_console()

        # Silence the module-level console used by the REPL
        self.console_patcher = patch("search_chat.cli.console", self.console)
        self.console_patcher.start()

        # Mock the OpenAI client
        self.mock_client = Mock()
        self.sleep = Mock()
        self.completions = CompletionClient(self.mock_client, sleep=self.sleep)

        self.search_client = Mock()
        self.search_client.search.return_value = []
        self.registry = ToolRegistry(self.search_client)
        self.renderer = Mock()

        self.test_session = Session(model="openai/gpt-oss-120b")
        self.agent = Agent(
            self.completions,
            self.registry,
            self.test_session,
            max_tool_rounds=3,
            console=self.console,
            renderer=self.renderer,
            spinner=False,
        )
        self.chat_cli = ChatCLI(self.test_session, self.agent)

    def tearDown(self):
        self.console_patcher.stop()

    @property
    def create(self):
        return self.mock_client.chat.completions.with_raw_response.create

    def sent_messages(self, call_index=-1):
        return self.create.call_args_list[call_index].kwargs["messages"]
