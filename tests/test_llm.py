import asyncio
from types import SimpleNamespace

import pytest

from conftest import ScriptedBackend
from gemchat.errors import RequestCancelled
from gemchat.llm import (
    CompletionClient,
    Deadline,
    EchoBackend,
    GeminiBackend,
    LangChainBackend,
    OpenAIBackend,
    RetryPolicy,
    candidate_text,
    choice_text,
)


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


def test_retry_policy_delays_double():
    policy = RetryPolicy()

    assert policy.max_attempts == 4
    assert [policy.delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]


def test_generate_retries_then_succeeds(sleep):
    backend = ScriptedBackend([ConnectionError("down"), RuntimeError("503"), "hello"])
    client = CompletionClient(backend, sleep=sleep)

    reply = asyncio.run(client.generate("user: hi"))

    assert reply == "hello"
    assert len(backend.prompts) == 3
    assert sleep.delays == [2.0, 4.0]


def test_first_attempt_is_not_delayed(sleep):
    backend = ScriptedBackend(["hi"])
    client = CompletionClient(backend, sleep=sleep)

    assert asyncio.run(client.generate("p")) == "hi"
    assert sleep.delays == []


def test_generate_returns_empty_after_exhaustion(sleep):
    backend = ScriptedBackend([RuntimeError("x")] * 10)
    client = CompletionClient(backend, sleep=sleep)

    assert asyncio.run(client.generate("p")) == ""
    assert len(backend.prompts) == 4
    assert sleep.delays == [2.0, 4.0, 8.0]


@pytest.mark.parametrize("reply", [None, "", "  "])
def test_reply_without_text_ends_the_call(sleep, reply):
    backend = ScriptedBackend([reply, "late"])
    client = CompletionClient(backend, sleep=sleep)

    assert asyncio.run(client.generate("p")) == ""
    assert len(backend.prompts) == 1
    assert sleep.delays == []


def test_backend_timeout_before_deadline_is_retried(sleep):
    backend = ScriptedBackend([asyncio.TimeoutError(), "ok"])
    client = CompletionClient(backend, sleep=sleep)

    assert asyncio.run(client.generate("p", Deadline.after(60))) == "ok"
    assert len(backend.prompts) == 2
    assert sleep.delays == [2.0]


def test_custom_policy(sleep):
    backend = ScriptedBackend([RuntimeError("x")] * 3)
    client = CompletionClient(backend, RetryPolicy(max_retries=1, base_delay=3.0), sleep=sleep)

    assert asyncio.run(client.generate("p")) == ""
    assert len(backend.prompts) == 2
    assert sleep.delays == [3.0]


def test_expired_deadline_aborts_without_calling_backend(sleep):
    backend = ScriptedBackend(["never"])
    client = CompletionClient(backend, sleep=sleep)
    clock = FakeClock()
    deadline = Deadline.after(5, clock=clock)
    clock.now += 10

    with pytest.raises(RequestCancelled) as excinfo:
        asyncio.run(client.generate("p", deadline))

    assert backend.prompts == []
    assert excinfo.value.attempts == 0


def test_cancelled_deadline_aborts_without_calling_backend(sleep):
    backend = ScriptedBackend(["never"])
    client = CompletionClient(backend, sleep=sleep)
    deadline = Deadline.never()
    deadline.cancel()

    with pytest.raises(RequestCancelled):
        asyncio.run(client.generate("p", deadline))
    assert backend.prompts == []


def test_cancellation_between_retries_stops_further_attempts():
    backend = ScriptedBackend([RuntimeError("x")] * 4)
    deadline = Deadline.never()

    async def cancel_on_sleep(delay):
        deadline.cancel()

    client = CompletionClient(backend, sleep=cancel_on_sleep)

    with pytest.raises(RequestCancelled) as excinfo:
        asyncio.run(client.generate("p", deadline))
    assert len(backend.prompts) == 1
    assert excinfo.value.attempts == 1


def test_deadline_bounds_the_backend_call(sleep):
    class SlowBackend:
        calls = 0
        cancelled = False

        async def complete(self, prompt):
            SlowBackend.calls += 1
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                SlowBackend.cancelled = True
                raise
            return "late"

    client = CompletionClient(SlowBackend(), sleep=sleep)

    with pytest.raises(RequestCancelled):
        asyncio.run(client.generate("p", Deadline.after(0.05)))
    assert SlowBackend.calls == 1
    assert SlowBackend.cancelled is True
    assert sleep.delays == []


def test_deadline_helpers():
    clock = FakeClock()
    deadline = Deadline.after(60, clock=clock)

    assert not deadline.expired
    assert deadline.remaining() == 60
    clock.now += 61
    assert deadline.expired
    assert deadline.remaining() == 0.0
    assert Deadline.never().remaining() is None


def _gemini_response(text):
    part = SimpleNamespace(text=text)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


@pytest.mark.parametrize(
    "response",
    [
        None,
        SimpleNamespace(candidates=None),
        SimpleNamespace(candidates=[]),
        SimpleNamespace(candidates=[SimpleNamespace(content=None)]),
        SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[]))]),
        _gemini_response(None),
        {"candidates": [{"content": {}}]},
    ],
)
def test_candidate_text_tolerates_missing_fields(response):
    assert candidate_text(response) is None


def test_candidate_text_reads_objects_and_mappings():
    assert candidate_text(_gemini_response("hi")) == "hi"
    assert candidate_text({"candidates": [{"content": {"parts": [{"text": "yo"}]}}]}) == "yo"


def test_choice_text():
    response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="ok"))])

    assert choice_text(response) == "ok"
    assert choice_text(SimpleNamespace(choices=[])) is None


def test_gemini_backend_calls_generate_content():
    calls = []

    async def generate_content(*, model, contents):
        calls.append((model, contents))
        return _gemini_response("answer")

    client = SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate_content)))
    backend = GeminiBackend(client=client, model="gemini-test")

    assert asyncio.run(backend.complete("user: hi")) == "answer"
    assert calls == [("gemini-test", "user: hi")]


def test_openai_backend_sends_prompt_as_single_user_message():
    calls = []

    async def create(**kwargs):
        calls.append(kwargs)
        return {"choices": [{"message": {"content": "ok"}}]}

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    backend = OpenAIBackend(client=client, model="gpt-test")

    assert asyncio.run(backend.complete("user: hi")) == "ok"
    assert calls == [{"model": "gpt-test", "messages": [{"role": "user", "content": "user: hi"}]}]


def test_langchain_backend_reads_content():
    class ChatModel:
        async def ainvoke(self, prompt):
            return SimpleNamespace(content=f"re: {prompt}")

    assert asyncio.run(LangChainBackend(ChatModel()).complete("x")) == "re: x"


def test_echo_backend_repeats_last_line():
    reply = asyncio.run(EchoBackend().complete("system: S\nuser: ping"))

    assert reply == "Echo: ping"
