import base64

import pytest

from services.openai.cost_generator import CostGenerator
from services.openai.response_parser import finalize_comment
from services.openai.vision_classifier import MAX_OUTPUT_TOKENS, VisionClassifier
from tests.conftest import FakeOpenAI


@pytest.mark.asyncio
async def test_classify_appends_period_and_reports_cost() -> None:
    client = FakeOpenAI(content="  Visible spalling on the column base  ", prompt_tokens=1000, completion_tokens=1000)

    result = await VisionClassifier(client, model="gpt-4o").classify(b"\xff\xd8jpeg")

    assert result.success is True
    assert result.comment == "Visible spalling on the column base."
    assert (result.input_tokens, result.output_tokens) == (1000, 1000)
    assert result.cost_usd == 0.02
    assert result.to_dict() == {
        "success": True,
        "comment": "Visible spalling on the column base.",
        "tokens": {"input": 1000, "output": 1000},
        "costUsd": 0.02,
    }


@pytest.mark.asyncio
async def test_classify_leaves_empty_output_empty() -> None:
    client = FakeOpenAI(content="", prompt_tokens=10, completion_tokens=0)

    result = await VisionClassifier(client).classify(b"img")

    assert result.success is True
    assert result.comment == ""


@pytest.mark.asyncio
async def test_classify_does_not_double_period() -> None:
    result = await VisionClassifier(FakeOpenAI(content="No visible damage.")).classify(b"img")
    assert result.comment == "No visible damage."


@pytest.mark.asyncio
async def test_classify_sends_prompt_and_image_with_output_cap() -> None:
    client = FakeOpenAI()

    await VisionClassifier(client, model="gpt-4o").classify(b"raw-bytes")

    call = client.completions.calls[0]
    assert call["model"] == "gpt-4o"
    assert call["max_tokens"] == MAX_OUTPUT_TOKENS == 300
    content = call["messages"][0]["content"]
    assert "honeycombing" in content[0]["text"]
    assert content[1]["image_url"]["url"] == "data:image/jpeg;base64," + base64.b64encode(b"raw-bytes").decode()


@pytest.mark.asyncio
async def test_api_failure_is_returned_not_raised() -> None:
    client = FakeOpenAI(error=RuntimeError("rate limited"))

    result = await VisionClassifier(client).classify(b"img")

    assert result.success is False
    assert result.error == "rate limited"
    assert result.to_dict() == {"success": False, "error": "rate limited"}


def test_finalize_comment() -> None:
    assert finalize_comment("") == ""
    assert finalize_comment("   ") == ""
    assert finalize_comment("Crack") == "Crack."


def test_cost_generator_rounds_to_six_decimals() -> None:
    cost = CostGenerator().total_cost(input_tokens=1234, output_tokens=567, model="gpt-4o")

    assert cost == round(1.234 * 0.005 + 0.567 * 0.015, 6)
    assert CostGenerator().total_cost(1000, 1000, "GPT-4o") == 0.02
    with pytest.raises(ValueError):
        CostGenerator().total_cost(-1, 0, "gpt-4o")
    with pytest.raises(ValueError):
        CostGenerator().total_cost(1, 1, "unknown-model")
